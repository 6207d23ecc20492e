"""
Bot Controller - RUNNING/STOPPED state for the autonomous bot

Single source of truth for whether the bot is trading.
STOPPED is the safe default; stopping never closes positions.
"""

import time
import logging
from enum import Enum
from typing import Optional, Callable, Awaitable

logger = logging.getLogger(__name__)


class BotState(Enum):
    """Bot run states"""
    RUNNING = "running"   # Ticks open and close positions
    STOPPED = "stopped"   # No new ticks


class BotController:
    """
    Single source of truth for the bot run state.
    """

    def __init__(self):
        self._state = BotState.STOPPED  # Safe default
        self._changed_at: int = int(time.time())
        self._changed_by: str = "system"
        self._on_state_change: Optional[Callable[[BotState, BotState, str], Awaitable[None]]] = None

    @property
    def state(self) -> BotState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == BotState.RUNNING

    @property
    def is_stopped(self) -> bool:
        return self._state == BotState.STOPPED

    def set_on_state_change(self, callback: Callable[[BotState, BotState, str], Awaitable[None]]) -> None:
        """Set callback for state changes. Callback receives (old_state, new_state, changed_by)."""
        self._on_state_change = callback

    async def set_state(self, state: BotState, changed_by: str = "user") -> bool:
        """
        Set the bot state.

        Returns:
            True if the state changed, False if already in that state
        """
        old_state = self._state

        if old_state == state:
            return False

        self._state = state
        self._changed_at = int(time.time())
        self._changed_by = changed_by

        logger.info(f"Bot state changed: {old_state.value} -> {state.value} by {changed_by}")

        if self._on_state_change:
            try:
                await self._on_state_change(old_state, state, changed_by)
            except Exception as e:
                logger.error(f"Error in state change callback: {e}")

        return True

    async def start(self, changed_by: str = "user") -> bool:
        return await self.set_state(BotState.RUNNING, changed_by)

    async def stop(self, changed_by: str = "user") -> bool:
        return await self.set_state(BotState.STOPPED, changed_by)

    def get_status(self) -> dict:
        """Get current state as dict."""
        return {
            "state": self._state.value,
            "running": self.is_running,
            "changed_at": self._changed_at,
            "changed_by": self._changed_by,
        }
