"""
Tick Scheduler - drives the paper trading engine at a fixed interval.

One asyncio task runs the loop:
1. Fetch a price snapshot (the only await in a tick)
2. Discard it if the scheduler was stopped/restarted meanwhile (epoch check)
3. Hand it to the engine synchronously
4. Notify listeners with the new state

The next tick is only scheduled after the previous one returns, so ticks
never overlap.
"""

import asyncio
import logging
from typing import Optional, Callable, Awaitable, Any

from data_feeds import FETCH_ERRORS
from mode_controller import BotController
from paper_trading import PaperTradingEngine, LogType

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SEC = 15.0


class TickScheduler:
    """
    Owns the polling loop for one engine.
    No hidden logic - explicit control flow.
    """

    def __init__(
        self,
        engine: PaperTradingEngine,
        feed: Any,
        controller: Optional[BotController] = None,
        interval_sec: Optional[float] = None,
    ):
        self.engine = engine
        self.feed = feed  # Anything with `async fetch_snapshot()`
        self.controller = controller or BotController()
        self.interval_sec = interval_sec or engine.config.poll_interval_sec or DEFAULT_POLL_INTERVAL_SEC
        self._epoch = 0
        self._task: Optional[asyncio.Task] = None
        self._on_tick: Optional[Callable[[dict], Awaitable[None]]] = None

    def set_callbacks(self, on_tick: Optional[Callable[[dict], Awaitable[None]]] = None) -> None:
        """Set callback receiving the render snapshot after every applied tick."""
        self._on_tick = on_tick

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def manages_positions(self) -> bool:
        """Manual variant always manages; autonomous only while running"""
        if not self.engine.config.is_autonomous:
            return True
        return self.controller.is_running

    # -------------------------------------------------------------------------
    # TICK
    # -------------------------------------------------------------------------

    async def run_tick(self) -> bool:
        """
        Run one tick.

        Returns True if a snapshot was applied, False if the fetch failed or
        the result arrived for a stale epoch.
        """
        epoch = self._epoch

        try:
            snapshot = await self.feed.fetch_snapshot()
        except FETCH_ERRORS as e:
            logger.warning(f"Price fetch failed: {type(e).__name__}: {e}")
            self.engine.log_event(LogType.INFO, f"Price fetch error: {e}")
            return False

        if epoch != self._epoch:
            logger.debug(f"Discarding snapshot from epoch {epoch} (current {self._epoch})")
            return False

        self.engine.process_snapshot(snapshot, manage_positions=self.manages_positions)

        if self._on_tick:
            try:
                await self._on_tick(self.get_snapshot())
            except Exception as e:
                logger.error(f"Error in tick callback: {e}")

        return True

    async def _loop(self, epoch: int) -> None:
        while epoch == self._epoch:
            try:
                await self.run_tick()
            except Exception:
                logger.exception("Tick failed")
            await asyncio.sleep(self.interval_sec)

    # -------------------------------------------------------------------------
    # POLLING CONTROL
    # -------------------------------------------------------------------------

    def start_polling(self) -> None:
        """Arm the loop; the first tick runs immediately"""
        if self.is_polling:
            return
        self._epoch += 1
        self._task = asyncio.create_task(self._loop(self._epoch))
        logger.info(f"Polling started (epoch {self._epoch}, every {self.interval_sec}s)")

    def stop_polling(self) -> None:
        """Cancel the loop; any in-flight result is discarded by epoch"""
        self._epoch += 1
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info(f"Polling stopped (epoch {self._epoch})")

    # -------------------------------------------------------------------------
    # LIFECYCLE
    # -------------------------------------------------------------------------

    async def startup(self) -> None:
        """
        Manual variant: poll from startup.
        Autonomous variant: one display-only tick, trading waits for start_bot().
        """
        if self.engine.config.is_autonomous:
            await self.run_tick()
        else:
            self.start_polling()

    async def shutdown(self) -> None:
        self.stop_polling()
        close = getattr(self.feed, "close", None)
        if close is not None:
            await close()

    async def start_bot(self, changed_by: str = "user") -> bool:
        """Start the autonomous bot. Returns False if already running or manual."""
        if not self.engine.config.is_autonomous:
            logger.info("start_bot ignored: manual variant has no bot")
            return False
        if not await self.controller.start(changed_by):
            return False
        self.engine.log_event(LogType.INFO, "Bot started - scanning for opportunities...")
        self.start_polling()
        return True

    async def stop_bot(self, changed_by: str = "user") -> bool:
        """Stop the bot. Open positions stay open."""
        if not await self.controller.stop(changed_by):
            return False
        self.stop_polling()
        self.engine.log_event(LogType.INFO, "Bot stopped")
        return True

    async def reset(self, changed_by: str = "user") -> None:
        """Stop the timer and reset the engine. Manual variant resumes polling."""
        self.stop_polling()
        await self.controller.stop(changed_by)
        self.engine.reset()
        if not self.engine.config.is_autonomous:
            self.start_polling()

    def get_snapshot(self) -> dict:
        return self.engine.get_snapshot(running=self.controller.is_running)

    def get_status(self) -> dict:
        status = self.controller.get_status()
        status.update({
            "variant": self.engine.config.variant.value,
            "polling": self.is_polling,
            "epoch": self._epoch,
            "interval_sec": self.interval_sec,
        })
        return status
