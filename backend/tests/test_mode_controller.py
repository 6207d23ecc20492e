"""
Tests for the Bot Controller - RUNNING/STOPPED state.

Tests cover:
- Default state initialization
- State transitions
- State change callbacks
- Status reporting
"""
import pytest
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mode_controller import BotController, BotState


class TestBotState:
    """Tests for BotState enum."""

    def test_state_values(self):
        assert BotState.RUNNING.value == "running"
        assert BotState.STOPPED.value == "stopped"


class TestBotControllerInit:
    """Tests for BotController initialization."""

    def test_default_state_is_stopped(self):
        """Default state should be STOPPED for safety."""
        controller = BotController()
        assert controller.state == BotState.STOPPED
        assert controller.is_stopped is True
        assert controller.is_running is False

    def test_changed_by_defaults_to_system(self):
        controller = BotController()
        assert controller.get_status()["changed_by"] == "system"


class TestBotControllerTransitions:
    """Tests for state transitions."""

    @pytest.fixture
    def controller(self):
        return BotController()

    @pytest.mark.asyncio
    async def test_start(self, controller):
        assert await controller.start() is True
        assert controller.is_running is True

    @pytest.mark.asyncio
    async def test_start_twice_returns_false(self, controller):
        await controller.start()
        assert await controller.start() is False

    @pytest.mark.asyncio
    async def test_stop(self, controller):
        await controller.start()
        assert await controller.stop() is True
        assert controller.is_stopped is True

    @pytest.mark.asyncio
    async def test_stop_when_stopped_returns_false(self, controller):
        assert await controller.stop() is False

    @pytest.mark.asyncio
    async def test_changed_by_recorded(self, controller):
        await controller.set_state(BotState.RUNNING, changed_by="api")
        status = controller.get_status()
        assert status["state"] == "running"
        assert status["running"] is True
        assert status["changed_by"] == "api"


class TestBotControllerCallbacks:
    """Tests for state change callbacks."""

    @pytest.mark.asyncio
    async def test_callback_receives_transition(self):
        controller = BotController()
        calls = []

        async def on_change(old, new, changed_by):
            calls.append((old, new, changed_by))

        controller.set_on_state_change(on_change)
        await controller.start(changed_by="user")

        assert calls == [(BotState.STOPPED, BotState.RUNNING, "user")]

    @pytest.mark.asyncio
    async def test_callback_not_called_without_change(self):
        controller = BotController()
        calls = []

        async def on_change(old, new, changed_by):
            calls.append(new)

        controller.set_on_state_change(on_change)
        await controller.stop()

        assert calls == []

    @pytest.mark.asyncio
    async def test_callback_error_does_not_block_change(self):
        controller = BotController()

        async def failing(old, new, changed_by):
            raise RuntimeError("listener failed")

        controller.set_on_state_change(failing)
        assert await controller.start() is True
        assert controller.is_running is True
