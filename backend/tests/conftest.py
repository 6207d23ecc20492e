"""
Pytest fixtures for the test suite.
"""
import pytest
import sys
import os
from unittest.mock import AsyncMock

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from data_feeds import PriceQuote
from mode_controller import BotController
from paper_trading import PaperTradingEngine, PaperTradingConfig
from scheduler import TickScheduler


def make_snapshot(prices: dict, changes: dict = None) -> dict:
    """Build a provider snapshot from {symbol: price} and optional {symbol: change_24h}."""
    changes = changes or {}
    return {
        symbol: PriceQuote(symbol=symbol, price=price, change_24h=changes.get(symbol, 0.0))
        for symbol, price in prices.items()
    }


@pytest.fixture
def autonomous_config():
    """Autonomous bot config with a round conversion rate."""
    return PaperTradingConfig.autonomous(starting_balance=1000.0, usd_to_eur_rate=1.0)


@pytest.fixture
def manual_config():
    """Manual trader config with a round conversion rate."""
    return PaperTradingConfig.manual(starting_balance=1000.0, usd_to_eur_rate=1.0)


@pytest.fixture
def autonomous_engine(autonomous_config):
    return PaperTradingEngine(config=autonomous_config)


@pytest.fixture
def manual_engine(manual_config):
    return PaperTradingEngine(config=manual_config)


@pytest.fixture
def mock_feed():
    """Feed returning a flat SOL/BONK snapshot."""
    feed = AsyncMock()
    feed.fetch_snapshot = AsyncMock(return_value=make_snapshot({"SOL": 100.0, "BONK": 0.00002}))
    feed.close = AsyncMock()
    return feed


@pytest.fixture
def autonomous_scheduler(autonomous_engine, mock_feed):
    return TickScheduler(
        engine=autonomous_engine,
        feed=mock_feed,
        controller=BotController(),
        interval_sec=0.01,
    )


@pytest.fixture
def manual_scheduler(manual_engine, mock_feed):
    return TickScheduler(
        engine=manual_engine,
        feed=mock_feed,
        controller=BotController(),
        interval_sec=0.01,
    )
