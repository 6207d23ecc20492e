"""
Tests for the rolling price history (price_history.py).
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from price_history import PriceHistoryStore, HISTORY_WINDOW


class TestPriceHistoryStore:
    """Tests for record/get and FIFO eviction."""

    def test_unknown_symbol_is_empty(self):
        store = PriceHistoryStore()
        assert store.get("SOL") == []
        assert len(store) == 0

    def test_record_oldest_first(self):
        store = PriceHistoryStore()
        for price in (1.0, 2.0, 3.0):
            store.record("SOL", price)
        assert store.get("SOL") == [1.0, 2.0, 3.0]

    def test_window_is_50(self):
        assert HISTORY_WINDOW == 50

    def test_evicts_oldest(self):
        store = PriceHistoryStore()
        for i in range(HISTORY_WINDOW + 5):
            store.record("SOL", float(i))

        prices = store.get("SOL")
        assert len(prices) == HISTORY_WINDOW
        assert prices[0] == 5.0
        assert prices[-1] == float(HISTORY_WINDOW + 4)

    def test_symbols_are_independent(self):
        store = PriceHistoryStore(window=3)
        store.record("SOL", 1.0)
        store.record("BONK", 2.0)
        assert store.get("SOL") == [1.0]
        assert store.get("BONK") == [2.0]
        assert sorted(store.symbols()) == ["BONK", "SOL"]

    def test_get_returns_copy(self):
        store = PriceHistoryStore()
        store.record("SOL", 1.0)
        store.get("SOL").append(99.0)
        assert store.get("SOL") == [1.0]

    def test_clear(self):
        store = PriceHistoryStore()
        store.record("SOL", 1.0)
        store.clear()
        assert store.get("SOL") == []
        assert len(store) == 0

    def test_resize_keeps_newest(self):
        store = PriceHistoryStore(window=5)
        for i in range(5):
            store.record("SOL", float(i))
        store.resize(3)
        assert store.get("SOL") == [2.0, 3.0, 4.0]
        store.record("SOL", 5.0)
        assert store.get("SOL") == [3.0, 4.0, 5.0]
