"""
Rolling price history per symbol.

Each symbol keeps the last HISTORY_WINDOW observed prices, oldest first.
Feeds the RSI calculation.
"""

from collections import deque

# Maximum prices kept per symbol
HISTORY_WINDOW = 50


class PriceHistoryStore:
    """Bounded FIFO price history, created lazily per symbol"""

    def __init__(self, window: int = HISTORY_WINDOW):
        self.window = window
        self._prices: dict[str, deque] = {}

    def record(self, symbol: str, price: float) -> None:
        """Append the latest price, evicting the oldest once the window is full"""
        prices = self._prices.get(symbol)
        if prices is None:
            prices = deque(maxlen=self.window)
            self._prices[symbol] = prices
        prices.append(price)

    def get(self, symbol: str) -> list[float]:
        """Prices for a symbol, oldest first (empty for unknown symbols)"""
        return list(self._prices.get(symbol, ()))

    def resize(self, window: int) -> None:
        """Change the window, keeping the newest prices of each symbol"""
        self.window = window
        for symbol, prices in self._prices.items():
            self._prices[symbol] = deque(prices, maxlen=window)

    def symbols(self) -> list[str]:
        return list(self._prices.keys())

    def clear(self) -> None:
        self._prices.clear()

    def __len__(self) -> int:
        return len(self._prices)
