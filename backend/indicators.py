"""
Technical indicators computed from rolling price history.
"""

from typing import Sequence

RSI_PERIOD = 14


def calculate_rsi(prices: Sequence[float], period: int = RSI_PERIOD) -> float:
    """
    Calculate Relative Strength Index (0-100).

    Uses a simple average of gains and losses over the trailing `period`
    price changes (not Wilder smoothing).

    Returns 50.0 (neutral) when there are fewer than period + 1 prices,
    and 100.0 when no loss was observed in the window.
    """
    if period < 1:
        raise ValueError(f"RSI period must be at least 1, got {period}")
    if len(prices) < period + 1:
        return 50.0  # Neutral

    closes = list(prices[-(period + 1):])
    gains = 0.0
    losses = 0.0

    for i in range(1, len(closes)):
        change = closes[i] - closes[i - 1]
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100 - (100 / (1 + rs))
