"""
Trade signal classification from RSI and 24h price change.
"""

from enum import Enum

# Defaults
RSI_BUY_THRESHOLD = 35.0    # Oversold below this
RSI_SELL_THRESHOLD = 70.0   # Overbought above this
MIN_DIP_PCT = -3.0          # 24h change must be below this to buy


class SignalType(Enum):
    """Trading signal types"""
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


def classify_signal(
    rsi: float,
    change_24h: float,
    rsi_buy: float = RSI_BUY_THRESHOLD,
    rsi_sell: float = RSI_SELL_THRESHOLD,
    min_dip_pct: float = MIN_DIP_PCT,
) -> SignalType:
    """
    Classify a token into BUY / SELL / HOLD.

    BUY needs both an oversold RSI and a real dip in the 24h change.
    SELL only needs an overbought RSI. BUY is checked first.
    """
    if rsi < rsi_buy and change_24h < min_dip_pct:
        return SignalType.BUY
    if rsi > rsi_sell:
        return SignalType.SELL
    return SignalType.HOLD
