"""
Paper Trading System for a basket of Solana ecosystem tokens.

Trades virtual funds against live prices. Two variants:

manual:
    The user opens and closes positions. Every tick, open positions are
    marked to market and closed automatically on stop-loss / take-profit.

autonomous:
    A signal engine opens positions when a token is oversold (RSI < 35)
    after a real dip (24h change < -3%), and closes winners on an
    overbought reading (RSI > 70), on top of stop-loss / take-profit.

Per tick:
1. Record each token's price in its rolling history
2. Compute RSI from the history
3. Classify BUY / SELL / HOLD
4. Open positions on BUY signals (autonomous only)
5. Mark open positions to market and apply the exit rules
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Callable, Mapping, TYPE_CHECKING

from config import get_token_name
from indicators import calculate_rsi, RSI_PERIOD
from price_history import PriceHistoryStore, HISTORY_WINDOW
from signals import SignalType, classify_signal
from trade_ledger import Ledger, Trade, TradeStatus, ExitReason

if TYPE_CHECKING:
    from data_feeds import PriceQuote

logger = logging.getLogger(__name__)

# Activity log entries kept for the UI
MAX_LOG_ENTRIES = 100

# Trades included in the render snapshot
SNAPSHOT_TRADE_LIMIT = 20


# ============================================================================
# CONFIGURATION
# ============================================================================

class TraderVariant(Enum):
    """How positions get opened"""
    MANUAL = "manual"            # User-triggered entries, automatic SL/TP exits
    AUTONOMOUS = "autonomous"    # Signal-driven entries and exits

    @classmethod
    def from_string(cls, value: str) -> "TraderVariant":
        value = value.lower().strip()
        if value == "manual":
            return cls.MANUAL
        return cls.AUTONOMOUS


@dataclass
class PaperTradingConfig:
    """Paper trading configuration (defaults are the autonomous bot)"""
    variant: TraderVariant = TraderVariant.AUTONOMOUS
    starting_balance: float = 1000.0

    # Position sizing
    position_fraction: float = 0.15         # 15% of balance per trade
    position_cap: Optional[float] = None    # Hard ceiling per trade (None = no cap)
    cash_reserve: float = 10.0              # Never allocate the last EUR 10
    min_trade_value: float = 20.0           # Skip trades smaller than this
    min_balance_to_trade: float = 50.0      # Signal entries need more than this
    max_positions: Optional[int] = 4        # None = unlimited

    # Exits
    stop_loss_pct: float = 0.03             # 3%
    take_profit_pct: float = 0.08           # 8%
    exit_on_signal: bool = True             # Close winners on SELL

    # Signals
    auto_trade: bool = True                 # Open on BUY signals
    rsi_period: int = RSI_PERIOD
    rsi_buy: float = 35.0
    rsi_sell: float = 70.0
    min_dip_pct: float = -3.0
    history_window: int = HISTORY_WINDOW

    # Trade history keeps an OPEN marker until the position closes
    record_open_markers: bool = False

    # Fixed USD -> EUR conversion for every valuation
    usd_to_eur_rate: float = 0.92

    poll_interval_sec: float = 15.0

    @classmethod
    def autonomous(cls, **overrides) -> "PaperTradingConfig":
        return cls(**overrides)

    @classmethod
    def manual(cls, **overrides) -> "PaperTradingConfig":
        settings = dict(
            variant=TraderVariant.MANUAL,
            position_fraction=1.0,
            position_cap=100.0,           # EUR 100 per trade
            cash_reserve=0.0,
            min_trade_value=10.0,
            min_balance_to_trade=0.0,
            max_positions=None,
            exit_on_signal=False,
            auto_trade=False,
            record_open_markers=True,
        )
        settings.update(overrides)
        return cls(**settings)

    @property
    def is_autonomous(self) -> bool:
        return self.variant == TraderVariant.AUTONOMOUS

    def validate(self) -> None:
        """Raise ValueError if any field is out of range"""
        for name in ("exit_on_signal", "auto_trade", "record_open_markers"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"{name} must be a boolean")

        for name in ("rsi_period", "history_window"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer")
        if self.history_window < self.rsi_period + 1:
            raise ValueError("history_window must hold at least rsi_period + 1 prices")

        if self.max_positions is not None and (
            isinstance(self.max_positions, bool)
            or not isinstance(self.max_positions, int)
            or self.max_positions < 1
        ):
            raise ValueError("max_positions must be a positive integer or null")

        numeric = (
            "starting_balance", "position_fraction", "cash_reserve", "min_trade_value",
            "min_balance_to_trade", "stop_loss_pct", "take_profit_pct", "rsi_buy",
            "rsi_sell", "min_dip_pct", "usd_to_eur_rate", "poll_interval_sec",
        )
        for name in numeric + (("position_cap",) if self.position_cap is not None else ()):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number")

        if not 0 < self.position_fraction <= 1:
            raise ValueError("position_fraction must be in (0, 1]")
        if self.position_cap is not None and self.position_cap <= 0:
            raise ValueError("position_cap must be positive or null")
        for name in ("starting_balance", "cash_reserve", "min_trade_value", "min_balance_to_trade"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if not 0 < self.stop_loss_pct < 1:
            raise ValueError("stop_loss_pct must be in (0, 1)")
        if self.take_profit_pct <= 0:
            raise ValueError("take_profit_pct must be positive")
        if not 0 <= self.rsi_buy <= 100 or not 0 <= self.rsi_sell <= 100:
            raise ValueError("RSI thresholds must be in [0, 100]")
        if self.usd_to_eur_rate <= 0 or self.poll_interval_sec <= 0:
            raise ValueError("usd_to_eur_rate and poll_interval_sec must be positive")

    def to_dict(self) -> dict:
        d = asdict(self)
        d["variant"] = self.variant.value
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "PaperTradingConfig":
        data = dict(data)
        variant = data.get("variant", TraderVariant.AUTONOMOUS)
        if isinstance(variant, str):
            variant = TraderVariant.from_string(variant)
        data["variant"] = variant
        known = set(cls.__dataclass_fields__)
        return cls(**{k: v for k, v in data.items() if k in known})


# ============================================================================
# QUOTES AND LOGS
# ============================================================================

@dataclass
class TokenQuote:
    """Per-tick view of a token"""
    symbol: str
    name: str
    price: float
    prev_price: float
    change_24h: float
    rsi: float
    signal: SignalType

    @property
    def is_tradeable(self) -> bool:
        return self.price > 0

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "price": self.price,
            "prev_price": self.prev_price,
            "change_24h": round(self.change_24h, 2),
            "rsi": round(self.rsi, 1),
            "signal": self.signal.value,
        }


class LogType(Enum):
    INFO = "INFO"
    BUY = "BUY"
    SELL = "SELL"
    TP = "TP"
    SL = "SL"
    SIGNAL = "SIGNAL"
    MANUAL = "MANUAL"


@dataclass(frozen=True)
class LogEntry:
    time: datetime
    type: LogType
    message: str

    def to_dict(self) -> dict:
        return {
            "time": self.time.isoformat(),
            "type": self.type.value,
            "message": self.message,
        }


# ============================================================================
# POSITIONS
# ============================================================================

@dataclass
class Position:
    """
    An open paper trading position.

    Entry, quantity, value and thresholds are fixed at open. Only the mark
    (current_price, pnl, pnl_percent) changes between ticks.
    """
    id: int
    symbol: str
    entry_price: float
    quantity: float
    value: float             # Allocated EUR
    stop_loss: float
    take_profit: float
    opened_at: datetime
    side: str = "LONG"
    current_price: float = 0.0
    pnl: float = 0.0         # Unrealized EUR
    pnl_percent: float = 0.0

    def __post_init__(self):
        if not self.current_price:
            self.current_price = self.entry_price

    def mark(self, price: float, rate: float) -> None:
        """Mark to market at the latest price"""
        self.current_price = price
        self.pnl = (price - self.entry_price) * self.quantity * rate
        self.pnl_percent = ((price - self.entry_price) / self.entry_price) * 100

    @property
    def market_value(self) -> float:
        return self.value + self.pnl

    def to_open_trade(self) -> Trade:
        return Trade(
            id=self.id,
            symbol=self.symbol,
            side=self.side,
            entry_price=self.entry_price,
            quantity=self.quantity,
            value=self.value,
            stop_loss=self.stop_loss,
            take_profit=self.take_profit,
            opened_at=self.opened_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "side": self.side,
            "entry_price": self.entry_price,
            "current_price": self.current_price,
            "quantity": self.quantity,
            "value": round(self.value, 2),
            "pnl": round(self.pnl, 2),
            "pnl_percent": round(self.pnl_percent, 2),
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "opened_at": self.opened_at.isoformat(),
        }


@dataclass
class OpenResult:
    """Result of attempting to open a position."""
    success: bool
    position: Optional[Position] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "position": self.position.to_dict() if self.position else None,
            "error": self.error,
        }


# ============================================================================
# PAPER TRADING ENGINE
# ============================================================================

class PaperTradingEngine:
    """
    Owns the paper account: rolling history, open positions and the ledger.

    All state changes go through this class and happen synchronously inside
    a tick or a user action, so no locking is needed.

    Handles:
    - Price history and signal classification
    - Position sizing and risk limits
    - Mark-to-market and exit rules (SL, TP, SELL signal)
    - Activity log for the UI
    """

    def __init__(self, config: Optional[PaperTradingConfig] = None):
        self.config = config or PaperTradingConfig.autonomous()
        self.config.validate()
        self.ledger = Ledger(self.config.starting_balance)
        self.history = PriceHistoryStore(self.config.history_window)
        self.positions: dict[str, Position] = {}  # symbol -> open position
        self.quotes: dict[str, TokenQuote] = {}
        self.logs: deque[LogEntry] = deque(maxlen=MAX_LOG_ENTRIES)  # Newest first
        self.last_update: Optional[datetime] = None
        self._last_position_id = 0

        # Callbacks
        self.on_position_open: Optional[Callable[[Position], None]] = None
        self.on_trade: Optional[Callable[[Trade], None]] = None

        logger.info(f"PaperTradingEngine initialized in {self.config.variant.value} mode")

    # -------------------------------------------------------------------------
    # TICK PROCESSING
    # -------------------------------------------------------------------------

    def classify(self, rsi: float, change_24h: float) -> SignalType:
        return classify_signal(
            rsi,
            change_24h,
            rsi_buy=self.config.rsi_buy,
            rsi_sell=self.config.rsi_sell,
            min_dip_pct=self.config.min_dip_pct,
        )

    def process_snapshot(
        self,
        snapshot: Mapping[str, "PriceQuote"],
        manage_positions: bool = True,
    ) -> list[TokenQuote]:
        """
        Run one tick against a price snapshot (symbol -> PriceQuote).

        Tokens without a usable price keep their history untouched, read HOLD
        and are neither traded nor marked this tick.
        """
        quotes = []
        for symbol, snap in snapshot.items():
            price = snap.price or 0.0
            change_24h = snap.change_24h or 0.0

            if price > 0:
                self.history.record(symbol, price)

            rsi = calculate_rsi(self.history.get(symbol), self.config.rsi_period)
            signal = self.classify(rsi, change_24h) if price > 0 else SignalType.HOLD

            previous = self.quotes.get(symbol)
            prev_price = previous.price if previous and previous.price > 0 else price

            quotes.append(TokenQuote(
                symbol=symbol,
                name=get_token_name(symbol),
                price=price,
                prev_price=prev_price,
                change_24h=change_24h,
                rsi=rsi,
                signal=signal,
            ))

        self.quotes = {q.symbol: q for q in quotes}
        self.last_update = datetime.now(timezone.utc)

        if manage_positions:
            if self.config.auto_trade:
                self._process_signals(quotes)
            self._check_positions()

        return quotes

    def _process_signals(self, quotes: list[TokenQuote]) -> None:
        """Open positions on BUY signals"""
        for quote in quotes:
            if quote.signal != SignalType.BUY or not quote.is_tradeable:
                continue
            if self.ledger.balance <= self.config.min_balance_to_trade:
                logger.debug(
                    f"Skipping {quote.symbol} BUY: balance {self.ledger.balance:.2f} "
                    f"<= {self.config.min_balance_to_trade:.2f}"
                )
                continue
            self.open_position(quote.symbol, quote.price, source="signal")

    def _check_positions(self) -> None:
        """Mark every open position and apply exit rules"""
        for position in list(self.positions.values()):
            quote = self.quotes.get(position.symbol)
            if quote is None or not quote.is_tradeable:
                continue
            self.mark_and_check(position.symbol, quote.price, quote.signal)

    # -------------------------------------------------------------------------
    # POSITION MANAGEMENT
    # -------------------------------------------------------------------------

    def _calculate_position_size(self) -> float:
        """
        Calculate position size from the available balance.

        Uses the LESSER of:
        1. position_fraction of the balance
        2. position_cap (if set)
        3. balance minus the cash reserve
        4. the balance itself
        """
        balance = self.ledger.balance
        size = balance * self.config.position_fraction

        if self.config.position_cap is not None:
            size = min(size, self.config.position_cap)

        size = min(size, balance - self.config.cash_reserve, balance)
        return max(0.0, size)

    def _next_position_id(self) -> int:
        """Creation timestamp in ms, bumped to stay unique"""
        position_id = max(int(time.time() * 1000), self._last_position_id + 1)
        self._last_position_id = position_id
        return position_id

    def _reject(self, symbol: str, reason: str, source: str) -> OpenResult:
        logger.info(f"Open {symbol} rejected ({source}): {reason}")
        if source == "manual":
            self.log_event(LogType.INFO, f"Cannot open {symbol}: {reason}")
        return OpenResult(success=False, error=reason)

    def open_position(self, symbol: str, price: float, source: str = "manual") -> OpenResult:
        """Open a new long position at price, sized against the balance"""
        if price <= 0:
            return self._reject(symbol, "no valid price", source)

        if symbol in self.positions:
            return self._reject(symbol, "position already open", source)

        max_positions = self.config.max_positions
        if max_positions is not None and len(self.positions) >= max_positions:
            return self._reject(symbol, f"max positions reached ({max_positions})", source)

        size = self._calculate_position_size()
        if size < self.config.min_trade_value:
            return self._reject(symbol, "insufficient balance", source)

        position = Position(
            id=self._next_position_id(),
            symbol=symbol,
            entry_price=price,
            quantity=size / price,
            value=size,
            stop_loss=price * (1 - self.config.stop_loss_pct),
            take_profit=price * (1 + self.config.take_profit_pct),
            opened_at=datetime.now(timezone.utc),
        )

        self.ledger.debit(size, f"Open {symbol}", reference_id=position.id)
        self.positions[symbol] = position

        if self.config.record_open_markers:
            self.ledger.record_trade(position.to_open_trade())

        self.log_event(
            LogType.BUY,
            f"OPENED {symbol} @ ${price:.4f} | Size: EUR {size:.2f} | "
            f"SL: ${position.stop_loss:.4f} | TP: ${position.take_profit:.4f}",
        )

        if self.on_position_open:
            self.on_position_open(position)

        return OpenResult(success=True, position=position)

    def mark_and_check(self, symbol: str, price: float, signal: SignalType) -> Optional[Trade]:
        """
        Mark a position to market and close it if an exit rule fires.

        Priority: stop-loss, then take-profit, then SELL signal (winners only).
        """
        position = self.positions.get(symbol)
        if position is None:
            return None

        position.mark(price, self.config.usd_to_eur_rate)

        if price <= position.stop_loss:
            return self.close_position(position, price, ExitReason.STOP_LOSS)

        if price >= position.take_profit:
            return self.close_position(position, price, ExitReason.TAKE_PROFIT)

        if self.config.exit_on_signal and signal == SignalType.SELL and position.pnl > 0:
            return self.close_position(position, price, ExitReason.SIGNAL)

        return None

    def close_position(self, position: Position, exit_price: float, reason: ExitReason) -> Optional[Trade]:
        """Close an open position and record the trade"""
        if self.positions.get(position.symbol) is not position:
            logger.warning(f"Close {position.symbol} #{position.id} ignored: position is not open")
            return None

        rate = self.config.usd_to_eur_rate
        pnl = (exit_price - position.entry_price) * position.quantity * rate
        pnl_percent = ((exit_price - position.entry_price) / position.entry_price) * 100

        trade = Trade(
            id=position.id,
            symbol=position.symbol,
            side=position.side,
            entry_price=position.entry_price,
            quantity=position.quantity,
            value=position.value,
            stop_loss=position.stop_loss,
            take_profit=position.take_profit,
            opened_at=position.opened_at,
            status=TradeStatus.CLOSED,
            exit_price=exit_price,
            reason=reason,
            pnl=pnl,
            pnl_percent=pnl_percent,
            closed_at=datetime.now(timezone.utc),
        )

        del self.positions[position.symbol]
        self.ledger.credit(position.value + pnl, f"Close {position.symbol} ({reason.value})", reference_id=position.id)
        self.ledger.record_trade(trade)

        self.log_event(
            LogType(reason.value),
            f"CLOSED {position.symbol} @ ${exit_price:.4f} | {reason.label} | "
            f"PnL: EUR {pnl:.2f} ({pnl_percent:.1f}%) | {trade.result}",
        )

        if self.on_trade:
            self.on_trade(trade)

        return trade

    # -------------------------------------------------------------------------
    # USER ACTIONS
    # -------------------------------------------------------------------------

    def manual_open(self, symbol: str) -> OpenResult:
        """Open a position at the latest quoted price"""
        symbol = symbol.upper()
        quote = self.quotes.get(symbol)
        if quote is None or not quote.is_tradeable:
            return self._reject(symbol, "no price available", "manual")
        return self.open_position(symbol, quote.price, source="manual")

    def get_position(self, position_id: int) -> Optional[Position]:
        for position in self.positions.values():
            if position.id == position_id:
                return position
        return None

    def manual_close(self, position_id: int) -> Optional[Trade]:
        """Close a position at the latest quoted price (or its last mark)"""
        position = self.get_position(position_id)
        if position is None:
            logger.info(f"Manual close ignored: no open position #{position_id}")
            return None

        quote = self.quotes.get(position.symbol)
        price = quote.price if quote and quote.is_tradeable else position.current_price
        position.mark(price, self.config.usd_to_eur_rate)
        return self.close_position(position, price, ExitReason.MANUAL)

    def reset(self) -> None:
        """Reset the account to its initial state"""
        self.ledger.reset(self.config.starting_balance)
        self.positions.clear()
        self.history.clear()
        self.quotes = {}
        self.logs.clear()
        self.last_update = None
        self.log_event(LogType.INFO, "Bot reset to initial state")

    def update_config(self, **changes) -> None:
        """
        Validate and apply config changes.

        Nothing is applied if any field is unknown, read-only or out of range.
        A new history_window resizes the existing price buffers.
        """
        for key in changes:
            if key not in PaperTradingConfig.__dataclass_fields__ or key == "variant":
                raise ValueError(f"Unknown or read-only config field: {key}")

        candidate = replace(self.config, **changes)
        candidate.validate()

        for key, value in changes.items():
            setattr(self.config, key, value)
        if self.history.window != self.config.history_window:
            self.history.resize(self.config.history_window)
        logger.info(f"Config updated: {changes}")

    # -------------------------------------------------------------------------
    # ACTIVITY LOG
    # -------------------------------------------------------------------------

    def log_event(self, log_type: LogType, message: str) -> None:
        self.logs.appendleft(LogEntry(time=datetime.now(timezone.utc), type=log_type, message=message))
        logger.info(f"[{log_type.value}] {message}")

    def get_logs(self, limit: int = MAX_LOG_ENTRIES) -> list[dict]:
        return [entry.to_dict() for entry in list(self.logs)[:limit]]

    # -------------------------------------------------------------------------
    # READ MODEL
    # -------------------------------------------------------------------------

    @property
    def open_pnl(self) -> float:
        return sum(p.pnl for p in self.positions.values())

    @property
    def total_value(self) -> float:
        """Cash plus the marked value of every open position"""
        return self.ledger.balance + sum(p.market_value for p in self.positions.values())

    def get_positions(self) -> list[dict]:
        return [p.to_dict() for p in sorted(self.positions.values(), key=lambda p: p.id)]

    def get_trade_history(self, limit: int = 50) -> list[dict]:
        return self.ledger.get_trade_history(limit)

    def get_tokens(self) -> list[dict]:
        return [q.to_dict() for q in self.quotes.values()]

    def get_config(self) -> dict:
        return self.config.to_dict()

    def get_account_summary(self) -> dict:
        summary = self.ledger.to_dict()
        summary.update({
            "open_pnl": round(self.open_pnl, 2),
            "closed_pnl": summary["realized_pnl"],
            "total_value": round(self.total_value, 2),
            "open_positions": len(self.positions),
            "max_positions": self.config.max_positions,
        })
        return summary

    def get_snapshot(self, running: bool = False) -> dict:
        """Read-only state for the view layer"""
        return {
            "variant": self.config.variant.value,
            "running": running,
            "last_update": self.last_update.isoformat() if self.last_update else None,
            "account": self.get_account_summary(),
            "positions": self.get_positions(),
            "trades": self.get_trade_history(SNAPSHOT_TRADE_LIMIT),
            "tokens": self.get_tokens(),
            "logs": self.get_logs(),
        }
