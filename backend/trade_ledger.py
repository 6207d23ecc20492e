"""
Trade Ledger - in-memory cash balance and trade history for the paper account.

Single source of truth for the cash balance. Only the paper trading engine
calls debit/credit. Keeps an append-only transaction journal so every balance
change can be audited.
"""

import itertools
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


logger = logging.getLogger("trade_ledger")


# ============================================================================
# TRANSACTION TYPES
# ============================================================================

class TransactionType:
    """Transaction types for the ledger"""
    DEBIT = "debit"           # Cash allocated to a new position
    CREDIT = "credit"         # Cash returned when a position closes


@dataclass(frozen=True)
class Transaction:
    """A single balance change with the running balance after it."""
    id: str
    type: str                  # debit, credit
    amount: float              # Positive = credit, negative = debit
    balance_after: float
    description: str
    created_at: str            # ISO timestamp
    reference_id: Optional[int] = None  # Position/trade id if applicable

    def to_dict(self) -> dict:
        d = asdict(self)
        d["amount"] = round(self.amount, 2)
        d["balance_after"] = round(self.balance_after, 2)
        return d


# ============================================================================
# TRADE RECORD
# ============================================================================

class ExitReason(Enum):
    """Why a position was closed"""
    STOP_LOSS = "SL"
    TAKE_PROFIT = "TP"
    SIGNAL = "SIGNAL"
    MANUAL = "MANUAL"

    @property
    def label(self) -> str:
        return {
            ExitReason.STOP_LOSS: "STOP LOSS",
            ExitReason.TAKE_PROFIT: "TAKE PROFIT",
            ExitReason.SIGNAL: "SIGNAL",
            ExitReason.MANUAL: "MANUAL",
        }[self]


class TradeStatus(Enum):
    OPEN = "OPEN"      # Marker written when the position opened
    CLOSED = "CLOSED"  # Terminal record


@dataclass(frozen=True)
class Trade:
    """
    Immutable trade history entry.

    An OPEN marker carries only the entry side. The CLOSED record written when
    the position closes replaces the marker with the same id.
    """
    id: int
    symbol: str
    side: str
    entry_price: float
    quantity: float
    value: float                    # Allocated value in account currency
    stop_loss: float
    take_profit: float
    opened_at: datetime
    status: TradeStatus = TradeStatus.OPEN
    exit_price: Optional[float] = None
    reason: Optional[ExitReason] = None
    pnl: float = 0.0                # Realized P&L in account currency
    pnl_percent: float = 0.0
    closed_at: Optional[datetime] = None

    @property
    def is_closed(self) -> bool:
        return self.status == TradeStatus.CLOSED

    @property
    def result(self) -> Optional[str]:
        if not self.is_closed:
            return None
        return "WIN" if self.pnl >= 0 else "LOSS"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "side": self.side,
            "status": self.status.value,
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "quantity": self.quantity,
            "value": round(self.value, 2),
            "stop_loss": self.stop_loss,
            "take_profit": self.take_profit,
            "pnl": round(self.pnl, 2),
            "pnl_percent": round(self.pnl_percent, 2),
            "result": self.result,
            "reason": self.reason.value if self.reason else None,
            "opened_at": self.opened_at.isoformat(),
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
        }


# ============================================================================
# LEDGER
# ============================================================================

class Ledger:
    """
    Cash balance, transaction journal and trade history of the paper account.

    The ledger trusts its caller: debit() does not check the balance, the
    engine sizes every debit against the available balance first.
    """

    def __init__(self, starting_balance: float, account: str = "paper"):
        self.account = account
        self.starting_balance = starting_balance
        self._balance = starting_balance
        self._transactions: list[Transaction] = []
        self._trades: list[Trade] = []  # Newest first
        self._tx_counter = itertools.count(1)
        logger.info(f"Ledger initialized: {account} balance={starting_balance:.2f}")

    # -------------------------------------------------------------------------
    # BALANCE
    # -------------------------------------------------------------------------

    @property
    def balance(self) -> float:
        return self._balance

    def debit(self, amount: float, description: str = "", reference_id: Optional[int] = None) -> Transaction:
        """Remove cash from the account"""
        self._balance -= amount
        return self._journal(TransactionType.DEBIT, -amount, description, reference_id)

    def credit(self, amount: float, description: str = "", reference_id: Optional[int] = None) -> Transaction:
        """Return cash to the account"""
        self._balance += amount
        return self._journal(TransactionType.CREDIT, amount, description, reference_id)

    def _journal(self, tx_type: str, amount: float, description: str, reference_id: Optional[int]) -> Transaction:
        tx = Transaction(
            id=f"{self.account}-{next(self._tx_counter)}",
            type=tx_type,
            amount=amount,
            balance_after=self._balance,
            description=description,
            created_at=datetime.now(timezone.utc).isoformat(),
            reference_id=reference_id,
        )
        self._transactions.append(tx)
        logger.debug(f"{tx_type} {amount:+.2f} -> balance {self._balance:.2f} ({description})")
        return tx

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions)

    # -------------------------------------------------------------------------
    # TRADE HISTORY
    # -------------------------------------------------------------------------

    def record_trade(self, trade: Trade) -> None:
        """
        Add a trade to the front of the history.

        A closed trade supersedes the OPEN marker with the same id.
        """
        if trade.is_closed:
            self._trades = [
                t for t in self._trades
                if not (t.id == trade.id and not t.is_closed)
            ]
        self._trades.insert(0, trade)

    @property
    def trades(self) -> list[Trade]:
        return list(self._trades)

    @property
    def closed_trades(self) -> list[Trade]:
        return [t for t in self._trades if t.is_closed]

    def get_trade_history(self, limit: int = 50) -> list[dict]:
        return [t.to_dict() for t in self._trades[:limit]]

    # -------------------------------------------------------------------------
    # STATS
    # -------------------------------------------------------------------------

    @property
    def realized_pnl(self) -> float:
        return sum(t.pnl for t in self.closed_trades)

    @property
    def winning_trades(self) -> int:
        return sum(1 for t in self.closed_trades if t.result == "WIN")

    @property
    def losing_trades(self) -> int:
        return sum(1 for t in self.closed_trades if t.result == "LOSS")

    @property
    def win_rate(self) -> float:
        closed = self.closed_trades
        if not closed:
            return 0.0
        return self.winning_trades / len(closed)

    def reset(self, starting_balance: Optional[float] = None) -> None:
        """Reinitialize balance and clear journal and history"""
        if starting_balance is not None:
            self.starting_balance = starting_balance
        self._balance = self.starting_balance
        self._transactions = []
        self._trades = []
        self._tx_counter = itertools.count(1)
        logger.info(f"Ledger reset: {self.account} balance={self._balance:.2f}")

    def to_dict(self) -> dict:
        return {
            "account": self.account,
            "balance": round(self._balance, 2),
            "starting_balance": round(self.starting_balance, 2),
            "realized_pnl": round(self.realized_pnl, 2),
            "total_trades": len(self.closed_trades),
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": round(self.win_rate * 100, 1),
        }
