"""
Data contracts for throttle-core: Fill, PendingOrder, Trade, RiskState, DailyRow.

throttle-core consumes normalized fills (from an external fill source) and
produces trades, risk state and daily equity rows.
No I/O; these are plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Side(str, Enum):
    """Execution side of a fill or resting order."""

    BUY = "BUY"
    SELL = "SELL"


class PositionSide(str, Enum):
    """Direction of an open position or trade."""

    LONG = "LONG"
    SHORT = "SHORT"


class TradeStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class Outcome(str, Enum):
    """Classification of a trade. ACTIVE for trades still holding quantity."""

    WIN = "WIN"
    LOSS = "LOSS"
    BREAKEVEN = "BREAKEVEN"
    ACTIVE = "ACTIVE"


class Mode(str, Enum):
    """Risk regime assigned by the restart throttle."""

    HIGH = "HIGH"
    LOW = "LOW"


class OrderType(str, Enum):
    STOP = "STOP"
    LIMIT = "LIMIT"
    MARKET = "MARKET"
    UNKNOWN = "UNKNOWN"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CANCELLED = "CANCELLED"
    FILLED = "FILLED"
    UNKNOWN = "UNKNOWN"


class WarningLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"


class StopSource(str, Enum):
    """Where a trade's protective stop came from."""

    USER = "user"
    INFERRED = "inferred"
    NONE = "none"


# ---------------------------------------------------------------------------
# Serialization helper
# ---------------------------------------------------------------------------


def to_primitive(obj: Any) -> Any:
    """Externalize contracts to JSON-safe primitives (ISO strings for datetimes)."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if hasattr(obj, "__dataclass_fields__"):
        return {f.name: to_primitive(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {k: to_primitive(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_primitive(x) for x in obj]
    return obj


# ---------------------------------------------------------------------------
# Inputs (produced by the external fill source)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Fill:
    """One broker execution. Timestamps are tz-aware UTC."""

    id: str
    symbol: str
    side: Side
    quantity: float
    price: float
    filled_time: datetime
    order_id: str = ""
    commission: float = 0.0
    market_date: str = ""          # YYYY-MM-DD, Eastern trading day
    row_index: int = 0             # original row ordinal, tie-breaker
    stop_price: float | None = None


@dataclass(frozen=True)
class PendingOrder:
    """A resting (unfilled) order used to infer stops and targets."""

    symbol: str
    side: Side
    quantity: float
    placed_time: datetime
    price: float | None = None
    stop_price: float | None = None
    limit_price: float | None = None
    type: OrderType = OrderType.UNKNOWN
    status: OrderStatus = OrderStatus.PENDING

    def resting_price(self) -> float | None:
        """Price the order would trigger at: stop, then limit, then plain price."""
        if self.stop_price is not None:
            return self.stop_price
        if self.limit_price is not None:
            return self.limit_price
        return self.price


# ---------------------------------------------------------------------------
# Reconstruction output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReconstructionWarning:
    """Non-fatal note about input that was skipped or looks incomplete."""

    level: WarningLevel
    message: str
    symbol: str
    fill_id: str | None = None
    action: str = ""


@dataclass(frozen=True)
class Trade:
    """One position session: flat -> open -> flat (or still open).

    Never mutated after creation; risk annotation uses dataclasses.replace.
    """

    id: str
    symbol: str
    side: PositionSide
    status: TradeStatus

    entry_time: datetime
    entry_day_key: str
    entry_price: float
    entry_fills: tuple[Fill, ...]

    exit_time: datetime | None
    exit_day_key: str | None
    exit_price: float | None
    exit_fills: tuple[Fill, ...]

    quantity: float
    remaining_qty: float

    realized_pnl: float            # commission-inclusive
    commission: float
    pnl_percent: float
    outcome: Outcome
    legs: int
    duration_minutes: int | None = None
    open_cost_basis: float = 0.0   # ACTIVE only: sum of qty * price over unconsumed lots

    stop_price: float | None = None
    inferred_stop: float | None = None
    pending_exit: float | None = None
    stop_source: StopSource = StopSource.NONE

    # Snapshot of the throttle directive in force when the trade was entered.
    mode_at_entry: Mode | None = None
    risk_pct_at_entry: float | None = None
    equity_at_entry: float | None = None
    risk_dollars_at_entry: float | None = None

    @property
    def is_closed(self) -> bool:
        return self.status == TradeStatus.CLOSED

    def to_dict(self) -> dict[str, Any]:
        return to_primitive(self)


@dataclass(frozen=True)
class ReconstructionResult:
    trades: list[Trade] = field(default_factory=list)
    warnings: list[ReconstructionWarning] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Risk throttle output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ThrottleState:
    """Complete state of the throttle: no other hidden counters.

    ``progress`` counts wins toward recovery while LOW, and consecutive
    losses toward the drop while HIGH.
    """

    mode: Mode = Mode.HIGH
    progress: int = 0


@dataclass(frozen=True)
class ScenarioRisk:
    """Resulting mode and risk if the next closed trade has a given outcome."""

    mode: Mode
    risk_pct: float
    low_wins_progress: int


@dataclass(frozen=True)
class RiskForecast:
    if_win: ScenarioRisk
    if_loss: ScenarioRisk


@dataclass(frozen=True)
class RiskStateSnapshot:
    """Audit record for one closed trade's effect on the throttle."""

    trade_id: str
    outcome: Outcome
    pnl: float
    mode_before: Mode
    mode_after: Mode
    progress_before: int
    progress_after: int
    equity_before: float
    equity_after: float
    risk_pct_applied: float
    timestamp: datetime | None
    mode_applied: Mode | None = None   # mode the trade was sized with at entry


@dataclass(frozen=True)
class RiskState:
    """Current throttle directive derived from the closed-trade history."""

    mode: Mode
    risk_pct: float
    allowed_risk_dollars: float
    equity: float
    low_wins_progress: int
    low_wins_needed: int
    high_losses_progress: int
    losses_to_drop: int
    forecast: RiskForecast
    last_trade_outcome: Outcome | None = None
    as_of_close_date: str | None = None
    history: tuple[RiskStateSnapshot, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return to_primitive(self)


@dataclass(frozen=True)
class DailyDirective:
    """Start-of-day directive for one market day, and how that day ended."""

    date: str
    mode_before: Mode
    mode_after: Mode
    progress_before: int
    progress_after: int
    equity_before: float
    equity_after: float
    risk_pct: float
    allowed_risk_dollars: float
    day_pnl: float
    trades_entered: int
    trades_closed: int


@dataclass(frozen=True)
class DirectiveResult:
    directives: list[DailyDirective] = field(default_factory=list)
    trades: list[Trade] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Daily aggregation and metrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DailyRow:
    """Equity and drawdown for one market day with at least one closed trade."""

    date: str
    day_pnl: float
    cumulative_pnl: float
    equity: float
    peak_equity: float
    drawdown_pct: float            # <= 0
    trade_count: int
    win_count: int
    loss_count: int
    breakeven_count: int

    def to_dict(self) -> dict[str, Any]:
        return to_primitive(self)


@dataclass(frozen=True)
class Metrics:
    total_trades: int = 0
    wins: int = 0
    losses: int = 0
    breakeven: int = 0
    win_rate: float = 0.0
    total_pnl: float = 0.0
    gross_wins: float = 0.0
    gross_losses: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    profit_factor: float = 0.0
    current_streak: int = 0
    streak_type: str = "NONE"      # "WIN" | "LOSS" | "NONE"
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    max_drawdown_pct: float = 0.0
    ending_equity: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return to_primitive(self)
