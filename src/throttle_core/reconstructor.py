"""
Position Reconstructor: Fill[] -> Trade[] (position sessions).

Single chronological pass over the fills with one open-position
accumulator per symbol. Scale-ins and scale-outs collapse into one trade;
P&L is still computed lot-by-lot (FIFO) internally.

Responsibilities:
    - Order fills by (filled_time, row_index); row order breaks timestamp ties
    - Weighted-average entry, FIFO lot consumption on exits
    - Position flips when an exit fill is larger than the held position
    - Commission proration when one fill both closes and re-opens
    - ACTIVE trades for positions still open, with inferred stop/target
    - Deterministic trade ids
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Sequence

from throttle_core.contracts import (
    Fill,
    Outcome,
    PendingOrder,
    PositionSide,
    ReconstructionResult,
    ReconstructionWarning,
    Side,
    StopSource,
    Trade,
    TradeStatus,
    WarningLevel,
)
from throttle_core.date_keys import market_day_key
from throttle_core.stop_inference import infer_levels
from throttle_core.trade_ids import trade_id

logger = logging.getLogger("throttle.reconstruct")

EPSILON = 1e-3          # quantity treated as flat
BREAKEVEN_BAND = 0.005  # |pnl| within the band is BREAKEVEN


@dataclass
class Lot:
    """Remaining quantity of one accumulation event."""

    quantity: float
    price: float


@dataclass
class OpenPosition:
    """Per-symbol accumulator; lives only during one reconstruction pass."""

    symbol: str
    side: PositionSide
    entry_time: datetime
    lots: list[Lot] = field(default_factory=list)
    quantity: float = 0.0
    entry_qty: float = 0.0
    entry_notional: float = 0.0
    exit_qty: float = 0.0
    exit_notional: float = 0.0
    gross_pnl: float = 0.0
    commission: float = 0.0
    entry_fills: list[Fill] = field(default_factory=list)
    exit_fills: list[Fill] = field(default_factory=list)

    @property
    def legs(self) -> int:
        return len(self.entry_fills) + len(self.exit_fills)

    @property
    def is_flat(self) -> bool:
        return self.quantity <= EPSILON

    @property
    def avg_entry_price(self) -> float:
        """Weighted average over every entry fill, consumed lots included."""
        return self.entry_notional / self.entry_qty if self.entry_qty > 0 else 0.0

    @property
    def open_cost_basis(self) -> float:
        """Cost of the lots still held, at their own entry prices."""
        return sum(lot.quantity * lot.price for lot in self.lots)

    def add(self, fill: Fill, qty: float, commission: float) -> None:
        """Scale in: new lot, re-weighted average entry."""
        self.quantity += qty
        self.lots.append(Lot(quantity=qty, price=fill.price))
        self.entry_qty += qty
        self.entry_notional += fill.price * qty
        self.commission += commission
        self.entry_fills.append(fill)

    def reduce(self, fill: Fill, qty: float, commission: float) -> None:
        """Scale out: consume lots FIFO and book gross P&L for *qty*."""
        direction = 1.0 if self.side == PositionSide.LONG else -1.0
        remaining = qty
        while remaining > 0 and self.lots:
            lot = self.lots[0]
            used = min(remaining, lot.quantity)
            self.gross_pnl += direction * (fill.price - lot.price) * used
            lot.quantity -= used
            remaining -= used
            if lot.quantity <= EPSILON:
                self.lots.pop(0)

        self.quantity = max(0.0, self.quantity - qty)
        self.exit_qty += qty
        self.exit_notional += fill.price * qty
        self.commission += commission
        self.exit_fills.append(fill)


def outcome_for_pnl(pnl: float) -> Outcome:
    """WIN / LOSS outside the breakeven band, BREAKEVEN inside it."""
    if pnl > BREAKEVEN_BAND:
        return Outcome.WIN
    if pnl < -BREAKEVEN_BAND:
        return Outcome.LOSS
    return Outcome.BREAKEVEN


def _side_for(fill_side: Side) -> PositionSide:
    return PositionSide.LONG if fill_side == Side.BUY else PositionSide.SHORT


def _open(fill: Fill, side: PositionSide, qty: float, commission: float) -> OpenPosition:
    pos = OpenPosition(symbol=fill.symbol, side=side, entry_time=fill.filled_time)
    pos.add(fill, qty, commission)
    return pos


def _user_stop(pos: OpenPosition) -> float | None:
    for f in reversed(pos.entry_fills):
        if f.stop_price is not None:
            return f.stop_price
    return None


def _pnl_percent(pnl: float, entry_price: float, qty: float) -> float:
    cost = entry_price * qty
    return pnl / cost * 100 if cost > 0 else 0.0


def _closed_trade(pos: OpenPosition, exit_time: datetime) -> Trade:
    entry_price = pos.avg_entry_price
    exit_price = pos.exit_notional / pos.exit_qty if pos.exit_qty > 0 else 0.0
    qty = pos.exit_qty
    pnl = pos.gross_pnl - pos.commission
    user_stop = _user_stop(pos)

    return Trade(
        id=trade_id(pos.symbol, pos.entry_time, exit_time, qty, entry_price, exit_price, pos.legs),
        symbol=pos.symbol,
        side=pos.side,
        status=TradeStatus.CLOSED,
        entry_time=pos.entry_time,
        entry_day_key=market_day_key(pos.entry_time),
        entry_price=entry_price,
        entry_fills=tuple(pos.entry_fills),
        exit_time=exit_time,
        exit_day_key=market_day_key(exit_time),
        exit_price=exit_price,
        exit_fills=tuple(pos.exit_fills),
        quantity=qty,
        remaining_qty=0.0,
        realized_pnl=pnl,
        commission=pos.commission,
        pnl_percent=_pnl_percent(pnl, entry_price, qty),
        outcome=outcome_for_pnl(pnl),
        legs=pos.legs,
        duration_minutes=round((exit_time - pos.entry_time).total_seconds() / 60),
        stop_price=user_stop,
        stop_source=StopSource.USER if user_stop is not None else StopSource.NONE,
    )


def _active_trade(pos: OpenPosition, pending_orders: Sequence[PendingOrder]) -> Trade:
    entry_price = pos.avg_entry_price
    pnl = pos.gross_pnl - pos.commission
    levels = infer_levels(pos.symbol, pos.side, entry_price, pos.entry_time, pending_orders)
    user_stop = _user_stop(pos)

    if user_stop is not None:
        stop, source = user_stop, StopSource.USER
    elif levels.stop is not None:
        stop, source = levels.stop, StopSource.INFERRED
    else:
        stop, source = None, StopSource.NONE

    return Trade(
        id=trade_id(pos.symbol, pos.entry_time, None, pos.entry_qty, entry_price, None, pos.legs),
        symbol=pos.symbol,
        side=pos.side,
        status=TradeStatus.ACTIVE,
        entry_time=pos.entry_time,
        entry_day_key=market_day_key(pos.entry_time),
        entry_price=entry_price,
        entry_fills=tuple(pos.entry_fills),
        exit_time=None,
        exit_day_key=None,
        exit_price=None,
        exit_fills=tuple(pos.exit_fills),
        quantity=pos.entry_qty,
        remaining_qty=pos.quantity,
        open_cost_basis=pos.open_cost_basis,
        realized_pnl=pnl,
        commission=pos.commission,
        pnl_percent=_pnl_percent(pnl, entry_price, pos.entry_qty),
        outcome=Outcome.ACTIVE,
        legs=pos.legs,
        stop_price=stop,
        inferred_stop=levels.stop,
        pending_exit=levels.target,
        stop_source=source,
    )


def _warn(
    warnings: list[ReconstructionWarning],
    level: WarningLevel,
    message: str,
    fill: Fill | None,
    symbol: str,
    action: str,
) -> None:
    warnings.append(
        ReconstructionWarning(
            level=level,
            message=message,
            symbol=symbol,
            fill_id=fill.id if fill else None,
            action=action,
        )
    )
    log = logger.warning if level == WarningLevel.WARNING else logger.info
    log("%s (%s)", message, action)


def _apply_fill(
    positions: dict[str, OpenPosition],
    fill: Fill,
    trades: list[Trade],
    warnings: list[ReconstructionWarning],
) -> None:
    """Fold one fill into the keyed position store."""
    fill_side = _side_for(fill.side)
    pos = positions.get(fill.symbol)

    if pos is None:
        if fill.side == Side.SELL:
            _warn(
                warnings, WarningLevel.WARNING,
                f"Sell without position ignored: {fill.symbol} qty={fill.quantity:g}",
                fill, fill.symbol,
                "This usually means short-selling or missing earlier history.",
            )
            return
        positions[fill.symbol] = _open(fill, fill_side, fill.quantity, fill.commission)
        return

    if pos.side == fill_side:
        pos.add(fill, fill.quantity, fill.commission)
        return

    # Exit fill (opposite to the held side).
    closing_qty = min(fill.quantity, pos.quantity)
    flip_qty = fill.quantity - closing_qty
    if flip_qty > EPSILON and fill.quantity > 0:
        closing_commission = fill.commission * closing_qty / fill.quantity
    else:
        closing_commission = fill.commission

    pos.reduce(fill, closing_qty, closing_commission)

    if pos.is_flat:
        trade = _closed_trade(pos, fill.filled_time)
        trades.append(trade)
        del positions[fill.symbol]
        logger.debug(
            "Closed %s %s qty=%g pnl=%.2f (%s)",
            trade.side.value, trade.symbol, trade.quantity, trade.realized_pnl, trade.outcome.value,
        )

    if flip_qty > EPSILON:
        _warn(
            warnings, WarningLevel.WARNING,
            f"{fill.side.value} exceeded {pos.side.value} position: {fill.symbol} "
            f"closed {closing_qty:g}, opened {fill_side.value} {flip_qty:g}",
            fill, fill.symbol,
            "Position flipped; check for missing earlier history.",
        )
        positions[fill.symbol] = _open(fill, fill_side, flip_qty, fill.commission - closing_commission)


def reconstruct(
    fills: Iterable[Fill],
    pending_orders: Iterable[PendingOrder] = (),
) -> ReconstructionResult:
    """Rebuild position sessions from fills.

    Parameters
    ----------
    fills:
        Normalized, de-duplicated fills in any order.
    pending_orders:
        Resting orders used to infer stops/targets for still-open positions.

    Returns
    -------
    ReconstructionResult
        Closed trades in closing order, then ACTIVE trades, plus warnings.
        Identical input always yields identical output, ids included.
    """
    ordered = sorted(fills, key=lambda f: (f.filled_time, f.row_index))
    pending = list(pending_orders)
    positions: dict[str, OpenPosition] = {}
    trades: list[Trade] = []
    warnings: list[ReconstructionWarning] = []

    for fill in ordered:
        _apply_fill(positions, fill, trades, warnings)

    for symbol, pos in positions.items():
        trades.append(_active_trade(pos, pending))
        _warn(
            warnings, WarningLevel.INFO,
            f"Open position not closed in history: {symbol} qty={pos.quantity:g}",
            None, symbol,
            "Not counted in results until it is closed.",
        )

    logger.debug("Reconstructed %d trades from %d fills", len(trades), len(ordered))
    return ReconstructionResult(trades=trades, warnings=warnings)
