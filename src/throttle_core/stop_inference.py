"""
Infer a protective stop and a pending exit target for an open position
from resting orders on the opposite side.

LONG:  loss side is at or below entry, profit side is above entry.
SHORT: loss side is at or above entry, profit side is below entry.
The nearest price to entry wins on each side; later placement breaks ties.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from throttle_core.contracts import OrderStatus, PendingOrder, PositionSide, Side

_INACTIVE = {OrderStatus.CANCELLED, OrderStatus.FILLED}


@dataclass(frozen=True)
class InferredLevels:
    stop: float | None = None
    target: float | None = None


def _exit_side(side: PositionSide) -> Side:
    return Side.SELL if side == PositionSide.LONG else Side.BUY


def infer_levels(
    symbol: str,
    side: PositionSide,
    entry_price: float,
    entry_time: datetime,
    pending_orders: Iterable[PendingOrder],
) -> InferredLevels:
    """Pick the nearest loss-side and profit-side resting prices."""
    exit_side = _exit_side(side)
    stop: tuple[float, datetime, float] | None = None
    target: tuple[float, datetime, float] | None = None

    for order in pending_orders:
        if order.symbol != symbol or order.side != exit_side:
            continue
        if order.status in _INACTIVE:
            continue
        if order.placed_time < entry_time:
            continue
        price = order.resting_price()
        if price is None or price <= 0:
            continue

        distance = abs(price - entry_price)
        if side == PositionSide.LONG:
            loss_side = price <= entry_price
        else:
            loss_side = price >= entry_price

        candidate = (distance, order.placed_time, price)
        if loss_side:
            if stop is None or _closer(candidate, stop):
                stop = candidate
        elif target is None or _closer(candidate, target):
            target = candidate

    return InferredLevels(
        stop=stop[2] if stop else None,
        target=target[2] if target else None,
    )


def _closer(candidate: tuple[float, datetime, float], best: tuple[float, datetime, float]) -> bool:
    if candidate[0] != best[0]:
        return candidate[0] < best[0]
    return candidate[1] > best[1]
