"""
Daily aggregation: closed trades -> equity / drawdown series.

Trades are grouped by the Eastern market day of their exit. Only days with
at least one closed trade appear; quiet days are not synthesized.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Sequence

from throttle_core.contracts import DailyRow, Outcome, Trade, TradeStatus


def aggregate_daily(trades: Sequence[Trade], starting_equity: float) -> list[DailyRow]:
    """Running equity, peak and drawdown per market day.

    drawdown_pct = (equity - peak) / peak, never positive, and exactly 0 on
    the first day and on every new equity peak.
    """
    by_day: dict[str, list[Trade]] = defaultdict(list)
    for t in trades:
        if t.status == TradeStatus.CLOSED and t.exit_day_key:
            by_day[t.exit_day_key].append(t)

    rows: list[DailyRow] = []
    equity = starting_equity
    peak: float | None = None

    for day in sorted(by_day):
        day_trades = by_day[day]
        day_pnl = sum(t.realized_pnl for t in day_trades)
        equity += day_pnl
        peak = equity if peak is None else max(peak, equity)
        drawdown = (equity - peak) / peak if peak > 0 else 0.0

        rows.append(
            DailyRow(
                date=day,
                day_pnl=day_pnl,
                cumulative_pnl=equity - starting_equity,
                equity=equity,
                peak_equity=peak,
                drawdown_pct=min(0.0, drawdown),
                trade_count=len(day_trades),
                win_count=sum(1 for t in day_trades if t.outcome == Outcome.WIN),
                loss_count=sum(1 for t in day_trades if t.outcome == Outcome.LOSS),
                breakeven_count=sum(1 for t in day_trades if t.outcome == Outcome.BREAKEVEN),
            )
        )

    return rows
