"""Performance metrics: a pure reduction over closed trades."""

from __future__ import annotations

from typing import Sequence

from throttle_core.contracts import DailyRow, Metrics, Outcome, Trade
from throttle_core.risk_engine import closed_in_order

# Reported instead of infinity when there are wins but no losses.
PROFIT_FACTOR_CAP = 999.0


def compute_metrics(trades: Sequence[Trade], daily: Sequence[DailyRow] = ()) -> Metrics:
    """Win rate, P&L, profit factor and streaks over CLOSED trades.

    Streaks come from one chronological scan; BREAKEVEN trades neither extend
    nor break a streak, but a trailing BREAKEVEN leaves no current streak.
    """
    closed = closed_in_order(trades)
    wins = [t for t in closed if t.outcome == Outcome.WIN]
    losses = [t for t in closed if t.outcome == Outcome.LOSS]
    breakeven = len(closed) - len(wins) - len(losses)

    gross_wins = sum(t.realized_pnl for t in wins)
    gross_losses = abs(sum(t.realized_pnl for t in losses))

    if gross_losses > 0:
        profit_factor = gross_wins / gross_losses
    elif gross_wins > 0:
        profit_factor = PROFIT_FACTOR_CAP
    else:
        profit_factor = 0.0

    win_run = loss_run = 0
    max_wins = max_losses = 0
    for t in closed:
        if t.outcome == Outcome.WIN:
            win_run += 1
            loss_run = 0
            max_wins = max(max_wins, win_run)
        elif t.outcome == Outcome.LOSS:
            loss_run += 1
            win_run = 0
            max_losses = max(max_losses, loss_run)

    streak_type, current = "NONE", 0
    if closed:
        last = closed[-1].outcome
        if last == Outcome.WIN:
            streak_type, current = "WIN", win_run
        elif last == Outcome.LOSS:
            streak_type, current = "LOSS", loss_run

    return Metrics(
        total_trades=len(closed),
        wins=len(wins),
        losses=len(losses),
        breakeven=breakeven,
        win_rate=len(wins) / len(closed) if closed else 0.0,
        total_pnl=sum(t.realized_pnl for t in closed),
        gross_wins=gross_wins,
        gross_losses=gross_losses,
        avg_win=gross_wins / len(wins) if wins else 0.0,
        avg_loss=gross_losses / len(losses) if losses else 0.0,
        profit_factor=profit_factor,
        current_streak=current,
        streak_type=streak_type,
        max_consecutive_wins=max_wins,
        max_consecutive_losses=max_losses,
        max_drawdown_pct=min((d.drawdown_pct for d in daily), default=0.0),
        ending_equity=daily[-1].equity if daily else None,
    )
