"""
Risk Engine ("Restart Throttle"): closed-trade outcomes + config -> RiskState.

Two modes. HIGH uses the full risk allocation; a loss drops to LOW.
LOW uses a tiny allocation until enough wins in a row recover HIGH.

Responsibilities:
    - Transition function over (mode, progress, outcome)
    - Per-trade fold producing the current directive and an audit trail
    - Daily-lock directives: every trade entered on a market day is sized
      with that day's start-of-day directive
    - Win/loss forecast from the current state without mutating it

A trade's outcome only affects directives after it; the risk applied to a
trade is always the one in force before its own outcome.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Sequence

from throttle_core.contracts import (
    DailyDirective,
    DirectiveResult,
    Mode,
    Outcome,
    PositionSide,
    RiskForecast,
    RiskState,
    RiskStateSnapshot,
    ScenarioRisk,
    ThrottleState,
    Trade,
    TradeStatus,
)
from throttle_core.date_keys import market_day_key, next_business_day
from throttle_core.reconstructor import outcome_for_pnl

if TYPE_CHECKING:
    from config.strategy_config import StrategyConfig

logger = logging.getLogger("throttle.risk")


def risk_pct_for(mode: Mode, cfg: StrategyConfig) -> float:
    return cfg.high_mode_risk_pct if mode == Mode.HIGH else cfg.low_mode_risk_pct


def apply_outcome(state: ThrottleState, outcome: Outcome, cfg: StrategyConfig) -> ThrottleState:
    """Transition the throttle by one closed-trade outcome.

    BREAKEVEN (and ACTIVE) never change mode or progress.
    """
    if outcome not in (Outcome.WIN, Outcome.LOSS):
        return state

    if state.mode == Mode.HIGH:
        if outcome == Outcome.WIN:
            return ThrottleState(Mode.HIGH, 0)
        losses = state.progress + 1
        if losses >= cfg.losses_needed:
            return ThrottleState(Mode.LOW, 0)
        return ThrottleState(Mode.HIGH, losses)

    if outcome == Outcome.LOSS:
        return ThrottleState(Mode.LOW, 0)

    wins = state.progress + 1
    if wins >= cfg.wins_needed:
        return ThrottleState(Mode.HIGH, 0)
    return ThrottleState(Mode.LOW, wins)


def _low_wins(state: ThrottleState) -> int:
    return state.progress if state.mode == Mode.LOW else 0


def _scenario(state: ThrottleState, outcome: Outcome, cfg: StrategyConfig) -> ScenarioRisk:
    nxt = apply_outcome(state, outcome, cfg)
    return ScenarioRisk(mode=nxt.mode, risk_pct=risk_pct_for(nxt.mode, cfg), low_wins_progress=_low_wins(nxt))


def forecast(state: ThrottleState, cfg: StrategyConfig) -> RiskForecast:
    """What the next directive would be after one more WIN or one more LOSS."""
    return RiskForecast(
        if_win=_scenario(state, Outcome.WIN, cfg),
        if_loss=_scenario(state, Outcome.LOSS, cfg),
    )


def _chronological_key(t: Trade) -> tuple[datetime, datetime, str]:
    exit_time = t.exit_time if t.exit_time is not None else t.entry_time
    return (t.entry_time, exit_time, t.id)


def closed_in_order(trades: Sequence[Trade]) -> list[Trade]:
    """Closed trades sorted by entry time (exit time, then id, break ties)."""
    return sorted((t for t in trades if t.status == TradeStatus.CLOSED), key=_chronological_key)


def _sizing_at_entry(t: Trade, ordered: Sequence[Trade], cfg: StrategyConfig) -> tuple[Mode, float]:
    """Mode and risk pct in force when *t* was entered.

    Uses the daily-lock annotation when present; otherwise folds only the
    outcomes of trades that had already closed at *t*'s entry.
    """
    if t.mode_at_entry is not None and t.risk_pct_at_entry is not None:
        return t.mode_at_entry, t.risk_pct_at_entry
    state = ThrottleState()
    for prior in ordered:
        if prior.exit_time is not None and prior.exit_time <= t.entry_time:
            state = apply_outcome(state, prior.outcome, cfg)
    return state.mode, risk_pct_for(state.mode, cfg)


def compute_risk_state(
    trades: Sequence[Trade],
    starting_equity: float,
    cfg: StrategyConfig,
) -> RiskState:
    """Fold closed trades into the current directive.

    Parameters
    ----------
    trades:
        Any trades; ACTIVE ones are ignored.
    starting_equity:
        Account equity before the first trade.
    cfg:
        Throttle parameters.

    Returns
    -------
    RiskState
        Current mode, risk, progress, forecast and one audit snapshot per
        closed trade. No trades -> HIGH at ``cfg.high_mode_risk_pct``.
    """
    state = ThrottleState()
    equity = starting_equity
    history: list[RiskStateSnapshot] = []
    last_outcome: Outcome | None = None
    as_of: str | None = None

    ordered = closed_in_order(trades)
    for t in ordered:
        applied_mode, applied_pct = _sizing_at_entry(t, ordered, cfg)
        nxt = apply_outcome(state, t.outcome, cfg)
        equity_after = equity + t.realized_pnl
        history.append(
            RiskStateSnapshot(
                trade_id=t.id,
                outcome=t.outcome,
                pnl=t.realized_pnl,
                mode_before=state.mode,
                mode_after=nxt.mode,
                progress_before=state.progress,
                progress_after=nxt.progress,
                equity_before=equity,
                equity_after=equity_after,
                risk_pct_applied=applied_pct,
                timestamp=t.exit_time,
                mode_applied=applied_mode,
            )
        )
        if nxt.mode != state.mode:
            logger.debug("Mode %s -> %s after %s on %s", state.mode.value, nxt.mode.value, t.outcome.value, t.id)
        state, equity = nxt, equity_after
        last_outcome = t.outcome
        if t.exit_day_key and (as_of is None or t.exit_day_key > as_of):
            as_of = t.exit_day_key

    pct = risk_pct_for(state.mode, cfg)
    return RiskState(
        mode=state.mode,
        risk_pct=pct,
        allowed_risk_dollars=equity * pct,
        equity=equity,
        low_wins_progress=_low_wins(state),
        low_wins_needed=cfg.wins_needed,
        high_losses_progress=state.progress if state.mode == Mode.HIGH else 0,
        losses_to_drop=cfg.losses_needed,
        forecast=forecast(state, cfg),
        last_trade_outcome=last_outcome,
        as_of_close_date=as_of,
        history=tuple(history),
    )


def apply_daily_directives(
    trades: Sequence[Trade],
    starting_equity: float,
    cfg: StrategyConfig,
    through_day: str | None = None,
) -> DirectiveResult:
    """Daily-lock variant: one directive per market day.

    Trades entered on a day are annotated with that day's start-of-day
    mode, risk percentage and equity. Outcomes of trades closed on the day
    are applied after it, so they only affect the following days.
    When *through_day* is given, days after it are dropped and a directive
    for *through_day* itself is always produced.
    """
    entered: dict[str, list[int]] = defaultdict(list)
    closed: dict[str, list[Trade]] = defaultdict(list)
    for idx, t in enumerate(trades):
        entered[t.entry_day_key].append(idx)
        if t.status == TradeStatus.CLOSED and t.exit_day_key:
            closed[t.exit_day_key].append(t)

    days = set(entered) | set(closed)
    if through_day is not None:
        days = {d for d in days if d <= through_day} | {through_day}

    annotated = list(trades)
    directives: list[DailyDirective] = []
    state = ThrottleState()
    equity = starting_equity

    for day in sorted(days):
        pct = risk_pct_for(state.mode, cfg)
        allowed = equity * pct
        for idx in entered.get(day, []):
            annotated[idx] = replace(
                trades[idx],
                mode_at_entry=state.mode,
                risk_pct_at_entry=pct,
                equity_at_entry=equity,
                risk_dollars_at_entry=allowed,
            )

        day_closed = sorted(closed.get(day, []), key=_chronological_key)
        after = state
        for t in day_closed:
            after = apply_outcome(after, t.outcome, cfg)
        day_pnl = sum(t.realized_pnl for t in day_closed)

        directives.append(
            DailyDirective(
                date=day,
                mode_before=state.mode,
                mode_after=after.mode,
                progress_before=state.progress,
                progress_after=after.progress,
                equity_before=equity,
                equity_after=equity + day_pnl,
                risk_pct=pct,
                allowed_risk_dollars=allowed,
                day_pnl=day_pnl,
                trades_entered=len(entered.get(day, [])),
                trades_closed=len(day_closed),
            )
        )
        state, equity = after, equity + day_pnl

    return DirectiveResult(directives=directives, trades=annotated)


def project_mode_if_closed(
    trades: Sequence[Trade],
    trade_id: str,
    last_price: float,
    closed_at: datetime,
    starting_equity: float,
    cfg: StrategyConfig,
) -> Mode | None:
    """Next-day mode if the ACTIVE trade *trade_id* were closed at *last_price*.

    Returns None when no ACTIVE trade has that id.
    """
    target = next((t for t in trades if t.id == trade_id and t.status == TradeStatus.ACTIVE), None)
    if target is None:
        return None

    direction = 1.0 if target.side == PositionSide.LONG else -1.0
    pnl = target.realized_pnl + direction * (last_price * target.remaining_qty - target.open_cost_basis)
    day = market_day_key(closed_at)
    preview = replace(
        target,
        status=TradeStatus.CLOSED,
        exit_time=closed_at,
        exit_day_key=day,
        exit_price=last_price,
        remaining_qty=0.0,
        open_cost_basis=0.0,
        realized_pnl=pnl,
        outcome=outcome_for_pnl(pnl),
    )
    previewed = [preview if t.id == trade_id else t for t in trades]
    result = apply_daily_directives(previewed, starting_equity, cfg, through_day=next_business_day(day))
    return result.directives[-1].mode_before
