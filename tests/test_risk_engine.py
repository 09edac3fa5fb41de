"""Tests for the restart throttle: closed-trade outcomes -> RiskState and daily directives."""

from datetime import datetime, timedelta, timezone

import pytest

from config.strategy_config import StrategyConfig
from throttle_core.contracts import (
    Fill,
    Mode,
    Outcome,
    PositionSide,
    Side,
    ThrottleState,
    Trade,
    TradeStatus,
)
from throttle_core.date_keys import market_day_key
from throttle_core.reconstructor import outcome_for_pnl, reconstruct
from throttle_core.risk_engine import (
    apply_daily_directives,
    apply_outcome,
    compute_risk_state,
    forecast,
    project_mode_if_closed,
)


def _ts(day: int, hour: int = 15, minute: int = 0) -> datetime:
    return datetime(2024, 3, day, hour, minute, tzinfo=timezone.utc)


def _closed(pnl: float, entry: datetime, exit_: datetime | None = None, tid: str = "") -> Trade:
    exit_ = exit_ or entry + timedelta(minutes=30)
    return Trade(
        id=tid or f"t-{entry.isoformat()}",
        symbol="AAPL",
        side=PositionSide.LONG,
        status=TradeStatus.CLOSED,
        entry_time=entry,
        entry_day_key=market_day_key(entry),
        entry_price=10.0,
        entry_fills=(),
        exit_time=exit_,
        exit_day_key=market_day_key(exit_),
        exit_price=10.0 + pnl / 10,
        exit_fills=(),
        quantity=10,
        remaining_qty=0.0,
        realized_pnl=pnl,
        commission=0.0,
        pnl_percent=pnl,
        outcome=outcome_for_pnl(pnl),
        legs=2,
    )


def _sequence(*pnls: float) -> list[Trade]:
    """One trade per minute on 2024-03-04, in the given order."""
    return [_closed(p, _ts(4, 15, i)) for i, p in enumerate(pnls)]


class TestTransitions:
    @pytest.mark.parametrize(
        "state, outcome, expected",
        [
            (ThrottleState(Mode.HIGH, 0), Outcome.WIN, ThrottleState(Mode.HIGH, 0)),
            (ThrottleState(Mode.HIGH, 0), Outcome.LOSS, ThrottleState(Mode.LOW, 0)),
            (ThrottleState(Mode.LOW, 0), Outcome.WIN, ThrottleState(Mode.LOW, 1)),
            (ThrottleState(Mode.LOW, 1), Outcome.WIN, ThrottleState(Mode.HIGH, 0)),
            (ThrottleState(Mode.LOW, 1), Outcome.LOSS, ThrottleState(Mode.LOW, 0)),
            (ThrottleState(Mode.LOW, 1), Outcome.BREAKEVEN, ThrottleState(Mode.LOW, 1)),
            (ThrottleState(Mode.HIGH, 0), Outcome.BREAKEVEN, ThrottleState(Mode.HIGH, 0)),
            (ThrottleState(Mode.LOW, 1), Outcome.ACTIVE, ThrottleState(Mode.LOW, 1)),
        ],
    )
    def test_transition_table(self, cfg: StrategyConfig, state, outcome, expected) -> None:
        assert apply_outcome(state, outcome, cfg) == expected

    def test_recovery_needs_exactly_wins_to_recover(self) -> None:
        cfg = StrategyConfig(0.03, 0.001, wins_to_recover=3)
        state = ThrottleState(Mode.LOW, 0)
        for _ in range(2):
            state = apply_outcome(state, Outcome.WIN, cfg)
            assert state.mode == Mode.LOW
        state = apply_outcome(state, Outcome.WIN, cfg)
        assert state == ThrottleState(Mode.HIGH, 0)

    def test_consecutive_losses_to_drop(self, slow_drop_cfg: StrategyConfig) -> None:
        state = apply_outcome(ThrottleState(), Outcome.LOSS, slow_drop_cfg)
        assert state == ThrottleState(Mode.HIGH, 1)
        state = apply_outcome(state, Outcome.WIN, slow_drop_cfg)
        assert state == ThrottleState(Mode.HIGH, 0)
        state = apply_outcome(state, Outcome.LOSS, slow_drop_cfg)
        state = apply_outcome(state, Outcome.LOSS, slow_drop_cfg)
        assert state == ThrottleState(Mode.LOW, 0)


class TestComputeRiskState:
    def test_no_trades_is_high(self, cfg: StrategyConfig) -> None:
        risk = compute_risk_state([], 10_000, cfg)
        assert risk.mode == Mode.HIGH
        assert risk.risk_pct == pytest.approx(0.03)
        assert risk.low_wins_progress == 0
        assert risk.allowed_risk_dollars == pytest.approx(300.0)
        assert risk.as_of_close_date is None
        assert risk.history == ()

    def test_one_loss_drops_to_low(self, cfg: StrategyConfig) -> None:
        risk = compute_risk_state(_sequence(-100), 10_000, cfg)
        assert risk.mode == Mode.LOW
        assert risk.risk_pct == pytest.approx(0.001)
        assert risk.equity == pytest.approx(9_900)
        assert risk.allowed_risk_dollars == pytest.approx(9.9)
        assert risk.last_trade_outcome == Outcome.LOSS
        assert risk.as_of_close_date == "2024-03-04"

    def test_breakeven_is_ignored_in_recovery(self, cfg: StrategyConfig) -> None:
        trades = _sequence(-10, 10, 0, -10, 10, 10)
        risk = compute_risk_state(trades, 10_000, cfg)
        assert risk.mode == Mode.HIGH
        assert risk.low_wins_progress == 0

    def test_partial_recovery_progress(self, cfg: StrategyConfig) -> None:
        risk = compute_risk_state(_sequence(-10, 10), 10_000, cfg)
        assert risk.mode == Mode.LOW
        assert risk.low_wins_progress == 1
        assert risk.low_wins_needed == 2

    def test_active_trades_are_ignored(self, cfg: StrategyConfig) -> None:
        rebuilt = reconstruct([Fill("b", "AAPL", Side.BUY, 10, 10.0, _ts(4))])
        risk = compute_risk_state(rebuilt.trades, 10_000, cfg)
        assert risk.mode == Mode.HIGH
        assert risk.history == ()

    def test_fold_uses_entry_order(self, cfg: StrategyConfig) -> None:
        # Entered first, closed last: its LOSS is applied before the WIN.
        long_hold = _closed(-50, _ts(4), _ts(6))
        quick = _closed(50, _ts(5), _ts(5, 16))
        risk = compute_risk_state([quick, long_hold], 10_000, cfg)
        assert risk.mode == Mode.LOW
        assert risk.low_wins_progress == 1
        assert risk.as_of_close_date == "2024-03-06"

    def test_history_audit_trail(self, cfg: StrategyConfig) -> None:
        trades = [_closed(-100, _ts(4)), _closed(40, _ts(5))]
        risk = compute_risk_state(trades, 10_000, cfg)
        first, second = risk.history
        assert first.mode_before == Mode.HIGH
        assert first.mode_after == Mode.LOW
        assert first.risk_pct_applied == pytest.approx(0.03)
        assert first.equity_after == pytest.approx(9_900)
        assert second.mode_applied == Mode.LOW
        assert second.risk_pct_applied == pytest.approx(0.001)
        assert second.progress_after == 1
        assert second.equity_before == pytest.approx(first.equity_after)

    def test_applied_risk_ignores_outcomes_still_open_at_entry(self, cfg: StrategyConfig) -> None:
        long_hold = _closed(-50, _ts(4), _ts(6))
        quick = _closed(50, _ts(5), _ts(5, 16))
        risk = compute_risk_state([quick, long_hold], 10_000, cfg)
        by_id = {s.trade_id: s for s in risk.history}
        # The fold applies the LOSS first, but it was unknown when `quick` was entered.
        assert by_id[quick.id].mode_before == Mode.LOW
        assert by_id[quick.id].mode_applied == Mode.HIGH
        assert by_id[quick.id].risk_pct_applied == pytest.approx(0.03)

    def test_applied_risk_prefers_entry_annotation(self, cfg: StrategyConfig) -> None:
        trades = apply_daily_directives([_closed(-100, _ts(4)), _closed(40, _ts(5))], 10_000, cfg).trades
        risk = compute_risk_state(trades, 10_000, cfg)
        for snap, t in zip(risk.history, trades):
            assert snap.risk_pct_applied == t.risk_pct_at_entry
            assert snap.mode_applied == t.mode_at_entry

    def test_high_losses_progress_reported(self, slow_drop_cfg: StrategyConfig) -> None:
        risk = compute_risk_state(_sequence(-10), 10_000, slow_drop_cfg)
        assert risk.mode == Mode.HIGH
        assert risk.high_losses_progress == 1
        assert risk.losses_to_drop == 2


class TestForecast:
    def test_forecast_from_high(self, cfg: StrategyConfig) -> None:
        f = forecast(ThrottleState(), cfg)
        assert f.if_win.mode == Mode.HIGH
        assert f.if_loss.mode == Mode.LOW
        assert f.if_loss.risk_pct == pytest.approx(0.001)

    def test_forecast_one_win_from_recovery(self, cfg: StrategyConfig) -> None:
        f = forecast(ThrottleState(Mode.LOW, 1), cfg)
        assert f.if_win.mode == Mode.HIGH
        assert f.if_win.risk_pct == pytest.approx(0.03)
        assert f.if_loss.mode == Mode.LOW
        assert f.if_loss.low_wins_progress == 0

    def test_forecast_matches_actual_next_state(self, cfg: StrategyConfig) -> None:
        trades = _sequence(-10, 10)
        risk = compute_risk_state(trades, 10_000, cfg)
        after_win = compute_risk_state(trades + [_closed(10, _ts(4, 16))], 10_000, cfg)
        after_loss = compute_risk_state(trades + [_closed(-10, _ts(4, 16))], 10_000, cfg)
        assert risk.forecast.if_win.mode == after_win.mode
        assert risk.forecast.if_loss.mode == after_loss.mode
        assert risk.forecast.if_loss.low_wins_progress == after_loss.low_wins_progress

    def test_forecast_does_not_mutate_state(self, cfg: StrategyConfig) -> None:
        state = ThrottleState(Mode.LOW, 1)
        forecast(state, cfg)
        assert state == ThrottleState(Mode.LOW, 1)


class TestDailyDirectives:
    def test_same_day_trades_use_start_of_day_risk(self, cfg: StrategyConfig) -> None:
        loser = _closed(-100, _ts(4, 15), _ts(4, 15, 30))
        same_day = _closed(20, _ts(4, 16), _ts(4, 17))
        next_day = _closed(20, _ts(5, 15))
        result = apply_daily_directives([loser, same_day, next_day], 10_000, cfg)

        by_id = {t.id: t for t in result.trades}
        assert by_id[loser.id].mode_at_entry == Mode.HIGH
        assert by_id[same_day.id].mode_at_entry == Mode.HIGH
        assert by_id[same_day.id].risk_pct_at_entry == pytest.approx(0.03)
        assert by_id[same_day.id].risk_dollars_at_entry == pytest.approx(300.0)
        assert by_id[next_day.id].mode_at_entry == Mode.LOW
        assert by_id[next_day.id].equity_at_entry == pytest.approx(9_920)

    def test_equity_continuity(self, cfg: StrategyConfig) -> None:
        trades = [_closed(-100, _ts(4)), _closed(30, _ts(5)), _closed(-5, _ts(6))]
        directives = apply_daily_directives(trades, 10_000, cfg).directives
        assert [d.date for d in directives] == ["2024-03-04", "2024-03-05", "2024-03-06"]
        for d in directives:
            assert d.equity_after == pytest.approx(d.equity_before + d.day_pnl)
        for prev, nxt in zip(directives, directives[1:]):
            assert nxt.equity_before == pytest.approx(prev.equity_after)
            assert nxt.mode_before == prev.mode_after

    def test_through_day_adds_empty_day(self, cfg: StrategyConfig) -> None:
        directives = apply_daily_directives([_closed(-100, _ts(4))], 10_000, cfg, through_day="2024-03-05").directives
        assert directives[-1].date == "2024-03-05"
        assert directives[-1].mode_before == Mode.LOW
        assert directives[-1].trades_closed == 0

    def test_input_trades_are_not_mutated(self, cfg: StrategyConfig) -> None:
        t = _closed(10, _ts(4))
        apply_daily_directives([t], 10_000, cfg)
        assert t.mode_at_entry is None


class TestProjectModeIfClosed:
    def _active(self) -> list[Trade]:
        return reconstruct([Fill("b", "AAPL", Side.BUY, 10, 10.0, _ts(4))]).trades

    def test_losing_close_projects_low(self, cfg: StrategyConfig) -> None:
        trades = self._active()
        mode = project_mode_if_closed(trades, trades[0].id, 9.0, _ts(6, 19), 10_000, cfg)
        assert mode == Mode.LOW

    def test_winning_close_stays_high(self, cfg: StrategyConfig) -> None:
        trades = self._active()
        mode = project_mode_if_closed(trades, trades[0].id, 11.0, _ts(6, 19), 10_000, cfg)
        assert mode == Mode.HIGH

    def test_scaled_in_partial_exit_uses_open_lot_cost(self, cfg: StrategyConfig) -> None:
        # Average entry is 15, but the lot still held was bought at 20.
        fills = [
            Fill("b1", "AAPL", Side.BUY, 10, 10.0, _ts(4, 15)),
            Fill("b2", "AAPL", Side.BUY, 10, 20.0, _ts(4, 16)),
            Fill("s1", "AAPL", Side.SELL, 10, 20.0, _ts(4, 17)),
        ]
        trades = reconstruct(fills).trades
        active = trades[0]
        assert active.entry_price == pytest.approx(15.0)
        assert active.open_cost_basis == pytest.approx(200.0)

        actual = reconstruct(fills + [Fill("s2", "AAPL", Side.SELL, 10, 9.0, _ts(6, 19))]).trades[0]
        assert actual.outcome == Outcome.LOSS
        mode = project_mode_if_closed(trades, active.id, 9.0, _ts(6, 19), 10_000, cfg)
        assert mode == Mode.LOW

    def test_short_preview_uses_open_lot_cost(self, cfg: StrategyConfig) -> None:
        trades = reconstruct([
            Fill("s1", "AAPL", Side.BUY, 5, 10.0, _ts(4, 15)),
            Fill("s2", "AAPL", Side.SELL, 10, 10.0, _ts(4, 16)),
        ]).trades
        short = [t for t in trades if t.status == TradeStatus.ACTIVE][0]
        assert short.side == PositionSide.SHORT
        assert project_mode_if_closed(trades, short.id, 9.0, _ts(6, 19), 10_000, cfg) == Mode.HIGH
        assert project_mode_if_closed(trades, short.id, 11.0, _ts(6, 19), 10_000, cfg) == Mode.LOW

    def test_unknown_trade_is_none(self, cfg: StrategyConfig) -> None:
        assert project_mode_if_closed(self._active(), "trade_missing", 11.0, _ts(6, 19), 10_000, cfg) is None

    def test_closed_trade_is_not_projected(self, cfg: StrategyConfig) -> None:
        t = _closed(10, _ts(4))
        assert project_mode_if_closed([t], t.id, 11.0, _ts(6, 19), 10_000, cfg) is None
