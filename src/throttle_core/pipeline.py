"""
Pipeline orchestrator: chains Reconstruct -> Directives -> Risk -> Daily -> Metrics.

Single entry point for recomputing everything from a fill history.
Callers re-run the whole pipeline on any input change; nothing is cached.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from throttle_core.contracts import (
    DailyDirective,
    DailyRow,
    Fill,
    Metrics,
    PendingOrder,
    ReconstructionWarning,
    RiskState,
    Trade,
)
from throttle_core.daily_aggregator import aggregate_daily
from throttle_core.metrics import compute_metrics
from throttle_core.reconstructor import reconstruct
from throttle_core.risk_engine import apply_daily_directives, compute_risk_state

if TYPE_CHECKING:
    from config.strategy_config import StrategyConfig

logger = logging.getLogger("throttle.pipeline")


@dataclass(frozen=True)
class PipelineResult:
    """Complete output of one recompute.

    Every stage's output is preserved for display and journaling.
    """

    trades: list[Trade] = field(default_factory=list)
    warnings: list[ReconstructionWarning] = field(default_factory=list)
    directives: list[DailyDirective] = field(default_factory=list)
    risk: RiskState | None = None
    daily: list[DailyRow] = field(default_factory=list)
    metrics: Metrics = field(default_factory=Metrics)

    @property
    def closed_trades(self) -> list[Trade]:
        return [t for t in self.trades if t.is_closed]

    @property
    def active_trades(self) -> list[Trade]:
        return [t for t in self.trades if not t.is_closed]


def run_pipeline(
    fills: Iterable[Fill],
    starting_equity: float,
    strategy: StrategyConfig,
    pending_orders: Iterable[PendingOrder] = (),
) -> PipelineResult:
    """Recompute trades, directives, risk state, daily rows and metrics.

    Stages:
        1. Reconstructor:  fills + pending orders -> trades, warnings
        2. Directives:     trades -> daily directives, trades annotated with entry risk
        3. Risk Engine:    closed trades -> current RiskState + forecast
        4. Daily:          closed trades -> equity / drawdown rows
        5. Metrics:        closed trades + daily rows -> Metrics
    """
    rebuilt = reconstruct(fills, pending_orders)
    directive_result = apply_daily_directives(rebuilt.trades, starting_equity, strategy)
    trades = directive_result.trades
    risk = compute_risk_state(trades, starting_equity, strategy)
    daily = aggregate_daily(trades, starting_equity)
    metrics = compute_metrics(trades, daily)

    logger.info(
        "Pipeline: %d trades (%d warnings), mode=%s risk=%.4f",
        len(trades), len(rebuilt.warnings), risk.mode.value, risk.risk_pct,
    )

    return PipelineResult(
        trades=trades,
        warnings=rebuilt.warnings,
        directives=directive_result.directives,
        risk=risk,
        daily=daily,
        metrics=metrics,
    )
