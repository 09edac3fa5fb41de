"""Plain-language explanation of the current throttle mode."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from throttle_core.contracts import Mode, RiskState

if TYPE_CHECKING:
    from config.strategy_config import StrategyConfig

_FOOTER = (
    "Risk is locked per market day: every trade entered today uses today's mode. "
    "Outcomes closed today set the mode for the next market day."
)


@dataclass(frozen=True)
class ModeExplanation:
    title: str
    subtitle: str
    bullets: list[str] = field(default_factory=list)
    footer: str = _FOOTER


def explain_mode(risk: RiskState, cfg: StrategyConfig) -> ModeExplanation:
    allowed = f"${risk.allowed_risk_dollars:,.2f}"
    equity = f"${risk.equity:,.2f}"
    equity_line = f"Equity used: {equity} (starting equity + realized P&L as of last closed trade)."

    if risk.mode == Mode.HIGH:
        if cfg.losses_needed == 1:
            loss_line = "One losing trade drops you to LOW."
        else:
            loss_line = f"{cfg.losses_needed} consecutive losing trades drop you to LOW."
        if risk.as_of_close_date is None:
            reason = "No completed trades yet; the strategy defaults to HIGH."
        else:
            reason = "Mode is HIGH based on your most recent closed trade(s)."
        return ModeExplanation(
            title="HIGH mode",
            subtitle="Use your full risk allocation.",
            bullets=[
                f"Risk today: {cfg.high_mode_risk_pct * 100:.2f}% of equity ({allowed}).",
                loss_line,
                "Wins in HIGH do not change the mode.",
                equity_line,
                reason,
            ],
        )

    remaining = max(0, risk.low_wins_needed - risk.low_wins_progress)
    return ModeExplanation(
        title="LOW mode",
        subtitle="Rebuild confidence with tiny risk.",
        bullets=[
            f"Risk today: {cfg.low_mode_risk_pct * 100:.2f}% of equity ({allowed}).",
            f"Progress: {risk.low_wins_progress}/{risk.low_wins_needed} winning trades needed to return to HIGH.",
            "A losing trade resets the win progress back to 0.",
            "Breakeven trades are ignored.",
            f"Wins remaining to return to HIGH: {remaining}.",
            equity_line,
        ],
    )
