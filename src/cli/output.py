"""
Human-readable throttle output for the terminal.

The system must explain itself: every CLI command uses these formatters.
Journal receives the same data as JSON.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from throttle_core.explain import explain_mode

if TYPE_CHECKING:
    from config.strategy_config import StrategyConfig
    from throttle_core.contracts import DailyRow, Metrics, ReconstructionWarning, RiskState, Trade


def _money(value: float) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def _pct(value: float, decimals: int = 2) -> str:
    return f"{value * 100:.{decimals}f}%"


def _price(value: float | None) -> str:
    return "--" if value is None else f"{value:.2f}"


def format_trade(trade: Trade) -> str:
    """One trade on one or two lines: side, size, prices, P&L, entry risk."""
    when = trade.entry_time.isoformat()
    if trade.is_closed:
        line = (
            f"  {trade.symbol:6s} {trade.side.value:5s} {trade.quantity:g} "
            f"| {_price(trade.entry_price)} -> {_price(trade.exit_price)} "
            f"| PnL {_money(trade.realized_pnl)} {trade.outcome.value:9s} | {when}"
        )
    else:
        line = (
            f"  {trade.symbol:6s} {trade.side.value:5s} {trade.remaining_qty:g}/{trade.quantity:g} "
            f"| entry {_price(trade.entry_price)} | stop {_price(trade.stop_price)} ({trade.stop_source.value}) "
            f"| target {_price(trade.pending_exit)} | ACTIVE    | {when}"
        )
    if trade.mode_at_entry is not None and trade.risk_pct_at_entry is not None:
        line += f"\n         risk at entry: {trade.mode_at_entry.value} {_pct(trade.risk_pct_at_entry)}"
        if trade.risk_dollars_at_entry is not None:
            line += f" ({_money(trade.risk_dollars_at_entry)})"
    return line


def format_trades(trades: Sequence[Trade]) -> str:
    closed = [t for t in trades if t.is_closed]
    active = [t for t in trades if not t.is_closed]
    lines = [f"=== Trades: {len(closed)} closed, {len(active)} active ==="]
    for t in closed:
        lines.append(format_trade(t))
    if active:
        lines.append("--- Active ---")
        for t in active:
            lines.append(format_trade(t))
    if not trades:
        lines.append("  (none)")
    return "\n".join(lines)


def format_warnings(warnings: Sequence[ReconstructionWarning]) -> str:
    if not warnings:
        return "Warnings: none"
    lines = [f"Warnings ({len(warnings)}):"]
    for w in warnings:
        lines.append(f"  [{w.level.value}] {w.message}")
        if w.action:
            lines.append(f"           {w.action}")
    return "\n".join(lines)


def format_risk_state(risk: RiskState, cfg: StrategyConfig) -> str:
    """Current directive, forecast and the plain-language explanation."""
    explanation = explain_mode(risk, cfg)
    lines = [
        f"=== {explanation.title}: {explanation.subtitle} ===",
        f"Mode          : {risk.mode.value}",
        f"Risk          : {_pct(risk.risk_pct)} of {_money(risk.equity)} = {_money(risk.allowed_risk_dollars)}",
        f"LOW progress  : {risk.low_wins_progress}/{risk.low_wins_needed}",
        f"As of close   : {risk.as_of_close_date or 'no closed trades'}",
        f"If next WIN   : {risk.forecast.if_win.mode.value} {_pct(risk.forecast.if_win.risk_pct)}",
        f"If next LOSS  : {risk.forecast.if_loss.mode.value} {_pct(risk.forecast.if_loss.risk_pct)}",
        "",
    ]
    lines.extend(f"  - {b}" for b in explanation.bullets)
    lines.append("")
    lines.append(explanation.footer)
    return "\n".join(lines)


def format_daily(rows: Sequence[DailyRow]) -> str:
    if not rows:
        return "No closed trades yet."
    lines = [
        f"{'Date':10s}  {'Day P&L':>12s}  {'Equity':>14s}  {'Peak':>14s}  {'DD':>8s}  W/L/BE",
    ]
    for r in rows:
        lines.append(
            f"{r.date:10s}  {_money(r.day_pnl):>12s}  {_money(r.equity):>14s}  "
            f"{_money(r.peak_equity):>14s}  {_pct(r.drawdown_pct):>8s}  "
            f"{r.win_count}/{r.loss_count}/{r.breakeven_count}"
        )
    return "\n".join(lines)


def format_metrics(m: Metrics) -> str:
    pf = "n/a" if m.total_trades == 0 else f"{m.profit_factor:.2f}"
    lines = [
        "=== Metrics ===",
        f"Trades        : {m.total_trades} (W:{m.wins} / L:{m.losses} / BE:{m.breakeven})",
        f"Win rate      : {_pct(m.win_rate, 1)}",
        f"Total P&L     : {_money(m.total_pnl)}",
        f"Avg win/loss  : {_money(m.avg_win)} / {_money(m.avg_loss)}",
        f"Profit factor : {pf}",
        f"Streak        : {m.current_streak} {m.streak_type} (max W {m.max_consecutive_wins}, max L {m.max_consecutive_losses})",
        f"Max drawdown  : {_pct(m.max_drawdown_pct)}",
    ]
    if m.ending_equity is not None:
        lines.append(f"Ending equity : {_money(m.ending_equity)}")
    return "\n".join(lines)
