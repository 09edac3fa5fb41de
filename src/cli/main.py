"""
CLI entry point: throttle rebuild | risk | daily | metrics | preview | health.

Every command loads config from --config (default config.yaml),
recomputes everything from the fill history, and prints a
human-readable report.
"""

import logging
import sys
from datetime import datetime, timezone

import click
from dotenv import load_dotenv

from config import AppConfig, load_config

load_dotenv()

logger = logging.getLogger("throttle")


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


def _load_strategy(cfg: AppConfig):
    from config import load_strategy_config

    return load_strategy_config(
        config_path=cfg.strategy.config_path or None,
        variant=cfg.strategy.variant or None,
    )


def _recompute(ctx: click.Context, cfg: AppConfig | None = None):
    """Load config (unless given), strategy, fills and pending orders, then run the pipeline."""
    from data import load_fills, load_pending_orders
    from throttle_core.pipeline import run_pipeline

    if cfg is None:
        cfg = load_config(ctx.obj["config_path"])
    strategy = _load_strategy(cfg)
    fills = load_fills(cfg.data.fills_path)
    pending = load_pending_orders(cfg.data.pending_orders_path) if cfg.data.pending_orders_path else []
    result = run_pipeline(fills, cfg.account.starting_equity, strategy, pending)
    return cfg, strategy, fills, pending, result


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config file.")
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """throttle: rebuild trades from fills and derive the restart-throttle risk directive."""
    _setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------- throttle rebuild ----------


@cli.command()
@click.option("--journal/--no-journal", "write_journal", default=True, help="Append trades, directives and risk state to the journal.")
@click.pass_context
def rebuild(ctx: click.Context, write_journal: bool) -> None:
    """Rebuild trades from the fill history and show the current risk directive."""
    from cli.output import format_risk_state, format_trades, format_warnings
    from cli.structured_log import StructuredEventLogger
    from journal import JournalWriter

    events = StructuredEventLogger()
    try:
        cfg = load_config(ctx.obj["config_path"])
        events = StructuredEventLogger(
            enabled=cfg.alerting.structured_logs,
            webhook_url=cfg.alerting.webhook_url,
        )
        cfg, strategy, fills, pending, result = _recompute(ctx, cfg)
    except Exception as exc:
        events.error("rebuild failed", str(exc))
        raise click.ClickException(str(exc)) from exc

    events.rebuild_start(len(fills), len(pending), strategy.id)
    for w in result.warnings:
        events.import_warning(w.level.value, w.message, w.symbol)

    risk = result.risk
    history = risk.history
    if history and history[-1].mode_before != history[-1].mode_after:
        events.mode_change(history[-1].mode_before, risk.mode, risk.risk_pct)
    events.risk_state(
        risk.mode,
        risk.risk_pct,
        risk.allowed_risk_dollars,
        risk.equity,
        risk.low_wins_progress,
    )

    if write_journal:
        journal = JournalWriter(cfg.journal.path, echo_stdout=cfg.journal.echo_stdout)
        for t in result.trades:
            journal.trade(t)
        for w in result.warnings:
            journal.warning(w)
        for d in result.directives:
            journal.directive(d)
        journal.risk_state(risk, strategy=strategy.id)

    events.rebuild_complete(len(result.trades), len(result.closed_trades), len(result.warnings))

    click.echo(format_trades(result.trades))
    click.echo("")
    click.echo(format_warnings(result.warnings))
    click.echo("")
    click.echo(format_risk_state(risk, strategy))


# ---------- throttle risk ----------


@cli.command()
@click.pass_context
def risk(ctx: click.Context) -> None:
    """Show the current mode, allowed risk, forecast and explanation."""
    from cli.output import format_risk_state

    _, strategy, _, _, result = _recompute(ctx)
    click.echo(format_risk_state(result.risk, strategy))


# ---------- throttle daily ----------


@cli.command()
@click.pass_context
def daily(ctx: click.Context) -> None:
    """Show the daily equity and drawdown table."""
    from cli.output import format_daily

    _, _, _, _, result = _recompute(ctx)
    click.echo(format_daily(result.daily))


# ---------- throttle metrics ----------


@cli.command()
@click.pass_context
def metrics(ctx: click.Context) -> None:
    """Show performance metrics over closed trades."""
    from cli.output import format_metrics

    _, _, _, _, result = _recompute(ctx)
    click.echo(format_metrics(result.metrics))


# ---------- throttle preview ----------


@cli.command()
@click.argument("trade_id")
@click.option("--price", "last_price", required=True, type=float, help="Hypothetical exit price.")
@click.pass_context
def preview(ctx: click.Context, trade_id: str, last_price: float) -> None:
    """Preview the next-day mode if an ACTIVE trade were closed now at --price."""
    from throttle_core.risk_engine import project_mode_if_closed

    cfg, strategy, _, _, result = _recompute(ctx)
    mode = project_mode_if_closed(
        result.trades,
        trade_id,
        last_price,
        datetime.now(timezone.utc),
        cfg.account.starting_equity,
        strategy,
    )
    if mode is None:
        raise click.ClickException(f"No active trade with id {trade_id}")
    click.echo(f"If {trade_id} closes at {last_price:.2f}: next day mode {mode.value} (now {result.risk.mode.value})")


# ---------- throttle health ----------


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check system health: config, strategy config, fills file.

    Exit code 0 = healthy, 1 = unhealthy.
    """
    checks: list[tuple[str, bool, str]] = []

    try:
        cfg = load_config(ctx.obj["config_path"])
        checks.append(("config", True, f"loaded (starting equity {cfg.account.starting_equity:,.2f})"))
    except Exception as e:
        checks.append(("config", False, str(e)))
        _print_health(checks)
        raise SystemExit(1)

    try:
        strategy = _load_strategy(cfg)
        checks.append(("strategy", True, f"validated ({strategy.id})"))
    except Exception as e:
        checks.append(("strategy", False, str(e)))

    try:
        from data import load_fills
        fills = load_fills(cfg.data.fills_path)
        if fills:
            checks.append(("fills", True, f"{len(fills)} fills in {cfg.data.fills_path}"))
        else:
            checks.append(("fills", False, f"no fills in {cfg.data.fills_path}"))
    except Exception as e:
        checks.append(("fills", False, str(e)))

    if cfg.data.pending_orders_path:
        try:
            from data import load_pending_orders
            pending = load_pending_orders(cfg.data.pending_orders_path)
            checks.append(("pending_orders", True, f"{len(pending)} pending orders"))
        except Exception as e:
            checks.append(("pending_orders", False, str(e)))

    _print_health(checks)
    healthy = all(ok for _, ok, _ in checks)
    raise SystemExit(0 if healthy else 1)


def _print_health(checks: list[tuple[str, bool, str]]) -> None:
    for name, ok, detail in checks:
        status = "OK" if ok else "FAIL"
        click.echo(f"  [{status}] {name}: {detail}")
    healthy = all(ok for _, ok, _ in checks)
    click.echo(f"\nHealth: {'HEALTHY' if healthy else 'UNHEALTHY'}")


if __name__ == "__main__":
    cli()
