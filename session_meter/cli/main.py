"""
CLI interface for Session Meter.

Shows the active five-hour session against the selected plan's quota.
"""

import json
import logging
import sys
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from session_meter.config.loader import (
    DEFAULT_SETTINGS_PATH,
    PLAN_LIMITS,
    MonitorSettings,
    clamp_refresh_interval,
    load_settings,
    parse_plan,
)
from session_meter.core.guardrails import QuotaLevel, assess_quota
from session_meter.core.metrics import Metrics, compute
from session_meter.core.trace import logging_sink
from session_meter.storage.repository import get_repository

app = typer.Typer()
console = Console()
logger = logging.getLogger(__name__)

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

_LEVEL_STYLES = {
    QuotaLevel.OK: "green",
    QuotaLevel.WARNING: "yellow",
    QuotaLevel.CRITICAL: "red",
}


class SessionMeterError(Exception):
    """Raised when settings or the data directory cannot be resolved."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Session Meter CLI."""
    if ctx.invoked_subcommand is None:
        console.print("Session Meter - Use --help to see available commands")


@app.command()
def plans():
    """List the quota presets for each plan."""
    table = Table(title="Plan quotas")
    table.add_column("Plan")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Messages", justify="right")
    for plan, quota in PLAN_LIMITS.items():
        table.add_row(
            plan.value,
            f"{quota.token_limit:,}",
            format_cost(quota.cost_limit),
            f"{quota.message_limit:,}",
        )
    console.print(table)


@app.command()
def status(
    plan: Optional[str] = typer.Option(None, "--plan", "-p", help="Plan: pro, max5, max20 or custom"),
    custom_token_limit: Optional[int] = typer.Option(
        None, "--custom-token-limit", "-t", help="Token limit for the custom plan"
    ),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Projects log directory"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Settings YAML file"),
    as_json: bool = typer.Option(False, "--json", help="Print metrics as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log each computation step"),
):
    """Show the active session against the plan quota."""
    _configure_logging(verbose)
    try:
        settings = _resolve_settings(config, plan, custom_token_limit, data_dir)
        _show_status(settings, as_json, verbose)
    except SessionMeterError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def watch(
    plan: Optional[str] = typer.Option(None, "--plan", "-p", help="Plan: pro, max5, max20 or custom"),
    custom_token_limit: Optional[int] = typer.Option(
        None, "--custom-token-limit", "-t", help="Token limit for the custom plan"
    ),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Projects log directory"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Settings YAML file"),
    interval: Optional[int] = typer.Option(None, "--interval", "-i", help="Refresh interval in seconds (1-60)"),
    count: int = typer.Option(0, "--count", "-n", help="Stop after this many refreshes (0 = until interrupted)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log each computation step"),
):
    """Refresh the session status on a fixed cadence."""
    _configure_logging(verbose)
    try:
        settings = _resolve_settings(config, plan, custom_token_limit, data_dir)
    except SessionMeterError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)

    seconds = clamp_refresh_interval(interval) if interval is not None else settings.refresh_interval
    refreshes = 0
    try:
        while True:
            console.clear()
            try:
                _show_status(settings, as_json=False, verbose=verbose)
            except SessionMeterError as e:
                console.print(f"[red]Error:[/] {escape(str(e))}")
            refreshes += 1
            if count and refreshes >= count:
                break
            time.sleep(seconds)
    except KeyboardInterrupt:
        pass
    sys.exit(EXIT_CODE_PASS)


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _resolve_settings(
    config: Optional[Path],
    plan: Optional[str],
    custom_token_limit: Optional[int],
    data_dir: Optional[Path],
) -> MonitorSettings:
    """Load settings from file, then apply command-line overrides."""
    try:
        if config is not None:
            settings = load_settings(str(config))
        elif DEFAULT_SETTINGS_PATH.exists():
            settings = load_settings(str(DEFAULT_SETTINGS_PATH))
        else:
            settings = MonitorSettings()

        overrides = {}
        if plan is not None:
            overrides["plan"] = parse_plan(plan)
        if custom_token_limit is not None:
            overrides["custom_token_limit"] = custom_token_limit
        if data_dir is not None:
            overrides["data_dir"] = data_dir
        if overrides:
            settings = replace(settings, **overrides)
    except (ValueError, FileNotFoundError, yaml.YAMLError) as e:
        raise SessionMeterError(str(e)) from e
    return settings


def _show_status(settings: MonitorSettings, as_json: bool, verbose: bool) -> None:
    repository = get_repository(settings.data_dir)
    if repository is None:
        raise SessionMeterError("Claude data directory not found")

    quota = settings.quota
    events = repository.get_events()
    trace = logging_sink(logger) if verbose else None
    result = compute(events, quota, _now(), trace=trace)

    if as_json:
        payload = result.to_dict() if result else {"active": False}
        if result:
            payload["active"] = result.is_active
        typer.echo(json.dumps(payload, indent=2))
        return

    if not result:
        console.print("[dim]No active session[/]")
        return

    _display_metrics(result, settings)


def format_time_remaining(remaining: timedelta) -> str:
    """Format a duration as HH:MM:SS."""
    total_seconds = max(0, int(remaining.total_seconds()))
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_token_count(tokens: int) -> str:
    """Compact token count, e.g. 19000 -> 19k."""
    if tokens >= 1_000_000:
        return f"{tokens / 1_000_000:.1f}M"
    elif tokens >= 1_000:
        return f"{tokens / 1_000:.0f}k"
    return str(tokens)


def format_cost(amount: float) -> str:
    """Format currency with two decimals."""
    return f"${amount:,.2f}"


def _display_metrics(metrics: Metrics, settings: MonitorSettings) -> None:
    """Display the session snapshot as a table."""
    quota = settings.quota
    assessment = assess_quota(metrics, quota)
    style = _LEVEL_STYLES[assessment.level]
    remaining = format_time_remaining(metrics.time_remaining) if metrics.is_active else "00:00:00"

    console.print(f"\n[bold]Session Meter[/bold] ({settings.plan.value})")
    console.print(
        f"Window: {metrics.start:%H:%M} - {metrics.end:%H:%M} UTC | "
        f"Reset in [{style}]{remaining}[/]"
    )

    table = Table()
    table.add_column("Usage")
    table.add_column("Used", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("%", justify="right")
    table.add_row(
        "Tokens",
        f"{metrics.total_tokens:,}",
        format_token_count(quota.token_limit),
        f"[{assessment.token_band.value}]{assessment.token_percent:.1f}%[/]",
    )
    table.add_row(
        "Cost",
        format_cost(metrics.total_cost),
        format_cost(quota.cost_limit),
        f"[{assessment.cost_band.value}]{assessment.cost_percent:.1f}%[/]",
    )
    table.add_row(
        "Messages",
        f"{metrics.message_count:,}",
        f"{quota.message_limit:,}",
        f"[{assessment.message_band.value}]{assessment.message_percent:.1f}%[/]",
    )
    console.print(table)

    console.print(
        f"Cache (not counted toward limit): "
        f"{metrics.cache_creation_tokens:,} created, {metrics.cache_read_tokens:,} read"
    )
    console.print(
        f"Burn rate: {metrics.token_burn_rate:,.0f} tokens/min | "
        f"{format_cost(metrics.cost_burn_rate)}/min | "
        f"{metrics.message_burn_rate:.1f} messages/min"
    )

    breakdown = metrics.model_breakdown
    console.print(
        f"Models: opus {breakdown.opus:,} | sonnet {breakdown.sonnet:,} | haiku {breakdown.haiku:,}"
    )
    for project, tokens in metrics.projects_by_usage():
        console.print(f"  {escape(project)}: {tokens:,} tokens")


if __name__ == "__main__":
    app()
