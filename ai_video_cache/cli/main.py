"""
CLI interface for AI Video Cache.

Operator commands for cache maintenance and cost reporting.
"""

import sys
from datetime import datetime, timedelta
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from ai_video_cache.config.loader import ServiceConfig, default_config, load_config
from ai_video_cache.core.analytics import CacheAnalytics
from ai_video_cache.core.budget import BudgetLevel
from ai_video_cache.core.cache import CacheStore
from ai_video_cache.core.ledger import UsageLedger
from ai_video_cache.core.pricing import format_cost
from ai_video_cache.logging_config import configure_logging
from ai_video_cache.storage.db import DEFAULT_DB_PATH
from ai_video_cache.storage.models import ArtifactKind
from ai_video_cache.storage.repository import (
    CacheRepository,
    UsageRepository,
    initialize_schema,
)

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

_LEVEL_STYLES = {
    BudgetLevel.LOW: "green",
    BudgetLevel.MEDIUM: "yellow",
    BudgetLevel.HIGH: "bold yellow",
    BudgetLevel.EXCEEDED: "bold red",
}


class _State:
    config: ServiceConfig = default_config()
    db_path: str = DEFAULT_DB_PATH


state = _State()


def get_cache() -> CacheStore:
    return CacheStore(CacheRepository(state.db_path))


def get_ledger() -> UsageLedger:
    return UsageLedger(UsageRepository(state.db_path))


def get_analytics() -> CacheAnalytics:
    return CacheAnalytics(get_cache(), get_ledger())


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        envvar="AI_VIDEO_CACHE_CONFIG",
        help="Path to YAML configuration file"
    ),
    db: Optional[str] = typer.Option(
        None,
        "--db",
        envvar="AI_VIDEO_CACHE_DB",
        help="Path to the SQLite database (overrides database.path from the config)"
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (defaults to $AI_VIDEO_CACHE_LOG_LEVEL or WARNING)"
    )
):
    """AI Video Cache CLI."""
    configure_logging(log_level)
    try:
        state.config = load_config(config) if config else default_config()
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading config:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    state.db_path = db or state.config.database_path
    if ctx.invoked_subcommand is None:
        console.print("AI Video Cache - Use --help to see available commands")


@app.command()
def init():
    """Initialize the cache and usage database."""
    try:
        initialize_schema(state.db_path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def stats(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Only count usage of this user"),
    days: int = typer.Option(30, "--days", "-d", min=1, help="Usage window in days")
):
    """Show cache statistics and recent usage."""
    dashboard = get_analytics().dashboard(user_id=user, days=days)

    console.print("\n[bold]AI Cache[/bold]")
    console.print("-" * 40)
    console.print(f"Entries: {dashboard.cache.total_entries:,}")
    console.print(f"Approximate size: {dashboard.footprint.approx_megabytes:,.2f} MB")
    console.print(f"Hit rate: {dashboard.cache.hit_rate * 100:.1f}%")
    console.print(f"Estimated savings: {format_cost(dashboard.cache.estimated_savings, 2)}")

    if dashboard.cache.by_kind:
        table = Table("Type", "Entries")
        for kind, count in sorted(dashboard.cache.by_kind.items()):
            table.add_row(kind, f"{count:,}")
        console.print(table)

    usage = dashboard.usage
    console.print(f"\n[bold]Usage (last {days} days)[/bold]")
    console.print("-" * 40)
    console.print(f"Requests: {usage.total_requests:,}")
    console.print(f"Total cost: {format_cost(usage.total_cost)}")
    console.print(f"Cache hit rate: {usage.cache_hit_rate * 100:.1f}%")
    console.print(f"Savings from cache: {format_cost(usage.estimated_savings)}")

    if usage.by_model:
        table = Table("Model", "Requests", "Cost")
        for row in usage.by_model:
            table.add_row(row.key, f"{row.requests:,}", format_cost(row.cost))
        console.print(table)


@app.command("clear-expired")
def clear_expired():
    """Delete expired cache entries."""
    count = get_cache().clear_expired()
    console.print(f"[green]✓[/] Cleared {count} expired cache entries")


@app.command("clear-kind")
def clear_kind(
    kind: str = typer.Argument(..., help="Artifact kind, e.g. transcription or embeddings")
):
    """Delete all cache entries of one artifact kind."""
    known = [k.value for k in ArtifactKind]
    if kind not in known:
        console.print(f"[red]Unknown kind:[/] {kind} (expected one of: {', '.join(known)})")
        sys.exit(EXIT_CODE_FAIL)
    count = get_cache().clear_by_kind(kind)
    console.print(f"[green]✓[/] Cleared {count} cache entries of type {kind}")


@app.command("clear-all")
def clear_all(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt")
):
    """Delete every cache entry."""
    if not yes and not typer.confirm("Delete all cache entries?"):
        console.print("Aborted")
        sys.exit(EXIT_CODE_FAIL)
    count = get_cache().clear_all()
    console.print(f"[green]✓[/] Cleared {count} cache entries")


@app.command()
def recent(
    kind: Optional[str] = typer.Option(None, "--kind", "-k", help="Filter by usage kind"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Filter by model"),
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Number of records to show")
):
    """Show the latest usage records, newest first."""
    records = get_ledger().recent_records(kind=kind, model_id=model, limit=limit)
    if not records:
        console.print("\n[bold yellow]No usage recorded yet[/]")
        return

    table = Table("Time", "Kind", "Model", "Video", "Cached", "Cost")
    for record in records:
        table.add_row(
            record.timestamp.strftime("%m-%d %H:%M"),
            record.kind,
            record.model_id,
            record.video_id or "-",
            "yes" if record.cached else "no",
            format_cost(record.estimated_cost)
        )
    console.print(table)


@app.command("cost-by-video")
def cost_by_video(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Only count usage of this user")
):
    """Show AI cost per video, most expensive first."""
    rows = get_ledger().cost_by_video(user_id=user)
    if not rows:
        console.print("\n[bold yellow]No usage attributed to videos yet[/]")
        return

    table = Table("Video", "Requests", "Cost")
    for row in rows:
        table.add_row(row.video_id, f"{row.requests:,}", format_cost(row.total_cost))
    console.print(table)


@app.command()
def daily(
    days: int = typer.Option(30, "--days", "-d", min=1, help="Number of days to show"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Only count usage of this user")
):
    """Show cost and requests per day."""
    end = datetime.now()
    rows = get_ledger().daily_series(end - timedelta(days=days), end, user_id=user)
    if not rows:
        console.print("\n[bold yellow]No usage in this period[/]")
        return

    table = Table("Date", "Requests", "Cached", "Cost")
    for row in rows:
        table.add_row(row.date, f"{row.requests:,}", f"{row.cached_count:,}", format_cost(row.cost))
    console.print(table)


@app.command()
def budget(
    monthly_budget: Optional[float] = typer.Argument(
        None, help="Monthly budget in USD (defaults to budget.monthly from the config)"
    ),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Only count usage of this user"),
    enforced: bool = typer.Option(
        False,
        "--enforced",
        "-e",
        help="Exit with error code if the budget is exceeded"
    )
):
    """Check this month's spend against a budget."""
    try:
        if monthly_budget is None:
            monthly_budget = state.config.budget.monthly
        status = get_ledger().budget_status(monthly_budget, user_id=user)
    except ValueError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    style = _LEVEL_STYLES[status.level]
    console.print("\n[bold]Monthly Budget[/bold]")
    console.print("-" * 40)
    console.print(f"Spend: {format_cost(status.spend, 2)} of {format_cost(status.budget, 2)}")
    console.print(f"Used: {status.percent_used:,.1f}%")
    console.print(f"Alert level: [{style}]{status.level.value.upper()}[/]")

    if enforced and status.level == BudgetLevel.EXCEEDED:
        sys.exit(EXIT_CODE_FAIL)


if __name__ == "__main__":
    app()
