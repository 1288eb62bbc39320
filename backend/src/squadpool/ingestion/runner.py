"""CLI entry point for ingestion, scoring and admin operations.

Usage:
    python -m squadpool.ingestion.runner ingest-scheduled
    python -m squadpool.ingestion.runner ingest-fixture --max-matches 4 --cutoff 2022-11-22T00:00:00Z
    python -m squadpool.ingestion.runner transfer --uid u1 --drop ARG --pickup BRA
"""

import json
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from squadpool.auth import Caller
from squadpool.config import get_settings
from squadpool.errors import PoolError

app = typer.Typer(help="Squadpool results ingestion and scoring CLI")
console = Console()


def _setup_logging(level: Optional[str]) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or get_settings().log_level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _admin(uid: str) -> Caller:
    return Caller(uid=uid, is_admin=True)


def _fail(err: PoolError) -> None:
    console.print(f"[red]✗ {err.code}: {err.message}[/red]")
    raise typer.Exit(1)


def _print_counts(title: str, rows: list[tuple[str, object]]) -> None:
    table = Table(title=title)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for label, value in rows:
        table.add_row(label, str(value))
    console.print(table)


@app.command("ingest-scheduled")
def ingest_scheduled(
    loop: bool = typer.Option(False, "--loop", help="Keep ticking every SCHEDULER_INTERVAL_MINUTES"),
    max_ticks: int = typer.Option(0, "--max-ticks", help="Stop after this many ticks when looping (0 = forever)"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Run scheduled ingest ticks using the stored live-ops settings."""
    _setup_logging(log_level)
    from squadpool.ingestion.liveops import ScheduledIngest, get_live_ops_config

    config = get_live_ops_config()
    console.print(f"[bold]Provider:[/bold] {config.provider} ({'enabled' if config.enabled else 'disabled'})")
    scheduler = ScheduledIngest()
    if loop:
        interval_s = get_settings().scheduler_interval_minutes * 60
        console.print(f"[bold]Looping[/bold] every {interval_s}s")
        ticks = scheduler.run(interval_s, max_ticks)
        console.print(f"[dim]Stopped after {ticks} ticks; see health for outcomes.[/dim]")
        return

    result = scheduler.tick()
    if result is None:
        console.print("[dim]Nothing ingested (automation disabled or run failed; see health).[/dim]")
        return

    color = "green" if result.leaderboard_recomputed or result.matches_updated == 0 else "yellow"
    console.print(
        f"  [{color}]✓ seen={result.matches_seen} "
        f"updated={result.matches_updated} "
        f"reverts_skipped={result.reverts_skipped} "
        f"recomputed={result.leaderboard_recomputed}[/{color}]"
    )


@app.command("ingest-fixture")
def ingest_fixture(
    max_matches: int = typer.Option(0, "--max-matches", help="Cap on matches (0 = all)"),
    cutoff: Optional[str] = typer.Option(None, "--cutoff", help="Only matches kicking off at or before this ISO time"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report the selection without writing"),
    admin_uid: str = typer.Option("admin", "--as", help="Admin uid recorded as initiator"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Replay the bundled World Cup 2022 fixture into the match catalog."""
    _setup_logging(log_level)
    from squadpool.ingestion.liveops import admin_ingest_fixture

    try:
        stats = admin_ingest_fixture(_admin(admin_uid), max_matches, cutoff, dry_run)
    except PoolError as e:
        _fail(e)
        return

    if dry_run:
        console.print(f"[cyan]Dry run:[/cyan] {stats['matches_selected']} match(es) selected")
        return
    _print_counts("Fixture Ingest", [
        ("Matches seen", stats["matches_seen"]),
        ("Matches updated", stats["matches_updated"]),
        ("Leaderboard recomputed", stats["leaderboard_recomputed"]),
    ])


@app.command("reset-fixture")
def reset_fixture(
    max_matches: int = typer.Option(0, "--max-matches", help="Cap on matches (0 = all)"),
    cutoff: Optional[str] = typer.Option(None, "--cutoff", help="Only matches kicking off at or before this ISO time"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report what would be deleted and ingested"),
    admin_uid: str = typer.Option("admin", "--as", help="Admin uid recorded as initiator"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Delete all fixture-sourced matches, then ingest the fixture again."""
    _setup_logging(log_level)
    from squadpool.ingestion.liveops import admin_reset_fixture_ingest

    try:
        stats = admin_reset_fixture_ingest(_admin(admin_uid), max_matches, cutoff, dry_run)
    except PoolError as e:
        _fail(e)
        return

    if dry_run:
        _print_counts("Reset Preview", [
            ("Existing fixture matches", stats["existing_fixture_matches"]),
            ("Will delete", stats["will_delete"]),
            ("Will ingest", stats["will_ingest"]),
        ])
        return
    _print_counts("Fixture Reset", [
        ("Deleted", stats["deleted_count"]),
        ("Matches seen", stats["matches_seen"]),
        ("Matches updated", stats["matches_updated"]),
        ("Leaderboard recomputed", stats["leaderboard_recomputed"]),
    ])


@app.command()
def recompute(
    include_live: bool = typer.Option(True, "--include-live/--finished-only", help="Count LIVE matches"),
    scoring_version: Optional[str] = typer.Option(None, "--scoring-version", help="Version tag for the snapshot"),
    admin_uid: str = typer.Option("admin", "--as", help="Admin uid recorded as initiator"),
    top: int = typer.Option(10, "--top", help="Leaderboard rows to print"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Recompute team stats, participant totals and the leaderboard."""
    _setup_logging(log_level)
    from squadpool import db
    from squadpool.ingestion.liveops import admin_recompute
    from squadpool.models import layout
    from squadpool.models.leaderboard import LEADERBOARD_DOC_ID

    try:
        result = admin_recompute(_admin(admin_uid), include_live, scoring_version)
    except PoolError as e:
        _fail(e)
        return

    console.print(
        f"[green]✓ participants={result.participants_processed} "
        f"matches={result.matches_scanned} "
        f"transfers={result.transfer_events_scanned}[/green]"
    )
    snapshot = db.get_store().get(layout.LEADERBOARD, LEADERBOARD_DOC_ID) or {}
    table = Table(title="Leaderboard")
    table.add_column("Rank", justify="right")
    table.add_column("Participant")
    table.add_column("Score", justify="right")
    for row in snapshot.get("rows", [])[:top]:
        table.add_row(str(row["rank"]), row["displayName"], f"{row['totalScore']:g}")
    console.print(table)


@app.command()
def transfer(
    uid: str = typer.Option(..., "--uid", help="Participant uid"),
    drop: str = typer.Option(..., "--drop", help="Drawn team key to drop"),
    pickup: str = typer.Option(..., "--pickup", help="Team key to pick up"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Execute a transfer on behalf of a participant."""
    _setup_logging(log_level)
    from squadpool.transfers.engine import execute_transfer

    try:
        result = execute_transfer(Caller(uid=uid), drop, pickup)
    except PoolError as e:
        _fail(e)
        return

    console.print(f"[green]✓ {drop} → {pickup}[/green] (event {result.transfer_event_id})")
    console.print(f"  Squad: {result.featured_team_key} (featured), {', '.join(result.drawn_team_keys)}")
    console.print(f"  Remaining transfers: {result.remaining_transfers}")
    console.print(f"  Penalty: {result.transfer_penalty_points:g} ({result.scoring_penalty_version})")
    if not result.leaderboard_recomputed:
        console.print("[yellow]⚠ Leaderboard recompute failed; run `recompute` to refresh.[/yellow]")


@app.command("live-ops")
def live_ops(
    enabled: bool = typer.Option(False, "--enabled/--disabled", help="Turn scheduled ingest on or off"),
    provider: str = typer.Option("fixture", "--provider", help="stub | fixture | provider"),
    fixture_max_matches: int = typer.Option(0, "--fixture-max-matches", help="Cap per fixture run (0 = all)"),
    fixture_cutoff: Optional[str] = typer.Option(None, "--fixture-cutoff", help="Fixture cutoff ISO time"),
    admin_uid: str = typer.Option("admin", "--as", help="Admin uid recorded as updater"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Update live-ops automation settings."""
    _setup_logging(log_level)
    from squadpool.ingestion.liveops import set_live_ops_settings

    try:
        config = set_live_ops_settings(_admin(admin_uid), enabled, provider, fixture_max_matches, fixture_cutoff)
    except PoolError as e:
        _fail(e)
        return
    console.print_json(json.dumps(config.to_doc()))


@app.command("transfer-window")
def transfer_window(
    enabled: bool = typer.Option(False, "--open/--closed", help="Enable or disable transfers"),
    starts_at: Optional[str] = typer.Option(None, "--starts-at", help="Window start ISO time"),
    ends_at: Optional[str] = typer.Option(None, "--ends-at", help="Window end ISO time"),
    admin_uid: str = typer.Option("admin", "--as", help="Admin uid recorded as updater"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Configure the transfer window."""
    _setup_logging(log_level)
    from squadpool.transfers.window import is_transfer_window_open, set_transfer_window

    try:
        window = set_transfer_window(_admin(admin_uid), enabled, starts_at, ends_at)
    except PoolError as e:
        _fail(e)
        return
    state = "[green]open[/green]" if is_transfer_window_open(window.to_doc()) else "[yellow]closed[/yellow]"
    console.print(f"Transfer window is now {state}")
    console.print_json(json.dumps(window.to_doc()))


@app.command()
def health(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    """Show live-ops health, recent runs and the derived alert level."""
    _setup_logging(log_level)
    from squadpool.ingestion.health import build_ingest_alert, get_health
    from squadpool.ingestion.liveops import get_live_ops_config

    config = get_live_ops_config()
    h = get_health()
    alert = build_ingest_alert(config, h)
    color = {"healthy": "green", "warning": "yellow", "critical": "red"}[alert.level]
    console.print(f"[bold]Alert:[/bold] [{color}]{alert.level}[/{color}] {alert.message}")
    console.print(f"[bold]Failures:[/bold] {h.consecutive_failures}  [bold]Last success:[/bold] {h.last_success_at or '-'}")

    table = Table(title="Recent Runs")
    table.add_column("At")
    table.add_column("Provider")
    table.add_column("Status")
    table.add_column("Matches", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Error")
    for run in h.recent_runs:
        table.add_row(run.at, run.provider, run.status, str(run.matches), str(run.updated), run.error_message or "")
    console.print(table)


if __name__ == "__main__":
    app()
