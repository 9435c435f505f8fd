"""Bajas CLI - administration and operations.

Commands:
- init: Create database tables
- seed-reasons: Load the initial reason catalogue
- decide: Run the eligibility decision for one client
- import-sales / import-clients: Bulk import workbooks
- sync-routes: Reconcile route planning from the planning sheet
- migrate-routes: One-time seeding of route planning
- sync-status: Route planning totals and recent sync runs
- stats: Clients, sales ledger and today's requests
- reasons: Reason catalogue administration
- clients: Client registry administration
"""

from __future__ import annotations

import asyncio
from datetime import date
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from bajas.config import get_config
from bajas.core.logging import configure_logging
from bajas.db.clients import client_stats, prune_sales_before, sales_range, set_client_active
from bajas.db.connection import close_db, get_engine, get_session
from bajas.db.models import Base
from bajas.db.reasons import (
    activate_reason,
    create_reason,
    deactivate_reason,
    list_reasons,
    rename_reason,
    seed_default_reasons,
)
from bajas.db.requests import outcome_counts_on
from bajas.eligibility.engine import EligibilityEngine
from bajas.errors import BajasError
from bajas.ingestion.workbooks import build_snapshot, import_clients, import_sales
from bajas.intake.service import submit_request
from bajas.models import DecisionOutcome
from bajas.storage.snapshot import SnapshotHolder, SnapshotSalesStore
from bajas.storage.sql import SqlSalesStore
from bajas.sync.feed import PlanningFeed
from bajas.sync.reconciler import SyncReconciler, recent_sync_logs, sync_stats

app = typer.Typer(
    name="bajas",
    help="Sistema de bajas - client disqualification eligibility",
    no_args_is_help=True,
)
reasons_cli = typer.Typer(help="Reason catalogue")
app.add_typer(reasons_cli, name="reasons")

clients_cli = typer.Typer(help="Client registry")
app.add_typer(clients_cli, name="clients")

console = Console()

OUTCOME_STYLES = {
    DecisionOutcome.APPROVE: "green",
    DecisionOutcome.REJECT: "red",
    DecisionOutcome.MANUAL_REVIEW: "yellow",
    DecisionOutcome.ERROR: "bold red",
}


@app.callback()
def _setup() -> None:
    config = get_config()
    configure_logging(config.log_level, config.log_format)


def _run(coro) -> None:
    """Run a coroutine and dispose the engine afterwards."""

    async def _wrapped():
        try:
            await coro
        finally:
            await close_db()

    asyncio.run(_wrapped())


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        async with get_engine().begin() as conn:
            if drop:
                console.print("[yellow]Dropping existing tables...[/yellow]")
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)

    _run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command(name="seed-reasons")
def seed_reasons_cmd():
    """Load the initial reason catalogue (existing names are kept)."""

    async def _seed():
        async with get_session() as session:
            inserted = await seed_default_reasons(session)
        console.print(f"[green]✓[/green] {inserted} reasons added")

    _run(_seed())


@app.command()
def decide(
    client_code: str = typer.Argument(..., help="Client code"),
    reason: str = typer.Argument(..., help="Reason name"),
    on: str | None = typer.Option(None, "--date", help="Reference date (YYYY-MM-DD)"),
    sales_file: Path | None = typer.Option(
        None, "--sales", help="Decide against a sales workbook instead of the database"
    ),
    clients_file: Path | None = typer.Option(None, "--clients", help="Client registry workbook"),
    routes_file: Path | None = typer.Option(None, "--routes", help="Route planning CSV/XLSX"),
    evidence: list[str] = typer.Option(
        [], "--evidence", "-e", help="Evidence reference; given at least once, the request is recorded"
    ),
):
    """Run the eligibility decision for one client."""
    config = get_config()
    today = date.fromisoformat(on) if on else None

    async def _against(engine: EligibilityEngine):
        if not evidence:
            return await engine.decide(client_code, reason, today), True
        result = await submit_request(
            engine,
            client_code,
            reason,
            evidence,
            today=today,
            max_evidence_files=config.intake.max_evidence_files,
        )
        return result.decision, result.audit_recorded

    async def _decide():
        if sales_file is not None:
            holder = SnapshotHolder(
                build_snapshot(sales_file, clients_file, routes_file, config.imports)
            )
            engine = EligibilityEngine(SnapshotSalesStore(holder), timezone=config.intake.timezone)
            decision, recorded = await _against(engine)
        else:
            async with get_session() as session:
                engine = EligibilityEngine(SqlSalesStore(session), timezone=config.intake.timezone)
                decision, recorded = await _against(engine)

        style = OUTCOME_STYLES[decision.outcome]
        table = Table(title=f"Cliente {decision.client_code}", show_header=False)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        table.add_row("Resultado", f"[{style}]{decision.outcome.legacy_label}[/{style}]")
        table.add_row("Nombre", decision.display_name)
        table.add_row("Motivo", decision.reason)
        table.add_row("Ruta", decision.route or "-")
        table.add_row("Zona", decision.zone or "-")
        table.add_row("Vendedor", decision.salesperson or "-")
        table.add_row("Explicación", decision.explanation)
        table.add_row("Regla", decision.rule)
        console.print(table)

        if not recorded:
            console.print("[red]Warning: request was not recorded in the audit trail[/red]")

    try:
        _run(_decide())
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


@app.command(name="import-sales")
def import_sales_cmd(
    file: Path = typer.Argument(..., help="Sales workbook (XLSX/CSV)"),
    replace: bool = typer.Option(False, "--replace", help="Empty the sales ledger first"),
    prune_before: str | None = typer.Option(
        None, "--prune-before", help="Afterwards delete sales dated before YYYY-MM-DD"
    ),
):
    """Import the sales export into the sales ledger."""
    config = get_config()

    async def _import():
        async with get_session() as session:
            summary = await import_sales(session, file, config.imports, replace=replace)
            pruned = 0
            if prune_before:
                pruned = await prune_sales_before(session, date.fromisoformat(prune_before))

        console.print(
            f"[green]✓[/green] {summary.imported} sales imported, {summary.skipped} rows skipped"
            + (" (ledger replaced)" if summary.replaced else "")
        )
        if prune_before:
            console.print(f"  {pruned} sales before {prune_before} deleted")

    try:
        _run(_import())
    except (BajasError, FileNotFoundError) as e:
        console.print(f"[red]Import failed: {e}[/red]")
        raise typer.Exit(code=1)


@app.command(name="import-clients")
def import_clients_cmd(
    file: Path = typer.Argument(..., help="Client registry workbook (XLSX/CSV)"),
):
    """Upsert the client registry from a workbook."""
    config = get_config()

    async def _import():
        async with get_session() as session:
            summary = await import_clients(session, file, config.imports)
        console.print(
            f"[green]✓[/green] {summary.inserted} new, {summary.updated} updated, "
            f"{summary.skipped} skipped"
        )

    try:
        _run(_import())
    except (BajasError, FileNotFoundError) as e:
        console.print(f"[red]Import failed: {e}[/red]")
        raise typer.Exit(code=1)


def _print_sync_result(result) -> None:
    table = Table(title=f"Route sync ({result.sync_type.value})")
    table.add_column("Inserted", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Unchanged", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Duration", justify="right")
    table.add_row(
        str(result.inserted),
        str(result.updated),
        str(result.unchanged),
        str(result.skipped),
        f"{result.duration_seconds:.1f}s",
    )
    console.print(table)


@app.command(name="sync-routes")
def sync_routes_cmd():
    """Reconcile route_assignments with the planning sheet (or its local CSV)."""
    config = get_config()
    feed = PlanningFeed.from_config(config.sync)

    async def _sync():
        result = await SyncReconciler().sync_from(feed.fetch)
        _print_sync_result(result)

    try:
        _run(_sync())
    except Exception as e:
        console.print(f"[red]Sync failed: {e}[/red]")
        raise typer.Exit(code=1)


@app.command(name="migrate-routes")
def migrate_routes_cmd():
    """Seed route_assignments once; refuses when the table already has rows."""
    config = get_config()
    feed = PlanningFeed.from_config(config.sync)

    async def _migrate():
        result = await SyncReconciler().initial_migration_from(feed.fetch)
        if result.already_populated:
            console.print(f"[yellow]{result.message}[/yellow]")
            return
        _print_sync_result(result)

    try:
        _run(_migrate())
    except Exception as e:
        console.print(f"[red]Migration failed: {e}[/red]")
        raise typer.Exit(code=1)


@app.command(name="sync-status")
def sync_status_cmd(
    last_n: int = typer.Option(20, "--last", "-n", help="Show last N sync runs"),
):
    """Route planning totals and recent sync runs."""

    async def _status():
        async with get_session() as session:
            stats = await sync_stats(session)
            logs = await recent_sync_logs(session, limit=last_n)

        console.print(
            f"Routes: {stats.total_routes}  Zones: {stats.total_zones}  "
            f"Salespeople: {stats.total_salespeople}"
        )
        console.print(
            f"Syncs: {stats.total_syncs} ({stats.successful_syncs} ok, {stats.failed_syncs} failed)"
        )
        if stats.last_successful_sync:
            console.print(f"Last successful sync: {stats.last_successful_sync:%Y-%m-%d %H:%M} UTC")

        if not logs:
            console.print("[yellow]No sync runs found[/yellow]")
            return

        table = Table(title="Recent sync runs")
        table.add_column("When")
        table.add_column("Type")
        table.add_column("Status", style="bold")
        table.add_column("Ins", justify="right")
        table.add_column("Upd", justify="right")
        table.add_column("Same", justify="right")
        table.add_column("Message")
        for log in logs:
            style = "green" if log.status == "SUCCESS" else "red"
            table.add_row(
                f"{log.run_timestamp:%Y-%m-%d %H:%M}",
                log.sync_type,
                f"[{style}]{log.status}[/{style}]",
                str(log.records_inserted),
                str(log.records_updated),
                str(log.records_unchanged),
                log.message or "",
            )
        console.print(table)

    _run(_status())


@app.command()
def stats():
    """Clients, sales ledger and today's requests."""
    config = get_config()

    async def _stats():
        async with get_session() as session:
            clients = await client_stats(session)
            ledger = await sales_range(session)
            today = await outcome_counts_on(session, tz=config.intake.timezone)

        table = Table(title="Bajas statistics", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")
        table.add_row("Clients (active / inactive)", f"{clients.active} / {clients.inactive}")
        table.add_row("Zones / routes in registry", f"{clients.zones} / {clients.routes}")
        table.add_row("Sales", str(ledger.count))
        if ledger.first_sale:
            table.add_row("Sales period", f"{ledger.first_sale} → {ledger.last_sale}")
            table.add_row("Days with sales", str(ledger.distinct_days))
        table.add_row("Requests today", str(today.total))
        table.add_row("  SI", str(today.approved))
        table.add_row("  NO", str(today.rejected))
        table.add_row("  Revisión manual", str(today.manual_review))
        table.add_row("  Error", str(today.errors))
        console.print(table)

    _run(_stats())


@reasons_cli.command("list")
def reasons_list():
    """List all reasons, active first."""

    async def _list():
        async with get_session() as session:
            reasons = await list_reasons(session)

        table = Table(title="Motivos")
        table.add_column("ID", justify="right")
        table.add_column("Nombre")
        table.add_column("Activo")
        for reason in reasons:
            table.add_row(str(reason.id), reason.name, "✓" if reason.active else "✗")
        console.print(table)

    _run(_list())


def _reason_op(coro_factory, done: str) -> None:
    async def _op():
        async with get_session() as session:
            reason = await coro_factory(session)
        console.print(f"[green]✓[/green] {done}: {reason.name}")

    try:
        _run(_op())
    except (BajasError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)


@reasons_cli.command("add")
def reasons_add(name: str = typer.Argument(..., help="Reason name")):
    """Add a reason."""
    _reason_op(lambda session: create_reason(session, name), "Added")


@reasons_cli.command("rename")
def reasons_rename(
    reason_id: int = typer.Argument(...),
    name: str = typer.Argument(..., help="New name"),
):
    """Rename a reason."""
    _reason_op(lambda session: rename_reason(session, reason_id, name), "Renamed")


@reasons_cli.command("deactivate")
def reasons_deactivate(reason_id: int = typer.Argument(...)):
    """Hide a reason from the request form."""
    _reason_op(lambda session: deactivate_reason(session, reason_id), "Deactivated")


@reasons_cli.command("activate")
def reasons_activate(reason_id: int = typer.Argument(...)):
    """Offer a reason again."""
    _reason_op(lambda session: activate_reason(session, reason_id), "Activated")


@clients_cli.command("set-active")
def clients_set_active(
    code: str = typer.Argument(..., help="Client code"),
    active: bool = typer.Option(True, "--active/--inactive"),
):
    """Toggle a client's active flag."""

    async def _toggle():
        async with get_session() as session:
            found = await set_client_active(session, code, active)
        if not found:
            console.print(f"[red]Client {code} not found[/red]")
            raise typer.Exit(code=1)
        console.print(f"[green]✓[/green] Client {code} {'activated' if active else 'deactivated'}")

    _run(_toggle())


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
