"""CLI commands for election data sync.

Runs category syncs through the same orchestrator as the API, reports
category freshness, and lists the configured provider fallback order.
"""

import asyncio
import contextlib
import signal
from typing import Annotated

import typer
from loguru import logger

sync_app = typer.Typer()


@sync_app.command("run")
def run(
    category: Annotated[
        str,
        typer.Option("--category", "-c", help="Category: timetables, candidates, results (or an alias)"),
    ] = "timetables",
) -> None:
    """Sync a single category and exit non-zero on failure."""
    asyncio.run(_run_impl(category))


async def _run_impl(category_name: str) -> None:
    """Async implementation of the run command."""
    from election_sync.core.config import get_settings
    from election_sync.core.database import dispose_engine, get_session_factory, init_engine_from_settings
    from election_sync.core.logging import setup_logging
    from election_sync.lib.providers import parse_category
    from election_sync.services.sync_orchestrator import build_orchestrator

    try:
        category = parse_category(category_name)
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2) from exc

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)
    init_engine_from_settings(settings)
    orchestrator = build_orchestrator(settings, get_session_factory())

    try:
        report = await orchestrator.sync_category(category, trigger="cli")
        typer.echo(
            f"{report.category}: {report.created} created, {report.updated} updated "
            f"via {report.provider} in {report.duration_ms}ms (run {report.sync_run_id})"
        )
    except Exception as exc:
        logger.debug("Sync of {} failed: {!r}", category, exc)
        typer.echo(f"Sync failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        await orchestrator.aclose()
        await dispose_engine()


@sync_app.command("full")
def full() -> None:
    """Sync every configured category. Ctrl-C cancels the in-flight category."""
    asyncio.run(_full_impl())


def _install_cancel_handlers(cancel_event: asyncio.Event) -> None:
    """Set ``cancel_event`` on SIGINT/SIGTERM where the loop supports signal handlers."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, cancel_event.set)


async def _full_impl() -> None:
    """Async implementation of the full command."""
    from election_sync.core.config import get_settings
    from election_sync.core.database import dispose_engine, get_session_factory, init_engine_from_settings
    from election_sync.core.logging import setup_logging
    from election_sync.services.sync_orchestrator import ReportStatus, build_orchestrator

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)
    init_engine_from_settings(settings)
    orchestrator = build_orchestrator(settings, get_session_factory())

    cancel_event = asyncio.Event()
    _install_cancel_handlers(cancel_event)

    try:
        reports = await orchestrator.perform_full_sync(cancel_event=cancel_event, trigger="cli")
    finally:
        await orchestrator.aclose()
        await dispose_engine()

    for report in reports:
        if report.status == ReportStatus.COMPLETED:
            typer.echo(
                f"{report.category}: completed via {report.provider} "
                f"({report.created} created, {report.updated} updated, {report.duration_ms}ms)"
            )
        else:
            typer.echo(f"{report.category}: {report.status} ({report.error})")

    if any(r.status == ReportStatus.FAILED for r in reports):
        raise typer.Exit(code=1)


@sync_app.command("status")
def status() -> None:
    """Show the last completed sync and staleness of every category."""
    asyncio.run(_status_impl())


async def _status_impl() -> None:
    """Async implementation of the status command."""
    from datetime import timedelta

    from election_sync.core.config import get_settings
    from election_sync.core.database import dispose_engine, get_session_factory, init_engine_from_settings
    from election_sync.core.logging import setup_logging
    from election_sync.services.sync_orchestrator import build_orchestrator

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)
    init_engine_from_settings(settings)
    orchestrator = build_orchestrator(settings, get_session_factory())

    try:
        statuses = await orchestrator.status_overview(timedelta(hours=settings.sync_staleness_hours))
    finally:
        await orchestrator.aclose()
        await dispose_engine()

    for entry in statuses:
        last = entry.last_completed_at.isoformat() if entry.last_completed_at else "never"
        flags = []
        if entry.is_stale:
            flags.append("STALE")
        if entry.active_run_id:
            flags.append(f"running {entry.active_run_id}")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        typer.echo(f"{entry.category}: last completed {last} via {entry.provider or '-'}{suffix}")


@sync_app.command("providers")
def providers() -> None:
    """List configured providers in fallback order."""
    from election_sync.core.config import get_settings
    from election_sync.lib.providers import get_configured_providers

    configured = get_configured_providers(get_settings())
    if not configured:
        typer.echo("No providers configured")
        raise typer.Exit(code=1)
    for position, provider in enumerate(configured, start=1):
        typer.echo(f"{position}. {provider.provider_name}")
    # Remote provider holds an HTTP client
    asyncio.run(_close_all(configured))


async def _close_all(configured: list) -> None:
    for provider in configured:
        await provider.close()
