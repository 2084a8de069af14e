"""schedprompt CLI: the main entry point."""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from schedprompt import __version__
from schedprompt.cli.schedule_commands import app as jobs_app

app = typer.Typer(
    name="schedprompt",
    help="Schedule prompts on cron cadences, intervals, or one-shot deadlines.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(jobs_app, name="jobs")
console = Console()

logger = logging.getLogger("schedprompt.cli")


def _configure_logging(level: str) -> None:
    handler = RichHandler(console=console, rich_tracebacks=False, show_path=False, markup=False)
    logging.basicConfig(level=level.upper(), format="%(name)s | %(message)s", handlers=[handler])


@app.callback(invoke_without_command=True)
def version_callback(
    version: bool = typer.Option(False, "--version", "-v", help="Show version"),
):
    if version:
        console.print(f"schedprompt [dim]v{__version__}[/dim]")
        raise typer.Exit()


@app.command()
def run():
    """Run the scheduler in the foreground until Ctrl+C."""
    from schedprompt.config.settings import get_settings

    settings = get_settings()
    _configure_logging(settings.log_level)

    try:
        asyncio.run(_run_scheduler(settings))
    except KeyboardInterrupt:
        console.print("\n[dim]Scheduler stopped.[/dim]")


async def _run_scheduler(settings) -> None:
    from schedprompt.channels.console import ConsoleSink
    from schedprompt.channels.webhook import WebhookSink
    from schedprompt.scheduler.manager import JobManager
    from schedprompt.scheduler.models import ChangeEvent, ChangeType

    sink = WebhookSink(settings.webhook_url) if settings.webhook_url else ConsoleSink(console)
    manager = JobManager.from_settings(settings, sink)

    def _show(event: ChangeEvent) -> None:
        if event.type is ChangeType.ERROR:
            console.print(f"[red]✗ {event.job_id}: {escape(event.error or '')}[/red]")

    manager.engine.subscribe(_show)
    await manager.start()
    console.print(
        f"  [bold]Store:[/bold]    {settings.store_file}\n"
        f"  [bold]Timezone:[/bold] {settings.timezone}\n"
        f"  [bold]Delivery:[/bold] {sink.sink_name}\n"
        f"  [bold]Armed:[/bold]    {len(manager.engine.armed_ids)} of {len(manager.list_jobs())} jobs\n"
    )

    try:
        await asyncio.Event().wait()
    finally:
        removed = await manager.shutdown()
        await sink.close()
        if removed:
            logger.info("Removed %d disabled job(s) at shutdown", len(removed))
