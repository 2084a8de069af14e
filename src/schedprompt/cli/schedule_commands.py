"""CLI commands for scheduled prompt management."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from schedprompt.scheduler.errors import SchedulerError

app = typer.Typer(
    name="jobs",
    help="Manage scheduled prompts.",
    no_args_is_help=True,
)
console = Console()


def _get_manager():
    """Create a JobManager over the configured store (works without a running engine)."""
    from schedprompt.channels.console import ConsoleSink
    from schedprompt.config.settings import get_settings
    from schedprompt.scheduler.manager import JobManager

    return JobManager.from_settings(get_settings(), ConsoleSink(console))


def _fail(exc: SchedulerError) -> None:
    console.print(f"[red]✗ Error: {escape(str(exc))}[/red]")
    raise typer.Exit(1)


@app.command("list")
def list_jobs():
    """List all scheduled prompts."""
    manager = _get_manager()
    jobs = manager.list_jobs()

    if not jobs:
        console.print("[dim]No scheduled prompts configured.[/dim]")
        console.print('[dim]Add one: schedprompt jobs add "+10m" "check the build"[/dim]')
        raise typer.Exit()

    table = Table(title="Scheduled Prompts", show_lines=False)
    table.add_column("ID", style="dim", max_width=12)
    table.add_column("Name", style="bold")
    table.add_column("Type", style="dim")
    table.add_column("Schedule")
    table.add_column("Status")
    table.add_column("Runs", justify="right")
    table.add_column("Last run", style="dim")
    table.add_column("Prompt", max_width=40)

    for job in jobs:
        status = "[green]enabled[/green]" if job.enabled else "[yellow]disabled[/yellow]"
        if job.last_status is not None:
            status += f" [dim]({job.last_status.value})[/dim]"
        table.add_row(
            job.id,
            escape(job.name),
            job.kind.value,
            escape(job.schedule),
            status,
            str(job.run_count),
            job.last_run.strftime("%Y-%m-%d %H:%M:%S") if job.last_run else "never",
            escape(job.prompt[:40] + ("..." if len(job.prompt) > 40 else "")),
        )

    console.print(table)
    console.print(f"\n  [dim]{len(jobs)} jobs total.[/dim]\n")


@app.command("add")
def add_job(
    schedule: str = typer.Argument(
        help="6-field cron ('0 */5 * * * *'), interval ('5m'), or time ('+10m', ISO timestamp)"
    ),
    prompt: str = typer.Argument(help="Prompt text to deliver when the job fires"),
    job_type: str = typer.Option("cron", "--type", "-t", help="cron, interval, or once"),
    name: str = typer.Option("", "--name", "-n", help="Unique job name (auto if omitted)"),
    description: str = typer.Option("", "--description", "-d", help="Optional description"),
):
    """Add a new scheduled prompt. It is armed the next time `schedprompt run` starts."""
    manager = _get_manager()
    try:
        job = manager.create(
            schedule,
            prompt,
            kind=job_type,
            name=name or None,
            description=description or None,
        )
    except SchedulerError as exc:
        _fail(exc)

    console.print(f"  [green]✓[/green] Added job [bold]{escape(job.name)}[/bold] (ID: {job.id})")
    console.print(f"  [dim]Type: {job.kind.value} | Schedule: {escape(job.schedule)}[/dim]")
    console.print(f"  [dim]Prompt: {escape(job.prompt)}[/dim]")


@app.command("remove")
def remove_job(
    job_id: str = typer.Argument(help="Job ID to remove"),
):
    """Remove a scheduled prompt permanently."""
    manager = _get_manager()
    try:
        job = manager.remove(job_id)
    except SchedulerError as exc:
        _fail(exc)
    console.print(f"  [green]✓[/green] Removed [bold]{escape(job.name)}[/bold] ({job_id}).")


@app.command("enable")
def enable_job(
    job_id: str = typer.Argument(help="Job ID to enable"),
):
    """Enable a disabled scheduled prompt."""
    manager = _get_manager()
    try:
        job = manager.enable(job_id)
    except SchedulerError as exc:
        _fail(exc)
    if not job.enabled:
        console.print(
            f"[yellow]Job '{escape(job.name)}' could not be enabled: "
            f"its time {escape(job.schedule)} has passed.[/yellow]"
        )
        raise typer.Exit(1)
    console.print(f"  [green]✓[/green] Enabled [bold]{escape(job.name)}[/bold] ({job_id}).")


@app.command("disable")
def disable_job(
    job_id: str = typer.Argument(help="Job ID to disable"),
):
    """Disable a scheduled prompt without deleting it."""
    manager = _get_manager()
    try:
        job = manager.disable(job_id)
    except SchedulerError as exc:
        _fail(exc)
    console.print(f"  [green]✓[/green] Disabled [bold]{escape(job.name)}[/bold] ({job_id}).")
    console.print(f"  [dim]Use 'schedprompt jobs enable {job_id}' to re-enable.[/dim]")


@app.command("update")
def update_job(
    job_id: str = typer.Argument(help="Job ID to update"),
    schedule: str = typer.Option("", "--schedule", "-s", help="New schedule (same type)"),
    prompt: str = typer.Option("", "--prompt", "-p", help="New prompt text"),
    name: str = typer.Option("", "--name", "-n", help="New unique name"),
    description: str = typer.Option(None, "--description", "-d", help="New description"),
):
    """Change a scheduled prompt's schedule, prompt, name, or description."""
    manager = _get_manager()
    try:
        job = manager.update(
            job_id,
            name=name or None,
            prompt=prompt or None,
            schedule=schedule or None,
            description=description,
        )
    except SchedulerError as exc:
        _fail(exc)
    console.print(f"  [green]✓[/green] Updated [bold]{escape(job.name)}[/bold] ({job_id}).")


@app.command("cleanup")
def cleanup_jobs():
    """Remove every disabled scheduled prompt."""
    manager = _get_manager()
    removed = manager.cleanup()
    if not removed:
        console.print("[dim]No disabled jobs to clean up.[/dim]")
        raise typer.Exit()
    console.print(f"  [green]✓[/green] Removed {len(removed)} disabled job(s):")
    for job in removed:
        console.print(f"    - {escape(job.name)} [dim]({job.id})[/dim]")
