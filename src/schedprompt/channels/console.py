"""Console sink that prints due prompts with rich."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from schedprompt.channels.base import ExecutionSink, ScheduledPrompt


class ConsoleSink(ExecutionSink):
    """Prints each delivered prompt as ``🕐 Scheduled: <name> → "<prompt>"``."""

    sink_name = "console"

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    async def deliver(self, prompt: ScheduledPrompt) -> None:
        self.console.print(
            f"[cyan]\U0001f550 {escape(prompt.marker)}[/cyan]"
            f'[dim] → "{escape(prompt.text)}"[/dim]'
        )
