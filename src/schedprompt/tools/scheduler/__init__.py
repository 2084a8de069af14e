"""Agent-facing toolkit for managing scheduled prompts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from agno.tools import Toolkit

from schedprompt.scheduler.engine import current_delivery
from schedprompt.scheduler.errors import RecursiveScheduleError, SchedulerError

if TYPE_CHECKING:
    from schedprompt.scheduler.manager import JobManager
    from schedprompt.scheduler.models import PromptJob

logger = logging.getLogger("schedprompt.tools.scheduler")


def _fmt(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S UTC") if value else ""


class SchedulerTools(Toolkit):
    """Lets the agent add, list, enable, disable, update, and remove scheduled prompts."""

    def __init__(self, manager: JobManager) -> None:
        super().__init__(name="schedule_prompt")
        self._manager = manager

        self.register(self.add_scheduled_prompt)
        self.register(self.list_scheduled_prompts)
        self.register(self.remove_scheduled_prompt)
        self.register(self.enable_scheduled_prompt)
        self.register(self.disable_scheduled_prompt)
        self.register(self.update_scheduled_prompt)
        self.register(self.cleanup_scheduled_prompts)

    def add_scheduled_prompt(
        self,
        schedule: str,
        prompt: str,
        type: str = "cron",
        name: str | None = None,
        description: str | None = None,
    ) -> str:
        """Schedule a prompt to be sent to you later, once or repeatedly.

        You MUST provide both 'schedule' and 'prompt'.

        Args:
            schedule: When to run. Depends on type:
                cron: 6-field cron with seconds ("0 * * * * *" = every minute,
                "0 0 9 * * 1-5" = weekdays at 9am);
                interval: "30s", "5m", "1h", "1d";
                once: relative time ("+10s", "+5m", "+1h") or ISO timestamp
                ("2026-02-13T15:00:00Z").
            prompt: The prompt text to execute when the job fires.
            type: "cron" (default), "interval", or "once".
            name: Unique job name. Auto-generated if omitted.
            description: Optional free-text description.

        Returns:
            str: Confirmation with the job ID, or an error description.
        """
        try:
            if current_delivery() is not None:
                raise RecursiveScheduleError(
                    "Cannot create scheduled prompts from within a scheduled prompt "
                    "execution. This prevents infinite loops."
                )
            job = self._manager.create(
                schedule, prompt, kind=type, name=name, description=description
            )
        except SchedulerError as exc:
            return f"✗ Error: {exc}"
        return (
            f'✓ Created cron job "{job.name}" ({job.id})\n'
            f"Type: {job.kind.value}\nSchedule: {job.schedule}\nPrompt: {job.prompt}"
        )

    def list_scheduled_prompts(self) -> str:
        """List all scheduled prompts with their status.

        Returns:
            str: Formatted list of all jobs, or a message if none exist.
        """
        jobs = self._manager.list_jobs()
        if not jobs:
            return "No cron jobs configured."

        lines = ["Configured cron jobs:", ""]
        for job in jobs:
            lines.extend(self._describe(job))
            lines.append("")
        return "\n".join(lines).rstrip()

    def remove_scheduled_prompt(self, job_id: str) -> str:
        """Permanently delete a scheduled prompt.

        Args:
            job_id: The job ID to delete.

        Returns:
            str: Success or error message.
        """
        try:
            job = self._manager.remove(job_id)
        except SchedulerError as exc:
            return f"✗ Error: {exc}"
        return f'✓ Removed cron job "{job.name}" ({job.id})'

    def enable_scheduled_prompt(self, job_id: str) -> str:
        """Re-enable a disabled scheduled prompt.

        Args:
            job_id: The job ID to enable.

        Returns:
            str: Success or error message.
        """
        try:
            job = self._manager.enable(job_id)
        except SchedulerError as exc:
            return f"✗ Error: {exc}"
        return f'✓ Enabled cron job "{job.name}" ({job.id})'

    def disable_scheduled_prompt(self, job_id: str) -> str:
        """Disable a scheduled prompt without deleting it.

        Args:
            job_id: The job ID to disable.

        Returns:
            str: Success or error message.
        """
        try:
            job = self._manager.disable(job_id)
        except SchedulerError as exc:
            return f"✗ Error: {exc}"
        return f'✓ Disabled cron job "{job.name}" ({job.id})'

    def update_scheduled_prompt(
        self,
        job_id: str,
        name: str | None = None,
        schedule: str | None = None,
        prompt: str | None = None,
        description: str | None = None,
    ) -> str:
        """Change a scheduled prompt's name, schedule, prompt, or description.

        The job type cannot change; a new schedule must match it.

        Args:
            job_id: The job ID to update.
            name: New unique name.
            schedule: New schedule string in the job's existing format.
            prompt: New prompt text.
            description: New description.

        Returns:
            str: Success or error message.
        """
        try:
            job = self._manager.update(
                job_id, name=name, prompt=prompt, schedule=schedule, description=description
            )
        except SchedulerError as exc:
            return f"✗ Error: {exc}"
        return f'✓ Updated cron job "{job.name}" ({job.id})'

    def cleanup_scheduled_prompts(self) -> str:
        """Remove every disabled scheduled prompt.

        Returns:
            str: Summary of the removed jobs.
        """
        removed = self._manager.cleanup()
        if not removed:
            return "No disabled jobs to clean up"
        listing = "\n".join(f"  - {job.name} ({job.id})" for job in removed)
        return f"✓ Removed {len(removed)} disabled job(s):\n{listing}"

    def _describe(self, job: PromptJob) -> list[str]:
        status = "✓" if job.enabled else "✗"
        next_run = self._manager.next_run(job.id)
        last = f"Last: {_fmt(job.last_run)}" if job.last_run else "Never run"
        if next_run:
            last += f" | Next: {_fmt(next_run)}"
        lines = [
            f"{status} {job.name} ({job.id})",
            f"  Type: {job.kind.value} | Schedule: {job.schedule}",
            f"  Prompt: {job.prompt}",
            f"  {last}",
            f"  Runs: {job.run_count} | "
            f"Status: {job.last_status.value if job.last_status else 'pending'}",
        ]
        if job.description:
            lines.append(f"  Description: {job.description}")
        return lines
