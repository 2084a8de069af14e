"""JobManager: validated create/update/remove on top of store + engine.

This is the surface the CLI and the agent toolkit talk to. Every mutation
validates first, persists second, and only then touches the engine, so a
rejected request never reaches the store.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING, Optional

from schedprompt.config.constants import DEFAULT_MIN_LEAD_SECONDS
from schedprompt.scheduler.engine import SchedulerEngine
from schedprompt.scheduler.errors import (
    DuplicateNameError,
    JobNotFoundError,
    ScheduleValidationError,
)
from schedprompt.scheduler.models import JobKind, PromptJob, generate_name
from schedprompt.scheduler.parser import IntervalSchedule, resolve_schedule
from schedprompt.scheduler.store import JobStore

if TYPE_CHECKING:
    from schedprompt.channels.base import ExecutionSink
    from schedprompt.config.settings import Settings

logger = logging.getLogger("schedprompt.scheduler.manager")


class JobManager:
    """Creates, edits, and retires scheduled prompts."""

    def __init__(
        self,
        engine: SchedulerEngine,
        timezone: tzinfo = timezone.utc,
        min_lead_seconds: int = DEFAULT_MIN_LEAD_SECONDS,
        auto_cleanup: bool = True,
    ) -> None:
        self._engine = engine
        self._store = engine.store
        self._tz = timezone
        self._min_lead_seconds = min_lead_seconds
        self._auto_cleanup = auto_cleanup

    @classmethod
    def from_settings(cls, settings: Settings, sink: ExecutionSink) -> JobManager:
        """Wire store, engine, and manager from configuration."""
        store = JobStore(settings.store_file)
        engine = SchedulerEngine(store, sink, timezone=settings.tz)
        return cls(
            engine,
            timezone=settings.tz,
            min_lead_seconds=settings.min_lead_seconds,
            auto_cleanup=settings.auto_cleanup,
        )

    @property
    def engine(self) -> SchedulerEngine:
        return self._engine

    @property
    def store(self) -> JobStore:
        return self._store

    # -- Session ---------------------------------------------------------------

    async def start(self) -> None:
        await self._engine.start()

    async def shutdown(self) -> list[PromptJob]:
        """Stop the engine and, if configured, drop disabled jobs."""
        await self._engine.stop()
        if not self._auto_cleanup:
            return []
        disabled = [job for job in self._store.get_all_jobs() if not job.enabled]
        if disabled:
            logger.info("Auto-cleanup: removing %d disabled job(s)", len(disabled))
            for job in disabled:
                self._store.remove_job(job.id)
        return disabled

    # -- Queries ---------------------------------------------------------------

    def list_jobs(self) -> list[PromptJob]:
        """Return all jobs in store order."""
        return self._store.get_all_jobs()

    def get_job(self, job_id: str) -> PromptJob:
        job = self._store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def next_run(self, job_id: str) -> Optional[datetime]:
        return self._engine.get_next_run(job_id)

    # -- Mutations -------------------------------------------------------------

    def create(
        self,
        schedule: str | None,
        prompt: str | None,
        kind: JobKind | str | None = None,
        name: str | None = None,
        description: str | None = None,
    ) -> PromptJob:
        """Validate, persist, and arm a new job."""
        missing = [
            f"'{label}'"
            for label, value in (("schedule", schedule), ("prompt", prompt))
            if not value
        ]
        if missing:
            raise ScheduleValidationError(
                f"Missing required parameters for add action: {' and '.join(missing)}. "
                "You must provide both schedule (e.g., '+10s', '*/5 * * * * *') "
                "and prompt (the text to execute)."
            )

        job_name = name or generate_name()
        if self._store.has_job_with_name(job_name):
            raise DuplicateNameError(job_name)

        job_kind = self._coerce_kind(kind)
        resolved = resolve_schedule(
            job_kind,
            schedule,
            tz=self._tz,
            min_lead_seconds=self._min_lead_seconds,
        )

        job = PromptJob(
            name=job_name,
            kind=job_kind,
            schedule=resolved.text,
            prompt=prompt,
            interval_ms=resolved.interval_ms if isinstance(resolved, IntervalSchedule) else None,
            description=description,
        )
        self._store.add_job(job)
        self._engine.add_job(job)
        logger.info("Created %s job %s (%s): %s", job.kind.value, job.id, job.name, job.schedule)
        return job

    def remove(self, job_id: str) -> PromptJob:
        """Delete a job and cancel its timer."""
        job = self.get_job(job_id)
        if self._store.remove_job(job_id):
            self._engine.remove_job(job_id)
            logger.info("Removed job %s (%s)", job_id, job.name)
        return job

    def enable(self, job_id: str) -> PromptJob:
        return self._set_enabled(job_id, True)

    def disable(self, job_id: str) -> PromptJob:
        return self._set_enabled(job_id, False)

    def update(
        self,
        job_id: str,
        name: str | None = None,
        prompt: str | None = None,
        schedule: str | None = None,
        description: str | None = None,
    ) -> PromptJob:
        """Change name, prompt, schedule, or description; the kind stays fixed."""
        job = self.get_job(job_id)
        updates: dict = {}

        if name and name != job.name:
            if self._store.has_job_with_name(name, exclude_id=job_id):
                raise DuplicateNameError(name)
            updates["name"] = name
        if prompt:
            updates["prompt"] = prompt
        if description is not None:
            updates["description"] = description
        if schedule:
            resolved = resolve_schedule(
                job.kind,
                schedule,
                tz=self._tz,
                min_lead_seconds=self._min_lead_seconds,
            )
            updates["schedule"] = resolved.text
            if isinstance(resolved, IntervalSchedule):
                updates["interval_ms"] = resolved.interval_ms

        updated = self._store.update_job(job_id, **updates)
        if updated is None:
            raise JobNotFoundError(job_id)
        self._engine.update_job(job_id, updated)
        logger.info("Updated job %s (%s)", job_id, updated.name)
        # Arming may have retired a lapsed one-shot
        return self._store.get_job(job_id) or updated

    def cleanup(self) -> list[PromptJob]:
        """Remove every disabled job. Returns the removed jobs."""
        disabled = [job for job in self._store.get_all_jobs() if not job.enabled]
        for job in disabled:
            self._store.remove_job(job.id)
            self._engine.remove_job(job.id)
        if disabled:
            logger.info("Cleaned up %d disabled job(s)", len(disabled))
        return disabled

    # -- Internal helpers ------------------------------------------------------

    def _set_enabled(self, job_id: str, enabled: bool) -> PromptJob:
        self.get_job(job_id)
        updated = self._store.update_job(job_id, enabled=enabled)
        if updated is None:
            raise JobNotFoundError(job_id)
        self._engine.update_job(job_id, updated)
        logger.info("%s job %s (%s)", "Enabled" if enabled else "Disabled", job_id, updated.name)
        return self._store.get_job(job_id) or updated

    @staticmethod
    def _coerce_kind(kind: JobKind | str | None) -> JobKind:
        if kind is None or kind == "":
            return JobKind.CRON
        try:
            return JobKind(kind)
        except ValueError:
            valid = ", ".join(k.value for k in JobKind)
            raise ScheduleValidationError(f"Unknown job type: {kind}. Use one of: {valid}") from None
