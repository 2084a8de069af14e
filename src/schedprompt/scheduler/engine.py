"""Scheduler engine: APScheduler bridge that delivers due prompts to a sink."""

from __future__ import annotations

import contextvars
import logging
from collections.abc import Callable
from datetime import datetime, timezone, tzinfo
from typing import Optional

from apscheduler.job import Job as LiveTimer
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from schedprompt.channels.base import ExecutionSink, ScheduledPrompt
from schedprompt.scheduler.errors import ArmingError, ExecutionError, LapsedScheduleError
from schedprompt.scheduler.models import ChangeEvent, ChangeType, JobStatus, PromptJob, utcnow
from schedprompt.scheduler.parser import (
    CronSchedule,
    IntervalSchedule,
    OnceSchedule,
    schedule_for,
)
from schedprompt.scheduler.store import JobStore
from schedprompt.scheduler.triggers import SecondsCronTrigger

logger = logging.getLogger("schedprompt.scheduler.engine")

ChangeObserver = Callable[[ChangeEvent], None]

# Id of the job whose prompt is being delivered in the current context
_delivering: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "schedprompt_delivering", default=None
)


def current_delivery() -> Optional[str]:
    """Job id being delivered by the engine in this context, if any."""
    return _delivering.get()


class SchedulerEngine:
    """Keeps one live APScheduler timer per enabled job and runs jobs when due.

    Cron jobs are held as cadence watchers, interval and one-shot jobs as
    plain timers. A job id is in at most one of the two maps, and only
    while the job is enabled. Every fire goes through ``_execute_job``,
    which never lets a sink failure escape.
    """

    def __init__(
        self,
        store: JobStore,
        sink: ExecutionSink,
        timezone: tzinfo = timezone.utc,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._store = store
        self._sink = sink
        self._tz = timezone
        self._scheduler = scheduler or AsyncIOScheduler(
            timezone=timezone,
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": None},
        )
        self._watchers: dict[str, LiveTimer] = {}
        self._timers: dict[str, LiveTimer] = {}
        self._observers: list[ChangeObserver] = []

    @property
    def store(self) -> JobStore:
        return self._store

    @property
    def running(self) -> bool:
        return self._scheduler.running

    @property
    def armed_ids(self) -> set[str]:
        return set(self._watchers) | set(self._timers)

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Start APScheduler and arm every enabled job in the store."""
        if not self._scheduler.running:
            self._scheduler.start()

        jobs = self._store.get_all_jobs()
        for job in jobs:
            if job.enabled:
                self._arm(job)

        logger.info("Scheduler started with %d jobs (%d armed)", len(jobs), len(self.armed_ids))

    async def stop(self) -> None:
        """Cancel every live timer and shut APScheduler down. Safe to repeat."""
        for job_id in list(self.armed_ids):
            self._disarm(job_id)
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    # -- Observers -------------------------------------------------------------

    def subscribe(self, observer: ChangeObserver) -> Callable[[], None]:
        """Register *observer* for change events. Returns an unsubscribe callable."""
        self._observers.append(observer)
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: ChangeObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    # -- Job management --------------------------------------------------------

    def add_job(self, job: PromptJob) -> None:
        """Arm a freshly persisted job (if enabled) and announce it."""
        if job.enabled:
            self._arm(job)
        self._emit(ChangeType.ADD, job=job)

    def remove_job(self, job_id: str) -> None:
        """Drop any live timer for *job_id*. Unknown ids are fine."""
        self._disarm(job_id)
        self._emit(ChangeType.REMOVE, job_id=job_id)

    def update_job(self, job_id: str, job: PromptJob) -> None:
        """Replace whatever is armed for *job_id* with *job*'s schedule."""
        self._disarm(job_id)
        if job.enabled:
            self._arm(job)
        self._emit(ChangeType.UPDATE, job=job)

    def get_next_run(self, job_id: str) -> Optional[datetime]:
        """Next fire time of a live cron watcher; None for every other job."""
        if job_id not in self._watchers:
            return None
        live = self._scheduler.get_job(job_id)
        # Pending jobs (scheduler not started yet) have no next_run_time
        return getattr(live, "next_run_time", None) if live else None

    # -- Execution callbacks ---------------------------------------------------

    async def _execute_job(self, job_id: str) -> bool:
        """Deliver one due job and record the outcome. Returns True on success.

        Nothing escapes to APScheduler: a store that cannot be read or written
        while bookkeeping is reported as an error event like a sink failure.
        """
        try:
            return await self._deliver_job(job_id)
        except Exception as exc:
            error = ExecutionError(f"Failed to record execution of job {job_id}: {exc}")
            logger.exception("%s", error)
            self._emit(ChangeType.ERROR, job_id=job_id, error=str(error))
            return False

    async def _deliver_job(self, job_id: str) -> bool:
        job = self._store.get_job(job_id)
        if job is None:
            logger.warning("Triggered job %s not found in store", job_id)
            return False
        if not job.enabled:
            logger.debug("Skipping disabled job %s (%s)", job_id, job.name)
            return False

        logger.info("Executing scheduled prompt %s (%s)", job.name, job.id)
        self._store.update_job(job_id, last_status=JobStatus.RUNNING)
        self._emit(ChangeType.FIRE, job=job)

        prompt = ScheduledPrompt(text=job.prompt, job_id=job.id, job_name=job.name)
        token = _delivering.set(job.id)
        try:
            await self._sink.deliver(prompt)
        except Exception as exc:
            error = ExecutionError(f"Failed to execute job {job.id}: {exc}")
            logger.warning("%s", error)
            self._store.record_run(job_id, JobStatus.ERROR, ran_at=utcnow())
            self._emit(ChangeType.ERROR, job_id=job_id, error=str(exc) or type(exc).__name__)
            return False
        finally:
            _delivering.reset(token)

        updated = self._store.record_run(
            job_id,
            JobStatus.SUCCESS,
            ran_at=utcnow(),
            next_run=self.get_next_run(job_id),
        )
        self._emit(ChangeType.FIRE, job=updated or job)
        return True

    async def _execute_once(self, job_id: str) -> None:
        """One-shot fire: run the job, then retire it for good."""
        # APScheduler drops a date job once it has fired
        self._timers.pop(job_id, None)
        try:
            await self._execute_job(job_id)
        finally:
            self._retire(job_id)

    def _retire(self, job_id: str) -> None:
        try:
            disabled = self._store.update_job(job_id, enabled=False)
        except OSError as exc:
            logger.exception("Could not disable one-shot job %s", job_id)
            self._emit(ChangeType.ERROR, job_id=job_id, error=str(exc))
            return
        if disabled is not None:
            self._emit(ChangeType.UPDATE, job=disabled)

    # -- Internal helpers ------------------------------------------------------

    def _arm(self, job: PromptJob) -> None:
        """Create the live timer backing *job*, replacing any existing one."""
        self._disarm(job.id)
        try:
            schedule = schedule_for(job)
            if isinstance(schedule, OnceSchedule):
                if schedule.run_at <= datetime.now(timezone.utc):
                    self._lapse(job)
                    return
                self._timers[job.id] = self._scheduler.add_job(
                    self._execute_once,
                    trigger=DateTrigger(run_date=schedule.run_at, timezone=self._tz),
                    args=[job.id],
                    id=job.id,
                    name=job.name,
                    replace_existing=True,
                )
            elif isinstance(schedule, IntervalSchedule):
                self._timers[job.id] = self._scheduler.add_job(
                    self._execute_job,
                    trigger=IntervalTrigger(seconds=schedule.interval_ms / 1000, timezone=self._tz),
                    args=[job.id],
                    id=job.id,
                    name=job.name,
                    replace_existing=True,
                )
            elif isinstance(schedule, CronSchedule):
                self._watchers[job.id] = self._scheduler.add_job(
                    self._execute_job,
                    trigger=SecondsCronTrigger(schedule.expression, self._tz),
                    args=[job.id],
                    id=job.id,
                    name=job.name,
                    replace_existing=True,
                )
        except Exception as exc:
            error = ArmingError(f"Failed to schedule job {job.id}: {exc}")
            logger.exception("%s", error)
            self._emit(ChangeType.ERROR, job_id=job.id, error=str(error))
            return
        logger.debug("Armed %s job %s (%s): %s", job.kind.value, job.id, job.name, job.schedule)

    def _disarm(self, job_id: str) -> None:
        """Cancel the live timer for *job_id*, if there is one."""
        for handles in (self._watchers, self._timers):
            if handles.pop(job_id, None) is not None:
                try:
                    self._scheduler.remove_job(job_id)
                except JobLookupError:
                    pass
                logger.debug("Disarmed job %s", job_id)

    def _lapse(self, job: PromptJob) -> None:
        """Retire a one-shot whose instant passed while nothing was armed."""
        error = LapsedScheduleError(f"Scheduled time {job.schedule} is in the past")
        logger.warning("Job %s (%s) scheduled for past time: %s", job.id, job.name, job.schedule)
        self._store.update_job(job.id, enabled=False, last_status=JobStatus.ERROR)
        self._emit(ChangeType.ERROR, job_id=job.id, error=str(error))

    def _emit(
        self,
        change: ChangeType,
        job: PromptJob | None = None,
        job_id: str | None = None,
        error: str | None = None,
    ) -> None:
        if job_id is None and job is not None:
            job_id = job.id
        event = ChangeEvent(type=change, job=job, job_id=job_id, error=error)
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception("Change observer %r failed on %s event", observer, change.value)
