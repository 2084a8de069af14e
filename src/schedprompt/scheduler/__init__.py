"""Scheduler subsystem: job models, store, parser, engine, and manager."""

from schedprompt.scheduler.engine import SchedulerEngine
from schedprompt.scheduler.manager import JobManager
from schedprompt.scheduler.models import ChangeEvent, ChangeType, JobKind, JobStatus, PromptJob
from schedprompt.scheduler.store import JobStore

__all__ = [
    "ChangeEvent",
    "ChangeType",
    "JobKind",
    "JobManager",
    "JobStatus",
    "JobStore",
    "PromptJob",
    "SchedulerEngine",
]
