"""Scheduler error taxonomy.

Creation-time errors (validation, duplicate names, unknown ids) are raised
to the caller. Arming, lapsed-schedule and execution errors happen on timer
callbacks with no waiting caller; the engine builds them, logs them, and
publishes their message as an ``error`` change event.
"""

from __future__ import annotations


class SchedulerError(Exception):
    """Base class for all scheduler errors."""


class ScheduleValidationError(SchedulerError, ValueError):
    """Malformed schedule string, wrong field count, or unusable timestamp."""


class DuplicateNameError(SchedulerError, ValueError):
    """Another live job already uses the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f'A job named "{name}" already exists. '
            "Please use a different name or remove the existing job first."
        )
        self.name = name


class JobNotFoundError(SchedulerError, KeyError):
    """No job with the given id exists in the store."""

    def __init__(self, job_id: str) -> None:
        super().__init__(job_id)
        self.job_id = job_id

    def __str__(self) -> str:
        return f"Job not found: {self.job_id}"


class RecursiveScheduleError(SchedulerError):
    """A scheduled prompt tried to schedule further prompts while being delivered."""


class ArmingError(SchedulerError):
    """A job passed validation but its live trigger could not be built."""


class LapsedScheduleError(SchedulerError):
    """A one-shot job's instant had already passed when it was armed."""


class ExecutionError(SchedulerError):
    """The execution sink failed to deliver a due job."""
