"""Schedule parsing and validation.

Pure functions: nothing here touches the store or the engine. A schedule
string plus its declared kind resolves to one of three normalized forms:

    CronSchedule("0 */5 * * * *")        six fields, seconds first
    IntervalSchedule("5m", 300000)       fixed period in milliseconds
    OnceSchedule(datetime(...))          absolute UTC instant
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from email.utils import parsedate_to_datetime
from typing import NamedTuple, Union

from croniter import croniter

from schedprompt.config.constants import CRON_EXAMPLE, CRON_FIELD_NAMES, UNIT_MS
from schedprompt.scheduler.errors import ScheduleValidationError
from schedprompt.scheduler.models import JobKind, PromptJob, format_timestamp

_INTERVAL_RE = re.compile(r"(\d+)([smhd])")
_RELATIVE_RE = re.compile(r"\+(\d+)([smhd])")
_SUNDAY_RANGE_RE = re.compile(r"(\d+)-7")


class CronValidation(NamedTuple):
    valid: bool
    error: str | None = None


@dataclass(frozen=True)
class CronSchedule:
    expression: str

    @property
    def text(self) -> str:
        return self.expression


@dataclass(frozen=True)
class IntervalSchedule:
    spec: str
    interval_ms: int

    @property
    def text(self) -> str:
        return self.spec


@dataclass(frozen=True)
class OnceSchedule:
    run_at: datetime

    @property
    def text(self) -> str:
        return format_timestamp(self.run_at)


Schedule = Union[CronSchedule, IntervalSchedule, OnceSchedule]


# -- Primitive parsers ---------------------------------------------------------


def normalize_cron(expression: str) -> str:
    """Collapse whitespace and spell Sunday as 0 in the day-of-week field.

    ``7`` is accepted as Sunday (``"0 0 9 * * 7"``, ``"0 0 9 * * 5-7"``) but
    croniter only knows 0-6 when seconds come first.
    """
    fields = expression.split()
    if len(fields) != 6:
        return " ".join(fields)
    days = []
    for item in fields[5].split(","):
        if item == "7":
            item = "0"
        else:
            match = _SUNDAY_RANGE_RE.fullmatch(item)
            if match and int(match.group(1)) < 7:
                start = int(match.group(1))
                item = f"{start}-6,0" if start < 6 else "6,0"
        days.append(item)
    fields[5] = ",".join(days)
    return " ".join(fields)


def validate_cron(expression: str) -> CronValidation:
    """Check a 6-field (seconds-first) cron expression."""
    fields = expression.strip().split()
    if len(fields) != 6:
        return CronValidation(
            False,
            f"Cron expression must have 6 fields ({CRON_FIELD_NAMES}), "
            f"got {len(fields)}. Example: {CRON_EXAMPLE}",
        )
    try:
        croniter(normalize_cron(expression), second_at_beginning=True)
    except (ValueError, KeyError) as exc:
        return CronValidation(False, str(exc) or "Invalid cron expression")
    return CronValidation(True)


def parse_interval(text: str) -> int | None:
    """``"5m"`` → 300000. Returns None for anything but ``<int><s|m|h|d>``."""
    match = _INTERVAL_RE.fullmatch(text)
    if match is None:
        return None
    return int(match.group(1)) * UNIT_MS[match.group(2)]


def parse_relative_time(text: str, now: datetime | None = None) -> str | None:
    """``"+10m"`` → canonical timestamp ten minutes from now, else None."""
    match = _RELATIVE_RE.fullmatch(text)
    if match is None:
        return None
    delta = timedelta(milliseconds=int(match.group(1)) * UNIT_MS[match.group(2)])
    base = now or datetime.now(timezone.utc)
    return format_timestamp(base + delta)


def parse_timestamp(text: str, tz: tzinfo = timezone.utc) -> datetime:
    """Parse a calendar timestamp into an aware UTC datetime.

    Accepts ISO 8601 (``2026-02-13T15:00:00Z``, ``2026-02-13 15:00``,
    ``2026-02-13``) and RFC 2822 dates. Naive values are taken to be in *tz*.
    """
    value = text.strip()
    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            parsed = None
    if parsed is None:
        raise ScheduleValidationError(
            f"Invalid timestamp: {text}. Use ISO format or relative time like '+10s', '+5m'"
        )
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(timezone.utc)


# -- Resolution ----------------------------------------------------------------


def resolve_schedule(
    kind: JobKind,
    text: str,
    *,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
    min_lead_seconds: int = 0,
) -> Schedule:
    """Validate *text* for *kind* and return its normalized form.

    Raises ScheduleValidationError; a one-shot instant at or before *now* is
    rejected here, at creation time, rather than lapsing later.
    """
    kind = JobKind(kind)
    if kind is JobKind.INTERVAL:
        interval_ms = parse_interval(text)
        if not interval_ms:
            raise ScheduleValidationError(
                f"Invalid interval format: {text}. Use format like '5m', '1h', '30s'"
            )
        return IntervalSchedule(text, interval_ms)

    if kind is JobKind.ONCE:
        now = now or datetime.now(timezone.utc)
        relative = parse_relative_time(text, now=now)
        run_at = parse_timestamp(relative or text, tz)
        delay = (run_at - now).total_seconds()
        if delay <= 0:
            raise ScheduleValidationError(
                f"Timestamp is in the past: {format_timestamp(run_at)}. "
                f"Current time: {format_timestamp(now)}"
            )
        if relative is None and delay < min_lead_seconds:
            raise ScheduleValidationError(
                f"Timestamp is too soon ({round(delay)}s). For short delays use relative "
                f"time like '+{max(1, round(delay))}s' instead, or schedule at least "
                f"{min_lead_seconds}s in the future."
            )
        return OnceSchedule(run_at)

    result = validate_cron(text)
    if not result.valid:
        raise ScheduleValidationError(f"Invalid cron expression: {result.error}")
    return CronSchedule(normalize_cron(text))


def schedule_for(job: PromptJob) -> Schedule:
    """Rebuild the normalized schedule of a persisted job, without time checks.

    Used when arming: a stored one-shot may have lapsed, which the engine
    handles itself.
    """
    if job.kind is JobKind.INTERVAL:
        interval_ms = job.interval_ms or parse_interval(job.schedule)
        if not interval_ms:
            raise ScheduleValidationError(f"Invalid interval format: {job.schedule}")
        return IntervalSchedule(job.schedule, interval_ms)
    if job.kind is JobKind.ONCE:
        return OnceSchedule(parse_timestamp(job.schedule))
    return CronSchedule(normalize_cron(job.schedule))
