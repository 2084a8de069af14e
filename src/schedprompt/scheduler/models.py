"""Pydantic models for scheduled prompts and their change events."""

from __future__ import annotations

import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

from schedprompt.config.constants import STORE_VERSION


class JobKind(str, Enum):
    """How a job's schedule string is interpreted."""

    CRON = "cron"
    INTERVAL = "interval"
    ONCE = "once"


class JobStatus(str, Enum):
    """Outcome of the most recent execution attempt."""

    SUCCESS = "success"
    ERROR = "error"
    RUNNING = "running"


class ChangeType(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    UPDATE = "update"
    FIRE = "fire"
    ERROR = "error"


def generate_id() -> str:
    return secrets.token_hex(5)


def generate_name() -> str:
    return f"job-{secrets.token_hex(3)}"


def utcnow() -> datetime:
    """Current UTC time at the millisecond precision records are stored with."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def format_timestamp(value: datetime) -> str:
    """Canonical one-shot timestamp: UTC, millisecond precision, ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


class _CamelModel(BaseModel):
    # On-disk records use camelCase keys (createdAt, runCount, ...); keys this
    # version does not know are carried through untouched
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class PromptJob(_CamelModel):
    """A single scheduled prompt."""

    id: str = Field(default_factory=generate_id)
    name: str = Field(default_factory=generate_name)
    kind: JobKind = Field(default=JobKind.CRON, alias="type")
    schedule: str  # 6-field cron, interval string, or canonical UTC timestamp
    prompt: str  # text delivered to the agent when due
    enabled: bool = True
    interval_ms: Optional[int] = None  # interval jobs only
    created_at: datetime = Field(default_factory=utcnow)
    last_run: Optional[datetime] = None
    last_status: Optional[JobStatus] = None
    next_run: Optional[datetime] = None
    run_count: int = 0
    description: Optional[str] = None

    @field_serializer("created_at", "last_run", "next_run", when_used="json-unless-none")
    def serialize_instant(self, value: datetime) -> str:
        return format_timestamp(value)

    def to_record(self) -> dict:
        """Serialize to the persisted JSON shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class JobCollection(_CamelModel):
    """The whole persisted store: every job plus a format version."""

    jobs: list[PromptJob] = Field(default_factory=list)
    version: int = STORE_VERSION

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def find(self, job_id: str) -> Optional[PromptJob]:
        return next((job for job in self.jobs if job.id == job_id), None)


class ChangeEvent(BaseModel):
    """Lifecycle notification published by the scheduling engine."""

    type: ChangeType
    job: Optional[PromptJob] = None
    job_id: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)

