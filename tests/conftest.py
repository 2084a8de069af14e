"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from schedprompt.channels.base import ExecutionSink
from schedprompt.scheduler.engine import SchedulerEngine
from schedprompt.scheduler.manager import JobManager
from schedprompt.scheduler.store import JobStore


@pytest.fixture
def store(tmp_path: Path) -> JobStore:
    return JobStore(tmp_path / ".schedprompt" / "schedule-prompts.json")


@pytest.fixture
def sink():
    """Execution sink that records deliveries and always succeeds."""
    mock = AsyncMock(spec=ExecutionSink)
    mock.sink_name = "mock"
    mock.deliver = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def engine(store: JobStore, sink) -> SchedulerEngine:
    return SchedulerEngine(store, sink)


@pytest.fixture
def manager(engine: SchedulerEngine) -> JobManager:
    return JobManager(engine, min_lead_seconds=5)
