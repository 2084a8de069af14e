"""Tests for the SchedulerEngine."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from schedprompt.channels.base import ScheduledPrompt
from schedprompt.scheduler.engine import SchedulerEngine, current_delivery
from schedprompt.scheduler.models import (
    ChangeEvent,
    ChangeType,
    JobKind,
    JobStatus,
    PromptJob,
    format_timestamp,
)
from schedprompt.scheduler.store import JobStore


def _cron(**kwargs) -> PromptJob:
    defaults = {"name": "every-minute", "schedule": "0 * * * * *", "prompt": "tick"}
    defaults.update(kwargs)
    return PromptJob(**defaults)


def _interval(schedule: str = "1s", interval_ms: int = 1000, **kwargs) -> PromptJob:
    return PromptJob(
        kind=JobKind.INTERVAL,
        schedule=schedule,
        interval_ms=interval_ms,
        prompt=kwargs.pop("prompt", "ping"),
        **kwargs,
    )


def _once(delay: timedelta, **kwargs) -> PromptJob:
    run_at = datetime.now(timezone.utc) + delay
    return PromptJob(
        kind=JobKind.ONCE,
        schedule=format_timestamp(run_at),
        prompt=kwargs.pop("prompt", "remind me"),
        **kwargs,
    )


@pytest.fixture
def events(engine: SchedulerEngine) -> list[ChangeEvent]:
    captured: list[ChangeEvent] = []
    engine.subscribe(captured.append)
    return captured


@pytest_asyncio.fixture
async def running(engine: SchedulerEngine):
    await engine.start()
    yield engine
    await engine.stop()


# -- Lifecycle -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_start_arms_enabled_jobs_only(store: JobStore, engine: SchedulerEngine):
    on = store.add_job(_cron(name="on"))
    off = store.add_job(_cron(name="off", enabled=False))

    await engine.start()
    try:
        assert engine.running is True
        assert on.id in engine.armed_ids
        assert off.id not in engine.armed_ids
    finally:
        await engine.stop()


@pytest.mark.asyncio
async def test_stop_is_idempotent(engine: SchedulerEngine, store: JobStore):
    store.add_job(_cron())
    await engine.start()
    await engine.stop()
    await engine.stop()
    assert engine.running is False
    assert engine.armed_ids == set()


@pytest.mark.asyncio
async def test_stop_without_start(engine: SchedulerEngine):
    await engine.stop()
    assert engine.running is False


# -- Job management --------------------------------------------------------------


@pytest.mark.asyncio
async def test_add_job_arms_and_announces(running: SchedulerEngine, store: JobStore, events):
    job = store.add_job(_cron())
    running.add_job(job)

    assert job.id in running.armed_ids
    assert [e.type for e in events] == [ChangeType.ADD]
    assert events[0].job == job


@pytest.mark.asyncio
async def test_add_disabled_job_announces_without_arming(
    running: SchedulerEngine, store: JobStore, events
):
    job = store.add_job(_cron(enabled=False))
    running.add_job(job)

    assert job.id not in running.armed_ids
    assert events[0].type is ChangeType.ADD


@pytest.mark.asyncio
async def test_remove_unknown_is_harmless(running: SchedulerEngine, store: JobStore, events):
    store.add_job(_cron())
    before = store.get_all_jobs()

    running.remove_job("nope")

    assert store.get_all_jobs() == before
    assert events[-1].type is ChangeType.REMOVE
    assert events[-1].job_id == "nope"


@pytest.mark.asyncio
async def test_update_disabled_disarms(running: SchedulerEngine, store: JobStore):
    job = store.add_job(_cron())
    running.add_job(job)

    disabled = store.update_job(job.id, enabled=False)
    running.update_job(job.id, disabled)

    assert job.id not in running.armed_ids


@pytest.mark.asyncio
async def test_update_replaces_schedule(running: SchedulerEngine, store: JobStore):
    job = store.add_job(_interval(schedule="1h", interval_ms=3600000))
    running.add_job(job)

    changed = store.update_job(job.id, schedule="30m", interval_ms=1800000)
    running.update_job(job.id, changed)

    assert running.armed_ids == {job.id}


# -- Next run ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_next_run_for_cron(running: SchedulerEngine, store: JobStore):
    job = store.add_job(_cron())
    running.add_job(job)

    now = datetime.now(timezone.utc)
    next_run = running.get_next_run(job.id)
    assert next_run is not None
    assert now < next_run <= now + timedelta(seconds=60)
    assert next_run.second == 0


@pytest.mark.asyncio
async def test_next_run_none_for_interval_and_once(running: SchedulerEngine, store: JobStore):
    interval = store.add_job(_interval(schedule="1h", interval_ms=3600000))
    once = store.add_job(_once(timedelta(hours=1)))
    running.add_job(interval)
    running.add_job(once)

    assert running.get_next_run(interval.id) is None
    assert running.get_next_run(once.id) is None
    assert running.get_next_run("nope") is None


# -- Execution -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_execute_success(engine: SchedulerEngine, store: JobStore, sink, events):
    job = store.add_job(_cron(name="greet", prompt="say hi"))

    assert await engine._execute_job(job.id) is True

    sink.deliver.assert_awaited_once_with(
        ScheduledPrompt(text="say hi", job_id=job.id, job_name="greet")
    )
    stored = store.get_job(job.id)
    assert stored.run_count == 1
    assert stored.last_status is JobStatus.SUCCESS
    assert stored.last_run is not None
    assert [e.type for e in events] == [ChangeType.FIRE, ChangeType.FIRE]
    assert events[-1].job.run_count == 1


@pytest.mark.asyncio
async def test_execute_failure_is_recorded(engine: SchedulerEngine, store: JobStore, sink, events):
    sink.deliver = AsyncMock(side_effect=RuntimeError("boom"))
    job = store.add_job(_cron())

    assert await engine._execute_job(job.id) is False

    stored = store.get_job(job.id)
    assert stored.last_status is JobStatus.ERROR
    assert stored.run_count == 1
    assert stored.enabled is True
    assert events[-1].type is ChangeType.ERROR
    assert events[-1].job_id == job.id
    assert events[-1].error == "boom"


@pytest.mark.asyncio
async def test_execute_missing_job(engine: SchedulerEngine, sink):
    assert await engine._execute_job("nope") is False
    sink.deliver.assert_not_awaited()


@pytest.mark.asyncio
async def test_execute_skips_disabled(engine: SchedulerEngine, store: JobStore, sink):
    job = store.add_job(_cron(enabled=False))
    assert await engine._execute_job(job.id) is False
    sink.deliver.assert_not_awaited()
    assert store.get_job(job.id).run_count == 0


@pytest.mark.asyncio
async def test_delivery_context_marks_job(engine: SchedulerEngine, store: JobStore, sink):
    seen: list[str | None] = []

    async def deliver(prompt):
        seen.append(current_delivery())

    sink.deliver = AsyncMock(side_effect=deliver)
    job = store.add_job(_cron())

    await engine._execute_job(job.id)

    assert seen == [job.id]
    assert current_delivery() is None


# -- Timers --------------------------------------------------------------------


@pytest.mark.asyncio
async def test_lapsed_once_job_is_retired_on_start(
    engine: SchedulerEngine, store: JobStore, sink, events
):
    job = store.add_job(_once(timedelta(minutes=-5)))

    await engine.start()
    try:
        stored = store.get_job(job.id)
        assert stored.enabled is False
        assert stored.last_status is JobStatus.ERROR
        assert job.id not in engine.armed_ids
        assert events[-1].type is ChangeType.ERROR
        assert "in the past" in events[-1].error
        sink.deliver.assert_not_awaited()
    finally:
        await engine.stop()


@pytest.mark.asyncio
async def test_once_job_fires_then_disables(store: JobStore, sink):
    job = store.add_job(_once(timedelta(milliseconds=300)))
    engine = SchedulerEngine(store, sink)

    await engine.start()
    try:
        await asyncio.sleep(1.0)
    finally:
        await engine.stop()

    sink.deliver.assert_awaited_once()
    stored = store.get_job(job.id)
    assert stored.enabled is False
    assert stored.run_count == 1
    assert stored.last_status is JobStatus.SUCCESS

    # A later session does not re-arm it
    later = SchedulerEngine(store, sink)
    await later.start()
    try:
        assert later.armed_ids == set()
    finally:
        await later.stop()


@pytest.mark.asyncio
async def test_interval_job_repeats(running: SchedulerEngine, store: JobStore, sink):
    job = store.add_job(_interval())
    running.add_job(job)

    await asyncio.sleep(2.5)

    stored = store.get_job(job.id)
    assert stored.run_count >= 2
    assert stored.enabled is True
    assert stored.last_status is JobStatus.SUCCESS
    assert sink.deliver.await_count >= 2


@pytest.mark.asyncio
async def test_disabled_interval_stops_firing(running: SchedulerEngine, store: JobStore, sink):
    job = store.add_job(_interval())
    running.add_job(job)
    await asyncio.sleep(1.3)

    running.update_job(job.id, store.update_job(job.id, enabled=False))
    fired = sink.deliver.await_count
    await asyncio.sleep(1.5)

    assert sink.deliver.await_count == fired


@pytest.mark.asyncio
async def test_bad_stored_cron_reports_arming_error(
    engine: SchedulerEngine, store: JobStore, events
):
    job = store.add_job(_cron(schedule="not a cron at all"))

    await engine.start()
    try:
        assert job.id not in engine.armed_ids
        assert events[-1].type is ChangeType.ERROR
        assert events[-1].job_id == job.id
        assert store.get_job(job.id).enabled is True
    finally:
        await engine.stop()


# -- Observers -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_failing_observer_does_not_block_others(running: SchedulerEngine, store: JobStore):
    received: list[ChangeType] = []

    def broken(event):
        raise RuntimeError("observer bug")

    running.subscribe(broken)
    running.subscribe(lambda event: received.append(event.type))

    running.add_job(store.add_job(_cron()))

    assert received == [ChangeType.ADD]


@pytest.mark.asyncio
async def test_unsubscribe(running: SchedulerEngine, store: JobStore):
    received: list[ChangeEvent] = []
    unsubscribe = running.subscribe(received.append)
    unsubscribe()

    running.add_job(store.add_job(_cron()))

    assert received == []


@pytest.mark.asyncio
async def test_cron_ticks_beside_failing_interval(
    running: SchedulerEngine, store: JobStore, sink
):
    """A job whose sink keeps failing leaves its neighbours firing."""
    cron = store.add_job(_cron(name="every-second", schedule="* * * * * *"))
    flaky = store.add_job(_interval(name="flaky"))

    async def deliver(prompt):
        if prompt.job_id == flaky.id:
            raise RuntimeError("sink down")

    sink.deliver = AsyncMock(side_effect=deliver)
    running.add_job(cron)
    running.add_job(flaky)

    await asyncio.sleep(3.2)

    cron_state = store.get_job(cron.id)
    assert cron_state.run_count >= 2
    assert cron_state.last_status is JobStatus.SUCCESS
    assert cron_state.next_run is not None

    flaky_state = store.get_job(flaky.id)
    assert flaky_state.run_count >= 2
    assert flaky_state.last_status is JobStatus.ERROR
    assert flaky_state.enabled is True


def _refuse_running_status(store: JobStore, monkeypatch):
    real_update = store.update_job

    def update_job(job_id, **fields):
        if fields.get("last_status") is JobStatus.RUNNING:
            raise PermissionError("store is read-only")
        return real_update(job_id, **fields)

    monkeypatch.setattr(store, "update_job", update_job)


@pytest.mark.asyncio
async def test_store_failure_does_not_escape(
    engine: SchedulerEngine, store: JobStore, sink, events, monkeypatch
):
    job = store.add_job(_cron())
    _refuse_running_status(store, monkeypatch)

    assert await engine._execute_job(job.id) is False

    sink.deliver.assert_not_awaited()
    assert events[-1].type is ChangeType.ERROR
    assert "read-only" in events[-1].error


@pytest.mark.asyncio
async def test_once_job_retired_when_bookkeeping_fails(
    engine: SchedulerEngine, store: JobStore, events, monkeypatch
):
    job = store.add_job(_once(timedelta(hours=1)))
    _refuse_running_status(store, monkeypatch)

    await engine._execute_once(job.id)

    assert store.get_job(job.id).enabled is False
    assert events[-1].type is ChangeType.UPDATE
