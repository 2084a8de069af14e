"""Tests for the jobs CLI commands."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from schedprompt import __version__
from schedprompt.cli.main import app as root_app
from schedprompt.cli.schedule_commands import app
from schedprompt.scheduler.manager import JobManager
from schedprompt.scheduler.models import JobKind, PromptJob, format_timestamp

runner = CliRunner()


@pytest.fixture(autouse=True)
def patch_manager(manager: JobManager):
    """Point the commands at the tmp_path-backed manager."""
    with patch("schedprompt.cli.schedule_commands._get_manager", return_value=manager):
        yield


def test_list_empty():
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert "No scheduled prompts configured" in result.output


def test_add_and_list(manager: JobManager):
    result = runner.invoke(app, ["add", "0 */5 * * * *", "check the build", "--name", "ci"])
    assert result.exit_code == 0
    assert "Added job" in result.output
    assert "ci" in result.output

    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert "Scheduled Prompts" in result.output
    assert "ci" in result.output
    assert "1 jobs total" in result.output


def test_add_interval(manager: JobManager):
    result = runner.invoke(app, ["add", "5m", "stretch", "-t", "interval"])
    assert result.exit_code == 0
    job = manager.list_jobs()[0]
    assert job.kind is JobKind.INTERVAL
    assert job.interval_ms == 300000


def test_add_invalid_cron(manager: JobManager):
    result = runner.invoke(app, ["add", "*/5 * * * *", "nope"])
    assert result.exit_code == 1
    assert "Error" in result.output
    assert manager.list_jobs() == []


def test_add_duplicate_name(manager: JobManager):
    manager.create("0 * * * * *", "a", name="daily")
    result = runner.invoke(app, ["add", "1h", "b", "-t", "interval", "-n", "daily"])
    assert result.exit_code == 1
    assert "already exists" in result.output


def test_remove(manager: JobManager):
    job = manager.create("0 * * * * *", "a", name="gone")
    result = runner.invoke(app, ["remove", job.id])
    assert result.exit_code == 0
    assert "Removed" in result.output
    assert manager.list_jobs() == []


def test_remove_missing():
    result = runner.invoke(app, ["remove", "nope"])
    assert result.exit_code == 1
    assert "Job not found: nope" in result.output


def test_disable_then_enable(manager: JobManager):
    job = manager.create("0 * * * * *", "a")

    result = runner.invoke(app, ["disable", job.id])
    assert result.exit_code == 0
    assert manager.get_job(job.id).enabled is False

    result = runner.invoke(app, ["enable", job.id])
    assert result.exit_code == 0
    assert manager.get_job(job.id).enabled is True


def test_enable_lapsed_once(manager: JobManager):
    job = PromptJob(
        kind=JobKind.ONCE,
        schedule=format_timestamp(datetime.now(timezone.utc) - timedelta(hours=1)),
        prompt="late",
        enabled=False,
    )
    manager.store.add_job(job)

    result = runner.invoke(app, ["enable", job.id])
    assert result.exit_code == 1
    assert "could not be enabled" in result.output


def test_update(manager: JobManager):
    job = manager.create("5m", "a", kind="interval")
    result = runner.invoke(app, ["update", job.id, "-s", "10m", "-p", "b"])
    assert result.exit_code == 0
    stored = manager.get_job(job.id)
    assert stored.schedule == "10m"
    assert stored.interval_ms == 600000
    assert stored.prompt == "b"


def test_cleanup(manager: JobManager):
    job = manager.create("0 * * * * *", "a", name="old")
    manager.disable(job.id)

    result = runner.invoke(app, ["cleanup"])
    assert result.exit_code == 0
    assert "Removed 1 disabled job(s)" in result.output
    assert manager.list_jobs() == []

    result = runner.invoke(app, ["cleanup"])
    assert "No disabled jobs" in result.output


def test_version():
    result = runner.invoke(root_app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
