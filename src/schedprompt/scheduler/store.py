"""JSON file persistence for scheduled prompts."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from schedprompt.config.constants import STORE_VERSION
from schedprompt.scheduler.models import JobCollection, JobStatus, PromptJob

logger = logging.getLogger("schedprompt.scheduler.store")


class JobStore:
    """Load/save scheduled prompts from a single JSON file.

    Every operation is a full load → mutate → save cycle against the file,
    so separate JobStore instances over the same path always agree. Cycles
    are serialized by a per-instance lock; writes go to a temp file that is
    then atomically renamed over the real one.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    # -- Persistence -----------------------------------------------------------

    def load(self) -> JobCollection:
        """Read the whole store. Missing or unreadable files yield an empty one."""
        if not self._path.exists():
            return JobCollection()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            collection = JobCollection.model_validate(data)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError, ValidationError) as exc:
            logger.warning("Failed to load scheduled prompts from %s: %s", self._path, exc)
            return JobCollection()
        if collection.version > STORE_VERSION:
            logger.warning(
                "Store %s has format version %d (newer than %d); reading as-is",
                self._path,
                collection.version,
                STORE_VERSION,
            )
        logger.debug("Loaded %d scheduled prompts from %s", len(collection.jobs), self._path)
        return collection

    def save(self, collection: JobCollection) -> None:
        """Persist the whole store atomically."""
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_name(self._path.name + ".tmp")
            tmp.write_text(json.dumps(collection.to_record(), indent=2), encoding="utf-8")
            tmp.replace(self._path)

    # -- CRUD ------------------------------------------------------------------

    def add_job(self, job: PromptJob) -> PromptJob:
        """Append a job and persist."""
        with self._lock:
            collection = self.load()
            collection.jobs.append(job)
            self.save(collection)
        return job

    def remove_job(self, job_id: str) -> bool:
        """Remove a job by ID. Returns True if it existed."""
        with self._lock:
            collection = self.load()
            remaining = [job for job in collection.jobs if job.id != job_id]
            if len(remaining) == len(collection.jobs):
                return False
            collection.jobs = remaining
            self.save(collection)
        return True

    def update_job(self, job_id: str, **fields: Any) -> Optional[PromptJob]:
        """Apply *fields* to the stored job and persist. Returns the new state."""
        with self._lock:
            collection = self.load()
            for index, job in enumerate(collection.jobs):
                if job.id == job_id:
                    updated = job.model_copy(update=fields)
                    collection.jobs[index] = updated
                    self.save(collection)
                    return updated
        return None

    def record_run(
        self,
        job_id: str,
        status: JobStatus,
        ran_at: datetime,
        next_run: Optional[datetime] = None,
    ) -> Optional[PromptJob]:
        """Store the outcome of one execution attempt and bump ``run_count``.

        The increment happens inside a single load/save cycle so concurrent
        fires of the same job cannot lose a count.
        """
        with self._lock:
            collection = self.load()
            for index, job in enumerate(collection.jobs):
                if job.id == job_id:
                    updated = job.model_copy(
                        update={
                            "last_run": ran_at,
                            "last_status": status,
                            "next_run": next_run,
                            "run_count": job.run_count + 1,
                        }
                    )
                    collection.jobs[index] = updated
                    self.save(collection)
                    return updated
        return None

    def get_job(self, job_id: str) -> Optional[PromptJob]:
        """Retrieve a job by ID."""
        return self.load().find(job_id)

    def get_all_jobs(self) -> list[PromptJob]:
        """Return all jobs in store order."""
        return self.load().jobs

    def has_job_with_name(self, name: str, exclude_id: Optional[str] = None) -> bool:
        """Exact, case-sensitive name check, optionally ignoring one job."""
        return any(
            job.name == name and job.id != exclude_id for job in self.load().jobs
        )
