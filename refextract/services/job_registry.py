"""
Registry of asynchronous jobs and their progress.

One registry instance per job kind is injected into its orchestrator. The
registry owns the job lifecycle:

- ``create`` at submission (status ``processing``, progress 0)
- ``update`` at checkpoints (progress never decreases)
- ``complete`` / ``fail`` at the terminal transition
- ``evict_expired`` once a terminal job is older than the retention window

Background work is started through ``spawn``; a task that raises is recorded
into its job as a failure instead of becoming an unobserved exception.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable, Coroutine
from datetime import datetime, timedelta
from functools import partial
from typing import Any, Generic, TypeVar

from ..models import EnhancementJob, ExtractionJob, JobStatus, ProgressSnapshot, utc_now
from .exceptions import JobNotFoundError

logger = logging.getLogger(__name__)

JobT = TypeVar("JobT", ExtractionJob, EnhancementJob)


class JobRegistry(Generic[JobT]):
    """In-memory job tracking with an explicit lifecycle."""

    def __init__(
        self,
        job_factory: Callable[[str], JobT],
        retention_seconds: float | None = None,
        on_change: Callable[[JobT], None] | None = None,
        name: str = "job",
    ):
        """
        Initialize the registry.

        Args:
            job_factory: Builds a fresh job model from a job id.
            retention_seconds: How long terminal jobs are kept by
                ``evict_expired``. None keeps them forever.
            on_change: Called with a copy of the job after every mutation
                (used to persist snapshots).
            name: Job kind, for log messages.
        """
        self._job_factory = job_factory
        self._retention = (
            timedelta(seconds=retention_seconds) if retention_seconds is not None else None
        )
        self._on_change = on_change
        self._name = name
        self._jobs: dict[str, JobT] = {}
        self._steps: dict[str, str] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def create(self, step: str = "initializing") -> JobT:
        """Insert a new job in ``processing`` state at progress 0."""
        job_id = str(uuid.uuid4())
        job = self._job_factory(job_id)
        self._jobs[job_id] = job
        self._steps[job_id] = step
        logger.info("Created %s %s", self._name, job_id)
        self._notify(job)
        return job.model_copy(deep=True)

    def update(self, job_id: str, step: str | None = None, **fields: Any) -> JobT:
        """
        Apply field changes to a job at a checkpoint.

        A progress value lower than the current one is ignored, so pollers
        always observe non-decreasing progress.

        Raises:
            JobNotFoundError: If the job is not registered.
        """
        job = self._require(job_id)
        if "progress" in fields:
            fields["progress"] = max(job.progress, int(fields["progress"]))

        updated = job.model_copy(update=fields)
        self._jobs[job_id] = updated
        if step is not None:
            self._steps[job_id] = step
            logger.info("[%s] Progress: %d%% - %s", job_id, updated.progress, step)
        self._notify(updated)
        return updated.model_copy(deep=True)

    def complete(self, job_id: str, step: str = "done", **fields: Any) -> JobT:
        """Mark a job completed at 100%."""
        return self.update(
            job_id,
            step=step,
            status=JobStatus.COMPLETED,
            progress=100,
            completed_at=utc_now(),
            **fields,
        )

    def fail(self, job_id: str, error: str, step: str = "error") -> JobT:
        """Mark a job failed at its last checkpoint and record the error message."""
        logger.error("%s %s failed: %s", self._name.capitalize(), job_id, error)
        return self.update(
            job_id,
            step=step,
            status=JobStatus.FAILED,
            error=error,
            completed_at=utc_now(),
        )

    def discard(self, job_id: str) -> None:
        """Forget a job (running tasks are left to finish)."""
        self._jobs.pop(job_id, None)
        self._steps.pop(job_id, None)

    def evict_expired(self, now: datetime | None = None) -> int:
        """
        Drop terminal jobs that finished longer ago than the retention window.

        Returns:
            Number of evicted jobs.
        """
        if self._retention is None:
            return 0
        cutoff = (now or utc_now()) - self._retention
        expired = [
            job_id
            for job_id, job in self._jobs.items()
            if job.status.is_terminal and job.completed_at and job.completed_at < cutoff
        ]
        for job_id in expired:
            self.discard(job_id)
        if expired:
            logger.info("Evicted %d expired %s(s)", len(expired), self._name)
        return len(expired)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, job_id: str) -> JobT | None:
        """Copy of the job, or None if unknown."""
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    def progress(self, job_id: str) -> ProgressSnapshot | None:
        """Status, progress and current step of a job."""
        job = self._jobs.get(job_id)
        if job is None:
            return None
        return ProgressSnapshot(
            status=job.status,
            progress=job.progress,
            step=self._steps.get(job_id, "unknown"),
        )

    def jobs(self) -> list[JobT]:
        """Copies of all registered jobs, oldest first."""
        return [job.model_copy(deep=True) for job in self._jobs.values()]

    # -------------------------------------------------------------------------
    # Background tasks
    # -------------------------------------------------------------------------

    def spawn(self, job_id: str, work: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """
        Run ``work`` as a detached task bound to ``job_id``.

        Must be called from inside a running event loop. If the task raises
        or is cancelled and the job is not already terminal, the job is
        marked failed with the error message.
        """
        self._require(job_id)
        task = asyncio.create_task(work, name=f"{self._name}-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(partial(self._on_task_done, job_id))
        return task

    async def wait(self, job_id: str) -> None:
        """Wait for a spawned task to finish, whatever its outcome."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def _on_task_done(self, job_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(job_id, None)

        if task.cancelled():
            error: BaseException | None = asyncio.CancelledError("Job was cancelled")
        else:
            error = task.exception()
        if error is None:
            return

        logger.error(
            "%s %s raised in background", self._name.capitalize(), job_id, exc_info=error
        )
        job = self._jobs.get(job_id)
        if job is not None and not job.status.is_terminal:
            self.fail(job_id, str(error) or type(error).__name__)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require(self, job_id: str) -> JobT:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _notify(self, job: JobT) -> None:
        if self._on_change is not None:
            self._on_change(job.model_copy(deep=True))
