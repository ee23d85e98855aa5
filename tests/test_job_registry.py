"""Tests for the job registry lifecycle and background task handling."""

import asyncio
from datetime import timedelta

import pytest

from refextract.models import EnhancementJob, ExtractionJob, JobStatus, utc_now
from refextract.services.exceptions import JobNotFoundError
from refextract.services.job_registry import JobRegistry


def make_registry(**kwargs) -> JobRegistry[EnhancementJob]:
    return JobRegistry(job_factory=lambda job_id: EnhancementJob(job_id=job_id), **kwargs)


class TestLifecycle:
    """Tests for create/update/complete/fail."""

    def test_create(self):
        """Test new jobs start processing at zero with the initial step."""
        registry = make_registry()
        job = registry.create()

        assert job.status == JobStatus.PROCESSING
        assert job.progress == 0
        assert registry.progress(job.job_id).step == "initializing"
        assert job.job_id in registry

    def test_progress_never_decreases(self):
        """Test a lower progress value is ignored."""
        registry = make_registry()
        job_id = registry.create().job_id

        registry.update(job_id, progress=40, step="halfway")
        registry.update(job_id, progress=10, step="late report")

        snapshot = registry.progress(job_id)
        assert snapshot.progress == 40
        assert snapshot.step == "late report"

    def test_complete_and_fail(self):
        """Test terminal transitions set progress and completion time."""
        registry = make_registry()
        done = registry.complete(registry.create().job_id, enhanced_references=2)
        failed = registry.fail(registry.create().job_id, "boom")

        assert done.status == JobStatus.COMPLETED
        assert done.progress == 100
        assert done.enhanced_references == 2
        assert done.completed_at is not None
        assert failed.status == JobStatus.FAILED
        assert failed.error == "boom"
        assert failed.progress == 0
        assert failed.completed_at is not None
        assert registry.progress(failed.job_id).step == "error"

    def test_unknown_job(self):
        registry = make_registry()
        assert registry.get("missing") is None
        assert registry.progress("missing") is None
        with pytest.raises(JobNotFoundError):
            registry.update("missing", progress=10)

    def test_get_returns_copy(self):
        """Test callers cannot mutate registry state through returned jobs."""
        registry = make_registry()
        job_id = registry.create().job_id
        registry.get(job_id).progress = 99
        assert registry.get(job_id).progress == 0

    def test_on_change_receives_every_mutation(self):
        """Test the change hook sees each snapshot in order."""
        seen: list[int] = []
        registry = JobRegistry(
            job_factory=lambda job_id: ExtractionJob(job_id=job_id),
            on_change=lambda job: seen.append(job.progress),
        )
        job_id = registry.create().job_id
        registry.update(job_id, progress=30)
        registry.complete(job_id)
        assert seen == [0, 30, 100]


class TestEviction:
    """Tests for retention-based eviction."""

    def test_evicts_only_old_terminal_jobs(self):
        registry = make_registry(retention_seconds=60)
        old = registry.complete(registry.create().job_id).job_id
        running = registry.create().job_id

        later = utc_now() + timedelta(seconds=120)
        assert registry.evict_expired(now=later) == 1
        assert old not in registry
        assert running in registry

    def test_no_retention_keeps_everything(self):
        registry = make_registry()
        registry.complete(registry.create().job_id)
        assert registry.evict_expired(now=utc_now() + timedelta(days=365)) == 0
        assert len(registry) == 1


class TestBackgroundTasks:
    """Tests for spawn and the catch-and-record contract."""

    @pytest.mark.asyncio
    async def test_successful_task(self):
        registry = make_registry()
        job_id = registry.create().job_id

        async def work():
            registry.complete(job_id)

        registry.spawn(job_id, work())
        await registry.wait(job_id)
        assert registry.get(job_id).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_raising_task_fails_job(self):
        """Test an exception escaping the task is recorded into the job."""
        registry = make_registry()
        job_id = registry.create().job_id

        async def work():
            registry.update(job_id, progress=20)
            raise RuntimeError("lookup store unavailable")

        registry.spawn(job_id, work())
        await registry.wait(job_id)

        job = registry.get(job_id)
        assert job.status == JobStatus.FAILED
        assert job.error == "lookup store unavailable"
        assert job.progress == 20

    @pytest.mark.asyncio
    async def test_already_failed_job_is_not_overwritten(self):
        """Test a task that records its own failure keeps its message."""
        registry = make_registry()
        job_id = registry.create().job_id

        async def work():
            registry.fail(job_id, "recorded by the task")
            raise ValueError("re-raised")

        registry.spawn(job_id, work())
        await registry.wait(job_id)
        assert registry.get(job_id).error == "recorded by the task"

    @pytest.mark.asyncio
    async def test_cancelled_task_fails_job(self):
        registry = make_registry()
        job_id = registry.create().job_id

        task = registry.spawn(job_id, asyncio.sleep(10))
        await asyncio.sleep(0)
        task.cancel()
        await registry.wait(job_id)
        # Done callbacks run on the next loop iteration
        await asyncio.sleep(0)

        assert registry.get(job_id).status == JobStatus.FAILED
