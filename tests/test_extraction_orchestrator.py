"""Tests for the extraction orchestrator."""

from datetime import timedelta

import pytest
from conftest import SINGLE_REFERENCE_PAYLOAD, fake_page_extractor, fake_reference_extractor

from refextract.models import Confidence, ExtractionJob, JobStatus, PageText, utc_now
from refextract.services.exceptions import InvalidDocumentError, JobNotFoundError
from refextract.services.extraction_orchestrator import ExtractionOrchestrator
from refextract.services.pdf_service import PDFConversionError


def make_orchestrator(record_store, job_store, **overrides) -> ExtractionOrchestrator:
    options = {
        "extract_pages": fake_page_extractor("[X'99] A. T. Publisher, 1999."),
        "extract_references": fake_reference_extractor(SINGLE_REFERENCE_PAYLOAD),
    }
    options.update(overrides)
    return ExtractionOrchestrator(record_store=record_store, job_store=job_store, **options)


class TestSubmit:
    """Tests for a successful extraction run."""

    @pytest.mark.asyncio
    async def test_single_reference_document(self, record_store, job_store):
        """Test a one-reference document ends up completed in the store."""
        orchestrator = make_orchestrator(record_store, job_store)

        job_id = orchestrator.submit(b"%PDF-1.4 document")
        job = await orchestrator.wait(job_id)

        assert job.status == JobStatus.COMPLETED
        assert job.progress == 100
        assert job.total_references == 1
        assert [r.citation_key for r in job.extracted_references] == ["X'99"]

        stored = record_store.load()
        assert len(stored) == 1
        assert stored[0].citation_key == "X'99"
        assert stored[0].extraction_method == "llm"
        assert stored[0].confidence == Confidence.HIGH

    @pytest.mark.asyncio
    async def test_resubmission_reports_duplicates(self, record_store, job_store):
        """Test resubmitting the same document adds nothing."""
        orchestrator = make_orchestrator(record_store, job_store)
        await orchestrator.wait(orchestrator.submit(b"%PDF-1.4 document"))

        merges = []
        original_merge = record_store.merge

        def tracking_merge(references):
            stats = original_merge(references)
            merges.append(stats)
            return stats

        record_store.merge = tracking_merge
        job = await orchestrator.wait(orchestrator.submit(b"%PDF-1.4 document"))

        assert job.status == JobStatus.COMPLETED
        assert (merges[0].added, merges[0].duplicates, merges[0].total) == (0, 1, 1)
        assert len(record_store.load()) == 1

    @pytest.mark.asyncio
    async def test_snapshots_persisted_with_monotonic_progress(self, record_store, job_store):
        """Test every checkpoint is saved and progress never goes back."""
        saved: list[ExtractionJob] = []
        original_save = job_store.save

        def tracking_save(job):
            saved.append(job)
            original_save(job)

        job_store.save = tracking_save
        orchestrator = make_orchestrator(record_store, job_store)
        job_id = orchestrator.submit(b"%PDF-1.4 document")
        await orchestrator.wait(job_id)

        progress = [job.progress for job in saved]
        assert progress == sorted(progress)
        assert progress[0] == 0
        assert progress[-1] == 100
        assert {10, 30, 40, 90}.issubset(progress)
        assert job_store.load(job_id).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_pages_joined_with_blank_line(self, record_store, job_store):
        """Test the extractor receives all pages separated by blank lines."""
        received: list[str] = []
        base_extract = fake_reference_extractor(SINGLE_REFERENCE_PAYLOAD)

        async def recording_extract(text):
            received.append(text)
            return await base_extract(text)

        orchestrator = make_orchestrator(
            record_store,
            job_store,
            extract_pages=lambda document: [
                PageText(page_number=1, text="page one"),
                PageText(page_number=2, text="page two"),
            ],
            extract_references=recording_extract,
        )
        await orchestrator.wait(orchestrator.submit(b"%PDF-1.4 document"))
        assert received == ["page one\n\npage two"]


class TestFailures:
    """Tests for failed extraction runs."""

    def test_empty_document_rejected_synchronously(self, record_store, job_store):
        """Test an empty document raises before any job exists."""
        orchestrator = make_orchestrator(record_store, job_store)
        with pytest.raises(InvalidDocumentError):
            orchestrator.submit(b"")
        assert orchestrator.list_jobs() == []

    def test_non_pdf_rejected_synchronously(self, record_store, job_store, invalid_file_bytes):
        """Test bytes without the PDF header raise before any job exists."""
        orchestrator = make_orchestrator(record_store, job_store)
        with pytest.raises(PDFConversionError):
            orchestrator.submit(invalid_file_bytes)
        assert len(orchestrator.registry) == 0
        assert orchestrator.list_jobs() == []

    @pytest.mark.asyncio
    async def test_zero_references_fails_job(self, record_store, job_store):
        """Test an extraction with no usable references fails the job."""
        orchestrator = make_orchestrator(
            record_store,
            job_store,
            extract_references=fake_reference_extractor({"references": [{"citationKey": "K"}]}),
        )
        job = await orchestrator.wait(orchestrator.submit(b"%PDF-1.4 document"))

        assert job.status == JobStatus.FAILED
        assert "No references" in job.error
        assert job.completed_at is not None
        assert record_store.load() == []

    @pytest.mark.asyncio
    async def test_page_extraction_error_fails_job(self, record_store, job_store):
        """Test a collaborator error is recorded, not raised to the caller."""

        def broken_pages(document):
            raise PDFConversionError("Invalid or corrupted PDF file")

        orchestrator = make_orchestrator(record_store, job_store, extract_pages=broken_pages)
        job_id = orchestrator.submit(b"%PDF-1.4 document")
        job = await orchestrator.wait(job_id)

        assert job.status == JobStatus.FAILED
        assert job.error == "Invalid or corrupted PDF file"
        assert job.progress == 10
        assert orchestrator.get_progress(job_id).step == "error"
        assert job_store.load(job_id).status == JobStatus.FAILED


class TestJobManagement:
    """Tests for listing, stats and deletion."""

    @pytest.mark.asyncio
    async def test_list_stats_delete(self, record_store, job_store):
        orchestrator = make_orchestrator(record_store, job_store)
        job_id = orchestrator.submit(b"%PDF-1.4 document")
        await orchestrator.wait(job_id)

        assert [job.job_id for job in orchestrator.list_jobs()] == [job_id]

        stats = orchestrator.get_job_stats(job_id)
        assert stats.total_references == 1
        assert stats.high_confidence == 1
        assert stats.low_confidence == 0

        orchestrator.delete_job(job_id)
        assert orchestrator.get_job(job_id) is None
        assert orchestrator.get_progress(job_id) is None
        with pytest.raises(JobNotFoundError):
            orchestrator.delete_job(job_id)

    def test_progress_from_store_after_restart(self, record_store, job_store):
        """Test a job known only to the store reports an unknown step."""
        job_store.save(ExtractionJob(job_id="persisted", status=JobStatus.COMPLETED, progress=100))
        orchestrator = make_orchestrator(record_store, job_store)

        snapshot = orchestrator.get_progress("persisted")
        assert snapshot.status == JobStatus.COMPLETED
        assert snapshot.step == "unknown"


class TestRetention:
    """Tests for evicting finished jobs from memory."""

    @pytest.mark.asyncio
    async def test_evicted_job_answered_from_store(self, record_store, job_store):
        """Test a completed job past the window is served by the job store."""
        orchestrator = make_orchestrator(record_store, job_store, retention_seconds=60)
        job_id = orchestrator.submit(b"%PDF-1.4 document")
        await orchestrator.wait(job_id)

        assert orchestrator.registry.evict_expired(now=utc_now() + timedelta(minutes=5)) == 1
        assert job_id not in orchestrator.registry

        job = orchestrator.get_job(job_id)
        assert job.status == JobStatus.COMPLETED
        assert [r.citation_key for r in job.extracted_references] == ["X'99"]
        snapshot = orchestrator.get_progress(job_id)
        assert snapshot.progress == 100
        assert snapshot.step == "unknown"

    @pytest.mark.asyncio
    async def test_submit_evicts_finished_jobs(self, record_store, job_store):
        orchestrator = make_orchestrator(record_store, job_store, retention_seconds=0)
        first = orchestrator.submit(b"%PDF-1.4 document")
        await orchestrator.wait(first)

        second = orchestrator.submit(b"%PDF-1.4 document")
        await orchestrator.wait(second)

        assert first not in orchestrator.registry
        assert len(orchestrator.registry) == 1
        assert orchestrator.get_job(first).status == JobStatus.COMPLETED
