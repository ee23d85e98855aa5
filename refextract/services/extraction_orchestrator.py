"""
Orchestrator for LLM batch reference extraction.

Steps: PDF -> page text -> LLM extracts all references -> master table.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from ..config import get_settings
from ..models import (
    ExtractedReference,
    ExtractionJob,
    JobConfidenceStats,
    MergeStats,
    PageText,
    ProgressSnapshot,
)
from .ai import get_ai_service
from .exceptions import EmptyExtractionError, InvalidDocumentError, JobNotFoundError
from .job_registry import JobRegistry
from .job_store import ExtractionJobStore, get_extraction_job_store
from .pdf_service import check_pdf_header, get_pdf_service
from .record_store import RecordStore, get_record_store

logger = logging.getLogger(__name__)

PageTextExtractor = Callable[[bytes], list[PageText]]
ReferenceExtractor = Callable[[str], Awaitable[list[ExtractedReference]]]


class ExtractionOrchestrator:
    """
    Turns uploaded documents into deduplicated master table records.

    Each submission becomes a background job whose snapshots are persisted
    to the job store at every checkpoint.
    """

    def __init__(
        self,
        record_store: RecordStore,
        job_store: ExtractionJobStore,
        extract_pages: PageTextExtractor,
        extract_references: ReferenceExtractor,
        registry: JobRegistry[ExtractionJob] | None = None,
        retention_seconds: float | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            record_store: Master table the results are merged into.
            job_store: Persistence for job snapshots.
            extract_pages: Blocking PDF bytes -> page text collaborator
                (run in a worker thread).
            extract_references: Async text -> references extractor.
            registry: Job registry; a persisting one is built if omitted.
            retention_seconds: How long finished jobs stay in memory before
                queries fall back to the job store. None keeps them.
        """
        self._record_store = record_store
        self._job_store = job_store
        self._extract_pages = extract_pages
        self._extract_references = extract_references
        self.registry = registry or JobRegistry(
            job_factory=lambda job_id: ExtractionJob(job_id=job_id),
            retention_seconds=retention_seconds,
            on_change=job_store.save,
            name="extraction job",
        )

    def submit(self, document: bytes) -> str:
        """
        Start extracting references from a PDF document.

        Returns immediately; progress is observed via ``get_progress``.
        Must be called from inside a running event loop. Input errors are
        raised before any job is created.

        Raises:
            InvalidDocumentError: If the document is empty.
            PDFConversionError: If the bytes are not a PDF.
        """
        if not document:
            raise InvalidDocumentError("No PDF content provided")
        check_pdf_header(document)

        self.registry.evict_expired()
        job = self.registry.create()
        logger.info("Starting LLM batch extraction, job %s", job.job_id)
        self.registry.spawn(job.job_id, self._process(job.job_id, document))
        return job.job_id

    async def _process(self, job_id: str, document: bytes) -> MergeStats:
        """Run the extraction pipeline for one job."""
        start_time = time.monotonic()

        # Step 1: page text
        self.registry.update(job_id, progress=10, step="extracting text from PDF")
        pages = await asyncio.to_thread(self._extract_pages, document)
        full_text = "\n\n".join(page.text for page in pages)
        logger.info(
            "[%s] Extracted %d characters from %d pages", job_id, len(full_text), len(pages)
        )
        self.registry.update(job_id, progress=30, step="text extraction complete")

        # Step 2: LLM extracts all references at once
        self.registry.update(job_id, progress=40, step="LLM processing references")
        references = await self._extract_references(full_text)
        if not references:
            raise EmptyExtractionError("No references were extracted from the text")

        logger.info("[%s] LLM extracted %d references", job_id, len(references))
        self.registry.update(job_id, progress=90, step="extraction complete")

        # Step 3: master table (with deduplication)
        stats = self._record_store.merge(references)
        logger.info(
            "[%s] Master table: %d new, %d duplicates, %d total",
            job_id,
            stats.added,
            stats.duplicates,
            stats.total,
        )

        # Step 4: final job state
        self.registry.complete(
            job_id,
            extracted_references=references,
            total_references=stats.total,
        )
        logger.info(
            "[%s] Extraction complete in %.1fs: %d extracted, %d added",
            job_id,
            time.monotonic() - start_time,
            len(references),
            stats.added,
        )
        return stats

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_progress(self, job_id: str) -> ProgressSnapshot | None:
        """
        Progress of a job for polling.

        Jobs no longer in memory (e.g. after a restart) are answered from the
        job store with an unknown step.
        """
        snapshot = self.registry.progress(job_id)
        if snapshot is not None:
            return snapshot
        job = self._job_store.load(job_id)
        if job is None:
            return None
        return ProgressSnapshot(status=job.status, progress=job.progress)

    def get_job(self, job_id: str) -> ExtractionJob | None:
        """Full job state, including the extracted references once completed."""
        return self.registry.get(job_id) or self._job_store.load(job_id)

    def list_jobs(self) -> list[ExtractionJob]:
        """All persisted jobs, most recent first."""
        return self._job_store.list()

    def delete_job(self, job_id: str) -> None:
        """
        Delete a job from the store and the registry.

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        in_memory = job_id in self.registry
        self.registry.discard(job_id)
        try:
            self._job_store.delete(job_id)
        except JobNotFoundError:
            if not in_memory:
                raise

    def get_job_stats(self, job_id: str) -> JobConfidenceStats | None:
        """Counts of a job's extracted references per confidence bucket."""
        job = self.get_job(job_id)
        if job is None:
            return None
        references = job.extracted_references
        return JobConfidenceStats(
            total_references=len(references),
            high_confidence=sum(1 for r in references if r.confidence == "high"),
            medium_confidence=sum(1 for r in references if r.confidence == "medium"),
            low_confidence=sum(1 for r in references if r.confidence == "low"),
        )

    async def wait(self, job_id: str) -> ExtractionJob | None:
        """Wait for a job's background task and return its final state."""
        await self.registry.wait(job_id)
        return self.get_job(job_id)


# Singleton instance for convenience
_extraction_orchestrator: ExtractionOrchestrator | None = None


def get_extraction_orchestrator() -> ExtractionOrchestrator:
    """Get or create the extraction orchestrator singleton."""
    global _extraction_orchestrator
    if _extraction_orchestrator is None:
        _extraction_orchestrator = ExtractionOrchestrator(
            record_store=get_record_store(),
            job_store=get_extraction_job_store(),
            extract_pages=get_pdf_service().extract_pages,
            extract_references=get_ai_service().extract_references,
            retention_seconds=get_settings().extraction_job_retention_seconds,
        )
    return _extraction_orchestrator
