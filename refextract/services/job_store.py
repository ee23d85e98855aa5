"""
Persistent storage for extraction jobs.

Jobs are written at every progress checkpoint so their history survives
restarts, independently of the master references table.
"""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from ..database import get_session_factory
from ..models import ExtractionJob
from ..models_db import ExtractionJobRecord
from .exceptions import JobNotFoundError

logger = logging.getLogger(__name__)


def _to_record(job: ExtractionJob) -> ExtractionJobRecord:
    return ExtractionJobRecord(
        job_id=job.job_id,
        status=job.status.value,
        progress=job.progress,
        total_references=job.total_references,
        extracted_references=[
            reference.model_dump(mode="json", by_alias=True)
            for reference in job.extracted_references
        ],
        error=job.error,
        created_at=job.created_at,
        completed_at=job.completed_at,
    )


def _to_job(record: ExtractionJobRecord) -> ExtractionJob:
    return ExtractionJob.model_validate(
        {
            "job_id": record.job_id,
            "status": record.status,
            "progress": record.progress,
            "total_references": record.total_references,
            "extracted_references": record.extracted_references or [],
            "error": record.error,
            "created_at": record.created_at,
            "completed_at": record.completed_at,
        }
    )


class ExtractionJobStore:
    """Load/save/list/delete access to persisted extraction jobs."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def save(self, job: ExtractionJob) -> None:
        """Insert or replace a job snapshot."""
        with self._session_factory() as session:
            with session.begin():
                session.merge(_to_record(job))
        logger.debug("Saved job %s (%s, %d%%)", job.job_id, job.status.value, job.progress)

    def load(self, job_id: str) -> ExtractionJob | None:
        """Load a job, or None if it was never saved."""
        with self._session_factory() as session:
            record = session.get(ExtractionJobRecord, job_id)
            return _to_job(record) if record else None

    def list(self) -> list[ExtractionJob]:
        """All persisted jobs, most recent first."""
        with self._session_factory() as session:
            records = session.scalars(
                select(ExtractionJobRecord).order_by(ExtractionJobRecord.created_at.desc())
            ).all()
            return [_to_job(record) for record in records]

    def delete(self, job_id: str) -> None:
        """
        Delete a persisted job.

        Raises:
            JobNotFoundError: If no such job exists.
        """
        with self._session_factory() as session:
            with session.begin():
                record = session.get(ExtractionJobRecord, job_id)
                if record is None:
                    raise JobNotFoundError(job_id)
                session.delete(record)
        logger.info("Deleted job %s", job_id)


# Singleton instance for convenience
_job_store: ExtractionJobStore | None = None


def get_extraction_job_store() -> ExtractionJobStore:
    """Get or create the extraction job store singleton."""
    global _job_store
    if _job_store is None:
        _job_store = ExtractionJobStore(get_session_factory())
    return _job_store
