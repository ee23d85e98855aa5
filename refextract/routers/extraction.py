"""
Router for reference extraction endpoints.

Handles:
- PDF upload that starts a background extraction job
- Job status polling and results
- Extraction job history (list, delete, confidence stats)
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from ..config import Settings, get_settings
from ..models import (
    ExtractionJob,
    ExtractionStatusResponse,
    JobConfidenceStats,
    JobSummary,
    MessageResponse,
    StartJobResponse,
)
from ..services.exceptions import InvalidDocumentError, JobNotFoundError
from ..services.extraction_orchestrator import (
    ExtractionOrchestrator,
    get_extraction_orchestrator,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["extraction"])


@router.post("/extract", response_model=StartJobResponse, status_code=status.HTTP_202_ACCEPTED)
async def extract(
    file: Annotated[UploadFile, File(description="PDF file containing references")],
    orchestrator: ExtractionOrchestrator = Depends(get_extraction_orchestrator),
    settings: Settings = Depends(get_settings),
) -> StartJobResponse:
    """
    Upload a PDF and start extracting its references.

    Returns immediately with the job ID; poll ``/status/{job_id}``.
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No filename provided",
        )

    if not file.filename.lower().endswith(".pdf"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only PDF files are accepted",
        )

    try:
        file_bytes = await file.read()
    finally:
        await file.close()

    if not file_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Empty file provided",
        )

    if len(file_bytes) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {settings.max_upload_bytes // (1024 * 1024)}MB upload limit",
        )

    logger.info("Processing PDF: %s (%d bytes)", file.filename, len(file_bytes))

    try:
        job_id = orchestrator.submit(file_bytes)
    except InvalidDocumentError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return StartJobResponse(job_id=job_id, message="Extraction started")


@router.get("/status/{job_id}", response_model=ExtractionStatusResponse)
async def get_status(
    job_id: str,
    orchestrator: ExtractionOrchestrator = Depends(get_extraction_orchestrator),
) -> ExtractionStatusResponse:
    """Poll the progress of an extraction job."""
    snapshot = orchestrator.get_progress(job_id)
    job = orchestrator.get_job(job_id)
    if snapshot is None or job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found",
        )

    return ExtractionStatusResponse(
        job_id=job_id,
        status=snapshot.status,
        progress=snapshot.progress,
        total_references=job.total_references,
        extracted_count=len(job.extracted_references),
        current_step=snapshot.step,
        error=job.error,
    )


@router.get("/results/{job_id}", response_model=ExtractionJob)
async def get_results(
    job_id: str,
    orchestrator: ExtractionOrchestrator = Depends(get_extraction_orchestrator),
) -> ExtractionJob:
    """Full job state, including the extracted references once completed."""
    job = orchestrator.get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found",
        )
    return job


@router.get("/jobs", response_model=list[JobSummary])
async def list_jobs(
    orchestrator: ExtractionOrchestrator = Depends(get_extraction_orchestrator),
) -> list[JobSummary]:
    """List extraction jobs, most recent first."""
    return [
        JobSummary(
            job_id=job.job_id,
            status=job.status,
            total_references=job.total_references,
            created_at=job.created_at,
            completed_at=job.completed_at,
        )
        for job in orchestrator.list_jobs()
    ]


@router.delete("/jobs/{job_id}", response_model=MessageResponse)
async def delete_job(
    job_id: str,
    orchestrator: ExtractionOrchestrator = Depends(get_extraction_orchestrator),
) -> MessageResponse:
    """Delete an extraction job. The master table is not affected."""
    try:
        orchestrator.delete_job(job_id)
    except JobNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found",
        )
    return MessageResponse(message=f"Job {job_id} deleted")


@router.get("/jobs/{job_id}/stats", response_model=JobConfidenceStats)
async def get_job_stats(
    job_id: str,
    orchestrator: ExtractionOrchestrator = Depends(get_extraction_orchestrator),
) -> JobConfidenceStats:
    """Confidence breakdown of a job's extracted references."""
    stats = orchestrator.get_job_stats(job_id)
    if stats is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found",
        )
    return stats
