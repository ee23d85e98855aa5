"""
Router for affiliation enhancement endpoints.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ..models import EnhancementJob, StartJobResponse
from ..services.enhancement_orchestrator import (
    EnhancementOrchestrator,
    get_enhancement_orchestrator,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/enhance", tags=["enhancement"])


@router.post("", response_model=StartJobResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_enhancement(
    orchestrator: EnhancementOrchestrator = Depends(get_enhancement_orchestrator),
) -> StartJobResponse:
    """
    Start looking up first-author affiliations for the master table.

    Returns immediately with the job ID; poll ``/enhance/status/{job_id}``.
    """
    job_id = orchestrator.start()
    return StartJobResponse(job_id=job_id, message="Affiliation enhancement started")


@router.get("/status/{job_id}", response_model=EnhancementJob)
async def get_enhancement_status(
    job_id: str,
    orchestrator: EnhancementOrchestrator = Depends(get_enhancement_orchestrator),
) -> EnhancementJob:
    """Poll the progress of an enhancement job."""
    job = orchestrator.get_status(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found",
        )
    return job


@router.get("/jobs", response_model=list[EnhancementJob])
async def list_enhancement_jobs(
    orchestrator: EnhancementOrchestrator = Depends(get_enhancement_orchestrator),
) -> list[EnhancementJob]:
    """Enhancement jobs still held in memory."""
    return orchestrator.list_jobs()
