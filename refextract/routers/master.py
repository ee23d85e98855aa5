"""
Router for the master references table.
"""

import logging

from fastapi import APIRouter, Depends

from ..models import MasterTableResponse, MasterTableStats, MessageResponse
from ..services.record_store import RecordStore, get_record_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/master", tags=["master"])


@router.get("", response_model=MasterTableResponse)
async def get_master_table(
    store: RecordStore = Depends(get_record_store),
) -> MasterTableResponse:
    """All references extracted so far, in insertion order."""
    references = store.load()
    return MasterTableResponse(total=len(references), references=references)


@router.get("/stats", response_model=MasterTableStats)
async def get_master_stats(
    store: RecordStore = Depends(get_record_store),
) -> MasterTableStats:
    """Coarse statistics about the master table."""
    return store.stats()


@router.delete("", response_model=MessageResponse)
async def clear_master_table(
    store: RecordStore = Depends(get_record_store),
) -> MessageResponse:
    """Remove every reference from the master table."""
    store.clear()
    logger.warning("Master table cleared via API")
    return MessageResponse(message="Master table cleared")
