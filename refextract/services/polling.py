"""
Caller-side polling of job status until a job finishes.

Abandoning a poll never stops the background task; the poll itself gives up
after a bounded number of attempts and reports that as a timeout, which is
distinct from a job that failed.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from ..models import EnhancementJob, ExtractionJob, ProgressSnapshot

logger = logging.getLogger(__name__)

StatusT = TypeVar("StatusT", ExtractionJob, EnhancementJob, ProgressSnapshot)

# Extraction: up to 10 minutes at 2s intervals
EXTRACTION_POLL_INTERVAL = 2.0
EXTRACTION_POLL_ATTEMPTS = 300

# Enhancement: up to 10 minutes at 1s intervals
ENHANCEMENT_POLL_INTERVAL = 1.0
ENHANCEMENT_POLL_ATTEMPTS = 600


class JobPollTimeout(Exception):
    """Raised when a job is still running after the last poll attempt."""

    def __init__(self, attempts: int, last_status: object | None = None):
        super().__init__(f"Job did not finish after {attempts} polling attempts")
        self.attempts = attempts
        self.last_status = last_status


async def wait_for_job(
    fetch_status: Callable[[], StatusT | None],
    interval: float = EXTRACTION_POLL_INTERVAL,
    max_attempts: int = EXTRACTION_POLL_ATTEMPTS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> StatusT:
    """
    Poll ``fetch_status`` until it reports a terminal status.

    Args:
        fetch_status: Returns the job's current status (None while unknown).
        interval: Seconds between attempts.
        max_attempts: Attempts before giving up.
        sleep: Awaitable delay, injectable for tests.

    Returns:
        The final status, whether the job completed or failed.

    Raises:
        JobPollTimeout: If the job is still running after ``max_attempts``.
    """
    status = None
    for attempt in range(1, max_attempts + 1):
        status = fetch_status()
        if status is not None and status.status.is_terminal:
            logger.info(
                "Job finished with status %s after %d poll(s)", status.status.value, attempt
            )
            return status
        if attempt < max_attempts:
            await sleep(interval)

    logger.warning("Giving up on job after %d polling attempts", max_attempts)
    raise JobPollTimeout(max_attempts, status)
