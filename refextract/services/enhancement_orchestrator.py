"""
Orchestrator for affiliation enhancement of the master table.

Looks up the first-author affiliation of every record that has an author
but no affiliation yet, one record at a time.
"""

import logging

from ..config import get_settings
from ..models import EnhancementJob
from .affiliation import AffiliationResolver, get_affiliation_resolver
from .job_registry import JobRegistry
from .record_store import RecordStore, get_record_store

logger = logging.getLogger(__name__)


class EnhancementOrchestrator:
    """Runs enhancement jobs in the background and reports their status."""

    def __init__(
        self,
        record_store: RecordStore,
        resolver: AffiliationResolver,
        registry: JobRegistry[EnhancementJob] | None = None,
        retention_seconds: float | None = None,
    ):
        self._record_store = record_store
        self._resolver = resolver
        self.registry = registry or JobRegistry(
            job_factory=lambda job_id: EnhancementJob(job_id=job_id),
            retention_seconds=retention_seconds,
            name="enhancement job",
        )

    def start(self) -> str:
        """
        Start an enhancement run over the whole master table.

        Must be called from inside a running event loop.

        Returns:
            The new job id.
        """
        self.registry.evict_expired()
        job = self.registry.create()
        logger.info("Starting affiliation enhancement, job %s", job.job_id)
        self.registry.spawn(job.job_id, self._run(job.job_id))
        return job.job_id

    async def _run(self, job_id: str) -> EnhancementJob:
        try:
            references = self._record_store.load()
            pending = [
                reference
                for reference in references
                if reference.first_author and not reference.first_author_affiliation
            ]
            self.registry.update(
                job_id,
                step=f"{len(pending)} references need enhancement",
                total_references=len(pending),
            )

            if not pending:
                logger.info("[%s] No references need affiliation enhancement", job_id)
                return self.registry.complete(job_id)

            by_key = {reference.citation_key: reference for reference in references}
            enhanced = 0
            for index, reference in enumerate(pending):
                try:
                    result = await self._resolver.resolve(
                        reference.first_author, reference.title, reference.year
                    )
                except Exception:
                    logger.exception(
                        "[%s] Affiliation lookup failed for %s", job_id, reference.citation_key
                    )
                    result = None

                if result is not None and result.affiliation:
                    target = by_key.get(reference.citation_key)
                    if target is not None:
                        target.first_author_affiliation = result.affiliation
                        enhanced += 1
                        logger.info(
                            "[%s] Enhanced %s: %s (%s)",
                            job_id,
                            reference.citation_key,
                            result.affiliation,
                            result.source.value,
                        )

                self.registry.update(
                    job_id,
                    step=f"processed {index + 1}/{len(pending)}",
                    processed_references=index + 1,
                    enhanced_references=enhanced,
                    progress=round((index + 1) / len(pending) * 100),
                )

            self._record_store.save(references)
            logger.info(
                "[%s] Enhancement complete: %d/%d references enhanced",
                job_id,
                enhanced,
                len(pending),
            )
            return self.registry.complete(job_id)
        except Exception as e:
            logger.exception("[%s] Enhancement failed", job_id)
            self.registry.fail(job_id, str(e) or type(e).__name__)
            raise

    def get_status(self, job_id: str) -> EnhancementJob | None:
        """Current state of an enhancement job, or None if unknown."""
        return self.registry.get(job_id)

    def list_jobs(self) -> list[EnhancementJob]:
        """All enhancement jobs still held in memory."""
        self.registry.evict_expired()
        return self.registry.jobs()

    async def wait(self, job_id: str) -> EnhancementJob | None:
        """Wait for a job's background task and return its final state."""
        await self.registry.wait(job_id)
        return self.get_status(job_id)


# Singleton instance for convenience
_enhancement_orchestrator: EnhancementOrchestrator | None = None


def get_enhancement_orchestrator() -> EnhancementOrchestrator:
    """Get or create the enhancement orchestrator singleton."""
    global _enhancement_orchestrator
    if _enhancement_orchestrator is None:
        _enhancement_orchestrator = EnhancementOrchestrator(
            record_store=get_record_store(),
            resolver=get_affiliation_resolver(),
            retention_seconds=get_settings().enhancement_job_retention_seconds,
        )
    return _enhancement_orchestrator
