"""
Services package for the reference extraction pipeline.

Contains:
- pdf_service: page text extraction with OCR fallback
- ai: OpenAI-backed reference extraction
- affiliation: tiered first-author affiliation lookup
- record_store / job_store: SQLAlchemy persistence
- job_registry: in-memory job lifecycle and background tasks
- extraction_orchestrator / enhancement_orchestrator: the two job kinds
- polling: caller-side waiting for jobs
"""

from .affiliation import AffiliationResolver
from .ai import AIService
from .enhancement_orchestrator import EnhancementOrchestrator
from .extraction_orchestrator import ExtractionOrchestrator
from .job_registry import JobRegistry
from .job_store import ExtractionJobStore
from .pdf_service import PDFService
from .polling import JobPollTimeout, wait_for_job
from .record_store import RecordStore

__all__ = [
    "AIService",
    "AffiliationResolver",
    "EnhancementOrchestrator",
    "ExtractionJobStore",
    "ExtractionOrchestrator",
    "JobPollTimeout",
    "JobRegistry",
    "PDFService",
    "RecordStore",
    "wait_for_job",
]
