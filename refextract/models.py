"""
Pydantic models for the reference extraction pipeline.

Defines strict types for extracted references, job state and API payloads.
Everything is serialized with camelCase aliases on the wire and on disk.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model with camelCase aliases that still accepts field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Confidence(str, Enum):
    """Confidence bucket attached to references and affiliation results."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class JobStatus(str, Enum):
    """Status of an asynchronous job."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PROCESSING


class AffiliationSource(str, Enum):
    """Where an affiliation lookup result came from."""

    SEMANTIC_SCHOLAR = "semantic-scholar"
    PERPLEXITY = "perplexity"
    OPENALEX = "openalex"
    NONE = "none"
    ERROR = "error"
    SKIPPED_HISTORICAL = "skipped-historical"


# =============================================================================
# Reference Records
# =============================================================================


class ExtractedReference(CamelModel):
    """
    One bibliographic entry in the master table.

    A record must carry at least a title or a first author; anything else is
    rejected at construction time so it can never reach the store.
    """

    citation_key: str = Field(
        ...,
        description="Citation key exactly as printed, without brackets",
        examples=["Hill '79", "Wiener '48"],
    )
    first_author: str = Field(default="", description="First/primary author")
    other_authors: str = Field(
        default="",
        description="Remaining authors, semicolon-separated",
    )
    title: str = Field(default="")
    year: str = Field(default="", description="Publication year as printed")
    publisher_journal: str = Field(default="", description="Publisher or journal")
    volume_issue: str = Field(default="", examples=["Vol. 1", "13(2)"])
    pages: str = Field(default="", examples=["p. 44", "197-219"])
    extra_notes: str = Field(default="")
    isbn: str = Field(default="")
    first_author_affiliation: str | None = Field(
        default=None,
        description="Institution of the first author (set by enhancement only)",
    )
    reference_raw: str = Field(
        default="",
        description="Original reference text, used as a dedup fallback",
    )
    confidence: Confidence = Field(default=Confidence.HIGH)
    extraction_method: Literal["llm"] = Field(default="llm")

    @model_validator(mode="after")
    def require_title_or_author(self) -> "ExtractedReference":
        """Reject records with neither title nor first author."""
        if not self.title and not self.first_author:
            raise ValueError("A reference needs a title or a first author")
        return self


class MergeStats(CamelModel):
    """Outcome of merging new references into the master table."""

    added: int = Field(..., ge=0)
    duplicates: int = Field(..., ge=0)
    total: int = Field(..., ge=0)


class MasterTableStats(CamelModel):
    """
    Coarse master table statistics.

    ``with_emails``, ``with_affiliations`` and ``needs_enhancement`` are
    heuristics over ``extra_notes``; ``with_affiliation_field`` counts the
    dedicated affiliation field.
    """

    total: int = Field(..., ge=0)
    with_emails: int = Field(..., ge=0)
    with_affiliations: int = Field(..., ge=0)
    needs_enhancement: int = Field(..., ge=0)
    with_affiliation_field: int = Field(..., ge=0)


class PageText(CamelModel):
    """Text of one PDF page."""

    page_number: int = Field(..., ge=1)
    text: str = Field(default="")
    is_ocr: bool = Field(default=False, description="Text came from OCR")


# =============================================================================
# Jobs
# =============================================================================


class ExtractionJob(CamelModel):
    """Tracks the processing of one uploaded document."""

    job_id: str
    status: JobStatus = JobStatus.PROCESSING
    progress: int = Field(default=0, ge=0, le=100)
    total_references: int = Field(
        default=0,
        ge=0,
        description="Size of the master table after this job merged",
    )
    extracted_references: list[ExtractedReference] = Field(default_factory=list)
    error: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None


class EnhancementJob(CamelModel):
    """Tracks one affiliation enhancement run (memory only)."""

    job_id: str
    status: JobStatus = JobStatus.PROCESSING
    progress: int = Field(default=0, ge=0, le=100)
    total_references: int = Field(default=0, ge=0)
    processed_references: int = Field(default=0, ge=0)
    enhanced_references: int = Field(default=0, ge=0)
    error: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None


class ProgressSnapshot(CamelModel):
    """Lightweight progress view used for polling."""

    status: JobStatus
    progress: int = Field(..., ge=0, le=100)
    step: str = Field(default="unknown", description="Human-readable current step")


class JobConfidenceStats(CamelModel):
    """Confidence buckets of one extraction job's references."""

    total_references: int = Field(..., ge=0)
    high_confidence: int = Field(..., ge=0)
    medium_confidence: int = Field(..., ge=0)
    low_confidence: int = Field(..., ge=0)


class AffiliationResult(CamelModel):
    """Result of a tiered affiliation lookup."""

    affiliation: str | None = None
    confidence: Confidence = Confidence.LOW
    source: AffiliationSource = AffiliationSource.NONE


# =============================================================================
# API Models
# =============================================================================


class HealthResponse(CamelModel):
    """Health check response."""

    status: str = Field(default="healthy")
    version: str = Field(default="1.0.0")
    mode: str = Field(default="llm-only")


class StartJobResponse(CamelModel):
    """Response for endpoints that start a background job."""

    job_id: str = Field(..., description="Job ID (UUID)")
    message: str = Field(default="Job started")


class ExtractionStatusResponse(CamelModel):
    """Polling response for an extraction job."""

    job_id: str
    status: JobStatus
    progress: int = Field(..., ge=0, le=100)
    total_references: int = Field(..., ge=0)
    extracted_count: int = Field(..., ge=0)
    current_step: str
    error: str | None = None


class JobSummary(CamelModel):
    """Compact listing entry for an extraction job."""

    job_id: str
    status: JobStatus
    total_references: int = Field(..., ge=0)
    created_at: datetime
    completed_at: datetime | None = None


class MasterTableResponse(CamelModel):
    """Full contents of the master table."""

    total: int = Field(..., ge=0)
    references: list[ExtractedReference] = Field(default_factory=list)


class MessageResponse(CamelModel):
    """Plain acknowledgement."""

    message: str
