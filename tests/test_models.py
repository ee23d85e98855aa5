"""Tests for Pydantic models."""

import pytest
from pydantic import ValidationError

from refextract.models import (
    Confidence,
    EnhancementJob,
    ExtractedReference,
    ExtractionJob,
    JobStatus,
    MergeStats,
)


class TestExtractedReference:
    """Tests for the ExtractedReference record."""

    def test_defaults(self):
        """Test optional fields default to empty strings."""
        reference = ExtractedReference(citation_key="X'99", title="T")
        assert reference.first_author == ""
        assert reference.isbn == ""
        assert reference.first_author_affiliation is None
        assert reference.confidence == Confidence.HIGH
        assert reference.extraction_method == "llm"

    def test_requires_title_or_author(self):
        """Test a record with neither title nor first author is rejected."""
        with pytest.raises(ValidationError):
            ExtractedReference(citation_key="X'99")

    def test_author_without_title_is_valid(self):
        """Test a first author alone is enough."""
        reference = ExtractedReference(citation_key="X'99", first_author="A")
        assert reference.title == ""

    def test_citation_key_required(self):
        """Test the citation key is mandatory."""
        with pytest.raises(ValidationError):
            ExtractedReference(title="T")

    def test_camel_case_aliases(self):
        """Test records serialize with camelCase and accept both spellings."""
        reference = ExtractedReference.model_validate(
            {"citationKey": "Hill '79", "firstAuthor": "Banu Musa brothers"}
        )
        data = reference.model_dump(by_alias=True)
        assert data["citationKey"] == "Hill '79"
        assert data["firstAuthor"] == "Banu Musa brothers"
        assert "firstAuthorAffiliation" in data

        by_name = ExtractedReference(citation_key="Hill '79", first_author="Banu Musa brothers")
        assert by_name == reference

    def test_extraction_method_is_fixed(self):
        """Test only the llm extraction method is accepted."""
        with pytest.raises(ValidationError):
            ExtractedReference(citation_key="X'99", title="T", extraction_method="regex")


class TestJobs:
    """Tests for job models."""

    def test_extraction_job_defaults(self):
        """Test a new extraction job starts processing at zero."""
        job = ExtractionJob(job_id="job-1")
        assert job.status == JobStatus.PROCESSING
        assert job.progress == 0
        assert job.extracted_references == []
        assert job.created_at.tzinfo is not None
        assert job.completed_at is None

    def test_enhancement_job_wire_format(self):
        """Test enhancement jobs serialize their counters in camelCase."""
        job = EnhancementJob(job_id="job-1", processed_references=2, enhanced_references=1)
        data = job.model_dump(mode="json", by_alias=True)
        assert data["processedReferences"] == 2
        assert data["enhancedReferences"] == 1
        assert data["status"] == "processing"

    def test_progress_bounds(self):
        """Test progress outside 0-100 is rejected."""
        with pytest.raises(ValidationError):
            ExtractionJob(job_id="job-1", progress=101)

    def test_terminal_statuses(self):
        """Test only completed and failed are terminal."""
        assert not JobStatus.PROCESSING.is_terminal
        assert JobStatus.COMPLETED.is_terminal
        assert JobStatus.FAILED.is_terminal

    def test_merge_stats_non_negative(self):
        """Test merge counters cannot be negative."""
        with pytest.raises(ValidationError):
            MergeStats(added=-1, duplicates=0, total=0)
