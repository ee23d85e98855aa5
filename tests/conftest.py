"""Pytest configuration and fixtures."""

import copy
import os
from collections.abc import Generator
from types import SimpleNamespace

import pytest

# Keep the application off the developer's database and API keys
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["OPENAI_API_KEY"] = ""
os.environ["PERPLEXITY_API_KEY"] = ""

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from refextract.database import create_session_factory, init_db  # noqa: E402
from refextract.main import app  # noqa: E402
from refextract.models import (  # noqa: E402
    AffiliationResult,
    AffiliationSource,
    Confidence,
    ExtractedReference,
    PageText,
)
from refextract.services.ai import coerce_reference_list, normalize_references  # noqa: E402
from refextract.services.enhancement_orchestrator import (  # noqa: E402
    EnhancementOrchestrator,
    get_enhancement_orchestrator,
)
from refextract.services.extraction_orchestrator import (  # noqa: E402
    ExtractionOrchestrator,
    get_extraction_orchestrator,
)
from refextract.services.job_store import ExtractionJobStore  # noqa: E402
from refextract.services.record_store import RecordStore, get_record_store  # noqa: E402


# =============================================================================
# Persistence
# =============================================================================


@pytest.fixture
def session_factory(tmp_path) -> sessionmaker[Session]:
    """Session factory bound to a fresh SQLite file with all tables created."""
    factory = create_session_factory(f"sqlite:///{tmp_path / 'references.db'}")
    init_db(factory)
    return factory


@pytest.fixture
def record_store(session_factory) -> RecordStore:
    return RecordStore(session_factory)


@pytest.fixture
def job_store(session_factory) -> ExtractionJobStore:
    return ExtractionJobStore(session_factory)


# =============================================================================
# Sample Data
# =============================================================================


@pytest.fixture
def sample_references() -> list[ExtractedReference]:
    """Three distinct references as the extractor would produce them."""
    return [
        ExtractedReference(
            citation_key="Hill '79",
            first_author="Banu Musa brothers",
            title="The book of ingenious devices",
            year="1979",
            publisher_journal="Springer",
            reference_raw="[Hill '79] Banu Musa brothers (1979). The book of ingenious devices.",
        ),
        ExtractedReference(
            citation_key="Wiener '48",
            first_author="Norbert Wiener",
            title="Cybernetics",
            year="1948",
            publisher_journal="MIT Press",
            reference_raw="[Wiener '48] N. Wiener. Cybernetics. MIT Press, 1948.",
        ),
        ExtractedReference(
            citation_key="Pugh '90",
            first_author="William Pugh",
            title="Skip lists: a probabilistic alternative to balanced trees",
            year="1990",
            publisher_journal="Communications of the ACM",
            volume_issue="33(6)",
            pages="668-676",
            reference_raw="[Pugh '90] W. Pugh. Skip lists. CACM 33(6), 1990.",
        ),
    ]


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """
    Create a minimal valid PDF for testing.

    This is a minimal PDF structure that should be recognized as a valid PDF.
    """
    return b"""%PDF-1.4
1 0 obj
<< /Type /Catalog /Pages 2 0 R >>
endobj
2 0 obj
<< /Type /Pages /Kids [3 0 R] /Count 1 >>
endobj
3 0 obj
<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R >>
endobj
4 0 obj
<< /Length 44 >>
stream
BT
/F1 12 Tf
100 700 Td
(Test) Tj
ET
endstream
endobj
xref
0 5
0000000000 65535 f
0000000009 00000 n
0000000058 00000 n
0000000115 00000 n
0000000214 00000 n
trailer
<< /Size 5 /Root 1 0 R >>
startxref
306
%%EOF"""


@pytest.fixture
def invalid_file_bytes() -> bytes:
    """Create invalid (non-PDF) file bytes for testing."""
    return b"This is not a PDF file"


# =============================================================================
# Fakes
# =============================================================================


class FakeChatCompletions:
    """Stands in for ``AsyncOpenAI().chat.completions``."""

    def __init__(self, responses: list[str | Exception]):
        self.responses = list(responses)
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=response))]
        )


def make_openai_client(*responses: str | Exception) -> SimpleNamespace:
    """
    Fake AsyncOpenAI client returning ``responses`` in order.

    The last response is repeated once the others are used up.
    """
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeChatCompletions(list(responses))))


def fake_page_extractor(text: str):
    """Page-text collaborator that returns ``text`` as a single page."""

    def extract(document: bytes) -> list[PageText]:
        return [PageText(page_number=1, text=text)]

    return extract


def fake_reference_extractor(payload: dict | list):
    """Reference extractor that normalizes a fixed model payload."""

    async def extract(text: str) -> list[ExtractedReference]:
        return normalize_references(coerce_reference_list(copy.deepcopy(payload)))

    return extract


class FakeResolver:
    """Affiliation resolver returning canned results per first author."""

    def __init__(self, results: dict | None = None, errors: dict | None = None):
        self.results = results or {}
        self.errors = errors or {}
        self.calls: list[tuple[str, str, str]] = []

    async def resolve(self, author_name: str, title: str, year: str = ""):
        self.calls.append((author_name, title, year))
        if author_name in self.errors:
            raise self.errors[author_name]
        affiliation = self.results.get(author_name)
        if affiliation is None:
            return AffiliationResult()
        return AffiliationResult(
            affiliation=affiliation,
            confidence=Confidence.HIGH,
            source=AffiliationSource.PERPLEXITY,
        )


SINGLE_REFERENCE_PAYLOAD = {
    "references": [{"citationKey": "X'99", "title": "T", "firstAuthor": "A"}]
}


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def extraction_orchestrator(record_store, job_store) -> ExtractionOrchestrator:
    return ExtractionOrchestrator(
        record_store=record_store,
        job_store=job_store,
        extract_pages=fake_page_extractor("[X'99] A. T. Publisher, 1999."),
        extract_references=fake_reference_extractor(SINGLE_REFERENCE_PAYLOAD),
    )


@pytest.fixture
def enhancement_orchestrator(record_store) -> EnhancementOrchestrator:
    return EnhancementOrchestrator(
        record_store=record_store,
        resolver=FakeResolver({"A": "MIT (US)"}),
    )


@pytest.fixture
def client(
    record_store, extraction_orchestrator, enhancement_orchestrator
) -> Generator[TestClient, None, None]:
    """Create a test client with the services bound to a temporary database."""
    app.dependency_overrides[get_record_store] = lambda: record_store
    app.dependency_overrides[get_extraction_orchestrator] = lambda: extraction_orchestrator
    app.dependency_overrides[get_enhancement_orchestrator] = lambda: enhancement_orchestrator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
