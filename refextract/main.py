"""
FastAPI application for the reference extraction service.

Provides endpoints for:
- Uploading PDFs and extracting their bibliographic references
- Browsing, summarizing and clearing the master references table
- Enhancing records with first-author affiliations
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import get_settings
from .database import init_db
from .models import HealthResponse
from .routers import enhancement, extraction, master
from .services.affiliation import close_affiliation_resolver
from .services.ai import AIServiceError, get_ai_service
from .services.exceptions import InvalidDocumentError, JobNotFoundError
from .services.pdf_service import PDFConversionError, get_pdf_service

# Logging
logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and warm up services; close the lookup HTTP client on exit."""
    logger.info("Starting Reference Extraction Service...")
    init_db()
    get_pdf_service()
    get_ai_service()
    logger.info("Services initialized successfully")
    yield
    await close_affiliation_resolver()
    logger.info("Shutting down Reference Extraction Service...")


app = FastAPI(
    title="Reference Extraction API",
    description="LLM-based bibliographic reference extraction with affiliation enhancement",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Liveness probe with the service version."""
    return HealthResponse(status="healthy", version=__version__)


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(status="healthy", version=__version__)


# =============================================================================
# Routers
# =============================================================================

app.include_router(extraction.router)
app.include_router(master.router)
app.include_router(enhancement.router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(PDFConversionError)
async def pdf_conversion_error_handler(request, exc: PDFConversionError):
    """Unreadable PDFs are reported as unprocessable."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)},
    )


@app.exception_handler(AIServiceError)
async def ai_service_error_handler(request, exc: AIServiceError):
    """LLM provider failures surface as 503 so clients can retry."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)},
    )


@app.exception_handler(InvalidDocumentError)
async def invalid_document_error_handler(request, exc: InvalidDocumentError):
    """Handle documents rejected before a job is created."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


@app.exception_handler(JobNotFoundError)
async def job_not_found_error_handler(request, exc: JobNotFoundError):
    """Handle unknown job ids."""
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )
