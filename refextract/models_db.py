"""
SQLAlchemy database models for the reference extraction application.

This module defines the ORM models for persisting the master references
table and the extraction job history.
"""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class MasterReference(Base):
    """
    One row of the master references table.

    The full record is kept as camelCase JSON in ``data``; ``position``
    preserves insertion order across full rewrites of the table.
    """

    __tablename__ = "master_references"

    position: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=False,
    )
    citation_key: Mapped[str] = mapped_column(
        String(255),
        default="",
        index=True,
    )
    data: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        comment="Full ExtractedReference as JSON",
    )

    def __repr__(self) -> str:
        return f"<MasterReference(position={self.position}, citation_key='{self.citation_key}')>"


class ExtractionJobRecord(Base):
    """
    Persisted state of one extraction job.

    Written at every progress checkpoint so job history survives restarts.
    """

    __tablename__ = "extraction_jobs"

    job_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
    )
    progress: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    total_references: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    extracted_references: Mapped[list] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<ExtractionJobRecord(job_id={self.job_id}, status='{self.status}', progress={self.progress})>"
