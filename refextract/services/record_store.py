"""
Master references table.

Single source of truth for every extracted reference across sessions:
- Persists to the database (write-through, full rewrite on every mutation)
- Deduplicates by citation key or normalized raw text
- Supports incremental additions and in-place enhancement updates

There is no locking. Two jobs that each load, modify and save the table can
interleave on the event loop, and the last writer wins.
"""

import logging
import re
from typing import Any

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from ..database import get_session_factory
from ..models import ExtractedReference, MasterTableStats, MergeStats
from ..models_db import MasterReference

logger = logging.getLogger(__name__)


def normalize_text(text: str) -> str:
    """Normalize reference text for duplicate comparison."""
    text = re.sub(r"\s+", " ", text.lower())
    text = re.sub(r"[^\w\s]", "", text)
    return text.strip()


class RecordStore:
    """
    Persistent, deduplicated collection of extracted references.

    Every read goes to the database and every mutating call ends in a full
    rewrite of the table, so callers only ever hold copies of records.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def load(self) -> list[ExtractedReference]:
        """
        Load all references in insertion order.

        Returns an empty list when nothing has been persisted yet.
        """
        with self._session_factory() as session:
            rows = session.scalars(
                select(MasterReference).order_by(MasterReference.position)
            ).all()
            references = [ExtractedReference.model_validate(row.data) for row in rows]

        if references:
            logger.info("Loaded %d references from master table", len(references))
        else:
            logger.info("Master table not found, starting fresh")
        return references

    def save(self, references: list[ExtractedReference]) -> None:
        """Replace the persisted table with ``references``."""
        with self._session_factory() as session:
            with session.begin():
                session.execute(delete(MasterReference))
                session.add_all(
                    MasterReference(
                        position=position,
                        citation_key=reference.citation_key,
                        data=reference.model_dump(mode="json", by_alias=True),
                    )
                    for position, reference in enumerate(references)
                )
        logger.info("Saved %d references to master table", len(references))

    def merge(self, new_references: list[ExtractedReference]) -> MergeStats:
        """
        Add new references, skipping duplicates.

        A reference is a duplicate when its citation key (case-insensitive)
        or its normalized raw text matches an existing or earlier-added
        record. Duplicates are never merged into or overwritten.

        Returns:
            Counts of added and skipped references and the new table size.
        """
        existing = self.load()

        existing_keys: set[str] = set()
        existing_raw_texts: set[str] = set()
        for reference in existing:
            self._remember(reference, existing_keys, existing_raw_texts)

        added = 0
        duplicates = 0
        for reference in new_references:
            is_duplicate = (
                reference.citation_key and reference.citation_key.lower() in existing_keys
            ) or (
                reference.reference_raw
                and normalize_text(reference.reference_raw) in existing_raw_texts
            )

            if is_duplicate:
                duplicates += 1
                logger.warning(
                    "Skipping duplicate: %s", reference.citation_key or reference.title
                )
                continue

            existing.append(reference.model_copy(deep=True))
            added += 1
            self._remember(reference, existing_keys, existing_raw_texts)

        self.save(existing)

        logger.info(
            "Master table updated: %d added, %d duplicates skipped, %d total",
            added,
            duplicates,
            len(existing),
        )
        return MergeStats(added=added, duplicates=duplicates, total=len(existing))

    @staticmethod
    def _remember(
        reference: ExtractedReference,
        keys: set[str],
        raw_texts: set[str],
    ) -> None:
        if reference.citation_key:
            keys.add(reference.citation_key.lower())
        if reference.reference_raw:
            raw_texts.add(normalize_text(reference.reference_raw))

    def update_by_citation_key(self, citation_key: str, updates: dict[str, Any]) -> bool:
        """
        Shallow-merge ``updates`` into the record with a matching citation key.

        Args:
            citation_key: Key to match (case-insensitive).
            updates: Field values keyed by field name or camelCase alias.

        Returns:
            True if a record was updated. False if the key was not found or
            the merged record would be invalid (nothing is saved then).
        """
        references = self.load()
        target = citation_key.lower()

        for index, reference in enumerate(references):
            if reference.citation_key.lower() != target:
                continue
            merged = reference.model_dump(by_alias=False)
            merged.update(self._canonical_updates(updates))
            try:
                references[index] = ExtractedReference.model_validate(merged)
            except ValidationError as e:
                logger.warning("Rejected update for %s: %s", citation_key, e)
                return False
            self.save(references)
            logger.info("Updated reference: %s", citation_key)
            return True

        logger.warning("Reference not found for update: %s", citation_key)
        return False

    @staticmethod
    def _canonical_updates(updates: dict[str, Any]) -> dict[str, Any]:
        """Translate camelCase aliases into field names."""
        alias_to_name = {
            field.alias: name
            for name, field in ExtractedReference.model_fields.items()
            if field.alias
        }
        return {alias_to_name.get(key, key): value for key, value in updates.items()}

    def clear(self) -> None:
        """Empty the master table."""
        self.save([])
        logger.info("Master table cleared")

    def stats(self) -> MasterTableStats:
        """
        Coarse statistics about the master table.

        The email/affiliation/needs-enhancement buckets scan ``extra_notes``
        text and are placeholders, not authoritative counts.
        """
        references = self.load()
        return MasterTableStats(
            total=len(references),
            with_emails=sum(1 for r in references if "@" in r.extra_notes),
            with_affiliations=sum(
                1
                for r in references
                if "University" in r.extra_notes or "Institute" in r.extra_notes
            ),
            needs_enhancement=sum(1 for r in references if not r.extra_notes),
            with_affiliation_field=sum(1 for r in references if r.first_author_affiliation),
        )


# Singleton instance for convenience
_record_store: RecordStore | None = None


def get_record_store() -> RecordStore:
    """Get or create the record store singleton."""
    global _record_store
    if _record_store is None:
        _record_store = RecordStore(get_session_factory())
    return _record_store
