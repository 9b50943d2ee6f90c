"""
subject_store.py — Read-only lookup of subject profiles by identifier.

Two backends share the ``SubjectStore`` protocol:
    SQLSubjectStore       — the ``subjects`` table via async SQLAlchemy
    InMemorySubjectStore  — a dict of profile documents (dev / tests)

A missing subject is reported as ``None``; connectivity problems raise.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Protocol, runtime_checkable

from sos_backend.app.alerts.models import EmergencyContact, Subject
from sos_backend.app.alerts.tables import SubjectRow
from sos_backend.app.core.database import Database

logger = logging.getLogger(__name__)


@runtime_checkable
class SubjectStore(Protocol):
    async def get(self, subject_id: str) -> Optional[Subject]:
        """Return the subject, or None if no profile exists for the id."""
        ...


class SQLSubjectStore:
    def __init__(self, database: Database):
        self._db = database

    async def get(self, subject_id: str) -> Optional[Subject]:
        async with self._db.session() as session:
            row = await session.get(SubjectRow, subject_id)
        if row is None:
            logger.debug("No subject row for id %s", subject_id)
            return None
        return Subject(
            subject_id=row.id,
            name=row.name,
            email=row.email,
            phone=row.phone,
            emergency_contacts=[
                EmergencyContact.from_dict(c)
                for c in (row.emergency_contacts or [])
                if isinstance(c, dict)
            ],
        )


class InMemorySubjectStore:
    """Profiles keyed by id, stored as plain documents."""

    def __init__(self, documents: Optional[Dict[str, Dict[str, Any]]] = None):
        self._documents: Dict[str, Dict[str, Any]] = dict(documents or {})

    @classmethod
    def from_json_file(cls, path: str) -> "InMemorySubjectStore":
        """Load ``{subject_id: profile}`` from a JSON file."""
        documents = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(documents, dict):
            raise ValueError(f"{path}: expected an object keyed by subject id")
        logger.info("Loaded %d subject profiles from %s", len(documents), path)
        return cls(documents)

    @classmethod
    def from_subjects(cls, subjects: Iterable[Subject]) -> "InMemorySubjectStore":
        return cls({
            s.subject_id: {
                "name": s.name,
                "email": s.email,
                "phone": s.phone,
                "emergency_contacts": [c.to_dict() for c in s.emergency_contacts],
            }
            for s in subjects
        })

    async def get(self, subject_id: str) -> Optional[Subject]:
        doc = self._documents.get(subject_id)
        if doc is None:
            logger.debug("No subject document for id %s", subject_id)
            return None
        return Subject.from_dict(subject_id, doc)
