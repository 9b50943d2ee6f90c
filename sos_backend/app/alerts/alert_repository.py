"""
alert_repository.py — Append-only storage of SOS alert records.

``add(record)`` writes one record and returns its generated identifier,
document-store style. There is no update or delete path.

Backends:
    SQLAlertRepository       — the ``active_alerts`` table; the database
                               assigns ``created_at``
    InMemoryAlertRepository  — dict of records; ``created_at`` never goes
                               backwards even if the wall clock does
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol, runtime_checkable

from sos_backend.app.alerts.models import AlertRecord
from sos_backend.app.alerts.tables import AlertRow
from sos_backend.app.core.database import Database

logger = logging.getLogger(__name__)


def generate_alert_id() -> str:
    return uuid.uuid4().hex[:20]


@runtime_checkable
class AlertRepository(Protocol):
    async def add(self, record: AlertRecord) -> str:
        """Persist a new alert and return its id."""
        ...


class SQLAlertRepository:
    def __init__(self, database: Database):
        self._db = database

    async def add(self, record: AlertRecord) -> str:
        alert_id = generate_alert_id()
        row = AlertRow(
            id=alert_id,
            user_id=record.subject_id,
            student_name=record.subject_name,
            student_email=record.subject_email,
            student_phone=record.subject_phone,
            latitude=record.latitude,
            longitude=record.longitude,
            status=record.status.value,
            resolved=record.resolved,
        )
        async with self._db.session() as session:
            session.add(row)
            await session.flush()
            await session.refresh(row, attribute_names=["created_at"])
            record.created_at = row.created_at

        logger.debug("Inserted alert row %s", alert_id)
        return alert_id


class InMemoryAlertRepository:
    def __init__(self):
        self.records: Dict[str, AlertRecord] = {}
        self._last_created_at: Optional[datetime] = None

    def _next_timestamp(self) -> datetime:
        now = datetime.now(timezone.utc)
        if self._last_created_at is not None and now < self._last_created_at:
            now = self._last_created_at
        self._last_created_at = now
        return now

    async def add(self, record: AlertRecord) -> str:
        alert_id = generate_alert_id()
        while alert_id in self.records:
            alert_id = generate_alert_id()
        record.created_at = self._next_timestamp()
        self.records[alert_id] = record
        return alert_id

    def __len__(self) -> int:
        return len(self.records)
