"""
alert_service.py — SOS alert pipeline orchestration.

The central coordinator that:
    1. Validates that latitude, longitude and subject id are present
    2. Resolves the subject profile from the record store
    3. Persists a denormalized AlertRecord and obtains its id
    4. Fans out to the push and email channels concurrently
    5. Assembles an AlertResult with one boolean per channel

═══════════════════════════════════════════════════════════════════════════
ORCHESTRATION FLOW
═══════════════════════════════════════════════════════════════════════════

    ┌─────────────────────┐
    │  1. Validate        │  None / "" → ValidationError (400)
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  2. Subject lookup  │  unknown id → NotFoundError (404)
    │                     │  store error → InternalError (500)
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  3. Persist alert   │  write error → InternalError (500),
    │                     │  no notifications sent
    └─────────┬───────────┘
              ▼
    ┌──────────┴──────────┐
    ▼                     ▼
  Push channel       Email channel     asyncio.gather, each guarded:
    │                     │            exception / timeout → FAILED
    └──────────┬──────────┘
               ▼
    ┌─────────────────────┐
    │  5. AlertResult     │  always success once step 3 succeeded
    └─────────────────────┘

Stages 1–3 short-circuit; nothing is written before the subject is known
and nothing is sent before the alert is stored. Channel outcomes are data,
never exceptions. No stage retries.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, List

from sos_backend.app.alerts.alert_repository import AlertRepository
from sos_backend.app.alerts.channels.base import EmailSender, PushSender
from sos_backend.app.alerts.models import (
    AlertChannel,
    AlertRecord,
    AlertResult,
    DeliveryAttempt,
    DeliveryStatus,
    Subject,
)
from sos_backend.app.alerts.subject_store import SubjectStore
from sos_backend.app.core.errors import InternalError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "Missing required fields: lat, lon, and userId are required"
INVALID_USER_ID_MESSAGE = "Invalid userId: must be a string"


def _is_missing(value: Any) -> bool:
    # 0 / 0.0 are valid coordinates; only absent or blank values count
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def validate_request(latitude: Any, longitude: Any, subject_id: Any) -> None:
    """Raise ValidationError naming every missing field, or a non-string userId."""
    missing: List[str] = [
        name for name, value in (("lat", latitude), ("lon", longitude), ("userId", subject_id))
        if _is_missing(value)
    ]
    if missing:
        raise ValidationError(MISSING_FIELDS_MESSAGE, fields=missing)
    if not isinstance(subject_id, str):
        raise ValidationError(INVALID_USER_ID_MESSAGE, fields=["userId"])


def build_alert_record(subject: Subject, latitude: Any, longitude: Any) -> AlertRecord:
    return AlertRecord.from_subject(subject, latitude, longitude)


class AlertOrchestrator:
    """
    Runs one SOS request through lookup, persistence and notification.

    All collaborators are injected so each can be swapped for a test double.

    Parameters
    ----------
    subject_store : SubjectStore
    alert_repository : AlertRepository
    push_channel : PushSender
    email_channel : EmailSender
    channel_timeout_seconds : float
        Hard ceiling on each channel; expiry counts as a failed delivery.
    """

    def __init__(
        self,
        subject_store: SubjectStore,
        alert_repository: AlertRepository,
        push_channel: PushSender,
        email_channel: EmailSender,
        *,
        channel_timeout_seconds: float = 15.0,
    ):
        self.subject_store = subject_store
        self.alert_repository = alert_repository
        self.push_channel = push_channel
        self.email_channel = email_channel
        self.channel_timeout_seconds = channel_timeout_seconds

    async def _resolve_subject(self, subject_id: str) -> Subject:
        try:
            subject = await self.subject_store.get(subject_id)
        except Exception as exc:
            logger.error(
                "Subject lookup failed for %s: %s", subject_id, exc,
                extra={"subject_id": subject_id, "stage": "lookup"},
            )
            raise InternalError("lookup", str(exc), subject_id=subject_id) from exc

        if subject is None:
            raise NotFoundError(
                "Student",
                message=f"Student with userId {subject_id} not found",
                userId=subject_id,
            )
        return subject

    async def _persist(self, record: AlertRecord) -> str:
        try:
            alert_id = await self.alert_repository.add(record)
        except Exception as exc:
            logger.error(
                "Alert write failed for %s: %s", record.subject_id, exc,
                extra={"subject_id": record.subject_id, "stage": "persist"},
            )
            raise InternalError("persist", str(exc), subject_id=record.subject_id) from exc

        logger.info(
            "Alert saved with ID: %s", alert_id,
            extra={"subject_id": record.subject_id, "alert_id": alert_id, "stage": "persist"},
        )
        return alert_id

    async def _guarded(self, channel: AlertChannel, call: Awaitable[DeliveryAttempt],
                       alert_id: str) -> DeliveryAttempt:
        """Run one channel; any escape (exception, timeout) becomes a FAILED attempt."""
        try:
            return await asyncio.wait_for(call, timeout=self.channel_timeout_seconds)
        except asyncio.TimeoutError:
            reason = f"channel timed out after {self.channel_timeout_seconds}s"
        except Exception as exc:
            reason = f"{type(exc).__name__}: {exc}"

        logger.error(
            "Channel %s failed for alert %s: %s", channel.value, alert_id, reason,
            extra={"alert_id": alert_id, "channel": channel.value, "stage": "notify"},
        )
        return DeliveryAttempt(channel=channel).finish(DeliveryStatus.FAILED, error=reason)

    async def _notify(self, subject: Subject, record: AlertRecord,
                      alert_id: str) -> List[DeliveryAttempt]:
        push = self._guarded(
            AlertChannel.PUSH,
            self.push_channel.send(
                subject.name, subject.subject_id,
                record.latitude, record.longitude, alert_id,
            ),
            alert_id,
        )
        email = self._guarded(
            AlertChannel.EMAIL,
            self.email_channel.send(subject, record.latitude, record.longitude),
            alert_id,
        )
        return list(await asyncio.gather(push, email))

    async def process_alert(self, latitude: Any, longitude: Any,
                            subject_id: Any) -> AlertResult:
        """
        Process one SOS request end to end.

        Raises
        ------
        ValidationError
            A required field is missing or blank, or ``subject_id`` is not a string.
        NotFoundError
            No subject exists for ``subject_id``.
        InternalError
            The record store or alert repository failed.
        """
        started = time.perf_counter()
        validate_request(latitude, longitude, subject_id)

        logger.info(
            "Processing SOS alert for user: %s at location (%s, %s)",
            subject_id, latitude, longitude,
            extra={"subject_id": subject_id, "stage": "accept"},
        )

        subject = await self._resolve_subject(subject_id)
        record = build_alert_record(subject, latitude, longitude)
        alert_id = await self._persist(record)

        push, email = await self._notify(subject, record, alert_id)

        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "SOS %s processed in %.1fms: push=%s email=%s",
            alert_id, duration_ms, push.status.value, email.status.value,
            extra={"subject_id": subject_id, "alert_id": alert_id,
                   "stage": "complete", "duration_ms": duration_ms},
        )
        return AlertResult(alert_id=alert_id, push=push, email=email)
