"""
models.py — Shared data structures for the SOS alert pipeline.

Defines:
    • EmergencyContact / Subject — the person an SOS concerns (read-only)
    • AlertStatus    — lifecycle state of a stored alert
    • AlertRecord    — one persisted SOS event, denormalized at write time
    • AlertChannel   — notification channel enum
    • DeliveryStatus — outcome of one channel attempt
    • DeliveryAttempt — per-channel result value (never an exception)
    • AlertResult    — what the orchestrator hands back to the HTTP layer

═══════════════════════════════════════════════════════════════════════════
DENORMALIZATION
═══════════════════════════════════════════════════════════════════════════

An AlertRecord copies the subject's name, email and phone at alert time.
The record stays meaningful if the subject profile is edited or removed
later. Absent values become placeholders rather than nulls:

    Subject field     AlertRecord field     Placeholder
    ─────────────     ─────────────────     ───────────
    name              subject_name          "Unknown"
    email             subject_email         ""
    phone             subject_phone         ""
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

UNKNOWN_NAME = "Unknown"


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class AlertStatus(str, Enum):
    """Stored alert state. Only ACTIVE is ever written by this service."""
    ACTIVE = "active"


class AlertChannel(str, Enum):
    """Notification side channels."""
    PUSH  = "push_notification"
    EMAIL = "email"


class DeliveryStatus(str, Enum):
    """Outcome of a single channel attempt."""
    DELIVERED = "delivered"   # provider accepted the message
    FAILED    = "failed"      # provider error, transport error or timeout
    SKIPPED   = "skipped"     # not configured, or nobody to send to


# ═══════════════════════════════════════════════════════════════════════════
# Subject (external, read-only)
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EmergencyContact:
    name: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmergencyContact":
        return cls(name=data.get("name"), email=data.get("email"))

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "email": self.email}


@dataclass(frozen=True)
class Subject:
    """
    The person an SOS alert concerns.

    Attributes
    ----------
    subject_id : str
        Immutable primary key (the ``userId`` of the request).
    name, email, phone : str | None
        Optional profile fields; absence is normal.
    emergency_contacts : list of EmergencyContact
        People to notify by email.
    """
    subject_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    emergency_contacts: List[EmergencyContact] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or UNKNOWN_NAME

    @classmethod
    def from_dict(cls, subject_id: str, data: Dict[str, Any]) -> "Subject":
        """Build from a stored profile document; tolerates missing keys."""
        contacts = data.get("emergency_contacts") or data.get("emergencyContacts") or []
        return cls(
            subject_id=subject_id,
            name=data.get("name"),
            email=data.get("email"),
            phone=data.get("phone"),
            emergency_contacts=[
                EmergencyContact.from_dict(c) for c in contacts if isinstance(c, dict)
            ],
        )


# ═══════════════════════════════════════════════════════════════════════════
# Alert record
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class AlertRecord:
    """One SOS event. ``created_at`` is assigned by the repository on write."""
    subject_id: str
    subject_name: str
    subject_email: str
    subject_phone: str
    latitude: Any
    longitude: Any
    status: AlertStatus = AlertStatus.ACTIVE
    resolved: bool = False
    created_at: Optional[datetime] = None

    @classmethod
    def from_subject(cls, subject: Subject, latitude: Any, longitude: Any) -> "AlertRecord":
        return cls(
            subject_id=subject.subject_id,
            subject_name=subject.name or UNKNOWN_NAME,
            subject_email=subject.email or "",
            subject_phone=subject.phone or "",
            latitude=latitude,
            longitude=longitude,
        )


# ═══════════════════════════════════════════════════════════════════════════
# Delivery results
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class DeliveryAttempt:
    """Result of one channel invocation for one SOS request."""
    channel: AlertChannel
    status: DeliveryStatus = DeliveryStatus.FAILED
    attempt_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    attempted_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None
    recipient_count: int = 0
    error_message: Optional[str] = None
    provider_response: Optional[Dict[str, Any]] = None

    @property
    def delivered(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED

    def finish(self, status: DeliveryStatus, *, error: Optional[str] = None,
               provider_response: Optional[Dict[str, Any]] = None) -> "DeliveryAttempt":
        self.status = status
        self.completed_at = _now()
        if error is not None:
            self.error_message = error
        if provider_response is not None:
            self.provider_response = provider_response
        return self


@dataclass
class AlertResult:
    """Successful pipeline outcome: the stored alert id plus both channel results."""
    alert_id: str
    push: DeliveryAttempt
    email: DeliveryAttempt
    message: str = "SOS alert processed successfully"

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "message": self.message,
            "alertId": self.alert_id,
            "notifications": {
                "pushNotification": self.push.delivered,
                "email": self.email.delivered,
            },
        }
