"""
email_alert.py — Emergency-contact email channel (Brevo transactional API).

Delivery mechanism:
    • One POST to the provider's SMTP-email endpoint per SOS
    • ``api-key`` header, JSON body with sender, recipients, subject and
      both HTML and plain-text content
    • All recipients share one message

═══════════════════════════════════════════════════════════════════════════
RECIPIENT SELECTION
═══════════════════════════════════════════════════════════════════════════

    1. Emergency contacts' email addresses (blank / missing dropped)
    2. If step 1 yields nothing → the subject's own email, if any
    3. If still nothing → SKIPPED, no provider call

═══════════════════════════════════════════════════════════════════════════
EMAIL TEMPLATE STRUCTURE
═══════════════════════════════════════════════════════════════════════════

    Subject: 🚨 Emergency Alert: {name or id}
    Body:
        ┌─────────────────────────────────────────┐
        │  Emergency Alert                         │
        │  Student Name / Student ID               │
        │  Location: Latitude, Longitude           │
        │  Time / Phone (or "Not provided")        │
        │  [View Location on Map]                  │
        └─────────────────────────────────────────┘
"""

from __future__ import annotations

import html
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from sos_backend.app.alerts.channels.base import post_json
from sos_backend.app.alerts.models import (
    AlertChannel,
    DeliveryAttempt,
    DeliveryStatus,
    Subject,
)
from sos_backend.app.core.errors import ChannelFailure

logger = logging.getLogger(__name__)

PHONE_PLACEHOLDER = "Not provided"


def select_recipients(subject: Subject) -> List[str]:
    """Emergency contact emails, else the subject's own email, else []."""
    seen: List[str] = []
    for contact in subject.emergency_contacts:
        email = (contact.email or "").strip()
        if email and email not in seen:
            seen.append(email)
    if seen:
        return seen

    own = (subject.email or "").strip()
    return [own] if own else []


def map_link(lat: Any, lon: Any, base_url: str = "https://www.google.com/maps") -> str:
    """Map search URL; the coordinates are percent-encoded as given."""
    return f"{base_url}?q={quote(f'{lat},{lon}', safe=',.-')}"


def _format_time(moment: datetime) -> str:
    return moment.strftime("%d %b %Y, %H:%M:%S %Z")


def build_subject_line(subject: Subject) -> str:
    return f"🚨 Emergency Alert: {subject.name or subject.subject_id}"


def build_html_body(subject: Subject, lat: Any, lon: Any, sent_at: datetime,
                    link: str) -> str:
    name = html.escape(subject.display_name)
    phone = html.escape(subject.phone or PHONE_PLACEHOLDER)
    lat, lon = html.escape(str(lat)), html.escape(str(lon))
    return f"""
    <div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;">
      <h2 style="color:#e63946;">Emergency Alert</h2>
      <p><strong>Student Name:</strong> {name}</p>
      <p><strong>Student ID:</strong> {html.escape(subject.subject_id)}</p>
      <p><strong>Location:</strong> Latitude: {lat}, Longitude: {lon}</p>
      <p><strong>Time:</strong> {_format_time(sent_at)}</p>
      <p><strong>Phone:</strong> {phone}</p>
      <p style="margin-top:20px;">
        <a href="{html.escape(link)}"
           style="background-color:#e63946;color:white;padding:10px 20px;text-decoration:none;border-radius:5px;display:inline-block;">
          View Location on Map
        </a>
      </p>
    </div>
    """


def build_text_body(subject: Subject, lat: Any, lon: Any, sent_at: datetime,
                    link: str) -> str:
    return (
        "Emergency Alert\n\n"
        f"Student Name: {subject.display_name}\n"
        f"Student ID: {subject.subject_id}\n"
        f"Location: Latitude: {lat}, Longitude: {lon}\n"
        f"Time: {_format_time(sent_at)}\n"
        f"Phone: {subject.phone or PHONE_PLACEHOLDER}\n\n"
        f"View location: {link}\n"
    )


class EmailAlertChannel:
    """Emails a subject's emergency contacts about an SOS."""

    channel = AlertChannel.EMAIL

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_key: Optional[str],
        sender_email: Optional[str],
        sender_name: str = "NIT JSR Emergency Alert",
        api_url: str = "https://api.brevo.com/v3/smtp/email",
        map_base_url: str = "https://www.google.com/maps",
        timeout_seconds: float = 10.0,
    ):
        self._client = client
        self.api_key = api_key
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.api_url = api_url
        self.map_base_url = map_base_url
        self.timeout_seconds = timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.sender_email)

    def build_message(self, subject: Subject, recipients: List[str], lat: Any,
                      lon: Any, sent_at: Optional[datetime] = None) -> Dict[str, Any]:
        sent_at = sent_at or datetime.now(timezone.utc)
        link = map_link(lat, lon, self.map_base_url)
        return {
            "sender": {"name": self.sender_name, "email": self.sender_email},
            "to": [{"email": email} for email in recipients],
            "subject": build_subject_line(subject),
            "htmlContent": build_html_body(subject, lat, lon, sent_at, link),
            "textContent": build_text_body(subject, lat, lon, sent_at, link),
        }

    async def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await post_json(
            self._client, self.api_url, body,
            channel=self.channel,
            headers={"api-key": self.api_key, "accept": "application/json"},
            timeout_seconds=self.timeout_seconds,
        )

    async def send(self, subject: Subject, lat: Any, lon: Any) -> DeliveryAttempt:
        """
        Email the subject's emergency contacts.

        Parameters
        ----------
        subject : Subject
            Full profile; recipients and body fields come from here.
        lat, lon
            Coordinates as received with the SOS.

        Returns
        -------
        DeliveryAttempt
        """
        attempt = DeliveryAttempt(channel=self.channel)
        log_ctx = {"subject_id": subject.subject_id, "channel": self.channel.value}

        if not self.configured:
            logger.warning(
                "Email provider credentials not configured; skipping email",
                extra=log_ctx,
            )
            return attempt.finish(DeliveryStatus.SKIPPED, error="not configured")

        recipients = select_recipients(subject)
        attempt.recipient_count = len(recipients)
        if not recipients:
            logger.warning(
                "No recipient emails found for subject %s", subject.subject_id,
                extra=log_ctx,
            )
            return attempt.finish(DeliveryStatus.SKIPPED, error="no recipients")

        try:
            result = await self._post(self.build_message(subject, recipients, lat, lon))
        except ChannelFailure as exc:
            logger.error(
                "[EMAIL] Send failed for subject %s: %s",
                subject.subject_id, exc.message,
                extra={**log_ctx, "provider_status": exc.details.get("provider_status"),
                       "recipient_count": len(recipients)},
            )
            return attempt.finish(
                DeliveryStatus.FAILED,
                error=exc.message,
                provider_response=exc.details,
            )
        except Exception as exc:
            logger.error(
                "[EMAIL] Unexpected error for subject %s: %s",
                subject.subject_id, exc, extra=log_ctx,
            )
            return attempt.finish(DeliveryStatus.FAILED, error=str(exc))

        logger.info(
            "[EMAIL] Message %s sent to %d recipient(s)",
            result.get("messageId"), len(recipients),
            extra={**log_ctx, "recipient_count": len(recipients)},
        )
        return attempt.finish(DeliveryStatus.DELIVERED, provider_response=result)
