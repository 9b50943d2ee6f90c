"""
push_notification.py — Broadcast push channel (OneSignal REST API).

Delivery mechanism:
    • One POST to the provider's notifications endpoint per SOS
    • ``Authorization: Basic <REST API key>`` header, JSON body
    • Broadcast to the configured segments (default: every subscriber)
    • ``data`` block carries ids and coordinates so the mobile client can
      deep-link straight to the alert on tap

Outcome rules:
    • Missing app id or API key  → SKIPPED (configuration warning)
    • 2xx response               → DELIVERED (provider notification id kept)
    • non-2xx / transport error  → FAILED (provider detail logged)

Never retries and never raises to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from sos_backend.app.alerts.channels.base import post_json
from sos_backend.app.alerts.models import (
    UNKNOWN_NAME,
    AlertChannel,
    DeliveryAttempt,
    DeliveryStatus,
)
from sos_backend.app.core.errors import ChannelFailure

logger = logging.getLogger(__name__)

PUSH_TITLE = "🚨 Emergency Alert"
PUSH_PRIORITY = 10


class PushNotificationChannel:
    """Sends one broadcast notification per SOS alert."""

    channel = AlertChannel.PUSH

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        app_id: Optional[str],
        api_key: Optional[str],
        api_url: str = "https://onesignal.com/api/v1/notifications",
        segments: Sequence[str] = ("All",),
        timeout_seconds: float = 10.0,
    ):
        self._client = client
        self.app_id = app_id
        self.api_key = api_key
        self.api_url = api_url
        self.segments = list(segments)
        self.timeout_seconds = timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self.app_id and self.api_key)

    def build_payload(
        self,
        subject_name: Optional[str],
        subject_id: str,
        lat: Any,
        lon: Any,
        alert_id: str,
    ) -> Dict[str, Any]:
        return {
            "app_id": self.app_id,
            "included_segments": self.segments,
            "headings": {"en": PUSH_TITLE},
            "contents": {
                "en": f"Emergency alert from {subject_name or subject_id} "
                      f"at location ({lat}, {lon})",
            },
            "data": {
                "userId": subject_id,
                "lat": lat,
                "lon": lon,
                "alertId": alert_id,
                "studentName": subject_name or UNKNOWN_NAME,
            },
            "priority": PUSH_PRIORITY,
        }

    async def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await post_json(
            self._client, self.api_url, body,
            channel=self.channel,
            headers={"Authorization": f"Basic {self.api_key}"},
            timeout_seconds=self.timeout_seconds,
        )

    async def send(
        self,
        subject_name: Optional[str],
        subject_id: str,
        lat: Any,
        lon: Any,
        alert_id: str,
    ) -> DeliveryAttempt:
        """
        Broadcast a push notification for one alert.

        Returns
        -------
        DeliveryAttempt
            ``delivered`` is True only when the provider accepted the message.
        """
        attempt = DeliveryAttempt(channel=self.channel)

        if not self.configured:
            logger.warning(
                "Push provider credentials not configured; skipping push",
                extra={"alert_id": alert_id, "channel": self.channel.value},
            )
            return attempt.finish(DeliveryStatus.SKIPPED, error="not configured")

        try:
            result = await self._post(
                self.build_payload(subject_name, subject_id, lat, lon, alert_id)
            )
        except ChannelFailure as exc:
            logger.error(
                "[PUSH] Notification failed for alert %s: %s",
                alert_id, exc.message,
                extra={
                    "alert_id": alert_id,
                    "subject_id": subject_id,
                    "channel": self.channel.value,
                    "provider_status": exc.details.get("provider_status"),
                },
            )
            return attempt.finish(
                DeliveryStatus.FAILED,
                error=exc.message,
                provider_response=exc.details,
            )
        except Exception as exc:
            logger.error(
                "[PUSH] Unexpected error for alert %s: %s", alert_id, exc,
                extra={"alert_id": alert_id, "channel": self.channel.value},
            )
            return attempt.finish(DeliveryStatus.FAILED, error=str(exc))

        logger.info(
            "[PUSH] Notification %s sent for alert %s",
            result.get("id"), alert_id,
            extra={"alert_id": alert_id, "subject_id": subject_id,
                   "channel": self.channel.value},
        )
        return attempt.finish(DeliveryStatus.DELIVERED, provider_response=result)
