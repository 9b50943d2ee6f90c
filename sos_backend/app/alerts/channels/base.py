"""
base.py — Channel interfaces and the shared provider POST.

Both providers take one JSON POST per SOS and answer with a JSON body.
``post_json`` turns every way that call can go wrong into a
ChannelFailure so each channel only has to map it to a DeliveryAttempt.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

import httpx

from sos_backend.app.alerts.models import AlertChannel, DeliveryAttempt, Subject
from sos_backend.app.core.errors import ChannelFailure


@runtime_checkable
class NotificationChannel(Protocol):
    """What every channel exposes to the orchestrator and health checks."""

    channel: AlertChannel

    @property
    def configured(self) -> bool: ...


@runtime_checkable
class PushSender(NotificationChannel, Protocol):
    async def send(self, subject_name: Optional[str], subject_id: str, lat: Any,
                   lon: Any, alert_id: str) -> DeliveryAttempt: ...


@runtime_checkable
class EmailSender(NotificationChannel, Protocol):
    async def send(self, subject: Subject, lat: Any, lon: Any) -> DeliveryAttempt: ...


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    body: Dict[str, Any],
    *,
    channel: AlertChannel,
    headers: Mapping[str, str],
    timeout_seconds: float,
) -> Dict[str, Any]:
    """
    POST ``body`` and return the decoded JSON reply.

    Raises
    ------
    ChannelFailure
        Timeout, transport error or a non-2xx status. A 2xx reply that is
        not JSON is not a failure and yields ``{}``.
    """
    try:
        response = await client.post(url, json=body, headers=dict(headers),
                                     timeout=timeout_seconds)
    except httpx.TimeoutException as exc:
        raise ChannelFailure(channel.value, f"timed out after {timeout_seconds}s") from exc
    except httpx.HTTPError as exc:
        raise ChannelFailure(channel.value, f"transport error: {exc}") from exc

    if not response.is_success:
        raise ChannelFailure(channel.value, response.text,
                             provider_status=response.status_code)

    try:
        return response.json()
    except ValueError:
        return {}
