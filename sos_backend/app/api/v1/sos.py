"""
FastAPI route: SOS intake.

    POST /processSOS — store an SOS alert and notify the subject's contacts

The orchestrator is resolved through ``get_orchestrator`` so tests can
swap it with ``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request

from sos_backend.app.alerts.alert_service import AlertOrchestrator
from sos_backend.app.api.schemas import ErrorResponse, SOSRequest, SOSResponse
from sos_backend.app.core.errors import InternalError

router = APIRouter(tags=["sos"])


def get_orchestrator(request: Request) -> AlertOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise InternalError("startup", "Alert pipeline is not initialised")
    return orchestrator


@router.post(
    "/processSOS",
    response_model=SOSResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Process an SOS alert",
)
async def process_sos(
    body: Optional[SOSRequest] = None,
    orchestrator: AlertOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """
    Persist an SOS alert and notify by push and email.

    Notification failures never fail the request; they show up as
    ``false`` in ``notifications``.
    """
    body = body or SOSRequest()
    result = await orchestrator.process_alert(body.lat, body.lon, body.userId)
    return result.to_response()
