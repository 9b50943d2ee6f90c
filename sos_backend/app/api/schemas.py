"""
Pydantic schemas for the SOS HTTP surface.

Separated from the route handlers so tests and the OpenAPI docs share
one definition. Field names follow the mobile client's JSON (camelCase).
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class SOSRequest(BaseModel):
    """
    Body of POST /processSOS.

    Every field is optional and untyped at the schema level so that missing
    or mistyped fields are reported by the pipeline's own checks (400)
    with a precise message. Coordinates are passed through untouched.
    """
    lat: Any = Field(None, description="Latitude as sent by the device", examples=[22.59])
    lon: Any = Field(None, description="Longitude as sent by the device", examples=[88.36])
    userId: Any = Field(None, description="Subject identifier", examples=["S123"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class NotificationsOut(BaseModel):
    pushNotification: bool
    email: bool


class SOSResponse(BaseModel):
    """200 body of POST /processSOS."""
    success: bool = True
    message: str
    alertId: str
    notifications: NotificationsOut


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: Optional[str] = None


class HealthResponse(BaseModel):
    """Body of GET /health."""
    status: str = "ok"
    message: str = "Server is running"
    timestamp: str
