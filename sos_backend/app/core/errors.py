"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • Domain-specific exception classes
    • The {success: false, error, ...} JSON error envelope
    • Automatic logging of every error that reaches the HTTP layer

Taxonomy:
    ValidationError  → 400  incomplete client input
    NotFoundError    → 404  unknown subject
    InternalError    → 500  store unavailable / unexpected failure
    ChannelFailure   → never reaches HTTP; recovered inside a channel

Usage:
    from sos_backend.app.core.errors import NotFoundError

    raise NotFoundError("Student", message="Student with userId S1 not found")
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class SOSAPIError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ValidationError(SOSAPIError):
    """Required input missing or empty (400)."""

    def __init__(self, message: str, *, fields: Optional[list] = None, **details: Any):
        d = {**details}
        if fields:
            d["fields"] = list(fields)
        super().__init__(
            message=message,
            status_code=400,
            error_code="VALIDATION_ERROR",
            details=d,
        )


class NotFoundError(SOSAPIError):
    """Resource not found (404)."""

    def __init__(self, resource: str, *, message: Optional[str] = None, **identifiers: Any):
        super().__init__(
            message=message or f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"resource": resource, **identifiers},
        )


class InternalError(SOSAPIError):
    """
    Unexpected failure in a pipeline stage (500).

    ``reason`` carries the underlying error's text and is echoed to the
    caller as the ``message`` field for diagnostics.
    """

    def __init__(self, stage: str, reason: str = "", **details: Any):
        super().__init__(
            message="Internal server error",
            status_code=500,
            error_code="INTERNAL_ERROR",
            details={"stage": stage, **details},
        )
        self.stage = stage
        self.reason = reason


class ChannelFailure(SOSAPIError):
    """
    A notification provider call failed or timed out.

    Raised inside channel code only and converted to a failed
    DeliveryAttempt before it can leave the channel.
    """

    def __init__(self, channel: str, message: str = "", **details: Any):
        super().__init__(
            message=f"Channel '{channel}' failed: {message}",
            status_code=502,
            error_code="CHANNEL_FAILURE",
            details={"channel": channel, **details},
        )
        self.channel = channel


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

def _build_error_response(
    status_code: int,
    error: str,
    message: Optional[str] = None,
) -> JSONResponse:
    """Build the {success: false, error[, message]} envelope."""
    body: Dict[str, Any] = {"success": False, "error": error}
    if message is not None:
        body["message"] = message
    return JSONResponse(status_code=status_code, content=body)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(SOSAPIError)
    async def handle_sos_error(request: Request, exc: SOSAPIError):
        log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(
            log_level,
            "API Error [%s] %s %s: %s | details=%s",
            exc.error_code, request.method, request.url.path,
            exc.message, exc.details,
        )
        if isinstance(exc, InternalError):
            return _build_error_response(exc.status_code, exc.message, exc.reason)
        return _build_error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        logger.warning("Malformed request body on %s: %s", request.url.path, exc.errors())
        return _build_error_response(
            400, "Missing required fields: lat, lon, and userId are required",
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception: %s\n%s",
            exc, traceback.format_exc(),
        )
        return _build_error_response(500, "Internal server error", str(exc))
