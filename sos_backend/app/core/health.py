"""
Health checks.

Two levels:
    • ``basic_status()``      — the cheap ``GET /health`` body
    • ``run_health_check()``  — readiness report over the record store and
                                both notification providers

A provider without credentials only degrades the service (its channel is
skipped); an unreachable database makes it unhealthy because no alert can
be stored.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sos_backend.app.core.config import settings
from sos_backend.app.core.database import Database

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # partial functionality
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        return d


@dataclass
class HealthReport:
    status: HealthStatus = HealthStatus.HEALTHY
    version: str = settings.APP_VERSION
    environment: str = settings.ENVIRONMENT
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


_start_time = time.monotonic()


def basic_status() -> Dict[str, str]:
    return {
        "status": "ok",
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def check_store(database: Optional[Database]) -> ComponentHealth:
    """Ping the database, or report the in-memory store."""
    comp = ComponentHealth(name="record_store")
    start = time.monotonic()
    if database is None:
        comp.message = "In-memory store"
    else:
        try:
            await database.ping()
            comp.message = "Database reachable"
        except Exception as e:
            logger.error("Database health check failed: %s", e)
            comp.status = HealthStatus.UNHEALTHY
            comp.message = str(e)
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


def check_provider(name: str, configured: bool) -> ComponentHealth:
    if configured:
        return ComponentHealth(name=name, message="Credentials configured")
    return ComponentHealth(
        name=name,
        status=HealthStatus.DEGRADED,
        message="Credentials missing; channel will be skipped",
    )


async def run_health_check(database: Optional[Database] = None) -> HealthReport:
    """Run all health checks and aggregate into a report."""
    report = HealthReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )

    report.components.append(await check_store(database))
    report.components.append(check_provider("push_provider", settings.push_configured))
    report.components.append(check_provider("email_provider", settings.email_configured))

    statuses = [c.status for c in report.components]
    if HealthStatus.UNHEALTHY in statuses:
        report.status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        report.status = HealthStatus.DEGRADED
    else:
        report.status = HealthStatus.HEALTHY

    return report
