"""
FastAPI application entry point.

Run with:
    uvicorn sos_backend.app.main:app --port 3000

Or:
    python -m sos_backend.app.main
"""

from contextlib import asynccontextmanager
from typing import Optional, Tuple

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ── Core infrastructure ──
from sos_backend.app.core.config import Settings, settings
from sos_backend.app.core.database import Database
from sos_backend.app.core.logging_config import setup_logging, get_logger
from sos_backend.app.core.errors import register_error_handlers
from sos_backend.app.core.middleware import RequestLoggingMiddleware
from sos_backend.app.core.health import basic_status, run_health_check

# ── Pipeline ──
from sos_backend.app.alerts.alert_service import AlertOrchestrator
from sos_backend.app.alerts.alert_repository import (
    InMemoryAlertRepository,
    SQLAlertRepository,
)
from sos_backend.app.alerts.subject_store import InMemorySubjectStore, SQLSubjectStore
from sos_backend.app.alerts.channels.email_alert import EmailAlertChannel
from sos_backend.app.alerts.channels.push_notification import PushNotificationChannel

# ── API routers ──
from sos_backend.app.api.schemas import HealthResponse
from sos_backend.app.api.v1.sos import router as sos_router

setup_logging()
logger = get_logger(__name__)


def build_pipeline(
    config: Settings,
    client: httpx.AsyncClient,
) -> Tuple[AlertOrchestrator, Optional[Database]]:
    """Wire stores and channels from settings; returns the database if one is used."""
    database: Optional[Database] = None
    if config.STORE_BACKEND == "memory":
        logger.warning("Using in-memory record store; alerts are not durable")
        subject_store = (
            InMemorySubjectStore.from_json_file(config.SUBJECTS_FILE)
            if config.SUBJECTS_FILE else InMemorySubjectStore()
        )
        alert_repository = InMemoryAlertRepository()
    else:
        database = Database(
            config.DATABASE_URL,
            echo=config.DATABASE_ECHO,
            pool_size=config.DATABASE_POOL_SIZE,
            max_overflow=config.DATABASE_MAX_OVERFLOW,
        )
        subject_store = SQLSubjectStore(database)
        alert_repository = SQLAlertRepository(database)

    push_channel = PushNotificationChannel(
        client,
        app_id=config.ONESIGNAL_APP_ID,
        api_key=config.ONESIGNAL_API_KEY,
        api_url=config.ONESIGNAL_API_URL,
        segments=config.PUSH_SEGMENTS,
        timeout_seconds=config.PROVIDER_TIMEOUT_SECONDS,
    )
    email_channel = EmailAlertChannel(
        client,
        api_key=config.BREVO_API_KEY,
        sender_email=config.BREVO_SENDER_EMAIL,
        sender_name=config.BREVO_SENDER_NAME,
        api_url=config.BREVO_API_URL,
        map_base_url=config.MAP_LINK_BASE_URL,
        timeout_seconds=config.PROVIDER_TIMEOUT_SECONDS,
    )

    if not push_channel.configured:
        logger.warning("Push provider credentials not configured")
    if not email_channel.configured:
        logger.warning("Email provider credentials not configured")

    orchestrator = AlertOrchestrator(
        subject_store,
        alert_repository,
        push_channel,
        email_channel,
        channel_timeout_seconds=config.CHANNEL_TIMEOUT_SECONDS,
    )
    return orchestrator, database


# ── Application lifespan (startup / shutdown) ──

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store and HTTP client; close them on shutdown."""
    logger.info(
        "Starting %s v%s on port %d [%s]",
        settings.APP_NAME, settings.APP_VERSION, settings.PORT, settings.ENVIRONMENT,
    )
    client = httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT_SECONDS)
    orchestrator, database = build_pipeline(settings, client)
    if database is not None:
        await database.init()

    app.state.orchestrator = orchestrator
    app.state.database = database
    try:
        yield
    finally:
        await client.aclose()
        if database is not None:
            await database.close()
        logger.info("Shutting down %s", settings.APP_NAME)


# ── Create application ──

app = FastAPI(
    title=settings.APP_NAME,
    description=(
        "Emergency SOS intake. Stores each alert and notifies the "
        "subject's emergency contacts by push notification and email, "
        "best-effort."
    ),
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ── Middleware stack (outermost first) ──

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS if not settings.CORS_ALLOW_ALL else ["*"],
    allow_credentials=not settings.CORS_ALLOW_ALL,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

register_error_handlers(app)

app.include_router(sos_router)


# ── Health endpoints ──

@app.get("/health", tags=["health"], response_model=HealthResponse)
async def health_check():
    """Cheap probe: the process is up and serving."""
    return basic_status()


@app.get("/health/live", tags=["health"])
async def liveness():
    return {"status": "alive"}


@app.get("/health/ready", tags=["health"])
async def readiness():
    """Readiness probe: can alerts be stored right now?"""
    report = await run_health_check(getattr(app.state, "database", None))
    if report.status.value == "unhealthy":
        return JSONResponse(status_code=503, content=report.to_dict())
    return report.to_dict()


def run() -> None:
    import uvicorn

    uvicorn.run(
        "sos_backend.app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
    )


if __name__ == "__main__":
    run()
