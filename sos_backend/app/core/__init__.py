"""
Core package — cross-cutting concerns.

Modules:
    config      — environment variables & settings
    logging     — structured JSON / console logging
    errors      — exception hierarchy & handlers
    middleware  — request id and timing
    health      — liveness / readiness reports
    database    — async SQLAlchemy engine and sessions
"""
