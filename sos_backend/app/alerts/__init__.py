"""
alerts — SOS alert pipeline.

Sub-modules:
    models            — data structures shared across the pipeline
    tables            — ORM tables for subjects and stored alerts
    subject_store     — read-only subject lookup
    alert_repository  — append-only alert persistence
    channels/         — push and email notification backends
    alert_service     — orchestration: validate, look up, persist, notify
"""
