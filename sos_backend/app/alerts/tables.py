"""
ORM tables backing the record store and the alert repository.

Coordinates are stored in JSON columns: the HTTP surface accepts them
as-is without numeric validation, and the stored alert keeps exactly
what the caller sent.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from sos_backend.app.core.database import Base


class SubjectRow(Base):
    __tablename__ = "subjects"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    emergency_contacts: Mapped[List[Any]] = mapped_column(JSON, default=list)


class AlertRow(Base):
    __tablename__ = "active_alerts"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    student_name: Mapped[str] = mapped_column(String(255))
    student_email: Mapped[str] = mapped_column(String(255), default="")
    student_phone: Mapped[str] = mapped_column(String(64), default="")
    latitude: Mapped[Any] = mapped_column(JSON)
    longitude: Mapped[Any] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(),
    )
    status: Mapped[str] = mapped_column(String(16), default="active")
    resolved: Mapped[bool] = mapped_column(Boolean, default=False)
