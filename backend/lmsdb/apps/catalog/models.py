# backend/lmsdb/apps/catalog/models.py

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ...database import Base
from ...utils.identifiers import generate_uuid7
from ..accounts.models import Seniority


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class Modality(str, enum.Enum):
    PRESENTIEL = "presentiel"
    DISTANCIEL = "distanciel"
    HYBRIDE = "hybride"


class SessionStatus(str, enum.Enum):
    OPEN = "open"
    FULL = "full"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TimeSlot(str, enum.Enum):
    FULL_DAY = "full_day"
    MORNING = "morning"
    AFTERNOON = "afternoon"


# ---------------------------------------------------------------------------
# FORMATIONS (CATALOG)
# ---------------------------------------------------------------------------


class Formation(Base):
    """
    Catalog entry.

    - duration is free text as shown to consultants ("2 jours", "3h30").
    - seniority_required, when set, is the minimum tier allowed to enroll.
    """

    __tablename__ = "formations"
    __table_args__ = (
        Index("idx_formations_active_theme", "active", "theme"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    objectives = Column(Text, nullable=False)
    prerequisites = Column(Text, nullable=True)
    duration = Column(String(64), nullable=False)

    modality = Column(
        Enum(Modality, name="formation_modality_enum", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=Modality.PRESENTIEL,
    )
    seniority_required = Column(
        Enum(Seniority, name="formation_seniority_enum", native_enum=False, values_callable=_enum_values),
        nullable=True,
    )

    theme = Column(String(128), nullable=False, index=True)
    tags = Column(JSON, nullable=False, default=list)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    sessions = relationship(
        "FormationSession",
        back_populates="formation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Formation id={self.id} title={self.title!r}>"


class FormationSession(Base):
    """
    Scheduled instance of a formation.

    Capacity is checked against validated registrations only; `status`
    flips between OPEN and FULL as registrations are validated/cancelled.
    """

    __tablename__ = "sessions"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_sessions_capacity_positive"),
        CheckConstraint("end_date >= start_date", name="ck_sessions_dates_ordered"),
        Index("idx_sessions_formation_start", "formation_id", "start_date"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    formation_id = Column(
        String(36),
        ForeignKey("formations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255), nullable=True)
    capacity = Column(Integer, nullable=False)
    instructor_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    status = Column(
        Enum(SessionStatus, name="session_status_enum", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=SessionStatus.OPEN,
        index=True,
    )

    formation = relationship("Formation", back_populates="sessions")

    def __repr__(self) -> str:
        return f"<FormationSession id={self.id} formation={self.formation_id} status={self.status}>"


# ---------------------------------------------------------------------------
# INSTRUCTORS
# ---------------------------------------------------------------------------


class InstructorFormation(Base):
    __tablename__ = "instructor_formations"
    __table_args__ = (
        UniqueConstraint("instructor_id", "formation_id", name="uq_instructor_formations_pair"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    instructor_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    formation_id = Column(String(36), ForeignKey("formations.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class InstructorAvailability(Base):
    """
    Slots an instructor declares for a formation.

    `slots` is a JSON list of {"date": "YYYY-MM-DD", "time_slot": TimeSlot}.
    One row per (instructor, formation); saving again replaces the slots.
    """

    __tablename__ = "instructor_availabilities"
    __table_args__ = (
        UniqueConstraint("instructor_id", "formation_id", name="uq_instructor_availabilities_pair"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    instructor_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    formation_id = Column(String(36), ForeignKey("formations.id", ondelete="CASCADE"), nullable=False, index=True)
    slots = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
