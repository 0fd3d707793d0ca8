# backend/lmsdb/apps/enrollment/models.py

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
    String,
    Text,
    text,
)

from ...database import Base
from ...utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class Priority(str, enum.Enum):
    """P1 and P2 are limited to one each per year; P3 is unlimited."""

    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class InterestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    CONVERTED = "converted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class CoachStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RegistrationStatus(str, enum.Enum):
    PENDING = "pending"
    VALIDATED = "validated"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Interests in these states hold a quota slot that is refunded on removal.
REFUNDABLE_INTEREST_STATUSES = frozenset({InterestStatus.PENDING, InterestStatus.APPROVED})

# Interests in these states block a second interest for the same formation.
ACTIVE_INTEREST_STATUSES = frozenset(
    {InterestStatus.PENDING, InterestStatus.APPROVED, InterestStatus.CONVERTED}
)

ACTIVE_REGISTRATION_STATUSES = frozenset(
    {RegistrationStatus.PENDING, RegistrationStatus.VALIDATED, RegistrationStatus.COMPLETED}
)

_ACTIVE_INTEREST_SQL = "status IN ('pending', 'approved', 'converted')"


# ---------------------------------------------------------------------------
# INTERESTS
# ---------------------------------------------------------------------------


class FormationInterest(Base):
    """
    A consultant's declared intent to attend a formation.

    Catalog interests point at `formation_id`. Off-catalog requests leave it
    NULL and describe the training through the `custom_*` fields; they go
    through the same status machine and may be reviewed once approved.

    The partial unique index is the authoritative duplicate guard: at most one
    pending/approved/converted interest per (user, formation).
    """

    __tablename__ = "formation_interests"
    __table_args__ = (
        Index(
            "uq_formation_interests_user_formation_active",
            "user_id",
            "formation_id",
            unique=True,
            postgresql_where=text(_ACTIVE_INTEREST_SQL),
            sqlite_where=text(_ACTIVE_INTEREST_SQL),
        ),
        Index("idx_formation_interests_formation_status", "formation_id", "status"),
        CheckConstraint(
            "formation_id IS NOT NULL OR custom_title IS NOT NULL",
            name="ck_formation_interests_target",
        ),
        CheckConstraint(
            "custom_review_rating IS NULL OR (custom_review_rating BETWEEN 1 AND 5)",
            name="ck_formation_interests_rating_range",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    formation_id = Column(String(36), ForeignKey("formations.id", ondelete="CASCADE"), nullable=True, index=True)

    priority = Column(
        Enum(Priority, name="interest_priority_enum", native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    status = Column(
        Enum(InterestStatus, name="interest_status_enum", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=InterestStatus.PENDING,
        index=True,
    )
    expressed_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Coach channel
    coach_status = Column(
        Enum(CoachStatus, name="interest_coach_status_enum", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=CoachStatus.PENDING,
    )
    coach_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    coach_validated_at = Column(DateTime(timezone=True), nullable=True)

    # Off-catalog request
    custom_title = Column(String(255), nullable=True)
    custom_description = Column(Text, nullable=True)
    custom_link = Column(String(512), nullable=True)
    custom_price = Column(String(64), nullable=True)
    custom_fitnet_number = Column(String(64), nullable=True)
    custom_mission_manager = Column(String(255), nullable=True)

    # Post-completion review (off-catalog only)
    custom_review_rating = Column(Integer, nullable=True)
    custom_review_comment = Column(Text, nullable=True)
    custom_reviewed_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_off_catalog(self) -> bool:
        return self.formation_id is None

    def __repr__(self) -> str:
        return (
            f"<FormationInterest id={self.id} user={self.user_id} "
            f"formation={self.formation_id} priority={self.priority} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# REGISTRATIONS
# ---------------------------------------------------------------------------


class Registration(Base):
    """
    Enrollment of a user in a session.

    `formation_id` is denormalised from the session so "already registered
    for this formation" can be answered without a join.
    """

    __tablename__ = "registrations"
    __table_args__ = (
        Index("idx_registrations_session_status", "session_id", "status"),
        Index("idx_registrations_user_formation", "user_id", "formation_id"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String(36), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    formation_id = Column(String(36), ForeignKey("formations.id", ondelete="CASCADE"), nullable=False)

    priority = Column(
        Enum(Priority, name="registration_priority_enum", native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    status = Column(
        Enum(
            RegistrationStatus,
            name="registration_status_enum",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=RegistrationStatus.PENDING,
    )
    registered_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    attended = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Registration id={self.id} user={self.user_id} session={self.session_id} status={self.status}>"
