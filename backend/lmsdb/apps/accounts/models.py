# backend/lmsdb/apps/accounts/models.py

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Iterable, List

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
    UniqueConstraint,
)

from sqlalchemy.orm import relationship

from lmsdb.database import Base
from lmsdb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class UserRole(str, enum.Enum):
    """Roles a user can hold. A user may hold several at once."""

    CONSULTANT = "consultant"
    RH = "rh"
    FORMATEUR = "formateur"                    # internal instructor
    FORMATEUR_EXTERNE = "formateur_externe"    # external instructor
    MANAGER = "manager"
    COACH = "coach"


INSTRUCTOR_ROLES = frozenset({UserRole.FORMATEUR, UserRole.FORMATEUR_EXTERNE})

ROLE_LABELS = {
    UserRole.CONSULTANT: "Collaborateur",
    UserRole.RH: "Ressources Humaines",
    UserRole.FORMATEUR: "Formateur interne",
    UserRole.FORMATEUR_EXTERNE: "Formateur externe",
    UserRole.MANAGER: "Manager",
    UserRole.COACH: "Coach",
}


class Seniority(str, enum.Enum):
    """Seniority tiers, declared from lowest to highest."""

    JUNIOR = "junior"
    CONFIRME = "confirme"
    SENIOR = "senior"
    EXPERT = "expert"

    @property
    def rank(self) -> int:
        return list(Seniority).index(self)


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


# ---------------------------------------------------------------------------
# USERS
# ---------------------------------------------------------------------------


class User(Base):
    """
    Employee account.

    `p1_used` / `p2_used` record whether the single annual P1 and P2 slots
    are consumed. They are only ever changed by the enrollment workflow
    (expressing, rejecting, withdrawing or deleting an interest).
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        CheckConstraint("p1_used IN (0, 1)", name="ck_users_p1_used_range"),
        CheckConstraint("p2_used IN (0, 1)", name="ck_users_p2_used_range"),
        Index("idx_users_archived", "archived"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)

    email = Column(String(255), nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)

    # Stored as a JSON list of UserRole values, e.g. ["consultant", "rh"].
    roles = Column(JSON, nullable=False, default=list)

    seniority = Column(
        Enum(Seniority, name="seniority_enum", native_enum=False, values_callable=_enum_values),
        nullable=True,
    )
    business_unit = Column(String(128), nullable=True)

    p1_used = Column(Integer, nullable=False, default=0)
    p2_used = Column(Integer, nullable=False, default=0)

    archived = Column(Boolean, nullable=False, default=False)
    archived_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def has_role(self, role: UserRole | str) -> bool:
        value = role.value if isinstance(role, UserRole) else str(role)
        return value in (self.roles or [])

    def has_any_role(self, roles: Iterable[UserRole | str]) -> bool:
        return any(self.has_role(role) for role in roles)

    @property
    def is_rh(self) -> bool:
        return self.has_role(UserRole.RH)

    @property
    def is_instructor(self) -> bool:
        return self.has_any_role(INSTRUCTOR_ROLES)

    @property
    def roles_label(self) -> str:
        labels = []
        for raw in self.roles or []:
            try:
                labels.append(ROLE_LABELS[UserRole(raw)])
            except ValueError:
                labels.append(raw)
        return " • ".join(labels)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} roles={self.roles}>"


class CoachAssignment(Base):
    """
    Non-hierarchical coach -> coachee pairing.

    Used to route interest approvals through the coach channel.
    """

    __tablename__ = "coach_assignments"
    __table_args__ = (
        UniqueConstraint("coach_id", "coachee_id", name="uq_coach_assignments_pair"),
        CheckConstraint("coach_id <> coachee_id", name="ck_coach_assignments_distinct"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    coach_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    coachee_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    coach = relationship("User", foreign_keys=[coach_id], lazy="joined")
    coachee = relationship("User", foreign_keys=[coachee_id], lazy="joined")

    def __repr__(self) -> str:
        return f"<CoachAssignment coach={self.coach_id} coachee={self.coachee_id}>"
