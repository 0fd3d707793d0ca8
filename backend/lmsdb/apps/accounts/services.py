# backend/lmsdb/apps/accounts/services.py

from __future__ import annotations

import logging
import os
from datetime import timedelta
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from lmsdb.apps.workflow.errors import InvalidRequest, NotFound
from lmsdb.security import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    create_access_token,
    get_password_hash,
    needs_rehash,
    verify_password,
)
from lmsdb.utils.identifiers import normalise_email

from . import models, schemas

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = int(os.getenv("MIN_PASSWORD_LENGTH", "8"))

# A lone RH or manager account is always a consultant as well.
_ROLES_IMPLYING_CONSULTANT = {models.UserRole.RH, models.UserRole.MANAGER}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class AuthenticationError(Exception):
    """Raised when login credentials are invalid or the account is archived."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        )


def resolve_registration_roles(roles: Iterable[models.UserRole | str]) -> List[str]:
    """
    Apply the registration role rules and return role values without duplicates.

    >>> resolve_registration_roles(["rh"])
    ['consultant', 'rh']
    """
    resolved: List[models.UserRole] = []
    for raw in roles or []:
        role = raw if isinstance(raw, models.UserRole) else models.UserRole(raw)
        if role not in resolved:
            resolved.append(role)

    if not resolved:
        resolved = [models.UserRole.CONSULTANT]
    elif len(resolved) == 1 and resolved[0] in _ROLES_IMPLYING_CONSULTANT:
        resolved.insert(0, models.UserRole.CONSULTANT)

    return [role.value for role in resolved]


def get_user_by_id(db: Session, user_id: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == normalise_email(email)).first()


def _require_user(db: Session, user_id: str) -> models.User:
    user = get_user_by_id(db, user_id)
    if user is None:
        raise NotFound("User not found.", detail=[{"field": "user_id", "reason": "unknown user"}])
    return user


# ---------------------------------------------------------------------------
# Registration and login
# ---------------------------------------------------------------------------


def register_user(db: Session, data: schemas.UserRegister) -> models.User:
    email = normalise_email(data.email)
    if get_user_by_email(db, email) is not None:
        raise ValueError("A user with this email already exists.")

    _validate_password_strength(data.password)

    user = models.User(
        email=email,
        name=data.name.strip(),
        hashed_password=get_password_hash(data.password),
        roles=resolve_registration_roles(data.roles),
        seniority=data.seniority,
        business_unit=(data.business_unit or "").strip() or None,
        p1_used=0,
        p2_used=0,
        archived=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User registered", extra={"user_id": user.id, "roles": user.roles})
    return user


def authenticate_user(db: Session, *, email: str, password: str) -> models.User:
    user = get_user_by_email(db, email)
    if user is None or not verify_password(password, user.hashed_password):
        raise AuthenticationError("Invalid credentials.")
    if user.archived:
        raise AuthenticationError("This account has been archived.")

    # Upgrade legacy bcrypt hashes on successful login.
    if needs_rehash(user.hashed_password):
        user.hashed_password = get_password_hash(password)
        db.commit()
    return user


def issue_access_token_for_user(user: models.User) -> Tuple[str, int]:
    """
    Create a JWT access token for the user.

    Returns (token_string, expires_in_seconds).
    """
    expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user.id),
        "roles": list(user.roles or []),
    }
    token = create_access_token(data=payload, expires_delta=expires_delta)
    return token, int(expires_delta.total_seconds())


def list_coaches_for(db: Session, user_id: str) -> List[models.User]:
    return [
        assignment.coach
        for assignment in db.query(models.CoachAssignment)
        .filter(models.CoachAssignment.coachee_id == user_id)
        .order_by(models.CoachAssignment.created_at.asc())
        .all()
    ]


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


def become_instructor(db: Session, user: models.User) -> models.User:
    if user.has_role(models.UserRole.FORMATEUR):
        raise InvalidRequest("User is already an instructor.")
    user.roles = list(user.roles or []) + [models.UserRole.FORMATEUR.value]
    db.commit()
    db.refresh(user)
    logger.info("User became instructor", extra={"user_id": user.id})
    return user


def update_roles(
    db: Session,
    *,
    user_id: str,
    roles: Iterable[models.UserRole | str],
    actor: models.User,
) -> models.User:
    user = _require_user(db, user_id)
    values: List[str] = []
    for raw in roles:
        value = raw.value if isinstance(raw, models.UserRole) else models.UserRole(raw).value
        if value not in values:
            values.append(value)
    if not values:
        raise InvalidRequest("A user needs at least one role.", detail=[{"field": "roles", "reason": "empty"}])
    if user.id == actor.id and models.UserRole.RH.value not in values:
        raise InvalidRequest(
            "You cannot remove your own RH role.",
            detail=[{"field": "roles", "reason": "self demotion"}],
        )

    user.roles = values
    db.commit()
    db.refresh(user)
    logger.info("User roles updated", extra={"user_id": user.id, "roles": values, "actor_user_id": actor.id})
    return user


def list_users(db: Session, *, archived: Optional[bool] = None) -> List[models.User]:
    query = db.query(models.User)
    if archived is not None:
        query = query.filter(models.User.archived.is_(archived))
    return query.order_by(models.User.name.asc()).all()


# ---------------------------------------------------------------------------
# Coach assignments
# ---------------------------------------------------------------------------


def create_coach_assignment(db: Session, *, coach_id: str, coachee_id: str) -> models.CoachAssignment:
    if coach_id == coachee_id:
        raise InvalidRequest(
            "A user cannot coach themselves.",
            detail=[{"field": "coachee_id", "reason": "same as coach_id"}],
        )
    coach = _require_user(db, coach_id)
    coachee = _require_user(db, coachee_id)
    if not coach.has_role(models.UserRole.COACH):
        raise InvalidRequest(
            "The selected user does not hold the coach role.",
            detail=[{"field": "coach_id", "reason": "missing coach role"}],
        )
    if coach.archived or coachee.archived:
        raise InvalidRequest("Archived users cannot take part in coaching.")

    existing = (
        db.query(models.CoachAssignment)
        .filter(
            models.CoachAssignment.coach_id == coach_id,
            models.CoachAssignment.coachee_id == coachee_id,
        )
        .first()
    )
    if existing is not None:
        raise InvalidRequest("This coach is already assigned to this user.")

    assignment = models.CoachAssignment(coach_id=coach_id, coachee_id=coachee_id)
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment


def delete_coach_assignment(db: Session, *, assignment_id: str) -> None:
    assignment = (
        db.query(models.CoachAssignment)
        .filter(models.CoachAssignment.id == assignment_id)
        .first()
    )
    if assignment is None:
        raise NotFound("Coach assignment not found.")
    db.delete(assignment)
    db.commit()


def list_coach_assignments(
    db: Session,
    *,
    coach_id: Optional[str] = None,
    coachee_id: Optional[str] = None,
) -> List[models.CoachAssignment]:
    query = db.query(models.CoachAssignment)
    if coach_id:
        query = query.filter(models.CoachAssignment.coach_id == coach_id)
    if coachee_id:
        query = query.filter(models.CoachAssignment.coachee_id == coachee_id)
    return query.order_by(models.CoachAssignment.created_at.asc()).all()


def coachee_ids_for(db: Session, coach_id: str) -> List[str]:
    return [
        row.coachee_id
        for row in db.query(models.CoachAssignment.coachee_id)
        .filter(models.CoachAssignment.coach_id == coach_id)
        .all()
    ]


def coach_ids_for(db: Session, coachee_id: str) -> List[str]:
    return [
        row.coach_id
        for row in db.query(models.CoachAssignment.coach_id)
        .filter(models.CoachAssignment.coachee_id == coachee_id)
        .all()
    ]
