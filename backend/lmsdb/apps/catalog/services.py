# backend/lmsdb/apps/catalog/services.py

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from lmsdb.apps.accounts import models as account_models
from lmsdb.apps.workflow.errors import InvalidRequest, NotFound

from . import models, schemas

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Formations
# ---------------------------------------------------------------------------


def get_formation(db: Session, formation_id: str) -> models.Formation:
    formation = db.query(models.Formation).filter(models.Formation.id == formation_id).first()
    if formation is None:
        raise NotFound("Formation not found.", detail=[{"field": "formation_id", "reason": "unknown formation"}])
    return formation


def list_formations(
    db: Session,
    *,
    active_only: bool = True,
    theme: Optional[str] = None,
    search: Optional[str] = None,
) -> List[models.Formation]:
    query = db.query(models.Formation)
    if active_only:
        query = query.filter(models.Formation.active.is_(True))
    if theme:
        query = query.filter(models.Formation.theme == theme)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            models.Formation.title.ilike(pattern) | models.Formation.description.ilike(pattern)
        )
    return query.order_by(models.Formation.title.asc()).all()


def create_formation(db: Session, data: schemas.FormationCreate) -> models.Formation:
    formation = models.Formation(**data.model_dump())
    db.add(formation)
    db.commit()
    db.refresh(formation)
    logger.info("Formation created", extra={"formation_id": formation.id})
    return formation


def update_formation(db: Session, formation_id: str, data: schemas.FormationUpdate) -> models.Formation:
    formation = get_formation(db, formation_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(formation, field, value)
    db.commit()
    db.refresh(formation)
    return formation


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def get_session(db: Session, session_id: str, *, for_update: bool = False) -> models.FormationSession:
    query = db.query(models.FormationSession).filter(models.FormationSession.id == session_id)
    if for_update:
        query = query.with_for_update()
    session = query.first()
    if session is None:
        raise NotFound("Session not found.", detail=[{"field": "session_id", "reason": "unknown session"}])
    return session


def _check_instructor(db: Session, instructor_id: Optional[str]) -> None:
    if not instructor_id:
        return
    instructor = (
        db.query(account_models.User)
        .filter(account_models.User.id == instructor_id)
        .first()
    )
    if instructor is None or not instructor.is_instructor:
        raise InvalidRequest(
            "The selected instructor does not hold an instructor role.",
            detail=[{"field": "instructor_id", "reason": "not an instructor"}],
        )


def list_sessions(
    db: Session,
    *,
    formation_id: Optional[str] = None,
    upcoming_only: bool = False,
    instructor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[models.FormationSession]:
    query = db.query(models.FormationSession)
    if formation_id:
        query = query.filter(models.FormationSession.formation_id == formation_id)
    if instructor_id:
        query = query.filter(models.FormationSession.instructor_id == instructor_id)
    if upcoming_only:
        query = query.filter(models.FormationSession.start_date > (now or _utcnow()))
    return query.order_by(models.FormationSession.start_date.asc()).all()


def create_session(db: Session, data: schemas.SessionCreate) -> models.FormationSession:
    get_formation(db, data.formation_id)
    _check_instructor(db, data.instructor_id)
    session = models.FormationSession(**data.model_dump(), status=models.SessionStatus.OPEN)
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info("Session created", extra={"session_id": session.id, "formation_id": session.formation_id})
    return session


def update_session(db: Session, session_id: str, data: schemas.SessionUpdate) -> models.FormationSession:
    session = get_session(db, session_id)
    changes = data.model_dump(exclude_unset=True)
    if "instructor_id" in changes:
        _check_instructor(db, changes["instructor_id"])

    start = changes.get("start_date", session.start_date)
    end = changes.get("end_date", session.end_date)
    if start is not None and end is not None and _as_utc(end) < _as_utc(start):
        raise InvalidRequest(
            "end_date must be on or after start_date.",
            detail=[{"field": "end_date", "reason": "before start_date"}],
        )

    for field, value in changes.items():
        setattr(session, field, value)
    db.commit()
    db.refresh(session)
    return session


# ---------------------------------------------------------------------------
# Instructors
# ---------------------------------------------------------------------------


def attach_instructor(db: Session, *, instructor: account_models.User, formation_id: str) -> models.InstructorFormation:
    get_formation(db, formation_id)
    link = (
        db.query(models.InstructorFormation)
        .filter(
            models.InstructorFormation.instructor_id == instructor.id,
            models.InstructorFormation.formation_id == formation_id,
        )
        .first()
    )
    if link is not None:
        return link
    link = models.InstructorFormation(instructor_id=instructor.id, formation_id=formation_id)
    db.add(link)
    db.commit()
    db.refresh(link)
    return link


def detach_instructor(db: Session, *, instructor: account_models.User, formation_id: str) -> None:
    link = (
        db.query(models.InstructorFormation)
        .filter(
            models.InstructorFormation.instructor_id == instructor.id,
            models.InstructorFormation.formation_id == formation_id,
        )
        .first()
    )
    if link is None:
        raise NotFound("This formation is not in your teaching list.")
    db.delete(link)
    db.commit()


def list_instructor_formations(db: Session, *, instructor_id: str) -> List[models.Formation]:
    return (
        db.query(models.Formation)
        .join(models.InstructorFormation, models.InstructorFormation.formation_id == models.Formation.id)
        .filter(models.InstructorFormation.instructor_id == instructor_id)
        .order_by(models.Formation.title.asc())
        .all()
    )


def upsert_availability(
    db: Session,
    *,
    instructor: account_models.User,
    data: schemas.AvailabilityUpsert,
) -> models.InstructorAvailability:
    """Replace the instructor's slots for one formation."""
    get_formation(db, data.formation_id)
    slots = [
        {"date": slot.date.isoformat(), "time_slot": slot.time_slot.value}
        for slot in sorted(data.slots, key=lambda s: (s.date, s.time_slot.value))
    ]
    row = (
        db.query(models.InstructorAvailability)
        .filter(
            models.InstructorAvailability.instructor_id == instructor.id,
            models.InstructorAvailability.formation_id == data.formation_id,
        )
        .first()
    )
    if row is None:
        row = models.InstructorAvailability(
            instructor_id=instructor.id,
            formation_id=data.formation_id,
            slots=slots,
        )
        db.add(row)
    else:
        row.slots = slots
    db.commit()
    db.refresh(row)
    return row


def list_availabilities(
    db: Session,
    *,
    instructor_id: Optional[str] = None,
    formation_id: Optional[str] = None,
) -> List[models.InstructorAvailability]:
    query = db.query(models.InstructorAvailability)
    if instructor_id:
        query = query.filter(models.InstructorAvailability.instructor_id == instructor_id)
    if formation_id:
        query = query.filter(models.InstructorAvailability.formation_id == formation_id)
    return query.order_by(models.InstructorAvailability.updated_at.desc()).all()
