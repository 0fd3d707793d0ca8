# backend/lmsdb/apps/catalog/router.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from lmsdb.apps.accounts.models import User
from lmsdb.apps.enrollment import services as enrollment_services
from lmsdb.apps.workflow.errors import WorkflowError, to_http_exception
from lmsdb.database import get_db
from lmsdb.security import require_instructor, require_rh

from . import schemas, services

router = APIRouter(tags=["catalog"])


# ---------------------------------------------------------------------------
# FORMATIONS
# ---------------------------------------------------------------------------


@router.get("/formations", response_model=List[schemas.FormationRead])
def list_formations(
    active_only: bool = True,
    theme: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return services.list_formations(db, active_only=active_only, theme=theme, search=search)


@router.get("/formations/{formation_id}", response_model=schemas.FormationRead)
def get_formation(formation_id: str, db: Session = Depends(get_db)):
    try:
        return services.get_formation(db, formation_id)
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.post(
    "/formations",
    response_model=schemas.FormationRead,
    status_code=status.HTTP_201_CREATED,
)
def create_formation(
    payload: schemas.FormationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    return services.create_formation(db, payload)


@router.patch("/formations/{formation_id}", response_model=schemas.FormationRead)
def update_formation(
    formation_id: str,
    payload: schemas.FormationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    try:
        return services.update_formation(db, formation_id, payload)
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.delete("/formations/{formation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_formation(
    formation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    try:
        enrollment_services.delete_formation(db, formation_id=formation_id, actor=current_user)
    except WorkflowError as exc:
        raise to_http_exception(exc)
    return None


# ---------------------------------------------------------------------------
# SESSIONS
# ---------------------------------------------------------------------------


@router.get("/sessions", response_model=List[schemas.SessionRead])
def list_sessions(
    formation_id: Optional[str] = None,
    upcoming: bool = False,
    db: Session = Depends(get_db),
):
    return services.list_sessions(db, formation_id=formation_id, upcoming_only=upcoming)


@router.get("/sessions/{session_id}", response_model=schemas.SessionRead)
def get_session(session_id: str, db: Session = Depends(get_db)):
    try:
        return services.get_session(db, session_id)
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.post(
    "/sessions",
    response_model=schemas.SessionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_session(
    payload: schemas.SessionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    try:
        return services.create_session(db, payload)
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.patch("/sessions/{session_id}", response_model=schemas.SessionRead)
def update_session(
    session_id: str,
    payload: schemas.SessionUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    try:
        return services.update_session(db, session_id, payload)
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    try:
        enrollment_services.delete_session(db, session_id=session_id, actor=current_user)
    except WorkflowError as exc:
        raise to_http_exception(exc)
    return None


# ---------------------------------------------------------------------------
# INSTRUCTORS
# ---------------------------------------------------------------------------


@router.get("/instructor/formations", response_model=List[schemas.FormationRead])
def list_my_formations(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_instructor),
):
    return services.list_instructor_formations(db, instructor_id=current_user.id)


@router.post(
    "/instructor/formations/{formation_id}",
    response_model=schemas.InstructorFormationRead,
    status_code=status.HTTP_201_CREATED,
)
def attach_formation(
    formation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_instructor),
):
    try:
        return services.attach_instructor(db, instructor=current_user, formation_id=formation_id)
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.delete("/instructor/formations/{formation_id}", status_code=status.HTTP_204_NO_CONTENT)
def detach_formation(
    formation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_instructor),
):
    try:
        services.detach_instructor(db, instructor=current_user, formation_id=formation_id)
    except WorkflowError as exc:
        raise to_http_exception(exc)
    return None


@router.get("/instructor/sessions", response_model=List[schemas.SessionRead])
def list_my_sessions(
    upcoming: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_instructor),
):
    return services.list_sessions(db, instructor_id=current_user.id, upcoming_only=upcoming)


@router.put("/instructor/availabilities", response_model=schemas.AvailabilityRead)
def save_availability(
    payload: schemas.AvailabilityUpsert,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_instructor),
):
    try:
        return services.upsert_availability(db, instructor=current_user, data=payload)
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.get("/instructor/availabilities", response_model=List[schemas.AvailabilityRead])
def list_my_availabilities(
    formation_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_instructor),
):
    return services.list_availabilities(db, instructor_id=current_user.id, formation_id=formation_id)


@router.get("/availabilities", response_model=List[schemas.AvailabilityRead])
def list_all_availabilities(
    formation_id: Optional[str] = None,
    instructor_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    return services.list_availabilities(db, instructor_id=instructor_id, formation_id=formation_id)
