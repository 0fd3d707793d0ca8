# backend/lmsdb/apps/accounts/router_admin.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from lmsdb.database import get_db
from lmsdb.security import require_rh
from lmsdb.apps.enrollment import schemas as enrollment_schemas
from lmsdb.apps.enrollment import services as enrollment_services
from lmsdb.apps.workflow.errors import WorkflowError, to_http_exception
from . import models, schemas, services

router = APIRouter(prefix="/admin", tags=["accounts_admin"])


# ---------------------------------------------------------------------------
# USERS (RH ONLY)
# ---------------------------------------------------------------------------


@router.get("/users", response_model=List[schemas.UserRead])
def list_users(
    archived: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_rh),
):
    return services.list_users(db, archived=archived)


@router.patch("/users/{user_id}/roles", response_model=schemas.UserRead)
def update_user_roles(
    user_id: str,
    payload: schemas.RolesUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_rh),
):
    try:
        return services.update_roles(db, user_id=user_id, roles=payload.roles, actor=current_user)
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.patch("/users/{user_id}/archive", response_model=enrollment_schemas.ArchiveResult)
def archive_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_rh),
):
    """
    Archive an account: open interests (quota refunded) and open
    registrations are removed, history is kept, coach links are dropped.
    """
    try:
        return enrollment_services.archive_user(db, user_id=user_id, actor=current_user)
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_rh),
):
    try:
        enrollment_services.delete_user(db, user_id=user_id, actor=current_user)
    except WorkflowError as exc:
        raise to_http_exception(exc)
    return None


# ---------------------------------------------------------------------------
# COACH ASSIGNMENTS (RH ONLY)
# ---------------------------------------------------------------------------


@router.get("/coach-assignments", response_model=List[schemas.CoachAssignmentRead])
def list_coach_assignments(
    coach_id: Optional[str] = None,
    coachee_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_rh),
):
    return services.list_coach_assignments(db, coach_id=coach_id, coachee_id=coachee_id)


@router.post(
    "/coach-assignments",
    response_model=schemas.CoachAssignmentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_coach_assignment(
    payload: schemas.CoachAssignmentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_rh),
):
    try:
        return services.create_coach_assignment(db, coach_id=payload.coach_id, coachee_id=payload.coachee_id)
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.delete("/coach-assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_coach_assignment(
    assignment_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_rh),
):
    try:
        services.delete_coach_assignment(db, assignment_id=assignment_id)
    except WorkflowError as exc:
        raise to_http_exception(exc)
    return None
