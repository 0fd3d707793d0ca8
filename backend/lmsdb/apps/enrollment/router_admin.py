# backend/lmsdb/apps/enrollment/router_admin.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from lmsdb.apps.accounts.models import User
from lmsdb.apps.settings import services as settings_services
from lmsdb.apps.workflow.errors import WorkflowError, to_http_exception
from lmsdb.database import get_db
from lmsdb.security import require_rh

from . import models, schemas, services

router = APIRouter(prefix="/admin", tags=["enrollment_admin"])


# ---------------------------------------------------------------------------
# INTERESTS (RH)
# ---------------------------------------------------------------------------


@router.get("/interests", response_model=List[schemas.InterestRead])
def list_interests(
    status_filter: Optional[models.InterestStatus] = None,
    formation_id: Optional[str] = None,
    off_catalog: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    return services.list_interests(
        db,
        status=status_filter,
        formation_id=formation_id,
        off_catalog=off_catalog,
    )


@router.get("/interests/statistics", response_model=List[schemas.InterestStatistics])
def interest_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    return services.interest_statistics(db)


@router.patch("/interests/{interest_id}", response_model=schemas.InterestRead)
def set_interest_status(
    interest_id: str,
    payload: schemas.InterestStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    try:
        settings = settings_services.get_workflow_settings(db)
        return services.set_interest_status(
            db,
            interest_id=interest_id,
            new_status=payload.status,
            actor=current_user,
            settings=settings,
        )
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.delete("/interests/{interest_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rejected_interest(
    interest_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    try:
        services.delete_interest(db, interest_id=interest_id, actor=current_user)
    except WorkflowError as exc:
        raise to_http_exception(exc)
    return None


# ---------------------------------------------------------------------------
# REGISTRATIONS (RH)
# ---------------------------------------------------------------------------


@router.get("/registrations", response_model=List[schemas.RegistrationRead])
def list_registrations(
    session_id: Optional[str] = None,
    user_id: Optional[str] = None,
    status_filter: Optional[models.RegistrationStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    return services.list_registrations(db, user_id=user_id, session_id=session_id, status=status_filter)


@router.patch("/registrations/{registration_id}", response_model=schemas.RegistrationRead)
def set_registration_status(
    registration_id: str,
    payload: schemas.RegistrationStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    try:
        return services.set_registration_status(
            db,
            registration_id=registration_id,
            new_status=payload.status,
            actor=current_user,
            attended=payload.attended,
        )
    except WorkflowError as exc:
        raise to_http_exception(exc)
