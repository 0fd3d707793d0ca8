# backend/lmsdb/apps/enrollment/router.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from lmsdb.apps.accounts.models import User
from lmsdb.apps.accounts.schemas import QuotaSummary
from lmsdb.apps.workflow.errors import WorkflowError, to_http_exception
from lmsdb.database import get_db
from lmsdb.security import get_current_active_user

from . import models, quota, schemas, services

router = APIRouter(tags=["enrollment"])


# ---------------------------------------------------------------------------
# INTERESTS
# ---------------------------------------------------------------------------


@router.get("/interests", response_model=List[schemas.InterestRead])
def list_my_interests(
    status_filter: Optional[models.InterestStatus] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return services.list_interests(db, user_id=current_user.id, status=status_filter)


@router.post(
    "/interests",
    response_model=schemas.InterestRead,
    status_code=status.HTTP_201_CREATED,
)
def express_interest(
    payload: schemas.InterestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.express_interest(
            db,
            user_id=current_user.id,
            priority=payload.priority,
            formation_id=payload.formation_id,
            custom=payload.custom.model_dump() if payload.custom else None,
        )
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.delete("/interests/{interest_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_my_interest(
    interest_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        services.delete_interest(db, interest_id=interest_id, actor=current_user)
    except WorkflowError as exc:
        raise to_http_exception(exc)
    return None


@router.post("/interests/{interest_id}/review", response_model=schemas.InterestRead)
def review_interest(
    interest_id: str,
    payload: schemas.InterestReview,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.submit_interest_review(
            db,
            interest_id=interest_id,
            actor=current_user,
            rating=payload.rating,
            comment=payload.comment,
        )
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.get("/quota", response_model=QuotaSummary)
def my_quota(current_user: User = Depends(get_current_active_user)):
    return QuotaSummary(**quota.quota_summary(current_user))


# ---------------------------------------------------------------------------
# REGISTRATIONS
# ---------------------------------------------------------------------------


@router.get("/registrations", response_model=List[schemas.RegistrationRead])
def list_my_registrations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return services.list_registrations(db, user_id=current_user.id)


@router.post(
    "/registrations",
    response_model=schemas.RegistrationRead,
    status_code=status.HTTP_201_CREATED,
)
def register_for_session(
    payload: schemas.RegistrationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.register_for_session(
            db,
            user_id=current_user.id,
            session_id=payload.session_id,
            priority=payload.priority,
        )
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.post("/registrations/{registration_id}/cancel", response_model=schemas.RegistrationRead)
def cancel_my_registration(
    registration_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        return services.cancel_registration(db, registration_id=registration_id, actor=current_user)
    except WorkflowError as exc:
        raise to_http_exception(exc)
