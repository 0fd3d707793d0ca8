from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lmsdb.apps.accounts.models import User
from lmsdb.apps.workflow.errors import WorkflowError, to_http_exception
from lmsdb.database import get_db
from lmsdb.security import get_current_active_user, require_rh

from . import schemas, services

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/workflow", response_model=schemas.WorkflowSettingsRead)
def read_workflow_settings(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    try:
        settings = services.get_workflow_settings(db)
    except WorkflowError as exc:
        raise to_http_exception(exc)
    return schemas.WorkflowSettingsRead(
        coach_validation_only=settings.coach_validation_only,
        rh_validation_only=settings.rh_validation_only,
    )


@router.put("/workflow", response_model=schemas.WorkflowSettingsRead)
def update_workflow_settings(
    payload: schemas.WorkflowSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    try:
        settings = services.update_workflow_settings(
            db,
            coach_validation_only=payload.coach_validation_only,
            rh_validation_only=payload.rh_validation_only,
            actor_user_id=current_user.id,
        )
    except WorkflowError as exc:
        db.rollback()
        raise to_http_exception(exc)
    return schemas.WorkflowSettingsRead(
        coach_validation_only=settings.coach_validation_only,
        rh_validation_only=settings.rh_validation_only,
    )


@router.get("/dashboard-information", response_model=schemas.DashboardInformation)
def read_dashboard_information(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return schemas.DashboardInformation(**services.get_dashboard_information(db))


@router.put("/dashboard-information", response_model=schemas.DashboardInformation)
def update_dashboard_information(
    payload: schemas.DashboardInformation,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_rh),
):
    data = services.update_dashboard_information(
        db,
        enabled=payload.enabled,
        title=payload.title,
        body=payload.body,
        actor_user_id=current_user.id,
    )
    return schemas.DashboardInformation(**data)
