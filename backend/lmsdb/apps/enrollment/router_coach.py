# backend/lmsdb/apps/enrollment/router_coach.py

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lmsdb.apps.accounts.models import User
from lmsdb.apps.settings import services as settings_services
from lmsdb.apps.workflow.errors import WorkflowError, to_http_exception
from lmsdb.database import get_db
from lmsdb.security import require_coach

from . import schemas, services

router = APIRouter(prefix="/coach", tags=["coach"])


@router.get("/overview", response_model=schemas.CoachOverview)
def coach_overview(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_coach),
):
    try:
        settings = settings_services.get_workflow_settings(db)
    except WorkflowError as exc:
        raise to_http_exception(exc)
    return services.coach_overview(db, coach=current_user, settings=settings)


def _decide(db: Session, interest_id: str, coach: User, approve: bool):
    try:
        settings = settings_services.get_workflow_settings(db)
        return services.coach_decide(
            db,
            interest_id=interest_id,
            coach=coach,
            approve=approve,
            settings=settings,
        )
    except WorkflowError as exc:
        raise to_http_exception(exc)


@router.post("/interests/{interest_id}/approve", response_model=schemas.InterestRead)
def approve_interest(
    interest_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_coach),
):
    return _decide(db, interest_id, current_user, True)


@router.post("/interests/{interest_id}/reject", response_model=schemas.InterestRead)
def reject_interest(
    interest_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_coach),
):
    return _decide(db, interest_id, current_user, False)
