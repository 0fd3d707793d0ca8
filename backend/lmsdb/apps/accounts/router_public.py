# backend/lmsdb/apps/accounts/router_public.py

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from lmsdb.database import get_db
from lmsdb.security import get_current_active_user
from lmsdb.apps.enrollment import quota
from lmsdb.apps.workflow.errors import WorkflowError, to_http_exception
from . import models, schemas, services

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=schemas.Token,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account and log in",
)
def register(
    payload: schemas.UserRegister,
    db: Session = Depends(get_db),
):
    """
    Self-service sign up. A lone `rh` or `manager` role also grants
    `consultant`; no role at all means `consultant`.
    """
    try:
        user = services.register_user(db, payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    token, expires_in = services.issue_access_token_for_user(user)
    return schemas.Token(access_token=token, expires_in=expires_in, user=user)


@router.post(
    "/login",
    response_model=schemas.Token,
    summary="Login with email and password",
)
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
):
    try:
        user = services.authenticate_user(db, email=payload.email, password=payload.password)
    except services.AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc) or "Incorrect email or password.",
        )

    token, expires_in = services.issue_access_token_for_user(user)
    return schemas.Token(access_token=token, expires_in=expires_in, user=user)


@router.get("/me", response_model=schemas.MeRead)
def me(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    return schemas.MeRead(
        user=current_user,
        coaches=services.list_coaches_for(db, current_user.id),
        quota=schemas.QuotaSummary(**quota.quota_summary(current_user)),
    )


@router.post("/become-instructor", response_model=schemas.UserRead)
def become_instructor(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user),
):
    try:
        return services.become_instructor(db, current_user)
    except WorkflowError as exc:
        raise to_http_exception(exc)
