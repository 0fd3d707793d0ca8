from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lmsdb.apps.accounts.models import User
from lmsdb.database import get_db
from lmsdb.security import get_current_active_user

from . import schemas, service


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[schemas.NotificationRead])
def list_my_notifications(
    route: Optional[str] = None,
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return service.list_for_user(db, user_id=current_user.id, route=route, unread_only=unread_only)


@router.get("/unread-count", response_model=schemas.UnreadCount)
def my_unread_count(
    route: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return schemas.UnreadCount(count=service.unread_count(db, user_id=current_user.id, route=route))


@router.post("/mark-read", response_model=schemas.MarkReadResult)
def mark_my_notifications_read(
    payload: schemas.MarkReadRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    updated = service.mark_read(db, user_id=current_user.id, ids=payload.ids, route=payload.route)
    return schemas.MarkReadResult(updated=updated)
