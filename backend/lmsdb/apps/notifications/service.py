from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)

ROUTE_HOME = "/"
ROUTE_COACH = "/coach"
ROUTE_RH = "/rh"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def notify_user(
    db: Session,
    *,
    user_id: str,
    title: str,
    message: Optional[str] = None,
    route: str = ROUTE_HOME,
    metadata: Optional[dict] = None,
) -> Optional[models.Notification]:
    """
    Queue an in-app notification on the caller's session.

    Fire and forget: the row is committed together with the workflow
    operation that produced it, and a failure here is logged and ignored.
    """
    try:
        notification = models.Notification(
            user_id=user_id,
            route=route,
            title=title,
            message=message,
            metadata_json=metadata or {},
            read=False,
        )
        db.add(notification)
        return notification
    except Exception:
        logger.warning(
            "Failed to queue notification",
            extra={"user_id": user_id, "route": route, "title": title},
            exc_info=True,
        )
        return None


def notify_users(
    db: Session,
    *,
    user_ids: Iterable[str],
    title: str,
    message: Optional[str] = None,
    route: str = ROUTE_HOME,
    metadata: Optional[dict] = None,
) -> None:
    for user_id in user_ids:
        notify_user(db, user_id=user_id, title=title, message=message, route=route, metadata=metadata)


def list_for_user(
    db: Session,
    *,
    user_id: str,
    route: Optional[str] = None,
    unread_only: bool = False,
    limit: int = 100,
) -> List[models.Notification]:
    query = db.query(models.Notification).filter(models.Notification.user_id == user_id)
    if route:
        query = query.filter(models.Notification.route == route)
    if unread_only:
        query = query.filter(models.Notification.read.is_(False))
    return query.order_by(models.Notification.created_at.desc()).limit(limit).all()


def unread_count(db: Session, *, user_id: str, route: Optional[str] = None) -> int:
    query = db.query(models.Notification).filter(
        models.Notification.user_id == user_id,
        models.Notification.read.is_(False),
    )
    if route:
        query = query.filter(models.Notification.route == route)
    return query.count()


def mark_read(
    db: Session,
    *,
    user_id: str,
    ids: Optional[Iterable[str]] = None,
    route: Optional[str] = None,
) -> int:
    """
    Mark the user's notifications as read, either by id or for a whole route.
    Returns the number of rows changed.
    """
    query = db.query(models.Notification).filter(
        models.Notification.user_id == user_id,
        models.Notification.read.is_(False),
    )
    id_list = list(ids or [])
    if id_list:
        query = query.filter(models.Notification.id.in_(id_list))
    elif route:
        query = query.filter(models.Notification.route == route)
    else:
        return 0

    now = _utcnow()
    changed = 0
    for notification in query.all():
        notification.read = True
        notification.read_at = now
        changed += 1
    db.commit()
    return changed
