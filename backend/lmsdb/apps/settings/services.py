from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from lmsdb.apps.workflow.errors import ConfigurationError

from . import models

logger = logging.getLogger(__name__)

COACH_VALIDATION_ONLY = "coach_validation_only"
RH_VALIDATION_ONLY = "rh_validation_only"
DASHBOARD_INFORMATION = "dashboard_information"


@dataclass(frozen=True)
class WorkflowSettings:
    """
    Approval routing switches, read fresh from `app_settings` for every
    approval decision and passed into the enrollment services.
    """

    coach_validation_only: bool = False
    rh_validation_only: bool = False

    def validate(self) -> "WorkflowSettings":
        if self.coach_validation_only and self.rh_validation_only:
            raise ConfigurationError(
                "coach_validation_only and rh_validation_only cannot both be enabled.",
                detail=[
                    {"field": COACH_VALIDATION_ONLY, "reason": "conflicts with rh_validation_only"},
                    {"field": RH_VALIDATION_ONLY, "reason": "conflicts with coach_validation_only"},
                ],
            )
        return self


def get_setting(db: Session, key: str, default: Any = None) -> Any:
    row = db.query(models.AppSetting).filter(models.AppSetting.key == key).first()
    if row is None:
        return default
    return row.value


def set_setting(db: Session, key: str, value: Any, *, actor_user_id: Optional[str] = None) -> models.AppSetting:
    """Insert or replace a setting. Flushes only; the caller commits."""
    row = db.query(models.AppSetting).filter(models.AppSetting.key == key).first()
    if row is None:
        row = models.AppSetting(key=key, value=value, updated_by_user_id=actor_user_id)
        db.add(row)
    else:
        row.value = value
        row.updated_by_user_id = actor_user_id
    db.flush()
    return row


def get_workflow_settings(db: Session) -> WorkflowSettings:
    """
    Raises ConfigurationError when both modes are enabled (e.g. edited by hand
    in the database), rather than silently picking one.
    """
    settings = WorkflowSettings(
        coach_validation_only=bool(get_setting(db, COACH_VALIDATION_ONLY, False)),
        rh_validation_only=bool(get_setting(db, RH_VALIDATION_ONLY, False)),
    )
    return settings.validate()


def update_workflow_settings(
    db: Session,
    *,
    coach_validation_only: Optional[bool] = None,
    rh_validation_only: Optional[bool] = None,
    actor_user_id: Optional[str] = None,
) -> WorkflowSettings:
    current = WorkflowSettings(
        coach_validation_only=bool(get_setting(db, COACH_VALIDATION_ONLY, False)),
        rh_validation_only=bool(get_setting(db, RH_VALIDATION_ONLY, False)),
    )
    updated = WorkflowSettings(
        coach_validation_only=(
            current.coach_validation_only if coach_validation_only is None else coach_validation_only
        ),
        rh_validation_only=current.rh_validation_only if rh_validation_only is None else rh_validation_only,
    ).validate()

    set_setting(db, COACH_VALIDATION_ONLY, updated.coach_validation_only, actor_user_id=actor_user_id)
    set_setting(db, RH_VALIDATION_ONLY, updated.rh_validation_only, actor_user_id=actor_user_id)
    db.commit()
    logger.info(
        "Workflow settings updated",
        extra={
            "coach_validation_only": updated.coach_validation_only,
            "rh_validation_only": updated.rh_validation_only,
            "actor_user_id": actor_user_id,
        },
    )
    return updated


def get_dashboard_information(db: Session) -> dict:
    value = get_setting(db, DASHBOARD_INFORMATION, None) or {}
    return {
        "enabled": bool(value.get("enabled", False)),
        "title": value.get("title") or "",
        "body": value.get("body") or "",
    }


def update_dashboard_information(
    db: Session,
    *,
    enabled: bool,
    title: str,
    body: str,
    actor_user_id: Optional[str] = None,
) -> dict:
    payload = {"enabled": enabled, "title": title.strip(), "body": body.strip()}
    set_setting(db, DASHBOARD_INFORMATION, payload, actor_user_id=actor_user_id)
    db.commit()
    return payload
