from __future__ import annotations

import enum
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

GuardResult = List[Dict[str, str]]


def _get_value(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        value = obj.get(key)
    else:
        value = getattr(obj, key, None)
    if isinstance(value, enum.Enum):
        return value.value
    return value


def guard_interest_approval(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
    context: Optional[Dict[str, Any]] = None,
) -> GuardResult:
    """
    Decide whether an interest may move to `approved` through the given channel.

    - coach_validation_only: only the coach channel approves, RH is blocked.
    - rh_validation_only: RH approves directly, the coach step is skipped.
    - neither: RH approves once the assigned coach (if any) has approved.

    Evaluated on every call against the settings passed in `context`.
    """
    from lmsdb.apps.accounts import models as account_models

    context = context or {}
    settings = context.get("settings")
    channel = context.get("channel", "rh")

    if settings is None:
        return [{"field": "settings", "reason": "workflow settings are required for approval"}]

    if channel == "coach":
        if not settings.coach_validation_only:
            return [{"field": "channel", "reason": "coach approval is forwarded to RH"}]
        if _get_value(after_obj, "coach_status") != "approved":
            return [{"field": "coach_status", "reason": "coach approval required"}]
        return []

    if settings.coach_validation_only:
        return [{"field": "channel", "reason": "RH approval is disabled, coaches validate interests"}]

    if settings.rh_validation_only:
        return []

    owner_id = _get_value(before_obj, "user_id")
    has_coach = (
        db.query(account_models.CoachAssignment.id)
        .filter(account_models.CoachAssignment.coachee_id == owner_id)
        .first()
        is not None
    )
    if has_coach and _get_value(before_obj, "coach_status") != "approved":
        return [{"field": "coach_status", "reason": "coach validation required before RH approval"}]
    return []


def guard_interest_conversion(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
    context: Optional[Dict[str, Any]] = None,
) -> GuardResult:
    registration_id = _get_value(after_obj, "registration_id")
    if not registration_id:
        return [{"field": "registration_id", "reason": "conversion requires a session registration"}]
    return []


def guard_registration_completion(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
    context: Optional[Dict[str, Any]] = None,
) -> GuardResult:
    from lmsdb.apps.catalog import models as catalog_models

    session_id = _get_value(before_obj, "session_id")
    session = (
        db.query(catalog_models.FormationSession)
        .filter(catalog_models.FormationSession.id == session_id)
        .first()
    )
    if session is None:
        return [{"field": "session_id", "reason": "session no longer exists"}]
    if _get_value(session, "status") == "cancelled":
        return [{"field": "session_id", "reason": "session was cancelled"}]
    return []
