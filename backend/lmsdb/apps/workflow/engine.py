from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from lmsdb.apps.audit import services as audit_services

from .registry import WORKFLOWS

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class TransitionError(Exception):
    code: str
    detail: List[Dict[str, str]]


def _state(value: Any) -> str:
    if isinstance(value, enum.Enum):
        return str(value.value)
    return str(value)


def _payload(obj: Any) -> Dict[str, Any]:
    if not isinstance(obj, dict):
        return {}
    return {k: (v.value if isinstance(v, enum.Enum) else v) for k, v in obj.items()}


def allowed_targets(entity_type: str, from_state: Any) -> List[str]:
    workflow = WORKFLOWS.get(entity_type, {})
    return sorted(workflow.get("transitions", {}).get(_state(from_state), {}).keys())


def apply_transition(
    db: Session,
    *,
    actor_user_id: Optional[str],
    entity_type: str,
    entity_id: str,
    from_state: Any,
    to_state: Any,
    before_obj: Any,
    after_obj: Any,
    context: Optional[Dict[str, Any]] = None,
    correlation_id: Optional[str] = None,
    critical: bool = True,
) -> None:
    """
    Validate a status change against the registry, run its guards and
    record it in the audit trail.

    Nothing is written when the transition is refused, so callers can
    perform their own writes after this returns.
    """
    from_state = _state(from_state)
    to_state = _state(to_state)

    workflow = WORKFLOWS.get(entity_type)
    if not workflow:
        raise TransitionError(
            code="invalid_transition",
            detail=[{"field": "entity_type", "reason": f"No workflow registered for {entity_type}"}],
        )

    transitions = workflow.get("transitions", {})
    allowed = transitions.get(from_state, {})
    guards = allowed.get(to_state)

    if guards is None:
        raise TransitionError(
            code="invalid_transition",
            detail=[{"field": "status", "reason": f"Cannot transition from {from_state} to {to_state}"}],
        )

    failures: List[Dict[str, str]] = []
    for guard in guards:
        failures.extend(
            guard(
                db,
                before_obj=before_obj,
                after_obj=after_obj,
                from_state=from_state,
                to_state=to_state,
                context=context,
            )
        )

    if failures:
        raise TransitionError(code="missing_requirements", detail=failures)

    before_payload: Dict[str, Any] = {"status": from_state}
    after_payload: Dict[str, Any] = {"status": to_state}
    before_payload.update({k: v for k, v in _payload(before_obj).items() if k != "status"})
    after_payload.update({k: v for k, v in _payload(after_obj).items() if k != "status"})

    audit_services.log_event(
        db,
        actor_user_id=actor_user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action="transition",
        before=before_payload,
        after=after_payload,
        correlation_id=correlation_id,
        metadata={"workflow": entity_type, "channel": (context or {}).get("channel")},
        critical=critical,
    )
    logger.info(
        "Workflow transition applied",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "from_state": from_state,
            "to_state": to_state,
            "actor_user_id": actor_user_id,
        },
    )
