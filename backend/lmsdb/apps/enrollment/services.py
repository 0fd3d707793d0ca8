# backend/lmsdb/apps/enrollment/services.py

"""
Training workflow engine.

Owns the FormationInterest and Registration state machines and keeps each
user's P1/P2 counters in step with them. Every public operation:

- runs in one transaction: checks first, writes second, one commit;
- rolls back everything (quota counters included) when it fails;
- records status changes through the workflow registry, which writes the
  audit trail;
- queues in-app notifications as a best-effort side effect.

Approval routing (`WorkflowSettings`) is passed in by the caller for each
call and never cached here.
"""

from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime, timezone
import logging
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lmsdb.apps.accounts import models as account_models
from lmsdb.apps.accounts import services as account_services
from lmsdb.apps.audit import models as audit_models
from lmsdb.apps.audit import services as audit_services
from lmsdb.apps.catalog import models as catalog_models
from lmsdb.apps.notifications import models as notification_models
from lmsdb.apps.notifications import service as notification_service
from lmsdb.apps.settings import models as settings_models
from lmsdb.apps.settings.services import WorkflowSettings
from lmsdb.apps.workflow import TransitionError, apply_transition
from lmsdb.apps.workflow.errors import (
    DuplicateInterest,
    DuplicateRegistration,
    InvalidRequest,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    SeniorityNotMet,
    SessionFull,
)
from lmsdb.utils.identifiers import generate_uuid7

from . import models, quota

logger = logging.getLogger(__name__)

InterestStatus = models.InterestStatus
RegistrationStatus = models.RegistrationStatus
CoachStatus = models.CoachStatus

_CLOSED_SESSION_STATUSES = {
    catalog_models.SessionStatus.CANCELLED,
    catalog_models.SessionStatus.COMPLETED,
}

# Registrations that still occupy (or may occupy) a seat.
_OPEN_REGISTRATION_STATUSES = (RegistrationStatus.PENDING, RegistrationStatus.VALIDATED)

# Guard failures on these transitions are approval-routing refusals.
_GATED_TRANSITIONS = {("formation_interest", "approved")}

_OWNER_DELETABLE_INTEREST_STATUSES = models.REFUNDABLE_INTEREST_STATUSES | {InterestStatus.REJECTED}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Transaction and lookup helpers
# ---------------------------------------------------------------------------


@contextmanager
def _unit_of_work(db: Session) -> Iterator[None]:
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


def _lock_user(db: Session, user_id: str) -> account_models.User:
    user = (
        db.query(account_models.User)
        .filter(account_models.User.id == user_id)
        .with_for_update()
        .first()
    )
    if user is None:
        raise NotFound("User not found.", detail=[{"field": "user_id", "reason": "unknown user"}])
    return user


def _lock_interest(db: Session, interest_id: str) -> models.FormationInterest:
    interest = (
        db.query(models.FormationInterest)
        .filter(models.FormationInterest.id == interest_id)
        .with_for_update()
        .first()
    )
    if interest is None:
        raise NotFound("Interest not found.", detail=[{"field": "interest_id", "reason": "unknown interest"}])
    return interest


def _lock_registration(db: Session, registration_id: str) -> models.Registration:
    registration = (
        db.query(models.Registration)
        .filter(models.Registration.id == registration_id)
        .with_for_update()
        .first()
    )
    if registration is None:
        raise NotFound(
            "Registration not found.",
            detail=[{"field": "registration_id", "reason": "unknown registration"}],
        )
    return registration


def _lock_session(db: Session, session_id: str) -> catalog_models.FormationSession:
    session = (
        db.query(catalog_models.FormationSession)
        .filter(catalog_models.FormationSession.id == session_id)
        .with_for_update()
        .first()
    )
    if session is None:
        raise NotFound("Session not found.", detail=[{"field": "session_id", "reason": "unknown session"}])
    return session


def _require_rh(actor: account_models.User) -> None:
    if not actor.is_rh:
        raise PermissionDenied("Only RH can perform this action.")


def _value(value: Any) -> Any:
    return getattr(value, "value", value)


def _interest_snapshot(interest: models.FormationInterest) -> Dict[str, Any]:
    return {
        "status": _value(interest.status),
        "user_id": interest.user_id,
        "formation_id": interest.formation_id,
        "priority": _value(interest.priority),
        "coach_status": _value(interest.coach_status),
    }


def _registration_snapshot(registration: models.Registration) -> Dict[str, Any]:
    return {
        "status": _value(registration.status),
        "user_id": registration.user_id,
        "session_id": registration.session_id,
        "formation_id": registration.formation_id,
        "priority": _value(registration.priority),
    }


def _transition(
    db: Session,
    *,
    actor_user_id: Optional[str],
    entity_type: str,
    entity_id: str,
    from_state: Any,
    to_state: Any,
    before_obj: Dict[str, Any],
    after_obj: Dict[str, Any],
    context: Optional[Dict[str, Any]] = None,
) -> None:
    try:
        apply_transition(
            db,
            actor_user_id=actor_user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            from_state=from_state,
            to_state=to_state,
            before_obj=before_obj,
            after_obj=after_obj,
            context=context,
        )
    except TransitionError as exc:
        from_value = _value(from_state)
        to_value = _value(to_state)
        if exc.code == "missing_requirements" and (entity_type, to_value) in _GATED_TRANSITIONS:
            raise PermissionDenied("Approval is not allowed through this channel yet.", detail=exc.detail)
        raise InvalidTransition(
            f"Cannot move {entity_type.replace('_', ' ')} from {from_value} to {to_value}.",
            detail=exc.detail,
        )


def _validated_count(db: Session, session_id: str) -> int:
    return (
        db.query(func.count(models.Registration.id))
        .filter(
            models.Registration.session_id == session_id,
            models.Registration.status == RegistrationStatus.VALIDATED,
        )
        .scalar()
        or 0
    )


def _ensure_seat(db: Session, session: catalog_models.FormationSession) -> int:
    """Raise SessionFull unless a validated seat is free; returns the current count."""
    validated = _validated_count(db, session.id)
    if validated >= session.capacity:
        raise SessionFull(
            "This session is full.",
            detail=[{"field": "session_id", "reason": f"{validated}/{session.capacity} seats validated"}],
        )
    return validated


def _ensure_session_open(session: catalog_models.FormationSession) -> None:
    if session.status in _CLOSED_SESSION_STATUSES:
        raise InvalidTransition(
            f"Session is {session.status.value} and no longer accepts registrations.",
            detail=[{"field": "session_id", "reason": session.status.value}],
        )


def _sync_session_status(db: Session, session: catalog_models.FormationSession) -> None:
    """Flip OPEN/FULL to match validated registrations. Closed sessions are left alone."""
    if session.status in _CLOSED_SESSION_STATUSES:
        return
    db.flush()
    validated = _validated_count(db, session.id)
    session.status = (
        catalog_models.SessionStatus.FULL
        if validated >= session.capacity
        else catalog_models.SessionStatus.OPEN
    )


def _interest_label(db: Session, interest: models.FormationInterest) -> str:
    if interest.formation_id is None:
        return interest.custom_title or "Off-catalog training"
    formation = (
        db.query(catalog_models.Formation)
        .filter(catalog_models.Formation.id == interest.formation_id)
        .first()
    )
    return formation.title if formation else "Training"


# ---------------------------------------------------------------------------
# Interests
# ---------------------------------------------------------------------------


def express_interest(
    db: Session,
    *,
    user_id: str,
    priority: models.Priority | str,
    formation_id: Optional[str] = None,
    custom: Optional[Dict[str, Any]] = None,
) -> models.FormationInterest:
    """
    Declare interest in a catalog formation (`formation_id`) or in an
    off-catalog training (`custom` with title, description, link, price,
    fitnet_number, mission_manager). P1/P2 take the user's annual slot.
    """
    priority = models.Priority(priority)
    if bool(formation_id) == bool(custom):
        raise InvalidRequest(
            "Provide either a formation or an off-catalog request.",
            detail=[{"field": "formation_id", "reason": "exactly one target required"}],
        )

    with _unit_of_work(db):
        user = _lock_user(db, user_id)
        if user.archived:
            raise PermissionDenied("Archived accounts cannot express interest.")

        custom_fields: Dict[str, Any] = {}
        if formation_id:
            formation = (
                db.query(catalog_models.Formation)
                .filter(catalog_models.Formation.id == formation_id)
                .first()
            )
            if formation is None:
                raise NotFound("Formation not found.", detail=[{"field": "formation_id", "reason": "unknown formation"}])
            if not formation.active:
                raise InvalidRequest(
                    "This formation is no longer offered.",
                    detail=[{"field": "formation_id", "reason": "inactive"}],
                )

            existing = (
                db.query(models.FormationInterest.id)
                .filter(
                    models.FormationInterest.user_id == user.id,
                    models.FormationInterest.formation_id == formation_id,
                    models.FormationInterest.status.in_(list(models.ACTIVE_INTEREST_STATUSES)),
                )
                .first()
            )
            if existing is not None:
                raise DuplicateInterest(
                    "You already expressed interest in this formation.",
                    detail=[{"field": "formation_id", "reason": "active interest exists"}],
                )
        else:
            title = (custom.get("title") or "").strip()
            description = (custom.get("description") or "").strip()
            if len(title) < 5:
                raise InvalidRequest("Title must be at least 5 characters.", detail=[{"field": "title", "reason": "too short"}])
            if len(description) < 10:
                raise InvalidRequest(
                    "Description must be at least 10 characters.",
                    detail=[{"field": "description", "reason": "too short"}],
                )
            custom_fields = {
                "custom_title": title,
                "custom_description": description,
                "custom_link": custom.get("link"),
                "custom_price": custom.get("price"),
                "custom_fitnet_number": custom.get("fitnet_number"),
                "custom_mission_manager": custom.get("mission_manager"),
            }

        quota.consume_quota(user, priority)

        interest = models.FormationInterest(
            id=generate_uuid7(),
            user_id=user.id,
            formation_id=formation_id or None,
            priority=priority,
            status=InterestStatus.PENDING,
            coach_status=CoachStatus.PENDING,
            expressed_at=_utcnow(),
            **custom_fields,
        )
        db.add(interest)
        try:
            db.flush()
        except IntegrityError:
            raise DuplicateInterest(
                "You already expressed interest in this formation.",
                detail=[{"field": "formation_id", "reason": "active interest exists"}],
            )

        audit_services.log_event(
            db,
            actor_user_id=user.id,
            entity_type="formation_interest",
            entity_id=interest.id,
            action="create",
            after=_interest_snapshot(interest),
            critical=True,
        )

        coach_ids = account_services.coach_ids_for(db, user.id)
        if coach_ids:
            notification_service.notify_users(
                db,
                user_ids=coach_ids,
                route=notification_service.ROUTE_COACH,
                title="New training request to review",
                message=f"{user.name} asked for {_interest_label(db, interest)} ({priority.value}).",
                metadata={"interest_id": interest.id},
            )

    logger.info(
        "Interest expressed",
        extra={"interest_id": interest.id, "user_id": user_id, "priority": priority.value},
    )
    return interest


def set_interest_status(
    db: Session,
    *,
    interest_id: str,
    new_status: InterestStatus | str,
    actor: account_models.User,
    settings: WorkflowSettings,
) -> models.FormationInterest:
    """
    RH decision on an interest: approve, reject or withdraw.

    Conversion only happens through `register_for_session`.
    """
    new_status = InterestStatus(new_status)
    _require_rh(actor)
    if new_status == InterestStatus.CONVERTED:
        raise InvalidTransition(
            "Interests are converted by registering for a session.",
            detail=[{"field": "status", "reason": "conversion requires a registration"}],
        )

    with _unit_of_work(db):
        interest = _lock_interest(db, interest_id)
        owner = _lock_user(db, interest.user_id)
        from_status = interest.status

        _transition(
            db,
            actor_user_id=actor.id,
            entity_type="formation_interest",
            entity_id=interest.id,
            from_state=from_status,
            to_state=new_status,
            before_obj=_interest_snapshot(interest),
            after_obj=_interest_snapshot(interest) | {"status": new_status},
            context={"settings": settings, "channel": "rh"},
        )

        if new_status in (InterestStatus.REJECTED, InterestStatus.WITHDRAWN) and (
            from_status in models.REFUNDABLE_INTEREST_STATUSES
        ):
            quota.refund_quota(owner, interest.priority)
        interest.status = new_status

        notification_service.notify_user(
            db,
            user_id=owner.id,
            title=f"Training request {new_status.value}",
            message=f"Your request for {_interest_label(db, interest)} is now {new_status.value}.",
            metadata={"interest_id": interest.id, "status": new_status.value},
        )

    return interest


def coach_decide(
    db: Session,
    *,
    interest_id: str,
    coach: account_models.User,
    approve: bool,
    settings: WorkflowSettings,
) -> models.FormationInterest:
    """
    Coach channel. Records the coach's opinion on a pending interest; in
    coach-validation-only mode the decision is also applied to the interest.
    """
    if not coach.has_role(account_models.UserRole.COACH):
        raise PermissionDenied("Only coaches can validate training requests.")

    target = CoachStatus.APPROVED if approve else CoachStatus.REJECTED

    with _unit_of_work(db):
        interest = _lock_interest(db, interest_id)
        if interest.user_id not in account_services.coachee_ids_for(db, coach.id):
            raise PermissionDenied("You are not the coach of this user.")
        if interest.status != InterestStatus.PENDING:
            raise InvalidTransition(
                f"Cannot review an interest that is {interest.status.value}.",
                detail=[{"field": "status", "reason": interest.status.value}],
            )
        owner = _lock_user(db, interest.user_id)
        before = _interest_snapshot(interest)

        _transition(
            db,
            actor_user_id=coach.id,
            entity_type="formation_interest_coach",
            entity_id=interest.id,
            from_state=interest.coach_status,
            to_state=target,
            before_obj={"status": interest.coach_status, "user_id": interest.user_id},
            after_obj={"status": target, "user_id": interest.user_id},
            context={"settings": settings, "channel": "coach"},
        )

        if settings.coach_validation_only:
            mirrored = InterestStatus.APPROVED if approve else InterestStatus.REJECTED
            _transition(
                db,
                actor_user_id=coach.id,
                entity_type="formation_interest",
                entity_id=interest.id,
                from_state=interest.status,
                to_state=mirrored,
                before_obj=before,
                after_obj=before | {"status": mirrored, "coach_status": target},
                context={"settings": settings, "channel": "coach"},
            )
            if mirrored == InterestStatus.REJECTED:
                quota.refund_quota(owner, interest.priority)
            interest.status = mirrored

        interest.coach_status = target
        interest.coach_id = coach.id
        interest.coach_validated_at = _utcnow()

        notification_service.notify_user(
            db,
            user_id=owner.id,
            title="Coach decision on your training request",
            message=(
                f"Your coach {'approved' if approve else 'rejected'} "
                f"your request for {_interest_label(db, interest)}."
            ),
            metadata={"interest_id": interest.id, "coach_status": target.value},
        )

    return interest


def delete_interest(
    db: Session,
    *,
    interest_id: str,
    actor: account_models.User,
) -> None:
    """
    Owners may delete their pending, approved or rejected interests; RH may
    delete rejected ones.
    Pending/approved interests give their quota slot back.
    """
    with _unit_of_work(db):
        interest = _lock_interest(db, interest_id)
        is_owner = interest.user_id == actor.id
        if not is_owner:
            if not actor.is_rh:
                raise PermissionDenied("You can only delete your own interests.")
            if interest.status != InterestStatus.REJECTED:
                raise InvalidTransition(
                    "RH can only delete rejected interests.",
                    detail=[{"field": "status", "reason": interest.status.value}],
                )
        elif interest.status not in _OWNER_DELETABLE_INTEREST_STATUSES:
            raise InvalidTransition(
                f"Cannot delete an interest that is {interest.status.value}.",
                detail=[{"field": "status", "reason": interest.status.value}],
            )

        owner = _lock_user(db, interest.user_id)
        refunded = False
        if interest.status in models.REFUNDABLE_INTEREST_STATUSES:
            refunded = quota.refund_quota(owner, interest.priority)

        audit_services.log_event(
            db,
            actor_user_id=actor.id,
            entity_type="formation_interest",
            entity_id=interest.id,
            action="delete",
            before=_interest_snapshot(interest),
            metadata={"refunded": refunded},
            critical=True,
        )
        db.delete(interest)

    logger.info("Interest deleted", extra={"interest_id": interest_id, "actor_user_id": actor.id})


def submit_interest_review(
    db: Session,
    *,
    interest_id: str,
    actor: account_models.User,
    rating: int,
    comment: Optional[str] = None,
) -> models.FormationInterest:
    if not 1 <= int(rating) <= 5:
        raise InvalidRequest("Rating must be between 1 and 5.", detail=[{"field": "rating", "reason": "out of range"}])

    with _unit_of_work(db):
        interest = _lock_interest(db, interest_id)
        if interest.user_id != actor.id:
            raise PermissionDenied("You can only review your own training requests.")
        if not interest.is_off_catalog:
            raise InvalidRequest("Only off-catalog trainings can be reviewed here.")
        if interest.status not in (InterestStatus.APPROVED, InterestStatus.CONVERTED):
            raise InvalidTransition(
                "Only approved trainings can be reviewed.",
                detail=[{"field": "status", "reason": interest.status.value}],
            )

        interest.custom_review_rating = int(rating)
        interest.custom_review_comment = (comment or "").strip() or None
        interest.custom_reviewed_at = _utcnow()
        audit_services.log_event(
            db,
            actor_user_id=actor.id,
            entity_type="formation_interest",
            entity_id=interest.id,
            action="review",
            after={"rating": interest.custom_review_rating},
        )

    return interest


def list_interests(
    db: Session,
    *,
    user_id: Optional[str] = None,
    status: Optional[InterestStatus] = None,
    formation_id: Optional[str] = None,
    off_catalog: Optional[bool] = None,
) -> List[models.FormationInterest]:
    query = db.query(models.FormationInterest)
    if user_id:
        query = query.filter(models.FormationInterest.user_id == user_id)
    if status:
        query = query.filter(models.FormationInterest.status == status)
    if formation_id:
        query = query.filter(models.FormationInterest.formation_id == formation_id)
    if off_catalog is True:
        query = query.filter(models.FormationInterest.formation_id.is_(None))
    elif off_catalog is False:
        query = query.filter(models.FormationInterest.formation_id.isnot(None))
    return query.order_by(models.FormationInterest.expressed_at.desc()).all()


def interest_statistics(db: Session) -> List[Dict[str, Any]]:
    """
    Per catalog formation: interest counts by status, and by priority for the
    interests still active. Formations whose interests are all rejected or
    withdrawn are left out.
    """
    rows = (
        db.query(
            models.FormationInterest.formation_id,
            models.FormationInterest.status,
            models.FormationInterest.priority,
            func.count(models.FormationInterest.id),
        )
        .filter(models.FormationInterest.formation_id.isnot(None))
        .group_by(
            models.FormationInterest.formation_id,
            models.FormationInterest.status,
            models.FormationInterest.priority,
        )
        .all()
    )

    by_status: Dict[str, Dict[str, int]] = defaultdict(lambda: {s.value: 0 for s in InterestStatus})
    by_priority: Dict[str, Dict[str, int]] = defaultdict(lambda: {p.value: 0 for p in models.Priority})
    active_formations = set()
    for formation_id, status, priority, count in rows:
        by_status[formation_id][status.value] += count
        if status in models.ACTIVE_INTEREST_STATUSES:
            by_priority[formation_id][priority.value] += count
            active_formations.add(formation_id)

    if not active_formations:
        return []

    titles = dict(
        db.query(catalog_models.Formation.id, catalog_models.Formation.title)
        .filter(catalog_models.Formation.id.in_(active_formations))
        .all()
    )
    stats = [
        {
            "formation_id": formation_id,
            "title": titles.get(formation_id, ""),
            "total": sum(by_status[formation_id].values()),
            "by_status": by_status[formation_id],
            "by_priority": by_priority[formation_id],
        }
        for formation_id in active_formations
    ]
    return sorted(stats, key=lambda item: (-sum(item["by_priority"].values()), item["title"]))


# ---------------------------------------------------------------------------
# Registrations
# ---------------------------------------------------------------------------


def register_for_session(
    db: Session,
    *,
    user_id: str,
    session_id: str,
    priority: Optional[models.Priority | str] = None,
) -> models.Registration:
    """
    Enroll a user in a session.

    An approved interest for the formation is converted and the registration
    is validated at once; otherwise the registration waits for RH.
    Registrations never touch the quota counters.
    """
    with _unit_of_work(db):
        user = _lock_user(db, user_id)
        if user.archived:
            raise PermissionDenied("Archived accounts cannot register.")

        session = _lock_session(db, session_id)
        _ensure_session_open(session)
        formation = (
            db.query(catalog_models.Formation)
            .filter(catalog_models.Formation.id == session.formation_id)
            .first()
        )

        if formation.seniority_required is not None:
            user_rank = (user.seniority or account_models.Seniority.JUNIOR).rank
            if user_rank < formation.seniority_required.rank:
                raise SeniorityNotMet(
                    f"This formation requires {formation.seniority_required.value} seniority.",
                    detail=[{"field": "seniority", "reason": f"requires {formation.seniority_required.value}"}],
                )

        duplicate = (
            db.query(models.Registration.id)
            .filter(
                models.Registration.user_id == user.id,
                models.Registration.formation_id == formation.id,
                models.Registration.status != RegistrationStatus.CANCELLED,
            )
            .first()
        )
        if duplicate is not None:
            raise DuplicateRegistration(
                "You are already registered for this formation.",
                detail=[{"field": "session_id", "reason": "registration exists for formation"}],
            )

        _ensure_seat(db, session)

        interest = (
            db.query(models.FormationInterest)
            .filter(
                models.FormationInterest.user_id == user.id,
                models.FormationInterest.formation_id == formation.id,
                models.FormationInterest.status.in_(list(models.ACTIVE_INTEREST_STATUSES)),
            )
            .with_for_update()
            .first()
        )
        converts = interest is not None and interest.status == InterestStatus.APPROVED

        if interest is not None:
            registration_priority = interest.priority
        else:
            registration_priority = models.Priority(priority) if priority else models.Priority.P3

        registration = models.Registration(
            id=generate_uuid7(),
            user_id=user.id,
            session_id=session.id,
            formation_id=formation.id,
            priority=registration_priority,
            status=RegistrationStatus.VALIDATED if converts else RegistrationStatus.PENDING,
            registered_at=_utcnow(),
            attended=False,
        )

        if converts:
            _transition(
                db,
                actor_user_id=user.id,
                entity_type="formation_interest",
                entity_id=interest.id,
                from_state=interest.status,
                to_state=InterestStatus.CONVERTED,
                before_obj=_interest_snapshot(interest),
                after_obj=_interest_snapshot(interest)
                | {"status": InterestStatus.CONVERTED, "registration_id": registration.id},
            )
            interest.status = InterestStatus.CONVERTED

        db.add(registration)
        audit_services.log_event(
            db,
            actor_user_id=user.id,
            entity_type="registration",
            entity_id=registration.id,
            action="create",
            after=_registration_snapshot(registration),
            metadata={"converted_interest_id": interest.id if converts else None},
            critical=True,
        )

        if converts:
            _sync_session_status(db, session)
            notification_service.notify_user(
                db,
                user_id=user.id,
                title="Registration confirmed",
                message=f"You are registered for {formation.title}.",
                metadata={"registration_id": registration.id, "session_id": session.id},
            )

    logger.info(
        "Registration created",
        extra={
            "registration_id": registration.id,
            "user_id": user_id,
            "session_id": session_id,
            "status": registration.status.value,
        },
    )
    return registration


def set_registration_status(
    db: Session,
    *,
    registration_id: str,
    new_status: RegistrationStatus | str,
    actor: account_models.User,
    attended: Optional[bool] = None,
) -> models.Registration:
    """RH validates, completes or cancels a registration. No quota effect."""
    new_status = RegistrationStatus(new_status)
    _require_rh(actor)

    with _unit_of_work(db):
        registration = _lock_registration(db, registration_id)
        session = _lock_session(db, registration.session_id)
        from_status = registration.status

        if new_status == RegistrationStatus.VALIDATED and from_status == RegistrationStatus.PENDING:
            _ensure_session_open(session)
            _ensure_seat(db, session)

        _transition(
            db,
            actor_user_id=actor.id,
            entity_type="registration",
            entity_id=registration.id,
            from_state=from_status,
            to_state=new_status,
            before_obj=_registration_snapshot(registration),
            after_obj=_registration_snapshot(registration) | {"status": new_status},
        )

        registration.status = new_status
        if new_status == RegistrationStatus.COMPLETED and attended is not None:
            registration.attended = attended
        if RegistrationStatus.VALIDATED in (from_status, new_status):
            _sync_session_status(db, session)

        if new_status in (RegistrationStatus.VALIDATED, RegistrationStatus.CANCELLED):
            notification_service.notify_user(
                db,
                user_id=registration.user_id,
                title=f"Registration {new_status.value}",
                message=f"Your registration for the session of {session.start_date:%Y-%m-%d} is {new_status.value}.",
                metadata={"registration_id": registration.id, "status": new_status.value},
            )

    return registration


def cancel_registration(
    db: Session,
    *,
    registration_id: str,
    actor: account_models.User,
) -> models.Registration:
    """Owner or RH cancels. Quota was settled at the interest stage, nothing is refunded."""
    with _unit_of_work(db):
        registration = _lock_registration(db, registration_id)
        is_owner = registration.user_id == actor.id
        if not is_owner and not actor.is_rh:
            raise PermissionDenied("You can only cancel your own registrations.")
        session = _lock_session(db, registration.session_id)
        from_status = registration.status

        _transition(
            db,
            actor_user_id=actor.id,
            entity_type="registration",
            entity_id=registration.id,
            from_state=from_status,
            to_state=RegistrationStatus.CANCELLED,
            before_obj=_registration_snapshot(registration),
            after_obj=_registration_snapshot(registration) | {"status": RegistrationStatus.CANCELLED},
        )
        registration.status = RegistrationStatus.CANCELLED
        if from_status == RegistrationStatus.VALIDATED:
            _sync_session_status(db, session)

        if not is_owner:
            notification_service.notify_user(
                db,
                user_id=registration.user_id,
                title="Registration cancelled",
                message=f"RH cancelled your registration for the session of {session.start_date:%Y-%m-%d}.",
                metadata={"registration_id": registration.id},
            )

    return registration


def list_registrations(
    db: Session,
    *,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
    status: Optional[RegistrationStatus] = None,
) -> List[models.Registration]:
    query = db.query(models.Registration)
    if user_id:
        query = query.filter(models.Registration.user_id == user_id)
    if session_id:
        query = query.filter(models.Registration.session_id == session_id)
    if status:
        query = query.filter(models.Registration.status == status)
    return query.order_by(models.Registration.registered_at.desc()).all()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def archive_user(
    db: Session,
    *,
    user_id: str,
    actor: account_models.User,
) -> Dict[str, Any]:
    """
    Soft-delete a user. Open interests and registrations are removed (with
    quota refunds); completed, converted, cancelled and rejected history is
    kept.
    """
    _require_rh(actor)
    if user_id == actor.id:
        raise InvalidRequest("You cannot archive your own account.")

    with _unit_of_work(db):
        user = _lock_user(db, user_id)
        if user.archived:
            raise InvalidTransition("User is already archived.")

        interests = (
            db.query(models.FormationInterest)
            .filter(
                models.FormationInterest.user_id == user.id,
                models.FormationInterest.status.in_(list(models.REFUNDABLE_INTEREST_STATUSES)),
            )
            .all()
        )
        for interest in interests:
            quota.refund_quota(user, interest.priority)
            audit_services.log_event(
                db,
                actor_user_id=actor.id,
                entity_type="formation_interest",
                entity_id=interest.id,
                action="delete",
                before=_interest_snapshot(interest),
                metadata={"reason": "user_archived"},
                critical=True,
            )
            db.delete(interest)

        registrations = (
            db.query(models.Registration)
            .filter(
                models.Registration.user_id == user.id,
                models.Registration.status.in_(_OPEN_REGISTRATION_STATUSES),
            )
            .all()
        )
        touched_sessions = set()
        for registration in registrations:
            if registration.status == RegistrationStatus.VALIDATED:
                touched_sessions.add(registration.session_id)
            audit_services.log_event(
                db,
                actor_user_id=actor.id,
                entity_type="registration",
                entity_id=registration.id,
                action="delete",
                before=_registration_snapshot(registration),
                metadata={"reason": "user_archived"},
                critical=True,
            )
            db.delete(registration)

        db.query(account_models.CoachAssignment).filter(
            (account_models.CoachAssignment.coach_id == user.id)
            | (account_models.CoachAssignment.coachee_id == user.id)
        ).delete(synchronize_session=False)

        for session_id in touched_sessions:
            _sync_session_status(db, _lock_session(db, session_id))

        user.archived = True
        user.archived_at = _utcnow()
        audit_services.log_event(
            db,
            actor_user_id=actor.id,
            entity_type="user",
            entity_id=user.id,
            action="archive",
            metadata={"removed_interests": len(interests), "removed_registrations": len(registrations)},
            critical=True,
        )

    logger.info(
        "User archived",
        extra={
            "user_id": user_id,
            "actor_user_id": actor.id,
            "removed_interests": len(interests),
            "removed_registrations": len(registrations),
        },
    )
    return {
        "user_id": user_id,
        "removed_interests": len(interests),
        "removed_registrations": len(registrations),
    }


def delete_user(
    db: Session,
    *,
    user_id: str,
    actor: account_models.User,
) -> None:
    """Remove a user and everything attached to them. Irreversible."""
    _require_rh(actor)
    if user_id == actor.id:
        raise InvalidRequest("You cannot delete your own account.")

    with _unit_of_work(db):
        user = _lock_user(db, user_id)

        touched_sessions = {
            row.session_id
            for row in db.query(models.Registration.session_id)
            .filter(
                models.Registration.user_id == user.id,
                models.Registration.status == RegistrationStatus.VALIDATED,
            )
            .all()
        }

        db.query(models.Registration).filter(models.Registration.user_id == user.id).delete(
            synchronize_session=False
        )
        db.query(models.FormationInterest).filter(models.FormationInterest.user_id == user.id).delete(
            synchronize_session=False
        )
        db.query(models.FormationInterest).filter(models.FormationInterest.coach_id == user.id).update(
            {models.FormationInterest.coach_id: None}, synchronize_session=False
        )
        db.query(account_models.CoachAssignment).filter(
            (account_models.CoachAssignment.coach_id == user.id)
            | (account_models.CoachAssignment.coachee_id == user.id)
        ).delete(synchronize_session=False)
        db.query(notification_models.Notification).filter(
            notification_models.Notification.user_id == user.id
        ).delete(synchronize_session=False)
        db.query(catalog_models.InstructorFormation).filter(
            catalog_models.InstructorFormation.instructor_id == user.id
        ).delete(synchronize_session=False)
        db.query(catalog_models.InstructorAvailability).filter(
            catalog_models.InstructorAvailability.instructor_id == user.id
        ).delete(synchronize_session=False)
        db.query(catalog_models.FormationSession).filter(
            catalog_models.FormationSession.instructor_id == user.id
        ).update({catalog_models.FormationSession.instructor_id: None}, synchronize_session=False)
        db.query(audit_models.AuditEvent).filter(audit_models.AuditEvent.actor_user_id == user.id).update(
            {audit_models.AuditEvent.actor_user_id: None}, synchronize_session=False
        )
        db.query(settings_models.AppSetting).filter(
            settings_models.AppSetting.updated_by_user_id == user.id
        ).update({settings_models.AppSetting.updated_by_user_id: None}, synchronize_session=False)

        for session_id in touched_sessions:
            _sync_session_status(db, _lock_session(db, session_id))

        audit_services.log_event(
            db,
            actor_user_id=actor.id,
            entity_type="user",
            entity_id=user.id,
            action="delete",
            before={"email": user.email, "roles": list(user.roles or [])},
            critical=True,
        )
        db.delete(user)

    logger.info("User deleted", extra={"user_id": user_id, "actor_user_id": actor.id})


# ---------------------------------------------------------------------------
# Catalog deletions
# ---------------------------------------------------------------------------


def _delete_registrations(
    db: Session,
    registrations: List[models.Registration],
    *,
    actor: account_models.User,
    reason: str,
) -> None:
    for registration in registrations:
        audit_services.log_event(
            db,
            actor_user_id=actor.id,
            entity_type="registration",
            entity_id=registration.id,
            action="delete",
            before=_registration_snapshot(registration),
            metadata={"reason": reason},
            critical=True,
        )
        db.delete(registration)


def delete_formation(
    db: Session,
    *,
    formation_id: str,
    actor: account_models.User,
) -> Dict[str, Any]:
    """
    Remove a formation with its sessions, registrations and interests.

    Pending/approved P1/P2 interests give their slot back to the owner, who
    is notified. Converted interests keep the slot.
    """
    _require_rh(actor)

    with _unit_of_work(db):
        formation = (
            db.query(catalog_models.Formation)
            .filter(catalog_models.Formation.id == formation_id)
            .with_for_update()
            .first()
        )
        if formation is None:
            raise NotFound("Formation not found.", detail=[{"field": "formation_id", "reason": "unknown formation"}])

        interests = (
            db.query(models.FormationInterest)
            .filter(models.FormationInterest.formation_id == formation.id)
            .with_for_update()
            .all()
        )
        owner_ids = sorted(
            {i.user_id for i in interests if i.status in models.REFUNDABLE_INTEREST_STATUSES}
        )
        owners = {user_id: _lock_user(db, user_id) for user_id in owner_ids}

        refunded = 0
        for interest in interests:
            did_refund = False
            if interest.status in models.REFUNDABLE_INTEREST_STATUSES:
                did_refund = quota.refund_quota(owners[interest.user_id], interest.priority)
                refunded += int(did_refund)
                notification_service.notify_user(
                    db,
                    user_id=interest.user_id,
                    title="Training request removed",
                    message=f"{formation.title} was removed from the catalog; your request was withdrawn.",
                    metadata={"formation_id": formation.id, "refunded": did_refund},
                )
            audit_services.log_event(
                db,
                actor_user_id=actor.id,
                entity_type="formation_interest",
                entity_id=interest.id,
                action="delete",
                before=_interest_snapshot(interest),
                metadata={"reason": "formation_deleted", "refunded": did_refund},
                critical=True,
            )
            db.delete(interest)

        registrations = (
            db.query(models.Registration)
            .filter(models.Registration.formation_id == formation.id)
            .all()
        )
        _delete_registrations(db, registrations, actor=actor, reason="formation_deleted")
        db.flush()

        db.query(catalog_models.InstructorFormation).filter(
            catalog_models.InstructorFormation.formation_id == formation.id
        ).delete(synchronize_session=False)
        db.query(catalog_models.InstructorAvailability).filter(
            catalog_models.InstructorAvailability.formation_id == formation.id
        ).delete(synchronize_session=False)
        for session in (
            db.query(catalog_models.FormationSession)
            .filter(catalog_models.FormationSession.formation_id == formation.id)
            .all()
        ):
            db.delete(session)

        audit_services.log_event(
            db,
            actor_user_id=actor.id,
            entity_type="formation",
            entity_id=formation.id,
            action="delete",
            before={"title": formation.title},
            metadata={
                "removed_interests": len(interests),
                "removed_registrations": len(registrations),
                "refunded": refunded,
            },
            critical=True,
        )
        db.delete(formation)

    logger.info(
        "Formation deleted",
        extra={
            "formation_id": formation_id,
            "actor_user_id": actor.id,
            "removed_interests": len(interests),
            "refunded": refunded,
        },
    )
    return {
        "formation_id": formation_id,
        "removed_interests": len(interests),
        "removed_registrations": len(registrations),
        "refunded": refunded,
    }


def delete_session(
    db: Session,
    *,
    session_id: str,
    actor: account_models.User,
) -> Dict[str, Any]:
    """Remove a session and its registrations. Interests, and therefore quota, are left untouched."""
    _require_rh(actor)

    with _unit_of_work(db):
        session = _lock_session(db, session_id)
        registrations = (
            db.query(models.Registration)
            .filter(models.Registration.session_id == session.id)
            .all()
        )
        for registration in registrations:
            if registration.status in _OPEN_REGISTRATION_STATUSES:
                notification_service.notify_user(
                    db,
                    user_id=registration.user_id,
                    title="Session removed",
                    message="A session you were registered for was removed from the calendar.",
                    metadata={"session_id": session.id, "formation_id": session.formation_id},
                )
        _delete_registrations(db, registrations, actor=actor, reason="session_deleted")
        db.flush()

        audit_services.log_event(
            db,
            actor_user_id=actor.id,
            entity_type="session",
            entity_id=session.id,
            action="delete",
            before={"formation_id": session.formation_id, "status": _value(session.status)},
            metadata={"removed_registrations": len(registrations)},
            critical=True,
        )
        db.delete(session)

    logger.info(
        "Session deleted",
        extra={"session_id": session_id, "actor_user_id": actor.id, "removed_registrations": len(registrations)},
    )
    return {"session_id": session_id, "removed_registrations": len(registrations)}


# ---------------------------------------------------------------------------
# Coaching
# ---------------------------------------------------------------------------


def coach_overview(
    db: Session,
    *,
    coach: account_models.User,
    settings: WorkflowSettings,
) -> Dict[str, Any]:
    coachees = [
        assignment.coachee
        for assignment in account_services.list_coach_assignments(db, coach_id=coach.id)
        if assignment.coachee is not None and not assignment.coachee.archived
    ]
    return {
        "coach_validation_only": settings.coach_validation_only,
        "coachees": [
            {
                "user": coachee,
                "quota": quota.quota_summary(coachee),
                "interests": list_interests(db, user_id=coachee.id),
                "registrations": list_registrations(db, user_id=coachee.id),
            }
            for coachee in sorted(coachees, key=lambda u: u.name)
        ],
    }
