from __future__ import annotations

import pytest

from lmsdb.apps.accounts import models as account_models
from lmsdb.apps.audit import models as audit_models
from lmsdb.apps.settings.services import WorkflowSettings
from lmsdb.apps.workflow import TransitionError, allowed_targets, apply_transition
from lmsdb.apps.workflow.errors import (
    ConfigurationError,
    InvalidTransition,
    SessionFull,
    to_http_exception,
)


def _user(db, email: str) -> account_models.User:
    user = account_models.User(email=email, name=email, hashed_password="x", roles=["consultant"])
    db.add(user)
    db.commit()
    return user


def _approve(db, *, before, settings, channel="rh", after=None):
    apply_transition(
        db,
        actor_user_id=None,
        entity_type="formation_interest",
        entity_id="interest-1",
        from_state="pending",
        to_state="approved",
        before_obj=before,
        after_obj=after or before | {"status": "approved"},
        context={"settings": settings, "channel": channel},
    )


def test_allowed_targets():
    assert allowed_targets("formation_interest", "pending") == ["approved", "rejected"]
    assert allowed_targets("formation_interest", "rejected") == []
    assert allowed_targets("registration", "validated") == ["cancelled", "completed"]
    assert allowed_targets("unknown", "pending") == []


def test_unknown_transition_is_refused(db_session):
    with pytest.raises(TransitionError) as exc_info:
        apply_transition(
            db_session,
            actor_user_id=None,
            entity_type="formation_interest",
            entity_id="interest-1",
            from_state="rejected",
            to_state="approved",
            before_obj={},
            after_obj={},
        )

    assert exc_info.value.code == "invalid_transition"
    assert db_session.query(audit_models.AuditEvent).count() == 0


def test_applied_transition_is_audited(db_session):
    apply_transition(
        db_session,
        actor_user_id=None,
        entity_type="registration",
        entity_id="registration-1",
        from_state="pending",
        to_state="validated",
        before_obj={"user_id": "u1"},
        after_obj={"user_id": "u1"},
        context={"channel": "rh"},
    )
    db_session.commit()

    event = db_session.query(audit_models.AuditEvent).one()
    assert event.action == "transition"
    assert event.before == {"status": "pending", "user_id": "u1"}
    assert event.after == {"status": "validated", "user_id": "u1"}
    assert event.metadata_json == {"workflow": "registration", "channel": "rh"}


def test_approval_requires_settings(db_session):
    with pytest.raises(TransitionError) as exc_info:
        _approve(db_session, before={"user_id": "u1", "coach_status": "pending"}, settings=None)

    assert exc_info.value.code == "missing_requirements"


def test_rh_approval_blocked_in_coach_mode(db_session):
    with pytest.raises(TransitionError) as exc_info:
        _approve(
            db_session,
            before={"user_id": "u1", "coach_status": "approved"},
            settings=WorkflowSettings(coach_validation_only=True),
        )

    assert exc_info.value.detail[0]["field"] == "channel"


def test_rh_approval_waits_for_coach(db_session):
    coach = _user(db_session, "coach@example.com")
    coachee = _user(db_session, "coachee@example.com")
    db_session.add(account_models.CoachAssignment(coach_id=coach.id, coachee_id=coachee.id))
    db_session.commit()

    with pytest.raises(TransitionError):
        _approve(db_session, before={"user_id": coachee.id, "coach_status": "pending"}, settings=WorkflowSettings())

    _approve(db_session, before={"user_id": coachee.id, "coach_status": "approved"}, settings=WorkflowSettings())
    _approve(
        db_session,
        before={"user_id": coachee.id, "coach_status": "pending"},
        settings=WorkflowSettings(rh_validation_only=True),
    )


def test_coach_channel_only_in_coach_mode(db_session):
    before = {"user_id": "u1", "coach_status": "pending"}
    after = {"user_id": "u1", "status": "approved", "coach_status": "approved"}

    with pytest.raises(TransitionError):
        _approve(db_session, before=before, after=after, settings=WorkflowSettings(), channel="coach")

    _approve(
        db_session,
        before=before,
        after=after,
        settings=WorkflowSettings(coach_validation_only=True),
        channel="coach",
    )


def test_conversion_requires_registration(db_session):
    with pytest.raises(TransitionError):
        apply_transition(
            db_session,
            actor_user_id=None,
            entity_type="formation_interest",
            entity_id="interest-1",
            from_state="approved",
            to_state="converted",
            before_obj={},
            after_obj={"status": "converted"},
        )


def test_conflicting_settings():
    with pytest.raises(ConfigurationError):
        WorkflowSettings(coach_validation_only=True, rh_validation_only=True).validate()


def test_errors_map_to_http():
    exc = to_http_exception(
        SessionFull("This session is full.", detail=[{"field": "session_id", "reason": "1/1"}])
    )

    assert exc.status_code == 409
    assert exc.detail == {
        "code": "session_full",
        "message": "This session is full.",
        "errors": [{"field": "session_id", "reason": "1/1"}],
    }
    assert to_http_exception(InvalidTransition("nope")).detail == {
        "code": "invalid_transition",
        "message": "nope",
    }
