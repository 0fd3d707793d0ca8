from __future__ import annotations

import pytest
from fastapi import HTTPException

from lmsdb.apps.accounts import models as account_models
from lmsdb.apps.enrollment import router as enrollment_router
from lmsdb.apps.enrollment import router_admin, router_coach, schemas
from lmsdb.apps.settings import services as settings_services


def test_quota_exceeded_maps_to_400(db_session, consultant, make_formation):
    enrollment_router.express_interest(
        schemas.InterestCreate(formation_id=make_formation().id, priority="P1"),
        db=db_session,
        current_user=consultant,
    )

    with pytest.raises(HTTPException) as exc_info:
        enrollment_router.express_interest(
            schemas.InterestCreate(formation_id=make_formation(title="Rust").id, priority="P1"),
            db=db_session,
            current_user=consultant,
        )

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail["code"] == "quota_exceeded"
    assert exc_info.value.detail["errors"][0]["field"] == "priority"


def test_duplicate_interest_maps_to_409(db_session, consultant, make_formation):
    payload = schemas.InterestCreate(formation_id=make_formation().id, priority="P3")
    enrollment_router.express_interest(payload, db=db_session, current_user=consultant)

    with pytest.raises(HTTPException) as exc_info:
        enrollment_router.express_interest(payload, db=db_session, current_user=consultant)

    assert exc_info.value.status_code == 409
    assert exc_info.value.detail["code"] == "duplicate_interest"


def test_gated_approval_maps_to_403(db_session, consultant, rh, coach, make_formation):
    db_session.add(account_models.CoachAssignment(coach_id=coach.id, coachee_id=consultant.id))
    db_session.commit()
    interest = enrollment_router.express_interest(
        schemas.InterestCreate(formation_id=make_formation().id, priority="P2"),
        db=db_session,
        current_user=consultant,
    )

    with pytest.raises(HTTPException) as exc_info:
        router_admin.set_interest_status(
            interest.id,
            schemas.InterestStatusUpdate(status="approved"),
            db=db_session,
            current_user=rh,
        )
    assert exc_info.value.status_code == 403

    router_coach.approve_interest(interest.id, db=db_session, current_user=coach)
    approved = router_admin.set_interest_status(
        interest.id,
        schemas.InterestStatusUpdate(status="approved"),
        db=db_session,
        current_user=rh,
    )
    assert approved.status.value == "approved"


def test_coach_mode_read_per_request(db_session, consultant, coach, make_formation):
    db_session.add(account_models.CoachAssignment(coach_id=coach.id, coachee_id=consultant.id))
    db_session.commit()
    interest = enrollment_router.express_interest(
        schemas.InterestCreate(formation_id=make_formation().id, priority="P1"),
        db=db_session,
        current_user=consultant,
    )
    settings_services.update_workflow_settings(db_session, coach_validation_only=True)

    rejected = router_coach.reject_interest(interest.id, db=db_session, current_user=coach)

    assert rejected.status.value == "rejected"
    assert consultant.p1_used == 0


def test_conflicting_settings_refuse_coach_decisions(db_session, consultant, coach, make_formation):
    db_session.add(account_models.CoachAssignment(coach_id=coach.id, coachee_id=consultant.id))
    db_session.commit()
    interest = enrollment_router.express_interest(
        schemas.InterestCreate(formation_id=make_formation().id, priority="P3"),
        db=db_session,
        current_user=consultant,
    )
    settings_services.set_setting(db_session, settings_services.COACH_VALIDATION_ONLY, True)
    settings_services.set_setting(db_session, settings_services.RH_VALIDATION_ONLY, True)
    db_session.commit()

    with pytest.raises(HTTPException) as exc_info:
        router_coach.approve_interest(interest.id, db=db_session, current_user=coach)

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail["code"] == "configuration_error"


def test_full_session_maps_to_409(db_session, make_user, make_formation, make_session):
    session = make_session(make_formation(), capacity=1)
    rh = make_user(account_models.UserRole.CONSULTANT, account_models.UserRole.RH)
    first = make_user(account_models.UserRole.CONSULTANT)
    second = make_user(account_models.UserRole.CONSULTANT)
    registrations = [
        enrollment_router.register_for_session(
            schemas.RegistrationCreate(session_id=session.id),
            db=db_session,
            current_user=user,
        )
        for user in (first, second)
    ]
    router_admin.set_registration_status(
        registrations[0].id,
        schemas.RegistrationStatusUpdate(status="validated"),
        db=db_session,
        current_user=rh,
    )

    with pytest.raises(HTTPException) as exc_info:
        router_admin.set_registration_status(
            registrations[1].id,
            schemas.RegistrationStatusUpdate(status="validated"),
            db=db_session,
            current_user=rh,
        )

    assert exc_info.value.status_code == 409
    assert exc_info.value.detail["code"] == "session_full"


def test_unknown_interest_maps_to_404(db_session, consultant):
    with pytest.raises(HTTPException) as exc_info:
        enrollment_router.delete_my_interest("missing", db=db_session, current_user=consultant)

    assert exc_info.value.status_code == 404


def test_interest_payload_needs_exactly_one_target():
    with pytest.raises(ValueError):
        schemas.InterestCreate(priority="P1")
    with pytest.raises(ValueError):
        schemas.InterestCreate(
            formation_id="abc",
            custom={"title": "DevOps Days", "description": "Community conference."},
            priority="P1",
        )


def test_my_quota(consultant):
    summary = enrollment_router.my_quota(current_user=consultant)

    assert summary.p1_remaining == 1
    assert summary.p2_remaining == 1
