from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from lmsdb.apps.accounts import models as account_models
from lmsdb.apps.audit import models as audit_models
from lmsdb.apps.enrollment import models as enrollment_models
from lmsdb.apps.enrollment import services
from lmsdb.apps.notifications import models as notification_models
from lmsdb.apps.settings.services import WorkflowSettings
from lmsdb.apps.workflow.errors import (
    DuplicateInterest,
    InvalidRequest,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    QuotaExceeded,
)

InterestStatus = enrollment_models.InterestStatus
CoachStatus = enrollment_models.CoachStatus


def _interest_count(db, user_id: str) -> int:
    return (
        db.query(enrollment_models.FormationInterest)
        .filter(enrollment_models.FormationInterest.user_id == user_id)
        .count()
    )


def _assign_coach(db, coach, coachee) -> None:
    db.add(account_models.CoachAssignment(coach_id=coach.id, coachee_id=coachee.id))
    db.commit()


# ---------------------------------------------------------------------------
# expressing interest
# ---------------------------------------------------------------------------


def test_express_p1_interest_consumes_slot(db_session, consultant, make_formation):
    formation = make_formation()

    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P1", formation_id=formation.id
    )

    assert interest.status == InterestStatus.PENDING
    assert interest.coach_status == CoachStatus.PENDING
    assert consultant.p1_used == 1
    assert consultant.p2_used == 0


def test_p3_interest_leaves_quota_untouched(db_session, consultant, make_formation):
    services.express_interest(
        db_session, user_id=consultant.id, priority="P3", formation_id=make_formation().id
    )
    services.express_interest(
        db_session, user_id=consultant.id, priority="P3", formation_id=make_formation(title="Go").id
    )

    assert consultant.p1_used == 0
    assert consultant.p2_used == 0
    assert _interest_count(db_session, consultant.id) == 2


def test_second_p1_interest_is_refused_without_side_effects(db_session, consultant, make_formation):
    services.express_interest(
        db_session, user_id=consultant.id, priority="P1", formation_id=make_formation().id
    )

    with pytest.raises(QuotaExceeded):
        services.express_interest(
            db_session, user_id=consultant.id, priority="P1", formation_id=make_formation(title="Rust").id
        )

    assert consultant.p1_used == 1
    assert _interest_count(db_session, consultant.id) == 1


def test_duplicate_interest_for_same_formation(db_session, consultant, make_formation):
    formation = make_formation()
    services.express_interest(db_session, user_id=consultant.id, priority="P3", formation_id=formation.id)

    with pytest.raises(DuplicateInterest):
        services.express_interest(db_session, user_id=consultant.id, priority="P2", formation_id=formation.id)

    assert consultant.p2_used == 0
    assert _interest_count(db_session, consultant.id) == 1


def test_storage_index_rejects_two_active_interests(db_session, consultant, make_formation):
    formation = make_formation()
    for _ in range(2):
        db_session.add(
            enrollment_models.FormationInterest(
                user_id=consultant.id,
                formation_id=formation.id,
                priority=enrollment_models.Priority.P3,
                status=InterestStatus.PENDING,
            )
        )

    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_interest_can_be_expressed_again_after_rejection(db_session, consultant, rh, make_formation, default_settings):
    formation = make_formation()
    first = services.express_interest(db_session, user_id=consultant.id, priority="P1", formation_id=formation.id)
    services.set_interest_status(
        db_session, interest_id=first.id, new_status="rejected", actor=rh, settings=default_settings
    )

    second = services.express_interest(db_session, user_id=consultant.id, priority="P1", formation_id=formation.id)

    assert second.id != first.id
    assert consultant.p1_used == 1


def test_off_catalog_interest(db_session, consultant):
    interest = services.express_interest(
        db_session,
        user_id=consultant.id,
        priority="P2",
        custom={
            "title": "KubeCon Europe",
            "description": "Three days of talks about the cloud native ecosystem.",
            "link": "https://events.example.com/kubecon",
            "price": "1200",
        },
    )

    assert interest.is_off_catalog
    assert interest.custom_title == "KubeCon Europe"
    assert consultant.p2_used == 1


def test_off_catalog_interest_requires_description(db_session, consultant):
    with pytest.raises(InvalidRequest):
        services.express_interest(
            db_session,
            user_id=consultant.id,
            priority="P3",
            custom={"title": "KubeCon Europe", "description": "short"},
        )


def test_unknown_formation(db_session, consultant):
    with pytest.raises(NotFound):
        services.express_interest(db_session, user_id=consultant.id, priority="P1", formation_id="missing")
    assert consultant.p1_used == 0


def test_interest_notifies_assigned_coach(db_session, consultant, coach, make_formation):
    _assign_coach(db_session, coach, consultant)

    services.express_interest(db_session, user_id=consultant.id, priority="P3", formation_id=make_formation().id)

    notification = (
        db_session.query(notification_models.Notification)
        .filter(notification_models.Notification.user_id == coach.id)
        .one()
    )
    assert notification.route == "/coach"


# ---------------------------------------------------------------------------
# RH decisions
# ---------------------------------------------------------------------------


def test_reject_refunds_once(db_session, consultant, rh, make_formation, default_settings):
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P1", formation_id=make_formation().id
    )

    services.set_interest_status(
        db_session, interest_id=interest.id, new_status="rejected", actor=rh, settings=default_settings
    )
    assert interest.status == InterestStatus.REJECTED
    assert consultant.p1_used == 0

    # Take the slot again with another formation, then retry the rejection.
    services.express_interest(
        db_session, user_id=consultant.id, priority="P1", formation_id=make_formation(title="Terraform").id
    )
    with pytest.raises(InvalidTransition):
        services.set_interest_status(
            db_session, interest_id=interest.id, new_status="rejected", actor=rh, settings=default_settings
        )
    assert consultant.p1_used == 1


def test_approve_then_reject_refunds(db_session, consultant, rh, make_formation, default_settings):
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P2", formation_id=make_formation().id
    )
    services.set_interest_status(
        db_session, interest_id=interest.id, new_status="approved", actor=rh, settings=default_settings
    )
    assert consultant.p2_used == 1

    services.set_interest_status(
        db_session, interest_id=interest.id, new_status="rejected", actor=rh, settings=default_settings
    )
    assert consultant.p2_used == 0


def test_withdraw_approved_interest_refunds(db_session, consultant, rh, make_formation, default_settings):
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P1", formation_id=make_formation().id
    )
    services.set_interest_status(
        db_session, interest_id=interest.id, new_status="approved", actor=rh, settings=default_settings
    )

    services.set_interest_status(
        db_session, interest_id=interest.id, new_status="withdrawn", actor=rh, settings=default_settings
    )

    assert interest.status == InterestStatus.WITHDRAWN
    assert consultant.p1_used == 0


def test_pending_interest_cannot_be_withdrawn(db_session, consultant, rh, make_formation, default_settings):
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P1", formation_id=make_formation().id
    )

    with pytest.raises(InvalidTransition):
        services.set_interest_status(
            db_session, interest_id=interest.id, new_status="withdrawn", actor=rh, settings=default_settings
        )
    assert consultant.p1_used == 1


def test_conversion_is_not_an_rh_action(db_session, consultant, rh, make_formation, default_settings):
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P3", formation_id=make_formation().id
    )
    services.set_interest_status(
        db_session, interest_id=interest.id, new_status="approved", actor=rh, settings=default_settings
    )

    with pytest.raises(InvalidTransition):
        services.set_interest_status(
            db_session, interest_id=interest.id, new_status="converted", actor=rh, settings=default_settings
        )


def test_only_rh_sets_interest_status(db_session, consultant, make_formation, default_settings):
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P3", formation_id=make_formation().id
    )

    with pytest.raises(PermissionDenied):
        services.set_interest_status(
            db_session,
            interest_id=interest.id,
            new_status="approved",
            actor=consultant,
            settings=default_settings,
        )


def test_transition_writes_audit_event(db_session, consultant, rh, make_formation, default_settings):
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P3", formation_id=make_formation().id
    )
    services.set_interest_status(
        db_session, interest_id=interest.id, new_status="approved", actor=rh, settings=default_settings
    )

    event = (
        db_session.query(audit_models.AuditEvent)
        .filter(
            audit_models.AuditEvent.entity_id == interest.id,
            audit_models.AuditEvent.action == "transition",
        )
        .one()
    )
    assert event.actor_user_id == rh.id
    assert event.before["status"] == "pending"
    assert event.after["status"] == "approved"


# ---------------------------------------------------------------------------
# coach gating
# ---------------------------------------------------------------------------


def test_rh_approval_waits_for_assigned_coach(db_session, consultant, rh, coach, make_formation, default_settings):
    _assign_coach(db_session, coach, consultant)
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P1", formation_id=make_formation().id
    )

    with pytest.raises(PermissionDenied):
        services.set_interest_status(
            db_session, interest_id=interest.id, new_status="approved", actor=rh, settings=default_settings
        )

    services.coach_decide(db_session, interest_id=interest.id, coach=coach, approve=True, settings=default_settings)
    assert interest.coach_status == CoachStatus.APPROVED
    assert interest.status == InterestStatus.PENDING

    services.set_interest_status(
        db_session, interest_id=interest.id, new_status="approved", actor=rh, settings=default_settings
    )
    assert interest.status == InterestStatus.APPROVED


def test_rh_approves_directly_without_coach(db_session, consultant, rh, make_formation, default_settings):
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P1", formation_id=make_formation().id
    )

    services.set_interest_status(
        db_session, interest_id=interest.id, new_status="approved", actor=rh, settings=default_settings
    )

    assert interest.status == InterestStatus.APPROVED


def test_rh_validation_only_skips_coach(db_session, consultant, rh, coach, make_formation):
    _assign_coach(db_session, coach, consultant)
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P1", formation_id=make_formation().id
    )

    services.set_interest_status(
        db_session,
        interest_id=interest.id,
        new_status="approved",
        actor=rh,
        settings=WorkflowSettings(rh_validation_only=True),
    )

    assert interest.status == InterestStatus.APPROVED


def test_coach_validation_only_blocks_rh_and_mirrors_coach(db_session, consultant, rh, coach, make_formation):
    settings = WorkflowSettings(coach_validation_only=True)
    _assign_coach(db_session, coach, consultant)
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P1", formation_id=make_formation().id
    )

    with pytest.raises(PermissionDenied):
        services.set_interest_status(
            db_session, interest_id=interest.id, new_status="approved", actor=rh, settings=settings
        )

    services.coach_decide(db_session, interest_id=interest.id, coach=coach, approve=True, settings=settings)

    assert interest.status == InterestStatus.APPROVED
    assert interest.coach_id == coach.id
    assert consultant.p1_used == 1


def test_coach_rejection_in_coach_mode_refunds(db_session, consultant, coach, make_formation):
    settings = WorkflowSettings(coach_validation_only=True)
    _assign_coach(db_session, coach, consultant)
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P2", formation_id=make_formation().id
    )

    services.coach_decide(db_session, interest_id=interest.id, coach=coach, approve=False, settings=settings)

    assert interest.status == InterestStatus.REJECTED
    assert interest.coach_status == CoachStatus.REJECTED
    assert consultant.p2_used == 0


def test_coach_must_be_assigned(db_session, consultant, coach, make_formation, default_settings):
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P3", formation_id=make_formation().id
    )

    with pytest.raises(PermissionDenied):
        services.coach_decide(
            db_session, interest_id=interest.id, coach=coach, approve=True, settings=default_settings
        )
    assert interest.coach_status == CoachStatus.PENDING


def test_coach_cannot_decide_twice(db_session, consultant, coach, make_formation, default_settings):
    _assign_coach(db_session, coach, consultant)
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P3", formation_id=make_formation().id
    )
    services.coach_decide(db_session, interest_id=interest.id, coach=coach, approve=True, settings=default_settings)

    with pytest.raises(InvalidTransition):
        services.coach_decide(
            db_session, interest_id=interest.id, coach=coach, approve=False, settings=default_settings
        )
    assert interest.coach_status == CoachStatus.APPROVED


# ---------------------------------------------------------------------------
# deletion and review
# ---------------------------------------------------------------------------


def test_owner_deletes_pending_p2_and_gets_refund(db_session, consultant, make_formation):
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P2", formation_id=make_formation().id
    )

    services.delete_interest(db_session, interest_id=interest.id, actor=consultant)

    assert consultant.p2_used == 0
    assert _interest_count(db_session, consultant.id) == 0


def test_rh_deletes_only_rejected_interests(db_session, consultant, rh, make_formation, default_settings):
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P1", formation_id=make_formation().id
    )

    with pytest.raises(InvalidTransition):
        services.delete_interest(db_session, interest_id=interest.id, actor=rh)
    assert consultant.p1_used == 1

    services.set_interest_status(
        db_session, interest_id=interest.id, new_status="rejected", actor=rh, settings=default_settings
    )
    services.delete_interest(db_session, interest_id=interest.id, actor=rh)

    assert consultant.p1_used == 0
    assert _interest_count(db_session, consultant.id) == 0


def test_other_users_cannot_delete_interest(db_session, consultant, make_user, make_formation):
    interest = services.express_interest(
        db_session, user_id=consultant.id, priority="P3", formation_id=make_formation().id
    )
    stranger = make_user(account_models.UserRole.CONSULTANT)

    with pytest.raises(PermissionDenied):
        services.delete_interest(db_session, interest_id=interest.id, actor=stranger)


def test_review_of_approved_off_catalog_interest(db_session, consultant, rh, default_settings):
    interest = services.express_interest(
        db_session,
        user_id=consultant.id,
        priority="P3",
        custom={"title": "DevOps Days", "description": "Community conference on delivery."},
    )
    with pytest.raises(InvalidTransition):
        services.submit_interest_review(db_session, interest_id=interest.id, actor=consultant, rating=4)

    services.set_interest_status(
        db_session, interest_id=interest.id, new_status="approved", actor=rh, settings=default_settings
    )
    services.submit_interest_review(
        db_session, interest_id=interest.id, actor=consultant, rating=5, comment="  Great talks  "
    )

    assert interest.custom_review_rating == 5
    assert interest.custom_review_comment == "Great talks"
    assert interest.custom_reviewed_at is not None
