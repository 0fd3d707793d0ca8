from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from lmsdb.apps.accounts import models as account_models
from lmsdb.apps.catalog import models, schemas, services
from lmsdb.apps.workflow.errors import InvalidRequest, NotFound


def _formation(db, **overrides):
    payload = {
        "title": "Kubernetes fundamentals",
        "description": "Run containers in production.",
        "objectives": "Deploy and operate a cluster.",
        "duration": "2 jours",
        "theme": "Cloud",
        "tags": ["k8s"],
    }
    payload.update(overrides)
    return services.create_formation(db, schemas.FormationCreate(**payload))


def _session(db, formation, *, days_ahead=30, **overrides):
    start = datetime.now(timezone.utc) + timedelta(days=days_ahead)
    payload = {
        "formation_id": formation.id,
        "start_date": start,
        "end_date": start + timedelta(days=1),
        "capacity": 8,
    }
    payload.update(overrides)
    return services.create_session(db, schemas.SessionCreate(**payload))


def _user(db, *roles):
    user = account_models.User(
        email=f"{'-'.join(roles) or 'user'}@example.com",
        name="Instructor",
        hashed_password="x",
        roles=list(roles),
    )
    db.add(user)
    db.commit()
    return user


def test_list_formations_filters(db_session):
    _formation(db_session, title="Kubernetes fundamentals")
    _formation(db_session, title="Leadership", theme="Soft skills", description="Lead a team.")
    _formation(db_session, title="Legacy COBOL", active=False)

    assert [f.title for f in services.list_formations(db_session)] == ["Kubernetes fundamentals", "Leadership"]
    assert [f.title for f in services.list_formations(db_session, theme="Soft skills")] == ["Leadership"]
    assert [f.title for f in services.list_formations(db_session, search="kubernetes")] == [
        "Kubernetes fundamentals"
    ]
    assert len(services.list_formations(db_session, active_only=False)) == 3


def test_update_formation_keeps_unset_fields(db_session):
    formation = _formation(db_session)

    updated = services.update_formation(db_session, formation.id, schemas.FormationUpdate(active=False))
    assert updated.active is False
    assert updated.title == "Kubernetes fundamentals"


def test_session_starts_open_and_lists_upcoming(db_session):
    formation = _formation(db_session)
    past = _session(db_session, formation, days_ahead=-10)
    upcoming = _session(db_session, formation, days_ahead=10)

    assert upcoming.status == models.SessionStatus.OPEN
    assert [s.id for s in services.list_sessions(db_session, formation_id=formation.id)] == [past.id, upcoming.id]
    assert [s.id for s in services.list_sessions(db_session, upcoming_only=True)] == [upcoming.id]


def test_session_validation(db_session):
    formation = _formation(db_session)
    start = datetime.now(timezone.utc)

    with pytest.raises(ValidationError):
        schemas.SessionCreate(formation_id=formation.id, start_date=start, end_date=start - timedelta(days=1), capacity=5)
    with pytest.raises(ValidationError):
        schemas.SessionCreate(formation_id=formation.id, start_date=start, end_date=start, capacity=0)
    with pytest.raises(NotFound):
        _session(db_session, formation, formation_id="missing")

    session = _session(db_session, formation)
    with pytest.raises(InvalidRequest):
        services.update_session(
            db_session,
            session.id,
            schemas.SessionUpdate(end_date=datetime.now(timezone.utc) - timedelta(days=365)),
        )


def test_session_instructor_must_hold_instructor_role(db_session):
    formation = _formation(db_session)
    consultant = _user(db_session, "consultant")
    instructor = _user(db_session, "formateur_externe")

    with pytest.raises(InvalidRequest):
        _session(db_session, formation, instructor_id=consultant.id)

    session = _session(db_session, formation, instructor_id=instructor.id)
    assert [s.id for s in services.list_sessions(db_session, instructor_id=instructor.id)] == [session.id]


def test_instructor_formations(db_session):
    instructor = _user(db_session, "consultant", "formateur")
    first = _formation(db_session, title="Terraform")
    second = _formation(db_session, title="Ansible")

    link = services.attach_instructor(db_session, instructor=instructor, formation_id=first.id)
    assert services.attach_instructor(db_session, instructor=instructor, formation_id=first.id).id == link.id
    services.attach_instructor(db_session, instructor=instructor, formation_id=second.id)

    assert [f.title for f in services.list_instructor_formations(db_session, instructor_id=instructor.id)] == [
        "Ansible",
        "Terraform",
    ]

    services.detach_instructor(db_session, instructor=instructor, formation_id=first.id)
    with pytest.raises(NotFound):
        services.detach_instructor(db_session, instructor=instructor, formation_id=first.id)


def test_upsert_availability_replaces_slots(db_session):
    instructor = _user(db_session, "formateur")
    formation = _formation(db_session)

    services.upsert_availability(
        db_session,
        instructor=instructor,
        data=schemas.AvailabilityUpsert(
            formation_id=formation.id,
            slots=[
                {"date": date(2026, 3, 4), "time_slot": "afternoon"},
                {"date": date(2026, 3, 2), "time_slot": "full_day"},
            ],
        ),
    )
    row = services.upsert_availability(
        db_session,
        instructor=instructor,
        data=schemas.AvailabilityUpsert(
            formation_id=formation.id,
            slots=[{"date": date(2026, 4, 1), "time_slot": "morning"}],
        ),
    )

    assert row.slots == [{"date": "2026-04-01", "time_slot": "morning"}]
    assert len(services.list_availabilities(db_session, formation_id=formation.id)) == 1


def test_availability_slots_are_sorted(db_session):
    instructor = _user(db_session, "formateur")
    formation = _formation(db_session)

    row = services.upsert_availability(
        db_session,
        instructor=instructor,
        data=schemas.AvailabilityUpsert(
            formation_id=formation.id,
            slots=[
                {"date": date(2026, 3, 4), "time_slot": "afternoon"},
                {"date": date(2026, 3, 2), "time_slot": "full_day"},
            ],
        ),
    )

    assert [slot["date"] for slot in row.slots] == ["2026-03-02", "2026-03-04"]
    assert schemas.AvailabilityRead.model_validate(row).slots[0].date == date(2026, 3, 2)
