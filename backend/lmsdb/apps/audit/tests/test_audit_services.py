from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from lmsdb.apps.audit import models, router, schemas, services


def test_log_event_and_filters(db_session):
    services.log_event(
        db_session,
        actor_user_id=None,
        entity_type="formation_interest",
        entity_id="i1",
        action="create",
        after={"status": "pending"},
    )
    services.log_event(
        db_session,
        actor_user_id=None,
        entity_type="registration",
        entity_id="r1",
        action="create",
        metadata={"converted_interest_id": "i1"},
    )
    db_session.commit()

    interests = services.list_audit_events(db_session, entity_type="formation_interest")
    assert [e.entity_id for e in interests] == ["i1"]
    assert interests[0].after == {"status": "pending"}

    by_entity = services.list_audit_events(db_session, entity_id="r1")
    assert schemas.AuditEventRead.model_validate(by_entity[0]).metadata == {"converted_interest_id": "i1"}
    assert len(services.list_audit_events(db_session, limit=1)) == 1


def test_time_window(db_session):
    now = datetime.now(timezone.utc)
    services.create_audit_event(
        db_session,
        data=schemas.AuditEventCreate(
            entity_type="user",
            entity_id="u1",
            action="archive",
            occurred_at=now - timedelta(days=10),
        ),
    )
    services.create_audit_event(
        db_session,
        data=schemas.AuditEventCreate(entity_type="user", entity_id="u2", action="archive", occurred_at=now),
    )
    db_session.commit()

    recent = services.list_audit_events(db_session, start=now - timedelta(days=1))
    older = services.list_audit_events(db_session, end=now - timedelta(days=1))

    assert [e.entity_id for e in recent] == ["u2"]
    assert [e.entity_id for e in older] == ["u1"]


def test_non_critical_failure_is_swallowed(db_session, monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(services, "create_audit_event", _boom)

    result = services.log_event(
        db_session, actor_user_id=None, entity_type="user", entity_id="u1", action="login"
    )

    assert result is None
    with pytest.raises(RuntimeError):
        services.log_event(
            db_session,
            actor_user_id=None,
            entity_type="user",
            entity_id="u1",
            action="delete",
            critical=True,
        )


def test_router_lists_events(db_session):
    services.log_event(db_session, actor_user_id=None, entity_type="user", entity_id="u1", action="archive")
    db_session.commit()

    events = router.list_audit_events(
        entity_type="user",
        entity_id=None,
        actor_user_id=None,
        start=None,
        end=None,
        limit=200,
        db=db_session,
        current_user=None,
    )

    assert len(events) == 1
    assert isinstance(events[0], models.AuditEvent)
