from __future__ import annotations

from lmsdb.apps.accounts import models as account_models
from lmsdb.apps.notifications import router, schemas, service


def _user(db, email="user@example.com"):
    user = account_models.User(email=email, name=email, hashed_password="x", roles=["consultant"])
    db.add(user)
    db.commit()
    return user


def test_notify_and_list(db_session):
    user = _user(db_session)
    service.notify_user(db_session, user_id=user.id, title="Hello", metadata={"interest_id": "i1"})
    service.notify_user(db_session, user_id=user.id, title="Review", route=service.ROUTE_COACH)
    db_session.commit()

    everything = service.list_for_user(db_session, user_id=user.id)
    coach_only = service.list_for_user(db_session, user_id=user.id, route=service.ROUTE_COACH)

    assert {n.title for n in everything} == {"Hello", "Review"}
    assert [n.title for n in coach_only] == ["Review"]
    assert service.unread_count(db_session, user_id=user.id) == 2


def test_notifications_are_dropped_with_a_rolled_back_operation(db_session):
    user = _user(db_session)
    service.notify_user(db_session, user_id=user.id, title="Never sent")
    db_session.rollback()

    assert service.unread_count(db_session, user_id=user.id) == 0


def test_notify_users_fans_out(db_session):
    first = _user(db_session, "first@example.com")
    second = _user(db_session, "second@example.com")

    service.notify_users(db_session, user_ids=[first.id, second.id], title="Reminder")
    db_session.commit()

    assert service.unread_count(db_session, user_id=first.id) == 1
    assert service.unread_count(db_session, user_id=second.id) == 1


def test_mark_read_by_id_and_by_route(db_session):
    user = _user(db_session)
    home = service.notify_user(db_session, user_id=user.id, title="Home")
    service.notify_user(db_session, user_id=user.id, title="Coach 1", route=service.ROUTE_COACH)
    service.notify_user(db_session, user_id=user.id, title="Coach 2", route=service.ROUTE_COACH)
    db_session.commit()

    assert service.mark_read(db_session, user_id=user.id) == 0
    assert service.mark_read(db_session, user_id=user.id, ids=[home.id]) == 1
    assert home.read is True
    assert home.read_at is not None
    assert service.mark_read(db_session, user_id=user.id, route=service.ROUTE_COACH) == 2
    assert service.unread_count(db_session, user_id=user.id) == 0


def test_mark_read_ignores_other_users(db_session):
    owner = _user(db_session, "owner@example.com")
    other = _user(db_session, "other@example.com")
    notification = service.notify_user(db_session, user_id=owner.id, title="Private")
    db_session.commit()

    assert service.mark_read(db_session, user_id=other.id, ids=[notification.id]) == 0
    assert service.unread_count(db_session, user_id=owner.id) == 1


def test_router_endpoints(db_session):
    user = _user(db_session)
    service.notify_user(db_session, user_id=user.id, title="Review", route=service.ROUTE_COACH, metadata={"k": "v"})
    db_session.commit()

    listed = router.list_my_notifications(route=None, unread_only=False, db=db_session, current_user=user)
    read = schemas.NotificationRead.model_validate(listed[0])
    assert read.metadata == {"k": "v"}

    count = router.my_unread_count(route=service.ROUTE_COACH, db=db_session, current_user=user)
    assert count.count == 1

    result = router.mark_my_notifications_read(
        schemas.MarkReadRequest(route=service.ROUTE_COACH), db=db_session, current_user=user
    )
    assert result.updated == 1
