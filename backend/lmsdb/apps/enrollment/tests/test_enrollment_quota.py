from __future__ import annotations

import pytest

from lmsdb.apps.accounts.models import User
from lmsdb.apps.enrollment import quota
from lmsdb.apps.enrollment.models import Priority
from lmsdb.apps.workflow.errors import QuotaExceeded


def _user(p1_used=0, p2_used=0) -> User:
    return User(email="q@example.com", name="Quota", hashed_password="x", p1_used=p1_used, p2_used=p2_used)


def test_p3_is_unlimited():
    user = _user(p1_used=1, p2_used=1)

    assert quota.quota_field("P3") is None
    assert quota.consume_quota(user, Priority.P3) is False
    assert quota.refund_quota(user, Priority.P3) is False
    assert (user.p1_used, user.p2_used) == (1, 1)


def test_consume_and_refund_p1():
    user = _user()

    assert quota.consume_quota(user, "P1") is True
    assert user.p1_used == 1
    with pytest.raises(QuotaExceeded):
        quota.consume_quota(user, "P1")

    assert quota.refund_quota(user, "P1") is True
    assert user.p1_used == 0


def test_refund_never_goes_negative():
    user = _user()

    assert quota.refund_quota(user, Priority.P2) is False
    assert user.p2_used == 0


def test_tiers_are_independent():
    user = _user(p1_used=1)

    quota.consume_quota(user, Priority.P2)

    assert quota.quota_summary(user) == {
        "p1_used": 1,
        "p2_used": 1,
        "p1_remaining": 0,
        "p2_remaining": 0,
    }
