"""
Annual P1/P2 quota bookkeeping.

Each user holds one P1 and one P2 slot (`User.p1_used` / `User.p2_used`,
0 or 1). A slot is consumed by a pending or approved P1/P2 interest. It is
taken once when the interest is expressed and given back exactly once when
a pending/approved interest is rejected, withdrawn or deleted. Conversion
does not count it again: the slot that was taken on expression simply stays
spent. P3 never touches the counters.

These helpers only mutate the in-memory `User`; the enrollment services
own locking and the transaction.
"""

from __future__ import annotations

from typing import Dict, Optional

from lmsdb.apps.accounts.models import User
from lmsdb.apps.workflow.errors import QuotaExceeded

from .models import Priority

QUOTA_LIMIT = 1

_QUOTA_FIELDS = {
    Priority.P1: "p1_used",
    Priority.P2: "p2_used",
}


def quota_field(priority: Priority | str) -> Optional[str]:
    """Counter column for a priority, or None when the tier is unlimited."""
    return _QUOTA_FIELDS.get(Priority(priority))


def ensure_quota_available(user: User, priority: Priority | str) -> None:
    field = quota_field(priority)
    if field is None:
        return
    if (getattr(user, field) or 0) >= QUOTA_LIMIT:
        priority_value = Priority(priority).value
        raise QuotaExceeded(
            f"Your {priority_value} slot for this year is already used.",
            detail=[{"field": "priority", "reason": f"{priority_value} quota exhausted"}],
        )


def consume_quota(user: User, priority: Priority | str) -> bool:
    """Take the slot for `priority`. Returns True when a counter changed."""
    field = quota_field(priority)
    if field is None:
        return False
    ensure_quota_available(user, priority)
    setattr(user, field, (getattr(user, field) or 0) + 1)
    return True


def refund_quota(user: User, priority: Priority | str) -> bool:
    """Give the slot back. Never drops a counter below zero."""
    field = quota_field(priority)
    if field is None:
        return False
    current = getattr(user, field) or 0
    if current <= 0:
        return False
    setattr(user, field, current - 1)
    return True


def quota_summary(user: User) -> Dict[str, int]:
    p1_used = user.p1_used or 0
    p2_used = user.p2_used or 0
    return {
        "p1_used": p1_used,
        "p2_used": p2_used,
        "p1_remaining": max(QUOTA_LIMIT - p1_used, 0),
        "p2_remaining": max(QUOTA_LIMIT - p2_used, 0),
    }
