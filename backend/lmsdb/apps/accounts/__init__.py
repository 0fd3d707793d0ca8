# backend/lmsdb/apps/accounts/__init__.py
"""
Accounts app

Responsible for:
- User accounts, multi-role membership and seniority
- P1/P2 quota counters (mutated only by the enrollment workflow)
- Coach assignments
- Public auth endpoints (register, login, me, become instructor)
- Admin endpoints (list users, roles, archive/delete, coach assignments)
"""

from . import models, schemas, services  # noqa: F401

__all__ = ["models", "schemas", "services"]
