# backend/lmsdb/apps/enrollment/__init__.py

"""
Enrollment app: formation interests, session registrations and the P1/P2
quota rules that tie them together.
"""

from . import models  # noqa: F401
