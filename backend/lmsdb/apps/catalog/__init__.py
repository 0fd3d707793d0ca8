# backend/lmsdb/apps/catalog/__init__.py

"""
Catalog app: formations, their sessions and instructor availability.
"""

from . import models  # noqa: F401
