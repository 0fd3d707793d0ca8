# backend/lmsdb/__init__.py
"""
Import ORM models from each app so that:

- Alembic and Base.metadata.create_all() see all tables.
- The package exposes a clear surface.

The actual model classes are kept in lmsdb/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models            # users / roles / coach links
from .apps.catalog import models as catalog_models              # formations / sessions / instructors
from .apps.enrollment import models as enrollment_models        # interests / registrations
from .apps.settings import models as settings_models            # app_settings
from .apps.notifications import models as notifications_models  # in-app notifications
from .apps.audit import models as audit_models                  # audit trail

__all__ = [
    "accounts_models",
    "catalog_models",
    "enrollment_models",
    "settings_models",
    "notifications_models",
    "audit_models",
]
