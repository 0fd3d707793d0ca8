from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
# Keep password hashing fast in tests.
os.environ.setdefault("ARGON2_TIME_COST", "1")
os.environ.setdefault("ARGON2_MEMORY_COST", "8192")
os.environ.setdefault("ARGON2_PARALLELISM", "1")

from lmsdb.database import Base  # noqa: E402
from lmsdb.apps.accounts import models as account_models  # noqa: E402
from lmsdb.apps.catalog import models as catalog_models  # noqa: E402
from lmsdb.apps.enrollment import models as enrollment_models  # noqa: E402
from lmsdb.apps.settings import models as settings_models  # noqa: E402
from lmsdb.apps.notifications import models as notification_models  # noqa: E402
from lmsdb.apps.audit import models as audit_models  # noqa: E402


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(
        bind=engine,
        tables=[
            account_models.User.__table__,
            account_models.CoachAssignment.__table__,
            catalog_models.Formation.__table__,
            catalog_models.FormationSession.__table__,
            catalog_models.InstructorFormation.__table__,
            catalog_models.InstructorAvailability.__table__,
            enrollment_models.FormationInterest.__table__,
            enrollment_models.Registration.__table__,
            settings_models.AppSetting.__table__,
            notification_models.Notification.__table__,
            audit_models.AuditEvent.__table__,
        ],
    )
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
