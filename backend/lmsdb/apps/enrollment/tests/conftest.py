from __future__ import annotations

from datetime import datetime, timedelta, timezone
import itertools

import pytest

from lmsdb.apps.accounts import models as account_models
from lmsdb.apps.catalog import models as catalog_models
from lmsdb.apps.settings.services import WorkflowSettings

_counter = itertools.count(1)


@pytest.fixture()
def make_user(db_session):
    def _make(*roles, seniority=None, name=None):
        n = next(_counter)
        user = account_models.User(
            email=f"user{n}@example.com",
            name=name or f"User {n}",
            hashed_password="hash",
            roles=[r.value for r in roles] or ["consultant"],
            seniority=seniority,
            p1_used=0,
            p2_used=0,
            archived=False,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def make_formation(db_session):
    def _make(*, title="Kubernetes fundamentals", seniority_required=None, active=True):
        formation = catalog_models.Formation(
            title=title,
            description="Run containers in production.",
            objectives="Deploy and operate a cluster.",
            duration="2 jours",
            modality=catalog_models.Modality.PRESENTIEL,
            seniority_required=seniority_required,
            theme="Cloud",
            tags=["k8s"],
            active=active,
        )
        db_session.add(formation)
        db_session.commit()
        return formation

    return _make


@pytest.fixture()
def make_session(db_session):
    def _make(formation, *, capacity=10, status=catalog_models.SessionStatus.OPEN, days_ahead=30):
        start = datetime.now(timezone.utc) + timedelta(days=days_ahead)
        session = catalog_models.FormationSession(
            formation_id=formation.id,
            start_date=start,
            end_date=start + timedelta(days=2),
            location="Paris",
            capacity=capacity,
            status=status,
        )
        db_session.add(session)
        db_session.commit()
        return session

    return _make


@pytest.fixture()
def consultant(make_user):
    return make_user(account_models.UserRole.CONSULTANT)


@pytest.fixture()
def rh(make_user):
    return make_user(account_models.UserRole.CONSULTANT, account_models.UserRole.RH)


@pytest.fixture()
def coach(make_user):
    return make_user(account_models.UserRole.CONSULTANT, account_models.UserRole.COACH)


@pytest.fixture()
def default_settings():
    return WorkflowSettings()
