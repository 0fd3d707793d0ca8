from __future__ import annotations

from datetime import datetime, timedelta, timezone

from lmsdb.database import SessionLocal
from lmsdb.apps.accounts import models as account_models
from lmsdb.apps.accounts import schemas as account_schemas
from lmsdb.apps.accounts import services as account_services
from lmsdb.apps.catalog import models as catalog_models
from lmsdb.apps.catalog import schemas as catalog_schemas
from lmsdb.apps.catalog import services as catalog_services
from lmsdb.apps.enrollment import models as enrollment_models
from lmsdb.apps.enrollment import services as enrollment_services
from lmsdb.apps.settings import services as settings_services

DEMO_PASSWORD = "ChangeMe123!"

_DEMO_USERS = [
    ("rh@demo-lms.example.com", "Rita Hamon", ["rh"], account_models.Seniority.SENIOR),
    ("coach@demo-lms.example.com", "Colin Achard", ["consultant", "coach"], account_models.Seniority.EXPERT),
    ("alice@demo-lms.example.com", "Alice Martin", ["consultant"], account_models.Seniority.CONFIRME),
    ("bruno@demo-lms.example.com", "Bruno Petit", ["consultant"], account_models.Seniority.JUNIOR),
    ("fanny@demo-lms.example.com", "Fanny Roux", ["consultant", "formateur"], account_models.Seniority.EXPERT),
]

_DEMO_FORMATIONS = [
    {
        "title": "Kubernetes fundamentals",
        "description": "Run and operate containerised workloads.",
        "objectives": "Deploy, scale and troubleshoot applications on a cluster.",
        "duration": "3 jours",
        "modality": catalog_models.Modality.PRESENTIEL,
        "theme": "Cloud",
        "tags": ["k8s", "containers"],
    },
    {
        "title": "Architecture event-driven",
        "description": "Design systems around streams and events.",
        "objectives": "Choose between queues, logs and sagas.",
        "duration": "2 jours",
        "modality": catalog_models.Modality.HYBRIDE,
        "seniority_required": account_models.Seniority.CONFIRME,
        "theme": "Architecture",
        "tags": ["kafka"],
    },
    {
        "title": "Prise de parole en public",
        "description": "Present with confidence to clients and teams.",
        "objectives": "Structure a talk and handle questions.",
        "duration": "1 jour",
        "modality": catalog_models.Modality.DISTANCIEL,
        "theme": "Soft skills",
        "tags": [],
    },
]


def _get_or_create_user(db, email, name, roles, seniority) -> account_models.User:
    user = account_services.get_user_by_email(db, email)
    if user:
        return user
    return account_services.register_user(
        db,
        account_schemas.UserRegister(
            email=email,
            name=name,
            password=DEMO_PASSWORD,
            roles=roles,
            seniority=seniority,
            business_unit="Demo",
        ),
    )


def _get_or_create_formation(db, payload: dict) -> catalog_models.Formation:
    formation = (
        db.query(catalog_models.Formation)
        .filter(catalog_models.Formation.title == payload["title"])
        .first()
    )
    if formation:
        return formation
    return catalog_services.create_formation(db, catalog_schemas.FormationCreate(**payload))


def _ensure_session(db, formation: catalog_models.Formation, *, weeks_ahead: int, capacity: int, instructor_id=None):
    existing = catalog_services.list_sessions(db, formation_id=formation.id, upcoming_only=True)
    if existing:
        return existing[0]
    start = datetime.now(timezone.utc).replace(hour=9, minute=0, second=0, microsecond=0) + timedelta(
        weeks=weeks_ahead
    )
    return catalog_services.create_session(
        db,
        catalog_schemas.SessionCreate(
            formation_id=formation.id,
            start_date=start,
            end_date=start + timedelta(days=1, hours=8),
            location="Paris - La Defense",
            capacity=capacity,
            instructor_id=instructor_id,
        ),
    )


def _seed_workflow(db, users: dict, formations: list, sessions: list) -> None:
    alice = users["alice@demo-lms.example.com"]
    bruno = users["bruno@demo-lms.example.com"]
    coach = users["coach@demo-lms.example.com"]
    rh = users["rh@demo-lms.example.com"]

    if enrollment_services.list_interests(db, user_id=alice.id):
        return

    if not account_services.list_coach_assignments(db, coach_id=coach.id):
        account_services.create_coach_assignment(db, coach_id=coach.id, coachee_id=alice.id)

    settings = settings_services.get_workflow_settings(db)

    # Alice: P1 on Kubernetes, coach then RH approve, then she registers.
    interest = enrollment_services.express_interest(
        db, user_id=alice.id, priority=enrollment_models.Priority.P1, formation_id=formations[0].id
    )
    enrollment_services.coach_decide(db, interest_id=interest.id, coach=coach, approve=True, settings=settings)
    enrollment_services.set_interest_status(
        db,
        interest_id=interest.id,
        new_status=enrollment_models.InterestStatus.APPROVED,
        actor=rh,
        settings=settings,
    )
    enrollment_services.register_for_session(db, user_id=alice.id, session_id=sessions[0].id)

    # Alice: P2 off-catalog request waiting for her coach.
    enrollment_services.express_interest(
        db,
        user_id=alice.id,
        priority=enrollment_models.Priority.P2,
        custom={
            "title": "KubeCon Europe",
            "description": "Three days of talks on the cloud native ecosystem.",
            "link": "https://events.example.com/kubecon",
            "price": "1200 EUR",
        },
    )

    # Bruno: P3 interest without a coach, then a pending registration.
    enrollment_services.express_interest(
        db, user_id=bruno.id, priority=enrollment_models.Priority.P3, formation_id=formations[2].id
    )
    enrollment_services.register_for_session(db, user_id=bruno.id, session_id=sessions[2].id)


def main() -> None:
    db = SessionLocal()
    try:
        users = {
            email: _get_or_create_user(db, email, name, roles, seniority)
            for email, name, roles, seniority in _DEMO_USERS
        }
        instructor = users["fanny@demo-lms.example.com"]
        formations = [_get_or_create_formation(db, payload) for payload in _DEMO_FORMATIONS]
        for formation in formations:
            catalog_services.attach_instructor(db, instructor=instructor, formation_id=formation.id)
        sessions = [
            _ensure_session(db, formation, weeks_ahead=index + 2, capacity=capacity, instructor_id=instructor.id)
            for index, (formation, capacity) in enumerate(zip(formations, (2, 8, 12)))
        ]
        _seed_workflow(db, users, formations, sessions)
        print(f"Demo data ready. Every account uses the password {DEMO_PASSWORD!r}.")
        for email in users:
            print(f"- {email}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
