"""
Initial LMS schema: users, catalog, interests, registrations, settings,
notifications and audit trail.

Revision ID: a1c4e7f20b93
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1c4e7f20b93"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SENIORITY = ("junior", "confirme", "senior", "expert")
PRIORITY = ("P1", "P2", "P3")
ACTIVE_INTEREST_SQL = "status IN ('pending', 'approved', 'converted')"


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("seniority", _enum("seniority_enum", *SENIORITY), nullable=True),
        sa.Column("business_unit", sa.String(length=128), nullable=True),
        sa.Column("p1_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("p2_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("p1_used IN (0, 1)", name="ck_users_p1_used_range"),
        sa.CheckConstraint("p2_used IN (0, 1)", name="ck_users_p2_used_range"),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("idx_users_archived", "users", ["archived"])

    op.create_table(
        "coach_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("coach_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("coachee_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("coach_id", "coachee_id", name="uq_coach_assignments_pair"),
        sa.CheckConstraint("coach_id <> coachee_id", name="ck_coach_assignments_distinct"),
    )
    op.create_index("ix_coach_assignments_coach_id", "coach_assignments", ["coach_id"])
    op.create_index("ix_coach_assignments_coachee_id", "coach_assignments", ["coachee_id"])

    op.create_table(
        "formations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("objectives", sa.Text(), nullable=False),
        sa.Column("prerequisites", sa.Text(), nullable=True),
        sa.Column("duration", sa.String(length=64), nullable=False),
        sa.Column(
            "modality",
            _enum("formation_modality_enum", "presentiel", "distanciel", "hybride"),
            nullable=False,
        ),
        sa.Column("seniority_required", _enum("formation_seniority_enum", *SENIORITY), nullable=True),
        sa.Column("theme", sa.String(length=128), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_formations_theme", "formations", ["theme"])
    op.create_index("idx_formations_active_theme", "formations", ["active", "theme"])

    op.create_table(
        "sessions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "formation_id",
            sa.String(length=36),
            sa.ForeignKey("formations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("instructor_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "status",
            _enum("session_status_enum", "open", "full", "completed", "cancelled"),
            nullable=False,
        ),
        sa.CheckConstraint("capacity >= 1", name="ck_sessions_capacity_positive"),
        sa.CheckConstraint("end_date >= start_date", name="ck_sessions_dates_ordered"),
    )
    op.create_index("ix_sessions_formation_id", "sessions", ["formation_id"])
    op.create_index("ix_sessions_instructor_id", "sessions", ["instructor_id"])
    op.create_index("ix_sessions_status", "sessions", ["status"])
    op.create_index("idx_sessions_formation_start", "sessions", ["formation_id", "start_date"])

    op.create_table(
        "instructor_formations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("instructor_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "formation_id",
            sa.String(length=36),
            sa.ForeignKey("formations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("instructor_id", "formation_id", name="uq_instructor_formations_pair"),
    )
    op.create_index("ix_instructor_formations_instructor_id", "instructor_formations", ["instructor_id"])
    op.create_index("ix_instructor_formations_formation_id", "instructor_formations", ["formation_id"])

    op.create_table(
        "instructor_availabilities",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("instructor_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "formation_id",
            sa.String(length=36),
            sa.ForeignKey("formations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("slots", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("instructor_id", "formation_id", name="uq_instructor_availabilities_pair"),
    )
    op.create_index("ix_instructor_availabilities_instructor_id", "instructor_availabilities", ["instructor_id"])
    op.create_index("ix_instructor_availabilities_formation_id", "instructor_availabilities", ["formation_id"])

    op.create_table(
        "formation_interests",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "formation_id",
            sa.String(length=36),
            sa.ForeignKey("formations.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("priority", _enum("interest_priority_enum", *PRIORITY), nullable=False),
        sa.Column(
            "status",
            _enum("interest_status_enum", "pending", "approved", "converted", "rejected", "withdrawn"),
            nullable=False,
        ),
        sa.Column("expressed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "coach_status",
            _enum("interest_coach_status_enum", "pending", "approved", "rejected"),
            nullable=False,
        ),
        sa.Column("coach_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("coach_validated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("custom_title", sa.String(length=255), nullable=True),
        sa.Column("custom_description", sa.Text(), nullable=True),
        sa.Column("custom_link", sa.String(length=512), nullable=True),
        sa.Column("custom_price", sa.String(length=64), nullable=True),
        sa.Column("custom_fitnet_number", sa.String(length=64), nullable=True),
        sa.Column("custom_mission_manager", sa.String(length=255), nullable=True),
        sa.Column("custom_review_rating", sa.Integer(), nullable=True),
        sa.Column("custom_review_comment", sa.Text(), nullable=True),
        sa.Column("custom_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "formation_id IS NOT NULL OR custom_title IS NOT NULL",
            name="ck_formation_interests_target",
        ),
        sa.CheckConstraint(
            "custom_review_rating IS NULL OR (custom_review_rating BETWEEN 1 AND 5)",
            name="ck_formation_interests_rating_range",
        ),
    )
    op.create_index("ix_formation_interests_user_id", "formation_interests", ["user_id"])
    op.create_index("ix_formation_interests_formation_id", "formation_interests", ["formation_id"])
    op.create_index("ix_formation_interests_status", "formation_interests", ["status"])
    op.create_index("ix_formation_interests_coach_id", "formation_interests", ["coach_id"])
    op.create_index("idx_formation_interests_formation_status", "formation_interests", ["formation_id", "status"])
    op.create_index(
        "uq_formation_interests_user_formation_active",
        "formation_interests",
        ["user_id", "formation_id"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_INTEREST_SQL),
        sqlite_where=sa.text(ACTIVE_INTEREST_SQL),
    )

    op.create_table(
        "registrations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("session_id", sa.String(length=36), sa.ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "formation_id",
            sa.String(length=36),
            sa.ForeignKey("formations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("priority", _enum("registration_priority_enum", *PRIORITY), nullable=False),
        sa.Column(
            "status",
            _enum("registration_status_enum", "pending", "validated", "completed", "cancelled"),
            nullable=False,
        ),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attended", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_registrations_user_id", "registrations", ["user_id"])
    op.create_index("ix_registrations_session_id", "registrations", ["session_id"])
    op.create_index("idx_registrations_session_status", "registrations", ["session_id", "status"])
    op.create_index("idx_registrations_user_formation", "registrations", ["user_id", "formation_id"])

    op.create_table(
        "app_settings",
        sa.Column("key", sa.String(length=128), primary_key=True),
        sa.Column("value", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_by_user_id", sa.String(length=36), nullable=True),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("route", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])
    op.create_index("ix_notifications_user_route_read", "notifications", ["user_id", "route", "read"])
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("actor_user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.Column("correlation_id", sa.String(length=64), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
    )
    op.create_index("ix_audit_events_id", "audit_events", ["id"])
    op.create_index("ix_audit_events_entity_type", "audit_events", ["entity_type"])
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])
    op.create_index("ix_audit_events_actor_user_id", "audit_events", ["actor_user_id"])
    op.create_index("ix_audit_events_occurred_at", "audit_events", ["occurred_at"])
    op.create_index("ix_audit_events_correlation_id", "audit_events", ["correlation_id"])
    op.create_index("ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"])
    op.create_index("ix_audit_events_action", "audit_events", ["action"])
    op.create_index("ix_audit_events_time_desc", "audit_events", [sa.text("occurred_at DESC")])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("notifications")
    op.drop_table("app_settings")
    op.drop_table("registrations")
    op.drop_index("uq_formation_interests_user_formation_active", table_name="formation_interests")
    op.drop_table("formation_interests")
    op.drop_table("instructor_availabilities")
    op.drop_table("instructor_formations")
    op.drop_table("sessions")
    op.drop_table("formations")
    op.drop_table("coach_assignments")
    op.drop_table("users")
