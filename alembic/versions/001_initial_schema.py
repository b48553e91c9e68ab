"""Initial schema - users, participants, forms, versions, applications, scoring, screenings, locks.

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONB = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    cols = [sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now())]
    if updated:
        cols.append(sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()))
    return cols


def upgrade() -> None:
    op.create_table(
        "user_profiles",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("email", sa.Text(), unique=True, nullable=False),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("role", sa.String(40), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("last_login_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "participants",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("email", sa.Text(), unique=True, nullable=False),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("date_of_birth", sa.Text(), nullable=True),
        sa.Column("status", sa.String(40), nullable=False, server_default="active"),
        sa.Column("hubspot_contact_id", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "typeform_forms",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("form_id", sa.Text(), unique=True, nullable=False),
        sa.Column("form_title", sa.Text(), nullable=False),
        sa.Column("workspace_id", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "typeform_field_versions",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("form_id", sa.UUID(), sa.ForeignKey("typeform_forms.id"), nullable=False),
        sa.Column("field_id", sa.Text(), nullable=False),
        sa.Column("field_title", sa.Text(), nullable=False),
        sa.Column("field_type", sa.Text(), nullable=False),
        sa.Column("field_ref", sa.Text(), nullable=True),
        sa.Column(
            "parent_field_version_id", sa.UUID(), sa.ForeignKey("typeform_field_versions.id"), nullable=True
        ),
        sa.Column("properties", JSONB, nullable=False, server_default="{}"),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("version_date", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_field_versions_form_field", "typeform_field_versions", ["form_id", "field_id"])
    # At most one active version per field of a form
    op.create_index(
        "uq_field_versions_active",
        "typeform_field_versions",
        ["form_id", "field_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "typeform_choice_versions",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("field_version_id", sa.UUID(), sa.ForeignKey("typeform_field_versions.id"), nullable=False),
        sa.Column("choice_id", sa.Text(), nullable=False),
        sa.Column("choice_label", sa.Text(), nullable=False),
        sa.Column("choice_ref", sa.Text(), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("version_date", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_choice_versions_field_version", "typeform_choice_versions", ["field_version_id"])

    op.create_table(
        "applications",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("participant_id", sa.UUID(), sa.ForeignKey("participants.id"), nullable=False),
        sa.Column("form_id", sa.UUID(), sa.ForeignKey("typeform_forms.id"), nullable=True),
        sa.Column("typeform_response_id", sa.Text(), unique=True, nullable=True),
        sa.Column("submission_date", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("raw_data", JSONB, nullable=True),
        sa.Column("application_data", JSONB, nullable=False, server_default="{}"),
        sa.Column("status", sa.String(40), nullable=False, server_default="pending"),
        sa.Column("closed_reason", sa.String(40), nullable=True),
        sa.Column("rejected_type", sa.String(40), nullable=True),
        sa.Column("red_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("yellow_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("green_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("calculated_score", sa.Integer(), nullable=True),
        sa.Column("assigned_screener_id", sa.UUID(), sa.ForeignKey("user_profiles.id"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_applications_participant_id", "applications", ["participant_id"])
    op.create_index("ix_applications_status", "applications", ["status"])

    op.create_table(
        "application_field_responses",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column(
            "application_id", sa.UUID(), sa.ForeignKey("applications.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("field_version_id", sa.UUID(), sa.ForeignKey("typeform_field_versions.id"), nullable=False),
        sa.Column("response_value", JSONB, nullable=True),
        sa.Column("score", sa.String(10), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_application_field_responses_application_id", "application_field_responses", ["application_id"])

    op.create_table(
        "scoring_rules",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("target_type", sa.String(10), nullable=False),
        sa.Column("target_id", sa.UUID(), nullable=False),
        sa.Column("score_value", sa.String(10), nullable=False),
        sa.Column("criteria", JSONB, nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("target_type IN ('field', 'choice')", name="ck_scoring_rules_target_type"),
        sa.CheckConstraint("score_value IN ('red', 'yellow', 'green', 'na')", name="ck_scoring_rules_score_value"),
    )
    op.create_index("ix_scoring_rules_target_id", "scoring_rules", ["target_id"])

    op.create_table(
        "screenings",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("application_id", sa.UUID(), sa.ForeignKey("applications.id"), nullable=False),
        sa.Column("participant_id", sa.UUID(), sa.ForeignKey("participants.id"), nullable=False),
        sa.Column("screener_id", sa.UUID(), sa.ForeignKey("user_profiles.id"), nullable=True),
        sa.Column("screening_type", sa.String(20), nullable=False, server_default="initial"),
        sa.Column("status", sa.String(40), nullable=False, server_default="scheduled"),
        sa.Column("notes", JSONB, nullable=False, server_default="{}"),
        sa.Column("scheduled_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_screenings_application_id", "screenings", ["application_id"])

    op.create_table(
        "calendly_screening_meetings",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("application_id", sa.UUID(), sa.ForeignKey("applications.id"), nullable=False),
        sa.Column("participant_id", sa.UUID(), sa.ForeignKey("participants.id"), nullable=False),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("invitee_email", sa.Text(), nullable=False),
        sa.Column("invitee_name", sa.Text(), nullable=True),
        sa.Column("event_start", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("event_end", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("join_url", sa.Text(), nullable=True),
        sa.Column("host_name", sa.Text(), nullable=True),
        sa.Column("host_email", sa.Text(), nullable=True),
        sa.Column("payload", JSONB, nullable=False, server_default="{}"),
        *_timestamps(updated=False),
    )
    op.create_index(
        "ix_calendly_screening_meetings_application_id", "calendly_screening_meetings", ["application_id"]
    )

    op.create_table(
        "processing_locks",
        sa.Column("lock_id", sa.Text(), primary_key=True),
        sa.Column("tracking_id", sa.Text(), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("processing_locks")
    op.drop_table("calendly_screening_meetings")
    op.drop_table("screenings")
    op.drop_table("scoring_rules")
    op.drop_table("application_field_responses")
    op.drop_table("applications")
    op.drop_table("typeform_choice_versions")
    op.drop_table("typeform_field_versions")
    op.drop_table("typeform_forms")
    op.drop_table("participants")
    op.drop_table("user_profiles")
