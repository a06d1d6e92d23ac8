"""
Create training hub tables: tenants, curriculum catalog, progress, assignments,
attempts, certificates, audit trail and email log.

Revision ID: a1c3e5f7b9d0
Revises:
Create Date: 2026-10-17
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1c3e5f7b9d0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_organizations_slug", "organizations", ["slug"], unique=True)
    op.create_index("ix_organizations_is_active", "organizations", ["is_active"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "organization_id",
            sa.String(length=36),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=128), nullable=False),
        sa.Column("last_name", sa.String(length=128), nullable=False),
        sa.Column(
            "role",
            sa.Enum("PLATFORM_OWNER", "ORG_ADMIN", "WORKFORCE_USER", name="account_role_enum"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING_ASSIGNMENT",
                "ACTIVE",
                "SUSPENDED",
                name="member_status_enum",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("workforce_groups", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("organization_id", "email", name="uq_users_org_email"),
    )
    op.create_index("ix_users_organization_id", "users", ["organization_id"])
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_is_active", "users", ["is_active"])
    op.create_index("idx_users_role_active", "users", ["role", "is_active"])

    op.create_table(
        "training_materials",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("material_key", sa.String(length=64), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("workforce_groups", sa.JSON(), nullable=False),
        sa.Column("content", sa.JSON(), nullable=True),
        sa.Column("hipaa_citations", sa.JSON(), nullable=False),
        sa.Column("estimated_minutes", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("superseded_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("material_key", "version", name="uq_training_materials_key_version"),
    )
    op.create_index("ix_training_materials_material_key", "training_materials", ["material_key"])
    op.create_index("ix_training_materials_superseded_at", "training_materials", ["superseded_at"])
    op.create_index(
        "idx_training_materials_current",
        "training_materials",
        ["superseded_at", "sequence_number"],
    )

    op.create_table(
        "quizzes",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("workforce_groups", sa.JSON(), nullable=False),
        sa.Column("passing_score", sa.Integer(), nullable=False, server_default="80"),
        sa.Column("max_attempts", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("hipaa_citations", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("passing_score >= 0 AND passing_score <= 100", name="ck_quizzes_passing_score"),
    )
    op.create_index("idx_quizzes_published_sequence", "quizzes", ["published_at", "sequence_number"])

    op.create_table(
        "quiz_questions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "quiz_id",
            sa.String(length=36),
            sa.ForeignKey("quizzes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("question_number", sa.Integer(), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("scenario", sa.Text(), nullable=True),
        sa.Column("options", sa.JSON(), nullable=False),
        sa.Column("correct_answer", sa.String(length=16), nullable=False),
        sa.Column("hipaa_section", sa.String(length=64), nullable=False),
        sa.Column("rationale", sa.Text(), nullable=True),
        sa.UniqueConstraint("quiz_id", "question_number", name="uq_quiz_questions_quiz_number"),
    )
    op.create_index("ix_quiz_questions_quiz_id", "quiz_questions", ["quiz_id"])

    op.create_table(
        "content_releases",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "organization_id",
            sa.String(length=36),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "content_type",
            sa.Enum("TRAINING_MATERIAL", "QUIZ", name="content_type_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column("content_id", sa.String(length=36), nullable=False),
        sa.Column("workforce_group", sa.String(length=32), nullable=False),
        sa.Column("passing_score_override", sa.Integer(), nullable=True),
        sa.Column("max_attempts", sa.Integer(), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "released_by_user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.UniqueConstraint(
            "organization_id",
            "content_type",
            "content_id",
            "workforce_group",
            name="uq_content_releases_org_content_group",
        ),
        sa.CheckConstraint(
            "passing_score_override IS NULL OR (passing_score_override >= 0 AND passing_score_override <= 100)",
            name="ck_content_releases_passing_score",
        ),
    )
    op.create_index("ix_content_releases_organization_id", "content_releases", ["organization_id"])
    op.create_index("ix_content_releases_content_id", "content_releases", ["content_id"])
    op.create_index("ix_content_releases_workforce_group", "content_releases", ["workforce_group"])

    op.create_table(
        "training_progress_records",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "organization_id",
            sa.String(length=36),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "material_id",
            sa.String(length=36),
            sa.ForeignKey("training_materials.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("material_key", sa.String(length=64), nullable=False),
        sa.Column("version_at_completion", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "material_id", name="uq_training_progress_user_material"),
    )
    op.create_index(
        "ix_training_progress_records_organization_id", "training_progress_records", ["organization_id"]
    )
    op.create_index("ix_training_progress_records_user_id", "training_progress_records", ["user_id"])
    op.create_index("ix_training_progress_records_material_id", "training_progress_records", ["material_id"])

    op.create_table(
        "training_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "organization_id",
            sa.String(length=36),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "assigned_to_user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "assigned_by_user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("workforce_group", sa.String(length=32), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "ASSIGNED",
                "IN_PROGRESS",
                "COMPLETED",
                name="assignment_status_enum",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column(
            "completion_basis",
            sa.Enum(
                "MATERIALS",
                "QUIZ_PASSED",
                name="assignment_completion_basis_enum",
                native_enum=False,
            ),
            nullable=True,
        ),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_training_assignments_organization_id", "training_assignments", ["organization_id"])
    op.create_index(
        "idx_training_assignments_member_status",
        "training_assignments",
        ["assigned_to_user_id", "status"],
    )
    op.create_index(
        "idx_training_assignments_org_due",
        "training_assignments",
        ["organization_id", "due_date"],
    )

    op.create_table(
        "quiz_attempts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "organization_id",
            sa.String(length=36),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "quiz_id",
            sa.String(length=36),
            sa.ForeignKey("quizzes.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("quiz_version", sa.Integer(), nullable=False),
        sa.Column("workforce_group_at_time", sa.String(length=32), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("correct_count", sa.Integer(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("passing_score", sa.Integer(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("answers", sa.JSON(), nullable=False),
        sa.Column("total_time_spent", sa.Integer(), nullable=False),
        sa.Column("flagged_suspicious", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "idempotency_key", name="uq_quiz_attempts_user_idempotency"),
        sa.CheckConstraint("score >= 0 AND score <= 100", name="ck_quiz_attempts_score"),
    )
    op.create_index("ix_quiz_attempts_organization_id", "quiz_attempts", ["organization_id"])
    op.create_index("ix_quiz_attempts_user_id", "quiz_attempts", ["user_id"])
    op.create_index("ix_quiz_attempts_quiz_id", "quiz_attempts", ["quiz_id"])
    op.create_index("ix_quiz_attempts_passed", "quiz_attempts", ["passed"])
    op.create_index("idx_quiz_attempts_user_quiz", "quiz_attempts", ["user_id", "quiz_id", "completed_at"])

    op.create_table(
        "certificates",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("certificate_number", sa.String(length=64), nullable=False),
        sa.Column(
            "organization_id",
            sa.String(length=36),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "quiz_attempt_id",
            sa.String(length=36),
            sa.ForeignKey("quiz_attempts.id", ondelete="RESTRICT"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "quiz_id",
            sa.String(length=36),
            sa.ForeignKey("quizzes.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("quiz_title", sa.String(length=255), nullable=False),
        sa.Column("workforce_group", sa.String(length=32), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("hipaa_citations", sa.JSON(), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_certificates_certificate_number", "certificates", ["certificate_number"], unique=True)
    op.create_index("ix_certificates_organization_id", "certificates", ["organization_id"])
    op.create_index("ix_certificates_user_id", "certificates", ["user_id"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "organization_id",
            sa.String(length=36),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column(
            "actor_user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.Column("correlation_id", sa.String(length=64), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
    )
    op.create_index("ix_audit_events_org_entity", "audit_events", ["organization_id", "entity_type", "entity_id"])
    op.create_index("ix_audit_events_org_action", "audit_events", ["organization_id", "action"])
    op.create_index(
        "ix_audit_events_org_time_desc",
        "audit_events",
        ["organization_id", sa.text("occurred_at DESC")],
    )
    op.create_index("ix_audit_events_actor_user_id", "audit_events", ["actor_user_id"])
    op.create_index("ix_audit_events_correlation_id", "audit_events", ["correlation_id"])

    op.create_table(
        "email_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "organization_id",
            sa.String(length=36),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recipient", sa.String(length=255), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("template_key", sa.String(length=128), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "QUEUED",
                "SENT",
                "FAILED",
                "SKIPPED_NO_PROVIDER",
                name="email_status_enum",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("context_json", sa.JSON(), nullable=True),
        sa.Column("correlation_id", sa.String(length=64), nullable=True),
    )
    op.create_index("ix_email_logs_org_created", "email_logs", ["organization_id", "created_at"])
    op.create_index("ix_email_logs_org_status", "email_logs", ["organization_id", "status"])
    op.create_index("ix_email_logs_org_template", "email_logs", ["organization_id", "template_key"])


def downgrade() -> None:
    op.drop_table("email_logs")
    op.drop_table("audit_events")
    op.drop_table("certificates")
    op.drop_table("quiz_attempts")
    op.drop_table("training_assignments")
    op.drop_table("training_progress_records")
    op.drop_table("content_releases")
    op.drop_table("quiz_questions")
    op.drop_table("quizzes")
    op.drop_table("training_materials")
    op.drop_table("users")
    op.drop_table("organizations")
    sa.Enum(name="account_role_enum").drop(op.get_bind(), checkfirst=True)
