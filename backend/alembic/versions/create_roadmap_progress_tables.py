"""Create roadmap catalog and student progress tables

Revision ID: create_roadmap_progress_tables
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "create_roadmap_progress_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _status(*values: str) -> sa.Enum:
    # Stored as VARCHAR with a CHECK constraint, matching the models
    return sa.Enum(*values, native_enum=False, length=20)


def upgrade() -> None:
    # Identity and questionnaire tables (owned by other subsystems, read here)
    op.create_table(
        "target_roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False, unique=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "student_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("fullname", sa.String(), nullable=False),
        sa.Column("nis", sa.String(32), nullable=True),
        sa.Column("student_class", sa.String(32), nullable=True),
    )
    op.create_table(
        "teacher_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("fullname", sa.String(), nullable=False),
    )
    op.create_table(
        "questionnaire_responses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "student_profile_id", sa.Integer(), sa.ForeignKey("student_profiles.id"), nullable=False
        ),
        sa.Column(
            "recommended_role_id", sa.Integer(), sa.ForeignKey("target_roles.id"), nullable=True
        ),
        sa.Column("submitted_at", sa.DateTime(), nullable=False),
    )

    # Catalog
    op.create_table(
        "roadmaps",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("target_role_id", sa.Integer(), sa.ForeignKey("target_roles.id"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("visibility", _status("private", "school", "public"), nullable=False),
        sa.Column("status", _status("draft", "active", "archived"), nullable=False),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("generation_metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "roadmap_steps",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "roadmap_id",
            sa.Integer(),
            sa.ForeignKey("roadmaps.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("step_order", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("learning_objectives", sa.Text(), nullable=False),
        sa.Column("submission_guidelines", sa.Text(), nullable=False),
        sa.Column("resource_links", sa.JSON(), nullable=True),
        sa.Column("estimated_duration", sa.Integer(), nullable=False),
        sa.Column(
            "difficulty_level", _status("beginner", "intermediate", "advanced"), nullable=False
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_roadmap_steps_roadmap_order", "roadmap_steps", ["roadmap_id", "step_order"]
    )
    op.create_table(
        "roadmap_reviewers",
        sa.Column(
            "roadmap_id",
            sa.Integer(),
            sa.ForeignKey("roadmaps.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "teacher_profile_id",
            sa.Integer(),
            sa.ForeignKey("teacher_profiles.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    # Progress
    op.create_table(
        "student_roadmap_progress",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("roadmap_id", sa.Integer(), sa.ForeignKey("roadmaps.id"), nullable=False),
        sa.Column(
            "student_profile_id", sa.Integer(), sa.ForeignKey("student_profiles.id"), nullable=False
        ),
        sa.Column("total_steps", sa.Integer(), nullable=False),
        sa.Column("completed_steps", sa.Integer(), nullable=False),
        sa.Column("progress_percent", sa.Float(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("last_activity_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("roadmap_id", "student_profile_id", name="unique_student_roadmap"),
    )
    op.create_table(
        "student_step_progress",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "student_roadmap_progress_id",
            sa.Integer(),
            sa.ForeignKey("student_roadmap_progress.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "roadmap_step_id",
            sa.Integer(),
            sa.ForeignKey("roadmap_steps.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "status",
            _status("locked", "unlocked", "in_progress", "submitted", "approved", "rejected"),
            nullable=False,
        ),
        sa.Column("evidence_link", sa.Text(), nullable=True),
        sa.Column("evidence_type", _status("url"), nullable=True),
        sa.Column("submission_notes", sa.Text(), nullable=True),
        sa.Column(
            "validated_by_teacher_id",
            sa.Integer(),
            sa.ForeignKey("teacher_profiles.id"),
            nullable=True,
        ),
        sa.Column("validation_notes", sa.Text(), nullable=True),
        sa.Column("validation_score", sa.Integer(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "student_roadmap_progress_id", "roadmap_step_id", name="unique_progress_step"
        ),
    )
    # The review queue scans by status, oldest submission first
    op.create_index(
        "ix_student_step_progress_status_submitted",
        "student_step_progress",
        ["status", "submitted_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_student_step_progress_status_submitted", table_name="student_step_progress")
    op.drop_table("student_step_progress")
    op.drop_table("student_roadmap_progress")
    op.drop_table("roadmap_reviewers")
    op.drop_index("ix_roadmap_steps_roadmap_order", table_name="roadmap_steps")
    op.drop_table("roadmap_steps")
    op.drop_table("roadmaps")
    op.drop_table("questionnaire_responses")
    op.drop_table("teacher_profiles")
    op.drop_table("student_profiles")
    op.drop_table("users")
    op.drop_table("target_roles")
