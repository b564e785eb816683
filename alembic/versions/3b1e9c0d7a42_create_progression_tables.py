"""create progression tables

Revision ID: 3b1e9c0d7a42
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1e9c0d7a42"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True)


def _user_id() -> sa.Column:
    return sa.Column("user_id", sa.String(length=64), nullable=False)


def upgrade() -> None:
    # --- Content ---
    op.create_table(
        "courses",
        _id(),
        sa.Column("course_number", sa.Integer(), nullable=False, unique=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column(
            "published", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
    )
    op.create_table(
        "lessons",
        _id(),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("lesson_number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False, server_default=""),
        sa.UniqueConstraint("course_id", "lesson_number"),
    )
    op.create_table(
        "activities",
        _id(),
        sa.Column(
            "lesson_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lessons.id"),
            nullable=False,
        ),
        sa.Column("activity_number", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column(
            "content",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "required", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("title", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.UniqueConstraint("lesson_id", "activity_number"),
    )
    op.create_table(
        "final_projects",
        _id(),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "requirements",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
    )
    op.create_table(
        "final_exams",
        _id(),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("passing_score", sa.Integer(), nullable=False, server_default="70"),
        sa.Column("time_limit", sa.Integer(), nullable=False, server_default="60"),
        sa.Column(
            "questions",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
    )

    # --- Progress ---
    op.create_table(
        "enrollments",
        _id(),
        _user_id(),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("enrolled_at", sa.Integer(), nullable=False),
        sa.Column("current_lesson", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "unlocked_courses", sa.Integer(), nullable=False, server_default="1"
        ),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.UniqueConstraint("user_id", "course_id"),
    )
    op.create_table(
        "lesson_progress",
        _id(),
        _user_id(),
        sa.Column(
            "lesson_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lessons.id"),
            nullable=False,
        ),
        sa.Column(
            "current_activity", sa.Integer(), nullable=False, server_default="1"
        ),
        sa.Column(
            "completed", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.Column("video_position", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("user_id", "lesson_id"),
    )
    op.create_table(
        "activity_submissions",
        _id(),
        _user_id(),
        sa.Column(
            "activity_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("activities.id"),
            nullable=False,
        ),
        sa.Column("response", postgresql.JSONB(), nullable=False),
        sa.Column("submitted_at", sa.Integer(), nullable=False),
        sa.Column(
            "completed", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.UniqueConstraint("user_id", "activity_id"),
    )
    op.create_table(
        "final_project_submissions",
        _id(),
        _user_id(),
        sa.Column(
            "project_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("final_projects.id"),
            nullable=False,
        ),
        sa.Column("submitted_at", sa.Integer(), nullable=False),
        sa.Column(
            "submission",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "status", sa.String(length=32), nullable=False, server_default="pending"
        ),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.UniqueConstraint("user_id", "project_id"),
    )
    op.create_table(
        "final_exam_results",
        _id(),
        _user_id(),
        sa.Column(
            "exam_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("final_exams.id"),
            nullable=False,
        ),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("grading_status", sa.String(length=32), nullable=False),
        sa.Column(
            "answers",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("submitted_at", sa.Integer(), nullable=False),
        sa.UniqueConstraint("user_id", "exam_id"),
    )

    # --- Credentials ---
    op.create_table(
        "achievements",
        _id(),
        _user_id(),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("icon", sa.String(length=64), nullable=False, server_default=""),
        sa.Column(
            "rarity", sa.String(length=16), nullable=False, server_default="common"
        ),
        sa.Column("unlocked_at", sa.Integer(), nullable=False),
        sa.UniqueConstraint("user_id", "title"),
    )
    op.create_table(
        "certificates",
        _id(),
        _user_id(),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column(
            "verification_code", sa.String(length=64), nullable=False, unique=True
        ),
        sa.Column("issued_at", sa.Integer(), nullable=False),
        sa.UniqueConstraint("user_id", "course_id"),
    )

    # --- Integrations ---
    op.create_table(
        "webhook_integrations",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("external_user_id", sa.String(length=255), nullable=False),
        sa.Column("webhook_url", sa.Text(), nullable=True),
        sa.Column("webhook_secret", sa.String(length=255), nullable=True),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
    )

    for table in (
        "enrollments",
        "lesson_progress",
        "activity_submissions",
        "final_project_submissions",
        "final_exam_results",
        "achievements",
        "certificates",
    ):
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])


def downgrade() -> None:
    for table in (
        "webhook_integrations",
        "certificates",
        "achievements",
        "final_exam_results",
        "final_project_submissions",
        "activity_submissions",
        "lesson_progress",
        "enrollments",
        "final_exams",
        "final_projects",
        "activities",
        "lessons",
        "courses",
    ):
        op.drop_table(table)
