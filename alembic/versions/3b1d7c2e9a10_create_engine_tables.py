"""create engine tables

Revision ID: 3b1d7c2e9a10
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1d7c2e9a10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column(
            "roles",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "courses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("is_free", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.Integer(), nullable=False),
    )

    op.create_table(
        "episodes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("is_free", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("course_id", "position", name="uq_episodes_course_position"),
        sa.CheckConstraint("position >= 1", name="ck_episodes_position_positive"),
    )

    op.create_table(
        "episode_quizzes",
        sa.Column(
            "episode_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("episodes.id"),
            primary_key=True,
        ),
        sa.Column("passing_score", sa.Integer(), nullable=False, server_default="70"),
        sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "registration_keys",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("code", sa.String(length=64), nullable=False, unique=True),
        sa.Column("product_ref", sa.String(length=255), nullable=False),
        sa.Column("state", sa.String(length=16), nullable=False, server_default="issued"),
        sa.Column("bound_email", sa.String(length=320), nullable=True),
        sa.Column("price", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.Column("activated_at", sa.Integer(), nullable=True),
        sa.Column("expires_at", sa.Integer(), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.CheckConstraint(
            "state <> 'activated' OR bound_email IS NOT NULL",
            name="ck_registration_keys_activated_bound",
        ),
        sa.CheckConstraint(
            "state <> 'issued' OR bound_email IS NULL",
            name="ck_registration_keys_issued_unbound",
        ),
    )
    op.create_index(
        "ix_registration_keys_product_ref", "registration_keys", ["product_ref"]
    )
    op.create_index(
        "ix_registration_keys_bound_email", "registration_keys", ["bound_email"]
    )

    op.create_table(
        "enrollments",
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            primary_key=True,
        ),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            primary_key=True,
        ),
        sa.Column("enrolled_at", sa.Integer(), nullable=False),
        sa.Column("progress_percentage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_episodes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.Column("last_accessed_at", sa.Integer(), nullable=True),
        sa.Column(
            "registration_key_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("registration_keys.id"),
            nullable=True,
        ),
    )

    op.create_table(
        "episode_progress",
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            primary_key=True,
        ),
        sa.Column(
            "episode_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("episodes.id"),
            primary_key=True,
        ),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("watched_seconds", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.Column("last_watched_at", sa.Integer(), nullable=True),
    )
    op.create_index(
        "ix_episode_progress_user_course", "episode_progress", ["user_id", "course_id"]
    )

    op.create_table(
        "quiz_attempts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            nullable=False,
        ),
        sa.Column(
            "episode_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("episodes.id"),
            nullable=False,
        ),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("attempted_at", sa.Integer(), nullable=False),
    )
    op.create_index(
        "ix_quiz_attempts_user_episode", "quiz_attempts", ["user_id", "episode_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_quiz_attempts_user_episode", table_name="quiz_attempts")
    op.drop_table("quiz_attempts")
    op.drop_index("ix_episode_progress_user_course", table_name="episode_progress")
    op.drop_table("episode_progress")
    op.drop_table("enrollments")
    op.drop_index("ix_registration_keys_bound_email", table_name="registration_keys")
    op.drop_index("ix_registration_keys_product_ref", table_name="registration_keys")
    op.drop_table("registration_keys")
    op.drop_table("episode_quizzes")
    op.drop_table("episodes")
    op.drop_table("courses")
    op.drop_table("users")
