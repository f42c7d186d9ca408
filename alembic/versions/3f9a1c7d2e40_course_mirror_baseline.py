"""course mirror baseline

Revision ID: 3f9a1c7d2e40
Revises:
Create Date: 2026-01-15 13:25:16.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f9a1c7d2e40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create users, the course/chapter/topic mirror and progress tables."""
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("hashed_password", sa.String(length=1024), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_superuser", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "user_type",
            sa.Enum("Admin", "Trainer", "Student", name="usertype"),
            nullable=False,
            server_default="Student",
        ),
        sa.Column("taken_courses", JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_user_id", "user", ["id"])
    op.create_index("ix_user_email", "user", ["email"], unique=True)
    op.create_index("ix_user_username", "user", ["username"])

    op.create_table(
        "course",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_course_id", "course", ["id"])
    op.create_index("ix_course_slug", "course", ["slug"], unique=True)

    op.create_table(
        "chapter",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id", ondelete="CASCADE"), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("course_id", "slug", name="uq_chapter_course_slug"),
    )
    op.create_index("ix_chapter_id", "chapter", ["id"])
    op.create_index("ix_chapter_course_id", "chapter", ["course_id"])

    op.create_table(
        "topic",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("chapter_id", sa.Integer(), sa.ForeignKey("chapter.id", ondelete="CASCADE"), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("content", JSON, nullable=True),
        sa.Column("content_html", sa.Text(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("chapter_id", "slug", name="uq_topic_chapter_slug"),
    )
    op.create_index("ix_topic_id", "topic", ["id"])
    op.create_index("ix_topic_chapter_id", "topic", ["chapter_id"])

    op.create_table(
        "course_user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id", ondelete="CASCADE"), nullable=False),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("total_answers", sa.Integer(), nullable=True),
        sa.Column("correct_answers", sa.Integer(), nullable=True),
        sa.Column("final_score", sa.Integer(), nullable=True),
        sa.Column("completed_chapters", sa.Text(), nullable=True),
        sa.Column("completed_topics", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "course_id", name="uq_course_user"),
    )
    op.create_index("ix_course_user_user_id", "course_user", ["user_id"])
    op.create_index("ix_course_user_course_id", "course_user", ["course_id"])

    op.create_table(
        "course_topic_progress",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id", ondelete="CASCADE"), nullable=False),
        sa.Column("chapter_id", sa.String(), nullable=False),
        sa.Column("topic_id", sa.String(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "course_id", "chapter_id", "topic_id", name="uq_topic_progress_once"),
    )
    op.create_index("ix_topic_progress_user_course", "course_topic_progress", ["user_id", "course_id"])


def downgrade() -> None:
    """Drop everything created in upgrade()."""
    op.drop_table("course_topic_progress")
    op.drop_table("course_user")
    op.drop_table("topic")
    op.drop_table("chapter")
    op.drop_table("course")
    op.drop_table("user")
    sa.Enum(name="usertype").drop(op.get_bind(), checkfirst=True)
