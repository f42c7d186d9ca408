import enum
import json
from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, Text, DateTime, func,
    UniqueConstraint, Index,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from .database import Base

JSON = sa.JSON().with_variant(JSONB(), "postgresql")


class UserType(str, enum.Enum):
    Admin = "Admin"
    Trainer = "Trainer"
    Student = "Student"


def coerce_string_set(value: Any) -> set[str]:
    """Accept a list/set, JSON-encoded text, or None and return a set of strings."""
    if value is None:
        return set()
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return set()
    if isinstance(value, (list, tuple, set, frozenset)):
        return {str(v) for v in value if v is not None}
    return set()


class StringSet(TypeDecorator):
    """Set of strings stored as a sorted JSON array in a text column."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return json.dumps(sorted(coerce_string_set(value)))

    def process_result_value(self, value, dialect):
        return coerce_string_set(value)


# ---------------------------
# USER MODEL
# ---------------------------
class User(Base):
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(320), unique=True, index=True, nullable=False)
    username = Column(String, index=True)
    hashed_password = Column(String(1024), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_superuser = Column(Boolean, default=False, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    user_type = Column(SAEnum(UserType), default=UserType.Student, nullable=False)
    taken_courses = Column(JSON, default=list, nullable=True)  # list[int] of course ids
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    course_links = relationship(
        "CourseUser",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_admin(self) -> bool:
        return bool(self.is_superuser) or self.user_type == UserType.Admin


# ---------------------------
# COURSE CONTENT MIRROR
# ---------------------------
class Course(Base):
    __tablename__ = "course"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String, unique=True, nullable=False, index=True)  # directory name under courses/
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    chapters = relationship(
        "Chapter",
        back_populates="course",
        order_by="Chapter.position.asc()",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    user_links = relationship(
        "CourseUser",
        back_populates="course",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Chapter(Base):
    __tablename__ = "chapter"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("course.id", ondelete="CASCADE"), index=True, nullable=False)
    slug = Column(String, nullable=False)
    title = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)  # zero-based, as declared in the descriptor
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    course = relationship("Course", back_populates="chapters")
    topics = relationship(
        "Topic",
        back_populates="chapter",
        order_by="Topic.position.asc()",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("course_id", "slug", name="uq_chapter_course_slug"),
    )


class Topic(Base):
    __tablename__ = "topic"

    id = Column(Integer, primary_key=True, index=True)
    chapter_id = Column(Integer, ForeignKey("chapter.id", ondelete="CASCADE"), index=True, nullable=False)
    slug = Column(String, nullable=False)  # file name inside the chapter directory
    title = Column(String, nullable=False)
    content = Column(JSON, nullable=True)  # list[str]
    content_html = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    chapter = relationship("Chapter", back_populates="topics")

    __table_args__ = (
        UniqueConstraint("chapter_id", "slug", name="uq_topic_chapter_slug"),
    )


# ---------------------------
# PROGRESS
# ---------------------------
class CourseUser(Base):
    __tablename__ = "course_user"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), index=True, nullable=False)
    course_id = Column(Integer, ForeignKey("course.id", ondelete="CASCADE"), index=True, nullable=False)
    score = Column(Integer, nullable=True)
    total_answers = Column(Integer, nullable=True)
    correct_answers = Column(Integer, nullable=True)
    final_score = Column(Integer, nullable=True)  # 0..100
    completed_chapters = Column(StringSet(), default=set, nullable=True)
    completed_topics = Column(StringSet(), default=set, nullable=True)  # "<chapter_slug>/<topic_slug>"
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    user = relationship("User", back_populates="course_links")
    course = relationship("Course", back_populates="user_links")

    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_course_user"),
    )


class CourseTopicProgress(Base):
    __tablename__ = "course_topic_progress"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    course_id = Column(Integer, ForeignKey("course.id", ondelete="CASCADE"), nullable=False)
    chapter_id = Column(String, nullable=False)  # chapter slug, not chapter.id
    topic_id = Column(String, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "course_id", "chapter_id", "topic_id", name="uq_topic_progress_once"),
        Index("ix_topic_progress_user_course", "user_id", "course_id"),
    )
