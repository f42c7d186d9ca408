# services/progress.py
from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from fractions import Fraction
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..background import run_sync
from ..models import Course, CourseTopicProgress, CourseUser, User, coerce_string_set
from .content_store import ContentStore
from .metadata import read_course_metadata, title_from_slug

logger = logging.getLogger(__name__)


def compute_final_score(total_answers: int, correct_answers: int) -> int:
    """Percentage of correct answers, rounded half up; 0 when nothing was answered."""
    if not total_answers:
        return 0
    return math.floor(Fraction(correct_answers * 100, total_answers) + Fraction(1, 2))


def parse_topic_key(chapter_id: str, topic_key: str) -> tuple[str, str]:
    chapter, sep, topic = topic_key.partition("/")
    if sep:
        return chapter, topic
    return chapter_id, topic_key


async def resolve_course(db: AsyncSession, store: ContentStore, slug: str) -> Course:
    """Course row for ``slug``, created from its descriptor (or slug) when missing."""
    course = (await db.execute(select(Course).where(Course.slug == slug))).scalars().first()
    if course:
        return course

    metadata = await run_sync(read_course_metadata, store, slug) if ".." not in slug else {}
    title = metadata.get("title")
    if title is None:
        title = title_from_slug(slug)

    course = Course(slug=slug, title=title, description=metadata.get("description"))
    db.add(course)
    await db.flush()
    logger.info("Created course %s on first progress update", slug)
    return course


async def enroll(db: AsyncSession, user: User, course: Course) -> CourseUser:
    link = (
        await db.execute(
            select(CourseUser).where(CourseUser.user_id == user.id, CourseUser.course_id == course.id)
        )
    ).scalars().first()
    if not link:
        link = CourseUser(user_id=user.id, course_id=course.id)
        db.add(link)
        await db.flush()

    taken = list(user.taken_courses or [])
    if course.id not in taken:
        user.taken_courses = taken + [course.id]
    return link


async def _load_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise LookupError(f"user {user_id} not found")
    return user


def _store_topic_progress(
    db: AsyncSession,
    existing: dict[tuple[str, str], CourseTopicProgress],
    user_id: int,
    course_id: int,
    chapter_id: str,
    topic_key: str,
    now: datetime,
) -> None:
    chapter_slug, topic_id = parse_topic_key(chapter_id, topic_key)
    row = existing.get((chapter_slug, topic_id))
    if row is None:
        row = CourseTopicProgress(
            user_id=user_id,
            course_id=course_id,
            chapter_id=chapter_slug,
            topic_id=topic_id,
        )
        db.add(row)
        existing[(chapter_slug, topic_id)] = row
    row.completed_at = now


async def record_completion(
    db: AsyncSession,
    store: ContentStore,
    user_id: int,
    course_slug: str,
    chapter_id: str,
    topics: Optional[Iterable[str]] = None,
) -> CourseUser:
    topic_keys = [t for t in (topics or []) if t]
    try:
        user = await _load_user(db, user_id)
        course = await resolve_course(db, store, course_slug)
        link = await enroll(db, user, course)

        link.completed_chapters = coerce_string_set(link.completed_chapters) | {chapter_id}
        link.completed_topics = coerce_string_set(link.completed_topics) | set(topic_keys)

        rows = (
            await db.execute(
                select(CourseTopicProgress).where(
                    CourseTopicProgress.user_id == user.id,
                    CourseTopicProgress.course_id == course.id,
                )
            )
        ).scalars().all()
        existing = {(r.chapter_id, r.topic_id): r for r in rows}
        now = datetime.now(timezone.utc)
        for topic_key in topic_keys:
            _store_topic_progress(db, existing, user.id, course.id, chapter_id, topic_key, now)

        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return link


async def record_quiz_result(
    db: AsyncSession,
    store: ContentStore,
    user_id: int,
    course_slug: str,
    total_answers: int,
    correct_answers: int,
) -> CourseUser:
    """Overwrite the user's score fields for a course with the latest attempt."""
    try:
        user = await _load_user(db, user_id)
        course = await resolve_course(db, store, course_slug)
        link = await enroll(db, user, course)

        link.score = correct_answers
        link.total_answers = total_answers
        link.correct_answers = correct_answers
        link.final_score = compute_final_score(total_answers, correct_answers)

        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return link
