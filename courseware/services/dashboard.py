# services/dashboard.py
from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..background import run_sync
from ..models import Chapter, Course, CourseUser, coerce_string_set
from .content_store import ContentStore
from .metadata import declared_chapters, read_course_metadata, read_topics_index


def count_total_topics(store: ContentStore, course_slug: str, chapters: list[Any]) -> int:
    total = 0
    for chapter in chapters:
        if not isinstance(chapter, dict):
            continue
        chapter_id = chapter.get("id")
        if not isinstance(chapter_id, str) or chapter_id == "":
            continue
        entries = read_topics_index(store, course_slug, chapter_id)
        if entries is None:
            continue
        total += len(entries)
    return total


def course_file_counts(store: ContentStore, course_slug: str) -> tuple[Optional[int], int]:
    """Declared chapter count (None without a readable chapter list) and topic total."""
    metadata = read_course_metadata(store, course_slug)
    if not isinstance(metadata.get("chapters"), list):
        return None, 0
    chapters = declared_chapters(metadata)
    return len(chapters), count_total_topics(store, course_slug, chapters)


async def user_course_summaries(db: AsyncSession, store: ContentStore, user_id: int) -> list[dict[str, Any]]:
    chapter_counts = (
        select(Chapter.course_id, func.count(Chapter.id).label("chapters_count"))
        .group_by(Chapter.course_id)
        .subquery()
    )
    rows = (
        await db.execute(
            select(Course, CourseUser, func.coalesce(chapter_counts.c.chapters_count, 0))
            .join(CourseUser, CourseUser.course_id == Course.id)
            .outerjoin(chapter_counts, chapter_counts.c.course_id == Course.id)
            .where(CourseUser.user_id == user_id)
            .order_by(Course.title)
        )
    ).all()

    summaries: list[dict[str, Any]] = []
    for course, link, chapters_count in rows:
        declared_count, total_topics = await run_sync(course_file_counts, store, course.slug)
        if declared_count is not None:
            chapters_count = declared_count

        summaries.append(
            {
                "id": course.id,
                "slug": course.slug,
                "title": course.title,
                "description": course.description,
                "score": link.score,
                "total_answers": link.total_answers,
                "correct_answers": link.correct_answers,
                "final_score": link.final_score,
                "chapters": chapters_count,
                "completed_chapters": len(coerce_string_set(link.completed_chapters)),
                "completed_topics": len(coerce_string_set(link.completed_topics)),
                "total_topics": total_topics,
            }
        )
    return summaries
