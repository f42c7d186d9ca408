# services/sync.py
"""Mirror the course tree on disk into Course/Chapter/Topic rows.

Each public call is one transaction: every upsert and prune commits together or
the session is rolled back. Sync is authoritative per parent: children missing
from the latest index are deleted, unless the index yielded no usable entries.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional, Type

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..background import run_sync
from ..models import Chapter, Course, Topic
from .content_store import ContentStore
from .metadata import (
    declared_chapters,
    read_course_metadata,
    read_topic_payload,
    read_topics_index,
    text_or_none,
    title_from_slug,
)

logger = logging.getLogger(__name__)


@dataclass
class CourseSyncResult:
    courses_created: int = 0
    courses_updated: int = 0
    chapters_created: int = 0
    chapters_updated: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class TopicSyncResult:
    topics_created: int = 0
    topics_updated: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def _first_set(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _slug_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value != "":
        return value
    return None


async def update_or_create(
    db: AsyncSession,
    model: Type[Any],
    keys: dict[str, Any],
    values: dict[str, Any],
) -> tuple[Any, bool]:
    """Upsert one row by ``keys``; returns ``(row, created)``."""
    row = (await db.execute(select(model).filter_by(**keys))).scalars().first()
    if row is not None:
        for name, value in values.items():
            setattr(row, name, value)
        return row, False
    row = model(**keys, **values)
    db.add(row)
    await db.flush()
    return row, True


async def _prune_chapters(db: AsyncSession, course_id: int, seen: list[str]) -> None:
    await db.flush()
    stale = select(Chapter.id).where(Chapter.course_id == course_id, Chapter.slug.not_in(seen))
    await db.execute(delete(Topic).where(Topic.chapter_id.in_(stale)))
    await db.execute(delete(Chapter).where(Chapter.id.in_(stale)))


async def _prune_topics(db: AsyncSession, chapter_id: int, seen: list[str]) -> None:
    await db.flush()
    await db.execute(delete(Topic).where(Topic.chapter_id == chapter_id, Topic.slug.not_in(seen)))


async def _sync_courses(db: AsyncSession, store: ContentStore) -> CourseSyncResult:
    result = CourseSyncResult()

    for slug in await run_sync(store.list_course_directories):
        metadata = await run_sync(read_course_metadata, store, slug)
        course, created = await update_or_create(
            db,
            Course,
            {"slug": slug},
            {
                "title": _first_set(metadata.get("title"), title_from_slug(slug)),
                "description": metadata.get("description"),
            },
        )
        if created:
            result.courses_created += 1
        else:
            result.courses_updated += 1

        seen: list[str] = []
        for index, chapter in enumerate(declared_chapters(metadata)):
            if not isinstance(chapter, dict):
                continue
            chapter_slug = _slug_or_none(chapter.get("id"))
            if chapter_slug is None:
                continue
            seen.append(chapter_slug)

            _, chapter_created = await update_or_create(
                db,
                Chapter,
                {"course_id": course.id, "slug": chapter_slug},
                {
                    "title": _first_set(text_or_none(chapter.get("title")), title_from_slug(chapter_slug)),
                    "position": index,
                },
            )
            if chapter_created:
                result.chapters_created += 1
            else:
                result.chapters_updated += 1

        if seen:
            await _prune_chapters(db, course.id, seen)

    return result


async def _sync_topics(db: AsyncSession, store: ContentStore) -> TopicSyncResult:
    result = TopicSyncResult()

    chapters = (
        await db.execute(select(Chapter).options(selectinload(Chapter.course)).order_by(Chapter.id))
    ).scalars().all()

    for chapter in chapters:
        course_slug = chapter.course.slug if chapter.course else None
        if not course_slug:
            continue

        topics_index = await run_sync(read_topics_index, store, course_slug, chapter.slug)
        if topics_index is None:
            continue

        seen: list[str] = []
        for index, entry in enumerate(topics_index):
            topic_slug = _slug_or_none(entry.get("file"))
            if topic_slug is None:
                continue
            seen.append(topic_slug)
            payload = await run_sync(read_topic_payload, store, course_slug, chapter.slug, topic_slug)

            _, created = await update_or_create(
                db,
                Topic,
                {"chapter_id": chapter.id, "slug": topic_slug},
                {
                    "title": _first_set(
                        payload.get("title"), text_or_none(entry.get("title")), title_from_slug(topic_slug)
                    ),
                    "content": payload.get("content"),
                    "content_html": payload.get("content_html"),
                    "position": index,
                },
            )
            if created:
                result.topics_created += 1
            else:
                result.topics_updated += 1

        if seen:
            await _prune_topics(db, chapter.id, seen)

    return result


async def sync_courses(db: AsyncSession, store: ContentStore) -> dict[str, int]:
    try:
        result = await _sync_courses(db, store)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Course sync complete: %s", result.as_dict())
    return result.as_dict()


async def sync_topics(db: AsyncSession, store: ContentStore) -> dict[str, int]:
    try:
        result = await _sync_topics(db, store)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Topic sync complete: %s", result.as_dict())
    return result.as_dict()
