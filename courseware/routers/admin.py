from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..database import get_db
from ..models import Chapter, Course, Topic, User
from ..schemas import ChapterRead, CourseRead, TopicRead, UserSummary, UserTypeUpdate
from ..services.content_store import ContentStore
from ..services.sync import sync_courses, sync_topics
from ..utils import get_content_store, require_admin_user

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("")
async def admin_index(
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_admin_user),
):
    users = (await db.execute(select(User).order_by(User.username, User.id))).scalars().all()

    chapter_counts = (
        select(Chapter.course_id, func.count(Chapter.id).label("n"))
        .group_by(Chapter.course_id)
        .subquery()
    )
    course_rows = (
        await db.execute(
            select(Course, func.coalesce(chapter_counts.c.n, 0))
            .outerjoin(chapter_counts, chapter_counts.c.course_id == Course.id)
            .order_by(Course.title)
        )
    ).all()

    topic_counts = (
        select(Topic.chapter_id, func.count(Topic.id).label("n"))
        .group_by(Topic.chapter_id)
        .subquery()
    )
    chapter_rows = (
        await db.execute(
            select(Chapter, func.coalesce(topic_counts.c.n, 0))
            .options(selectinload(Chapter.course))
            .outerjoin(topic_counts, topic_counts.c.chapter_id == Chapter.id)
            .order_by(Chapter.course_id, Chapter.position)
        )
    ).all()

    topics = (
        await db.execute(
            select(Topic)
            .options(selectinload(Topic.chapter).selectinload(Chapter.course))
            .order_by(Topic.chapter_id, Topic.position)
        )
    ).scalars().all()

    return {
        "users": [UserSummary.model_validate(u).model_dump(mode="json") for u in users],
        "courses": [
            CourseRead(
                id=c.id, slug=c.slug, title=c.title, description=c.description, chapters_count=n,
            ).model_dump()
            for c, n in course_rows
        ],
        "chapters": [
            ChapterRead(
                id=ch.id,
                course_id=ch.course_id,
                course_title=ch.course.title if ch.course else None,
                slug=ch.slug,
                title=ch.title,
                position=ch.position,
                topics_count=n,
            ).model_dump()
            for ch, n in chapter_rows
        ],
        "topics": [
            TopicRead(
                id=t.id,
                chapter_id=t.chapter_id,
                course_title=t.chapter.course.title if t.chapter and t.chapter.course else None,
                slug=t.slug,
                title=t.title,
                position=t.position,
            ).model_dump()
            for t in topics
        ],
    }


@router.post("/sync/courses")
async def admin_sync_courses(
    db: AsyncSession = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    admin=Depends(require_admin_user),
):
    result = await sync_courses(db, store)
    return {"synced": True, "result": result}


@router.post("/sync/topics")
async def admin_sync_topics(
    db: AsyncSession = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    admin=Depends(require_admin_user),
):
    result = await sync_topics(db, store)
    return {"synced": True, "result": result}


@router.patch("/users/{user_id}")
async def admin_update_user_type(
    user_id: int,
    payload: UserTypeUpdate,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_admin_user),
):
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    user.user_type = payload.user_type
    await db.commit()
    return {"updated": True, "user": {"id": user.id, "user_type": user.user_type.value}}
