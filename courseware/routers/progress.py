from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas import CompletionPayload, QuizResultPayload
from ..services.content_store import ContentStore
from ..services.dashboard import user_course_summaries
from ..services.progress import record_completion, record_quiz_result
from ..utils import get_content_store, require_authenticated_user

router = APIRouter(tags=["progress"])


@router.post("/progress/completion")
async def progress_completion(
    payload: CompletionPayload,
    db: AsyncSession = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    user=Depends(require_authenticated_user),
):
    await record_completion(db, store, user.id, payload.slug, payload.chapter_id, payload.topics)
    return {"updated": True}


@router.post("/progress/results")
async def progress_results(
    payload: QuizResultPayload,
    db: AsyncSession = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    user=Depends(require_authenticated_user),
):
    await record_quiz_result(db, store, user.id, payload.slug, payload.total_answers, payload.correct_answers)
    return {"updated": True}


@router.get("/api/dashboard")
async def dashboard(
    db: AsyncSession = Depends(get_db),
    store: ContentStore = Depends(get_content_store),
    user=Depends(require_authenticated_user),
):
    return {"courses": await user_course_summaries(db, store, user.id)}
