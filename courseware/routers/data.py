from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from ..background import run_sync
from ..schemas import DataWritePayload
from ..services.content_store import ContentStore, NotFound, decode_payload, is_yaml_path
from ..utils import get_content_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/data", tags=["data"])


@router.get("")
async def data_index(store: ContentStore = Depends(get_content_store)):
    files = await run_sync(store.list_data_files)
    return {"count": len(files), "files": files}


@router.get("/{path:path}")
async def data_show(path: str, store: ContentStore = Depends(get_content_store)):
    storage_path = store.resolve_path(path)

    if store.is_course_index(storage_path):
        payload = await run_sync(store.course_index)
        store.log_payload_details(storage_path, payload)
        return JSONResponse(payload)

    target = await run_sync(store.resolve_existing, storage_path)
    if not target:
        raise NotFound(storage_path)

    contents = await run_sync(store.read, target)
    store.log.debug("Data file loaded.", path=target)

    payload = await run_sync(decode_payload, target, contents)
    store.log_payload_details(target, payload)

    if is_yaml_path(target):
        return JSONResponse(payload)
    return Response(content=contents, media_type="application/json")


@router.post("/{path:path}", status_code=201)
async def data_store(
    path: str,
    payload: DataWritePayload,
    store: ContentStore = Depends(get_content_store),
):
    storage_path = store.resolve_path(path)
    stored = await run_sync(store.create, storage_path, payload.data)
    logger.info("Created data file %s", stored)
    return {"path": stored}


@router.put("/{path:path}")
async def data_update(
    path: str,
    payload: DataWritePayload,
    store: ContentStore = Depends(get_content_store),
):
    storage_path = store.resolve_path(path)
    stored = await run_sync(store.update, storage_path, payload.data)
    logger.info("Updated data file %s", stored)
    return {"path": stored}


@router.delete("/{path:path}")
async def data_destroy(path: str, store: ContentStore = Depends(get_content_store)):
    storage_path = store.resolve_path(path)
    target = await run_sync(store.resolve_existing, storage_path)
    if not target:
        raise NotFound(storage_path)
    await run_sync(store.delete, target)
    logger.info("Deleted data file %s", target)
    return {"deleted": True}
