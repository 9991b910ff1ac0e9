"""书籍导入相关 API 路由。"""

from __future__ import annotations

import asyncio
import json
import uuid
from pathlib import Path
from typing import AsyncIterator

from fastapi import APIRouter, Body, Depends, Form, HTTPException, UploadFile
from loguru import logger
from sse_starlette.sse import EventSourceResponse

from app.web.deps import get_config, get_store
from reader.config import ReaderConfig
from reader.epub.extractor import ExtractEvent
from reader.models import Progress
from reader.pipeline import IngestPipeline
from reader.store import LibraryStore

router = APIRouter(prefix="/api/books", tags=["books"])

_tasks: dict[str, dict] = {}
# 持有后台任务引用，避免被垃圾回收
_running: set[asyncio.Task] = set()


@router.post("")
async def upload_book(
    file: UploadFile,
    tags: str = Form(""),
    store: LibraryStore = Depends(get_store),
    config: ReaderConfig = Depends(get_config),
) -> dict:
    """上传 EPUB 并启动导入任务，返回 task_id。"""
    task_id = str(uuid.uuid4())
    upload_dir = config.data_dir / "uploads"
    upload_dir.mkdir(parents=True, exist_ok=True)
    epub_path = upload_dir / f"{task_id}.epub"
    epub_path.write_bytes(await file.read())

    _tasks[task_id] = {
        "status": "pending",
        "events": [],
        "filename": file.filename or "book.epub",
    }
    tag_list = [t.strip() for t in tags.split(",") if t.strip()]

    task = asyncio.create_task(_run_import(task_id, epub_path, store, tag_list, config.data_dir / "log"))
    _running.add(task)
    task.add_done_callback(_running.discard)

    return {"task_id": task_id}


@router.get("/tasks/{task_id}/progress")
async def get_progress(task_id: str):
    """SSE 流：推送导入进度事件。"""
    if task_id not in _tasks:
        raise HTTPException(status_code=404, detail="Task not found")

    async def event_generator() -> AsyncIterator[dict]:
        sent = 0
        while True:
            task = _tasks.get(task_id, {})
            events = task.get("events", [])
            while sent < len(events):
                yield {"data": json.dumps(events[sent], ensure_ascii=False)}
                sent += 1
            if task.get("status") in ("done", "error"):
                break
            await asyncio.sleep(0.3)

    return EventSourceResponse(event_generator())


@router.get("/tasks/{task_id}/status")
async def get_status(task_id: str) -> dict:
    task = _tasks.get(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return {
        "task_id": task_id,
        "status": task["status"],
        "error": task.get("error"),
        "book": task.get("book"),
    }


@router.get("/current")
async def current_book(store: LibraryStore = Depends(get_store)) -> dict:
    meta = await store.load_book_meta()
    if meta is None:
        raise HTTPException(status_code=404, detail="No book loaded")
    return meta.to_dict()


@router.put("/current/tags")
async def update_tags(payload: list[str] = Body(...), store: LibraryStore = Depends(get_store)) -> dict:
    meta = await store.update_book_meta(tags=[t for t in payload if t])
    if meta is None:
        raise HTTPException(status_code=404, detail="No book loaded")
    return meta.to_dict()


@router.delete("/current")
async def remove_book(store: LibraryStore = Depends(get_store)) -> dict:
    """清空书籍与章节，金句与设置保留（用于重新上传）。"""
    await store.clear_book()
    await store.save_progress(Progress())
    return {"ok": True}


async def _run_import(
    task_id: str, epub_path: Path, store: LibraryStore, tags: list[str], log_dir: Path,
) -> None:
    _tasks[task_id]["status"] = "running"

    def on_progress(event: ExtractEvent) -> None:
        _tasks[task_id]["events"].append({
            "spine_index": event.spine_index,
            "spine_total": event.spine_total,
            "href": event.href,
            "status": event.status,
            "message": event.message,
        })

    try:
        pipeline = IngestPipeline(epub_path, store, tags=tags, on_progress=on_progress, log_dir=log_dir)
        meta = await pipeline.run()
        _tasks[task_id]["book"] = meta.to_dict()
        _tasks[task_id]["status"] = "done"
    except Exception as e:
        logger.error("import task {} failed: {}", task_id, e)
        _tasks[task_id]["status"] = "error"
        _tasks[task_id]["error"] = str(e)
    finally:
        epub_path.unlink(missing_ok=True)
