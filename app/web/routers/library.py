"""金句与备份 API 路由。"""

from __future__ import annotations

from datetime import date
from urllib.parse import quote as url_quote

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from app.web.deps import get_store
from reader.backup import backup_filename, export_all, import_all
from reader.config import Settings
from reader.errors import InvalidBackup
from reader.quotes import (
    build_quote,
    chapters_with_quotes,
    export_quotes,
    filter_quotes,
    find_quote,
    format_copy,
    remove_quote,
    update_quote,
)
from reader.store import LibraryStore

router = APIRouter(prefix="/api", tags=["library"])

_EDITABLE = {"text", "author", "source", "tags"}


@router.get("/quotes")
async def list_quotes(
    chapter: int | None = Query(None, ge=0),
    id_query: str = Query("", alias="id"),
    store: LibraryStore = Depends(get_store),
) -> list[dict]:
    """金句列表：可按章节筛选、按编号子串搜索，按编号数值排序。"""
    quotes = filter_quotes(await store.load_quotes(), chapter_index=chapter, id_query=id_query)
    return [q.to_dict() for q in quotes]


@router.get("/quotes/chapters")
async def list_quote_chapters(store: LibraryStore = Depends(get_store)) -> list[int]:
    return chapters_with_quotes(await store.load_quotes())


@router.post("/quotes")
async def add_quote(payload: dict = Body(...), store: LibraryStore = Depends(get_store)) -> dict:
    """收藏金句。payload: {text, chapterIndex, chapterTitle?, author?}"""
    text = (payload.get("text") or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail="text is required")

    meta = await store.load_book_meta()
    if meta is None:
        raise HTTPException(status_code=404, detail="No book loaded")

    quotes = await store.load_quotes()
    if find_quote(quotes, text) is not None:
        raise HTTPException(status_code=409, detail="Quote already exists")

    chapter_index = int(payload.get("chapterIndex", 0))
    chapter_title = payload.get("chapterTitle")
    if chapter_title is None:
        chapter = await store.load_chapter(chapter_index)
        chapter_title = chapter.title if chapter else ""

    settings = await store.load_settings() or Settings()
    quote = build_quote(
        quotes, settings.starting_id, meta, text,
        chapter_index, chapter_title,
        author=payload.get("author") or (settings.authors[0] if settings.authors else None),
    )
    await store.save_quotes([*quotes, quote])
    return {**quote.to_dict(), "copyText": format_copy(text, meta.title, chapter_title)}


@router.patch("/quotes/{quote_id}")
async def edit_quote(quote_id: str, payload: dict = Body(...), store: LibraryStore = Depends(get_store)) -> dict:
    quotes = await store.load_quotes()
    if not any(q.id == quote_id for q in quotes):
        raise HTTPException(status_code=404, detail="Quote not found")
    changes = {k: v for k, v in payload.items() if k in _EDITABLE}
    quotes = update_quote(quotes, quote_id, **changes)
    await store.save_quotes(quotes)
    return next(q for q in quotes if q.id == quote_id).to_dict()


@router.delete("/quotes/{quote_id}")
async def delete_quote(quote_id: str, store: LibraryStore = Depends(get_store)) -> dict:
    quotes = await store.load_quotes()
    remaining = remove_quote(quotes, quote_id)
    if len(remaining) == len(quotes):
        raise HTTPException(status_code=404, detail="Quote not found")
    await store.save_quotes(remaining)
    return {"ok": True}


@router.get("/quotes/export")
async def export_quote_list(store: LibraryStore = Depends(get_store)) -> list[dict]:
    return export_quotes(await store.load_quotes())


@router.get("/backup")
async def download_backup(store: LibraryStore = Depends(get_store)) -> JSONResponse:
    data = await export_all(store)
    title = (data["bookMeta"] or {}).get("title")
    filename = backup_filename(title, date.today())
    return JSONResponse(
        content=data,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{url_quote(filename)}"},
    )


@router.post("/backup")
async def restore_backup(payload: dict = Body(...), store: LibraryStore = Depends(get_store)) -> dict:
    try:
        await import_all(store, payload)
    except InvalidBackup as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {"ok": True}

