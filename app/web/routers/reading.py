"""阅读相关 API 路由：章节、分页、定位、设置与进度。"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from app.web.deps import get_measurer, get_store
from reader.anchor import locate_page, locate_paragraph, target_from_quote
from reader.config import Settings
from reader.layout.measure import Measurer
from reader.layout.paginator import LayoutParams, Page, paginate
from reader.models import Progress
from reader.store import LibraryStore

router = APIRouter(prefix="/api", tags=["reading"])


@router.get("/chapters")
async def list_chapters(
    start: int = Query(0, ge=0),
    end: int | None = Query(None, ge=0),
    store: LibraryStore = Depends(get_store),
) -> list[dict]:
    """读取 [start, end] 闭区间内的章节（end 缺省时只取 start 一章）。"""
    end = start if end is None else end
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be less than start")
    chapters = await store.load_chapter_range(start, end)
    return [c.to_dict() for c in chapters]


@router.get("/chapters/locate")
async def locate(text: str = Query(..., min_length=1), store: LibraryStore = Depends(get_store)) -> dict:
    """按文本内容定位段落（双向包含匹配）。"""
    chapters = await store.list_chapters()
    found = locate_paragraph(chapters, target_from_quote(text))
    if found is None:
        raise HTTPException(status_code=404, detail="Text not found")
    chapter_index, paragraph_index = found
    return {"chapterIndex": chapter_index, "paragraphIndex": paragraph_index}


@router.get("/chapters/{index}")
async def get_chapter(index: int, store: LibraryStore = Depends(get_store)) -> dict:
    chapter = await store.load_chapter(index)
    if chapter is None:
        raise HTTPException(status_code=404, detail="Chapter not found")
    return chapter.to_dict()


@router.post("/chapters/{index}/pages")
async def paginate_chapter(
    index: int,
    payload: dict = Body(...),
    store: LibraryStore = Depends(get_store),
    measurer: Measurer = Depends(get_measurer),
) -> dict:
    """按内容区尺寸与排版参数分页；排版参数缺省时取用户设置。

    payload: {width, height, fontSize?, lineHeight?, paragraphSpacing?, targetText?}
    """
    chapter = await store.load_chapter(index)
    if chapter is None:
        raise HTTPException(status_code=404, detail="Chapter not found")

    settings = await store.load_settings() or Settings()
    try:
        layout = LayoutParams(
            font_size=float(payload.get("fontSize", settings.font_size)),
            line_height=float(payload.get("lineHeight", settings.line_height)),
            paragraph_spacing=float(payload.get("paragraphSpacing", settings.paragraph_spacing)),
            width=float(payload["width"]),
            height=float(payload["height"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid layout: {e}") from e

    pages = paginate(chapter.paragraphs, layout, measurer, chapter.title)
    target = payload.get("targetText")
    return {
        "chapterIndex": index,
        "title": chapter.title,
        "pageIndex": locate_page(pages, target_from_quote(target)) if target else 0,
        "pages": [_page_to_dict(p) for p in pages],
    }


@router.get("/settings")
async def get_settings(store: LibraryStore = Depends(get_store)) -> dict:
    settings = await store.load_settings() or Settings()
    return settings.to_dict()


@router.put("/settings")
async def put_settings(payload: dict = Body(...), store: LibraryStore = Depends(get_store)) -> dict:
    current = await store.load_settings() or Settings()
    try:
        settings = Settings.from_dict({**current.to_dict(), **payload})
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await store.save_settings(settings)
    return settings.to_dict()


@router.get("/progress")
async def get_progress(store: LibraryStore = Depends(get_store)) -> dict:
    return (await store.load_progress()).to_dict()


@router.put("/progress")
async def put_progress(payload: dict = Body(...), store: LibraryStore = Depends(get_store)) -> dict:
    progress = Progress.from_dict(payload)
    await store.save_progress(progress)
    return progress.to_dict()


def _page_to_dict(page: Page) -> dict:
    return {
        "showTitle": page.show_title,
        "paragraphs": [
            {"text": f.text, "fullText": f.full_text, "isContinuation": f.is_continuation}
            for f in page.paragraphs
        ],
    }
