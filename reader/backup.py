"""整库备份：导出为带版本号的 JSON 信封，导入时先清空再整体写入（不合并）。"""

from __future__ import annotations

from datetime import date, datetime, timezone

from loguru import logger

from reader.config import Settings
from reader.errors import InvalidBackup
from reader.models import BookMeta, Progress, Quote, StoredChapter
from reader.store import LibraryStore

BACKUP_VERSION = 1
DEFAULT_BACKUP_TITLE = "金句拾光"


async def export_all(store: LibraryStore) -> dict:
    meta = await store.load_book_meta()
    chapters = await store.list_chapters()
    quotes = await store.load_quotes()
    settings = await store.load_settings()
    progress = await store.load_progress()

    logger.info("export  chapters={} quotes={}", len(chapters), len(quotes))
    return {
        "version": BACKUP_VERSION,
        "exportedAt": _iso_now(),
        "bookMeta": meta.to_dict() if meta else None,
        "chapters": [c.to_dict() for c in chapters],
        "quotes": [q.to_dict() for q in quotes],
        "settings": settings.to_dict() if settings else None,
        "progress": progress.to_dict(),
    }


async def import_all(store: LibraryStore, data) -> None:
    """校验并导入备份。所有记录先解析成功才会清空现有数据。"""
    if not isinstance(data, dict) or not data.get("version") or not data.get("exportedAt"):
        raise InvalidBackup("无效的备份文件格式")

    try:
        meta = BookMeta.from_dict(data["bookMeta"]) if data.get("bookMeta") else None
        chapters = [StoredChapter.from_dict(c) for c in data.get("chapters") or []]
        quotes = [Quote.from_dict(q) for q in data.get("quotes") or []]
        settings = Settings.from_dict(data["settings"]) if data.get("settings") else None
        progress = Progress.from_dict(data["progress"]) if data.get("progress") else None
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise InvalidBackup(f"备份记录解析失败：{e}") from e

    await store.clear_all()
    if meta is not None:
        await store.save_book_meta(meta)
    if chapters:
        await store.save_chapters(chapters)
    if quotes:
        await store.save_quotes(quotes)
    if settings is not None:
        await store.save_settings(settings)
    if progress is not None:
        await store.save_progress(progress)

    logger.info("import  chapters={} quotes={}", len(chapters), len(quotes))


def backup_filename(title: str | None, day: date) -> str:
    return f"{title or DEFAULT_BACKUP_TITLE}_备份_{day.year}-{day.month}-{day.day}.json"


def _iso_now() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
