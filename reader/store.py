"""本地书库：以 JSON 文件保存书籍元数据、章节、金句、设置与阅读进度。

目录结构：
  <root>/book_meta.json
  <root>/chapters/<index>.json
  <root>/quotes.json
  <root>/settings.json
  <root>/progress.json

所有写操作先写临时文件再原子替换，并由同一把 asyncio.Lock 串行化。
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger

from reader.config import Settings
from reader.models import BookMeta, Chapter, ChapterMeta, Progress, Quote, StoredChapter


class ChapterSource(ABC):
    """按索引提供章节内容（滚动窗口与翻页会话都只依赖这个接口）。"""

    @abstractmethod
    async def load_chapter(self, index: int) -> StoredChapter | None:
        """读取单章，不存在时返回 None。"""

    async def load_chapter_range(self, start: int, end: int) -> list[StoredChapter]:
        """并发读取 [start, end] 闭区间内的章节，缺失的索引直接略过。"""
        results = await asyncio.gather(*(self.load_chapter(i) for i in range(start, end + 1)))
        return [ch for ch in results if ch is not None]


class LibraryStore(ChapterSource):
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.chapters_dir = self.root / "chapters"
        self._lock = asyncio.Lock()

    # ── 书籍 ────────────────────────────────────────────────────────────────

    async def save_book(self, title: str, chapters: list[Chapter], tags: list[str] | None = None) -> BookMeta:
        """保存整本书：写元数据，清空旧章节后逐章写入。"""
        meta = BookMeta(
            title=title,
            tags=list(tags or []),
            chapter_count=len(chapters),
            chapter_meta=[ChapterMeta(title=c.title, word_count=c.word_count) for c in chapters],
        )
        stored = [
            StoredChapter(index=i, title=c.title, paragraphs=list(c.paragraphs), word_count=c.word_count)
            for i, c in enumerate(chapters)
        ]
        async with self._lock:
            self._write_json(self.root / "book_meta.json", meta.to_dict())
            self._clear_chapters()
            for chapter in stored:
                self._write_json(self._chapter_path(chapter.index), chapter.to_dict())
        logger.info("saved book  {} chapters={}", title, len(chapters))
        return meta

    async def save_book_meta(self, meta: BookMeta) -> None:
        async with self._lock:
            self._write_json(self.root / "book_meta.json", meta.to_dict())

    async def load_book_meta(self) -> BookMeta | None:
        data = self._read_json(self.root / "book_meta.json")
        return BookMeta.from_dict(data) if data else None

    async def update_book_meta(self, **changes) -> BookMeta | None:
        """合并更新元数据字段（如 tags），没有书时返回 None。"""
        async with self._lock:
            meta = await self.load_book_meta()
            if meta is None:
                return None
            for key, value in changes.items():
                if not hasattr(meta, key):
                    raise AttributeError(f"BookMeta has no field {key!r}")
                setattr(meta, key, value)
            self._write_json(self.root / "book_meta.json", meta.to_dict())
        return meta

    async def save_chapters(self, chapters: list[StoredChapter]) -> None:
        async with self._lock:
            for chapter in chapters:
                self._write_json(self._chapter_path(chapter.index), chapter.to_dict())

    async def load_chapter(self, index: int) -> StoredChapter | None:
        data = self._read_json(self._chapter_path(index))
        return StoredChapter.from_dict(data) if data else None

    async def list_chapters(self) -> list[StoredChapter]:
        if not self.chapters_dir.exists():
            return []
        indices = sorted(int(p.stem) for p in self.chapters_dir.glob("*.json") if p.stem.isdigit())
        chapters = await asyncio.gather(*(self.load_chapter(i) for i in indices))
        return [ch for ch in chapters if ch is not None]

    async def clear_book(self) -> None:
        """只清空书籍与章节（重新上传时使用），金句与设置保留。"""
        async with self._lock:
            (self.root / "book_meta.json").unlink(missing_ok=True)
            self._clear_chapters()

    # ── 金句 ────────────────────────────────────────────────────────────────

    async def save_quotes(self, quotes: list[Quote]) -> None:
        async with self._lock:
            self._write_json(self.root / "quotes.json", [q.to_dict() for q in quotes])

    async def load_quotes(self) -> list[Quote]:
        data = self._read_json(self.root / "quotes.json") or []
        return [Quote.from_dict(q) for q in data]

    # ── 设置与进度 ──────────────────────────────────────────────────────────

    async def save_settings(self, settings: Settings) -> None:
        async with self._lock:
            self._write_json(self.root / "settings.json", settings.to_dict())

    async def load_settings(self) -> Settings | None:
        """未保存过设置时返回 None；已保存的设置与默认值合并。"""
        data = self._read_json(self.root / "settings.json")
        return Settings.from_dict(data) if data is not None else None

    async def save_progress(self, progress: Progress) -> None:
        async with self._lock:
            self._write_json(self.root / "progress.json", progress.to_dict())

    async def load_progress(self) -> Progress:
        data = self._read_json(self.root / "progress.json")
        return Progress.from_dict(data) if data else Progress()

    async def clear_all(self) -> None:
        async with self._lock:
            for name in ("book_meta.json", "quotes.json", "settings.json", "progress.json"):
                (self.root / name).unlink(missing_ok=True)
            self._clear_chapters()
        logger.info("cleared library  {}", self.root)

    # ── 内部工具函数 ────────────────────────────────────────────────────────

    def _chapter_path(self, index: int) -> Path:
        return self.chapters_dir / f"{index}.json"

    def _clear_chapters(self) -> None:
        if self.chapters_dir.exists():
            shutil.rmtree(self.chapters_dir)

    def _write_json(self, path: Path, data) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, path)

    def _read_json(self, path: Path):
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))
