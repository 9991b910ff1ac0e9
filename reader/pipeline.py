"""导入流水线：解析 EPUB、写入书库、重置阅读进度。

流程：
  1. 解析 EPUB（结构错误直接抛出，单章问题跳过）
  2. 覆盖保存书籍元数据与全部章节
  3. 阅读进度归零
"""

from __future__ import annotations

import time
from pathlib import Path

from loguru import logger

from reader.epub.extractor import ExtractEvent, ProgressCallback
from reader.epub.parser import parse
from reader.models import BookMeta, Progress
from reader.store import LibraryStore


class IngestPipeline:
    def __init__(
        self,
        epub_path: Path,
        store: LibraryStore,
        tags: list[str] | None = None,
        on_progress: ProgressCallback | None = None,
        log_dir: Path | None = Path("log"),
    ) -> None:
        self.epub_path = Path(epub_path)
        self.store = store
        self.tags = list(tags or [])
        self.on_progress = on_progress or (lambda e: None)
        self.log_dir = log_dir
        self.skipped: list[ExtractEvent] = []

    async def run(self) -> BookMeta:
        """执行完整导入，返回书籍元数据。"""
        log_id = None
        if self.log_dir is not None:
            # 持久化到 log/ 目录，自动轮转
            self.log_dir.mkdir(parents=True, exist_ok=True)
            log_id = logger.add(
                self.log_dir / "gq-import.log",
                level="DEBUG", encoding="utf-8",
                format="{time:HH:mm:ss.SSS} | {level:<7} | {message}",
                rotation="10 MB", retention=10,
            )

        try:
            logger.info("=== 开始导入 {} ===", self.epub_path.name)
            start = time.monotonic()

            parsed = parse(self.epub_path, self._handle_event)
            if not parsed.chapters:
                logger.warning("no chapters extracted from {}", self.epub_path.name)

            meta = await self.store.save_book(parsed.title, parsed.chapters, self.tags)
            await self.store.save_progress(Progress(chapter_index=0, scroll_top=0, page_index=0))

            logger.info(
                "=== 导入完成  章节={} 跳过={} 耗时={:.1f}s ===",
                meta.chapter_count, len(self.skipped), time.monotonic() - start,
            )
            return meta
        except Exception as e:
            logger.error("import failed  {}  {}", self.epub_path.name, e)
            raise
        finally:
            if log_id is not None:
                logger.remove(log_id)

    def _handle_event(self, event: ExtractEvent) -> None:
        if event.status == "skipped":
            self.skipped.append(event)
        self.on_progress(event)
