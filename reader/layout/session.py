"""翻页模式会话：当前章节、分页结果、页码与待定位目标。

排版参数变化时调用 repaginate()，新结果整体替换旧分页（不合并），并按
“待定位文本 → 原页首段落 → 原页码夹取”的顺序决定停留的页。
"""

from __future__ import annotations

from loguru import logger

from reader.anchor import LAST_PAGE, locate_page, reposition_page
from reader.layout.measure import Measurer
from reader.layout.paginator import LayoutParams, Page, paginate
from reader.models import Progress, StoredChapter
from reader.store import ChapterSource


class PageTurnSession:
    def __init__(
        self,
        chapter_count: int,
        source: ChapterSource,
        measurer: Measurer,
        chapter_index: int = 0,
        page_index: int = 0,
        target_text: str | None = None,
    ) -> None:
        self.chapter_count = chapter_count
        self.source = source
        self.measurer = measurer
        self.chapter_index = chapter_index
        self.page_index = page_index
        self.pending_target = target_text
        self.chapter: StoredChapter | None = None
        self.layout: LayoutParams | None = None
        self.pages: list[Page] = []
        self.version = 0

    @property
    def current_page(self) -> Page | None:
        if 0 <= self.page_index < len(self.pages):
            return self.pages[self.page_index]
        return None

    async def open_chapter(self, index: int, page_index: int = 0, target_text: str | None = None) -> bool:
        """切换到指定章节；已有排版参数时立即分页。章节不存在返回 False。"""
        chapter = await self.source.load_chapter(index)
        if chapter is None:
            logger.warning("chapter {} not found", index)
            return False
        self.chapter = chapter
        self.chapter_index = index
        self.page_index = page_index
        self.pending_target = target_text
        self.pages = []
        if self.layout is not None:
            self.repaginate(self.layout)
        return True

    async def navigate(self, chapter_index: int, target_text: str) -> bool:
        """跨章跳转并定位到包含 target_text 的页。"""
        return await self.open_chapter(chapter_index, page_index=0, target_text=target_text)

    def repaginate(self, layout: LayoutParams) -> list[Page]:
        self.layout = layout
        if self.chapter is None:
            return []

        anchor = self._first_paragraph()
        pages = paginate(self.chapter.paragraphs, layout, self.measurer, self.chapter.title)
        self.pages = pages
        self.version += 1

        if self.pending_target:
            self.page_index = locate_page(pages, self.pending_target)
            self.pending_target = None
        else:
            self.page_index = reposition_page(pages, self.page_index, anchor)

        logger.debug(
            "paginate  chapter={} pages={} page={} version={}",
            self.chapter_index, len(pages), self.page_index, self.version,
        )
        return pages

    async def next_page(self) -> bool:
        if self.page_index < len(self.pages) - 1:
            self.page_index += 1
            return True
        if self.chapter_index < self.chapter_count - 1:
            return await self.open_chapter(self.chapter_index + 1, page_index=0)
        return False

    async def prev_page(self) -> bool:
        if self.page_index > 0:
            self.page_index -= 1
            return True
        if self.chapter_index > 0:
            return await self.open_chapter(self.chapter_index - 1, page_index=LAST_PAGE)
        return False

    def progress(self) -> Progress:
        return Progress(chapter_index=self.chapter_index, scroll_top=0, page_index=self.page_index)

    def _first_paragraph(self) -> str | None:
        page = self.current_page
        if page is None or not page.paragraphs:
            return None
        return page.paragraphs[0].full_text
