"""滚动模式的章节窗口：只在内存中保留一段连续章节，随滚动向两端扩展。

- 接近底部 → end + 1（不超过最后一章）
- 接近顶部 → start - 1（不低于 0）。在当前位置上方插入内容会把可视内容往下推，
  调用方需要在插入渲染完成后把滚动位置加上新旧总高度之差；同一时间只允许
  一个前插在进行中
- 跳转章节 → 窗口重置为 {target, target}，窗口外已加载的章节留在缓存里，
  超出缓存上限时按离窗口由远到近淘汰

每次 load() 都会签发新的 generation；请求完成时 generation 已经不是最新的，
结果直接丢弃，不写入章节表。
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Mapping

from loguru import logger

from reader.models import StoredChapter
from reader.store import ChapterSource


@dataclass
class LoadedWindow:
    start: int
    end: int

    def __contains__(self, index: int) -> bool:
        return self.start <= index <= self.end

    def indices(self) -> range:
        return range(self.start, self.end + 1)

    def distance(self, index: int) -> int:
        if index < self.start:
            return self.start - index
        if index > self.end:
            return index - self.end
        return 0


@dataclass(frozen=True)
class PrependTicket:
    """一次前插的凭证：记录插入前的内容总高度。"""
    old_height: float


@dataclass
class ScrollSignal:
    grew_end: bool = False
    prepend: PrependTicket | None = None


class ChapterWindow:
    def __init__(
        self,
        chapter_count: int,
        source: ChapterSource,
        start_index: int = 0,
        cache_limit: int = 12,
        edge_threshold: float = 300.0,
        header_allowance: float = 60.0,
    ) -> None:
        if chapter_count <= 0:
            raise ValueError("chapter_count must be positive")
        self.chapter_count = chapter_count
        self.source = source
        self.cache_limit = cache_limit
        self.edge_threshold = edge_threshold
        self.header_allowance = header_allowance

        index = self._clamp(start_index)
        self.window = LoadedWindow(index, index)
        self.loaded: dict[int, StoredChapter] = {}
        self._generation = 0
        self._prepend: PrependTicket | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def prepend_pending(self) -> bool:
        return self._prepend is not None

    # ── 边缘扩展 ────────────────────────────────────────────────────────────

    def near_bottom(self) -> bool:
        """向下扩展一章，已到最后一章时返回 False。"""
        if self.window.end >= self.chapter_count - 1:
            return False
        self.window.end += 1
        logger.debug("window  end -> {}", self.window.end)
        return True

    def begin_prepend(self, total_height: float) -> PrependTicket | None:
        """向上扩展一章。已在第一章或已有前插未完成时返回 None。"""
        if self._prepend is not None or self.window.start <= 0:
            return None
        self.window.start -= 1
        self._prepend = PrependTicket(old_height=total_height)
        logger.debug("window  start -> {}", self.window.start)
        return self._prepend

    def finish_prepend(self, ticket: PrependTicket, new_height: float, scroll_top: float) -> float:
        """前插渲染完成后调用，返回修正后的滚动位置并释放前插锁。

        凭证已失效（期间发生过跳转）时不做修正。
        """
        if ticket is not self._prepend:
            logger.debug("stale prepend ticket ignored")
            return scroll_top
        self._prepend = None
        return scroll_top + (new_height - ticket.old_height)

    def on_scroll(self, scroll_top: float, client_height: float, scroll_height: float) -> ScrollSignal:
        """根据滚动位置触发边缘扩展。"""
        signal = ScrollSignal()
        if scroll_top + client_height >= scroll_height - self.edge_threshold:
            signal.grew_end = self.near_bottom()
        if scroll_top < self.edge_threshold:
            signal.prepend = self.begin_prepend(scroll_height)
        return signal

    # ── 跳转与加载 ──────────────────────────────────────────────────────────

    def jump_to(self, index: int) -> None:
        index = self._clamp(index)
        self.window = LoadedWindow(index, index)
        self._generation += 1
        self._prepend = None
        logger.debug("window  jump -> {} gen={}", index, self._generation)

    async def load(self) -> list[int]:
        """加载窗口内尚未加载的章节，返回本次写入的索引。

        各章节并发读取，完成后按索引合并；请求过期时整体丢弃。
        """
        self._generation += 1
        generation = self._generation
        missing = [i for i in self.window.indices() if i not in self.loaded]
        if not missing:
            return []

        results = await asyncio.gather(*(self.source.load_chapter(i) for i in missing))
        if generation != self._generation:
            logger.debug("discard stale load  gen={} latest={}", generation, self._generation)
            return []

        applied: list[int] = []
        for chapter in results:
            if chapter is None:
                continue
            self.loaded[chapter.index] = chapter
            applied.append(chapter.index)
        self._evict()
        return applied

    def chapters(self) -> list[StoredChapter]:
        """窗口内已加载的章节（按索引顺序），即滚动模式需要渲染的内容。"""
        return [self.loaded[i] for i in self.window.indices() if i in self.loaded]

    def visible_chapter(self, bottoms: Mapping[int, float], viewport_top: float) -> int:
        """第一个底边位于视口顶部（加标题栏余量）之下的章节。

        bottoms: 章节索引 → 章节区块底边的纵坐标（与 viewport_top 同一坐标系）。
        """
        for i in self.window.indices():
            bottom = bottoms.get(i)
            if bottom is not None and bottom > viewport_top + self.header_allowance:
                return i
        return self.window.start

    # ── 内部工具函数 ────────────────────────────────────────────────────────

    def _clamp(self, index: int) -> int:
        return max(0, min(index, self.chapter_count - 1))

    def _evict(self) -> None:
        if len(self.loaded) <= self.cache_limit:
            return
        outside = sorted(
            (i for i in self.loaded if i not in self.window),
            key=self.window.distance,
            reverse=True,
        )
        for index in outside:
            if len(self.loaded) <= self.cache_limit:
                break
            del self.loaded[index]
            logger.debug("evict chapter {}", index)
