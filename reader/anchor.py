"""锚点定位：按文本内容而不是数字偏移找回阅读位置。

金句文本可能只是段落的一部分（用户复制时截断），也可能是多段合并，
所以匹配采用双向包含：目标包含于段落全文，或段落全文包含于目标。
"""

from __future__ import annotations

from typing import Iterable

from reader.layout.paginator import Page
from reader.models import StoredChapter

# 翻到上一章时的页码占位：重新分页后落到最后一页
LAST_PAGE = -1


def matches(full_text: str, target: str) -> bool:
    if not full_text or not target:
        return False
    return target in full_text or full_text in target


def locate_page(pages: list[Page], target: str) -> int:
    """包含目标文本的第一页，找不到时回到第 0 页。"""
    for i, page in enumerate(pages):
        if any(matches(fragment.full_text, target) for fragment in page.paragraphs):
            return i
    return 0


def locate_paragraph(chapters: Iterable[StoredChapter], target: str) -> tuple[int, int] | None:
    """滚动模式：返回 (章节索引, 段落序号)，找不到返回 None（调用方回到内容顶部）。"""
    for chapter in chapters:
        for i, paragraph in enumerate(chapter.paragraphs):
            if matches(paragraph, target):
                return chapter.index, i
    return None


def reposition_page(pages: list[Page], previous_index: int, first_paragraph: str | None) -> int:
    """重新分页后决定停留的页码。

    优先回到包含原先页首段落的那一页；否则沿用原页码并夹到有效范围。
    """
    if not pages:
        return 0
    if previous_index == LAST_PAGE:
        return len(pages) - 1
    if first_paragraph:
        for i, page in enumerate(pages):
            if any(fragment.full_text == first_paragraph for fragment in page.paragraphs):
                return i
    return max(0, min(previous_index, len(pages) - 1))


def target_from_quote(text: str) -> str:
    """金句跳转时用第一行作为定位目标（多段合并的金句以换行分隔）。"""
    return text.split("\n")[0]
