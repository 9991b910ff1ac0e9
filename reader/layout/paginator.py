"""翻页模式分页：把一章的段落按当前排版参数切成若干页。

流程（对每个段落的剩余文本循环）：
  1. 整段（加段间距）放得下 → 整段放入当前页
  2. 放不下但剩余空间至少一行 → 二分查找能放下的最长前缀，前缀放入当前页，
     翻页，剩余后缀作为续段继续
  3. 不足一行且当前页非空 → 翻页后重试
  4. 当前页为空仍不足一行（段落比整页还高）→ 强制整段独占一页

分页是纯函数：相同的段落、标题、排版参数与测量器总是得到相同的分页结果，
保存下来的页码在重新分页后仍然有效。
"""

from __future__ import annotations

from dataclasses import dataclass

from reader.layout.measure import Measurer, TextStyle

# 预留的安全边距，吸收亚像素测量误差
SAFE_MARGIN = 8.0
# 章节标题：字号倍数、行高、标题下方留白（正文字号倍数）
TITLE_SCALE = 1.25
TITLE_LINE_HEIGHT = 1.4
TITLE_GAP = 1.5


@dataclass(frozen=True)
class LayoutParams:
    font_size: float
    line_height: float          # 行高倍数
    paragraph_spacing: float    # 段间距（字号倍数）
    width: float                # 内容区宽度（像素）
    height: float               # 内容区高度（像素）

    @property
    def body_style(self) -> TextStyle:
        return TextStyle(self.font_size, self.line_height)

    @property
    def title_style(self) -> TextStyle:
        return TextStyle(round(self.font_size * TITLE_SCALE), TITLE_LINE_HEIGHT, bold=True)

    @property
    def gap(self) -> float:
        return self.paragraph_spacing * self.font_size

    @property
    def min_line(self) -> float:
        return self.font_size * self.line_height


@dataclass(frozen=True)
class PageFragment:
    text: str                   # 本页显示的文本（跨页时为片段）
    full_text: str              # 原段落全文（用于金句操作与定位）
    is_continuation: bool = False


@dataclass(frozen=True)
class Page:
    paragraphs: tuple[PageFragment, ...]
    show_title: bool = False


def paginate(
    paragraphs: list[str] | tuple[str, ...],
    layout: LayoutParams,
    measurer: Measurer,
    title: str | None = None,
) -> list[Page]:
    """分页，返回至少一页。"""
    if not paragraphs or layout.height <= 0 or layout.width <= 0:
        return [_whole_page(paragraphs)]

    style = layout.body_style
    width = layout.width
    safe_height = layout.height - SAFE_MARGIN
    gap_px = layout.gap
    min_line = layout.min_line

    def height_of(text: str) -> float:
        return measurer.measure(text, style, width)

    pages: list[Page] = []
    current: list[PageFragment] = []
    used = 0.0

    # 标题只占第一页
    if title:
        used = measurer.measure(title, layout.title_style, width) + layout.font_size * TITLE_GAP

    def flush() -> None:
        nonlocal current, used
        pages.append(Page(paragraphs=tuple(current), show_title=not pages))
        current = []
        used = 0.0

    for full_text in paragraphs:
        remaining = full_text
        first_fragment = True

        while remaining:
            gap = gap_px if current else 0.0
            needed = height_of(remaining) + gap
            space = safe_height - used

            if needed <= space:
                current.append(PageFragment(remaining, full_text, not first_fragment))
                used += needed
                break

            space_for_text = space - gap
            if space_for_text >= min_line:
                split_at = find_split_point(remaining, space_for_text, height_of)
                if split_at > 0:
                    current.append(PageFragment(remaining[:split_at], full_text, not first_fragment))
                    remaining = remaining[split_at:]
                    first_fragment = False
                    flush()
                    continue

            if current:
                # 翻页后用同一段剩余文本重试
                flush()
            else:
                # 段落比整页还高：强制独占一页，避免死循环
                current.append(PageFragment(remaining, full_text, not first_fragment))
                flush()
                break

    if current:
        flush()

    return pages or [_whole_page(paragraphs)]


def find_split_point(text: str, max_height: float, height_of) -> int:
    """二分查找渲染高度不超过 max_height 的最长前缀长度（1..len-1），找不到返回 0。"""
    lo, hi = 1, len(text) - 1
    best = 0
    while lo <= hi:
        mid = (lo + hi) // 2
        if height_of(text[:mid]) <= max_height:
            best = mid
            lo = mid + 1
        else:
            hi = mid - 1
    return best


def _whole_page(paragraphs) -> Page:
    return Page(
        paragraphs=tuple(PageFragment(p, p, False) for p in paragraphs),
        show_title=True,
    )
