"""文本测量：给定样式与宽度，返回文本渲染后的高度。

分页引擎只依赖 Measurer 接口。生产环境使用 PillowMeasurer（真实字体字宽），
测试使用 FixedWidthMeasurer（全角 1em、半角 0.5em 的确定性模型）。

两者都按 `white-space: pre-wrap; word-break: break-word` 的规则折行：
换行符强制断行，其余按字符贪心折行。
"""

from __future__ import annotations

import unicodedata
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


@dataclass(frozen=True)
class TextStyle:
    font_size: float
    line_height: float   # 行高倍数
    bold: bool = False

    @property
    def line_px(self) -> float:
        return self.font_size * self.line_height


class Measurer(ABC):
    """文本测量基类，子类实现 char_width()。"""

    @abstractmethod
    def char_width(self, char: str, style: TextStyle) -> float:
        """单个字符的渲染宽度（像素）。"""

    def measure(self, text: str, style: TextStyle, width: float) -> float:
        """文本在给定宽度内折行后的总高度。空文本高度为 0。"""
        if not text:
            return 0.0
        return self.count_lines(text, style, width) * style.line_px

    def count_lines(self, text: str, style: TextStyle, width: float) -> int:
        lines = 0
        for segment in text.split("\n"):
            lines += 1
            used = 0.0
            for char in segment:
                w = self.char_width(char, style)
                if used > 0 and used + w > width:
                    lines += 1
                    used = 0.0
                used += w
        return lines


class FixedWidthMeasurer(Measurer):
    """确定性合成模型：东亚宽字符 1em，其余字符 narrow_ratio em。"""

    def __init__(self, narrow_ratio: float = 0.5) -> None:
        self.narrow_ratio = narrow_ratio

    def char_width(self, char: str, style: TextStyle) -> float:
        if unicodedata.east_asian_width(char) in ("W", "F"):
            return style.font_size
        return style.font_size * self.narrow_ratio


class PillowMeasurer(Measurer):
    """基于 Pillow 字体度量的测量器。

    font_path 为空时使用 Pillow 内置默认字体；bold_font_path 为空时粗体沿用常规字体。
    """

    def __init__(self, font_path: str | Path | None = None, bold_font_path: str | Path | None = None) -> None:
        self.font_path = str(font_path) if font_path else None
        self.bold_font_path = str(bold_font_path) if bold_font_path else self.font_path

    def char_width(self, char: str, style: TextStyle) -> float:
        path = self.bold_font_path if style.bold else self.font_path
        return _glyph_width(path, style.font_size, char)


@lru_cache(maxsize=16)
def _load_font(path: str | None, size: float):
    from PIL import ImageFont

    if path:
        return ImageFont.truetype(path, size)
    return ImageFont.load_default(size)


@lru_cache(maxsize=65536)
def _glyph_width(path: str | None, size: float, char: str) -> float:
    return float(_load_font(path, size).getlength(char))
