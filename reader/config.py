"""全局配置模型。"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ReadMode(str, Enum):
    SCROLL = "scroll"       # 连续滚动
    PAGE_TURN = "pageTurn"  # 翻页


@dataclass
class Settings:
    """用户阅读设置，持久化时使用 camelCase 字段名。"""
    font_size: float = 18
    line_height: float = 1.8
    paragraph_spacing: float = 1.2
    starting_id: int = 1
    authors: list[str] = field(default_factory=list)
    auto_scroll_speed: float = 1
    read_mode: ReadMode = ReadMode.SCROLL

    def to_dict(self) -> dict:
        return {
            "fontSize": self.font_size,
            "lineHeight": self.line_height,
            "paragraphSpacing": self.paragraph_spacing,
            "startingId": self.starting_id,
            "authors": list(self.authors),
            "autoScrollSpeed": self.auto_scroll_speed,
            "readMode": self.read_mode.value,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "Settings":
        """缺失字段取默认值（等价于 {...DEFAULT, ...saved}）。"""
        data = data or {}
        default = cls()
        return cls(
            font_size=data.get("fontSize", default.font_size),
            line_height=data.get("lineHeight", default.line_height),
            paragraph_spacing=data.get("paragraphSpacing", default.paragraph_spacing),
            starting_id=int(data.get("startingId", default.starting_id)),
            authors=list(data.get("authors") or []),
            auto_scroll_speed=data.get("autoScrollSpeed", default.auto_scroll_speed),
            read_mode=ReadMode(data.get("readMode", default.read_mode.value)),
        )

    def add_author(self, name: str) -> None:
        """去掉首尾空白后追加；空名字或已存在时忽略。"""
        name = name.strip()
        if name and name not in self.authors:
            self.authors.append(name)

    def remove_author(self, name: str) -> None:
        self.authors = [a for a in self.authors if a != name]


@dataclass
class ReaderConfig:
    data_dir: Path = Path("data")

    # 滚动模式：距离顶部/底部多少像素时扩展窗口
    edge_threshold: float = 300.0
    # 判断当前可见章节时预留的顶部高度
    header_allowance: float = 60.0
    # 内存中最多保留多少个已加载章节（窗口内的章节不受限制）
    chapter_cache_limit: int = 12
    # 分页测量字体（为空时使用 Pillow 内置字体）
    font_path: str | None = None

    @classmethod
    def from_env(cls) -> "ReaderConfig":
        config = cls()
        if data_dir := os.environ.get("GQ_DATA_DIR"):
            config.data_dir = Path(data_dir)
        if font_path := os.environ.get("GQ_FONT_PATH"):
            config.font_path = font_path
        return config


# 常用阅读模式说明（用于 CLI 提示）
READ_MODE_LABELS: dict[str, str] = {
    ReadMode.SCROLL.value: "连续滚动",
    ReadMode.PAGE_TURN.value: "翻页",
}
