"""数据模型：章节与持久化记录。

持久化记录（BookMeta / StoredChapter / Quote / Progress）序列化为 camelCase
字段的 JSON，与备份文件格式保持一致。
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

BOOK_ID = "current"

_WS_RE = re.compile(r"\s")


def count_words(paragraphs: list[str] | tuple[str, ...]) -> int:
    """去掉所有空白字符后的字符数（不是分词意义上的词数）。"""
    return len(_WS_RE.sub("", "".join(paragraphs)))


@dataclass(frozen=True)
class Chapter:
    title: str
    paragraphs: tuple[str, ...]
    word_count: int

    @classmethod
    def build(cls, title: str, paragraphs: list[str]) -> "Chapter":
        return cls(title=title, paragraphs=tuple(paragraphs), word_count=count_words(paragraphs))


@dataclass
class ChapterMeta:
    title: str
    word_count: int


@dataclass
class BookMeta:
    title: str
    tags: list[str] = field(default_factory=list)
    chapter_count: int = 0
    chapter_meta: list[ChapterMeta] = field(default_factory=list)
    id: str = BOOK_ID

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "tags": list(self.tags),
            "chapterCount": self.chapter_count,
            "chapterMeta": [{"title": m.title, "wordCount": m.word_count} for m in self.chapter_meta],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BookMeta":
        return cls(
            id=data.get("id", BOOK_ID),
            title=data.get("title", ""),
            tags=list(data.get("tags") or []),
            chapter_count=int(data.get("chapterCount", 0)),
            chapter_meta=[
                ChapterMeta(title=m.get("title", ""), word_count=int(m.get("wordCount", 0)))
                for m in data.get("chapterMeta") or []
            ],
        )


@dataclass
class StoredChapter:
    index: int
    title: str
    paragraphs: list[str]
    word_count: int
    book_id: str = BOOK_ID

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "bookId": self.book_id,
            "title": self.title,
            "paragraphs": list(self.paragraphs),
            "wordCount": self.word_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StoredChapter":
        return cls(
            index=int(data["index"]),
            book_id=data.get("bookId", BOOK_ID),
            title=data.get("title", ""),
            paragraphs=list(data.get("paragraphs") or []),
            word_count=int(data.get("wordCount", 0)),
        )


@dataclass
class Quote:
    id: str
    text: str
    author: str | None
    source: str | None
    tags: list[str] | None
    chapter_index: int
    chapter_title: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "author": self.author,
            "source": self.source,
            "tags": list(self.tags) if self.tags is not None else None,
            "chapterIndex": self.chapter_index,
            "chapterTitle": self.chapter_title,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Quote":
        tags = data.get("tags")
        return cls(
            id=str(data["id"]),
            text=data.get("text", ""),
            author=data.get("author"),
            source=data.get("source"),
            tags=list(tags) if tags is not None else None,
            chapter_index=int(data.get("chapterIndex", 0)),
            chapter_title=data.get("chapterTitle", ""),
        )


@dataclass
class Progress:
    chapter_index: int = 0
    scroll_top: float = 0
    page_index: int | None = 0
    target_text: str | None = None  # 跨章跳转后用于定位的文本

    def to_dict(self) -> dict:
        data: dict = {"chapterIndex": self.chapter_index, "scrollTop": self.scroll_top}
        if self.page_index is not None:
            data["pageIndex"] = self.page_index
        if self.target_text is not None:
            data["targetText"] = self.target_text
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Progress":
        return cls(
            chapter_index=int(data.get("chapterIndex", 0)),
            scroll_top=data.get("scrollTop", 0),
            page_index=data.get("pageIndex"),
            target_text=data.get("targetText"),
        )
