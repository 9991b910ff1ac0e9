"""从 XHTML 章节中提取段落文本与章节标题。

段落提取按三级回退，取第一个有产出的层级：
1. 所有 <p> 的去空白文本
2. 所有叶子 <div>（不含嵌套 div）的去空白文本
3. <body> 全文按连续换行拆分后的非空行

标题优先取目录映射（原始 href，再试百分号解码后的 href），其次取文档中第一个
非空的 h1-h4，最后按已接受章节数合成 "Chapter N"。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable
from urllib.parse import unquote

from bs4 import BeautifulSoup
from loguru import logger

from reader.epub.archive import ZipArchive, resolve_path
from reader.errors import EmptyContent, MissingResource, ReaderError, UnsupportedMedia
from reader.models import Chapter

if TYPE_CHECKING:
    from reader.epub.parser import ManifestItem, PackageDocument

HEADING_TAGS = ["h1", "h2", "h3", "h4"]

_NEWLINES_RE = re.compile(r"\n+")


@dataclass
class ExtractEvent:
    """单个 spine 条目的处理结果，供 CLI / Web UI 展示导入进度。"""
    spine_index: int
    spine_total: int
    href: str
    status: str  # "extracted" | "skipped"
    message: str = ""


ProgressCallback = Callable[[ExtractEvent], None]


def extract_chapters(
    archive: ZipArchive,
    package: "PackageDocument",
    toc_map: dict[str, str],
    on_progress: ProgressCallback | None = None,
) -> list[Chapter]:
    """按 spine 顺序逐个提取章节，跳过无法使用的条目。

    串行处理：合成标题的序号依赖已接受的章节数。
    """
    notify = on_progress or (lambda e: None)
    chapters: list[Chapter] = []
    total = len(package.spine)

    for idx, item_id in enumerate(package.spine):
        item = package.manifest.get(item_id)
        if item is None:
            logger.debug("skip   [{}/{}] {} not in manifest", idx + 1, total, item_id)
            notify(ExtractEvent(idx, total, item_id, "skipped", "not in manifest"))
            continue

        try:
            chapter = _extract_chapter(archive, package.opf_path, item, toc_map, len(chapters))
        except ReaderError as e:
            logger.debug("skip   [{}/{}] {}  {}", idx + 1, total, item.href, e)
            notify(ExtractEvent(idx, total, item.href, "skipped", str(e)))
            continue

        chapters.append(chapter)
        logger.debug(
            "chapter [{}/{}] {}  paragraphs={} words={}",
            idx + 1, total, chapter.title, len(chapter.paragraphs), chapter.word_count,
        )
        notify(ExtractEvent(idx, total, item.href, "extracted", chapter.title))

    return chapters


def extract_paragraphs(soup: BeautifulSoup) -> list[str]:
    """三级回退提取段落。"""
    paragraphs = _texts(soup.find_all("p"))
    if paragraphs:
        return paragraphs

    # 回退：只取叶子 div，避免外层容器把整章重复一遍
    paragraphs = _texts(div for div in soup.find_all("div") if div.find("div") is None)
    if paragraphs:
        return paragraphs

    # 回退：按换行拆分 body 全文
    if soup.body is None:
        return []
    text = soup.body.get_text().strip()
    return [line.strip() for line in _NEWLINES_RE.split(text) if line.strip()]


def find_heading(soup: BeautifulSoup) -> str:
    for tag in soup.find_all(HEADING_TAGS):
        text = tag.get_text().strip()
        if text:
            return text
    return ""


# ── 内部工具函数 ────────────────────────────────────────────────────────────


def _extract_chapter(
    archive: ZipArchive,
    opf_path: str,
    item: "ManifestItem",
    toc_map: dict[str, str],
    accepted: int,
) -> Chapter:
    if "html" not in item.media_type and "xml" not in item.media_type:
        raise UnsupportedMedia(item.id, item.media_type)

    chapter_path = resolve_path(opf_path, item.href)
    content = archive.read(chapter_path)
    if content is None:
        raise MissingResource(chapter_path)

    soup = BeautifulSoup(content, "lxml")
    paragraphs = extract_paragraphs(soup)
    if not paragraphs:
        raise EmptyContent(chapter_path)

    title = (
        toc_map.get(item.href)
        or toc_map.get(unquote(item.href))
        or find_heading(soup)
        or f"Chapter {accepted + 1}"
    )
    return Chapter.build(title, paragraphs)


def _texts(tags) -> list[str]:
    result: list[str] = []
    for tag in tags:
        text = tag.get_text().strip()
        if text:
            result.append(text)
    return result
