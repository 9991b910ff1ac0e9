"""EPUB 解析：读取 container / OPF / 目录，按 spine 顺序返回章节列表。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from bs4 import BeautifulSoup
from loguru import logger
from lxml import etree

from reader.epub.archive import ZipArchive, resolve_path, strip_fragment
from reader.epub.extractor import ProgressCallback, extract_chapters
from reader.errors import MalformedArchive
from reader.models import Chapter

CONTAINER_PATH = "META-INF/container.xml"
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"
DC_NS = "http://purl.org/dc/elements/1.1/"


@dataclass
class ManifestItem:
    id: str
    href: str          # 相对于 OPF 文件的路径
    media_type: str


@dataclass
class PackageDocument:
    title: str
    opf_path: str      # OPF 在 ZIP 内的路径，用于解析相对 href
    # id -> item，按文档顺序插入；同一 id 重复声明时后者覆盖前者
    manifest: dict[str, ManifestItem] = field(default_factory=dict)
    spine: list[str] = field(default_factory=list)


@dataclass
class ParsedBook:
    title: str
    chapters: list[Chapter]


def parse(epub_path: str | Path, on_progress: ProgressCallback | None = None) -> ParsedBook:
    """解析 EPUB 文件，返回书名与章节列表。

    结构性错误（缺 container.xml / OPF）抛 MalformedArchive；单个章节缺失、
    类型不支持或内容为空时跳过该章节，继续解析。
    """
    with ZipArchive(epub_path) as archive:
        # 1. container.xml → OPF
        package = read_package(archive)
        logger.info(
            "package  title={} manifest={} spine={}",
            package.title, len(package.manifest), len(package.spine),
        )

        # 2. 目录（章节标题的首选来源）
        toc_map = build_toc_map(archive, package)
        logger.debug("toc  entries={}", len(toc_map))

        # 3. 按 spine 顺序提取章节
        chapters = extract_chapters(archive, package, toc_map, on_progress)

    logger.info("parsed  {} chapters={}", package.title, len(chapters))
    return ParsedBook(title=package.title, chapters=chapters)


def read_package(archive: ZipArchive) -> PackageDocument:
    container_xml = archive.read(CONTAINER_PATH)
    if container_xml is None:
        raise MalformedArchive("Invalid EPUB: missing container.xml")
    opf_path = _find_opf_path(container_xml)

    opf_content = archive.read(opf_path)
    if opf_content is None:
        raise MalformedArchive(f"Invalid EPUB: missing OPF file {opf_path}")
    return _parse_opf(opf_content, opf_path)


def build_toc_map(archive: ZipArchive, package: PackageDocument) -> dict[str, str]:
    """构建 href（去掉 #fragment）→ 标题 映射。

    优先 EPUB2 的 toc.ncx；只有 NCX 缺失或没有产出任何条目时才回退到
    EPUB3 的 nav 文档。同一 href 出现多次时后出现的覆盖先出现的。
    """
    toc_map: dict[str, str] = {}

    ncx_item = next(
        (item for item in package.manifest.values() if item.media_type == NCX_MEDIA_TYPE),
        None,
    )
    if ncx_item is not None:
        ncx_path = resolve_path(package.opf_path, ncx_item.href)
        content = archive.read(ncx_path)
        if content is None:
            logger.warning("toc.ncx missing: {}", ncx_path)
        else:
            _parse_ncx(content, toc_map)

    if toc_map:
        return toc_map

    nav_item = next(
        (item for item in package.manifest.values()
         if "nav" in item.href and "html" in item.media_type),
        None,
    )
    if nav_item is not None:
        nav_path = resolve_path(package.opf_path, nav_item.href)
        content = archive.read(nav_path)
        if content is None:
            logger.warning("nav document missing: {}", nav_path)
        else:
            _parse_nav(content, toc_map)

    return toc_map


# ── 内部工具函数 ────────────────────────────────────────────────────────────


def _parse_xml(content: bytes, what: str) -> etree._Element:
    try:
        return etree.fromstring(content)
    except etree.XMLSyntaxError as e:
        raise MalformedArchive(f"Invalid EPUB: cannot parse {what}: {e}") from e


def _find_opf_path(container_xml: bytes) -> str:
    root = _parse_xml(container_xml, "container.xml")
    # 不限定命名空间：部分制作工具会漏写 container 命名空间
    rootfile = next(root.iter("{*}rootfile"), None)
    opf_path = rootfile.get("full-path", "") if rootfile is not None else ""
    if not opf_path:
        raise MalformedArchive("Invalid EPUB: cannot find OPF path")
    return opf_path


def _parse_opf(opf_content: bytes, opf_path: str) -> PackageDocument:
    root = _parse_xml(opf_content, opf_path)

    # 元数据：首个 dc:title；没有 dc:title 时取首个非空的 <title>
    title = "Unknown"
    dc_title = root.find(f".//{{{DC_NS}}}title")
    if dc_title is not None:
        title = (dc_title.text or "").strip() or title
    else:
        for el in root.iter("{*}title"):
            text = "".join(el.itertext()).strip()
            if text:
                title = text
                break

    package = PackageDocument(title=title, opf_path=opf_path)

    # manifest
    for item in root.iterfind(".//{*}manifest/{*}item"):
        item_id = item.get("id", "")
        package.manifest[item_id] = ManifestItem(
            id=item_id,
            href=item.get("href", ""),
            media_type=item.get("media-type", ""),
        )

    # spine
    for itemref in root.iterfind(".//{*}spine/{*}itemref"):
        idref = itemref.get("idref", "")
        if idref:
            package.spine.append(idref)

    return package


def _parse_ncx(content: bytes, toc_map: dict[str, str]) -> None:
    try:
        root = etree.fromstring(content)
    except etree.XMLSyntaxError as e:
        logger.warning("toc.ncx unparsable: {}", e)
        return

    for nav_point in root.iter("{*}navPoint"):
        label_el = next(nav_point.iter("{*}text"), None)
        content_el = next(nav_point.iter("{*}content"), None)
        if label_el is None or content_el is None:
            continue
        label = "".join(label_el.itertext()).strip()
        href = strip_fragment(content_el.get("src", ""))
        if label and href:
            toc_map[href] = label


def _parse_nav(content: bytes, toc_map: dict[str, str]) -> None:
    soup = BeautifulSoup(content, "lxml")
    for a in soup.find_all("a"):
        if not _in_toc_landmark(a):
            continue
        href = strip_fragment(a.get("href", ""))
        label = a.get_text().strip()
        if href and label:
            toc_map[href] = label


def _in_toc_landmark(tag) -> bool:
    for parent in tag.parents:
        if parent.name == "nav" or parent.get("epub:type") == "toc":
            return True
    return False
