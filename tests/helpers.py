"""测试用的 EPUB 构造器与内存章节源。"""

import asyncio
import zipfile
from pathlib import Path

from reader.models import StoredChapter, count_words
from reader.store import ChapterSource

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

XHTML_MEDIA = "application/xhtml+xml"
NCX_MEDIA = "application/x-dtbncx+xml"


def xhtml(body: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">'
        f"<head><title>doc</title></head><body>{body}</body></html>"
    )


def opf(title, manifest, spine, with_dc_title=True):
    """manifest: [(id, href, media_type)]，spine: [idref]。"""
    meta = f"<dc:title>{title}</dc:title>" if with_dc_title and title else ""
    items = "".join(
        f'<item id="{i}" href="{h}" media-type="{m}"/>' for i, h, m in manifest
    )
    refs = "".join(f'<itemref idref="{r}"/>' for r in spine)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<package xmlns="http://www.idpf.org/2007/opf" version="3.0">'
        f'<metadata xmlns:dc="http://purl.org/dc/elements/1.1/">{meta}</metadata>'
        f"<manifest>{items}</manifest><spine>{refs}</spine></package>"
    )


def ncx(entries):
    """entries: [(label, src)]"""
    points = "".join(
        f'<navPoint id="np{n}" playOrder="{n}"><navLabel><text>{label}</text></navLabel>'
        f'<content src="{src}"/></navPoint>'
        for n, (label, src) in enumerate(entries, 1)
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">'
        f"<navMap>{points}</navMap></ncx>"
    )


def nav(entries, extra_links=()):
    """entries: [(label, href)]；extra_links 放在 nav 之外，不应进入目录。"""
    items = "".join(f'<li><a href="{h}">{label}</a></li>' for label, h in entries)
    outside = "".join(f'<p><a href="{h}">{label}</a></p>' for label, h in extra_links)
    return xhtml(f'<nav epub:type="toc"><ol>{items}</ol></nav>{outside}')


def write_epub(path, files, opf_path="OEBPS/content.opf", container=True):
    """files: ZIP 内路径 → 内容。"""
    path = Path(path)
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip")
        if container:
            zf.writestr("META-INF/container.xml", CONTAINER_XML.format(opf_path=opf_path))
        for name, content in files.items():
            zf.writestr(name, content)
    return path


def simple_book(path, title="测试之书", chapters=None):
    """三章 + toc.ncx 的标准书。chapters: [(标题, [段落])]"""
    chapters = chapters or [
        ("第一章", ["春眠不觉晓", "处处闻啼鸟"]),
        ("第二章", ["夜来风雨声"]),
        ("第三章", ["花落知多少", "一段很长的结尾"]),
    ]
    manifest = [("ncx", "toc.ncx", NCX_MEDIA)]
    files = {}
    entries = []
    spine = []
    for n, (chapter_title, paragraphs) in enumerate(chapters, 1):
        href = f"Text/ch{n}.xhtml"
        manifest.append((f"ch{n}", href, XHTML_MEDIA))
        spine.append(f"ch{n}")
        entries.append((chapter_title, href))
        files[f"OEBPS/{href}"] = xhtml("".join(f"<p>{p}</p>" for p in paragraphs))
    files["OEBPS/toc.ncx"] = ncx(entries)
    files["OEBPS/content.opf"] = opf(title, manifest, spine)
    return write_epub(path, files)


def make_chapters(count, paragraphs_per_chapter=3):
    chapters = []
    for i in range(count):
        paragraphs = [f"段落{i:02d}{j:02d}内容" for j in range(paragraphs_per_chapter)]
        chapters.append(StoredChapter(
            index=i,
            title=f"第{i + 1}章",
            paragraphs=paragraphs,
            word_count=count_words(paragraphs),
        ))
    return chapters


class MemorySource(ChapterSource):
    """内存章节源；设置 gate 后所有读取都要等 gate 放行，gates 可按章节单独设置。"""

    def __init__(self, chapters):
        self.chapters = {c.index: c for c in chapters}
        self.requested = []
        self.gate = None
        self.gates = {}

    async def load_chapter(self, index):
        self.requested.append(index)
        gate = self.gates.get(index, self.gate)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        return self.chapters.get(index)
