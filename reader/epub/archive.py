"""EPUB 容器访问：ZIP 条目读取与包内路径解析。"""

from __future__ import annotations

import zipfile
from pathlib import Path
from urllib.parse import unquote

from reader.errors import MalformedArchive


class ZipArchive:
    """只读 ZIP 包装，缺失条目返回 None 而不是抛 KeyError。"""

    def __init__(self, epub_path: str | Path) -> None:
        self.path = Path(epub_path)
        try:
            self._zf = zipfile.ZipFile(self.path, "r")
        except (zipfile.BadZipFile, FileNotFoundError) as e:
            raise MalformedArchive(f"cannot open archive {self.path.name}: {e}") from e
        self._names = set(self._zf.namelist())

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def read(self, name: str) -> bytes | None:
        if name not in self._names:
            return None
        return self._zf.read(name)

    def read_text(self, name: str) -> str | None:
        data = self.read(name)
        if data is None:
            return None
        return data.decode("utf-8", errors="replace")

    def close(self) -> None:
        self._zf.close()

    def __enter__(self) -> "ZipArchive":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def resolve_path(base: str, relative: str) -> str:
    """将相对引用解析为 ZIP 内绝对路径。

    base 是引用方文件自身的路径（如 OPF 路径），先去掉文件名再拼接。
    以 "/" 开头的引用视为已是根路径，去掉 "/" 原样返回（不做百分号解码）。
    ".." 超出根目录时直接忽略（夹到根目录），不报错。

    >>> resolve_path("OEBPS/content.opf", "../images/x.png")
    'images/x.png'
    """
    if relative.startswith("/"):
        return relative[1:]

    decoded = unquote(relative)
    parts = base.split("/")
    parts.pop()
    for part in decoded.split("/"):
        if part == "..":
            if parts:
                parts.pop()
        elif part != ".":
            parts.append(part)
    return "/".join(parts)


def strip_fragment(href: str) -> str:
    return href.split("#", 1)[0]
