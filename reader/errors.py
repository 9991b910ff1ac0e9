"""异常分类。

只有 MalformedArchive 会中止整本书的导入；MissingResource / UnsupportedMedia /
EmptyContent 在章节提取内部被吸收，对应条目直接跳过；InvalidBackup 只让本次
备份导入失败。
"""

from __future__ import annotations


class ReaderError(Exception):
    """所有阅读器异常的基类。"""


class MalformedArchive(ReaderError):
    """缺少 container.xml、找不到 OPF 路径或 OPF 文件本身。"""


class MissingResource(ReaderError):
    """章节或目录文件在 ZIP 中不存在。"""

    def __init__(self, path: str) -> None:
        super().__init__(f"archive entry not found: {path}")
        self.path = path


class UnsupportedMedia(ReaderError):
    """spine 条目的 media-type 既不是 HTML 也不是 XML。"""

    def __init__(self, item_id: str, media_type: str) -> None:
        super().__init__(f"unsupported media type for {item_id}: {media_type or '<empty>'}")
        self.item_id = item_id
        self.media_type = media_type


class EmptyContent(ReaderError):
    """三级段落提取全部为空。"""

    def __init__(self, path: str) -> None:
        super().__init__(f"no paragraphs extracted from {path}")
        self.path = path


class InvalidBackup(ReaderError):
    """备份文件缺少 version / exportedAt。"""
