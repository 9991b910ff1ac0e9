"""金句：编号分配、构建、多段合并与复制文本。"""

from __future__ import annotations

from reader.models import BookMeta, Quote

ID_WIDTH = 3


def format_id(num: int) -> str:
    """至少 3 位，不足补零：7 → "007"，1234 → "1234"。"""
    return str(num).zfill(ID_WIDTH)


def next_id(quotes: list[Quote], starting_id: int) -> str:
    """下一个金句编号：max(现有最大编号 + 1, 起始编号)。

    非数字编号（手工编辑过的备份）不参与比较。
    """
    numbers = [int(q.id) for q in quotes if q.id.strip().isdigit()]
    if not numbers:
        return format_id(starting_id)
    return format_id(max(max(numbers) + 1, starting_id))


def quote_source(book_title: str, chapter_title: str) -> str:
    return f"《{book_title}》{chapter_title}"


def build_quote(
    quotes: list[Quote],
    starting_id: int,
    book: BookMeta,
    text: str,
    chapter_index: int,
    chapter_title: str,
    author: str | None = None,
) -> Quote:
    return Quote(
        id=next_id(quotes, starting_id),
        text=text,
        author=author,
        source=quote_source(book.title, chapter_title),
        tags=list(book.tags),
        chapter_index=chapter_index,
        chapter_title=chapter_title,
    )


def find_quote(quotes: list[Quote], text: str) -> Quote | None:
    return next((q for q in quotes if q.text == text), None)


def remove_quote(quotes: list[Quote], quote_id: str) -> list[Quote]:
    return [q for q in quotes if q.id != quote_id]


def update_quote(quotes: list[Quote], quote_id: str, **changes) -> list[Quote]:
    result: list[Quote] = []
    for q in quotes:
        if q.id == quote_id:
            q = Quote.from_dict({**q.to_dict(), **_camel(changes)})
        result.append(q)
    return result


def merge_selected(paragraphs: list[str], selected: set[str]) -> str:
    """多选合并：按章节内原顺序拼接选中的段落。"""
    return "\n".join(p for p in paragraphs if p in selected)


def format_copy(text: str, book_title: str, chapter_title: str) -> str:
    return f"{text}\n\n——{quote_source(book_title, chapter_title)}"


def export_quotes(quotes: list[Quote]) -> list[dict]:
    """导出金句列表（只保留对外有意义的字段）。"""
    return [
        {"id": q.id, "text": q.text, "author": q.author, "source": q.source, "tags": q.tags}
        for q in quotes
    ]


def filter_quotes(quotes: list[Quote], chapter_index: int | None = None, id_query: str = "") -> list[Quote]:
    """按章节与编号子串筛选，结果按编号数值升序；非数字编号排在最后。"""
    result = list(quotes)
    if chapter_index is not None:
        result = [q for q in result if q.chapter_index == chapter_index]
    id_query = id_query.strip()
    if id_query:
        result = [q for q in result if id_query in q.id]
    return sorted(result, key=_id_order)


def chapters_with_quotes(quotes: list[Quote]) -> list[int]:
    """有金句的章节索引（升序，去重）。"""
    return sorted({q.chapter_index for q in quotes})


def _camel(changes: dict) -> dict:
    mapping = {"chapter_index": "chapterIndex", "chapter_title": "chapterTitle"}
    return {mapping.get(k, k): v for k, v in changes.items()}


def _id_order(q: Quote) -> tuple[int, int, str]:
    key = q.id.strip()
    return (0, int(key), key) if key.isdigit() else (1, 0, key)
