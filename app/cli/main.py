"""golden-quote CLI 入口。

命令：
  gq import <epub>          导入 EPUB（覆盖当前书籍）
  gq chapters               列出章节
  gq pages <章节>           翻页模式分页预览
  gq scroll                 滚动模式窗口预览
  gq find <文本>            按文本定位段落
  gq quote <章节> <段落…>   收藏金句
  gq quotes / unquote       查看 / 删除金句
  gq export / restore       整库备份与恢复
  gq settings               查看或修改阅读设置
  gq serve                  启动 Web 服务
"""

from __future__ import annotations

import asyncio
import json
from datetime import date
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from loguru import logger

from reader.anchor import locate_paragraph
from reader.backup import backup_filename, export_all, import_all
from reader.config import READ_MODE_LABELS, ReaderConfig, Settings
from reader.epub.extractor import ExtractEvent
from reader.errors import ReaderError
from reader.layout.measure import FixedWidthMeasurer, Measurer, PillowMeasurer
from reader.layout.paginator import LayoutParams
from reader.layout.session import PageTurnSession
from reader.pipeline import IngestPipeline
from reader.quotes import (
    build_quote,
    chapters_with_quotes,
    filter_quotes,
    find_quote,
    format_copy,
    merge_selected,
    remove_quote,
)
from reader.scroll.window import ChapterWindow
from reader.store import LibraryStore

app = typer.Typer(
    name="gq",
    help="golden-quote: EPUB 阅读与金句摘录工具",
    add_completion=False,
)
console = Console()

# 移除 loguru 默认的 stderr handler，改为通过 Rich Console 输出
# 避免 loguru 直接写 stderr 时破坏 Rich Progress 进度条的渲染
logger.remove()
logger.add(
    lambda msg: console.log(msg, end=""),
    format="<green>{time:HH:mm:ss}</green> | <level>{level:<7}</level> | {message}",
    level="WARNING",
    colorize=True,
)

DataDir = typer.Option(None, "--data-dir", "-d", help="书库目录（默认 ./data）", envvar="GQ_DATA_DIR")


def _store(data_dir: Optional[Path]) -> LibraryStore:
    config = ReaderConfig.from_env()
    return LibraryStore(data_dir or config.data_dir)


def _run(coro):
    """执行协程；业务错误统一转为红色提示并以状态码 1 退出。"""
    try:
        return asyncio.run(coro)
    except ReaderError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command("import")
def import_book(
    epub: Path = typer.Argument(..., help="EPUB 文件路径", exists=True, dir_okay=False),
    tags: List[str] = typer.Option([], "--tag", "-t", help="书籍标签，可重复"),
    data_dir: Optional[Path] = DataDir,
) -> None:
    """导入 EPUB，覆盖当前书籍并重置阅读进度。"""
    store = _store(data_dir)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    ) as progress:
        task = progress.add_task("解析章节", total=None)

        def on_progress(event: ExtractEvent) -> None:
            progress.update(
                task,
                total=event.spine_total,
                completed=event.spine_index + 1,
                description=f"解析章节 [{event.spine_index + 1}/{event.spine_total}] {_short_name(event.href)}",
            )

        pipeline = IngestPipeline(epub, store, tags=tags, on_progress=on_progress, log_dir=store.root / "log")
        meta = _run(pipeline.run())

    console.print(f"\n[green]✓ 导入完成[/green] 《{meta.title}》 共 {meta.chapter_count} 章")
    if pipeline.skipped:
        console.print(f"[yellow]跳过 {len(pipeline.skipped)} 个文档[/yellow]")
        for event in pipeline.skipped:
            console.print(f"  [dim]{event.href}: {event.message}[/dim]")


@app.command()
def chapters(data_dir: Optional[Path] = DataDir) -> None:
    """列出当前书籍的章节。"""
    meta = _run(_store(data_dir).load_book_meta())
    if meta is None:
        console.print("[yellow]尚未导入书籍[/yellow]")
        raise typer.Exit(1)

    table = Table(title=f"《{meta.title}》", show_header=True)
    table.add_column("#", style="cyan", width=5)
    table.add_column("标题", style="white")
    table.add_column("字数", justify="right")
    for i, m in enumerate(meta.chapter_meta):
        table.add_row(str(i), m.title, str(m.word_count))
    console.print(table)


@app.command()
def pages(
    chapter: int = typer.Argument(..., help="章节索引（从 0 开始）"),
    width: float = typer.Option(360, "--width", help="内容区宽度（px）"),
    height: float = typer.Option(640, "--height", help="内容区高度（px）"),
    page: Optional[int] = typer.Option(None, "--page", "-p", help="只显示指定页"),
    target: Optional[str] = typer.Option(None, "--target", help="定位到包含该文本的页"),
    font: Optional[Path] = typer.Option(None, "--font", help="TrueType 字体（默认按等宽字符估算）"),
    data_dir: Optional[Path] = DataDir,
) -> None:
    """按翻页模式分页并打印。"""
    store = _store(data_dir)
    measurer: Measurer = PillowMeasurer(font) if font else FixedWidthMeasurer()

    async def run() -> PageTurnSession | None:
        meta = await store.load_book_meta()
        if meta is None:
            return None
        settings = await store.load_settings() or Settings()
        session = PageTurnSession(meta.chapter_count, store, measurer)
        session.layout = LayoutParams(
            font_size=settings.font_size,
            line_height=settings.line_height,
            paragraph_spacing=settings.paragraph_spacing,
            width=width,
            height=height,
        )
        if not await session.open_chapter(chapter, page_index=page or 0, target_text=target):
            return None
        return session

    session = _run(run())
    if session is None:
        console.print(f"[red]章节 {chapter} 不存在[/red]")
        raise typer.Exit(1)

    numbers = [session.page_index] if page is not None or target else range(len(session.pages))
    for n in numbers:
        p = session.pages[n]
        console.rule(f"第 {n + 1}/{len(session.pages)} 页")
        if p.show_title and session.chapter:
            console.print(f"[bold]{session.chapter.title}[/bold]\n")
        for fragment in p.paragraphs:
            prefix = "" if fragment.is_continuation else "  "
            console.print(prefix + fragment.text, markup=False)


@app.command()
def scroll(
    start: int = typer.Option(0, "--start", "-s", help="起始章节"),
    count: int = typer.Option(3, "--count", "-n", help="向下扩展的章节数"),
    data_dir: Optional[Path] = DataDir,
) -> None:
    """模拟滚动模式：从起始章节开始逐章向下扩展并打印窗口内容。"""
    store = _store(data_dir)
    config = ReaderConfig.from_env()

    async def run() -> ChapterWindow | None:
        meta = await store.load_book_meta()
        if meta is None or meta.chapter_count == 0:
            return None
        window = ChapterWindow(
            meta.chapter_count, store, start_index=start,
            cache_limit=config.chapter_cache_limit,
            edge_threshold=config.edge_threshold,
            header_allowance=config.header_allowance,
        )
        await window.load()
        for _ in range(max(0, count - 1)):
            if not window.near_bottom():
                break
            await window.load()
        return window

    window = _run(run())
    if window is None:
        console.print("[yellow]尚未导入书籍[/yellow]")
        raise typer.Exit(1)

    for ch in window.chapters():
        console.rule(f"[{ch.index}] {ch.title}")
        for para in ch.paragraphs:
            console.print(f"  {para}", markup=False)


@app.command()
def find(
    text: str = typer.Argument(..., help="要查找的文本"),
    data_dir: Optional[Path] = DataDir,
) -> None:
    """按文本定位所在章节与段落。"""
    chapters_ = _run(_store(data_dir).list_chapters())
    found = locate_paragraph(chapters_, text)
    if found is None:
        console.print("[yellow]未找到[/yellow]")
        raise typer.Exit(1)
    chapter_index, paragraph_index = found
    chapter = next(c for c in chapters_ if c.index == chapter_index)
    console.print(f"第 {chapter_index} 章《{chapter.title}》 第 {paragraph_index} 段")
    console.print(f"  [dim]{chapter.paragraphs[paragraph_index]}[/dim]")


@app.command()
def quote(
    chapter: int = typer.Argument(..., help="章节索引"),
    paragraphs: List[int] = typer.Argument(..., help="段落索引，可多选"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="作者"),
    data_dir: Optional[Path] = DataDir,
) -> None:
    """把选中的段落收藏为一条金句（多段按原顺序合并）。"""
    store = _store(data_dir)

    async def run() -> tuple[str, str | None]:
        meta = await store.load_book_meta()
        ch = await store.load_chapter(chapter)
        if meta is None or ch is None:
            return "missing", None
        if any(i < 0 or i >= len(ch.paragraphs) for i in paragraphs):
            return "range", None
        selected = {ch.paragraphs[i] for i in paragraphs}
        text = merge_selected(ch.paragraphs, selected)
        quotes = await store.load_quotes()
        if find_quote(quotes, text) is not None:
            return "exists", None
        settings = await store.load_settings() or Settings()
        q = build_quote(
            quotes, settings.starting_id, meta, text, chapter, ch.title,
            author=author or (settings.authors[0] if settings.authors else None),
        )
        await store.save_quotes([*quotes, q])
        return q.id, format_copy(text, meta.title, ch.title)

    result, copy_text = _run(run())
    if result == "missing":
        console.print(f"[red]章节 {chapter} 不存在[/red]")
        raise typer.Exit(1)
    if result == "range":
        console.print("[red]段落索引超出范围[/red]")
        raise typer.Exit(1)
    if result == "exists":
        console.print("[yellow]已收藏过这段文字[/yellow]")
        return
    console.print(f"[green]✓ 已收藏[/green] #{result}")
    console.print(copy_text)


@app.command()
def quotes(
    chapter: Optional[int] = typer.Option(None, "--chapter", "-c", help="只看该章节的金句"),
    id_query: str = typer.Option("", "--id", help="按编号搜索（子串匹配）"),
    data_dir: Optional[Path] = DataDir,
) -> None:
    """列出金句（按编号排序）。"""
    all_quotes = _run(_store(data_dir).load_quotes())
    if not all_quotes:
        console.print("[yellow]还没有金句[/yellow]")
        return
    items = filter_quotes(all_quotes, chapter_index=chapter, id_query=id_query)
    if not items:
        chapters_ = "、".join(str(i) for i in chapters_with_quotes(all_quotes))
        console.print(f"[yellow]没有符合条件的金句[/yellow] [dim]（有金句的章节：{chapters_}）[/dim]")
        return
    table = Table(title="金句", show_header=True)
    table.add_column("编号", style="cyan", width=6)
    table.add_column("内容", style="white")
    table.add_column("出处", style="dim")
    for q in items:
        table.add_row(q.id, q.text, q.source or "")
    console.print(table)


@app.command()
def unquote(
    quote_id: str = typer.Argument(..., help="金句编号"),
    data_dir: Optional[Path] = DataDir,
) -> None:
    """删除一条金句。"""
    store = _store(data_dir)

    async def run() -> bool:
        items = await store.load_quotes()
        remaining = remove_quote(items, quote_id)
        if len(remaining) == len(items):
            return False
        await store.save_quotes(remaining)
        return True

    if not _run(run()):
        console.print(f"[red]金句 {quote_id} 不存在[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ 已删除[/green] #{quote_id}")


@app.command()
def export(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="输出路径（默认：书名_备份_日期.json）"),
    data_dir: Optional[Path] = DataDir,
) -> None:
    """导出整库备份。"""
    data = _run(export_all(_store(data_dir)))
    if output is None:
        output = Path(backup_filename((data["bookMeta"] or {}).get("title"), date.today()))
    output.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    console.print(f"[green]✓ 备份完成[/green] → {output}")


@app.command()
def restore(
    backup: Path = typer.Argument(..., help="备份文件路径", exists=True, dir_okay=False),
    data_dir: Optional[Path] = DataDir,
) -> None:
    """从备份恢复（先清空现有数据）。"""
    try:
        data = json.loads(backup.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]备份文件不是有效的 JSON：{e}[/red]")
        raise typer.Exit(1)
    _run(import_all(_store(data_dir), data))
    console.print("[green]✓ 恢复完成[/green]")


@app.command()
def settings(
    font_size: Optional[float] = typer.Option(None, "--font-size", help="字号（px）"),
    line_height: Optional[float] = typer.Option(None, "--line-height", help="行高倍数"),
    paragraph_spacing: Optional[float] = typer.Option(None, "--paragraph-spacing", help="段间距（em）"),
    starting_id: Optional[int] = typer.Option(None, "--starting-id", help="金句起始编号"),
    mode: Optional[str] = typer.Option(None, "--mode", help="阅读模式：scroll / pageTurn"),
    add_author: List[str] = typer.Option([], "--add-author", help="添加常用作者，可重复"),
    remove_author: List[str] = typer.Option([], "--remove-author", help="移除常用作者，可重复"),
    data_dir: Optional[Path] = DataDir,
) -> None:
    """查看阅读设置；传入选项时更新并保存。"""
    store = _store(data_dir)
    changes = {
        "fontSize": font_size,
        "lineHeight": line_height,
        "paragraphSpacing": paragraph_spacing,
        "startingId": starting_id,
        "readMode": mode,
    }
    changes = {k: v for k, v in changes.items() if v is not None}

    async def run() -> Settings:
        current = await store.load_settings() or Settings()
        if not (changes or add_author or remove_author):
            return current
        updated = Settings.from_dict({**current.to_dict(), **changes})
        for name in add_author:
            updated.add_author(name)
        for name in remove_author:
            updated.remove_author(name)
        await store.save_settings(updated)
        return updated

    try:
        current = _run(run())
    except ValueError as e:
        console.print(f"[red]无效的设置：{e}[/red]")
        raise typer.Exit(1)

    table = Table(title="阅读设置", show_header=True)
    table.add_column("项目", style="cyan")
    table.add_column("值", style="white")
    for key, value in current.to_dict().items():
        if key == "readMode":
            value = f"{value}（{READ_MODE_LABELS.get(value, value)}）"
        elif key == "authors":
            value = "、".join(value) or "-"
        table.add_row(key, str(value))
    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="监听地址"),
    port: int = typer.Option(8000, "--port", help="监听端口"),
) -> None:
    """启动 Web 服务。"""
    import uvicorn

    uvicorn.run("app.web.app:app", host=host, port=port)


def _short_name(path: str) -> str:
    name = Path(path).name
    return name[:40] + "…" if len(name) > 40 else name
