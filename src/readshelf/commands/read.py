"""Reading commands: toc, read and search."""

import asyncio

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from readshelf.config import LibraryConfig
from readshelf.core.content_processor import ContentProcessor
from readshelf.models.book import DocumentFormat
from readshelf.models.reader import BookChapter
from readshelf.reader.engine import ReaderEngine, ReaderError
from readshelf.reader.factory import create_engine


def open_engine(record_id: str, config: LibraryConfig) -> ReaderEngine:
    """Create, bind and load an engine for a catalog record.

    Raises:
        ValueError: If no record matches record_id
        ReaderError: If the book cannot be loaded
    """
    store = config.catalog()
    record = store.get(record_id)
    if record is None:
        raise ValueError(f"No book with id {record_id}")

    engine = create_engine(record.format, store=store, config=config.reader)
    engine.initialize(record, record.last_read_page)
    asyncio.run(engine.load_content())
    if engine.state.error:
        engine.close()
        raise ReaderError(engine.state.error)
    return engine


def add_chapter_rows(table: Table, chapters: list[BookChapter], level: int = 0) -> None:
    for chapter in chapters:
        indent = "  " * level
        number = str(chapter.index + 1) if level == 0 else ""
        table.add_row(number, f"{indent}{escape(chapter.title)}", str(chapter.start_position + 1))
        add_chapter_rows(table, chapter.sub_chapters, level + 1)


def execute_toc(record_id: str, config: LibraryConfig, console: Console) -> None:
    """Execute the toc command."""
    engine = open_engine(record_id, config)
    try:
        table = Table(
            title=f"{escape(engine.book.title)} ({engine.total_pages} pages)",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("#", style="dim", width=4)
        table.add_column("Title", style="white")
        table.add_column("Page", justify="right", style="green")
        add_chapter_rows(table, engine.get_chapters())
        console.print(table)
    finally:
        engine.close()


def render_page(engine: ReaderEngine, markdown: bool) -> Markdown | Text:
    """Current page as plain text, or as Markdown when asked and available."""
    content = engine.get_current_page_content()
    if markdown and content.markup:
        if engine.book.format == DocumentFormat.EPUB:
            return Markdown(ContentProcessor().process(content.markup, "markdown"))
        return Markdown(content.markup)
    return Text(content.text)


def execute_read(
    record_id: str,
    page: int | None,
    chapter: int | None,
    markdown: bool,
    config: LibraryConfig,
    console: Console,
) -> None:
    """Execute the read command. Page and chapter numbers are 1-based here."""
    engine = open_engine(record_id, config)
    try:
        if chapter is not None:
            engine.go_to_chapter(chapter - 1)
        elif page is not None:
            engine.go_to_page(page - 1)

        state = engine.state
        header = [
            f"[bold]{escape(engine.book.title)}[/]",
            f"[dim]Chapter:[/] {escape(engine.get_current_chapter_title()) or '-'}",
            f"[dim]Page:[/] {state.current_page + 1}/{state.total_pages} "
            f"({engine.get_reading_progress():.0%})",
        ]
        console.print(Panel("\n".join(header), border_style="blue"))
        console.print(render_page(engine, markdown))

        stats = ContentProcessor().get_stats(engine.get_current_page_text())
        console.print(f"\n[dim]{stats['word_count']:,} words on this page[/]")

        if not asyncio.run(engine.save_reading_progress()):
            console.print("[yellow]Reading position was not saved[/]")
    finally:
        engine.close()


def highlighted_snippet(text: str, start: int, end: int) -> Text:
    snippet = Text(text.replace("\n", " "))
    snippet.stylize("bold yellow", start, end)
    return snippet


def execute_search(record_id: str, query: str, config: LibraryConfig, console: Console) -> None:
    """Execute the search command."""
    engine = open_engine(record_id, config)
    try:
        results = engine.search_text(query)
        if not results:
            console.print(f"[yellow]No matches for {escape(query)!r}[/]")
            return

        chapters = engine.get_chapters()
        table = Table(
            title=f"{len(results)} match(es) for {escape(query)!r}",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Page", justify="right", style="green")
        table.add_column("Chapter", style="dim")
        table.add_column("Context")

        for result in results:
            chapter_title = (
                chapters[result.chapter_index].title
                if 0 <= result.chapter_index < len(chapters)
                else ""
            )
            table.add_row(
                str(result.page_index + 1),
                escape(chapter_title),
                highlighted_snippet(result.text, result.highlight_start, result.highlight_end),
            )

        console.print(table)
    finally:
        engine.close()
