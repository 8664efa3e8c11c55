"""Reader engines for plain text, Markdown and Word documents."""

import logging
from dataclasses import dataclass
from pathlib import Path

from readshelf.catalog.store import CatalogStore
from readshelf.core.content_processor import strip_markdown
from readshelf.core.converters.text_converter import read_text_file
from readshelf.core.converters.word_converter import WordConverter
from readshelf.models.book import DocumentFormat
from readshelf.models.reader import BookChapter, ReaderConfig
from readshelf.reader.engine import ReaderEngine, ReaderError
from readshelf.reader.pagination import detect_chapters, paginate_text

log = logging.getLogger(__name__)


@dataclass
class LoadedText:
    text: str
    pages: list[str]
    chapters: list[BookChapter]


class TextReaderEngine(ReaderEngine):
    """Paginates raw text by the configured page capacity.

    Also serves Markdown (pages keep the raw Markdown as markup) and acts as
    the fallback for formats without a dedicated engine.
    """

    def __init__(self, store: CatalogStore | None = None, config: ReaderConfig | None = None):
        super().__init__(store, config)
        self._text = ""
        self._pages: list[str] = []

    @property
    def is_markdown(self) -> bool:
        return self.book is not None and self.book.format == DocumentFormat.MARKDOWN

    def _read_source(self, path: Path) -> str:
        return read_text_file(path)

    def _load(self, path: Path) -> LoadedText:
        text = self._read_source(path)
        pages, chapters = self._layout(text)
        return LoadedText(text=text, pages=pages, chapters=chapters)

    def _install(self, loaded: LoadedText) -> None:
        self._text = loaded.text
        self._pages = loaded.pages
        self._chapters = loaded.chapters

    def _layout(self, text: str) -> tuple[list[str], list[BookChapter]]:
        layout = paginate_text(text, self.config.chars_per_page())
        return layout.pages, detect_chapters(text, layout, markdown=self.is_markdown)

    def _page_count(self) -> int:
        return len(self._pages)

    def _page_text(self, index: int) -> str:
        page = self._pages[index]
        return strip_markdown(page) if self.is_markdown else page

    def _page_markup(self, index: int) -> str | None:
        return self._pages[index] if self.is_markdown else None

    def _apply_config(self, old: ReaderConfig) -> None:
        if old.chars_per_page() == self.config.chars_per_page():
            return
        progress = self.get_reading_progress()
        self._pages, self._chapters = self._layout(self._text)
        self._reset_pages(int(progress * len(self._pages)))
        log.debug(f"Repaginated to {len(self._pages)} pages")

    def _release(self) -> None:
        self._text = ""
        self._pages = []


class WordReaderEngine(TextReaderEngine):
    """Reads Word documents whose text was not converted at import time."""

    def _read_source(self, path: Path) -> str:
        text = WordConverter().extract_text(path)
        if not text.strip():
            raise ReaderError(f"No readable text in {path.name}")
        return text
