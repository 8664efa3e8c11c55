"""Format-agnostic reader engine.

An engine binds to one catalog record for its whole life:

    engine.initialize(record, initial_position)
    await engine.load_content()      # Loading -> Ready | Errored
    engine.navigate_page(PageDirection.NEXT)
    engine.close()

Pages are 0-based and reading progress is current_page / total_pages, so
page 2 of a 10-page book reads as 0.2.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from PIL import Image

from readshelf.catalog.store import CatalogStore
from readshelf.models.book import CatalogRecord
from readshelf.models.reader import (
    BookChapter,
    PageDirection,
    ReaderConfig,
    ReaderContent,
    ReaderEngineState,
    SearchResult,
)
from readshelf.reader.pagination import find_chapter_index_for_page
from readshelf.reader.search import search_pages

log = logging.getLogger(__name__)


class ReaderError(Exception):
    """Raised for invalid engine use: bad indices, unloaded or closed engines."""


class ReaderEngine(ABC):
    """Base class for per-format reader engines."""

    def __init__(self, store: CatalogStore | None = None, config: ReaderConfig | None = None):
        self.store = store
        self.config = config or ReaderConfig()
        self.book: CatalogRecord | None = None
        self.state = ReaderEngineState()
        self._chapters: list[BookChapter] = []
        self._initial_position = 0
        self._load_started = False
        self._closed = False
        # Guards the hand-over from the loading thread against close and cancel
        self._install_lock = threading.Lock()
        self._cover: Image.Image | None = None
        self._cover_loaded = False

    # Format-specific hooks

    @abstractmethod
    def _load(self, path: Path) -> Any:
        """Parse the book file into pages and chapters. Runs in a worker thread.

        Must not touch engine state; whatever it returns is handed to _install
        or, if the engine was closed or cancelled meanwhile, to _discard.
        """

    @abstractmethod
    def _install(self, loaded: Any) -> None:
        """Adopt the result of _load as this engine's content."""

    def _discard(self, loaded: Any) -> None:
        """Free a _load result that arrived too late to be used."""

    @abstractmethod
    def _page_count(self) -> int:
        """Number of pages after loading."""

    @abstractmethod
    def _page_text(self, index: int) -> str:
        """Markup-free text of a page."""

    def _page_markup(self, index: int) -> str | None:
        """Markup variant of a page, if the format has one."""
        return None

    def _load_cover(self) -> Image.Image | None:
        """Cover saved at import time."""
        if self.book is None or not self.book.cover_path:
            return None
        try:
            with Image.open(self.book.cover_path) as image:
                image.load()
                return image.copy()
        except (OSError, ValueError) as e:
            log.info(f"Cover for {self.book.title} unavailable: {e}")
            return None

    def _apply_config(self, old: ReaderConfig) -> None:
        """React to a config change. Flowed formats leave layout to presentation."""

    def _release(self) -> None:
        """Free format-specific resources."""

    # Lifecycle

    def initialize(self, book: CatalogRecord, initial_position: int = 0) -> None:
        """Bind the engine to a book. Allowed once per instance."""
        if self._closed:
            raise ReaderError("Reader engine is closed")
        if self.book is not None:
            raise ReaderError("Reader engine is already bound to a book; create a new one")
        self.book = book
        self._initial_position = max(0, initial_position)

    async def load_content(self) -> None:
        """Parse the bound file off the event loop and settle Ready or Errored."""
        book = self._require_book()
        if self._load_started:
            raise ReaderError("Content has already been loaded")
        self._load_started = True

        path = Path(book.file_path)
        if not path.exists():
            self._fail(f"Book file not found: {path}")
            return

        try:
            installed = await asyncio.to_thread(self._load_and_install, path)
        except asyncio.CancelledError:
            self._fail("Loading cancelled")
            raise
        except Exception as e:
            log.warning(f"Failed to load {book.title}: {e}")
            self._fail(f"Failed to load {book.title}: {e}")
            return
        if not installed:
            return

        total = self._page_count()
        if total <= 0:
            self._fail(f"No readable content in {book.title}")
            return

        page = min(self._initial_position, total - 1)
        self.state = ReaderEngineState(
            is_loading=False,
            current_page=page,
            total_pages=total,
            current_chapter=find_chapter_index_for_page(self._chapters, page),
            total_chapters=len(self._chapters),
            reading_progress=self._progress_for(page, total),
        )
        log.debug(f"Loaded {book.title}: {total} pages, {len(self._chapters)} chapters")

    def close(self) -> None:
        """Release held resources. Safe to call more than once."""
        with self._install_lock:
            if self._closed:
                return
            self._closed = True
        if self._cover is not None:
            self._cover.close()
            self._cover = None
        self._release()
        self._chapters = []

    # Navigation

    @property
    def total_pages(self) -> int:
        return self.state.total_pages

    def navigate_page(self, direction: PageDirection) -> int:
        """Turn one page, clamped at both ends. Returns the resulting page index."""
        self._require_ready()
        page = self.state.current_page
        if direction == PageDirection.NEXT and page < self.total_pages - 1:
            page += 1
        elif direction == PageDirection.PREVIOUS and page > 0:
            page -= 1
        self._move_to(page)
        return page

    def go_to_page(self, index: int) -> None:
        self._require_ready()
        if not 0 <= index < self.total_pages:
            raise ReaderError(f"Page {index} is out of range (0-{self.total_pages - 1})")
        self._move_to(index)

    def go_to_chapter(self, index: int) -> None:
        self._require_ready()
        if not 0 <= index < len(self._chapters):
            raise ReaderError(f"Chapter {index} is out of range (0-{len(self._chapters) - 1})")
        self._move_to(self._chapters[index].start_position, chapter=index)

    def has_next_page(self) -> bool:
        self._require_ready()
        return self.state.current_page < self.total_pages - 1

    def get_chapters(self) -> list[BookChapter]:
        self._require_ready()
        return list(self._chapters)

    def get_reading_progress(self) -> float:
        return self._progress_for(self.state.current_page, self.state.total_pages)

    # Content

    def get_current_page_content(self) -> ReaderContent:
        self._require_ready()
        page = self.state.current_page
        return ReaderContent(
            text=self._page_text(page),
            markup=self._page_markup(page),
            page_index=page,
            chapter_index=self.state.current_chapter,
            is_first_page=page == 0,
            is_last_page=page == self.total_pages - 1,
        )

    def get_current_chapter_title(self) -> str:
        self._require_ready()
        index = self.state.current_chapter
        if 0 <= index < len(self._chapters):
            return self._chapters[index].title
        return ""

    def get_current_page_text(self) -> str:
        """Plain text of the current page, for speech."""
        self._require_ready()
        return self._page_text(self.state.current_page)

    def get_current_chapter_text(self) -> str:
        """Plain text of the current chapter, for speech. Cached on the chapter."""
        self._require_ready()
        index = self.state.current_chapter
        if not 0 <= index < len(self._chapters):
            return self._page_text(self.state.current_page)

        chapter = self._chapters[index]
        if not chapter.content:
            start, end = self._chapter_page_range(index)
            texts = (self._page_text(page) for page in range(start, end))
            chapter.content = "\n".join(text for text in texts if text)
        return chapter.content

    def search_text(self, query: str) -> list[SearchResult]:
        """Case-insensitive search across all pages."""
        self._require_ready()
        pages = (self._page_text(page) for page in range(self.total_pages))
        return search_pages(pages, query, self._chapter_for_page)

    def get_book_cover(self) -> Image.Image | None:
        """Best-effort cover image, loaded once. None when there is no cover."""
        self._require_open()
        if not self._cover_loaded:
            self._cover = self._load_cover()
            self._cover_loaded = True
        return self._cover

    # Settings and persistence

    def update_config(self, config: ReaderConfig) -> None:
        self._require_open()
        old, self.config = self.config, config
        if self.state.is_loading or self.state.error:
            return
        self._apply_config(old)

    async def save_reading_progress(self) -> bool:
        """Persist the current position. Failures are logged, never raised."""
        if self.store is None or self.book is None:
            return False
        try:
            await asyncio.to_thread(
                self.store.update_progress,
                self.book.id,
                self.state.current_page,
                self.get_reading_progress(),
            )
        except Exception as e:
            log.warning(f"Could not save reading progress for {self.book.title}: {e}")
            return False
        return True

    # Helpers

    def _move_to(self, page: int, chapter: int | None = None) -> None:
        if chapter is None:
            chapter = find_chapter_index_for_page(self._chapters, page)
        self.state = self.state.model_copy(
            update={
                "current_page": page,
                "current_chapter": chapter,
                "reading_progress": self._progress_for(page, self.total_pages),
            }
        )

    def _reset_pages(self, page: int) -> None:
        """Refresh state after pages or chapters were rebuilt."""
        total = self._page_count()
        page = max(0, min(page, total - 1))
        self.state = self.state.model_copy(
            update={
                "total_pages": total,
                "total_chapters": len(self._chapters),
                "current_page": page,
                "current_chapter": find_chapter_index_for_page(self._chapters, page),
                "reading_progress": self._progress_for(page, total),
            }
        )

    def _chapter_for_page(self, page: int) -> int:
        return find_chapter_index_for_page(self._chapters, page)

    def _chapter_page_range(self, index: int) -> tuple[int, int]:
        start = self._chapters[index].start_position
        if index + 1 < len(self._chapters):
            end = max(start + 1, self._chapters[index + 1].start_position)
        else:
            end = self.total_pages
        return start, min(end, self.total_pages)

    @staticmethod
    def _progress_for(page: int, total: int) -> float:
        return min(1.0, max(0.0, page / max(total, 1)))

    def _load_and_install(self, path: Path) -> bool:
        loaded = self._load(path)
        with self._install_lock:
            if not self._closed and self.state.error is None:
                self._install(loaded)
                return True
        log.debug(f"Discarding content loaded from {path.name}")
        self._discard(loaded)
        return False

    def _fail(self, message: str) -> None:
        with self._install_lock:
            self.state = ReaderEngineState(is_loading=False, error=message)

    def _require_book(self) -> CatalogRecord:
        self._require_open()
        if self.book is None:
            raise ReaderError("Reader engine is not initialized")
        return self.book

    def _require_open(self) -> None:
        if self._closed:
            raise ReaderError("Reader engine is closed")

    def _require_ready(self) -> None:
        self._require_open()
        if self.state.error:
            raise ReaderError(self.state.error)
        if self.state.is_loading:
            raise ReaderError("Content is not loaded yet")
