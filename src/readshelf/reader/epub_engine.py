"""EPUB reader engine: one page per spine document."""

import logging
import posixpath
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote

from PIL import Image

from readshelf.catalog.store import CatalogStore
from readshelf.core.content_processor import ContentProcessor
from readshelf.core.converters.epub_converter import (
    decode_image,
    find_cover_bytes,
    load_epub,
    spine_documents,
)
from readshelf.models.reader import BookChapter, ReaderConfig
from readshelf.reader.engine import ReaderEngine

log = logging.getLogger(__name__)


@dataclass
class LoadedEpub:
    documents: list[bytes]
    chapters: list[BookChapter]
    cover_bytes: bytes | None


class EpubReaderEngine(ReaderEngine):
    """Serves spine documents as pages, with chapters from the EPUB table of contents."""

    def __init__(self, store: CatalogStore | None = None, config: ReaderConfig | None = None):
        super().__init__(store, config)
        self.processor = ContentProcessor()
        self._documents: list[bytes] = []
        self._text_cache: dict[int, str] = {}
        self._cover_bytes: bytes | None = None

    def _load(self, path: Path) -> LoadedEpub:
        book = load_epub(path)
        items = spine_documents(book)
        documents = [item.get_content() for item in items]
        page_names = [item.get_name() for item in items]

        chapters = self._parse_toc_recursive(book.toc, page_names)
        # Entries are kept in reading order so page lookups can bisect
        chapters.sort(key=lambda chapter: chapter.start_position)
        for i, chapter in enumerate(chapters):
            chapter.index = i

        return LoadedEpub(
            documents=documents,
            chapters=chapters or self._chapters_from_pages(documents),
            cover_bytes=find_cover_bytes(book),
        )

    def _install(self, loaded: LoadedEpub) -> None:
        self._documents = loaded.documents
        self._chapters = loaded.chapters
        self._cover_bytes = loaded.cover_bytes

    def _parse_toc_recursive(self, toc_items: list, page_names: list[str]) -> list[BookChapter]:
        """Map TOC entries to spine pages; entries outside the spine are dropped."""
        chapters = []
        for item in toc_items:
            if isinstance(item, tuple):
                # Section with children: (Section, [children])
                section, children = item
                sub_chapters = self._parse_toc_recursive(children, page_names)
                page = page_for_href(getattr(section, "href", None), page_names)
                if page is None and sub_chapters:
                    page = sub_chapters[0].start_position
                title = getattr(section, "title", None) or "Untitled"
            else:
                sub_chapters = []
                href = getattr(item, "href", None) or getattr(item, "file_name", None)
                page = page_for_href(href, page_names)
                title = getattr(item, "title", None) or "Untitled"

            if page is None:
                continue
            chapters.append(
                BookChapter(
                    title=title,
                    index=len(chapters),
                    start_position=page,
                    sub_chapters=sub_chapters,
                )
            )
        return chapters

    def _chapters_from_pages(self, documents: list[bytes]) -> list[BookChapter]:
        """One chapter per spine document, titled by its first heading."""
        chapters = []
        for i, content in enumerate(documents):
            text = self.processor.process(content, "text")
            title = self._first_heading(text) or f"Chapter {i + 1}"
            chapters.append(BookChapter(title=title, index=i, start_position=i))
        return chapters

    @staticmethod
    def _first_heading(text: str) -> str | None:
        for line in text.splitlines():
            if line.strip():
                return line.strip()[:80]
        return None

    def _page_count(self) -> int:
        return len(self._documents)

    def _page_text(self, index: int) -> str:
        if index not in self._text_cache:
            self._text_cache[index] = self.processor.process(self._documents[index], "text")
        return self._text_cache[index]

    def _page_markup(self, index: int) -> str | None:
        return self.processor.process(self._documents[index], "html")

    def _load_cover(self) -> Image.Image | None:
        return super()._load_cover() or decode_image(self._cover_bytes)

    def _release(self) -> None:
        self._documents = []
        self._text_cache.clear()
        self._cover_bytes = None


def page_for_href(href: str | None, page_names: list[str]) -> int | None:
    """Spine index a TOC href points at, or None."""
    if not href:
        return None
    target = unquote(href.split("#")[0])
    if target in page_names:
        return page_names.index(target)
    # TOC hrefs are relative to the navigation document
    base = posixpath.basename(target)
    for i, name in enumerate(page_names):
        if posixpath.basename(name) == base:
            return i
    return None
