"""PDF reader engine: one page per PDF page, text read on demand."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

import pypdf
from PIL import Image

from readshelf.catalog.store import CatalogStore
from readshelf.core.converters.pdf_converter import open_pdf, render_first_page
from readshelf.models.reader import BookChapter, ReaderConfig
from readshelf.reader.engine import ReaderEngine

log = logging.getLogger(__name__)


@dataclass
class LoadedPdf:
    path: Path
    stream: BinaryIO
    reader: pypdf.PdfReader
    total: int
    chapters: list[BookChapter]


class PdfReaderEngine(ReaderEngine):
    """Reads PDFs kept in their original form (no usable text at import time)."""

    def __init__(self, store: CatalogStore | None = None, config: ReaderConfig | None = None):
        super().__init__(store, config)
        self._path: Path | None = None
        self._stream: BinaryIO | None = None
        self._reader: pypdf.PdfReader | None = None
        self._total = 0
        self._text_cache: dict[int, str] = {}

    def _load(self, path: Path) -> LoadedPdf:
        stream = open(path, "rb")
        try:
            reader = open_pdf(path, stream=stream)
            total = len(reader.pages)
            chapters = self._parse_outline(reader, reader.outline, total)
        except Exception:
            stream.close()
            raise

        chapters.sort(key=lambda chapter: chapter.start_position)
        for i, chapter in enumerate(chapters):
            chapter.index = i
        if not chapters:
            title = self.book.title if self.book else path.stem
            chapters = [BookChapter(title=title, index=0, start_position=0)]
        return LoadedPdf(path=path, stream=stream, reader=reader, total=total, chapters=chapters)

    def _install(self, loaded: LoadedPdf) -> None:
        self._path = loaded.path
        self._stream = loaded.stream
        self._reader = loaded.reader
        self._total = loaded.total
        self._chapters = loaded.chapters

    def _discard(self, loaded: LoadedPdf) -> None:
        loaded.stream.close()

    def _parse_outline(self, reader: pypdf.PdfReader, items: list, total: int) -> list[BookChapter]:
        """Outline entries as a chapter tree. A nested list holds the children of the entry before it."""
        chapters: list[BookChapter] = []
        for item in items:
            if isinstance(item, list):
                if chapters:
                    chapters[-1].sub_chapters = self._parse_outline(reader, item, total)
                continue
            try:
                page = reader.get_destination_page_number(item)
            except Exception as e:  # noqa: BLE001 - skip malformed destinations
                log.debug(f"Skipping outline entry: {e}")
                continue
            if page is None or not 0 <= page < total:
                continue
            chapters.append(
                BookChapter(
                    title=str(item.title or "Untitled"),
                    index=len(chapters),
                    start_position=page,
                )
            )
        return chapters

    def _page_count(self) -> int:
        return self._total

    def _page_text(self, index: int) -> str:
        if index not in self._text_cache:
            try:
                text = self._reader.pages[index].extract_text() or ""
            except Exception as e:  # noqa: BLE001 - a broken page reads as blank
                log.warning(f"Could not extract text from page {index}: {e}")
                text = ""
            self._text_cache[index] = text.strip()
        return self._text_cache[index]

    def _load_cover(self) -> Image.Image | None:
        cover = super()._load_cover()
        if cover is None and self._path is not None:
            cover = render_first_page(self._path)
        return cover

    def _release(self) -> None:
        self._reader = None
        self._text_cache.clear()
        if self._stream is not None:
            self._stream.close()
            self._stream = None
