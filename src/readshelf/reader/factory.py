"""Reader engine selection by document format."""

from readshelf.catalog.store import CatalogStore
from readshelf.models.book import DocumentFormat
from readshelf.models.reader import ReaderConfig
from readshelf.reader.engine import ReaderEngine
from readshelf.reader.epub_engine import EpubReaderEngine
from readshelf.reader.pdf_engine import PdfReaderEngine
from readshelf.reader.text_engine import TextReaderEngine, WordReaderEngine

ENGINE_TYPES: dict[DocumentFormat, type[ReaderEngine]] = {
    DocumentFormat.EPUB: EpubReaderEngine,
    DocumentFormat.PDF: PdfReaderEngine,
    DocumentFormat.TXT: TextReaderEngine,
    DocumentFormat.MARKDOWN: TextReaderEngine,
    DocumentFormat.MOBI: TextReaderEngine,
    DocumentFormat.DOC: WordReaderEngine,
    DocumentFormat.DOCX: WordReaderEngine,
}


def create_engine(
    fmt: DocumentFormat,
    store: CatalogStore | None = None,
    config: ReaderConfig | None = None,
) -> ReaderEngine:
    """Create a fresh engine for fmt. Unknown formats get the plain text engine."""
    engine_type = ENGINE_TYPES.get(fmt, TextReaderEngine)
    return engine_type(store=store, config=config)
