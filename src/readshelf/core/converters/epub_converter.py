"""EPUB parsing using ebooklib."""

import io
import logging
from pathlib import Path

import ebooklib
from ebooklib import epub
from PIL import Image

from readshelf.core.content_processor import ContentProcessor
from readshelf.core.converter_factory import DocumentConverter, ExtractionError
from readshelf.models.book import DocumentFormat, ExtractedMetadata

log = logging.getLogger(__name__)


def load_epub(path: Path) -> epub.EpubBook:
    """Read an EPUB container.

    Raises:
        ExtractionError: If the file is missing or not a valid EPUB
    """
    if not path.exists():
        raise ExtractionError(f"File not found: {path}")
    try:
        return epub.read_epub(str(path), options={"ignore_ncx": False})
    except Exception as e:  # noqa: BLE001 - ebooklib raises many unrelated types
        raise ExtractionError(f"Invalid EPUB file {path.name}: {e}") from e


def spine_documents(book: epub.EpubBook) -> list[epub.EpubItem]:
    """Content documents in reading order, navigation documents excluded."""
    documents = []
    for idref, _linear in book.spine:
        item = book.get_item_with_id(idref)
        if item is None or item.get_type() != ebooklib.ITEM_DOCUMENT:
            continue
        if isinstance(item, epub.EpubNav):
            continue
        documents.append(item)
    return documents


def get_metadata(book: epub.EpubBook, namespace: str, name: str) -> list:
    """Metadata entries, tolerating namespaces the package never declared."""
    try:
        return book.get_metadata(namespace, name)
    except KeyError:
        return []


def first_metadata(book: epub.EpubBook, name: str) -> str | None:
    """First Dublin Core value for name, or None."""
    values = get_metadata(book, "DC", name)
    if values and values[0][0]:
        return str(values[0][0]).strip() or None
    return None


def find_cover_bytes(book: epub.EpubBook) -> bytes | None:
    """Locate the cover image declared by the package, if any."""
    for item in book.get_items_of_type(ebooklib.ITEM_COVER):
        return item.get_content()

    # EPUB 2: <meta name="cover" content="item-id"/>
    for _value, attrs in get_metadata(book, "OPF", "cover"):
        cover_id = attrs.get("content") if attrs else None
        item = book.get_item_with_id(cover_id) if cover_id else None
        if item is not None:
            return item.get_content()

    for item in book.get_items_of_type(ebooklib.ITEM_IMAGE):
        if "cover" in (item.get_id() or "").lower() or "cover" in item.get_name().lower():
            return item.get_content()
    return None


def decode_image(data: bytes | None) -> Image.Image | None:
    """Decode image bytes, returning None for missing or unreadable data."""
    if not data:
        return None
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
        return image
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        log.info(f"Could not decode cover image: {e}")
        return None


class EpubConverter(DocumentConverter):
    """Converter for EPUB files."""

    def __init__(self) -> None:
        self.processor = ContentProcessor()

    def extract_text(self, path: Path, block_separator: str = "\n\n") -> str:
        try:
            book = load_epub(path)
        except ExtractionError as e:
            log.warning(f"EPUB text extraction failed: {e}")
            return ""

        blocks = []
        for item in spine_documents(book):
            text = self.processor.process(item.get_content(), "text")
            if text:
                blocks.append(text)
        return block_separator.join(blocks)

    def extract_metadata(self, path: Path, fmt: DocumentFormat) -> ExtractedMetadata:
        book = load_epub(path)

        return ExtractedMetadata(
            title=first_metadata(book, "title") or path.stem,
            author=first_metadata(book, "creator") or "",
            page_count=max(1, len(spine_documents(book))),
            cover_image=decode_image(find_cover_bytes(book)),
            language=first_metadata(book, "language"),
            publisher=first_metadata(book, "publisher"),
            identifier=first_metadata(book, "identifier"),
        )
