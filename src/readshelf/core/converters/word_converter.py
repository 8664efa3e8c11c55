"""Word document text extraction using python-docx."""

import logging
import zipfile
from pathlib import Path

import docx
from docx.opc.exceptions import PackageNotFoundError

from readshelf.core.converter_factory import DocumentConverter, ExtractionError
from readshelf.core.text_cleanup import split_author_title, tidy_word_text
from readshelf.models.book import DocumentFormat, ExtractedMetadata

log = logging.getLogger(__name__)

CHARS_PER_PAGE_ESTIMATE = 2000
# Binary .doc files carry heavy formatting overhead per page
BYTES_PER_PAGE_ESTIMATE = 8000


class WordConverter(DocumentConverter):
    """Converter for .docx (and, name-only, legacy .doc) files."""

    def extract_text(self, path: Path) -> str:
        if path.suffix.lower() != ".docx":
            # python-docx reads only the OOXML container
            log.info(f"No text extractor for legacy Word file {path.name}")
            return ""

        try:
            document = docx.Document(str(path))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
            log.warning(f"Word text extraction failed for {path.name}: {e}")
            return ""

        paragraphs = [para.text for para in document.paragraphs]
        return tidy_word_text("\n".join(paragraphs))

    def extract_metadata(self, path: Path, fmt: DocumentFormat) -> ExtractedMetadata:
        if not path.exists():
            raise ExtractionError(f"File not found: {path}")

        title, author = split_author_title(path.stem)

        if path.suffix.lower() == ".docx":
            try:
                properties = docx.Document(str(path)).core_properties
                title = (properties.title or "").strip() or title
                author = (properties.author or "").strip() or author
            except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
                raise ExtractionError(f"Word document appears corrupted: {e}") from e

        text = self.extract_text(path)
        if text:
            page_count = max(1, len(text) // CHARS_PER_PAGE_ESTIMATE)
        else:
            page_count = max(1, path.stat().st_size // BYTES_PER_PAGE_ESTIMATE)

        return ExtractedMetadata(title=title, author=author, page_count=page_count)
