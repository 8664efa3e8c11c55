"""Format detection and per-format document converter selection."""

from abc import ABC, abstractmethod
from pathlib import Path

from readshelf.models.book import SUFFIX_FORMATS, DocumentFormat, ExtractedMetadata


class ExtractionError(Exception):
    """Raised when metadata cannot be extracted from a document."""


class DocumentConverter(ABC):
    """Abstract base class for document converters.

    Converters only read their input; the source file is never modified.
    """

    @abstractmethod
    def extract_text(self, path: Path) -> str:
        """Extract plain text. Returns "" when the content cannot be read."""
        pass

    @abstractmethod
    def extract_metadata(self, path: Path, fmt: DocumentFormat) -> ExtractedMetadata:
        """Extract book metadata.

        Raises:
            ExtractionError: If the document cannot be parsed
        """
        pass


def detect_format(file_name: str | Path) -> DocumentFormat:
    """Map a file name to its document format (case-insensitive suffix)."""
    return DocumentFormat.from_file_name(str(file_name))


class ConverterFactory:
    """Factory for creating the converter that handles a document format."""

    SUPPORTED_FORMATS = SUFFIX_FORMATS

    @classmethod
    def create(cls, fmt: DocumentFormat) -> DocumentConverter:
        """Create appropriate converter for the given format.

        Raises:
            ValueError: If the format has no converter
        """
        if fmt == DocumentFormat.EPUB:
            from readshelf.core.converters.epub_converter import EpubConverter

            return EpubConverter()
        elif fmt == DocumentFormat.PDF:
            from readshelf.core.converters.pdf_converter import PdfConverter

            return PdfConverter()
        elif fmt in (DocumentFormat.DOC, DocumentFormat.DOCX):
            from readshelf.core.converters.word_converter import WordConverter

            return WordConverter()
        elif fmt in (DocumentFormat.TXT, DocumentFormat.MARKDOWN):
            from readshelf.core.converters.text_converter import TextConverter

            return TextConverter()
        elif fmt == DocumentFormat.MOBI:
            from readshelf.core.converters.text_converter import MobiConverter

            return MobiConverter()

        supported = ", ".join(cls.SUPPORTED_FORMATS.keys())
        raise ValueError(f"Unsupported format: {fmt.value}. Supported formats: {supported}")

    @classmethod
    def is_supported(cls, path: Path) -> bool:
        """Check if file format is supported."""
        return detect_format(path.name) != DocumentFormat.UNKNOWN
