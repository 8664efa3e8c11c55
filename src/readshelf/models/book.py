"""Data models for imported books and their catalog records."""

import uuid
from datetime import datetime
from enum import Enum

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field


class DocumentFormat(str, Enum):
    """Document format, derived from the file name suffix."""

    EPUB = "epub"
    PDF = "pdf"
    TXT = "txt"
    MOBI = "mobi"
    MARKDOWN = "markdown"
    DOC = "doc"
    DOCX = "docx"
    UNKNOWN = "unknown"

    @classmethod
    def from_file_name(cls, file_name: str) -> "DocumentFormat":
        """Map a file name to its format. Unmatched suffixes yield UNKNOWN."""
        lowered = str(file_name).lower()
        for suffix, fmt in SUFFIX_FORMATS.items():
            if lowered.endswith(suffix):
                return fmt
        return cls.UNKNOWN

    @property
    def is_convertible(self) -> bool:
        """Formats whose text is rewritten to a .txt sibling on import."""
        return self in (DocumentFormat.PDF, DocumentFormat.DOC, DocumentFormat.DOCX)


# Order matters: ".docx" must be tested before ".doc"
SUFFIX_FORMATS: dict[str, DocumentFormat] = {
    ".epub": DocumentFormat.EPUB,
    ".pdf": DocumentFormat.PDF,
    ".txt": DocumentFormat.TXT,
    ".mobi": DocumentFormat.MOBI,
    ".markdown": DocumentFormat.MARKDOWN,
    ".md": DocumentFormat.MARKDOWN,
    ".docx": DocumentFormat.DOCX,
    ".doc": DocumentFormat.DOC,
}


class ExtractedMetadata(BaseModel):
    """Book-level metadata produced once per import attempt."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    title: str
    author: str = ""
    page_count: int = Field(default=0, ge=0)
    cover_image: Image.Image | None = None
    language: str | None = None
    publisher: str | None = None
    identifier: str | None = None
    charset: str | None = None


class CatalogRecord(BaseModel):
    """Persisted representation of one imported book."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str
    author: str = ""
    file_path: str
    original_file_path: str | None = None  # Pre-conversion file (PDF/Word)
    cover_path: str | None = None
    content_hash: str = ""
    format: DocumentFormat
    last_read_page: int = 0
    last_read_position: float = 0.0
    total_pages: int = 0
    added_at: datetime = Field(default_factory=datetime.now)
    last_opened_at: datetime = Field(default_factory=datetime.now)

    @property
    def file_name(self) -> str:
        return self.file_path.replace("\\", "/").rsplit("/", 1)[-1]

    @property
    def reading_progress(self) -> float:
        """Fraction read as last saved by the reader, in the reader's own page units."""
        return min(1.0, max(0.0, self.last_read_position))
