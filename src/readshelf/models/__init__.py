"""Data models."""

from readshelf.models.book import (
    CatalogRecord,
    DocumentFormat,
    ExtractedMetadata,
)
from readshelf.models.importing import (
    STEP_WEIGHTS,
    ImportProgress,
    ImportResult,
    ImportStep,
    overall_progress,
)
from readshelf.models.reader import (
    BookChapter,
    PageDirection,
    ReaderConfig,
    ReaderContent,
    ReaderEngineState,
    SearchResult,
)

__all__ = [
    # Book models
    "DocumentFormat",
    "ExtractedMetadata",
    "CatalogRecord",
    # Import models
    "ImportStep",
    "STEP_WEIGHTS",
    "ImportProgress",
    "ImportResult",
    "overall_progress",
    # Reader models
    "PageDirection",
    "ReaderConfig",
    "BookChapter",
    "ReaderContent",
    "SearchResult",
    "ReaderEngineState",
]
