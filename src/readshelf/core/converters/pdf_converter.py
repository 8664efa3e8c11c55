"""PDF text-layer extraction and metadata using pypdf and pdfplumber."""

import logging
from pathlib import Path
from typing import BinaryIO

# Suppress warnings about malformed PDF object references from PDF libraries
logging.getLogger("pdfminer").setLevel(logging.ERROR)
logging.getLogger("pypdf").setLevel(logging.ERROR)

import pdfplumber
import pypdf
from PIL import Image
from pypdf.errors import EmptyFileError, FileNotDecryptedError, PdfReadError

from readshelf.core.converter_factory import DocumentConverter, ExtractionError
from readshelf.core.text_cleanup import tidy_pdf_text
from readshelf.models.book import DocumentFormat, ExtractedMetadata

log = logging.getLogger(__name__)

# Resolution used when rendering the first page as a cover
COVER_RESOLUTION = 72


def open_pdf(path: Path, stream: BinaryIO | None = None) -> pypdf.PdfReader:
    """Open a PDF, trying an empty password on encrypted files.

    Pass stream to read from an already open handle the caller will close.

    Raises:
        ExtractionError: If the file is empty, corrupted or locked
    """
    try:
        reader = pypdf.PdfReader(stream if stream is not None else str(path))
        if reader.is_encrypted:
            log.warning(f"{path.name} is encrypted, trying an empty password")
            reader.decrypt("")
        # Touch the page tree so a bad password fails here
        len(reader.pages)
        return reader
    except FileNotDecryptedError as e:
        raise ExtractionError("PDF is encrypted. Please decrypt first.") from e
    except EmptyFileError as e:
        raise ExtractionError("PDF file is empty.") from e
    except (PdfReadError, ValueError, KeyError) as e:
        raise ExtractionError(f"PDF appears corrupted: {e}") from e
    except OSError as e:
        raise ExtractionError(f"Cannot read PDF: {e}") from e


def iter_page_texts(reader: pypdf.PdfReader):
    """Yield the text layer of each page in order, one page at a time."""
    for page in reader.pages:
        try:
            yield page.extract_text() or ""
        except Exception as e:  # noqa: BLE001 - a broken page should not lose the rest
            log.warning(f"Skipping unreadable PDF page: {e}")
            yield ""


def render_first_page(path: Path) -> Image.Image | None:
    """Render page 0 as a cover image. Returns None when rendering fails."""
    try:
        with pdfplumber.open(str(path)) as pdf:
            if not pdf.pages:
                return None
            page_image = pdf.pages[0].to_image(resolution=COVER_RESOLUTION)
            return page_image.original.convert("RGB")
    except Exception as e:  # noqa: BLE001 - cover is best-effort
        log.info(f"No cover rendered for {path.name}: {e}")
        return None


class PdfConverter(DocumentConverter):
    """Converter for PDF files with a text layer."""

    def extract_text(self, path: Path) -> str:
        try:
            reader = open_pdf(path)
        except ExtractionError as e:
            log.warning(f"PDF text extraction failed for {path.name}: {e}")
            return ""

        parts = []
        for text in iter_page_texts(reader):
            if text.strip():
                parts.append(text)
        return tidy_pdf_text("\n\n".join(parts))

    def extract_metadata(self, path: Path, fmt: DocumentFormat) -> ExtractedMetadata:
        reader = open_pdf(path)
        info = reader.metadata or {}

        title = str(info.get("/Title") or "").strip() or path.stem
        author = str(info.get("/Author") or "").strip()
        producer = str(info.get("/Producer") or "").strip() or None

        return ExtractedMetadata(
            title=title,
            author=author,
            page_count=len(reader.pages),
            cover_image=render_first_page(path),
            publisher=producer,
        )
