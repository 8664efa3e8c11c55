"""Plain text and Markdown converters."""

import codecs
import logging
from pathlib import Path

import chardet

from readshelf.core.converter_factory import DocumentConverter, ExtractionError
from readshelf.core.text_cleanup import split_author_title
from readshelf.models.book import DocumentFormat, ExtractedMetadata

log = logging.getLogger(__name__)

# Bytes sampled for encoding detection
SNIFF_SIZE = 4096
# Rough characters per printed page
CHARS_PER_PAGE_ESTIMATE = 2000


def detect_encoding(path: Path) -> str:
    """Guess a text file's encoding from its first few kilobytes."""
    with open(path, "rb") as f:
        sample = f.read(SNIFF_SIZE)

    if sample.startswith(codecs.BOM_UTF8):
        return "utf-8-sig"
    if sample.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        return "utf-16"

    decoder = codecs.getincrementaldecoder("utf-8")()
    try:
        # final=False tolerates a multibyte character cut at the sample edge
        decoder.decode(sample, final=False)
        return "utf-8"
    except UnicodeDecodeError:
        pass

    guess = (chardet.detect(sample).get("encoding") or "utf-8").lower()
    # GBK is a superset of GB2312 and decodes more real-world files
    if guess == "gb2312":
        guess = "gbk"
    try:
        return codecs.lookup(guess).name
    except LookupError:
        log.info(f"Unknown encoding {guess} guessed for {path.name}, using utf-8")
        return "utf-8"


def read_text_file(path: Path, encoding: str | None = None) -> str:
    """Read a text file, detecting its encoding when not given."""
    encoding = encoding or detect_encoding(path)
    return path.read_text(encoding=encoding, errors="replace")


class TextConverter(DocumentConverter):
    """Converter for .txt and Markdown files."""

    def extract_text(self, path: Path) -> str:
        try:
            return read_text_file(path)
        except OSError as e:
            log.warning(f"Failed to read text from {path}: {e}")
            return ""

    def extract_metadata(self, path: Path, fmt: DocumentFormat) -> ExtractedMetadata:
        try:
            charset = detect_encoding(path)
            size = path.stat().st_size
        except OSError as e:
            raise ExtractionError(f"Cannot read {path.name}: {e}") from e

        title, author = split_author_title(path.stem)
        return ExtractedMetadata(
            title=title,
            author=author,
            page_count=max(1, size // CHARS_PER_PAGE_ESTIMATE),
            charset=charset,
        )


class MobiConverter(DocumentConverter):
    """MOBI files are catalogued by name only; their content is not parsed."""

    def extract_text(self, path: Path) -> str:
        return ""

    def extract_metadata(self, path: Path, fmt: DocumentFormat) -> ExtractedMetadata:
        if not path.exists():
            raise ExtractionError(f"File not found: {path}")
        return ExtractedMetadata(title=path.stem, author="", page_count=0)
