"""Repair line-wrapping artifacts in OCR output.

OCR engines emit one line per visual line, so a paragraph arrives broken into
many short lines. A newline is kept only where the text marks a real break:
a blank or whitespace-only line, or a line indented with two spaces or a
tab. Every other newline between two lines is replaced by a single space.
"""

import logging

log = logging.getLogger(__name__)


def is_breaking_line(line: str) -> bool:
    """True if the line starts a new block rather than continuing one."""
    return not line.strip() or line.startswith("  ") or line.startswith("\t")


def normalize_ocr_text(text: str) -> str:
    """Join wrapped OCR lines into paragraphs.

    Single left-to-right pass over adjacent line pairs. Blank-line runs,
    including a trailing run, are reproduced exactly, and running the
    function on its own output changes nothing.
    """
    if not text.strip():
        return text

    lines = text.split("\n")
    parts = [lines[0]]
    for current, following in zip(lines, lines[1:]):
        if is_breaking_line(current) or is_breaking_line(following):
            parts.append("\n")
        else:
            parts.append(" ")
        parts.append(following)

    result = "".join(parts)
    log.debug(
        f"OCR normalization: {len(lines)} lines -> {result.count(chr(10)) + 1} lines"
    )
    return result
