"""Split plain text into fixed-capacity pages and detect chapter headings."""

import re
from bisect import bisect_right
from dataclasses import dataclass, field

from readshelf.models.reader import BookChapter

CHAPTER_PATTERNS = [
    re.compile(r"^第[0-9一二三四五六七八九十百千]+章.*"),
    re.compile(r"^Chapter\s+\d+.*", re.IGNORECASE),
    re.compile(r"^Part\s+\d+.*", re.IGNORECASE),
    re.compile(r"^Section\s+\d+.*", re.IGNORECASE),
]
MARKDOWN_HEADING = re.compile(r"^\s{0,3}#{1,6}\s+(.+?)\s*#*\s*$")

OPENING_CHAPTER_TITLE = "Beginning"
MAX_TITLE_LENGTH = 80


@dataclass
class PageLayout:
    """Paginated text plus the page each source line starts on."""

    pages: list[str]
    line_pages: list[int] = field(default_factory=list)


def paginate_text(text: str, chars_per_page: int) -> PageLayout:
    """Fill pages line by line, splitting lines longer than the remaining room.

    Each line costs its length plus one for the newline; blank lines cost one.
    Always returns at least one (possibly empty) page.
    """
    capacity = max(1, chars_per_page)
    pages: list[str] = []
    line_pages: list[int] = []
    current: list[str] = []
    used = 0

    def flush() -> None:
        nonlocal used
        pages.append("".join(current).rstrip("\n"))
        current.clear()
        used = 0

    for line in text.split("\n"):
        if used >= capacity:
            flush()
        line_pages.append(len(pages))

        remaining = line if line.strip() else ""
        while remaining:
            room = capacity - used
            if room <= 0:
                flush()
                room = capacity
            current.append(remaining[:room])
            used += len(remaining[:room])
            remaining = remaining[room:]
        current.append("\n")
        used += 1

    if current and "".join(current).strip():
        flush()
    if not pages:
        pages.append("")
    return PageLayout(pages=pages, line_pages=line_pages)


def heading_title(line: str, markdown: bool = False) -> str | None:
    """Return the chapter title if line is a chapter heading."""
    stripped = line.strip()
    if not stripped:
        return None
    if markdown:
        match = MARKDOWN_HEADING.match(stripped)
        if match:
            return match.group(1)[:MAX_TITLE_LENGTH]
    for pattern in CHAPTER_PATTERNS:
        if pattern.match(stripped):
            return stripped[:MAX_TITLE_LENGTH]
    return None


def detect_chapters(text: str, layout: PageLayout, markdown: bool = False) -> list[BookChapter]:
    """Build a flat chapter list from heading lines.

    Text before the first heading becomes an opening chapter so every page
    belongs to one. Without any heading the whole book is a single chapter.
    """
    found: list[tuple[str, int]] = []
    for line, page in zip(text.split("\n"), layout.line_pages):
        title = heading_title(line, markdown)
        if title is not None:
            found.append((title, page))

    if not found or found[0][1] > 0:
        found.insert(0, (OPENING_CHAPTER_TITLE, 0))

    return [
        BookChapter(title=title, index=i, start_position=page)
        for i, (title, page) in enumerate(found)
    ]


def find_chapter_index_for_page(chapters: list[BookChapter], page_index: int) -> int:
    """Index of the last chapter starting at or before page_index."""
    if not chapters:
        return 0
    starts = [chapter.start_position for chapter in chapters]
    return max(0, bisect_right(starts, page_index) - 1)
