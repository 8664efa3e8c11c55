"""Data models shared by the reader engines."""

from enum import Enum

from pydantic import BaseModel, Field


class PageDirection(str, Enum):
    """Page turn direction."""

    PREVIOUS = "previous"
    NEXT = "next"


class ReaderConfig(BaseModel):
    """Rendering-agnostic reader settings.

    Only fixed-width formats use these values, to decide how much text fits on
    a page. Flowed formats leave layout to the presentation layer.
    """

    font_size: int = Field(default=18, gt=0)
    line_height: float = Field(default=1.6, gt=0)
    margin: int = Field(default=20, ge=0)
    dark_mode: bool = False
    font_family: str = "Default"
    paragraph_spacing: float = 1.0
    # Logical viewport, in points
    page_width: int = Field(default=360, gt=0)
    page_height: int = Field(default=640, gt=0)
    # Explicit override for page capacity (characters)
    page_chars: int | None = Field(default=None, gt=0)

    def chars_per_page(self) -> int:
        """Number of characters a text page can hold with these settings."""
        if self.page_chars is not None:
            return self.page_chars
        # Average glyph is about half as wide as the font size
        char_width = self.font_size * 0.5
        line_px = self.font_size * self.line_height
        chars_per_line = int(max(1, self.page_width - 2 * self.margin) / char_width)
        lines_per_page = int(max(1, self.page_height - 2 * self.margin) / line_px)
        return max(1, chars_per_line) * max(1, lines_per_page)


class BookChapter(BaseModel):
    """Chapter entry; start_position is the page index where it begins."""

    title: str
    index: int
    start_position: int
    content: str = ""  # Populated on first request
    sub_chapters: list["BookChapter"] = Field(default_factory=list)


class ReaderContent(BaseModel):
    """A single page's renderable unit."""

    text: str
    markup: str | None = None  # HTML for EPUB, raw Markdown for .md
    page_index: int
    chapter_index: int
    is_first_page: bool = False
    is_last_page: bool = False


class SearchResult(BaseModel):
    """A search hit with a snippet and highlight offsets into it."""

    page_index: int
    chapter_index: int
    text: str
    highlight_start: int
    highlight_end: int


class ReaderEngineState(BaseModel):
    """Observable state of a reader engine."""

    is_loading: bool = True
    error: str | None = None
    current_page: int = 0
    total_pages: int = 0
    current_chapter: int = 0
    total_chapters: int = 0
    reading_progress: float = Field(default=0.0, ge=0.0, le=1.0)
