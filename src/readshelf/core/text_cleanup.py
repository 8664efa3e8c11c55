"""Small text clean-up helpers shared by converters and the OCR command."""

import re

DEFAULT_TITLE = "New Text"
TITLE_MAX_CHARS = 16


def clean_blank_lines(text: str) -> str:
    """Drop leading blank lines and collapse every blank-line run to one."""
    lines = text.splitlines()
    first = next((i for i, line in enumerate(lines) if line.strip()), None)
    if first is None:
        return ""

    processed: list[str] = []
    previous_blank = False
    for line in lines[first:]:
        if not line.strip():
            if not previous_blank:
                processed.append("")
                previous_blank = True
        else:
            processed.append(line)
            previous_blank = False

    return "\n".join(processed)


def extract_title(text: str) -> str:
    """Use the first line of text as a title, truncated."""
    stripped = text.strip()
    if not stripped:
        return DEFAULT_TITLE
    first_line = stripped.split("\n", 1)[0].strip()
    return first_line[:TITLE_MAX_CHARS]


def tidy_pdf_text(text: str) -> str:
    """Normalize whitespace in text pulled from a PDF text layer."""
    if not text.strip():
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"^[ \t]+|[ \t]+$", "", text, flags=re.MULTILINE)
    text = re.sub(r"[ \t]{2,}", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text if text.endswith("\n") else text + "\n"


def tidy_word_text(text: str) -> str:
    """Normalize line endings and tabs in text pulled from a Word document."""
    if not text.strip():
        return ""
    return text.replace("\r\n", "\n").replace("\r", "\n").replace("\t", "    ").strip()


def split_author_title(stem: str) -> tuple[str, str]:
    """Split an 'Author - Title' file stem. Returns (title, author)."""
    for separator in (" - ", "-"):
        if separator in stem:
            author, title = stem.split(separator, 1)
            if author.strip() and title.strip():
                return title.strip(), author.strip()
    return stem, ""
