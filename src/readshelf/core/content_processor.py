"""Convert HTML and Markdown content into reader- and speech-friendly text."""

import re
import warnings
from typing import Literal

from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning
from markdownify import markdownify as md

# EPUB documents are XHTML; lxml's HTML parser handles them fine
warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

BLOCK_TAGS = ["p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote", "pre"]


class ContentProcessor:
    """Process HTML content into plain text, clean HTML or Markdown."""

    def process(
        self,
        html_content: bytes | str,
        output_format: Literal["markdown", "text", "html"] = "text",
    ) -> str:
        """Convert HTML to specified format."""
        soup = BeautifulSoup(html_content, "lxml")

        # Remove scripts, styles, and navigation elements
        for tag in soup(["script", "style", "nav", "header", "footer", "aside"]):
            tag.decompose()

        if output_format == "html":
            return self._to_clean_html(soup)
        elif output_format == "markdown":
            return self._to_markdown(soup)
        else:
            return self._to_plain_text(soup)

    def _to_markdown(self, soup: BeautifulSoup) -> str:
        """Convert BeautifulSoup to clean Markdown."""
        body = soup.body or soup
        markdown = md(
            str(body),
            heading_style="ATX",
            bullets="-",
            strip=["a", "img"],
        )
        lines = [line.rstrip() for line in markdown.split("\n")]
        # Remove multiple consecutive blank lines
        cleaned = []
        prev_blank = False
        for line in lines:
            is_blank = not line.strip()
            if is_blank and prev_blank:
                continue
            cleaned.append(line)
            prev_blank = is_blank

        return "\n".join(cleaned).strip()

    def _to_plain_text(self, soup: BeautifulSoup) -> str:
        """Extract plain text with paragraph preservation."""
        paragraphs = []
        for block in soup.find_all(BLOCK_TAGS):
            # Nested blocks (p inside blockquote) are reached on their own
            if block.find_parent(BLOCK_TAGS) is not None:
                continue
            text = block.get_text(" ", strip=True)
            if text:
                paragraphs.append(text)
        if paragraphs:
            return "\n\n".join(paragraphs)

        # Documents built from bare divs/spans
        body = soup.body or soup
        lines = [line.strip() for line in body.get_text("\n").splitlines()]
        return "\n\n".join(line for line in lines if line)

    def _to_clean_html(self, soup: BeautifulSoup) -> str:
        """Return cleaned HTML."""
        body = soup.body or soup
        return str(body)

    def get_stats(self, content: str) -> dict[str, int]:
        """Calculate content statistics."""
        words = content.split()
        paragraphs = [p for p in content.split("\n\n") if p.strip()]
        return {
            "word_count": len(words),
            "character_count": len(content),
            "paragraph_count": len(paragraphs),
        }


def strip_markdown(text: str) -> str:
    """Remove Markdown markup so the text reads naturally aloud."""
    text = re.sub(r"```(.*?)```", r"\1", text, flags=re.DOTALL)
    text = re.sub(r"!\[([^\]]*)\]\([^)]*\)", r"\1", text)  # images
    text = re.sub(r"\[([^\]]+)\]\([^)]*\)", r"\1", text)  # links
    text = re.sub(r"^\s{0,3}#{1,6}\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"^\s{0,3}>\s?", "", text, flags=re.MULTILINE)
    text = re.sub(r"^-{3,}\s*$", "", text, flags=re.MULTILINE)
    return re.sub(r"[*_`~]", "", text)
