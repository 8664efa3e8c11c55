"""Case-insensitive full-text search over page texts."""

import re
from collections.abc import Callable, Iterable

from readshelf.models.reader import SearchResult

# Characters of context kept on each side of a match
SNIPPET_CONTEXT = 20


def search_pages(
    pages: Iterable[str],
    query: str,
    chapter_for_page: Callable[[int], int],
) -> list[SearchResult]:
    """Find every occurrence of query, in page order then position order."""
    if not query:
        return []

    pattern = re.compile(re.escape(query), re.IGNORECASE)
    results = []
    for page_index, page in enumerate(pages):
        for match in pattern.finditer(page):
            snippet_start = max(0, match.start() - SNIPPET_CONTEXT)
            snippet_end = min(len(page), match.end() + SNIPPET_CONTEXT)
            results.append(
                SearchResult(
                    page_index=page_index,
                    chapter_index=chapter_for_page(page_index),
                    text=page[snippet_start:snippet_end],
                    highlight_start=match.start() - snippet_start,
                    highlight_end=match.end() - snippet_start,
                )
            )
    return results
