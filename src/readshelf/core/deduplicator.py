"""Content fingerprinting and duplicate detection for imports."""

import hashlib
import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from readshelf.models.book import CatalogRecord

log = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 65536


def compute_content_hash(file_path: Path) -> str:
    """Compute SHA-256 hash of a file, streamed in chunks."""
    sha256 = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


def find_duplicate(
    records: Iterable[CatalogRecord], file_path: Path, content_hash: str
) -> CatalogRecord | None:
    """Return the first record with the same file path or non-empty hash."""
    path_key = str(file_path.resolve())
    for record in records:
        if record.file_path == path_key:
            return record
        if content_hash and record.content_hash == content_hash:
            return record
    return None


class ContentDeduplicator:
    """Serializes the check-then-insert sequence per content hash.

    Imports of different content proceed in parallel. Imports of the same
    content queue on one lock, so the second one only scans the catalog after
    the first has either inserted its record or given up.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._holders: dict[str, int] = {}

    @contextmanager
    def claim(self, content_hash: str) -> Iterator[None]:
        """Hold the serialization point for one content hash."""
        with self._guard:
            lock = self._locks.setdefault(content_hash, threading.Lock())
            self._holders[content_hash] = self._holders.get(content_hash, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._holders[content_hash] -= 1
                if self._holders[content_hash] == 0:
                    del self._holders[content_hash]
                    del self._locks[content_hash]
