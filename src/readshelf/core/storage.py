"""Managed storage area and content-reference resolution."""

import logging
import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO
from urllib.parse import unquote, urlparse

log = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024


@dataclass
class ContentSource:
    """A readable byte stream behind an opaque content reference."""

    path: Path
    display_name: str

    @property
    def size(self) -> int:
        """Byte length of the source, or -1 if it cannot be read."""
        try:
            return self.path.stat().st_size if self.path.is_file() else -1
        except OSError:
            return -1

    def open(self) -> BinaryIO:
        return open(self.path, "rb")


def resolve_source(ref: str | Path, display_name: str | None = None) -> ContentSource:
    """Turn a path or file:// URI into a ContentSource."""
    text = str(ref)
    parsed = urlparse(text)
    if parsed.scheme == "file":
        path = Path(unquote(parsed.path))
    elif parsed.scheme and len(parsed.scheme) > 1:
        # Any other scheme is opaque to us
        raise ValueError(f"Unsupported content reference: {text}")
    else:
        path = Path(text)

    return ContentSource(path=path, display_name=display_name or path.name)


def format_file_size(size_bytes: int) -> str:
    """Format file size in human-readable form."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"


class ManagedStorage:
    """Writable library directory holding book files and covers."""

    BOOKS_DIR = "books"
    COVERS_DIR = "covers"

    def __init__(self, root: Path):
        self.root = root
        self.books_dir = root / self.BOOKS_DIR
        self.covers_dir = root / self.COVERS_DIR

    def ensure_dirs(self) -> None:
        """Create storage directories if they don't exist."""
        self.books_dir.mkdir(parents=True, exist_ok=True)
        self.covers_dir.mkdir(parents=True, exist_ok=True)

    def is_writable(self) -> bool:
        try:
            self.ensure_dirs()
        except OSError as e:
            log.warning(f"Cannot create storage directories under {self.root}: {e}")
            return False
        return os.access(self.books_dir, os.W_OK) and os.access(self.covers_dir, os.W_OK)

    def free_space(self) -> int:
        """Free bytes on the volume holding the library."""
        target = self.root if self.root.exists() else self.root.parent
        return shutil.disk_usage(target).free

    def create_unique(
        self, directory: Path, suffix: str, stem: str | None = None
    ) -> tuple[Path, BinaryIO]:
        """Atomically create a new file in directory and open it for writing.

        Concurrent callers asking for the same name each get their own file.
        """
        directory.mkdir(parents=True, exist_ok=True)
        candidate = directory / f"{stem}{suffix}" if stem else None
        while True:
            if candidate is None:
                name = f"{stem}_{uuid.uuid4().hex[:8]}" if stem else uuid.uuid4().hex
                candidate = directory / f"{name}{suffix}"
            try:
                return candidate, open(candidate, "xb")
            except FileExistsError:
                candidate = None

    def copy_in(self, source: ContentSource) -> Path:
        """Copy the source byte-for-byte into the books directory."""
        self.ensure_dirs()
        suffix = Path(source.display_name).suffix.lower()
        stem = _safe_stem(Path(source.display_name).stem)
        with source.open() as src:
            target, dst = self.create_unique(self.books_dir, suffix, stem)
            try:
                with dst:
                    shutil.copyfileobj(src, dst, COPY_CHUNK_SIZE)
            except OSError:
                target.unlink(missing_ok=True)
                raise
        return target

    def owns(self, path: Path) -> bool:
        """True if path lies inside this storage area."""
        try:
            path.resolve().relative_to(self.root.resolve())
            return True
        except ValueError:
            return False


def _safe_stem(stem: str) -> str:
    """Strip path separators and control characters from a file stem."""
    cleaned = "".join(c for c in stem if c.isprintable() and c not in '/\\:*?"<>|')
    return cleaned.strip(" .") or "book"
