"""Catalog store interface and a JSON-file implementation."""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from readshelf.catalog.models import CatalogIndex
from readshelf.models.book import CatalogRecord

log = logging.getLogger(__name__)


class DuplicateRecordError(Exception):
    """Raised when inserting a record whose content hash is already stored."""

    def __init__(self, existing: CatalogRecord):
        self.existing = existing
        super().__init__(f"Book already exists: {existing.title}")


class CatalogStore(Protocol):
    """Persistence collaborator for catalog records."""

    def list_records(self) -> list[CatalogRecord]: ...

    def get(self, record_id: str) -> CatalogRecord | None: ...

    def find_by_hash(self, content_hash: str) -> CatalogRecord | None: ...

    def find_by_path(self, file_path: str) -> CatalogRecord | None: ...

    def insert(self, record: CatalogRecord) -> None: ...

    def update_progress(self, record_id: str, page: int, position: float) -> None: ...

    def delete(self, record_id: str) -> CatalogRecord | None: ...


class JsonCatalogStore:
    """Catalog kept in a single JSON file, safe for use from several threads."""

    CATALOG_FILE = "catalog.json"

    def __init__(self, root: Path, file_name: str | None = None):
        self.root = root
        self.catalog_path = root / (file_name or self.CATALOG_FILE)
        self._index: CatalogIndex | None = None
        self._lock = threading.RLock()

    def _load_index(self) -> CatalogIndex:
        """Load or create the catalog index."""
        if self._index is not None:
            return self._index

        if self.catalog_path.exists():
            try:
                self._index = CatalogIndex.model_validate_json(
                    self.catalog_path.read_text(encoding="utf-8")
                )
            except ValidationError as e:
                # Keep the damaged file aside instead of silently overwriting it
                backup = self.catalog_path.with_suffix(".corrupt.json")
                self.catalog_path.replace(backup)
                log.error(f"Catalog {self.catalog_path} is unreadable, moved to {backup}: {e}")
                self._index = CatalogIndex()
        else:
            self._index = CatalogIndex()

        return self._index

    def _save_index(self) -> None:
        """Write the catalog atomically."""
        self.root.mkdir(parents=True, exist_ok=True)
        index = self._load_index()
        index.updated_at = datetime.now()
        tmp_path = self.catalog_path.with_suffix(".tmp")
        tmp_path.write_text(index.model_dump_json(indent=2), encoding="utf-8")
        tmp_path.replace(self.catalog_path)

    def list_records(self) -> list[CatalogRecord]:
        with self._lock:
            records = list(self._load_index().records.values())
        return sorted(records, key=lambda r: r.added_at)

    def get(self, record_id: str) -> CatalogRecord | None:
        with self._lock:
            index = self._load_index()
            if record_id in index.records:
                return index.records[record_id]
            # Allow unambiguous id prefixes, as shown by the list command
            matches = [r for key, r in index.records.items() if key.startswith(record_id)]
            return matches[0] if len(matches) == 1 else None

    def find_by_hash(self, content_hash: str) -> CatalogRecord | None:
        if not content_hash:
            return None
        with self._lock:
            for record in self._load_index().records.values():
                if record.content_hash == content_hash:
                    return record
        return None

    def find_by_path(self, file_path: str) -> CatalogRecord | None:
        with self._lock:
            for record in self._load_index().records.values():
                if record.file_path == file_path:
                    return record
        return None

    def insert(self, record: CatalogRecord) -> None:
        """Compare-and-insert: refuses a second record for the same hash."""
        with self._lock:
            existing = self.find_by_hash(record.content_hash) or self.find_by_path(
                record.file_path
            )
            if existing is not None:
                raise DuplicateRecordError(existing)
            self._load_index().records[record.id] = record
            try:
                self._save_index()
            except OSError:
                del self._load_index().records[record.id]
                raise

    def update_progress(self, record_id: str, page: int, position: float) -> None:
        with self._lock:
            index = self._load_index()
            record = index.records.get(record_id)
            if record is None:
                raise KeyError(f"No catalog record with id {record_id}")
            index.records[record_id] = record.model_copy(
                update={
                    "last_read_page": page,
                    "last_read_position": position,
                    "last_opened_at": datetime.now(),
                }
            )
            self._save_index()

    def delete(self, record_id: str) -> CatalogRecord | None:
        with self._lock:
            record = self.get(record_id)
            if record is None:
                return None
            del self._load_index().records[record.id]
            self._save_index()
            return record
