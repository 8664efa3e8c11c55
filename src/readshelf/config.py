"""Library location and defaults."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from readshelf.catalog.store import JsonCatalogStore
from readshelf.core.storage import ManagedStorage
from readshelf.models.reader import ReaderConfig

HOME_ENV_VAR = "READSHELF_HOME"
LOG_FILE_ENV_VAR = "READSHELF_LOG_FILE"
DEFAULT_HOME = Path("~/.readshelf")


def default_library_root() -> Path:
    """READSHELF_HOME if set, else ~/.readshelf."""
    return Path(os.environ.get(HOME_ENV_VAR) or DEFAULT_HOME).expanduser()


@dataclass
class LibraryConfig:
    """Where the library lives and how commands behave by default."""

    root: Path = field(default_factory=default_library_root)
    books_dir_name: str = ManagedStorage.BOOKS_DIR
    covers_dir_name: str = ManagedStorage.COVERS_DIR
    catalog_file: str = JsonCatalogStore.CATALOG_FILE
    log_file: Path | None = None  # Relative paths are under root
    import_workers: int = 4
    reader: ReaderConfig = field(default_factory=ReaderConfig)

    def storage(self) -> ManagedStorage:
        storage = ManagedStorage(self.root)
        storage.books_dir = self.root / self.books_dir_name
        storage.covers_dir = self.root / self.covers_dir_name
        return storage

    def catalog(self) -> JsonCatalogStore:
        return JsonCatalogStore(self.root, self.catalog_file)

    @property
    def log_path(self) -> Path | None:
        return self.root / self.log_file if self.log_file else None
