"""Staged, cancellable book import.

An import walks four stages (validation, metadata extraction, cover
generation, persistence) and reports progress after every sub-step. Any
failure or cancellation removes the files written so far, so a failed import
can simply be resubmitted.
"""

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from PIL import Image

from readshelf.catalog.store import CatalogStore, DuplicateRecordError
from readshelf.core.converter_factory import ConverterFactory, ExtractionError, detect_format
from readshelf.core.deduplicator import ContentDeduplicator, compute_content_hash, find_duplicate
from readshelf.core.storage import ContentSource, ManagedStorage, format_file_size, resolve_source
from readshelf.models.book import CatalogRecord, DocumentFormat, ExtractedMetadata
from readshelf.models.importing import ImportProgress, ImportResult, ImportStep

log = logging.getLogger(__name__)

ProgressCallback = Callable[[ImportProgress], None]

COVER_FORMAT = "JPEG"
COVER_SUFFIX = ".jpg"


class ImportFailure(Exception):
    """Raised inside the pipeline to abort an import with a user-facing message."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ImportCancelled(Exception):
    """Raised when an import is cancelled at a stage boundary."""


class ImportPipeline:
    """Imports documents into managed storage and the catalog."""

    def __init__(
        self,
        storage: ManagedStorage,
        store: CatalogStore,
        deduplicator: ContentDeduplicator | None = None,
    ):
        self.storage = storage
        self.store = store
        self.deduplicator = deduplicator or ContentDeduplicator()

    def run(
        self,
        source_ref: str | Path,
        display_name: str | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ImportResult:
        """Import one document. Never raises; the result carries the outcome."""
        written: list[Path] = []
        try:
            source = resolve_source(source_ref, display_name)
        except ValueError as e:
            return ImportResult.failure(str(e))

        def emit(step: ImportStep, percent: int) -> None:
            if on_progress is None:
                return
            try:
                on_progress(ImportProgress(step=step, percent=percent, file_name=source.display_name))
            except Exception as e:  # noqa: BLE001 - progress is fire-and-forget
                log.debug(f"Progress callback failed: {e}")

        def check_cancel() -> None:
            if cancel_event is not None and cancel_event.is_set():
                raise ImportCancelled()

        try:
            return self._import(source, emit, check_cancel, written)
        except ImportFailure as e:
            log.info(f"Import of {source.display_name} failed: {e.message}")
            self._cleanup(written)
            return ImportResult.failure(e.message)
        except ImportCancelled:
            log.info(f"Import of {source.display_name} cancelled")
            self._cleanup(written)
            return ImportResult.failure("Import cancelled")
        except Exception as e:
            log.exception(f"Import of {source.display_name} failed")
            self._cleanup(written)
            return ImportResult.failure(f"Import failed: {e}")

    def _import(
        self,
        source: ContentSource,
        emit: Callable[[ImportStep, int], None],
        check_cancel: Callable[[], None],
        written: list[Path],
    ) -> ImportResult:
        name = source.display_name

        # Step 1: validation
        emit(ImportStep.VALIDATION, 0)
        source_format = detect_format(name)
        self._validate(source, source_format)

        emit(ImportStep.VALIDATION, 50)
        try:
            book_file = self.storage.copy_in(source)
        except OSError as e:
            raise ImportFailure(f"Failed to copy file: {e}") from e
        written.append(book_file)
        emit(ImportStep.VALIDATION, 100)
        check_cancel()

        # Step 2: conversion, duplicate check and metadata
        emit(ImportStep.METADATA_EXTRACTION, 0)
        working_file, working_format = book_file, source_format
        original_file: Path | None = None

        if source_format.is_convertible:
            converted = self._convert_to_text(book_file, source_format)
            if converted is not None:
                written.append(converted)
                working_file = converted
                working_format = detect_format(converted.name)
                original_file = book_file
        emit(ImportStep.METADATA_EXTRACTION, 20)

        content_hash = compute_content_hash(working_file)
        emit(ImportStep.METADATA_EXTRACTION, 30)

        # Held until the record is inserted, so identical content can't race
        with self.deduplicator.claim(content_hash):
            duplicate = find_duplicate(self.store.list_records(), working_file, content_hash)
            if duplicate is not None:
                raise ImportFailure(f"Book already exists: {duplicate.title}")
            emit(ImportStep.METADATA_EXTRACTION, 40)

            # Originals carry the real title, author and cover
            metadata_file = original_file or working_file
            metadata_format = source_format if original_file else working_format
            metadata = self._extract_metadata(metadata_file, metadata_format)
            emit(ImportStep.METADATA_EXTRACTION, 100)
            check_cancel()

            # Step 3: cover
            emit(ImportStep.COVER_GENERATION, 0)
            cover_path = self._save_cover(metadata.cover_image)
            if cover_path is not None:
                written.append(cover_path)
            emit(ImportStep.COVER_GENERATION, 100)
            check_cancel()

            # Step 4: persistence
            emit(ImportStep.PERSISTENCE, 0)
            record = CatalogRecord(
                title=metadata.title,
                author=metadata.author,
                file_path=str(working_file.resolve()),
                original_file_path=str(original_file.resolve()) if original_file else None,
                cover_path=str(cover_path.resolve()) if cover_path else None,
                content_hash=content_hash,
                format=working_format,
                total_pages=metadata.page_count,
            )
            try:
                self.store.insert(record)
            except DuplicateRecordError as e:
                raise ImportFailure(str(e)) from e
            except Exception as e:
                raise ImportFailure(f"Failed to save book record: {e}") from e
            emit(ImportStep.PERSISTENCE, 100)

        log.info(f"Imported {name} as {record.title!r} ({record.format.value})")
        return ImportResult.ok(record.id, record.title)

    def _validate(self, source: ContentSource, fmt: DocumentFormat) -> None:
        name = source.display_name
        if fmt == DocumentFormat.UNKNOWN:
            raise ImportFailure(f"Unsupported file format: {name}")
        if not self.storage.is_writable():
            raise ImportFailure(f"Storage is not writable: {self.storage.root}")

        size = source.size
        if size <= 0:
            raise ImportFailure(f"Cannot read file or file is empty: {name}")

        free = self.storage.free_space()
        if free <= size:
            raise ImportFailure(
                f"Not enough storage space: need {format_file_size(size)}, "
                f"available {format_file_size(free)}"
            )

    def _convert_to_text(self, book_file: Path, fmt: DocumentFormat) -> Path | None:
        """Write extracted text next to book_file. None when nothing usable came out."""
        try:
            text = ConverterFactory.create(fmt).extract_text(book_file)
        except Exception as e:  # noqa: BLE001 - conversion is opportunistic
            log.warning(f"Text conversion of {book_file.name} failed: {e}")
            return None

        if not text.strip():
            log.info(f"No text layer in {book_file.name}, keeping {fmt.value}")
            return None

        try:
            target, handle = self.storage.create_unique(book_file.parent, ".txt", book_file.stem)
        except OSError as e:
            log.warning(f"Could not create converted text next to {book_file.name}: {e}")
            return None
        try:
            with handle:
                handle.write(text.encode("utf-8"))
        except OSError as e:
            target.unlink(missing_ok=True)
            log.warning(f"Could not write converted text {target}: {e}")
            return None

        log.info(f"Converted {book_file.name} to {target.name} ({len(text)} chars)")
        return target

    def _extract_metadata(self, path: Path, fmt: DocumentFormat) -> ExtractedMetadata:
        try:
            return ConverterFactory.create(fmt).extract_metadata(path, fmt)
        except (ExtractionError, ValueError) as e:
            raise ImportFailure(f"Metadata extraction failed: {e}") from e

    def _save_cover(self, image: Image.Image | None) -> Path | None:
        """Save the cover under a unique name. Failure is logged, not raised."""
        if image is None:
            return None

        try:
            cover_path, handle = self.storage.create_unique(self.storage.covers_dir, COVER_SUFFIX)
        except OSError as e:
            log.warning(f"Failed to create cover file: {e}")
            image.close()
            return None
        try:
            with handle:
                image.convert("RGB").save(handle, format=COVER_FORMAT)
            return cover_path
        except (OSError, ValueError) as e:
            log.warning(f"Failed to save cover image: {e}")
            cover_path.unlink(missing_ok=True)
            return None
        finally:
            image.close()

    def _cleanup(self, written: list[Path]) -> None:
        """Delete files this import created, newest first."""
        for path in reversed(written):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                log.warning(f"Could not remove {path}: {e}")
        written.clear()
