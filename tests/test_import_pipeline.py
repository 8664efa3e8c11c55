"""Tests for the staged import pipeline."""

import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from readshelf.catalog.store import JsonCatalogStore
from readshelf.core.deduplicator import ContentDeduplicator
from readshelf.core.import_pipeline import ImportPipeline
from readshelf.core.storage import ContentSource, ManagedStorage
from readshelf.models.book import DocumentFormat
from readshelf.models.importing import ImportProgress, ImportStep


def stored_files(storage: ManagedStorage) -> list[Path]:
    found = []
    for directory in (storage.books_dir, storage.covers_dir):
        if directory.exists():
            found.extend(p for p in directory.iterdir() if p.is_file())
    return sorted(found)


def test_txt_import_stage_sequence(
    pipeline: ImportPipeline, store: JsonCatalogStore, make_text: Callable[..., Path]
) -> None:
    """Test a plain text import walks all four stages and ends at 100."""
    path = make_text("a.txt", "x" * 499 + "\n")
    assert path.stat().st_size == 500
    events: list[ImportProgress] = []

    result = pipeline.run(path, on_progress=events.append)

    assert result.success, result.message
    steps = [e.step for e in events]
    assert steps[0] == ImportStep.VALIDATION
    assert [s.ordinal for s in steps] == sorted(s.ordinal for s in steps)
    assert (ImportStep.VALIDATION, 0) in [(e.step, e.percent) for e in events]
    assert (ImportStep.VALIDATION, 100) in [(e.step, e.percent) for e in events]
    assert (ImportStep.COVER_GENERATION, 0) in [(e.step, e.percent) for e in events]
    assert (ImportStep.COVER_GENERATION, 100) in [(e.step, e.percent) for e in events]
    assert (events[-1].step, events[-1].percent) == (ImportStep.PERSISTENCE, 100)

    overall = [e.overall for e in events]
    assert overall == sorted(overall)
    assert overall[-1] == 100
    assert overall.count(100) == 1
    assert all(e.file_name == "a.txt" for e in events)

    record = store.get(result.record_id)
    assert record.format == DocumentFormat.TXT
    assert record.cover_path is None
    assert len(record.content_hash) == 64
    assert record.original_file_path is None
    assert Path(record.file_path).read_text(encoding="utf-8") == path.read_text(encoding="utf-8")
    assert result.title == "a"


def test_import_leaves_source_untouched(
    pipeline: ImportPipeline, make_text: Callable[..., Path]
) -> None:
    """Test the source file is copied, not moved."""
    path = make_text("keep.txt", "content stays here")

    assert pipeline.run(path).success
    assert path.read_text(encoding="utf-8") == "content stays here"


def test_pdf_import_converts_to_text(
    pipeline: ImportPipeline, store: JsonCatalogStore, sample_pdf: Path
) -> None:
    """Test PDFs with a text layer become TXT records that keep the original."""
    result = pipeline.run(sample_pdf)

    assert result.success, result.message
    record = store.get(result.record_id)
    assert record.format == DocumentFormat.TXT
    assert record.title == "Pdf Title"
    assert record.author == "Pdf Author"

    text_file = Path(record.file_path)
    original = Path(record.original_file_path)
    assert text_file.suffix == ".txt"
    assert original.suffix == ".pdf"
    assert original.exists()
    assert text_file.parent == original.parent
    assert "Hello from page one" in text_file.read_text(encoding="utf-8")
    assert original.read_bytes() == sample_pdf.read_bytes()


def test_pdf_without_text_layer_stays_pdf(
    pipeline: ImportPipeline,
    store: JsonCatalogStore,
    storage: ManagedStorage,
    make_pdf: Callable[..., Path],
) -> None:
    """Test blank conversion output keeps the original format."""
    path = make_pdf("scanned.pdf", [[], []])

    result = pipeline.run(path)

    assert result.success, result.message
    record = store.get(result.record_id)
    assert record.format == DocumentFormat.PDF
    assert record.original_file_path is None
    assert record.total_pages == 2
    assert not list(storage.books_dir.glob("*.txt"))


def test_docx_import_converts_to_text(
    pipeline: ImportPipeline, store: JsonCatalogStore, sample_docx: Path
) -> None:
    """Test Word documents are converted and keep their core properties."""
    result = pipeline.run(sample_docx)

    assert result.success, result.message
    record = store.get(result.record_id)
    assert record.format == DocumentFormat.TXT
    assert record.title == "Docx Title"
    assert Path(record.original_file_path).suffix == ".docx"
    assert "Second paragraph mentions Whales." in Path(record.file_path).read_text(encoding="utf-8")


def test_legacy_doc_import_keeps_original(
    pipeline: ImportPipeline, store: JsonCatalogStore, sources: Path
) -> None:
    """Test unreadable .doc files are still catalogued by name."""
    path = sources / "Old Report.doc"
    path.write_bytes(b"\xd0\xcf\x11\xe0" + b"\x01" * 100)

    result = pipeline.run(path)

    assert result.success, result.message
    record = store.get(result.record_id)
    assert record.format == DocumentFormat.DOC
    assert record.title == "Old Report"


def test_epub_import_saves_cover(
    pipeline: ImportPipeline, store: JsonCatalogStore, storage: ManagedStorage, sample_epub: Path
) -> None:
    """Test EPUB imports keep their format and store the cover as JPEG."""
    result = pipeline.run(sample_epub)

    assert result.success, result.message
    record = store.get(result.record_id)
    assert record.format == DocumentFormat.EPUB
    assert record.title == "Test Book"
    assert record.author == "Author"
    cover = Path(record.cover_path)
    assert cover.parent == storage.covers_dir
    assert cover.suffix == ".jpg"
    assert cover.read_bytes()[:2] == b"\xff\xd8"


def test_duplicate_content_rejected(
    pipeline: ImportPipeline,
    store: JsonCatalogStore,
    storage: ManagedStorage,
    make_text: Callable[..., Path],
) -> None:
    """Test byte-identical content under another name is a duplicate."""
    first = make_text("a.txt", "identical content")
    second = make_text("b.txt", "identical content")

    assert pipeline.run(first).success
    files_before = stored_files(storage)
    result = pipeline.run(second)

    assert not result.success
    assert result.message == "Book already exists: a"
    assert len(store.list_records()) == 1
    assert stored_files(storage) == files_before


def test_duplicate_pdf_leaves_no_converted_file(
    pipeline: ImportPipeline,
    store: JsonCatalogStore,
    storage: ManagedStorage,
    sample_pdf: Path,
    sources: Path,
) -> None:
    """Test a duplicate PDF removes both its copy and its converted text."""
    copy = sources / "renamed.pdf"
    copy.write_bytes(sample_pdf.read_bytes())

    assert pipeline.run(sample_pdf).success
    files_before = stored_files(storage)
    result = pipeline.run(copy)

    assert not result.success
    assert "Book already exists: Pdf Title" == result.message
    assert stored_files(storage) == files_before
    assert len(store.list_records()) == 1


def test_concurrent_imports_of_same_content(
    storage: ManagedStorage, store: JsonCatalogStore, make_text: Callable[..., Path]
) -> None:
    """Test parallel imports of one content hash persist exactly one record."""
    pipeline = ImportPipeline(storage, store, ContentDeduplicator())
    paths = [make_text(f"copy{i}.txt", "the same bytes in every file") for i in range(6)]

    with ThreadPoolExecutor(max_workers=6) as executor:
        results = list(executor.map(pipeline.run, paths))

    assert sum(r.success for r in results) == 1
    assert all("Book already exists" in r.message for r in results if not r.success)
    assert len(store.list_records()) == 1
    assert len(list(storage.books_dir.iterdir())) == 1


def test_concurrent_imports_of_different_content(
    pipeline: ImportPipeline, store: JsonCatalogStore, make_text: Callable[..., Path]
) -> None:
    """Test different files import in parallel without interfering."""
    paths = [make_text(f"book{i}.txt", f"unique content {i}") for i in range(5)]

    with ThreadPoolExecutor(max_workers=5) as executor:
        results = list(executor.map(pipeline.run, paths))

    assert all(r.success for r in results)
    assert len(store.list_records()) == 5


def test_concurrent_imports_sharing_a_file_name(
    pipeline: ImportPipeline,
    storage: ManagedStorage,
    store: JsonCatalogStore,
    sources: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test two different books named alike each keep their own stored file."""
    paths = []
    for folder, content in (("one", "first book text"), ("two", "second book text")):
        (sources / folder).mkdir()
        path = sources / folder / "a.txt"
        path.write_text(content, encoding="utf-8")
        paths.append(path)

    # Both imports pick a target name at the same moment
    barrier = threading.Barrier(2, timeout=5)
    original_open = ContentSource.open

    def open_together(self: ContentSource):
        barrier.wait()
        return original_open(self)

    monkeypatch.setattr(ContentSource, "open", open_together)

    with ThreadPoolExecutor(max_workers=2) as executor:
        results = list(executor.map(pipeline.run, paths))

    assert all(r.success for r in results), [r.message for r in results]
    records = store.list_records()
    assert len(records) == 2
    assert len({r.file_path for r in records}) == 2
    contents = {Path(r.file_path).read_text(encoding="utf-8") for r in records}
    assert contents == {"first book text", "second book text"}


def test_cancellation_removes_written_files(
    pipeline: ImportPipeline,
    store: JsonCatalogStore,
    storage: ManagedStorage,
    sample_pdf: Path,
) -> None:
    """Test cancelling mid-import cleans up and persists nothing."""
    cancel = threading.Event()
    events: list[ImportProgress] = []

    def on_progress(event: ImportProgress) -> None:
        events.append(event)
        if event.step == ImportStep.METADATA_EXTRACTION:
            cancel.set()

    result = pipeline.run(sample_pdf, on_progress=on_progress, cancel_event=cancel)

    assert not result.success
    assert result.message == "Import cancelled"
    assert store.list_records() == []
    assert stored_files(storage) == []
    assert ImportStep.PERSISTENCE not in {e.step for e in events}
    assert sample_pdf.exists()


def test_cancel_before_start(
    pipeline: ImportPipeline, storage: ManagedStorage, make_text: Callable[..., Path]
) -> None:
    """Test an already-cancelled import stops after validation."""
    cancel = threading.Event()
    cancel.set()

    result = pipeline.run(make_text("a.txt", "text"), cancel_event=cancel)

    assert result.message == "Import cancelled"
    assert stored_files(storage) == []


def test_unsupported_format(pipeline: ImportPipeline, storage: ManagedStorage, sources: Path) -> None:
    """Test unknown suffixes fail validation without writing files."""
    path = sources / "image.jpeg"
    path.write_bytes(b"\xff\xd8\xff")

    result = pipeline.run(path)

    assert not result.success
    assert result.message == "Unsupported file format: image.jpeg"
    assert stored_files(storage) == []


def test_empty_and_missing_sources(
    pipeline: ImportPipeline, make_text: Callable[..., Path], sources: Path
) -> None:
    """Test zero-length and unreadable sources fail validation."""
    empty = pipeline.run(make_text("empty.txt", ""))
    missing = pipeline.run(sources / "missing.txt")

    assert empty.message == "Cannot read file or file is empty: empty.txt"
    assert missing.message == "Cannot read file or file is empty: missing.txt"


def test_insufficient_space(
    pipeline: ImportPipeline,
    storage: ManagedStorage,
    make_text: Callable[..., Path],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test free space must exceed the source size."""
    monkeypatch.setattr(storage, "free_space", lambda: 10)

    result = pipeline.run(make_text("big.txt", "x" * 100))

    assert not result.success
    assert result.message.startswith("Not enough storage space")
    assert stored_files(storage) == []


def test_unwritable_storage(
    pipeline: ImportPipeline,
    storage: ManagedStorage,
    make_text: Callable[..., Path],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test an unwritable library fails validation."""
    monkeypatch.setattr(storage, "is_writable", lambda: False)

    result = pipeline.run(make_text("a.txt", "text"))

    assert result.message.startswith("Storage is not writable")


def test_metadata_failure_is_fatal(
    pipeline: ImportPipeline, storage: ManagedStorage, sources: Path
) -> None:
    """Test a broken EPUB fails at metadata extraction and is cleaned up."""
    path = sources / "broken.epub"
    path.write_bytes(b"this is not a zip archive")

    result = pipeline.run(path)

    assert not result.success
    assert result.message.startswith("Metadata extraction failed:")
    assert stored_files(storage) == []


def test_insert_failure_cleans_up(
    storage: ManagedStorage, library_root: Path, sample_epub: Path
) -> None:
    """Test a catalog write failure leaves no orphaned files."""

    class FailingStore(JsonCatalogStore):
        def insert(self, record):
            raise OSError("disk full")

    pipeline = ImportPipeline(storage, FailingStore(library_root))

    result = pipeline.run(sample_epub)

    assert not result.success
    assert result.message == "Failed to save book record: disk full"
    assert stored_files(storage) == []


def test_progress_callback_errors_are_ignored(
    pipeline: ImportPipeline, make_text: Callable[..., Path]
) -> None:
    """Test a failing progress consumer does not break the import."""

    def broken_callback(event: ImportProgress) -> None:
        raise RuntimeError("ui gone")

    result = pipeline.run(make_text("a.txt", "text"), on_progress=broken_callback)

    assert result.success


def test_file_uri_reference(
    pipeline: ImportPipeline, store: JsonCatalogStore, make_text: Callable[..., Path]
) -> None:
    """Test file:// URIs are accepted as content references."""
    path = make_text("uri book.txt", "via uri")

    result = pipeline.run(path.as_uri())

    assert result.success, result.message
    assert store.get(result.record_id).title == "uri book"


def test_remote_reference_rejected(pipeline: ImportPipeline) -> None:
    """Test non-file URLs are reported, not fetched."""
    result = pipeline.run("https://example.com/book.epub")

    assert not result.success
    assert "Unsupported content reference" in result.message
