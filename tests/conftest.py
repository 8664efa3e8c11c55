"""Shared fixtures: real EPUB, PDF and DOCX files built on the fly."""

import io
from collections.abc import Callable
from pathlib import Path

import docx
import pytest
from ebooklib import epub
from PIL import Image

from readshelf.catalog.store import JsonCatalogStore
from readshelf.core.import_pipeline import ImportPipeline
from readshelf.core.storage import ManagedStorage


def build_pdf(path: Path, pages: list[list[str]], title: str | None = None) -> Path:
    """Write a minimal PDF with a Helvetica text layer, one list of lines per page."""
    objects: list[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"",  # Pages tree, filled in below
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    page_ids = []
    for lines in pages:
        page_id = len(objects) + 1
        content_id = page_id + 1
        page_ids.append(page_id)
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {content_id} 0 R >>"
            ).encode()
        )
        ops = ["BT", "/F1 12 Tf", "72 720 Td"]
        for i, line in enumerate(lines):
            if i:
                ops.append("0 -16 Td")
            ops.append(f"({line}) Tj")
        ops.append("ET")
        stream = "\n".join(ops).encode()
        objects.append(
            f"<< /Length {len(stream)} >>\nstream\n".encode() + stream + b"\nendstream"
        )

    kids = " ".join(f"{page_id} 0 R" for page_id in page_ids)
    objects[1] = f"<< /Type /Pages /Kids [{kids}] /Count {len(page_ids)} >>".encode()

    info_ref = ""
    if title:
        objects.append(f"<< /Title ({title}) /Author (Pdf Author) >>".encode())
        info_ref = f" /Info {len(objects)} 0 R"

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_offset = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R{info_ref} >>\n"
        f"startxref\n{xref_offset}\n%%EOF\n"
    ).encode()

    path.write_bytes(bytes(out))
    return path


def image_bytes(fmt: str = "PNG", size: tuple[int, int] = (60, 90)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buffer, fmt)
    return buffer.getvalue()


def build_epub(path: Path, with_cover: bool = True) -> Path:
    """Two-chapter EPUB with an NCX table of contents and an optional cover."""
    book = epub.EpubBook()
    book.set_identifier("test-id")
    book.set_title("Test Book")
    book.set_language("en")
    book.add_author("Author")
    if with_cover:
        book.set_cover("cover.png", image_bytes())

    chapter1 = epub.EpubHtml(title="Chapter 1", file_name="chap1.xhtml", lang="en")
    chapter1.content = "<h1>Chapter 1</h1><p>Hello world.</p>"

    chapter2 = epub.EpubHtml(title="Chapter 2", file_name="chap2.xhtml", lang="en")
    chapter2.content = "<h1>Chapter 2</h1><p>Second chapter text about Whales.</p>"

    book.add_item(chapter1)
    book.add_item(chapter2)
    book.toc = (
        epub.Link("chap1.xhtml", "Chapter 1", "chap1"),
        epub.Link("chap2.xhtml", "Chapter 2", "chap2"),
    )
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = [chapter1, chapter2]

    epub.write_epub(str(path), book)
    return path


def build_docx(path: Path, paragraphs: list[str], title: str = "", author: str = "") -> Path:
    document = docx.Document()
    for text in paragraphs:
        document.add_paragraph(text)
    document.core_properties.title = title
    document.core_properties.author = author
    document.save(str(path))
    return path


@pytest.fixture
def library_root(tmp_path: Path) -> Path:
    return tmp_path / "library"


@pytest.fixture
def storage(library_root: Path) -> ManagedStorage:
    return ManagedStorage(library_root)


@pytest.fixture
def store(library_root: Path) -> JsonCatalogStore:
    return JsonCatalogStore(library_root)


@pytest.fixture
def pipeline(storage: ManagedStorage, store: JsonCatalogStore) -> ImportPipeline:
    return ImportPipeline(storage, store)


@pytest.fixture
def sources(tmp_path: Path) -> Path:
    """Directory for files to be imported, outside the library."""
    path = tmp_path / "incoming"
    path.mkdir()
    return path


@pytest.fixture
def make_pdf(sources: Path) -> Callable[..., Path]:
    def _make(name: str, pages: list[list[str]], title: str | None = None) -> Path:
        return build_pdf(sources / name, pages, title)

    return _make


@pytest.fixture
def sample_pdf(make_pdf: Callable[..., Path]) -> Path:
    return make_pdf(
        "sample.pdf",
        [["Hello from page one", "More text here"], ["Page two talks about whales"], ["The end"]],
        title="Pdf Title",
    )


@pytest.fixture
def sample_epub(sources: Path) -> Path:
    return build_epub(sources / "sample.epub")


@pytest.fixture
def sample_docx(sources: Path) -> Path:
    return build_docx(
        sources / "Someone - Word Book.docx",
        ["First paragraph of the document.", "Second paragraph mentions Whales."],
        title="Docx Title",
        author="Docx Author",
    )


@pytest.fixture
def make_text(sources: Path) -> Callable[..., Path]:
    def _make(name: str, content: str, encoding: str = "utf-8") -> Path:
        path = sources / name
        path.write_text(content, encoding=encoding)
        return path

    return _make
