"""OCR text clean-up command."""

import re
import tempfile
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from readshelf.config import LibraryConfig
from readshelf.core.converters.text_converter import read_text_file
from readshelf.core.import_pipeline import ImportPipeline
from readshelf.core.ocr_normalizer import normalize_ocr_text
from readshelf.core.text_cleanup import clean_blank_lines, extract_title
from readshelf.models.importing import ImportResult


def clean_ocr_file(path: Path) -> str:
    """Read recognized text and repair its line wrapping."""
    return clean_blank_lines(normalize_ocr_text(read_text_file(path)))


def file_name_for_title(title: str) -> str:
    """A .txt file name derived from a text's title."""
    cleaned = re.sub(r'[\\/:*?"<>|]+', "_", title).strip(" ._")
    return f"{cleaned or 'text'}.txt"


def execute_ocr(
    file_path: Path,
    import_text: bool,
    output: Path | None,
    config: LibraryConfig,
    console: Console,
) -> ImportResult | None:
    """Execute the ocr command."""
    text = clean_ocr_file(file_path)
    if not text.strip():
        raise ValueError(f"No text found in {file_path}")

    title = extract_title(text)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text + "\n", encoding="utf-8")
        console.print(f"[green]Saved cleaned text to[/] {escape(str(output))}")
    elif not import_text:
        console.print(Panel(escape(text), title=escape(title), border_style="blue"))

    if not import_text:
        return None

    pipeline = ImportPipeline(config.storage(), config.catalog())
    display_name = file_name_for_title(title)
    if output is not None:
        result = pipeline.run(output, display_name=display_name)
    else:
        with tempfile.TemporaryDirectory() as tmp_dir:
            source = Path(tmp_dir) / display_name
            source.write_text(text + "\n", encoding="utf-8")
            result = pipeline.run(source)

    if not result.success:
        raise ValueError(result.message)
    console.print(f"[green]Imported[/] {escape(result.title or title)} [dim]({result.record_id[:8]})[/]")
    return result
