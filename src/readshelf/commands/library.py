"""List and remove commands."""

import logging
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from readshelf.config import LibraryConfig
from readshelf.models.book import CatalogRecord

log = logging.getLogger(__name__)


def execute_list(config: LibraryConfig, console: Console) -> list[CatalogRecord]:
    """Execute the list command."""
    records = config.catalog().list_records()
    if not records:
        console.print("[yellow]The library is empty.[/]")
        console.print("[dim]Add books with 'readshelf import FILE...'[/]")
        return records

    table = Table(title=f"Library ({len(records)})", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", width=8)
    table.add_column("Title", style="white")
    table.add_column("Author")
    table.add_column("Format", justify="center")
    table.add_column("Progress", justify="right", style="green")
    table.add_column("Added", style="dim")

    for record in records:
        title = record.title[:50] + "..." if len(record.title) > 50 else record.title
        table.add_row(
            record.id[:8],
            escape(title),
            escape(record.author) or "[dim]Unknown[/]",
            record.format.value.upper(),
            f"{record.reading_progress:.0%}",
            record.added_at.strftime("%Y-%m-%d"),
        )

    console.print(table)
    return records


def remove_book_files(record: CatalogRecord, config: LibraryConfig) -> list[Path]:
    """Delete the record's files that live in managed storage."""
    storage = config.storage()
    removed = []
    for value in (record.file_path, record.original_file_path, record.cover_path):
        if not value:
            continue
        path = Path(value)
        if not storage.owns(path):
            log.warning(f"Leaving {path} in place: outside the library")
            continue
        try:
            path.unlink(missing_ok=True)
            removed.append(path)
        except OSError as e:
            log.warning(f"Could not remove {path}: {e}")
    return removed


def execute_remove(record_id: str, config: LibraryConfig, console: Console) -> CatalogRecord:
    """Execute the remove command."""
    record = config.catalog().delete(record_id)
    if record is None:
        raise ValueError(f"No book with id {record_id}")

    removed = remove_book_files(record, config)
    console.print(f"[green]Removed[/] {escape(record.title)} [dim]({len(removed)} file(s) deleted)[/]")
    return record
