"""Import command implementation."""

import signal
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)
from rich.table import Table

from readshelf.config import LibraryConfig
from readshelf.core.import_pipeline import ImportPipeline
from readshelf.models.importing import ImportProgress, ImportResult, ImportStep

STEP_LABELS = {
    ImportStep.VALIDATION: "Validating",
    ImportStep.METADATA_EXTRACTION: "Reading metadata",
    ImportStep.COVER_GENERATION: "Saving cover",
    ImportStep.PERSISTENCE: "Saving",
}


def short_name(name: str, width: int = 40) -> str:
    return name if len(name) <= width else name[: width - 3] + "..."


def import_files(
    files: list[Path],
    pipeline: ImportPipeline,
    workers: int,
    console: Console,
    cancel_event: threading.Event,
    quiet: bool = False,
) -> list[ImportResult]:
    """Run imports in parallel with one progress bar per file."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        disable=quiet,
    ) as progress:

        def make_callback(task_id):
            def on_progress(event: ImportProgress) -> None:
                label = STEP_LABELS[event.step]
                progress.update(
                    task_id,
                    completed=event.overall,
                    description=f"{escape(short_name(event.file_name))} [dim]{label}[/]",
                )

            return on_progress

        with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
            futures = []
            for path in files:
                task_id = progress.add_task(escape(short_name(path.name)), total=100)
                futures.append(
                    executor.submit(
                        pipeline.run, path, None, make_callback(task_id), cancel_event
                    )
                )
            return [future.result() for future in futures]


def display_results(files: list[Path], results: list[ImportResult], console: Console) -> None:
    table = Table(title="Import Results", show_header=True, header_style="bold cyan")
    table.add_column("File", style="white")
    table.add_column("Status", justify="center")
    table.add_column("Details")

    for path, result in zip(files, results):
        if result.success:
            table.add_row(escape(path.name), "[green]✓[/]", f"{escape(result.title or '')} [dim]({result.record_id[:8]})[/]")
        else:
            table.add_row(escape(path.name), "[red]✗[/]", f"[red]{escape(result.message)}[/]")

    console.print(table)


def execute_import(
    files: list[Path],
    config: LibraryConfig,
    workers: int,
    console: Console,
    quiet: bool = False,
) -> list[ImportResult]:
    """Execute the import command."""
    pipeline = ImportPipeline(config.storage(), config.catalog())
    cancel_event = threading.Event()

    # Ctrl+C cancels in-flight imports at their next stage boundary
    original_handler = signal.getsignal(signal.SIGINT)

    def handle_interrupt(signum: int, frame: object) -> None:
        cancel_event.set()
        console.print("\n[yellow]Interrupt received. Cancelling imports...[/]")

    signal.signal(signal.SIGINT, handle_interrupt)

    try:
        results = import_files(files, pipeline, workers, console, cancel_event, quiet)
    finally:
        signal.signal(signal.SIGINT, original_handler)

    if not quiet:
        console.print()
        display_results(files, results, console)

    succeeded = sum(1 for r in results if r.success)
    console.print(f"[dim]Imported {succeeded} of {len(results)} file(s)[/]")
    return results
