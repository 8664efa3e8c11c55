"""Main CLI application."""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from readshelf.config import HOME_ENV_VAR, LOG_FILE_ENV_VAR, LibraryConfig, default_library_root
from readshelf.core.converter_factory import ConverterFactory
from readshelf.logging_setup import configure_logging

app = typer.Typer(
    name="readshelf",
    help="Import ebooks into a local library and read them in the terminal.",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    if value:
        from readshelf import __version__

        console.print(f"readshelf {__version__}")
        raise typer.Exit()


def get_config(ctx: typer.Context) -> LibraryConfig:
    if ctx.obj is None:
        ctx.obj = LibraryConfig()
    return ctx.obj


@app.callback()
def main(
    ctx: typer.Context,
    library: Annotated[
        Optional[Path],
        typer.Option(
            "--library",
            "-L",
            envvar=HOME_ENV_VAR,
            help="Library directory (default: ~/.readshelf)",
            file_okay=False,
            dir_okay=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show debug logging",
        ),
    ] = False,
    log_file: Annotated[
        Optional[Path],
        typer.Option(
            "--log-file",
            envvar=LOG_FILE_ENV_VAR,
            help="Also write debug logs to this file (relative paths are inside the library)",
            dir_okay=False,
        ),
    ] = None,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
) -> None:
    """Import ebooks into a local library and read them in the terminal."""
    config = LibraryConfig(
        root=(library or default_library_root()).expanduser(),
        log_file=log_file.expanduser() if log_file else None,
    )
    configure_logging(verbose=verbose, log_file=config.log_path)
    ctx.obj = config


@app.command("import")
def import_books(
    ctx: typer.Context,
    files: Annotated[
        list[Path],
        typer.Argument(
            help="Book files to import (EPUB, PDF, DOC/DOCX, TXT, Markdown, MOBI)",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
    workers: Annotated[
        Optional[int],
        typer.Option(
            "--workers",
            "-w",
            help="Number of files imported in parallel",
            min=1,
        ),
    ] = None,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress progress output",
        ),
    ] = False,
) -> None:
    """Import book files into the library."""
    config = get_config(ctx)

    unsupported = [f for f in files if not ConverterFactory.is_supported(f)]
    for path in unsupported:
        console.print(f"[yellow]Skipping unsupported file: {path.name}[/]")
    files = [f for f in files if f not in unsupported]
    if not files:
        console.print("[red]Error: no supported files to import[/]")
        supported = ", ".join(ConverterFactory.SUPPORTED_FORMATS)
        console.print(f"[dim]Supported formats: {supported}[/]")
        raise typer.Exit(1)

    try:
        from readshelf.commands.ingest import execute_import

        results = execute_import(
            files=files,
            config=config,
            workers=workers or config.import_workers,
            console=console,
            quiet=quiet,
        )
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)

    if not all(result.success for result in results):
        raise typer.Exit(1)


@app.command("list")
def list_books(ctx: typer.Context) -> None:
    """List the books in the library."""
    try:
        from readshelf.commands.library import execute_list

        execute_list(get_config(ctx), console)
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


@app.command()
def remove(
    ctx: typer.Context,
    book_id: Annotated[str, typer.Argument(help="Book ID (or unique prefix, see 'readshelf list')")],
) -> None:
    """Remove a book and its stored files from the library."""
    try:
        from readshelf.commands.library import execute_remove

        execute_remove(book_id, get_config(ctx), console)
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


@app.command()
def toc(
    ctx: typer.Context,
    book_id: Annotated[str, typer.Argument(help="Book ID (or unique prefix)")],
) -> None:
    """Show a book's table of contents."""
    try:
        from readshelf.commands.read import execute_toc

        execute_toc(book_id, get_config(ctx), console)
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


@app.command()
def read(
    ctx: typer.Context,
    book_id: Annotated[str, typer.Argument(help="Book ID (or unique prefix)")],
    page: Annotated[
        Optional[int],
        typer.Option(
            "--page",
            "-p",
            help="Page number to show (default: last read page)",
            min=1,
        ),
    ] = None,
    chapter: Annotated[
        Optional[int],
        typer.Option(
            "--chapter",
            "-c",
            help="Chapter number to jump to (see 'readshelf toc')",
            min=1,
        ),
    ] = None,
    markdown: Annotated[
        bool,
        typer.Option(
            "--markdown",
            "-m",
            help="Render Markdown and EPUB pages with formatting",
        ),
    ] = False,
) -> None:
    """Show one page of a book and remember the position."""
    if page is not None and chapter is not None:
        console.print("[red]Error: use either --page or --chapter, not both[/]")
        raise typer.Exit(1)

    try:
        from readshelf.commands.read import execute_read

        execute_read(book_id, page, chapter, markdown, get_config(ctx), console)
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


@app.command()
def search(
    ctx: typer.Context,
    book_id: Annotated[str, typer.Argument(help="Book ID (or unique prefix)")],
    query: Annotated[str, typer.Argument(help="Text to search for (case-insensitive)")],
) -> None:
    """Search a book's text."""
    try:
        from readshelf.commands.read import execute_search

        execute_search(book_id, query, get_config(ctx), console)
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


@app.command()
def ocr(
    ctx: typer.Context,
    file_path: Annotated[
        Path,
        typer.Argument(
            help="Text file produced by an OCR tool",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
    import_text: Annotated[
        bool,
        typer.Option(
            "--import",
            "-i",
            help="Import the cleaned text into the library",
        ),
    ] = False,
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--output",
            "-o",
            help="Save the cleaned text to this file",
        ),
    ] = None,
) -> None:
    """Repair line wrapping in OCR output, then show, save or import it."""
    try:
        from readshelf.commands.ocr import execute_ocr

        execute_ocr(file_path, import_text, output, get_config(ctx), console)
    except Exception as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
