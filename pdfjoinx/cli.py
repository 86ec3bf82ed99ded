"""
Command-line interface for pdfjoinx.
"""

from __future__ import annotations

import logging
from pathlib import Path
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .core.utils import get_logger
from .exceptions import PdfMergeError
from .merge import MergeOptions, PdfMerger, get_pdf_info

LOGGER = logging.getLogger("pdfjoinx.cli")

console = Console()


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", count=True, help="Increase log output (-v info, -vv debug)")
@click.pass_context
def cli(ctx, verbose):
    """
    pdfjoinx - merge PDF documents structurally, without re-rendering pages.
    """
    ctx.ensure_object(dict)
    if verbose:
        logger = get_logger("pdfjoinx")
        logger.setLevel(logging.DEBUG if verbose > 1 else logging.INFO)


@cli.command(name="merge")
@click.argument("inputs", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", required=True, type=click.Path(dir_okay=False, path_type=Path), help="Merged PDF path")
@click.option("--strict", is_flag=True, help="Abort when any input cannot be parsed")
@click.option("--allow-empty", is_flag=True, help="Write an empty document when no input is usable")
@click.option("--xref-stream", is_flag=True, help="Write a compressed cross-reference stream (PDF 1.5)")
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Number of parsing threads")
@click.option("--bookmark", "bookmarks", multiple=True, help="Outline title, one per input in order")
@click.option("--no-metadata", is_flag=True, help="Do not copy the first document's information")
@click.option("--title", default=None, help="Title of the merged document")
@click.option("--author", default=None, help="Author of the merged document")
@click.pass_context
def merge_command(ctx, inputs, output, strict, allow_empty, xref_stream, workers, bookmarks, no_metadata, title, author):
    """
    Merge INPUTS into a single PDF.

    Examples:

        pdfjoinx merge a.pdf b.pdf -o merged.pdf

        pdfjoinx merge a.pdf b.pdf -o merged.pdf --bookmark Intro --bookmark Body
    """
    config = dict(ctx.obj or {})
    config.update(
        strict=strict,
        allow_empty=allow_empty,
        xref_stream=xref_stream,
        workers=workers,
        metadata=not no_metadata,
    )
    if bookmarks:
        config["bookmarks"] = list(bookmarks)
    document_info = {key: value for key, value in (("title", title), ("author", author)) if value}
    if document_info:
        config["document_info"] = document_info

    try:
        options = MergeOptions.from_mapping(config)
        console.print(f"\n[bold cyan]Merging {len(inputs)} file(s)...[/bold cyan]")
        result = PdfMerger(options).merge_files(inputs, output)
    except PdfMergeError as e:
        LOGGER.debug("Merge failed", exc_info=True)
        console.print(f"\n[bold red]✗ Error:[/bold red] {escape(str(e))}")
        sys.exit(1)

    for skipped in result.skipped:
        console.print(
            f"[yellow]! Skipped {escape(inputs[skipped.index].name)}:[/yellow] {escape(skipped.error.message)}"
        )
    console.print(
        f"\n[bold green]✓ Merged {result.documents} document(s) into {result.page_count} page(s)[/bold green]"
    )
    console.print(f"[dim]Output: {output} ({_format_size(len(result.data))})[/dim]")


@cli.command(name="info")
@click.argument("input_pdf", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def show_info(input_pdf):
    """
    Display structural information about a PDF file.

    Example:

        pdfjoinx info input.pdf
    """
    try:
        info = get_pdf_info(input_pdf)
    except PdfMergeError as e:
        console.print(f"[bold red]✗ Error:[/bold red] {escape(str(e))}")
        sys.exit(1)

    table = Table(title="PDF Information", show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("File", input_pdf.name)
    table.add_row("Version", info.version)
    table.add_row("Pages", str(info.num_pages))
    table.add_row("Objects", str(info.num_objects))
    table.add_row("Cross-reference", info.xref_kind)
    for key, value in info.metadata.items():
        table.add_row(key.lstrip("/"), str(value))

    console.print(table)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
