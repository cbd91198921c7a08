# ABOUTME: The `bookwright edit` command for rewriting EPUB metadata.
# ABOUTME: Builds a MetadataUpdate from options and writes it in place or to a verified copy.

from dataclasses import fields
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from bookwright.core.pipeline import WriteResult, apply_metadata_safely
from bookwright.formats.epub import EpubReadError, write_epub_metadata
from bookwright.metadata.normalizer import normalize_metadata
from bookwright.metadata.types import Author, MetadataUpdate, Series

console = Console()


def _build_update(
    title: str | None,
    subtitle: str | None,
    authors: tuple[str, ...],
    language: str | None,
    isbn: str | None,
    publisher: str | None,
    date: str | None,
    description: str | None,
    rights: str | None,
    series: str | None,
    series_index: str | None,
    subjects: tuple[str, ...],
    clear_subjects: bool,
) -> MetadataUpdate:
    update = MetadataUpdate(
        title=title,
        subtitle=subtitle,
        language=language,
        identifier=isbn,
        publisher=publisher,
        date=date,
        description=description,
        rights=rights,
    )
    if authors:
        update.authors = [Author(name=name) for name in authors]
    if series is not None:
        update.series = Series(name=series, index=series_index)
    if clear_subjects:
        update.subjects = []
    elif subjects:
        update.subjects = list(subjects)
    return update


def _is_empty(update: MetadataUpdate) -> bool:
    return all(getattr(update, f.name) is None for f in fields(update))


def _print_verification(result: WriteResult) -> None:
    table = Table(show_header=True, pad_edge=False)
    table.add_column("Field", style="bold")
    table.add_column("Expected")
    table.add_column("Actual")
    table.add_column("OK")
    for check in result.verified_fields:
        mark = "[green]yes[/green]" if check.passed else "[red]no[/red]"
        table.add_row(check.field, check.expected or "", check.actual or "", mark)
    console.print(table)


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--title", default=None, help="New title.")
@click.option("--subtitle", default=None, help="Subtitle, stored as 'Title: Subtitle'.")
@click.option("--author", "authors", multiple=True, help="Author name (repeatable).")
@click.option("--language", default=None, help="Language code, e.g. en or eng.")
@click.option("--isbn", default=None, help="ISBN-10 or ISBN-13.")
@click.option("--publisher", default=None, help="Publisher name.")
@click.option("--date", default=None, help="Publication date.")
@click.option("--description", default=None, help="Description text.")
@click.option("--rights", default=None, help="Rights statement.")
@click.option("--series", default=None, help="Series name; an empty string removes the series.")
@click.option("--series-index", default=None, help="Position within the series.")
@click.option("--subject", "subjects", multiple=True, help="Subject (repeatable).")
@click.option("--clear-subjects", is_flag=True, help="Remove every subject.")
@click.option(
    "--cover",
    "cover_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Replacement cover image.",
)
@click.option("--normalize", is_flag=True, help="Clean up the values before writing.")
@click.option(
    "-o",
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Write a verified copy here instead of editing in place.",
)
def edit(
    path: Path,
    title: str | None,
    subtitle: str | None,
    authors: tuple[str, ...],
    language: str | None,
    isbn: str | None,
    publisher: str | None,
    date: str | None,
    description: str | None,
    rights: str | None,
    series: str | None,
    series_index: str | None,
    subjects: tuple[str, ...],
    clear_subjects: bool,
    cover_path: Path | None,
    normalize: bool,
    output_dir: Path | None,
) -> None:
    """Update metadata fields of an EPUB file."""
    if series_index is not None and series is None:
        console.print("[red]Error:[/red] --series-index requires --series")
        raise SystemExit(1)

    update = _build_update(
        title, subtitle, authors, language, isbn, publisher, date,
        description, rights, series, series_index, subjects, clear_subjects,
    )
    cover = cover_path.read_bytes() if cover_path else None

    if _is_empty(update) and cover is None:
        console.print("[yellow]Nothing to change.[/yellow]")
        return

    if normalize:
        normalized = normalize_metadata(update)
        update = normalized.normalized
        for warning in normalized.warnings:
            console.print(f"[yellow]Note:[/yellow] {warning}")

    if output_dir is None:
        try:
            merge = write_epub_metadata(path, update, cover=cover)
        except EpubReadError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise SystemExit(1) from exc
        for warning in merge.warnings:
            console.print(f"[yellow]Warning:[/yellow] {warning}")
        console.print(f"Updated [bold]{path.name}[/bold].")
        return

    result = apply_metadata_safely(path, update, output_dir, cover=cover)
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    if result.verified_fields:
        _print_verification(result)
    if not result.success:
        console.print(f"[red]Error:[/red] {result.error}")
        raise SystemExit(1)
    console.print(f"Wrote [bold]{result.path}[/bold].")
