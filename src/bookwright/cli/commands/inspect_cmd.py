# ABOUTME: The `bookwright inspect` command for viewing EPUB metadata.
# ABOUTME: Shows extracted metadata, language notes, extra identifiers and cover presence.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from bookwright.formats.epub import EpubReadError, open_epub
from bookwright.opf.cover import locate_cover
from bookwright.opf.extractor import extract_metadata

console = Console()


def _people(names: list[str]) -> str:
    return ", ".join(names) if names else "[dim]unknown[/dim]"


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def inspect(path: Path) -> None:
    """Show metadata extracted from an EPUB file."""
    try:
        package = open_epub(path)
    except EpubReadError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from exc

    result = extract_metadata(package.document)
    meta = result.metadata

    table = Table(title=str(path.name), show_header=False, pad_edge=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("EPUB Version", "2" if package.document.is_v2 else "3")
    table.add_row("Title", meta.title or "[dim]none[/dim]")
    if meta.subtitle:
        table.add_row("Subtitle", meta.subtitle)
    authors = [
        a.name if a.role == "aut" else f"{a.name} ({a.role})" for a in meta.authors
    ]
    table.add_row("Authors", _people(authors))
    if meta.contributors:
        table.add_row("Contributors", _people([f"{c.name} ({c.role})" for c in meta.contributors]))
    table.add_row("Language", meta.language or "[dim]unknown[/dim]")
    table.add_row("Publisher", meta.publisher or "[dim]unknown[/dim]")
    table.add_row("Date", meta.date or "[dim]unknown[/dim]")
    table.add_row("ISBN", meta.isbn or "[dim]none[/dim]")
    table.add_row("Description", meta.description or "[dim]none[/dim]")
    table.add_row("Rights", meta.rights or "[dim]none[/dim]")
    if meta.series is not None:
        series = meta.series.name
        if meta.series.index:
            series = f"{series} #{meta.series.index}"
        table.add_row("Series", series)
    else:
        table.add_row("Series", "[dim]none[/dim]")
    if meta.subjects:
        table.add_row("Subjects", ", ".join(meta.subjects))
    if meta.identifiers:
        ids_str = ", ".join(
            f"{r.scheme or r.type_refinement or r.id or '?'}={r.value}" for r in meta.identifiers
        )
        table.add_row("Identifiers", ids_str)
    cover = locate_cover(package.document)
    table.add_row("Cover", cover.href if cover is not None else "no")

    console.print(table)

    if result.language_original:
        console.print(
            f"[dim]Language stored as {result.language_original!r}, "
            f"shown as {meta.language!r}[/dim]"
        )
    if result.language_warning:
        console.print(f"[yellow]Warning:[/yellow] {result.language_warning}")
