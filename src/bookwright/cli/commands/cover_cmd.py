# ABOUTME: The `bookwright cover` command for extracting an EPUB's cover image.
# ABOUTME: Writes the cover bytes located by the cover rules to a file.

from pathlib import Path

import click
from rich.console import Console

from bookwright.formats.epub import EpubReadError, open_epub, read_cover_image

console = Console()


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
def cover(path: Path, output: Path) -> None:
    """Save the cover image of an EPUB file to OUTPUT."""
    try:
        package = open_epub(path)
    except EpubReadError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from exc

    data = read_cover_image(package)
    if data is None:
        console.print(f"[red]Error:[/red] No cover image found in {path.name}")
        raise SystemExit(1)

    output.write_bytes(data)
    console.print(f"Saved cover ({len(data)} bytes) to [bold]{output}[/bold]")
