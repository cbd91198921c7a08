# ABOUTME: CLI package for Bookwright, built on Click.
# ABOUTME: Defines the root command group, logging setup, and registers subcommands.

import logging

import click

from bookwright.cli.commands import cover_cmd, edit_cmd, inspect_cmd


@click.group()
@click.version_option(package_name="bookwright")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """Bookwright - read and rewrite EPUB package metadata."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


cli.add_command(inspect_cmd.inspect)
cli.add_command(edit_cmd.edit)
cli.add_command(cover_cmd.cover)
