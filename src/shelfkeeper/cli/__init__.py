# ABOUTME: CLI package for Shelfkeeper, built on Click.
# ABOUTME: Defines the root command group, wires logging, and registers subcommands.

import logging

import click
from rich.logging import RichHandler

from shelfkeeper.cli.commands import (
    candidates_cmd,
    consolidate_cmd,
    edit_cmd,
    import_cmd,
    jobs_cmd,
    library_cmd,
    proposals_cmd,
    refresh_cmd,
    scores_cmd,
    settings_cmd,
)


@click.group()
@click.version_option(package_name="shelfkeeper")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """Shelfkeeper - a self-hosted library catalog with metadata refresh."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


cli.add_command(library_cmd.library)
cli.add_command(import_cmd.import_command)
cli.add_command(refresh_cmd.refresh)
cli.add_command(jobs_cmd.jobs)
cli.add_command(proposals_cmd.proposals)
cli.add_command(edit_cmd.edit)
cli.add_command(candidates_cmd.candidates)
cli.add_command(consolidate_cmd.consolidate)
cli.add_command(scores_cmd.scores)
cli.add_command(settings_cmd.settings)
