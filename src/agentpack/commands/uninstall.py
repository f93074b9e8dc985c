"""Uninstall command for removing installed packages."""

from pathlib import Path

import click

from agentpack import api
from agentpack.error_boundary import cli_error_boundary


@click.command()
@click.argument("package_name")
@click.option(
    "--workspace",
    "-w",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Workspace directory (default: current directory).",
)
@cli_error_boundary
def uninstall(package_name: str, workspace: Path) -> None:
    """Remove an installed package.

    This removes every file the package owns, removes its contributions
    from shared files, and deletes its ledger entry.
    """
    result = api.uninstall(package_name, workspace)

    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)

    click.echo(f"✓ Removed {package_name}")
    click.echo(f"  Deleted {len(result.removed_files)} file(s)")
    if result.updated_files:
        click.echo(f"  Updated {len(result.updated_files)} shared file(s)")
