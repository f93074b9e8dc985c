"""List command for showing installed packages."""

from pathlib import Path

import click

from agentpack import api
from agentpack.error_boundary import cli_error_boundary


@click.command(name="list")
@click.option(
    "--workspace",
    "-w",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Workspace directory (default: current directory).",
)
@cli_error_boundary
def list_installed_packages(workspace: Path) -> None:
    """List all installed packages in the workspace."""
    installed = api.list_installed(workspace)

    if len(installed) == 0:
        click.echo("No packages installed")
        return

    click.echo(f"Installed {len(installed)} package(s):\n")

    for package in installed:
        line = (
            f"  {package.name:<40} {package.version:<10} "
            f"{package.file_keys} file(s), {package.directory_keys} dir(s)"
        )
        click.echo(line)
