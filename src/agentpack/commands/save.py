"""Save command for writing workspace edits back to package source."""

import sys
from pathlib import Path

import click

from agentpack import api
from agentpack.error_boundary import cli_error_boundary
from agentpack.prompts import ClickSavePrompt


@click.command()
@click.argument("package_name")
@click.option(
    "--source",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Package source directory (default: the path recorded at install).",
)
@click.option(
    "--platform",
    "-p",
    "platforms",
    multiple=True,
    help="Platform whose workspace files are considered (repeatable).",
)
@click.option(
    "--workspace",
    "-w",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Workspace directory (default: current directory).",
)
@cli_error_boundary
def save(
    package_name: str, source: Path | None, platforms: tuple[str, ...], workspace: Path
) -> None:
    """Save workspace edits of an installed package back to its source.

    Files that already match the package source are skipped, so running
    save twice writes nothing the second time.
    """
    prompt = ClickSavePrompt() if sys.stdin.isatty() else None
    result = api.save(
        package_name, workspace, package_root=source, platforms=platforms, prompt=prompt
    )

    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)

    written = result.written
    if not written:
        click.echo(f"No changes to save for {package_name}")
        return

    click.echo(f"✓ Saved {len(written)} file(s) to {result.package_root}")
    for path in written:
        click.echo(f"  {path}")
