"""Install command for installing packages into a workspace."""

import sys
from pathlib import Path

import click

from agentpack import api
from agentpack.error_boundary import cli_error_boundary
from agentpack.models.plan import validate_conflict_strategy
from agentpack.prompts import ClickConflictPrompt


@click.command()
@click.argument(
    "package_dirs",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option(
    "--platform",
    "-p",
    "platforms",
    multiple=True,
    help="Platform to install into (repeatable). Defaults to configured or detected platforms.",
)
@click.option(
    "--strategy",
    type=click.Choice(["overwrite", "skip", "keep-both", "ask"]),
    default=None,
    help="How to resolve collisions with existing files.",
)
@click.option(
    "--namespace-threshold",
    type=click.FloatRange(0.0, 1.0),
    default=None,
    help="Share of colliding files that namespaces the whole package.",
)
@click.option(
    "--no-namespace",
    is_flag=True,
    help="Relocate colliding files individually instead of namespacing the package.",
)
@click.option(
    "--resource",
    "-r",
    "resources",
    multiple=True,
    help="Install only this package-relative path (repeatable).",
)
@click.option(
    "--workspace",
    "-w",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Workspace directory (default: current directory).",
)
@cli_error_boundary
def install(
    package_dirs: tuple[Path, ...],
    platforms: tuple[str, ...],
    strategy: str | None,
    namespace_threshold: float | None,
    no_namespace: bool,
    resources: tuple[str, ...],
    workspace: Path,
) -> None:
    """Install packages or update them if already installed.

    This command is idempotent - installing the same package again leaves
    the workspace and ledger unchanged.

    Examples:

        # Install a package for every detected platform
        agentpack install ./packages/reviewer

        # Install two packages for Claude only, keeping both on collisions
        agentpack install ./a ./b --platform claude --strategy keep-both
    """
    prompt = ClickConflictPrompt() if sys.stdin.isatty() else None
    batch = api.install(
        list(package_dirs),
        workspace,
        platforms=platforms,
        strategy=validate_conflict_strategy(strategy) if strategy is not None else None,
        namespace_threshold=namespace_threshold,
        disable_namespacing=no_namespace,
        resources=list(resources) if resources else None,
        prompt=prompt,
    )

    for result in batch.results:
        click.echo(
            f"✓ Installed {result.package_name} v{result.version} "
            f"({len(result.installed_files)} created, {len(result.updated_files)} updated, "
            f"{len(result.unchanged_files)} unchanged)"
        )
        if result.namespace_slug is not None:
            click.echo(f"  Namespaced under '{result.namespace_slug}'")
        for note in result.notes:
            click.echo(f"  {note}")
        for warning in result.warnings:
            click.echo(f"  Warning: {warning}", err=True)
        for resource, message in result.failed_resources.items():
            click.echo(f"  Warning: resource {resource} skipped: {message}", err=True)

    for name, message in batch.failures.items():
        click.echo(f"✗ Failed to install {name}: {message}", err=True)

    if not batch.succeeded:
        raise SystemExit(1)
