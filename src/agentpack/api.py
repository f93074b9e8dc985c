"""Public API for agentpack.

This module provides a stable, high-level interface used by the CLI and by
external tools that embed agentpack as a library. Each function loads
project configuration and platform definitions for the workspace, then
delegates to the install, save and uninstall pipelines.

Example usage:
    from pathlib import Path
    from agentpack.api import install, save

    batch = install([Path("packages/reviewer")], Path("."), platforms=["claude"])
    for result in batch.results:
        print(result.package_name, result.installed_files)

    saved = save("@acme/reviewer", Path("."))
    print(saved.written)
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from agentpack.errors import ConfigError
from agentpack.install.installer import BatchResult, InstallOptions, install_batch
from agentpack.install.uninstall import UninstallResult, uninstall_package
from agentpack.io.config import create_default_config, load_project_config
from agentpack.io.ledger import load_ledger
from agentpack.io.manifest import load_package_manifest
from agentpack.io.platforms import detect_platforms, load_platforms, select_platforms
from agentpack.models.config import ProjectConfig
from agentpack.models.flow import PlatformDefinition
from agentpack.models.ledger import is_dir_key
from agentpack.models.package import ResolvedPackage
from agentpack.models.plan import ConflictStrategy
from agentpack.prompts import ConflictPrompt, SavePrompt
from agentpack.save.saver import SaveResult, save_package

__all__ = [
    "InstalledPackage",
    "install",
    "list_installed",
    "save",
    "uninstall",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstalledPackage:
    """Summary of one ledger entry."""

    name: str
    version: str
    path: str
    file_keys: int
    directory_keys: int


def _project_config(workspace_root: Path) -> ProjectConfig:
    config = load_project_config(workspace_root)
    if config is None:
        return create_default_config()
    return config


def resolve_platforms(
    workspace_root: Path, requested: Sequence[str], config: ProjectConfig
) -> dict[str, PlatformDefinition]:
    """Platforms for a run: explicit request, then project config, then detection.

    When nothing is requested, configured or detected, every enabled platform
    is used.
    """
    available = load_platforms(workspace_root)
    if requested:
        return select_platforms(available, list(requested))
    if config.platforms:
        return select_platforms(available, config.platforms)
    detected = detect_platforms(available, workspace_root)
    if detected:
        logger.debug("Detected platforms: %s", ", ".join(detected))
    return select_platforms(available, detected)


def install(
    package_dirs: Sequence[Path],
    workspace_root: Path,
    *,
    platforms: Sequence[str] = (),
    strategy: ConflictStrategy | None = None,
    namespace_threshold: float | None = None,
    disable_namespacing: bool = False,
    resources: list[str] | None = None,
    prompt: ConflictPrompt | None = None,
) -> BatchResult:
    """Install local package directories into a workspace.

    Args:
        package_dirs: Package directories, each holding a package.yml, in
            install order
        workspace_root: Workspace to install into (must exist)
        platforms: Platform ids; empty uses configured or detected platforms
        strategy: Conflict strategy; None uses the project default
        namespace_threshold: Collision share that namespaces a package;
            None uses the project default
        disable_namespacing: Always relocate colliding files individually
        resources: Explicit package-relative resources to install
        prompt: Interactive port for the "ask" strategy

    Returns:
        BatchResult with per-package results and failures

    Raises:
        FileNotFoundError: If workspace_root doesn't exist
        ConfigError: If configuration or platform definitions are invalid
        LedgerError: If the ledger cannot be read
    """
    if not workspace_root.exists():
        raise FileNotFoundError(f"Workspace directory does not exist: {workspace_root}")

    config = _project_config(workspace_root)
    selected = resolve_platforms(workspace_root, platforms, config)
    if not selected:
        raise ConfigError("No platforms selected")

    threshold = config.namespace_threshold
    if namespace_threshold is not None:
        threshold = namespace_threshold
    options = InstallOptions(
        platforms=selected,
        strategy=strategy if strategy is not None else config.default_strategy,
        prompt=prompt,
        namespace_threshold=None if disable_namespacing else threshold,
    )

    packages: list[ResolvedPackage] = []
    manifest_failures: dict[str, str] = {}
    for package_dir in package_dirs:
        try:
            manifest = load_package_manifest(package_dir)
        except ConfigError as e:
            logger.warning("Skipping %s: %s", package_dir, e)
            manifest_failures[str(package_dir)] = str(e)
            continue
        packages.append(
            ResolvedPackage(
                name=manifest.name,
                version=manifest.version,
                content_root=package_dir.resolve(),
                resources=resources,
            )
        )

    batch = install_batch(packages, workspace_root, options)
    return BatchResult(results=batch.results, failures={**manifest_failures, **batch.failures})


def save(
    package_name: str,
    workspace_root: Path,
    *,
    package_root: Path | None = None,
    platforms: Sequence[str] = (),
    prompt: SavePrompt | None = None,
) -> SaveResult:
    """Write workspace edits of an installed package back to its source."""
    config = _project_config(workspace_root)
    available = load_platforms(workspace_root)
    selected = select_platforms(available, list(platforms or config.platforms))
    return save_package(
        package_name, workspace_root, selected, package_root=package_root, prompt=prompt
    )


def uninstall(package_name: str, workspace_root: Path) -> UninstallResult:
    """Remove an installed package's files and ledger entry."""
    return uninstall_package(package_name, workspace_root)


def list_installed(workspace_root: Path) -> list[InstalledPackage]:
    """Installed packages in name order."""
    ledger = load_ledger(workspace_root)
    installed: list[InstalledPackage] = []
    for name in sorted(ledger.packages):
        entry = ledger.packages[name]
        directory_keys = sum(1 for key in entry.files if is_dir_key(key))
        installed.append(
            InstalledPackage(
                name=name,
                version=entry.version,
                path=entry.path,
                file_keys=len(entry.files) - directory_keys,
                directory_keys=directory_keys,
            )
        )
    return installed
