"""Package installation: flows to files on disk to ledger entry.

Pipeline for one package:

1. Resolve every platform's export flows into planned targets
2. Arbitrate collisions against other packages' ownership, namespacing the
   whole package when the collision share reaches the threshold
3. Decide directory vs file tracking per group
4. Write targets, re-validating directory decisions just before writing
5. Merge the resulting mapping into the package's ledger entry

Packages in a batch install sequentially. A failed package keeps its ledger
entry untouched, but files it already wrote stay on disk; a re-run is
idempotent.
"""

import hashlib
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import click

from agentpack.errors import AgentPackError, InstallError, LedgerError, ResourceValidationError
from agentpack.flows.context import FlowContext
from agentpack.flows.executor import WriteOutcome, execute_target, render_bytes
from agentpack.flows.resolver import resolve_flows
from agentpack.install.conflicts import resolve_conflicts
from agentpack.install.namespace import allocate_slugs, namespace_flow
from agentpack.install.ownership import build_ownership_context
from agentpack.install.planner import build_file_mapping, plan_groups, revalidate_group
from agentpack.io.files import iter_relative_files
from agentpack.io.ledger import load_ledger, modify_ledger
from agentpack.models.flow import Flow, PlatformDefinition
from agentpack.models.package import ResolvedPackage
from agentpack.models.plan import ConflictStrategy, PlannedTarget
from agentpack.operations.ledger_merge import merge_entry, transfer_paths
from agentpack.prompts import ConflictPrompt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstallOptions:
    """Caller policy for an install run.

    Attributes:
        platforms: Platforms to install into, keyed by id
        strategy: How collisions with existing files are resolved
        prompt: Interactive port for the "ask" strategy
        namespace_threshold: Share of colliding targets (0.0-1.0) that
            namespaces the whole package; None relocates per file only
    """

    platforms: dict[str, PlatformDefinition]
    strategy: ConflictStrategy = "ask"
    prompt: ConflictPrompt | None = None
    namespace_threshold: float | None = 0.0


@dataclass(frozen=True)
class InstallResult:
    """Outcome of installing one package."""

    package_name: str
    version: str
    installed_files: list[str] = field(default_factory=list)
    updated_files: list[str] = field(default_factory=list)
    unchanged_files: list[str] = field(default_factory=list)
    namespace_slug: str | None = None
    relocated_files: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    failed_resources: dict[str, str] = field(default_factory=dict)

    @property
    def namespaced(self) -> bool:
        return self.namespace_slug is not None


@dataclass(frozen=True)
class BatchResult:
    """Aggregated outcome of installing several packages."""

    results: list[InstallResult]
    failures: dict[str, str]

    @property
    def succeeded(self) -> bool:
        return not self.failures


def validate_resource(package_root: Path, resource: str) -> str:
    """Normalize an explicitly requested resource path.

    Args:
        package_root: Package content root
        resource: Package-relative file or directory path

    Returns:
        Normalized POSIX path; directories carry a trailing ``/``

    Raises:
        ResourceValidationError: If the path resolves outside the package root
            or does not exist
    """
    root = package_root.resolve()
    candidate = (package_root / resource).resolve()
    if candidate != root and root not in candidate.parents:
        raise ResourceValidationError(f"Resource {resource} is outside package root {package_root}")
    if not candidate.exists():
        raise ResourceValidationError(f"Resource {resource} does not exist in {package_root}")

    relative = candidate.relative_to(root).as_posix()
    if candidate.is_dir():
        return "" if relative == "." else relative + "/"
    return relative


def _selects(selection: list[str], registry_key: str) -> bool:
    for resource in selection:
        if resource == "" or registry_key == resource:
            return True
        if resource.endswith("/") and registry_key.startswith(resource):
            return True
    return False


def package_content_hash(package_root: Path, source_files: Sequence[str]) -> str:
    """Digest over a package's relative paths and file bytes."""
    digest = hashlib.sha256()
    for relative in sorted(source_files):
        digest.update(relative.encode("utf-8"))
        digest.update(b"\0")
        digest.update((package_root / relative).read_bytes())
    return digest.hexdigest()


def _build_contexts(
    package: ResolvedPackage, workspace_root: Path, options: InstallOptions
) -> dict[str, FlowContext]:
    known = frozenset(options.platforms)
    return {
        platform_id: FlowContext.create(
            platform=platform_id,
            workspace_root=workspace_root,
            package_root=package.content_root,
            package_name=package.name,
            known_platforms=known,
            platform_variables=definition.variables,
        )
        for platform_id, definition in options.platforms.items()
    }


def _resolve_all(
    flows: dict[str, list[Flow]],
    contexts: dict[str, FlowContext],
    selection: list[str] | None,
) -> tuple[list[PlannedTarget], list[str]]:
    targets: list[PlannedTarget] = []
    warnings: list[str] = []
    for platform_id, platform_flows in flows.items():
        resolution = resolve_flows(platform_flows, contexts[platform_id])
        warnings.extend(resolution.warnings)
        for target in resolution.targets:
            if selection is None or _selects(selection, target.registry_key):
                targets.append(target)
    return targets, warnings


def _merge_keys(outcomes: list[WriteOutcome]) -> dict[str, list[str]]:
    keys: dict[str, list[str]] = {}
    for outcome in outcomes:
        if outcome.target.is_merge:
            keys.setdefault(outcome.target.relative_path, []).extend(outcome.merge_keys)
    return keys


def install_package(
    package: ResolvedPackage, workspace_root: Path, options: InstallOptions
) -> InstallResult:
    """Install one resolved package into a workspace.

    Args:
        package: Package identity and local content root
        workspace_root: Workspace targets are written under
        options: Platforms and conflict policy

    Returns:
        InstallResult describing written files and conflict notes

    Raises:
        InstallError: If the package has nothing installable, or every one
            of its targets failed to write
        LedgerError: If the ledger cannot be read
    """
    package_root = package.content_root
    if not package_root.is_dir():
        raise InstallError(package.name, f"content root not found: {package_root}")

    failed_resources: dict[str, str] = {}
    selection: list[str] | None = None
    if package.resources is not None:
        selection = []
        for resource in package.resources:
            try:
                selection.append(validate_resource(package_root, resource))
            except ResourceValidationError as e:
                logger.warning("Skipping resource %s of %s: %s", resource, package.name, e)
                failed_resources[resource] = str(e)
        if not selection:
            raise InstallError(package.name, "no valid resources selected")

    source_files = iter_relative_files(package_root)
    ledger = load_ledger(workspace_root)
    ownership = build_ownership_context(ledger, package.name, workspace_root)
    contexts = _build_contexts(package, workspace_root, options)

    flows = {pid: list(definition.export) for pid, definition in options.platforms.items()}
    targets, warnings = _resolve_all(flows, contexts, selection)

    def render(target: PlannedTarget) -> bytes:
        return render_bytes(target, contexts[target.platform])

    other_names = [name for name in ledger.packages if name != package.name]
    existing_slugs = list(allocate_slugs(other_names).values())

    resolution = resolve_conflicts(
        targets,
        package_name=package.name,
        workspace_root=workspace_root,
        ownership=ownership,
        strategy=options.strategy,
        render=render,
        prompt=options.prompt,
        namespace_threshold=options.namespace_threshold,
        existing_slugs=existing_slugs,
    )
    notes = list(resolution.notes)
    namespace_slug = resolution.namespace_slug

    if namespace_slug is not None:
        namespaced = {
            pid: [namespace_flow(f, namespace_slug) for f in platform_flows]
            for pid, platform_flows in flows.items()
        }
        targets, _ = _resolve_all(namespaced, contexts, selection)
        resolution = resolve_conflicts(
            targets,
            package_name=package.name,
            workspace_root=workspace_root,
            ownership=ownership,
            strategy=options.strategy,
            render=render,
            prompt=options.prompt,
            namespace_threshold=options.namespace_threshold,
            existing_slugs=existing_slugs,
            allow_namespace=False,
        )
        notes.extend(resolution.notes)

    if resolution.fallback:
        warnings.extend(resolution.notes)

    planned = plan_groups(resolution.targets, ownership=ownership, workspace_root=workspace_root)
    groups = [
        revalidate_group(group, ownership=ownership, workspace_root=workspace_root)
        for group in planned
    ]

    outcomes: list[WriteOutcome] = []
    failed = 0
    for target in resolution.targets:
        try:
            outcomes.append(execute_target(target, contexts[target.platform]))
        except (OSError, ValueError) as e:
            failed += 1
            logger.warning("Failed to install %s: %s", target.relative_path, e)
            warnings.append(f"Failed to install {target.relative_path}: {e}")

    if resolution.targets and failed == len(resolution.targets):
        raise InstallError(package.name, f"all {failed} target(s) failed to install")

    mapping = build_file_mapping(groups, [o.target for o in outcomes], _merge_keys(outcomes))

    with modify_ledger(workspace_root) as (current, save):
        current = transfer_paths(current, resolution.transfers, workspace_root)
        entry = merge_entry(
            current.get(package.name),
            path=str(package_root),
            version=package.version,
            files=mapping,
            source_files=set(source_files),
            content_hash=package_content_hash(package_root, source_files),
        )
        save(current.with_entry(package.name, entry))

    by_status: dict[str, list[str]] = {"created": [], "updated": [], "unchanged": []}
    for outcome in outcomes:
        paths = by_status[outcome.status]
        if outcome.target.relative_path not in paths:
            paths.append(outcome.target.relative_path)

    logger.debug(
        "Installed %s: %d created, %d updated, %d unchanged",
        package.name,
        len(by_status["created"]),
        len(by_status["updated"]),
        len(by_status["unchanged"]),
    )
    return InstallResult(
        package_name=package.name,
        version=package.version,
        installed_files=by_status["created"],
        updated_files=by_status["updated"],
        unchanged_files=by_status["unchanged"],
        namespace_slug=namespace_slug,
        relocated_files=list(resolution.relocated),
        notes=notes,
        warnings=warnings,
        failed_resources=failed_resources,
    )


def install_batch(
    packages: Sequence[ResolvedPackage], workspace_root: Path, options: InstallOptions
) -> BatchResult:
    """Install packages in order, isolating package-level failures.

    A failing package is reported and the batch continues. Ledger errors
    abort the batch since no package could record its files.
    """
    results: list[InstallResult] = []
    failures: dict[str, str] = {}

    for package in packages:
        try:
            results.append(install_package(package, workspace_root, options))
        except LedgerError:
            raise
        except click.Abort:
            raise
        except (AgentPackError, OSError, ValueError) as e:
            logger.warning("Install of %s failed: %s", package.name, e)
            failures[package.name] = str(e)

    return BatchResult(results=results, failures=failures)

