"""Conflict resolver: arbitration of path collisions between packages.

Resolution is best-effort. An unexpected internal error falls back to every
target not owned by another package, so arbitration never aborts an install
and never hands one package's files to another.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from pathlib import Path

import click

from agentpack.install.namespace import derive_namespace_slug, namespaced_path
from agentpack.models.plan import (
    ConflictResolution,
    ConflictStrategy,
    OwnershipContext,
    OwnershipRecord,
    PlannedTarget,
    Resolution,
    TargetConflict,
)
from agentpack.prompts import ConflictPrompt

logger = logging.getLogger(__name__)

Renderer = Callable[[PlannedTarget], bytes]


def classify_target(
    target: PlannedTarget,
    *,
    package_name: str,
    ownership: OwnershipContext,
    render: Renderer,
) -> TargetConflict:
    """Classify a planned target against current ownership and disk state.

    - Merge targets never conflict: their output is shared.
    - A path owned by another package is ``owned-by-other``.
    - An untracked file with different content is ``exists-unowned``.
    """
    if target.is_merge:
        return TargetConflict(target=target, kind="none")

    owner = ownership.owner_of(target.relative_path)
    if owner is not None and owner.package_name != package_name:
        return TargetConflict(target=target, kind="owned-by-other", owner=owner)

    if not target.absolute_path.is_file():
        return TargetConflict(target=target, kind="none")
    if target.relative_path in ownership.previous_owned_paths:
        return TargetConflict(target=target, kind="none")

    try:
        existing = target.absolute_path.read_bytes()
    except OSError as e:
        logger.debug("Could not read %s for comparison: %s", target.relative_path, e)
        return TargetConflict(target=target, kind="exists-unowned")
    try:
        incoming = render(target)
    except (OSError, ValueError) as e:
        logger.debug("Could not render %s for comparison: %s", target.relative_path, e)
        incoming = None
    if incoming == existing:
        return TargetConflict(target=target, kind="none")
    return TargetConflict(target=target, kind="exists-unowned")


def decide(
    conflict: TargetConflict, strategy: ConflictStrategy, prompt: ConflictPrompt | None
) -> Resolution:
    """Effective resolution for one conflict.

    ``ask`` without a prompt keeps both versions of owned files and skips
    untracked ones.
    """
    if strategy != "ask":
        return strategy
    if prompt is not None:
        return prompt.choose(conflict)
    if conflict.kind == "owned-by-other":
        return "keep-both"
    return "skip"


def resolve_conflicts(
    targets: list[PlannedTarget],
    *,
    package_name: str,
    workspace_root: Path,
    ownership: OwnershipContext,
    strategy: ConflictStrategy,
    render: Renderer,
    prompt: ConflictPrompt | None = None,
    namespace_threshold: float | None = 0.0,
    existing_slugs: Iterable[str] = (),
    allow_namespace: bool = True,
) -> ConflictResolution:
    """Arbitrate collisions for the package being installed.

    When the share of non-merge targets resolved as ``keep-both`` reaches
    ``namespace_threshold`` the whole package is namespaced: the returned
    resolution carries ``namespace_slug`` and the caller re-resolves flows
    with rewritten target patterns, then calls this again with
    ``allow_namespace=False``. Below the threshold, ``keep-both`` targets are
    relocated individually.

    Args:
        targets: Planned targets for every platform
        package_name: Installing package
        workspace_root: Workspace the targets are relative to
        ownership: Ownership of every other package
        strategy: Effective conflict strategy
        render: Produces the bytes a target would be written with
        prompt: Interactive port used by the ``ask`` strategy
        namespace_threshold: Fraction (0.0-1.0) of colliding targets that
            triggers whole-package namespacing; None disables it
        existing_slugs: Slugs already used by installed packages
        allow_namespace: False once the package has been namespaced

    Returns:
        ConflictResolution describing the targets that may be written
    """
    try:
        return _resolve(
            targets,
            package_name=package_name,
            workspace_root=workspace_root,
            ownership=ownership,
            strategy=strategy,
            render=render,
            prompt=prompt,
            namespace_threshold=namespace_threshold,
            existing_slugs=list(existing_slugs),
            allow_namespace=allow_namespace,
        )
    except click.Abort:
        raise
    except Exception as e:
        # Arbitration must not abort the install
        logger.warning(
            "Conflict resolution failed for %s; writing targets not owned by others",
            package_name,
            exc_info=True,
        )
        unowned = [t for t in targets if not _owned_by_other(t, ownership, package_name)]
        return ConflictResolution(
            targets=unowned,
            notes=[
                f"Warning: conflict resolution failed ({e}); "
                f"installed {len(unowned)} of {len(targets)} target(s) not owned by others"
            ],
            fallback=True,
        )


def _resolve(
    targets: list[PlannedTarget],
    *,
    package_name: str,
    workspace_root: Path,
    ownership: OwnershipContext,
    strategy: ConflictStrategy,
    render: Renderer,
    prompt: ConflictPrompt | None,
    namespace_threshold: float | None,
    existing_slugs: list[str],
    allow_namespace: bool,
) -> ConflictResolution:
    classified = [
        classify_target(t, package_name=package_name, ownership=ownership, render=render)
        for t in targets
    ]
    decisions: list[tuple[TargetConflict, Resolution | None]] = [
        (c, decide(c, strategy, prompt) if c.kind != "none" else None) for c in classified
    ]

    slug = derive_namespace_slug(package_name, existing_slugs)
    exclusive_count = sum(1 for t in targets if not t.is_merge)
    keep_both_count = sum(1 for _, r in decisions if r == "keep-both")

    if (
        allow_namespace
        and namespace_threshold is not None
        and keep_both_count > 0
        and exclusive_count > 0
        and keep_both_count / exclusive_count >= namespace_threshold
    ):
        logger.debug(
            "Namespacing %s as %s (%d of %d targets collide)",
            package_name,
            slug,
            keep_both_count,
            exclusive_count,
        )
        return ConflictResolution(
            targets=list(targets),
            notes=[
                f"Namespaced {package_name} under '{slug}' "
                f"to avoid {keep_both_count} conflict(s)"
            ],
            namespace_slug=slug,
        )

    kept: list[PlannedTarget] = []
    notes: list[str] = []
    relocated: list[str] = []
    transfers: dict[str, OwnershipRecord] = {}

    for conflict, resolution in decisions:
        target = conflict.target
        if resolution is None:
            kept.append(target)
            continue

        reason = (
            f"owned by {conflict.owner.package_name}"
            if conflict.owner is not None
            else "exists and is not tracked"
        )
        if resolution == "overwrite":
            kept.append(target)
            if conflict.owner is not None:
                transfers[target.relative_path] = conflict.owner
            notes.append(f"Overwrote {target.relative_path} ({reason})")
        elif resolution == "skip":
            notes.append(f"Skipped {target.relative_path} ({reason})")
        else:
            moved = _relocate(target, slug, workspace_root, ownership, package_name)
            if moved is None or not allow_namespace:
                notes.append(f"Skipped {target.relative_path} ({reason}; no free namespaced path)")
                continue
            kept.append(moved)
            relocated.append(moved.relative_path)
            notes.append(f"Installed {target.relative_path} as {moved.relative_path} ({reason})")

    return ConflictResolution(targets=kept, notes=notes, relocated=relocated, transfers=transfers)


def _relocate(
    target: PlannedTarget,
    slug: str,
    workspace_root: Path,
    ownership: OwnershipContext,
    package_name: str,
) -> PlannedTarget | None:
    relative = namespaced_path(target.relative_path, slug, target.target_pattern)
    owner = ownership.owner_of(relative)
    if owner is not None and owner.package_name != package_name:
        return None
    return replace(target, relative_path=relative, absolute_path=workspace_root / relative)


def _owned_by_other(target: PlannedTarget, ownership: OwnershipContext, package_name: str) -> bool:
    if target.is_merge:
        return False
    owner = ownership.owner_of(target.relative_path)
    return owner is not None and owner.package_name != package_name
