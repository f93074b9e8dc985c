"""Target planner: directory vs file tracking granularity.

A group is tracked as a directory when the package can own the whole target
directory, and as individual files when the directory already holds
unrelated content.
"""

import logging
from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path

from agentpack.io.files import is_within, iter_relative_files
from agentpack.models.ledger import FileValue, MergeMapping, is_dir_key, value_target
from agentpack.models.plan import Decision, OwnershipContext, PlannedTarget, TargetGroup

logger = logging.getLogger(__name__)

TAXONOMY_DIRS = frozenset({"agents", "rules", "commands", "skills", "hooks", "mcp"})


def group_key(registry_key: str) -> str:
    """Directory key a registry path is grouped under.

    Examples:
        >>> group_key("rules/a.md")
        'rules/'
        >>> group_key("skills/react/SKILL.md")
        'skills/react/'
        >>> group_key("AGENTS.md")
        ''
    """
    segments = registry_key.split("/")
    if len(segments) <= 1:
        return ""
    if segments[0] in TAXONOMY_DIRS and len(segments) >= 3:
        return f"{segments[0]}/{segments[1]}/"
    return registry_key.rsplit("/", 1)[0] + "/"


def prune_nested_dirs(dirs: Iterable[str]) -> list[str]:
    """Sorted unique directories (trailing ``/``) with subdirectories removed."""
    unique = sorted({d.rstrip("/") + "/" for d in dirs})
    return [d for d in unique if not any(d != other and is_within(d, other) for other in unique)]


def target_directory(target: PlannedTarget, key: str) -> str:
    """Workspace directory corresponding to a group key for one target."""
    remainder = target.registry_key[len(key) :].split("/") if key else []
    parts = target.relative_path.split("/")
    if remainder and len(parts) > len(remainder):
        return "/".join(parts[: -len(remainder)]) + "/"
    return target.relative_path.rsplit("/", 1)[0] + "/" if "/" in target.relative_path else ""


def group_targets(targets: Iterable[PlannedTarget]) -> dict[str, list[PlannedTarget]]:
    """Bucket non-merge targets by group key, preserving order."""
    groups: dict[str, list[PlannedTarget]] = {}
    for target in targets:
        if target.is_merge:
            continue
        groups.setdefault(group_key(target.registry_key), []).append(target)
    return groups


def is_occupied(workspace_root: Path, directory: str, ownership: OwnershipContext) -> bool:
    """True when a directory holds any file the package did not previously own."""
    for path in iter_relative_files(workspace_root, directory.rstrip("/")):
        if path not in ownership.previous_owned_paths:
            return True
    return False


def _previous_dirs(key: str, ownership: OwnershipContext) -> set[str]:
    entry = ownership.previous_entry
    if entry is None or key not in entry.files:
        return set()
    return {value_target(v).rstrip("/") + "/" for v in entry.files[key]}


def _owned_by_other_beneath(directory: str, ownership: OwnershipContext) -> bool:
    return any(is_within(path, directory) for path in ownership.installed_path_owners)


def decide_group(
    key: str,
    targets: list[PlannedTarget],
    *,
    ownership: OwnershipContext,
    workspace_root: Path,
) -> TargetGroup:
    """Decide dir-vs-file tracking for one group, per platform and overall.

    A platform keeps "dir" when the package already owned the directory and
    no other package owns anything beneath it. Otherwise the directory is
    inspected: unrelated entries mean "file", an empty directory means "dir".
    The overall decision is "dir" if any platform decided "dir".
    """
    by_platform: dict[str, list[PlannedTarget]] = {}
    for target in targets:
        by_platform.setdefault(target.platform, []).append(target)

    decisions: dict[str, Decision] = {platform: "file" for platform in by_platform}
    if not key or not targets or key in ownership.dir_key_owners:
        return TargetGroup(key=key, targets=targets, platform_decisions=decisions, decision="file")

    retained = False
    previous = _previous_dirs(key, ownership)
    for platform, platform_targets in by_platform.items():
        dirs = prune_nested_dirs(target_directory(t, key) for t in platform_targets)
        if not dirs or any(d == "/" for d in dirs):
            continue
        if previous and any(d in previous for d in dirs) and not any(
            _owned_by_other_beneath(d, ownership) for d in dirs
        ):
            decisions[platform] = "dir"
            retained = True
            continue
        if any(is_occupied(workspace_root, d, ownership) for d in dirs):
            decisions[platform] = "file"
        else:
            decisions[platform] = "dir"

    overall: Decision = "dir" if "dir" in decisions.values() else "file"
    logger.debug("Group %s decided %s (%s)", key, overall, decisions)
    return TargetGroup(
        key=key,
        targets=targets,
        platform_decisions=decisions,
        decision=overall,
        retained=retained,
    )


def plan_groups(
    targets: Iterable[PlannedTarget], *, ownership: OwnershipContext, workspace_root: Path
) -> list[TargetGroup]:
    """Group targets and decide each group's tracking granularity."""
    return [
        decide_group(key, group, ownership=ownership, workspace_root=workspace_root)
        for key, group in group_targets(targets).items()
    ]


def revalidate_group(
    group: TargetGroup, *, ownership: OwnershipContext, workspace_root: Path
) -> TargetGroup:
    """Re-check occupancy of "dir" platforms immediately before writing.

    A directory that gained unrelated entries since planning is downgraded
    to "file". Retained directory claims are not re-checked.
    """
    if group.decision != "dir" or group.retained:
        return group

    decisions = dict(group.platform_decisions)
    changed = False
    for platform, decision in group.platform_decisions.items():
        if decision != "dir":
            continue
        dirs = prune_nested_dirs(
            target_directory(t, group.key) for t in group.targets if t.platform == platform
        )
        if any(is_occupied(workspace_root, d, ownership) for d in dirs):
            logger.warning("Directory for %s changed since planning; tracking files", group.key)
            decisions[platform] = "file"
            changed = True

    if not changed:
        return group
    overall: Decision = "dir" if "dir" in decisions.values() else "file"
    return replace(group, platform_decisions=decisions, decision=overall)


def build_file_mapping(
    groups: Iterable[TargetGroup],
    written: Iterable[PlannedTarget],
    merge_keys: dict[str, list[str]],
) -> dict[str, list[FileValue]]:
    """Materialize the registry-key to installed-paths mapping.

    Only targets that were actually written contribute. "dir" platforms of a
    group emit one directory entry; "file" platforms emit one entry per file.
    Merge targets become ``MergeMapping`` values carrying their tracked keys,
    looked up in ``merge_keys`` by workspace path.

    Args:
        groups: Planned groups with final decisions
        written: Targets written (or confirmed unchanged) this run
        merge_keys: Tracked keys per merge target path

    Returns:
        Mapping with sorted, de-duplicated values
    """
    written_list = list(written)
    written_paths = {t.relative_path for t in written_list}
    mapping: dict[str, list[FileValue]] = {}

    for group in groups:
        dir_values: list[str] = []
        for target in group.targets:
            if target.relative_path not in written_paths:
                continue
            if group.platform_decisions.get(target.platform) == "dir":
                dir_values.append(target_directory(target, group.key))
            else:
                mapping.setdefault(target.registry_key, []).append(target.relative_path)
        if dir_values:
            mapping.setdefault(group.key, []).extend(prune_nested_dirs(dir_values))

    merge_values: dict[str, dict[str, MergeMapping]] = {}
    for target in written_list:
        if not target.is_merge:
            continue
        keys = sorted(set(merge_keys.get(target.relative_path, [])))
        by_target = merge_values.setdefault(target.registry_key, {})
        existing = by_target.get(target.relative_path)
        if existing is not None:
            keys = sorted(set(existing.keys) | set(keys))
        by_target[target.relative_path] = MergeMapping(
            target=target.relative_path, merge=target.flow.merge, keys=keys
        )

    result: dict[str, list[FileValue]] = {}
    for key, values in mapping.items():
        if is_dir_key(key):
            result[key] = list(prune_nested_dirs(v for v in values if isinstance(v, str)))
        else:
            result[key] = sorted({value_target(v) for v in values})
    for key, by_target in merge_values.items():
        result[key] = [by_target[t] for t in sorted(by_target)]
    return result
