"""Merge semantics for flows whose output file is shared between packages.

- ``replace``: the incoming content wins outright
- ``shallow``: top-level keys of the incoming content overwrite the target's
- ``deep``: mappings merge recursively, lists append items not already present,
  differing scalars resolve last-writer-wins and are recorded as conflicts
- ``composite``: text content is kept in a delimited per-package section so
  each package's contribution can be replaced or removed independently
"""

import copy
import re
from dataclasses import dataclass, field
from typing import Any

from agentpack.models.flow import MergeKind


@dataclass(frozen=True)
class MergeConflict:
    path: str
    winner: str
    resolution: str = "last-writer-wins"


@dataclass(frozen=True)
class MergeResult:
    data: Any
    conflicts: list[MergeConflict] = field(default_factory=list)


def merge_content(
    incoming: Any,
    existing: Any,
    kind: MergeKind,
    *,
    package_name: str,
) -> MergeResult:
    """Merge a package's incoming content into existing target content.

    Args:
        incoming: Data produced by this package's flow
        existing: Data already present in the target file
        kind: Merge kind declared by the flow
        package_name: Installing package, recorded as conflict winner and
            used as the composite section marker

    Returns:
        MergeResult with merged data and any value conflicts
    """
    if kind == "replace" or existing is None:
        if kind == "composite" and isinstance(incoming, str):
            return MergeResult(compose_section("", incoming, package_name))
        return MergeResult(copy.deepcopy(incoming))

    if kind == "composite":
        if isinstance(incoming, str) and isinstance(existing, str):
            return MergeResult(compose_section(existing, incoming, package_name))
        kind = "deep"

    if not isinstance(incoming, dict) or not isinstance(existing, dict):
        return MergeResult(copy.deepcopy(incoming))

    if kind == "shallow":
        conflicts = [
            MergeConflict(path=key, winner=package_name)
            for key in incoming
            if key in existing and existing[key] != incoming[key]
        ]
        return MergeResult({**existing, **copy.deepcopy(incoming)}, conflicts)

    conflicts: list[MergeConflict] = []
    merged = deep_merge(existing, incoming, conflicts=conflicts, winner=package_name)
    return MergeResult(merged, conflicts)


def deep_merge(
    target: Any,
    source: Any,
    *,
    conflicts: list[MergeConflict],
    winner: str,
    path: str = "",
) -> Any:
    """Recursively merge ``source`` into ``target``, returning a new value."""
    if isinstance(source, list) and isinstance(target, list):
        merged_list = list(copy.deepcopy(target))
        for item in source:
            if item not in merged_list:
                merged_list.append(copy.deepcopy(item))
        return merged_list

    if not isinstance(source, dict) or not isinstance(target, dict):
        return copy.deepcopy(source)

    result = copy.deepcopy(target)
    for key, value in source.items():
        current_path = f"{path}.{key}" if path else str(key)
        if key not in target:
            result[key] = copy.deepcopy(value)
        elif isinstance(value, (dict, list)) and isinstance(target[key], (dict, list)):
            result[key] = deep_merge(
                target[key], value, conflicts=conflicts, winner=winner, path=current_path
            )
        elif target[key] != value:
            conflicts.append(MergeConflict(path=current_path, winner=winner))
            result[key] = copy.deepcopy(value)
    return result


def collect_leaf_keys(data: Any, prefix: str = "") -> list[str]:
    """Dot-separated paths of every leaf value in nested mappings.

    Lists and scalars are leaves. Empty mappings count as leaves so their
    key is still tracked.
    """
    if not isinstance(data, dict):
        return [prefix] if prefix else []
    if not data and prefix:
        return [prefix]
    keys: list[str] = []
    for key, value in data.items():
        current = f"{prefix}.{key}" if prefix else str(key)
        keys.extend(collect_leaf_keys(value, current))
    return keys


def get_nested(data: Any, key_path: str) -> Any:
    """Value at a dot path, or None when any segment is missing."""
    current = data
    for key in key_path.split("."):
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def has_nested(data: Any, key_path: str) -> bool:
    current = data
    for key in key_path.split("."):
        if not isinstance(current, dict) or key not in current:
            return False
        current = current[key]
    return True


def set_nested(data: dict[str, Any], key_path: str, value: Any) -> None:
    """Set a value at a dot path, creating intermediate mappings."""
    keys = key_path.split(".")
    current = data
    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value


def remove_keys(data: dict[str, Any], key_paths: list[str]) -> dict[str, Any]:
    """Return a copy of ``data`` without the given dot paths.

    Mappings left empty by a removal are pruned as well.
    """
    result = copy.deepcopy(data)
    for key_path in key_paths:
        _remove_path(result, key_path.split("."))
    return result


def _remove_path(current: dict[str, Any], keys: list[str]) -> None:
    head = keys[0]
    if head not in current:
        return
    if len(keys) == 1:
        del current[head]
        return
    child = current[head]
    if isinstance(child, dict):
        _remove_path(child, keys[1:])
        if not child:
            del current[head]


# Composite sections


def _section_pattern(package_name: str) -> re.Pattern[str]:
    name = re.escape(package_name)
    return re.compile(
        rf"<!-- agentpack:{name} -->\n(.*?)<!-- /agentpack:{name} -->\n?",
        re.DOTALL,
    )


def compose_section(existing: str, incoming: str, package_name: str) -> str:
    """Insert or replace a package's delimited section in shared text."""
    body = incoming if incoming.endswith("\n") else incoming + "\n"
    section = f"<!-- agentpack:{package_name} -->\n{body}<!-- /agentpack:{package_name} -->\n"
    pattern = _section_pattern(package_name)
    if pattern.search(existing):
        return pattern.sub(lambda _: section, existing, count=1)
    if not existing.strip():
        return section
    if not existing.endswith("\n"):
        existing += "\n"
    return existing + "\n" + section


def extract_section(content: str, package_name: str) -> str | None:
    """Body of a package's composite section, or None when absent."""
    match = _section_pattern(package_name).search(content)
    if match is None:
        return None
    return match.group(1)


def remove_section(content: str, package_name: str) -> str:
    """Remove a package's composite section from shared text."""
    return _section_pattern(package_name).sub("", content, count=1)
