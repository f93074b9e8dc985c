"""Package removal driven entirely by the ledger."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from agentpack.errors import NotInstalledError
from agentpack.flows.formats import (
    ParsedContent,
    detect_format,
    is_document,
    parse_content,
    serialize_content,
)
from agentpack.flows.merge import remove_keys, remove_section
from agentpack.install.ownership import build_ownership_context, expand_value
from agentpack.io.files import read_text_if_exists, write_text_atomic
from agentpack.io.ledger import load_ledger, modify_ledger
from agentpack.models.ledger import Ledger, MergeMapping

logger = logging.getLogger(__name__)

SharedFileStatus = Literal["missing", "removed", "updated", "unchanged"]


@dataclass(frozen=True)
class UninstallResult:
    """Outcome of removing one package."""

    package_name: str
    removed_files: list[str] = field(default_factory=list)
    updated_files: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _keys_held_by_others(ledger: Ledger, package_name: str) -> dict[str, set[str]]:
    held: dict[str, set[str]] = {}
    for name, entry in ledger.packages.items():
        if name == package_name:
            continue
        for values in entry.files.values():
            for value in values:
                if isinstance(value, MergeMapping):
                    held.setdefault(value.target, set()).update(value.keys)
    return held


def remove_contribution(
    workspace_root: Path,
    mapping: MergeMapping,
    package_name: str,
    held_by_others: set[str],
) -> SharedFileStatus:
    """Remove one package's contribution from a shared merge target.

    Keys also contributed by another package are left in place. A file left
    with no content is deleted.

    Raises:
        ValueError: If the shared file cannot be parsed
    """
    path = workspace_root / mapping.target
    existing = read_text_if_exists(path)
    if existing is None:
        return "missing"

    fmt = detect_format(mapping.target)
    if mapping.merge == "composite" and is_document(fmt):
        text = remove_section(existing, package_name)
        is_empty = not text.strip()
    else:
        parsed = parse_content(existing, fmt)
        if not isinstance(parsed.data, dict):
            return "unchanged"
        keys = [k for k in mapping.keys if k not in held_by_others]
        data = remove_keys(parsed.data, keys)
        is_empty = not data and not (parsed.body or "").strip()
        text = serialize_content(ParsedContent(parsed.format, data, parsed.body))

    if is_empty:
        path.unlink()
        return "removed"
    if text == existing:
        return "unchanged"
    write_text_atomic(path, text)
    return "updated"


def _prune_empty_parents(workspace_root: Path, path: Path) -> None:
    parent = path.parent
    root = workspace_root.resolve()
    while parent.resolve() != root and parent.is_dir() and not any(parent.iterdir()):
        parent.rmdir()
        parent = parent.parent


def uninstall_package(package_name: str, workspace_root: Path) -> UninstallResult:
    """Remove everything a package owns and delete its ledger entry.

    Exclusive files are deleted unless another package has since claimed
    them. Shared merge targets lose only this package's keys or section.

    Raises:
        NotInstalledError: If the package has no ledger entry
        LedgerError: If the ledger cannot be read
    """
    ledger = load_ledger(workspace_root)
    entry = ledger.get(package_name)
    if entry is None:
        raise NotInstalledError(package_name)

    ownership = build_ownership_context(ledger, package_name, workspace_root)
    held = _keys_held_by_others(ledger, package_name)

    removed: list[str] = []
    updated: list[str] = []
    warnings: list[str] = []

    for key in sorted(entry.files):
        for value in entry.files[key]:
            if isinstance(value, MergeMapping):
                try:
                    status = remove_contribution(
                        workspace_root, value, package_name, held.get(value.target, set())
                    )
                except (OSError, ValueError) as e:
                    logger.warning("Could not clean %s: %s", value.target, e)
                    warnings.append(f"Could not remove contribution from {value.target}: {e}")
                    continue
                if status == "removed":
                    removed.append(value.target)
                elif status == "updated":
                    updated.append(value.target)
                continue

            for relative in expand_value(workspace_root, key, value):
                owner = ownership.owner_of(relative)
                if owner is not None:
                    logger.debug("Keeping %s: owned by %s", relative, owner.package_name)
                    continue
                path = workspace_root / relative
                if not path.is_file():
                    continue
                path.unlink()
                removed.append(relative)
                _prune_empty_parents(workspace_root, path)

    with modify_ledger(workspace_root) as (current, save):
        save(current.without(package_name))

    logger.debug("Uninstalled %s: %d removed, %d updated", package_name, len(removed), len(updated))
    return UninstallResult(
        package_name=package_name,
        removed_files=sorted(set(removed)),
        updated_files=sorted(set(updated)),
        warnings=warnings,
    )
