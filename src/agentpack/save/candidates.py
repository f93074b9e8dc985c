"""Workspace candidates for each registry key a package owns."""

import logging
from dataclasses import dataclass
from pathlib import Path

from agentpack.flows.context import FlowContext
from agentpack.flows.resolver import resolve_flows
from agentpack.install.ownership import expand_value
from agentpack.io.files import decode_text, read_bytes_if_exists
from agentpack.models.flow import Flow, PlatformDefinition
from agentpack.models.ledger import LedgerEntry, MergeMapping, is_dir_key
from agentpack.models.plan import PlannedTarget
from agentpack.save.extract import extract_contribution

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaveCandidate:
    """One workspace version of a package source file.

    ``content`` is the workspace text, reduced to this package's
    contribution for merge targets. Files that are not UTF-8 text carry
    their bytes in ``raw`` instead, with empty ``content``, and are saved
    byte for byte.
    """

    registry_key: str
    workspace_path: str
    platform: str | None
    content: str
    flow: Flow | None = None
    merge: MergeMapping | None = None
    raw: bytes | None = None


def attribute_platform(
    workspace_path: str, platforms: dict[str, PlatformDefinition]
) -> str | None:
    """Platform whose root directory or root file holds a workspace path.

    The longest matching root directory wins.
    """
    best: tuple[int, str] | None = None
    for platform_id, definition in platforms.items():
        if definition.root_file is not None and workspace_path == definition.root_file:
            return platform_id
        prefix = definition.root_dir + "/"
        if workspace_path.startswith(prefix) and (best is None or len(prefix) > best[0]):
            best = (len(prefix), platform_id)
    return best[1] if best is not None else None


def index_forward_targets(
    contexts: dict[str, FlowContext], platforms: dict[str, PlatformDefinition]
) -> dict[str, PlannedTarget]:
    """Where each export flow would install each source, keyed by workspace path."""
    index: dict[str, PlannedTarget] = {}
    for platform_id, context in contexts.items():
        resolution = resolve_flows(platforms[platform_id].export, context)
        for target in resolution.targets:
            index.setdefault(target.relative_path, target)
    return index


def _platform_of(
    workspace_path: str,
    planned: PlannedTarget | None,
    platforms: dict[str, PlatformDefinition],
) -> str | None:
    if planned is not None:
        return planned.platform
    return attribute_platform(workspace_path, platforms)


def build_candidates(
    package_name: str,
    entry: LedgerEntry,
    workspace_root: Path,
    contexts: dict[str, FlowContext],
    platforms: dict[str, PlatformDefinition],
) -> tuple[dict[str, list[SaveCandidate]], list[str]]:
    """Collect workspace candidates per registry key.

    Directory keys are expanded to every file now beneath the directory, so
    files added in the workspace become candidates too. Shared merge targets
    are reduced to this package's contribution.

    Returns:
        Candidates per registry key and warnings for unreadable files
    """
    forward = index_forward_targets(contexts, platforms)
    candidates: dict[str, list[SaveCandidate]] = {}
    warnings: list[str] = []

    for key in sorted(entry.files):
        for value in entry.files[key]:
            if isinstance(value, MergeMapping):
                candidate = _merge_candidate(
                    package_name, key, value, workspace_root, forward, platforms, warnings
                )
                if candidate is not None:
                    candidates.setdefault(key, []).append(candidate)
                continue

            prefix = value.rstrip("/") + "/"
            for relative in expand_value(workspace_root, key, value):
                data = _read_workspace(workspace_root, relative, warnings)
                if data is None:
                    continue
                text = decode_text(data)
                planned = forward.get(relative)
                if planned is not None:
                    registry_key = planned.registry_key
                elif is_dir_key(key):
                    registry_key = key + relative[len(prefix) :]
                else:
                    registry_key = key
                platform = _platform_of(relative, planned, platforms)
                candidates.setdefault(registry_key, []).append(
                    SaveCandidate(
                        registry_key=registry_key,
                        workspace_path=relative,
                        platform=platform,
                        content=text if text is not None else "",
                        flow=planned.flow if planned is not None else None,
                        raw=data if text is None else None,
                    )
                )

    for key, found in candidates.items():
        found.sort(key=lambda c: c.workspace_path)
        logger.debug("%d candidate(s) for %s", len(found), key)
    return candidates, warnings


def _merge_candidate(
    package_name: str,
    key: str,
    mapping: MergeMapping,
    workspace_root: Path,
    forward: dict[str, PlannedTarget],
    platforms: dict[str, PlatformDefinition],
    warnings: list[str],
) -> SaveCandidate | None:
    data = _read_workspace(workspace_root, mapping.target, warnings)
    if data is None:
        return None
    text = decode_text(data)
    if text is None:
        logger.warning("Cannot extract %s from %s: not UTF-8 text", key, mapping.target)
        warnings.append(f"Skipped {mapping.target}: not UTF-8 text")
        return None
    try:
        extracted = extract_contribution(text, mapping, package_name)
    except ValueError as e:
        logger.warning("Cannot extract %s from %s: %s", key, mapping.target, e)
        warnings.append(f"Skipped {mapping.target}: cannot extract contribution ({e})")
        return None
    if extracted is None:
        return None

    planned = forward.get(mapping.target)
    return SaveCandidate(
        registry_key=key,
        workspace_path=mapping.target,
        platform=_platform_of(mapping.target, planned, platforms),
        content=extracted,
        flow=planned.flow if planned is not None else None,
        merge=mapping,
    )


def _read_workspace(workspace_root: Path, relative: str, warnings: list[str]) -> bytes | None:
    try:
        return read_bytes_if_exists(workspace_root / relative)
    except OSError as e:
        logger.warning("Cannot read %s: %s", relative, e)
        warnings.append(f"Skipped {relative}: cannot read ({e})")
        return None
