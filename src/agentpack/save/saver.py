"""Save orchestration: workspace candidates back into package source.

For each registry key the package owns:

1. Collect workspace candidates (merge targets reduced to this package's keys)
2. Reverse each candidate into universal form
3. Drop candidates that already match source (parity)
4. De-duplicate the rest by content
5. Write a single remaining version, or ask which version wins

Files that already hold the saved bytes are not rewritten, so re-running save
performs no writes. A failed write is reported and does not stop the
remaining keys.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from agentpack.errors import ConfigError, NotInstalledError
from agentpack.flows.context import FlowContext
from agentpack.flows.patterns import platform_variant
from agentpack.io.files import (
    bytes_hash,
    decode_text,
    read_bytes_if_exists,
    write_bytes_atomic,
)
from agentpack.io.ledger import load_ledger
from agentpack.models.flow import PlatformDefinition
from agentpack.prompts import SaveCandidateView, SavePrompt
from agentpack.save.candidates import SaveCandidate, build_candidates
from agentpack.save.parity import check_binary_parity, check_parity
from agentpack.save.reverse import reverse_candidate

logger = logging.getLogger(__name__)

SaveStatus = Literal["written", "unchanged", "skipped", "failed"]

PREVIEW_LINES = 8


@dataclass(frozen=True)
class SaveWriteResult:
    """Outcome for one package source path."""

    path: str
    status: SaveStatus
    workspace_paths: list[str] = field(default_factory=list)
    message: str | None = None


@dataclass(frozen=True)
class SaveResult:
    """Per-path outcomes of saving one package."""

    package_name: str
    package_root: Path
    results: list[SaveWriteResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def written(self) -> list[str]:
        return [r.path for r in self.results if r.status == "written"]


@dataclass(frozen=True)
class _Evaluated:
    candidate: SaveCandidate
    data: bytes


def write_if_changed(package_root: Path, relative: str, data: bytes) -> bool:
    """Write ``data`` unless the file already holds it. Returns True if written."""
    path = package_root / relative
    if read_bytes_if_exists(path) == data:
        return False
    write_bytes_atomic(path, data)
    return True


def _preview(data: bytes) -> str:
    content = decode_text(data)
    if content is None:
        return f"(binary, {len(data)} bytes)"
    lines = content.splitlines()
    shown = "\n".join(lines[:PREVIEW_LINES])
    if len(lines) > PREVIEW_LINES:
        shown += f"\n... ({len(lines) - PREVIEW_LINES} more lines)"
    return shown


def _distinct(evaluated: list[_Evaluated]) -> list[_Evaluated]:
    seen: set[str] = set()
    distinct: list[_Evaluated] = []
    for item in evaluated:
        digest = bytes_hash(item.data)
        if digest in seen:
            continue
        seen.add(digest)
        distinct.append(item)
    return distinct


def _write(
    package_root: Path,
    relative: str,
    item: _Evaluated,
    warnings: list[str],
    workspace_paths: list[str],
) -> SaveWriteResult:
    try:
        written = write_if_changed(package_root, relative, item.data)
    except OSError as e:
        logger.warning("Failed to save %s: %s", relative, e)
        warnings.append(f"Failed to save {relative}: {e}")
        return SaveWriteResult(relative, "failed", workspace_paths, str(e))
    status: SaveStatus = "written" if written else "unchanged"
    logger.debug("%s %s from %s", status, relative, item.candidate.workspace_path)
    return SaveWriteResult(relative, status, workspace_paths)


def save_package(
    package_name: str,
    workspace_root: Path,
    platforms: dict[str, PlatformDefinition],
    *,
    package_root: Path | None = None,
    prompt: SavePrompt | None = None,
) -> SaveResult:
    """Capture workspace edits of an installed package into its source.

    Args:
        package_name: Installed package to save
        workspace_root: Workspace holding the installed files
        platforms: Platform definitions used to attribute and reverse content
        package_root: Source directory to write to; defaults to the path
            recorded in the ledger
        prompt: Interactive port used when a key has several distinct
            versions; without one such keys are skipped with a warning

    Returns:
        SaveResult with one entry per package path considered

    Raises:
        NotInstalledError: If the package has no ledger entry
        ConfigError: If the package source directory does not exist
        LedgerError: If the ledger cannot be read
    """
    ledger = load_ledger(workspace_root)
    entry = ledger.get(package_name)
    if entry is None:
        raise NotInstalledError(package_name)

    root = package_root if package_root is not None else Path(entry.path)
    if not root.is_dir():
        raise ConfigError(f"Package source directory not found: {root}")

    contexts = {
        platform_id: FlowContext.create(
            platform=platform_id,
            workspace_root=workspace_root,
            package_root=root,
            package_name=package_name,
            known_platforms=frozenset(platforms),
            platform_variables=definition.variables,
        )
        for platform_id, definition in platforms.items()
    }

    candidates, warnings = build_candidates(
        package_name, entry, workspace_root, contexts, platforms
    )
    results: list[SaveWriteResult] = []

    for registry_key in sorted(candidates):
        evaluated: list[_Evaluated] = []
        for candidate in candidates[registry_key]:
            if candidate.raw is not None:
                if check_binary_parity(candidate, root) is None:
                    evaluated.append(_Evaluated(candidate, candidate.raw))
                continue

            platform_id = candidate.platform
            platform = platforms.get(platform_id) if platform_id is not None else None
            context = contexts.get(platform_id) if platform_id is not None else None

            reversal = reverse_candidate(candidate, platform, context)
            if reversal.warning is not None:
                warnings.append(reversal.warning)

            parity = check_parity(candidate, reversal.content, root, context)
            if parity is not None:
                logger.debug("%s matches source (%s parity)", candidate.workspace_path, parity)
                continue
            evaluated.append(_Evaluated(candidate, reversal.content.encode("utf-8")))

        workspace_paths = [c.workspace_path for c in candidates[registry_key]]
        distinct = _distinct(evaluated)

        if not distinct:
            results.append(SaveWriteResult(registry_key, "unchanged", workspace_paths))
            continue

        if len(distinct) == 1:
            results.append(_write(root, registry_key, distinct[0], warnings, workspace_paths))
            continue

        if prompt is None:
            message = f"{len(distinct)} differing workspace versions; run save interactively"
            warnings.append(f"Skipped {registry_key}: {message}")
            results.append(SaveWriteResult(registry_key, "skipped", workspace_paths, message))
            continue

        views = [
            SaveCandidateView(
                workspace_path=item.candidate.workspace_path,
                platform=item.candidate.platform,
                preview=_preview(item.data),
            )
            for item in distinct
        ]
        selection = prompt.select(registry_key, views)

        if selection.universal is not None:
            chosen = distinct[selection.universal]
            results.append(_write(root, registry_key, chosen, warnings, workspace_paths))
        else:
            results.append(SaveWriteResult(registry_key, "skipped", workspace_paths))

        for index in sorted(selection.platform_specific):
            item = distinct[index]
            if index == selection.universal or item.candidate.platform is None:
                continue
            sibling = platform_variant(registry_key, item.candidate.platform)
            results.append(
                _write(root, sibling, item, warnings, [item.candidate.workspace_path])
            )

    return SaveResult(
        package_name=package_name, package_root=root, results=results, warnings=warnings
    )
