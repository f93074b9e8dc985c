"""Discovery of package source files matched by a flow's ``from`` patterns."""

import logging
import posixpath
from dataclasses import dataclass

from agentpack.flows.context import FlowContext
from agentpack.flows.patterns import (
    NAME_PLACEHOLDER,
    glob_match,
    has_glob,
    name_regex,
    platform_suffix,
    platform_variant,
    static_prefix,
    strip_platform_suffix,
    substitute_variables,
)
from agentpack.io.files import iter_relative_files
from agentpack.models.flow import Flow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceMatch:
    """A package file selected by a flow.

    ``path`` may be a platform variant (``a.claude.md``); ``registry_key`` is
    always the universal form (``a.md``).
    """

    path: str
    registry_key: str
    pattern: str


def discover_sources(flow: Flow, context: FlowContext) -> list[SourceMatch]:
    """Find the package files a flow applies to on the context's platform.

    Source patterns are tried in priority order; the first pattern matching
    at least one file wins and later patterns are ignored.

    Args:
        flow: Flow whose ``from`` patterns are matched
        context: Resolution context

    Returns:
        Matches sorted by path
    """
    patterns = flow.source_patterns
    for index, raw_pattern in enumerate(patterns):
        pattern = substitute_variables(raw_pattern, context.variables)
        paths = _match_pattern(pattern, context)
        if not paths:
            continue
        if index > 0:
            logger.debug(
                "Flow source %s matched via fallback pattern %s", patterns[0], pattern
            )
        elif len(patterns) > 1:
            logger.debug("Flow source %s matched; lower-priority patterns ignored", pattern)
        selected = _select_platform_variants(paths, context)
        return [
            SourceMatch(
                path=path,
                registry_key=strip_platform_suffix(path, context.known_platforms),
                pattern=pattern,
            )
            for path in selected
        ]
    return []


def _match_pattern(pattern: str, context: FlowContext) -> list[str]:
    root = context.package_root
    if has_glob(pattern):
        base = static_prefix(pattern)
        return [p for p in iter_relative_files(root, base) if glob_match(pattern, p)]

    if NAME_PLACEHOLDER in pattern:
        parent = posixpath.dirname(pattern)
        directory = root / parent if parent else root
        if not directory.is_dir():
            return []
        regex = name_regex(pattern)
        candidates = sorted(
            posixpath.join(parent, entry.name) if parent else entry.name
            for entry in directory.iterdir()
            if entry.is_file()
        )
        return [c for c in candidates if regex.match(c)]

    matches: list[str] = []
    if (root / pattern).is_file():
        matches.append(pattern)
    variant = platform_variant(pattern, context.platform)
    if (root / variant).is_file():
        matches.append(variant)
    return matches


def _select_platform_variants(paths: list[str], context: FlowContext) -> list[str]:
    """Keep one file per universal path: the platform variant if present.

    Variants for other platforms are dropped.
    """
    chosen: dict[str, str] = {}
    for path in paths:
        suffix = platform_suffix(path, context.known_platforms)
        if suffix is not None and suffix != context.platform:
            continue
        universal = strip_platform_suffix(path, context.known_platforms)
        if suffix == context.platform or universal not in chosen:
            chosen[universal] = path
    return sorted(chosen.values())
