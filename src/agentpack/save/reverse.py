"""Reversal of platform-specific content back into universal form.

A platform's ``import`` flows take precedence. Without one, the export
flow's own transforms are inverted. Content that cannot be reversed is kept
verbatim and reported, since it may carry platform-specific structure into
the package source.
"""

import logging
from dataclasses import dataclass

from agentpack.flows.context import FlowContext
from agentpack.flows.formats import ParsedContent, detect_format, parse_content, serialize_content
from agentpack.flows.patterns import glob_match, has_glob, substitute_variables
from agentpack.flows.transforms import apply_inverse_transforms, apply_transforms
from agentpack.models.flow import Flow, PlatformDefinition
from agentpack.save.candidates import SaveCandidate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reversal:
    """Universal-form content for a candidate.

    ``warning`` is set when reversal failed and content was kept verbatim.
    """

    content: str
    warning: str | None = None


def find_import_flow(
    candidate: SaveCandidate, platform: PlatformDefinition, context: FlowContext
) -> Flow | None:
    """First import flow whose ``from`` matches the candidate's workspace path."""
    for flow in platform.import_:
        for raw_pattern in flow.source_patterns:
            pattern = substitute_variables(raw_pattern, context.variables)
            if has_glob(pattern):
                if glob_match(pattern, candidate.workspace_path):
                    return flow
            elif pattern == candidate.workspace_path:
                return flow
    return None


def _needs_reversal(flow: Flow, candidate: SaveCandidate) -> bool:
    if flow.has_transforms:
        return True
    return detect_format(candidate.workspace_path) != detect_format(candidate.registry_key)


def reverse_candidate(
    candidate: SaveCandidate,
    platform: PlatformDefinition | None,
    context: FlowContext | None,
) -> Reversal:
    """Convert a workspace candidate into universal-form content.

    Args:
        candidate: Workspace candidate, already reduced to this package's
            contribution
        platform: Definition of the candidate's platform, if known
        context: Flow context for that platform, if known

    Returns:
        Reversal with converted or verbatim content
    """
    if platform is None or context is None:
        return Reversal(candidate.content)

    import_flow = find_import_flow(candidate, platform, context)
    if import_flow is not None:
        try:
            return Reversal(_apply_import(candidate, import_flow, context))
        except ValueError as e:
            logger.warning("Import flow failed for %s: %s", candidate.workspace_path, e)
            return _verbatim(candidate, str(e))

    flow = candidate.flow
    if flow is None or not _needs_reversal(flow, candidate):
        return Reversal(candidate.content)

    try:
        return Reversal(_invert_export(candidate, flow, context))
    except ValueError as e:
        logger.warning("Could not reverse %s: %s", candidate.workspace_path, e)
        return _verbatim(candidate, str(e))


def _apply_import(candidate: SaveCandidate, flow: Flow, context: FlowContext) -> str:
    parsed = parse_content(candidate.content, detect_format(candidate.workspace_path))
    data = apply_transforms(parsed.data, flow, context.variables)
    target_format = detect_format(candidate.registry_key)
    return serialize_content(ParsedContent(parsed.format, data, parsed.body), target_format)


def _invert_export(candidate: SaveCandidate, flow: Flow, context: FlowContext) -> str:
    parsed = parse_content(candidate.content, detect_format(candidate.workspace_path))
    data = apply_inverse_transforms(parsed.data, flow, context.variables)
    target_format = detect_format(candidate.registry_key)
    return serialize_content(ParsedContent(parsed.format, data, parsed.body), target_format)


def _verbatim(candidate: SaveCandidate, reason: str) -> Reversal:
    return Reversal(
        candidate.content,
        warning=(
            f"Saved {candidate.workspace_path} verbatim ({reason}); "
            "it may contain platform-specific content"
        ),
    )
