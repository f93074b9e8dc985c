"""Parity checks: does a workspace candidate already match package source?"""

import logging
from pathlib import Path
from typing import Literal

from agentpack.flows.context import FlowContext
from agentpack.flows.executor import render_standalone, transform_source
from agentpack.flows.formats import ParsedContent, detect_format, is_document, serialize_content
from agentpack.flows.patterns import platform_variant
from agentpack.io.files import decode_text, read_bytes_if_exists
from agentpack.save.candidates import SaveCandidate
from agentpack.save.extract import extract_keys, normalize_keys_to_parent

logger = logging.getLogger(__name__)

ParityKind = Literal["direct", "forward", "sibling"]


def simulate_forward(
    candidate: SaveCandidate, source_text: str, context: FlowContext
) -> str | None:
    """Text the candidate's export flow would produce from ``source_text``.

    Merge candidates are compared on extracted keys only, so the simulation
    is reduced the same way.

    Returns:
        Simulated text, or None when the candidate has no known flow

    Raises:
        ValueError: If the source cannot be parsed
    """
    flow = candidate.flow
    if flow is None:
        return None

    if candidate.merge is None:
        return render_standalone(
            source_text, flow, candidate.registry_key, candidate.workspace_path, context
        )

    target_format = detect_format(candidate.workspace_path)
    if candidate.merge.merge == "composite" and is_document(target_format):
        return source_text if source_text.endswith("\n") else source_text + "\n"

    transformed = transform_source(source_text, flow, candidate.registry_key, context)
    extracted = extract_keys(transformed.data, normalize_keys_to_parent(candidate.merge.keys))
    return serialize_content(ParsedContent(target_format, extracted), target_format)


def check_parity(
    candidate: SaveCandidate,
    universal_content: str,
    package_root: Path,
    context: FlowContext | None,
) -> ParityKind | None:
    """How a candidate matches existing source, or None when it differs.

    - ``direct``: the universal-form content equals the source file
    - ``forward``: installing the source file would produce the candidate
    - ``sibling``: the candidate equals its platform-specific sibling file

    Args:
        candidate: Workspace candidate
        universal_content: Candidate content after reversal
        package_root: Package source root
        context: Flow context of the candidate's platform, if known
    """
    source_text = _read_source(package_root / candidate.registry_key)
    if source_text is not None and _matches(candidate, universal_content, source_text, context):
        return "direct" if _is_direct(candidate, universal_content, source_text) else "forward"

    if candidate.platform is not None:
        sibling = platform_variant(candidate.registry_key, candidate.platform)
        sibling_text = _read_source(package_root / sibling)
        if sibling_text is not None and _matches(
            candidate, universal_content, sibling_text, context
        ):
            return "sibling"

    return None


def check_binary_parity(candidate: SaveCandidate, package_root: Path) -> ParityKind | None:
    """Byte parity for a candidate that is not text: its source or sibling is identical."""
    if candidate.raw is None:
        return None
    if read_bytes_if_exists(package_root / candidate.registry_key) == candidate.raw:
        return "direct"
    if candidate.platform is not None:
        sibling = platform_variant(candidate.registry_key, candidate.platform)
        if read_bytes_if_exists(package_root / sibling) == candidate.raw:
            return "sibling"
    return None


def _read_source(path: Path) -> str | None:
    data = read_bytes_if_exists(path)
    return decode_text(data) if data is not None else None


def _is_direct(candidate: SaveCandidate, universal_content: str, source_text: str) -> bool:
    return universal_content == source_text or candidate.content == source_text


def _matches(
    candidate: SaveCandidate,
    universal_content: str,
    source_text: str,
    context: FlowContext | None,
) -> bool:
    if _is_direct(candidate, universal_content, source_text):
        return True
    if context is None:
        return False
    try:
        simulated = simulate_forward(candidate, source_text, context)
    except ValueError as e:
        logger.debug("Forward simulation failed for %s: %s", candidate.registry_key, e)
        return False
    return simulated is not None and simulated == candidate.content
