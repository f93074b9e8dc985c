"""Extraction of one package's contribution from a shared merge target."""

import logging
from typing import Any

from agentpack.flows.formats import (
    ParsedContent,
    detect_format,
    is_document,
    parse_content,
    serialize_content,
)
from agentpack.flows.merge import extract_section, get_nested, has_nested, set_nested
from agentpack.models.ledger import MergeMapping

logger = logging.getLogger(__name__)


def normalize_keys_to_parent(keys: list[str]) -> list[str]:
    """Lift tracked leaf keys to the level they are extracted at.

    Install tracks leaf keys such as ``mcpServers.github.type`` and
    ``mcpServers.gitlab.url``; extraction works on whole entries such as
    ``mcpServers.github``.

    - Keys with at most two segments are used as-is
    - A single deeper key is cut to its first two segments
    - Otherwise each key is cut one level below the keys' common prefix,
      and never above two segments

    Examples:
        >>> normalize_keys_to_parent(["mcp.github.type", "mcp.gitlab.url"])
        ['mcp.github', 'mcp.gitlab']
        >>> normalize_keys_to_parent(["a.b.c", "x.y.z"])
        ['a.b', 'x.y']
    """
    if not keys:
        return []
    if all(len(k.split(".")) <= 2 for k in keys):
        return list(dict.fromkeys(keys))
    if len(keys) == 1:
        return [".".join(keys[0].split(".")[:2])]

    split_keys = [k.split(".") for k in keys]
    common = 0
    for depth, segment in enumerate(split_keys[0]):
        if all(len(parts) > depth and parts[depth] == segment for parts in split_keys):
            common = depth + 1
        else:
            break

    normalized: dict[str, None] = {}
    for parts in split_keys:
        depth = min(max(2, common + 1), len(parts))
        normalized[".".join(parts[:depth])] = None
    return list(normalized)


def extract_keys(data: Any, keys: list[str]) -> dict[str, Any]:
    """Mapping holding only the given dot paths of ``data``."""
    extracted: dict[str, Any] = {}
    for key_path in keys:
        if has_nested(data, key_path):
            set_nested(extracted, key_path, get_nested(data, key_path))
    return extracted


def extract_contribution(text: str, mapping: MergeMapping, package_name: str) -> str | None:
    """This package's part of a shared workspace file, as text.

    Composite text files yield the package's delimited section. Structured
    files yield only the package's tracked keys, serialized in the file's
    own format.

    Returns:
        Extracted text, or None when the package contributed nothing that is
        still present

    Raises:
        ValueError: If the shared file cannot be parsed
    """
    fmt = detect_format(mapping.target)
    if mapping.merge == "composite" and is_document(fmt):
        return extract_section(text, package_name)

    if not mapping.keys:
        logger.debug("No tracked keys for %s; nothing to extract", mapping.target)
        return None

    parsed = parse_content(text, fmt)
    extracted = extract_keys(parsed.data, normalize_keys_to_parent(mapping.keys))
    if not extracted:
        return None
    return serialize_content(ParsedContent(parsed.format, extracted))
