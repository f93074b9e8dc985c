"""Parsing and serialization of structured resource content.

Markdown is treated as YAML frontmatter (``data``) plus a body. Plain text
has no structure: ``data`` is the raw string.
"""

import json
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Literal

import frontmatter
import tomli
import tomli_w
import yaml

FileFormat = Literal["json", "jsonc", "yaml", "toml", "md", "text"]

_EXTENSION_FORMATS: dict[str, FileFormat] = {
    ".json": "json",
    ".jsonc": "jsonc",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".md": "md",
    ".mdc": "md",
}

# Strings are matched first so comment markers inside them are preserved.
_JSONC_TOKENS = re.compile(r'("(?:\\.|[^"\\])*")|(//[^\n]*)|(/\*.*?\*/)', re.DOTALL)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


@dataclass(frozen=True)
class ParsedContent:
    format: FileFormat
    data: Any
    body: str | None = None


def detect_format(path: str) -> FileFormat:
    """Format implied by a file's extension."""
    return _EXTENSION_FORMATS.get(PurePosixPath(path).suffix.lower(), "text")


def is_structured(fmt: FileFormat) -> bool:
    return fmt != "text"


def is_document(fmt: FileFormat) -> bool:
    """Prose formats, which composite merges split into per-package sections."""
    return fmt in ("md", "text")


def strip_jsonc(raw: str) -> str:
    """Remove comments and trailing commas from JSONC text."""

    def _replace(match: re.Match[str]) -> str:
        if match.group(1) is not None:
            return match.group(1)
        return ""

    without_comments = _JSONC_TOKENS.sub(_replace, raw)
    return _TRAILING_COMMA.sub(r"\1", without_comments)


def parse_content(raw: str, fmt: FileFormat) -> ParsedContent:
    """Parse raw text in the given format.

    Raises:
        ValueError: If the content is not valid for its format
    """
    if fmt == "json":
        return ParsedContent(fmt, json.loads(raw) if raw.strip() else {})
    if fmt == "jsonc":
        stripped = strip_jsonc(raw)
        return ParsedContent(fmt, json.loads(stripped) if stripped.strip() else {})
    if fmt == "yaml":
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML: {e}") from e
        return ParsedContent(fmt, data if data is not None else {})
    if fmt == "toml":
        return ParsedContent(fmt, tomli.loads(raw))
    if fmt == "md":
        try:
            post = frontmatter.loads(raw)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid frontmatter: {e}") from e
        return ParsedContent(fmt, dict(post.metadata), post.content)
    return ParsedContent(fmt, raw)


def serialize_content(content: ParsedContent, fmt: FileFormat | None = None) -> str:
    """Serialize parsed content, optionally converting to another format."""
    target = fmt if fmt is not None else content.format
    data = content.data

    if target in ("json", "jsonc"):
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    if target == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    if target == "toml":
        return tomli_w.dumps(data)
    if target == "md":
        body = content.body if content.body is not None else ""
        if not isinstance(data, dict) or not data:
            return body if body.endswith("\n") or not body else body + "\n"
        post = frontmatter.Post(body)
        post.metadata.update(data)
        return frontmatter.dumps(post, sort_keys=False) + "\n"
    if isinstance(data, str):
        return data
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
