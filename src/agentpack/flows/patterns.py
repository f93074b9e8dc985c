"""Path pattern helpers shared by source discovery and target resolution.

Patterns are POSIX-style, relative paths. Supported syntax:

- ``*`` / ``?`` / ``[...]`` within a segment (never matching a leading dot)
- ``**`` across segments
- ``{var}`` substituted from context variables
- ``{name}`` placeholder capturing a file stem
"""

import glob
import posixpath
import re
from collections.abc import Collection, Mapping
from functools import lru_cache
from typing import Any

NAME_PLACEHOLDER = "{name}"
GLOB_CHARS = ("*", "?", "[")

_VARIABLE_PATTERN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def has_glob(pattern: str) -> bool:
    """Check whether a pattern contains glob syntax."""
    return any(ch in pattern for ch in GLOB_CHARS)


def static_prefix(pattern: str) -> str:
    """Leading segments of a pattern that contain no glob or placeholder.

    Examples:
        >>> static_prefix("rules/**/*.md")
        'rules'
        >>> static_prefix("*.md")
        ''
    """
    segments: list[str] = []
    for segment in pattern.split("/"):
        if has_glob(segment) or "{" in segment:
            break
        segments.append(segment)
    else:
        # Fully literal pattern: the prefix is its parent directory.
        segments = segments[:-1]
    return "/".join(s for s in segments if s)


@lru_cache(maxsize=256)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern into an anchored regex."""
    return re.compile(glob.translate(pattern, recursive=True, include_hidden=False, seps="/"))


def glob_match(pattern: str, path: str) -> bool:
    """Match a relative POSIX path against a glob pattern."""
    return compile_glob(pattern).match(path) is not None


def substitute_variables(pattern: str, variables: Mapping[str, Any]) -> str:
    """Replace ``{var}`` placeholders with context variable values.

    ``{name}`` is reserved for captured names and is never substituted here.
    Unknown placeholders are left intact.
    """

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key == "name" or key not in variables:
            return match.group(0)
        return str(variables[key])

    return _VARIABLE_PATTERN.sub(_replace, pattern)


def name_regex(pattern: str) -> re.Pattern[str]:
    """Regex for a pattern containing ``{name}``; group 1 is the captured name."""
    pieces = [re.escape(piece) for piece in pattern.split(NAME_PLACEHOLDER)]
    return re.compile("^" + "([^/]+?)".join(pieces) + "$")


def capture_name(pattern: str, path: str) -> str | None:
    """Extract the ``{name}`` value from ``path`` matched against ``pattern``."""
    if NAME_PLACEHOLDER not in pattern:
        return None
    match = name_regex(pattern).match(path)
    if match is None:
        return None
    return match.group(1)


def split_extension(filename: str) -> tuple[str, str]:
    """Split ``a.b.md`` into ``("a.b", ".md")``; dotfiles have no extension."""
    stem, ext = posixpath.splitext(filename)
    return stem, ext


def platform_suffix(path: str, platform_ids: Collection[str]) -> str | None:
    """Platform id embedded as the second-to-last dotted part of a file name.

    Examples:
        >>> platform_suffix("rules/a.claude.md", {"claude"})
        'claude'
    """
    parts = posixpath.basename(path).split(".")
    if len(parts) >= 3 and parts[-2] in platform_ids:
        return parts[-2]
    return None


def strip_platform_suffix(path: str, platform_ids: Collection[str]) -> str:
    """Remove an embedded platform id: ``a.claude.md`` becomes ``a.md``."""
    if platform_suffix(path, platform_ids) is None:
        return path
    directory, filename = posixpath.split(path)
    parts = filename.split(".")
    stripped = ".".join([*parts[:-2], parts[-1]])
    return posixpath.join(directory, stripped) if directory else stripped


def platform_variant(path: str, platform: str) -> str:
    """Platform-qualified sibling of a universal path."""
    directory, filename = posixpath.split(path)
    stem, ext = split_extension(filename)
    variant = f"{stem}.{platform}{ext}"
    return posixpath.join(directory, variant) if directory else variant

