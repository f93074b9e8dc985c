"""Mapping of a concrete source path onto a flow's target pattern."""

import posixpath

from agentpack.flows.patterns import (
    NAME_PLACEHOLDER,
    capture_name,
    has_glob,
    split_extension,
    static_prefix,
)


def _tail_extension(tail: str) -> str | None:
    """Extension fixed by the last segment of a pattern, e.g. ``*.md`` gives ``.md``."""
    last = tail.rsplit("/", 1)[-1]
    if not last.startswith("*"):
        return None
    rest = last.lstrip("*")
    if not rest.startswith(".") or has_glob(rest):
        return None
    return rest


def _resolve_recursive(source: str, from_pattern: str, to_pattern: str) -> str:
    from_base = static_prefix(from_pattern)
    sub_path = source[len(from_base) + 1 :] if from_base else source

    to_base = to_pattern.split("**", 1)[0].rstrip("/")
    from_ext = _tail_extension(from_pattern.rsplit("**", 1)[-1])
    to_ext = _tail_extension(to_pattern.rsplit("**", 1)[-1])
    if from_ext and to_ext and from_ext != to_ext and sub_path.endswith(from_ext):
        sub_path = sub_path[: -len(from_ext)] + to_ext

    return posixpath.join(to_base, sub_path) if to_base else sub_path


def _resolve_single_star(source: str, to_pattern: str) -> str:
    to_pattern = to_pattern.replace("**/", "")
    to_dir, to_name = posixpath.split(to_pattern)
    star = to_name.index("*")
    prefix, suffix = to_name[:star], to_name[star + 1 :]

    source_base, source_ext = split_extension(posixpath.basename(source))
    if suffix.startswith("."):
        name = prefix + source_base + suffix
    else:
        name = prefix + source_base + source_ext + suffix
    return posixpath.join(to_dir, name) if to_dir else name


def _resolve_named(source: str, from_pattern: str, to_pattern: str) -> str:
    captured = capture_name(from_pattern, source)
    source_base, source_ext = split_extension(posixpath.basename(source))
    if captured is None:
        captured = source_base
    target = to_pattern.replace(NAME_PLACEHOLDER, captured)
    _, target_ext = split_extension(posixpath.basename(target))
    if not target_ext and NAME_PLACEHOLDER in posixpath.basename(to_pattern):
        target += source_ext
    return target


def resolve_target_path(source: str, from_pattern: str, to_pattern: str) -> str:
    """Compute the workspace-relative target for one source file.

    ``source`` must already be in universal form (platform suffix stripped).

    - ``**`` in both patterns: the matched sub-path is preserved under the
      target base, remapping the extension when the patterns' extensions
      differ.
    - ``*`` in the target: the source basename is substituted; a target
      suffix starting with ``.`` replaces the source extension.
    - ``{name}`` in the target: the captured name is substituted and the
      source extension re-appended when the target specifies none.
    - Otherwise the target pattern is used literally.

    Examples:
        >>> resolve_target_path("rules/a.md", "rules/*.md", ".tool/rules/*.md")
        '.tool/rules/a.md'
        >>> resolve_target_path("rules/x/a.md", "rules/**/*.md", ".cursor/rules/**/*.mdc")
        '.cursor/rules/x/a.mdc'
    """
    if "**" in from_pattern and "**" in to_pattern:
        return _resolve_recursive(source, from_pattern, to_pattern)
    if NAME_PLACEHOLDER in to_pattern:
        return _resolve_named(source, from_pattern, to_pattern)
    if "*" in posixpath.basename(to_pattern):
        return _resolve_single_star(source, to_pattern)
    return to_pattern
