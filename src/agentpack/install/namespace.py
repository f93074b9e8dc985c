"""Namespace allocation for packages relocated to avoid path collisions.

Slugs derive from a package's fully-qualified identity:

    gh@owner/repo/plugins/feature-dev/agents/x.md  ->  feature-dev
    gh@owner/repo                                  ->  repo
    @scope/name                                    ->  name
    plain-name                                     ->  plain-name

On collision with an already-used slug the candidate escalates to
``repo/leaf``, then ``owner/repo/leaf``, then a numeric suffix.
"""

import posixpath
import re
from collections.abc import Iterable
from dataclasses import dataclass

from agentpack.flows.patterns import GLOB_CHARS, NAME_PLACEHOLDER, has_glob, split_extension
from agentpack.models.flow import Flow, SwitchTarget

RESOURCE_MARKERS = frozenset({"agents", "rules", "commands", "skills", "hooks", "mcp"})

_SCOPED_NAME = re.compile(r"^(?:gh)?@([^/]+)/([^/]+)(?:/(.+))?$")


@dataclass(frozen=True)
class PackageIdentity:
    """Components of a fully-qualified package name."""

    owner: str | None
    repo: str | None
    sub_path: str | None
    raw: str


def parse_identity(name: str) -> PackageIdentity:
    """Split ``gh@owner/repo/path`` or ``@owner/repo/path`` into components."""
    match = _SCOPED_NAME.match(name)
    if match is None:
        return PackageIdentity(owner=None, repo=None, sub_path=None, raw=name)
    owner, repo, sub_path = match.groups()
    return PackageIdentity(owner=owner, repo=repo, sub_path=sub_path, raw=name)


def _leaf_segment(sub_path: str) -> str | None:
    segments = [s for s in sub_path.split("/") if s]
    for index, segment in enumerate(segments):
        if segment in RESOURCE_MARKERS:
            if index == 0:
                return None
            return segments[index - 1]
    return None


def namespace_candidates(name: str) -> list[str]:
    """Ordered slug candidates for a package identity, most specific last.

    Plain registry names have a single candidate: the name itself.
    """
    identity = parse_identity(name)
    if identity.repo is None or identity.owner is None:
        return [name]

    leaf = _leaf_segment(identity.sub_path) if identity.sub_path else None
    if leaf is not None:
        leaf = split_extension(leaf)[0] or leaf

    if leaf is None or leaf == identity.repo:
        return [identity.repo, f"{identity.owner}/{identity.repo}"]

    return [leaf, f"{identity.repo}/{leaf}", f"{identity.owner}/{identity.repo}/{leaf}"]


def derive_namespace_slug(name: str, existing_slugs: Iterable[str] = ()) -> str:
    """First candidate slug not already in use.

    When every candidate is taken the most specific one gets the first free
    numeric suffix, e.g. ``owner/repo/leaf-2``.
    """
    used = set(existing_slugs)
    candidates = namespace_candidates(name)
    for candidate in candidates:
        if candidate not in used:
            return candidate
    suffix = 2
    while f"{candidates[-1]}-{suffix}" in used:
        suffix += 1
    return f"{candidates[-1]}-{suffix}"


def allocate_slugs(names: Iterable[str]) -> dict[str, str]:
    """Allocate distinct slugs for packages in sorted-name order."""
    allocated: dict[str, str] = {}
    for name in sorted(set(names)):
        allocated[name] = derive_namespace_slug(name, allocated.values())
    return allocated


def _first_wildcard(pattern: str) -> int:
    indices = [pattern.find(token) for token in (*GLOB_CHARS, NAME_PLACEHOLDER)]
    return min((i for i in indices if i >= 0), default=len(pattern))


def namespace_pattern(pattern: str, slug: str) -> str:
    """Nest a target pattern under a namespace slug.

    Literal patterns get the slug inserted before the file name. Glob
    patterns get it inserted after the last directory before the first glob.

    Examples:
        >>> namespace_pattern(".tool/rules/*.md", "acme")
        '.tool/rules/acme/*.md'
        >>> namespace_pattern(".tool/rules/a.md", "acme")
        '.tool/rules/acme/a.md'
    """
    if not has_glob(pattern) and NAME_PLACEHOLDER not in pattern:
        directory, filename = posixpath.split(pattern)
        return posixpath.join(directory, slug, filename) if directory else f"{slug}/{filename}"

    first_glob = _first_wildcard(pattern)
    slash = pattern.rfind("/", 0, first_glob)
    if slash < 0:
        return f"{slug}/{pattern}"
    return f"{pattern[: slash + 1]}{slug}/{pattern[slash + 1 :]}"


def namespace_flow(flow: Flow, slug: str) -> Flow:
    """Copy of a flow whose target nests under ``slug``; merge flows are unchanged."""
    if flow.is_merge:
        return flow
    if isinstance(flow.to, SwitchTarget):
        expression = flow.to.switch
        cases = [
            case.model_copy(update={"value": namespace_pattern(case.value, slug)})
            for case in expression.cases
        ]
        default = (
            namespace_pattern(expression.default, slug) if expression.default is not None else None
        )
        switched = expression.model_copy(update={"cases": cases, "default": default})
        return flow.model_copy(update={"to": SwitchTarget(switch=switched)})
    return flow.model_copy(update={"to": namespace_pattern(flow.to, slug)})


def namespaced_path(relative_path: str, slug: str, target_pattern: str) -> str:
    """Relocate a single target path under a namespace slug.

    The slug is inserted after the pattern's static base directory when the
    path lies beneath it, otherwise before the file name.
    """
    first_glob = _first_wildcard(target_pattern)
    static = target_pattern[:first_glob]
    base = static[: static.rfind("/") + 1] if "/" in static else ""
    if first_glob == len(target_pattern):
        base = posixpath.dirname(target_pattern)
        base = base + "/" if base else ""

    if base and relative_path.startswith(base):
        return f"{base}{slug}/{relative_path[len(base) :]}"
    directory, filename = posixpath.split(relative_path)
    return posixpath.join(directory, slug, filename) if directory else f"{slug}/{filename}"
