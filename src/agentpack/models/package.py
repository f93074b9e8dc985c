"""Package identity as consumed from dependency resolution and manifests."""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class PackageManifest:
    """Name and version read from a package's package.yml."""

    name: str
    version: str


@dataclass(frozen=True)
class ResolvedPackage:
    """A package ready to install: identity plus a local content root.

    Attributes:
        name: Fully-qualified identity (e.g. "gh@owner/repo/plugins/foo")
        version: Resolved version
        content_root: Local directory holding the package's universal files
        resources: Optional explicit package-relative paths to install; when
            None the whole package is installed
    """

    name: str
    version: str
    content_root: Path
    resources: list[str] | None = None
