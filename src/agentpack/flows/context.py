"""Execution context for resolving flows."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class FlowContext:
    """Everything a flow needs to resolve against one platform.

    Attributes:
        platform: Target platform id (e.g. "claude")
        workspace_root: Directory targets are written under
        package_root: Directory containing the package's universal files
        package_name: Fully-qualified package identity
        known_platforms: All platform ids, used to recognise platform suffixes
        variables: Context variables addressable as ``$$name`` in switches
            and ``{name}`` in patterns
    """

    platform: str
    workspace_root: Path
    package_root: Path
    package_name: str
    known_platforms: frozenset[str]
    variables: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def create(
        *,
        platform: str,
        workspace_root: Path,
        package_root: Path,
        package_name: str,
        known_platforms: frozenset[str],
        platform_variables: dict[str, Any] | None = None,
    ) -> "FlowContext":
        """Build a context with the standard variables populated.

        Standard variables: ``platform``, ``targetRoot``, ``isGlobal`` (target
        root is the home directory) and ``source`` (package root). Platform
        definition variables are layered underneath and cannot override them.
        """
        variables: dict[str, Any] = dict(platform_variables or {})
        variables.update(
            {
                "platform": platform,
                "targetRoot": str(workspace_root),
                "isGlobal": workspace_root.resolve() == Path.home().resolve(),
                "source": str(package_root),
            }
        )
        return FlowContext(
            platform=platform,
            workspace_root=workspace_root,
            package_root=package_root,
            package_name=package_name,
            known_platforms=known_platforms,
            variables=variables,
        )
