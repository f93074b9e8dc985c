"""Project configuration models for agentpack.toml."""

from dataclasses import dataclass, field

from agentpack.models.plan import ConflictStrategy


@dataclass(frozen=True)
class ProjectConfig:
    """Workspace-level install defaults.

    Attributes:
        default_strategy: Conflict strategy used when none is given
        namespace_threshold: Fraction of colliding targets that triggers
            whole-package namespacing, or None to always relocate per file
        platforms: Platform ids installed to when none are given
    """

    default_strategy: ConflictStrategy
    namespace_threshold: float | None
    platforms: list[str] = field(default_factory=list)
