"""Ephemeral planning models for a single install run."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, cast

from agentpack.models.flow import Flow
from agentpack.models.ledger import LedgerEntry

ConflictStrategy = Literal["overwrite", "skip", "keep-both", "ask"]
Resolution = Literal["overwrite", "skip", "keep-both"]
Decision = Literal["dir", "file"]
ConflictKind = Literal["none", "owned-by-other", "exists-unowned"]


def validate_conflict_strategy(value: str) -> ConflictStrategy:
    """Validate and return conflict strategy.

    Args:
        value: String to validate

    Returns:
        Valid ConflictStrategy

    Raises:
        ValueError: If value is not a valid conflict strategy
    """
    if value not in ("overwrite", "skip", "keep-both", "ask"):
        raise ValueError(f"Invalid conflict strategy: {value}")
    return cast(ConflictStrategy, value)


@dataclass(frozen=True)
class PlannedTarget:
    """One concrete file a flow will write.

    ``registry_key`` is the package-relative universal path with any
    platform suffix removed; it is the key recorded in the ledger.
    """

    source_path: Path
    registry_key: str
    absolute_path: Path
    relative_path: str
    target_pattern: str
    platform: str
    flow: Flow

    @property
    def is_merge(self) -> bool:
        return self.flow.is_merge


@dataclass(frozen=True)
class TargetGroup:
    """Planned targets bucketed by directory key.

    ``retained`` is True when at least one platform kept a "dir" decision
    because the package already owned the directory.
    """

    key: str
    targets: list[PlannedTarget]
    platform_decisions: dict[str, Decision]
    decision: Decision
    retained: bool = False


@dataclass(frozen=True)
class OwnershipRecord:
    """Projection of a ledger entry: who owns a key."""

    package_name: str
    key: str
    kind: Literal["file", "dir"]


@dataclass(frozen=True)
class OwnershipContext:
    """Path and directory ownership of every package except the installing one."""

    dir_key_owners: dict[str, list[OwnershipRecord]]
    installed_path_owners: dict[str, OwnershipRecord]
    previous_owned_paths: frozenset[str]
    previous_entry: LedgerEntry | None = None

    def owner_of(self, relative_path: str) -> OwnershipRecord | None:
        return self.installed_path_owners.get(relative_path)


@dataclass(frozen=True)
class TargetConflict:
    """A planned target that collides with something already on disk."""

    target: PlannedTarget
    kind: ConflictKind
    owner: OwnershipRecord | None = None


@dataclass(frozen=True)
class ConflictResolution:
    """Outcome of conflict arbitration for one package.

    ``transfers`` lists workspace paths whose ownership moves from another
    package to the installing one (``overwrite`` of an owned file).
    """

    targets: list[PlannedTarget]
    notes: list[str] = field(default_factory=list)
    namespace_slug: str | None = None
    relocated: list[str] = field(default_factory=list)
    transfers: dict[str, OwnershipRecord] = field(default_factory=dict)
    fallback: bool = False
