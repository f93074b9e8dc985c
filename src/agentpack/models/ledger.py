"""Ownership ledger models."""

from dataclasses import dataclass, field, replace

from agentpack.models.flow import MergeKind


@dataclass(frozen=True)
class MergeMapping:
    """A file value produced by a merge flow.

    ``keys`` are the dot-separated key paths this package contributed to the
    shared target file.
    """

    target: str
    merge: MergeKind
    keys: list[str] = field(default_factory=list)


FileValue = str | MergeMapping


def value_target(value: FileValue) -> str:
    """Workspace-relative path a ledger value points to."""
    if isinstance(value, MergeMapping):
        return value.target
    return value


def is_dir_key(key: str) -> bool:
    """Registry keys with a trailing separator have directory scope."""
    return key.endswith("/")


@dataclass(frozen=True)
class LedgerEntry:
    """Everything one package owns in the workspace."""

    path: str
    version: str
    files: dict[str, list[FileValue]]
    hash: str | None = None

    def with_files(self, files: dict[str, list[FileValue]]) -> "LedgerEntry":
        """Return a copy with a new files mapping."""
        return replace(self, files=files)


@dataclass(frozen=True)
class Ledger:
    """All installed packages keyed by package name."""

    packages: dict[str, LedgerEntry]

    def get(self, name: str) -> LedgerEntry | None:
        """Entry for a package, or None when not installed."""
        return self.packages.get(name)

    def with_entry(self, name: str, entry: LedgerEntry) -> "Ledger":
        """Return a new ledger with ``name`` set to ``entry``.

        Entries whose files mapping is empty are removed instead.
        """
        if not entry.files:
            return self.without(name)
        return Ledger(packages={**self.packages, name: entry})

    def without(self, name: str) -> "Ledger":
        """Return a new ledger without ``name``."""
        return Ledger(packages={k: v for k, v in self.packages.items() if k != name})

    @staticmethod
    def empty() -> "Ledger":
        return Ledger(packages={})
