"""Aggregated path ownership built from the ledger.

The context is rebuilt on every install rather than cached, so it always
reflects the current ledger and the current contents of owned directories.
"""

from pathlib import Path

from agentpack.io.files import iter_relative_files
from agentpack.models.ledger import FileValue, Ledger, LedgerEntry, MergeMapping, is_dir_key
from agentpack.models.plan import OwnershipContext, OwnershipRecord


def expand_value(workspace_root: Path, key: str, value: FileValue) -> list[str]:
    """Workspace paths covered by one ledger value.

    Directory keys expand to every file currently beneath the directory.
    """
    if isinstance(value, MergeMapping):
        return [value.target]
    if is_dir_key(key):
        return iter_relative_files(workspace_root, value.rstrip("/"))
    return [value]


def expand_entry(workspace_root: Path, entry: LedgerEntry) -> set[str]:
    """Every workspace path a ledger entry covers."""
    paths: set[str] = set()
    for key, values in entry.files.items():
        for value in values:
            paths.update(expand_value(workspace_root, key, value))
    return paths


def _explicit_paths(entry: LedgerEntry) -> set[str]:
    return {
        value
        for key, values in entry.files.items()
        if not is_dir_key(key)
        for value in values
        if isinstance(value, str)
    }


def build_ownership_context(
    ledger: Ledger, package_name: str, workspace_root: Path
) -> OwnershipContext:
    """Build path and directory ownership for every package except ``package_name``.

    Shared merge targets are not exclusively owned and are left out of the
    path lookup. Explicit file claims, including those of ``package_name``
    itself, take precedence over directory expansion; otherwise when two
    packages claim the same path the first one in package-name order wins.
    """
    dir_key_owners: dict[str, list[OwnershipRecord]] = {}
    file_owners: dict[str, OwnershipRecord] = {}
    dir_owners: dict[str, OwnershipRecord] = {}

    for name in sorted(ledger.packages):
        if name == package_name:
            continue
        entry = ledger.packages[name]
        for key, values in entry.files.items():
            if is_dir_key(key):
                record = OwnershipRecord(package_name=name, key=key, kind="dir")
                dir_key_owners.setdefault(key, []).append(record)
                owners = dir_owners
            else:
                record = OwnershipRecord(package_name=name, key=key, kind="file")
                owners = file_owners
            for value in values:
                if isinstance(value, MergeMapping):
                    continue
                for path in expand_value(workspace_root, key, value):
                    owners.setdefault(path, record)

    previous = ledger.get(package_name)
    own_claims = _explicit_paths(previous) if previous is not None else set()
    installed_path_owners = {p: r for p, r in dir_owners.items() if p not in own_claims}
    installed_path_owners.update(file_owners)

    previous_paths = expand_entry(workspace_root, previous) if previous is not None else set()
    previous_paths -= set(file_owners)

    return OwnershipContext(
        dir_key_owners=dir_key_owners,
        installed_path_owners=installed_path_owners,
        previous_owned_paths=frozenset(previous_paths),
        previous_entry=previous,
    )
