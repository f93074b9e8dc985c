"""Pure operations merging install results into ledger entries.

All functions return new ledger objects; nothing here touches the ledger
file itself.
"""

from pathlib import Path

from agentpack.install.ownership import expand_value
from agentpack.install.planner import prune_nested_dirs
from agentpack.io.files import is_within
from agentpack.models.ledger import (
    FileValue,
    Ledger,
    LedgerEntry,
    is_dir_key,
    value_target,
)
from agentpack.models.plan import OwnershipRecord


def prune_files(
    files: dict[str, list[FileValue]], source_files: set[str]
) -> dict[str, list[FileValue]]:
    """Drop keys whose backing source no longer exists in the package.

    File keys survive when their registry path is still a source file;
    directory keys survive when at least one source file lies beneath them.
    """
    pruned: dict[str, list[FileValue]] = {}
    for key, values in files.items():
        if is_dir_key(key):
            if any(f.startswith(key) for f in source_files):
                pruned[key] = list(values)
        elif key in source_files:
            pruned[key] = list(values)
    return pruned


def merge_files(
    previous: dict[str, list[FileValue]], new: dict[str, list[FileValue]]
) -> dict[str, list[FileValue]]:
    """Merge a newly computed mapping into a (pruned) previous mapping.

    - Directory keys: union, de-duplicate, keep only the most general dirs.
    - Exclusive file keys: the new values replace the old ones.
    - Merge-flow keys: union by target path, new values win, sorted.
    - Previous file keys fully covered by a new directory claim are dropped.
    """
    new_dirs = [value_target(v) for k, vals in new.items() if is_dir_key(k) for v in vals]
    merged: dict[str, list[FileValue]] = {}
    for key, values in previous.items():
        if not is_dir_key(key) and key not in new and new_dirs:
            covered = all(
                any(is_within(value_target(v), d) for d in new_dirs) for v in values
            )
            if covered:
                continue
        merged[key] = list(values)

    for key, values in new.items():
        if is_dir_key(key):
            combined = [value_target(v) for v in (*merged.get(key, []), *values)]
            merged[key] = list(prune_nested_dirs(combined))
        elif all(isinstance(v, str) for v in values):
            merged[key] = sorted({value_target(v) for v in values})
        else:
            by_target: dict[str, FileValue] = {value_target(v): v for v in merged.get(key, [])}
            by_target.update({value_target(v): v for v in values})
            merged[key] = [by_target[t] for t in sorted(by_target)]
    return merged


def merge_entry(
    previous: LedgerEntry | None,
    *,
    path: str,
    version: str,
    files: dict[str, list[FileValue]],
    source_files: set[str],
    content_hash: str | None = None,
) -> LedgerEntry:
    """Build a package's new ledger entry from its previous one.

    The previous mapping is pruned against the package's current source files
    first, then merged with the new mapping.
    """
    previous_files = previous.files if previous is not None else {}
    merged = merge_files(prune_files(previous_files, source_files), files)
    return LedgerEntry(path=path, version=version, files=merged, hash=content_hash)


def transfer_paths(
    ledger: Ledger, transfers: dict[str, OwnershipRecord], workspace_root: Path
) -> Ledger:
    """Remove overwritten paths from the packages that previously owned them.

    Directory claims containing a transferred path are narrowed to file
    claims for the remaining files beneath them.
    """
    for path, record in sorted(transfers.items()):
        entry = ledger.get(record.package_name)
        if entry is None or record.key not in entry.files:
            continue
        files = {k: list(v) for k, v in entry.files.items()}
        values = files.pop(record.key)

        if record.kind == "file":
            remaining = [v for v in values if value_target(v) != path]
            if remaining:
                files[record.key] = remaining
        else:
            kept_dirs: list[FileValue] = []
            for value in values:
                directory = value_target(value)
                if not is_within(path, directory):
                    kept_dirs.append(value)
                    continue
                prefix = directory.rstrip("/") + "/"
                for owned in expand_value(workspace_root, record.key, value):
                    if owned == path:
                        continue
                    file_key = record.key + owned[len(prefix) :]
                    files.setdefault(file_key, []).append(owned)
            if kept_dirs:
                files[record.key] = kept_dirs

        ledger = ledger.with_entry(record.package_name, entry.with_files(files))
    return ledger
