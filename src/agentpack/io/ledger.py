"""I/O for the workspace ownership ledger (.agentpack/agentpack.index.yml).

There is no cross-process lock: two concurrent invocations against the same
workspace race and the last write wins.
"""

from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, cast

import click
import yaml

from agentpack.errors import LedgerError
from agentpack.io.files import write_text_atomic
from agentpack.models.flow import MergeKind
from agentpack.models.ledger import FileValue, Ledger, LedgerEntry, MergeMapping

LEDGER_DIR = ".agentpack"
LEDGER_FILENAME = "agentpack.index.yml"
LEDGER_HEADER = (
    "# This file is managed by agentpack. Do not edit manually.\n"
    "# It records which workspace files each installed package owns.\n\n"
)

_MERGE_KINDS = ("replace", "shallow", "deep", "composite")


def ledger_path(workspace_root: Path) -> Path:
    return workspace_root / LEDGER_DIR / LEDGER_FILENAME


def load_ledger(workspace_root: Path) -> Ledger:
    """Load the ledger for a workspace.

    Returns an empty ledger if the file doesn't exist. Malformed entries are
    dropped with a warning.

    Raises:
        LedgerError: If the file exists but is not parseable YAML or its top
            level is not a mapping of packages
    """
    path = ledger_path(workspace_root)
    if not path.exists():
        return Ledger.empty()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise LedgerError(f"Cannot parse ledger {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise LedgerError(f"Cannot read ledger {path}: {e}") from e

    if data is None:
        return Ledger.empty()
    if not isinstance(data, dict):
        raise LedgerError(f"Ledger {path} must be a mapping")

    packages_data = data.get("packages") or {}
    if not isinstance(packages_data, dict):
        raise LedgerError(f"Ledger {path}: 'packages' must be a mapping")

    packages: dict[str, LedgerEntry] = {}
    for name, entry_data in packages_data.items():
        entry = _parse_entry(str(name), entry_data)
        if entry is not None:
            packages[str(name)] = entry
    return Ledger(packages=packages)


def save_ledger(workspace_root: Path, ledger: Ledger) -> None:
    """Write the ledger atomically with sorted package and file keys."""
    packages: dict[str, Any] = {}
    for name in sorted(ledger.packages):
        entry = ledger.packages[name]
        if not entry.files:
            continue
        entry_data: dict[str, Any] = {"path": entry.path, "version": entry.version}
        if entry.hash is not None:
            entry_data["hash"] = entry.hash
        entry_data["files"] = {
            key: [_serialize_value(v) for v in entry.files[key]] for key in sorted(entry.files)
        }
        packages[name] = entry_data

    body = yaml.safe_dump({"packages": packages}, sort_keys=False, default_flow_style=False)
    write_text_atomic(ledger_path(workspace_root), LEDGER_HEADER + body)


@contextmanager
def modify_ledger(
    workspace_root: Path,
) -> Generator[tuple[Ledger, Callable[[Ledger], None]]]:
    """Context manager for one read-merge-write of the ledger.

    Example:
        with modify_ledger(root) as (ledger, save):
            save(ledger.with_entry(name, entry))
    """
    ledger = load_ledger(workspace_root)

    def save_fn(new_ledger: Ledger) -> None:
        save_ledger(workspace_root, new_ledger)

    yield ledger, save_fn


def _parse_entry(name: str, entry_data: object) -> LedgerEntry | None:
    if not isinstance(entry_data, dict):
        click.echo(f"Warning: Skipping invalid ledger entry for {name}", err=True)
        return None

    files_data = entry_data.get("files") or {}
    if not isinstance(files_data, dict):
        click.echo(f"Warning: Ignoring invalid files for {name}", err=True)
        files_data = {}

    files: dict[str, list[FileValue]] = {}
    for key, values in files_data.items():
        if not isinstance(values, list):
            click.echo(f"Warning: Skipping invalid ledger key {key} for {name}", err=True)
            continue
        parsed = [v for v in (_parse_value(value) for value in values) if v is not None]
        if parsed:
            files[str(key)] = parsed

    entry_hash = entry_data.get("hash")
    return LedgerEntry(
        path=str(entry_data.get("path", "")),
        version=str(entry_data.get("version", "0.0.0")),
        files=files,
        hash=str(entry_hash) if entry_hash is not None else None,
    )


def _parse_value(value: object) -> FileValue | None:
    if isinstance(value, str) and value:
        return value
    if isinstance(value, dict) and isinstance(value.get("target"), str):
        merge = value.get("merge", "deep")
        if merge not in _MERGE_KINDS:
            merge = "deep"
        keys = value.get("keys") or []
        return MergeMapping(
            target=value["target"],
            merge=cast(MergeKind, merge),
            keys=[str(k) for k in keys] if isinstance(keys, list) else [],
        )
    return None


def _serialize_value(value: FileValue) -> str | dict[str, Any]:
    if isinstance(value, MergeMapping):
        data: dict[str, Any] = {"target": value.target, "merge": value.merge}
        if value.keys:
            data["keys"] = list(value.keys)
        return data
    return value
