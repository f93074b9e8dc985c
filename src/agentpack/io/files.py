"""Filesystem helpers used by install and save.

All workspace-relative paths handled by agentpack are POSIX strings.
"""

import hashlib
from pathlib import Path


def bytes_hash(data: bytes) -> str:
    """SHA-256 hex digest of raw content."""
    return hashlib.sha256(data).hexdigest()


def decode_text(data: bytes) -> str | None:
    """UTF-8 text of raw content with line endings kept, or None for binary data."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def read_bytes_if_exists(path: Path) -> bytes | None:
    if not path.is_file():
        return None
    return path.read_bytes()


def read_text_if_exists(path: Path) -> str | None:
    if not path.is_file():
        return None
    return path.read_text(encoding="utf-8")


def write_bytes_atomic(path: Path, data: bytes) -> None:
    """Write bytes via a temporary sibling file, then rename over the target.

    Creates parent directories if they don't exist.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(path.name + ".tmp")
    temp_path.write_bytes(data)
    temp_path.replace(path)


def write_text_atomic(path: Path, text: str) -> None:
    write_bytes_atomic(path, text.encode("utf-8"))


def relative_posix(path: Path, root: Path) -> str:
    """POSIX path of ``path`` relative to ``root``."""
    return path.relative_to(root).as_posix()


def iter_relative_files(root: Path, base: str = "") -> list[str]:
    """Sorted POSIX paths of every file under ``root / base``, relative to ``root``."""
    start = root / base if base else root
    if not start.is_dir():
        return []
    return sorted(relative_posix(p, root) for p in start.rglob("*") if p.is_file())


def is_within(path: str, directory: str) -> bool:
    """Check whether a relative path lies beneath a relative directory.

    ``directory`` may carry a trailing separator.
    """
    prefix = directory.rstrip("/") + "/"
    return path.startswith(prefix)


def escapes_root(relative: str) -> bool:
    """True when a relative path resolves outside its root."""
    parts: list[str] = []
    for part in relative.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if not parts:
                return True
            parts.pop()
            continue
        parts.append(part)
    return relative.startswith("/")
