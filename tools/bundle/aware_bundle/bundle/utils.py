"""Shared helpers used by bundle tooling."""

from __future__ import annotations

import hashlib
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator, Optional

from ..errors import ConfigurationError


def compute_sha256(path: Path) -> str:
    """Return the SHA-256 checksum for a file."""

    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def ensure_directory(path: Path) -> Path:
    """Create ``path`` and its parents if missing."""

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(f"Unable to create directory {path}: {exc}") from exc
    return path


@contextmanager
def atomic_write(path: Path, *, newline: Optional[str] = "\n") -> Iterator[IO[str]]:
    """Write text to a sibling temporary file and move it over ``path`` on success.

    On any exception the temporary file is removed and ``path`` is untouched.
    """

    ensure_directory(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline=newline) as handle:
            yield handle
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def write_text(path: Path, content: str, *, newline: Optional[str] = "\n") -> None:
    """Atomically write text, ensuring parent directories exist."""

    with atomic_write(path, newline=newline) as handle:
        handle.write(content)
