"""Version-control lookups used for build metadata."""

from __future__ import annotations

import functools
import subprocess
from pathlib import Path
from typing import List, Optional

from .errors import EnvironmentLookupError


def _run_git_command(args: List[str], *, cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
    return subprocess.run(
        args,
        cwd=str(cwd) if cwd else None,
        check=True,
        capture_output=True,
        text=True,
    )


def resolve_commit_hash(cwd: Optional[Path] = None) -> str:
    """Return the commit hash of ``HEAD`` for the repository at ``cwd``."""

    try:
        proc = _run_git_command(["git", "rev-parse", "HEAD"], cwd=cwd)
    except FileNotFoundError as exc:
        raise EnvironmentLookupError("git executable not found; cannot resolve commit hash") from exc
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or "").strip() or f"exit {exc.returncode}"
        raise EnvironmentLookupError(f"git rev-parse HEAD failed: {detail}") from exc

    commit = proc.stdout.strip()
    if not commit:
        raise EnvironmentLookupError("git rev-parse HEAD returned an empty commit hash")
    return commit


@functools.lru_cache(maxsize=None)
def process_commit_hash() -> str:
    """Commit hash for the current working directory, resolved once per process."""

    return resolve_commit_hash()
