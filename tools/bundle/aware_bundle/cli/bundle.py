"""Command-line entry point: ``aware-bundle <entryPath> <destinationPath>``."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from aware_bundle.driver import build
from aware_bundle.targets import TargetKind


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    cwd = Path.cwd()
    entry_path = _resolve_path(args.entry_path, cwd)
    destination = _resolve_path(args.destination_path, cwd)
    workspace = _resolve_workspace(args.workspace_root)

    build(entry_path, destination, target=args.target, workspace_root=workspace)
    return 0


def cli(argv: Sequence[str]) -> int:
    """Run with a full process argv, program name first."""

    return main(list(argv)[1:])


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="aware-bundle", description="Bundle an entry module into one file.")
    parser.add_argument("entry_path")
    parser.add_argument("destination_path")
    parser.add_argument("--target", choices=[kind.value for kind in TargetKind])
    parser.add_argument("--workspace-root")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    return parser


def _configure_logging(verbosity: int) -> None:
    if verbosity <= 0:
        return
    logging.basicConfig(
        level=logging.DEBUG if verbosity > 1 else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _resolve_workspace(value: Optional[str]) -> Path:
    return Path(value).resolve() if value else Path.cwd()


def _resolve_path(value: str, workspace: Path) -> Path:
    path = Path(value)
    if not path.is_absolute():
        path = workspace / path
    return path.resolve()
