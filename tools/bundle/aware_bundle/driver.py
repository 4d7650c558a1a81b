"""Bundle build orchestration: assemble, then minify."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .bundle.assembler import assemble
from .bundle.sourcemap import map_path_for
from .bundle.utils import compute_sha256
from .minify import DEFAULT_POLICY, MinificationPolicy, minify
from .registry import resolve_registry
from .schemas.sourcemap import SourceMap
from .settings import BundleSettings, load_settings
from .targets import TargetKind, classify
from .vcs import resolve_commit_hash

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BundleConfig:
    """Configuration describing one bundle run."""

    entry_path: Path
    destination: Path
    target: Union[TargetKind, str, None] = None
    commit_hash: Optional[str] = None
    settings: Optional[BundleSettings] = None
    policy: MinificationPolicy = DEFAULT_POLICY


@dataclass(frozen=True, slots=True)
class BuildResult:
    bundle_path: Path
    map_path: Path
    target: TargetKind
    commit_hash: str
    sha256: str
    source_map: SourceMap


class BundleBuilder:
    """Coordinates bundle assembly and minification for one entry point."""

    def __init__(self, *, workspace_root: Optional[Path] = None) -> None:
        self.workspace_root = Path(workspace_root or Path.cwd()).resolve()

    def build(self, config: BundleConfig) -> BuildResult:
        """Build ``config.destination`` and its map; any stage failure aborts."""

        settings = config.settings or load_settings(self.workspace_root)
        entry_path = Path(config.entry_path).resolve()
        destination = Path(config.destination).resolve()
        commit_hash = config.commit_hash or resolve_commit_hash(settings.workspace_root)

        registry = resolve_registry(settings)
        descriptor = classify(entry_path, settings, config.target)
        logger.info("Building %s -> %s (%s, %s)", entry_path, destination, descriptor.target.value, commit_hash)

        assemble(
            entry_path,
            destination,
            settings=settings,
            descriptor=descriptor,
            registry=registry,
            commit_hash=commit_hash,
        )
        source_map = minify(destination, config.policy)

        return BuildResult(
            bundle_path=destination,
            map_path=map_path_for(destination),
            target=descriptor.target,
            commit_hash=commit_hash,
            sha256=compute_sha256(destination),
            source_map=source_map,
        )


def build(
    entry_path: Path,
    destination: Path,
    *,
    target: Union[TargetKind, str, None] = None,
    commit_hash: Optional[str] = None,
    settings: Optional[BundleSettings] = None,
    workspace_root: Optional[Path] = None,
) -> BuildResult:
    """Bundle ``entry_path`` into ``destination`` (plus ``destination.map``)."""

    builder = BundleBuilder(workspace_root=workspace_root or (settings.workspace_root if settings else None))
    return builder.build(
        BundleConfig(
            entry_path=Path(entry_path),
            destination=Path(destination),
            target=target,
            commit_hash=commit_hash,
            settings=settings,
        )
    )
