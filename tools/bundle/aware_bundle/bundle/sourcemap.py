"""Source map extraction and persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Dict, Iterable, Iterator, Optional

from pydantic import ValidationError

from ..errors import ConfigurationError
from ..schemas.sourcemap import ModuleSegment, SourceMap
from .runtime import map_reference
from .utils import sha256_text, write_text

logger = logging.getLogger(__name__)


def map_path_for(bundle_path: Path) -> Path:
    return bundle_path.with_name(f"{bundle_path.name}.map")


def load_source_map(path: Path) -> SourceMap:
    """Load a source map from JSON."""

    if not path.exists():
        raise ConfigurationError(f"Source map not found: {path}")
    try:
        return SourceMap.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid source map {path}: {exc}") from exc


def dump_source_map(source_map: SourceMap, path: Path) -> None:
    write_text(path, render_source_map(source_map))


def render_source_map(source_map: SourceMap) -> str:
    return source_map.model_dump_json(indent=2) + "\n"


@dataclass(slots=True)
class BundleLine:
    """One emitted bundle line, optionally describing a module directive."""

    text: str
    module: Optional[str] = None
    source_path: Optional[str] = None
    original: Optional[str] = None
    embedded: Optional[str] = None
    stub: bool = False
    exposes: Optional[str] = None
    alias: Optional[str] = None


@dataclass(slots=True)
class SourceMapExtractor:
    """Record module positions while bundle lines stream through.

    ``pipe`` yields the bundle text unchanged, writes the collected map to
    ``map_handle`` once the stream is exhausted and finishes the bundle with
    a map reference comment.
    """

    bundle_name: str
    map_name: str
    entry: Optional[str] = None
    source_map: SourceMap = field(init=False)
    _segments: Dict[str, ModuleSegment] = field(init=False, default_factory=dict)
    _source_index: Dict[str, int] = field(init=False, default_factory=dict)

    def __post_init__(self) -> None:
        self.source_map = SourceMap(file=self.bundle_name, entry=self.entry)

    def pipe(self, lines: Iterable[BundleLine], map_handle: IO[str]) -> Iterator[str]:
        number = 0
        for line in lines:
            start = number + 1
            number += line.text.count("\n") + 1
            self._record(line, start)
            yield line.text + "\n"

        map_handle.write(render_source_map(self.source_map))
        logger.debug("Mapped %d modules into %s", len(self.source_map.modules), self.map_name)
        yield map_reference(self.map_name) + "\n"

    def _record(self, line: BundleLine, number: int) -> None:
        if line.alias is not None and line.module is not None:
            segment = self._segments.get(line.module)
            if segment is not None and line.alias not in segment.aliases:
                segment.aliases.append(line.alias)
            return
        if line.exposes is not None and line.module is not None:
            segment = self._segments.get(line.module)
            if segment is not None and line.exposes not in segment.logical_paths:
                segment.logical_paths.append(line.exposes)
            return
        if line.module is None:
            return

        segment = ModuleSegment(name=line.module, line=number, stub=line.stub)
        if line.source_path is not None and line.original is not None:
            segment.source = self._add_source(line.source_path, line.original)
        if line.embedded is not None:
            segment.sha256 = sha256_text(line.embedded)
        self._segments[line.module] = segment
        self.source_map.modules.append(segment)

    def _add_source(self, path: str, content: str) -> int:
        if path not in self._source_index:
            self._source_index[path] = len(self.source_map.sources)
            self.source_map.sources.append(path)
            self.source_map.sources_content.append(content)
        return self._source_index[path]

