"""Pydantic models describing the bundle source map."""

from __future__ import annotations

from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

SOURCE_MAP_VERSION = 1


class ModuleSegment(BaseModel):
    name: str
    line: int = Field(default=0, description="1-based bundle line holding the module directive.")
    source: Optional[int] = Field(default=None, description="Index into SourceMap.sources; None for stubs.")
    logical_paths: List[str] = Field(default_factory=list)
    aliases: List[str] = Field(default_factory=list, description="Extra import names bound to this module.")
    sha256: Optional[str] = Field(default=None, description="SHA-256 of the embedded module source.")
    stub: bool = False
    minified: bool = False
    lines: List[Tuple[int, int, int]] = Field(
        default_factory=list,
        description=(
            "Sorted (line, column, original line) entries, one per statement of the embedded source. "
            "Empty when embedded lines equal original lines."
        ),
    )

    model_config = ConfigDict(extra="forbid")

    def original_line(self, line: int, column: Optional[int] = None) -> int:
        """Map a line (and optionally a column) of the embedded module back to its source file.

        Without a column the first statement starting on ``line`` wins; a line
        with no statement start belongs to the statement before it.
        """

        if not self.lines:
            return line
        if column is None:
            for entry_line, _, original in self.lines:
                if entry_line == line:
                    return original
                if entry_line > line:
                    break
        found = None
        for entry_line, entry_column, original in self.lines:
            if entry_line > line or (entry_line == line and column is not None and entry_column > column):
                break
            found = original
        return line if found is None else found


class SourceMap(BaseModel):
    version: int = SOURCE_MAP_VERSION
    file: str
    sources: List[str] = Field(default_factory=list)
    sources_content: List[str] = Field(default_factory=list)
    modules: List[ModuleSegment] = Field(default_factory=list)
    entry: Optional[str] = None
    reserved_identifiers_version: Optional[int] = Field(
        default=None,
        description="Version of the reserved-identifier contract applied by the minifier.",
    )

    model_config = ConfigDict(extra="forbid")

    def segment(self, name: str) -> Optional[ModuleSegment]:
        for segment in self.modules:
            if segment.name == name:
                return segment
        return None
