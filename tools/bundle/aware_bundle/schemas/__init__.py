"""Schema definitions for bundle metadata."""

from .sourcemap import ModuleSegment, SourceMap

__all__ = [
    "ModuleSegment",
    "SourceMap",
]
