"""Bundle assembly utilities."""

from .sourcemap import dump_source_map, load_source_map, map_path_for

__all__ = [
    "dump_source_map",
    "load_source_map",
    "map_path_for",
]
