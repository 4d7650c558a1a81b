"""Minifier stage for assembled bundles."""

from .minifier import minify, minify_source
from .policy import DEFAULT_POLICY, RESERVED_IDENTIFIERS, RESERVED_IDENTIFIERS_VERSION, MinificationPolicy

__all__ = [
    "DEFAULT_POLICY",
    "MinificationPolicy",
    "RESERVED_IDENTIFIERS",
    "RESERVED_IDENTIFIERS_VERSION",
    "minify",
    "minify_source",
]
