"""Selective bundling for plugin-style applications."""

__version__ = "0.1.0"
from .driver import BuildResult, BundleBuilder, BundleConfig, build
from .errors import (
    AssemblyError,
    BundleError,
    ConfigurationError,
    EnvironmentLookupError,
    ErrorKind,
    MinificationError,
)
from .minify import DEFAULT_POLICY, RESERVED_IDENTIFIERS, MinificationPolicy, minify
from .registry import ModuleReference, resolve_registry
from .schemas.sourcemap import ModuleSegment, SourceMap
from .settings import BundleSettings, load_settings
from .targets import EntryDescriptor, ExclusionSet, TargetKind, classify
from .vcs import process_commit_hash, resolve_commit_hash

__all__ = [
    "__version__",
    "COMMIT_HASH",
    "AssemblyError",
    "BuildResult",
    "BundleBuilder",
    "BundleConfig",
    "BundleError",
    "BundleSettings",
    "ConfigurationError",
    "DEFAULT_POLICY",
    "EntryDescriptor",
    "EnvironmentLookupError",
    "ErrorKind",
    "ExclusionSet",
    "MinificationError",
    "MinificationPolicy",
    "ModuleReference",
    "ModuleSegment",
    "RESERVED_IDENTIFIERS",
    "SourceMap",
    "TargetKind",
    "build",
    "classify",
    "load_settings",
    "minify",
    "resolve_commit_hash",
    "resolve_registry",
]


def __getattr__(name: str) -> str:
    # Resolved on first access so importing the package never shells out to git.
    if name == "COMMIT_HASH":
        return process_commit_hash()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
