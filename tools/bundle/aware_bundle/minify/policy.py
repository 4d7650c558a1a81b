"""Fixed minification policy shared with tooling that edits bundles by name."""

from __future__ import annotations

from dataclasses import dataclass

# Tooling that wraps the CLI bundle substitutes these identifiers textually in
# the emitted file. Bump the version whenever the list changes; the minifier
# records it in the source map so consumers can check what they rely on.
RESERVED_IDENTIFIERS_VERSION = 1
RESERVED_IDENTIFIERS: frozenset[str] = frozenset(
    {
        "ProtocolConnection",
        "makedirs",
        "rmtree",
        "fs",
    }
)


@dataclass(frozen=True, slots=True)
class MinificationPolicy:
    reserved: frozenset[str] = RESERVED_IDENTIFIERS
    reserved_version: int = RESERVED_IDENTIFIERS_VERSION
    # Config resolution instantiates gatherers by class name; error reports
    # print function names.
    keep_function_names: bool = True
    keep_class_names: bool = True
    keep_docstrings: bool = True
    remove_annotations: bool = False


DEFAULT_POLICY = MinificationPolicy()
