"""Bundle directives shared by the assembler and the minifier."""

from __future__ import annotations

import ast
from dataclasses import dataclass
from importlib import resources
from typing import Optional

PRELUDE_RESOURCE = "_prelude.py"
DIRECTIVES = frozenset({"_define", "_ignore", "_alias", "_expose", "_start"})
MAP_REFERENCE_PREFIX = "# sourceMappingURL="


@dataclass(frozen=True, slots=True)
class DefineDirective:
    name: str
    filename: str
    is_package: bool
    source: str


def load_prelude() -> str:
    return resources.files(__package__).joinpath(PRELUDE_RESOURCE).read_text(encoding="utf-8")


def render_define(name: str, filename: str, is_package: bool, source: str) -> str:
    return f"_define({name!r}, {filename!r}, {is_package!r}, {source!r})"


def render_ignore(name: str) -> str:
    return f"_ignore({name!r})"


def render_alias(alias: str, name: str) -> str:
    return f"_alias({alias!r}, {name!r})"


def render_expose(logical_path: str, name: str) -> str:
    return f"_expose({logical_path!r}, {name!r})"


def render_start(entry: str) -> str:
    return f"_start({entry!r}, globals())"


def map_reference(map_name: str) -> str:
    return f"{MAP_REFERENCE_PREFIX}{map_name}"


def directive_name(statement: ast.stmt) -> Optional[str]:
    """Name of the directive a top-level bundle statement calls, if any."""

    if not isinstance(statement, ast.Expr) or not isinstance(statement.value, ast.Call):
        return None
    func = statement.value.func
    if isinstance(func, ast.Name) and func.id in DIRECTIVES:
        return func.id
    return None


def parse_define(statement: ast.stmt) -> DefineDirective:
    if directive_name(statement) != "_define":
        raise ValueError("statement is not a _define directive")
    call = statement.value  # type: ignore[attr-defined]
    values = [ast.literal_eval(argument) for argument in call.args]
    if len(values) != 4:
        raise ValueError(f"_define expects 4 arguments, got {len(values)}")
    name, filename, is_package, source = values
    return DefineDirective(name=name, filename=filename, is_package=bool(is_package), source=source)
