"""Static import discovery and module location."""

from __future__ import annotations

import ast
import importlib.machinery
import importlib.util
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import AssemblyError

_IMPORT_ERRORS = {"ImportError", "ModuleNotFoundError", "Exception", "BaseException"}


@dataclass(frozen=True, slots=True)
class ImportRequest:
    """One static import found in a module body."""

    name: str
    optional: bool
    lineno: int
    from_names: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class LocatedModule:
    name: str
    origin: Optional[Path]
    filename: str
    is_package: bool
    kind: str
    search_locations: Tuple[str, ...] = ()

    @property
    def has_source(self) -> bool:
        return self.kind == "source"


def is_stdlib_module(name: str) -> bool:
    top = name.partition(".")[0]
    return top in sys.stdlib_module_names or top in sys.builtin_module_names


def is_external(name: str, external: Sequence[str]) -> bool:
    """True when ``name`` is one of the ``external`` packages or below one."""

    return any(name == entry or name.startswith(f"{entry}.") for entry in external)


def parent_names(name: str) -> List[str]:
    parts = name.split(".")
    return [".".join(parts[:index]) for index in range(1, len(parts))]


class ModuleLocator:
    """Find module files below a fixed set of search roots.

    Uses :class:`importlib.machinery.PathFinder` so package, namespace and
    submodule lookups follow the interpreter's own rules, without touching
    ``sys.path``.
    """

    def __init__(self, search_roots: Sequence[Path]) -> None:
        self.search_roots = [Path(root).resolve() for root in search_roots]
        self._cache: Dict[str, Optional[LocatedModule]] = {}
        # FileFinder caches directory listings by mtime.
        importlib.invalidate_caches()

    def locate(self, name: str) -> Optional[LocatedModule]:
        if name in self._cache:
            return self._cache[name]

        parent, _, _ = name.rpartition(".")
        if parent:
            parent_module = self.locate(parent)
            if parent_module is None or not parent_module.is_package:
                self._cache[name] = None
                return None
            path = list(parent_module.search_locations)
        else:
            path = [str(root) for root in self.search_roots]

        try:
            spec = importlib.machinery.PathFinder.find_spec(name, path)
        except (ImportError, ValueError):
            spec = None
        located = self._from_spec(name, spec) if spec is not None else None
        self._cache[name] = located
        return located

    def _from_spec(self, name: str, spec: importlib.machinery.ModuleSpec) -> LocatedModule:
        locations = tuple(spec.submodule_search_locations or ())
        is_package = spec.submodule_search_locations is not None
        if spec.origin is None or not spec.has_location:
            return LocatedModule(
                name=name,
                origin=None,
                filename=name.replace(".", "/") + "/__init__.py",
                is_package=True,
                kind="namespace",
                search_locations=locations,
            )

        origin = Path(spec.origin).resolve()
        if isinstance(spec.loader, importlib.machinery.ExtensionFileLoader):
            kind = "extension"
        elif isinstance(spec.loader, importlib.machinery.SourcelessFileLoader):
            kind = "compiled"
        else:
            kind = "source"
        return LocatedModule(
            name=name,
            origin=origin,
            filename=self.display_name(origin),
            is_package=is_package,
            kind=kind,
            search_locations=locations,
        )

    def display_name(self, origin: Path) -> str:
        for root in self.search_roots:
            try:
                return origin.relative_to(root).as_posix()
            except ValueError:
                continue
        return origin.name


class ImportScanner(ast.NodeVisitor):
    """Collect the absolute names a module imports.

    Imports guarded by ``try``/``except ImportError``, under
    ``if TYPE_CHECKING`` or inside function bodies are optional.
    """

    def __init__(self, module_name: str, *, is_package: bool) -> None:
        self.module_name = module_name
        self.package = module_name if is_package else module_name.rpartition(".")[0]
        self.requests: List[ImportRequest] = []
        self._optional_depth = 0

    @classmethod
    def scan(cls, tree: ast.AST, module_name: str, *, is_package: bool) -> List[ImportRequest]:
        scanner = cls(module_name, is_package=is_package)
        scanner.visit(tree)
        return scanner.requests

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            self._add(alias.name, node.lineno)

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        base = self._absolute(node.module, node.level, node.lineno)
        names = tuple(alias.name for alias in node.names if alias.name != "*")
        self._add(base, node.lineno, names)

    def visit_Try(self, node: ast.Try) -> None:
        guarded = any(_handles_import_error(handler) for handler in node.handlers)
        self._visit_block(node.body, optional=guarded)
        for handler in node.handlers:
            self.visit(handler)
        self._visit_block(node.orelse, optional=False)
        self._visit_block(node.finalbody, optional=False)

    visit_TryStar = visit_Try

    def visit_If(self, node: ast.If) -> None:
        self.visit(node.test)
        self._visit_block(node.body, optional=_is_type_checking(node.test))
        self._visit_block(node.orelse, optional=False)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._visit_block(node.body, optional=True)

    visit_AsyncFunctionDef = visit_FunctionDef

    def _visit_block(self, body: Sequence[ast.stmt], *, optional: bool) -> None:
        if optional:
            self._optional_depth += 1
        try:
            for statement in body:
                self.visit(statement)
        finally:
            if optional:
                self._optional_depth -= 1

    def _add(self, name: str, lineno: int, from_names: Tuple[str, ...] = ()) -> None:
        self.requests.append(
            ImportRequest(
                name=name,
                optional=self._optional_depth > 0,
                lineno=lineno,
                from_names=from_names,
            )
        )

    def _absolute(self, module: Optional[str], level: int, lineno: int) -> str:
        if level == 0:
            return module or ""
        if not self.package:
            raise AssemblyError(
                f"{self.module_name}:{lineno}: relative import outside of a package"
            )
        try:
            return importlib.util.resolve_name("." * level + (module or ""), self.package)
        except ImportError as exc:
            raise AssemblyError(f"{self.module_name}:{lineno}: {exc}") from exc


def _handles_import_error(handler: ast.ExceptHandler) -> bool:
    if handler.type is None:
        return True
    candidates = handler.type.elts if isinstance(handler.type, ast.Tuple) else [handler.type]
    for candidate in candidates:
        name = candidate.attr if isinstance(candidate, ast.Attribute) else getattr(candidate, "id", None)
        if name in _IMPORT_ERRORS:
            return True
    return False


def _is_type_checking(test: ast.expr) -> bool:
    if isinstance(test, ast.Name):
        return test.id == "TYPE_CHECKING"
    if isinstance(test, ast.Attribute):
        return test.attr == "TYPE_CHECKING"
    return False
