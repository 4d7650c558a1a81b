"""Source transforms applied to every module before it is embedded."""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..errors import AssemblyError

logger = logging.getLogger(__name__)

_PATH_CONSTRUCTORS = {"Path", "PurePath", "PosixPath"}
_PASSTHROUGH_METHODS = {"resolve", "absolute", "expanduser"}
_OS_PATH_PASSTHROUGH = {"abspath", "realpath", "normpath"}


def strip_descriptor(version: str) -> str:
    """Package descriptor reduced to its version field."""

    return f'[project]\nversion = "{version}"\n'


@dataclass(slots=True)
class InlineResult:
    source: str
    inlined: List[Path] = field(default_factory=list)


class SourceInliner:
    """Replace statically resolvable file reads with literal contents.

    Handles ``<path>.read_text()``, ``<path>.read_bytes()``,
    ``open(<path>[, mode]).read()`` and ``pkgutil.get_data(__name__, name)``
    where ``<path>`` is built from ``__file__`` with ``pathlib`` or
    ``os.path`` calls and string literals. Reads of the package descriptor
    only keep its version. Replacements keep the module's line count so line
    numbers in tracebacks stay valid.
    """

    def __init__(self, *, descriptor_path: Optional[Path] = None, descriptor_version: Optional[str] = None) -> None:
        self.descriptor_path = descriptor_path.resolve() if descriptor_path else None
        self.descriptor_version = descriptor_version

    def transform(self, source: str, module_path: Path, *, tree: Optional[ast.AST] = None) -> InlineResult:
        if tree is None:
            tree = parse_module(source, str(module_path))
        collector = _ReadCollector(Path(module_path).resolve())
        collector.visit(tree)
        if not collector.reads:
            return InlineResult(source=source)

        lines = source.splitlines(keepends=True)
        replacements: List[Tuple[int, int, str]] = []
        inlined: List[Path] = []
        for node, target, binary in collector.reads:
            content = self._read(target, binary=binary, module_path=module_path, lineno=node.lineno)
            padding = "\n" * ((node.end_lineno or node.lineno) - node.lineno)
            start = _char_offset(lines, node.lineno, node.col_offset)
            end = _char_offset(lines, node.end_lineno or node.lineno, node.end_col_offset or 0)
            replacements.append((start, end, f"({content!r}{padding})"))
            inlined.append(target)

        text = source
        for start, end, replacement in sorted(replacements, reverse=True):
            text = text[:start] + replacement + text[end:]
        logger.debug("Inlined %d file read(s) in %s", len(inlined), module_path)
        return InlineResult(source=text, inlined=inlined)

    def _read(self, target: Path, *, binary: bool, module_path: Path, lineno: int) -> Union[str, bytes]:
        if self.descriptor_path is not None and target == self.descriptor_path and self.descriptor_version:
            text = strip_descriptor(self.descriptor_version)
            return text.encode("utf-8") if binary else text
        try:
            if binary:
                return target.read_bytes()
            return target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise AssemblyError(f"{module_path}:{lineno}: cannot inline {target}: {exc}") from exc


def parse_module(source: str, filename: str) -> ast.Module:
    try:
        return ast.parse(source, filename=filename)
    except SyntaxError as exc:
        raise AssemblyError(f"Syntax error in {filename}:{exc.lineno}: {exc.msg}") from exc


class _ReadCollector(ast.NodeVisitor):
    def __init__(self, module_path: Path) -> None:
        self.module_path = module_path
        self.reads: List[Tuple[ast.Call, Path, bool]] = []

    def visit_Call(self, node: ast.Call) -> None:
        match = self._match(node)
        if match is not None:
            target, binary = match
            self.reads.append((node, target, binary))
            return
        self.generic_visit(node)

    def _match(self, node: ast.Call) -> Optional[Tuple[Path, bool]]:
        func = node.func
        if not isinstance(func, ast.Attribute):
            return None

        if func.attr in {"read_text", "read_bytes"}:
            target = self._path(func.value)
            if target is not None:
                return target, func.attr == "read_bytes"

        if func.attr == "read" and not node.args and isinstance(func.value, ast.Call):
            opener = func.value
            if _callee_name(opener.func) in {"open", "io.open"} and opener.args:
                target = self._path(opener.args[0])
                if target is not None:
                    mode = _open_mode(opener)
                    if mode is not None:
                        return target, "b" in mode

        if _callee_name(func) == "pkgutil.get_data" and len(node.args) == 2:
            owner, resource = node.args
            if isinstance(owner, ast.Name) and owner.id == "__name__":
                name = _string(resource)
                if name is not None:
                    return (self.module_path.parent / name).resolve(), True
        return None

    def _path(self, node: ast.expr) -> Optional[Path]:
        if isinstance(node, ast.Name) and node.id == "__file__":
            return self.module_path

        if isinstance(node, ast.Attribute) and node.attr == "parent":
            base = self._path(node.value)
            return base.parent if base is not None else None

        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.Div):
            base = self._path(node.left)
            part = _string(node.right)
            if base is not None and part is not None:
                return (base / part).resolve()
            return None

        if not isinstance(node, ast.Call):
            return None

        callee = _callee_name(node.func)
        if callee is not None and callee.rpartition(".")[2] in _PATH_CONSTRUCTORS and len(node.args) == 1:
            return self._path(node.args[0])
        if callee in {"os.path.dirname", "path.dirname"} and len(node.args) == 1:
            base = self._path(node.args[0])
            return base.parent if base is not None else None
        if callee is not None and callee.startswith(("os.path.", "path.")):
            leaf = callee.rpartition(".")[2]
            if leaf in _OS_PATH_PASSTHROUGH and len(node.args) == 1:
                return self._path(node.args[0])
            if leaf == "join" and node.args:
                return self._join(node.args[0], node.args[1:])

        if isinstance(node.func, ast.Attribute):
            method = node.func.attr
            if method in _PASSTHROUGH_METHODS and not node.args:
                return self._path(node.func.value)
            if method == "joinpath":
                return self._join(node.func.value, node.args)
            if method == "with_name" and len(node.args) == 1:
                base = self._path(node.func.value)
                name = _string(node.args[0])
                if base is not None and name is not None:
                    return base.with_name(name)
        return None

    def _join(self, base_node: ast.expr, parts: List[ast.expr]) -> Optional[Path]:
        base = self._path(base_node)
        if base is None:
            return None
        for part in parts:
            value = _string(part)
            if value is None:
                return None
            base = base / value
        return base.resolve()


def _string(node: ast.expr) -> Optional[str]:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    return None


def _callee_name(node: ast.expr) -> Optional[str]:
    parts: List[str] = []
    while isinstance(node, ast.Attribute):
        parts.append(node.attr)
        node = node.value
    if isinstance(node, ast.Name):
        parts.append(node.id)
        return ".".join(reversed(parts))
    return None


def _open_mode(node: ast.Call) -> Optional[str]:
    mode_node: Optional[ast.expr] = node.args[1] if len(node.args) > 1 else None
    for keyword in node.keywords:
        if keyword.arg == "mode":
            mode_node = keyword.value
    if mode_node is None:
        return "r"
    mode = _string(mode_node)
    if mode is None or any(flag in mode for flag in "wax+"):
        return None
    return mode


def _char_offset(lines: List[str], lineno: int, col_offset: int) -> int:
    # ast column offsets count UTF-8 bytes.
    before = sum(len(line) for line in lines[: lineno - 1])
    line = lines[lineno - 1] if lineno - 1 < len(lines) else ""
    return before + len(line.encode("utf-8")[:col_offset].decode("utf-8", errors="ignore"))
