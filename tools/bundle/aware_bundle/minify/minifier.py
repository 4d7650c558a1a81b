"""Minify an assembled bundle in place."""

from __future__ import annotations

import ast
import difflib
import logging
import re
from pathlib import Path
from typing import Dict, Iterator, List, Set, Tuple

import python_minifier

from ..bundle.runtime import directive_name, map_reference, parse_define, render_define
from ..bundle.sourcemap import load_source_map, map_path_for, render_source_map
from ..bundle.utils import atomic_write, sha256_text
from ..errors import ConfigurationError, MinificationError
from ..schemas.sourcemap import ModuleSegment, SourceMap
from .policy import DEFAULT_POLICY, MinificationPolicy

logger = logging.getLogger(__name__)

PRESERVED_COMMENT = re.compile(r"^#\s*!")


def minify(file_path: Path, policy: MinificationPolicy = DEFAULT_POLICY) -> SourceMap:
    """Minify ``file_path`` and rewrite ``file_path.map`` to match.

    The runtime prelude and every embedded module are minified separately;
    directive lines are re-emitted one per line so the map can point at them.
    """

    file_path = Path(file_path)
    map_path = map_path_for(file_path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Unable to read bundle {file_path}: {exc}") from exc
    source_map = load_source_map(map_path)

    try:
        tree = ast.parse(text, filename=str(file_path))
    except SyntaxError as exc:
        raise MinificationError(f"Syntax error in {file_path}:{exc.lineno}: {exc.msg}") from exc

    statements = tree.body
    first = next((index for index, statement in enumerate(statements) if directive_name(statement)), None)
    if first is None:
        raise MinificationError(f"{file_path} contains no bundle directives")

    lines = text.splitlines()
    output: List[str] = preserved_header(lines)
    if first > 0:
        start = _first_line(statements[0]) - 1
        prelude = "\n".join(lines[start : statements[first].lineno - 1])
        output.append(minify_source(prelude, "<bundle prelude>", policy))

    segments: Dict[str, ModuleSegment] = {segment.name: segment for segment in source_map.modules}
    for statement in statements[first:]:
        kind = directive_name(statement)
        if kind is None:
            raise MinificationError(f"{file_path}:{statement.lineno}: unexpected statement after bundle directives")
        line_number = _line_count(output) + 1

        if kind == "_define":
            directive = parse_define(statement)
            minified = minify_source(directive.source, directive.filename, policy) if directive.source.strip() else ""
            segment = _segment(segments, directive.name, file_path)
            segment.lines = line_table(directive.source, minified, directive.filename, segment) if minified else []
            segment.line = line_number
            segment.minified = True
            segment.sha256 = sha256_text(minified)
            output.append(render_define(directive.name, directive.filename, directive.is_package, minified))
            continue

        if kind == "_ignore":
            name = ast.literal_eval(statement.value.args[0])  # type: ignore[attr-defined]
            _segment(segments, name, file_path).line = line_number
        output.append(ast.get_source_segment(text, statement) or "")

    output.append(map_reference(map_path.name))
    source_map.reserved_identifiers_version = policy.reserved_version

    minified_text = "\n".join(output) + "\n"
    with atomic_write(map_path) as map_handle, atomic_write(file_path) as bundle_handle:
        bundle_handle.write(minified_text)
        map_handle.write(render_source_map(source_map))

    logger.info("Minified %s: %d -> %d bytes", file_path, len(text.encode("utf-8")), len(minified_text.encode("utf-8")))
    return source_map


def minify_source(source: str, filename: str, policy: MinificationPolicy = DEFAULT_POLICY) -> str:
    """Minify one module's source under ``policy``."""

    preserved = set(policy.reserved) | definition_names(source, filename, policy)
    try:
        return python_minifier.minify(
            source,
            filename=filename,
            remove_annotations=policy.remove_annotations,
            remove_literal_statements=not policy.keep_docstrings,
            hoist_literals=False,
            combine_imports=False,
            remove_pass=False,
            rename_locals=True,
            preserve_locals=sorted(preserved),
            rename_globals=False,
            preserve_globals=sorted(policy.reserved),
            preserve_shebang=True,
        )
    except SyntaxError as exc:
        raise MinificationError(f"Syntax error in {filename}:{exc.lineno}: {exc.msg}") from exc
    except (RuntimeError, ValueError) as exc:
        raise MinificationError(f"Minifier failed on {filename}: {exc}") from exc


def line_table(
    embedded: str,
    minified: str,
    filename: str,
    previous: ModuleSegment,
) -> List[Tuple[int, int, int]]:
    """Pair the statements of ``embedded`` and ``minified`` in source order.

    Each minified statement that lines up with an embedded one gets an entry
    ``(line, column, original line)``; the original line goes through
    ``previous`` so a bundle minified twice still points at the source file.
    """

    before = list(_statements(_parse(embedded, filename)))
    after = list(_statements(_parse(minified, filename)))
    matcher = difflib.SequenceMatcher(
        None,
        [type(node).__name__ for node in before],
        [type(node).__name__ for node in after],
        autojunk=False,
    )

    table: List[Tuple[int, int, int]] = []
    for block in matcher.get_matching_blocks():
        for offset in range(block.size):
            source_node = before[block.a + offset]
            minified_node = after[block.b + offset]
            original = previous.original_line(source_node.lineno, source_node.col_offset)
            table.append((minified_node.lineno, minified_node.col_offset, original))
    if len(table) < len(after):
        logger.debug("%s: %d minified statements have no source counterpart", filename, len(after) - len(table))
    return sorted(table)


def _statements(node: ast.AST) -> Iterator[ast.stmt]:
    for child in ast.iter_child_nodes(node):
        if isinstance(child, ast.stmt):
            yield child
        yield from _statements(child)


def _parse(source: str, filename: str) -> ast.Module:
    try:
        return ast.parse(source, filename=filename)
    except SyntaxError as exc:
        raise MinificationError(f"Syntax error in {filename}:{exc.lineno}: {exc.msg}") from exc


def definition_names(source: str, filename: str, policy: MinificationPolicy) -> Set[str]:
    """Function and class names the policy keeps, at any nesting depth."""

    names: Set[str] = set()
    for node in ast.walk(_parse(source, filename)):
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)) and policy.keep_function_names:
            names.add(node.name)
        elif isinstance(node, ast.ClassDef) and policy.keep_class_names:
            names.add(node.name)
    return names


def preserved_header(lines: List[str]) -> List[str]:
    """Leading comment lines marked for preservation (shebang, ``# !`` banner)."""

    header: List[str] = []
    for line in lines:
        if not line.startswith("#"):
            break
        if PRESERVED_COMMENT.match(line):
            header.append(line)
    return header


def _segment(segments: Dict[str, ModuleSegment], name: str, file_path: Path) -> ModuleSegment:
    segment = segments.get(name)
    if segment is None:
        raise MinificationError(f"Module {name!r} in {file_path} is missing from its source map")
    return segment


def _first_line(statement: ast.stmt) -> int:
    decorators = getattr(statement, "decorator_list", [])
    return min([statement.lineno, *(decorator.lineno for decorator in decorators)])


def _line_count(chunks: List[str]) -> int:
    return sum(chunk.count("\n") + 1 for chunk in chunks)
