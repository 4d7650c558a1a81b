from __future__ import annotations

import ast
import textwrap
from pathlib import Path

import pytest

from aware_bundle.bundle.graph import ImportScanner, ModuleLocator, is_external, is_stdlib_module, parent_names
from aware_bundle.errors import AssemblyError


def _scan(source: str, module_name: str = "pkg.mod", *, is_package: bool = False):
    tree = ast.parse(textwrap.dedent(source))
    return {request.name: request for request in ImportScanner.scan(tree, module_name, is_package=is_package)}


def test_scanner_marks_guarded_imports_optional() -> None:
    requests = _scan(
        """
        import json
        import required_pkg
        from typing import TYPE_CHECKING

        try:
            import fast_codec
        except ImportError:
            fast_codec = None

        try:
            import other
        except ValueError:
            pass

        if TYPE_CHECKING:
            from typing_only import Thing

        def later():
            import lazy_pkg
        """
    )

    assert requests["required_pkg"].optional is False
    assert requests["fast_codec"].optional is True
    assert requests["other"].optional is False
    assert requests["typing_only"].optional is True
    assert requests["typing_only"].from_names == ("Thing",)
    assert requests["lazy_pkg"].optional is True
    assert requests["json"].lineno == 2


def test_scanner_resolves_relative_imports() -> None:
    requests = _scan(
        """
        from . import sibling
        from ..helpers import shout
        from .locales import *
        """,
        module_name="core.lib.i18n",
        is_package=True,
    )

    assert requests["core.lib.i18n"].from_names == ("sibling",)
    assert requests["core.lib.helpers"].from_names == ("shout",)
    assert requests["core.lib.i18n.locales"].from_names == ()


def test_relative_import_from_top_level_module_fails() -> None:
    with pytest.raises(AssemblyError, match="relative import"):
        _scan("from . import x\n", module_name="script")


def test_stdlib_and_external_names() -> None:
    assert is_stdlib_module("json")
    assert is_stdlib_module("os.path")
    assert is_stdlib_module("sys")
    assert not is_stdlib_module("core.config")
    assert is_external("yaml.loader", ["yaml"])
    assert not is_external("yamlish", ["yaml"])
    assert not is_external("json", [])


def test_parent_names() -> None:
    assert parent_names("a.b.c") == ["a", "a.b"]
    assert parent_names("a") == []


def test_locator_finds_packages_modules_and_namespaces(sample_app: Path, write) -> None:
    write(sample_app, "loose/part.py", "X = 1\n")
    locator = ModuleLocator([sample_app])

    package = locator.locate("core.config")
    module = locator.locate("core.audits.a")
    namespace = locator.locate("loose")
    member = locator.locate("loose.part")

    assert package is not None and package.is_package and package.filename == "core/config/__init__.py"
    assert module is not None and not module.is_package and module.kind == "source"
    assert module.origin == (sample_app / "core/audits/a.py").resolve()
    assert namespace is not None and namespace.kind == "namespace" and namespace.origin is None
    assert member is not None and member.filename == "loose/part.py"


def test_locator_returns_none_for_missing_modules(sample_app: Path) -> None:
    locator = ModuleLocator([sample_app])

    assert locator.locate("does_not_exist") is None
    assert locator.locate("core.audits.a.not_a_submodule") is None
    assert locator.locate("core.missing") is None
