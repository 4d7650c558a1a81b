from __future__ import annotations

from pathlib import Path

import pytest

from aware_bundle.errors import AssemblyError, ConfigurationError
from aware_bundle.registry import (
    ModuleReference,
    ensure_unique,
    join_logical,
    list_locale_modules,
    list_module_files,
    module_name_for,
    resolve_registry,
)
from aware_bundle.settings import settings_from_mapping


def test_resolve_registry_lists_audits_then_gatherers(app_settings) -> None:
    references = resolve_registry(app_settings)

    assert [reference.logical_path for reference in references] == [
        "..audits.a",
        "..audits.b",
        "..audits.nested.c",
        "..gather.gatherers.g",
    ]
    assert [reference.module_name for reference in references] == [
        "core.audits.a",
        "core.audits.b",
        "core.audits.nested.c",
        "core.gather.gatherers.g",
    ]
    assert all(reference.source.is_file() for reference in references)


def test_registry_picks_up_new_files(app_settings, sample_app: Path, write) -> None:
    write(sample_app, "core/audits/d.py", "NAME = 'D'\n")
    write(sample_app, "core/gather/gatherers/__pycache__/stale.py", "")

    logical_paths = [reference.logical_path for reference in resolve_registry(app_settings)]

    assert "..audits.d" in logical_paths
    assert not any("stale" in path for path in logical_paths)


def test_list_module_files_skips_private_modules(sample_app: Path) -> None:
    files = list_module_files(sample_app / "core" / "audits")

    names = [path.relative_to(sample_app / "core" / "audits").as_posix() for path in files]
    assert names == ["a.py", "b.py", "nested/c.py"]


def test_list_locale_modules(app_settings, sample_app: Path) -> None:
    locales = list_locale_modules(app_settings)

    assert [path.name for path in locales] == ["de.py", "en.py"]


def test_missing_module_directory_is_configuration_error(sample_app: Path) -> None:
    settings = settings_from_mapping(sample_app, {"audits_dir": "core/missing"})

    with pytest.raises(ConfigurationError, match="core/missing"):
        resolve_registry(settings)


def test_load_prefix_must_resolve_to_module_on_disk(sample_app: Path) -> None:
    settings = settings_from_mapping(sample_app, {"audit_load_prefix": "..checks"})

    with pytest.raises(ConfigurationError, match="core.checks.a"):
        resolve_registry(settings)


def test_ensure_unique_rejects_duplicate_logical_paths(tmp_path: Path) -> None:
    references = [
        ModuleReference(logical_path="..audits.a", source=tmp_path / "a.py", module_name="core.audits.a"),
        ModuleReference(logical_path="..audits.a", source=tmp_path / "b.py", module_name="core.audits.b"),
    ]

    with pytest.raises(AssemblyError, match=r"\.\.audits\.a"):
        ensure_unique(references)


def test_module_name_for_packages_and_modules(sample_app: Path) -> None:
    roots = [sample_app]

    assert module_name_for(sample_app / "core" / "audits" / "a.py", roots) == "core.audits.a"
    assert module_name_for(sample_app / "core" / "config" / "__init__.py", roots) == "core.config"
    with pytest.raises(ConfigurationError):
        module_name_for(sample_app.parent / "elsewhere.py", roots)


def test_join_logical() -> None:
    assert join_logical("..audits", "a") == "..audits.a"
    assert join_logical("..", "a") == "..a"
    assert join_logical("", "a") == "a"
