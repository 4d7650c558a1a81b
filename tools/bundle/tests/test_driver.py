from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import pytest

import aware_bundle
from aware_bundle.driver import BundleBuilder, BundleConfig, build
from aware_bundle.errors import ConfigurationError, EnvironmentLookupError
from aware_bundle.targets import TargetKind


def test_build_produces_minified_runnable_bundle(app_settings, sample_app: Path, tmp_path: Path, commit_hash: str) -> None:
    destination = tmp_path / "dist" / "nested" / "deeper" / "cli.py"

    result = build(sample_app / "cli_entry.py", destination, commit_hash=commit_hash, settings=app_settings)

    assert result.bundle_path == destination.resolve()
    assert result.map_path.name == "cli.py.map"
    assert result.map_path.exists()
    assert result.target is TargetKind.CLI
    assert result.commit_hash == commit_hash
    assert all(segment.minified for segment in result.source_map.modules if not segment.stub)

    proc = subprocess.run(
        [sys.executable, str(destination)],
        cwd=destination.parent,
        capture_output=True,
        text=True,
        check=True,
    )
    payload = json.loads(proc.stdout)
    assert payload["audits"] == ["A", "B", "C"]
    assert payload["version"] == "1.2.3"


def test_rebuild_is_byte_identical(app_settings, sample_app: Path, tmp_path: Path, commit_hash: str) -> None:
    first = build(sample_app / "devtools_entry.py", tmp_path / "one" / "devtools.py", commit_hash=commit_hash, settings=app_settings)
    second = build(sample_app / "devtools_entry.py", tmp_path / "two" / "devtools.py", commit_hash=commit_hash, settings=app_settings)

    assert first.sha256 == second.sha256
    assert first.bundle_path.read_bytes() == second.bundle_path.read_bytes()
    assert first.map_path.read_bytes() == second.map_path.read_bytes()


def test_independent_targets_share_one_source_tree(app_settings, sample_app: Path, tmp_path: Path, commit_hash: str) -> None:
    builder = BundleBuilder(workspace_root=sample_app)
    results = [
        builder.build(
            BundleConfig(
                entry_path=sample_app / entry,
                destination=tmp_path / "dist" / entry,
                commit_hash=commit_hash,
                settings=app_settings,
            )
        )
        for entry in ("cli_entry.py", "devtools_entry.py")
    ]

    assert [result.target for result in results] == [TargetKind.CLI, TargetKind.EMBEDDED_TOOLING]
    assert results[0].sha256 != results[1].sha256


def test_build_loads_settings_from_workspace(sample_app: Path, tmp_path: Path, commit_hash: str) -> None:
    result = build(
        sample_app / "cli_entry.py",
        tmp_path / "dist" / "cli.py",
        commit_hash=commit_hash,
        workspace_root=sample_app,
    )

    assert result.source_map.entry == "cli_entry"


def test_build_resolves_commit_when_not_given(sample_app: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = []

    def fake_resolve(cwd):
        seen.append(cwd)
        return "feedface"

    monkeypatch.setattr("aware_bundle.driver.resolve_commit_hash", fake_resolve)

    result = build(sample_app / "cli_entry.py", tmp_path / "dist" / "cli.py", workspace_root=sample_app)

    assert result.commit_hash == "feedface"
    assert seen == [sample_app.resolve()]
    assert "# ! sample-auditor 1.2.3 (feedface)" in result.bundle_path.read_text(encoding="utf-8")


def test_commit_lookup_failure_aborts_build(sample_app: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(cwd):
        raise EnvironmentLookupError("git rev-parse HEAD failed: not a git repository")

    monkeypatch.setattr("aware_bundle.driver.resolve_commit_hash", fail)
    destination = tmp_path / "dist" / "cli.py"

    with pytest.raises(EnvironmentLookupError):
        build(sample_app / "cli_entry.py", destination, workspace_root=sample_app)

    assert not destination.exists()


def test_missing_module_directory_aborts_build(sample_app: Path, tmp_path: Path, commit_hash: str, write) -> None:
    write(sample_app, "aware-bundle.yaml", "audits_dir: core/checks\n")
    destination = tmp_path / "dist" / "cli.py"

    with pytest.raises(ConfigurationError, match="core/checks"):
        build(sample_app / "cli_entry.py", destination, commit_hash=commit_hash, workspace_root=sample_app)

    assert not destination.exists()


def test_package_exposes_lazy_commit_hash(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(aware_bundle, "process_commit_hash", lambda: "c0ffee")

    assert aware_bundle.COMMIT_HASH == "c0ffee"
    with pytest.raises(AttributeError):
        aware_bundle.NOT_A_THING
