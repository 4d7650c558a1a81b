from __future__ import annotations

from pathlib import Path

import pytest

from aware_bundle.bundle.sourcemap import load_source_map, map_path_for
from aware_bundle.cli import bundle as bundle_cli
from aware_bundle.errors import ConfigurationError


@pytest.fixture(autouse=True)
def fixed_commit(monkeypatch: pytest.MonkeyPatch, commit_hash: str) -> None:
    monkeypatch.setattr("aware_bundle.driver.resolve_commit_hash", lambda cwd: commit_hash)


def test_cli_resolves_paths_against_cwd(sample_app: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.chdir(sample_app)

    exit_code = bundle_cli.main(["cli_entry.py", "dist/cli.py"])

    assert exit_code == 0
    destination = sample_app / "dist" / "cli.py"
    assert destination.exists()
    assert load_source_map(map_path_for(destination)).entry == "cli_entry"
    assert capsys.readouterr().out == ""


def test_cli_target_flag_overrides_file_name(sample_app: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    bundle_cli.main(
        [
            str(sample_app / "cli_entry.py"),
            "out/tooling.py",
            "--target",
            "embedded-tooling",
            "--workspace-root",
            str(sample_app),
        ]
    )

    source_map = load_source_map(tmp_path / "out" / "tooling.py.map")
    assert source_map.segment("plugin_publisher_ads.plugin") is not None


def test_cli_rejects_unknown_target(sample_app: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(sample_app)

    with pytest.raises(SystemExit):
        bundle_cli.main(["cli_entry.py", "dist/cli.py", "--target", "browser"])


def test_cli_propagates_pipeline_errors(sample_app: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(sample_app)

    with pytest.raises(ConfigurationError, match="Entry module not found"):
        bundle_cli.main(["missing_entry.py", "dist/cli.py"])

    assert not (sample_app / "dist" / "cli.py").exists()


def test_cli_takes_process_argv(sample_app: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(sample_app)

    assert bundle_cli.cli(["aware-bundle", "devtools_entry.py", "dist/devtools.py"]) == 0

    source_map = load_source_map(sample_app / "dist" / "devtools.py.map")
    assert source_map.segment("core.lib.i18n.locales.en").stub is True
