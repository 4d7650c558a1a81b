"""Project layout configuration for bundle builds."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

PYPROJECT_TABLE = "aware-bundle"
YAML_CONFIG_NAME = "aware-bundle.yaml"


class BundleSettings(BaseModel):
    """Where the application keeps the pieces the pipeline needs.

    Every path is relative to ``workspace_root`` unless already absolute.
    """

    workspace_root: Path = Field(default_factory=Path.cwd)
    source_root: str = "."
    search_paths: List[str] = Field(default_factory=list)

    audits_dir: str = "core/audits"
    gatherers_dir: str = "core/gather/gatherers"
    locales_dir: str = "core/lib/i18n/locales"

    loader_package: str = Field(
        default="core.config",
        description="Package the application's dynamic loader resolves relative names from.",
    )
    audit_load_prefix: str = "..audits"
    gatherer_load_prefix: str = "..gather.gatherers"

    package_descriptor: str = "pyproject.toml"
    banner_file: Optional[str] = None

    connection_module: str = "core/gather/connections/cri.py"
    report_assets_module: str = "core/report/html/html_report_assets.py"
    url_shim_module: str = "core/lib/url_shim.py"
    url_shim_name: str = "urlparse"

    plugin_package: str = "plugin_publisher_ads"
    plugin_descriptor: str = "plugin"

    external: List[str] = Field(default_factory=list, description="Modules left to the host environment.")
    extra_excluded: List[str] = Field(default_factory=list)
    shebang: str = "/usr/bin/env python3"

    model_config = ConfigDict(extra="forbid")

    def path(self, value: str) -> Path:
        candidate = Path(value)
        if not candidate.is_absolute():
            candidate = self.workspace_root / candidate
        return candidate.resolve()

    @property
    def search_roots(self) -> List[Path]:
        roots = [self.path(self.source_root)]
        roots.extend(self.path(entry) for entry in self.search_paths)
        return roots


def load_settings(workspace_root: Path, path: Optional[Path] = None) -> BundleSettings:
    """Load settings for ``workspace_root``.

    Lookup order: explicit ``path``, ``aware-bundle.yaml``, the
    ``[tool.aware-bundle]`` table of ``pyproject.toml``, then defaults.
    """

    root = Path(workspace_root).resolve()
    if path is not None:
        payload = _read_config_file(Path(path))
        source = str(path)
    elif (root / YAML_CONFIG_NAME).exists():
        payload = _read_config_file(root / YAML_CONFIG_NAME)
        source = str(root / YAML_CONFIG_NAME)
    else:
        payload = _read_pyproject_table(root / "pyproject.toml")
        source = f"{root / 'pyproject.toml'} [tool.{PYPROJECT_TABLE}]"

    logger.debug("Loaded bundle settings from %s (%d keys)", source, len(payload))
    return settings_from_mapping(root, payload, source=source)


def settings_from_mapping(
    workspace_root: Path,
    payload: Mapping[str, Any],
    *,
    source: str = "<mapping>",
) -> BundleSettings:
    data = dict(payload)
    data["workspace_root"] = Path(workspace_root).resolve()
    try:
        return BundleSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid bundle settings in {source}: {exc}") from exc


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Settings file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix == ".toml":
            loaded: Any = tomllib.loads(text)
            if "tool" in loaded or "project" in loaded:
                loaded = loaded.get("tool", {}).get(PYPROJECT_TABLE, {})
        else:
            loaded = yaml.safe_load(text) or {}
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Unable to parse settings file {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Settings file {path} must contain a mapping.")
    return loaded


def _read_pyproject_table(path: Path) -> dict[str, Any]:
    # A missing descriptor is reported by the banner stage, not here.
    if not path.exists():
        return {}
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Unable to parse {path}: {exc}") from exc
    table = data.get("tool", {}).get(PYPROJECT_TABLE, {})
    if not isinstance(table, dict):
        raise ConfigurationError(f"[tool.{PYPROJECT_TABLE}] in {path} must be a table.")
    return table
