"""Build banner rendered at the top of every bundle."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from string import Template
from typing import Any, Dict, List, Optional

from ..errors import ConfigurationError

PRESERVED_PREFIX = "# !"

DEFAULT_BANNER = """\
${name} ${version} (${commit_hash})
${description}
@license ${license}
"""


@dataclass(frozen=True, slots=True)
class PackageMetadata:
    name: str
    version: str
    description: str = ""
    license: str = ""
    extra: Dict[str, str] = field(default_factory=dict)

    def template_values(self, commit_hash: str) -> Dict[str, str]:
        values = dict(self.extra)
        values.update(
            {
                "name": self.name,
                "version": self.version,
                "description": self.description,
                "license": self.license,
                "commit_hash": commit_hash,
            }
        )
        return values


def read_package_metadata(path: Path) -> PackageMetadata:
    """Read the ``[project]`` table of a ``pyproject.toml`` descriptor."""

    if not path.exists():
        raise ConfigurationError(f"Package descriptor not found: {path}")
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"Unable to read package descriptor {path}: {exc}") from exc

    project = data.get("project")
    if not isinstance(project, dict):
        raise ConfigurationError(f"Missing [project] table in {path}")
    try:
        name = str(project["name"])
        version = str(project["version"])
    except KeyError as exc:
        raise ConfigurationError(f"Missing [project].{exc.args[0]} in {path}") from exc

    return PackageMetadata(
        name=name,
        version=version,
        description=str(project.get("description", "")),
        license=_license_text(project.get("license")),
        extra={key: str(value) for key, value in project.items() if isinstance(value, (str, int, float))},
    )


def render_banner(
    metadata: PackageMetadata,
    commit_hash: str,
    *,
    template_path: Optional[Path] = None,
) -> List[str]:
    """Return banner lines as preserved comments."""

    if template_path is not None:
        if not template_path.exists():
            raise ConfigurationError(f"Banner template not found: {template_path}")
        template = template_path.read_text(encoding="utf-8")
    else:
        template = DEFAULT_BANNER

    text = Template(template).safe_substitute(metadata.template_values(commit_hash))
    lines: List[str] = []
    for line in text.rstrip("\n").splitlines():
        stripped = line.rstrip()
        lines.append(f"{PRESERVED_PREFIX} {stripped}" if stripped else PRESERVED_PREFIX)
    return lines


def _license_text(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("text") or value.get("file") or "")
    return str(value or "")
