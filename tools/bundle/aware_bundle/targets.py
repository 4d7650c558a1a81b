"""Per-target composition rules: what each bundle leaves out and adds."""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Tuple, Union

from .bundle.graph import ModuleLocator
from .errors import ConfigurationError
from .registry import ModuleReference, list_locale_modules
from .settings import BundleSettings

logger = logging.getLogger(__name__)


class TargetKind(str, Enum):
    CLI = "cli"
    EXTENSION = "extension"
    EMBEDDED_TOOLING = "embedded-tooling"
    SERVER_SIDE = "server-side"


# Optional or heavy libraries no bundle needs: source-map support, telemetry
# clients, a compression codec, a retry helper and i18n plural data.
ALWAYS_EXCLUDED: Tuple[str, ...] = (
    "sourcemap",
    "raven",
    "sentry_sdk",
    "lz4.frame",
    "tenacity",
    "babel",
)


@dataclass(frozen=True, slots=True)
class TargetRule:
    markers: Tuple[str, ...] = ()
    exclude_report_assets: bool = False
    exclude_locales: bool = False
    include_plugins: bool = False


# Ordered: the first rule whose marker appears in the entry file name wins.
TARGET_RULES: Mapping[TargetKind, TargetRule] = {
    TargetKind.EMBEDDED_TOOLING: TargetRule(
        markers=("devtools",),
        exclude_report_assets=True,
        exclude_locales=True,
        include_plugins=True,
    ),
    TargetKind.SERVER_SIDE: TargetRule(markers=("lightrider",), exclude_report_assets=True),
    TargetKind.EXTENSION: TargetRule(markers=("extension",)),
    TargetKind.CLI: TargetRule(),
}


@dataclass(frozen=True, slots=True)
class ExclusionSet:
    """Module names and files omitted from a bundle regardless of reachability."""

    names: frozenset[str] = frozenset()
    paths: frozenset[Path] = frozenset()

    def matches(self, name: str, path: Optional[Path] = None) -> bool:
        if any(name == entry or name.startswith(f"{entry}.") for entry in self.names):
            return True
        return path is not None and Path(path).resolve() in self.paths

    def union(self, names: Iterable[str] = (), paths: Iterable[Path] = ()) -> "ExclusionSet":
        return ExclusionSet(
            names=self.names | frozenset(names),
            paths=self.paths | frozenset(Path(path).resolve() for path in paths),
        )


@dataclass(frozen=True, slots=True)
class EntryDescriptor:
    target: TargetKind
    entry_path: Path
    exclude_if: ExclusionSet = field(default_factory=ExclusionSet)
    include_extra: Tuple[ModuleReference, ...] = ()


def detect_target(entry_path: Path) -> TargetKind:
    basename = Path(entry_path).name
    for kind, rule in TARGET_RULES.items():
        if any(marker in basename for marker in rule.markers):
            return kind
    return TargetKind.CLI


def classify(
    entry_path: Path,
    settings: BundleSettings,
    target: Union[TargetKind, str, None] = None,
    *,
    locator: Optional[ModuleLocator] = None,
) -> EntryDescriptor:
    """Compute exclusions and extra modules for one build."""

    kind = TargetKind(target) if target is not None else detect_target(entry_path)
    rule = TARGET_RULES[kind]

    exclusions = ExclusionSet().union(
        names=[*ALWAYS_EXCLUDED, *settings.extra_excluded],
        paths=[settings.path(settings.connection_module)],
    )
    if rule.exclude_report_assets:
        exclusions = exclusions.union(paths=[settings.path(settings.report_assets_module)])
    if rule.exclude_locales:
        exclusions = exclusions.union(paths=list_locale_modules(settings))

    extras: List[ModuleReference] = []
    if rule.include_plugins:
        for reference in plugin_references(settings, locator=locator):
            if exclusions.matches(reference.module_name, reference.source):
                logger.debug("Plugin module %s is excluded for %s", reference.module_name, kind.value)
                continue
            extras.append(reference)

    logger.info(
        "Target %s: %d excluded names, %d excluded files, %d extra modules",
        kind.value,
        len(exclusions.names),
        len(exclusions.paths),
        len(extras),
    )
    return EntryDescriptor(
        target=kind,
        entry_path=Path(entry_path),
        exclude_if=exclusions,
        include_extra=tuple(extras),
    )


def plugin_references(settings: BundleSettings, *, locator: Optional[ModuleLocator] = None) -> List[ModuleReference]:
    """The plugin package, its descriptor and every audit it declares."""

    locator = locator or ModuleLocator(settings.search_roots)
    package_name = settings.plugin_package
    descriptor_name = f"{package_name}.{settings.plugin_descriptor}"

    references: List[ModuleReference] = []
    for name in (package_name, descriptor_name):
        references.append(ModuleReference(logical_path=name, source=_source_of(locator, name), module_name=name))

    for audit_path in read_plugin_audits(references[-1].source):
        references.append(
            ModuleReference(
                logical_path=audit_path,
                source=_source_of(locator, audit_path),
                module_name=audit_path,
            )
        )
    return references


def read_plugin_audits(descriptor: Path) -> List[str]:
    """Read the module-level ``audits`` literal of a plugin descriptor without running it."""

    try:
        tree = ast.parse(descriptor.read_text(encoding="utf-8"), filename=str(descriptor))
    except (OSError, SyntaxError) as exc:
        raise ConfigurationError(f"Unable to read plugin descriptor {descriptor}: {exc}") from exc

    for statement in tree.body:
        value = _assigned_value(statement, "audits")
        if value is None:
            continue
        try:
            entries = ast.literal_eval(value)
        except ValueError as exc:
            raise ConfigurationError(f"{descriptor}: 'audits' must be a literal list") from exc
        return [_audit_path(entry, descriptor) for entry in entries]
    raise ConfigurationError(f"{descriptor}: no module-level 'audits' list")


def _assigned_value(statement: ast.stmt, name: str) -> Optional[ast.expr]:
    if isinstance(statement, ast.Assign):
        if any(isinstance(target, ast.Name) and target.id == name for target in statement.targets):
            return statement.value
    if isinstance(statement, ast.AnnAssign) and isinstance(statement.target, ast.Name):
        if statement.target.id == name:
            return statement.value
    return None


def _audit_path(entry: object, descriptor: Path) -> str:
    if isinstance(entry, str):
        return entry
    if isinstance(entry, dict) and isinstance(entry.get("path"), str):
        return entry["path"]
    raise ConfigurationError(f"{descriptor}: audit entries need a 'path' string (got {entry!r})")


def _source_of(locator: ModuleLocator, name: str) -> Path:
    located = locator.locate(name)
    if located is None or located.origin is None or not located.has_source:
        raise ConfigurationError(f"Plugin module not found: {name}")
    return located.origin
