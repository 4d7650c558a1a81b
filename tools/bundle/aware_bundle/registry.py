"""Enumerate the dynamically loaded audit and gatherer modules."""

from __future__ import annotations

import importlib.util
import logging
import os
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence

from .errors import AssemblyError, ConfigurationError
from .settings import BundleSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ModuleReference:
    """A module the running application requests by string.

    ``logical_path`` is the key the application asks for at run time,
    ``source`` the file on disk and ``module_name`` the absolute dotted name
    the module is registered under inside the bundle.
    """

    logical_path: str
    source: Path
    module_name: str


def resolve_registry(settings: BundleSettings) -> List[ModuleReference]:
    """Return references for every audit and gatherer module."""

    roots = settings.search_roots
    audits = _directory_references(
        settings.path(settings.audits_dir),
        settings.audit_load_prefix,
        roots,
        loader_package=settings.loader_package,
    )
    gatherers = _directory_references(
        settings.path(settings.gatherers_dir),
        settings.gatherer_load_prefix,
        roots,
        loader_package=settings.loader_package,
    )
    references = audits + gatherers
    ensure_unique(references)
    logger.info("Resolved %d audit and %d gatherer modules", len(audits), len(gatherers))
    return references


def list_locale_modules(settings: BundleSettings) -> List[Path]:
    return list_module_files(settings.path(settings.locales_dir))


def list_module_files(directory: Path) -> List[Path]:
    """List public ``*.py`` files below ``directory``, sorted.

    Files whose name starts with ``_`` (including ``__init__.py``) are helpers
    and never loaded by string.
    """

    if not directory.is_dir():
        raise ConfigurationError(f"Module directory not found: {directory}")

    def _fail(exc: OSError) -> None:
        raise ConfigurationError(f"Unable to list module directory {directory}: {exc}") from exc

    files: List[Path] = []
    for current, dirnames, filenames in os.walk(directory, onerror=_fail):
        dirnames[:] = sorted(
            name for name in dirnames if name != "__pycache__" and not name.startswith(".")
        )
        for filename in filenames:
            if filename.endswith(".py") and not filename.startswith("_"):
                files.append(Path(current) / filename)
    return sorted(files, key=lambda path: path.relative_to(directory).as_posix())


def module_name_for(path: Path, roots: Sequence[Path]) -> str:
    """Dotted import name of ``path`` relative to the first root containing it."""

    resolved = Path(path).resolve()
    for root in roots:
        try:
            relative = resolved.relative_to(root)
        except ValueError:
            continue
        parts = list(relative.with_suffix("").parts)
        if parts and parts[-1] == "__init__":
            parts = parts[:-1]
        if parts:
            return ".".join(parts)
    raise ConfigurationError(f"{path} is not below any search root ({', '.join(map(str, roots))})")


def ensure_unique(references: Iterable[ModuleReference]) -> None:
    counts = Counter(reference.logical_path for reference in references)
    duplicates = sorted(path for path, count in counts.items() if count > 1)
    if duplicates:
        raise AssemblyError(f"Duplicate logical load paths: {', '.join(duplicates)}")


def join_logical(prefix: str, dotted: str) -> str:
    if not prefix or prefix.endswith("."):
        return f"{prefix}{dotted}"
    return f"{prefix}.{dotted}"


def _directory_references(
    directory: Path,
    prefix: str,
    roots: Sequence[Path],
    *,
    loader_package: str,
) -> List[ModuleReference]:
    references: List[ModuleReference] = []
    for path in list_module_files(directory):
        dotted = ".".join(path.relative_to(directory).with_suffix("").parts)
        logical_path = join_logical(prefix, dotted)
        module_name = module_name_for(path, roots)
        _check_loader_resolution(logical_path, loader_package, module_name)
        references.append(ModuleReference(logical_path=logical_path, source=path, module_name=module_name))
    return references


def _check_loader_resolution(logical_path: str, loader_package: str, module_name: str) -> None:
    # The application resolves logical paths relative to its loader package.
    if not logical_path.startswith("."):
        return
    try:
        resolved = importlib.util.resolve_name(logical_path, loader_package)
    except ImportError as exc:
        raise ConfigurationError(
            f"Load path {logical_path!r} cannot be resolved from package {loader_package!r}"
        ) from exc
    if resolved != module_name:
        raise ConfigurationError(
            f"Load path {logical_path!r} resolves to {resolved!r} from {loader_package!r}, "
            f"but the module on disk is {module_name!r}"
        )
