"""Bundle assembly: walk the import graph and emit one self-contained file."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Deque, Dict, Iterator, List, Sequence, Set, Tuple

from ..errors import AssemblyError, ConfigurationError
from ..registry import ModuleReference, ensure_unique, module_name_for
from ..schemas.sourcemap import SourceMap
from ..settings import BundleSettings
from .banner import read_package_metadata, render_banner
from .graph import ImportRequest, ImportScanner, LocatedModule, ModuleLocator, is_external, is_stdlib_module, parent_names
from .runtime import load_prelude, render_alias, render_define, render_expose, render_ignore, render_start
from .sourcemap import BundleLine, SourceMapExtractor, map_path_for
from .transforms import SourceInliner, parse_module
from .utils import atomic_write, ensure_directory

if TYPE_CHECKING:
    from ..targets import EntryDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EmbeddedModule:
    name: str
    filename: str
    is_package: bool
    original: str
    source: str
    has_file: bool = True


class BundleAssembler:
    """Collects modules for one entry point and writes the bundle.

    The entry module, every registered reference and the URL shim are seeds;
    their static imports are followed transitively. Excluded modules become
    stubs and are not followed.
    """

    def __init__(
        self,
        settings: BundleSettings,
        descriptor: "EntryDescriptor",
        registry: Sequence[ModuleReference],
        *,
        commit_hash: str,
    ) -> None:
        self.settings = settings
        self.descriptor = descriptor
        self.references: List[ModuleReference] = [*registry, *descriptor.include_extra]
        self.commit_hash = commit_hash

        self._modules: Dict[str, EmbeddedModule] = {}
        self._stubs: Set[str] = set()
        self._skipped: Set[str] = set()
        self._exposed: Dict[str, str] = {}
        self._aliases: Dict[str, str] = {}
        self._queue: Deque[Tuple[str, bool, str]] = deque()
        self._inliner = SourceInliner()
        self.locator = ModuleLocator(settings.search_roots)

    def assemble(self, destination: Path) -> SourceMap:
        descriptor_path = self.settings.path(self.settings.package_descriptor)
        metadata = read_package_metadata(descriptor_path)
        banner_path = self.settings.path(self.settings.banner_file) if self.settings.banner_file else None
        banner = render_banner(metadata, self.commit_hash, template_path=banner_path)
        self._inliner = SourceInliner(descriptor_path=descriptor_path, descriptor_version=metadata.version)

        entry_name = self.collect()

        map_path = map_path_for(destination)
        extractor = SourceMapExtractor(bundle_name=destination.name, map_name=map_path.name, entry=entry_name)
        ensure_directory(destination.parent)
        try:
            with atomic_write(map_path) as map_handle, atomic_write(destination) as bundle_handle:
                for chunk in extractor.pipe(self._lines(banner, entry_name), map_handle):
                    bundle_handle.write(chunk)
        except OSError as exc:
            raise AssemblyError(f"Unable to write bundle {destination}: {exc}") from exc

        logger.info(
            "Wrote %s (%d modules, %d stubs, %d exposed)",
            destination,
            len(self._modules),
            len(self._stubs),
            len(self._exposed),
        )
        return extractor.source_map

    def collect(self) -> str:
        """Resolve every module the bundle needs; returns the entry module name."""

        ensure_unique(self.references)
        entry_name = self._seed_entry(Path(self.descriptor.entry_path))

        for reference in self.references:
            self._exposed[reference.logical_path] = reference.module_name
            self._push(reference.module_name, optional=False, requested_by=reference.logical_path)

        shim_path = self.settings.path(self.settings.url_shim_module)
        if not shim_path.is_file():
            raise ConfigurationError(f"URL shim module not found: {shim_path}")
        shim_name = module_name_for(shim_path, self.locator.search_roots)
        self._aliases[self.settings.url_shim_name] = shim_name
        for parent in parent_names(shim_name):
            self._push(parent, optional=False, requested_by="URL shim")
        self._push(shim_name, optional=False, requested_by="URL shim")

        while self._queue:
            name, optional, requested_by = self._queue.popleft()
            self._visit(name, optional=optional, requested_by=requested_by)
        return entry_name

    def _seed_entry(self, entry_path: Path) -> str:
        if not entry_path.is_file():
            raise ConfigurationError(f"Entry module not found: {entry_path}")
        try:
            entry_name = module_name_for(entry_path, self.locator.search_roots)
        except ConfigurationError:
            # Outside every root: behave like a script, its directory first on the path.
            self.locator = ModuleLocator([entry_path.resolve().parent, *self.locator.search_roots])
            entry_name = entry_path.stem
        for parent in parent_names(entry_name):
            self._push(parent, optional=False, requested_by=str(entry_path))
        self._push(entry_name, optional=False, requested_by=str(entry_path))
        return entry_name

    def _push(self, name: str, *, optional: bool, requested_by: str) -> None:
        if name in self._modules or name in self._stubs:
            return
        self._queue.append((name, optional, requested_by))

    def _visit(self, name: str, *, optional: bool, requested_by: str) -> None:
        if name in self._modules or name in self._stubs:
            return
        exclusions = self.descriptor.exclude_if
        if exclusions.matches(name):
            self._stub(name)
            return

        located = self.locator.locate(name)
        if located is None:
            if optional:
                if name not in self._skipped:
                    logger.debug("Skipping unresolved optional import %s (from %s)", name, requested_by)
                    self._skipped.add(name)
                return
            raise AssemblyError(f"Cannot resolve import {name!r} required by {requested_by}")

        if exclusions.matches(name, located.origin):
            self._stub(name)
            return
        for parent in parent_names(name):
            self._push(parent, optional=False, requested_by=name)
        self._embed(located)

    def _stub(self, name: str) -> None:
        logger.debug("Excluding %s", name)
        self._stubs.add(name)

    def _embed(self, located: LocatedModule) -> None:
        if located.kind == "namespace":
            self._modules[located.name] = EmbeddedModule(
                name=located.name,
                filename=located.filename,
                is_package=True,
                original="",
                source="",
                has_file=False,
            )
            return
        if not located.has_source or located.origin is None:
            raise AssemblyError(f"{located.name} is a {located.kind} module and cannot be bundled")

        try:
            original = located.origin.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise AssemblyError(f"Unable to read {located.origin}: {exc}") from exc

        tree = parse_module(original, str(located.origin))
        inlined = self._inliner.transform(original, located.origin, tree=tree)
        if inlined.inlined:
            tree = parse_module(inlined.source, str(located.origin))

        self._modules[located.name] = EmbeddedModule(
            name=located.name,
            filename=located.filename,
            is_package=located.is_package,
            original=original,
            source=inlined.source,
        )
        for request in ImportScanner.scan(tree, located.name, is_package=located.is_package):
            self._follow(request, located.name)

    def _follow(self, request: ImportRequest, requested_by: str) -> None:
        if not request.name or self._provided_by_host(request.name):
            return
        where = f"{requested_by}:{request.lineno}"
        for parent in parent_names(request.name):
            self._push(parent, optional=request.optional, requested_by=where)
        self._push(request.name, optional=request.optional, requested_by=where)
        for attribute in request.from_names:
            # ``from pkg import name`` may name a submodule or a plain attribute.
            self._push(f"{request.name}.{attribute}", optional=True, requested_by=where)

    def _provided_by_host(self, name: str) -> bool:
        if is_external(name, self.settings.external):
            return True
        if not is_stdlib_module(name):
            return False
        # A package below the search roots shadows the standard-library module.
        top = name.partition(".")[0]
        if self.locator.locate(top) is None:
            return True
        logger.debug("%s shadows the standard-library module of the same name", top)
        return False

    def _lines(self, banner: Sequence[str], entry_name: str) -> Iterator[BundleLine]:
        yield BundleLine(f"#!{self.settings.shebang}")
        for line in banner:
            yield BundleLine(line)
        yield BundleLine(load_prelude().rstrip("\n"))

        for name in sorted(self._modules):
            module = self._modules[name]
            yield BundleLine(
                render_define(name, module.filename, module.is_package, module.source),
                module=name,
                source_path=module.filename if module.has_file else None,
                original=module.original if module.has_file else None,
                embedded=module.source,
            )
        for name in sorted(self._stubs):
            yield BundleLine(render_ignore(name), module=name, stub=True)
        for alias, name in sorted(self._aliases.items()):
            yield BundleLine(render_alias(alias, name), module=name, alias=alias)
        for logical_path, name in sorted(self._exposed.items()):
            yield BundleLine(render_expose(logical_path, name), module=name, exposes=logical_path)
        yield BundleLine(render_start(entry_name))


def assemble(
    entry_path: Path,
    destination: Path,
    *,
    settings: BundleSettings,
    descriptor: "EntryDescriptor",
    registry: Sequence[ModuleReference],
    commit_hash: str,
) -> SourceMap:
    """Assemble ``entry_path`` into ``destination`` and ``destination.map``."""

    if Path(descriptor.entry_path).resolve() != Path(entry_path).resolve():
        raise ConfigurationError(
            f"Entry descriptor was built for {descriptor.entry_path}, not {entry_path}"
        )
    assembler = BundleAssembler(settings, descriptor, registry, commit_hash=commit_hash)
    return assembler.assemble(Path(destination))
