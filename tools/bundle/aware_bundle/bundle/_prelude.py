"""Module registry runtime embedded at the top of every bundle.

Module sources are registered with ``_define``; excluded modules with
``_ignore`` resolve to empty stubs; ``_alias`` binds a second import name to
the same module object; ``_expose`` maps logical load paths to
module names for ``aware_bundle_runtime.require``.
"""
import importlib
import importlib.abc
import importlib.util
import runpy
import sys
import types

RUNTIME_MODULE = "aware_bundle_runtime"

_SOURCES = {}
_PACKAGES = set()
_IGNORED = set()
_ALIASES = {}
_EXPOSED = {}


def _define(name, filename, is_package, source):
    _SOURCES[name] = (filename, source)
    if is_package:
        _PACKAGES.add(name)


def _ignore(name):
    _IGNORED.add(name)


def _alias(alias, name):
    _ALIASES[alias] = name


def _expose(logical_path, name):
    _EXPOSED[logical_path] = name


def _is_ignored(name):
    return any(name == entry or name.startswith(entry + ".") for entry in _IGNORED)


def _stub_attribute(name):
    if name.startswith("__") and name.endswith("__"):
        raise AttributeError(name)
    return None


class _AliasLoader(importlib.abc.Loader):
    def __init__(self, name):
        self.name = name
        self._spec = None

    def create_module(self, spec):
        module = importlib.import_module(self.name)
        self._spec = module.__spec__
        return module

    def exec_module(self, module):
        # Module creation rebinds __spec__ to the alias spec.
        module.__spec__ = self._spec


class BundleImporter(importlib.abc.MetaPathFinder, importlib.abc.InspectLoader):
    def find_spec(self, fullname, path=None, target=None):
        if fullname in _ALIASES:
            return importlib.util.spec_from_loader(fullname, _AliasLoader(_ALIASES[fullname]))
        if _is_ignored(fullname):
            return importlib.util.spec_from_loader(fullname, self, is_package=True)
        if fullname not in _SOURCES:
            return None
        spec = importlib.util.spec_from_loader(
            fullname,
            self,
            origin=_SOURCES[fullname][0],
            is_package=fullname in _PACKAGES,
        )
        spec.has_location = True
        return spec

    def create_module(self, spec):
        return None

    def exec_module(self, module):
        name = module.__spec__.name
        if _is_ignored(name):
            module.__getattr__ = _stub_attribute
            return
        exec(self.get_code(name), module.__dict__)

    def is_package(self, fullname):
        return fullname in _PACKAGES or _is_ignored(fullname)

    def get_source(self, fullname):
        if fullname not in _SOURCES:
            raise ImportError("No bundled source for " + fullname, name=fullname)
        return _SOURCES[fullname][1]

    def get_code(self, fullname):
        if _is_ignored(fullname):
            return compile("", fullname, "exec")
        source = self.get_source(fullname)
        return compile(source, _SOURCES[fullname][0], "exec", dont_inherit=True)


def require(logical_path):
    return importlib.import_module(_EXPOSED.get(logical_path, logical_path))


def exposed():
    return dict(_EXPOSED)


def _install():
    runtime = types.ModuleType(RUNTIME_MODULE)
    runtime.require = require
    runtime.exposed = exposed
    runtime.importer = BundleImporter()
    sys.modules[RUNTIME_MODULE] = runtime
    sys.meta_path.insert(0, runtime.importer)


def _start(entry, namespace):
    _install()
    if namespace.get("__name__") == "__main__":
        runpy.run_module(entry, run_name="__main__", alter_sys=True)
        return
    module = importlib.import_module(entry)
    for key, value in vars(module).items():
        if not key.startswith("_"):
            namespace.setdefault(key, value)
