from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from aware_bundle.settings import BundleSettings, settings_from_mapping

COMMIT = "0123456789abcdef0123456789abcdef01234567"

APP_FILES = {
    "pyproject.toml": """
        [project]
        name = "sample-auditor"
        version = "1.2.3"
        description = "Sample auditing application."
        license = {text = "Apache-2.0"}
    """,
    "core/__init__.py": "",
    "core/config/__init__.py": """
        import importlib


        def load(logical_path):
            return importlib.import_module(logical_path, package=__name__)
    """,
    "core/audits/__init__.py": "",
    "core/audits/_base.py": """
        class Audit:
            pass
    """,
    "core/audits/a.py": """
        from core.lib import helpers

        NAME = helpers.shout("a")
    """,
    "core/audits/b.py": """
        NAME = "B"
    """,
    "core/audits/nested/__init__.py": "",
    "core/audits/nested/c.py": """
        NAME = "C"
    """,
    "core/gather/__init__.py": "",
    "core/gather/gatherers/__init__.py": "",
    "core/gather/gatherers/g.py": """
        NAME = "G"
    """,
    "core/gather/connections/__init__.py": "",
    "core/gather/connections/cri.py": """
        import websocket_transport


        class ProtocolConnection:
            transport = websocket_transport
    """,
    "core/report/__init__.py": "",
    "core/report/html/__init__.py": "",
    "core/report/html/templates/report.html": "<html>report</html>\n",
    "core/report/html/html_report_assets.py": """
        from pathlib import Path

        REPORT_TEMPLATE = (Path(__file__).parent / "templates" / "report.html").read_text(encoding="utf-8")
    """,
    "core/lib/__init__.py": "",
    "core/lib/helpers.py": """
        def shout(text):
            return text.upper()
    """,
    "core/lib/url_shim.py": """
        from urllib.parse import urlparse as _urlparse

        from .helpers import shout


        def hostname(url):
            return _urlparse(url).hostname


        def loud_hostname(url):
            return shout(hostname(url))
    """,
    "core/lib/i18n/__init__.py": """
        try:
            from .locales import en
        except ImportError:
            en = None


        def greeting():
            messages = getattr(en, "MESSAGES", None) or {}
            return messages.get("hello", "hello")
    """,
    "core/lib/i18n/locales/__init__.py": "",
    "core/lib/i18n/locales/en.py": """
        MESSAGES = {"hello": "Hello"}
    """,
    "core/lib/i18n/locales/de.py": """
        MESSAGES = {"hello": "Hallo"}
    """,
    "core/version.py": """
        import tomllib
        from pathlib import Path

        _DESCRIPTOR = tomllib.loads(Path(__file__).parent.parent.joinpath("pyproject.toml").read_text(encoding="utf-8"))
        VERSION = _DESCRIPTOR["project"]["version"]
    """,
    "core/runner.py": """
        import importlib

        from core import config
        from core.gather.connections import cri
        from core.lib import i18n, url_shim
        from core.report.html import html_report_assets
        from core.version import VERSION

        try:
            import sentry_sdk
        except ImportError:
            sentry_sdk = None

        try:
            import not_installed_anywhere
        except ImportError:
            not_installed_anywhere = None


        def report():
            urlparse = importlib.import_module("urlparse")
            return {
                "version": VERSION,
                "audits": [config.load("..audits." + name).NAME for name in ("a", "b", "nested.c")],
                "gatherers": [config.load("..gather.gatherers.g").NAME],
                "report_assets": html_report_assets.REPORT_TEMPLATE,
                "connection": cri.ProtocolConnection is not None,
                "greeting": i18n.greeting(),
                "telemetry": getattr(sentry_sdk, "init", None) is not None,
                "host": urlparse.hostname("https://example.com/path"),
                "loud_host": url_shim.loud_hostname("https://example.com/path"),
                "shim_identity": urlparse is url_shim,
            }
    """,
    "cli_entry.py": """
        import json

        from core.runner import report

        if __name__ == "__main__":
            print(json.dumps(report(), sort_keys=True))
    """,
    "devtools_entry.py": """
        import importlib
        import json

        from core.runner import report


        def plugin_audits():
            descriptor = importlib.import_module("plugin_publisher_ads.plugin")
            return [importlib.import_module(entry["path"]).NAME for entry in descriptor.audits]


        if __name__ == "__main__":
            payload = report()
            payload["plugin"] = plugin_audits()
            print(json.dumps(payload, sort_keys=True))
    """,
    "plugin_publisher_ads/__init__.py": "",
    "plugin_publisher_ads/plugin.py": """
        audits = [
            {"path": "plugin_publisher_ads.audits.ad_count"},
        ]
    """,
    "plugin_publisher_ads/audits/__init__.py": "",
    "plugin_publisher_ads/audits/ad_count.py": """
        NAME = "ad_count"
    """,
}


def write_file(root: Path, relative: str, content: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    text = textwrap.dedent(content).lstrip("\n")
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def sample_app(tmp_path: Path) -> Path:
    root = tmp_path / "app"
    for relative, content in APP_FILES.items():
        write_file(root, relative, content)
    return root


@pytest.fixture
def app_settings(sample_app: Path) -> BundleSettings:
    return settings_from_mapping(sample_app, {})


@pytest.fixture
def commit_hash() -> str:
    return COMMIT


@pytest.fixture
def write():
    return write_file
