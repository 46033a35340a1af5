"""Fixtures compartilhadas: config/log isolados e colaboradores falsos."""
import os
import tempfile

import pytest
import yaml

# config e log são carregados no import; apontar para um diretório temporário antes
_BASE = tempfile.mkdtemp(prefix="librestore-tests-")
os.environ["LIBRESTORE_CONFIG"] = os.path.join(_BASE, "config.yml")
with open(os.environ["LIBRESTORE_CONFIG"], "w", encoding="utf-8") as _f:
    yaml.safe_dump({"log_dir": os.path.join(_BASE, "log"), "cache_dir": os.path.join(_BASE, "cache")}, _f)

from librestore.modules import config  # noqa: E402
from librestore.modules.descriptor import write_descriptor  # noqa: E402
from librestore.modules.package import InstallStatus  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    path = tmp_path / "config.yml"
    path.write_text(yaml.safe_dump({
        "cache_dir": str(tmp_path / "cache"),
        "log_dir": str(tmp_path / "log"),
    }), encoding="utf-8")
    monkeypatch.setenv("LIBRESTORE_CONFIG", str(path))
    config.load_config()
    yield path
    config.load_config()


def install_fake(library, record):
    """Cria <library>/<pkg>/<pkg>.meta como se o pacote estivesse instalado."""
    return write_descriptor(os.path.join(str(library), record.package), record)


class FakeInstaller:
    def __init__(self, fail=(), replace=None):
        self.calls = []
        self.fail = set(fail)
        self.replace = dict(replace or {})

    def install(self, records, target_library):
        out = {}
        for record in records:
            self.calls.append(record.package)
            if record.package in self.fail:
                out[record.package] = InstallStatus(record.package, False, reason="boom")
                continue
            actual = self.replace.get(record.package, record)
            install_fake(target_library, actual)
            out[record.package] = InstallStatus(
                record.package, True, record=actual,
                path=os.path.join(str(target_library), record.package))
        return out


class FakePrompter:
    def __init__(self, answer):
        self.answer = answer
        self.asked = []

    def ask(self, message):
        self.asked.append(message)
        return self.answer


@pytest.fixture
def installed():
    return install_fake


@pytest.fixture
def fake_installer():
    return FakeInstaller


@pytest.fixture
def fake_prompter():
    return FakePrompter
