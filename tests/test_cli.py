"""Tests for the command line entry point."""
import io
import json
import os
import tarfile

import pytest

from librestore import cli
from librestore.modules import config, log, utils
from librestore.modules.records import PackageRecord
from librestore.modules.restore import RestoreOutcome, RestoreStatus


def run(argv):
    with pytest.raises(SystemExit) as exc:
        cli.main(argv)
    return exc.value.code


def write_lock(path, **packages):
    data = {"Packages": {name: {"Package": name, "Version": version, "Source": "Repository"}
                         for name, version in packages.items()}}
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def cache_artifact(name, version):
    path = utils.get_cache_path("packages", f"{name}_{version}.tar.gz")
    utils.ensure_dir(os.path.dirname(path))
    with tarfile.open(path, "w:gz") as tar:
        payload = f"{name} {version}".encode()
        info = tarfile.TarInfo(f"{name}/DESCRIPTION")
        info.size = len(payload)
        tar.addfile(info, io.BytesIO(payload))
    return path


def test_status_json_lists_pending_actions(tmp_path, installed, capsys):
    lib = tmp_path / "lib"
    installed(lib, PackageRecord("Z", "0.1"))
    lock = write_lock(tmp_path / "restore.lock", A="1.0")

    code = run(["--json", "status", "-p", str(tmp_path), "-l", str(lib), "--lockfile", lock, "--clean"])

    assert code == 0
    assert json.loads(capsys.readouterr().out) == {"A": "install", "Z": "remove"}


def test_status_reports_synchronized(tmp_path, installed, capsys):
    lib = tmp_path / "lib"
    installed(lib, PackageRecord("A", "1.0"))
    lock = write_lock(tmp_path / "restore.lock", A="1.0")

    assert run(["status", "-p", str(tmp_path), "-l", str(lib), "--lockfile", lock]) == 0
    assert "Sincronizado" in capsys.readouterr().out


def test_restore_missing_lockfile_exits_2(tmp_path, capsys):
    code = run(["restore", "-p", str(tmp_path), "-l", str(tmp_path / "lib"), "--yes"])
    assert code == 2
    assert "Lockfile não encontrado" in capsys.readouterr().err


def test_restore_rejects_malformed_repo_override(tmp_path):
    lock = write_lock(tmp_path / "restore.lock", A="1.0")
    code = run(["restore", "-p", str(tmp_path), "--lockfile", lock, "--repo", "sem-url", "--yes"])
    assert code == 2


def test_restore_installs_from_cache(tmp_path, capsys):
    cache_artifact("A", "1.0")
    lib = tmp_path / "lib"
    lock = write_lock(tmp_path / "restore.lock", A="1.0")

    code = run(["--json", "restore", "-p", str(tmp_path), "-l", str(lib), "--lockfile", lock, "--yes"])

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out["status"] == "installed"
    assert out["installed"] == {"A": "1.0"}
    assert (lib / "A" / "DESCRIPTION").is_file()


def test_restore_failure_exits_1(tmp_path, capsys):
    lock = write_lock(tmp_path / "restore.lock", A="1.0")
    code = run(["restore", "-p", str(tmp_path), "-l", str(tmp_path / "lib"), "--lockfile", lock, "--yes"])
    assert code == 1
    assert "nenhum repositório configurado" in capsys.readouterr().err


def test_config_set_then_get(capsys):
    assert run(["config", "set", "lockfile_name", "projeto.lock"]) == 0
    capsys.readouterr()
    assert run(["config", "get", "lockfile_name"]) == 0
    assert capsys.readouterr().out.strip() == "projeto.lock"
    assert config.get("lockfile_name") == "projeto.lock"


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "librestore" in capsys.readouterr().out


def test_config_set_parses_yaml_scalars():
    assert run(["config", "set", "recursive", "false"]) == 0
    assert run(["config", "set", "download_timeout", "30"]) == 0
    assert config.get("recursive") is False
    assert config.get("download_timeout") == 30


def test_config_set_single_ignored_package_stays_whole():
    assert run(["config", "set", "ignored_packages", "Zed"]) == 0
    assert config.get_list("ignored_packages") == ["Zed"]


def test_config_set_list_value():
    assert run(["config", "set", "ignored_packages", "[A, B]"]) == 0
    assert config.get_list("ignored_packages") == ["A", "B"]


def test_verbose_flag_reaches_restore(tmp_path, monkeypatch):
    seen = {}

    class RecordingEngine:
        def __init__(self, **kwargs):
            pass

        def restore(self, **kwargs):
            seen.update(kwargs)
            return RestoreOutcome(RestoreStatus.SYNCHRONIZED)

    monkeypatch.setattr(cli, "RestoreEngine", RecordingEngine)
    try:
        assert run(["-v", "restore", "-p", str(tmp_path), "--yes"]) == 0
    finally:
        log.set_level("info")
    assert seen["verbose"] is True
