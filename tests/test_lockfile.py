"""Tests for lockfile reading, overrides and repository precedence."""
import json

import pytest
import yaml

from librestore.modules import config
from librestore.modules.lockfile import (
    Manifest,
    ManifestReadError,
    apply_overrides,
    read_lockfile,
    resolve_repos,
)
from librestore.modules.records import PackageRecord

LOCK = {
    "Runtime": {
        "Version": "4.3.1",
        "Repositories": [{"Name": "CRAN", "URL": "https://cran.example.org"}],
    },
    "Packages": {
        "A": {"Package": "A", "Version": "1.0", "Source": "Repository", "Repository": "CRAN",
              "Requirements": ["B (>= 0.5)"]},
        "G": {"Package": "G", "Version": "0.2", "Source": "GitHub", "RemoteSha": "abc"},
    },
}


class TestReadLockfile:

    def test_reads_json_file(self, tmp_path):
        path = tmp_path / "restore.lock"
        path.write_text(json.dumps(LOCK), encoding="utf-8")
        manifest = read_lockfile(str(path))
        assert set(manifest.records) == {"A", "G"}
        assert manifest.records["A"].requirements == ["B (>= 0.5)"]
        assert manifest.records["G"].remotes == {"RemoteSha": "abc"}
        assert manifest.repositories == {"CRAN": "https://cran.example.org"}
        assert manifest.runtime_version == "4.3.1"

    def test_reads_in_memory_value(self):
        assert set(read_lockfile(LOCK).records) == {"A", "G"}

    def test_reads_yaml_file(self, tmp_path):
        path = tmp_path / "restore.yml"
        path.write_text(yaml.safe_dump(LOCK), encoding="utf-8")
        assert read_lockfile(str(path)).records == read_lockfile(LOCK).records

    def test_missing_file(self, tmp_path):
        with pytest.raises(ManifestReadError):
            read_lockfile(str(tmp_path / "nope.lock"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "restore.lock"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ManifestReadError):
            read_lockfile(str(path))

    def test_package_name_mismatch(self):
        with pytest.raises(ManifestReadError):
            read_lockfile({"Packages": {"A": {"Package": "B", "Version": "1.0"}}})

    def test_packages_must_be_mapping(self):
        with pytest.raises(ManifestReadError):
            read_lockfile({"Packages": ["A"]})


class TestOverridesAndRepos:

    def test_overrides_merge_fields(self):
        manifest = apply_overrides(read_lockfile(LOCK), {"A": {"Version": "1.1"}, "N": {"Version": "3.0"}})
        assert manifest.records["A"].version == "1.1"
        assert manifest.records["A"].repository == "CRAN"
        assert manifest.records["N"].version == "3.0"

    def test_overrides_from_config(self, isolated_config):
        config.set("overrides", {"A": {"Version": "9.9"}})
        assert apply_overrides(read_lockfile(LOCK)).records["A"].version == "9.9"

    def test_repo_precedence(self, isolated_config):
        manifest = Manifest(records={"A": PackageRecord("A", "1.0")}, repositories={"CRAN": "lock"})
        assert resolve_repos(None, manifest) == {"CRAN": "lock"}
        config.set("repos_override", {"CRAN": "config"})
        assert resolve_repos(None, manifest) == {"CRAN": "config"}
        assert resolve_repos({"CRAN": "param"}, manifest) == {"CRAN": "param"}
