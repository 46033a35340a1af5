"""Tests for DescriptorMatcher and DescriptorReader."""
import os

from librestore.modules.descriptor import DescriptorReader, descriptor_path
from librestore.modules.matcher import DescriptorMatcher
from librestore.modules.records import PackageRecord
from librestore.modules.session import ResolutionSession


def rec(name, version, source="Repository", **kw):
    return PackageRecord(package=name, version=version, source=source, **kw)


def write_minimal(library, name, version):
    pkg = library / name
    pkg.mkdir(parents=True)
    with open(descriptor_path(str(pkg)), "w", encoding="utf-8") as f:
        f.write(f"Package: {name}\nVersion: \"{version}\"\n")


class TestDescriptorReader:

    def test_reads_valid_descriptor(self, tmp_path, installed):
        installed(tmp_path, rec("A", "1.0"))
        result = DescriptorReader().read(str(tmp_path / "A"))
        assert result.ok
        assert result.record() == rec("A", "1.0")

    def test_missing_descriptor_is_failure_not_exception(self, tmp_path):
        (tmp_path / "A").mkdir()
        result = DescriptorReader().read(str(tmp_path / "A"))
        assert not result.ok
        assert result.record() is None
        assert "não encontrado" in result.error

    def test_malformed_descriptor_is_failure(self, tmp_path):
        pkg = tmp_path / "A"
        pkg.mkdir()
        with open(descriptor_path(str(pkg)), "w", encoding="utf-8") as f:
            f.write("Package: [unterminated\n")
        assert not DescriptorReader().read(str(pkg)).ok

    def test_descriptor_without_version_is_failure(self, tmp_path):
        pkg = tmp_path / "A"
        pkg.mkdir()
        with open(descriptor_path(str(pkg)), "w", encoding="utf-8") as f:
            f.write("Package: A\n")
        assert not DescriptorReader().read(str(pkg)).ok

    def test_minimal_descriptor_defaults_to_repository(self, tmp_path):
        write_minimal(tmp_path, "A", "1.0")
        record = DescriptorReader().read(str(tmp_path / "A")).record()
        assert record.source == "Repository"
        assert record.is_repository()


class TestDescriptorMatcher:

    def test_exact_match_returns_absolute_path(self, tmp_path, installed):
        installed(tmp_path, rec("A", "1.0"))
        path = DescriptorMatcher().find(rec("A", "1.0"), [str(tmp_path)])
        assert path == os.path.abspath(str(tmp_path / "A"))

    def test_version_mismatch_not_found(self, tmp_path, installed):
        installed(tmp_path, rec("A", "1.0"))
        assert DescriptorMatcher().find(rec("A", "2.0"), [str(tmp_path)]) is None

    def test_remote_fields_must_match(self, tmp_path, installed):
        installed(tmp_path, rec("A", "1.0", source="GitHub", remotes={"RemoteSha": "abc"}))
        matcher = DescriptorMatcher()
        wanted = rec("A", "1.0", source="GitHub", remotes={"RemoteSha": "abc"})
        other = rec("A", "1.0", source="GitHub", remotes={"RemoteSha": "def"})
        assert matcher.find(wanted, [str(tmp_path)]) is not None
        assert matcher.find(other, [str(tmp_path)]) is None

    def test_first_matching_library_wins(self, tmp_path, installed):
        first, second = tmp_path / "one", tmp_path / "two"
        installed(first, rec("A", "1.0"))
        installed(second, rec("A", "1.0"))
        path = DescriptorMatcher().find(rec("A", "1.0"), [str(first), str(second)])
        assert path == os.path.abspath(str(first / "A"))

    def test_unreadable_descriptor_continues_scanning(self, tmp_path, installed):
        broken, good = tmp_path / "broken", tmp_path / "good"
        (broken / "A").mkdir(parents=True)
        installed(good, rec("A", "1.0"))
        path = DescriptorMatcher().find(rec("A", "1.0"), [str(broken), str(good)])
        assert path == os.path.abspath(str(good / "A"))

    def test_explicit_request_never_matches(self, tmp_path, installed):
        installed(tmp_path, rec("A", "1.0"))
        session = ResolutionSession(packages=["A"])
        assert DescriptorMatcher().find(rec("A", "1.0"), [str(tmp_path)], session) is None

    def test_record_without_source_never_matches(self, tmp_path, installed):
        installed(tmp_path, rec("A", "1.0", source=""))
        assert DescriptorMatcher().find(rec("A", "1.0", source=""), [str(tmp_path)]) is None

    def test_minimal_descriptor_matches_repository_record(self, tmp_path):
        write_minimal(tmp_path, "Q", "2.0")
        path = DescriptorMatcher().find(rec("Q", "2.0"), [str(tmp_path)])
        assert path == os.path.abspath(str(tmp_path / "Q"))
