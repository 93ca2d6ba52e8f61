"""Tests for targetry.packaging."""

from __future__ import annotations

import json
import tarfile

import pytest

from targetry.errors import ConfigurationError
from targetry.packaging import PackageInfo, create_package, make_archive, release_info


class TestReleaseInfo:
    def test_version_and_build_id(self):
        assert release_info("2.1-345") == ("2.1", "345")

    def test_version_only(self):
        assert release_info("2.1") == ("2.1", "")


class TestMakeArchive:
    def test_archives_directory_contents(self, tmp_path):
        prefix = tmp_path / "devimage"
        (prefix / "bin").mkdir(parents=True)
        (prefix / "bin" / "k1-gdb").write_text("#!/bin/sh\n")
        archive = make_archive(prefix, tmp_path / "out" / "k1-gdb.tar")
        with tarfile.open(archive) as tar:
            names = tar.getnames()
        assert "./bin" in names
        assert "./bin/k1-gdb" in names

    def test_archive_inside_source_is_excluded(self, tmp_path):
        prefix = tmp_path / "devimage"
        prefix.mkdir()
        (prefix / "README").write_text("hi")
        archive = prefix / "pkg.tar"
        archive.write_text("")
        make_archive(prefix, archive)
        with tarfile.open(archive) as tar:
            assert tar.getnames() == ["./README"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigurationError, match="missing"):
            make_archive(tmp_path / "missing", tmp_path / "x.tar")


class TestCreatePackage:
    def test_writes_archive_and_metadata(self, tmp_path):
        src = tmp_path / "src"
        src.mkdir()
        (src / "file").write_text("x")
        archive = make_archive(src, tmp_path / "k1-gdb.tar")
        info = PackageInfo(
            name="k1-gdb",
            version="2.1",
            build_id="345",
            description="K1 GDB package.",
            install_prefix="/usr/local/k1tools",
            depends=["k1-binutils"],
        )
        result = create_package(archive, info, tmp_path / "packages")
        assert result == tmp_path / "packages" / "k1-gdb-2.1.tar"
        assert result.is_file()
        meta = json.loads((tmp_path / "packages" / "k1-gdb-2.1.json").read_text())
        assert meta["name"] == "k1-gdb"
        assert meta["depends"] == ["k1-binutils"]
        assert meta["license"] == "GPL-3.0-or-later"

    def test_missing_archive(self, tmp_path):
        info = PackageInfo(name="k1-gdb", version="2.1")
        with pytest.raises(ConfigurationError, match="not found"):
            create_package(tmp_path / "nope.tar", info, tmp_path / "packages")
