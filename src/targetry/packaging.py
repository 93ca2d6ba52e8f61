"""Packaging: archive an install tree and write its package metadata."""

from __future__ import annotations

import logging
import shutil
import tarfile
from pathlib import Path

from pydantic import BaseModel, Field

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class PackageInfo(BaseModel):
    """Metadata shipped alongside a package archive."""

    name: str
    version: str
    build_id: str = ""
    description: str = ""
    install_prefix: str = "/usr/local"
    depends: list[str] = Field(default_factory=list)
    license: str = "GPL-3.0-or-later"

    @property
    def basename(self) -> str:
        return f"{self.name}-{self.version}"


def release_info(tools_version: str) -> tuple[str, str]:
    """Split a '<version>-<build id>' string; the build id may be absent."""
    version, _, build_id = tools_version.partition("-")
    return version, build_id


def make_archive(source_dir: str | Path, archive_path: str | Path) -> Path:
    """Create an uncompressed tar of a directory's contents."""
    source = Path(source_dir)
    archive = Path(archive_path)
    if not source.is_dir():
        raise ConfigurationError(f"Cannot archive missing directory: {source}")
    logger.info("Archiving %s -> %s", source, archive)
    archive.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(archive, "w") as tar:
        for entry in sorted(source.iterdir()):
            if entry.resolve() == archive.resolve():
                continue
            tar.add(entry, arcname=f"./{entry.name}")
    return archive


def create_package(archive_path: str | Path, info: PackageInfo, output_dir: str | Path) -> Path:
    """Publish an archive and its metadata into ``output_dir``.

    Writes ``<name>-<version>.tar`` and ``<name>-<version>.json``; returns
    the archive path.
    """
    archive = Path(archive_path)
    if not archive.is_file():
        raise ConfigurationError(f"Package archive not found: {archive}")
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    target = out / f"{info.basename}.tar"
    if target.resolve() != archive.resolve():
        shutil.copyfile(archive, target)
    (out / f"{info.basename}.json").write_text(info.model_dump_json(indent=2) + "\n")
    logger.info("Created package %s", target)
    return target
