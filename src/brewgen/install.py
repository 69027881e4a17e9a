"""Install step: place the binary, create aliases, sort leftover files.

Mirrors a formula's ``install`` block:

    bin.install "<executable>" if OS.<os>? && Hardware::CPU.<cpu>?
    install_binary_aliases!
    doc files -> doc, everything else -> pkgshare

The host-specific primitives sit behind ``InstallHost`` so the same policy
drives a real prefix or a test double.
"""

from __future__ import annotations

import fnmatch
import shutil
import stat
import tarfile
import zipfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from .errors import ConfigurationError, MissingArtifactError
from .logging import get_logger
from .platforms import Cpu, OperatingSystem, PlatformResolver, ReleaseAsset

DOC_PATTERNS = ("README.*", "readme.*", "LICENSE", "LICENSE.*", "CHANGELOG.*")


class InstallHost(Protocol):
    @property
    def bin_dir(self) -> Path: ...

    def install_bin(self, path: Path) -> Path: ...

    def install_pkgshare(self, paths: Iterable[Path]) -> list[Path]: ...

    def install_doc(self, paths: Iterable[Path]) -> list[Path]: ...


def _move_into(path: Path, dest_dir: Path) -> Path:
    dest_dir.mkdir(parents=True, exist_ok=True)
    target = dest_dir / path.name
    if target.is_symlink() or target.is_file():
        target.unlink()
    elif target.is_dir():
        shutil.rmtree(target)
    shutil.move(str(path), str(target))
    return target


class PrefixInstallHost:
    """Install into a Homebrew-style keg rooted at ``prefix``."""

    def __init__(self, prefix: Path, package: str) -> None:
        self.prefix = prefix
        self.package = package

    @property
    def bin_dir(self) -> Path:
        return self.prefix / "bin"

    @property
    def pkgshare_dir(self) -> Path:
        return self.prefix / "share" / self.package

    @property
    def doc_dir(self) -> Path:
        return self.prefix / "share" / "doc" / self.package

    def install_bin(self, path: Path) -> Path:
        target = _move_into(path, self.bin_dir)
        mode = target.stat().st_mode
        target.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return target

    def install_pkgshare(self, paths: Iterable[Path]) -> list[Path]:
        return [_move_into(p, self.pkgshare_dir) for p in paths]

    def install_doc(self, paths: Iterable[Path]) -> list[Path]:
        return [_move_into(p, self.doc_dir) for p in paths]


@dataclass
class InstallReport:
    asset: ReleaseAsset
    triple: str
    binary: Path
    aliases: list[Path] = field(default_factory=list)
    docs: list[Path] = field(default_factory=list)
    pkgshare: list[Path] = field(default_factory=list)


def unpack_artifact(archive: Path, dest: Path, bare_name: str | None = None) -> Path:
    """Extract ``archive`` into ``dest`` and return the staging root.

    When the archive holds a single top-level directory, that directory is
    the staging root. A download that is not an archive is copied in as
    ``bare_name`` (default: its own name).
    """
    dest.mkdir(parents=True, exist_ok=True)
    source = archive.resolve()
    if tarfile.is_tarfile(source):
        with tarfile.open(source) as tf:
            tf.extractall(dest, filter="data")
    elif zipfile.is_zipfile(source):
        with zipfile.ZipFile(source) as zf:
            zf.extractall(dest)
    else:
        shutil.copyfile(source, dest / (bare_name or archive.name))
    entries = [p for p in dest.iterdir() if not p.name.startswith("._")]
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return dest


def is_doc_file(name: str) -> bool:
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in DOC_PATTERNS)


def install_package(
    staging_dir: Path,
    executable: str,
    resolver: PlatformResolver,
    os_name: OperatingSystem,
    cpu: Cpu,
    host: InstallHost,
) -> InstallReport:
    """Install an unpacked release for the given platform into ``host``."""
    logger = get_logger()
    asset = resolver.select_asset(os_name, cpu)
    triple = resolver.target_triple(os_name, cpu)

    if "/" in executable or executable in ("", ".", ".."):
        raise ConfigurationError(f"Executable name {executable!r} must be a plain file name")
    source = staging_dir / executable
    if not source.is_file() and os_name is OperatingSystem.WINDOWS:
        source = staging_dir / f"{executable}.exe"
    if not source.is_file():
        raise MissingArtifactError(asset.url, sorted(p.name for p in staging_dir.iterdir()))

    binary = host.install_bin(source)
    logger.log_operation("binary_installed", path=str(binary), triple=triple)
    aliases = resolver.install_binary_aliases(triple, host.bin_dir)

    leftovers = sorted(staging_dir.iterdir())
    docs = [p for p in leftovers if is_doc_file(p.name)]
    rest = [p for p in leftovers if not is_doc_file(p.name)]
    installed_docs = host.install_doc(docs) if docs else []
    installed_share = host.install_pkgshare(rest) if rest else []

    return InstallReport(
        asset=asset,
        triple=triple,
        binary=binary,
        aliases=aliases,
        docs=installed_docs,
        pkgshare=installed_share,
    )


__all__ = [
    "DOC_PATTERNS",
    "InstallHost",
    "InstallReport",
    "PrefixInstallHost",
    "install_package",
    "is_doc_file",
    "unpack_artifact",
]
