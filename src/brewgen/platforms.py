"""Platform resolution for per-OS/CPU release assets.

Given the running machine's OS family and CPU architecture, pick the one
declared release asset to fetch, derive the target triple, and create the
binary aliases that triple requires.

Everything here is a pure function of its inputs plus an immutable
``BinaryAliasTable`` handed to ``PlatformResolver`` at construction; the only
side effect is symlink creation inside the package's own ``bin`` directory.
"""

from __future__ import annotations

import os
import platform
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from urllib.parse import urlparse

from .errors import ConfigurationError, UnsupportedPlatform
from .logging import get_logger


class OperatingSystem(str, Enum):
    MACOS = "macos"
    LINUX = "linux"
    WINDOWS = "windows"

    @classmethod
    def parse(cls, value: str) -> OperatingSystem:
        low = value.strip().lower()
        if low in ("mac", "macos", "darwin", "osx"):
            return cls.MACOS
        if low == "linux":
            return cls.LINUX
        if low in ("windows", "win"):
            return cls.WINDOWS
        raise ConfigurationError(f"Unknown operating system {value!r}")


class Cpu(str, Enum):
    ARM64 = "arm64"
    X86_64 = "x86_64"

    @classmethod
    def parse(cls, value: str) -> Cpu:
        low = value.strip().lower()
        if low in ("arm", "arm64", "aarch64"):
            return cls.ARM64
        if low in ("intel", "x86_64", "amd64", "x64"):
            return cls.X86_64
        raise ConfigurationError(f"Unknown CPU architecture {value!r}")


_OS_VENDOR = {
    OperatingSystem.MACOS: "apple-darwin",
    OperatingSystem.LINUX: "unknown-linux-gnu",
    OperatingSystem.WINDOWS: "pc-windows-gnu",
}

_CPU_NAME = {
    Cpu.ARM64: "aarch64",
    Cpu.X86_64: "x86_64",
}


@dataclass(frozen=True)
class ReleaseAsset:
    os: OperatingSystem
    cpu: Cpu
    url: str
    checksum: str

    @property
    def filename(self) -> str:
        return PurePosixPath(urlparse(self.url).path).name

    @property
    def platform(self) -> str:
        return f"{self.os.value}/{self.cpu.value}"

    def matches(self, os_name: OperatingSystem, cpu: Cpu) -> bool:
        return self.os is os_name and self.cpu is cpu


def target_triple(os_name: OperatingSystem, cpu: Cpu) -> str:
    """Return ``<cpu>-<vendor-os>`` for the given platform."""
    return f"{_CPU_NAME[cpu]}-{_OS_VENDOR[os_name]}"


def supported_triples() -> list[str]:
    return [target_triple(o, c) for o in OperatingSystem for c in Cpu]


def detect_platform(
    system: str | None = None, machine: str | None = None
) -> tuple[OperatingSystem, Cpu]:
    """Identify the running host, normalizing ``platform`` module spellings."""
    s = (system if system is not None else platform.system()).lower()
    m = (machine if machine is not None else platform.machine()).lower()

    if s.startswith("darwin") or s.startswith("mac"):
        os_name = OperatingSystem.MACOS
    elif s.startswith("win") or s.startswith("cygwin") or s.startswith("msys"):
        os_name = OperatingSystem.WINDOWS
    else:
        os_name = OperatingSystem.LINUX

    if m in ("arm64", "aarch64") or m.startswith("armv8"):
        cpu = Cpu.ARM64
    elif m in ("x86_64", "amd64", "x64"):
        cpu = Cpu.X86_64
    else:
        raise UnsupportedPlatform(f"{os_name.value}/{m or 'unknown'}")
    return os_name, cpu


class BinaryAliasTable:
    """Read-only ``triple -> {source binary -> alias names}`` mapping."""

    def __init__(self, entries: Mapping[str, Mapping[str, Iterable[str]]]):
        frozen: dict[str, Mapping[str, frozenset[str]]] = {}
        for triple, aliases in entries.items():
            per_source = {
                str(source): frozenset(str(d) for d in (dests or ()))
                for source, dests in (aliases or {}).items()
            }
            frozen[str(triple)] = MappingProxyType(per_source)
        self._entries: Mapping[str, Mapping[str, frozenset[str]]] = MappingProxyType(frozen)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object] | None) -> BinaryAliasTable:
        """Build a table from config data, on top of the default triples."""
        merged: dict[str, Mapping[str, Iterable[str]]] = dict(DEFAULT_ALIAS_TABLE.items())
        for triple, aliases in (raw or {}).items():
            if aliases is None:
                merged[str(triple)] = {}
                continue
            if not isinstance(aliases, Mapping):
                raise ConfigurationError(
                    f"Aliases for {triple} must map a binary name to a list of aliases"
                )
            parsed: dict[str, list[str]] = {}
            for source, dests in aliases.items():
                if isinstance(dests, str):
                    parsed[str(source)] = [dests]
                elif isinstance(dests, Iterable):
                    parsed[str(source)] = [str(d) for d in dests]
                else:
                    raise ConfigurationError(f"Invalid aliases for {triple}/{source}: {dests!r}")
            merged[str(triple)] = parsed
        return cls(merged)

    def __contains__(self, triple: object) -> bool:
        return triple in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, triple: str) -> Mapping[str, frozenset[str]]:
        try:
            return self._entries[triple]
        except KeyError:
            raise ConfigurationError(
                f"No binary alias entry for target triple {triple}; "
                "every supported triple needs one, even if empty"
            ) from None

    def triples(self) -> list[str]:
        return list(self._entries)

    def items(self) -> Iterable[tuple[str, Mapping[str, frozenset[str]]]]:
        return self._entries.items()

    def to_dict(self) -> dict[str, dict[str, list[str]]]:
        return {
            triple: {source: sorted(dests) for source, dests in aliases.items()}
            for triple, aliases in self._entries.items()
        }


DEFAULT_ALIAS_TABLE = BinaryAliasTable({triple: {} for triple in supported_triples()})


def _check_alias_name(name: str, triple: str) -> None:
    if not name or name in (".", "..") or "/" in name or "\\" in name or os.sep in name:
        raise ConfigurationError(
            f"Binary alias {name!r} for {triple} must be a plain file name inside bin"
        )


class PlatformResolver:
    """Select assets and aliases for a platform from static declarations."""

    def __init__(
        self,
        assets: Iterable[ReleaseAsset],
        alias_table: BinaryAliasTable = DEFAULT_ALIAS_TABLE,
    ) -> None:
        self.assets: tuple[ReleaseAsset, ...] = tuple(assets)
        self.alias_table = alias_table
        self.logger = get_logger()
        for asset in self.assets:
            triple = target_triple(asset.os, asset.cpu)
            if triple not in alias_table:
                raise ConfigurationError(
                    f"Release asset {asset.url} targets {triple}, "
                    "which has no entry in the binary alias table"
                )

    def select_asset(self, os_name: OperatingSystem, cpu: Cpu) -> ReleaseAsset:
        for asset in self.assets:
            if asset.matches(os_name, cpu):
                return asset
        raise UnsupportedPlatform(
            f"{os_name.value}/{cpu.value}", [a.platform for a in self.assets]
        )

    def target_triple(self, os_name: OperatingSystem, cpu: Cpu) -> str:
        return target_triple(os_name, cpu)

    def install_binary_aliases(self, triple: str, installed_bin_dir: Path) -> list[Path]:
        """Symlink every alias for ``triple`` to its installed source binary.

        Links are relative (``bin/alias -> source``) and never leave
        ``installed_bin_dir``.
        """
        created: list[Path] = []
        for source, dests in self.alias_table[triple].items():
            _check_alias_name(source, triple)
            if not (installed_bin_dir / source).exists():
                raise ConfigurationError(
                    f"Alias source {source} for {triple} is not installed in {installed_bin_dir}"
                )
            for dest in sorted(dests):
                _check_alias_name(dest, triple)
                link = installed_bin_dir / dest
                if link.is_symlink():
                    link.unlink()
                elif link.exists():
                    raise ConfigurationError(
                        f"Cannot alias {source} as {dest}: {link} already exists"
                    )
                link.symlink_to(source)
                self.logger.debug(f"Linked {link} -> {source}", triple=triple)
                created.append(link)
        return created


__all__ = [
    "DEFAULT_ALIAS_TABLE",
    "BinaryAliasTable",
    "Cpu",
    "OperatingSystem",
    "PlatformResolver",
    "ReleaseAsset",
    "detect_platform",
    "supported_triples",
    "target_triple",
]
