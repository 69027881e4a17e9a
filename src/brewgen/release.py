"""Release descriptors: the static per-platform table a formula declares.

A descriptor is what remains of a formula once templating is done: package
metadata plus one ``ReleaseAsset`` per OS/CPU pair. ``brewgen render`` can
write one next to the formula; ``resolve``/``fetch``/``install`` consume it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

from .errors import ConfigurationError
from .platforms import Cpu, OperatingSystem, ReleaseAsset


@dataclass(frozen=True)
class ReleaseDescriptor:
    package: str
    version: str
    executable: str
    assets: tuple[ReleaseAsset, ...] = field(default_factory=tuple)
    description: str = ""
    homepage: str = ""
    license: str = "unlicensed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "package": self.package,
            "description": self.description,
            "homepage": self.homepage,
            "version": self.version,
            "license": self.license,
            "executable": self.executable,
            "assets": [
                {
                    "os": a.os.value,
                    "cpu": a.cpu.value,
                    "url": a.url,
                    "sha256": a.checksum,
                }
                for a in self.assets
            ],
        }


def _asset_from_dict(raw: Any, index: int) -> ReleaseAsset:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"assets[{index}] must be a mapping")
    missing = [k for k in ("os", "cpu", "url") if not raw.get(k)]
    checksum = raw.get("sha256") or raw.get("checksum")
    if not checksum:
        missing.append("sha256")
    if missing:
        raise ConfigurationError(f"assets[{index}] is missing {', '.join(missing)}")
    return ReleaseAsset(
        os=OperatingSystem.parse(str(raw["os"])),
        cpu=Cpu.parse(str(raw["cpu"])),
        url=str(raw["url"]),
        checksum=str(checksum),
    )


def descriptor_from_dict(raw: dict[str, Any]) -> ReleaseDescriptor:
    for key in ("package", "version", "executable"):
        if not raw.get(key):
            raise ConfigurationError(f"Release descriptor is missing '{key}'")
    assets_raw = raw.get("assets") or []
    if not isinstance(assets_raw, list):
        raise ConfigurationError("Release descriptor 'assets' must be a list")
    return ReleaseDescriptor(
        package=str(raw["package"]),
        description=str(raw.get("description") or ""),
        homepage=str(raw.get("homepage") or ""),
        version=str(raw["version"]),
        license=str(raw.get("license") or "unlicensed"),
        executable=str(raw["executable"]),
        assets=tuple(_asset_from_dict(a, i) for i, a in enumerate(assets_raw)),
    )


def load_descriptor(path: str | Path) -> ReleaseDescriptor:
    p = Path(path)
    if not p.exists():
        raise ConfigurationError(f"Release descriptor not found: {p}")
    # YAML is a superset of JSON, so one loader covers both
    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Release descriptor {p} must contain a mapping")
    return descriptor_from_dict(cast(dict[str, Any], raw))


def write_descriptor(descriptor: ReleaseDescriptor, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(descriptor.to_dict(), indent=2) + "\n", encoding="utf-8")
    return path


__all__ = [
    "ReleaseDescriptor",
    "descriptor_from_dict",
    "load_descriptor",
    "write_descriptor",
]
