"""Read package metadata for a formula out of a Cargo manifest."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ManifestError


@dataclass(frozen=True)
class PackageManifest:
    name: str
    version: str
    executable: str
    description: str = ""
    homepage: str = ""
    license: str = "unlicensed"
    repository: str = ""
    path: Path | None = None

    @property
    def owner_repo(self) -> tuple[str, str]:
        """Split the repository URL into ``(owner, repo)``; ``.git`` is dropped."""
        chunks = self.repository.rstrip("/").split("/")
        repo = chunks.pop() if chunks else ""
        owner = chunks.pop() if chunks else ""
        if repo.endswith(".git"):
            repo = repo[: -len(".git")]
        if not owner or not repo:
            raise ManifestError(
                f"Cannot derive owner/repo from repository {self.repository!r} in {self.path}"
            )
        return owner, repo


def _string(table: dict[str, Any], key: str) -> str:
    value = table.get(key)
    return value.strip() if isinstance(value, str) else ""


def _first_binary(manifest: dict[str, Any], package_name: str, base: Path) -> str:
    bins = manifest.get("bin")
    if isinstance(bins, list):
        for entry in bins:
            if isinstance(entry, dict):
                name = _string(entry, "name")
                if name:
                    return name
                raise ManifestError("The binary executable needs a name.")
    # cargo's implicit target: src/main.rs builds a binary named after the package
    if (base / "src" / "main.rs").exists():
        return package_name
    raise ManifestError(
        "No support for making formulas for Rust libraries, only for Rust binaries."
    )


def load_manifest(path: str | Path) -> PackageManifest:
    p = Path(path)
    if not p.exists():
        raise ManifestError(f"Manifest not found: {p}")
    try:
        data = tomllib.loads(p.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ManifestError(f"Invalid TOML in {p}: {exc}") from exc

    package = data.get("package")
    if not isinstance(package, dict):
        raise ManifestError("The Rust project must have at least one package in it.")
    name = _string(package, "name")
    version = _string(package, "version")
    if not name or not version:
        raise ManifestError(f"{p} must declare [package].name and [package].version")

    return PackageManifest(
        name=name,
        version=version,
        executable=_first_binary(data, name, p.parent),
        description=_string(package, "description"),
        homepage=_string(package, "homepage"),
        license=_string(package, "license") or "unlicensed",
        repository=_string(package, "repository"),
        path=p,
    )


__all__ = ["PackageManifest", "load_manifest"]
