"""Turn GitHub release assets (or a local ``dist/`` directory) into
``ReleaseAsset`` declarations with OS, CPU and SHA-256 filled in."""

from __future__ import annotations

import hashlib
import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import requests

from .errors import TransferError
from .locations import url_basename
from .platforms import Cpu, OperatingSystem, ReleaseAsset

logger = logging.getLogger(__name__)

HEX_DIGEST = re.compile(r"^[0-9a-fA-F]{64}$")
TARBALL_SUFFIX = ".tar.gz"


class AssetSkipped(ValueError):
    """A release asset cannot be declared in a formula."""


def extract_os(name: str) -> OperatingSystem | None:
    low = name.lower()
    # linux first: "mac" also occurs inside ordinary package names
    if "linux" in low:
        return OperatingSystem.LINUX
    if "apple" in low or "mac" in low or "darwin" in low:
        return OperatingSystem.MACOS
    if "windows" in low or low.endswith(".exe"):
        return OperatingSystem.WINDOWS
    return None


def extract_cpu(name: str) -> Cpu | None:
    low = name.lower()
    if "intel" in low or "x86_64" in low or "amd64" in low:
        return Cpu.X86_64
    if "aarch" in low or "arm" in low:
        return Cpu.ARM64
    return None


def parse_digest_text(text: str, filename: str = "") -> str | None:
    """Extract a SHA-256 hex digest from the usual checksum file layouts.

    Accepts a bare digest, ``sha256:<hex>``, ``<hex>  <filename>`` (shasum)
    and ``SHA256 (<file>) = <hex>`` (BSD).
    """
    body = text.strip()
    candidates = [body]
    if body.startswith("sha256:"):
        candidates.append(body[len("sha256:"):])
    name = Path(filename).name
    for line in body.splitlines():
        parts = line.split()
        if len(parts) >= 2 and (not name or parts[-1].lstrip("*") == name):
            candidates.append(parts[0])
    if " = " in body:
        candidates.append(body.rsplit(" = ", 1)[1])
    for candidate in candidates:
        candidate = candidate.strip()
        if HEX_DIGEST.match(candidate):
            return candidate.lower()
    return None


def _hash_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _hash_url(url: str, session: Any | None) -> str:
    client = session or requests.Session()
    digest = hashlib.sha256()
    try:
        with client.get(url, stream=True, timeout=180) as response:
            if response.status_code >= 400:
                raise TransferError(url, f"HTTP {response.status_code}")
            for chunk in response.iter_content(chunk_size=1024 * 1024):
                digest.update(chunk)
    except requests.RequestException as exc:
        raise TransferError(url, str(exc)) from exc
    return digest.hexdigest()


def find_digest(filename: str | Path, url: str, session: Any | None = None) -> str:
    """Find the SHA-256 for an asset, cheapest source first.

    1. a ``<filename>.sha256`` file next to the asset
    2. the asset itself, if present locally
    3. downloading ``url`` and hashing the payload
    """
    path = Path(filename)
    digest_path = path.with_name(path.name + ".sha256")
    if digest_path.is_file():
        parsed = parse_digest_text(digest_path.read_text(encoding="utf-8"), path.name)
        if parsed:
            return parsed
        logger.debug("ignoring unparsable checksum file %s", digest_path)
    if path.is_file():
        return _hash_file(path)
    return _hash_url(url, session)


def _classify(name: str, url: str, digest: str) -> ReleaseAsset:
    os_name = extract_os(name)
    cpu = extract_cpu(name)
    if os_name is None or cpu is None:
        raise AssetSkipped(f"cannot tell the platform of {name}")
    return ReleaseAsset(os=os_name, cpu=cpu, url=url, checksum=digest)


def asset_from_release(entry: dict[str, Any], session: Any | None = None) -> ReleaseAsset:
    """Convert one GitHub API release-asset payload."""
    name = entry.get("name")
    if not isinstance(name, str) or not name:
        raise AssetSkipped(f"asset {entry.get('id')!r} has an empty name")
    if not name.endswith(TARBALL_SUFFIX):
        raise AssetSkipped(f"asset {name} is not a tarball")
    url = entry.get("browser_download_url") or entry.get("url")
    if not isinstance(url, str) or not url:
        raise AssetSkipped(f"asset {name} doesn't have a download url")

    digest: str | None = None
    raw_digest = entry.get("digest")
    if isinstance(raw_digest, str) and ":" in raw_digest:
        algo, _, value = raw_digest.partition(":")
        if algo.lower() == "sha256" and HEX_DIGEST.match(value):
            digest = value.lower()
    if digest is None:
        try:
            digest = find_digest(name, url, session=session)
        except TransferError as exc:
            raise AssetSkipped(
                f"Skipping asset {name} because we cannot calculate a digest for it."
            ) from exc
    return _classify(name, url, digest)


def collect_release_assets(
    entries: Iterable[dict[str, Any]], session: Any | None = None
) -> list[ReleaseAsset]:
    assets: list[ReleaseAsset] = []
    for entry in entries:
        try:
            assets.append(asset_from_release(entry, session=session))
        except AssetSkipped as exc:
            logger.info("%s", exc)
    return assets


def release_asset_url(owner: str, repo: str, version: str, filename: str) -> str:
    return f"https://github.com/{owner}/{repo}/releases/download/v{version}/{filename}"


def collect_local_assets(
    dist_dir: Path, owner: str, repo: str, version: str, session: Any | None = None
) -> list[ReleaseAsset]:
    """Declare assets for the ``.gz`` files in ``dist_dir`` without API access."""
    assets: list[ReleaseAsset] = []
    if not dist_dir.is_dir():
        return assets
    for path in sorted(dist_dir.iterdir()):
        if path.is_dir() or path.suffix.lower() != ".gz":
            continue
        url = release_asset_url(owner, repo, version, path.name)
        try:
            digest = find_digest(path, url, session=session)
            assets.append(_classify(url_basename(url), url, digest))
        except (AssetSkipped, TransferError) as exc:
            logger.info("Skipping %s: %s", path.name, exc)
    return assets


__all__ = [
    "AssetSkipped",
    "asset_from_release",
    "collect_local_assets",
    "collect_release_assets",
    "extract_cpu",
    "extract_os",
    "find_digest",
    "parse_digest_text",
    "release_asset_url",
]
