"""Download locations handed to the artifact fetcher.

The fetcher only needs three paths; anything that can supply them satisfies
``ArtifactLocations``. ``CacheLayout`` mirrors Homebrew's own layout:

    <cache>/downloads/<sha256(url)>--<basename>    shared, content-addressed
    <work>/<sha256(url)>.incomplete.<random>/      one staging directory per fetch
    <work>/<name>--<version><ext>                  symlink consumers read
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import urlparse

# Longest first so ``.tar.gz`` wins over ``.gz``
_COMPOUND_EXTENSIONS = (".tar.gz", ".tar.xz", ".tar.bz2", ".tar.zst")


class ArtifactLocations(Protocol):
    @property
    def cached_location(self) -> Path: ...

    @property
    def temporary_path(self) -> Path: ...

    @property
    def symlink_location(self) -> Path: ...


def url_basename(url: str) -> str:
    name = PurePosixPath(urlparse(url).path).name
    return name or "download"


def archive_extension(filename: str) -> str:
    low = filename.lower()
    for ext in _COMPOUND_EXTENSIONS:
        if low.endswith(ext):
            return filename[-len(ext):]
    return PurePosixPath(filename).suffix


def _safe_filename(text: str) -> str:
    return "".join(c if c.isalnum() or c in "-._+@" else "_" for c in text)


@dataclass(frozen=True)
class CacheLayout:
    cache_root: Path
    work_root: Path
    name: str
    version: str
    url: str

    @property
    def url_digest(self) -> str:
        return hashlib.sha256(self.url.encode("utf-8")).hexdigest()

    @property
    def cached_location(self) -> Path:
        basename = _safe_filename(url_basename(self.url))
        return self.cache_root / "downloads" / f"{self.url_digest}--{basename}"

    @property
    def temporary_path(self) -> Path:
        return self.work_root / f"{self.url_digest}.incomplete"

    @property
    def symlink_location(self) -> Path:
        ext = archive_extension(url_basename(self.url))
        return self.work_root / _safe_filename(f"{self.name}--{self.version}{ext}")


__all__ = ["ArtifactLocations", "CacheLayout", "archive_extension", "url_basename"]
