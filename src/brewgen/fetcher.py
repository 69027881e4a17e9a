"""Fetch an artifact into the shared download cache.

Per invocation the fetcher walks a small state machine::

    START -> CACHE_HIT ----------------------------+
          -> DOWNLOADING -> PUBLISHING -> SYMLINKING -> DONE

DOWNLOADING stages into a directory private to this invocation (a unique
sibling of ``temporary_path``) and hands off to a ``Transfer``. Exactly one
file must come back; it is checksum-verified (when a checksum is declared)
and moved into ``cached_location`` with ``os.replace``. Concurrent fetchers
of the same artifact are not locked against each other: each downloads into
its own staging directory, both verify, and the last rename wins with
identical bytes. The staging directory is removed however the fetch ends.
SYMLINKING always re-points ``symlink_location`` at the cache entry, so a
repeated fetch is a cheap cache hit that still repairs the link.

Local filesystem failures surface as ``ArtifactStorageError`` naming the URL.
"""

from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import ArtifactStorageError, BrewgenError, IntegrityError, MissingArtifactError
from .locations import ArtifactLocations
from .logging import get_logger
from .transfer import Transfer


class FetchState(str, Enum):
    START = "start"
    CACHE_HIT = "cache_hit"
    DOWNLOADING = "downloading"
    PUBLISHING = "publishing"
    SYMLINKING = "symlinking"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class CacheEntry:
    url: str
    cached_location: Path
    symlink_location: Path
    cache_hit: bool


@dataclass(frozen=True)
class FetchResult:
    """Either a populated cache entry or the failure that stopped the fetch."""

    entry: CacheEntry | None = None
    error: BrewgenError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.entry is not None

    def unwrap(self) -> CacheEntry:
        if self.error is not None:
            raise self.error
        if self.entry is None:  # pragma: no cover - constructor misuse
            raise RuntimeError("FetchResult carries neither an entry nor an error")
        return self.entry


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


class ArtifactFetcher:
    def __init__(
        self,
        url: str,
        locations: ArtifactLocations,
        transfer: Transfer,
        checksum: str | None = None,
    ) -> None:
        self.url = url
        self.locations = locations
        self.transfer = transfer
        self.checksum = checksum.strip().lower() if checksum else None
        self.state = FetchState.START
        self.logger = get_logger()

    def attempt(self, timeout: float | None = None) -> FetchResult:
        """Run the fetch and report the outcome as a ``FetchResult``."""
        try:
            return FetchResult(entry=self._run_checked(timeout))
        except BrewgenError as exc:
            self.state = FetchState.FAILED
            self.logger.log_error("fetch failed", error=str(exc), url=self.url)
            return FetchResult(error=exc)

    def fetch(self, timeout: float | None = None) -> CacheEntry:
        return self.attempt(timeout).unwrap()

    # --- states ----------------------------------------------------------
    def _run_checked(self, timeout: float | None) -> CacheEntry:
        try:
            return self._run(timeout)
        except OSError as exc:
            raise ArtifactStorageError(self.url, str(exc)) from exc

    def _run(self, timeout: float | None) -> CacheEntry:
        self.state = FetchState.START
        cached = self.locations.cached_location
        self.logger.log_operation("fetch_start", url=self.url)
        if cached.exists():
            self.state = FetchState.CACHE_HIT
            self.logger.log_operation("cache_hit", url=self.url, path=str(cached))
            cache_hit = True
        else:
            with self.logger.timed_operation("download", url=self.url):
                staging = self._make_staging_dir()
                try:
                    self._publish(self._download(staging, timeout))
                finally:
                    shutil.rmtree(staging, ignore_errors=True)
            cache_hit = False
        self._symlink()
        self.state = FetchState.DONE
        return CacheEntry(
            url=self.url,
            cached_location=cached,
            symlink_location=self.locations.symlink_location,
            cache_hit=cache_hit,
        )

    def _make_staging_dir(self) -> Path:
        base = self.locations.temporary_path
        base.parent.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=f"{base.name}.", dir=base.parent))

    def _download(self, staging: Path, timeout: float | None) -> Path:
        self.state = FetchState.DOWNLOADING
        self.transfer.download(self.url, staging, timeout=timeout)
        files = [p for p in staging.iterdir() if p.is_file()]
        if len(files) != 1:
            raise MissingArtifactError(self.url, [p.name for p in staging.iterdir()])
        self._verify(files[0])
        return files[0]

    def _verify(self, staged: Path) -> None:
        if not self.checksum:
            return
        actual = sha256_file(staged)
        if actual != self.checksum:
            raise IntegrityError(self.url, self.checksum, actual)

    def _publish(self, staged: Path) -> None:
        self.state = FetchState.PUBLISHING
        cached = self.locations.cached_location
        cached.parent.mkdir(parents=True, exist_ok=True)
        # os.replace is atomic within a filesystem; fall back to a same-dir copy
        # plus replace when the staging area lives on another device.
        try:
            os.replace(staged, cached)
        except OSError:
            partial = cached.with_name(cached.name + f".{os.getpid()}.part")
            try:
                shutil.copyfile(staged, partial)
                os.replace(partial, cached)
            except OSError:
                partial.unlink(missing_ok=True)
                raise
        self.logger.log_operation("artifact_published", url=self.url, path=str(cached))

    def _symlink(self) -> None:
        self.state = FetchState.SYMLINKING
        link = self.locations.symlink_location
        link.parent.mkdir(parents=True, exist_ok=True)
        target = os.path.relpath(self.locations.cached_location, link.parent)
        # build the link beside the final name, then rename over it
        pending = link.with_name(f".{link.name}.{os.getpid()}.{id(self):x}")
        pending.unlink(missing_ok=True)
        pending.symlink_to(target)
        try:
            os.replace(pending, link)
        except OSError:
            pending.unlink(missing_ok=True)
            raise


__all__ = ["ArtifactFetcher", "CacheEntry", "FetchResult", "FetchState", "sha256_file"]
