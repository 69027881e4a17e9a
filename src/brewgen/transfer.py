"""Transfer strategies: get one artifact's bytes into a staging directory.

Two strategies share the ``Transfer`` protocol:

 - ``PlainTransfer`` streams the URL over HTTPS with ``requests``.
 - ``GitHubCliTransfer`` asks the GitHub CLI to download the release asset,
   so private repositories and rate-limited assets work with the caller's
   ``gh auth`` credentials.

Neither strategy retries; a failure is terminal for the fetch that invoked it.
"""

from __future__ import annotations

import re
import shutil
import subprocess  # nosec B404 - required for GitHub CLI invocation
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import requests

from .errors import (
    AuthenticatedFetchError,
    ConfigurationError,
    FetchTimeout,
    TransferError,
)
from .locations import url_basename
from .logging import get_logger

USER_AGENT = "brewgen/0.1.0"
CHUNK_SIZE = 1024 * 1024
HTTP_ERROR_STATUS = 400

RELEASE_URL_PATTERN = re.compile(
    r"^https?://github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+)"
    r"/releases/download/(?P<tag>[^/]+)/(?P<filename>[^/?#]+)$"
)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class Transfer(Protocol):
    def download(self, url: str, dest_dir: Path, timeout: float | None = None) -> None: ...


@dataclass(frozen=True)
class GitHubReleaseRef:
    owner: str
    repo: str
    tag: str
    filename: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_github_release_url(url: str) -> GitHubReleaseRef:
    """Split a release-asset URL into owner, repo, tag and file name.

    Only ``https://github.com/<owner>/<repo>/releases/download/<tag>/<file>``
    is accepted; ``gh release download`` needs all four parts.
    """
    match = RELEASE_URL_PATTERN.match(url.strip())
    if not match:
        raise ConfigurationError(
            f"{url} is not a GitHub release asset URL "
            "(expected https://github.com/<owner>/<repo>/releases/download/<tag>/<file>)"
        )
    return GitHubReleaseRef(
        owner=match.group("owner"),
        repo=match.group("repo"),
        tag=match.group("tag"),
        filename=match.group("filename"),
    )


class PlainTransfer:
    """Anonymous HTTPS download."""

    def __init__(self, session: Any | None = None) -> None:
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    def download(self, url: str, dest_dir: Path, timeout: float | None = None) -> None:
        target = dest_dir / url_basename(url)
        try:
            response = self._session.get(url, stream=True, timeout=timeout)
        except requests.Timeout as exc:
            raise FetchTimeout(url, timeout or 0) from exc
        except requests.RequestException as exc:
            raise TransferError(url, str(exc)) from exc
        with response:
            if response.status_code >= HTTP_ERROR_STATUS:
                raise TransferError(url, f"HTTP {response.status_code}")
            try:
                with target.open("wb") as fh:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
            except requests.RequestException as exc:
                raise TransferError(url, str(exc)) from exc


class GitHubCliTransfer:
    """Download a release asset through ``gh release download``."""

    def __init__(self, gh_command: str = "gh", runner: Runner | None = None) -> None:
        self.gh_command = gh_command
        self._runner: Runner = runner or subprocess.run
        self.logger = get_logger()

    def _executable(self) -> str:
        return shutil.which(self.gh_command) or self.gh_command

    def build_command(self, ref: GitHubReleaseRef, dest_dir: Path) -> list[str]:
        return [
            self._executable(),
            "release",
            "download",
            ref.tag,
            "-R",
            ref.slug,
            "--pattern",
            ref.filename,
            "-D",
            str(dest_dir),
        ]

    def download(self, url: str, dest_dir: Path, timeout: float | None = None) -> None:
        ref = parse_github_release_url(url)
        cmd = self.build_command(ref, dest_dir)
        self.logger.debug("Running " + " ".join(cmd))
        try:
            result = self._runner(  # nosec B603 - arguments are parsed from a validated URL
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise FetchTimeout(url, timeout or 0) from exc
        except OSError as exc:
            raise AuthenticatedFetchError(url, f"could not run {self.gh_command}: {exc}") from exc
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise AuthenticatedFetchError(
                url,
                f"gh exited with status {result.returncode}" + (f": {detail}" if detail else ""),
                returncode=result.returncode,
            )


def build_transfer(
    use_gh: bool, *, gh_command: str = "gh", session: Any | None = None
) -> Transfer:
    if use_gh:
        return GitHubCliTransfer(gh_command=gh_command)
    return PlainTransfer(session=session)


__all__ = [
    "GitHubCliTransfer",
    "GitHubReleaseRef",
    "PlainTransfer",
    "Transfer",
    "build_transfer",
    "parse_github_release_url",
]
