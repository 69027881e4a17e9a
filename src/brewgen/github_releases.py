"""Look up release assets on GitHub for formula generation.

``GitHubReleasesClient`` talks to the REST API with ``requests`` and a
token; ``GhCliReleasesClient`` asks ``gh release view`` instead, which works
with whatever ``gh auth login`` session the user already has.
"""

from __future__ import annotations

import json
import shutil
import subprocess  # nosec B404 - subprocess is required for GitHub CLI invocation
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import requests

from .assets import collect_local_assets, collect_release_assets
from .errors import GitHubAPIError
from .logging import get_logger
from .manifest import PackageManifest
from .platforms import ReleaseAsset
from .release import ReleaseDescriptor
from .retry import run_with_retries

DEFAULT_API_URL = "https://api.github.com"
USER_AGENT = "brewgen-rest/0.1.0"
HTTP_ERROR_STATUS = 400


class ReleaseSource(Protocol):
    def release(self, owner: str, repo: str, tag: str | None = None) -> dict[str, Any]: ...


@dataclass
class GitHubReleasesClient:
    """Lightweight REST client for release metadata."""

    token: str | None = None
    base_url: str = DEFAULT_API_URL
    session: Any | None = None
    _session: Any = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()
        if self.token:
            self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    def _get(self, path: str) -> Any:
        url = f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        try:
            response = self._session.request("GET", url, headers=self._session.headers, timeout=30)
        except requests.RequestException as exc:
            raise GitHubAPIError(f"GitHub API GET {url} failed: {exc}") from exc
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GitHub API GET {url} failed with {response.status_code}",
                status=response.status_code,
                response_text=response.text,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubAPIError(f"GitHub API GET {url} returned invalid JSON") from exc

    def release(self, owner: str, repo: str, tag: str | None = None) -> dict[str, Any]:
        if tag:
            path = f"repos/{owner}/{repo}/releases/tags/{tag}"
        else:
            path = f"repos/{owner}/{repo}/releases/latest"
        data = self._get(path)
        if not isinstance(data, dict):
            raise GitHubAPIError(f"Unexpected release payload for {owner}/{repo}")
        return data


class GhCliReleasesClient:
    """Release metadata through ``gh release view --json``."""

    def __init__(self, gh_command: str = "gh") -> None:
        self.gh_command = gh_command

    def build_command(self, owner: str, repo: str, tag: str | None = None) -> list[str]:
        cmd = [shutil.which(self.gh_command) or self.gh_command, "release", "view"]
        if tag:
            cmd.append(tag)
        cmd.extend(["-R", f"{owner}/{repo}", "--json", "tagName,assets"])
        return cmd

    def release(self, owner: str, repo: str, tag: str | None = None) -> dict[str, Any]:
        cmd = self.build_command(owner, repo, tag)
        try:
            out = run_with_retries(
                lambda: subprocess.check_output(  # nosec B603 - command uses controlled arguments
                    cmd, text=True, stderr=subprocess.PIPE
                )
            )
        except subprocess.CalledProcessError as exc:
            raise GitHubAPIError(f"Command failed: {' '.join(cmd)}: {exc.stderr or exc.output}") from exc
        except OSError as exc:
            raise GitHubAPIError(f"Could not run {self.gh_command}: {exc}") from exc
        try:
            data = json.loads(out)
        except json.JSONDecodeError as exc:
            raise GitHubAPIError(f"gh release view returned invalid JSON for {owner}/{repo}") from exc
        if not isinstance(data, dict):
            raise GitHubAPIError(f"Unexpected release payload for {owner}/{repo}")
        # gh reports the browser download URL as "url"
        for asset in data.get("assets") or []:
            if isinstance(asset, dict) and "browser_download_url" not in asset:
                asset["browser_download_url"] = asset.get("url")
        return data


def _assets_from_release(payload: dict[str, Any], session: Any | None) -> list[ReleaseAsset]:
    entries = [a for a in payload.get("assets") or [] if isinstance(a, dict)]
    return collect_release_assets(entries, session=session)


def build_descriptor(
    manifest: PackageManifest,
    source: ReleaseSource | None = None,
    *,
    tag: str | None = None,
    dist_dir: Path | None = None,
    session: Any | None = None,
) -> ReleaseDescriptor:
    """Gather everything a formula needs for ``manifest``'s latest release.

    With ``source`` the release assets come from GitHub; without it the
    ``dist/`` directory next to the manifest is scanned instead.
    """
    logger = get_logger()
    owner, repo = manifest.owner_repo
    if source is not None:
        payload = source.release(owner, repo, tag)
        assets = _assets_from_release(payload, session)
        logger.log_operation(
            "release_assets_collected", repo=f"{owner}/{repo}", count=len(assets), mode="github"
        )
    else:
        if dist_dir is None:
            base = manifest.path.parent if manifest.path else Path(".")
            dist_dir = base / "dist"
        assets = collect_local_assets(dist_dir, owner, repo, manifest.version, session=session)
        logger.log_operation(
            "release_assets_collected", repo=f"{owner}/{repo}", count=len(assets), mode="local"
        )
    return ReleaseDescriptor(
        package=manifest.name,
        description=manifest.description,
        homepage=manifest.homepage,
        version=manifest.version,
        license=manifest.license,
        executable=manifest.executable,
        assets=tuple(assets),
    )


__all__ = [
    "GhCliReleasesClient",
    "GitHubReleasesClient",
    "ReleaseSource",
    "build_descriptor",
]
