"""Error taxonomy & redaction for brewgen.

Every failure in the resolve -> fetch -> publish -> alias pipeline is a
``BrewgenError`` subclass carrying the URL or platform involved, so the CLI
can print one actionable line and exit non-zero.

Public API:
- the exception hierarchy below
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"gho_[A-Za-z0-9]{20,40}"),  # gh CLI OAuth tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
]

_REDACTION_PLACEHOLDER = "<redacted>"


class BrewgenError(RuntimeError):
    """Base class for all brewgen failures."""

    category = "generic"


class ConfigurationError(BrewgenError):
    """A packaging bug: alias table gaps, malformed declarations, bad URLs."""

    category = "configuration"


class UnsupportedPlatform(BrewgenError):
    """No declared release asset matches the running platform."""

    category = "platform"

    def __init__(self, platform: str, declared: list[str] | None = None):
        self.platform = platform
        self.declared = list(declared or [])
        message = f"Unsupported platform {platform}"
        if self.declared:
            message += f"; release assets exist for: {', '.join(self.declared)}"
        else:
            message += "; no release assets are declared"
        super().__init__(message)


class TransferError(BrewgenError):
    """Fetching an artifact failed."""

    category = "transfer"

    def __init__(self, url: str, detail: str = ""):
        self.url = url
        self.detail = redact(detail)
        message = f"Failed to download {url}"
        if self.detail:
            message += f": {self.detail}"
        super().__init__(message)


class AuthenticatedFetchError(TransferError):
    """The ``gh release download`` invocation failed or could not start."""

    category = "transfer.gh"

    def __init__(self, url: str, detail: str = "", returncode: int | None = None):
        self.returncode = returncode
        super().__init__(url, detail)


class FetchTimeout(TransferError):
    """A transfer exceeded its deadline and was aborted."""

    category = "transfer.timeout"

    def __init__(self, url: str, timeout: float):
        self.timeout = timeout
        super().__init__(url, f"timed out after {timeout:g}s")


class MissingArtifactError(BrewgenError):
    """A transfer reported success but did not leave exactly one file."""

    category = "artifact.missing"

    def __init__(self, url: str, found: list[str] | None = None):
        self.url = url
        self.found = list(found or [])
        if self.found:
            detail = f"expected one file, found {len(self.found)}: {', '.join(sorted(self.found))}"
        else:
            detail = "no file was written"
        super().__init__(f"Download of {url} produced no usable artifact ({detail})")


class IntegrityError(BrewgenError):
    """Downloaded bytes do not match the declared SHA-256."""

    category = "artifact.integrity"

    def __init__(self, url: str, expected: str, actual: str):
        self.url = url
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"SHA-256 mismatch for {url}\n  Expected: {expected}\n    Actual: {actual}"
        )


class ArtifactStorageError(BrewgenError):
    """The local filesystem failed while staging, publishing or installing."""

    category = "artifact.storage"

    def __init__(self, url: str, detail: str):
        self.url = url
        self.detail = redact(detail)
        super().__init__(f"Could not store {url}: {self.detail}")


class ArchiveError(BrewgenError):
    """A fetched artifact could not be unpacked."""

    category = "artifact.archive"

    def __init__(self, url: str, detail: str):
        self.url = url
        self.detail = detail
        super().__init__(f"Could not unpack {url}: {detail}")


class ManifestError(BrewgenError):
    """The Cargo manifest cannot describe an installable binary."""

    category = "manifest"


class GitHubAPIError(BrewgenError):
    """Raised when the GitHub REST API or ``gh release view`` fails."""

    category = "github"

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(redact(message))
        self.status = status
        self.response_text = response_text


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Replace GitHub tokens in arbitrary text with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    brewgen errors report their own category; rate limits and network
    hiccups are flagged transient so a caller can decide to retry the whole
    install (the fetcher itself never retries).
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    name = exc.__class__.__name__
    if isinstance(exc, FetchTimeout):
        return ErrorInfo(exc.category, redact(msg), name, transient=True, details={"url": exc.url})
    if "rate limit" in low or "secondary rate" in low:
        return ErrorInfo("github.rate_limit", redact(msg), name, transient=True)
    if isinstance(exc, BrewgenError):
        details: dict[str, Any] | None = None
        url = getattr(exc, "url", None)
        if url:
            details = {"url": url}
        return ErrorInfo(exc.category, redact(msg), name, details=details)
    if any(k in low for k in ("timeout", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", redact(msg), name, transient=True)
    return ErrorInfo("generic", redact(msg), name)


__all__ = [
    "ArchiveError",
    "ArtifactStorageError",
    "AuthenticatedFetchError",
    "BrewgenError",
    "ConfigurationError",
    "ErrorInfo",
    "FetchTimeout",
    "GitHubAPIError",
    "IntegrityError",
    "ManifestError",
    "MissingArtifactError",
    "TransferError",
    "UnsupportedPlatform",
    "classify_error",
    "redact",
]
