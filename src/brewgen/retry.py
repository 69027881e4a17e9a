"""Backoff for ``gh release view`` when GitHub throttles the caller.

Release lookups are read-only, so repeating one after a rate-limit reply is
harmless. Any other ``gh`` failure (unknown tag, missing repository, bad
credentials) is raised on the first attempt. Artifact downloads never come
through here.

Tuning comes from the environment:
  BREWGEN_RETRY_ATTEMPTS    total tries, default 3
  BREWGEN_RETRY_BASE        first delay in seconds, doubled each try, default 0.5
  BREWGEN_RETRY_MAX_SLEEP   ceiling for a single delay, unset for none
"""

from __future__ import annotations

import os
import random
import re
import subprocess  # nosec B404 - gh release view is invoked by the caller's thunk
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from .logging import get_logger

T = TypeVar("T")

THROTTLE_MARKERS = ("rate limit", "secondary rate", "abuse detection")

# gh relays GitHub's own wait hints on stderr
_SERVER_HINTS = (
    re.compile(r"retry[-\s]after:?\s*(\d+)", re.IGNORECASE),
    re.compile(r"wait\s*(\d+)\s*seconds", re.IGNORECASE),
)
_JITTER = random.SystemRandom()


def _env_number(name: str, default: float | None) -> float | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        get_logger().warning(f"Ignoring non-numeric {name}={raw!r}")
        return default


@dataclass
class RetryConfig:
    attempts: int = field(default_factory=lambda: int(_env_number("BREWGEN_RETRY_ATTEMPTS", 3) or 1))
    base_sleep: float = field(default_factory=lambda: _env_number("BREWGEN_RETRY_BASE", 0.5) or 0.0)
    max_sleep: float | None = field(default_factory=lambda: _env_number("BREWGEN_RETRY_MAX_SLEEP", None))

    def delay(self, attempt: int, output: str) -> float:
        """Seconds to wait before try ``attempt + 1``.

        A server hint wins over the exponential schedule; either is clipped
        to ``max_sleep`` when that is set and non-negative.
        """
        pause = server_hint(output)
        if pause is None:
            pause = self.base_sleep * 2 ** (attempt - 1) + _JITTER.uniform(0, 0.25)
        if self.max_sleep is not None and self.max_sleep >= 0:
            pause = min(pause, self.max_sleep)
        return pause


def server_hint(output: str) -> float | None:
    for pattern in _SERVER_HINTS:
        match = pattern.search(output or "")
        if match and int(match.group(1)) > 0:
            return float(match.group(1))
    return None


def is_throttled(output: str) -> bool:
    low = output.lower()
    return any(marker in low for marker in THROTTLE_MARKERS)


def gh_output(exc: subprocess.CalledProcessError) -> str:
    """stderr then stdout of a failed ``gh`` call, as text."""
    return "\n".join(part for part in (exc.stderr, exc.output) if isinstance(part, str) and part)


def run_with_retries(fn: Callable[[], T], *, cfg: RetryConfig | None = None) -> T:
    cfg = cfg or RetryConfig()
    attempts = max(1, cfg.attempts)
    attempt = 1
    while True:
        try:
            return fn()
        except subprocess.CalledProcessError as exc:
            output = gh_output(exc)
            if attempt >= attempts or not is_throttled(output):
                raise
            pause = cfg.delay(attempt, output)
        get_logger().warning(
            f"gh release view throttled (attempt {attempt}/{attempts}); sleeping {pause:.2f}s"
        )
        time.sleep(pause)
        attempt += 1


__all__ = ["RetryConfig", "gh_output", "is_throttled", "run_with_retries", "server_hint"]
