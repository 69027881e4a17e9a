"""Pytest configuration for brewgen tests.

Puts the in-repo ``src`` directory on ``sys.path`` so the package imports
without an editable install, and provides shared fixtures for fake ``gh``
runs and release assets.
"""

from __future__ import annotations

import hashlib
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import brewgen.logging as brewgen_logging  # noqa: E402
from brewgen.platforms import Cpu, OperatingSystem, ReleaseAsset  # noqa: E402

ARTIFACT_BYTES = b"pretend tarball bytes\n"
ARTIFACT_SHA256 = hashlib.sha256(ARTIFACT_BYTES).hexdigest()

E2E_URL = "https://github.com/acme/tool/releases/download/v1.0/tool-aarch64-apple-darwin.tar.gz"


class FakeGh:
    """Stands in for ``subprocess.run`` when ``gh release download`` is invoked.

    ``files`` maps names to bytes written into the ``-D`` directory on each
    call; ``returncode`` and ``stderr`` shape the completed process.
    """

    def __init__(
        self,
        files: dict[str, bytes] | None = None,
        returncode: int = 0,
        stderr: str = "",
        raise_exc: BaseException | None = None,
    ) -> None:
        self.files = files if files is not None else {}
        self.returncode = returncode
        self.stderr = stderr
        self.raise_exc = raise_exc
        self.calls: list[list[str]] = []
        self.kwargs: list[dict[str, Any]] = []

    def __call__(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.calls.append(list(cmd))
        self.kwargs.append(kwargs)
        if self.raise_exc is not None:
            raise self.raise_exc
        dest = Path(cmd[cmd.index("-D") + 1])
        if self.returncode == 0:
            for name, payload in self.files.items():
                (dest / name).write_bytes(payload)
        return subprocess.CompletedProcess(cmd, self.returncode, stdout="", stderr=self.stderr)


@pytest.fixture
def fake_gh() -> Callable[..., FakeGh]:
    return FakeGh


@pytest.fixture
def mac_arm_asset() -> ReleaseAsset:
    return ReleaseAsset(
        os=OperatingSystem.MACOS,
        cpu=Cpu.ARM64,
        url=E2E_URL,
        checksum="abc123" + "0" * 58,
    )


@pytest.fixture
def all_assets() -> list[ReleaseAsset]:
    base = "https://github.com/acme/tool/releases/download/v1.0"
    return [
        ReleaseAsset(OperatingSystem.MACOS, Cpu.ARM64, f"{base}/tool-aarch64-apple-darwin.tar.gz", "a" * 64),
        ReleaseAsset(OperatingSystem.MACOS, Cpu.X86_64, f"{base}/tool-x86_64-apple-darwin.tar.gz", "b" * 64),
        ReleaseAsset(
            OperatingSystem.LINUX, Cpu.X86_64, f"{base}/tool-x86_64-unknown-linux-gnu.tar.gz", "c" * 64
        ),
    ]


@pytest.fixture(autouse=True)
def _reset_global_logger(monkeypatch):
    """Each test gets a logger bound to its own captured stdout."""
    monkeypatch.setattr(brewgen_logging, "_GLOBAL", None)
