from __future__ import annotations

import json

import pytest

from brewgen.errors import ConfigurationError
from brewgen.locations import CacheLayout, archive_extension, url_basename
from brewgen.platforms import Cpu, OperatingSystem
from brewgen.release import ReleaseDescriptor, load_descriptor, write_descriptor

DESCRIPTOR_YAML = """
package: tool
version: "1.0"
executable: tool
assets:
  - os: mac
    cpu: arm
    url: https://github.com/acme/tool/releases/download/v1.0/tool-aarch64-apple-darwin.tar.gz
    sha256: aaaa
  - os: linux
    cpu: x86_64
    url: https://github.com/acme/tool/releases/download/v1.0/tool-x86_64-unknown-linux-gnu.tar.gz
    checksum: bbbb
"""


def test_load_yaml_descriptor(tmp_path):
    path = tmp_path / "tool.release.yaml"
    path.write_text(DESCRIPTOR_YAML, encoding="utf-8")
    descriptor = load_descriptor(path)

    assert descriptor.version == "1.0"
    assert descriptor.license == "unlicensed"
    assert [(a.os, a.cpu) for a in descriptor.assets] == [
        (OperatingSystem.MACOS, Cpu.ARM64),
        (OperatingSystem.LINUX, Cpu.X86_64),
    ]
    assert descriptor.assets[1].checksum == "bbbb"


def test_written_descriptor_loads_back(tmp_path, all_assets):
    descriptor = ReleaseDescriptor("tool", "1.0", "tool", tuple(all_assets), license="MIT")
    path = write_descriptor(descriptor, tmp_path / "out" / "tool.release.json")

    assert json.loads(path.read_text())["assets"][0]["sha256"] == "a" * 64
    assert load_descriptor(path) == descriptor


@pytest.mark.parametrize(
    ("text", "match"),
    [
        ("version: '1'\nexecutable: t\n", "package"),
        ("package: t\nversion: '1'\nexecutable: t\nassets: {}\n", "must be a list"),
        ("package: t\nversion: '1'\nexecutable: t\nassets:\n  - os: mac\n", "cpu, url, sha256"),
        ("package: t\nversion: '1'\nexecutable: t\nassets:\n  - nope\n", "must be a mapping"),
        ("- a\n", "must contain a mapping"),
    ],
)
def test_invalid_descriptor(tmp_path, text, match):
    path = tmp_path / "d.yaml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigurationError, match=match):
        load_descriptor(path)


def test_missing_descriptor(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_descriptor(tmp_path / "nope.json")


def test_cache_layout_paths(tmp_path):
    url = "https://github.com/acme/tool/releases/download/v1.0/tool-x86_64-unknown-linux-gnu.tar.gz"
    layout = CacheLayout(tmp_path / "cache", tmp_path / "work", "tool", "1.0", url)

    assert layout.cached_location.parent == tmp_path / "cache" / "downloads"
    assert layout.cached_location.name == f"{layout.url_digest}--tool-x86_64-unknown-linux-gnu.tar.gz"
    assert layout.temporary_path == tmp_path / "work" / f"{layout.url_digest}.incomplete"
    assert layout.symlink_location == tmp_path / "work" / "tool--1.0.tar.gz"


def test_cache_location_differs_per_url(tmp_path):
    a = CacheLayout(tmp_path, tmp_path, "tool", "1.0", "https://example.com/a/tool.tar.gz")
    b = CacheLayout(tmp_path, tmp_path, "tool", "1.0", "https://example.com/b/tool.tar.gz")
    assert a.cached_location != b.cached_location


@pytest.mark.parametrize(
    ("name", "ext"),
    [("tool.tar.gz", ".tar.gz"), ("tool.TAR.XZ", ".TAR.XZ"), ("tool.zip", ".zip"), ("tool", "")],
)
def test_archive_extension(name, ext):
    assert archive_extension(name) == ext


def test_url_basename_ignores_query():
    assert url_basename("https://example.com/dl/tool.tar.gz?token=x") == "tool.tar.gz"
    assert url_basename("https://example.com/") == "download"
