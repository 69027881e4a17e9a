from __future__ import annotations

import pytest

from brewgen.errors import ManifestError
from brewgen.manifest import PackageManifest, load_manifest

CARGO = """
[package]
name = "frobber"
version = "1.2.3"
description = "Frobs the widgets"
homepage = "https://example.com/frobber"
license = "MIT"
repository = "https://github.com/acme/frobber.git"

[[bin]]
name = "frob"
path = "src/main.rs"
"""


def _write(tmp_path, text):
    path = tmp_path / "Cargo.toml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_manifest_reads_package_and_first_bin(tmp_path):
    manifest = load_manifest(_write(tmp_path, CARGO))
    assert manifest.name == "frobber"
    assert manifest.version == "1.2.3"
    assert manifest.executable == "frob"
    assert manifest.license == "MIT"
    assert manifest.owner_repo == ("acme", "frobber")


def test_implicit_binary_from_main_rs(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.rs").write_text("fn main() {}\n")
    manifest = load_manifest(_write(tmp_path, '[package]\nname = "tool"\nversion = "0.1.0"\n'))
    assert manifest.executable == "tool"
    assert manifest.license == "unlicensed"


def test_library_crate_is_rejected(tmp_path):
    with pytest.raises(ManifestError, match="Rust libraries"):
        load_manifest(_write(tmp_path, '[package]\nname = "lib"\nversion = "0.1.0"\n'))


def test_unnamed_bin_is_rejected(tmp_path):
    text = '[package]\nname = "tool"\nversion = "0.1.0"\n\n[[bin]]\npath = "src/x.rs"\n'
    with pytest.raises(ManifestError, match="needs a name"):
        load_manifest(_write(tmp_path, text))


def test_workspace_without_package_is_rejected(tmp_path):
    with pytest.raises(ManifestError, match="at least one package"):
        load_manifest(_write(tmp_path, '[workspace]\nmembers = ["a"]\n'))


def test_invalid_toml(tmp_path):
    with pytest.raises(ManifestError, match="Invalid TOML"):
        load_manifest(_write(tmp_path, "[package\n"))


def test_missing_manifest(tmp_path):
    with pytest.raises(ManifestError, match="not found"):
        load_manifest(tmp_path / "Cargo.toml")


@pytest.mark.parametrize(
    ("repository", "expected"),
    [
        ("https://github.com/acme/tool", ("acme", "tool")),
        ("https://github.com/acme/tool/", ("acme", "tool")),
        ("https://github.com/acme/tool.git", ("acme", "tool")),
    ],
)
def test_owner_repo(repository, expected):
    assert PackageManifest("tool", "1.0", "tool", repository=repository).owner_repo == expected


def test_owner_repo_requires_repository():
    with pytest.raises(ManifestError):
        _ = PackageManifest("tool", "1.0", "tool").owner_repo
