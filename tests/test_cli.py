import json
import subprocess

import pytest
from conftest import ARTIFACT_BYTES, ARTIFACT_SHA256, E2E_URL, FakeGh

from brewgen.cli import main

CARGO = """
[package]
name = "tool"
version = "1.0.0"
description = "A tool"
license = "MIT"
repository = "https://github.com/acme/tool"

[[bin]]
name = "tool"
"""


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BREWGEN_CACHE", str(tmp_path / "cache"))
    monkeypatch.delenv("BREWGEN_QUIET", raising=False)
    for name in ("GITHUB_ACCESS_TOKEN", "GITHUB_TOKEN", "GH_TOKEN"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    descriptor = {
        "package": "tool",
        "version": "1.0",
        "executable": "tool",
        "assets": [{"os": "macos", "cpu": "arm64", "url": E2E_URL, "sha256": ARTIFACT_SHA256}],
    }
    (tmp_path / "tool.release.json").write_text(json.dumps(descriptor), encoding="utf-8")
    return tmp_path


def test_resolve_prints_resolution(workspace, capsys):
    rc = main(["--quiet", "resolve", "tool.release.json", "--os", "mac", "--cpu", "arm"])
    assert rc == 0
    data = json.loads(capsys.readouterr().out)
    assert data["triple"] == "aarch64-apple-darwin"
    assert data["url"] == E2E_URL


def test_resolve_unsupported_platform_exits_nonzero(workspace, capsys):
    rc = main(["--quiet", "resolve", "tool.release.json", "--os", "linux", "--cpu", "x86_64"])
    assert rc == 1
    assert "Unsupported platform linux/x86_64" in capsys.readouterr().err


def test_os_without_cpu_is_rejected(workspace, capsys):
    assert main(["resolve", "tool.release.json", "--os", "mac"]) == 1
    assert "--os and --cpu" in capsys.readouterr().err


def test_fetch_with_gh_strategy(workspace, capsys, monkeypatch):
    gh = FakeGh(files={"tool-aarch64-apple-darwin.tar.gz": ARTIFACT_BYTES})
    monkeypatch.setattr(subprocess, "run", gh)

    rc = main(
        ["--quiet", "fetch", "tool.release.json", "--os", "mac", "--cpu", "arm", "-g", "--timeout", "20"]
    )

    assert rc == 0
    data = json.loads(capsys.readouterr().out)
    assert data["cache_hit"] is False
    assert data["cached_location"].startswith(str(workspace / "cache" / "downloads"))
    assert gh.calls[0][1:3] == ["release", "download"]
    assert gh.kwargs[0]["timeout"] == 20


def test_fetch_failure_names_url(workspace, capsys, monkeypatch):
    monkeypatch.setattr(subprocess, "run", FakeGh(returncode=1, stderr="HTTP 404"))
    rc = main(["--quiet", "fetch", "tool.release.json", "--os", "mac", "--cpu", "arm", "-g"])
    assert rc == 1
    assert E2E_URL in capsys.readouterr().err


def test_gh_failure_prints_login_hints(workspace, capsys, monkeypatch):
    monkeypatch.setattr(subprocess, "run", FakeGh(returncode=1, stderr="HTTP 404"))
    rc = main(["--quiet", "fetch", "tool.release.json", "--os", "mac", "--cpu", "arm", "-g"])
    assert rc == 1
    err = capsys.readouterr().err
    assert "hint: Run 'gh auth login'" in err
    assert "GITHUB_TOKEN" in err


def test_gh_failure_with_token_prints_no_hints(workspace, capsys, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_" + "x" * 36)
    monkeypatch.setattr(subprocess, "run", FakeGh(returncode=1, stderr="HTTP 404"))
    rc = main(["--quiet", "fetch", "tool.release.json", "--os", "mac", "--cpu", "arm", "-g"])
    assert rc == 1
    assert "hint:" not in capsys.readouterr().err


def test_non_auth_failure_prints_no_hints(workspace, capsys):
    rc = main(["--quiet", "resolve", "tool.release.json", "--os", "linux", "--cpu", "x86_64"])
    assert rc == 1
    assert "hint:" not in capsys.readouterr().err


def test_render_local_mode(workspace, capsys):
    (workspace / "Cargo.toml").write_text(CARGO, encoding="utf-8")
    dist = workspace / "dist"
    dist.mkdir()
    (dist / "tool-x86_64-unknown-linux-gnu.tar.gz").write_bytes(b"linux build")

    rc = main(["--quiet", "render", "Cargo.toml", "-n", "-g", "--output-dir", "Formula", "--descriptor"])

    assert rc == 0
    formula = workspace / "Formula" / "tool.rb"
    assert capsys.readouterr().out.strip() == "Formula/tool.rb"
    text = formula.read_text(encoding="utf-8")
    assert "using: GitHubCliDownloadStrategy" in text
    assert "releases/download/v1.0.0/tool-x86_64-unknown-linux-gnu.tar.gz" in text
    assert (workspace / "Formula" / "tool.release.json").exists()


def test_render_library_crate_fails(workspace, capsys):
    (workspace / "Cargo.toml").write_text('[package]\nname = "lib"\nversion = "0.1.0"\n')
    assert main(["--quiet", "render", "-n"]) == 1
    assert "Rust libraries" in capsys.readouterr().err


def test_explicit_missing_config_fails(workspace, capsys):
    assert main(["--config", "nope.yaml", "resolve", "tool.release.json"]) == 1
    assert "not found" in capsys.readouterr().err


def test_config_file_sets_strategy(workspace, capsys, monkeypatch):
    (workspace / "brewgen.config.yaml").write_text(
        "formula:\n  strategy: gh\ncache:\n  root: cache-from-config\n", encoding="utf-8"
    )
    monkeypatch.delenv("BREWGEN_CACHE")
    gh = FakeGh(files={"tool-aarch64-apple-darwin.tar.gz": ARTIFACT_BYTES})
    monkeypatch.setattr(subprocess, "run", gh)

    rc = main(["--quiet", "fetch", "tool.release.json", "--os", "mac", "--cpu", "arm"])

    assert rc == 0
    assert len(gh.calls) == 1
    assert "cache-from-config" in json.loads(capsys.readouterr().out)["cached_location"]
