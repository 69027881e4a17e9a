from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

from .platforms import DEFAULT_ALIAS_TABLE, BinaryAliasTable

CONFIG_DEFAULT = "brewgen.config.yaml"
DEFAULT_CACHE_ROOT = Path.home() / ".cache" / "brewgen"


class ConfigError(RuntimeError):
    pass


@dataclass
class BrewgenConfig:
    source_file: Path | None = None
    # Formula rendering
    output_dir: Path = Path(".")
    use_gh_strategy: bool = False
    write_descriptor: bool = False
    alias_table: BinaryAliasTable = field(default_factory=lambda: DEFAULT_ALIAS_TABLE)
    # Download cache
    cache_root: Path = DEFAULT_CACHE_ROOT
    work_root: Path | None = None
    # Transfers
    gh_command: str = "gh"
    fetch_timeout: float | None = None
    github_api_url: str = "https://api.github.com"
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    # Environment authentication configuration
    env_auth_load_dotenv: bool = True
    env_auth_dotenv_path: str | None = None

    @property
    def downloads_work_root(self) -> Path:
        return self.work_root or self.cache_root / "work"


def _resolve_env_var(value: Any) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith("$"):
        return os.getenv(value[1:], value)
    return value


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {}) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    return cast(dict[str, Any], value)


def _optional_float(value: Any, name: str) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


def default_config() -> BrewgenConfig:
    cfg = BrewgenConfig()
    _apply_env_overrides(cfg)
    return cfg


def _apply_env_overrides(cfg: BrewgenConfig) -> None:
    cache_env = os.environ.get("BREWGEN_CACHE", "").strip()
    if cache_env:
        cfg.cache_root = Path(cache_env).expanduser()
    gh_env = os.environ.get("BREWGEN_GH", "").strip()
    if gh_env:
        cfg.gh_command = gh_env


def load_config(path: str | Path) -> BrewgenConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Configuration file not found: {p}")
    try:
        raw = cast(dict[str, Any], yaml.safe_load(p.read_text(encoding="utf-8")) or {})
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {p}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {p} must contain a mapping")
    formula = _section(raw, "formula")
    cache = _section(raw, "cache")
    transfer = _section(raw, "transfer")
    logging_config = _section(raw, "logging")
    env_auth = _section(raw, "environment")

    try:
        alias_table = BinaryAliasTable.from_mapping(_section(raw, "aliases"))
    except RuntimeError as exc:
        raise ConfigError(str(exc)) from exc

    base = p.parent
    cache_root = _resolve_env_var(cache.get("root"))
    work_root = _resolve_env_var(cache.get("work_dir"))

    cfg = BrewgenConfig(
        source_file=p,
        output_dir=base / formula.get("output_dir", "."),
        use_gh_strategy=formula.get("strategy", "plain") == "gh",
        write_descriptor=bool(formula.get("write_descriptor", False)),
        alias_table=alias_table,
        cache_root=Path(cache_root).expanduser() if cache_root else DEFAULT_CACHE_ROOT,
        work_root=Path(work_root).expanduser() if work_root else None,
        gh_command=str(_resolve_env_var(transfer.get("gh_command", "gh"))),
        fetch_timeout=_optional_float(transfer.get("timeout"), "transfer.timeout"),
        github_api_url=str(transfer.get("github_api_url", "https://api.github.com")),
        logging_json_enabled=bool(logging_config.get("json_enabled", False)),
        logging_level=str(logging_config.get("level", "INFO")),
        env_auth_load_dotenv=bool(env_auth.get("load_dotenv", True)),
        env_auth_dotenv_path=env_auth.get("dotenv_path"),
    )
    _apply_env_overrides(cfg)
    return cfg
