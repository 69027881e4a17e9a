"""brewgen CLI.

Subcommands:
  render   -> generate a Homebrew formula from a Cargo manifest and its release
  resolve  -> show which release asset the running platform would install
  fetch    -> download the platform's asset into the shared cache
  install  -> fetch, unpack and install into a prefix (binary, aliases, share)
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

from brewgen.config import CONFIG_DEFAULT, BrewgenConfig, ConfigError, default_config, load_config
from brewgen.core import FormulaRunner
from brewgen.env_auth import EnvAuthConfig, create_env_auth_manager
from brewgen.errors import AuthenticatedFetchError, BrewgenError, GitHubAPIError, classify_error
from brewgen.formula import write_formula
from brewgen.github_releases import GhCliReleasesClient, GitHubReleasesClient, ReleaseSource, build_descriptor
from brewgen.logging import configure_logging
from brewgen.manifest import load_manifest
from brewgen.platforms import Cpu, OperatingSystem
from brewgen.release import load_descriptor, write_descriptor

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _add_platform_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("descriptor", help="Release descriptor (JSON or YAML) written by 'render --descriptor'")
    p.add_argument("--os", dest="os_name", help="Override detected OS (macos, linux, windows)")
    p.add_argument("--cpu", help="Override detected CPU (arm64, x86_64)")


def _add_fetch_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-g",
        "--gh-cli-strategy",
        dest="use_gh",
        action="store_true",
        default=None,
        help="Download through 'gh release download' (private repositories)",
    )
    p.add_argument("--timeout", type=float, help="Abort the download after this many seconds")
    p.add_argument("--cache-dir", type=Path, help="Override the shared download cache root")


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(
        prog="brewgen", description="Homebrew formulas for prebuilt GitHub release binaries"
    )
    p.add_argument("--config", default=CONFIG_DEFAULT, help="Path to brewgen.config.yaml")
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Only log warnings and errors (env: BREWGEN_QUIET=1)",
    )
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    pr = sub.add_parser("render", help="Generate a formula for the first binary in a Cargo manifest")
    pr.add_argument("manifest", nargs="?", default="./Cargo.toml", help="Path to Cargo.toml")
    pr.add_argument(
        "-g",
        "--gh-cli-strategy",
        dest="use_gh",
        action="store_true",
        default=None,
        help="Use the gh CLI download strategy; useful for private tap repos",
    )
    pr.add_argument(
        "-n",
        "--no-perms",
        action="store_true",
        help="No repo-reading API permissions: use the local dist/ directory only",
    )
    pr.add_argument("--tag", help="Release tag (default: latest release)")
    pr.add_argument("--output-dir", type=Path, help="Directory for <executable>.rb")
    pr.add_argument(
        "--descriptor",
        action="store_true",
        default=None,
        help="Also write <executable>.release.json for resolve/fetch/install",
    )

    prs = sub.add_parser("resolve", help="Show the asset and target triple for this platform")
    _add_platform_args(prs)

    pf = sub.add_parser("fetch", help="Download this platform's asset into the cache")
    _add_platform_args(pf)
    _add_fetch_args(pf)

    pi = sub.add_parser("install", help="Fetch and install into a prefix")
    _add_platform_args(pi)
    _add_fetch_args(pi)
    pi.add_argument("--prefix", type=Path, required=True, help="Installation prefix (keg)")
    return p


def _load_cfg(args: argparse.Namespace) -> BrewgenConfig:
    path = Path(args.config)
    if path.exists():
        return load_config(path)
    if args.config != CONFIG_DEFAULT:
        raise ConfigError(f"Configuration file not found: {path}")
    return default_config()


def _platform_override(args: argparse.Namespace) -> tuple[OperatingSystem, Cpu] | None:
    os_name = getattr(args, "os_name", None)
    cpu = getattr(args, "cpu", None)
    if not os_name and not cpu:
        return None
    if not (os_name and cpu):
        raise ConfigError("--os and --cpu must be given together")
    return OperatingSystem.parse(os_name), Cpu.parse(cpu)


def _runner(cfg: BrewgenConfig, args: argparse.Namespace) -> FormulaRunner:
    if getattr(args, "cache_dir", None):
        cfg.cache_root = args.cache_dir
    use_gh = getattr(args, "use_gh", None)
    if use_gh:
        auth = create_env_auth_manager(
            EnvAuthConfig(load_dotenv=cfg.env_auth_load_dotenv, dotenv_path=cfg.env_auth_dotenv_path)
        )
        auth.configure_github_cli()
    return FormulaRunner(
        load_descriptor(args.descriptor),
        cfg,
        use_gh=use_gh,
        platform=_platform_override(args),
    )


def _release_source(cfg: BrewgenConfig, args: argparse.Namespace) -> ReleaseSource | None:
    if args.no_perms:
        return None
    auth = create_env_auth_manager(
        EnvAuthConfig(load_dotenv=cfg.env_auth_load_dotenv, dotenv_path=cfg.env_auth_dotenv_path)
    )
    token = auth.get_github_token()
    if token:
        return GitHubReleasesClient(token=token, base_url=cfg.github_api_url)
    return GhCliReleasesClient(gh_command=cfg.gh_command)


def _print_auth_hints(cfg: BrewgenConfig) -> None:
    auth = create_env_auth_manager(
        EnvAuthConfig(load_dotenv=cfg.env_auth_load_dotenv, dotenv_path=cfg.env_auth_dotenv_path)
    )
    for hint in auth.get_authentication_recommendations():
        print(f"  hint: {hint}", file=sys.stderr)


def _cmd_render(cfg: BrewgenConfig, args: argparse.Namespace) -> int:
    manifest = load_manifest(args.manifest)
    descriptor = build_descriptor(manifest, _release_source(cfg, args), tag=args.tag)
    output_dir = args.output_dir or cfg.output_dir
    use_gh = cfg.use_gh_strategy if args.use_gh is None else args.use_gh
    path = write_formula(
        descriptor, output_dir, use_gh_strategy=use_gh, alias_table=cfg.alias_table
    )
    want_descriptor = cfg.write_descriptor if args.descriptor is None else args.descriptor
    if want_descriptor:
        write_descriptor(descriptor, output_dir / f"{descriptor.executable}.release.json")
    print(path)
    return 0


def _cmd_resolve(cfg: BrewgenConfig, args: argparse.Namespace) -> int:
    resolution = _runner(cfg, args).resolve()
    print(json.dumps(resolution.to_dict(), indent=2))
    return 0


def _cmd_fetch(cfg: BrewgenConfig, args: argparse.Namespace) -> int:
    entry = _runner(cfg, args).fetch(args.timeout).unwrap()
    print(
        json.dumps(
            {
                "url": entry.url,
                "cached_location": str(entry.cached_location),
                "symlink_location": str(entry.symlink_location),
                "cache_hit": entry.cache_hit,
            },
            indent=2,
        )
    )
    return 0


def _cmd_install(cfg: BrewgenConfig, args: argparse.Namespace) -> int:
    report = _runner(cfg, args).install(args.prefix, timeout=args.timeout)
    print(
        json.dumps(
            {
                "triple": report.triple,
                "binary": str(report.binary),
                "aliases": [str(p) for p in report.aliases],
                "docs": [str(p) for p in report.docs],
                "pkgshare": [str(p) for p in report.pkgshare],
            },
            indent=2,
        )
    )
    return 0


_HANDLERS = {
    "render": _cmd_render,
    "resolve": _cmd_resolve,
    "fetch": _cmd_fetch,
    "install": _cmd_install,
}


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.quiet and os.environ.get("BREWGEN_QUIET") == "1":
        args.quiet = True
    try:
        cfg = _load_cfg(args)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    logger = configure_logging(
        json_logging=cfg.logging_json_enabled,
        level="WARNING" if args.quiet else cfg.logging_level,
    )
    handler = _HANDLERS.get(args.cmd)
    if handler is None:  # pragma: no cover - argparse enforces valid choices
        parser.print_help()
        return 1
    try:
        return handler(cfg, args)
    except (BrewgenError, ConfigError) as exc:
        info = classify_error(exc)
        logger.log_error(f"{args.cmd} failed", error=info.message, category=info.category)
        print(f"Error: {info.message}", file=sys.stderr)
        if isinstance(exc, (AuthenticatedFetchError, GitHubAPIError)):
            _print_auth_hints(cfg)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
