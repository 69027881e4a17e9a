"""Render Homebrew formulas for prebuilt release binaries.

The formula declares one ``url``/``sha256`` pair per OS/CPU, installs the
matching binary, creates the aliases from ``BINARY_ALIASES`` and moves
leftover files into ``pkgshare``. The gh flavour also embeds a
``GitHubCliDownloadStrategy`` so ``brew`` fetches private release assets
through the user's ``gh`` session.
"""

from __future__ import annotations

import re
from pathlib import Path

from .errors import ConfigurationError
from .logging import get_logger
from .platforms import (
    DEFAULT_ALIAS_TABLE,
    BinaryAliasTable,
    Cpu,
    OperatingSystem,
    ReleaseAsset,
)
from .release import ReleaseDescriptor

# Homebrew only has predicates for these; Windows assets are not declarable.
RUBY_OS = {OperatingSystem.MACOS: "mac", OperatingSystem.LINUX: "linux"}
RUBY_CPU = {Cpu.ARM64: "arm", Cpu.X86_64: "intel"}

GH_STRATEGY_CLASS = r'''require "download_strategy"
require "tmpdir"

class GitHubCliDownloadStrategy < CurlDownloadStrategy
  RELEASE_URL = %r{^https://github\.com/(?<owner>[^/]+)/(?<repo>[^/]+)/releases/download/(?<tag>[^/]+)/(?<file>[^/?#]+)$}

  def initialize(url, name, version, **meta)
    super
    match_data = RELEASE_URL.match(@url)
    raise CurlDownloadStrategyError, @url unless match_data

    @owner = match_data[:owner]
    @repo = match_data[:repo]
    @tag = match_data[:tag]
    @filename = match_data[:file]
  end

  def fetch(timeout: nil)
    ohai "Downloading #{url}"
    if cached_location.exist?
      puts "Already downloaded: #{cached_location}"
    else
      temporary_path.dirname.mkpath
      staging = Pathname.new(Dir.mktmpdir("#{temporary_path.basename}.", temporary_path.dirname))
      begin
        system_command!("gh", args: [
          "release", "download", @tag,
          "-R", "#{@owner}/#{@repo}",
          "--pattern", @filename,
          "-D", staging.to_s
        ], timeout:, print_stderr: false)
        files = staging.children.select(&:file?)
        raise CurlDownloadStrategyError, url if files.length != 1

        cached_location.dirname.mkpath
        FileUtils.mv files.first, cached_location, force: true
      rescue ErrorDuringExecution
        raise CurlDownloadStrategyError, url
      ensure
        staging.rmtree if staging.exist?
      end
    end

    symlink_location.dirname.mkpath
    FileUtils.ln_s cached_location.relative_path_from(symlink_location.dirname), symlink_location, force: true
  end
end

'''

FORMULA_TEMPLATE = """class {class_name} < Formula
  desc "{description}"
  homepage "{homepage}"
  version "{version}"
  license "{license}"
{url_blocks}

  BINARY_ALIASES = {{
{alias_entries}
  }}.freeze

  def target_triple
    cpu = Hardware::CPU.arm? ? "aarch64" : "x86_64"
    os = OS.mac? ? "apple-darwin" : "unknown-linux-gnu"
    "#{{cpu}}-#{{os}}"
  end

  def install_binary_aliases!
    BINARY_ALIASES[target_triple.to_sym].each do |source, dests|
      dests.each do |dest|
        bin.install_symlink bin/source.to_s => dest
      end
    end
  end

  def install
{install_lines}

    install_binary_aliases!

    doc_files = Dir["README.*", "readme.*", "LICENSE", "LICENSE.*", "CHANGELOG.*"]
    leftover_contents = Dir["*"] - doc_files
    pkgshare.install(*leftover_contents) unless leftover_contents.empty?
  end
end
"""


def formula_class_name(package: str) -> str:
    """Homebrew's class naming: ``my-tool`` -> ``MyTool``, ``foo@2`` -> ``FooAT2``."""
    name = package.replace("@", "AT").replace("+", "x")
    parts = [p for p in re.split(r"[^A-Za-z0-9]+", name) if p]
    if not parts:
        raise ConfigurationError(f"Cannot derive a formula class name from {package!r}")
    return "".join(p[0].upper() + p[1:] for p in parts)


def _ruby_str(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("#{", "\\#{")


def _ruby_list(values: list[str]) -> str:
    return "[" + ", ".join(f'"{_ruby_str(v)}"' for v in values) + "]"


def _predicate(asset: ReleaseAsset) -> str:
    return f"OS.{RUBY_OS[asset.os]}? && Hardware::CPU.{RUBY_CPU[asset.cpu]}?"


def declarable_assets(assets: tuple[ReleaseAsset, ...] | list[ReleaseAsset]) -> list[ReleaseAsset]:
    logger = get_logger()
    kept: list[ReleaseAsset] = []
    for asset in assets:
        if asset.os not in RUBY_OS:
            logger.warning(f"Skipping {asset.url}: Homebrew cannot target {asset.os.value}")
            continue
        kept.append(asset)
    return kept


def _url_blocks(assets: list[ReleaseAsset], use_gh_strategy: bool) -> str:
    using = ", using: GitHubCliDownloadStrategy" if use_gh_strategy else ""
    blocks = []
    for asset in assets:
        blocks.append(
            f"\n  if {_predicate(asset)}\n"
            f'    url "{_ruby_str(asset.url)}"{using}\n'
            f'    sha256 "{_ruby_str(asset.checksum)}"\n'
            "  end"
        )
    return "".join(blocks)


def _alias_entries(table: BinaryAliasTable) -> str:
    width = max((len(t) for t in table.triples()), default=0) + 3
    lines = []
    for triple, aliases in table.items():
        key = f'"{triple}":'.ljust(width)
        if aliases:
            inner = ", ".join(
                f'"{_ruby_str(src)}" => {_ruby_list(sorted(dests))}'
                for src, dests in aliases.items()
            )
            lines.append(f"    {key} {{ {inner} }},")
        else:
            lines.append(f"    {key} {{}},")
    return "\n".join(lines)


def _install_lines(assets: list[ReleaseAsset], executable: str) -> str:
    exe = _ruby_str(executable)
    return "\n".join(f'    bin.install "{exe}" if {_predicate(a)}' for a in assets)


def render_formula(
    descriptor: ReleaseDescriptor,
    *,
    use_gh_strategy: bool = False,
    alias_table: BinaryAliasTable = DEFAULT_ALIAS_TABLE,
) -> str:
    assets = declarable_assets(descriptor.assets)
    body = FORMULA_TEMPLATE.format(
        class_name=formula_class_name(descriptor.package),
        description=_ruby_str(descriptor.description),
        homepage=_ruby_str(descriptor.homepage),
        version=_ruby_str(descriptor.version),
        license=_ruby_str(descriptor.license),
        url_blocks=_url_blocks(assets, use_gh_strategy),
        alias_entries=_alias_entries(alias_table),
        install_lines=_install_lines(assets, descriptor.executable),
    )
    if use_gh_strategy:
        return GH_STRATEGY_CLASS + body
    return body


def write_formula(
    descriptor: ReleaseDescriptor,
    output_dir: Path,
    *,
    use_gh_strategy: bool = False,
    alias_table: BinaryAliasTable = DEFAULT_ALIAS_TABLE,
) -> Path:
    rendered = render_formula(descriptor, use_gh_strategy=use_gh_strategy, alias_table=alias_table)
    if not rendered.strip():
        raise ConfigurationError("Rendered formula is empty")
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{descriptor.executable}.rb"
    path.write_text(rendered, encoding="utf-8")
    get_logger().log_operation("formula_written", path=str(path), assets=len(descriptor.assets))
    return path


__all__ = [
    "FORMULA_TEMPLATE",
    "GH_STRATEGY_CLASS",
    "declarable_assets",
    "formula_class_name",
    "render_formula",
    "write_formula",
]
