"""Resolve -> fetch -> install orchestration for one release descriptor.

``FormulaRunner`` is the Python rendition of what ``brew install`` does with
a generated formula: pick the asset for the running platform, fetch it into
the shared cache (plain HTTPS or ``gh``), unpack it, install the binary and
its aliases. Each step runs to completion before the next starts.
"""

from __future__ import annotations

import tarfile
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import BrewgenConfig, default_config
from .errors import ArchiveError, ArtifactStorageError
from .fetcher import ArtifactFetcher, CacheEntry, FetchResult
from .install import InstallHost, InstallReport, PrefixInstallHost, install_package, unpack_artifact
from .locations import CacheLayout
from .logging import get_logger
from .platforms import Cpu, OperatingSystem, PlatformResolver, ReleaseAsset, detect_platform
from .release import ReleaseDescriptor
from .transfer import Transfer, build_transfer


@dataclass(frozen=True)
class Resolution:
    os: OperatingSystem
    cpu: Cpu
    triple: str
    asset: ReleaseAsset

    def to_dict(self) -> dict[str, Any]:
        return {
            "os": self.os.value,
            "cpu": self.cpu.value,
            "triple": self.triple,
            "url": self.asset.url,
            "sha256": self.asset.checksum,
        }


class FormulaRunner:
    def __init__(
        self,
        descriptor: ReleaseDescriptor,
        config: BrewgenConfig | None = None,
        *,
        use_gh: bool | None = None,
        transfer: Transfer | None = None,
        platform: tuple[OperatingSystem, Cpu] | None = None,
    ) -> None:
        self.descriptor = descriptor
        self.config = config or default_config()
        self.use_gh = self.config.use_gh_strategy if use_gh is None else use_gh
        self.resolver = PlatformResolver(descriptor.assets, self.config.alias_table)
        self._transfer = transfer
        self._platform = platform
        self.logger = get_logger()

    @property
    def platform(self) -> tuple[OperatingSystem, Cpu]:
        if self._platform is None:
            self._platform = detect_platform()
        return self._platform

    @property
    def transfer(self) -> Transfer:
        if self._transfer is None:
            self._transfer = build_transfer(self.use_gh, gh_command=self.config.gh_command)
        return self._transfer

    def resolve(self) -> Resolution:
        os_name, cpu = self.platform
        asset = self.resolver.select_asset(os_name, cpu)
        return Resolution(
            os=os_name,
            cpu=cpu,
            triple=self.resolver.target_triple(os_name, cpu),
            asset=asset,
        )

    def layout_for(self, asset: ReleaseAsset) -> CacheLayout:
        return CacheLayout(
            cache_root=self.config.cache_root,
            work_root=self.config.downloads_work_root,
            name=self.descriptor.package,
            version=self.descriptor.version,
            url=asset.url,
        )

    def fetcher_for(self, asset: ReleaseAsset) -> ArtifactFetcher:
        return ArtifactFetcher(
            url=asset.url,
            locations=self.layout_for(asset),
            transfer=self.transfer,
            checksum=asset.checksum,
        )

    def fetch(self, timeout: float | None = None) -> FetchResult:
        """Resolve the platform and fetch its asset; failures come back tagged."""
        resolution = self.resolve()
        deadline = timeout if timeout is not None else self.config.fetch_timeout
        return self.fetcher_for(resolution.asset).attempt(timeout=deadline)

    def install(
        self,
        prefix: Path | None = None,
        *,
        host: InstallHost | None = None,
        timeout: float | None = None,
    ) -> InstallReport:
        if host is None:
            if prefix is None:
                raise ValueError("install needs either a prefix or an InstallHost")
            host = PrefixInstallHost(prefix, self.descriptor.package)
        resolution = self.resolve()
        entry: CacheEntry = self.fetch(timeout).unwrap()
        try:
            with tempfile.TemporaryDirectory(prefix="brewgen-stage-") as tmp:
                try:
                    staging = unpack_artifact(
                        entry.symlink_location, Path(tmp), bare_name=self.descriptor.executable
                    )
                except (tarfile.TarError, zipfile.BadZipFile) as exc:
                    raise ArchiveError(entry.url, str(exc)) from exc
                report = install_package(
                    staging,
                    self.descriptor.executable,
                    self.resolver,
                    resolution.os,
                    resolution.cpu,
                    host,
                )
        except OSError as exc:
            raise ArtifactStorageError(entry.url, str(exc)) from exc
        self.logger.log_operation(
            "install_complete",
            package=self.descriptor.package,
            version=self.descriptor.version,
            triple=report.triple,
            aliases=len(report.aliases),
        )
        return report


__all__ = ["FormulaRunner", "Resolution"]
