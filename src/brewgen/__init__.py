"""brewgen - Homebrew formulas and fetch/install logic for GitHub release binaries.

High-level public API:

from brewgen import FormulaRunner, load_descriptor

runner = FormulaRunner(load_descriptor("tool.release.json"))
print(runner.resolve().asset.url)
entry = runner.fetch().unwrap()
runner.install(Path("/opt/tool"))

Formula generation lives in :mod:`brewgen.formula`; the CLI delegates to
these modules.
"""

from __future__ import annotations

from .core import FormulaRunner, Resolution
from .fetcher import ArtifactFetcher, CacheEntry, FetchResult
from .platforms import BinaryAliasTable, Cpu, OperatingSystem, PlatformResolver, ReleaseAsset
from .release import ReleaseDescriptor, load_descriptor

__version__ = "0.1.0"

__all__ = [
    "ArtifactFetcher",
    "BinaryAliasTable",
    "CacheEntry",
    "Cpu",
    "FetchResult",
    "FormulaRunner",
    "OperatingSystem",
    "PlatformResolver",
    "ReleaseAsset",
    "ReleaseDescriptor",
    "Resolution",
    "load_descriptor",
    "__version__",
]
