"""Formula-driven installer for the canido IAM policy viewer binaries."""

from .errors import (
    ChecksumMismatch,
    DownloadError,
    ExtractionError,
    FormulaError,
    InstallError,
    InstallWriteError,
    SmokeTestError,
    UnsupportedPlatform,
)
from .formula import (
    FORMULAS,
    Formula,
    InstallTarget,
    ReleaseArtifact,
    get_formula,
    load_formula_file,
)
from .resolver import PlatformTarget, resolve_artifact, resolve_target
from .service import InstallResult, download_file, install_formula, sha256_file, verify_checksum
from .smoke import probe_version, run_smoke_test

__all__ = [
    "ChecksumMismatch",
    "DownloadError",
    "ExtractionError",
    "FORMULAS",
    "Formula",
    "FormulaError",
    "InstallError",
    "InstallResult",
    "InstallTarget",
    "InstallWriteError",
    "PlatformTarget",
    "ReleaseArtifact",
    "SmokeTestError",
    "UnsupportedPlatform",
    "download_file",
    "get_formula",
    "install_formula",
    "load_formula_file",
    "probe_version",
    "resolve_artifact",
    "resolve_target",
    "run_smoke_test",
    "sha256_file",
    "verify_checksum",
]
