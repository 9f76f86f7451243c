"""Download, verify, extract, and install a formula's release binary."""

from __future__ import annotations

import hashlib
import http.client
import os
import platform
import ssl
import tarfile
import tempfile
import urllib.error
import urllib.request
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from canido_core.logging_setup import get_logger

from .errors import ChecksumMismatch, DownloadError, ExtractionError, InstallWriteError
from .formula import Formula, InstallTarget, ReleaseArtifact, is_placeholder_checksum
from .resolver import PlatformTarget, resolve_artifact

try:
    import certifi
except ImportError:  # pragma: no cover - fallback when optional dependency unavailable
    certifi = None


ProgressCallback = Callable[[str], None]

USER_AGENT = "canido-install/0.1 (+https://github.com/YOUR_USERNAME/canido)"
DEFAULT_DOWNLOAD_TIMEOUT_S = 180

log = get_logger("bootstrap")


def _build_ssl_context() -> ssl.SSLContext:
    """Create TLS context for release downloads with explicit CA handling."""
    if os.environ.get("CANIDO_ALLOW_INSECURE_TLS", "").strip() == "1":
        return ssl._create_unverified_context()

    ca_bundle = os.environ.get("CANIDO_CA_BUNDLE", "").strip()
    if ca_bundle:
        return ssl.create_default_context(cafile=ca_bundle)

    if certifi is not None:
        return ssl.create_default_context(cafile=certifi.where())

    return ssl.create_default_context()


def _urlopen(url: str, timeout: int, accept: str = "*/*"):
    request = urllib.request.Request(
        url,
        headers={
            "User-Agent": USER_AGENT,
            "Accept": accept,
        },
    )
    return urllib.request.urlopen(request, timeout=timeout, context=_build_ssl_context())


def download_file(url: str, dest: Path, timeout_s: int = DEFAULT_DOWNLOAD_TIMEOUT_S) -> Path:
    try:
        with _urlopen(url, timeout=timeout_s) as response:
            data = response.read()
    except urllib.error.HTTPError as exc:
        raise DownloadError(f"HTTP {exc.code} fetching {url}") from exc
    except urllib.error.URLError as exc:
        raise DownloadError(f"Cannot reach {url}: {exc.reason}") from exc
    except ssl.SSLError as exc:
        raise DownloadError(f"TLS setup for {url} failed: {exc}") from exc
    except (OSError, http.client.HTTPException) as exc:
        # Socket timeouts and an unreadable CANIDO_CA_BUNDLE land here too.
        raise DownloadError(f"Download of {url} failed: {exc}") from exc

    try:
        dest.write_bytes(data)
    except OSError as exc:
        raise DownloadError(f"Cannot stage download at {dest}: {exc}") from exc
    return dest


def parse_checksums(path: Path) -> dict[str, str]:
    """Read a ``sha256sum``-style file into ``{filename: digest}``."""
    out: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        parts = line.strip().split()
        if len(parts) >= 2:
            out[parts[1].lstrip("*")] = parts[0]
    return out


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def verify_checksum(path: Path, expected: str) -> bool:
    return sha256_file(path).lower() == expected.strip().lower()


def _pick_member(members: list[tarfile.TarInfo], binary_name: str) -> tarfile.TarInfo | None:
    candidates = [m for m in members if m.isfile() and Path(m.name).name == binary_name]
    if not candidates:
        return None
    return min(candidates, key=lambda m: (len(Path(m.name).parts), m.name))


def extract_binary(archive: Path, binary_name: str, dest_dir: Path) -> Path:
    """Copy the named binary out of a gzip tarball into ``dest_dir``.

    Only the member's bytes are read; archive paths never reach the
    filesystem.
    """
    try:
        with tarfile.open(archive, "r:gz") as tar:
            member = _pick_member(tar.getmembers(), binary_name)
            if member is None:
                raise ExtractionError(f"{archive.name} does not contain a '{binary_name}' file")
            fh = tar.extractfile(member)
            if fh is None:
                raise ExtractionError(f"Cannot read '{member.name}' from {archive.name}")
            with fh:
                data = fh.read()
    except (tarfile.TarError, EOFError, zlib.error, OSError) as exc:
        raise ExtractionError(f"Malformed archive {archive.name}: {exc}") from exc

    out = dest_dir / binary_name
    try:
        out.write_bytes(data)
    except OSError as exc:
        raise ExtractionError(f"Cannot stage {binary_name} in {dest_dir}: {exc}") from exc
    return out


def install_binary(source: Path, target: InstallTarget) -> Path:
    """Atomically place ``source`` at ``target.path`` with mode 0755."""
    final = target.path
    tmp_name: str | None = None
    try:
        target.destination_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.binary_name}-", dir=target.destination_dir)
        with os.fdopen(fd, "wb") as out, source.open("rb") as src:
            for chunk in iter(lambda: src.read(1024 * 1024), b""):
                out.write(chunk)
        os.chmod(tmp_name, 0o755)
        os.replace(tmp_name, final)
        tmp_name = None
    except OSError as exc:
        raise InstallWriteError(f"Cannot install {target.binary_name} into {target.destination_dir}: {exc}") from exc
    finally:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
    return final


@dataclass(frozen=True)
class InstallResult:
    formula: str
    version: str
    target: PlatformTarget
    artifact: ReleaseArtifact
    binary_path: Path
    sha256: str


def install_formula(
    formula: Formula,
    destination_dir: Path,
    system: str | None = None,
    machine: str | None = None,
    sha256_override: str | None = None,
    timeout_s: int = DEFAULT_DOWNLOAD_TIMEOUT_S,
    progress: ProgressCallback | None = None,
) -> InstallResult:
    """Resolve, download, verify, extract, and install ``formula``'s binary.

    Platform and checksum problems are detected before anything is written.
    The destination file only changes once the archive has been verified.
    """
    progress = progress or (lambda _msg: None)
    system = system if system is not None else platform.system()
    machine = machine if machine is not None else platform.machine()

    progress("Resolving release artifact")
    target, artifact = resolve_artifact(formula, system, machine)
    log.info(
        f"resolved {formula.name} {formula.version} for {target.os_name}/{target.arch}: {artifact.url}",
        extra={"event": "artifact_resolved", "formula": formula.name, "triple": artifact.triple, "url": artifact.url},
    )

    expected = (sha256_override or artifact.sha256).strip()
    if is_placeholder_checksum(expected):
        raise ChecksumMismatch(
            f"No valid sha256 recorded for {artifact.triple} (got {expected!r}); pass a checksum to continue",
            expected=expected,
        )

    with tempfile.TemporaryDirectory(prefix="canido-install-") as tmp:
        staging = Path(tmp)
        archive = staging / artifact.filename

        progress(f"Downloading {artifact.filename}")
        download_file(artifact.url, archive, timeout_s=timeout_s)
        log.info(f"downloaded {artifact.url}", extra={"event": "download_complete", "url": artifact.url})

        progress("Verifying checksum")
        actual = sha256_file(archive)
        if actual.lower() != expected.lower():
            raise ChecksumMismatch(
                f"Checksum mismatch for {artifact.filename}: expected {expected}, got {actual}",
                expected=expected,
                actual=actual,
            )
        log.info(f"checksum verified {actual}", extra={"event": "checksum_verified", "sha256": actual})

        progress(f"Extracting {formula.binary_name}")
        extracted_dir = staging / "extracted"
        extracted_dir.mkdir()
        binary = extract_binary(archive, formula.binary_name, extracted_dir)

        progress(f"Installing into {destination_dir}")
        installed = install_binary(binary, InstallTarget(formula.binary_name, destination_dir))

    log.info(f"installed {installed}", extra={"event": "binary_installed", "path": str(installed)})
    progress("Install complete")
    return InstallResult(
        formula=formula.name,
        version=formula.version,
        target=target,
        artifact=artifact,
        binary_path=installed,
        sha256=actual,
    )
