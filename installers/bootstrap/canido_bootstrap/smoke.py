"""Post-install smoke checks that run the installed binary."""

from __future__ import annotations

import re
import subprocess
from pathlib import Path

from canido_core.logging_setup import get_logger

from .errors import SmokeTestError
from .formula import HELP_MARKER


_VERSION_RE = re.compile(r"\b(\d+\.\d+\.\d+(?:[-+][0-9A-Za-z.-]+)?)\b")

log = get_logger("smoke")


def _run(binary_path: Path, flag: str, timeout_s: int) -> str:
    proc = subprocess.run(
        [str(binary_path), flag],
        capture_output=True,
        text=True,
        errors="replace",
        timeout=timeout_s,
        check=False,
    )
    return (proc.stdout or "") + (proc.stderr or "")


def run_smoke_test(binary_path: Path, marker: str = HELP_MARKER, timeout_s: int = 30) -> str:
    """Run ``<binary> --help`` and require ``marker`` in its output.

    The exit code is not checked; the tool needs AWS credentials for real
    work, so only the help text is asserted.
    """
    if not binary_path.is_file():
        raise SmokeTestError(f"{binary_path} is not installed")
    try:
        output = _run(binary_path, "--help", timeout_s)
    except subprocess.TimeoutExpired as exc:
        raise SmokeTestError(f"{binary_path.name} --help timed out after {timeout_s}s") from exc
    except OSError as exc:
        raise SmokeTestError(f"Cannot execute {binary_path}: {exc}") from exc

    if marker not in output:
        raise SmokeTestError(f"{binary_path.name} --help output does not contain {marker!r}")

    log.info(f"smoke test passed for {binary_path}", extra={"event": "smoke_test_passed", "path": str(binary_path)})
    return output


def probe_version(binary_path: Path, timeout_s: int = 10) -> str | None:
    if not binary_path.is_file():
        return None
    try:
        output = _run(binary_path, "--version", timeout_s)
    except (subprocess.TimeoutExpired, OSError):
        return None
    match = _VERSION_RE.search(output)
    return match.group(1) if match else None
