"""Installer failure taxonomy. Every failure is terminal for the install."""

from __future__ import annotations


class InstallError(RuntimeError):
    exit_code = 1


class UnsupportedPlatform(InstallError):
    exit_code = 2

    def __init__(self, os_name: str, arch: str) -> None:
        super().__init__(f"No release artifact for {os_name}/{arch}")
        self.os_name = os_name
        self.arch = arch


class DownloadError(InstallError):
    exit_code = 3


class ChecksumMismatch(InstallError):
    exit_code = 4

    def __init__(self, message: str, expected: str | None = None, actual: str | None = None) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class ExtractionError(InstallError):
    exit_code = 5


class InstallWriteError(InstallError):
    exit_code = 6


class SmokeTestError(InstallError):
    exit_code = 7


class FormulaError(InstallError):
    exit_code = 8
