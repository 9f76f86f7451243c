"""Platform normalization and release artifact lookup."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .formula import Formula, ReleaseArtifact


# (os, arch) -> Rust-style target triple used in release archive names.
ARCH_TRIPLES: dict[tuple[str, str], str] = {
    ("macos", "arm64"): "aarch64-apple-darwin",
    ("macos", "x86_64"): "x86_64-apple-darwin",
    ("linux", "arm64"): "aarch64-unknown-linux-gnu",
    ("linux", "x86_64"): "x86_64-unknown-linux-gnu",
}

SUPPORTED_PLATFORMS: tuple[tuple[str, str], ...] = tuple(ARCH_TRIPLES)


@dataclass(frozen=True)
class PlatformTarget:
    os_name: str
    arch: str

    @property
    def supported(self) -> bool:
        return (self.os_name, self.arch) in ARCH_TRIPLES

    @property
    def triple(self) -> str | None:
        return ARCH_TRIPLES.get((self.os_name, self.arch))


def _normalize_os(system: str) -> str:
    s = system.strip().lower()
    if s.startswith("win"):
        return "windows"
    if s.startswith("darwin") or s.startswith("mac"):
        return "macos"
    if s.startswith("linux"):
        return "linux"
    return s


def _normalize_arch(machine: str) -> str:
    m = machine.strip().lower()
    if m in ("x86_64", "amd64", "x64", "intel"):
        return "x86_64"
    if m in ("aarch64", "arm64", "armv8"):
        return "arm64"
    return m


def resolve_target(system: str, machine: str) -> PlatformTarget:
    return PlatformTarget(os_name=_normalize_os(system), arch=_normalize_arch(machine))


def resolve_artifact(formula: Formula, system: str, machine: str) -> tuple[PlatformTarget, ReleaseArtifact]:
    target = resolve_target(system, machine)
    return target, formula.artifact_for(target.os_name, target.arch)
