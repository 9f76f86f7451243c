"""Formula definitions: per-platform release artifacts for a prebuilt binary.

A formula is static configuration read once per install. Its artifact table
is keyed by ``(os, arch)`` and must cover every supported platform exactly
once.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping

from .errors import FormulaError, UnsupportedPlatform
from .resolver import ARCH_TRIPLES, SUPPORTED_PLATFORMS


HELP_MARKER = "View IAM policies"
DEFAULT_HOST = "github.com"
DEFAULT_VERSION = "0.1.0"

_SHA256_RE = re.compile(r"^[0-9a-fA-F]{64}$")
_REPO_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_TRIPLE_TO_PLATFORM = {triple: key for key, triple in ARCH_TRIPLES.items()}


@dataclass(frozen=True)
class ReleaseArtifact:
    os_name: str
    arch: str
    url: str
    sha256: str

    @property
    def triple(self) -> str:
        return ARCH_TRIPLES[(self.os_name, self.arch)]

    @property
    def filename(self) -> str:
        return self.url.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class InstallTarget:
    binary_name: str
    destination_dir: Path

    @property
    def path(self) -> Path:
        return self.destination_dir / self.binary_name


@dataclass(frozen=True)
class Formula:
    name: str
    desc: str
    homepage: str
    version: str
    license: str
    repo: str
    host: str
    binary_name: str
    help_marker: str
    artifacts: tuple[ReleaseArtifact, ...]

    def __post_init__(self) -> None:
        keys = [(a.os_name, a.arch) for a in self.artifacts]
        if len(keys) != len(set(keys)):
            raise FormulaError(f"Formula {self.name!r} lists a platform more than once")
        missing = set(SUPPORTED_PLATFORMS) - set(keys)
        extra = set(keys) - set(SUPPORTED_PLATFORMS)
        if missing or extra:
            raise FormulaError(
                f"Formula {self.name!r} must cover exactly {sorted(SUPPORTED_PLATFORMS)}; "
                f"missing={sorted(missing)} unexpected={sorted(extra)}"
            )

    def artifact_for(self, os_name: str, arch: str) -> ReleaseArtifact:
        table = {(a.os_name, a.arch): a for a in self.artifacts}
        try:
            return table[(os_name, arch)]
        except KeyError:
            raise UnsupportedPlatform(os_name, arch) from None

    def with_release_repo(self, repo: str) -> Formula:
        """Point generated release URLs at another ``owner/name``.

        Artifacts whose URL was set explicitly (mirrors, ``file://``) keep it.
        """
        _check_repo(repo)
        artifacts = tuple(
            replace(a, url=release_url(self.host, repo, self.version, a.triple))
            if a.url == release_url(self.host, self.repo, self.version, a.triple)
            else a
            for a in self.artifacts
        )
        return replace(self, repo=repo, artifacts=artifacts)


def _check_repo(repo: str) -> None:
    if not _REPO_RE.match(repo):
        raise FormulaError(f"Repository must look like 'owner/name', got {repo!r}")


def release_url(host: str, repo: str, version: str, triple: str) -> str:
    repo_name = repo.rsplit("/", 1)[-1]
    return f"https://{host}/{repo}/releases/download/v{version}/{repo_name}-{triple}.tar.gz"


def is_placeholder_checksum(value: str | None) -> bool:
    return not value or not _SHA256_RE.match(value.strip())


def placeholder_checksum(os_name: str, arch: str) -> str:
    return f"REPLACE_WITH_ACTUAL_SHA256_FOR_{os_name.upper()}_{arch.upper()}"


def build_formula(
    name: str,
    repo: str,
    checksums: Mapping[str, str],
    *,
    version: str = DEFAULT_VERSION,
    desc: str = "",
    homepage: str | None = None,
    license: str = "MIT",
    host: str = DEFAULT_HOST,
    binary_name: str | None = None,
    help_marker: str = HELP_MARKER,
    urls: Mapping[str, str] | None = None,
) -> Formula:
    """Build a formula whose artifacts follow the GitHub release URL pattern.

    ``checksums`` and ``urls`` are keyed by arch triple. ``urls`` entries
    replace the generated download URL for that triple.
    """
    _check_repo(repo)
    urls = urls or {}
    unknown = (set(checksums) | set(urls)) - set(_TRIPLE_TO_PLATFORM)
    if unknown:
        raise FormulaError(f"Unknown target triples: {sorted(unknown)}")
    bad_urls = sorted(t for t, u in urls.items() if not isinstance(u, str) or not u.strip())
    if bad_urls:
        raise FormulaError(f"Formula {name!r} has empty or non-string urls for {bad_urls}")
    if binary_name is not None and (not isinstance(binary_name, str) or not binary_name.strip()):
        raise FormulaError(f"Formula {name!r} binary must be a non-empty string")

    artifacts = []
    for (os_name, arch), triple in ARCH_TRIPLES.items():
        if not isinstance(checksums.get(triple), str):
            raise FormulaError(f"Formula {name!r} has no sha256 for {triple}")
        artifacts.append(
            ReleaseArtifact(
                os_name=os_name,
                arch=arch,
                url=urls[triple].strip() if triple in urls else release_url(host, repo, version, triple),
                sha256=checksums[triple].strip(),
            )
        )

    return Formula(
        name=name,
        desc=desc,
        homepage=homepage or f"https://{host}/{repo}",
        version=version,
        license=license,
        repo=repo,
        host=host,
        binary_name=binary_name or name,
        help_marker=help_marker,
        artifacts=tuple(artifacts),
    )


def _placeholder_checksums() -> dict[str, str]:
    return {triple: placeholder_checksum(os_name, arch) for (os_name, arch), triple in ARCH_TRIPLES.items()}


CANIDO = build_formula(
    "canido",
    "YOUR_USERNAME/canido",
    _placeholder_checksums(),
    desc="A CLI tool to view IAM policies attached to the current AWS role",
)

IAM_POLICY_VIEWER = build_formula(
    "iam-policy-viewer",
    "YOUR_USERNAME/iam-policy-viewer",
    _placeholder_checksums(),
    desc="A CLI tool to view IAM policies attached to the current AWS role",
)

FORMULAS: dict[str, Formula] = {f.name: f for f in (CANIDO, IAM_POLICY_VIEWER)}


def get_formula(name: str) -> Formula:
    try:
        return FORMULAS[name]
    except KeyError:
        raise FormulaError(f"Unknown formula {name!r}; known: {', '.join(sorted(FORMULAS))}") from None


def _require(raw: dict[str, Any], key: str, kind: type) -> Any:
    value = raw.get(key)
    if not isinstance(value, kind) or not value:
        raise FormulaError(f"Formula file field {key!r} is missing or not a {kind.__name__}")
    return value


def load_formula_file(path: Path) -> Formula:
    """Load a JSON formula definition.

    Required keys are ``name``, ``repo`` and ``sha256`` (triple -> digest).
    ``version``, ``desc``, ``homepage``, ``license``, ``host``, ``binary``,
    ``help_marker`` and ``urls`` are optional.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise FormulaError(f"Cannot read formula file {path}: {exc}") from exc
    except ValueError as exc:
        raise FormulaError(f"Formula file {path} is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise FormulaError(f"Formula file {path} must contain a JSON object")

    urls = raw.get("urls") or {}
    if not isinstance(urls, dict):
        raise FormulaError("Formula file field 'urls' must be an object")

    return build_formula(
        _require(raw, "name", str),
        _require(raw, "repo", str),
        _require(raw, "sha256", dict),
        version=str(raw.get("version") or DEFAULT_VERSION),
        desc=str(raw.get("desc") or ""),
        homepage=raw.get("homepage"),
        license=str(raw.get("license") or "MIT"),
        host=str(raw.get("host") or DEFAULT_HOST),
        binary_name=raw.get("binary"),
        help_marker=str(raw.get("help_marker") or HELP_MARKER),
        urls=urls,
    )
