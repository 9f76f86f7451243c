"""Release update checks against the GitHub Releases API."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


GITHUB_API_BASE = "https://api.github.com"


@dataclass(frozen=True)
class UpdateCheckResult:
    checked_at_utc: str
    repo: str
    channel: str
    current_version: str
    update_available: bool
    latest_version: str | None
    release_name: str | None
    download_url: str | None
    etag: str | None
    not_modified: bool = False


def extract_version(tag_name: str | None) -> str | None:
    if not tag_name:
        return None
    return tag_name[1:] if tag_name.startswith("v") else tag_name


def version_tuple(version: str) -> tuple[int, ...]:
    out = []
    for p in version.replace("-", ".").split("."):
        try:
            out.append(int(p))
        except ValueError:
            out.append(0)
    return tuple(out)


def is_newer(current_version: str, latest_version: str | None) -> bool:
    if not latest_version or current_version == latest_version:
        return False
    return version_tuple(latest_version) > version_tuple(current_version)


class UpdateService:
    def __init__(self, repo: str, api_base: str = GITHUB_API_BASE) -> None:
        self.repo = repo
        self.api_base = api_base.rstrip("/")

    @staticmethod
    def _normalize_channel(channel: str) -> str:
        return "beta" if channel == "beta" else "stable"

    def _get(self, url: str, etag: str | None, timeout_s: int) -> tuple[Any, str | None] | None:
        """Fetch JSON; ``None`` means the server answered 304 Not Modified."""
        req = urllib.request.Request(url, headers={"Accept": "application/vnd.github+json"})
        if etag:
            req.add_header("If-None-Match", etag)
        try:
            with urllib.request.urlopen(req, timeout=timeout_s) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
                return payload, resp.headers.get("ETag")
        except urllib.error.HTTPError as exc:
            if exc.code == 304:
                return None
            raise

    def check(
        self,
        current_version: str,
        channel: str = "stable",
        etag: str | None = None,
        timeout_s: int = 30,
    ) -> UpdateCheckResult:
        channel_norm = self._normalize_channel(channel)
        checked = datetime.now(timezone.utc).isoformat()

        if channel_norm == "stable":
            url = f"{self.api_base}/repos/{self.repo}/releases/latest"
        else:
            url = f"{self.api_base}/repos/{self.repo}/releases"

        fetched = self._get(url, etag, timeout_s)
        if fetched is None:
            return UpdateCheckResult(
                checked_at_utc=checked,
                repo=self.repo,
                channel=channel_norm,
                current_version=current_version,
                update_available=False,
                latest_version=None,
                release_name=None,
                download_url=None,
                etag=etag,
                not_modified=True,
            )

        payload, resp_etag = fetched
        release: dict[str, Any] | None
        if channel_norm == "stable":
            release = payload
        else:
            # Beta channel picks the newest prerelease in the listing.
            release = next((rel for rel in payload if rel.get("prerelease")), None)

        latest = extract_version(release.get("tag_name") if release else None)
        return UpdateCheckResult(
            checked_at_utc=checked,
            repo=self.repo,
            channel=channel_norm,
            current_version=current_version,
            update_available=is_newer(current_version, latest),
            latest_version=latest,
            release_name=(release.get("name") if release else None),
            download_url=(release.get("html_url") if release else None),
            etag=resp_etag,
            not_modified=False,
        )
