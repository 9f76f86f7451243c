from __future__ import annotations

import json

import pytest

import canido_bootstrap.cli as cli
from canido_core.updates import UpdateCheckResult


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda **_kwargs: None)


def test_resolve_prints_artifact(tmp_path, capsys) -> None:
    code = cli.main(["--config", str(tmp_path / "c.json"), "resolve", "--os", "Linux", "--arch", "x86_64"])
    out = json.loads(capsys.readouterr().out)

    assert code == 0
    assert out["url"].endswith("/v0.1.0/canido-x86_64-unknown-linux-gnu.tar.gz")
    assert out["target"]["triple"] == "x86_64-unknown-linux-gnu"
    assert out["checksum_placeholder"] is True


def test_resolve_with_repo_override(tmp_path, capsys) -> None:
    code = cli.main(
        [
            "--config", str(tmp_path / "c.json"),
            "--formula", "iam-policy-viewer",
            "resolve", "--os", "Darwin", "--arch", "arm64", "--repo", "acme/iam-policy-viewer",
        ]
    )
    out = json.loads(capsys.readouterr().out)

    assert code == 0
    assert out["url"] == (
        "https://github.com/acme/iam-policy-viewer/releases/download/v0.1.0/"
        "iam-policy-viewer-aarch64-apple-darwin.tar.gz"
    )


def test_unsupported_platform_exit_code(tmp_path, capsys) -> None:
    code = cli.main(["--config", str(tmp_path / "c.json"), "resolve", "--os", "Windows", "--arch", "AMD64"])
    out = json.loads(capsys.readouterr().out)

    assert code == 2
    assert out["error"] == "UnsupportedPlatform"


def test_saved_repo_only_applies_to_saved_formula(tmp_path, capsys) -> None:
    config = tmp_path / "c.json"
    config.write_text(json.dumps({"install": {"formula": "canido", "repo": "acme/canido"}}), encoding="utf-8")

    assert cli.main(["--config", str(config), "resolve", "--os", "Linux", "--arch", "x86_64"]) == 0
    canido = json.loads(capsys.readouterr().out)
    code = cli.main(
        ["--config", str(config), "--formula", "iam-policy-viewer", "resolve", "--os", "Linux", "--arch", "x86_64"]
    )
    viewer = json.loads(capsys.readouterr().out)

    assert code == 0
    assert "/acme/canido/releases/" in canido["url"]
    assert viewer["url"].startswith("https://github.com/YOUR_USERNAME/iam-policy-viewer/releases/")


def test_formula_file_ignores_saved_repo_and_keeps_mirrors(tmp_path, capsys) -> None:
    config = tmp_path / "c.json"
    config.write_text(json.dumps({"install": {"repo": "acme/canido"}}), encoding="utf-8")
    triples = [
        "aarch64-apple-darwin",
        "x86_64-apple-darwin",
        "aarch64-unknown-linux-gnu",
        "x86_64-unknown-linux-gnu",
    ]
    mirror = "https://mirror.example/tools/canido-linux-amd64.tar.gz"
    formula_file = tmp_path / "canido.json"
    formula_file.write_text(
        json.dumps(
            {
                "name": "canido",
                "repo": "internal/canido",
                "sha256": {t: "e" * 64 for t in triples},
                "urls": {"x86_64-unknown-linux-gnu": mirror},
            }
        ),
        encoding="utf-8",
    )
    base = ["--config", str(config), "--formula-file", str(formula_file), "resolve"]

    assert cli.main(base + ["--os", "Linux", "--arch", "x86_64"]) == 0
    assert json.loads(capsys.readouterr().out)["url"] == mirror
    assert cli.main(base + ["--os", "Linux", "--arch", "arm64"]) == 0
    assert "/internal/canido/releases/" in json.loads(capsys.readouterr().out)["url"]
    assert cli.main(base + ["--os", "Linux", "--arch", "x86_64", "--repo", "fork/canido"]) == 0
    assert json.loads(capsys.readouterr().out)["url"] == mirror


def test_formulas_lists_builtins(tmp_path, capsys) -> None:
    assert cli.main(["--config", str(tmp_path / "c.json"), "formulas"]) == 0
    names = [f["name"] for f in json.loads(capsys.readouterr().out)]
    assert names == ["canido", "iam-policy-viewer"]


def test_updates_check_persists_etag(monkeypatch, tmp_path, capsys) -> None:
    seen: dict[str, str] = {}

    class FakeUpdateService:
        def __init__(self, repo: str) -> None:
            seen["repo"] = repo

        def check(self, current_version, channel="stable", etag=None, timeout_s=30):
            seen["current_version"] = current_version
            return UpdateCheckResult(
                checked_at_utc="2026-01-01T00:00:00+00:00",
                repo=seen["repo"],
                channel=channel,
                current_version=current_version,
                update_available=True,
                latest_version="0.2.0",
                release_name="v0.2.0",
                download_url="https://example/release",
                etag='"etag-1"',
            )

    monkeypatch.setattr(cli, "UpdateService", FakeUpdateService)
    monkeypatch.setenv("CANIDO_INSTALL_DIR", str(tmp_path / "bin"))
    config = tmp_path / "c.json"

    code = cli.main(["--config", str(config), "updates", "check"])
    out = json.loads(capsys.readouterr().out)

    assert code == 0
    assert out["update_available"] is True
    assert out["installed"] is False
    assert seen == {"repo": "YOUR_USERNAME/canido", "current_version": "0.1.0"}
    saved = json.loads(config.read_text(encoding="utf-8"))
    assert saved["updates"]["etag"] == '"etag-1"'
    assert saved["updates"]["last_check_utc"]
