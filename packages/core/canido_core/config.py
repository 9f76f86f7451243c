"""Persistent installer settings schema and load/save helpers."""

from __future__ import annotations

import json
import os
import platform
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


CONFIG_VERSION = 1


@dataclass
class InstallConfig:
    formula: str = "canido"
    destination_dir: str | None = None
    repo: str | None = None
    run_smoke_test: bool = True


@dataclass
class DownloadConfig:
    timeout_s: int = 180


@dataclass
class VerifyConfig:
    timeout_s: int = 30


@dataclass
class UpdatesConfig:
    channel: str = "stable"
    last_check_utc: str | None = None
    etag: str | None = None


@dataclass
class LoggingConfig:
    keep_log_files: int = 7
    console: bool = False


@dataclass
class AppConfig:
    config_version: int = CONFIG_VERSION
    install: InstallConfig = field(default_factory=InstallConfig)
    download: DownloadConfig = field(default_factory=DownloadConfig)
    verify: VerifyConfig = field(default_factory=VerifyConfig)
    updates: UpdatesConfig = field(default_factory=UpdatesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def config_root() -> Path:
    system = platform.system()
    if system == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        return base / "canido"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "canido"
    return Path.home() / ".config" / "canido"


def config_path() -> Path:
    return config_root() / "config.json"


def default_destination_dir() -> Path:
    return Path.home() / ".local" / "bin"


def destination_dir(cfg: AppConfig) -> Path:
    """Install directory: env override, then config, then ~/.local/bin."""
    override = os.environ.get("CANIDO_INSTALL_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    if cfg.install.destination_dir:
        return Path(cfg.install.destination_dir).expanduser()
    return default_destination_dir()


def _merge(dataclass_type, raw: dict[str, Any]):
    defaults = dataclass_type()  # type: ignore[misc]
    if not isinstance(raw, dict):
        return defaults
    for k, v in raw.items():
        if hasattr(defaults, k):
            setattr(defaults, k, v)
    return defaults


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_bool(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _as_str(value: Any, default: str | None) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _normalize_install(cfg: AppConfig) -> None:
    defaults = InstallConfig()
    cfg.install.formula = _as_str(cfg.install.formula, defaults.formula)
    cfg.install.destination_dir = _as_str(cfg.install.destination_dir, defaults.destination_dir)
    cfg.install.repo = _as_str(cfg.install.repo, defaults.repo)
    cfg.install.run_smoke_test = _as_bool(cfg.install.run_smoke_test, defaults.run_smoke_test)


def _normalize_updates(cfg: AppConfig) -> None:
    if cfg.updates.channel not in ("stable", "beta"):
        cfg.updates.channel = "stable"
    cfg.updates.last_check_utc = _as_str(cfg.updates.last_check_utc, None)
    cfg.updates.etag = _as_str(cfg.updates.etag, None)


def _normalize_timeouts(cfg: AppConfig) -> None:
    download = _as_int(cfg.download.timeout_s, DownloadConfig.timeout_s)
    verify = _as_int(cfg.verify.timeout_s, VerifyConfig.timeout_s)
    cfg.download.timeout_s = max(5, min(3600, download))
    cfg.verify.timeout_s = max(1, min(600, verify))


def _normalize_logging(cfg: AppConfig) -> None:
    cfg.logging.keep_log_files = max(2, _as_int(cfg.logging.keep_log_files, LoggingConfig.keep_log_files))
    cfg.logging.console = _as_bool(cfg.logging.console, LoggingConfig.console)


def load_config(path: Path | None = None) -> AppConfig:
    path = path or config_path()
    if not path.exists():
        return AppConfig()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return AppConfig()
    if not isinstance(raw, dict):
        return AppConfig()

    cfg = AppConfig(
        config_version=_as_int(raw.get("config_version"), CONFIG_VERSION),
        install=_merge(InstallConfig, raw.get("install", {})),
        download=_merge(DownloadConfig, raw.get("download", {})),
        verify=_merge(VerifyConfig, raw.get("verify", {})),
        updates=_merge(UpdatesConfig, raw.get("updates", {})),
        logging=_merge(LoggingConfig, raw.get("logging", {})),
    )

    _normalize_install(cfg)
    _normalize_updates(cfg)
    _normalize_timeouts(cfg)
    _normalize_logging(cfg)
    return cfg


def save_config(cfg: AppConfig, path: Path | None = None) -> Path:
    cfg.config_version = CONFIG_VERSION
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(cfg), indent=2, sort_keys=True), encoding="utf-8")
    return path


def touch_update_check(cfg: AppConfig, etag: str | None = None) -> None:
    cfg.updates.last_check_utc = datetime.now(timezone.utc).isoformat()
    if etag:
        cfg.updates.etag = etag
