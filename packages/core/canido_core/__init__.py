"""Core services for installer settings, logging, and update checks."""

from .config import (
    AppConfig,
    config_path,
    config_root,
    destination_dir,
    load_config,
    save_config,
    touch_update_check,
)
from .logging_setup import configure_logging, get_logger
from .updates import UpdateCheckResult, UpdateService, is_newer

__all__ = [
    "AppConfig",
    "UpdateCheckResult",
    "UpdateService",
    "config_path",
    "config_root",
    "configure_logging",
    "destination_dir",
    "get_logger",
    "is_newer",
    "load_config",
    "save_config",
    "touch_update_check",
]
