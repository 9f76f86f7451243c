"""Doctor report and support bundle export for installer problems."""

from __future__ import annotations

import json
import os
import platform
import tempfile
import zipfile
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from canido_core.config import AppConfig, config_path, destination_dir
from canido_core.logging_setup import log_dir

from .formula import Formula, is_placeholder_checksum
from .resolver import resolve_target
from .smoke import probe_version


def _on_path(directory: Path) -> bool:
    entries = [Path(p).expanduser() for p in os.environ.get("PATH", "").split(os.pathsep) if p]
    try:
        resolved = directory.resolve()
        return any(e.resolve() == resolved for e in entries)
    except OSError:
        return False


def build_doctor_payload(cfg: AppConfig, formula: Formula) -> dict[str, Any]:
    target = resolve_target(platform.system(), platform.machine())
    dest = destination_dir(cfg)
    binary = dest / formula.binary_name

    artifact: dict[str, Any] | None = None
    if target.supported:
        found = formula.artifact_for(target.os_name, target.arch)
        artifact = {
            "url": found.url,
            "triple": found.triple,
            "sha256": found.sha256,
            "checksum_placeholder": is_placeholder_checksum(found.sha256),
        }

    installed = binary.is_file()
    return {
        "ts_utc": datetime.now(timezone.utc).isoformat(),
        "platform": platform.platform(),
        "python": platform.python_version(),
        "target": {"os": target.os_name, "arch": target.arch, "supported": target.supported},
        "formula": {"name": formula.name, "version": formula.version, "repo": formula.repo},
        "artifact": artifact,
        "destination": {"dir": str(dest), "exists": dest.is_dir(), "on_path": _on_path(dest)},
        "binary": {
            "path": str(binary),
            "installed": installed,
            "executable": installed and os.access(binary, os.X_OK),
            "version": probe_version(binary) if installed else None,
        },
        "config": asdict(cfg),
    }


class DiagnosticsExporter:
    def __init__(self, app_name: str = "canido-install") -> None:
        self.app_name = app_name

    def bundle(self, cfg: AppConfig, doctor_payload: dict[str, Any], output_dir: Path | None = None) -> Path:
        output_base = output_dir or Path(tempfile.gettempdir())
        output_base.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        zip_path = output_base / f"canido-diagnostics-{stamp}.zip"

        logs_root = log_dir()
        with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            manifest = {
                "app": self.app_name,
                "created_utc": datetime.now(timezone.utc).isoformat(),
                "host": platform.platform(),
                "python": platform.python_version(),
                "config_path": str(config_path()),
                "log_dir": str(logs_root),
            }
            zf.writestr("manifest.json", json.dumps(manifest, indent=2, sort_keys=True))
            zf.writestr("doctor.json", json.dumps(doctor_payload, indent=2, sort_keys=True, default=str))
            zf.writestr("config.json", json.dumps(asdict(cfg), indent=2, sort_keys=True))

            for item in sorted(logs_root.glob("*.log*")):
                zf.write(item, arcname=f"logs/{item.name}")

        return zip_path
