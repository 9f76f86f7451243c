"""CLI entrypoints for installing, checking, and diagnosing canido binaries."""

from __future__ import annotations

import argparse
import json
import platform
import urllib.error
from dataclasses import asdict
from pathlib import Path

from canido_core import UpdateService, destination_dir, load_config, save_config, touch_update_check
from canido_core.config import AppConfig
from canido_core.logging_setup import configure_logging, get_logger

from .diagnostics import DiagnosticsExporter, build_doctor_payload
from .errors import ChecksumMismatch, DownloadError, InstallError
from .formula import FORMULAS, Formula, get_formula, is_placeholder_checksum, load_formula_file
from .resolver import resolve_artifact
from .service import install_formula, parse_checksums
from .smoke import probe_version, run_smoke_test

log = get_logger("cli")


def _print_json(data: object) -> None:
    print(json.dumps(data, indent=2, sort_keys=True, default=str))


def _config_file(args: argparse.Namespace) -> Path | None:
    return Path(args.config).expanduser() if args.config else None


def _formula(args: argparse.Namespace, cfg: AppConfig) -> Formula:
    if args.formula_file:
        formula = load_formula_file(Path(args.formula_file).expanduser())
    else:
        formula = get_formula(args.formula or cfg.install.formula)

    # The saved repo belongs to the saved formula; formula files carry their own.
    repo = getattr(args, "repo", None)
    if not repo and not args.formula_file and formula.name == cfg.install.formula:
        repo = cfg.install.repo
    if repo and repo != formula.repo:
        formula = formula.with_release_repo(repo)
    return formula


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a whole number of seconds, got {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than zero, got {number}")
    return number


def _destination(args: argparse.Namespace, cfg: AppConfig) -> Path:
    dest = getattr(args, "dest", None)
    return Path(dest).expanduser() if dest else destination_dir(cfg)


def _checksum_from_file(path: Path, filename: str) -> str:
    try:
        table = parse_checksums(path)
    except OSError as exc:
        raise ChecksumMismatch(f"Cannot read checksums file {path}: {exc}") from exc
    if filename not in table:
        raise ChecksumMismatch(f"{path.name} has no entry for {filename}")
    return table[filename]


def cmd_formulas(_args: argparse.Namespace, _cfg: AppConfig) -> int:
    _print_json(
        [
            {
                "name": f.name,
                "version": f.version,
                "repo": f.repo,
                "binary": f.binary_name,
                "desc": f.desc,
                "license": f.license,
            }
            for f in FORMULAS.values()
        ]
    )
    return 0


def cmd_resolve(args: argparse.Namespace, cfg: AppConfig) -> int:
    formula = _formula(args, cfg)
    target, artifact = resolve_artifact(
        formula,
        args.os or platform.system(),
        args.arch or platform.machine(),
    )
    _print_json(
        {
            "formula": formula.name,
            "version": formula.version,
            "target": {"os": target.os_name, "arch": target.arch, "triple": artifact.triple},
            "url": artifact.url,
            "sha256": artifact.sha256,
            "checksum_placeholder": is_placeholder_checksum(artifact.sha256),
        }
    )
    return 0


def cmd_install(args: argparse.Namespace, cfg: AppConfig) -> int:
    formula = _formula(args, cfg)
    dest = _destination(args, cfg)
    timeout_s = args.timeout if args.timeout is not None else cfg.download.timeout_s

    sha256 = args.sha256
    if args.checksums and not sha256:
        _target, artifact = resolve_artifact(formula, platform.system(), platform.machine())
        sha256 = _checksum_from_file(Path(args.checksums).expanduser(), artifact.filename)

    result = install_formula(
        formula,
        dest,
        sha256_override=sha256,
        timeout_s=timeout_s,
        progress=log.info,
    )

    payload = {
        "formula": result.formula,
        "version": result.version,
        "target": {"os": result.target.os_name, "arch": result.target.arch},
        "url": result.artifact.url,
        "sha256": result.sha256,
        "path": str(result.binary_path),
        "smoke_test": None,
    }

    if cfg.install.run_smoke_test and not args.no_test:
        run_smoke_test(result.binary_path, marker=formula.help_marker, timeout_s=cfg.verify.timeout_s)
        payload["smoke_test"] = "passed"

    _print_json(payload)
    return 0


def cmd_test(args: argparse.Namespace, cfg: AppConfig) -> int:
    formula = _formula(args, cfg)
    binary = _destination(args, cfg) / formula.binary_name
    run_smoke_test(binary, marker=formula.help_marker, timeout_s=cfg.verify.timeout_s)
    _print_json({"formula": formula.name, "path": str(binary), "smoke_test": "passed"})
    return 0


def cmd_doctor(args: argparse.Namespace, cfg: AppConfig) -> int:
    formula = _formula(args, cfg)
    payload = build_doctor_payload(cfg, formula)

    if args.export:
        out_dir = Path(args.out_dir).expanduser().resolve() if args.out_dir else None
        bundle = DiagnosticsExporter().bundle(cfg=cfg, doctor_payload=payload, output_dir=out_dir)
        payload["diagnostics_bundle"] = str(bundle)

    _print_json(payload)
    return 0


def cmd_updates_check(args: argparse.Namespace, cfg: AppConfig) -> int:
    formula = _formula(args, cfg)
    channel = args.channel or cfg.updates.channel
    installed = probe_version(destination_dir(cfg) / formula.binary_name)
    current_version = args.current_version or installed or formula.version

    try:
        result = UpdateService(repo=formula.repo).check(
            current_version=current_version,
            channel=channel,
            etag=(None if args.ignore_etag else cfg.updates.etag),
        )
    except urllib.error.HTTPError as exc:
        raise DownloadError(f"Release lookup for {formula.repo} failed: HTTP {exc.code}") from exc
    except (urllib.error.URLError, TimeoutError) as exc:
        raise DownloadError(f"Release lookup for {formula.repo} failed: {exc}") from exc

    cfg.updates.channel = channel
    touch_update_check(cfg, etag=result.etag)
    save_config(cfg, _config_file(args))

    payload = asdict(result)
    payload["installed"] = installed is not None
    _print_json(payload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="canido-install",
        description="Install the canido IAM policy viewer from its GitHub release binaries",
    )
    parser.add_argument("--config", default=None, help="Settings file (default: per-user config dir)")
    parser.add_argument("--formula", default=None, choices=sorted(FORMULAS), help="Built-in formula to use")
    parser.add_argument("--formula-file", default=None, help="JSON formula definition to use instead")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to the console")
    sub = parser.add_subparsers(dest="command", required=True)

    formulas_cmd = sub.add_parser("formulas", help="List built-in formulas")
    formulas_cmd.set_defaults(func=cmd_formulas)

    resolve_cmd = sub.add_parser("resolve", help="Show the release artifact for a platform")
    resolve_cmd.add_argument("--os", default=None, help="Override detected OS (e.g. Linux, Darwin)")
    resolve_cmd.add_argument("--arch", default=None, help="Override detected CPU architecture")
    resolve_cmd.add_argument("--repo", default=None, help="GitHub owner/repo hosting the releases")
    resolve_cmd.set_defaults(func=cmd_resolve)

    install_cmd = sub.add_parser("install", help="Download, verify, and install the binary")
    install_cmd.add_argument("--dest", default=None, help="Destination directory on PATH")
    install_cmd.add_argument("--repo", default=None, help="GitHub owner/repo hosting the releases")
    install_cmd.add_argument("--sha256", default=None, help="Expected archive sha256 (overrides the formula)")
    install_cmd.add_argument("--checksums", default=None, help="sha256sum-style file listing the release archives")
    install_cmd.add_argument("--timeout", type=_positive_int, default=None, help="Download timeout in seconds")
    install_cmd.add_argument("--no-test", action="store_true", help="Skip the --help smoke test")
    install_cmd.set_defaults(func=cmd_install)

    test_cmd = sub.add_parser("test", help="Smoke test an installed binary")
    test_cmd.add_argument("--dest", default=None, help="Directory holding the installed binary")
    test_cmd.set_defaults(func=cmd_test)

    doctor_cmd = sub.add_parser("doctor", help="Print platform and install diagnostics")
    doctor_cmd.add_argument("--export", action="store_true", help="Export offline diagnostics bundle")
    doctor_cmd.add_argument("--out-dir", default=None, help="Optional output directory for diagnostics bundle")
    doctor_cmd.set_defaults(func=cmd_doctor)

    updates_cmd = sub.add_parser("updates", help="Release update checks")
    updates_sub = updates_cmd.add_subparsers(dest="updates_cmd", required=True)
    check_cmd = updates_sub.add_parser("check", help="Compare installed version with the latest release")
    check_cmd.add_argument("--channel", choices=["stable", "beta"], default=None)
    check_cmd.add_argument("--current-version", default=None)
    check_cmd.add_argument("--ignore-etag", action="store_true")
    check_cmd.set_defaults(func=cmd_updates_check)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    cfg = load_config(_config_file(args))
    configure_logging(keep_files=cfg.logging.keep_log_files, console=cfg.logging.console or args.verbose)

    try:
        return int(args.func(args, cfg))
    except InstallError as exc:
        log.error(f"{args.command} failed: {exc}", extra={"event": "command_failed", "exit_code": exc.exit_code})
        _print_json({"error": type(exc).__name__, "message": str(exc)})
        return exc.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
