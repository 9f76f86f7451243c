import io
import sys
import unittest
from contextlib import redirect_stderr
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "installers" / "bootstrap"))
sys.path.insert(0, str(ROOT / "packages" / "core"))

from canido_bootstrap.cli import build_parser


class CliTests(unittest.TestCase):
    def test_install_command(self):
        parser = build_parser()
        args = parser.parse_args(["install", "--dest", "/tmp/bin", "--sha256", "ab" * 32, "--no-test"])
        self.assertEqual(args.command, "install")
        self.assertEqual(args.dest, "/tmp/bin")
        self.assertEqual(args.sha256, "ab" * 32)
        self.assertTrue(args.no_test)

    def test_global_formula_option(self):
        parser = build_parser()
        args = parser.parse_args(["--formula", "iam-policy-viewer", "resolve", "--os", "Linux", "--arch", "x86_64"])
        self.assertEqual(args.formula, "iam-policy-viewer")
        self.assertEqual(args.command, "resolve")
        self.assertEqual(args.os, "Linux")

    def test_unknown_formula_is_rejected(self):
        parser = build_parser()
        with self.assertRaises(SystemExit):
            parser.parse_args(["--formula", "wget", "install"])

    def test_updates_check_command(self):
        parser = build_parser()
        args = parser.parse_args(["updates", "check", "--channel", "beta"])
        self.assertEqual(args.command, "updates")
        self.assertEqual(args.updates_cmd, "check")
        self.assertEqual(args.channel, "beta")

    def test_doctor_command(self):
        parser = build_parser()
        args = parser.parse_args(["doctor", "--export", "--out-dir", "/tmp/diag"])
        self.assertTrue(args.export)
        self.assertEqual(args.out_dir, "/tmp/diag")

    def test_install_timeout_must_be_positive(self):
        parser = build_parser()
        self.assertEqual(parser.parse_args(["install", "--timeout", "30"]).timeout, 30)
        self.assertIsNone(parser.parse_args(["install"]).timeout)
        for bad in ("0", "-5", "soon"):
            with self.subTest(timeout=bad):
                with redirect_stderr(io.StringIO()), self.assertRaises(SystemExit):
                    parser.parse_args(["install", "--timeout", bad])


if __name__ == "__main__":
    unittest.main()
