import json
import sys
import unittest
from pathlib import Path
from unittest.mock import patch
from urllib.error import HTTPError

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "packages" / "core"))

from canido_core.updates import UpdateService, is_newer


class _FakeResponse:
    def __init__(self, payload, etag: str = '"abc"'):
        self._payload = payload
        self.headers = {"ETag": etag}

    def read(self):
        return json.dumps(self._payload).encode("utf-8")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class UpdateServiceTests(unittest.TestCase):
    def test_stable_channel_update_available(self):
        payload = {
            "tag_name": "v0.2.0",
            "name": "v0.2.0",
            "html_url": "https://example/release",
        }
        with patch("urllib.request.urlopen", return_value=_FakeResponse(payload)) as urlopen:
            svc = UpdateService(repo="acme/canido")
            out = svc.check(current_version="0.1.0", channel="stable")
            self.assertTrue(out.update_available)
            self.assertEqual(out.latest_version, "0.2.0")
            self.assertEqual(out.etag, '"abc"')
            request = urlopen.call_args[0][0]
            self.assertEqual(request.full_url, "https://api.github.com/repos/acme/canido/releases/latest")

    def test_same_version_is_not_an_update(self):
        payload = {"tag_name": "v0.1.0", "name": "v0.1.0"}
        with patch("urllib.request.urlopen", return_value=_FakeResponse(payload)):
            out = UpdateService(repo="acme/canido").check(current_version="0.1.0")
            self.assertFalse(out.update_available)

    def test_beta_channel_selects_prerelease(self):
        payload = [
            {"tag_name": "v0.2.0", "prerelease": False},
            {
                "tag_name": "v0.3.0-beta.1",
                "name": "beta",
                "prerelease": True,
                "html_url": "https://example/beta",
            },
        ]
        with patch("urllib.request.urlopen", return_value=_FakeResponse(payload)):
            out = UpdateService(repo="acme/canido").check(current_version="0.1.0", channel="beta")
            self.assertTrue(out.update_available)
            self.assertEqual(out.release_name, "beta")
            self.assertEqual(out.latest_version, "0.3.0-beta.1")

    def test_not_modified_keeps_etag(self):
        err = HTTPError("https://api.github.com", 304, "Not Modified", hdrs=None, fp=None)
        with patch("urllib.request.urlopen", side_effect=err):
            out = UpdateService(repo="acme/canido").check(current_version="0.1.0", etag='"abc"')
            self.assertTrue(out.not_modified)
            self.assertFalse(out.update_available)
            self.assertEqual(out.etag, '"abc"')

    def test_is_newer(self):
        self.assertTrue(is_newer("0.1.0", "0.1.1"))
        self.assertTrue(is_newer("0.9.0", "0.10.0"))
        self.assertFalse(is_newer("0.2.0", "0.1.9"))
        self.assertFalse(is_newer("0.1.0", None))


if __name__ == "__main__":
    unittest.main()
