"""
End-to-end tests of a download session: domain discovery, streaming crawl,
downloads and the deduplication pass, with a fake renderer and patched HTTP.
"""

import os
import tempfile
import unittest
from unittest.mock import patch

from media_downloader.cli import EXIT_ERROR, EXIT_INTERRUPTED, EXIT_OK, download_session
from media_downloader.exceptions import RendererInitError
from media_downloader.models import Config
from tests.helpers import FakeRenderer, fake_response, image_bytes

SEED = "https://example.com/"
ABOUT = "https://example.com/about"

SEED_PAGE = {
    "sources": [
        "/logo.png",
        "https://assets.examplecdn.net/banner.jpg",
        "https://ads.example-tracking.com/pixel.gif",
        "/about",
        "/style.css",
    ],
    "media": [
        "/logo.png",
        "https://assets.examplecdn.net/banner.jpg",
        "https://ads.example-tracking.com/pixel.gif",
    ],
    "links": ["/about", "https://other-site.org/"],
}

ABOUT_PAGE = {
    "media": ["/logo.png", "/team.png"],
    "links": ["/"],
}


class InterruptingRenderer(FakeRenderer):
    """Simulates Ctrl+C arriving while the second page loads."""

    async def navigate(self, url, timeout_ms):
        if url == ABOUT:
            raise KeyboardInterrupt
        return await super().navigate(url, timeout_ms)


class TestDownloadSession(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.output_dir = os.path.join(self._tmp.name, "output")

        self.bodies = {
            "https://example.com/logo.png": image_bytes((120, 120), "vertical"),
            "https://assets.examplecdn.net/banner.jpg": image_bytes((300, 150), "horizontal", "JPEG"),
            "https://example.com/team.png": image_bytes((60, 60), "vertical"),
        }
        patcher = patch("media_downloader.downloader.requests.get", side_effect=self.respond)
        self.mock_get = patcher.start()
        self.addCleanup(patcher.stop)

    def respond(self, url, **kwargs):
        if url in self.bodies:
            return fake_response(body=self.bodies[url])
        return fake_response(status=404)

    def config(self, **overrides):
        options = dict(url=SEED, depth=1, output_dir=self.output_dir, delay_ms=0, retry_delay_ms=0)
        options.update(overrides)
        return Config(**options)

    def requested_urls(self):
        return [call[0][0] for call in self.mock_get.call_args_list]

    def output_files(self):
        found = []
        for root, _, files in os.walk(self.output_dir):
            found.extend(os.path.relpath(os.path.join(root, name), self.output_dir) for name in files)
        return sorted(found)

    async def test_assets_saved_per_host_and_tracker_never_fetched(self):
        renderer = FakeRenderer({SEED: SEED_PAGE, ABOUT: ABOUT_PAGE})

        code = await download_session(self.config(visual_dedup=False), renderer)

        assert code == EXIT_OK
        assert renderer.close_calls == 1
        assert renderer.navigations == [SEED, SEED, ABOUT]
        assert os.path.join("example.com", "logo.png") in self.output_files()
        assert os.path.join("assets.examplecdn.net", "banner.jpg") in self.output_files()
        assert not any("example-tracking" in url for url in self.requested_urls())
        assert self.requested_urls().count("https://example.com/logo.png") == 1

    async def test_visual_pass_removes_smaller_copy(self):
        renderer = FakeRenderer({SEED: SEED_PAGE, ABOUT: ABOUT_PAGE})

        code = await download_session(self.config(), renderer)

        assert code == EXIT_OK
        assert self.output_files() == [
            os.path.join("assets.examplecdn.net", "banner.jpg"),
            os.path.join("example.com", "logo.png"),
        ]

    async def test_dry_run_leaves_filesystem_untouched(self):
        renderer = FakeRenderer({SEED: SEED_PAGE, ABOUT: ABOUT_PAGE})

        code = await download_session(self.config(dry_run=True), renderer)

        assert code == EXIT_OK
        self.mock_get.assert_not_called()
        assert not os.path.exists(self.output_dir)

    async def test_unreachable_seed_is_fatal(self):
        renderer = FakeRenderer({})
        code = await download_session(self.config(), renderer)
        assert code == EXIT_ERROR
        assert renderer.close_calls == 1

    async def test_renderer_init_failure_propagates(self):
        renderer = FakeRenderer(init_error=RendererInitError("no browser"))
        with self.assertRaises(RendererInitError):
            await download_session(self.config(), renderer)
        assert renderer.close_calls == 1

    async def test_interrupt_returns_partial_results(self):
        renderer = InterruptingRenderer({SEED: SEED_PAGE, ABOUT: ABOUT_PAGE})

        code = await download_session(self.config(visual_dedup=False), renderer)

        assert code == EXIT_INTERRUPTED
        assert renderer.close_calls == 1
        assert "https://example.com/team.png" not in self.requested_urls()


if __name__ == "__main__":
    unittest.main()
