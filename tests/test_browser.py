"""
Tests for the Playwright renderer, with the playwright driver mocked out.
"""

import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from media_downloader.browser import PlaywrightRenderer, NavigationResult
from media_downloader.exceptions import RendererInitError


class TestPlaywrightRenderer(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.page = AsyncMock()
        self.context = AsyncMock()
        self.context.new_page.return_value = self.page
        self.browser = AsyncMock()
        self.browser.new_context.return_value = self.context
        self.pw = AsyncMock()
        self.pw.chromium.launch.return_value = self.browser

        self.starter = MagicMock()
        self.starter.start = AsyncMock(return_value=self.pw)
        patcher = patch("media_downloader.browser.async_playwright", return_value=self.starter)
        patcher.start()
        self.addCleanup(patcher.stop)

    async def open_renderer(self):
        renderer = PlaywrightRenderer(user_agent="test-agent", network_idle_timeout_ms=250)
        await renderer.init()
        return renderer

    async def test_navigate_waits_for_load_then_network_idle(self):
        renderer = await self.open_renderer()

        assert await renderer.navigate("https://example.com/", 1234) == NavigationResult.OK
        self.page.goto.assert_awaited_once_with("https://example.com/", wait_until="load", timeout=1234)
        self.page.wait_for_load_state.assert_awaited_once_with("networkidle", timeout=250)
        self.browser.new_context.assert_awaited_once_with(user_agent="test-agent")

    async def test_navigation_timeout(self):
        renderer = await self.open_renderer()
        self.page.goto.side_effect = PlaywrightTimeoutError("Timeout 1000ms exceeded")
        assert await renderer.navigate("https://example.com/", 1000) == NavigationResult.TIMEOUT

    async def test_navigation_error(self):
        renderer = await self.open_renderer()
        self.page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
        assert await renderer.navigate("https://nowhere.invalid/", 1000) == NavigationResult.ERROR

    async def test_network_idle_timeout_is_not_a_failure(self):
        renderer = await self.open_renderer()
        self.page.wait_for_load_state.side_effect = PlaywrightTimeoutError("still polling")
        assert await renderer.navigate("https://example.com/", 1000) == NavigationResult.OK

    async def test_extract_keeps_only_strings(self):
        renderer = await self.open_renderer()
        self.page.evaluate.return_value = ["/a.jpg", None, 3, "/b.png"]
        assert await renderer.extract("() => []") == ["/a.jpg", "/b.png"]

    async def test_extract_error_returns_empty(self):
        renderer = await self.open_renderer()
        self.page.evaluate.side_effect = PlaywrightError("Execution context was destroyed")
        assert await renderer.extract("() => []") == []

    async def test_close_happens_once(self):
        renderer = await self.open_renderer()
        await renderer.close()
        await renderer.close()

        self.browser.close.assert_awaited_once()
        self.pw.stop.assert_awaited_once()
        assert await renderer.navigate("https://example.com/", 1000) == NavigationResult.ERROR
        assert await renderer.extract("() => []") == []

    async def test_launch_failure_raises_init_error(self):
        self.pw.chromium.launch.side_effect = PlaywrightError("Executable doesn't exist")
        renderer = PlaywrightRenderer()

        with self.assertRaises(RendererInitError):
            await renderer.init()
        self.pw.stop.assert_awaited_once()


if __name__ == "__main__":
    unittest.main()
