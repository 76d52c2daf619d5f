"""
Browser

Description: Headless Playwright page renderer used for domain discovery and crawling
Author: Eric Hiss (GitHub: EricRollei)
Contact: eric@historic.camera, eric@rollei.us
License: Dual License (Non-Commercial and Commercial Use)
Copyright (c) 2025 Eric Hiss. All rights reserved.

Dual License:
1. Non-Commercial Use: This software is licensed under the terms of the
   Creative Commons Attribution-NonCommercial 4.0 International License.
   To view a copy of this license, visit http://creativecommons.org/licenses/by-nc/4.0/

2. Commercial Use: For commercial use, a separate license is required.
   Please contact Eric Hiss at eric@historic.camera or eric@rollei.us for licensing options.

Third-party code:
- Uses Playwright (Apache 2.0): https://github.com/microsoft/playwright
"""

import logging
from enum import Enum
from typing import List

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .exceptions import RendererInitError
from .models import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)


# Every candidate media reference on the page: img sources and srcsets,
# lazy-load attributes, video/source elements with posters, inline
# background images and social preview meta tags.
MEDIA_EXTRACTION_SCRIPT = """
() => {
    const found = [];
    const push = (value) => { if (value) found.push(value); };
    const pushSrcset = (srcset) => {
        if (!srcset) return;
        srcset.split(',').forEach((entry) => push(entry.trim().split(/\\s+/)[0]));
    };

    document.querySelectorAll('img').forEach((img) => {
        push(img.getAttribute('src'));
        push(img.dataset.src);
        push(img.dataset.image);
        pushSrcset(img.getAttribute('srcset'));
    });

    document.querySelectorAll('video').forEach((video) => {
        push(video.getAttribute('src'));
        push(video.getAttribute('poster'));
    });

    document.querySelectorAll('source').forEach((source) => {
        push(source.getAttribute('src'));
        pushSrcset(source.getAttribute('srcset'));
    });

    document.querySelectorAll('[style*="background"]').forEach((el) => {
        const style = el.style.backgroundImage || '';
        const match = style.match(/url\\(['"]?([^'"()]+)['"]?\\)/);
        if (match) push(match[1]);
    });

    document.querySelectorAll(
        'meta[property="og:image"], meta[property="og:video"], meta[name="twitter:image"]'
    ).forEach((meta) => push(meta.getAttribute('content')));

    document.querySelectorAll('[data-src], [data-original], [data-lazy-src]').forEach((el) => {
        ['data-src', 'data-original', 'data-lazy-src'].forEach((attr) => push(el.getAttribute(attr)));
    });

    return found;
}
"""

# Raw href values of every anchor, in document order
LINK_EXTRACTION_SCRIPT = """
() => Array.from(document.querySelectorAll('a[href]'))
    .map((link) => link.getAttribute('href'))
    .filter((href) => !!href)
"""

# Raw src/href values of every element, used to discover asset hosts
DOMAIN_DISCOVERY_SCRIPT = """
() => {
    const urls = [];
    document.querySelectorAll('[src], [href]').forEach((el) => {
        const src = el.getAttribute('src');
        const href = el.getAttribute('href');
        if (src) urls.push(src);
        if (href) urls.push(href);
    });
    return urls;
}
"""


class NavigationResult(str, Enum):
    OK = "ok"
    TIMEOUT = "timeout"
    ERROR = "error"


class PlaywrightRenderer:
    """
    A single headless Chromium page that is navigated from URL to URL.

    Only one page is ever open, so the crawl renders one page at a time.
    close() is safe to call any number of times; the browser is torn down once.
    """

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, network_idle_timeout_ms: int = 5000,
                 headless: bool = True):
        self.user_agent = user_agent
        self.network_idle_timeout_ms = network_idle_timeout_ms
        self.headless = headless
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        self._closed = False

    async def init(self):
        """Launch Chromium and open the page. Raises RendererInitError on failure."""
        logger.debug("Launching browser...")
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=['--no-sandbox', '--disable-setuid-sandbox'],
            )
            self._context = await self._browser.new_context(user_agent=self.user_agent)
            self._page = await self._context.new_page()
        except PlaywrightError as e:
            await self.close()
            raise RendererInitError(f"Could not launch browser: {e}") from e
        return self

    @property
    def is_open(self) -> bool:
        return self._page is not None and not self._closed

    async def navigate(self, url: str, timeout_ms: int) -> NavigationResult:
        """
        Load url and wait for the load event, then give lazy content a bounded
        chance to settle on network idle.

        Many sites poll forever, so network idle is best-effort and its
        timeout does not fail the navigation.
        """
        if not self.is_open:
            return NavigationResult.ERROR

        try:
            await self._page.goto(url, wait_until="load", timeout=timeout_ms)
        except PlaywrightTimeoutError:
            return NavigationResult.TIMEOUT
        except PlaywrightError as e:
            logger.debug(f"Navigation error for {url}: {e}")
            return NavigationResult.ERROR

        try:
            await self._page.wait_for_load_state("networkidle", timeout=self.network_idle_timeout_ms)
        except PlaywrightTimeoutError:
            logger.debug(f"Network never went idle on {url}, continuing")
        except PlaywrightError as e:
            logger.debug(f"Network idle wait aborted on {url}: {e}")
        return NavigationResult.OK

    async def extract(self, script: str) -> List[str]:
        """Run an extraction script against the current page and return its strings."""
        if not self.is_open:
            return []
        try:
            values = await self._page.evaluate(script)
        except PlaywrightError as e:
            logger.error(f"Extraction failed: {e}")
            return []
        return [value for value in values or [] if isinstance(value, str)]

    async def close(self):
        """Cleans up Playwright resources (page, context, browser, playwright) once."""
        if self._closed:
            return
        self._closed = True

        # Reverse order of creation
        for component, name in ((self._page, "page"), (self._context, "context"), (self._browser, "browser")):
            if component is None:
                continue
            try:
                await component.close()
            except PlaywrightError as e:
                logger.debug(f"Error cleaning up {name}: {e}")

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except PlaywrightError as e:
                logger.debug(f"Error cleaning up playwright instance: {e}")

        self._page = self._context = self._browser = self._playwright = None
        logger.debug("Browser closed")
