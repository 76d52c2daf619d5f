"""Shared fakes and fixtures for the media downloader tests."""

import io
from unittest.mock import MagicMock

from PIL import Image

from media_downloader.browser import (
    DOMAIN_DISCOVERY_SCRIPT,
    LINK_EXTRACTION_SCRIPT,
    MEDIA_EXTRACTION_SCRIPT,
    NavigationResult,
)


class FakeRenderer:
    """
    In-memory page renderer.

    pages maps a URL to a dict with optional 'media', 'links' and 'sources'
    lists, which are what the media, link and domain discovery scripts return.
    Unknown URLs fail to navigate.
    """

    def __init__(self, pages=None, init_error=None):
        self.pages = pages or {}
        self.init_error = init_error
        self.navigations = []
        self.extractions = []
        self.current = None
        self.init_calls = 0
        self.close_calls = 0

    async def init(self):
        self.init_calls += 1
        if self.init_error is not None:
            raise self.init_error
        return self

    async def navigate(self, url, timeout_ms):
        self.navigations.append(url)
        if url not in self.pages:
            self.current = None
            return NavigationResult.ERROR
        self.current = url
        return NavigationResult.OK

    async def extract(self, script):
        self.extractions.append(script)
        page = self.pages.get(self.current)
        if page is None:
            return []
        if script == MEDIA_EXTRACTION_SCRIPT:
            return list(page.get("media", []))
        if script == LINK_EXTRACTION_SCRIPT:
            return list(page.get("links", []))
        if script == DOMAIN_DISCOVERY_SCRIPT:
            return list(page.get("sources", page.get("media", []) + page.get("links", [])))
        return []

    async def close(self):
        self.close_calls += 1


def make_image(size, pattern="vertical"):
    """
    A two-tone grayscale-friendly RGB image.

    'vertical' splits left/right, 'horizontal' top/bottom, so the two patterns
    are far apart under a perceptual hash while resized copies of one pattern
    stay identical.
    """
    width, height = size
    img = Image.new("RGB", size, (0, 0, 0))
    if pattern == "vertical":
        img.paste((255, 255, 255), (width // 2, 0, width, height))
    elif pattern == "horizontal":
        img.paste((255, 255, 255), (0, height // 2, width, height))
    else:
        raise ValueError(pattern)
    return img


def save_image(path, size, pattern="vertical"):
    make_image(size, pattern).save(path)
    return path


def image_bytes(size, pattern="vertical", fmt="PNG"):
    buffer = io.BytesIO()
    make_image(size, pattern).save(buffer, format=fmt)
    return buffer.getvalue()


def fake_response(status=200, body=b"", headers=None):
    """A streamed requests.Response stand-in usable as a context manager."""
    response = MagicMock()
    response.status_code = status
    response.headers = headers or {}
    response.iter_content.return_value = [body] if body else []
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response
