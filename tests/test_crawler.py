"""
Tests for the depth-first crawl engine.
"""

import unittest

from media_downloader.crawler import Crawler, extract_media_urls, filter_page_links
from media_downloader.models import Config, CrawlState
from tests.helpers import FakeRenderer

SEED = "https://example.com/"


def page(media=(), links=()):
    return {"media": list(media), "links": list(links)}


class ShutdownDuringNavigationRenderer(FakeRenderer):
    """Requests shutdown while the page is loading, as Ctrl+C would."""

    def __init__(self, pages, state):
        super().__init__(pages)
        self.state = state

    async def navigate(self, url, timeout_ms):
        result = await super().navigate(url, timeout_ms)
        self.state.request_shutdown()
        return result


class TestExtraction(unittest.TestCase):

    def test_media_urls_normalized_filtered_and_unique(self):
        raw = ["/a.jpg", "a.jpg", "https://example.com/a.jpg#x", "/page.html",
               "data:image/png;base64,AAAA", "//cdn.example.net/b.PNG"]
        assert extract_media_urls(raw, "https://example.com/") == [
            "https://example.com/a.jpg",
            "https://cdn.example.net/b.PNG",
        ]

    def test_links_limited_to_seed_host_and_www(self):
        raw = ["/about", "https://www.example.com/blog", "https://cdn.example.com/x",
               "https://other.org/", "mailto:me@example.com", "javascript:void(0)",
               "#top", "#/gallery/2", "/about#team"]
        assert filter_page_links(raw, "https://example.com/", "example.com") == [
            "https://example.com/about",
            "https://www.example.com/blog",
            "https://example.com/gallery/2",
        ]


class TestCrawler(unittest.IsolatedAsyncioTestCase):

    def make_crawler(self, pages):
        renderer = FakeRenderer(pages)
        state = CrawlState(["example.com"])
        return Crawler(renderer, state, Config(url=SEED)), renderer, state

    async def test_depth_zero_only_renders_seed(self):
        crawler, renderer, state = self.make_crawler({
            SEED: page(["/a.jpg"], ["/one"]),
            "https://example.com/one": page(["/b.jpg"]),
        })
        media = await crawler.crawl(SEED, 0)
        assert media == ["https://example.com/a.jpg"]
        assert renderer.navigations == [SEED]

    async def test_depth_first_in_document_order(self):
        crawler, renderer, state = self.make_crawler({
            SEED: page(["/s.jpg"], ["/a", "/b"]),
            "https://example.com/a": page(["/a.jpg"], ["/c"]),
            "https://example.com/b": page(["/b.jpg"]),
            "https://example.com/c": page(["/c.jpg"]),
        })
        media = await crawler.crawl(SEED, 2)
        assert renderer.navigations == [
            SEED,
            "https://example.com/a",
            "https://example.com/c",
            "https://example.com/b",
        ]
        assert media == [
            "https://example.com/s.jpg",
            "https://example.com/a.jpg",
            "https://example.com/c.jpg",
            "https://example.com/b.jpg",
        ]

    async def test_depth_limit_respected(self):
        crawler, renderer, state = self.make_crawler({
            SEED: page(links=["/a"]),
            "https://example.com/a": page(links=["/c"]),
            "https://example.com/c": page(["/deep.jpg"]),
        })
        media = await crawler.crawl(SEED, 1)
        assert "https://example.com/c" not in renderer.navigations
        assert media == []

    async def test_cycles_render_each_page_once(self):
        crawler, renderer, state = self.make_crawler({
            SEED: page(links=["/a", "/"]),
            "https://example.com/a": page(links=["/", "/a"]),
        })
        await crawler.crawl(SEED, 5)
        assert renderer.navigations == [SEED, "https://example.com/a"]
        assert len(state.visited_pages) == len(renderer.navigations)

    async def test_render_failure_does_not_stop_siblings(self):
        crawler, renderer, state = self.make_crawler({
            SEED: page(links=["/broken", "/ok"]),
            "https://example.com/ok": page(["/ok.jpg"]),
        })
        media = await crawler.crawl(SEED, 1)
        assert media == ["https://example.com/ok.jpg"]
        assert renderer.navigations[-1] == "https://example.com/ok"
        assert crawler.pages_rendered == 2

    async def test_sink_receives_media_and_crawl_returns_empty(self):
        crawler, renderer, state = self.make_crawler({
            SEED: page(["/a.jpg"], ["/one"]),
            "https://example.com/one": page(["/b.jpg", "/a.jpg"]),
        })
        batches = []
        media = await crawler.crawl(SEED, 1, sink=batches.append)
        assert media == []
        assert batches == [
            ["https://example.com/a.jpg"],
            ["https://example.com/b.jpg", "https://example.com/a.jpg"],
        ]

    async def test_shutdown_stops_draining_work_list(self):
        crawler, renderer, state = self.make_crawler({
            SEED: page(["/a.jpg"], ["/one", "/two"]),
            "https://example.com/one": page(["/b.jpg"]),
            "https://example.com/two": page(["/c.jpg"]),
        })

        def sink(urls):
            state.request_shutdown()

        media = await crawler.crawl(SEED, 1, sink=sink)
        assert media == []
        assert renderer.navigations == [SEED]

    async def test_shutdown_after_navigation_skips_extraction(self):
        state = CrawlState(["example.com"])
        renderer = ShutdownDuringNavigationRenderer({SEED: page(["/a.jpg"], ["/one"])}, state)
        crawler = Crawler(renderer, state, Config(url=SEED))

        media = await crawler.crawl(SEED, 1)

        assert media == []
        assert renderer.navigations == [SEED]
        assert renderer.extractions == []

    async def test_cdn_links_are_not_crawled(self):
        crawler, renderer, state = self.make_crawler({
            SEED: page(links=["https://assets.examplecdn.net/gallery", "/local"]),
            "https://example.com/local": page(),
        })
        await crawler.crawl(SEED, 1)
        assert renderer.navigations == [SEED, "https://example.com/local"]


if __name__ == "__main__":
    unittest.main()
