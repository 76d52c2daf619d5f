"""
Crawler

Description: Depth-bounded, depth-first site crawl that feeds discovered media URLs to a sink
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
"""

import logging
from typing import Iterable, List, Optional, Tuple

from .browser import LINK_EXTRACTION_SCRIPT, MEDIA_EXTRACTION_SCRIPT, NavigationResult
from .models import Config, CrawlState, MediaSink
from .utils.url_utils import get_domain, is_media_url, normalize_url, rewrite_hash_route

logger = logging.getLogger(__name__)

SKIPPED_LINK_PREFIXES = ('javascript:', 'mailto:')


def extract_media_urls(raw_urls: Iterable[str], base_url: str) -> List[str]:
    """Normalize raw references against the page URL and keep unique media URLs in page order."""
    media_urls = []
    seen = set()
    for raw_url in raw_urls:
        normalized = normalize_url(raw_url, base_url)
        if normalized and is_media_url(normalized) and normalized not in seen:
            seen.add(normalized)
            media_urls.append(normalized)
    return media_urls


def filter_page_links(raw_links: Iterable[str], base_url: str, seed_domain: str) -> List[str]:
    """
    Turn raw anchor hrefs into crawlable page URLs.

    Script and mail links are dropped, bare in-page fragments are dropped and
    '#/route' style links are rewritten to '/route'. Only links on the seed
    host (or its www. variant) survive, so the crawl never wanders onto CDN
    hosts.
    """
    follow_domains = {seed_domain, f"www.{seed_domain}"}
    links = []
    seen = set()
    for link in raw_links:
        link = link.strip()
        if link.lower().startswith(SKIPPED_LINK_PREFIXES):
            continue

        link = rewrite_hash_route(link)
        if link is None:
            continue

        normalized = normalize_url(link, base_url)
        if not normalized or normalized in seen:
            continue
        if get_domain(normalized) in follow_domains:
            seen.add(normalized)
            links.append(normalized)
    return links


class Crawler:
    """
    Walks a site from a seed URL using one page renderer.

    The walk is an explicit stack of (url, remaining_depth) pairs. Links are
    pushed in reverse so pages are visited depth-first in document order, and
    media found on a page is handed to the sink before its links are read.
    """

    def __init__(self, renderer, state: CrawlState, config: Config):
        self.renderer = renderer
        self.state = state
        self.config = config
        self.pages_rendered = 0

    @property
    def timeout_ms(self) -> int:
        return int(self.config.timeout * 1000)

    async def crawl(self, seed_url: str, depth: int, sink: Optional[MediaSink] = None) -> List[str]:
        """
        Crawl from seed_url following same-site links up to depth hops.

        Args:
            seed_url: Normalized start URL
            depth: Maximum number of link hops from the seed
            sink: Callable receiving each page's media URLs. When omitted the
                URLs are collected and returned.

        Returns:
            Collected media URLs; empty when a sink was supplied
        """
        collected: List[str] = []
        if sink is None:
            sink = collected.extend

        seed_domain = get_domain(seed_url)
        stack: List[Tuple[str, int]] = [(seed_url, depth)]

        while stack:
            if self.state.shutting_down:
                logger.info(f"Crawl stopped, {len(stack)} pending pages skipped")
                break

            url, remaining_depth = stack.pop()
            if remaining_depth < 0 or not self.state.mark_visited(url):
                continue

            links = await self._visit(url, remaining_depth, seed_domain, sink)
            for link in reversed(links):
                stack.append((link, remaining_depth - 1))

        return collected

    async def _visit(self, url: str, remaining_depth: int, seed_domain: str, sink: MediaSink) -> List[str]:
        """Render one page, emit its media and return the links to follow."""
        logger.info(f"Crawling (depth={remaining_depth}): {url}")

        result = await self.renderer.navigate(url, self.timeout_ms)
        if result is not NavigationResult.OK:
            if not self.state.shutting_down:
                logger.warning(f"Could not fetch: {url} ({result.value})")
            return []

        self.pages_rendered += 1
        if self.state.shutting_down:
            return []

        media_urls = extract_media_urls(await self.renderer.extract(MEDIA_EXTRACTION_SCRIPT), url)
        logger.info(f"Found {len(media_urls)} media files")
        if media_urls:
            sink(media_urls)

        if remaining_depth <= 0 or self.state.shutting_down:
            return []

        links = filter_page_links(await self.renderer.extract(LINK_EXTRACTION_SCRIPT), url, seed_domain)
        logger.info(f"Found {len(links)} page links to crawl")
        for link in links[:10]:
            logger.debug(f"  Link: {link}")
        return links
