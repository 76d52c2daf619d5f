"""
Domain Policy

Description: Computes the set of hosts a crawl session may download media from
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
from typing import Iterable, Set

from ..browser import DOMAIN_DISCOVERY_SCRIPT, NavigationResult
from ..utils.url_utils import get_domain, is_media_url, normalize_url

logger = logging.getLogger(__name__)

# Host name fragments that usually mean "this site's own asset host".
# Approximate on purpose: it admits a site's CDN without admitting ad or
# tracking hosts, it is not a security boundary.
CDN_INDICATORS = (
    'cdn',
    'static',
    'images',
    'cloudinary',
    'imgix',
    'squarespace',
    'cloudfront',
    'akamai',
    'fastly',
    'twimg',
    'assets',
)


def is_cdn_domain(domain: str) -> bool:
    """
    Check if a domain is likely a CDN or image host.

    Args:
        domain (str): Domain to check

    Returns:
        bool: True if the domain appears to be a CDN
    """
    return any(indicator in domain.lower() for indicator in CDN_INDICATORS)


def filter_allowed_domains(seed_domain: str, observed_domains: Iterable[str]) -> Set[str]:
    """
    Reduce the hosts seen on the seed page to the session allowlist.

    The seed host is always present. Any other host survives only if it looks
    like an asset host.
    """
    seed_domain = seed_domain.lower()
    allowed = {seed_domain}
    for domain in observed_domains:
        if not domain:
            continue
        domain = domain.lower()
        if domain == seed_domain or is_cdn_domain(domain):
            allowed.add(domain)
    return allowed


def collect_media_domains(raw_urls: Iterable[str], base_url: str) -> Set[str]:
    """Hosts of every media reference in raw_urls, resolved against base_url."""
    domains = set()
    for raw_url in raw_urls:
        normalized = normalize_url(raw_url, base_url)
        if normalized and is_media_url(normalized):
            domain = get_domain(normalized)
            if domain:
                domains.add(domain)
    return domains


async def discover_allowed_domains(renderer, seed_url: str, timeout_ms: int) -> Set[str]:
    """
    Render the seed page once and derive the allowed domains for the session.

    Args:
        renderer: Page renderer exposing navigate() and extract()
        seed_url: Normalized seed URL
        timeout_ms: Navigation timeout in milliseconds

    Returns:
        Set of allowed host names; just the seed host if the page cannot be rendered
    """
    seed_domain = get_domain(seed_url)
    logger.debug(f"Discovering domains from: {seed_url}")

    result = await renderer.navigate(seed_url, timeout_ms)
    if result is not NavigationResult.OK:
        logger.error(f"Failed to discover domains ({result.value}): {seed_url}")
        return {seed_domain}

    raw_urls = await renderer.extract(DOMAIN_DISCOVERY_SCRIPT)
    observed = collect_media_domains(raw_urls, seed_url)
    allowed = filter_allowed_domains(seed_domain, observed)

    for domain in sorted(observed - allowed):
        logger.debug(f"Ignoring third-party domain: {domain}")
    return allowed
