"""
Site handlers package for the media downloader.

Holds the per-session domain policy that decides which hosts a crawl may
download from.
"""

from .domain_policy import (
    CDN_INDICATORS,
    discover_allowed_domains,
    filter_allowed_domains,
    is_cdn_domain,
)

__all__ = [
    'CDN_INDICATORS',
    'discover_allowed_domains',
    'filter_allowed_domains',
    'is_cdn_domain',
]
