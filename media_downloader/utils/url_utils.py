"""
Url Utils

Description: URL normalization, media classification and filename derivation for the media downloader
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

import os
import re
from typing import Optional
from urllib.parse import unquote, urljoin, urlsplit, urlunsplit

IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png', 'gif', 'webp', 'svg', 'avif', 'ico'}
VIDEO_EXTENSIONS = {'mp4', 'webm', 'mov', 'avi', 'mkv'}
MEDIA_EXTENSIONS = IMAGE_EXTENSIONS | VIDEO_EXTENSIONS

# Raster formats we can measure and fingerprint
MEASURABLE_IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png', 'gif', 'webp', 'avif'}

SKIPPED_SCHEMES = ('data:', 'blob:', 'javascript:', 'mailto:', 'tel:', 'about:')
INVALID_FILENAME_CHARS_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
MAX_FILENAME_LENGTH = 200


def normalize_url(url: str, base_url: Optional[str] = None) -> Optional[str]:
    """
    Resolve a raw attribute value into an absolute http(s) URL.

    Relative and protocol-relative references are resolved against base_url,
    the fragment is dropped, and scheme and host are lower-cased. Anything that
    is not http(s) after resolution returns None.

    Args:
        url: Raw URL as found in the page
        base_url: URL of the page the reference was found on

    Returns:
        Normalized URL string, or None if the reference is not fetchable
    """
    if not url:
        return None

    candidate = url.strip()
    if not candidate or candidate.lower().startswith(SKIPPED_SCHEMES):
        return None

    try:
        absolute = urljoin(base_url, candidate) if base_url else candidate
        parts = urlsplit(absolute)
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if scheme not in ('http', 'https') or not parts.netloc:
        return None

    path = parts.path or '/'
    return urlunsplit((scheme, parts.netloc.lower(), path, parts.query, ''))


def get_domain(url: str) -> str:
    """Host name of a URL, lower-cased, without port. Empty string if unparseable."""
    try:
        return (urlsplit(url).hostname or '').lower()
    except ValueError:
        return ''


def get_extension(url_or_path: str) -> str:
    """Lower-case extension without the dot, looking only at the URL path."""
    path = urlsplit(url_or_path).path if '://' in url_or_path else url_or_path
    return os.path.splitext(path)[1].lower().lstrip('.')


def is_media_url(url: str) -> bool:
    """True if the URL path ends in a recognized image or video extension."""
    return get_extension(url) in MEDIA_EXTENSIONS


def is_measurable_image(path: str) -> bool:
    return get_extension(path) in MEASURABLE_IMAGE_EXTENSIONS


def is_video(path: str) -> bool:
    return get_extension(path) in VIDEO_EXTENSIONS


def rewrite_hash_route(href: str) -> Optional[str]:
    """
    Handle in-page fragment links.

    A client-side router link like '#/gallery/2' is rewritten to the path
    '/gallery/2'. Any other link starting with '#' points into the same page
    and returns None. Non-fragment links are returned unchanged.
    """
    if href.startswith('#/'):
        return href[1:]
    if href.startswith('#'):
        return None
    return href


def sanitize_filename(name: str) -> str:
    """Replace characters that are invalid in file names and cap the length."""
    sanitized = INVALID_FILENAME_CHARS_RE.sub('_', name).strip(' .')
    if len(sanitized) > MAX_FILENAME_LENGTH:
        stem, ext = os.path.splitext(sanitized)
        sanitized = stem[:MAX_FILENAME_LENGTH - len(ext)] + ext
    return sanitized


def get_filename_from_url(url: str) -> str:
    """
    Derive a local file name from the last path segment of a URL.

    Percent-escapes are decoded and unsafe characters replaced. URLs without a
    usable last segment fall back to 'file'.
    """
    path = urlsplit(url).path
    segment = unquote(path.rstrip('/').rsplit('/', 1)[-1])
    filename = sanitize_filename(segment)
    return filename or 'file'
