"""
Models

Description: Session state, configuration and result types shared by the crawler, downloader and deduplicator
Author: Eric Hiss (GitHub: EricRollei)
Contact: eric@historic.camera, eric@rollei.us
License: Dual License (Non-Commercial and Commercial Use)
Copyright (c) 2025 Eric Hiss. All rights reserved.
"""

import os
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Optional, Set

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)

# A sink receives every batch of media URLs the crawler finds on one page
MediaSink = Callable[[List[str]], None]


@dataclass
class Config:
    """All tunables of one download session."""
    url: str
    depth: int = 1
    output_dir: str = ""
    concurrency: int = 5
    verbose: bool = False
    dry_run: bool = False
    min_width: int = 0
    min_height: int = 0
    skip_duplicates: bool = True
    visual_dedup: bool = True
    resume: bool = False
    delay_ms: int = 100
    timeout: float = 30.0
    max_retries: int = 3
    retry_delay_ms: int = 1000
    network_idle_timeout_ms: int = 5000
    hash_algorithm: str = "average_hash"
    hash_size: int = 8
    similarity_threshold: int = 5
    user_agent: str = DEFAULT_USER_AGENT


class CrawlState:
    """
    Session context owned by a single crawl.

    The crawl engine and every download worker share one instance. All
    check-and-insert operations run under a single lock so that two workers can
    never both claim the same URL.
    """

    def __init__(self, allowed_domains: Optional[Iterable[str]] = None):
        self._lock = threading.RLock()
        self._visited_pages: Set[str] = set()
        self._downloaded_urls: Set[str] = set()
        self._content_hashes: Set[str] = set()
        self._allowed_domains: Optional[FrozenSet[str]] = None
        self._shutdown = threading.Event()
        if allowed_domains is not None:
            self.set_allowed_domains(allowed_domains)

    # --- allowlist ---

    def set_allowed_domains(self, domains: Iterable[str]) -> None:
        """Fix the allowlist. It can be set exactly once per session."""
        with self._lock:
            if self._allowed_domains is not None:
                raise RuntimeError("Allowed domains are already fixed for this session")
            self._allowed_domains = frozenset(d.lower() for d in domains if d)

    @property
    def allowed_domains(self) -> FrozenSet[str]:
        return self._allowed_domains or frozenset()

    def is_domain_allowed(self, domain: str) -> bool:
        return bool(domain) and domain.lower() in self.allowed_domains

    # --- pages ---

    def mark_visited(self, url: str) -> bool:
        """Insert a page URL. Returns False if it was already visited."""
        with self._lock:
            if url in self._visited_pages:
                return False
            self._visited_pages.add(url)
            return True

    def is_visited(self, url: str) -> bool:
        with self._lock:
            return url in self._visited_pages

    @property
    def visited_pages(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._visited_pages)

    # --- downloads ---

    def claim_download(self, url: str) -> bool:
        """Mark an asset URL as dispatched. Returns False if another caller got there first."""
        with self._lock:
            if url in self._downloaded_urls:
                return False
            self._downloaded_urls.add(url)
            return True

    @property
    def downloaded_urls(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._downloaded_urls)

    def register_content_hash(self, digest: str) -> bool:
        """Record the digest of a kept file. Returns False if it was already known."""
        with self._lock:
            if digest in self._content_hashes:
                return False
            self._content_hashes.add(digest)
            return True

    @property
    def content_hashes(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._content_hashes)

    # --- cancellation ---

    def request_shutdown(self) -> None:
        self._shutdown.set()

    @property
    def shutting_down(self) -> bool:
        return self._shutdown.is_set()


@dataclass
class MediaFile:
    """A resolved download target that has not been written yet."""
    url: str
    domain: str
    filename: str
    filepath: str


class DownloadStatus(str, Enum):
    """Outcome of one URL through the download pipeline."""
    SUCCESS = "success"
    DRY_RUN = "dry_run"
    FAILED = "failed"
    SKIPPED_ALREADY_QUEUED = "skipped_already_queued"
    SKIPPED_DOMAIN = "skipped_domain"
    SKIPPED_EXISTS = "skipped_exists"
    SKIPPED_EMPTY = "skipped_empty"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_TOO_SMALL = "skipped_too_small"
    CANCELLED = "cancelled"


@dataclass
class FileInfo:
    """A media file seen by one deduplication pass."""
    path: str
    filename: str
    base_name: str
    extension: str
    byte_size: int
    width: int = 0
    height: int = 0
    content_hash: Optional[str] = None
    visual_hash: Optional[str] = None

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def directory(self) -> str:
        return os.path.dirname(self.path)


class DuplicateReason(str, Enum):
    IDENTICAL = "identical"
    VISUAL = "visual"
    FILENAME = "filename"


@dataclass
class DuplicateGroup:
    """Survivor plus the copies slated for deletion."""
    original: FileInfo
    duplicates: List[FileInfo]
    reason: DuplicateReason

    @property
    def reclaimable_bytes(self) -> int:
        return sum(dup.byte_size for dup in self.duplicates)


@dataclass
class DedupResult:
    """Summary of one deduplication pass."""
    found: int = 0
    deleted: int = 0
    freed_bytes: int = 0
    groups: List[DuplicateGroup] = field(default_factory=list)

    def count_groups(self, reason: DuplicateReason) -> int:
        return sum(1 for group in self.groups if group.reason == reason)
