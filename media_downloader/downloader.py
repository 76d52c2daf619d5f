"""
Downloader

Description: Bounded-concurrency media download manager with retry, domain, duplicate and size filters
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
- Uses Requests (Apache 2.0): https://github.com/psf/requests
- Uses Pillow (HPND): https://github.com/python-pillow/Pillow
"""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, Iterable, List
from urllib.parse import urljoin

import requests

from .models import Config, CrawlState, DownloadStatus, MediaFile
from .utils.file_utils import ensure_unique_filepath, get_file_hash, get_image_dimensions, remove_file
from .utils.logger import log_success
from .utils.url_utils import get_domain, get_filename_from_url, is_measurable_image

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = {301, 302, 303, 307, 308}
MAX_REDIRECTS = 5
CHUNK_SIZE = 8192


class Downloader:
    """
    Downloads media URLs into <output_dir>/<host>/<filename> on a thread pool.

    URLs can be enqueued while the crawl is still running. Each worker takes
    one URL through the whole pipeline (claim, domain check, fetch with
    retries, empty/duplicate/size filters) before picking up the next one.
    Every rejection deletes the file that attempt wrote.
    """

    def __init__(self, config: Config, state: CrawlState):
        self.config = config
        self.state = state
        self.headers = {'User-Agent': config.user_agent}

        self._executor = ThreadPoolExecutor(max_workers=max(1, config.concurrency),
                                            thread_name_prefix="download")
        # Reentrant lock for stats, futures and path reservations
        self._lock = threading.RLock()
        self._futures = []
        self._reserved_paths = set()
        self._closed = False

        self.stats: Dict[str, int] = {status.value: 0 for status in DownloadStatus}
        self.downloaded_files: List[str] = []

    # --- queue ---

    def enqueue(self, urls: Iterable[str]) -> int:
        """Submit URLs to the worker pool. Returns how many were queued."""
        unique_urls = list(dict.fromkeys(url for url in urls if url))
        if not unique_urls:
            return 0

        with self._lock:
            if self._closed or self.state.shutting_down:
                logger.debug(f"Not queueing {len(unique_urls)} URLs, downloader is shutting down")
                return 0
            for url in unique_urls:
                self._futures.append(self._executor.submit(self._worker, url))

        logger.debug(f"Queued {len(unique_urls)} files for download")
        return len(unique_urls)

    def download_all(self, urls: Iterable[str]) -> Dict[str, int]:
        """Queue a batch of URLs and block until every queued download has settled."""
        urls = list(urls)
        logger.info(f"Queueing {len(set(urls))} files for download...")
        self.enqueue(urls)
        self.wait_for_completion()
        return self.get_stats()

    def wait_for_completion(self):
        """Block until the queue is drained, including URLs queued while waiting."""
        while True:
            with self._lock:
                pending = [future for future in self._futures if not future.done()]
            if not pending:
                return
            wait(pending)

    def shutdown(self, cancel_pending: bool = False, wait_for_workers: bool = True):
        """
        Stop accepting work. With cancel_pending, queued downloads that have not
        started are dropped and counted as cancelled; running ones finish.
        """
        with self._lock:
            if self._closed and not cancel_pending:
                return
            self._closed = True
            if cancel_pending:
                for future in self._futures:
                    if future.cancel():
                        self._record(DownloadStatus.CANCELLED)
        self._executor.shutdown(wait=wait_for_workers)

    def close(self):
        self.shutdown(wait_for_workers=True)

    # --- stats ---

    def _record(self, status: DownloadStatus):
        with self._lock:
            self.stats[status.value] += 1

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return dict(self.stats)

    @property
    def skipped_count(self) -> int:
        with self._lock:
            return sum(count for key, count in self.stats.items() if key.startswith("skipped_"))

    # --- per-URL pipeline ---

    def _worker(self, url: str) -> DownloadStatus:
        try:
            status = self.process_download(url)
        except Exception as e:
            logger.error(f"Error in download worker for {url}: {e}")
            status = DownloadStatus.FAILED
        self._record(status)
        return status

    def resolve_target(self, url: str) -> MediaFile:
        """Where url would be saved, before collision handling."""
        domain = get_domain(url)
        filename = get_filename_from_url(url)
        filepath = os.path.join(self.config.output_dir, domain, filename)
        return MediaFile(url=url, domain=domain, filename=filename, filepath=filepath)

    def process_download(self, url: str) -> DownloadStatus:
        """
        Run one URL through the download pipeline.

        Returns:
            DownloadStatus describing the outcome
        """
        if self.state.shutting_down:
            return DownloadStatus.CANCELLED

        # Claimed before any I/O so concurrent duplicates never double-process
        if not self.state.claim_download(url):
            logger.debug(f"Skipping (already downloaded): {url}")
            return DownloadStatus.SKIPPED_ALREADY_QUEUED

        target = self.resolve_target(url)
        if not self.state.is_domain_allowed(target.domain):
            logger.debug(f"Skipping (domain not allowed): {target.domain}")
            return DownloadStatus.SKIPPED_DOMAIN

        if self.config.resume and os.path.isfile(target.filepath) and os.path.getsize(target.filepath) > 0:
            logger.debug(f"Skipping (already exists): {target.filename}")
            return DownloadStatus.SKIPPED_EXISTS

        filepath = self._reserve_path(target.filepath)
        media = MediaFile(url=url, domain=target.domain, filename=os.path.basename(filepath), filepath=filepath)

        if self.config.dry_run:
            logger.info(f"[DRY-RUN] Would download: {url} -> {filepath}")
            return DownloadStatus.DRY_RUN

        try:
            return self._download_media(media)
        finally:
            self._release_path(filepath)

    def _reserve_path(self, filepath: str) -> str:
        with self._lock:
            unique_path = ensure_unique_filepath(filepath, self._reserved_paths)
            self._reserved_paths.add(unique_path)
            return unique_path

    def _release_path(self, filepath: str):
        with self._lock:
            self._reserved_paths.discard(filepath)

    def _download_media(self, media: MediaFile) -> DownloadStatus:
        try:
            os.makedirs(os.path.dirname(media.filepath), exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create directory for {media.filepath}: {e}")
            return DownloadStatus.FAILED

        if not self._fetch_with_retries(media.url, media.filepath):
            remove_file(media.filepath)
            if self.state.shutting_down:
                return DownloadStatus.CANCELLED
            logger.error(f"Failed: {media.url}")
            return DownloadStatus.FAILED

        try:
            status = self._apply_filters(media)
        except Exception as e:
            logger.error(f"Could not verify {media.filepath}: {e}")
            status = DownloadStatus.FAILED

        if status is not DownloadStatus.SUCCESS:
            remove_file(media.filepath)
            return status

        log_success(logger, f"Downloaded: {media.filename}")
        with self._lock:
            self.downloaded_files.append(media.filepath)

        if self.config.delay_ms > 0:
            time.sleep(self.config.delay_ms / 1000.0)
        return DownloadStatus.SUCCESS

    def _apply_filters(self, media: MediaFile) -> DownloadStatus:
        """Post-download checks. Anything but SUCCESS means the file must go."""
        if os.path.getsize(media.filepath) == 0:
            logger.debug(f"Skipping (empty file): {media.filename}")
            return DownloadStatus.SKIPPED_EMPTY

        if self.config.skip_duplicates:
            file_hash = get_file_hash(media.filepath)
            if not self.state.register_content_hash(file_hash):
                logger.debug(f"Skipping duplicate: {media.filename}")
                return DownloadStatus.SKIPPED_DUPLICATE

        min_width, min_height = self.config.min_width, self.config.min_height
        if (min_width > 0 or min_height > 0) and is_measurable_image(media.filepath):
            dimensions = get_image_dimensions(media.filepath)
            if dimensions:
                width, height = dimensions
                if (min_width > 0 and width < min_width) or (min_height > 0 and height < min_height):
                    logger.debug(f"Skipping (too small): {media.filename} ({width}x{height})")
                    return DownloadStatus.SKIPPED_TOO_SMALL

        return DownloadStatus.SUCCESS

    # --- network ---

    def _fetch_with_retries(self, url: str, filepath: str) -> bool:
        """max_retries is the total number of attempts, with retry_delay_ms between them."""
        attempts = max(1, self.config.max_retries)
        for attempt in range(attempts):
            if self.state.shutting_down:
                return False
            if attempt > 0:
                logger.debug(f"Retrying ({attempt + 1}/{attempts}): {url}")
                time.sleep(self.config.retry_delay_ms / 1000.0)
            if self._fetch(url, filepath):
                return True
        return False

    def _fetch(self, url: str, filepath: str) -> bool:
        """
        One download attempt. Redirects are followed by hand, up to
        MAX_REDIRECTS, and do not count as extra attempts.
        """
        current_url = url
        for _ in range(MAX_REDIRECTS + 1):
            try:
                response = requests.get(current_url, headers=self.headers, stream=True,
                                        timeout=self.config.timeout, allow_redirects=False)
            except requests.RequestException as e:
                logger.debug(f"Request failed for {current_url}: {e}")
                return False

            with response:
                if response.status_code in REDIRECT_STATUSES:
                    location = response.headers.get('Location')
                    if not location:
                        logger.debug(f"Redirect without location ({response.status_code}): {current_url}")
                        return False
                    current_url = urljoin(current_url, location)
                    continue

                if response.status_code != 200:
                    logger.debug(f"Failed to download ({response.status_code}): {current_url}")
                    return False

                try:
                    with open(filepath, 'wb') as f:
                        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                            if chunk:
                                f.write(chunk)
                except (requests.RequestException, OSError) as e:
                    logger.debug(f"Stream error for {current_url}: {e}")
                    return False
                return True

        logger.debug(f"Too many redirects: {url}")
        return False
