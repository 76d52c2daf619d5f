"""
Deduplicator

Description: Removes duplicate and lower-quality media files by filename pattern, exact content and visual similarity
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
- Uses Pillow (HPND): https://github.com/python-pillow/Pillow
- Uses ImageHash (BSD 2-Clause): https://github.com/JohannesBuchner/imagehash
"""

import logging
import os
import re
from collections import defaultdict
from typing import Dict, List, Set, Tuple

from .exceptions import DirectoryAccessError
from .models import DedupResult, DuplicateGroup, DuplicateReason, FileInfo
from .utils.file_utils import (
    HASH_ALGORITHMS,
    format_bytes,
    get_file_hash,
    get_image_dimensions,
    get_visual_hash,
    hamming_distance,
    iter_media_files,
)
from .utils.logger import log_success
from .utils.url_utils import get_extension, is_measurable_image, is_video

logger = logging.getLogger(__name__)

# Suffixes that file managers and downloaders append to repeated names:
# photo_2, photo-2, photo (2), photo copy, photo copy 3
NUMERIC_SUFFIX_RE = re.compile(r'[_-]\d+$')
PAREN_SUFFIX_RE = re.compile(r'\s*\(\d+\)$')
COPY_SUFFIX_RE = re.compile(r'\s+copy(\s+\d+)?$', re.IGNORECASE)

REASON_LABELS = {
    DuplicateReason.IDENTICAL: "IDENTICAL",
    DuplicateReason.VISUAL: "VISUAL MATCH",
    DuplicateReason.FILENAME: "FILENAME",
}


def get_base_name(filename: str) -> str:
    """Stem of filename with one trailing copy/number suffix of each kind removed."""
    stem = os.path.splitext(filename)[0]
    stem = NUMERIC_SUFFIX_RE.sub('', stem)
    stem = PAREN_SUFFIX_RE.sub('', stem)
    stem = COPY_SUFFIX_RE.sub('', stem)
    return stem


def pick_best_quality(files: List[FileInfo]) -> FileInfo:
    """Highest pixel count wins, then largest file. Earlier files win exact ties."""
    return max(files, key=lambda f: (f.pixel_count, f.byte_size))


def pick_shortest_name(files: List[FileInfo]) -> FileInfo:
    return min(files, key=lambda f: len(f.filename))


class DuplicateScanner:
    """
    Finds and removes duplicate media under a directory.

    Three strategies run in order and each one only sees the survivors of the
    previous one:
      1. filename pattern (photo.jpg / photo_1.jpg / photo (2).jpg)
      2. exact content (SHA-256)
      3. visual similarity (perceptual hash within a hamming threshold)

    Dry-run reports the same groups a real run would delete, without touching
    the disk.
    """

    def __init__(self, hash_algorithm: str = "average_hash", hash_size: int = 8, similarity_threshold: int = 5):
        if hash_algorithm not in HASH_ALGORITHMS:
            raise ValueError(f"Unknown hash algorithm '{hash_algorithm}', expected one of {', '.join(HASH_ALGORITHMS)}")
        self.hash_algorithm = hash_algorithm
        self.hash_size = hash_size
        self.similarity_threshold = similarity_threshold

    # --- snapshot ---

    def find_media_files(self, directory: str) -> List[FileInfo]:
        """Snapshot every media file under directory, in sorted path order."""
        files = []
        for path in iter_media_files(directory):
            try:
                byte_size = os.path.getsize(path)
            except OSError as e:
                logger.debug(f"Error reading {path}: {e}")
                continue

            filename = os.path.basename(path)
            info = FileInfo(
                path=path,
                filename=filename,
                base_name=get_base_name(filename),
                extension=get_extension(filename),
                byte_size=byte_size,
            )
            if is_measurable_image(path):
                dimensions = get_image_dimensions(path)
                if dimensions:
                    info.width, info.height = dimensions
            files.append(info)
        return files

    # --- strategies ---

    def find_filename_duplicates(self, files: List[FileInfo]) -> List[DuplicateGroup]:
        """Group files by (directory, extension, base name) and keep the best of each group."""
        logger.info("Checking for numbered copies (filename pattern)...")
        by_identity: Dict[Tuple[str, str, str], List[FileInfo]] = defaultdict(list)
        for info in files:
            by_identity[(info.directory, info.extension, info.base_name)].append(info)

        groups = []
        for members in by_identity.values():
            if len(members) < 2:
                continue
            original = pick_best_quality(members)
            groups.append(DuplicateGroup(
                original=original,
                duplicates=[f for f in members if f is not original],
                reason=DuplicateReason.FILENAME,
            ))
        return groups

    def find_identical_files(self, files: List[FileInfo]) -> List[DuplicateGroup]:
        """Group byte-identical files; the shortest file name survives."""
        logger.info("Checking for identical files (content hash)...")
        by_hash: Dict[str, List[FileInfo]] = defaultdict(list)
        for info in files:
            try:
                info.content_hash = get_file_hash(info.path)
            except OSError as e:
                logger.debug(f"Failed to hash {info.filename}: {e}")
                continue
            by_hash[info.content_hash].append(info)

        groups = []
        for members in by_hash.values():
            if len(members) < 2:
                continue
            original = pick_shortest_name(members)
            groups.append(DuplicateGroup(
                original=original,
                duplicates=[f for f in members if f is not original],
                reason=DuplicateReason.IDENTICAL,
            ))
        return groups

    def find_visually_similar(self, files: List[FileInfo], excluded_hashes: Set[str]) -> List[DuplicateGroup]:
        """
        Greedy clustering on perceptual hashes.

        Files are taken in the given order. Each unassigned file seeds a
        cluster and pulls in every later unassigned file whose hash is within
        similarity_threshold bits of the seed's hash. Videos and files whose
        content hash was excluded by the identical-file pass are skipped.
        """
        logger.info("Checking for visually similar images (different resolutions)...")
        candidates = []
        for info in files:
            if is_video(info.path) or not is_measurable_image(info.path):
                continue
            if info.content_hash and info.content_hash in excluded_hashes:
                continue
            info.visual_hash = get_visual_hash(info.path, self.hash_algorithm, self.hash_size)
            if info.visual_hash:
                candidates.append(info)
            else:
                logger.debug(f"Failed to analyze {info.filename}")

        logger.debug(f"Analyzing {len(candidates)} images...")
        assigned = set()
        groups = []
        for index, seed in enumerate(candidates):
            if seed.path in assigned:
                continue
            assigned.add(seed.path)
            cluster = [seed]
            for other in candidates[index + 1:]:
                if other.path in assigned:
                    continue
                if hamming_distance(seed.visual_hash, other.visual_hash) <= self.similarity_threshold:
                    cluster.append(other)
                    assigned.add(other.path)

            if len(cluster) < 2:
                continue
            original = pick_best_quality(cluster)
            groups.append(DuplicateGroup(
                original=original,
                duplicates=[f for f in cluster if f is not original],
                reason=DuplicateReason.VISUAL,
            ))
        return groups

    # --- deletion ---

    def _apply_groups(self, groups: List[DuplicateGroup], directory: str, dry_run: bool,
                      result: DedupResult) -> Set[str]:
        """Delete (or report) every duplicate. Returns the paths that leave the candidate set."""
        removed = set()
        for group in groups:
            result.groups.append(group)
            result.found += len(group.duplicates)

            original = group.original
            dims = f" ({original.width}x{original.height})" if original.pixel_count else ""
            logger.info(f"[{REASON_LABELS[group.reason]}] Keeping: {original.filename}{dims}")

            for dup in group.duplicates:
                removed.add(dup.path)
                rel_path = os.path.relpath(dup.path, directory)
                dup_dims = f" {dup.width}x{dup.height}" if dup.pixel_count else ""
                detail = f"{rel_path} ({format_bytes(dup.byte_size)}{dup_dims})"

                if dry_run:
                    logger.warning(f"  Would delete: {detail}")
                    result.freed_bytes += dup.byte_size
                    continue

                try:
                    os.remove(dup.path)
                except OSError as e:
                    logger.error(f"  Failed to delete: {rel_path} - {e}")
                    continue
                log_success(logger, f"  Deleted: {detail}")
                result.deleted += 1
                result.freed_bytes += dup.byte_size
        return removed

    # --- entry point ---

    def scan(self, directory: str, dry_run: bool = False, filename_phase: bool = True,
             content_phase: bool = True, visual_phase: bool = True) -> DedupResult:
        """
        Run the enabled strategies over directory.

        Args:
            directory: Root of the tree to scan
            dry_run: Report instead of deleting
            filename_phase: Group numbered copies by name
            content_phase: Group byte-identical files
            visual_phase: Cluster visually similar images

        Returns:
            DedupResult with counts, bytes freed (or that would be freed) and the groups

        Raises:
            DirectoryAccessError: If directory is missing or not a directory
        """
        if not os.path.exists(directory):
            raise DirectoryAccessError(directory, "Cannot access directory")
        if not os.path.isdir(directory):
            raise DirectoryAccessError(directory, "Not a directory")

        logger.info(f"Scanning directory: {directory}")
        files = self.find_media_files(directory)
        logger.info(f"Found {len(files)} media files")

        result = DedupResult()
        excluded_hashes: Set[str] = set()

        if filename_phase:
            removed = self._apply_groups(self.find_filename_duplicates(files), directory, dry_run, result)
            files = [f for f in files if f.path not in removed]

        if content_phase:
            identical_groups = self.find_identical_files(files)
            for group in identical_groups:
                excluded_hashes.update(dup.content_hash for dup in group.duplicates)
            removed = self._apply_groups(identical_groups, directory, dry_run, result)
            files = [f for f in files if f.path not in removed]

        if visual_phase:
            self._apply_groups(self.find_visually_similar(files, excluded_hashes), directory, dry_run, result)

        self.log_summary(result, dry_run)
        return result

    def log_summary(self, result: DedupResult, dry_run: bool):
        logger.info("=== Summary ===")
        logger.info(f"Filename groups: {result.count_groups(DuplicateReason.FILENAME)}")
        logger.info(f"Identical file groups: {result.count_groups(DuplicateReason.IDENTICAL)}")
        logger.info(f"Visually similar groups: {result.count_groups(DuplicateReason.VISUAL)}")
        logger.info(f"Total duplicates: {result.found}")

        if dry_run:
            logger.info(f"Would free: {format_bytes(result.freed_bytes)}")
            logger.warning("Run without --dry-run to delete files")
        else:
            log_success(logger, f"Deleted: {result.deleted} files")
            log_success(logger, f"Freed: {format_bytes(result.freed_bytes)}")
