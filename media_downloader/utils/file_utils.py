"""
File Utils

Description: Content hashing, perceptual hashing, image measurement and path helpers
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

import hashlib
import logging
import os
from typing import AbstractSet, Iterator, Optional, Tuple

import imagehash
from PIL import Image, UnidentifiedImageError

from .url_utils import MEDIA_EXTENSIONS, get_extension

logger = logging.getLogger(__name__)

HASH_ALGORITHMS = ("average_hash", "phash", "dhash", "whash")
BUFFER_SIZE = 65536


def get_file_hash(filepath: str) -> str:
    """SHA-256 of a file's bytes as lowercase hex."""
    hasher = hashlib.sha256()
    with open(filepath, 'rb') as f:
        while True:
            chunk = f.read(BUFFER_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()


def get_visual_hash(filepath: str, hash_algorithm: str = "average_hash", hash_size: int = 8) -> Optional[str]:
    """
    Perceptual hash of an image, hex encoded.

    Args:
        filepath: Path to the image
        hash_algorithm: One of the imagehash functions in HASH_ALGORITHMS
        hash_size: Edge length of the hash grid (8 gives a 64-bit code)

    Returns:
        Hex string, or None if the file cannot be decoded as an image
    """
    hash_func = getattr(imagehash, hash_algorithm, None) if hash_algorithm in HASH_ALGORITHMS else None
    if hash_func is None:
        raise ValueError(f"Unknown hash algorithm '{hash_algorithm}'")

    try:
        with Image.open(filepath) as img:
            return str(hash_func(img, hash_size=hash_size))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.debug(f"Could not fingerprint {filepath}: {e}")
        return None


def hamming_distance(hash_a: str, hash_b: str) -> int:
    """Number of differing bits between two equal-length hex hashes."""
    return int(imagehash.hex_to_hash(hash_a) - imagehash.hex_to_hash(hash_b))


def get_image_dimensions(filepath: str) -> Optional[Tuple[int, int]]:
    """(width, height) of an image, or None if Pillow cannot read it."""
    try:
        with Image.open(filepath) as img:
            return img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.debug(f"Could not read dimensions of {filepath}: {e}")
        return None


def ensure_unique_filepath(filepath: str, reserved: AbstractSet[str] = frozenset()) -> str:
    """
    Return filepath, or the first 'name_N.ext' variant that does not exist yet.

    Paths in reserved count as taken even if nothing is on disk yet.
    """
    def taken(path):
        return path in reserved or os.path.exists(path)

    if not taken(filepath):
        return filepath

    stem, ext = os.path.splitext(filepath)
    counter = 1
    while True:
        candidate = f"{stem}_{counter}{ext}"
        if not taken(candidate):
            return candidate
        counter += 1


def remove_file(filepath: str) -> bool:
    """Delete a file if present. Returns True if nothing is left at the path."""
    try:
        os.remove(filepath)
        return True
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.error(f"Failed to remove {filepath}: {e}")
        return False


def iter_media_files(directory: str) -> Iterator[str]:
    """Walk a directory tree and yield media file paths in sorted order."""
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for name in sorted(files):
            if get_extension(name) in MEDIA_EXTENSIONS:
                yield os.path.join(root, name)


def count_media_files(directory: str) -> int:
    if not os.path.isdir(directory):
        return 0
    return sum(1 for _ in iter_media_files(directory))


def format_bytes(num_bytes: int) -> str:
    """Human readable size, e.g. '1.5 MB'."""
    if num_bytes <= 0:
        return "0 B"
    size = float(num_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"
