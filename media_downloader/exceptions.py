"""
Exceptions

Description: Fatal error types for the media downloader
Author: Eric Hiss (GitHub: EricRollei)
Contact: eric@historic.camera, eric@rollei.us
License: Dual License (Non-Commercial and Commercial Use)
Copyright (c) 2025 Eric Hiss. All rights reserved.
"""


class MediaDownloaderError(Exception):
    """Base class for errors that abort a whole run."""


class RendererInitError(MediaDownloaderError):
    """The browser could not be launched."""


class DirectoryAccessError(MediaDownloaderError):
    """A directory to scan does not exist or is not a directory."""

    def __init__(self, directory, reason="cannot access directory"):
        super().__init__(f"{reason}: {directory}")
        self.directory = directory
        self.reason = reason
