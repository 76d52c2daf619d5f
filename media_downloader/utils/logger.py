"""
Logger

Description: Coloured console logging for the media downloader CLI
Author: Eric Hiss (GitHub: EricRollei)
Contact: eric@historic.camera, eric@rollei.us
License: Dual License (Non-Commercial and Commercial Use)
Copyright (c) 2025 Eric Hiss. All rights reserved.
"""

import logging
import sys

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

# 94 bright blue, 92 bright green, 93 yellow, 91 red
LEVEL_COLORS = {
    logging.DEBUG: "90",
    logging.INFO: "94",
    SUCCESS: "92",
    logging.WARNING: "93",
    logging.ERROR: "91",
    logging.CRITICAL: "91",
}

PACKAGE_LOGGER = "media_downloader"


def colored_print(message, color_code="94"):
    """
    Prints a message in the specified ANSI color.
    Args:
        message (str): The message to print.
        color_code (str): ANSI color code as a string (default is "94" for bright blue).
        94 is bright blue, 92 is bright green, 93 is yellow, 91 is red.
    """
    print(f"\033[{color_code}m{message}\033[0m")


class ColoredFormatter(logging.Formatter):
    """Wraps each record in the colour of its level when writing to a terminal."""

    def __init__(self, use_color=True):
        super().__init__("%(message)s")
        self.use_color = use_color

    def format(self, record):
        message = super().format(record)
        if not self.use_color:
            if record.levelno >= logging.WARNING:
                return f"[{record.levelname}] {message}"
            return message
        color = LEVEL_COLORS.get(record.levelno, "0")
        return f"\033[{color}m{message}\033[0m"


def setup_logging(verbose=False, stream=None):
    """
    Configure the package logger.

    Verbose mode lowers the threshold to DEBUG so every skip reason is shown.
    Calling this again replaces the previous handler.
    """
    stream = stream or sys.stderr
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(ColoredFormatter(use_color=hasattr(stream, "isatty") and stream.isatty()))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    return logger


def log_success(logger, message, *args):
    logger.log(SUCCESS, message, *args)
