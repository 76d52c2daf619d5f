"""Allows `python -m media_downloader`."""

from .cli import run

run()
