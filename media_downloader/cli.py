"""
Media Downloader Cli

Description: Command-line interface for crawling a site, downloading its media and removing duplicates
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
- Uses Playwright (Apache 2.0): https://github.com/microsoft/playwright
- Uses Requests (Apache 2.0): https://github.com/psf/requests
- Uses ImageHash (BSD 2-Clause): https://github.com/JohannesBuchner/imagehash
"""

import argparse
import asyncio
import json
import logging
import os
import re
import signal
import sys
from typing import List, Optional

from . import __version__
from .browser import PlaywrightRenderer
from .crawler import Crawler
from .deduplicator import DuplicateScanner
from .downloader import Downloader
from .exceptions import DirectoryAccessError, MediaDownloaderError
from .models import Config, CrawlState, DedupResult
from .site_handlers import discover_allowed_domains
from .utils import colored_print, get_settings_manager, setup_logging
from .utils.file_utils import HASH_ALGORITHMS, count_media_files, format_bytes
from .utils.url_utils import get_domain, normalize_url

logger = logging.getLogger(__name__)

COMMANDS = ("download", "dedup", "config")
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130

SCHEME_RE = re.compile(r'^https?://', re.IGNORECASE)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser"""
    parser = argparse.ArgumentParser(
        prog="media-downloader",
        description="Downloads images and videos from websites using browser automation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Seed page plus every page it links to
  media-downloader example.com

  # Two levels deep, only images of at least 800px on both sides
  media-downloader download https://example.com/gallery -d 2 --min-dim 800 -o gallery

  # See what a dedup pass would delete
  media-downloader dedup ./example.com --dry-run

  # Change a persistent default
  media-downloader config --set download.concurrency=8
        """
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    # Download command (default)
    download = subparsers.add_parser("download", help="Download media from a URL")
    download.add_argument("url", help="Page to start from; https:// is assumed when no scheme is given")
    download.add_argument(
        "--depth", "-d",
        type=int,
        help="Recursion depth, 0 = initial page only (default: 1)"
    )
    download.add_argument(
        "--output", "-o",
        help="Output directory (default: ./<domain>)"
    )
    download.add_argument(
        "--concurrency", "-c",
        type=int,
        help="Parallel downloads (default: 5)"
    )
    download.add_argument(
        "--min-width",
        type=int,
        default=0,
        help="Minimum image width (default: 0)"
    )
    download.add_argument(
        "--min-height",
        type=int,
        default=0,
        help="Minimum image height (default: 0)"
    )
    download.add_argument(
        "--min-dim",
        type=int,
        help="Set both min-width and min-height"
    )
    download.add_argument(
        "--allow-duplicates",
        action="store_true",
        help="Keep byte-identical files and numbered copies"
    )
    download.add_argument(
        "--no-visual-dedup",
        action="store_true",
        help="Disable visual similarity detection"
    )
    download.add_argument(
        "--resume",
        action="store_true",
        help="Skip files that already exist in the output directory"
    )
    download.add_argument(
        "--timeout",
        type=float,
        help="Page load and request timeout in seconds (default: 30)"
    )
    download.add_argument(
        "--delay-ms",
        type=int,
        help="Pause after each download in milliseconds (default: 100)"
    )
    download.add_argument(
        "--max-retries",
        type=int,
        help="Download attempts per file (default: 3)"
    )
    download.add_argument(
        "--hash-algorithm",
        choices=HASH_ALGORITHMS,
        help="Perceptual hash for visual deduplication (default: average_hash)"
    )
    _add_common_arguments(download, "Show what would be downloaded")

    # Dedup command
    dedup = subparsers.add_parser("dedup", help="Scan a directory for duplicate files and remove them")
    dedup.add_argument("directory", help="Directory to scan")
    dedup.add_argument(
        "--hash-algorithm",
        choices=HASH_ALGORITHMS,
        help="Perceptual hash for visual matching (default: average_hash)"
    )
    dedup.add_argument(
        "--threshold",
        type=int,
        help="Maximum hamming distance for a visual match (default: 5)"
    )
    _add_common_arguments(dedup, "Show what would be deleted without deleting")

    # Config command
    config = subparsers.add_parser("config", help="Show or change persistent defaults")
    config.add_argument(
        "--set",
        action="append",
        default=[],
        metavar="SECTION.KEY=VALUE",
        help="Change a persistent default, e.g. download.depth=2. Can be repeated."
    )
    config.add_argument("--settings", help="Settings file (default: ~/.media_downloader/settings.json)")

    return parser


def _add_common_arguments(parser, dry_run_help):
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help=dry_run_help
    )
    parser.add_argument("--settings", help="Settings file (default: ~/.media_downloader/settings.json)")


def normalize_argv(argv: List[str]) -> List[str]:
    """Make 'download' the default command: 'media-downloader example.com' works."""
    if not argv:
        return argv
    first = argv[0]
    if first in COMMANDS or first in ("-h", "--help", "--version"):
        return argv
    return ["download"] + list(argv)


def validate_args(args) -> None:
    """Validate command line arguments"""
    if args.command == "download":
        if args.min_dim is not None:
            args.min_width = args.min_dim
            args.min_height = args.min_dim

        # Validate dimensions
        if args.min_width < 0 or args.min_height < 0:
            raise ValueError("Minimum dimensions cannot be negative")
        if args.depth is not None and args.depth < 0:
            raise ValueError("Depth cannot be negative")
        if args.concurrency is not None and args.concurrency <= 0:
            raise ValueError("Concurrency must be positive")
        if args.timeout is not None and args.timeout <= 0:
            raise ValueError("Timeout must be positive")
        if args.delay_ms is not None and args.delay_ms < 0:
            raise ValueError("Delay cannot be negative")
        if args.max_retries is not None and args.max_retries <= 0:
            raise ValueError("Max retries must be positive")

        url = args.url.strip()
        if not SCHEME_RE.match(url):
            url = f"https://{url}"
        normalized = normalize_url(url)
        if not normalized:
            raise ValueError(f"Not a valid http(s) URL: {args.url}")
        args.url = normalized

    elif args.command == "dedup":
        if args.threshold is not None and args.threshold < 0:
            raise ValueError("Threshold cannot be negative")

    elif args.command == "config":
        for assignment in args.set:
            key, sep, _ = assignment.partition("=")
            if not sep or "." not in key:
                raise ValueError(f"Expected SECTION.KEY=VALUE, got '{assignment}'")


def _pick(value, default):
    return default if value is None else value


def build_config(args, settings) -> Config:
    """Merge explicit flags over persistent defaults into a Config."""
    defaults = settings.get_all("download")
    seed_domain = get_domain(args.url)
    return Config(
        url=args.url,
        depth=_pick(args.depth, defaults["depth"]),
        output_dir=args.output or os.path.join(".", seed_domain),
        concurrency=_pick(args.concurrency, defaults["concurrency"]),
        verbose=args.verbose,
        dry_run=args.dry_run,
        min_width=args.min_width,
        min_height=args.min_height,
        skip_duplicates=not args.allow_duplicates,
        visual_dedup=not args.no_visual_dedup,
        resume=args.resume,
        delay_ms=_pick(args.delay_ms, defaults["delay_ms"]),
        timeout=float(_pick(args.timeout, defaults["timeout"])),
        max_retries=_pick(args.max_retries, defaults["max_retries"]),
        retry_delay_ms=defaults["retry_delay_ms"],
        network_idle_timeout_ms=defaults["network_idle_timeout_ms"],
        hash_algorithm=_pick(args.hash_algorithm, defaults["hash_algorithm"]),
        hash_size=defaults["hash_size"],
        similarity_threshold=defaults["similarity_threshold"],
    )


def format_results(config: Config, downloader: Downloader, pages_visited: int,
                   dedup_result: Optional[DedupResult], total_files: int) -> str:
    """Format download session results for output"""
    stats = downloader.get_stats()
    lines = [
        "🎉 Download complete!" if not config.dry_run else "🎉 Dry run complete!",
        "=" * 50,
        f"📁 Output Directory: {config.output_dir}",
        f"📄 Pages Visited: {pages_visited}",
    ]

    if config.dry_run:
        lines.append(f"📋 Would download: {stats['dry_run']}")
    else:
        lines.append(f"⬇️  Downloaded: {stats['success']}")
    lines.append(f"⏭️  Skipped: {downloader.skipped_count}")

    if stats["failed"] > 0:
        lines.append(f"❌ Failed: {stats['failed']}")
    if stats["cancelled"] > 0:
        lines.append(f"⏹️  Cancelled: {stats['cancelled']}")

    if dedup_result is not None:
        verb = "Would remove" if config.dry_run else "Deduplicated"
        lines.append(f"🔄 {verb}: {dedup_result.found} ({format_bytes(dedup_result.freed_bytes)})")

    lines.append(f"🖼️  Total files: {total_files}")
    return "\n".join(lines)


async def download_session(config: Config, renderer=None) -> int:
    """
    Run one crawl: discover domains, crawl with streaming downloads, then dedup.

    Returns:
        Process exit code
    """
    state = CrawlState()
    renderer = renderer or PlaywrightRenderer(
        user_agent=config.user_agent,
        network_idle_timeout_ms=config.network_idle_timeout_ms,
    )
    downloader = None
    loop = asyncio.get_running_loop()
    timeout_ms = int(config.timeout * 1000)

    def handle_interrupt():
        if state.shutting_down:
            # Second Ctrl+C falls through to the default KeyboardInterrupt
            loop.remove_signal_handler(signal.SIGINT)
            return
        colored_print("\n⏹️  Interrupt received, finishing in-flight work (Ctrl+C again to force)", "93")
        state.request_shutdown()
        if downloader is not None:
            downloader.shutdown(cancel_pending=True, wait_for_workers=False)

    try:
        loop.add_signal_handler(signal.SIGINT, handle_interrupt)
        signal_handler_installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        signal_handler_installed = False

    logger.info(f"Starting download from: {config.url}")
    logger.info(f"Source domain: {get_domain(config.url)}")
    logger.info(f"Recursion depth: {config.depth}")
    logger.info(f"Output directory: {config.output_dir}")
    if config.min_width > 0 or config.min_height > 0:
        logger.info(f"Minimum dimensions: {config.min_width}x{config.min_height}px")
    logger.info(f"Duplicate detection: {'enabled' if config.skip_duplicates else 'disabled'}")
    logger.info(f"Visual similarity detection: {'enabled' if config.visual_dedup else 'disabled'}")
    if config.dry_run:
        logger.info("DRY RUN MODE")

    crawler = None
    try:
        await renderer.init()

        logger.info("Discovering allowed domains...")
        state.set_allowed_domains(await discover_allowed_domains(renderer, config.url, timeout_ms))
        logger.info("Allowed domains:")
        for domain in sorted(state.allowed_domains):
            logger.info(f"  - {domain}")

        downloader = Downloader(config, state)
        crawler = Crawler(renderer, state, config)
        await crawler.crawl(config.url, config.depth, sink=downloader.enqueue)
        await loop.run_in_executor(None, downloader.wait_for_completion)
    except KeyboardInterrupt:
        state.request_shutdown()
    finally:
        if signal_handler_installed:
            loop.remove_signal_handler(signal.SIGINT)
        await renderer.close()
        if downloader is not None:
            downloader.shutdown(cancel_pending=state.shutting_down)

    if state.shutting_down:
        colored_print("\n⏹️  Download interrupted by user", "93")
        return EXIT_INTERRUPTED

    if crawler is not None and crawler.pages_rendered == 0:
        logger.error(f"Could not load seed page: {config.url}")
        return EXIT_ERROR

    dedup_result = None
    if (config.skip_duplicates or config.visual_dedup) and os.path.isdir(config.output_dir):
        scanner = DuplicateScanner(config.hash_algorithm, config.hash_size, config.similarity_threshold)
        dedup_result = scanner.scan(
            config.output_dir,
            dry_run=config.dry_run,
            filename_phase=config.skip_duplicates,
            content_phase=config.skip_duplicates,
            visual_phase=config.visual_dedup,
        )

    total_files = count_media_files(config.output_dir)
    colored_print(format_results(config, downloader, len(state.visited_pages), dedup_result, total_files), "92")
    return EXIT_OK


def run_dedup(args, settings) -> int:
    defaults = settings.get_all("dedup")
    directory = os.path.abspath(args.directory)
    try:
        scanner = DuplicateScanner(
            hash_algorithm=_pick(args.hash_algorithm, defaults["hash_algorithm"]),
            hash_size=defaults["hash_size"],
            similarity_threshold=_pick(args.threshold, defaults["similarity_threshold"]),
        )
        scanner.scan(directory, dry_run=args.dry_run, filename_phase=False)
    except (DirectoryAccessError, ValueError) as e:
        logger.error(f"Failed: {e}")
        return EXIT_ERROR
    return EXIT_OK


def run_config(args, settings) -> int:
    for assignment in args.set:
        key, _, value = assignment.partition("=")
        section, _, name = key.partition(".")
        try:
            saved = settings.set(section.strip(), name.strip(), value.strip())
        except ValueError as e:
            logger.error(f"Invalid value for {key}: {e}")
            return EXIT_ERROR
        if not saved:
            return EXIT_ERROR
        colored_print(f"✅ {section}.{name} = {settings.get(section.strip(), name.strip())!r}", "92")

    if not args.set:
        colored_print(f"📋 Settings file: {settings.settings_file}", "94")
        print(json.dumps(settings.as_dict(), indent=2))
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI function"""
    parser = create_parser()
    argv = normalize_argv(list(sys.argv[1:] if argv is None else argv))
    if not argv:
        parser.print_help()
        return EXIT_ERROR
    args = parser.parse_args(argv)

    setup_logging(verbose=getattr(args, "verbose", False))

    try:
        validate_args(args)
    except ValueError as e:
        colored_print(f"❌ Argument error: {e}", "91")
        return EXIT_ERROR

    settings = get_settings_manager(args.settings)

    if args.command == "config":
        return run_config(args, settings)
    if args.command == "dedup":
        return run_dedup(args, settings)

    config = build_config(args, settings)
    try:
        return asyncio.run(download_session(config))
    except KeyboardInterrupt:
        colored_print("\n⏹️  Download interrupted by user", "93")
        return EXIT_INTERRUPTED
    except MediaDownloaderError as e:
        logger.error(f"Fatal error: {e}")
        return EXIT_ERROR


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
