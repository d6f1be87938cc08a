"""
Command-line entry point for qbittui.

Parses options, loads the saved connection settings, configures logging and
hands the terminal to the event loop.

Usage:
    qbittui
    qbittui --url http://nas:8080 --username admin
    qbittui --url http://nas:8080 -u admin -p secret
"""

import argparse
import asyncio
import curses
import sys
from typing import List, Optional

from . import __version__
from .app import App
from .client import QBittorrentClient
from .config import Config
from .logger import configure as configure_logging, is_valid_timezone, logger
from .settings import load as load_settings
from .terminal import CursesTerminal
from .utils import normalize_url


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qbittui",
        description="Terminal client for the qBittorrent WebUI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s
  %(prog)s --url http://localhost:8080 --username admin
  %(prog)s --url nas:8080 -u admin -p adminadmin
  %(prog)s --poll-interval 3 --log-level DEBUG

Keys:
  Space pause/resume   d delete   a add   / or Ctrl+F search
  r refresh            Ctrl+L logout      q or Ctrl+Q quit
""",
    )
    parser.add_argument("--url", help=f"WebUI URL (default: last used, or {Config.DEFAULT_URL})")
    parser.add_argument("-u", "--username", help="WebUI username (default: last used)")
    parser.add_argument("-p", "--password", help="WebUI password; with --username logs in at startup")
    parser.add_argument("--config", default=Config.CONFIG_PATH, help="Settings file (default: %(default)s)")
    parser.add_argument("--poll-interval", type=float, default=Config.POLL_INTERVAL,
                        help="Seconds between list refreshes (default: %(default)s)")
    parser.add_argument("--log-level", default=Config.LOG_LEVEL,
                        choices=["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Log file level (default: %(default)s)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.poll_interval <= 0:
        parser.error("--poll-interval must be positive")

    settings = load_settings(args.config)
    timezone = settings.timezone if is_valid_timezone(settings.timezone) else Config.TIMEZONE
    configure_logging(level=args.log_level, timezone=timezone)

    try:
        url = normalize_url(args.url or settings.url or Config.DEFAULT_URL)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    username = args.username if args.username is not None else settings.username
    logger.info(f"Starting qbittui {__version__} for {url}")

    terminal = CursesTerminal()
    try:
        terminal.start()
    except curses.error as e:
        terminal.stop()
        print(f"Error: could not initialise the terminal: {e}", file=sys.stderr)
        return 1

    try:
        width, height = terminal.size()
        if width < Config.MIN_WIDTH or height < Config.MIN_HEIGHT:
            terminal.stop()
            print(
                f"Error: terminal is {width}x{height}, need at least "
                f"{Config.MIN_WIDTH}x{Config.MIN_HEIGHT}",
                file=sys.stderr,
            )
            return 1

        app = App(
            QBittorrentClient(),
            terminal,
            settings=settings,
            settings_path=args.config,
            url=url,
            username=username,
            password=args.password,
            poll_interval=args.poll_interval,
        )
        asyncio.run(app.run())
    except KeyboardInterrupt:
        return 130
    finally:
        terminal.stop()

    logger.info("qbittui exited")
    return 0


if __name__ == "__main__":
    sys.exit(main())
