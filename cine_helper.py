#!/usr/bin/env python3
"""
Cine2Nerdle Helper command line.

Ranks connection moves out of a movie, manages the saved token and priority
filter, and can watch a saved board HTML file the way the browser helper
polls the live page.

Usage:
    cine_helper.py "Alien" --year 1979 --played "Alien (1979)" --used "Sigourney Weaver"
    cine_helper.py --set-token eyJ...
    cine_helper.py --genre Horror --decade 1980 --save-filter
    cine_helper.py --watch board.html
"""

import argparse
import logging
import sys
from pathlib import Path

from board_watcher import BoardWatcher, TickResult
from bundle_builder import MovieBundleBuilder
from cache import FileCache
from connection_engine import rank
from constants import CACHE_DIR, DECADES, GENRE_IDS, HELPER_VERSION, POLL_INTERVAL_SECONDS
from game_state import GameState, parse_board
from logging_config import configure_logging
from models import PriorityFilter, make_local_key
from presentation import render_options
from settings import SettingsStore
from tmdb_client import ProviderError, TMDBClient

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rank Cine2Nerdle Battle connection moves",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s "Alien" --year 1979
  %(prog)s "Alien" --year 1979 --played "Alien (1979)" --played "Aliens (1986)" --used "Sigourney Weaver"
  %(prog)s "Alien" --year 1979 --genre Horror --decade 1980
  %(prog)s --set-token eyJhbGciOi...
  %(prog)s --watch board.html
        """
    )
    parser.add_argument("title", nargs='?', help="Movie in play")
    parser.add_argument("--year", "-y", type=int, help="Release year of the movie in play")
    parser.add_argument("--played", "-p", action="append", default=[],
                        help="Movie already on the board, as 'Title (Year)' (repeatable)")
    parser.add_argument("--used", "-u", action="append", default=[],
                        help="Connection name already used (repeat for each use)")
    parser.add_argument("--genre", "-g", action="append", default=[],
                        choices=sorted(GENRE_IDS), help="Priority genre (repeatable)")
    parser.add_argument("--decade", type=int, choices=DECADES, help="Priority decade")
    parser.add_argument("--save-filter", action="store_true",
                        help="Save --genre/--decade as the priority filter")
    parser.add_argument("--clear-filter", action="store_true", help="Clear the saved priority filter")
    parser.add_argument("--set-token", metavar="TOKEN", help="Save the TMDB read access token")
    parser.add_argument("--clear-cache", action="store_true",
                        help="Clear cached movies and people (keeps token and filter)")
    parser.add_argument("--watch", metavar="HTML_FILE",
                        help="Poll a saved board HTML file and print recommendations")
    parser.add_argument("--interval", type=float, default=POLL_INTERVAL_SECONDS,
                        help="Poll interval for --watch in seconds")
    parser.add_argument("--cache-dir", default=CACHE_DIR, help="Cache directory")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {HELPER_VERSION}")
    return parser


def _watch(watcher: BoardWatcher, html_file: Path, interval: float) -> int:
    last_output = None

    def show(result: TickResult) -> None:
        nonlocal last_output
        output = result.status
        if result.bundle is not None and not result.is_error:
            output += "\n" + render_options(result.options, result.is_setup_phase)
        if output != last_output:
            print(output)
            print("-" * 60)
            last_output = output

    watcher.read_state = lambda: parse_board(html_file.read_text(encoding="utf-8"))
    watcher.on_result = show
    try:
        watcher.run(interval=interval)
    except KeyboardInterrupt:
        pass
    return 0


def main(argv=None) -> int:
    """Command-line interface."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(level="DEBUG" if args.verbose else "WARNING")

    cache = FileCache(args.cache_dir)
    settings = SettingsStore(cache)

    if args.set_token:
        try:
            settings.set_api_token(args.set_token)
        except ValueError as e:
            print(f"Failed to save: {e}", file=sys.stderr)
            return 1
        print(f"API key saved! ({settings.masked_token})")

    if args.clear_cache:
        count = settings.clear_cache()
        print(f"Cache cleared! ({count} entries)")

    cli_filter = PriorityFilter(genres=tuple(args.genre), decade=args.decade)
    if args.clear_filter:
        settings.clear_priority_filter()
        print("Priority filter cleared")
    elif args.save_filter:
        settings.set_priority_filter(cli_filter)
        print(f"Priority filter saved: {cli_filter.describe() or 'none'}")

    with TMDBClient(api_token=settings.api_token) as client:
        builder = MovieBundleBuilder(client, cache)

        if args.watch:
            html_file = Path(args.watch)
            if not html_file.exists():
                print(f"No such file: {html_file}", file=sys.stderr)
                return 1
            return _watch(BoardWatcher(builder, settings), html_file, args.interval)

        if not args.title:
            if args.set_token or args.clear_cache or args.save_filter or args.clear_filter:
                return 0
            parser.print_help()
            return 1

        if args.year is None:
            print("--year is required", file=sys.stderr)
            return 1

        priority_filter = cli_filter if not cli_filter.is_empty else settings.get_priority_filter()
        state = GameState(
            current_movie=(args.title, args.year),
            played=tuple(args.played),
            used_connections=tuple(args.used),
        )

        print(f"Loading: {make_local_key(args.title, args.year)}...")
        try:
            bundle = builder.build(args.title, args.year)
        except ProviderError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        options = rank(bundle, state, priority_filter)
        print(f"Loaded: {len(bundle.people)} cast/crew")
        if not priority_filter.is_empty:
            print(f"Active: {priority_filter.describe()}")
        print("-" * 60)
        print(render_options(options, state.is_setup_phase))

    return 0


if __name__ == "__main__":
    sys.exit(main())
