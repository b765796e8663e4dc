#!/usr/bin/env python3
"""
CLI interface for dupe resolver
"""

import os
import sys
import signal
import logging
import argparse
import threading

from .core import HASH_METHODS, find_files, calculate_checksums
from .errors import ScanCancelled
from .report import get_report
from .resolver import find_and_resolve
from .rules import load_rules

logger = logging.getLogger("dupe_resolver")


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Find duplicate files and remove copies according to directory rules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Rules file (JSON):
  {"rules": [{"keep": "/photos/albums", "remove": "/photos/phone-backup"}]}

Examples:
  dupe-resolver /photos -c rules.json
  dupe-resolver /photos -c rules.json --show-names
  dupe-resolver /photos -c rules.json --workers 4 --hash sha256
  dupe-resolver /photos -c rules.json --live
        """
    )

    parser.add_argument(
        "directory",
        help="Directory to scan for duplicates"
    )
    parser.add_argument(
        "-c", "--rules",
        required=True,
        help="JSON file listing keep/remove directory rules"
    )
    parser.add_argument(
        "--live",
        action="store_true",
        help="Delete files matched by a rule (default: only report)"
    )
    parser.add_argument(
        "--hash",
        choices=HASH_METHODS,
        default="md5",
        help="Digest algorithm (default: md5)"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of threads used for hashing (default: 1)"
    )
    parser.add_argument(
        "--resolve-symlinks",
        action="store_true",
        help="Compare real paths of directories when matching rules"
    )
    parser.add_argument(
        "--no-file-list",
        action="store_true",
        help="Do not list every scanned file in the report"
    )
    parser.add_argument(
        "--show-names",
        action="store_true",
        help="Also report files sharing the same name"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress progress output"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every hashed file"
    )

    return parser.parse_args(argv)


def validate_args(args: argparse.Namespace) -> None:
    """Validate command line arguments"""
    if not os.path.isdir(args.directory):
        raise ValueError(f"'{args.directory}' is not a valid directory")

    if args.quiet and args.verbose:
        raise ValueError("Cannot use both --quiet and --verbose")

    if args.workers < 1:
        raise ValueError("Workers must be at least 1")


def setup_logging(args: argparse.Namespace) -> None:
    level = logging.INFO
    if args.quiet:
        level = logging.WARNING
    elif args.verbose:
        level = logging.DEBUG

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)


def progress_callback(processed: int, total: int) -> None:
    """Display progress updates"""
    print(f"Processed {processed} of {total} files...", end='\r', file=sys.stderr)


def main(argv=None) -> None:
    """Main CLI entry point"""
    try:
        args = parse_args(argv)
        validate_args(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(args)

    cancel_event = threading.Event()

    def handle_interrupt(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        cancel_event.set()
        print("\nStopping after the current file...", file=sys.stderr)

    previous_handler = signal.signal(signal.SIGINT, handle_interrupt)

    try:
        rules = load_rules(args.rules)

        logger.info("Scanning directory: %s", args.directory)
        logger.info("Mode: %s, hash: %s", "live" if args.live else "dry run", args.hash)

        logger.info("Looking for files...")
        records = find_files(args.directory)

        logger.info("Calculating checksums...")
        calculate_checksums(
            records,
            hash_method=args.hash,
            workers=args.workers,
            progress_callback=progress_callback if not args.quiet else None,
            cancel_event=cancel_event
        )

        logger.info("Reporting duplicates...")
        result = find_and_resolve(
            records,
            rules,
            live=args.live,
            resolve_symlinks=args.resolve_symlinks,
            cancel_event=cancel_event
        )

        print(get_report(result, show_files=not args.no_file_list, show_names=args.show_names))

        if result.cancelled:
            print("\nOperation cancelled by user", file=sys.stderr)
            sys.exit(130)

    except (KeyboardInterrupt, ScanCancelled):
        if not args.quiet:
            print("\n\nOperation cancelled by user", file=sys.stderr)
        sys.exit(130)

    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)

    finally:
        signal.signal(signal.SIGINT, previous_handler)


if __name__ == "__main__":
    main()
