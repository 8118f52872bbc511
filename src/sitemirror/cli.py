"""
Command-line interface for the mirror.
"""
from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from sitemirror.core import (
    DEFAULT_TIMEOUT_S,
    DEFAULT_USER_AGENT,
    MirrorConfig,
    MirrorStats,
    mirror,
)


def print_summary(stats: MirrorStats) -> None:
    """Print run summary to stderr."""
    sys.stderr.write("\n" + "=" * 50 + "\n")
    sys.stderr.write("MIRROR SUMMARY\n")
    sys.stderr.write("=" * 50 + "\n\n")

    sys.stderr.write(f"Files fetched:          {stats.fetched}\n")
    sys.stderr.write(f"  of which resumed:     {stats.resumed}\n")
    sys.stderr.write(f"Already up to date:     {stats.up_to_date}\n")
    sys.stderr.write(f"Skipped by filters:     {stats.filtered}\n")
    sys.stderr.write(f"Beyond depth limit:     {stats.depth_exceeded}\n")
    sys.stderr.write(f"Bytes written:          {stats.bytes_written}\n\n")

    if stats.error_counts:
        sys.stderr.write("Errors by type:\n")
        for error_type, count in sorted(stats.error_counts.items()):
            label = "Connection errors" if error_type == "connection_error" else error_type
            sys.stderr.write(f"  {label}: {count}\n")
    else:
        sys.stderr.write("No errors encountered.\n")

    sys.stderr.write("\n")


def non_negative_int(value: str) -> int:
    """argparse type for --depth."""
    depth = int(value)
    if depth < 0:
        raise argparse.ArgumentTypeError(f"must be non-negative, got {value}")
    return depth


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="site-mirror",
        description="Recursively mirror same-host links from a URL into the current directory.",
    )
    parser.add_argument("url", help="Seed URL (http or https)")
    parser.add_argument(
        "--depth", type=non_negative_int, default=None,
        help="Depth for recursion (default: unbounded)",
    )
    parser.add_argument(
        "--include", action="append", default=[], metavar="REGEX",
        help="Regex of URLs to include, repeatable, e.g. --include 'blog.cr.yp.to/(.*html|.*jpg)$' (default: '.*')",
    )
    parser.add_argument(
        "--exclude", action="append", default=[], metavar="REGEX",
        help="Regex of URLs to leave out, repeatable, e.g. --exclude 'blog.cr.yp.to/.*js$'",
    )
    parser.add_argument(
        "--refresh", action="append", default=[], metavar="REGEX",
        help="Regex of URLs that are always downloaded again, repeatable, e.g. --refresh '\\.md5$'",
    )
    parser.add_argument("--resume", action="store_true", help="Resume previously downloaded files")
    parser.add_argument(
        "--timeout", type=float, default=DEFAULT_TIMEOUT_S,
        help=f"Request timeout in seconds (default: {DEFAULT_TIMEOUT_S:g})",
    )
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="User-Agent header")
    parser.add_argument("--verbose", action="store_true", help="Show skipped URLs and a summary")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the mirror CLI."""
    args = build_parser().parse_args(argv)

    config = MirrorConfig(
        seed_url=args.url,
        max_depth=args.depth,
        include=args.include,
        exclude=args.exclude,
        refresh=args.refresh,
        resume=args.resume,
        timeout_s=args.timeout,
        user_agent=args.user_agent,
        verbose=args.verbose,
    )

    try:
        stats = mirror(config)
    except (ValueError, OSError) as e:
        sys.stderr.write(f"error: {e}\n")
        return 1

    if args.verbose:
        print_summary(stats)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
