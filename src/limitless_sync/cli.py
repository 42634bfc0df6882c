"""Command-line entry point: ``limitless sync`` and ``limitless convert``."""

from __future__ import annotations
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .api import ApiClient, RateLimiter
from .convert import CONVERTERS, run_convert
from .sync import SyncOptions, run_sync
from .util import (
    DEFAULT_DIR,
    DEFAULT_POLL_MINUTES,
    DEFAULT_TZ,
    MIN_API_DELAY_MS,
    PAGE_LIMIT,
    get_api_key,
    get_tz,
    parse_bound,
    warn,
)

EXIT_INTERRUPTED = 130


# ── Handlers ─────────────────────────────────────────────────────────────────
def handle_sync(args, api_key: str) -> int:
    tz = getattr(args, "tz", None) or get_tz(args.timezone or DEFAULT_TZ)
    opts = SyncOptions(
        dir=Path(args.dir),
        since=args.since,
        until=args.until,
        timezone=tz.key,
        limit=args.limit,
        poll=args.poll,
        verbose=args.verbose,
        quiet=args.quiet,
    )
    client = ApiClient(api_key, limiter=RateLimiter(MIN_API_DELAY_MS), verbose=args.verbose)
    summary = run_sync(client, opts)
    if summary.interrupted:
        return EXIT_INTERRUPTED
    return 1 if summary.error is not None else 0

def handle_convert(args, api_key: str) -> int:
    fmt = (args.type or args.fmt).lower()
    outdir = Path(args.outdir) if args.outdir else None
    summary = run_convert(fmt, args.files, outdir, quiet=args.quiet)
    return 1 if summary.errors else 0


# ── CLI Setup ────────────────────────────────────────────────────────────────
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="limitless", description="Limitless – Swiss-army knife for your lifelogs")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output for debugging.")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress messages to stderr.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subs = parser.add_subparsers(dest="cmd", title="Commands", required=True)

    # --- sync command ---
    p_sync = subs.add_parser("sync", help="Download every lifelog not yet present in the destination directory.")
    p_sync.add_argument("--dir", default=DEFAULT_DIR, help=f"Destination directory (default: ./{DEFAULT_DIR}).")
    p_sync.add_argument("--since", metavar="DATE_OR_TS", help="Start date/time (YYYY-MM-DD, 'YYYY-MM-DD HH:MM:SS', ISO-8601, d-N, w-N).")
    p_sync.add_argument("--until", metavar="DATE_OR_TS", help="End date/time (same formats as --since).")
    p_sync.add_argument("--poll", nargs="?", type=int, const=DEFAULT_POLL_MINUTES, metavar="N",
                        help=f"Poll every N minutes until interrupted (default N: {DEFAULT_POLL_MINUTES}).")
    p_sync.add_argument("--timezone", type=str, help=f"IANA timezone sent to the API (default: {DEFAULT_TZ}).")
    p_sync.add_argument("--limit", type=int, default=PAGE_LIMIT, help=f"Page size for listing requests (default: {PAGE_LIMIT}).")
    p_sync.set_defaults(func=handle_sync)

    def check_sync_args(args):
        if args.poll is not None and args.poll <= 0:
            parser.error("argument --poll: must be a positive number of minutes")
        if args.limit <= 0:
            parser.error("argument --limit: must be positive")
        args.tz = tz = get_tz(args.timezone or DEFAULT_TZ)
        for name in ("since", "until"):
            value = getattr(args, name)
            if value:
                try:
                    setattr(args, name, parse_bound(value, tz))
                except ValueError as e:
                    parser.error(f"argument --{name}: {e}")
    p_sync.set_defaults(check=check_sync_args)

    # --- convert command ---
    p_conv = subs.add_parser("convert", help="Convert downloaded JSON lifelogs to md, txt or vtt side-car files.")
    p_conv.add_argument("fmt", metavar="FORMAT", help="Output format: " + ", ".join(sorted(CONVERTERS)))
    p_conv.add_argument("files", nargs="*", metavar="FILE", help="Transcript JSON files or glob patterns.")
    p_conv.add_argument("--outdir", help="Output directory (default: next to each input file).")
    p_conv.add_argument("--type", choices=sorted(CONVERTERS), help="Conversion type – overrides the positional FORMAT.")
    p_conv.set_defaults(func=handle_convert)

    def check_convert_args(args):
        fmt = (args.type or args.fmt).lower()
        if fmt not in CONVERTERS:
            parser.error(f"Unknown conversion type {fmt!r} – expected md, txt, or vtt")
        if not args.files:
            parser.error(f"Provide transcript JSON files or glob patterns for {fmt.upper()} conversion.")
    p_conv.set_defaults(check=check_convert_args)

    return parser


def main(argv: Optional[List[str]]=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    api_key = get_api_key()

    if hasattr(args, "check") and callable(args.check):
        args.check(args)

    try:
        return args.func(args, api_key)
    except ValueError as e:
        warn(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        warn("\nInterrupted.")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
