"""Shared constants and small helpers for the sync and convert commands."""

from __future__ import annotations
import os
import re
import sys
from datetime import datetime, date, timedelta
from typing import Optional

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# ── Constants ────────────────────────────────────────────────────────────────
API_BASE_URL         = "https://api.limitless.ai"
API_VERSION          = "v1"
API_KEY_ENV_VAR      = "LIMITLESS_API_KEY"
API_DATE_FMT         = "%Y-%m-%d"
API_DATETIME_FMT     = "%Y-%m-%d %H:%M:%S"
MIN_API_DELAY_MS     = 3000
REQUEST_TIMEOUT      = 300
DEFAULT_DIR          = "transcripts"
DEFAULT_TZ           = "UTC"
PAGE_LIMIT           = 10
DEFAULT_POLL_MINUTES = 3
DIR_MODE             = 0o755

# ── Output ───────────────────────────────────────────────────────────────────
def eprint(msg: str, verbose: bool=False):
    if verbose:
        print(msg, file=sys.stderr)

def progress_print(msg: str, quiet: bool=False):
    if not quiet:
        print(msg, file=sys.stderr)

def warn(msg: str):
    print(msg, file=sys.stderr)

def plural(n: int, word: str, plural_form: Optional[str]=None) -> str:
    return f"{n} {word if n == 1 else (plural_form or word + 's')}"

# ── Environment ──────────────────────────────────────────────────────────────
def get_api_key() -> str:
    key = os.environ.get(API_KEY_ENV_VAR)
    if not key:
        print(f"Error: Missing {API_KEY_ENV_VAR}", file=sys.stderr)
        sys.exit(1)
    return key

def get_tz(name: str=DEFAULT_TZ) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        print(f"Warning: Timezone '{name}' not found; falling back to UTC.", file=sys.stderr)
        return ZoneInfo("UTC")

# ── Range bounds ─────────────────────────────────────────────────────────────
_RELATIVE_SPEC = re.compile(r"([dw])-(\d+)")

def parse_bound(spec: str, tz: ZoneInfo, today: Optional[date]=None) -> str:
    """
    Normalizes a --since/--until value to the API's modified ISO-8601 format.

    Accepts YYYY-MM-DD, "YYYY-MM-DD HH:MM:SS", ISO datetimes with a "T"
    separator (an offset, if any, is dropped as the API ignores it) and the
    relative forms d-N / w-N counted back from today in ``tz``.

    Raises ValueError for anything else.
    """
    spec = spec.strip()

    try:
        return datetime.strptime(spec, API_DATE_FMT).date().isoformat()
    except ValueError:
        pass

    try:
        return datetime.strptime(spec, API_DATETIME_FMT).strftime(API_DATETIME_FMT)
    except ValueError:
        pass

    if "T" in spec:
        try:
            return datetime.fromisoformat(spec.replace("Z", "+00:00")).strftime(API_DATETIME_FMT)
        except ValueError:
            pass

    match = _RELATIVE_SPEC.fullmatch(spec.lower())
    if match:
        unit, num = match.group(1), int(match.group(2))
        now_date = today or datetime.now(tz).date()
        delta = timedelta(days=num) if unit == "d" else timedelta(weeks=num)
        return (now_date - delta).isoformat()

    raise ValueError(f"Invalid date/time '{spec}' (expected YYYY-MM-DD, "
                     f"'YYYY-MM-DD HH:MM:SS', ISO-8601, d-N or w-N)")
