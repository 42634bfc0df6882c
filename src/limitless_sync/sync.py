"""
Incremental mirror of remote lifelogs into a directory of <id>.json files.

A pass lists every remote id (newest first), diffs that list against the ids
already present on disk and fetches only the missing records. A record file is
written once and never touched again; deleting it makes the record eligible
for download on the next pass.
"""

from __future__ import annotations
import json
import os
import tempfile
import time as _time_module
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set
from urllib.parse import quote

from .api import ApiClient, ApiError
from .util import (
    DEFAULT_DIR,
    DEFAULT_TZ,
    DIR_MODE,
    PAGE_LIMIT,
    plural,
    progress_print,
    eprint,
    warn,
)


@dataclass
class SyncOptions:
    dir: Path = Path(DEFAULT_DIR)
    since: Optional[str] = None
    until: Optional[str] = None
    timezone: str = DEFAULT_TZ
    limit: int = PAGE_LIMIT
    poll: Optional[int] = None
    verbose: bool = False
    quiet: bool = False
    dir_mode: int = DIR_MODE


@dataclass
class RemoteListing:
    ids: List[str] = field(default_factory=list)
    error: Optional[ApiError] = None

    @property
    def complete(self) -> bool:
        return self.error is None


@dataclass
class SyncSummary:
    remote: int = 0
    local: int = 0
    missing: int = 0
    downloaded: int = 0
    listing_complete: bool = True
    interrupted: bool = False
    error: Optional[BaseException] = None

    @property
    def failed(self) -> int:
        return self.missing - self.downloaded


# ── Local index ──────────────────────────────────────────────────────────────
def existing_ids(directory: Path) -> Set[str]:
    directory = Path(directory)
    if not directory.is_dir():
        return set()
    return {p.stem for p in directory.glob("*.json") if p.is_file()}


# ── Lister ───────────────────────────────────────────────────────────────────
def _short_cursor(cursor: Optional[str]) -> str:
    if cursor is None:
        return "none"
    cursor = str(cursor)
    if len(cursor) <= 16:
        return cursor
    return f"{cursor[:8]}…{cursor[-8:]}"

def _page_lifelogs(page) -> Optional[list]:
    """The page's lifelog summaries, or None when the body is not a listing."""
    if not isinstance(page, dict):
        return None
    data = page.get("data") or {}
    if not isinstance(data, dict):
        return None
    lifelogs = data.get("lifelogs") or []
    return lifelogs if isinstance(lifelogs, list) else None

def list_remote_ids(client: ApiClient, since: Optional[str]=None, until: Optional[str]=None,
                    timezone: str=DEFAULT_TZ, page_limit: int=PAGE_LIMIT,
                    quiet: bool=False) -> RemoteListing:
    """
    Walks the listing endpoint page by page and collects lifelog ids in the
    order the API returns them.

    Stops when a page has no nextCursor or no lifelogs. A failing page ends the
    walk early: the ids gathered so far are returned together with the error.
    """
    listing = RemoteListing()
    cursor: Optional[str] = None
    progress_print("Fetching list of lifelogs from API...", quiet)
    while True:
        try:
            page = client.fetch("lifelogs", {
                "timezone": timezone,
                "includeMarkdown": "false",
                "includeHeadings": "false",
                "limit": str(page_limit),
                "direction": "desc",
                "start": since,
                "end": until,
                "cursor": cursor,
            })
            lifelogs = _page_lifelogs(page)
            if lifelogs is None:
                raise ApiError("Unexpected response shape from API path /v1/lifelogs", path="/v1/lifelogs")
        except ApiError as e:
            warn(f"API Error while listing lifelogs (cursor={cursor!r}): {e}")
            warn(f"Proceeding with {plural(len(listing.ids), 'ID')} collected")
            listing.error = e
            break

        listing.ids.extend(str(lg["id"]) for lg in lifelogs if isinstance(lg, dict) and lg.get("id"))

        meta = page.get("meta")
        meta = meta.get("lifelogs") if isinstance(meta, dict) else None
        next_cursor = meta.get("nextCursor") if isinstance(meta, dict) else None
        progress_print(f" Fetched {plural(len(lifelogs), 'ID')} (next: {_short_cursor(next_cursor)})", quiet)

        # Either signal ends the walk; a non-null cursor may still accompany an empty page.
        if not next_cursor or not lifelogs:
            break
        cursor = next_cursor
    return listing


# ── Downloader ───────────────────────────────────────────────────────────────
def write_record(path: Path, payload) -> int:
    """Writes ``payload`` as pretty-printed JSON, atomically replacing ``path``."""
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.write("\n")
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    return path.stat().st_size

def is_plain_id(lifelog_id: str) -> bool:
    """True when the id can name a file directly inside the destination directory."""
    if not lifelog_id or lifelog_id in (".", ".."):
        return False
    return Path(lifelog_id).name == lifelog_id and "\\" not in lifelog_id

def download_missing(client: ApiClient, missing_ids: Iterable[str], dest_dir: Path,
                     timezone: str=DEFAULT_TZ, quiet: bool=False,
                     on_saved: Optional[Callable[[str], None]]=None) -> int:
    """
    Fetches each id in turn and stores it as ``<dest_dir>/<id>.json``.

    An id that is not a plain file name, a fetch failure or a write failure is
    reported and that id is skipped. ``on_saved`` is called after every file
    written. Returns the number of files written.
    """
    missing_ids = list(missing_ids)
    if not missing_ids:
        return 0

    dest_dir = Path(dest_dir)
    total = len(missing_ids)
    progress_print(f"Downloading {plural(total, 'new entry', 'new entries')}...", quiet)
    downloaded = 0
    for idx, lifelog_id in enumerate(missing_ids, 1):
        prefix = f"[{idx}/{total}] {lifelog_id}"
        if not is_plain_id(lifelog_id):
            warn(f"{prefix}: Error: id is not a valid file name – skipping.")
            continue
        eprint(f"{prefix}: Fetching...", client.verbose)
        try:
            entry = client.fetch(f"lifelogs/{quote(lifelog_id, safe='')}", {
                "timezone": timezone,
                "includeMarkdown": "true",
                "includeHeadings": "true",
            })
        except ApiError as e:
            warn(f"{prefix}: Error fetching details: {e} – skipping.")
            continue

        path = dest_dir / f"{lifelog_id}.json"
        try:
            size = write_record(path, entry)
        except OSError as e:
            warn(f"{prefix}: Error writing file {path}: {e} – skipping.")
            continue
        progress_print(f"{prefix}: Saved ({size} bytes) -> {path}", quiet)
        downloaded += 1
        if on_saved is not None:
            on_saved(lifelog_id)
    return downloaded


# ── Orchestrator ─────────────────────────────────────────────────────────────
def sync_once(client: ApiClient, opts: SyncOptions) -> SyncSummary:
    """
    Runs one pass. Never raises for ordinary failures or Ctrl-C: both are
    reported and recorded on the returned summary.
    """
    summary = SyncSummary()
    dest = Path(opts.dir)
    try:
        print("Limitless Sync:")
        print(f"  {{ dir={dest}, since={opts.since or 'API default'}, until={opts.until or 'API default'} }}")
        dest.mkdir(mode=opts.dir_mode, parents=True, exist_ok=True)

        local_ids = existing_ids(dest)
        listing = list_remote_ids(client, opts.since, opts.until, opts.timezone, opts.limit, opts.quiet)
        summary.listing_complete = listing.complete

        remote_ids = list(dict.fromkeys(listing.ids))
        missing = [i for i in remote_ids if i not in local_ids]
        summary.remote = len(remote_ids)
        summary.local = summary.remote - len(missing)
        summary.missing = len(missing)

        print("Summary:")
        print(f"  {summary.remote} found remotely" + ("" if listing.complete else " (listing incomplete)"))
        print(f"- {summary.local} already downloaded")
        print("====")
        print(f"  {summary.missing} to download")

        def count_saved(_lifelog_id: str):
            summary.downloaded += 1

        download_missing(client, missing, dest, opts.timezone, opts.quiet, on_saved=count_saved)

        finished = f"Finished: {plural(summary.downloaded, 'new entry', 'new entries')} added"
        if summary.failed:
            finished += f", {summary.failed} failed"
        print(finished)
    except KeyboardInterrupt:
        warn("\nSync operation interrupted by user.")
        if summary.downloaded:
            warn(f"{plural(summary.downloaded, 'new entry', 'new entries')} saved before interrupt")
        summary.interrupted = True
    except Exception as e:
        warn(f"Error during sync operation: {e}")
        eprint(traceback.format_exc(), opts.verbose)
        summary.error = e
    return summary

def run_sync(client: ApiClient, opts: SyncOptions,
             sleep: Callable[[float], None]=_time_module.sleep) -> SyncSummary:
    """Runs one pass, or keeps polling every ``opts.poll`` minutes until interrupted."""
    if not opts.poll:
        return sync_once(client, opts)

    print(f"Polling every {opts.poll} min – Ctrl-C to stop.")
    while True:
        summary = sync_once(client, opts)
        if summary.interrupted:
            return summary
        try:
            sleep(opts.poll * 60)
        except KeyboardInterrupt:
            warn("\nPolling stopped by user.")
            summary.interrupted = True
            return summary
