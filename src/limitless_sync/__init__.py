"""Public API for limitless_sync package."""

__version__ = "0.8.0"

from .api import ApiClient, ApiError, RateLimiter
from .cli import main
from .convert import ConversionError, json_to_md, json_to_txt, json_to_vtt, ms_to_timestamp
from .sync import SyncOptions, SyncSummary, download_missing, existing_ids, list_remote_ids, run_sync, sync_once

__all__ = [
    "ApiClient",
    "ApiError",
    "ConversionError",
    "RateLimiter",
    "SyncOptions",
    "SyncSummary",
    "download_missing",
    "existing_ids",
    "json_to_md",
    "json_to_txt",
    "json_to_vtt",
    "list_remote_ids",
    "main",
    "ms_to_timestamp",
    "run_sync",
    "sync_once",
]
