"""HTTP access to the Limitless API."""

from __future__ import annotations
import time as _time_module
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlparse

import requests

from .util import (
    API_BASE_URL,
    API_VERSION,
    MIN_API_DELAY_MS,
    REQUEST_TIMEOUT,
    eprint,
)

BODY_EXCERPT_LIMIT = 200


class RateLimiter:
    """
    Enforces a minimum spacing between outbound API calls.

    The first call never waits. Every later call sleeps until ``min_delay_ms``
    have passed since the previous one, then records its own start time.
    """

    def __init__(self, min_delay_ms: int=MIN_API_DELAY_MS,
                 clock: Callable[[], float]=_time_module.monotonic,
                 sleep: Callable[[float], None]=_time_module.sleep):
        self.min_delay = min_delay_ms / 1000.0
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None

    def wait_if_needed(self) -> float:
        """Blocks as needed and returns the number of seconds waited."""
        waited = 0.0
        if self._last_call is not None:
            elapsed = self._clock() - self._last_call
            if elapsed < self.min_delay:
                waited = self.min_delay - elapsed
                self._sleep(waited)
        self._last_call = self._clock()
        return waited


class ApiError(Exception):
    def __init__(self, message: str, path: Optional[str]=None, status: Optional[int]=None):
        super().__init__(message)
        self.path = path
        self.status = status


def _excerpt(body: str) -> str:
    if len(body) > BODY_EXCERPT_LIMIT:
        return f"{body[:BODY_EXCERPT_LIMIT - 3]}..."
    return body


class ApiClient:
    def __init__(self, api_key: str, limiter: Optional[RateLimiter]=None,
                 session: Optional[requests.Session]=None,
                 base_url: str=f"{API_BASE_URL}/{API_VERSION}",
                 verbose: bool=False):
        self.key = api_key
        self.limiter = limiter or RateLimiter()
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.verbose = verbose

    def _log(self, msg: str):
        eprint(f"[API] {msg}", self.verbose)

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def fetch(self, path: str, params: Optional[Dict[str, Any]]=None) -> Any:
        """
        GETs ``path`` below the base URL and returns the decoded JSON body.

        Parameters whose value is None or "" are left out of the query string.
        Any failure (transport, non-2xx status, undecodable body) is raised as
        ApiError.
        """
        url = self.url_for(path)
        req_path = urlparse(url).path
        query = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
        headers = {"X-API-Key": self.key, "Accept": "application/json"}

        self.limiter.wait_if_needed()
        self._log(f"GET {url} params={query}")
        try:
            resp = self.session.get(url, headers=headers, params=query, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise ApiError(f"Network error while requesting {req_path}: {e}", path=req_path) from e

        if not 200 <= resp.status_code < 300:
            message = f"API request to {req_path} failed with status {resp.status_code}"
            body = _excerpt(resp.text or "")
            if body:
                message += f": {body}"
            raise ApiError(message, path=req_path, status=resp.status_code)

        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(f"Failed to parse JSON response from API path {req_path}: {e}",
                           path=req_path, status=resp.status_code) from e
