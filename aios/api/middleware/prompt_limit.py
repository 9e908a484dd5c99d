"""Open-access daily prompt limit for public demo hostnames.

Only active when no ``API_KEY`` is configured. Requests whose Host header
matches one of ``LIMITED_HOSTS`` are counted per (host, client IP, day in
``RATE_LIMIT_TIMEZONE``); once ``OPEN_ACCESS_DAILY_LIMIT`` is exceeded the
request is rejected with 429. Other hosts are unlimited.

The counter is injected so a shared backend can replace the in-process
one without touching the decision logic.
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime
from typing import Protocol
from zoneinfo import ZoneInfo

from fastapi import Request

from aios.api.middleware.auth import get_client_ip, get_expected_api_key
from aios.errors import RateLimitExceededError

logger = logging.getLogger(__name__)

DEFAULT_DAILY_LIMIT = 5
DEFAULT_TIMEZONE = "Africa/Lagos"


class PromptCounter(Protocol):
    def increment(self, key: str) -> int: ...


class InMemoryCounter:
    """Process-local increment-and-get counter.

    Keys embed the calendar day, so stale days are pruned on write.
    """

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._lock = threading.Lock()

    def increment(self, key: str) -> int:
        day = key.rsplit("|", 1)[-1]
        with self._lock:
            for stale in [k for k in self._counts if not k.endswith(f"|{day}")]:
                del self._counts[stale]
            self._counts[key] = self._counts.get(key, 0) + 1
            return self._counts[key]

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()


def get_limited_hosts() -> set[str]:
    raw = os.environ.get("LIMITED_HOSTS", "")
    return {h.strip().lower() for h in raw.split(",") if h.strip()}


def get_daily_limit() -> int:
    raw = os.environ.get("OPEN_ACCESS_DAILY_LIMIT", "").strip()
    try:
        return int(raw) if raw else DEFAULT_DAILY_LIMIT
    except ValueError:
        logger.warning("Invalid OPEN_ACCESS_DAILY_LIMIT %r, using %d", raw, DEFAULT_DAILY_LIMIT)
        return DEFAULT_DAILY_LIMIT


def get_rate_limit_timezone() -> ZoneInfo:
    return ZoneInfo(os.environ.get("RATE_LIMIT_TIMEZONE", "").strip() or DEFAULT_TIMEZONE)


def normalize_host(host: str | None) -> str:
    """Lowercase a Host header value and strip any port."""
    value = (host or "").strip().lower()
    if value.startswith("["):
        return value.split("]", 1)[0] + "]"
    return value.split(":", 1)[0]


class OpenAccessPromptLimiter:
    """FastAPI dependency enforcing the per-host daily prompt ceiling."""

    def __init__(self, counter: PromptCounter | None = None, now=None) -> None:
        self.counter = counter or InMemoryCounter()
        self._now = now

    def _today(self) -> str:
        tz = get_rate_limit_timezone()
        now = self._now() if self._now else datetime.now(tz)
        return now.astimezone(tz).strftime("%Y-%m-%d")

    def check(self, host: str | None, client_ip: str) -> None:
        """Count one prompt for this host and IP.

        Raises:
            RateLimitExceededError: When the daily ceiling is exceeded.
        """
        if get_expected_api_key():
            return
        limited = get_limited_hosts()
        if not limited:
            return
        normalized = normalize_host(host)
        if normalized not in limited:
            return

        limit = get_daily_limit()
        count = self.counter.increment(f"{normalized}|{client_ip}|{self._today()}")
        if count > limit:
            logger.warning("Open-access limit hit for %s on %s", client_ip, normalized)
            raise RateLimitExceededError(limit)

    async def __call__(self, request: Request) -> None:
        self.check(request.headers.get("host"), get_client_ip(request))


prompt_limiter = OpenAccessPromptLimiter()


def reset_prompt_limiter() -> None:
    """Reset the shared limiter state. Used by tests."""
    counter = prompt_limiter.counter
    if isinstance(counter, InMemoryCounter):
        counter.reset()
