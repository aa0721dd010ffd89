"""Utilities for applying delay and rate limiting to backend calls."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import EnrichmentOptions, EnrichmentResult


@dataclass
class DelayPolicy:
    """Fixed pause applied after every backend call."""

    delay_seconds: float = 0.0


class RateLimiter:
    """Enforces a minimum interval between calls, shared across threads."""

    def __init__(self, calls_per_minute: Optional[float]) -> None:
        self._interval = 60.0 / float(calls_per_minute) if calls_per_minute else 0.0
        self._lock = threading.Lock()
        self._next_available = 0.0

    @property
    def interval(self) -> float:
        return self._interval

    def acquire(self) -> None:
        if self._interval <= 0:
            return
        with self._lock:
            now = time.monotonic()
            if now < self._next_available:
                time.sleep(self._next_available - now)
                now = time.monotonic()
            self._next_available = now + self._interval


class RateLimitedBackend:
    """Wrap a search or scraping backend with rate limiting, a post-call delay and a display name.

    The wrapper exposes both ``search`` and ``scrape_urls``; only the one the
    wrapped backend implements may be called.
    """

    def __init__(
        self,
        backend,
        *,
        display_name: Optional[str] = None,
        kind: str = "search",
        timeout_seconds: Optional[float] = None,
        delay_policy: Optional[DelayPolicy] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self._backend = backend
        self._display_name = display_name
        self.kind = kind
        self.timeout_seconds = timeout_seconds
        self._delay_policy = delay_policy or DelayPolicy()
        self._rate_limiter = rate_limiter or RateLimiter(None)

    @property
    def name(self) -> str:
        if self._display_name:
            return self._display_name
        return getattr(self._backend, "name", self._backend.__class__.__name__)

    @property
    def wrapped(self):
        return self._backend

    def search(self, name: str, company: str, options: EnrichmentOptions) -> EnrichmentResult:
        self._rate_limiter.acquire()
        try:
            return self._backend.search(name, company, options)
        finally:
            self._pause()

    def scrape_urls(
        self, urls: Iterable[str], name: str, company: str, options: EnrichmentOptions
    ) -> EnrichmentResult:
        self._rate_limiter.acquire()
        try:
            return self._backend.scrape_urls(list(urls), name, company, options)
        finally:
            self._pause()

    def _pause(self) -> None:
        if self._delay_policy.delay_seconds > 0:
            time.sleep(self._delay_policy.delay_seconds)

    def is_configured(self) -> bool:
        checker = getattr(self._backend, "is_configured", None)
        return bool(checker()) if callable(checker) else True

    def __getattr__(self, item):  # pragma: no cover - simple delegation
        return getattr(self._backend, item)


__all__ = ["DelayPolicy", "RateLimitedBackend", "RateLimiter"]
