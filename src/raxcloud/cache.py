"""Thread-safe cache for values that expire at a known time.

Holds a single value, such as an identity session, and refetches it once the
current time plus a skew reaches the value's own expiry. Fetches are
serialized so concurrent callers seeing a stale value trigger one fetch.
"""

import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AtomicExpiringCache(Generic[T]):
    """Thread-safe single-value cache with expiry-driven refetching.

    The value is replaced only when a fetch succeeds. A fetch that raises
    leaves the previously cached value (or its absence) in place.
    """

    def __init__(
        self,
        expires_at: Callable[[T], datetime],
        skew: timedelta = timedelta(0),
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the cache.

        Args:
            expires_at: Returns the timezone-aware expiry of a cached value.
            skew: Margin before expiry at which a value counts as stale.
            clock: Returns the current timezone-aware time.

        Raises:
            ValueError: If skew is negative.
        """
        if skew < timedelta(0):
            msg = "skew cannot be negative"
            raise ValueError(msg)

        self._lock = Lock()
        self._expires_at = expires_at
        self._skew = skew
        self._clock = clock
        self._cache: T | None = None

    @property
    def skew(self) -> timedelta:
        return self._skew

    def is_stale(self, value: T | None, now: datetime) -> bool:
        """Tell whether a value must be refetched at a given time."""
        if value is None:
            return True
        return now + self._skew >= self._expires_at(value)

    def peek(self) -> T | None:
        """Return the cached value without fetching, or None if empty."""
        with self._lock:
            return self._cache

    def fetch_or_reuse(self, fetch_func: Callable[[], T]) -> tuple[T, float | None]:
        """Return the cached value, fetching a new one if it is stale.

        Thread-safe operation: the staleness check, the fetch and the store
        happen under one lock, so callers arriving during a fetch wait for it
        and then reuse its result.

        Args:
            fetch_func: Function to fetch a fresh value.

        Returns:
            Tuple of (value, fetch_duration) where:
            - value: Cached or fresh value of type T
            - fetch_duration: Duration in seconds if fetched, None if cache hit

        Raises:
            Exception: Whatever fetch_func raises; the cache is unchanged.
        """
        with self._lock:
            now = self._clock()
            if not self.is_stale(self._cache, now):
                logger.debug(
                    "Using cached value",
                    expires_in_seconds=round(
                        (self._expires_at(self._cache) - now).total_seconds(), 2
                    ),
                )
                return self._cache, None

            return self._fetch(fetch_func)

    def refresh(self, fetch_func: Callable[[], T]) -> tuple[T, float]:
        """Fetch and store a new value regardless of the cached one.

        Args:
            fetch_func: Function to fetch a fresh value.

        Returns:
            Tuple of (value, fetch_duration).

        Raises:
            Exception: Whatever fetch_func raises; the cache is unchanged.
        """
        with self._lock:
            return self._fetch(fetch_func)

    def update_if_empty(self, action: Callable[[], None]) -> bool:
        """Run action while holding the lock, provided no value is cached.

        A fetch in progress holds the same lock, so action never overlaps a
        fetch and never runs once one has stored a value.

        Returns:
            True if action ran, False if a value was already cached.
        """
        with self._lock:
            if self._cache is not None:
                return False
            action()
            return True

    def invalidate(self) -> None:
        """Drop the cached value so the next lookup fetches."""
        with self._lock:
            self._cache = None

    def _fetch(self, fetch_func: Callable[[], T]) -> tuple[T, float]:
        start = time.time()
        data = fetch_func()
        duration = time.time() - start
        self._cache = data
        logger.debug(
            "Fetched fresh value",
            duration_seconds=duration,
        )
        return data, duration
