"""
Sliding-window rate limiting for mockdb.

Each key is in one of two states: no entry (unbounded) or an active
window ``{count, window_start}``.

On check:
    - no entry, or ``now - window_start >= window_ms``: start a new window
      with count=1 and allow
    - ``count >= max``: deny, with retry_after in whole seconds
    - otherwise: increment count and allow

Invariants:
    - A denied check never mutates the entry
    - The skip predicate bypasses limiting without creating an entry
    - Entries older than the retention period are swept regardless of
      their window length
    - The sweep thread is a daemon and never blocks process exit

How to change safely:
    - Keep denial a returned result; callers decide whether to raise
    - Keep all times in milliseconds
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import RateLimiterSettings
from ..errors import RateLimitExceededError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def _wall_clock_ms() -> float:
    return time.time() * 1000


@dataclass(frozen=True)
class RateLimitConfig:
    """Limits for one kind of operation.

    Attributes:
        max: Maximum requests allowed in a window
        window_ms: Window length in milliseconds
        key_prefix: Namespace prepended as ``prefix:key``
        skip: Returns True for keys that are never limited
    """

    max: int
    window_ms: int
    key_prefix: Optional[str] = None
    skip: Optional[Callable[[str], bool]] = None

    def __post_init__(self) -> None:
        if self.max <= 0:
            raise ValueError(f"max must be positive, got {self.max}")
        if self.window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {self.window_ms}")

    def full_key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}" if self.key_prefix else key


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate limit check.

    Attributes:
        allowed: Whether the request may proceed
        remaining: Requests left in the current window
        limit: The configured max
        reset_time: Epoch milliseconds when the window ends
        retry_after: Seconds until a retry can succeed (denials only)
    """

    allowed: bool
    remaining: int
    limit: int
    reset_time: float
    retry_after: Optional[int] = None

    def raise_for_limit(self, key: str) -> None:
        """Raise RateLimitExceededError if this result is a denial."""
        if not self.allowed:
            raise RateLimitExceededError(key, self.retry_after or 0, self.limit)


@dataclass
class RateLimitEntry:
    count: int
    window_start: float


class RateLimiter:
    """Per-key sliding window counters with a background sweep.

    Each instance owns its table and its sweep thread, so isolated
    instances can coexist (one per test).

    Thread safety:
        All table access happens under one lock.

    Example:
        >>> limiter = RateLimiter()
        >>> result = limiter.check_rate_limit("user:123", RateLimitConfig(max=100, window_ms=60000))
        >>> if not result.allowed:
        ...     print(f"Retry after {result.retry_after}s")
        >>> limiter.destroy()
    """

    def __init__(
        self,
        settings: Optional[RateLimiterSettings] = None,
        clock: Optional[Clock] = None,
        auto_start: bool = True,
    ) -> None:
        """Initialize the limiter.

        Args:
            settings: Sweep interval and retention
            clock: Millisecond clock, wall time by default
            auto_start: Start the sweep thread immediately
        """
        self.settings = settings or RateLimiterSettings()
        self._clock = clock or _wall_clock_ms
        self._limits: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        if auto_start:
            self.start()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def size(self) -> int:
        """Number of tracked keys."""
        with self._lock:
            return len(self._limits)

    def start(self) -> None:
        """Start the periodic sweep (no-op if already running)."""
        if self.running:
            return
        self._stop = threading.Event()
        interval = self.settings.cleanup_interval_seconds

        def _sweep() -> None:
            while not self._stop.wait(interval):
                self.cleanup()

        self._thread = threading.Thread(target=_sweep, name="mockdb-rate-limit-sweep", daemon=True)
        self._thread.start()

    def destroy(self) -> None:
        """Stop the sweep thread and drop every entry."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        self.reset_all()

    def check_rate_limit(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Count one request for key and decide whether it is allowed.

        Args:
            key: Caller identity (user id, ip, ...)
            config: Limits to apply

        Returns:
            RateLimitResult; denial is a result, never an exception
        """
        now = self._clock()

        if config.skip is not None and config.skip(key):
            return RateLimitResult(
                allowed=True,
                remaining=config.max,
                limit=config.max,
                reset_time=now + config.window_ms,
            )

        full_key = config.full_key(key)
        with self._lock:
            entry = self._limits.get(full_key)

            if entry is None or now - entry.window_start >= config.window_ms:
                self._limits[full_key] = RateLimitEntry(count=1, window_start=now)
                return RateLimitResult(
                    allowed=True,
                    remaining=config.max - 1,
                    limit=config.max,
                    reset_time=now + config.window_ms,
                )

            reset_time = entry.window_start + config.window_ms
            if entry.count >= config.max:
                retry_after = math.ceil((reset_time - now) / 1000)
                logger.debug(f"Rate limited {full_key}: retry after {retry_after}s")
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    limit=config.max,
                    reset_time=reset_time,
                    retry_after=retry_after,
                )

            entry.count += 1
            return RateLimitResult(
                allowed=True,
                remaining=config.max - entry.count,
                limit=config.max,
                reset_time=reset_time,
            )

    def get_status(self, key: str, config: RateLimitConfig) -> Optional[RateLimitResult]:
        """Current window for key without counting a request, or None."""
        now = self._clock()
        with self._lock:
            entry = self._limits.get(config.full_key(key))
            if entry is None or now - entry.window_start >= config.window_ms:
                return None
            reset_time = entry.window_start + config.window_ms
            exhausted = entry.count >= config.max
            return RateLimitResult(
                allowed=not exhausted,
                remaining=max(0, config.max - entry.count),
                limit=config.max,
                reset_time=reset_time,
                retry_after=math.ceil((reset_time - now) / 1000) if exhausted else None,
            )

    def reset(self, key: str, key_prefix: Optional[str] = None) -> None:
        """Forget the entry for a key."""
        full_key = f"{key_prefix}:{key}" if key_prefix else key
        with self._lock:
            self._limits.pop(full_key, None)

    def reset_all(self) -> None:
        with self._lock:
            self._limits.clear()

    def cleanup(self, now: Optional[float] = None) -> int:
        """Drop entries whose window started longer ago than the retention.

        Returns:
            Number of entries removed
        """
        now = self._clock() if now is None else now
        max_age_ms = self.settings.retention_seconds * 1000
        with self._lock:
            expired = [k for k, e in self._limits.items() if now - e.window_start > max_age_ms]
            for key in expired:
                del self._limits[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired rate limit entries")
        return len(expired)

    def __enter__(self) -> RateLimiter:
        return self

    def __exit__(self, *exc: object) -> None:
        self.destroy()
