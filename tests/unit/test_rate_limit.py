"""
Unit tests for the sliding-window rate limiter.

Tests cover:
- Window state machine and retry_after
- Skip predicate and key prefixes
- Reset, status and retention sweep
- Sweep thread lifecycle

All tests drive an injected clock; none sleep.
"""

import pytest

from mockdb.config import RateLimiterSettings
from mockdb.errors import RateLimitExceededError
from mockdb.security.rate_limit import RateLimitConfig, RateLimiter


@pytest.fixture
def limiter(clock):
    """Limiter without a sweep thread, driven by the fake clock."""
    lim = RateLimiter(clock=clock, auto_start=False)
    yield lim
    lim.destroy()


CONFIG = RateLimitConfig(max=3, window_ms=1000)


class TestWindowing:
    """Tests for check_rate_limit."""

    def test_max_then_deny(self, limiter, clock):
        """Four checks within the window: allowed, allowed, allowed, denied."""
        results = []
        for _ in range(4):
            results.append(limiter.check_rate_limit("k", CONFIG))
            clock.advance(100)

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]

    def test_retry_after(self, limiter, clock):
        """retry_after is the ceiling of the remaining window in seconds."""
        for _ in range(3):
            limiter.check_rate_limit("k", CONFIG)
        clock.advance(150)

        denied = limiter.check_rate_limit("k", CONFIG)

        assert denied.retry_after == 1
        assert denied.reset_time == clock.now - 150 + 1000

    def test_window_elapses(self, limiter, clock):
        """After the window a check starts fresh with count 1."""
        for _ in range(4):
            limiter.check_rate_limit("k", CONFIG)
        clock.advance(1000)

        result = limiter.check_rate_limit("k", CONFIG)

        assert result.allowed is True
        assert result.remaining == 2

    def test_denial_does_not_mutate(self, limiter):
        """Denied checks leave the entry alone."""
        for _ in range(10):
            limiter.check_rate_limit("k", CONFIG)
        status = limiter.get_status("k", CONFIG)
        assert status.allowed is False
        assert status.remaining == 0

    def test_keys_are_independent(self, limiter):
        for _ in range(3):
            limiter.check_rate_limit("a", CONFIG)
        assert limiter.check_rate_limit("a", CONFIG).allowed is False
        assert limiter.check_rate_limit("b", CONFIG).allowed is True

    def test_raise_for_limit(self, limiter):
        """Denials convert to RateLimitExceededError on demand."""
        for _ in range(3):
            limiter.check_rate_limit("k", CONFIG).raise_for_limit("k")
        denied = limiter.check_rate_limit("k", CONFIG)
        with pytest.raises(RateLimitExceededError) as exc_info:
            denied.raise_for_limit("k")
        assert exc_info.value.limit == 3
        assert exc_info.value.retry_after == 1


class TestConfig:
    """Tests for RateLimitConfig options."""

    def test_skip_bypasses_without_entry(self, limiter):
        """Skipped keys are never counted or stored."""
        trusted = RateLimitConfig(max=1, window_ms=1000, skip=lambda key: key == "admin")
        for _ in range(5):
            assert limiter.check_rate_limit("admin", trusted).allowed is True
        assert limiter.size == 0

    def test_key_prefix(self, limiter):
        """Prefixes namespace the same key."""
        login = RateLimitConfig(max=1, window_ms=1000, key_prefix="login")
        api = RateLimitConfig(max=1, window_ms=1000, key_prefix="api")

        assert limiter.check_rate_limit("u1", login).allowed is True
        assert limiter.check_rate_limit("u1", login).allowed is False
        assert limiter.check_rate_limit("u1", api).allowed is True
        assert limiter.size == 2

    @pytest.mark.parametrize("kwargs", [{"max": 0, "window_ms": 1}, {"max": 1, "window_ms": 0}])
    def test_invalid_config(self, kwargs):
        with pytest.raises(ValueError):
            RateLimitConfig(**kwargs)


class TestStateManagement:
    """Tests for reset, status and cleanup."""

    def test_reset_key(self, limiter):
        """reset() forgets one key."""
        for _ in range(3):
            limiter.check_rate_limit("k", CONFIG)
        limiter.reset("k")
        assert limiter.check_rate_limit("k", CONFIG).allowed is True

    def test_reset_with_prefix(self, limiter):
        login = RateLimitConfig(max=1, window_ms=1000, key_prefix="login")
        limiter.check_rate_limit("u1", login)
        limiter.reset("u1", key_prefix="login")
        assert limiter.size == 0

    def test_reset_all(self, limiter):
        limiter.check_rate_limit("a", CONFIG)
        limiter.check_rate_limit("b", CONFIG)
        limiter.reset_all()
        assert limiter.size == 0

    def test_get_status_does_not_count(self, limiter):
        """Status reads never consume a request."""
        assert limiter.get_status("k", CONFIG) is None
        limiter.check_rate_limit("k", CONFIG)
        for _ in range(5):
            status = limiter.get_status("k", CONFIG)
        assert status.allowed is True
        assert status.remaining == 2

    def test_cleanup_uses_retention_not_window(self, clock):
        """Entries are swept by age even while their window is active."""
        limiter = RateLimiter(RateLimiterSettings(retention_seconds=60), clock=clock, auto_start=False)
        long_window = RateLimitConfig(max=5, window_ms=10 * 60 * 1000)
        limiter.check_rate_limit("old", long_window)
        clock.advance(30_000)
        limiter.check_rate_limit("new", long_window)
        clock.advance(30_001)

        removed = limiter.cleanup()

        assert removed == 1
        assert limiter.get_status("old", long_window) is None
        assert limiter.get_status("new", long_window) is not None

    def test_default_retention_is_one_day(self, limiter, clock):
        limiter.check_rate_limit("k", CONFIG)
        assert limiter.cleanup(now=clock.now + 24 * 60 * 60 * 1000) == 0
        assert limiter.cleanup(now=clock.now + 24 * 60 * 60 * 1000 + 1) == 1


class TestLifecycle:
    """Tests for the sweep thread."""

    def test_start_and_destroy(self, clock):
        """The sweep thread is a daemon and stops on destroy."""
        limiter = RateLimiter(clock=clock)
        assert limiter.running is True
        assert limiter._thread.daemon is True

        limiter.check_rate_limit("k", CONFIG)
        limiter.destroy()

        assert limiter.running is False
        assert limiter.size == 0

    def test_start_is_idempotent(self, limiter):
        limiter.start()
        thread = limiter._thread
        limiter.start()
        assert limiter._thread is thread

    def test_context_manager(self, clock):
        with RateLimiter(clock=clock) as limiter:
            assert limiter.running
        assert not limiter.running

    def test_instances_are_isolated(self, clock):
        """Separate instances never share state."""
        first = RateLimiter(clock=clock, auto_start=False)
        second = RateLimiter(clock=clock, auto_start=False)
        for _ in range(3):
            first.check_rate_limit("k", CONFIG)
        assert first.check_rate_limit("k", CONFIG).allowed is False
        assert second.check_rate_limit("k", CONFIG).allowed is True
