"""Unit tests for TokenCache."""

from datetime import datetime, timedelta, timezone

from citation_sweep.adapters.http.token_cache import TokenCache

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class TestTokenCache:
    def test_empty(self) -> None:
        cache = TokenCache()
        assert cache.get() is None
        assert not cache.is_valid()

    def test_cached_until_expiry(self) -> None:
        clock = FakeClock(NOW)
        cache = TokenCache(clock=clock)
        cache.cache("secret", NOW + timedelta(minutes=5))

        assert cache.get() == "secret"
        clock.now = NOW + timedelta(minutes=5)
        assert cache.get() is None
        # cleared, not just hidden
        clock.now = NOW
        assert cache.get() is None

    def test_naive_expiry_treated_as_utc(self) -> None:
        cache = TokenCache(clock=FakeClock(NOW))
        cache.cache("secret", datetime(2024, 3, 15, 13, 0))
        assert cache.is_valid()

    def test_no_expiry(self) -> None:
        cache = TokenCache()
        cache.cache("secret")
        assert cache.get() == "secret"

    def test_clear(self) -> None:
        cache = TokenCache()
        cache.cache("secret")
        cache.clear()
        assert cache.get() is None
