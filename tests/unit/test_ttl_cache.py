import pytest

from asap_auth.auth.ttl_cache import TTLCache


class TestTTLCache:
    """Test cases for TTLCache"""

    def test_get_missing_key(self, clock):
        cache = TTLCache(default_ttl=10, clock=clock)

        assert cache.get("missing") is None

    def test_get_within_ttl(self, clock):
        cache = TTLCache(default_ttl=10, clock=clock)
        cache.set("kid", b"pem")
        clock.advance(9.9)

        assert cache.get("kid") == b"pem"

    def test_entry_expires_after_ttl(self, clock):
        cache = TTLCache(default_ttl=10, clock=clock)
        cache.set("kid", b"pem")
        clock.advance(10)

        assert cache.get("kid") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self, clock):
        cache = TTLCache(default_ttl=10, clock=clock)
        cache.set("short", "a", ttl=1)
        cache.set("long", "b")
        clock.advance(5)

        assert cache.get("short") is None
        assert cache.get("long") == "b"

    def test_ttl_measured_from_last_write(self, clock):
        cache = TTLCache(default_ttl=10, clock=clock)
        cache.set("kid", "old")
        clock.advance(8)
        cache.set("kid", "new")
        clock.advance(8)

        assert cache.get("kid") == "new"

    def test_delete_and_clear(self, clock):
        cache = TTLCache(default_ttl=10, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.delete("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2

        cache.clear()
        assert len(cache) == 0

    def test_rejects_non_positive_ttl(self):
        with pytest.raises(ValueError):
            TTLCache(default_ttl=0)
