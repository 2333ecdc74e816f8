"""Tests for the TTL cache."""
from cache import TTLCache


class FakeClock:
  def __init__(self):
    self.now = 1000.0

  def __call__(self):
    return self.now


class TestTTLCache:
  """Expiry and loader behaviour"""

  def test_get_and_set(self):
    cache = TTLCache()
    cache.set("a", 1)

    assert cache.get("a") == 1
    assert cache.get("b") is None
    assert cache.get("b", "fallback") == "fallback"
    assert "a" in cache

  def test_entries_expire(self):
    clock = FakeClock()
    cache = TTLCache(default_ttl=120, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2, ttl=10)

    clock.now += 10
    assert cache.get("b") is None
    assert cache.get("a") == 1

    clock.now += 110
    assert "a" not in cache

  def test_zero_ttl_never_expires(self):
    clock = FakeClock()
    cache = TTLCache(default_ttl=0, clock=clock)
    cache.set("a", 1)

    clock.now += 10 ** 9
    assert cache.get("a") == 1

  def test_get_or_load(self):
    calls = []

    def loader():
      calls.append(1)
      return ["value"]

    cache = TTLCache(default_ttl=60)
    first = cache.get_or_load("k", loader)
    second = cache.get_or_load("k", loader)

    assert first is second
    assert len(calls) == 1

  def test_caches_falsy_values(self):
    calls = []
    cache = TTLCache()

    cache.get_or_load("k", lambda: calls.append(1) or [])
    cache.get_or_load("k", lambda: calls.append(1) or [])

    assert len(calls) == 1

  def test_delete_clear_prune(self):
    clock = FakeClock()
    cache = TTLCache(default_ttl=5, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2, ttl=0)
    cache.set("c", 3)

    cache.delete("c")
    cache.delete("missing")
    assert sorted(cache.keys()) == ["a", "b"]

    clock.now += 5
    assert cache.prune() == 1
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0
