"""
Keyed cache with per-entry expiry

Owned by whoever wraps the lifecycle with I/O (CLI, web handler). The
lifecycle only uses a cache that is handed to it.

Usage:
  matches_cache = TTLCache(default_ttl=120)
  lifecycle = MatchLifecycle(dal, cache=matches_cache)
"""
import time
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple


class TTLCache:
  """In-memory cache; a TTL of 0 or None means "never expires" """

  def __init__(self, default_ttl: Optional[float] = 0, clock: Callable[[], float] = time.monotonic):
    self.default_ttl = default_ttl or 0
    self._clock = clock
    self._store: Dict[Hashable, Tuple[Any, float]] = {}

  def _expired(self, expires_at: float) -> bool:
    return expires_at > 0 and expires_at <= self._clock()

  def get(self, key: Hashable, default: Any = None) -> Any:
    entry = self._store.get(key)
    if entry is None:
      return default

    value, expires_at = entry
    if self._expired(expires_at):
      del self._store[key]
      return default
    return value

  def __contains__(self, key: Hashable) -> bool:
    marker = object()
    return self.get(key, marker) is not marker

  def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> Any:
    ttl = self.default_ttl if ttl is None else ttl
    expires_at = self._clock() + ttl if ttl and ttl > 0 else 0
    self._store[key] = (value, expires_at)
    return value

  def get_or_load(self, key: Hashable, loader: Callable[[], Any], ttl: Optional[float] = None) -> Any:
    """Return the cached value, calling loader() and caching its result on a miss"""
    marker = object()
    value = self.get(key, marker)
    if value is marker:
      value = self.set(key, loader(), ttl=ttl)
    return value

  def delete(self, key: Hashable):
    self._store.pop(key, None)

  def clear(self):
    self._store.clear()

  def prune(self) -> int:
    """Remove expired entries, returns how many were removed"""
    expired = [k for k, (_, expires_at) in self._store.items() if self._expired(expires_at)]
    for key in expired:
      del self._store[key]
    return len(expired)

  def keys(self) -> List[Hashable]:
    self.prune()
    return list(self._store.keys())

  def __len__(self) -> int:
    self.prune()
    return len(self._store)
