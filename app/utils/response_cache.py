"""TTL response cache with calendar-day invalidation.

An entry is served only while its TTL holds AND the calendar boundary it was
computed under still matches. A "today" figure cached at 23:59 is stale at
00:00 even if the TTL has seconds left.

Usage:
    from app.utils.response_cache import get_response_cache

    @router.get("/heavy-endpoint")
    def heavy_endpoint(cache: ResponseCache = Depends(get_response_cache)):
        return cache.get_or_compute(
            f"heavy:{brand_id}:{day}",
            lambda: expensive(brand_id),
            ttl=60,
            boundary_fn=lambda: local_day_string(datetime.now(), tz),
        )
"""
import threading
import time
from typing import Any, Callable, Optional

from fastapi import Request

from app.utils.logger import log


class ResponseCache:
    """Thread-safe in-memory cache with TTL expiry and max-entry limit."""

    def __init__(self, max_entries: int = 80, clock: Callable[[], float] = time.time):
        # key -> (expires_at, boundary, value)
        self._store: dict[str, tuple[float, Any, Any]] = {}
        self._lock = threading.Lock()
        self._max_entries = max_entries
        self._clock = clock

    def get(self, key: str, boundary: Any = None) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expires_at, stored_boundary, value = entry
            if self._clock() > expires_at or stored_boundary != boundary:
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: int = 300, boundary: Any = None) -> None:
        with self._lock:
            # Evict expired entries first to stay under limit
            if len(self._store) >= self._max_entries:
                now = self._clock()
                expired = [k for k, (exp, _, _) in self._store.items() if now > exp]
                for k in expired:
                    del self._store[k]
            # If still at limit, evict oldest entry
            if len(self._store) >= self._max_entries:
                oldest_key = min(self._store, key=lambda k: self._store[k][0])
                del self._store[oldest_key]
            self._store[key] = (self._clock() + ttl, boundary, value)

    def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Any],
        ttl: int = 300,
        boundary_fn: Optional[Callable[[], Any]] = None,
    ) -> Any:
        """Return the cached value for key, computing and storing it on a miss."""
        boundary = boundary_fn() if boundary_fn else None
        cached = self.get(key, boundary)
        if cached is not None:
            log.debug(f"Cache hit for {key}")
            return cached
        value = compute_fn()
        if value is not None:
            self.set(key, value, ttl=ttl, boundary=boundary)
        return value

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def invalidate(self, prefix: str) -> int:
        """Remove all keys starting with prefix. Returns count removed."""
        with self._lock:
            keys = [k for k in self._store if k.startswith(prefix)]
            for k in keys:
                del self._store[k]
            return len(keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


def get_response_cache(request: Request) -> ResponseCache:
    """FastAPI dependency: the cache created in the app lifespan."""
    return request.app.state.response_cache
