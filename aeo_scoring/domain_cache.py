"""Per-domain research cache with single-flight population."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from aeo_scoring.utils.text import normalize_domain

logger = logging.getLogger(__name__)

Factory = Callable[[], Awaitable[Any]]
# (namespace, domain)
CacheKey = Tuple[str, str]


class DomainResearchCache:
    """
    Caches expensive per-domain research for the lifetime of the process.

    Concurrent first-time lookups for the same key share one pending task,
    so the factory runs at most once per key until the entry expires or is
    cleared. A factory that raises caches nothing; every waiter sees the
    error.

    Entries are namespaced per kind of research (domain authority,
    Wikipedia presence) so several domain rules can share one cache;
    clearing a domain drops all of its namespaces.
    """

    def __init__(self, ttl_seconds: float | None = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl_seconds
        self._clock = clock
        self._store: Dict[CacheKey, Tuple[Optional[float], Any]] = {}
        self._in_flight: Dict[CacheKey, asyncio.Task] = {}
        self._lock = asyncio.Lock()
        self.hits = 0
        self.misses = 0
        self.joined = 0
        self.computations = 0

    def _lookup(self, key: CacheKey) -> Tuple[bool, Any]:
        entry = self._store.get(key)
        if entry is None:
            return False, None
        expires_at, value = entry
        if expires_at is not None and self._clock() > expires_at:
            self._store.pop(key, None)
            return False, None
        return True, value

    def peek(self, domain: str, namespace: str = "") -> Any | None:
        """Cached value for ``domain`` without triggering research."""
        found, value = self._lookup((namespace, normalize_domain(domain)))
        return value if found else None

    async def get_or_compute(self, domain: str, factory: Factory, namespace: str = "") -> Any:
        key = (namespace, normalize_domain(domain))
        async with self._lock:
            found, value = self._lookup(key)
            if found:
                self.hits += 1
                return value
            task = self._in_flight.get(key)
            if task is None:
                self.misses += 1
                self.computations += 1
                logger.debug(f"Domain research cache miss for {key[1]} ({key[0] or 'default'})")
                task = asyncio.ensure_future(self._compute(key, factory))
                self._in_flight[key] = task
            else:
                self.joined += 1
        # shield so one cancelled waiter does not cancel the shared research
        return await asyncio.shield(task)

    async def _compute(self, key: CacheKey, factory: Factory) -> Any:
        try:
            value = await factory()
            expires_at = self._clock() + self.ttl if self.ttl is not None else None
            self._store[key] = (expires_at, value)
            return value
        finally:
            self._in_flight.pop(key, None)

    def clear(self, domain: str | None = None) -> None:
        """Drop every namespace cached for ``domain``, or everything when it is None."""
        if domain is None:
            self._store.clear()
            logger.info("Domain research cache cleared")
        else:
            domain = normalize_domain(domain)
            for key in [k for k in self._store if k[1] == domain]:
                del self._store[key]
            logger.info(f"Domain research cache cleared for {domain}")

    def stats(self) -> Dict[str, int]:
        return {
            "entries": len(self._store),
            "in_flight": len(self._in_flight),
            "hits": self.hits,
            "misses": self.misses,
            "joined": self.joined,
            "computations": self.computations,
        }

    def __len__(self) -> int:
        return len(self._store)
