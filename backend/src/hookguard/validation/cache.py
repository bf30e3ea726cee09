"""Validation result cache.

Bounded LRU cache with a time-to-live. Entries are keyed by
"<category>:<operation>:<fingerprint>" so a whole category can be dropped
when its rules change. Expired entries are removed lazily on read and by a
periodic sweep that runs independently of reads.
"""

import asyncio
import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_MAX_SIZE = 1000
DEFAULT_SWEEP_INTERVAL_SECONDS = 600.0


def _canonical(value: Any) -> Any:
    """Rewrite mappings as {"map": sorted [key type, key, value] triples}.

    Keys are tagged with their type so {1: x} and {"1": x} stay distinct and
    mappings with mixed key types can still be ordered.
    """
    if isinstance(value, dict):
        items = [[type(k).__name__, str(k), _canonical(v)] for k, v in value.items()]
        return {"map": sorted(items, key=lambda item: (item[0], item[1]))}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


def fingerprint(payload: Any, existing_data: Any = None, strict: bool = False) -> str:
    """SHA-256 over the canonical JSON form of the validation inputs."""
    canonical = json.dumps(
        _canonical({"payload": payload, "existing": existing_data, "strict": strict}),
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def cache_key(content_category: str, operation: str, payload: Any, existing_data: Any = None, strict: bool = False) -> str:
    return f"{content_category}:{operation}:{fingerprint(payload, existing_data, strict)}"


@dataclass
class _Entry:
    value: Any
    expires_at: float


class ResultCache:
    """Thread-safe TTL + LRU cache for validation results.

    Args:
        ttl_seconds: Lifetime of an entry
        max_size: Maximum number of entries; least recently used are evicted
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.Lock()
        self._generations: dict[str, int] = {}
        self._epoch = 0
        self._sweeper: asyncio.Task | None = None
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry.value

    def generation(self, content_category: str) -> int:
        """Counter that moves whenever the category's entries are invalidated."""
        with self._lock:
            return self._epoch + self._generations.get(content_category, 0)

    def set(self, key: str, value: Any, content_category: str | None = None, generation: int | None = None) -> bool:
        """Store a result. Returns False if the category was invalidated since
        `generation` was read, in which case nothing is stored.
        """
        with self._lock:
            if content_category is not None and generation is not None:
                if self._epoch + self._generations.get(content_category, 0) != generation:
                    return False
            self._entries[key] = _Entry(value, self._clock() + self.ttl_seconds)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)
            return True

    def invalidate_category(self, content_category: str) -> int:
        """Drop every entry for a content category. Returns the count removed."""
        prefix = f"{content_category}:"
        with self._lock:
            self._generations[content_category] = self._generations.get(content_category, 0) + 1
            stale = [k for k in self._entries if k.startswith(prefix)]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug("Invalidated %d cached results for '%s'", len(stale), content_category)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._epoch += 1
            self._entries.clear()

    def sweep_expired(self) -> int:
        """Remove expired entries. Returns the count removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Swept %d expired validation results", len(expired))
        return len(expired)

    def start_sweeper(self, interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS) -> asyncio.Task:
        """Start the periodic expiry sweep on the running event loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper

        async def sweep_forever() -> None:
            while True:
                await asyncio.sleep(interval_seconds)
                self.sweep_expired()

        self._sweeper = asyncio.get_running_loop().create_task(sweep_forever())
        return self._sweeper

    def stop_sweeper(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None

    def stats(self) -> dict[str, Any]:
        with self._lock:
            size = len(self._entries)
        lookups = self.hits + self.misses
        return {
            "size": size,
            "maxSize": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "hitRate": self.hits / lookups if lookups else 0.0,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and entry.expires_at > self._clock()
