"""Embedding memo cache with a sliding-window rate limiter."""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from hashlib import blake2b
from typing import Any

from contract_rag.config import EmbeddingCacheConfig
from contract_rag.providers.embedder import Embedder
from contract_rag.types import EmbedResult

logger = logging.getLogger(__name__)

RATE_LIMIT_REASON = "rate limit reached"
QUOTA_REASON = "quota exceeded"


def cache_key(text: str) -> str:
    """Stable, non-cryptographic key for an input text."""
    return blake2b(text.encode("utf-8"), digest_size=8).hexdigest()


class EmbeddingCache:
    """Bounded insertion-ordered map of text hash -> vector.

    When full, the oldest batch of entries is dropped at once. This is an
    approximation of LRU: reads do not refresh an entry's position.
    """

    def __init__(self, capacity: int = 500, eviction_fraction: float = 0.1) -> None:
        self.capacity = capacity
        self._evict_count = max(1, int(capacity * eviction_fraction))
        self._entries: dict[str, list[float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, text: str) -> list[float] | None:
        return self._entries.get(cache_key(text))

    def put(self, text: str, vector: list[float]) -> None:
        key = cache_key(text)
        if key not in self._entries and len(self._entries) >= self.capacity:
            for stale in list(self._entries)[: self._evict_count]:
                del self._entries[stale]
        self._entries[key] = vector

    def clear(self) -> None:
        self._entries.clear()


class RateWindow:
    """Call timestamps inside a trailing window; rejects beyond the budget."""

    def __init__(
        self,
        max_calls: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._timestamps: deque[float] = deque()

    def __len__(self) -> int:
        return len(self._timestamps)

    def try_acquire(self) -> bool:
        """Prune expired calls, then reserve a slot if the budget allows."""
        now = self._clock()
        cutoff = now - self.window_seconds
        while self._timestamps and self._timestamps[0] < cutoff:
            self._timestamps.popleft()
        if len(self._timestamps) >= self.max_calls:
            return False
        self._timestamps.append(now)
        return True


class CachedEmbedder:
    """Wraps an `Embedder` with memoization, throttling and error capture.

    One instance is shared by every workflow in the process so that the rate
    budget is global. All bookkeeping happens synchronously between awaits, so
    interleaved coroutines on one event loop never observe a partial update.
    """

    def __init__(
        self,
        embedder: Embedder,
        config: EmbeddingCacheConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.embedder = embedder
        self.config = config or EmbeddingCacheConfig()
        self.cache = EmbeddingCache(self.config.capacity, self.config.eviction_fraction)
        self.rate_window = RateWindow(
            self.config.rate_limit_calls, self.config.rate_window_seconds, clock
        )
        self._hits = 0
        self._misses = 0
        self._rejected = 0

    async def safe_embed(self, text: str) -> EmbedResult:
        cached = self.cache.get(text)
        if cached is not None:
            self._hits += 1
            logger.debug("Using cached embedding")
            return EmbedResult(success=True, vector=cached)

        self._misses += 1
        if not self.rate_window.try_acquire():
            self._rejected += 1
            logger.warning("Embedding rate limit reached, skipping embedding generation")
            return EmbedResult(success=False, reason=RATE_LIMIT_REASON)

        try:
            vector = await self.embedder.embed(text)
        except Exception as exc:
            if _is_quota_error(exc):
                logger.warning("Embedding quota exceeded, falling back to non-RAG mode")
                return EmbedResult(success=False, reason=QUOTA_REASON)
            logger.error(f"Embedding generation error: {exc}")
            return EmbedResult(success=False, reason=str(exc) or type(exc).__name__)

        self.cache.put(text, vector)
        logger.debug(f"Generated new embedding ({len(vector)} dimensions)")
        return EmbedResult(success=True, vector=vector)

    def clear(self) -> None:
        self.cache.clear()

    def stats(self) -> dict[str, int]:
        return {
            "size": len(self.cache),
            "hits": self._hits,
            "misses": self._misses,
            "rejected": self._rejected,
            "window_calls": len(self.rate_window),
        }


def _is_quota_error(exc: BaseException) -> bool:
    if _status_code(exc) == 429:
        return True
    message = str(exc).lower()
    return "quota" in message or "too many requests" in message


def _status_code(exc: BaseException) -> int | None:
    for candidate in (exc, getattr(exc, "response", None)):
        if candidate is None:
            continue
        for attr in ("status_code", "status"):
            value: Any = getattr(candidate, attr, None)
            if isinstance(value, int):
                return value
    return None
