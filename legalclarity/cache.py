"""Summary cache keyed by content fingerprint.

Backed by Redis when ``CACHE_REDIS_URL`` is configured, otherwise by a
bounded in-process mapping. Redis errors never reach callers: the
operation falls back to the in-process mapping instead.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from collections import OrderedDict
from functools import lru_cache
from typing import Optional

import redis
from redis.exceptions import RedisError

from .config import CacheSettings, get_settings

logger = logging.getLogger(__name__)

SUMMARY_KEY_PREFIX = "summary:"


def fingerprint(text: str) -> str:
    """Fast 32-bit rolling hash of ``text`` rendered as a signed decimal.

    Not cryptographic: collisions only cost a wrong cache hit.
    """
    value = 0
    for ch in text:
        value = (value * 31 + ord(ch)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return str(value)


class SummaryCache:
    """Best-effort key-value cache for computed summaries."""

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        *,
        key_prefix: str = SUMMARY_KEY_PREFIX,
        ttl_seconds: Optional[int] = None,
        memory_max_entries: int = 1024,
    ) -> None:
        self._client = client
        self._prefix = key_prefix
        self._ttl = ttl_seconds
        self._max_entries = max(1, memory_max_entries)
        self._memory: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def is_networked(self) -> bool:
        return self._client is not None

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        if self._client is not None:
            try:
                value = await asyncio.to_thread(self._client.get, self._key(key))
                if isinstance(value, bytes):
                    value = value.decode("utf-8")
                return value
            except RedisError as exc:
                logger.warning("Redis cache get failed; using in-process cache", extra={"error": str(exc)})
        return self._memory_get(key)

    async def set(self, key: str, value: str) -> None:
        if self._client is not None:
            try:
                await asyncio.to_thread(self._client.set, self._key(key), value, ex=self._ttl)
                return
            except RedisError as exc:
                logger.warning("Redis cache set failed; using in-process cache", extra={"error": str(exc)})
        self._memory_set(key, value)

    def _memory_get(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._memory.get(key)
            if value is not None:
                self._memory.move_to_end(key)
            return value

    def _memory_set(self, key: str, value: str) -> None:
        with self._lock:
            self._memory[key] = value
            self._memory.move_to_end(key)
            while len(self._memory) > self._max_entries:
                self._memory.popitem(last=False)

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> "SummaryCache":
        client = None
        if settings.redis_url:
            client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
            logger.info("Using Redis for summary cache")
        else:
            logger.info("CACHE_REDIS_URL not set; using in-process summary cache")
        return cls(
            client,
            ttl_seconds=settings.ttl_seconds,
            memory_max_entries=settings.memory_max_entries,
        )


@lru_cache
def get_summary_cache() -> SummaryCache:
    """Process-wide cache; the backend is chosen once from settings."""
    return SummaryCache.from_settings(get_settings().cache)
