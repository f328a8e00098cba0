# core/cache.py
"""
Application cache used by the data providers

Two backends share the same small interface (get/set/delete/clear):
an in-process TTL cache that sweeps expired entries on a fixed scan
frequency, and a Redis-backed cache for multi-worker deployments.
"""

import json
import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple

import redis

logger = logging.getLogger(__name__)


class MemoryCache:
    """In-process TTL cache"""

    def __init__(self, default_timeout: int = 600, expiration_scan_frequency: int = 300):
        self.default_timeout = default_timeout
        self.expiration_scan_frequency = expiration_scan_frequency
        self._store: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._last_scan = time.monotonic()

    def _scan_expired(self, now: float) -> None:
        # Caller holds the lock
        if now - self._last_scan < self.expiration_scan_frequency:
            return
        self._last_scan = now
        expired = [key for key, (_, exp) in self._store.items() if exp < now]
        for key in expired:
            del self._store[key]
        if expired:
            logger.debug(f"Cache scan removed {len(expired)} expired entries")

    def get(self, key: str) -> Optional[Any]:
        now = time.monotonic()
        with self._lock:
            self._scan_expired(now)
            item = self._store.get(key)
            if item is None:
                return None
            value, exp = item
            if exp < now:
                self._store.pop(key, None)
                return None
            return value

    def set(self, key: str, value: Any, timeout: Optional[int] = None) -> None:
        ttl = self.default_timeout if timeout is None else timeout
        with self._lock:
            self._store[key] = (value, time.monotonic() + max(1, int(ttl)))

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self):
        with self._lock:
            return len(self._store)


class RedisCache:
    """Redis-backed cache; values are stored as JSON"""

    def __init__(self, client: redis.Redis, default_timeout: int = 600, prefix: str = 'wilderblog:'):
        self.client = client
        self.default_timeout = default_timeout
        self.prefix = prefix

    def get(self, key: str) -> Optional[Any]:
        raw = self.client.get(self.prefix + key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any, timeout: Optional[int] = None) -> None:
        ttl = self.default_timeout if timeout is None else timeout
        self.client.set(self.prefix + key, json.dumps(value), ex=max(1, int(ttl)))

    def delete(self, key: str) -> None:
        self.client.delete(self.prefix + key)

    def clear(self) -> None:
        for key in self.client.scan_iter(match=self.prefix + '*'):
            self.client.delete(key)


def create_cache(config: Dict[str, Any]):
    """Build the cache backend named by ``CACHE_TYPE``"""
    cache_type = config.get('CACHE_TYPE', 'memory')
    timeout = config.get('CACHE_DEFAULT_TIMEOUT', 600)
    if cache_type == 'redis':
        client = redis.Redis.from_url(
            config['REDIS_URL'],
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=30,
        )
        return RedisCache(client, default_timeout=timeout)
    if cache_type != 'memory':
        raise ValueError(f"Unsupported CACHE_TYPE '{cache_type}'")
    return MemoryCache(
        default_timeout=timeout,
        expiration_scan_frequency=config.get('CACHE_EXPIRATION_SCAN_FREQUENCY', 300),
    )
