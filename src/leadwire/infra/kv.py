"""Key-value store abstraction with first-class TTLs.

Backs the debounce gate, the deferred webhook queue, the classification cache
and the per-user realtime notification buffer.

Two implementations:
- InMemoryKVStore: process-local, clock injectable (tests, single-process dev)
- RedisKVStore: shared across processes (production)

Values are JSON-serialised on write and decoded on read in both backends, so
callers never share mutable state with the store.
"""

from __future__ import annotations

import json
import threading
from typing import TYPE_CHECKING, Any, Protocol

from leadwire.infra.time import Clock, system_clock

if TYPE_CHECKING:
    from redis import Redis


class KeyValueStore(Protocol):
    """Operations the pipeline needs from a cache/key-value store."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: int | None = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def set_if_absent(self, key: str, value: Any, ttl: int) -> bool: ...

    def push_front(self, key: str, item: Any, max_len: int, ttl: int | None = None) -> int: ...

    def push_back(self, key: str, item: Any, max_len: int, ttl: int | None = None) -> int: ...

    def get_list(self, key: str) -> list[Any]: ...

    def set_list(self, key: str, items: list[Any], ttl: int | None = None) -> None: ...

    def drain_list(self, key: str) -> list[Any]: ...

    def list_length(self, key: str) -> int: ...


class InMemoryKVStore:
    """Thread-safe in-process store.

    The lock only guards dict access; it is never held while callers do I/O.

    Args:
        clock: Epoch-seconds source, replaceable by a fake clock in tests.
    """

    def __init__(self, clock: Clock = system_clock) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def _expires_at(self, ttl: int | None) -> float | None:
        if ttl is None:
            return None
        return self._clock() + ttl

    def _load(self, key: str) -> Any | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return json.loads(raw)

    def _store(self, key: str, value: Any, expires_at: float | None) -> None:
        self._data[key] = (json.dumps(value, default=str), expires_at)

    def _load_list(self, key: str) -> list[Any]:
        value = self._load(key)
        return value if isinstance(value, list) else []

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._load(key)

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        with self._lock:
            self._store(key, value, self._expires_at(ttl))

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def set_if_absent(self, key: str, value: Any, ttl: int) -> bool:
        with self._lock:
            if self._load(key) is not None:
                return False
            self._store(key, value, self._expires_at(ttl))
            return True

    def push_front(self, key: str, item: Any, max_len: int, ttl: int | None = None) -> int:
        with self._lock:
            items = [item] + self._load_list(key)
            items = items[:max_len]
            self._store(key, items, self._expires_at(ttl))
            return len(items)

    def push_back(self, key: str, item: Any, max_len: int, ttl: int | None = None) -> int:
        with self._lock:
            items = self._load_list(key) + [item]
            if len(items) > max_len:
                items = items[len(items) - max_len:]
            self._store(key, items, self._expires_at(ttl))
            return len(items)

    def get_list(self, key: str) -> list[Any]:
        with self._lock:
            return self._load_list(key)

    def set_list(self, key: str, items: list[Any], ttl: int | None = None) -> None:
        with self._lock:
            self._store(key, list(items), self._expires_at(ttl))

    def drain_list(self, key: str) -> list[Any]:
        with self._lock:
            items = self._load_list(key)
            self._data.pop(key, None)
            return items

    def list_length(self, key: str) -> int:
        with self._lock:
            return len(self._load_list(key))


class RedisKVStore:
    """Redis-backed store.

    Lists map onto native Redis lists so pushes and trims are atomic per key;
    scalar values are JSON strings set with EX.

    Args:
        redis_client: Synchronous Redis client.
    """

    def __init__(self, redis_client: Redis) -> None:
        self._redis = redis_client

    @classmethod
    def from_url(cls, url: str) -> RedisKVStore:
        """Build a store from a redis:// URL."""
        import redis

        return cls(redis.Redis.from_url(url))

    @staticmethod
    def _dump(value: Any) -> str:
        return json.dumps(value, default=str)

    @staticmethod
    def _decode(raw: Any) -> Any:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    def get(self, key: str) -> Any | None:
        return self._decode(self._redis.get(key))

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        self._redis.set(key, self._dump(value), ex=ttl)

    def delete(self, key: str) -> None:
        self._redis.delete(key)

    def set_if_absent(self, key: str, value: Any, ttl: int) -> bool:
        # SET NX EX: True when created, None when the key already existed
        return bool(self._redis.set(key, self._dump(value), nx=True, ex=ttl))

    def push_front(self, key: str, item: Any, max_len: int, ttl: int | None = None) -> int:
        pipeline = self._redis.pipeline(transaction=True)
        pipeline.lpush(key, self._dump(item))
        pipeline.ltrim(key, 0, max_len - 1)
        if ttl is not None:
            pipeline.expire(key, ttl)
        pipeline.llen(key)
        return int(pipeline.execute()[-1])

    def push_back(self, key: str, item: Any, max_len: int, ttl: int | None = None) -> int:
        pipeline = self._redis.pipeline(transaction=True)
        pipeline.rpush(key, self._dump(item))
        pipeline.ltrim(key, -max_len, -1)
        if ttl is not None:
            pipeline.expire(key, ttl)
        pipeline.llen(key)
        return int(pipeline.execute()[-1])

    def get_list(self, key: str) -> list[Any]:
        return [self._decode(raw) for raw in self._redis.lrange(key, 0, -1)]

    def set_list(self, key: str, items: list[Any], ttl: int | None = None) -> None:
        pipeline = self._redis.pipeline(transaction=True)
        pipeline.delete(key)
        if items:
            pipeline.rpush(key, *[self._dump(item) for item in items])
            if ttl is not None:
                pipeline.expire(key, ttl)
        pipeline.execute()

    def drain_list(self, key: str) -> list[Any]:
        pipeline = self._redis.pipeline(transaction=True)
        pipeline.lrange(key, 0, -1)
        pipeline.delete(key)
        raw_items, _ = pipeline.execute()
        return [self._decode(raw) for raw in raw_items]

    def list_length(self, key: str) -> int:
        return int(self._redis.llen(key))
