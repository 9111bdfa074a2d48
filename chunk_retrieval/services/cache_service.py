"""Two-tier caching for retrieval results."""

import asyncio
import base64
import hashlib
import json
import re
import time
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from chunk_retrieval.domain import RetrievalRequest, RetrievalResult

CACHE_VERSION = "1.0"
KEY_PREFIX = "mvdb_"
MAX_KEY_LENGTH = 172
COMPRESSION_THRESHOLD = 1024
MAX_ENTRY_SIZE = 1024 * 1024
STATS_MAX_AGE = 7 * 86400
INVALID_KEY_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_cache_key(key: str) -> str:
    """Replace characters outside ``[A-Za-z0-9_-]`` and cap the length."""
    return INVALID_KEY_CHARS.sub("_", key)[:MAX_KEY_LENGTH]


def _canonical(value: Any) -> Any:
    """Sort nested lists and dict keys so equal params serialize identically."""
    if isinstance(value, dict):
        return {k: _canonical(v) for k, v in sorted(value.items())}
    if isinstance(value, (list, tuple)):
        items = [_canonical(v) for v in value]
        return sorted(items, key=lambda v: json.dumps(v, sort_keys=True, default=str))
    return value


def generate_cache_key(request: RetrievalRequest, config_hash: str) -> str:
    """Deterministic key over validated params and the current configuration."""
    cache_data = {
        "version": CACHE_VERSION,
        "params": _canonical(request.model_dump(mode="json")),
        "config": config_hash,
    }
    content = json.dumps(cache_data, sort_keys=True)
    return sanitize_cache_key(KEY_PREFIX + hashlib.sha256(content.encode()).hexdigest())


@dataclass
class CacheEntry:
    """Decoded cache envelope."""

    value: Any
    created_at: float
    ttl: int

    def is_expired(self, now: float) -> bool:
        return now >= self.created_at + self.ttl


class CacheBackend(ABC):
    """Storage tier holding encoded cache envelopes."""

    name = "backend"

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        ...

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: int) -> bool:
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    async def clear(self) -> bool:
        ...

    @abstractmethod
    async def keys(self) -> list[str]:
        ...


class MemoryCacheBackend(CacheBackend):
    """In-process tier with oldest-first eviction."""

    name = "memory"

    def __init__(
        self,
        max_items: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_items = max_items
        self.clock = clock
        self._items: dict[str, tuple[bytes, float]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._items)

    async def get(self, key: str) -> Optional[bytes]:
        async with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            value, expires_at = item
            if self.clock() >= expires_at:
                del self._items[key]
                return None
            return value

    async def set(self, key: str, value: bytes, ttl: int) -> bool:
        async with self._lock:
            self._items.pop(key, None)
            while self._items and len(self._items) >= self.max_items:
                self._items.pop(next(iter(self._items)))
            self._items[key] = (value, self.clock() + ttl)
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._items.pop(key, None) is not None

    async def clear(self) -> bool:
        async with self._lock:
            self._items.clear()
            return True

    async def keys(self) -> list[str]:
        async with self._lock:
            return list(self._items)


class RedisCacheBackend(CacheBackend):
    """Durable tier backed by Redis. Failures are logged and reported as misses."""

    name = "redis"

    def __init__(
        self,
        redis_url: Optional[str] = None,
        client: Optional[Redis] = None,
        prefix: str = "chunk_retrieval:",
    ) -> None:
        if client is None and redis_url is None:
            raise ValueError("redis_url or client is required")
        self.client = client or Redis.from_url(redis_url, socket_connect_timeout=2)
        self.prefix = prefix
        logger.info(f"Using Redis cache tier with prefix '{prefix}'")

    async def get(self, key: str) -> Optional[bytes]:
        try:
            return await self.client.get(self.prefix + key)
        except RedisError as e:
            logger.warning(f"Redis get error: {e}")
            return None

    async def set(self, key: str, value: bytes, ttl: int) -> bool:
        try:
            await self.client.setex(self.prefix + key, ttl, value)
            return True
        except RedisError as e:
            logger.warning(f"Redis set error: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.client.delete(self.prefix + key))
        except RedisError as e:
            logger.warning(f"Redis delete error: {e}")
            return False

    async def clear(self) -> bool:
        try:
            async for key in self.client.scan_iter(match=f"{self.prefix}*"):
                await self.client.delete(key)
            return True
        except RedisError as e:
            logger.warning(f"Redis clear error: {e}")
            return False

    async def keys(self) -> list[str]:
        try:
            found = []
            async for key in self.client.scan_iter(match=f"{self.prefix}*"):
                if isinstance(key, bytes):
                    key = key.decode()
                found.append(key[len(self.prefix):])
            return found
        except RedisError as e:
            logger.warning(f"Redis keys error: {e}")
            return []

    async def close(self) -> None:
        await self.client.aclose()


class CacheService:
    """Two-tier cache with compression, size limits and lazy expiry."""

    def __init__(
        self,
        memory: CacheBackend,
        durable: Optional[CacheBackend] = None,
        ttl: int = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize cache service."""
        self.memory = memory
        self.durable = durable
        self.ttl = ttl
        self.clock = clock
        self._reset_stats()
        logger.info(
            f"Initialized CacheService with tiers: {', '.join(self.backend_names)}"
        )

    @property
    def backend_names(self) -> list[str]:
        return [b.name for b in self._tiers]

    @property
    def _tiers(self) -> list[CacheBackend]:
        return [b for b in (self.memory, self.durable) if b is not None]

    def _reset_stats(self) -> None:
        self.stats = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "deletes": 0,
            "rejected": 0,
            "total_bytes": 0,
            "initialized_at": self.clock(),
        }

    def encode(self, value: Any, ttl: int) -> bytes:
        """Serialize a value into an envelope, compressing large payloads."""
        serialized = json.dumps(value, default=str).encode()
        compressed = False
        data = serialized
        if len(serialized) > COMPRESSION_THRESHOLD:
            packed = zlib.compress(serialized, 6)
            if len(packed) < len(serialized):
                data = packed
                compressed = True

        envelope = {
            "version": CACHE_VERSION,
            "created_at": self.clock(),
            "ttl": ttl,
            "compressed": compressed,
            "checksum": hashlib.md5(serialized).hexdigest(),
            "data": base64.b64encode(data).decode("ascii")
            if compressed
            else serialized.decode(),
        }
        return json.dumps(envelope).encode()

    def decode(self, raw: bytes) -> Optional[CacheEntry]:
        """Decode an envelope; None when it is corrupt."""
        try:
            envelope = json.loads(raw)
            if envelope.get("compressed"):
                serialized = zlib.decompress(base64.b64decode(envelope["data"]))
            else:
                serialized = envelope["data"].encode()
            if hashlib.md5(serialized).hexdigest() != envelope.get("checksum"):
                return None
            return CacheEntry(
                value=json.loads(serialized),
                created_at=float(envelope["created_at"]),
                ttl=int(envelope["ttl"]),
            )
        except (ValueError, KeyError, TypeError, AttributeError, zlib.error) as e:
            logger.debug(f"Discarding corrupt cache entry: {e}")
            return None

    async def _read(
        self, backend: CacheBackend, key: str
    ) -> tuple[Optional[bytes], Optional[CacheEntry]]:
        raw = await backend.get(key)
        if raw is None:
            return None, None
        entry = self.decode(raw)
        if entry is None or entry.is_expired(self.clock()):
            await backend.delete(key)
            return None, None
        return raw, entry

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Look up both tiers, repopulating the memory tier on a durable hit."""
        key = sanitize_cache_key(key)

        _, entry = await self._read(self.memory, key)
        if entry is None and self.durable is not None:
            raw, entry = await self._read(self.durable, key)
            if entry is not None:
                remaining = int(entry.created_at + entry.ttl - self.clock())
                if remaining > 0:
                    await self.memory.set(key, raw, remaining)

        if entry is None:
            self.stats["misses"] += 1
            logger.debug(f"Cache miss: {key[:20]}...")
            return None

        self.stats["hits"] += 1
        logger.debug(f"Cache hit: {key[:20]}...")
        return entry

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        entry = await self.get_entry(key)
        return entry.value if entry is not None else None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache. True when at least one tier accepted it."""
        key = sanitize_cache_key(key)
        ttl = ttl or self.ttl
        raw = self.encode(value, ttl)

        if len(raw) > MAX_ENTRY_SIZE:
            self.stats["rejected"] += 1
            logger.warning(f"Cache data too large for key {key} ({len(raw)} bytes)")
            return False

        results = [await backend.set(key, raw, ttl) for backend in self._tiers]
        if not any(results):
            return False

        self.stats["sets"] += 1
        self.stats["total_bytes"] += len(raw)
        logger.debug(f"Cache store: {key[:20]}... ttl={ttl}")
        return True

    async def delete(self, key: str) -> bool:
        """Delete from both tiers."""
        key = sanitize_cache_key(key)
        results = [await backend.delete(key) for backend in self._tiers]
        if any(results):
            self.stats["deletes"] += 1
            return True
        return False

    async def clear_all(self) -> bool:
        """Clear all tiers and reset statistics."""
        results = [await backend.clear() for backend in self._tiers]
        self._reset_stats()
        logger.info("Cache flushed")
        return any(results)

    async def perform_maintenance(self) -> dict[str, Any]:
        """Sweep expired or corrupt entries from every tier."""
        results = {"expired_cleaned": 0, "invalid_cleaned": 0, "stats_reset": False}
        now = self.clock()

        for backend in self._tiers:
            for key in await backend.keys():
                raw = await backend.get(key)
                if raw is None:
                    continue
                entry = self.decode(raw)
                if entry is None:
                    await backend.delete(key)
                    results["invalid_cleaned"] += 1
                elif entry.is_expired(now):
                    await backend.delete(key)
                    results["expired_cleaned"] += 1

        if now - self.stats["initialized_at"] > STATS_MAX_AGE:
            self._reset_stats()
            results["stats_reset"] = True

        if results["expired_cleaned"] or results["invalid_cleaned"]:
            logger.info(
                f"Cache maintenance removed {results['expired_cleaned']} expired and "
                f"{results['invalid_cleaned']} invalid entries"
            )
        return results

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        total = self.stats["hits"] + self.stats["misses"]
        hit_rate = (self.stats["hits"] / total * 100) if total > 0 else 0
        avg_size = self.stats["total_bytes"] / self.stats["sets"] if self.stats["sets"] else 0

        stats = dict(self.stats)
        stats.update(
            {
                "total_requests": total,
                "hit_rate_percent": round(hit_rate, 2),
                "avg_payload_bytes": round(avg_size, 2),
                "backends": self.backend_names,
            }
        )
        if isinstance(self.memory, MemoryCacheBackend):
            stats["memory_items"] = len(self.memory)
        return stats

    def get_recommendations(self) -> list[str]:
        """Advisory tuning hints derived from statistics."""
        stats = self.get_stats()
        recommendations = []

        if stats["hit_rate_percent"] < 50 and stats["total_requests"] > 10:
            recommendations.append("Consider increasing cache TTL to improve hit rate")
        if stats["avg_payload_bytes"] > 50_000:
            recommendations.append(
                "Average cached payload is large - consider lowering k values"
            )
        if stats["rejected"] > 0:
            recommendations.append(
                f"{stats['rejected']} results exceeded the cache size limit"
            )
        if isinstance(self.memory, MemoryCacheBackend):
            if len(self.memory) >= self.memory.max_items * 0.9:
                recommendations.append(
                    "Memory tier is near capacity - consider raising MEMORY_CACHE_MAX_ITEMS"
                )
        return recommendations

    async def close(self) -> None:
        """Close connections."""
        if isinstance(self.durable, RedisCacheBackend):
            await self.durable.close()


class ResultCache:
    """Typed view over CacheService for retrieval results."""

    def __init__(self, cache_service: CacheService, config_hash: str) -> None:
        """Initialize result cache."""
        self.cache = cache_service
        self.config_hash = config_hash

    def key_for(self, request: RetrievalRequest) -> str:
        return generate_cache_key(request, self.config_hash)

    async def get_result(self, key: str) -> Optional[RetrievalResult]:
        """Get a cached result annotated with its age."""
        entry = await self.cache.get_entry(key)
        if entry is None:
            return None
        try:
            result = RetrievalResult.model_validate(entry.value)
        except ValueError as e:
            logger.warning(f"Cached result failed validation, discarding: {e}")
            await self.cache.delete(key)
            return None

        result.cached = True
        result.cache_age_seconds = int(self.cache.clock() - entry.created_at)
        result.cache_ttl = entry.ttl
        return result

    async def set_result(
        self, key: str, result: RetrievalResult, ttl: Optional[int] = None
    ) -> bool:
        return await self.cache.set(key, result.model_dump(mode="json"), ttl)
