# fintrack/cache.py
"""Optional key-value cache for derived query results.

Three backends share one interface: Redis, an in-process dict, and a
no-op used when nothing is configured. Every backend treats its own
failures as misses so a broken cache never fails a request.
"""

import json
import logging
import math
import threading
import time

import redis
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

# seconds
ANALYTICS_TTL = 900
CATEGORIES_TTL = 3600
TRANSACTIONS_TTL = 600

USER_NAMESPACES = ("analytics", "transactions", "categories")


def user_namespace(entity: str, user_id: int) -> str:
    return f"{entity}:user:{user_id}:"


def _params_suffix(params: dict) -> str:
    cleaned = {k: v for k, v in params.items() if v is not None}
    if not cleaned:
        return "all"
    return json.dumps(jsonable_encoder(cleaned), sort_keys=True, separators=(",", ":"))


def transactions_key(user_id: int, filters: dict) -> str:
    return user_namespace("transactions", user_id) + _params_suffix(filters)


def categories_key(user_id: int) -> str:
    return user_namespace("categories", user_id) + "all"


def analytics_key(user_id: int, report: str, params: dict) -> str:
    return user_namespace("analytics", user_id) + f"{report}:" + _params_suffix(params)


class Cache:
    configured = True

    def get(self, key):
        raise NotImplementedError

    def set(self, key, value, ttl: int):
        raise NotImplementedError

    def delete(self, key):
        raise NotImplementedError

    def delete_prefix(self, prefix: str):
        raise NotImplementedError

    def clear(self):
        raise NotImplementedError

    def ping(self) -> bool:
        return True

    def close(self):
        pass

    def invalidate_user(self, user_id: int):
        for entity in USER_NAMESPACES:
            self.delete_prefix(user_namespace(entity, user_id))


class NullCache(Cache):
    configured = False

    def get(self, key):
        return None

    def set(self, key, value, ttl: int):
        pass

    def delete(self, key):
        pass

    def delete_prefix(self, prefix: str):
        pass

    def clear(self):
        pass


class MemoryCache(Cache):
    def __init__(self, clock=time.monotonic):
        self._data = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._next_expiry = math.inf

    def _purge_expired(self, now):
        # only walks the dict once something is known to have expired
        if now < self._next_expiry:
            return
        for key in [k for k, (expires_at, _) in self._data.items() if expires_at <= now]:
            del self._data[key]
        self._next_expiry = min((expires_at for expires_at, _ in self._data.values()), default=math.inf)

    def get(self, key):
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            expires_at, payload = entry
            if expires_at <= self._clock():
                del self._data[key]
                return None
        return json.loads(payload)

    def set(self, key, value, ttl: int):
        payload = json.dumps(jsonable_encoder(value))
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            self._data[key] = (now + ttl, payload)
            self._next_expiry = min(self._next_expiry, now + ttl)

    def delete(self, key):
        with self._lock:
            self._data.pop(key, None)

    def delete_prefix(self, prefix: str):
        with self._lock:
            for key in [k for k in self._data if k.startswith(prefix)]:
                del self._data[key]

    def clear(self):
        with self._lock:
            self._data.clear()

    def __len__(self):
        return len(self._data)


class RedisCache(Cache):
    def __init__(self, client: redis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str):
        return cls(redis.Redis.from_url(url, decode_responses=True, socket_timeout=2))

    def get(self, key):
        try:
            data = self.client.get(key)
            return json.loads(data) if data else None
        except (redis.RedisError, ValueError) as e:
            logger.warning("Cache get error for key %s: %s", key, e)
            return None

    def set(self, key, value, ttl: int):
        try:
            self.client.setex(key, ttl, json.dumps(jsonable_encoder(value)))
        except (redis.RedisError, TypeError, ValueError) as e:
            logger.warning("Cache set error for key %s: %s", key, e)

    def delete(self, key):
        try:
            self.client.delete(key)
        except redis.RedisError as e:
            logger.warning("Cache delete error for key %s: %s", key, e)

    def delete_prefix(self, prefix: str):
        try:
            keys = list(self.client.scan_iter(match=f"{prefix}*", count=500))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as e:
            logger.warning("Cache delete pattern error for %s: %s", prefix, e)

    def clear(self):
        # the database may be shared, so only our own namespaces go
        for entity in USER_NAMESPACES:
            self.delete_prefix(f"{entity}:")

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False

    def close(self):
        try:
            self.client.close()
        except redis.RedisError as e:
            logger.warning("Error closing Redis client: %s", e)


def build_cache(settings) -> Cache:
    if settings.cache_backend == "memory":
        logger.info("Using in-memory cache")
        return MemoryCache()
    if settings.cache_backend == "redis":
        if not settings.redis_url:
            raise ValueError("CACHE_BACKEND=redis requires REDIS_URL")
        logger.info("Using Redis cache")
        return RedisCache.from_url(settings.redis_url)
    logger.info("Cache not configured; running without one")
    return NullCache()
