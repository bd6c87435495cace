"""
Per-principal cache of effective permission sets.

Stores:
- MemoryCacheStore: in-process, used when no Redis URL is configured.
- RedisCacheStore: shared across workers.

Invalidation strategies:
- TagFlushInvalidation (default): any role/permission change flushes every
  cached set. Correct by over-invalidation; write-heavy workloads see more
  recomputation.
- PrincipalInvalidation: only principals holding the changed role(s) are
  forgotten.

A role assignment change always forgets the single affected principal.
Backend failures are logged and treated as misses. A failed invalidation
leaves a stale window until the entry's TTL expires.
"""
import threading
import time
from typing import Callable, Dict, Iterable, Optional, Set, Tuple

import redis

from permitted.config.settings import PermittedSettings, REDIS_URL
from permitted.core.permission_set import PermissionSet
from permitted.utils.logger import get_logger

logger = get_logger(__name__)


class CacheBackendError(Exception):
    """The cache store could not be reached or answered with an error."""


# ---------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------
class CacheStore:
    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str, ttl: int, tags: Iterable[str] = ()) -> None:
        raise NotImplementedError

    def delete(self, key: str, tags: Iterable[str] = ()) -> None:
        raise NotImplementedError

    def flush_tag(self, tag: str) -> None:
        raise NotImplementedError


class MemoryCacheStore(CacheStore):
    """Simple time-based store for a single worker."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._tags: Dict[str, Set[str]] = {}
        self._clock = clock
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: str, ttl: int, tags: Iterable[str] = ()) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)
            for tag in tags:
                self._tags.setdefault(tag, set()).add(key)

    def delete(self, key: str, tags: Iterable[str] = ()) -> None:
        with self._lock:
            self._entries.pop(key, None)
            for tag in tags:
                self._tags.get(tag, set()).discard(key)

    def flush_tag(self, tag: str) -> None:
        with self._lock:
            for key in self._tags.pop(tag, set()):
                self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tags.clear()


class RedisCacheStore(CacheStore):
    """Redis-backed store; tags are Redis sets of member keys."""

    def __init__(self, client: redis.Redis):
        self._redis = client

    @staticmethod
    def _tag_key(tag: str) -> str:
        return f"{tag}:keys"

    def get(self, key: str) -> Optional[str]:
        try:
            return self._redis.get(key)
        except redis.RedisError as e:
            raise CacheBackendError(str(e)) from e

    def set(self, key: str, value: str, ttl: int, tags: Iterable[str] = ()) -> None:
        try:
            pipe = self._redis.pipeline()
            pipe.set(key, value, ex=ttl)
            for tag in tags:
                # Tag sets live at least as long as their newest member
                pipe.sadd(self._tag_key(tag), key)
                pipe.expire(self._tag_key(tag), ttl)
            pipe.execute()
        except redis.RedisError as e:
            raise CacheBackendError(str(e)) from e

    def delete(self, key: str, tags: Iterable[str] = ()) -> None:
        try:
            pipe = self._redis.pipeline()
            pipe.delete(key)
            for tag in tags:
                pipe.srem(self._tag_key(tag), key)
            pipe.execute()
        except redis.RedisError as e:
            raise CacheBackendError(str(e)) from e

    def flush_tag(self, tag: str) -> None:
        tag_key = self._tag_key(tag)
        try:
            members = list(self._redis.smembers(tag_key))
            if not members:
                return
            # Only drop what was read; keys tagged meanwhile stay flushable
            pipe = self._redis.pipeline()
            pipe.delete(*members)
            pipe.srem(tag_key, *members)
            pipe.execute()
        except redis.RedisError as e:
            raise CacheBackendError(str(e)) from e


def build_redis_client(redis_url: str) -> redis.Redis:
    """Build a client; rediss:// URLs may carry passwords with special chars."""
    if redis_url.startswith("rediss://"):
        # Parse: rediss://:PASSWORD@HOST:PORT/DB, splitting on the last @
        url_without_scheme = redis_url[len("rediss://:"):]
        at_index = url_without_scheme.rfind("@")
        if at_index == -1:
            raise ValueError("Invalid Redis URL format")
        password = url_without_scheme[:at_index]
        host_part = url_without_scheme[at_index + 1:]
        if "/" in host_part:
            host_port, db_str = host_part.rsplit("/", 1)
            db = int(db_str) if db_str else 0
        else:
            host_port = host_part
            db = 0
        host, port_str = host_port.rsplit(":", 1)
        logger.info(f"[Cache] Connecting to Redis at {host}:{port_str} db={db}")
        return redis.Redis(
            host=host,
            port=int(port_str),
            db=db,
            username="default",
            password=password,
            ssl=True,
            decode_responses=True,
        )
    return redis.from_url(redis_url, decode_responses=True)


_store: Optional[CacheStore] = None


def get_cache_store() -> CacheStore:
    """Process-wide store: Redis when configured and reachable, memory otherwise."""
    global _store
    if _store is None:
        if REDIS_URL:
            try:
                client = build_redis_client(REDIS_URL)
                client.ping()
                _store = RedisCacheStore(client)
                logger.info("[Cache] Connected to Redis")
            except (redis.RedisError, ValueError) as e:
                logger.error(f"[Cache] Failed to connect to Redis: {e}")
        if _store is None:
            logger.warning("[Cache] Redis not available, using in-process permission cache")
            _store = MemoryCacheStore()
    return _store


def reset_cache_store(store: Optional[CacheStore] = None) -> None:
    global _store
    _store = store


# ---------------------------------------------------------------------
# Invalidation strategies
# ---------------------------------------------------------------------
class InvalidationStrategy:
    name = "base"

    def principal_roles_changed(self, cache: "PermissionCache", user_id: str) -> None:
        cache.forget(user_id)

    def role_permissions_changed(
        self, cache: "PermissionCache", affected_user_ids: Callable[[], Iterable[str]]
    ) -> None:
        raise NotImplementedError


class TagFlushInvalidation(InvalidationStrategy):
    name = "tag"

    def role_permissions_changed(self, cache, affected_user_ids):
        cache.flush()


class PrincipalInvalidation(InvalidationStrategy):
    name = "principal"

    def role_permissions_changed(self, cache, affected_user_ids):
        for user_id in affected_user_ids():
            cache.forget(user_id)


STRATEGIES = {
    TagFlushInvalidation.name: TagFlushInvalidation,
    PrincipalInvalidation.name: PrincipalInvalidation,
}


def strategy_for(name: str) -> InvalidationStrategy:
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ValueError(f"Unknown cache invalidation strategy: {name!r}")


# ---------------------------------------------------------------------
# Permission cache
# ---------------------------------------------------------------------
class PermissionCache:
    def __init__(
        self,
        settings: PermittedSettings,
        store: Optional[CacheStore] = None,
        strategy: Optional[InvalidationStrategy] = None,
    ):
        self.settings = settings
        self.store = store if store is not None else get_cache_store()
        self.strategy = strategy or strategy_for(settings.cache_invalidation)

    @property
    def enabled(self) -> bool:
        return self.settings.cache_enabled

    @property
    def tag(self) -> str:
        return f"{self.settings.cache_key_prefix}_permissions"

    def key_for(self, user_id) -> str:
        return f"{self.settings.cache_key_prefix}_user_{user_id}_permissions"

    def remember(self, user_id, loader: Callable[[], PermissionSet]) -> PermissionSet:
        """Return the cached set for ``user_id``, computing it on a miss."""
        if not self.enabled:
            return loader()

        key = self.key_for(user_id)
        try:
            raw = self.store.get(key)
        except CacheBackendError as e:
            logger.warning(f"[Cache] Read failed for {key}, recomputing: {e}")
            raw = None

        if raw is not None:
            try:
                return PermissionSet.from_json(raw)
            except (ValueError, TypeError) as e:
                logger.warning(f"[Cache] Discarding unreadable entry {key}: {e}")

        permissions = loader()
        try:
            self.store.set(key, permissions.to_json(), self.settings.cache_ttl, tags=(self.tag,))
        except CacheBackendError as e:
            logger.warning(f"[Cache] Write failed for {key}: {e}")
        return permissions

    def forget(self, user_id) -> None:
        if not self.enabled:
            return
        self.store.delete(self.key_for(user_id), tags=(self.tag,))

    def flush(self) -> None:
        if not self.enabled:
            return
        self.store.flush_tag(self.tag)

    def invalidate_principal(self, user_id) -> None:
        """A principal's role assignments changed."""
        if not self.enabled:
            return
        try:
            self.strategy.principal_roles_changed(self, user_id)
        except CacheBackendError as e:
            logger.error(
                f"[Cache] Invalidation failed for user {user_id}; cached permissions "
                f"may be stale for up to {self.settings.cache_ttl}s: {e}"
            )

    def invalidate_roles(self, affected_user_ids: Callable[[], Iterable[str]]) -> None:
        """A role's permission set (or a permission itself) changed."""
        if not self.enabled:
            return
        try:
            self.strategy.role_permissions_changed(self, affected_user_ids)
        except CacheBackendError as e:
            logger.error(
                f"[Cache] Invalidation ({self.strategy.name}) failed; cached permissions "
                f"may be stale for up to {self.settings.cache_ttl}s: {e}"
            )
