import pytest
import redis

from permitted.core.cache import (
    CacheBackendError,
    CacheStore,
    MemoryCacheStore,
    PermissionCache,
    PrincipalInvalidation,
    RedisCacheStore,
    TagFlushInvalidation,
    build_redis_client,
    strategy_for,
)
from permitted.core.permission_set import PermissionSet


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class FakePipeline:
    def __init__(self, client):
        self.client = client
        self.calls = []

    def set(self, *args, **kwargs):
        self.calls.append(("set", args, kwargs))

    def sadd(self, *args, **kwargs):
        self.calls.append(("sadd", args, kwargs))

    def srem(self, *args, **kwargs):
        self.calls.append(("srem", args, kwargs))

    def expire(self, *args, **kwargs):
        self.calls.append(("expire", args, kwargs))

    def delete(self, *args, **kwargs):
        self.calls.append(("delete", args, kwargs))

    def execute(self):
        for name, args, kwargs in self.calls:
            getattr(self.client, name)(*args, **kwargs)


class FakeRedis:
    """Just enough of redis.Redis for the store."""

    def __init__(self):
        self.values = {}
        self.sets = {}
        self.ttls = {}

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value, ex=None):
        self.values[key] = value
        self.ttls[key] = ex

    def sadd(self, key, *members):
        self.sets.setdefault(key, set()).update(members)

    def srem(self, key, *members):
        remaining = self.sets.get(key, set()) - set(members)
        if remaining:
            self.sets[key] = remaining
        else:
            self.sets.pop(key, None)

    def expire(self, key, seconds):
        self.ttls[key] = seconds

    def smembers(self, key):
        return set(self.sets.get(key, set()))

    def delete(self, *keys):
        for key in keys:
            self.values.pop(key, None)
            self.sets.pop(key, None)

    def pipeline(self):
        return FakePipeline(self)


class DownRedis(FakeRedis):
    def get(self, key):
        raise redis.ConnectionError("connection refused")


class BrokenStore(CacheStore):
    def get(self, key):
        raise CacheBackendError("down")

    def set(self, key, value, ttl, tags=()):
        raise CacheBackendError("down")

    def delete(self, key, tags=()):
        raise CacheBackendError("down")

    def flush_tag(self, tag):
        raise CacheBackendError("down")


# ---------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------
def test_memory_store_expires_entries():
    clock = FakeClock()
    store = MemoryCacheStore(clock=clock)
    store.set("k", "v", ttl=10)

    clock.now += 9
    assert store.get("k") == "v"
    clock.now += 1
    assert store.get("k") is None


def test_memory_store_flushes_by_tag():
    store = MemoryCacheStore()
    store.set("a", "1", ttl=60, tags=("perms",))
    store.set("b", "2", ttl=60, tags=("perms",))
    store.set("c", "3", ttl=60)

    store.flush_tag("perms")
    assert store.get("a") is None
    assert store.get("b") is None
    assert store.get("c") == "3"


def test_redis_store_tags_and_ttl():
    client = FakeRedis()
    store = RedisCacheStore(client)
    store.set("permitted_user_1_permissions", "{}", ttl=300, tags=("permitted_permissions",))

    assert store.get("permitted_user_1_permissions") == "{}"
    assert client.ttls["permitted_user_1_permissions"] == 300
    assert client.sets["permitted_permissions:keys"] == {"permitted_user_1_permissions"}

    store.flush_tag("permitted_permissions")
    assert store.get("permitted_user_1_permissions") is None
    assert "permitted_permissions:keys" not in client.sets


def test_redis_tag_set_expires_with_its_members():
    client = FakeRedis()
    store = RedisCacheStore(client)
    store.set("permitted_user_1_permissions", "{}", ttl=300, tags=("permitted_permissions",))
    assert client.ttls["permitted_permissions:keys"] == 300


def test_redis_delete_drops_tag_membership():
    client = FakeRedis()
    store = RedisCacheStore(client)
    store.set("permitted_user_1_permissions", "{}", ttl=300, tags=("permitted_permissions",))
    store.set("permitted_user_2_permissions", "{}", ttl=300, tags=("permitted_permissions",))

    store.delete("permitted_user_1_permissions", tags=("permitted_permissions",))
    assert store.get("permitted_user_1_permissions") is None
    assert client.sets["permitted_permissions:keys"] == {"permitted_user_2_permissions"}


class WriteDuringFlushRedis(FakeRedis):
    """Another worker caches a set right after the flush has read the tag."""

    def __init__(self):
        super().__init__()
        self.late_writes = []

    def smembers(self, key):
        members = super().smembers(key)
        for late_key in self.late_writes:
            self.set(late_key, "{}", ex=300)
            self.sadd(key, late_key)
        self.late_writes = []
        return members


def test_redis_flush_keeps_keys_tagged_during_flush():
    client = WriteDuringFlushRedis()
    store = RedisCacheStore(client)
    store.set("permitted_user_1_permissions", "{}", ttl=300, tags=("permitted_permissions",))

    client.late_writes = ["permitted_user_2_permissions"]
    store.flush_tag("permitted_permissions")
    assert store.get("permitted_user_1_permissions") is None
    assert client.sets["permitted_permissions:keys"] == {"permitted_user_2_permissions"}

    store.flush_tag("permitted_permissions")
    assert store.get("permitted_user_2_permissions") is None


def test_memory_store_delete_drops_tag_membership():
    store = MemoryCacheStore()
    store.set("a", "1", ttl=60, tags=("perms",))
    store.delete("a", tags=("perms",))
    store.set("a", "2", ttl=60)

    store.flush_tag("perms")
    assert store.get("a") == "2"


def test_redis_errors_become_backend_errors():
    store = RedisCacheStore(DownRedis())
    with pytest.raises(CacheBackendError):
        store.get("anything")


def test_build_redis_client_parses_tls_url():
    client = build_redis_client("rediss://:s3cr@t@cache.example.net:6380/2")
    kwargs = client.connection_pool.connection_kwargs
    assert kwargs["host"] == "cache.example.net"
    assert kwargs["port"] == 6380
    assert kwargs["db"] == 2
    assert kwargs["password"] == "s3cr@t"


# ---------------------------------------------------------------------
# PermissionCache
# ---------------------------------------------------------------------
def test_cache_key_format(make_settings):
    cache = PermissionCache(make_settings(cache_key_prefix="acme"), MemoryCacheStore())
    assert cache.key_for(42) == "acme_user_42_permissions"
    assert cache.tag == "acme_permissions"


def test_strategy_lookup():
    assert isinstance(strategy_for("tag"), TagFlushInvalidation)
    assert isinstance(strategy_for("principal"), PrincipalInvalidation)
    with pytest.raises(ValueError):
        strategy_for("sometimes")


def test_remember_uses_cached_value(make_settings):
    cache = PermissionCache(make_settings(), MemoryCacheStore())
    calls = []

    def loader():
        calls.append(1)
        return PermissionSet({"p1": "edit posts"})

    assert cache.remember("u1", loader).names == {"edit posts"}
    assert cache.remember("u1", loader).names == {"edit posts"}
    assert len(calls) == 1


def test_unreadable_entry_is_recomputed(make_settings):
    store = MemoryCacheStore()
    cache = PermissionCache(make_settings(), store)
    store.set(cache.key_for("u1"), "not json", ttl=60)

    assert cache.remember("u1", lambda: PermissionSet({"p1": "edit posts"})).names == {"edit posts"}


def test_disabled_cache_never_stores(make_settings):
    store = MemoryCacheStore()
    cache = PermissionCache(make_settings(cache_enabled=False), store)
    cache.remember("u1", lambda: PermissionSet({"p1": "edit posts"}))
    assert store.get(cache.key_for("u1")) is None


# ---------------------------------------------------------------------
# Coherence with role and permission changes
# ---------------------------------------------------------------------
@pytest.fixture(params=["tag", "principal"])
def newsroom(request, make_permitted, make_user, cache_store):
    permitted = make_permitted(cache_invalidation=request.param)
    permitted.permissions.create_many(["edit posts", "publish posts", "draft posts"])
    permitted.roles.give_permission_to(permitted.create_role("Editor"), "edit posts")
    permitted.roles.give_permission_to(permitted.create_role("Writer"), "draft posts")
    editor = make_user(email="editor@example.com")
    writer = make_user(email="writer@example.com")
    permitted.assign_role_to_user(editor, "Editor")
    permitted.assign_role_to_user(writer, "Writer")
    return permitted, editor, writer, request.param


def test_grant_is_visible_immediately(newsroom):
    permitted, editor, _, _ = newsroom
    auth = permitted.authorizer
    assert not auth.has_permission(editor, "publish posts")

    permitted.roles.give_permission_to("Editor", "publish posts")
    assert auth.has_permission(editor, "publish posts")


def test_revoke_is_visible_immediately(newsroom):
    permitted, editor, _, _ = newsroom
    auth = permitted.authorizer
    assert auth.has_permission(editor, "edit posts")

    permitted.roles.revoke_permission_to("Editor", "edit posts")
    assert not auth.has_permission(editor, "edit posts")


def test_role_removal_is_visible_immediately(newsroom):
    permitted, editor, _, _ = newsroom
    auth = permitted.authorizer
    assert auth.has_permission(editor, "edit posts")

    permitted.users.remove_role(editor, "Editor")
    assert not auth.has_permission(editor, "edit posts")


def test_role_deletion_is_visible_immediately(newsroom):
    permitted, editor, _, _ = newsroom
    auth = permitted.authorizer
    assert auth.has_permission(editor, "edit posts")

    permitted.roles.delete("Editor")
    assert not auth.has_permission(editor, "edit posts")


def test_permission_deletion_is_visible_immediately(newsroom):
    permitted, editor, _, _ = newsroom
    auth = permitted.authorizer
    assert auth.has_permission(editor, "edit posts")

    permitted.permissions.delete("edit posts")
    assert not auth.has_permission(editor, "edit posts")


def test_invalidation_reach(newsroom, cache_store):
    permitted, editor, writer, strategy = newsroom
    auth = permitted.authorizer
    auth.has_permission(editor, "edit posts")
    auth.has_permission(writer, "draft posts")
    writer_key = permitted.cache.key_for(writer.id)
    assert cache_store.get(writer_key) is not None

    permitted.roles.give_permission_to("Editor", "publish posts")

    assert cache_store.get(permitted.cache.key_for(editor.id)) is None
    if strategy == "principal":
        assert cache_store.get(writer_key) is not None
    else:
        assert cache_store.get(writer_key) is None


def test_backend_failure_falls_back_to_database(make_permitted, make_user):
    permitted = make_permitted(store=BrokenStore())
    permitted.create_permission("edit posts")
    permitted.roles.give_permission_to(permitted.create_role("Editor"), "edit posts")
    user = make_user()
    permitted.assign_role_to_user(user, "Editor")

    assert permitted.authorizer.has_permission(user, "edit posts")
    permitted.roles.revoke_permission_to("Editor", "edit posts")
    assert not permitted.authorizer.has_permission(user, "edit posts")
