import unittest
from unittest.mock import MagicMock, patch

import redis

from app.core.config import settings
from app.services import gem_cache
from app.services.gem_cache import GEMS_GROUP, InMemoryGemCache, NullGemCache, RedisGemCache, VersionedCache


class _Counter:
    def __init__(self, value):
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.value


class VersionedCacheTests(unittest.TestCase):
    def setUp(self):
        self.backend = InMemoryGemCache(namespace="test")
        self.cache = VersionedCache(self.backend)

    def test_read_through_computes_once(self):
        compute = _Counter({"colors": ["Azul"]})
        first = self.cache.read(GEMS_GROUP, "metadata:colors", compute, 60)
        second = self.cache.read(GEMS_GROUP, "metadata:colors", compute, 60)
        self.assertEqual(first, {"colors": ["Azul"]})
        self.assertEqual(second, first)
        self.assertEqual(compute.calls, 1)
        self.assertEqual(self.backend.keys(), ["test:v1:metadata:colors"])

    def test_invalidate_moves_reads_to_new_version(self):
        self.cache.read(GEMS_GROUP, "gems:id:1", _Counter({"name": "Viejo"}), 60)
        self.assertEqual(self.cache.invalidate(GEMS_GROUP), 2)
        fresh = _Counter({"name": "Nuevo"})
        self.assertEqual(self.cache.read(GEMS_GROUP, "gems:id:1", fresh, 60), {"name": "Nuevo"})
        self.assertEqual(fresh.calls, 1)
        # The stale entry is left to expire on its own.
        self.assertIn("test:v1:gems:id:1", self.backend.keys())
        self.assertEqual(self.cache.key_for(GEMS_GROUP, "gems:id:1"), "v2:gems:id:1")

    def test_versions_are_per_group(self):
        self.cache.invalidate("other")
        self.assertEqual(self.backend.get_version(GEMS_GROUP), 1)
        self.assertEqual(self.backend.get_version("other"), 2)

    def test_none_results_are_not_cached(self):
        missing = _Counter(None)
        self.assertIsNone(self.cache.read(GEMS_GROUP, "gems:id:nope", missing, 60))
        self.assertIsNone(self.cache.read(GEMS_GROUP, "gems:id:nope", missing, 60))
        self.assertEqual(missing.calls, 2)

    def test_compute_errors_propagate_and_are_not_cached(self):
        def _boom():
            raise RuntimeError("store down")

        with self.assertRaises(RuntimeError):
            self.cache.read(GEMS_GROUP, "gems:list", _boom, 60)
        self.assertEqual(self.backend.keys(), [])

    def test_expired_entries_miss(self):
        self.backend.set("k", b"1", 1)
        key = self.backend._key("k")
        value, _ = self.backend._data[key]
        self.backend._data[key] = (value, self.backend._data[key][1].replace(year=2000))
        self.assertIsNone(self.backend.get("k"))


class NullCacheTests(unittest.TestCase):
    def test_every_read_computes(self):
        cache = VersionedCache(NullGemCache())
        compute = _Counter([1, 2])
        cache.read(GEMS_GROUP, "k", compute, 60)
        cache.read(GEMS_GROUP, "k", compute, 60)
        self.assertEqual(compute.calls, 2)
        self.assertIsNone(cache.invalidate(GEMS_GROUP))


class RedisCacheTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.backend = RedisGemCache(self.client, "wiccapedia", default_ttl_seconds=120)
        self.cache = VersionedCache(self.backend)

    def test_keys_are_namespaced(self):
        self.client.get.side_effect = [b"3", None]
        compute = _Counter({"ok": True})
        self.cache.read(GEMS_GROUP, "metadata:colors", compute, 600)
        self.client.get.assert_any_call("wiccapedia:version:gems")
        self.client.get.assert_any_call("wiccapedia:v3:metadata:colors")
        self.client.setex.assert_called_once_with("wiccapedia:v3:metadata:colors", 600, b'{"ok": true}')

    def test_first_bump_lands_on_two(self):
        pipe = self.client.pipeline.return_value
        pipe.execute.return_value = [True, 2]
        self.assertEqual(self.cache.invalidate(GEMS_GROUP), 2)
        pipe.set.assert_called_once_with("wiccapedia:version:gems", 1, nx=True)
        pipe.incr.assert_called_once_with("wiccapedia:version:gems")

    def test_cached_hit_skips_compute(self):
        self.client.get.side_effect = [None, b'{"colors": ["Rosa"]}']
        compute = _Counter({"colors": []})
        self.assertEqual(self.cache.read(GEMS_GROUP, "metadata:colors", compute, 600), {"colors": ["Rosa"]})
        self.assertEqual(compute.calls, 0)

    def test_redis_failures_degrade_to_compute(self):
        self.client.get.side_effect = redis.ConnectionError("down")
        self.client.setex.side_effect = redis.ConnectionError("down")
        self.client.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")
        compute = _Counter(["Azul"])
        with self.assertLogs("app.cache", level="WARNING"):
            self.assertEqual(self.cache.read(GEMS_GROUP, "metadata:colors", compute, 600), ["Azul"])
            self.assertIsNone(self.cache.invalidate(GEMS_GROUP))
        self.assertEqual(compute.calls, 1)

    def test_write_failure_still_returns_result(self):
        self.client.get.return_value = None
        self.client.setex.side_effect = redis.TimeoutError("slow")
        self.assertEqual(self.cache.read(GEMS_GROUP, "k", _Counter([1]), 60), [1])

    def test_garbage_version_reads_as_one(self):
        self.client.get.return_value = b"abc"
        self.assertEqual(self.backend.get_version(GEMS_GROUP), 1)


class BuildBackendTests(unittest.TestCase):
    def test_disabled_cache_uses_null_backend(self):
        with patch.object(settings, "CACHE_ENABLED", False):
            self.assertIsInstance(gem_cache._build_backend(), NullGemCache)

    def test_unreachable_redis_falls_back_to_null_backend(self):
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("refused")
        with patch.object(settings, "CACHE_ENABLED", True), patch.object(gem_cache.redis.Redis, "from_url", return_value=client):
            with self.assertLogs("app.cache", level="WARNING"):
                backend = gem_cache._build_backend()
        self.assertIsInstance(backend, NullGemCache)

    def test_reachable_redis_is_used(self):
        client = MagicMock()
        with patch.object(settings, "CACHE_ENABLED", True), patch.object(gem_cache.redis.Redis, "from_url", return_value=client):
            backend = gem_cache._build_backend()
        self.assertIsInstance(backend, RedisGemCache)
        self.assertIs(backend.client, client)
