import unittest
from unittest.mock import MagicMock, patch

from redis import exceptions as redis_exceptions

from portfolio_backend.cache import InMemoryCache, RedisCache


class InMemoryCacheTests(unittest.TestCase):
    def setUp(self):
        self.cache = InMemoryCache(prefix="test:", default_ttl=60)

    def test_set_get_delete(self):
        self.assertIsNone(self.cache.get("k"))
        self.cache.set("k", {"a": [1, 2]})
        self.assertEqual(self.cache.get("k"), {"a": [1, 2]})
        self.assertTrue(self.cache.delete("k"))
        self.assertFalse(self.cache.delete("k"))
        self.assertIsNone(self.cache.get("k"))

    def test_values_are_copies(self):
        value = {"items": [1]}
        self.cache.set("k", value)
        value["items"].append(2)
        cached = self.cache.get("k")
        cached["items"].append(3)
        self.assertEqual(self.cache.get("k"), {"items": [1]})

    def test_entries_expire(self):
        with patch("portfolio_backend.cache.time") as mock_time:
            mock_time.time.return_value = 1000.0
            self.cache.set("short", 1, ttl=10)
            self.cache.set("forever", 2, ttl=0)
            mock_time.time.return_value = 1011.0
            self.assertIsNone(self.cache.get("short"))
            self.assertEqual(self.cache.get("forever"), 2)

    def test_delete_pattern(self):
        self.cache.set("search:a", 1)
        self.cache.set("search:b", 2)
        self.cache.set("analytics:a", 3)
        self.assertEqual(self.cache.delete_pattern("search:*"), 2)
        self.assertEqual(self.cache.get("analytics:a"), 3)

    def test_get_or_set(self):
        factory = MagicMock(return_value=[1, 2, 3])
        self.assertEqual(self.cache.get_or_set("k", factory), [1, 2, 3])
        self.assertEqual(self.cache.get_or_set("k", factory), [1, 2, 3])
        factory.assert_called_once()

    def test_get_or_set_does_not_store_none(self):
        factory = MagicMock(return_value=None)
        self.cache.get_or_set("k", factory)
        self.cache.get_or_set("k", factory)
        self.assertEqual(factory.call_count, 2)

    def test_stats_and_reset(self):
        self.cache.set("k", 1)
        self.cache.get("k")
        self.cache.get("missing")
        stats = self.cache.stats()
        self.assertEqual((stats["hits"], stats["misses"], stats["sets"]), (1, 1, 1))
        self.assertEqual(stats["hitRate"], 0.5)
        self.assertEqual(self.cache.ping()["keys"], 1)

        self.cache.reset()
        self.assertEqual(self.cache.stats()["hits"], 0)
        self.assertEqual(self.cache.ping()["keys"], 0)


class RedisCacheTests(unittest.TestCase):
    def setUp(self):
        self.cache = RedisCache(url="redis://localhost:6379/0", prefix="test:", default_ttl=60)
        self.client = MagicMock()
        self.cache.client = self.client

    def test_get_decodes_json(self):
        self.client.get.return_value = b'{"a": 1}'
        self.assertEqual(self.cache.get("k"), {"a": 1})
        self.client.get.assert_called_once_with("test:k")

    def test_set_uses_setex(self):
        self.assertTrue(self.cache.set("k", [1], ttl=30))
        self.client.setex.assert_called_once_with("test:k", 30, "[1]")
        self.cache.set("k", [1], ttl=0)
        self.client.set.assert_called_once_with("test:k", "[1]")

    def test_errors_are_counted_not_raised(self):
        self.client.get.side_effect = redis_exceptions.ConnectionError("down")
        self.client.setex.side_effect = redis_exceptions.ConnectionError("down")
        self.assertIsNone(self.cache.get("k"))
        self.assertFalse(self.cache.set("k", 1))
        self.assertEqual(self.cache.stats()["errors"], 2)

    def test_delete_pattern(self):
        self.client.scan_iter.return_value = iter([b"test:search:a", b"test:search:b"])
        self.client.delete.return_value = 2
        self.assertEqual(self.cache.delete_pattern("search:*"), 2)
        self.client.scan_iter.assert_called_once_with(match="test:search:*")

    def test_ping(self):
        self.assertEqual(self.cache.ping()["status"], "healthy")
        self.client.ping.side_effect = redis_exceptions.ConnectionError("down")
        self.assertEqual(self.cache.ping()["status"], "unhealthy")


if __name__ == "__main__":
    unittest.main()
