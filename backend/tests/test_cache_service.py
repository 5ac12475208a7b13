"""Tests for cache service."""

from unittest.mock import MagicMock, patch

import redis

from eventnotify.integrations.cache import NullCacheService, RedisCacheService, create_cache_service


class TestNullCacheService:
    def test_get_returns_none(self):
        cache = NullCacheService()
        assert cache.get("any_key") is None

    def test_set_does_nothing(self):
        cache = NullCacheService()
        cache.set("key", "value", 60)  # Should not raise

    def test_get_json_returns_none(self):
        cache = NullCacheService()
        assert cache.get_json("any_key") is None

    def test_set_json_does_nothing(self):
        cache = NullCacheService()
        cache.set_json("key", {"data": "test"}, 60)  # Should not raise


class TestRedisCacheService:
    def _cache(self):
        client = MagicMock()
        with patch("eventnotify.integrations.cache.redis.from_url", return_value=client):
            cache = RedisCacheService("redis://localhost:6379/0")
        return cache, client

    def test_set_json_uses_ttl(self):
        cache, client = self._cache()
        cache.set_json("notifications:attachment:1", {"file_name": "a.ics"}, 7200)
        client.setex.assert_called_once_with("notifications:attachment:1", 7200, '{"file_name": "a.ics"}')

    def test_get_json_parses(self):
        cache, client = self._cache()
        client.get.return_value = '{"file_name": "a.ics"}'
        assert cache.get_json("k") == {"file_name": "a.ics"}

    def test_get_json_invalid_is_miss(self):
        cache, client = self._cache()
        client.get.return_value = "not json"
        assert cache.get_json("k") is None

    def test_redis_error_is_miss(self):
        cache, client = self._cache()
        client.get.side_effect = redis.ConnectionError("gone")
        assert cache.get("k") is None

    def test_write_error_is_swallowed(self):
        cache, client = self._cache()
        client.setex.side_effect = redis.ConnectionError("gone")
        cache.set("k", "v", 60)  # Should not raise


class TestCreateCacheService:
    def test_no_url_returns_null(self):
        with patch("eventnotify.integrations.cache.settings") as mock_settings:
            mock_settings.redis_url = ""
            assert isinstance(create_cache_service(), NullCacheService)

    def test_unreachable_redis_returns_null(self):
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("refused")
        with patch("eventnotify.integrations.cache.redis.from_url", return_value=client):
            assert isinstance(create_cache_service(), NullCacheService)

    def test_malformed_url_returns_null(self):
        with patch("eventnotify.integrations.cache.redis.from_url", side_effect=ValueError("bad scheme")):
            assert isinstance(create_cache_service(), NullCacheService)
