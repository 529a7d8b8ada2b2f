"""Tests for the Redis drivers."""

import io
import unittest
from unittest.mock import MagicMock, patch

import redis

from pushx._drivers.drivers import RedisListDriver, RedisPubSubDriver, RedisStreamDriver
from pushx.exceptions import BackendConnectionError, ConfigurationError, DeliveryError


def fake_redis_module():
    module = MagicMock()
    module.exceptions = redis.exceptions
    return module


class RedisTestCase(unittest.TestCase):
    def setUp(self):
        self.module = fake_redis_module()
        self.client = self.module.Redis.return_value
        patcher = patch("pushx._drivers.drivers.redis.import_client", return_value=self.module)
        patcher.start()
        self.addCleanup(patcher.stop)

    def make_driver(self, driver_class, **flags):
        driver = driver_class()
        driver.load_flags({"redis-key": "events", **flags})
        driver.load_env("PUSHX_")
        driver.init()
        return driver


class TestRedisConnection(RedisTestCase):
    def test_connection_settings(self):
        self.make_driver(RedisListDriver, **{"redis-host": "cache", "redis-port": "6380", "redis-password": "pw"})
        kwargs = self.module.Redis.call_args.kwargs
        self.assertEqual(kwargs["host"], "cache")
        self.assertEqual(kwargs["port"], 6380)
        self.assertEqual(kwargs["password"], "pw")
        self.assertNotIn("ssl", kwargs)
        self.client.ping.assert_called_once()

    def test_defaults(self):
        self.make_driver(RedisListDriver)
        kwargs = self.module.Redis.call_args.kwargs
        self.assertEqual(kwargs["host"], "localhost")
        self.assertEqual(kwargs["port"], 6379)
        self.assertIsNone(kwargs["password"])

    def test_tls_insecure(self):
        self.make_driver(RedisListDriver, **{"redis-enable-tls": True, "redis-tls-insecure": True})
        kwargs = self.module.Redis.call_args.kwargs
        self.assertTrue(kwargs["ssl"])
        self.assertEqual(kwargs["ssl_cert_reqs"], "none")

    def test_key_required(self):
        driver = RedisListDriver()
        driver.load_flags({})
        driver.load_env("PUSHX_")
        with self.assertRaises(ConfigurationError):
            driver.init()

    def test_bad_port(self):
        driver = RedisListDriver()
        with self.assertRaises(ConfigurationError):
            driver.load_flags({"redis-port": "sixty"})

    def test_ping_failure_is_connection_error(self):
        self.client.ping.side_effect = redis.exceptions.ConnectionError("refused")
        with self.assertRaises(BackendConnectionError):
            self.make_driver(RedisListDriver)

    def test_cleanup_closes_client(self):
        driver = self.make_driver(RedisListDriver)
        driver.cleanup()
        self.client.close.assert_called_once()


class TestRedisList(RedisTestCase):
    def test_rpush(self):
        driver = self.make_driver(RedisListDriver)
        driver.push(io.BytesIO(b"payload"))
        self.client.rpush.assert_called_once_with("events", b"payload")

    def test_backend_error_is_delivery_error(self):
        self.client.rpush.side_effect = redis.exceptions.ResponseError("WRONGTYPE")
        driver = self.make_driver(RedisListDriver)
        with self.assertRaises(DeliveryError):
            driver.push(io.BytesIO(b"payload"))


class TestRedisPubSub(RedisTestCase):
    def test_publish(self):
        self.client.publish.return_value = 2
        driver = self.make_driver(RedisPubSubDriver)
        driver.push(io.BytesIO(b"payload"))
        self.client.publish.assert_called_once_with("events", b"payload")


class TestRedisStream(RedisTestCase):
    def test_xadd_with_default_id(self):
        self.client.xadd.return_value = b"1-0"
        driver = self.make_driver(RedisStreamDriver)
        driver.push(io.BytesIO(b'{"id": 1, "ok": true, "tags": ["a"], "none": null}'))
        self.client.xadd.assert_called_once_with(
            "events", {"id": 1, "ok": "true", "tags": '["a"]', "none": ""}, id="*"
        )

    def test_xadd_with_message_id(self):
        driver = self.make_driver(RedisStreamDriver, **{"redis-message-id": "5-1"})
        driver.push(io.BytesIO(b'{"a": "b"}'))
        self.assertEqual(self.client.xadd.call_args.kwargs["id"], "5-1")

    def test_non_object_payload_rejected(self):
        driver = self.make_driver(RedisStreamDriver)
        for payload in [b"not json", b"[1, 2]", b"{}"]:
            with self.assertRaises(DeliveryError):
                driver.push(io.BytesIO(payload))
        self.client.xadd.assert_not_called()

    def test_message_id_flag_only_on_stream_driver(self):
        flags = {setting.flag for setting in RedisListDriver.SETTINGS}
        self.assertNotIn("redis-message-id", flags)
        flags = {setting.flag for setting in RedisStreamDriver.SETTINGS}
        self.assertIn("redis-message-id", flags)


if __name__ == "__main__":
    unittest.main()
