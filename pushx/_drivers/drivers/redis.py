"""Redis drivers.

Three drivers share one connection setup:

- ``redis-list``: ``RPUSH <key> <payload>``
- ``redis-pubsub``: ``PUBLISH <key> <payload>``
- ``redis-stream``: ``XADD <key> <id> <field> <value> ...`` where the payload
  must be a JSON object whose members become the entry fields

Configuration (flag / environment variable under the run prefix):
    --redis-host       REDIS_HOST (default: localhost)
    --redis-port       REDIS_PORT (default: 6379)
    --redis-password   REDIS_PASSWORD
    --redis-key        REDIS_KEY (required)
    --redis-message-id REDIS_MESSAGE_ID (redis-stream only, default: *)
    --redis-enable-tls and friends  REDIS_ENABLE_TLS, REDIS_TLS_*
"""

import json
from typing import Any, BinaryIO, Dict, Optional

from pushx.exceptions import BackendConnectionError, DeliveryError
from pushx.logging_config import logger
from pushx.tls import build_ssl_context

from ..protocol import BaseDriver, Setting, import_client, parse_int, tls_settings

REDIS_SETTINGS = (
    Setting("host", "redis-host", "REDIS_HOST", "Redis host", default="localhost"),
    Setting("port", "redis-port", "REDIS_PORT", "Redis port", default=6379, parser=parse_int),
    Setting("password", "redis-password", "REDIS_PASSWORD", "Redis password", secret=True),
    Setting("key", "redis-key", "REDIS_KEY", "Redis key, channel or stream name"),
    *tls_settings("redis", "REDIS", "Redis"),
)

# Connect and read timeout, seconds
REDIS_TIMEOUT = 30


class RedisDriver(BaseDriver):
    """Shared connection handling for the Redis drivers."""

    SETTINGS = REDIS_SETTINGS

    def __init__(self) -> None:
        super().__init__()
        self._client: Any = None
        self._errors: Any = None

    def _connection_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "password": self.password or None,
            "db": 0,
            "socket_timeout": REDIS_TIMEOUT,
            "socket_connect_timeout": REDIS_TIMEOUT,
        }
        options = self.tls_options()
        if options.enabled:
            # Fail on unreadable files before connecting
            build_ssl_context(options)
            kwargs.update(
                {
                    "ssl": True,
                    "ssl_cert_reqs": "none" if options.insecure else "required",
                    "ssl_check_hostname": not options.insecure,
                    "ssl_ca_certs": options.ca_file,
                    "ssl_certfile": options.cert_file,
                    "ssl_keyfile": options.key_file,
                }
            )
        return kwargs

    def init(self) -> None:
        super().init()
        self.require("host", "key")
        redis = import_client("redis", "redis", self.name)
        self._errors = redis.exceptions

        logger.debug(f"[{self.name}] Connecting to {self.host}:{self.port}")
        self._client = redis.Redis(**self._connection_kwargs())
        try:
            self._client.ping()
        except redis.exceptions.RedisError as e:
            raise BackendConnectionError(f"{self.name}: failed to connect to redis at {self.host}:{self.port}: {e}")
        logger.debug(f"[{self.name}] Connected to redis")

    def _send(self, payload: bytes) -> None:
        raise NotImplementedError

    def push(self, stream: BinaryIO) -> None:
        if self._client is None:
            raise DeliveryError(f"{self.name}: driver not initialized")
        payload = stream.read()
        try:
            self._send(payload)
        except self._errors.RedisError as e:
            raise DeliveryError(f"{self.name}: failed to push to {self.key}: {e}")

    def cleanup(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


class RedisListDriver(RedisDriver):
    name = "redis-list"
    description = "Append the payload to a Redis list (RPUSH)"

    def _send(self, payload: bytes) -> None:
        length = self._client.rpush(self.key, payload)
        logger.info(f"Pushed payload to redis list {self.key} (length {length})")


class RedisPubSubDriver(RedisDriver):
    name = "redis-pubsub"
    description = "Publish the payload on a Redis channel"

    def _send(self, payload: bytes) -> None:
        receivers = self._client.publish(self.key, payload)
        logger.info(f"Published payload to redis channel {self.key} ({receivers} subscribers)")


def _stream_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return value


class RedisStreamDriver(RedisDriver):
    name = "redis-stream"
    description = "Add the JSON object payload as a Redis stream entry (XADD)"

    SETTINGS = REDIS_SETTINGS + (
        Setting("message_id", "redis-message-id", "REDIS_MESSAGE_ID", "Stream entry id", default="*"),
    )

    def _fields(self, payload: bytes) -> Dict[str, Any]:
        try:
            message: Optional[Any] = json.loads(payload)
        except (ValueError, UnicodeDecodeError) as e:
            raise DeliveryError(f"{self.name}: payload is not valid JSON: {e}")
        if not isinstance(message, dict) or not message:
            raise DeliveryError(f"{self.name}: payload must be a non-empty JSON object")
        return {key: _stream_value(value) for key, value in message.items()}

    def _send(self, payload: bytes) -> None:
        fields = self._fields(payload)
        entry_id = self._client.xadd(self.key, fields, id=self.message_id or "*")
        if isinstance(entry_id, bytes):
            entry_id = entry_id.decode()
        logger.info(f"Added entry {entry_id} to redis stream {self.key}")
