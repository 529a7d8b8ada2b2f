"""Bundled destination drivers."""

from .aws import S3Driver, SQSDriver
from .elasticsearch import ElasticsearchDriver
from .fs import FSDriver
from .github import GitHubDriver
from .http import HTTPDriver
from .local import LocalDriver
from .mongodb import MongoDBDriver
from .rabbitmq import RabbitMQDriver
from .redis import RedisListDriver, RedisPubSubDriver, RedisStreamDriver
from .sql import CockroachDriver, MSSQLDriver, MySQLDriver, PostgresDriver

# Registered in this order by create_default_registry()
BUNDLED_DRIVERS = (
    LocalDriver,
    FSDriver,
    HTTPDriver,
    GitHubDriver,
    ElasticsearchDriver,
    RedisListDriver,
    RedisPubSubDriver,
    RedisStreamDriver,
    PostgresDriver,
    CockroachDriver,
    MySQLDriver,
    MSSQLDriver,
    S3Driver,
    SQSDriver,
    MongoDBDriver,
    RabbitMQDriver,
)

__all__ = [
    "BUNDLED_DRIVERS",
    "CockroachDriver",
    "ElasticsearchDriver",
    "FSDriver",
    "GitHubDriver",
    "HTTPDriver",
    "LocalDriver",
    "MSSQLDriver",
    "MongoDBDriver",
    "MySQLDriver",
    "PostgresDriver",
    "RabbitMQDriver",
    "RedisListDriver",
    "RedisPubSubDriver",
    "RedisStreamDriver",
    "S3Driver",
    "SQSDriver",
]
