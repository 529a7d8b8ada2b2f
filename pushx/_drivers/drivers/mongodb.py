"""MongoDB driver: inserts the JSON object payload as one document."""

import json
from typing import Any, BinaryIO, Dict

from pushx.exceptions import BackendConnectionError, DeliveryError
from pushx.logging_config import logger
from pushx.tls import build_ssl_context

from ..protocol import BaseDriver, Setting, import_client, parse_int, tls_settings

# Server selection timeout, milliseconds
MONGO_TIMEOUT_MS = 30000


class MongoDBDriver(BaseDriver):
    name = "mongodb"
    description = "Insert the JSON object payload into a MongoDB collection"

    SETTINGS = (
        Setting("host", "mongo-host", "MONGO_HOST", "MongoDB host"),
        Setting("port", "mongo-port", "MONGO_PORT", "MongoDB port", default=27017, parser=parse_int),
        Setting("user", "mongo-user", "MONGO_USER", "MongoDB user"),
        Setting("password", "mongo-password", "MONGO_PASSWORD", "MongoDB password", secret=True),
        Setting("database", "mongo-database", "MONGO_DATABASE", "MongoDB database"),
        Setting("collection", "mongo-collection", "MONGO_COLLECTION", "MongoDB collection"),
        Setting("auth_source", "mongo-auth-source", "MONGO_AUTH_SOURCE", "MongoDB auth source"),
        *tls_settings("mongo", "MONGO", "Mongo"),
    )

    def __init__(self) -> None:
        super().__init__()
        self._client: Any = None
        self._errors: Any = None

    def _client_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "serverSelectionTimeoutMS": MONGO_TIMEOUT_MS,
        }
        if self.user:
            kwargs["username"] = self.user
            kwargs["password"] = self.password or ""
        if self.auth_source:
            kwargs["authSource"] = self.auth_source

        options = self.tls_options()
        if options.enabled:
            build_ssl_context(options)
            kwargs["tls"] = True
            if options.insecure:
                kwargs["tlsInsecure"] = True
            if options.ca_file:
                kwargs["tlsCAFile"] = options.ca_file
            if options.cert_file:
                # pymongo expects certificate and key in one PEM file
                kwargs["tlsCertificateKeyFile"] = options.cert_file
        return kwargs

    def init(self) -> None:
        super().init()
        self.require("host", "database", "collection")
        pymongo = import_client("pymongo", "mongodb", self.name)
        self._errors = pymongo.errors

        logger.debug(f"[mongodb] Connecting to {self.host}:{self.port}")
        try:
            self._client = pymongo.MongoClient(**self._client_kwargs())
            self._client.admin.command("ping")
        except pymongo.errors.PyMongoError as e:
            if self._client is not None:
                self._client.close()
                self._client = None
            raise BackendConnectionError(f"mongodb: failed to connect to {self.host}:{self.port}: {e}")
        logger.debug("[mongodb] Connected")

    def push(self, stream: BinaryIO) -> None:
        if self._client is None:
            raise DeliveryError("mongodb: driver not initialized")

        try:
            document = json.loads(stream.read())
        except (ValueError, UnicodeDecodeError) as e:
            raise DeliveryError(f"mongodb: payload is not valid JSON: {e}")
        if not isinstance(document, dict):
            raise DeliveryError("mongodb: payload must be a JSON object")

        collection = self._client[self.database][self.collection]
        try:
            result = collection.insert_one(document)
        except self._errors.PyMongoError as e:
            raise DeliveryError(f"mongodb: insert into {self.database}.{self.collection} failed: {e}")
        logger.info(f"Inserted document {result.inserted_id} into {self.database}.{self.collection}")

    def cleanup(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
