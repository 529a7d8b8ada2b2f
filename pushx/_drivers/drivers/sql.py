"""SQL drivers: run one parameterized statement per push.

``postgres``, ``cockroach``, ``mysql`` and ``mssql`` share the same flow
through SQLAlchemy. The statement is passed to the DB-API driver as is,
so placeholders follow its paramstyle (``%s`` for psycopg2, PyMySQL and
pymssql). Parameter slots are resolved against the payload before the
statement runs:

    --psql-query "INSERT INTO events (id, body) VALUES (%s, %s)"
    --psql-params "{{id}},{{pushx_payload}}"

An empty query makes push a no-op.
"""

from typing import Any, BinaryIO, Dict, Tuple

from pushx.exceptions import BackendConnectionError, ConfigurationError, DeliveryError
from pushx.logging_config import logger
from pushx.template import SqlQuery

from ..protocol import BaseDriver, Setting, import_client, parse_int, parse_slots


def sql_settings(flag_prefix: str, env_prefix: str, label: str, port: int) -> Tuple[Setting, ...]:
    """Connection and query settings common to every SQL driver."""
    return (
        Setting("host", f"{flag_prefix}-host", f"{env_prefix}_HOST", f"{label} host"),
        Setting("port", f"{flag_prefix}-port", f"{env_prefix}_PORT", f"{label} port", default=port, parser=parse_int),
        Setting("user", f"{flag_prefix}-user", f"{env_prefix}_USER", f"{label} user"),
        Setting("password", f"{flag_prefix}-password", f"{env_prefix}_PASSWORD", f"{label} password", secret=True),
        Setting("database", f"{flag_prefix}-database", f"{env_prefix}_DATABASE", f"{label} database"),
        Setting("query", f"{flag_prefix}-query", f"{env_prefix}_QUERY", f"{label} query", default=""),
        Setting(
            "params",
            f"{flag_prefix}-params",
            f"{env_prefix}_QUERY_PARAMS",
            f"{label} query params, comma separated; may contain {{{{selector}}}} tokens",
            default=[],
            parser=parse_slots,
        ),
    )


class SQLDriver(BaseDriver):
    """Base class for SQLAlchemy-backed drivers."""

    DRIVERNAME = ""
    EXTRA = "sql"

    def __init__(self) -> None:
        super().__init__()
        self._engine: Any = None
        self._connection: Any = None
        self._sa: Any = None

    def _url_query(self) -> Dict[str, str]:
        return {}

    def _create_engine(self) -> Any:
        url = self._sa.engine.URL.create(
            self.DRIVERNAME,
            username=self.user or None,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.database or None,
            query=self._url_query(),
        )
        try:
            return self._sa.create_engine(url)
        except ImportError as e:
            raise ConfigurationError(
                f"{self.name}: database driver for {self.DRIVERNAME} is not installed; "
                f"install with 'pip install pushx[{self.EXTRA}]' ({e})"
            )

    def init(self) -> None:
        super().init()
        self.require("host")
        self._sa = import_client("sqlalchemy", self.EXTRA, self.name)
        self._engine = self._create_engine()
        logger.debug(f"[{self.name}] Connecting to {self.host}:{self.port}")
        try:
            self._connection = self._engine.connect()
        except self._sa.exc.SQLAlchemyError as e:
            self._engine.dispose()
            self._engine = None
            raise BackendConnectionError(f"{self.name}: failed to connect to {self.host}:{self.port}: {e}")
        logger.debug(f"[{self.name}] Connected")

    def push(self, stream: BinaryIO) -> None:
        if not self.query:
            logger.info(f"[{self.name}] No query configured, nothing to do")
            return
        if self._connection is None:
            raise DeliveryError(f"{self.name}: driver not initialized")

        payload = stream.read()
        statement = SqlQuery(query=self.query, params=list(self.params or []))
        params = statement.resolve(payload)
        logger.debug(f"[{self.name}] Executing query: {statement.query}")
        try:
            self._connection.exec_driver_sql(statement.query, params)
            self._connection.commit()
        except self._sa.exc.SQLAlchemyError as e:
            self._connection.rollback()
            raise DeliveryError(f"{self.name}: query failed: {e}")
        logger.info(f"[{self.name}] Query executed")

    def cleanup(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None


class PostgresDriver(SQLDriver):
    name = "postgres"
    description = "Execute a parameterized query against PostgreSQL"
    DRIVERNAME = "postgresql+psycopg2"
    EXTRA = "postgres"

    SETTINGS = sql_settings("psql", "PSQL", "PostgreSQL", 5432) + (
        Setting("ssl_mode", "psql-ssl-mode", "PSQL_SSL_MODE", "PostgreSQL SSL mode", default="disable"),
    )

    def _url_query(self) -> Dict[str, str]:
        return {"sslmode": self.ssl_mode} if self.ssl_mode else {}


class CockroachDriver(SQLDriver):
    name = "cockroach"
    description = "Execute a parameterized query against CockroachDB"
    DRIVERNAME = "postgresql+psycopg2"
    EXTRA = "postgres"

    SETTINGS = sql_settings("cockroach", "COCKROACH", "CockroachDB", 26257) + (
        Setting("ssl_mode", "cockroach-ssl-mode", "COCKROACH_SSL_MODE", "CockroachDB SSL mode", default="disable"),
        Setting("routing_id", "cockroach-routing-id", "COCKROACH_ROUTING_ID", "CockroachDB serverless routing id"),
        Setting("tls_root_cert", "cockroach-tls-root-cert", "COCKROACH_TLS_ROOT_CERT", "CockroachDB TLS root cert"),
        Setting("tls_cert", "cockroach-tls-cert", "COCKROACH_TLS_CERT", "CockroachDB TLS cert"),
        Setting("tls_key", "cockroach-tls-key", "COCKROACH_TLS_KEY", "CockroachDB TLS key"),
    )

    def _url_query(self) -> Dict[str, str]:
        query: Dict[str, str] = {}
        if self.ssl_mode:
            query["sslmode"] = self.ssl_mode
        if self.tls_root_cert:
            query["sslrootcert"] = self.tls_root_cert
        if self.tls_cert:
            query["sslcert"] = self.tls_cert
        if self.tls_key:
            query["sslkey"] = self.tls_key
        if self.routing_id:
            query["options"] = f"--cluster={self.routing_id}"
        return query


class MySQLDriver(SQLDriver):
    name = "mysql"
    description = "Execute a parameterized query against MySQL"
    DRIVERNAME = "mysql+pymysql"
    EXTRA = "mysql"

    SETTINGS = sql_settings("mysql", "MYSQL", "MySQL", 3306)


class MSSQLDriver(SQLDriver):
    name = "mssql"
    description = "Execute a parameterized query against Microsoft SQL Server"
    DRIVERNAME = "mssql+pymssql"
    EXTRA = "mssql"

    SETTINGS = sql_settings("mssql", "MSSQL", "MSSQL", 1433)
