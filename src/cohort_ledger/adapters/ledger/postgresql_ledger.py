"""PostgreSQL Ledger Adapter.

This adapter implements the LedgerPort contract on top of PostgreSQL for
deployments where several custodians share one durable ledger.

Security Impact:
    - Connection credentials are never logged
    - SSL connections supported for secure communication
    - Values are stored as opaque BYTEA; only keys appear in logs

Architecture:
    - Implements LedgerPort (Hexagonal Architecture)
    - Connections come from a psycopg2 ThreadedConnectionPool
    - Range scans use a server-side named cursor ordered with the "C" collation
      so that key order is byte order regardless of the database locale
"""

import logging
import threading
import uuid
from typing import Iterator, Optional

import psycopg2
from psycopg2 import pool

from cohort_ledger.domain.ports import LedgerPort, PersistenceError
from cohort_ledger.infrastructure.config_manager import LedgerConfig
from cohort_ledger.infrastructure.settings import DEFAULT_SCAN_BATCH_SIZE

logger = logging.getLogger(__name__)


class PostgreSQLLedger(LedgerPort):
    """PostgreSQL implementation of LedgerPort.

    Parameters:
        ledger_config: LedgerConfig from configuration manager (preferred)
        connection_string: Full PostgreSQL connection string
        pool_size: Connection pool size (default: 5)
        max_overflow: Maximum connection pool overflow (default: 10)
        scan_batch_size: Rows fetched per round trip during range scans

    Example Usage:
        ```python
        from cohort_ledger.infrastructure.config_manager import ConfigManager

        ledger = PostgreSQLLedger(ledger_config=ConfigManager.from_environment().get_ledger_config())
        ledger.put("P001", b"{...}")
        ```
    """

    def __init__(
        self,
        ledger_config: Optional[LedgerConfig] = None,
        connection_string: Optional[str] = None,
        pool_size: int = 5,
        max_overflow: int = 10,
        scan_batch_size: int = DEFAULT_SCAN_BATCH_SIZE,
    ):
        self._connection_pool: Optional[pool.ThreadedConnectionPool] = None
        self._schema_initialized = False
        self._schema_lock = threading.Lock()

        if scan_batch_size <= 0:
            raise PersistenceError(
                f"scan_batch_size must be positive. Got: {scan_batch_size}",
                operation="__init__"
            )
        self.scan_batch_size = scan_batch_size

        if ledger_config:
            if ledger_config.ledger_type != "postgresql":
                raise PersistenceError(
                    f"LedgerConfig type '{ledger_config.ledger_type}' does not match PostgreSQL ledger",
                    operation="__init__"
                )

            if ledger_config.connection_string:
                self.connection_params = {"dsn": ledger_config.connection_string.get_secret_value()}
            else:
                if not all([ledger_config.host, ledger_config.database]):
                    raise PersistenceError(
                        "PostgreSQL LedgerConfig requires host and database",
                        operation="__init__"
                    )
                self.connection_params = {
                    "host": ledger_config.host,
                    "port": ledger_config.port or 5432,
                    "database": ledger_config.database,
                    "user": ledger_config.username,
                    "sslmode": ledger_config.ssl_mode or "prefer",
                }
                if ledger_config.password:
                    self.connection_params["password"] = ledger_config.password.get_secret_value()

            self.pool_size = ledger_config.pool_size
            self.max_overflow = ledger_config.max_overflow
        elif connection_string:
            self.connection_params = {"dsn": connection_string}
            self.pool_size = pool_size
            self.max_overflow = max_overflow
        else:
            raise PersistenceError(
                "PostgreSQL ledger requires either ledger_config or connection_string",
                operation="__init__"
            )

    def _get_connection_pool(self) -> pool.ThreadedConnectionPool:
        if self._connection_pool is None:
            try:
                self._connection_pool = pool.ThreadedConnectionPool(
                    minconn=1,
                    maxconn=self.pool_size + self.max_overflow,
                    **self.connection_params
                )
                logger.info("Created PostgreSQL connection pool")
            except psycopg2.Error as e:
                raise PersistenceError(
                    f"Failed to create PostgreSQL connection pool: {str(e)}",
                    operation="connect",
                    details={"host": self.connection_params.get("host", "N/A")}
                ) from e
        return self._connection_pool

    def _get_connection(self):
        """Get a pooled connection, creating the schema on first use.

        Raises:
            PersistenceError: If connection cannot be obtained
        """
        try:
            conn = self._get_connection_pool().getconn()
        except psycopg2.Error as e:
            raise PersistenceError(
                f"Failed to get connection from pool: {str(e)}",
                operation="get_connection"
            ) from e

        if not self._schema_initialized:
            with self._schema_lock:
                if not self._schema_initialized:
                    try:
                        self._initialize_schema(conn)
                    except PersistenceError:
                        self._return_connection(conn)
                        raise
        return conn

    def _return_connection(self, conn) -> None:
        try:
            self._get_connection_pool().putconn(conn)
        except psycopg2.Error as e:
            logger.warning(f"Error returning connection to pool: {str(e)}")

    def _initialize_schema(self, conn) -> None:
        try:
            with conn.cursor() as cursor:
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS world_state (
                        key TEXT PRIMARY KEY,
                        value BYTEA NOT NULL
                    )
                """)
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Failed to initialize ledger schema: {str(e)}", exc_info=True)
            raise PersistenceError(
                f"Failed to initialize schema: {str(e)}",
                operation="initialize_schema"
            ) from e
        self._schema_initialized = True
        logger.info("Ledger schema initialized successfully")

    def put(self, key: str, value: bytes) -> None:
        conn = self._get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute(
                    """
                    INSERT INTO world_state (key, value) VALUES (%s, %s)
                    ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
                    """,
                    (key, psycopg2.Binary(bytes(value)))
                )
            conn.commit()
            logger.debug(f"Wrote key {key} ({len(value)} bytes)")
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Failed to write key {key}: {str(e)}", exc_info=True)
            raise PersistenceError(
                f"Failed to write to world state: {str(e)}",
                operation="put",
                details={"key": key}
            ) from e
        finally:
            self._return_connection(conn)

    def get(self, key: str) -> Optional[bytes]:
        conn = self._get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute("SELECT value FROM world_state WHERE key = %s", (key,))
                row = cursor.fetchone()
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Failed to read key {key}: {str(e)}", exc_info=True)
            raise PersistenceError(
                f"Failed to read from world state: {str(e)}",
                operation="get",
                details={"key": key}
            ) from e
        finally:
            self._return_connection(conn)
        return bytes(row[0]) if row is not None else None

    def range_scan(self, first_key: str, last_key: str) -> Iterator[tuple[str, bytes]]:
        """Stream rows with keys in ``[first_key, last_key)`` in byte order.

        An empty ``last_key`` leaves the range open-ended. The named cursor is
        closed and the connection returned to the pool when the scan ends.
        """
        query = 'SELECT key, value FROM world_state WHERE key COLLATE "C" >= %s'
        params = [first_key]
        if last_key:
            query += ' AND key COLLATE "C" < %s'
            params.append(last_key)
        query += ' ORDER BY key COLLATE "C"'

        conn = self._get_connection()
        cursor = None
        try:
            cursor = conn.cursor(name=f"range_scan_{uuid.uuid4().hex}")
            cursor.itersize = self.scan_batch_size
            cursor.execute(query, params)
            while True:
                batch = cursor.fetchmany(self.scan_batch_size)
                if not batch:
                    break
                for key, value in batch:
                    yield key, bytes(value)
        except psycopg2.Error as e:
            logger.error(f"Range scan failed: {str(e)}", exc_info=True)
            raise PersistenceError(
                f"Failed to scan world state: {str(e)}",
                operation="range_scan",
                details={"first_key": first_key, "last_key": last_key}
            ) from e
        finally:
            try:
                if cursor is not None:
                    cursor.close()
                conn.rollback()
            except psycopg2.Error as e:
                logger.warning(f"Error closing range scan cursor: {str(e)}")
            self._return_connection(conn)

    def close(self) -> None:
        """Close all pooled connections."""
        if self._connection_pool is not None:
            try:
                self._connection_pool.closeall()
                logger.info("Closed PostgreSQL connection pool")
            except psycopg2.Error as e:
                logger.warning(f"Error closing connection pool: {str(e)}")
            finally:
                self._connection_pool = None
