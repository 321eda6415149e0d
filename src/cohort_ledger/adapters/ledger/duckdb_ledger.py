"""DuckDB Ledger Adapter.

This adapter implements the LedgerPort contract on top of DuckDB, an
in-process database. A single ``world_state`` table maps string keys to
opaque byte values.

Security Impact:
    - Values are stored as opaque BLOBs; the adapter never inspects them
    - Database path is validated before connecting
    - Values are never logged, only keys

Architecture:
    - Implements LedgerPort (Hexagonal Architecture)
    - Schema is created lazily on first use
    - Range scans run on a dedicated cursor that is closed when the scan ends
"""

import logging
from pathlib import Path
from typing import Iterator, Optional

import duckdb

from cohort_ledger.domain.ports import LedgerPort, PersistenceError
from cohort_ledger.infrastructure.config_manager import LedgerConfig
from cohort_ledger.infrastructure.settings import DEFAULT_SCAN_BATCH_SIZE

logger = logging.getLogger(__name__)


class DuckDBLedger(LedgerPort):
    """DuckDB implementation of LedgerPort.

    Keys are compared with DuckDB's default binary collation, so range scans
    return keys in byte-wise lexicographic order.

    Parameters:
        ledger_config: LedgerConfig from the configuration manager (preferred)
        db_path: Path to DuckDB database file (or ':memory:' for in-memory)
        scan_batch_size: Rows fetched per round trip during range scans

    Example Usage:
        ```python
        ledger = DuckDBLedger(db_path="data/ledger.duckdb")
        ledger.put("P001", b"{...}")
        value = ledger.get("P001")
        ledger.close()
        ```
    """

    def __init__(
        self,
        ledger_config: Optional[LedgerConfig] = None,
        db_path: Optional[str] = None,
        scan_batch_size: int = DEFAULT_SCAN_BATCH_SIZE,
    ):
        if ledger_config:
            if ledger_config.ledger_type != "duckdb":
                raise PersistenceError(
                    f"LedgerConfig type '{ledger_config.ledger_type}' does not match DuckDB ledger",
                    operation="__init__"
                )
            self.db_path = ledger_config.db_path or ":memory:"
        else:
            self.db_path = db_path or ":memory:"

        if scan_batch_size <= 0:
            raise PersistenceError(
                f"scan_batch_size must be positive. Got: {scan_batch_size}",
                operation="__init__"
            )
        self.scan_batch_size = scan_batch_size
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialized = False

        if self.db_path != ":memory:":
            db_path_obj = Path(self.db_path)
            if not db_path_obj.parent.exists():
                raise PersistenceError(
                    f"Database directory does not exist: {db_path_obj.parent}",
                    operation="__init__"
                )

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection and ensure the schema exists."""
        if self._connection is None:
            try:
                self._connection = duckdb.connect(self.db_path)
                logger.info(f"Connected to DuckDB ledger: {self.db_path}")
            except duckdb.Error as e:
                raise PersistenceError(
                    f"Failed to connect to DuckDB: {str(e)}",
                    operation="connect",
                    details={"db_path": self.db_path}
                ) from e

        if not self._initialized:
            self.initialize_schema()
        return self._connection

    def initialize_schema(self) -> None:
        """Create the world_state table if it does not exist.

        Raises:
            PersistenceError: If the table cannot be created
        """
        try:
            self._connection.execute("""
                CREATE TABLE IF NOT EXISTS world_state (
                    key VARCHAR PRIMARY KEY,
                    value BLOB NOT NULL
                )
            """)
        except duckdb.Error as e:
            logger.error(f"Failed to initialize ledger schema: {str(e)}", exc_info=True)
            raise PersistenceError(
                f"Failed to initialize schema: {str(e)}",
                operation="initialize_schema"
            ) from e
        self._initialized = True
        logger.info("Ledger schema initialized successfully")

    def put(self, key: str, value: bytes) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO world_state (key, value) VALUES (?, ?)",
                [key, bytes(value)]
            )
        except duckdb.Error as e:
            logger.error(f"Failed to write key {key}: {str(e)}", exc_info=True)
            raise PersistenceError(
                f"Failed to write to world state: {str(e)}",
                operation="put",
                details={"key": key}
            ) from e
        logger.debug(f"Wrote key {key} ({len(value)} bytes)")

    def get(self, key: str) -> Optional[bytes]:
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT value FROM world_state WHERE key = ?", [key]).fetchone()
        except duckdb.Error as e:
            logger.error(f"Failed to read key {key}: {str(e)}", exc_info=True)
            raise PersistenceError(
                f"Failed to read from world state: {str(e)}",
                operation="get",
                details={"key": key}
            ) from e
        return bytes(row[0]) if row is not None else None

    def range_scan(self, first_key: str, last_key: str) -> Iterator[tuple[str, bytes]]:
        """Stream rows with keys in ``[first_key, last_key)`` in key order.

        An empty ``last_key`` leaves the range open-ended.
        """
        conn = self._get_connection()
        query = "SELECT key, value FROM world_state WHERE key >= ?"
        params = [first_key]
        if last_key:
            query += " AND key < ?"
            params.append(last_key)
        query += " ORDER BY key"

        try:
            cursor = conn.cursor()
        except duckdb.Error as e:
            raise PersistenceError(
                f"Failed to open range scan cursor: {str(e)}",
                operation="range_scan",
                details={"first_key": first_key, "last_key": last_key}
            ) from e

        try:
            try:
                cursor.execute(query, params)
            except duckdb.Error as e:
                raise PersistenceError(
                    f"Failed to start range scan: {str(e)}",
                    operation="range_scan",
                    details={"first_key": first_key, "last_key": last_key}
                ) from e

            while True:
                try:
                    batch = cursor.fetchmany(self.scan_batch_size)
                except duckdb.Error as e:
                    raise PersistenceError(
                        f"Failed to fetch range scan rows: {str(e)}",
                        operation="range_scan",
                        details={"first_key": first_key, "last_key": last_key}
                    ) from e
                if not batch:
                    break
                for key, value in batch:
                    yield key, bytes(value)
        finally:
            cursor.close()
            logger.debug(f"Closed range scan cursor [{first_key!r}, {last_key!r})")

    def close(self) -> None:
        """Close the connection and release resources."""
        if self._connection is not None:
            try:
                self._connection.close()
                logger.info("Closed DuckDB connection")
            except duckdb.Error as e:
                logger.warning(f"Error closing connection: {str(e)}")
            finally:
                self._connection = None
                self._initialized = False
