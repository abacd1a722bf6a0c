"""DuckDB Storage Adapter.

This adapter implements RecordStorePort and PrincipalStorePort on DuckDB, an
in-process database, so the sharing engine can run outside a ledger platform.

Security Impact:
    - Records are stored in their persisted JSON encoding, one row per key
    - The patient id is projected into its own column for queries
    - Connection paths are validated; diagnosis text is never logged

Architecture:
    - Implements both storage ports (Hexagonal Architecture)
    - Isolated from domain core - only depends on ports, models and codec
    - atomic() wraps a read-modify-write in a process lock plus a DuckDB
      transaction, standing in for the ledger's commit-time validation
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

import duckdb

from emr_share.domain.codec import decode_principal, decode_record, encode_principal, encode_record
from emr_share.domain.models import MedicalRecord, Principal
from emr_share.domain.ports import PrincipalStorePort, RecordStorePort, StoreError
from emr_share.infrastructure.config_manager import StoreConfig

logger = logging.getLogger(__name__)


class DuckDBAdapter(RecordStorePort, PrincipalStorePort):
    """DuckDB implementation of the record and principal stores.

    Parameters:
        store_config: StoreConfig from configuration manager (preferred)
        db_path: Path to DuckDB database file (or ':memory:' for in-memory)

    Example Usage:
        ```python
        from emr_share.infrastructure.config_manager import get_store_config

        adapter = DuckDBAdapter(store_config=get_store_config())
        adapter.initialize_schema()
        service = RecordService(adapter, Directory(adapter))
        ```
    """

    def __init__(self, store_config: Optional[StoreConfig] = None, db_path: Optional[str] = None):
        """Initialize DuckDB adapter.

        Note:
            If both store_config and db_path are provided, store_config takes precedence.
            If neither is provided, defaults to in-memory database.
        """
        if store_config:
            if store_config.store_type != "duckdb":
                raise StoreError(
                    f"StoreConfig type '{store_config.store_type}' does not match DuckDB adapter",
                    operation="__init__"
                )
            self.db_path = store_config.db_path or ":memory:"
        elif db_path:
            self.db_path = db_path
        else:
            self.db_path = ":memory:"

        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialized = False
        self._lock = threading.RLock()
        self._tx_depth = 0

        if self.db_path != ":memory:":
            db_path_obj = Path(self.db_path)
            if not db_path_obj.parent.exists():
                raise StoreError(
                    f"Database directory does not exist: {db_path_obj.parent}",
                    operation="__init__"
                )

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection (lazily, reused afterwards)."""
        if self._connection is None:
            try:
                self._connection = duckdb.connect(self.db_path)
                logger.info(f"Connected to DuckDB database: {self.db_path}")
            except duckdb.Error as e:
                raise StoreError(
                    f"Failed to connect to DuckDB: {str(e)}",
                    operation="connect",
                    details={"db_path": self.db_path}
                ) from e
        return self._connection

    def initialize_schema(self) -> None:
        """Create the records and principals tables if they do not exist.

        Raises:
            StoreError: If the schema cannot be created
        """
        try:
            conn = self._get_connection()

            conn.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    emr_id VARCHAR PRIMARY KEY,
                    patient_id VARCHAR NOT NULL,
                    document VARCHAR NOT NULL,
                    stored_at TIMESTAMP NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS principals (
                    display_name VARCHAR PRIMARY KEY,
                    principal_id VARCHAR NOT NULL,
                    role VARCHAR NOT NULL,
                    document VARCHAR NOT NULL
                )
            """)

            self._initialized = True
            logger.info("Record store schema initialized successfully")

        except duckdb.Error as e:
            error_msg = f"Failed to initialize schema: {str(e)}"
            logger.error(error_msg, exc_info=True)
            raise StoreError(error_msg, operation="initialize_schema") from e

    def _ready(self) -> duckdb.DuckDBPyConnection:
        if not self._initialized:
            self.initialize_schema()
        return self._get_connection()

    @contextmanager
    def atomic(self, key: str) -> Iterator[None]:
        with self._lock:
            conn = self._ready()
            outermost = self._tx_depth == 0
            if outermost:
                try:
                    conn.begin()
                except duckdb.Error as e:
                    error_msg = f"Failed to begin transaction on {key}: {str(e)}"
                    logger.error(error_msg, exc_info=True)
                    raise StoreError(error_msg, operation="begin", details={"key": key}) from e
            self._tx_depth += 1
            try:
                yield
            except BaseException:
                self._tx_depth -= 1
                if outermost:
                    try:
                        conn.rollback()
                        logger.debug(f"Rolled back transaction on {key}")
                    except duckdb.Error:
                        # the original failure is re-raised below
                        logger.error(f"Failed to roll back transaction on {key}", exc_info=True)
                raise
            else:
                self._tx_depth -= 1
                if outermost:
                    try:
                        conn.commit()
                    except duckdb.Error as e:
                        error_msg = f"Failed to commit transaction on {key}: {str(e)}"
                        logger.error(error_msg, exc_info=True)
                        raise StoreError(error_msg, operation="commit", details={"key": key}) from e

    # ------------------------------------------------------------------
    # RecordStorePort
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[MedicalRecord]:
        with self._lock:
            try:
                row = self._ready().execute(
                    "SELECT document FROM records WHERE emr_id = ?", [key]
                ).fetchone()
            except duckdb.Error as e:
                error_msg = f"Failed to read record {key}: {str(e)}"
                logger.error(error_msg, exc_info=True)
                raise StoreError(error_msg, operation="get", details={"key": key}) from e

        if row is None:
            return None
        return decode_record(row[0].encode("utf-8"), key=key)

    def put(self, key: str, record: MedicalRecord) -> None:
        document = encode_record(record).decode("utf-8")

        with self._lock:
            try:
                conn = self._ready()
                exists = conn.execute(
                    "SELECT 1 FROM records WHERE emr_id = ?", [key]
                ).fetchone()
                if exists:
                    conn.execute(
                        "UPDATE records SET patient_id = ?, document = ?, stored_at = ? WHERE emr_id = ?",
                        [record.patient_id, document, datetime.now(), key]
                    )
                else:
                    conn.execute(
                        "INSERT INTO records (emr_id, patient_id, document, stored_at) VALUES (?, ?, ?, ?)",
                        [key, record.patient_id, document, datetime.now()]
                    )
            except duckdb.Error as e:
                error_msg = f"Failed to store record {key}: {str(e)}"
                logger.error(error_msg, exc_info=True)
                raise StoreError(error_msg, operation="put", details={"key": key}) from e

        logger.debug(f"Stored record {key}")

    def query_by_patient_id(self, patient_id: str) -> Iterator[MedicalRecord]:
        with self._lock:
            try:
                rows = self._ready().execute(
                    "SELECT emr_id, document FROM records WHERE patient_id = ?", [patient_id]
                ).fetchall()
            except duckdb.Error as e:
                error_msg = f"Failed to query records by patient: {str(e)}"
                logger.error(error_msg, exc_info=True)
                raise StoreError(error_msg, operation="query") from e

        for emr_id, document in rows:
            yield decode_record(document.encode("utf-8"), key=emr_id)

    # ------------------------------------------------------------------
    # PrincipalStorePort
    # ------------------------------------------------------------------

    def get_principal(self, display_name: str) -> Optional[Principal]:
        with self._lock:
            try:
                row = self._ready().execute(
                    "SELECT document FROM principals WHERE display_name = ?", [display_name]
                ).fetchone()
            except duckdb.Error as e:
                error_msg = f"Failed to read principal {display_name}: {str(e)}"
                logger.error(error_msg, exc_info=True)
                raise StoreError(error_msg, operation="get_principal", details={"key": display_name}) from e

        if row is None:
            return None
        return decode_principal(row[0].encode("utf-8"), key=display_name)

    def put_principal(self, principal: Principal) -> None:
        document = encode_principal(principal).decode("utf-8")

        with self._lock:
            try:
                self._ready().execute(
                    "INSERT OR REPLACE INTO principals (display_name, principal_id, role, document) "
                    "VALUES (?, ?, ?, ?)",
                    [principal.display_name, principal.id, principal.role.value, document]
                )
            except duckdb.Error as e:
                error_msg = f"Failed to store principal {principal.display_name}: {str(e)}"
                logger.error(error_msg, exc_info=True)
                raise StoreError(
                    error_msg, operation="put_principal", details={"key": principal.display_name}
                ) from e

    def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            try:
                self._connection.close()
                self._connection = None
                logger.info("Closed DuckDB connection")
            except duckdb.Error as e:
                logger.warning(f"Error closing connection: {str(e)}")
