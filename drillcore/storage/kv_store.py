"""
DuckDB-backed key-value store for drillcore.
"""

import duckdb
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from ..exceptions import StorageError, StorageOperationError
from .base import KeyValueStore
from .connection import ConnectionHandler
from .schema_manager import SchemaManager

logger = logging.getLogger(__name__)


class DuckDBKeyValueStore(KeyValueStore):
    """
    Persists blobs in a single DuckDB table. Usable as a context manager.
    """

    _LOAD_SQL = "SELECT value FROM kv_store WHERE key = $1"
    _SAVE_SQL = """
        INSERT INTO kv_store (key, value, updated_at)
        VALUES ($1, $2, $3)
        ON CONFLICT (key) DO UPDATE SET
            value = EXCLUDED.value,
            updated_at = EXCLUDED.updated_at;
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Args:
            db_path: Path to the database file, or ':memory:'.
            read_only: Open the database read-only; saves will fail.
        """
        self._handler = ConnectionHandler(db_path=db_path, read_only=read_only)
        self._schema_manager = SchemaManager(self._handler)
        self._schema_ready = False

    @property
    def db_path_resolved(self) -> Path:
        return self._handler.db_path_resolved

    def _connection(self) -> duckdb.DuckDBPyConnection:
        conn = self._handler.get_connection()
        if not self._schema_ready:
            self._schema_manager.initialize_schema()
            self._schema_ready = True
        return conn

    def load(self, key: str) -> Optional[str]:
        try:
            row = self._connection().execute(self._LOAD_SQL, [key]).fetchone()
        except StorageError:
            raise
        except duckdb.Error as e:
            logger.error(f"Failed to load key '{key}': {e}")
            raise StorageOperationError(
                f"Failed to load key '{key}': {e}", original_exception=e
            ) from e
        return row[0] if row else None

    def save(self, key: str, blob: str) -> None:
        try:
            self._connection()
            with self._handler.transaction() as cursor:
                cursor.execute(
                    self._SAVE_SQL, [key, blob, datetime.now(timezone.utc)]
                )
        except StorageError:
            raise
        except duckdb.Error as e:
            logger.error(f"Failed to save key '{key}': {e}")
            raise StorageOperationError(
                f"Failed to save key '{key}': {e}", original_exception=e
            ) from e

    def close(self) -> None:
        self._handler.close_connection()
        self._schema_ready = False

    def __enter__(self) -> "DuckDBKeyValueStore":
        self._connection()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
