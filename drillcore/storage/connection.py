"""
Lazily opened DuckDB connection shared by the key-value store and its schema
manager.
"""

import duckdb
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from ..exceptions import StorageConnectionError

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


def _resolve_db_path(db_path: Union[str, Path]) -> Path:
    if isinstance(db_path, str) and db_path.lower() == MEMORY_PATH:
        return Path(MEMORY_PATH)
    return Path(db_path).resolve()


class ConnectionHandler:
    """
    Opens the drill database on first use and hands out its connection.

    The handler can be closed and reused; the next call reopens the database.
    """

    def __init__(self, db_path: Union[str, Path], read_only: bool = False):
        """
        Parameters:
            db_path: Database file, or ":memory:" (any case) for a transient
                in-process database.
            read_only: Open the database read-only.
        """
        self.db_path_resolved = _resolve_db_path(db_path)
        self.read_only = read_only
        self._connection: Optional[duckdb.DuckDBPyConnection] = None

    @property
    def is_memory(self) -> bool:
        return str(self.db_path_resolved) == MEMORY_PATH

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        """
        Return the open connection, opening the database if needed.

        Raises:
            StorageConnectionError: If DuckDB cannot open the database.
        """
        if self._connection is not None:
            return self._connection

        if not self.is_memory:
            self.db_path_resolved.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._connection = duckdb.connect(
                database=str(self.db_path_resolved), read_only=self.read_only
            )
        except duckdb.Error as e:
            raise StorageConnectionError(
                f"Failed to open drill database at {self.db_path_resolved}: {e}",
                original_exception=e,
            ) from e
        logger.info(
            f"Opened drill database at {self.db_path_resolved}"
            f"{' (read-only)' if self.read_only else ''}."
        )
        return self._connection

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """
        Yield a cursor inside BEGIN/COMMIT. A DuckDB error rolls the
        transaction back and is re-raised.
        """
        cursor = self.get_connection().cursor()
        try:
            cursor.begin()
            yield cursor
            cursor.commit()
        except duckdb.Error:
            try:
                cursor.rollback()
            except duckdb.Error as rb_err:
                logger.error(f"Failed to roll back transaction: {rb_err}")
            raise
        finally:
            cursor.close()

    def close_connection(self) -> None:
        if self._connection is None:
            return
        try:
            self._connection.close()
            logger.info(f"Closed drill database at {self.db_path_resolved}.")
        except duckdb.Error as e:
            logger.error(f"Error closing the database connection: {e}")
        finally:
            self._connection = None
