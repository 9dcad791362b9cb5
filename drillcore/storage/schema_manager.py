import duckdb
import logging

from .connection import ConnectionHandler
from ..exceptions import SchemaInitializationError

logger = logging.getLogger(__name__)

KV_SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS kv_store (
        key VARCHAR PRIMARY KEY,
        value VARCHAR NOT NULL,
        updated_at TIMESTAMP WITH TIME ZONE NOT NULL
    );
"""


class SchemaManager:
    """Creates the key-value table the drill store persists into."""

    def __init__(self, handler: ConnectionHandler):
        self._handler = handler

    def initialize_schema(self) -> None:
        """
        Creates the table if it is missing. Skipped for read-only file
        databases, which are expected to already carry it.

        Raises:
            SchemaInitializationError: If the DDL fails.
        """
        if self._handler.read_only and not self._handler.is_memory:
            logger.warning(
                "Attempting to initialize schema in read-only mode. Skipping."
            )
            return

        try:
            with self._handler.transaction() as cursor:
                cursor.execute(KV_SCHEMA_SQL)
        except duckdb.Error as e:
            logger.error(
                f"Error initializing schema at {self._handler.db_path_resolved}: {e}"
            )
            raise SchemaInitializationError(
                f"Failed to initialize schema: {e}", original_exception=e
            ) from e
        logger.debug(
            f"Schema at {self._handler.db_path_resolved} ready."
        )
