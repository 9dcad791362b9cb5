from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class StorageError(Exception):
    """Base exception for persistence-related errors."""

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class StorageConnectionError(StorageError):
    """Raised for errors connecting to the backing store."""

    pass


class SchemaInitializationError(StorageError):
    """Raised for errors during schema setup."""

    pass


class StorageOperationError(StorageError):
    """Raised when a load or save against the backing store fails."""

    pass


class MarshallingError(StorageError):
    """Indicates an error during data conversion between application models
    and the persisted blob format."""

    pass


@dataclass
class DrillFileError(Exception):
    file_path: Path
    message: str
    drill_index: Optional[int] = None
    drill_id: Optional[str] = None
    field_name: Optional[str] = None

    def __str__(self) -> str:
        """
        Format the error into a single human-readable line with whatever
        file, drill and field context is available.
        """
        context_parts = [f"File: {self.file_path.name}"]
        if self.drill_index is not None:
            context_parts.append(f"Drill Index: {self.drill_index}")
        if self.drill_id:
            context_parts.append(f"ID: '{self.drill_id}'")
        if self.field_name:
            context_parts.append(f"Field: '{self.field_name}'")
        return f"{' | '.join(context_parts)} | Error: {self.message}"
