"""
Exception classes for squasher.
"""

from typing import Any, Dict, List, Optional, Sequence


class SquasherError(Exception):
    """Base exception for all squasher errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(SquasherError):
    """Raised when there's an error in configuration."""

    pass


class ValidationError(SquasherError):
    """Raised when user input fails validation."""

    pass


class InvalidDateFormatError(ValidationError):
    """Raised when a cutoff date is not in YYYY-MM-DD form."""

    def __init__(self, value: str, expected: str = "YYYY-MM-DD") -> None:
        super().__init__(
            f"Invalid date format: {value}. Please use {expected} format (e.g., 2024-01-01)"
        )
        self.value = value
        self.expected = expected


class DatabaseError(SquasherError):
    """Raised when there's an error with database operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when a database engine cannot be created or reached."""

    pass


class UnsupportedCatalogError(DatabaseError):
    """Raised when the connected database dialect has no catalog support."""

    def __init__(self, dialect: str, supported: Sequence[str] = ()) -> None:
        details = {"supported": ", ".join(supported)} if supported else None
        super().__init__(f"Unsupported database driver: {dialect}", details)
        self.dialect = dialect


class SchemaError(DatabaseError):
    """Raised when there's an error reading schema metadata."""

    pass


class IntrospectionDegradation(SchemaError):
    """Raised by the reflection strategy when it cannot answer a catalog query.

    Never reaches the user: the inspector falls back to native catalog queries.
    """

    def __init__(self, operation: str, cause: Optional[Exception] = None) -> None:
        super().__init__(f"Reflection failed during {operation}", cause=cause)
        self.operation = operation


class EnumIntrospectionFailure(SchemaError):
    """Raised when enum/set values cannot be read for a column."""

    def __init__(self, table: str, column: str, cause: Optional[Exception] = None) -> None:
        super().__init__(
            f"Could not read enum values for {table}.{column}", cause=cause
        )
        self.table = table
        self.column = column


class SynthesisError(SquasherError):
    """Raised when reconstruction source cannot be generated."""

    pass


class SquashError(SquasherError):
    """Raised when a squash step fails part-way through."""

    step = "squash"

    def __init__(
        self,
        message: str,
        processed: Optional[List[str]] = None,
        pending: Optional[List[str]] = None,
        backup_dir: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        details: Dict[str, Any] = {"step": self.step}
        if processed:
            details["processed"] = len(processed)
        if pending:
            details["pending"] = len(pending)
        if backup_dir:
            details["backup"] = backup_dir
        super().__init__(message, details, cause)
        self.processed = list(processed or [])
        self.pending = list(pending or [])
        self.backup_dir = backup_dir


class FileSystemError(SquashError):
    """Raised when copying or removing migration files fails."""

    step = "filesystem"


class BackupError(FileSystemError):
    """Raised when migration files cannot be backed up."""

    step = "backup"


class DeletionError(FileSystemError):
    """Raised when squashed migration files cannot be removed."""

    step = "delete"


class ArtifactWriteError(SquashError):
    """Raised when the schema dump cannot be generated or written."""

    step = "schema_dump"


class LedgerError(SquashError):
    """Raised when the migration ledger cannot be updated."""

    step = "ledger"
