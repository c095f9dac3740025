"""
Exception classes for sqlr.
"""

from enum import Enum
from typing import Any, Dict, Optional


class SqlrError(Exception):
    """Base exception for all sqlr errors."""

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


class ConfigurationError(SqlrError):
    """Raised when there's an error in configuration."""

    pass


class ValidationError(SqlrError):
    """Raised when there's a validation error."""

    pass


class SchemaError(SqlrError):
    """Raised when a reconciliation plan cannot be assembled."""

    pass


class ErrorKind(str, Enum):
    """Kinds of declaration errors reported by the validator."""

    SANITIZE_VIOLATION = "sanitize_violation"
    RESERVED_PREFIX_VIOLATION = "reserved_prefix_violation"
    DUPLICATE_IDENTITY = "duplicate_identity"
    EMPTY_KEY_COLUMNS = "empty_key_columns"
    EMPTY_FOREIGN_KEY_COLUMNS = "empty_foreign_key_columns"
    EMPTY_FOREIGN_KEY_REFERENCES = "empty_foreign_key_references"
    FOREIGN_KEY_COLUMN_MISMATCH = "foreign_key_column_mismatch"
    INVALID_PRIMARY_KEY_NAME = "invalid_primary_key_name"
    INVALID_JOIN_TYPE = "invalid_join_type"
    MISSING_COLUMN_ID = "missing_column_id"
    MISSING_TABLE_ID = "missing_table_id"
    EMPTY_TABLE_COLUMNS = "empty_table_columns"
    INVALID_PERMISSION_OPERATION = "invalid_permission_operation"


class DeclarationError(ValidationError):
    """Raised when a schema or permission declaration is malformed or unsafe."""

    kind: ErrorKind

    def __init__(
        self,
        path: str,
        value: Any = None,
        reason: Optional[str] = None,
    ) -> None:
        message = f"{self.kind.value.replace('_', ' ').capitalize()} at {path}"
        if reason:
            message += f": {reason}"
        details = {"value": repr(value)} if value is not None else None
        super().__init__(message, details)
        self.path = path
        self.value = value
        self.reason = reason


class SanitizeViolation(DeclarationError):
    """Identifier or literal contains a backtick or single quote."""

    kind = ErrorKind.SANITIZE_VIOLATION


class ReservedPrefixViolation(DeclarationError):
    """Table or column name starts with the reserved staging prefix."""

    kind = ErrorKind.RESERVED_PREFIX_VIOLATION


class DuplicateIdentity(DeclarationError):
    """Repeated table id, column id, key name or other unique name."""

    kind = ErrorKind.DUPLICATE_IDENTITY


class EmptyKeyColumns(DeclarationError):
    kind = ErrorKind.EMPTY_KEY_COLUMNS


class EmptyForeignKeyColumns(DeclarationError):
    kind = ErrorKind.EMPTY_FOREIGN_KEY_COLUMNS


class EmptyForeignKeyReferences(DeclarationError):
    kind = ErrorKind.EMPTY_FOREIGN_KEY_REFERENCES


class ForeignKeyColumnMismatch(DeclarationError):
    kind = ErrorKind.FOREIGN_KEY_COLUMN_MISMATCH


class InvalidPrimaryKeyName(DeclarationError):
    kind = ErrorKind.INVALID_PRIMARY_KEY_NAME


class InvalidJoinType(DeclarationError):
    kind = ErrorKind.INVALID_JOIN_TYPE


class MissingColumnId(DeclarationError):
    kind = ErrorKind.MISSING_COLUMN_ID


class MissingTableId(DeclarationError):
    kind = ErrorKind.MISSING_TABLE_ID


class EmptyTableColumns(DeclarationError):
    kind = ErrorKind.EMPTY_TABLE_COLUMNS


class InvalidPermissionOperation(DeclarationError):
    kind = ErrorKind.INVALID_PERMISSION_OPERATION
