"""Custom exception hierarchy for crudql.

All errors raised by crudql itself inherit from CrudQLError so callers can
catch the base class for any crudql-specific failure.

Only *usage* errors live here.  Failures reported by the database driver
(constraint violations, lost connections, authentication problems) are
logged and re-raised unchanged; callers inspect the vendor error codes
themselves.  The single exception is :class:`DatabaseConnectionError`, which
is produced only when a :class:`~crudql.database.Database` is created with
``translate_errors=True``.
"""
from __future__ import annotations

from typing import Any


class CrudQLError(Exception):
    """Base exception for all crudql errors."""


class UsageError(CrudQLError):
    """Raised for programming errors detected before any network call.

    Usage errors are deterministic: retrying the same call fails the same
    way.

    Args:
        message: Human-readable description.
        details: Extra context describing the offending input.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class DescriptorError(UsageError):
    """Raised when a query descriptor mapping cannot be parsed."""


class InvalidTableError(UsageError):
    """Raised when a table name is missing or contains invalid characters."""

    def __init__(self, table: Any) -> None:
        message = (
            "Table name is required"
            if not table
            else f"Table name contains invalid characters: {table!r}"
        )
        super().__init__(message, details={"table": table})
        self.table = table


class ConditionError(UsageError):
    """Raised when a WHERE condition tree is malformed.

    Args:
        message: Human-readable description.
        column: The column the malformed leaf refers to, when known.
        operator: The operator token involved, when known.
    """

    def __init__(
        self,
        message: str,
        column: str | None = None,
        operator: str | None = None,
    ) -> None:
        super().__init__(message, details={"column": column, "operator": operator})
        self.column = column
        self.operator = operator


class UnsupportedOperatorError(ConditionError):
    """Raised when a condition uses an operator token crudql does not know."""

    def __init__(self, operator: str, column: str | None = None) -> None:
        super().__init__(f"Unsupported operator: {operator}", column=column, operator=operator)


class MissingWhereError(UsageError):
    """Raised when a DELETE (or raw UPDATE/DELETE) has no usable WHERE clause."""


class EmptyUpdateError(UsageError):
    """Raised when an UPDATE has no settable fields left."""

    def __init__(self, message: str = "No valid fields to update") -> None:
        super().__init__(message)


class ConfigurationError(UsageError):
    """Raised when connection configuration is missing or invalid."""


class TransactionStateError(UsageError):
    """Raised when a transaction method is called in the wrong state.

    Args:
        message: Human-readable description.
        state: The session state at the time of the call.
    """

    def __init__(self, message: str, state: str | None = None) -> None:
        super().__init__(message, details={"state": state})
        self.state = state


class NoActiveTransactionError(TransactionStateError):
    """Raised when a statement, commit, or builder call needs an active session."""


class DatabaseConnectionError(CrudQLError):
    """A well-known connection failure, translated on request.

    Always raised ``from`` the original driver exception, which remains
    available as ``__cause__``.

    Args:
        message: Human-readable description.
        code: Vendor error code of the original failure, when there is one.
    """

    def __init__(self, message: str, code: int | str | None = None) -> None:
        super().__init__(message)
        self.code = code


class PoolClosedError(CrudQLError):
    """Raised when a statement is sent through a pool that was already closed."""
