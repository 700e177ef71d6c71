"""
=====================================
Error taxonomy for statement building.
=====================================

All errors raised by the builders and the save engine derive from
FluentSqlError, except failures of the execution surface itself, which are
propagated exactly as SQLAlchemy raised them.

Classes:
    FluentSqlError: Base class for errors raised by this package
    ConfigurationError: A builder was used incorrectly (programming error)
    AmbiguousResultError: A single-row read matched more than one row
    UnknownColumnError: A requested column is absent from a result row

Aliases:
    ExecutionError: sqlalchemy.exc.SQLAlchemyError, raised by the database

Example:
    >>> from core.exceptions import AmbiguousResultError
    >>>
    >>> try:
    ...     table.where("name", "duplicate").single_long(conn, "code")
    ... except AmbiguousResultError as e:
    ...     print(f"{e.row_count} rows matched")
"""

from sqlalchemy.exc import SQLAlchemyError

ExecutionError = SQLAlchemyError


class FluentSqlError(Exception):
    """Base exception for statement builder errors."""
    pass


class ConfigurationError(FluentSqlError):
    """Exception raised when a builder is used in a way that can never succeed.

    Raised for update/delete without a where-predicate, joins on unregistered
    aliases, placeholder/parameter count mismatches and reuse of a consumed
    builder. Always raised before any statement reaches the database when the
    problem is detectable up front.
    """
    pass


class AmbiguousResultError(FluentSqlError):
    """Exception raised when a single-row read matches more than one row.

    Attributes:
        row_count: Number of rows returned by the query
    """

    def __init__(self, message: str, row_count: int):
        super().__init__(message)
        self.row_count = row_count


class UnknownColumnError(FluentSqlError):
    """Exception raised when a result row has no column with the requested name.

    Attributes:
        column_name: The column name as requested by the caller
    """

    def __init__(self, column_name: str):
        super().__init__(f"Column {{{column_name}}} is not present in result row")
        self.column_name = column_name
