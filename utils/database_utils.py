"""
===========================================
Execution surface over SQLAlchemy Core.
===========================================

Runs compiled statements (SQL text with positional '?' placeholders plus an
ordered parameter list) on a live SQLAlchemy connection and wraps result rows
in DatabaseRow accessors.

This module never opens, commits, closes or pools connections: callers own
the connection and its transaction. Driver failures propagate unchanged as
SQLAlchemy exceptions.

Key Features:
    - Dialect-independent binding (positional placeholders become named binds)
    - Generated key retrieval via RETURNING, OUTPUT INSERTED or cursor.lastrowid (configured per dialect)
    - Column introspection for joined queries (SQLAlchemy inspector, cached)
    - Typed, case-insensitive row access by name, "alias.column" or ColumnRef

Example:
    >>> from utils.database_utils import create_sqlalchemy_engine, as_executor
    >>> from sql.fragments import Statement
    >>>
    >>> engine = create_sqlalchemy_engine("sqlite://")
    >>> with engine.connect() as conn:
    ...     executor = as_executor(conn)
    ...     rows = executor.query(Statement("SELECT 1 AS one"))
    ...     rows[0].get_long("one")
    1
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import NoSuchTableError

from core.config import DialectConfig, config
from core.exceptions import ConfigurationError, UnknownColumnError
from sql.fragments import Statement, bind_parameters

logger = logging.getLogger(__name__)


def create_sqlalchemy_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Create a SQLAlchemy engine for the configured (or given) database.

    Args:
        url: Database URL (defaults to config.database_url)
        echo: Enable SQLAlchemy statement logging (defaults to config.db.echo)

    Returns:
        SQLAlchemy Engine

    Example:
        >>> engine = create_sqlalchemy_engine()
        >>> with engine.begin() as conn:
        ...     table.insert().set_field("name", "Jane").execute(conn)
    """
    return create_engine(
        url or config.database_url,
        echo=config.db.echo if echo is None else echo
    )


@dataclass(frozen=True)
class UpdateResult:
    """Outcome of an INSERT, UPDATE or DELETE.

    Attributes:
        row_count: Number of affected rows as reported by the driver
        generated_key: Database-generated key when one was requested
    """

    row_count: int
    generated_key: Any = None


class DatabaseRow:
    """Typed accessor for one result row.

    Columns can be addressed by bare name (case-insensitive), by
    "alias.column", or by a ColumnRef. In joined results a bare name
    resolves to the first table in FROM/JOIN order that has the column.

    Raises:
        UnknownColumnError: From every getter when the column is absent
    """

    def __init__(
        self,
        columns: Sequence[str],
        values: Sequence[Any],
        qualifiers: Optional[Sequence[Tuple[int, str]]] = None
    ):
        """
        Args:
            columns: Column names in result order
            values: Column values in result order
            qualifiers: For joined results, (alias token, alias name) per column
        """
        self._columns = list(columns)
        self._values = tuple(values)
        self._by_name: Dict[str, int] = {}
        self._by_alias: Dict[Tuple[str, str], int] = {}
        self._by_token: Dict[Tuple[int, str], int] = {}

        for index, column in enumerate(self._columns):
            name = column.lower()
            self._by_name.setdefault(name, index)
            if qualifiers:
                token, alias_name = qualifiers[index]
                self._by_token[(token, name)] = index
                self._by_alias[(alias_name.lower(), name)] = index

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    def _index(self, column: Any) -> int:
        if hasattr(column, "token"):
            if self._by_token:
                key = (column.token, column.column_name.lower())
                if key not in self._by_token:
                    raise UnknownColumnError(column.qualified_name)
                return self._by_token[key]
            name = column.column_name.lower()
        elif "." in column:
            alias_name, name = column.lower().rsplit(".", 1)
            if self._by_alias:
                if (alias_name, name) not in self._by_alias:
                    raise UnknownColumnError(column)
                return self._by_alias[(alias_name, name)]
        else:
            name = column.lower()

        if name not in self._by_name:
            raise UnknownColumnError(getattr(column, "qualified_name", column))
        return self._by_name[name]

    def has_column(self, column: Any) -> bool:
        try:
            self._index(column)
        except UnknownColumnError:
            return False
        return True

    def get_object(self, column: Any) -> Any:
        return self._values[self._index(column)]

    def get_string(self, column: Any) -> Optional[str]:
        value = self.get_object(column)
        return None if value is None else str(value)

    def get_long(self, column: Any) -> Optional[int]:
        value = self.get_object(column)
        return None if value is None else int(value)

    get_int = get_long

    def get_double(self, column: Any) -> Optional[float]:
        value = self.get_object(column)
        return None if value is None else float(value)

    def get_boolean(self, column: Any) -> Optional[bool]:
        value = self.get_object(column)
        if value is None:
            return None
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "t", "yes", "y")
        return bool(value)

    def get_instant(self, column: Any) -> Optional[datetime]:
        """Get a timestamp; ISO-8601 text (as stored by SQLite) is parsed."""
        value = self.get_object(column)
        if value is None or isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        return datetime.fromisoformat(str(value))

    def get_uuid(self, column: Any) -> Optional[uuid.UUID]:
        value = self.get_object(column)
        if value is None or isinstance(value, uuid.UUID):
            return value
        if isinstance(value, (bytes, bytearray)) and len(value) == 16:
            return uuid.UUID(bytes=bytes(value))
        return uuid.UUID(str(value))

    def as_dict(self) -> Dict[str, Any]:
        """Get the row as {column name: value}; later duplicates do not overwrite earlier ones."""
        return {name: self._values[index] for name, index in self._by_name.items()}

    def __repr__(self) -> str:
        return f"DatabaseRow({dict(zip(self._columns, self._values))!r})"


class SqlAlchemyExecutor:
    """Executes compiled statements on a caller-owned SQLAlchemy connection.

    Attributes:
        connection: The live SQLAlchemy Connection
        dialect: DialectConfig deciding how generated keys are read back

    Example:
        >>> with engine.begin() as conn:
        ...     executor = SqlAlchemyExecutor(conn)
        ...     result = executor.execute_update(
        ...         Statement("INSERT INTO persons (name) VALUES (?)", ["Jane"]),
        ...         generated_key="id"
        ...     )
        ...     result.generated_key
        1
    """

    def __init__(self, connection: Connection, dialect_config: Optional[DialectConfig] = None):
        self.connection = connection
        self.dialect = dialect_config or config.dialect_for(connection.dialect.name)
        self._table_columns: Dict[str, List[str]] = {}

    def _bind_value(self, value: Any) -> Any:
        if isinstance(value, uuid.UUID):
            return str(value)
        if isinstance(value, datetime) and self.dialect.name == "sqlite":
            return value.isoformat(sep=" ")
        if isinstance(value, date) and not isinstance(value, datetime) and self.dialect.name == "sqlite":
            return value.isoformat()
        if isinstance(value, Decimal) and self.dialect.name == "sqlite":
            return float(value)
        return value

    def _prepare(self, sql: str, parameters: Sequence[Any]):
        logger.debug(f"Executing: {sql} {list(parameters)}")
        named_sql, binds = bind_parameters(sql, [self._bind_value(p) for p in parameters])
        return text(named_sql), binds

    def _request_generated_key(self, sql: str, generated_key: str) -> str:
        """Add the RETURNING or OUTPUT INSERTED clause the dialect reads generated keys from."""
        if self.dialect.uses_returning:
            return f"{sql} RETURNING {generated_key}"
        if self.dialect.uses_output:
            head, separator, tail = sql.partition(" VALUES (")
            if not separator:
                raise ConfigurationError(f"Cannot add OUTPUT INSERTED.{generated_key} to: {sql}")
            return f"{head} OUTPUT INSERTED.{generated_key}{separator}{tail}"
        return sql

    def execute_update(self, statement: Statement, generated_key: Optional[str] = None) -> UpdateResult:
        """
        Execute an INSERT, UPDATE or DELETE.

        Args:
            statement: Compiled statement
            generated_key: Column whose database-generated value should be returned

        Returns:
            UpdateResult with the affected row count and optional generated key
        """
        sql = statement.sql
        reads_key_from_row = self.dialect.uses_returning or self.dialect.uses_output
        if generated_key:
            sql = self._request_generated_key(sql, generated_key)

        clause, binds = self._prepare(sql, statement.parameters)
        result = self.connection.execute(clause, binds)

        key = None
        if generated_key:
            if reads_key_from_row:
                key = result.scalar_one()
                row_count = 1
            else:
                key = result.lastrowid
                row_count = result.rowcount
            logger.debug(f"Generated {generated_key}={key}")
        else:
            row_count = result.rowcount

        return UpdateResult(row_count=row_count, generated_key=key)

    def query(
        self,
        statement: Statement,
        qualifiers: Optional[Sequence[Tuple[int, str]]] = None
    ) -> List[DatabaseRow]:
        """
        Execute a SELECT and return its rows in result order.

        Args:
            statement: Compiled SELECT
            qualifiers: (alias token, alias name) per selected column, for joins

        Returns:
            List of DatabaseRow
        """
        clause, binds = self._prepare(statement.sql, statement.parameters)
        result = self.connection.execute(clause, binds)
        columns = list(result.keys())
        return [DatabaseRow(columns, tuple(row), qualifiers) for row in result.fetchall()]

    def table_columns(self, table_name: str) -> List[str]:
        """
        Get the column names of a table, in table order.

        Raises:
            ConfigurationError: If the database reports no columns for the table
        """
        if table_name not in self._table_columns:
            try:
                columns = [c["name"] for c in inspect(self.connection).get_columns(table_name)]
            except NoSuchTableError as e:
                raise ConfigurationError(f"Table {table_name} does not exist") from e
            if not columns:
                raise ConfigurationError(f"Table {table_name} has no columns or does not exist")
            self._table_columns[table_name] = columns
        return list(self._table_columns[table_name])


def as_executor(connection: Any):
    """
    Get an executor for a SQLAlchemy connection.

    Objects that already provide execute_update() and query() (such as
    SqlAlchemyExecutor itself, or test doubles) are returned unchanged.

    Raises:
        TypeError: If the argument is neither a Connection nor an executor
    """
    if isinstance(connection, Connection):
        return SqlAlchemyExecutor(connection)
    if hasattr(connection, "execute_update") and hasattr(connection, "query"):
        return connection
    raise TypeError(
        f"Expected a SQLAlchemy Connection or an executor, got {type(connection).__name__}"
    )
