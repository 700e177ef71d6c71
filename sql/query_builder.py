"""
============================
SQL Query Builder Utilities.
============================

Fluent SELECT builders. A builder accumulates predicates (see sql.where),
then an ordering decision, then runs exactly once through a terminal call.

Query Builders:
- ReadableQuery: terminal read operations shared by single-table and joined queries
- QueryBuilder: SELECT * FROM one table with where-clauses and ORDER BY

Terminal operations:
- list: map every row, in result order
- single_object: None for zero rows, the mapped row for one, AmbiguousResultError for more
- single_string / single_long / single_instant / single_uuid: single_object on one column
- list_strings / list_longs: list on one column

Call order_by() (or unordered(), to state that row order does not matter)
before listing; without either the row order is whatever the database returns.

Usage:
    from sql.table import DatabaseTable

    persons = DatabaseTable("persons")
    names = (
        persons.where_in("code", [1, 2])
        .where_optional("name", None)
        .order_by("name")
        .list(conn, lambda row: row.get_string("name"))
    )
"""

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, TypeVar
from uuid import UUID

from core.exceptions import AmbiguousResultError
from sql.fragments import Statement, join_fragments
from sql.where import WhereBuilderMixin, WhereClause, column_sql
from utils.database_utils import DatabaseRow, as_executor

logger = logging.getLogger(__name__)

T = TypeVar("T")
RowMapper = Callable[[DatabaseRow], T]


class ReadableQuery(WhereBuilderMixin):
    """Ordering and terminal read operations for SELECT builders.

    Subclasses implement _fetch(executor) and _describe().
    """

    def __init__(self):
        self._where = WhereClause()
        self._order_by: List[str] = []
        self._ordering_decided = False

    def _fetch(self, executor) -> List[DatabaseRow]:
        raise NotImplementedError

    def _describe(self) -> str:
        raise NotImplementedError

    def order_by(self, order_by_clause: Any):
        """Append an ORDER BY expression (a column name, "name DESC" or a ColumnRef)."""
        self._check_open()
        self._order_by.append(column_sql(self._qualify_order(order_by_clause)))
        self._ordering_decided = True
        return self

    def _qualify_order(self, clause: Any) -> Any:
        return clause

    def unordered(self):
        """State that the caller does not depend on row order."""
        self._check_open()
        self._ordering_decided = True
        return self

    def _render_order_by(self) -> str:
        if not self._order_by:
            return ""
        return " ORDER BY " + join_fragments(self._order_by, ", ")

    def _run(self, connection) -> List[DatabaseRow]:
        self._consume()
        if not self._ordering_decided:
            logger.debug(f"Reading {self._describe()} without order_by() or unordered(); row order is unspecified")
        return self._fetch(as_executor(connection))

    def list(self, connection, mapper: RowMapper) -> List[T]:
        """
        Execute the query and map every row.

        Args:
            connection: SQLAlchemy Connection or executor
            mapper: Function from DatabaseRow to a result value

        Returns:
            Mapped values in result order
        """
        return [mapper(row) for row in self._run(connection)]

    def single_object(self, connection, mapper: RowMapper) -> Optional[T]:
        """
        Execute a query expected to match at most one row.

        Returns:
            None when no row matched, otherwise the mapped row

        Raises:
            AmbiguousResultError: If more than one row matched
        """
        rows = self._run(connection)
        if not rows:
            return None
        if len(rows) > 1:
            raise AmbiguousResultError(
                f"Expected at most one row from {self._describe()} but got {len(rows)}",
                row_count=len(rows)
            )
        return mapper(rows[0])

    def single_string(self, connection, column: Any) -> Optional[str]:
        return self.single_object(connection, lambda row: row.get_string(column))

    def single_long(self, connection, column: Any) -> Optional[int]:
        return self.single_object(connection, lambda row: row.get_long(column))

    def single_instant(self, connection, column: Any) -> Optional[datetime]:
        return self.single_object(connection, lambda row: row.get_instant(column))

    def single_uuid(self, connection, column: Any) -> Optional[UUID]:
        return self.single_object(connection, lambda row: row.get_uuid(column))

    def list_strings(self, connection, column: Any) -> List[Optional[str]]:
        return self.list(connection, lambda row: row.get_string(column))

    def list_longs(self, connection, column: Any) -> List[Optional[int]]:
        return self.list(connection, lambda row: row.get_long(column))


class QueryBuilder(ReadableQuery):
    """SELECT builder for a single table.

    Attributes:
        table: The DatabaseTable being queried

    Example:
        >>> QueryBuilder(persons).where("code", 123).order_by("name").to_statement().sql
        'SELECT * FROM persons WHERE code = ? ORDER BY name'
    """

    def __init__(self, table):
        super().__init__()
        self.table = table

    def _describe(self) -> str:
        return self.table.table_name

    def to_statement(self) -> Statement:
        """Compile the SELECT without executing it."""
        sql = f"SELECT * FROM {self.table.table_name}{self._where.render()}{self._render_order_by()}"
        return Statement(sql, self._where.parameters)

    def _fetch(self, executor) -> List[DatabaseRow]:
        return executor.query(self.to_statement())

    def update(self):
        """Turn the accumulated predicates into an UPDATE on the same table."""
        self._consume()
        return self.table.update().set_where(self._where.copy())

    def delete(self):
        """Turn the accumulated predicates into a DELETE on the same table."""
        self._consume()
        return self.table.delete().set_where(self._where.copy())

    def execute_delete(self, connection) -> int:
        """Delete the matching rows and return the affected row count."""
        return self.delete().execute(connection)
