"""
===========================================
Data Manipulation Language (DML) Builders.
===========================================

Fluent INSERT, UPDATE and DELETE builders. Field assignments keep their
declaration order in both the SQL text and the parameter list; parameters
are always bound as field values first, then where-clause values.

Builders:
- InsertBuilder: INSERT INTO t (cols) VALUES (?...), optionally returning a generated key
- UpdateBuilder: UPDATE t SET col = ?, ... WHERE ...
- DeleteBuilder: DELETE FROM t WHERE ...

UPDATE and DELETE refuse to run without a where-predicate. Use all_rows()
to state that a statement really targets the whole table.

Usage:
    from sql.table import DatabaseTable

    persons = DatabaseTable("persons")
    person_id = persons.insert().set_primary_key("id", None).set_field("name", "Jane").execute(conn)
    persons.where("id", person_id).update().set_field("name", "Janet").execute(conn)
    persons.where("id", person_id).execute_delete(conn)
"""

import logging
from typing import Any, List, Optional, Sequence, Tuple

from core.exceptions import ConfigurationError
from sql.fragments import Statement, flatten_parameters, join_fragments, placeholders
from sql.where import WhereBuilderMixin, WhereClause
from utils.database_utils import as_executor

logger = logging.getLogger(__name__)


class FieldAssignments:
    """Ordered (column, value) pairs; re-assigning a column keeps its first position."""

    def __init__(self):
        self._columns: List[str] = []
        self._values: List[Any] = []

    def set(self, column: str, value: Any) -> None:
        if column in self._columns:
            self._values[self._columns.index(column)] = value
        else:
            self._columns.append(column)
            self._values.append(value)

    def set_all(self, columns: Sequence[str], values: Sequence[Any]) -> None:
        if len(columns) != len(values):
            raise ConfigurationError(
                f"set_fields got {len(columns)} columns but {len(values)} values"
            )
        for column, value in zip(columns, values):
            self.set(column, value)

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    @property
    def values(self) -> List[Any]:
        return list(self._values)

    def items(self) -> List[Tuple[str, Any]]:
        return list(zip(self._columns, self._values))

    def __len__(self) -> int:
        return len(self._columns)


class InsertBuilder:
    """INSERT builder for one row.

    set_primary_key(column, None) asks the database to generate the key and
    execute() returns it. An explicit key value is inserted like any other
    field and execute() returns that value.

    Attributes:
        table_name: Target table
    """

    def __init__(self, table_name: str):
        self.table_name = table_name
        self._fields = FieldAssignments()
        self._primary_key: Optional[str] = None
        self._primary_key_value: Any = None
        self._consumed = False

    def _check_open(self) -> None:
        if self._consumed:
            raise ConfigurationError("InsertBuilder has already been executed; start a new statement")

    def set_primary_key(self, column: str, value: Any) -> "InsertBuilder":
        self._check_open()
        self._primary_key = column
        self._primary_key_value = value
        return self

    def set_field(self, column: str, value: Any) -> "InsertBuilder":
        self._check_open()
        self._fields.set(column, value)
        return self

    def set_fields(self, columns: Sequence[str], values: Sequence[Any]) -> "InsertBuilder":
        self._check_open()
        self._fields.set_all(columns, values)
        return self

    @property
    def generates_key(self) -> bool:
        """Check whether the database is expected to generate the primary key."""
        return self._primary_key is not None and self._primary_key_value is None

    def to_statement(self) -> Statement:
        """
        Compile the INSERT.

        Raises:
            ConfigurationError: If no column would be inserted
        """
        columns = self._fields.columns
        values = self._fields.values
        if self._primary_key is not None and self._primary_key_value is not None:
            if self._primary_key in columns:
                raise ConfigurationError(
                    f"Primary key {self._primary_key} is also set as a field on {self.table_name}"
                )
            columns = [self._primary_key] + columns
            values = [self._primary_key_value] + values

        if not columns:
            raise ConfigurationError(f"Insert into {self.table_name} has no fields")

        sql = (
            f"INSERT INTO {self.table_name} ({join_fragments(columns, ', ')}) "
            f"VALUES ({placeholders(len(columns))})"
        )
        return Statement(sql, values)

    def execute(self, connection) -> Any:
        """
        Insert the row.

        Args:
            connection: SQLAlchemy Connection or executor

        Returns:
            The generated key, the explicit primary key, or None when no
            primary key was declared
        """
        self._check_open()
        statement = self.to_statement()
        self._consumed = True
        executor = as_executor(connection)

        if self.generates_key:
            result = executor.execute_update(statement, generated_key=self._primary_key)
            return result.generated_key

        executor.execute_update(statement)
        return self._primary_key_value


class UpdateBuilder(WhereBuilderMixin):
    """UPDATE builder.

    Attributes:
        table_name: Target table
    """

    def __init__(self, table_name: str, where: Optional[WhereClause] = None):
        self.table_name = table_name
        self._fields = FieldAssignments()
        self._where = where if where is not None else WhereClause()

    def set_where(self, where: WhereClause) -> "UpdateBuilder":
        """Replace the where-clause (used when converting a query into an update)."""
        self._check_open()
        self._where = where
        return self

    def set_field(self, column: str, value: Any) -> "UpdateBuilder":
        self._check_open()
        self._fields.set(column, value)
        return self

    def set_fields(self, columns: Sequence[str], values: Sequence[Any]) -> "UpdateBuilder":
        self._check_open()
        self._fields.set_all(columns, values)
        return self

    def to_statement(self) -> Statement:
        """
        Compile the UPDATE.

        Raises:
            ConfigurationError: If there are no fields, or no where-predicate
                and all_rows() was not called
        """
        self._where.require_predicate("UPDATE", self.table_name)
        if not len(self._fields):
            raise ConfigurationError(f"Update of {self.table_name} has no fields")

        assignments = join_fragments((f"{column} = ?" for column in self._fields.columns), ", ")
        sql = f"UPDATE {self.table_name} SET {assignments}{self._where.render()}"
        return Statement(sql, flatten_parameters([self._fields.values, self._where.parameters]))

    def execute(self, connection) -> int:
        """Run the UPDATE and return the number of affected rows."""
        statement = self.to_statement()
        self._consume()
        if self._where.matches_all_rows:
            logger.info(f"Updating every row of {self.table_name}")
        return as_executor(connection).execute_update(statement).row_count


class DeleteBuilder(WhereBuilderMixin):
    """DELETE builder.

    Attributes:
        table_name: Target table
    """

    def __init__(self, table_name: str, where: Optional[WhereClause] = None):
        self.table_name = table_name
        self._where = where if where is not None else WhereClause()

    def set_where(self, where: WhereClause) -> "DeleteBuilder":
        self._check_open()
        self._where = where
        return self

    def to_statement(self) -> Statement:
        """
        Compile the DELETE.

        Raises:
            ConfigurationError: If there is no where-predicate and all_rows() was not called
        """
        self._where.require_predicate("DELETE", self.table_name)
        return Statement(f"DELETE FROM {self.table_name}{self._where.render()}", self._where.parameters)

    def execute(self, connection) -> int:
        """Run the DELETE and return the number of affected rows."""
        statement = self.to_statement()
        self._consume()
        if self._where.matches_all_rows:
            logger.info(f"Deleting every row of {self.table_name}")
        return as_executor(connection).execute_update(statement).row_count
