"""
=======================
Database Table Handles.
=======================

DatabaseTable is the entry point for every statement against one table. It
holds nothing but the table name, so a handle can be created once at module
level and shared; every call returns a fresh builder.

Classes:
- DatabaseTable: queries, inserts, updates, deletes, saves and aliases for one table
- TimestampedTable: DatabaseTable that maintains created_at/updated_at columns

Usage:
    from sql.table import DatabaseTable

    persons = DatabaseTable("persons")

    person_id = persons.insert().set_primary_key("id", None).set_field("name", "Jane").execute(conn)
    name = persons.where("id", person_id).single_string(conn, "name")
    persons.where("id", person_id).update().set_field("name", "Janet").execute(conn)

    result = persons.new_save_builder("id", None).unique_key("code", 7).set_field("name", "Jane").execute(conn)
"""

from datetime import datetime, timezone
from typing import Any, Iterable, List, Sequence

from sql.dml import DeleteBuilder, InsertBuilder, UpdateBuilder
from sql.joins import ColumnRef, JoinedQueryBuilder, TableAlias
from sql.query_builder import QueryBuilder, RowMapper, T
from sql.save import IdStrategy, SaveBuilder


class DatabaseTable:
    """Statement factory for one table.

    Attributes:
        table_name: Name of the table in SQL
    """

    def __init__(self, table_name: str):
        self._table_name = table_name
        self._self_alias = TableAlias(self, table_name)

    @property
    def table_name(self) -> str:
        return self._table_name

    # ====================================
    # Aliases
    # ====================================

    def alias(self, alias_name: str) -> TableAlias:
        """Create a new alias; every call yields a distinct alias, even for the same name."""
        return TableAlias(self, alias_name)

    def column(self, column_name: str) -> ColumnRef:
        """Reference a column through the table's own name (alias = table name)."""
        return self._self_alias.column(column_name)

    def join(self, left: ColumnRef, right: ColumnRef) -> JoinedQueryBuilder:
        return self._self_alias.join(left, right)

    # ====================================
    # Queries
    # ====================================

    def query(self) -> QueryBuilder:
        return QueryBuilder(self)

    def where(self, column: str, value: Any) -> QueryBuilder:
        return self.query().where(column, value)

    def where_optional(self, column: str, value: Any) -> QueryBuilder:
        return self.query().where_optional(column, value)

    def where_not_equal(self, column: str, value: Any) -> QueryBuilder:
        return self.query().where_not_equal(column, value)

    def where_in(self, column: str, values: Iterable[Any]) -> QueryBuilder:
        return self.query().where_in(column, values)

    def where_expression(self, expression: str, *parameters: Any) -> QueryBuilder:
        return self.query().where_expression(expression, *parameters)

    def where_expression_with_parameters(self, expression: str, parameters: Sequence[Any]) -> QueryBuilder:
        return self.query().where_expression_with_parameters(expression, parameters)

    def where_all(self, columns: Sequence[str], values: Sequence[Any]) -> QueryBuilder:
        return self.query().where_all(columns, values)

    def unordered(self) -> QueryBuilder:
        return self.query().unordered()

    def order_by(self, order_by_clause: str) -> QueryBuilder:
        return self.query().order_by(order_by_clause)

    def list_objects(self, connection, mapper: RowMapper) -> List[T]:
        """List every row of the table in no particular order."""
        return self.query().unordered().list(connection, mapper)

    # ====================================
    # Mutations
    # ====================================

    def insert(self) -> InsertBuilder:
        return InsertBuilder(self._table_name)

    def update(self) -> UpdateBuilder:
        return UpdateBuilder(self._table_name)

    def delete(self) -> DeleteBuilder:
        return DeleteBuilder(self._table_name)

    # ====================================
    # Save (insert-or-update)
    # ====================================

    def new_save_builder(self, id_column: str, id_value: Any) -> SaveBuilder:
        """Save keyed by a database-generated integer id (None inserts with a generated key)."""
        return SaveBuilder(self, id_column, id_value, IdStrategy.GENERATED_LONG)

    def new_save_builder_no_generated_keys(self, id_column: str, id_value: Any) -> SaveBuilder:
        """Save keyed by a caller-assigned integer id."""
        return SaveBuilder(self, id_column, id_value, IdStrategy.EXTERNAL_LONG)

    def new_save_builder_with_uuid(self, id_column: str, id_value: Any) -> SaveBuilder:
        """Save keyed by a UUID; a new one is generated when id_value is None."""
        return SaveBuilder(self, id_column, id_value, IdStrategy.EXTERNAL_UUID)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._table_name!r})"


class TimestampedTable(DatabaseTable):
    """DatabaseTable that stamps rows on write.

    insert() sets both timestamp columns and update() sets the updated
    column, using the current UTC time. Because a save with unchanged values
    issues no UPDATE, it leaves updated_at untouched.

    Attributes:
        created_column: Column set on insert
        updated_column: Column set on insert and update
    """

    def __init__(self, table_name: str, created_column: str = "created_at", updated_column: str = "updated_at"):
        super().__init__(table_name)
        self.created_column = created_column
        self.updated_column = updated_column

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def insert(self) -> InsertBuilder:
        now = self._now()
        return super().insert().set_field(self.created_column, now).set_field(self.updated_column, now)

    def update(self) -> UpdateBuilder:
        return super().update().set_field(self.updated_column, self._now())
