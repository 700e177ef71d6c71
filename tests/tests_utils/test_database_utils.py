"""
========================================================
Comprehensive pytest suite for utils/database_utils.py
========================================================

Sections:
---------
1. Unit tests - DatabaseRow access, value binding, executor wiring
2. Integration tests - Execution against in-memory SQLite
3. Edge case tests - Unknown columns, unsupported connections
4. Regression tests - OUTPUT INSERTED keys, parameter count mismatches

Available markers:
------------------
unit, integration, edge_case, regression, smoke

Test Coverage:
--------------
- DatabaseRow: case-insensitive and alias-qualified access, typed getters
- SqlAlchemyExecutor: named binds, generated keys via lastrowid, RETURNING and OUTPUT INSERTED
- as_executor: Connection wrapping and executor pass-through
- create_sqlalchemy_engine: engine creation from URL

How to Execute:
---------------
All tests:          pytest tests/tests_utils/test_database_utils.py -v
By category:        pytest tests/tests_utils/test_database_utils.py -m unit
With coverage:      pytest tests/tests_utils/test_database_utils.py --cov=utils.database_utils
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from core.config import get_dialect_config
from core.exceptions import ConfigurationError, UnknownColumnError
from sql.fragments import Statement
from utils.database_utils import (
    DatabaseRow,
    SqlAlchemyExecutor,
    as_executor,
    create_sqlalchemy_engine,
)

# ====================
# Mock Helper Classes
# ====================

class FakeColumnRef:
    """Stand-in for sql.joins.ColumnRef."""
    def __init__(self, token, column_name, alias_name="x"):
        self.token = token
        self.column_name = column_name
        self.qualified_name = f"{alias_name}.{column_name}"


class FakeExecutor:
    """Object that already looks like an executor."""
    def execute_update(self, statement, generated_key=None):
        return None

    def query(self, statement, qualifiers=None):
        return []


# ====================
# Unit Tests
# ====================

@pytest.mark.unit
def test_row_lookup_is_case_insensitive():
    row = DatabaseRow(["ID", "Name"], [1, "Jane"])
    assert row.get_long("id") == 1
    assert row.get_string("NAME") == "Jane"
    assert row.columns == ["ID", "Name"]


@pytest.mark.unit
def test_row_typed_getters():
    row = DatabaseRow(
        ["n", "s", "f", "b", "t", "d", "u", "nothing"],
        [Decimal("7"), 12, "1.5", "true", "2024-03-01 10:00:00", date(2024, 3, 1),
         "6f9619ff-8b86-d011-b42d-00c04fc964ff", None]
    )
    assert row.get_long("n") == 7
    assert row.get_int("n") == 7
    assert row.get_string("s") == "12"
    assert row.get_double("f") == 1.5
    assert row.get_boolean("b") is True
    assert row.get_instant("t") == datetime(2024, 3, 1, 10, 0, 0)
    assert row.get_instant("d") == datetime(2024, 3, 1)
    assert row.get_uuid("u") == uuid.UUID("6f9619ff-8b86-d011-b42d-00c04fc964ff")
    assert row.get_string("nothing") is None
    assert row.get_long("nothing") is None


@pytest.mark.unit
def test_row_qualified_access():
    """With qualifiers, alias names and tokens select the right duplicate column."""
    row = DatabaseRow(
        ["id", "name", "id", "name"],
        [1, "Bob", 2, "Alice"],
        qualifiers=[(10, "p"), (10, "p"), (11, "boss"), (11, "boss")]
    )
    assert row.get_string("p.name") == "Bob"
    assert row.get_string("BOSS.name") == "Alice"
    assert row.get_long(FakeColumnRef(11, "id", "boss")) == 2
    assert row.get_long("id") == 1
    assert row.as_dict() == {"id": 1, "name": "Bob"}


@pytest.mark.unit
def test_bind_values_for_sqlite():
    """UUIDs become text everywhere; datetimes and decimals are adapted for SQLite."""
    executor = SqlAlchemyExecutor(MagicMock(), dialect_config=get_dialect_config("sqlite", use_environment=False))
    value = uuid.uuid4()
    assert executor._bind_value(value) == str(value)
    assert executor._bind_value(datetime(2024, 3, 1, 10, 0)) == "2024-03-01 10:00:00"
    assert executor._bind_value(Decimal("1.25")) == 1.25
    assert executor._bind_value("x") == "x"


@pytest.mark.unit
def test_generated_key_via_returning():
    """Dialects configured for RETURNING read the key from the result row."""
    connection = MagicMock()
    connection.execute.return_value.scalar_one.return_value = 42
    executor = SqlAlchemyExecutor(connection, dialect_config=get_dialect_config("postgresql", use_environment=False))

    result = executor.execute_update(
        Statement("INSERT INTO persons (name) VALUES (?)", ["Jane"]),
        generated_key="id"
    )

    assert result.generated_key == 42
    assert result.row_count == 1
    clause, binds = connection.execute.call_args[0]
    assert str(clause) == "INSERT INTO persons (name) VALUES (:p0) RETURNING id"
    assert binds == {"p0": "Jane"}


@pytest.mark.unit
def test_generated_key_via_lastrowid():
    connection = MagicMock()
    connection.execute.return_value.lastrowid = 9
    connection.execute.return_value.rowcount = 1
    executor = SqlAlchemyExecutor(connection, dialect_config=get_dialect_config("sqlite", use_environment=False))

    result = executor.execute_update(Statement("INSERT INTO persons (name) VALUES (?)", ["Jane"]), generated_key="id")

    assert result.generated_key == 9
    assert "RETURNING" not in str(connection.execute.call_args[0][0])


@pytest.mark.unit
def test_as_executor_pass_through():
    fake = FakeExecutor()
    assert as_executor(fake) is fake


# ====================
# Integration Tests
# ====================

@pytest.mark.smoke
@pytest.mark.integration
def test_query_on_sqlite(sqlite_engine):
    """A literal colon and a placeholder coexist in one statement."""
    with sqlite_engine.connect() as conn:
        executor = as_executor(conn)
        rows = executor.query(Statement("SELECT '10:30' AS t, ? AS v", [5]))
    assert rows[0].get_string("t") == "10:30"
    assert rows[0].get_long("v") == 5


@pytest.mark.integration
def test_update_row_count_and_columns(sqlite_engine):
    with sqlite_engine.connect() as conn:
        conn.exec_driver_sql("create table things (id integer primary key autoincrement, name varchar(10))")
        executor = as_executor(conn)
        first = executor.execute_update(Statement("INSERT INTO things (name) VALUES (?)", ["a"]), generated_key="id")
        executor.execute_update(Statement("INSERT INTO things (name) VALUES (?)", ["b"]))
        updated = executor.execute_update(Statement("UPDATE things SET name = ?", ["c"]))

        assert first.generated_key == 1
        assert updated.row_count == 2
        assert executor.table_columns("things") == ["id", "name"]


@pytest.mark.unit
def test_create_sqlalchemy_engine_uses_url():
    engine = create_sqlalchemy_engine("sqlite://", echo=False)
    assert engine.dialect.name == "sqlite"
    engine.dispose()


# ====================
# Edge Case Tests
# ====================

@pytest.mark.edge_case
def test_unknown_column_message():
    row = DatabaseRow(["id"], [1])
    with pytest.raises(UnknownColumnError) as excinfo:
        row.get_object("non_existing")
    assert str(excinfo.value) == "Column {non_existing} is not present in result row"
    assert excinfo.value.column_name == "non_existing"
    assert not row.has_column("non_existing")


@pytest.mark.edge_case
def test_unknown_alias_in_joined_row():
    row = DatabaseRow(["id"], [1], qualifiers=[(1, "p")])
    with pytest.raises(UnknownColumnError):
        row.get_object("q.id")
    with pytest.raises(UnknownColumnError):
        row.get_object(FakeColumnRef(2, "id"))


@pytest.mark.edge_case
def test_as_executor_rejects_other_objects():
    with pytest.raises(TypeError, match="Expected a SQLAlchemy Connection"):
        as_executor(object())


@pytest.mark.edge_case
def test_table_columns_of_missing_table(sqlite_engine):
    with sqlite_engine.connect() as conn:
        with pytest.raises(ConfigurationError, match="does not exist"):
            as_executor(conn).table_columns("missing")


# ====================
# Regression Tests
# ====================

@pytest.mark.regression
def test_generated_key_via_output_inserted():
    """SQL Server reads the generated key from an OUTPUT INSERTED clause before VALUES."""
    connection = MagicMock()
    connection.execute.return_value.scalar_one.return_value = 77
    executor = SqlAlchemyExecutor(connection, dialect_config=get_dialect_config("mssql", use_environment=False))

    result = executor.execute_update(
        Statement("INSERT INTO persons (name, code) VALUES (?, ?)", ["Jane", 7]),
        generated_key="id"
    )

    assert result.generated_key == 77
    assert result.row_count == 1
    clause, binds = connection.execute.call_args[0]
    assert str(clause) == "INSERT INTO persons (name, code) OUTPUT INSERTED.id VALUES (:p0, :p1)"
    assert binds == {"p0": "Jane", "p1": 7}


@pytest.mark.regression
def test_output_clause_leaves_statements_without_key_alone():
    connection = MagicMock()
    connection.execute.return_value.rowcount = 2
    executor = SqlAlchemyExecutor(connection, dialect_config=get_dialect_config("mssql", use_environment=False))

    result = executor.execute_update(Statement("UPDATE persons SET name = ?", ["x"]))

    assert result.row_count == 2
    assert str(connection.execute.call_args[0][0]) == "UPDATE persons SET name = :p0"


@pytest.mark.regression
def test_query_with_parameter_mismatch_raises_configuration_error():
    """A hand-built statement with the wrong parameter count never reaches the connection."""
    connection = MagicMock()
    executor = SqlAlchemyExecutor(connection, dialect_config=get_dialect_config("sqlite", use_environment=False))

    with pytest.raises(ConfigurationError, match="2 placeholders but 1 parameters"):
        executor.query(Statement("SELECT * FROM persons WHERE code = ? OR name = ?", [1]))
    connection.execute.assert_not_called()
