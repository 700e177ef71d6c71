"""
Shared fixtures and fakes for the statement builder tests.

Key fixtures:
- conn: live in-memory SQLite connection with the test schema created.
- recording_executor: fake executor that records statements instead of running them.
- persons / organizations / memberships / permissions: DatabaseTable handles.
"""

import pytest

from core.config import get_dialect_config
from sql.table import DatabaseTable
from utils.database_utils import DatabaseRow, UpdateResult

SCHEMA = [
    "create table persons (id ${INTEGER_PK}, code integer, name varchar(50), "
    "email varchar(100), description varchar(200), boss_id integer)",
    "create table organizations (id ${INTEGER_PK}, name varchar(50))",
    "create table memberships (id ${INTEGER_PK}, person_id integer, organization_id integer)",
    "create table permissions (id ${INTEGER_PK}, name varchar(50), membership_id integer)",
    "create table uuid_entities (id ${UUID} primary key, code integer, name varchar(50), amount decimal(10, 2))",
    "create table external_entities (id integer primary key, code integer, name varchar(50))",
    "create table timestamped_entities (id ${INTEGER_PK}, code integer, name varchar(50), "
    "created_at ${DATETIME}, updated_at ${DATETIME})",
]


# ====================
# Mock Helper Classes
# ====================

class RecordingExecutor:
    """Fake executor that records statements and returns canned results."""

    def __init__(self, rows=None, row_count=1, generated_key=None):
        self.rows = rows or []
        self.row_count = row_count
        self.generated_key = generated_key
        self.updates = []
        self.queries = []

    def execute_update(self, statement, generated_key=None):
        self.updates.append((statement, generated_key))
        return UpdateResult(
            row_count=self.row_count,
            generated_key=self.generated_key if generated_key else None
        )

    def query(self, statement, qualifiers=None):
        self.queries.append((statement, qualifiers))
        return list(self.rows)


# ====================
# Fixtures
# ====================

@pytest.fixture
def conn(sqlite_engine):
    """Open a connection with the test schema; everything is discarded afterwards."""
    dialect = get_dialect_config("sqlite", use_environment=False)
    with sqlite_engine.connect() as connection:
        for ddl in SCHEMA:
            connection.exec_driver_sql(dialect.preprocess(ddl))
        yield connection
        connection.rollback()


@pytest.fixture
def recording_executor():
    return RecordingExecutor()


@pytest.fixture
def persons():
    return DatabaseTable("persons")


@pytest.fixture
def organizations():
    return DatabaseTable("organizations")


@pytest.fixture
def memberships():
    return DatabaseTable("memberships")


@pytest.fixture
def permissions():
    return DatabaseTable("permissions")


@pytest.fixture
def make_row():
    """Factory building a DatabaseRow from keyword arguments, in argument order."""
    def factory(**values):
        return DatabaseRow(list(values.keys()), list(values.values()))
    return factory
