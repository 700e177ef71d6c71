"""
==========================
Save (Insert-or-Update).
==========================

SaveBuilder decides between INSERT, UPDATE and doing nothing for one row:

1. With an id, look the row up by id.
2. Without an id, or when the id is not found, look the row up by its
   unique key (a business key distinct from the id).
3. No row: INSERT unique keys and fields. The id comes from the caller, from
   the database, or from uuid4(), depending on the IdStrategy.
4. A row whose stored values all equal the supplied values: no write,
   NO_CHANGE with the stored id.
5. Otherwise: UPDATE every supplied column on that row, UPDATED with the
   stored id. The stored id always wins over an id passed by the caller.

Repeated saves of unchanged data therefore cause no writes, and columns that
are maintained on write (such as updated_at) keep their value.

The lookup and the write are separate statements. Callers that can race on
the same key need a unique constraint or a locking transaction around save.

Classes:
- IdStrategy: EXTERNAL_LONG, GENERATED_LONG, EXTERNAL_UUID
- SaveStatus: INSERTED, UPDATED, NO_CHANGE
- SaveResult: immutable (id, status)
- SaveBuilder: the save request and its execution

Example:
    >>> result = (
    ...     persons.new_save_builder("id", None)
    ...     .unique_key("code", 123)
    ...     .set_field("name", "Jane")
    ...     .execute(conn)
    ... )
    >>> result.status
    <SaveStatus.INSERTED: 'INSERTED'>
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.exceptions import ConfigurationError
from sql.dml import FieldAssignments
from utils.database_utils import DatabaseRow, as_executor

logger = logging.getLogger(__name__)


class IdStrategy(Enum):
    """How the primary key of a newly inserted row is obtained."""

    EXTERNAL_LONG = "EXTERNAL_LONG"
    GENERATED_LONG = "GENERATED_LONG"
    EXTERNAL_UUID = "EXTERNAL_UUID"


class SaveStatus(Enum):
    INSERTED = "INSERTED"
    UPDATED = "UPDATED"
    NO_CHANGE = "NO_CHANGE"


@dataclass(frozen=True)
class SaveResult:
    """Outcome of a save: the row's id and what happened to it.

    Attributes:
        id: Id of the inserted, updated or unchanged row
        status: SaveStatus
    """

    id: Any
    status: SaveStatus

    @classmethod
    def inserted(cls, id: Any) -> "SaveResult":
        return cls(id, SaveStatus.INSERTED)

    @classmethod
    def updated(cls, id: Any) -> "SaveResult":
        return cls(id, SaveStatus.UPDATED)

    @classmethod
    def unchanged(cls, id: Any) -> "SaveResult":
        return cls(id, SaveStatus.NO_CHANGE)


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _as_decimal(value: Any) -> Optional[Decimal]:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def values_equal(stored: Any, supplied: Any) -> bool:
    """
    Compare a stored column value with a value about to be saved.

    Drivers hand back other representations than the ones callers bind
    (text for UUIDs and timestamps on SQLite, Decimal for numerics, 0/1 for
    booleans), so the comparison is by value, not by type.

    Args:
        stored: Value read from the database
        supplied: Value passed to the save builder

    Returns:
        True if both represent the same value
    """
    if stored is None or supplied is None:
        return stored is None and supplied is None

    if isinstance(supplied, uuid.UUID) or isinstance(stored, uuid.UUID):
        return str(stored).lower() == str(supplied).lower()

    if isinstance(supplied, datetime):
        return _as_datetime(stored) == supplied

    if isinstance(supplied, date):
        stored_date = stored if isinstance(stored, date) else _as_datetime(stored)
        if isinstance(stored_date, datetime):
            stored_date = stored_date.date()
        return stored_date == supplied

    if isinstance(supplied, bool) or isinstance(stored, bool):
        return bool(stored) == bool(supplied)

    numeric = (int, float, Decimal)
    if isinstance(supplied, numeric) and isinstance(stored, numeric):
        return _as_decimal(stored) == _as_decimal(supplied)

    # a numeric string bound to a numeric column reads back as a number
    if (isinstance(supplied, str) and isinstance(stored, numeric)) or (
        isinstance(stored, str) and isinstance(supplied, numeric)
    ):
        supplied_number = _as_decimal(supplied)
        return supplied_number is not None and supplied_number == _as_decimal(stored)

    return stored == supplied


class SaveBuilder:
    """Insert-or-update of one row, keyed by id and/or a unique key.

    Attributes:
        table: Target DatabaseTable
        id_column: Primary key column
        id_value: Caller-supplied id, or None
        strategy: IdStrategy for inserts

    A caller-supplied id that matches no row is inserted only when it is
    declared pre-generated with pregenerated_id(). UUID ids are treated as
    pre-generated unless pregenerated_id(False) is called.
    """

    def __init__(self, table, id_column: str, id_value: Any, strategy: IdStrategy):
        self.table = table
        self.id_column = id_column
        self.id_value = id_value
        self.strategy = strategy
        self._unique_keys = FieldAssignments()
        self._fields = FieldAssignments()
        self._pregenerated = strategy is IdStrategy.EXTERNAL_UUID
        self._consumed = False

    def _check_open(self) -> None:
        if self._consumed:
            raise ConfigurationError("SaveBuilder has already been executed; start a new save")

    def unique_key(self, column: str, value: Any) -> "SaveBuilder":
        """Add a unique-key column used to find the existing row when no id matches."""
        self._check_open()
        self._unique_keys.set(column, value)
        return self

    def set_field(self, column: str, value: Any) -> "SaveBuilder":
        self._check_open()
        self._fields.set(column, value)
        return self

    def set_fields(self, columns: Sequence[str], values: Sequence[Any]) -> "SaveBuilder":
        self._check_open()
        self._fields.set_all(columns, values)
        return self

    def pregenerated_id(self, pregenerated: bool = True) -> "SaveBuilder":
        """Declare that the supplied id is new and may be inserted if no row has it."""
        self._check_open()
        self._pregenerated = pregenerated
        return self

    def _assignments(self) -> List[Tuple[str, Any]]:
        assignments = FieldAssignments()
        for column, value in self._unique_keys.items() + self._fields.items():
            if column == self.id_column:
                raise ConfigurationError(
                    f"Id column {self.id_column} cannot be saved as a field of {self.table.table_name}"
                )
            assignments.set(column, value)
        return assignments.items()

    def _read_id(self, row: DatabaseRow) -> Any:
        if self.strategy is IdStrategy.EXTERNAL_UUID:
            return row.get_uuid(self.id_column)
        return row.get_long(self.id_column)

    def _lookup(self, executor, query, columns: List[str]) -> Optional[Tuple[Any, Dict[str, Any]]]:
        return query.unordered().single_object(
            executor,
            lambda row: (self._read_id(row), {column: row.get_object(column) for column in columns})
        )

    def _find_existing(self, executor, columns: List[str]) -> Optional[Tuple[Any, Dict[str, Any]]]:
        existing = None
        if self.id_value is not None:
            existing = self._lookup(
                executor, self.table.query().where(self.id_column, self.id_value), columns
            )
            if existing is None:
                logger.debug(f"No {self.table.table_name} row with {self.id_column}={self.id_value}")

        if existing is None and len(self._unique_keys):
            existing = self._lookup(
                executor,
                self.table.query().where_all(self._unique_keys.columns, self._unique_keys.values),
                columns
            )
        return existing

    def execute(self, connection) -> SaveResult:
        """
        Save the row.

        Args:
            connection: SQLAlchemy Connection or executor

        Returns:
            SaveResult with the row's id and INSERTED, UPDATED or NO_CHANGE

        Raises:
            AmbiguousResultError: If the unique key matches more than one row
            ConfigurationError: If the builder cannot produce a valid save
                (see class docstring), before anything is written
        """
        self._check_open()
        if self.strategy is IdStrategy.EXTERNAL_LONG and self.id_value is None and not len(self._unique_keys):
            raise ConfigurationError(
                f"Save into {self.table.table_name} without generated keys needs an id or a unique key"
            )
        assignments = self._assignments()
        self._consumed = True

        executor = as_executor(connection)
        existing = self._find_existing(executor, [column for column, _ in assignments])

        if existing is None:
            return self._insert(executor, assignments)

        existing_id, stored = existing
        changed = [column for column, value in assignments if not values_equal(stored[column], value)]
        if not changed:
            logger.debug(f"{self.table.table_name} {self.id_column}={existing_id} unchanged")
            return SaveResult.unchanged(existing_id)

        logger.debug(f"Updating {self.table.table_name} {self.id_column}={existing_id}, changed {changed}")
        (
            self.table.update()
            .set_fields([column for column, _ in assignments], [value for _, value in assignments])
            .where(self.id_column, existing_id)
            .execute(executor)
        )
        return SaveResult.updated(existing_id)

    def _insert(self, executor, assignments: List[Tuple[str, Any]]) -> SaveResult:
        if self.id_value is not None and not self._pregenerated:
            raise ConfigurationError(
                f"No {self.table.table_name} row has {self.id_column}={self.id_value}; "
                f"call pregenerated_id() to insert a row with a new id"
            )

        id_value = self.id_value
        if self.strategy is IdStrategy.EXTERNAL_LONG and id_value is None:
            raise ConfigurationError(
                f"Save into {self.table.table_name} without generated keys found no row and has no id to insert"
            )
        if self.strategy is IdStrategy.EXTERNAL_UUID and id_value is None:
            id_value = uuid.uuid4()

        new_id = (
            self.table.insert()
            .set_primary_key(self.id_column, id_value)
            .set_fields([column for column, _ in assignments], [value for _, value in assignments])
            .execute(executor)
        )
        logger.debug(f"Inserted {self.table.table_name} {self.id_column}={new_id}")
        return SaveResult.inserted(new_id)
