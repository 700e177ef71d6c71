"""
=====================
WHERE Clause Builder.
=====================

Accumulates predicates for SELECT, UPDATE and DELETE statements. Every
predicate is a Condition: one SQL fragment plus the parameters for its
placeholders. Conditions are combined with AND in the order they were added;
an OR is expressed inside a single raw expression.

Predicate kinds:
- equal: "column = ?"; None renders the explicit "column IS NULL"
- optional: like equal, but None means no constraint at all
- not_equal: "column <> ?"; None renders "column IS NOT NULL"
- in_: "column IN (?, ?)"; an empty list renders "1 = 0" and matches nothing
- expression: caller-supplied fragment with positional placeholders
- all_rows: explicit "match every row", required for unconditional mutations

Usage:
    from sql.where import WhereClause

    where = WhereClause().equal("code", 123).optional("name", None)
    where.render()       # " WHERE code = ?"
    where.parameters     # [123]
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Sequence, Tuple

from core.exceptions import ConfigurationError
from sql.fragments import count_placeholders, flatten_parameters, join_fragments, placeholders

MATCH_NOTHING = "1 = 0"
MATCH_EVERYTHING = "1 = 1"


def column_sql(column: Any) -> str:
    """Render a column argument: ColumnRef objects by their qualified name, strings as-is."""
    return getattr(column, "qualified_name", column)


@dataclass(frozen=True)
class Condition:
    """A single predicate fragment with its parameters.

    Attributes:
        fragment: SQL text with positional placeholders
        parameters: One value per placeholder, in order

    Raises:
        ConfigurationError: If placeholders and parameters do not match up
    """

    fragment: str
    parameters: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "parameters", tuple(self.parameters))
        expected = count_placeholders(self.fragment)
        if expected != len(self.parameters):
            raise ConfigurationError(
                f"Expression '{self.fragment}' has {expected} placeholders "
                f"but {len(self.parameters)} parameters were given"
            )


class WhereClause:
    """Ordered AND-combination of Conditions.

    A clause with no conditions matches every row when rendered for a query.
    Mutations additionally require all_rows() to be called before they will
    accept an empty clause.
    """

    def __init__(self):
        self._conditions: List[Condition] = []
        self._all_rows = False

    def add(self, condition: Condition) -> "WhereClause":
        self._conditions.append(condition)
        return self

    def equal(self, column: Any, value: Any) -> "WhereClause":
        if value is None:
            return self.add(Condition(f"{column_sql(column)} IS NULL"))
        return self.add(Condition(f"{column_sql(column)} = ?", (value,)))

    def optional(self, column: Any, value: Any) -> "WhereClause":
        if value is None:
            return self
        return self.equal(column, value)

    def not_equal(self, column: Any, value: Any) -> "WhereClause":
        if value is None:
            return self.add(Condition(f"{column_sql(column)} IS NOT NULL"))
        return self.add(Condition(f"{column_sql(column)} <> ?", (value,)))

    def in_(self, column: Any, values: Iterable[Any]) -> "WhereClause":
        values = list(values)
        if not values:
            return self.add(Condition(MATCH_NOTHING))
        return self.add(Condition(f"{column_sql(column)} IN ({placeholders(len(values))})", values))

    def expression(self, expression: str, *parameters: Any) -> "WhereClause":
        return self.add(Condition(expression, parameters))

    def expression_with_parameters(self, expression: str, parameters: Sequence[Any]) -> "WhereClause":
        return self.add(Condition(expression, tuple(parameters)))

    def equal_all(self, columns: Sequence[Any], values: Sequence[Any]) -> "WhereClause":
        if len(columns) != len(values):
            raise ConfigurationError(
                f"where_all got {len(columns)} columns but {len(values)} values"
            )
        for column, value in zip(columns, values):
            self.equal(column, value)
        return self

    def all_rows(self) -> "WhereClause":
        """Declare that the statement intentionally applies to every row."""
        self._all_rows = True
        return self

    @property
    def conditions(self) -> List[Condition]:
        return list(self._conditions)

    @property
    def parameters(self) -> List[Any]:
        return flatten_parameters(c.parameters for c in self._conditions)

    @property
    def is_empty(self) -> bool:
        return not self._conditions

    @property
    def matches_all_rows(self) -> bool:
        return self._all_rows

    def require_predicate(self, statement_kind: str, table_name: str) -> None:
        """Refuse an implicit unconditional mutation.

        Raises:
            ConfigurationError: If no condition was added and all_rows() was not called
        """
        if self.is_empty and not self._all_rows:
            raise ConfigurationError(
                f"{statement_kind} on {table_name} has no where-predicate; "
                f"call all_rows() to {statement_kind.lower()} every row"
            )

    def render(self) -> str:
        """
        Render the clause including the leading " WHERE ", or "" when empty.

        An explicit all_rows() with no conditions renders " WHERE 1 = 1".
        """
        if self._conditions:
            return " WHERE " + join_fragments((c.fragment for c in self._conditions), " AND ")
        if self._all_rows:
            return f" WHERE {MATCH_EVERYTHING}"
        return ""

    def copy(self) -> "WhereClause":
        clause = WhereClause()
        clause._conditions = list(self._conditions)
        clause._all_rows = self._all_rows
        return clause

    def __len__(self) -> int:
        return len(self._conditions)


class WhereBuilderMixin:
    """Fluent where-methods shared by query, update and delete builders.

    Subclasses set self._where in __init__ and may override _qualify() to
    rewrite column arguments before they are rendered. A builder is consumed
    by its terminal call; any later call raises ConfigurationError.
    """

    _where: WhereClause
    _consumed = False

    def _check_open(self) -> None:
        if self._consumed:
            raise ConfigurationError(
                f"{type(self).__name__} has already been executed; start a new statement"
            )

    def _consume(self) -> None:
        self._check_open()
        self._consumed = True

    def _qualify(self, column: Any) -> Any:
        return column

    def where(self, column: Any, value: Any):
        """Add "column = ?" (or "column IS NULL" when value is None)."""
        self._check_open()
        self._where.equal(self._qualify(column), value)
        return self

    def where_optional(self, column: Any, value: Any):
        """Add "column = ?" unless value is None, in which case nothing is added."""
        self._check_open()
        self._where.optional(self._qualify(column), value)
        return self

    def where_not_equal(self, column: Any, value: Any):
        self._check_open()
        self._where.not_equal(self._qualify(column), value)
        return self

    def where_in(self, column: Any, values: Iterable[Any]):
        """Add "column IN (...)"; an empty collection matches no rows."""
        self._check_open()
        self._where.in_(self._qualify(column), values)
        return self

    def where_expression(self, expression: str, *parameters: Any):
        """Add a raw SQL predicate with one parameter per '?' placeholder."""
        self._check_open()
        self._where.expression(expression, *parameters)
        return self

    def where_expression_with_parameters(self, expression: str, parameters: Sequence[Any]):
        self._check_open()
        self._where.expression_with_parameters(expression, parameters)
        return self

    def where_all(self, columns: Sequence[Any], values: Sequence[Any]):
        """Add one equality per (column, value) pair."""
        self._check_open()
        self._where.equal_all([self._qualify(c) for c in columns], values)
        return self

    def all_rows(self):
        """Explicitly target every row (required for unconditional update/delete)."""
        self._check_open()
        self._where.all_rows()
        return self
