"""
=======================
Table Aliases and Joins.
=======================

Aliases give a table a name inside one query so the same table can appear
more than once (self-joins). Each alias gets an opaque integer token when it
is created; column references and result rows are keyed by that token, so
two aliases of the same table never collide.

Classes:
- TableAlias: a named reference to a table; entry point for joined queries
- ColumnRef: (alias, column) pair, rendered as "alias.column"
- JoinedQueryBuilder: SELECT across a primary alias and inner-joined aliases

Join edges are rendered as INNER JOINs in declaration order. Each edge must
connect one alias already in the query (the primary alias or an earlier
join) with one new alias; anything else raises ConfigurationError
immediately.

Usage:
    from sql.table import DatabaseTable

    m = DatabaseTable("memberships").alias("m")
    p = DatabaseTable("persons").alias("p")
    o = DatabaseTable("organizations").alias("o")

    rows = (
        m.join(m.column("person_id"), p.column("id"))
        .join(m.column("organization_id"), o.column("id"))
        .where_in(o.column("name"), ["Army", "Boutique"])
        .order_by(p.column("name"))
        .order_by(o.column("name"))
        .list(conn, lambda row: (row.get_string(o.column("name")), row.get_string(p.column("name"))))
    )
"""

import itertools
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Tuple

from core.exceptions import ConfigurationError
from sql.fragments import Statement, join_fragments
from sql.query_builder import ReadableQuery
from utils.database_utils import DatabaseRow

logger = logging.getLogger(__name__)

_alias_tokens = itertools.count(1)
_PLAIN_IDENTIFIER = re.compile(r"\w+")


class TableAlias:
    """A named reference to a table, distinct from every other alias.

    Attributes:
        table: The aliased DatabaseTable
        alias_name: Name used in SQL
        token: Opaque identifier assigned at creation
    """

    def __init__(self, table, alias_name: str):
        self.table = table
        self.alias_name = alias_name
        self.token = next(_alias_tokens)

    @property
    def table_name(self) -> str:
        return self.table.table_name

    def column(self, column_name: str) -> "ColumnRef":
        return ColumnRef(self, column_name)

    def from_clause(self) -> str:
        """Render the table for FROM/JOIN: "table alias", or just "table" for its own name."""
        if self.alias_name == self.table_name:
            return self.table_name
        return f"{self.table_name} {self.alias_name}"

    def query(self) -> "JoinedQueryBuilder":
        return JoinedQueryBuilder(self)

    def join(self, left: "ColumnRef", right: "ColumnRef") -> "JoinedQueryBuilder":
        return self.query().join(left, right)

    def where(self, column: Any, value: Any) -> "JoinedQueryBuilder":
        return self.query().where(column, value)

    def where_optional(self, column: Any, value: Any) -> "JoinedQueryBuilder":
        return self.query().where_optional(column, value)

    def where_in(self, column: Any, values) -> "JoinedQueryBuilder":
        return self.query().where_in(column, values)

    def where_expression(self, expression: str, *parameters: Any) -> "JoinedQueryBuilder":
        return self.query().where_expression(expression, *parameters)

    def order_by(self, order_by_clause: Any) -> "JoinedQueryBuilder":
        return self.query().order_by(order_by_clause)

    def unordered(self) -> "JoinedQueryBuilder":
        return self.query().unordered()

    def __repr__(self) -> str:
        return f"TableAlias({self.table_name!r} AS {self.alias_name!r}, token={self.token})"


@dataclass(frozen=True)
class ColumnRef:
    """A column of a specific table alias.

    Attributes:
        alias: The owning TableAlias
        column_name: Column name
    """

    alias: TableAlias
    column_name: str

    @property
    def token(self) -> int:
        return self.alias.token

    @property
    def qualified_name(self) -> str:
        return f"{self.alias.alias_name}.{self.column_name}"

    def __str__(self) -> str:
        return self.qualified_name


@dataclass(frozen=True)
class JoinEdge:
    """One INNER JOIN: left = right, bringing joined_alias into the query."""

    left: ColumnRef
    right: ColumnRef
    joined_alias: TableAlias

    def render(self) -> str:
        return (
            f"INNER JOIN {self.joined_alias.from_clause()} "
            f"ON {self.left.qualified_name} = {self.right.qualified_name}"
        )


class JoinedQueryBuilder(ReadableQuery):
    """SELECT across a primary alias and any number of inner-joined aliases.

    Bare column names in where-methods are qualified with the primary alias;
    "alias.column" strings and expressions are used as written.
    Every column of every alias is selected; rows can be read by ColumnRef,
    "alias.column" or bare name.
    """

    def __init__(self, primary: TableAlias):
        super().__init__()
        self._primary = primary
        self._aliases: List[TableAlias] = [primary]
        self._joins: List[JoinEdge] = []
        self._referenced: List[ColumnRef] = []

    def _is_registered(self, alias: TableAlias) -> bool:
        return any(a.token == alias.token for a in self._aliases)

    def join(self, left: ColumnRef, right: ColumnRef) -> "JoinedQueryBuilder":
        """
        Append an INNER JOIN on left = right.

        Raises:
            ConfigurationError: If neither or both sides are already part of the
                query, or the new alias name is already in use
        """
        self._check_open()
        left_known = self._is_registered(left.alias)
        right_known = self._is_registered(right.alias)

        if not left_known and not right_known:
            raise ConfigurationError(
                f"Cannot join {left.qualified_name} = {right.qualified_name}: "
                f"neither {left.alias.alias_name} nor {right.alias.alias_name} is part of the query"
            )
        if left_known and right_known:
            raise ConfigurationError(
                f"Cannot join {left.qualified_name} = {right.qualified_name}: "
                f"both aliases are already part of the query"
            )

        joined = right.alias if left_known else left.alias
        if any(a.alias_name.lower() == joined.alias_name.lower() for a in self._aliases):
            raise ConfigurationError(
                f"Alias name {joined.alias_name} is already used in this query"
            )

        self._aliases.append(joined)
        self._joins.append(JoinEdge(left, right, joined))
        logger.debug(f"Joined {joined.from_clause()} on {left.qualified_name} = {right.qualified_name}")
        return self

    def _qualify(self, column: Any) -> Any:
        if isinstance(column, ColumnRef):
            self._referenced.append(column)
            return column
        if _PLAIN_IDENTIFIER.fullmatch(column):
            return self._primary.column(column)
        return column

    def _qualify_order(self, clause: Any) -> Any:
        if isinstance(clause, ColumnRef):
            self._referenced.append(clause)
        return clause

    def _describe(self) -> str:
        return join_fragments((a.from_clause() for a in self._aliases), " JOIN ")

    def _check_references(self) -> None:
        for column in self._referenced:
            if not self._is_registered(column.alias):
                raise ConfigurationError(
                    f"Column {column.qualified_name} refers to alias "
                    f"{column.alias.alias_name} which is not part of the query"
                )

    def _render(self, select_list: str) -> str:
        joins = "".join(" " + edge.render() for edge in self._joins)
        return (
            f"SELECT {select_list} FROM {self._primary.from_clause()}{joins}"
            f"{self._where.render()}{self._render_order_by()}"
        )

    def to_statement(self) -> Statement:
        """Compile the SELECT with "alias.*" select items, without executing it."""
        self._check_references()
        select_list = join_fragments((f"{a.alias_name}.*" for a in self._aliases), ", ")
        return Statement(self._render(select_list), self._where.parameters)

    def _fetch(self, executor) -> List[DatabaseRow]:
        self._check_references()
        select_items: List[str] = []
        qualifiers: List[Tuple[int, str]] = []
        for alias in self._aliases:
            for column in executor.table_columns(alias.table_name):
                select_items.append(alias.column(column).qualified_name)
                qualifiers.append((alias.token, alias.alias_name))

        statement = Statement(self._render(join_fragments(select_items, ", ")), self._where.parameters)
        return executor.query(statement, qualifiers=qualifiers)
