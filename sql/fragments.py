"""
======================
SQL Fragment Assembly.
======================

Low-level, pure helpers shared by every statement builder. Fragment order is
significant: it decides both the generated SQL text and which parameter binds
to which positional placeholder, so nothing here ever reorders its input.

Functions:
- join_fragments: Join SQL fragments with a separator
- flatten_parameters: Concatenate per-fragment parameter lists in order
- placeholders: Build a "?, ?, ?" placeholder list
- count_placeholders: Count positional placeholders outside quoted text
- bind_parameters: Rewrite positional placeholders into named binds

Classes:
- Statement: Compiled SQL text with its ordered parameter list

Usage:
    from sql.fragments import Statement, join_fragments, placeholders

    sql = "INSERT INTO persons (" + join_fragments(["id", "name"], ", ") + ")"
    sql += " VALUES (" + placeholders(2) + ")"
    statement = Statement(sql, [1, "Jane"])
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from core.exceptions import ConfigurationError

PLACEHOLDER = "?"
BIND_PREFIX = "p"


@dataclass(frozen=True)
class Statement:
    """Compiled SQL text and the parameters for its placeholders, in order.

    Attributes:
        sql: SQL text with positional '?' placeholders
        parameters: Values for the placeholders, in placeholder order
    """

    sql: str
    parameters: Tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "parameters", tuple(self.parameters))

    def __str__(self) -> str:
        return self.sql


def join_fragments(fragments: Iterable[str], separator: str) -> str:
    """
    Join SQL fragments in the given order.

    Args:
        fragments: SQL text fragments
        separator: Separator placed between fragments (e.g. " AND ", ", ")

    Returns:
        Joined SQL text
    """
    return separator.join(fragments)


def flatten_parameters(groups: Iterable[Sequence[Any]]) -> List[Any]:
    """
    Concatenate parameter groups, keeping group order and order within groups.

    Args:
        groups: One parameter sequence per fragment

    Returns:
        Single ordered parameter list
    """
    result: List[Any] = []
    for group in groups:
        result.extend(group)
    return result


def placeholders(count: int) -> str:
    """Build a comma separated list of ``count`` positional placeholders."""
    return join_fragments([PLACEHOLDER] * count, ", ")


def _placeholder_positions(sql: str) -> List[int]:
    # '' and "" inside literals toggle twice, so escaped quotes need no special case
    positions = []
    quote = None
    for index, char in enumerate(sql):
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char == PLACEHOLDER:
            positions.append(index)
    return positions


def count_placeholders(sql: str) -> int:
    """
    Count positional placeholders that are not inside quoted literals.

    Args:
        sql: SQL fragment

    Returns:
        Number of '?' placeholders

    Example:
        >>> count_placeholders("name = ? AND note <> 'why?'")
        1
    """
    return len(_placeholder_positions(sql))


def bind_parameters(sql: str, parameters: Sequence[Any]) -> Tuple[str, Dict[str, Any]]:
    """
    Rewrite positional placeholders into named binds for sqlalchemy.text().

    Each '?' outside quoted literals becomes ':p0', ':p1', ... and every
    pre-existing colon is escaped, so text() neither mistakes literal colons
    for binds nor depends on the driver's paramstyle.

    Args:
        sql: SQL text with positional placeholders
        parameters: Values in placeholder order

    Returns:
        Tuple of (SQL text with named binds, {bind name: value})

    Raises:
        ConfigurationError: If the number of placeholders and parameters differ
    """
    positions = _placeholder_positions(sql)
    if len(positions) != len(parameters):
        raise ConfigurationError(
            f"Statement has {len(positions)} placeholders but {len(parameters)} parameters: {sql}"
        )

    parts = []
    binds: Dict[str, Any] = {}
    start = 0
    for number, position in enumerate(positions):
        name = f"{BIND_PREFIX}{number}"
        parts.append(sql[start:position].replace(":", "\\:"))
        parts.append(f":{name}")
        binds[name] = parameters[number]
        start = position + 1
    parts.append(sql[start:].replace(":", "\\:"))

    return "".join(parts), binds
