"""
===============================================
Fluent SQL statement builders and save engine.
===============================================

This package builds parameterized SELECT, INSERT, UPDATE and DELETE
statements through fluent builders, and decides insert-or-update for single
rows. Statements are executed on caller-owned SQLAlchemy connections.

The package follows a clear organization:
    - fragments.py: Statement type, placeholder scanning and binding
    - where.py: WHERE clause accumulation shared by all builders
    - query_builder.py: SELECT builders and terminal read operations
    - dml.py: INSERT, UPDATE and DELETE builders
    - joins.py: Table aliases and joined queries
    - save.py: Insert-or-update decision (SaveBuilder)
    - table.py: DatabaseTable entry point (imports everything above)

Note:
    Eager imports removed to prevent circular dependencies with
    utils.database_utils, which depends on sql.fragments. Import from the
    submodules directly.

Example:
    >>> from sql.table import DatabaseTable
    >>>
    >>> persons = DatabaseTable("persons")
    >>> persons.where("code", 123).to_statement().sql
    'SELECT * FROM persons WHERE code = ?'
"""

__version__ = "0.1.0"
__all__ = [
    'fragments',
    'where',
    'query_builder',
    'dml',
    'joins',
    'save',
    'table',
]
