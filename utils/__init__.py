"""
==========================
Utility Functions Package.
==========================

Database execution helpers shared by the statement builders.

Modules:
    database_utils: SQLAlchemy engine creation, statement execution and row access
"""

__version__ = "0.1.0"
__all__ = [
    'create_sqlalchemy_engine',
    'as_executor',
    'SqlAlchemyExecutor',
    'DatabaseRow',
    'UpdateResult',
]

from .database_utils import (
    DatabaseRow,
    SqlAlchemyExecutor,
    UpdateResult,
    as_executor,
    create_sqlalchemy_engine,
)
