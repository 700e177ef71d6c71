"""
==================================================
Configuration management for the statement layer.
==================================================

Loads configuration from environment variables (.env file) and provides
a centralized Config singleton for application-wide access.

The configuration covers:
- Database URL used by create_sqlalchemy_engine()
- SQL dialect quirks (identity column, UUID, timestamp and boolean types)
- How database-generated keys are read back (RETURNING, OUTPUT or lastrowid)
- Default log level

Dialect quirks are inputs, never computed by the builders. The per-dialect
defaults below can be overridden with SQL_* environment variables.

Example:
    >>> from core.config import config
    >>>
    >>> engine_url = config.get_connection_string()
    >>> ddl = config.dialect.preprocess(
    ...     "create table persons (id ${INTEGER_PK}, name varchar(50))"
    ... )
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)


GENERATED_KEYS_LASTROWID = 'lastrowid'
GENERATED_KEYS_RETURNING = 'returning'
GENERATED_KEYS_OUTPUT = 'output'
GENERATED_KEYS_MODES = (GENERATED_KEYS_LASTROWID, GENERATED_KEYS_RETURNING, GENERATED_KEYS_OUTPUT)

# Column type replacements per dialect, keyed by SQLAlchemy dialect name
DIALECT_DEFAULTS: Dict[str, Dict[str, str]] = {
    'sqlite': {
        'uuid_type': 'varchar(36)',
        'integer_pk': 'integer primary key autoincrement',
        'datetime_type': 'datetime',
        'boolean_type': 'boolean',
        'generated_keys': GENERATED_KEYS_LASTROWID,
    },
    'postgresql': {
        'uuid_type': 'uuid',
        'integer_pk': 'serial primary key',
        'datetime_type': 'timestamp',
        'boolean_type': 'boolean',
        'generated_keys': GENERATED_KEYS_RETURNING,
    },
    'mssql': {
        'uuid_type': 'uniqueidentifier',
        'integer_pk': 'integer identity primary key',
        'datetime_type': 'datetime',
        'boolean_type': 'bit',
        'generated_keys': GENERATED_KEYS_OUTPUT,
    },
    'mysql': {
        'uuid_type': 'char(36)',
        'integer_pk': 'integer auto_increment primary key',
        'datetime_type': 'datetime',
        'boolean_type': 'boolean',
        'generated_keys': GENERATED_KEYS_LASTROWID,
    },
    'h2': {
        'uuid_type': 'uuid',
        'integer_pk': 'serial primary key',
        'datetime_type': 'datetime',
        'boolean_type': 'boolean',
        'generated_keys': GENERATED_KEYS_LASTROWID,
    },
}


@dataclass
class DatabaseConfig:
    """Database connection settings.

    Attributes:
        url: SQLAlchemy database URL
        echo: If True, SQLAlchemy logs every statement it executes
    """

    url: str
    echo: bool = False

    @property
    def dialect_name(self) -> str:
        """Get the dialect name from the URL (e.g. 'postgresql' for 'postgresql+psycopg2://')."""
        return self.url.split(':', 1)[0].split('+', 1)[0]


@dataclass
class DialectConfig:
    """SQL dialect quirks supplied as configuration.

    Attributes:
        name: Dialect name (sqlite, postgresql, mssql, mysql, h2)
        uuid_type: Column type used for UUID columns
        integer_pk: Column definition for a database-generated integer key
        datetime_type: Column type used for timestamps
        boolean_type: Column type used for booleans
        generated_keys: 'returning', 'output' (INSERT ... OUTPUT INSERTED.key) or 'lastrowid'
    """

    name: str
    uuid_type: str
    integer_pk: str
    datetime_type: str
    boolean_type: str
    generated_keys: str = GENERATED_KEYS_LASTROWID

    @property
    def replacements(self) -> Dict[str, str]:
        """Get the ${...} placeholder replacements for DDL text."""
        return {
            'UUID': self.uuid_type,
            'INTEGER_PK': self.integer_pk,
            'DATETIME': self.datetime_type,
            'BOOLEAN': self.boolean_type,
        }

    @property
    def uses_returning(self) -> bool:
        """Check whether generated keys are read with INSERT ... RETURNING."""
        return self.generated_keys == GENERATED_KEYS_RETURNING

    @property
    def uses_output(self) -> bool:
        """Check whether generated keys are read with INSERT ... OUTPUT INSERTED.key (SQL Server)."""
        return self.generated_keys == GENERATED_KEYS_OUTPUT

    def preprocess(self, statement: str) -> str:
        """Replace dialect placeholders in a DDL statement.

        Args:
            statement: DDL text containing ${UUID}, ${INTEGER_PK}, ${DATETIME}
                or ${BOOLEAN}

        Returns:
            DDL text with the dialect's column types substituted

        Example:
            >>> get_dialect_config('sqlite').preprocess("id ${INTEGER_PK}")
            'id integer primary key autoincrement'
        """
        for key, value in self.replacements.items():
            statement = statement.replace('${' + key + '}', value)
        return statement


def get_dialect_config(name: str, use_environment: bool = True) -> DialectConfig:
    """Build the dialect configuration for a dialect name.

    Args:
        name: SQLAlchemy dialect name
        use_environment: If True, SQL_* environment variables override the defaults

    Returns:
        DialectConfig for the dialect (sqlite defaults for unknown dialects)
    """
    defaults = DIALECT_DEFAULTS.get(name, DIALECT_DEFAULTS['sqlite'])

    def setting(key: str) -> str:
        if use_environment:
            return os.getenv(f'SQL_{key.upper()}', defaults[key])
        return defaults[key]

    generated_keys = setting('generated_keys').lower()
    if generated_keys not in GENERATED_KEYS_MODES:
        raise ValueError(
            f"SQL_GENERATED_KEYS must be one of {', '.join(GENERATED_KEYS_MODES)}, "
            f"got '{generated_keys}'"
        )

    return DialectConfig(
        name=name,
        uuid_type=setting('uuid_type'),
        integer_pk=setting('integer_pk'),
        datetime_type=setting('datetime_type'),
        boolean_type=setting('boolean_type'),
        generated_keys=generated_keys,
    )


class Config:
    """Centralized configuration manager.

    Attributes:
        db: DatabaseConfig with the connection URL
        dialect: DialectConfig for the configured database
        log_level: Default logging level name

    Example:
        >>> config = Config()
        >>> print(f"Connecting to {config.database_url}")
    """

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.db = DatabaseConfig(
            url=os.getenv('DATABASE_URL', 'sqlite://'),
            echo=os.getenv('DATABASE_ECHO', 'false').lower() in ('1', 'true', 'yes')
        )
        self.dialect = get_dialect_config(
            os.getenv('SQL_DIALECT', self.db.dialect_name)
        )
        self.log_level = os.getenv('LOG_LEVEL', 'INFO')

    @property
    def database_url(self) -> str:
        """Get the configured database URL."""
        return self.db.url

    @property
    def dialect_name(self) -> str:
        """Get the configured dialect name."""
        return self.dialect.name

    def get_connection_string(self) -> str:
        """Get database connection string.

        Returns:
            SQLAlchemy-compatible connection string
        """
        return self.db.url

    def dialect_for(self, name: Optional[str]) -> DialectConfig:
        """Get the dialect configuration for a live connection's dialect.

        Returns the configured dialect when the names agree, otherwise the
        defaults for the given dialect name.
        """
        if name is None or name == self.dialect.name:
            return self.dialect
        return get_dialect_config(name, use_environment=False)


# Global configuration instance
config = Config()
