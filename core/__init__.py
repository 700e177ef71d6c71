"""
==========================================
Core infrastructure for the SQL builders.
==========================================

This package provides configuration, logging and the error taxonomy used
throughout the statement builders and the save engine.

Modules:
    config: Configuration management from environment variables
    logger: Centralized logging configuration and utilities
    exceptions: ConfigurationError, AmbiguousResultError, UnknownColumnError

Example:
    >>> from core.config import config
    >>> from core.logger import get_logger
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info(f"Using dialect {config.dialect_name}")
"""

__version__ = "0.1.0"
__all__ = [
    'get_logger', 'setup_logging', 'set_sql_echo', 'config', 'Config',
    'FluentSqlError', 'ConfigurationError', 'AmbiguousResultError',
    'UnknownColumnError', 'ExecutionError'
]

from core.config import Config, config
from core.exceptions import (
    AmbiguousResultError,
    ConfigurationError,
    ExecutionError,
    FluentSqlError,
    UnknownColumnError,
)
from core.logger import get_logger, set_sql_echo, setup_logging
