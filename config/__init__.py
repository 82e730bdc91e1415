"""Configuration module for the FAQ knowledge base.

Provides configuration management for the database, cache and assistant.
"""

from .database import (
    DatabaseConfig,
    DatabaseFactory,
    db_factory,
    build_engine,
    initialize_database,
    get_session_factory,
    close_database
)
from .app_config import AppConfig, DEFAULT_CONFIG

__all__ = [
    'DatabaseConfig',
    'DatabaseFactory',
    'db_factory',
    'build_engine',
    'initialize_database',
    'get_session_factory',
    'close_database',
    'AppConfig',
    'DEFAULT_CONFIG'
]
