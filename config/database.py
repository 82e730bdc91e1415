"""Database configuration and factory for the FAQ knowledge base.

Provides a unified way to build the SQLAlchemy engine and session factory for
SQLite (development, tests) and PostgreSQL (production) backends.
"""

import os
import logging
from typing import Optional
from pydantic import BaseModel, Field

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from services.shared.models import Base

logger = logging.getLogger(__name__)


class DatabaseConfig(BaseModel):
    """Database configuration."""
    url: str = Field(default="sqlite:///faqbase.db", description="SQLAlchemy database URL")
    echo: bool = Field(default=False, description="Log emitted SQL")

    # Upper bound for a single store call
    store_timeout_seconds: float = Field(default=10.0, description="Per-call store timeout in seconds")

    # Connection settings (ignored for SQLite)
    pool_size: int = Field(default=10, description="Connection pool size")
    max_overflow: int = Field(default=20, description="Maximum pool overflow")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.url).get_backend_name() == "sqlite"

    @property
    def is_postgresql(self) -> bool:
        return make_url(self.url).get_backend_name() == "postgresql"

    @property
    def is_memory(self) -> bool:
        return self.is_sqlite and make_url(self.url).database in (None, "", ":memory:")

    @classmethod
    def from_env(cls) -> 'DatabaseConfig':
        """Create configuration from environment variables."""
        return cls(
            url=os.getenv('FAQBASE_DATABASE_URL', 'sqlite:///faqbase.db'),
            echo=os.getenv('FAQBASE_DB_ECHO', 'false').lower() == 'true',
            store_timeout_seconds=float(os.getenv('FAQBASE_STORE_TIMEOUT', '10')),
            pool_size=int(os.getenv('DB_POOL_SIZE', '10')),
            max_overflow=int(os.getenv('DB_MAX_OVERFLOW', '20')),
            pool_timeout=int(os.getenv('DB_POOL_TIMEOUT', '30')),
        )


def build_engine(config: DatabaseConfig) -> Engine:
    """Create an engine with the store timeout pushed down to the driver."""
    if config.is_sqlite:
        connect_args = {"check_same_thread": False, "timeout": config.store_timeout_seconds}
        if config.is_memory:
            # One shared connection, otherwise every session sees an empty database
            return create_engine(config.url, echo=config.echo,
                                 connect_args=connect_args, poolclass=StaticPool)
        return create_engine(config.url, echo=config.echo, connect_args=connect_args)

    connect_args = {}
    if config.is_postgresql:
        timeout_ms = int(config.store_timeout_seconds * 1000)
        connect_args = {"options": f"-c statement_timeout={timeout_ms}"}
    return create_engine(
        config.url,
        echo=config.echo,
        connect_args=connect_args,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_pre_ping=True,
    )


class DatabaseFactory:
    """Holds the process-wide engine and session factory."""

    _instance: Optional['DatabaseFactory'] = None
    _engine: Optional[Engine] = None
    _session_factory: Optional[sessionmaker] = None
    _config: Optional[DatabaseConfig] = None

    def __new__(cls) -> 'DatabaseFactory':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def initialize(self, config: Optional[DatabaseConfig] = None) -> sessionmaker:
        """Create the engine, ensure the schema exists and build sessions."""
        if config is None:
            config = DatabaseConfig.from_env()

        self._config = config
        self._engine = build_engine(config)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)

        logger.info(f"Database initialized: {self._engine.url.get_backend_name()}")
        return self._session_factory

    def close(self):
        """Dispose of pooled connections."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connections closed")

    def get_session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._session_factory

    def get_engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._engine

    def get_config(self) -> DatabaseConfig:
        if self._config is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._config


# Global database factory instance
db_factory = DatabaseFactory()


def initialize_database(config: Optional[DatabaseConfig] = None) -> sessionmaker:
    """Initialize database with configuration."""
    return db_factory.initialize(config)


def get_session_factory() -> sessionmaker:
    return db_factory.get_session_factory()


def close_database():
    """Close database connections."""
    db_factory.close()
