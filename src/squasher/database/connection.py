"""
Database connection management for squasher.

Wraps a synchronous SQLAlchemy engine: one engine per invocation, created
lazily and disposed when the run ends.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from ..config import DatabaseConnection
from ..exceptions import DatabaseConnectionError


logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns the SQLAlchemy engine used for introspection and ledger updates."""

    def __init__(self, url: str, echo: bool = False):
        try:
            self.url = make_url(url)
        except ArgumentError as e:
            raise DatabaseConnectionError(f"Invalid database URL: {e}") from e
        self.echo = echo
        self._engine: Optional[Engine] = None

    @classmethod
    def from_config(cls, config: DatabaseConnection) -> "DatabaseManager":
        """Create a manager from the configured connection details."""
        return cls(config.to_url(), echo=config.echo)

    @property
    def engine(self) -> Engine:
        """The engine, created on first use."""
        if self._engine is None:
            try:
                logger.info(f"Creating engine for {self.url.render_as_string(hide_password=True)}")
                self._engine = create_engine(self.url, echo=self.echo)
            except (SQLAlchemyError, ImportError) as e:
                logger.error(f"Failed to create engine: {e}")
                raise DatabaseConnectionError(f"Failed to create database engine: {e}") from e
        return self._engine

    @property
    def dialect_name(self) -> str:
        """Backend name as reported by SQLAlchemy (mysql, postgresql, sqlite, mssql...)."""
        return self.url.get_backend_name()

    @property
    def is_initialized(self) -> bool:
        """Whether the engine has been created."""
        return self._engine is not None

    def test_connection(self) -> Dict[str, Any]:
        """Test the connection and return basic information."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {
                "status": "connected",
                "dialect": self.dialect_name,
                "database": self.url.database,
            }
        except (SQLAlchemyError, DatabaseConnectionError) as e:
            logger.error(f"Connection test failed: {e}")
            return {
                "status": "failed",
                "error": str(e),
            }

    def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        if self._engine is not None:
            logger.info("Disposing database engine")
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
