"""
Migration ledger bookkeeping.

The ledger table records which migrations have run (``migration``, ``batch``).
After a squash, the rows of retired migrations are removed and one row for the
schema dump is added so the dump is not applied again.
"""

import logging
from typing import Iterable, List

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import DatabaseError


logger = logging.getLogger(__name__)

SCHEMA_DUMP_BATCH = 1


class MigrationLedger:
    """Reads and updates the migration ledger table."""

    def __init__(self, engine: Engine, table: str = "migrations"):
        self.engine = engine
        self.table_name = table
        self.table = sa.table(table, sa.column("migration"), sa.column("batch"))

    def exists(self) -> bool:
        """Whether the ledger table is present in the database."""
        try:
            return sa.inspect(self.engine).has_table(self.table_name)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to inspect ledger table {self.table_name}", cause=e) from e

    def migrations(self) -> List[str]:
        """Names recorded in the ledger, in insertion order."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(sa.select(self.table.c.migration))
                return [row[0] for row in rows]
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to read ledger table {self.table_name}", cause=e) from e

    def _delete(self, conn: Connection, names: List[str]) -> int:
        if not names:
            return 0
        result = conn.execute(sa.delete(self.table).where(self.table.c.migration.in_(names)))
        return result.rowcount or 0

    def _insert_once(self, conn: Connection, name: str, batch: int) -> bool:
        """Record ``name`` unless the ledger already has it."""
        present = conn.execute(
            sa.select(sa.func.count()).select_from(self.table).where(self.table.c.migration == name)
        ).scalar()
        if present:
            logger.info(f"Ledger already records {name}")
            return False
        conn.execute(sa.insert(self.table).values(migration=name, batch=batch))
        return True

    def replace(self, retired: Iterable[str], schema_dump: str, batch: int = SCHEMA_DUMP_BATCH) -> int:
        """Delete the retired rows, then record the schema dump. Returns rows deleted."""
        names = list(retired)
        try:
            with self.engine.begin() as conn:
                deleted = self._delete(conn, names)
                self._insert_once(conn, schema_dump, batch)
        except SQLAlchemyError as e:
            logger.error(f"Ledger update failed: {e}")
            raise DatabaseError(f"Failed to update ledger table {self.table_name}", cause=e) from e

        logger.info(f"Removed {deleted} ledger rows, recorded {schema_dump}")
        return deleted
