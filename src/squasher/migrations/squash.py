"""
Squash orchestration.

Runs the steps of a squash strictly in order, each gated on the previous one:

1. back up the retired migration files (when enabled)
2. generate the schema dump and write it atomically
3. update the migration ledger (when enabled)
4. delete the retired migration files

A failure stops the run and raises a SquashError naming the step and the
records processed so far. Completed steps are not rolled back; the backup
directory is the recovery path.
"""

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from .ledger import MigrationLedger
from .planner import SquashPlan
from ..config import SquashSettings
from ..exceptions import (
    ArtifactWriteError,
    BackupError,
    DatabaseError,
    DeletionError,
    LedgerError,
    SquasherError,
)
from ..schema.synthesizer import SchemaDumper


logger = logging.getLogger(__name__)

BACKUP_DIR_FORMAT = "%Y-%m-%d_%H%M%S"


@dataclass
class SquashResult:
    """Outcome of a squash run."""

    squashed: List[str] = field(default_factory=list)
    schema_path: Optional[Path] = None
    backup_dir: Optional[Path] = None
    ledger_rows_deleted: Optional[int] = None
    tables: Tuple[str, ...] = ()

    @property
    def count(self) -> int:
        """Number of migrations squashed."""
        return len(self.squashed)


class SquashOrchestrator:
    """Sequences backup, schema dump, ledger update and file deletion."""

    def __init__(
        self,
        settings: SquashSettings,
        dumper: SchemaDumper,
        ledger: Optional[MigrationLedger] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings
        self.dumper = dumper
        self.ledger = ledger
        self.clock = clock

    def run(self, plan: SquashPlan) -> SquashResult:
        """Run every enabled step for the plan, stopping at the first failure."""
        result = SquashResult()
        if plan.is_empty:
            logger.info("Nothing to squash")
            return result

        if self.settings.backup_enabled:
            result.backup_dir = self.backup(plan)

        result.schema_path, result.tables = self.write_schema_dump(plan, result.backup_dir)

        if self.settings.delete_records:
            result.ledger_rows_deleted = self.update_ledger(plan, result.backup_dir)

        self.delete_files(plan, result.backup_dir)
        result.squashed = plan.filenames
        logger.info(f"Squashed {result.count} migrations into {result.schema_path}")
        return result

    def _fresh_backup_dir(self) -> Path:
        """Timestamped backup directory that does not exist yet."""
        base = self.settings.backup_dir / self.clock().strftime(BACKUP_DIR_FORMAT)
        candidate = base
        suffix = 1
        while candidate.exists():
            candidate = base.with_name(f"{base.name}_{suffix}")
            suffix += 1
        candidate.mkdir(parents=True)
        return candidate

    def backup(self, plan: SquashPlan) -> Path:
        """Copy every retired file into a new timestamped directory."""
        copied: List[str] = []
        backup_dir: Optional[Path] = None
        try:
            backup_dir = self._fresh_backup_dir()
            logger.info(f"Backing up {len(plan)} migrations to {backup_dir}")
            for record in plan.records:
                shutil.copy2(record.path, backup_dir / record.filename)
                copied.append(record.filename)
        except OSError as e:
            logger.error(f"Backup failed: {e}")
            raise BackupError(
                "Failed to back up migrations",
                processed=copied,
                pending=[f for f in plan.filenames if f not in copied],
                backup_dir=str(backup_dir) if backup_dir else None,
                cause=e,
            ) from e
        return backup_dir

    def write_schema_dump(
        self, plan: SquashPlan, backup_dir: Optional[Path] = None
    ) -> Tuple[Path, Tuple[str, ...]]:
        """Generate the schema dump and write it atomically."""
        try:
            artifact = self.dumper.generate()
            path = self.dumper.save(artifact, self.settings.schema_path)
        except (SquasherError, SQLAlchemyError) as e:
            logger.error(f"Schema dump failed: {e}")
            raise ArtifactWriteError(
                "Failed to generate schema dump",
                pending=plan.filenames,
                backup_dir=str(backup_dir) if backup_dir else None,
                cause=e,
            ) from e
        return path, artifact.tables

    def update_ledger(self, plan: SquashPlan, backup_dir: Optional[Path] = None) -> int:
        """Remove retired rows and record the schema dump."""
        if self.ledger is None:
            raise LedgerError(
                "Ledger update requested but no database ledger is configured",
                pending=plan.filenames,
                backup_dir=str(backup_dir) if backup_dir else None,
            )
        try:
            if not self.ledger.exists():
                raise DatabaseError(f"Ledger table {self.ledger.table_name} does not exist")
            return self.ledger.replace(
                [record.migration for record in plan.records],
                self.settings.schema_migration_name,
            )
        except SquasherError as e:
            raise LedgerError(
                "Failed to update migration ledger",
                pending=plan.filenames,
                backup_dir=str(backup_dir) if backup_dir else None,
                cause=e,
            ) from e

    def delete_files(self, plan: SquashPlan, backup_dir: Optional[Path] = None) -> List[str]:
        """Remove the retired files; already deleted files stay deleted on failure."""
        deleted: List[str] = []
        for record in plan.records:
            try:
                record.path.unlink()
            except OSError as e:
                logger.error(f"Could not delete {record.path}: {e}")
                raise DeletionError(
                    f"Failed to delete {record.filename}",
                    processed=deleted,
                    pending=[f for f in plan.filenames if f not in deleted],
                    backup_dir=str(backup_dir) if backup_dir else None,
                    cause=e,
                ) from e
            deleted.append(record.filename)
        logger.info(f"Removed {len(deleted)} migration files")
        return deleted
