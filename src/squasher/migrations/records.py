"""
Migration file inventory.

Migrations are discovered by scanning one directory (no recursion) for files
named ``YYYY_MM_DD_HHMMSS_name.py``. The timestamp prefix is the only
ordering key.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..exceptions import FileSystemError


logger = logging.getLogger(__name__)

SCHEMA_DUMP_MARKER = "schema_dump"
TIMESTAMP_FORMAT = "%Y_%m_%d_%H%M%S"
STATISTICS_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_PREFIX = re.compile(r"^(\d{4}_\d{2}_\d{2}_\d{6})_(.+)$")


@dataclass(frozen=True)
class MigrationRecord:
    """One migration file."""

    filename: str
    timestamp: datetime
    name: str
    path: Path

    @property
    def migration(self) -> str:
        """Ledger identifier: the filename without its extension."""
        return Path(self.filename).stem

    def __str__(self) -> str:
        return self.filename


def parse_migration_filename(filename: str, extension: str = ".py") -> Optional[MigrationRecord]:
    """Build a record from a filename, or None if the name is not a migration.

    Names with an impossible timestamp (month 13, hour 25...) are rejected
    here rather than sorted as timestamp zero.
    """
    if not filename.endswith(extension) or SCHEMA_DUMP_MARKER in filename:
        return None
    stem = filename[: -len(extension)] if extension else filename
    match = _PREFIX.match(stem)
    if not match:
        return None
    try:
        timestamp = datetime.strptime(match.group(1), TIMESTAMP_FORMAT)
    except ValueError:
        logger.debug(f"Ignoring {filename}: invalid timestamp prefix")
        return None
    return MigrationRecord(filename=filename, timestamp=timestamp, name=match.group(2), path=Path(filename))


class MigrationRepository:
    """Reads the migration files of one directory."""

    def __init__(self, directory: Union[str, Path], extension: str = ".py"):
        self.directory = Path(directory)
        self.extension = extension

    def scan(self) -> List[MigrationRecord]:
        """All valid migration records, sorted by timestamp then filename."""
        if not self.directory.is_dir():
            logger.info(f"Migration directory {self.directory} does not exist")
            return []

        records = []
        try:
            entries = sorted(self.directory.iterdir())
        except OSError as e:
            raise FileSystemError(f"Cannot read migration directory {self.directory}", cause=e) from e

        for entry in entries:
            if not entry.is_file():
                continue
            record = parse_migration_filename(entry.name, self.extension)
            if record is None:
                continue
            records.append(
                MigrationRecord(
                    filename=record.filename,
                    timestamp=record.timestamp,
                    name=record.name,
                    path=entry,
                )
            )

        records.sort(key=lambda r: (r.timestamp, r.filename))
        logger.debug(f"Found {len(records)} migrations in {self.directory}")
        return records

    def statistics(self) -> Dict[str, Any]:
        """Count and date range of the migrations on disk."""
        records = self.scan()
        if not records:
            return {
                "total": 0,
                "oldest": None,
                "newest": None,
                "oldest_date": None,
                "newest_date": None,
            }
        oldest, newest = records[0], records[-1]
        return {
            "total": len(records),
            "oldest": oldest.filename,
            "newest": newest.filename,
            "oldest_date": oldest.timestamp.strftime(STATISTICS_DATE_FORMAT),
            "newest_date": newest.timestamp.strftime(STATISTICS_DATE_FORMAT),
        }
