"""
Retention planning.

Decides which migrations may be retired into the schema dump. A migration is
retired only if it is older than the cutoff AND outside the most recent
``keep_recent`` migrations. Pure functions over already scanned records; no I/O.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterable, List, Tuple, Union

from .records import MigrationRecord


def _cutoff_instant(cutoff: Union[date, datetime]) -> datetime:
    """Midnight at the start of a cutoff date; datetimes pass through."""
    if isinstance(cutoff, datetime):
        return cutoff
    return datetime.combine(cutoff, time.min)


def _sort(records: Iterable[MigrationRecord]) -> List[MigrationRecord]:
    return sorted(records, key=lambda r: (r.timestamp, r.filename))


def retained_tail(records: Iterable[MigrationRecord], keep_recent: int) -> List[MigrationRecord]:
    """The last ``keep_recent`` records by timestamp; a negative count keeps none."""
    ordered = _sort(records)
    keep = max(keep_recent, 0)
    return ordered[max(len(ordered) - keep, 0):] if keep else []


def select_for_retirement(
    records: Iterable[MigrationRecord],
    cutoff: Union[date, datetime],
    keep_recent: int,
) -> List[MigrationRecord]:
    """Records strictly older than the cutoff and not in the retained tail, oldest first."""
    ordered = _sort(records)
    keep = max(keep_recent, 0)
    if keep >= len(ordered):
        return []

    boundary = _cutoff_instant(cutoff)
    candidates = ordered[: len(ordered) - keep]
    return [record for record in candidates if record.timestamp < boundary]


@dataclass(frozen=True)
class SquashPlan:
    """Migrations selected for retirement in one invocation."""

    records: Tuple[MigrationRecord, ...]
    cutoff: date
    keep_recent: int
    retained: Tuple[MigrationRecord, ...] = ()

    @property
    def is_empty(self) -> bool:
        """Whether the plan retires nothing."""
        return not self.records

    @property
    def filenames(self) -> List[str]:
        """File names of the retired migrations, oldest first."""
        return [record.filename for record in self.records]

    def __len__(self) -> int:
        return len(self.records)


class RetentionPlanner:
    """Builds SquashPlans from a set of records."""

    def plan(
        self,
        records: Iterable[MigrationRecord],
        cutoff: date,
        keep_recent: int,
    ) -> SquashPlan:
        """Retire records before ``cutoff`` that lie outside the newest ``keep_recent``."""
        ordered = _sort(records)
        retired = select_for_retirement(ordered, cutoff, keep_recent)
        retired_names = {record.filename for record in retired}
        return SquashPlan(
            records=tuple(retired),
            cutoff=cutoff,
            keep_recent=max(keep_recent, 0),
            retained=tuple(r for r in ordered if r.filename not in retired_names),
        )
