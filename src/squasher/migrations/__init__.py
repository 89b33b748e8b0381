"""
Migration management package for squasher.

This package provides:
- Migration file discovery and statistics
- Retention planning (which migrations to retire)
- Migration ledger bookkeeping
- Squash orchestration
"""

from .ledger import MigrationLedger
from .planner import RetentionPlanner, SquashPlan, select_for_retirement
from .records import MigrationRecord, MigrationRepository
from .squash import SquashOrchestrator, SquashResult

__all__ = [
    "MigrationLedger",
    "RetentionPlanner",
    "SquashPlan",
    "select_for_retirement",
    "MigrationRecord",
    "MigrationRepository",
    "SquashOrchestrator",
    "SquashResult",
]
