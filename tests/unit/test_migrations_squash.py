"""
Tests for squasher.migrations.squash module.

The orchestrator runs against real files in a temporary directory; the
schema dumper and the ledger are mocked.
"""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from squasher.exceptions import (
    ArtifactWriteError,
    BackupError,
    DatabaseError,
    DeletionError,
    LedgerError,
    SynthesisError,
)
from squasher.migrations.planner import RetentionPlanner
from squasher.migrations.records import MigrationRepository
from squasher.migrations.squash import SquashOrchestrator
from squasher.schema.synthesizer import SchemaDumper, SynthesizedArtifact


NOW = datetime(2024, 11, 1, 12, 0, 0)


@pytest.fixture
def dumper():
    mock = MagicMock()
    mock.generate.return_value = SynthesizedArtifact(source="# schema dump\n", tables=("users",))
    mock.save.side_effect = SchemaDumper.save
    return mock


@pytest.fixture
def plan(squash_settings):
    records = MigrationRepository(squash_settings.migration_dir).scan()
    return RetentionPlanner().plan(records, squash_settings.cutoff, squash_settings.keep_recent)


def orchestrator(settings, dumper, ledger=None):
    return SquashOrchestrator(settings, dumper, ledger, clock=lambda: NOW)


def remaining(directory):
    return sorted(p.name for p in directory.iterdir())


class TestSquashRun:
    """Test a complete squash."""

    def test_run(self, squash_settings, dumper, plan):
        """Test a complete run with backup and ledger update."""
        result = orchestrator(squash_settings, dumper).run(plan)

        assert result.squashed == ["2023_01_01_000000_a.py", "2023_06_01_000000_b.py"]
        assert result.count == 2
        assert result.tables == ("users",)
        assert result.ledger_rows_deleted is None
        assert result.backup_dir == squash_settings.backup_dir / "2024-11-01_120000"
        assert remaining(result.backup_dir) == result.squashed
        assert result.schema_path == squash_settings.schema_path
        assert result.schema_path.read_text() == "# schema dump\n"
        assert remaining(squash_settings.migration_dir) == [
            "0000_00_00_000000_schema_dump.py",
            "2024_10_01_000000_c.py",
            "2024_10_15_000000_d.py",
        ]

    def test_steps_run_in_order(self, squash_settings, dumper, plan):
        """Test that the steps run in their fixed order."""
        settings = squash_settings.model_copy(update={"delete_records": True})
        backup_dir = settings.backup_dir / "2024-11-01_120000"

        def generate():
            assert remaining(backup_dir) == plan.filenames
            return SynthesizedArtifact(source="# schema dump\n", tables=())

        def replace(retired, schema_dump):
            assert settings.schema_path.exists()
            assert all(record.path.exists() for record in plan.records)
            return 2

        dumper.generate.side_effect = generate
        ledger = MagicMock()
        ledger.replace.side_effect = replace

        result = orchestrator(settings, dumper, ledger).run(plan)

        ledger.replace.assert_called_once_with(
            ["2023_01_01_000000_a", "2023_06_01_000000_b"], "0000_00_00_000000_schema_dump"
        )
        assert result.ledger_rows_deleted == 2
        assert not any(record.path.exists() for record in plan.records)

    def test_backup_dir_is_never_reused(self, squash_settings, dumper, plan):
        """Test that a second run in the same second gets a new backup directory."""
        taken = squash_settings.backup_dir / "2024-11-01_120000"
        taken.mkdir(parents=True)
        (taken / "keep.py").write_text("# earlier backup\n")

        result = orchestrator(squash_settings, dumper).run(plan)

        assert result.backup_dir.name == "2024-11-01_120000_1"
        assert remaining(taken) == ["keep.py"]

    def test_without_backup(self, squash_settings, dumper, plan):
        """Test a run with the backup step disabled."""
        settings = squash_settings.model_copy(update={"backup_enabled": False})
        result = orchestrator(settings, dumper).run(plan)

        assert result.backup_dir is None
        assert not settings.backup_dir.exists()
        assert result.count == 2

    def test_empty_plan(self, squash_settings, dumper):
        """Test that an empty plan touches nothing."""
        records = MigrationRepository(squash_settings.migration_dir).scan()
        empty = RetentionPlanner().plan(records, squash_settings.cutoff, 10)

        result = orchestrator(squash_settings, dumper).run(empty)

        assert result.count == 0
        dumper.generate.assert_not_called()
        assert len(remaining(squash_settings.migration_dir)) == 4


class TestSquashFailures:
    """A failed step stops the run and leaves completed steps in place."""

    def test_backup_failure(self, squash_settings, dumper, plan):
        """Test that a failed backup stops the run before the dump."""
        plan.records[1].path.unlink()

        with pytest.raises(BackupError) as exc_info:
            orchestrator(squash_settings, dumper).run(plan)

        error = exc_info.value
        assert error.step == "backup"
        assert error.processed == ["2023_01_01_000000_a.py"]
        assert error.pending == ["2023_06_01_000000_b.py"]
        assert error.backup_dir.endswith("2024-11-01_120000")
        assert plan.records[0].path.exists()
        dumper.generate.assert_not_called()

    def test_schema_dump_failure(self, squash_settings, dumper, plan):
        """Test that a failed dump leaves every migration file in place."""
        dumper.generate.side_effect = SynthesisError("Unknown token")

        with pytest.raises(ArtifactWriteError) as exc_info:
            orchestrator(squash_settings, dumper).run(plan)

        error = exc_info.value
        assert error.pending == plan.filenames
        assert isinstance(error.cause, SynthesisError)
        assert not squash_settings.schema_path.exists()
        assert all(record.path.exists() for record in plan.records)
        # The backup is kept for recovery
        assert len(remaining(squash_settings.backup_dir / "2024-11-01_120000")) == 2

    def test_ledger_not_configured(self, squash_settings, dumper, plan):
        """Test requesting a ledger update without a ledger."""
        settings = squash_settings.model_copy(update={"delete_records": True})

        with pytest.raises(LedgerError) as exc_info:
            orchestrator(settings, dumper).run(plan)

        assert exc_info.value.step == "ledger"
        assert settings.schema_path.exists()
        assert all(record.path.exists() for record in plan.records)

    def test_ledger_failure(self, squash_settings, dumper, plan):
        """Test that a failed ledger update keeps the files and names the backup."""
        settings = squash_settings.model_copy(update={"delete_records": True})
        ledger = MagicMock()
        ledger.replace.side_effect = DatabaseError("Failed to update ledger table migrations")

        with pytest.raises(LedgerError) as exc_info:
            orchestrator(settings, dumper, ledger).run(plan)

        assert isinstance(exc_info.value.cause, DatabaseError)
        assert exc_info.value.pending == plan.filenames
        assert all(record.path.exists() for record in plan.records)

    def test_missing_ledger_table(self, squash_settings, dumper, plan):
        """Test that a missing ledger table stops the run before deletion."""
        settings = squash_settings.model_copy(update={"delete_records": True})
        ledger = MagicMock()
        ledger.table_name = "migrations"
        ledger.exists.return_value = False

        with pytest.raises(LedgerError) as exc_info:
            orchestrator(settings, dumper, ledger).run(plan)

        assert "Ledger table migrations does not exist" in str(exc_info.value.cause)
        ledger.replace.assert_not_called()
        assert all(record.path.exists() for record in plan.records)

    def test_deletion_failure(self, squash_settings, dumper, plan):
        """Test that a failed deletion reports deleted and pending files."""
        settings = squash_settings.model_copy(update={"backup_enabled": False})
        plan.records[1].path.unlink()

        with pytest.raises(DeletionError) as exc_info:
            orchestrator(settings, dumper).run(plan)

        error = exc_info.value
        assert error.step == "delete"
        assert error.processed == ["2023_01_01_000000_a.py"]
        assert error.pending == ["2023_06_01_000000_b.py"]
        assert error.backup_dir is None
        assert settings.schema_path.exists()
