"""
Unit tests for the squasher CLI interface.
"""

import pytest
import yaml
from unittest.mock import patch

from click.testing import CliRunner
from sqlalchemy import create_engine

from squasher import __version__
from squasher.cli import handle_errors, main
from squasher.exceptions import BackupError, ConfigurationError


@pytest.fixture
def runner():
    """Click test runner."""
    return CliRunner()


def define_users(schema):
    with schema.create("users") as table:
        table.id()
        table.string("email").unique()
        table.timestamps()


@pytest.fixture
def app_database(tmp_path, build_schema):
    """SQLite database with a users table and a populated ledger."""
    url = f"sqlite:///{tmp_path / 'app.db'}"
    engine = create_engine(url)
    build_schema(engine, define_users)
    with engine.begin() as conn:
        conn.exec_driver_sql(
            "CREATE TABLE migrations (id INTEGER PRIMARY KEY, migration VARCHAR(255) NOT NULL, batch INTEGER NOT NULL)"
        )
        for name in ("2023_01_01_000000_a", "2023_06_01_000000_b", "2024_10_01_000000_c", "2024_10_15_000000_d"):
            conn.exec_driver_sql("INSERT INTO migrations (migration, batch) VALUES (?, 1)", (name,))
    engine.dispose()
    return url


@pytest.fixture
def config_file(tmp_path, migration_dir, app_database):
    """Configuration pointing at the scenario migrations and the app database."""
    path = tmp_path / "squasher.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "database": {"url": app_database},
                "base_path": str(tmp_path / "database"),
                "squash_before": "2024-01-01",
                "keep_recent": 2,
            }
        )
    )
    return str(path)


class TestCLIMain:
    """Test main CLI functionality."""

    def test_cli_help(self, runner):
        """Test that the help lists every command."""
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Consolidate old migrations into one schema dump." in result.output
        for command in ("squash", "status", "dump", "init", "validate-config"):
            assert command in result.output

    def test_cli_version(self, runner):
        """Test the --version option."""
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_cli_debug_mode(self, runner):
        """Test that --debug is accepted."""
        result = runner.invoke(main, ["--debug", "--help"])
        assert result.exit_code == 0


class TestHandleErrors:
    """Test the CLI error decorator."""

    def test_squasher_error_exits_1(self, capsys):
        """Test that squasher errors print and exit with status 1."""
        @handle_errors
        def command():
            raise ConfigurationError("bad config")

        with pytest.raises(SystemExit) as exc_info:
            command()
        assert exc_info.value.code == 1
        assert "bad config" in capsys.readouterr().out

    def test_squash_error_shows_recovery(self, capsys):
        """Test that squash errors print the recovery details."""
        @handle_errors
        def command():
            raise BackupError(
                "Failed to back up migrations",
                processed=["a.py"],
                pending=["b.py"],
                backup_dir="/backups/1",
            )

        with pytest.raises(SystemExit) as exc_info:
            command()
        out = capsys.readouterr().out
        assert exc_info.value.code == 1
        assert "Failed step: backup" in out
        assert "Processed: a.py" in out
        assert "Not processed: b.py" in out
        assert "/backups/1" in out

    def test_keyboard_interrupt_exits_0(self):
        """Test that an interrupt exits cleanly."""
        @handle_errors
        def command():
            raise KeyboardInterrupt()

        with pytest.raises(SystemExit) as exc_info:
            command()
        assert exc_info.value.code == 0

    def test_unexpected_error_with_debug(self):
        """Test that unexpected errors print a traceback in debug mode."""
        @handle_errors
        def command():
            raise RuntimeError("boom")

        with patch("sys.argv", ["squasher", "--debug"]), \
             patch("traceback.print_exc") as mock_traceback:
            with pytest.raises(SystemExit) as exc_info:
                command()
        assert exc_info.value.code == 1
        mock_traceback.assert_called_once()


class TestSquashCommand:
    """Test the squash command."""

    def test_invalid_date(self, runner, migration_dir):
        """Test that an invalid --before date fails without touching files."""
        result = runner.invoke(main, ["squash", "--before", "2024-13-01", "--path", str(migration_dir)])
        assert result.exit_code == 1
        assert "Invalid date format" in result.output
        assert len(list(migration_dir.iterdir())) == 4

    def test_dry_run(self, runner, config_file, migration_dir):
        """Test that a dry run lists the plan and changes nothing."""
        result = runner.invoke(main, ["squash", "-c", config_file, "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "2023_01_01_000000_a.py" in result.output
        assert "2023_06_01_000000_b.py" in result.output
        assert "Dry run:" in result.output
        assert len(list(migration_dir.iterdir())) == 4

    def test_nothing_to_squash(self, runner, config_file, migration_dir):
        """Test a cutoff older than every migration."""
        result = runner.invoke(main, ["squash", "-c", config_file, "--before", "2020-01-01"])
        assert result.exit_code == 0
        assert "No migrations found to squash based on your criteria." in result.output

    def test_empty_directory(self, runner, config_file, tmp_path):
        """Test squashing a directory without migrations."""
        empty = tmp_path / "empty"
        empty.mkdir()
        result = runner.invoke(main, ["squash", "-c", config_file, "--path", str(empty)])
        assert result.exit_code == 0
        assert "No migrations found in" in result.output

    def test_cancelled(self, runner, config_file, migration_dir):
        """Test declining the confirmation prompt."""
        result = runner.invoke(main, ["squash", "-c", config_file], input="n\n")
        assert result.exit_code == 0
        assert "Operation cancelled." in result.output
        assert len(list(migration_dir.iterdir())) == 4

    def test_squash(self, runner, config_file, migration_dir, app_database):
        """Test a full squash with backup and ledger update."""
        result = runner.invoke(main, ["squash", "-c", config_file, "--yes", "--delete-records"])

        assert result.exit_code == 0, result.output
        assert "Squashed 2 migrations" in result.output

        files = sorted(p.name for p in migration_dir.iterdir() if p.is_file())
        assert files == [
            "0000_00_00_000000_schema_dump.py",
            "2024_10_01_000000_c.py",
            "2024_10_15_000000_d.py",
        ]
        source = (migration_dir / "0000_00_00_000000_schema_dump.py").read_text()
        assert 'self.schema.create("users")' in source
        assert '"migrations"' not in source

        (backup,) = (migration_dir / "backup").iterdir()
        assert sorted(p.name for p in backup.iterdir()) == [
            "2023_01_01_000000_a.py",
            "2023_06_01_000000_b.py",
        ]

        engine = create_engine(app_database)
        with engine.connect() as conn:
            rows = [r[0] for r in conn.exec_driver_sql("SELECT migration FROM migrations")]
        engine.dispose()
        assert rows == [
            "2024_10_01_000000_c",
            "2024_10_15_000000_d",
            "0000_00_00_000000_schema_dump",
        ]

    def test_squash_without_backup(self, runner, config_file, migration_dir):
        """Test a squash with --no-backup and a larger --keep."""
        result = runner.invoke(main, ["squash", "-c", config_file, "-y", "--no-backup", "--keep", "3"])

        assert result.exit_code == 0, result.output
        assert not (migration_dir / "backup").exists()
        assert not (migration_dir / "2023_01_01_000000_a.py").exists()
        assert (migration_dir / "2023_06_01_000000_b.py").exists()

    def test_unreachable_database(self, runner, config_file, migration_dir):
        """Test that a database that cannot be opened is reported."""
        result = runner.invoke(
            main,
            ["squash", "-c", config_file, "-y", "--database-url", "nosuchdb://localhost/app"],
        )
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestStatusCommand:
    """Test the status command."""

    def test_status(self, runner, migration_dir):
        """Test the status table for the scenario migrations."""
        result = runner.invoke(
            main, ["status", "--path", str(migration_dir), "--before", "2024-01-01", "--keep", "2"]
        )
        assert result.exit_code == 0, result.output
        assert "Migration Status" in result.output
        assert "2 to squash, 2 kept" in result.output

    def test_status_empty(self, runner, tmp_path):
        """Test status for a missing migration directory."""
        result = runner.invoke(main, ["status", "--path", str(tmp_path / "missing")])
        assert result.exit_code == 0
        assert "to squash" not in result.output


class TestDumpCommand:
    """Test the dump command."""

    def test_dump_to_stdout(self, runner, app_database):
        """Test printing the schema dump."""
        result = runner.invoke(main, ["dump", "--database-url", app_database])
        assert result.exit_code == 0, result.output
        assert "class SchemaDump(Migration):" in result.output
        assert "table.timestamps()" in result.output

    def test_dump_to_file(self, runner, app_database, tmp_path):
        """Test writing the schema dump to a file."""
        output = tmp_path / "out" / "schema.py"
        result = runner.invoke(main, ["dump", "--database-url", app_database, "-o", str(output)])

        assert result.exit_code == 0, result.output
        assert "Schema dump for 1 tables" in result.output
        assert 'create("users")' in output.read_text()

    def test_dump_empty_database(self, runner, tmp_path):
        """Test dumping a database without tables."""
        result = runner.invoke(main, ["dump", "--database-url", f"sqlite:///{tmp_path / 'empty.db'}"])
        assert result.exit_code == 0
        assert "No tables found" in result.output


class TestInitCommand:
    """Test init command functionality."""

    def test_init_default_output(self, runner):
        """Test creating the default configuration file."""
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["init"])
            assert result.exit_code == 0
            assert "Configuration file created: squasher.yaml" in result.output
            with open("squasher.yaml") as f:
                content = f.read()
            assert "postgresql+psycopg2" in content
            assert "${DB_HOST}" in content

    @patch("squasher.cli.click.confirm")
    def test_init_file_exists_no_overwrite(self, mock_confirm, runner):
        """Test that an existing file is kept when overwrite is declined."""
        mock_confirm.return_value = False

        with runner.isolated_filesystem():
            with open("squasher.yaml", "w") as f:
                f.write("existing content")

            result = runner.invoke(main, ["init"])
            assert result.exit_code == 0
            with open("squasher.yaml") as f:
                assert f.read() == "existing content"


class TestValidateConfigCommand:
    """Test validate-config command."""

    def test_valid_config(self, runner, config_file):
        """Test validating a correct configuration."""
        result = runner.invoke(main, ["validate-config", "--config", config_file])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output

    def test_generated_config_is_valid(self, runner):
        """Test that the file written by init validates."""
        with runner.isolated_filesystem():
            runner.invoke(main, ["init"])
            result = runner.invoke(main, ["validate-config", "-c", "squasher.yaml"])
            assert result.exit_code == 0, result.output

    def test_check_connection(self, runner, config_file):
        """Test validating with a connection check against SQLite."""
        result = runner.invoke(main, ["validate-config", "-c", config_file, "--check-connection"])
        assert result.exit_code == 0, result.output
        assert "Connected to sqlite database" in result.output

    def test_check_connection_failure(self, runner, tmp_path):
        """Test that a failed connection check exits with status 1."""
        path = tmp_path / "squasher.yaml"
        path.write_text(yaml.safe_dump({"database": {"url": "nosuchdb://localhost/app"}}))
        result = runner.invoke(main, ["validate-config", "-c", str(path), "--check-connection"])
        assert result.exit_code == 1
        assert "Database connection failed" in result.output

    def test_invalid_config(self, runner, tmp_path):
        """Test that invalid values are reported."""
        path = tmp_path / "bad.yaml"
        path.write_text("keep_recent: -1\n")
        result = runner.invoke(main, ["validate-config", "-c", str(path)])
        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_missing_config_file(self, runner):
        """Test validating a file that does not exist."""
        result = runner.invoke(main, ["validate-config", "-c", "does-not-exist.yaml"])
        assert result.exit_code != 0
