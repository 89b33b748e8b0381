"""
Configuration system for squasher using Pydantic.
"""

import os
from datetime import date, datetime
from pathlib import Path
from typing import Any, FrozenSet, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError, InvalidDateFormatError


DATE_FORMAT = "%Y-%m-%d"
DEFAULT_SCHEMA_FILE = "0000_00_00_000000_schema_dump.py"


def parse_cutoff_date(value: Union[str, date]) -> date:
    """Parse a strict YYYY-MM-DD date, raising InvalidDateFormatError otherwise."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        parsed = datetime.strptime(value, DATE_FORMAT)
    except (TypeError, ValueError):
        raise InvalidDateFormatError(str(value))
    # strptime accepts "2024-1-1"; only the zero-padded form is valid
    if parsed.strftime(DATE_FORMAT) != value:
        raise InvalidDateFormatError(value)
    return parsed.date()


class DatabaseConnection(BaseModel):
    """Database connection configuration."""

    url: Optional[str] = Field(None, description="SQLAlchemy database URL")
    driver: str = Field("postgresql", description="SQLAlchemy dialect+driver")
    host: Optional[str] = Field(None, description="Database host")
    port: Optional[int] = Field(None, description="Database port")
    database: Optional[str] = Field(None, description="Database name or SQLite file")
    user: Optional[str] = Field(None, description="Database user")
    password: Optional[str] = Field(None, description="Database password")
    echo: bool = Field(False, description="Log every SQL statement")

    def to_url(self) -> str:
        """Build the SQLAlchemy URL, preferring an explicit url."""
        if self.url:
            return self.url
        if not self.database:
            raise ConfigurationError("Database connection requires either url or database")
        if self.driver.startswith("sqlite"):
            return f"{self.driver}:///{self.database}"

        credentials = ""
        if self.user:
            credentials = self.user
            if self.password:
                credentials += f":{self.password}"
            credentials += "@"
        location = self.host or "localhost"
        if self.port:
            location += f":{self.port}"
        return f"{self.driver}://{credentials}{location}/{self.database}"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "WARNING", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")


class SquashSettings(BaseModel):
    """Resolved, immutable settings for one squash invocation."""

    model_config = ConfigDict(frozen=True)

    cutoff: date
    keep_recent: int
    migration_dir: Path
    migration_extension: str = ".py"
    schema_file: str = DEFAULT_SCHEMA_FILE
    backup_enabled: bool = True
    backup_dir: Path
    excluded_tables: FrozenSet[str] = frozenset({"migrations"})
    delete_records: bool = False
    ledger_table: str = "migrations"

    @property
    def schema_path(self) -> Path:
        """Where the synthesized schema dump is written."""
        return self.migration_dir / self.schema_file

    @property
    def schema_migration_name(self) -> str:
        """Ledger name of the schema dump (filename without extension)."""
        return Path(self.schema_file).stem


class SquasherConfig(BaseSettings):
    """Main squasher configuration."""

    database: DatabaseConnection = Field(
        default_factory=DatabaseConnection, description="Database connection"
    )

    squash_before: str = Field(
        "2024-01-01", description="Squash migrations older than this date (YYYY-MM-DD)"
    )
    keep_recent: int = Field(
        10, description="Number of most recent migrations never squashed"
    )
    schema_file: str = Field(
        DEFAULT_SCHEMA_FILE, description="File name of the generated schema dump"
    )

    backup_migrations: bool = Field(
        True, description="Copy squashed migrations to a backup directory first"
    )
    backup_path: str = Field(
        "migrations/backup", description="Backup directory, relative to base_path"
    )

    excluded_tables: List[str] = Field(
        default_factory=lambda: ["migrations"],
        description="Tables left out of the schema dump",
    )
    base_path: str = Field("database", description="Root for relative paths")
    migration_path: str = Field(
        "migrations", description="Migration directory, relative to base_path"
    )
    migration_extension: str = Field(".py", description="Migration file extension")

    delete_batch_records: bool = Field(
        False, description="Remove squashed rows from the migration ledger"
    )
    ledger_table: str = Field("migrations", description="Migration ledger table")
    introspection: Literal["auto", "reflection", "native"] = Field(
        "auto", description="Catalog introspection strategy"
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SQUASHER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("keep_recent")
    @classmethod
    def validate_keep_recent(cls, v: int) -> int:
        if v < 0:
            raise ValueError("keep_recent must not be negative")
        return v

    @field_validator("migration_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        return v if v.startswith(".") else f".{v}"

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SquasherConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            # Expand environment variables in the data
            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    def resolve_path(self, relative: Union[str, Path]) -> Path:
        """Resolve a configured path against base_path."""
        path = Path(relative)
        if path.is_absolute():
            return path
        return Path(self.base_path) / path

    @property
    def migration_dir(self) -> Path:
        """Migration directory resolved against the base path."""
        return self.resolve_path(self.migration_path)

    @property
    def backup_dir(self) -> Path:
        """Backup directory resolved against the base path."""
        return self.resolve_path(self.backup_path)

    def all_excluded_tables(self) -> FrozenSet[str]:
        """Configured exclusions plus the ledger table, which is never dumped."""
        return frozenset(self.excluded_tables) | {self.ledger_table}

    def squash_settings(
        self,
        before: Optional[str] = None,
        keep: Optional[int] = None,
        path: Optional[str] = None,
        no_backup: bool = False,
        delete_records: bool = False,
    ) -> SquashSettings:
        """Merge per-invocation overrides into an immutable SquashSettings."""
        cutoff = parse_cutoff_date(before if before is not None else self.squash_before)
        keep_recent = keep if keep is not None else self.keep_recent

        return SquashSettings(
            cutoff=cutoff,
            keep_recent=max(keep_recent, 0),
            migration_dir=Path(path) if path else self.migration_dir,
            migration_extension=self.migration_extension,
            schema_file=self.schema_file,
            backup_enabled=self.backup_migrations and not no_backup,
            backup_dir=self.backup_dir,
            excluded_tables=self.all_excluded_tables(),
            delete_records=delete_records or self.delete_batch_records,
            ledger_table=self.ledger_table,
        )

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_none=True),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )
