"""
Pytest configuration and shared fixtures for squasher tests.

This module provides shared fixtures and utilities for testing all squasher components.
"""

from datetime import date
from pathlib import Path
from typing import Callable, Iterable, List

import pytest
from sqlalchemy import create_engine

from squasher.config import SquashSettings
from squasher.database.introspection import (
    ColumnDescriptor,
    ForeignKeyDescriptor,
    IndexDescriptor,
    TableDescriptor,
)
from squasher.schema import SchemaBuilder


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def sqlite_url(tmp_path) -> str:
    """URL of a file-backed SQLite database."""
    return f"sqlite:///{tmp_path / 'schema.db'}"


@pytest.fixture
def sqlite_engine(sqlite_url):
    """SQLAlchemy engine for an empty SQLite database."""
    engine = create_engine(sqlite_url)
    yield engine
    engine.dispose()


@pytest.fixture
def build_schema() -> Callable:
    """Run a callable receiving a SchemaBuilder inside one transaction."""
    def _build(engine, definition: Callable[[SchemaBuilder], None]) -> None:
        with engine.begin() as conn:
            definition(SchemaBuilder(conn))
    return _build


# ============================================================================
# Migration File Fixtures
# ============================================================================

def write_migrations(directory: Path, names: Iterable[str]) -> List[Path]:
    """Create empty migration files named ``names`` in ``directory``."""
    directory.mkdir(parents=True, exist_ok=True)
    paths = []
    for name in names:
        path = directory / name
        path.write_text(f"# {name}\n", encoding="utf-8")
        paths.append(path)
    return paths


SCENARIO_MIGRATIONS = [
    "2023_01_01_000000_a.py",
    "2023_06_01_000000_b.py",
    "2024_10_01_000000_c.py",
    "2024_10_15_000000_d.py",
]


@pytest.fixture
def migration_dir(tmp_path) -> Path:
    """Migration directory holding the four scenario migrations."""
    directory = tmp_path / "database" / "migrations"
    write_migrations(directory, SCENARIO_MIGRATIONS)
    return directory


@pytest.fixture
def squash_settings(tmp_path, migration_dir) -> SquashSettings:
    """Settings retiring migrations before 2024-01-01 while keeping two."""
    return SquashSettings(
        cutoff=date(2024, 1, 1),
        keep_recent=2,
        migration_dir=migration_dir,
        backup_dir=tmp_path / "backup",
    )


# ============================================================================
# Catalog Descriptor Helpers
# ============================================================================

def column(name: str, type_name: str = "varchar", **kwargs) -> ColumnDescriptor:
    """Shorthand for a NOT NULL column descriptor."""
    kwargs.setdefault("nullable", False)
    return ColumnDescriptor(name=name, type_name=type_name, **kwargs)


def identity(name: str = "id", type_name: str = "bigint") -> ColumnDescriptor:
    return ColumnDescriptor(name=name, type_name=type_name, nullable=False, autoincrement=True)


def primary(*columns: str) -> IndexDescriptor:
    return IndexDescriptor(name="primary", columns=tuple(columns), unique=True, primary=True)


def table(name: str, columns, indexes=(), foreign_keys=()) -> TableDescriptor:
    return TableDescriptor(
        name=name,
        columns=tuple(columns),
        indexes=tuple(indexes),
        foreign_keys=tuple(foreign_keys),
    )


def foreign_key(local: str, foreign_table: str, foreign: str = "id", **kwargs) -> ForeignKeyDescriptor:
    return ForeignKeyDescriptor(
        local_columns=(local,),
        foreign_table=foreign_table,
        foreign_columns=(foreign,),
        **kwargs,
    )
