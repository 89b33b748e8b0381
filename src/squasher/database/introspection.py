"""
Database schema introspection for squasher.

Provides read-only snapshots of the live catalog (tables, columns, indexes
and foreign keys) behind one interface, with two interchangeable strategies:
SQLAlchemy reflection and native per-dialect catalog queries.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple, TypeVar

from sqlalchemy.engine import Engine

from .defaults import DefaultValue
from ..exceptions import IntrospectionDegradation, UnsupportedCatalogError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class CatalogDialect(str, Enum):
    """Catalog families with native introspection support."""

    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"
    SQLSERVER = "mssql"

    @classmethod
    def from_name(cls, name: str) -> "CatalogDialect":
        """Resolve a SQLAlchemy dialect name, raising UnsupportedCatalogError."""
        aliases = {"mariadb": cls.MYSQL, "postgres": cls.POSTGRESQL, "sqlsrv": cls.SQLSERVER}
        lowered = (name or "").lower()
        if lowered in aliases:
            return aliases[lowered]
        try:
            return cls(lowered)
        except ValueError:
            raise UnsupportedCatalogError(name, [d.value for d in cls]) from None


@dataclass(frozen=True)
class ColumnDescriptor:
    """A column as the catalog declares it."""

    name: str
    type_name: str
    nullable: bool = True
    default: Optional[DefaultValue] = None
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    unsigned: bool = False
    autoincrement: bool = False
    comment: Optional[str] = None
    table: Optional[str] = None
    enum_values: Tuple[str, ...] = ()
    # Name of the database-level enum type (PostgreSQL), if any
    enum_name: Optional[str] = None

    def __str__(self) -> str:
        result = f"{self.name} {self.type_name}"
        if self.length:
            result += f"({self.length})"
        elif self.precision is not None:
            result += f"({self.precision},{self.scale or 0})"
        if not self.nullable:
            result += " NOT NULL"
        if self.default is not None:
            result += f" DEFAULT {self.default.value}"
        return result


@dataclass(frozen=True)
class IndexDescriptor:
    """An index; column order matters for composite indexes."""

    name: str
    columns: Tuple[str, ...]
    unique: bool = False
    primary: bool = False

    @property
    def is_single_column(self) -> bool:
        """Whether the index covers exactly one column."""
        return len(self.columns) == 1


@dataclass(frozen=True)
class ForeignKeyDescriptor:
    """A foreign key constraint."""

    local_columns: Tuple[str, ...]
    foreign_table: str
    foreign_columns: Tuple[str, ...]
    name: Optional[str] = None
    on_update: Optional[str] = None
    on_delete: Optional[str] = None

    def __post_init__(self):
        if len(self.local_columns) != len(self.foreign_columns):
            raise ValueError(
                f"Foreign key {self.name or ''} has {len(self.local_columns)} local "
                f"columns but {len(self.foreign_columns)} foreign columns"
            )


@dataclass(frozen=True)
class TableDescriptor:
    """Snapshot of one table's structure."""

    name: str
    columns: Tuple[ColumnDescriptor, ...] = ()
    indexes: Tuple[IndexDescriptor, ...] = ()
    foreign_keys: Tuple[ForeignKeyDescriptor, ...] = field(default_factory=tuple)

    @property
    def primary_key(self) -> Optional[IndexDescriptor]:
        """The primary key index, if the table has one."""
        for index in self.indexes:
            if index.primary:
                return index
        return None

    def get_column(self, column_name: str) -> Optional[ColumnDescriptor]:
        """Look up a column by name."""
        for column in self.columns:
            if column.name == column_name:
                return column
        return None

    def has_column(self, column_name: str) -> bool:
        """Whether the table has a column of that name."""
        return self.get_column(column_name) is not None


def normalize_action(action: Optional[str]) -> Optional[str]:
    """Lower-case a referential action; the implicit "no action" becomes None."""
    if not action:
        return None
    normalized = action.replace("_", " ").strip().lower()
    if normalized in ("no action", ""):
        return None
    return normalized


class IntrospectionStrategy(ABC):
    """One way of reading the catalog."""

    name = "abstract"

    def __init__(self, engine: Engine, dialect: CatalogDialect):
        self.engine = engine
        self.dialect = dialect

    @abstractmethod
    def list_tables(self) -> List[str]:
        """Names of the base tables in the default schema."""

    @abstractmethod
    def list_columns(self, table: str) -> List[ColumnDescriptor]:
        """Columns in catalog-declared order; empty for an unknown table."""

    @abstractmethod
    def list_indexes(self, table: str) -> List[IndexDescriptor]:
        """Indexes including the primary key; empty for an unknown table."""

    @abstractmethod
    def list_foreign_keys(self, table: str) -> List[ForeignKeyDescriptor]:
        """Foreign keys; empty for an unknown table."""


class SchemaInspector:
    """Reads catalog metadata through the best available strategy.

    The strategy is chosen once, at construction. When the reflection strategy
    later fails on a call, the inspector logs the degradation, switches to the
    native strategy for the rest of the run and answers the call from there.
    """

    def __init__(self, engine: Engine, mode: str = "auto"):
        from .native import NativeStrategy
        from .reflection import ReflectionStrategy

        self.engine = engine
        self.dialect = CatalogDialect.from_name(engine.dialect.name)
        self.native = NativeStrategy(engine, self.dialect)
        self._rich: Optional[ReflectionStrategy] = None

        if mode not in ("auto", "reflection", "native"):
            raise ValueError(f"Unknown introspection mode: {mode}")

        if mode != "native":
            candidate = ReflectionStrategy(engine, self.dialect)
            if mode == "reflection" or candidate.is_available():
                self._rich = candidate
            else:
                logger.info("SQLAlchemy reflection unavailable, using native catalog queries")

        self.strategy: IntrospectionStrategy = self._rich or self.native
        logger.debug(f"Using {self.strategy.name} introspection for {self.dialect.value}")

    def supports_rich_introspection(self) -> bool:
        """Whether reflection is (still) the active strategy."""
        return self.strategy is self._rich and self._rich is not None

    def _call(self, reader: Callable[[IntrospectionStrategy], T]) -> T:
        """Run ``reader`` on the active strategy, degrading to native on failure."""
        if self.strategy is self.native:
            return reader(self.native)
        try:
            return reader(self.strategy)
        except IntrospectionDegradation as e:
            logger.warning(f"{e}; falling back to native catalog queries")
            self.strategy = self.native
            return reader(self.native)

    def list_tables(self) -> List[str]:
        """Base table names, sorted and de-duplicated."""
        return sorted(set(self._call(lambda s: s.list_tables())))

    def list_columns(self, table: str) -> List[ColumnDescriptor]:
        """Columns of ``table`` in catalog-declared order."""
        return self._call(lambda s: s.list_columns(table))

    def list_indexes(self, table: str) -> List[IndexDescriptor]:
        """Indexes of ``table``, including the primary key."""
        return self._call(lambda s: s.list_indexes(table))

    def list_foreign_keys(self, table: str) -> List[ForeignKeyDescriptor]:
        """Foreign keys declared on ``table``."""
        return self._call(lambda s: s.list_foreign_keys(table))

    def describe_table(self, table: str) -> TableDescriptor:
        """Complete snapshot of one table."""
        return TableDescriptor(
            name=table,
            columns=tuple(self.list_columns(table)),
            indexes=tuple(self.list_indexes(table)),
            foreign_keys=tuple(self.list_foreign_keys(table)),
        )
