"""
Migration runtime.

Migrations, including the generated schema dump, describe tables through a
``Blueprint`` and run against a ``SchemaBuilder``, which turns blueprints into
DDL with Alembic operations over a SQLAlchemy connection.

Columns are NOT NULL unless marked ``nullable()``.
"""

import importlib.util
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy.dialects import mysql, postgresql
from sqlalchemy.engine import Connection
from sqlalchemy.types import UserDefinedType

from .types import DEFAULT_STRING_LENGTH, DEFAULT_PRECISION, DEFAULT_SCALE, REMEMBER_TOKEN_LENGTH
from ..exceptions import SchemaError


logger = logging.getLogger(__name__)

Columns = Union[str, Sequence[str]]

_MYSQL = ("mysql", "mariadb")

_INTEGER_TYPES = {
    "tiny_integer": (sa.SmallInteger, mysql.TINYINT),
    "small_integer": (sa.SmallInteger, mysql.SMALLINT),
    "medium_integer": (sa.Integer, mysql.MEDIUMINT),
    "integer": (sa.Integer, mysql.INTEGER),
    "big_integer": (sa.BigInteger, mysql.BIGINT),
}


@dataclass(frozen=True)
class Raw:
    """A default value that is SQL, not a literal."""

    sql: str


def raw(sql: str) -> Raw:
    """Mark a default as a database expression, e.g. ``raw("CURRENT_TIMESTAMP")``."""
    return Raw(sql)


class Geometry(UserDefinedType):
    """Spatial column types, passed through by name."""

    cache_ok = True

    def __init__(self, kind: str = "geometry"):
        self.kind = kind

    def get_col_spec(self, **kw):
        return self.kind.replace("_", "").upper()


def default_index_name(table: str, columns: Sequence[str], suffix: str) -> str:
    """Name the migration runtime gives an index when none is passed."""
    name = "_".join([table, *columns, suffix]).lower()
    return name.replace("-", "_").replace(".", "_")


def default_enum_name(table: str, column: str) -> str:
    """Name of the database enum type created for ``table.column``."""
    return f"{table}_{column}"


def _as_list(columns: Columns) -> List[str]:
    return [columns] if isinstance(columns, str) else list(columns)


def server_default(value: Any):
    """Translate a Python default into a SQLAlchemy server default."""
    if isinstance(value, Raw):
        return sa.text(value.sql)
    if value is None:
        return sa.text("NULL")
    if isinstance(value, bool):
        return sa.true() if value else sa.false()
    if isinstance(value, (int, float)):
        return sa.text(repr(value))
    return str(value)


_UNSET = object()


class ColumnDefinition:
    """Fluent column description; modifiers return the definition itself."""

    def __init__(self, blueprint: "Blueprint", kind: str, name: str, **params):
        self.blueprint = blueprint
        self.kind = kind
        self.name = name
        self.params = params
        self.is_nullable = False
        self.is_unsigned = False
        self.is_primary = False
        self.is_autoincrement = False
        self.default_value: Any = _UNSET
        self.comment_text: Optional[str] = None

    def nullable(self, value: bool = True) -> "ColumnDefinition":
        """Allow NULL values in the column."""
        self.is_nullable = value
        return self

    def unsigned(self) -> "ColumnDefinition":
        """Mark an integer or numeric column unsigned (MySQL only)."""
        self.is_unsigned = True
        return self

    def primary(self) -> "ColumnDefinition":
        """Make this column the table's primary key."""
        self.is_primary = True
        return self

    def auto_increment(self) -> "ColumnDefinition":
        """Mark the column as auto-incrementing."""
        self.is_autoincrement = True
        return self

    def default(self, value: Any) -> "ColumnDefinition":
        """Set the server default; wrap SQL expressions in ``raw()``."""
        self.default_value = value
        return self

    def comment(self, text: str) -> "ColumnDefinition":
        self.comment_text = text
        return self

    def unique(self, name: Optional[str] = None) -> "ColumnDefinition":
        """Add a single-column unique index on this column."""
        self.blueprint.unique(self.name, name)
        return self

    def index(self, name: Optional[str] = None) -> "ColumnDefinition":
        """Add a single-column index on this column."""
        self.blueprint.index(self.name, name)
        return self

    def enum_type_name(self) -> str:
        """Name of the database enum type; defaults to ``<table>_<column>``."""
        return self.params.get("type_name") or default_enum_name(self.blueprint.table, self.name)

    def native_enum(self) -> Optional[postgresql.ENUM]:
        """The PostgreSQL enum type of an enum column, created separately from the table."""
        values = self.params.get("values") or ()
        if self.kind != "enum" or not values:
            return None
        return postgresql.ENUM(*values, name=self.enum_type_name(), create_type=False)

    def column_type(self):
        """SQLAlchemy type for this column, with MySQL and PostgreSQL variants."""
        kind = self.kind
        params = self.params
        unsigned = self.is_unsigned

        if kind in _INTEGER_TYPES:
            generic, native = _INTEGER_TYPES[kind]
            type_ = generic().with_variant(native(unsigned=unsigned), *_MYSQL)
            if kind == "big_integer" and self.is_primary and self.is_autoincrement:
                # Only INTEGER PRIMARY KEY aliases the rowid on SQLite
                type_ = type_.with_variant(sa.Integer(), "sqlite")
            return type_
        if kind == "string":
            return sa.String(params.get("length", DEFAULT_STRING_LENGTH))
        if kind == "char":
            return sa.CHAR(params.get("length", DEFAULT_STRING_LENGTH))
        if kind == "text":
            return sa.Text()
        if kind == "medium_text":
            return sa.Text().with_variant(mysql.MEDIUMTEXT(), *_MYSQL)
        if kind == "long_text":
            return sa.Text().with_variant(mysql.LONGTEXT(), *_MYSQL)
        if kind in ("date_time", "date_time_tz"):
            return sa.DateTime(timezone=kind.endswith("_tz"))
        if kind in ("timestamp", "timestamp_tz"):
            return sa.TIMESTAMP(timezone=kind.endswith("_tz"))
        if kind == "date":
            return sa.Date()
        if kind in ("time", "time_tz"):
            return sa.Time(timezone=kind.endswith("_tz"))
        if kind == "year":
            return sa.SmallInteger().with_variant(mysql.YEAR(), *_MYSQL)
        if kind == "boolean":
            return sa.Boolean()
        if kind == "decimal":
            precision, scale = params["precision"], params["scale"]
            return sa.Numeric(precision, scale).with_variant(
                mysql.DECIMAL(precision, scale, unsigned=unsigned), *_MYSQL
            )
        if kind == "float":
            # Single precision; only MySQL accepts a (precision, scale) pair
            return sa.REAL().with_variant(
                mysql.FLOAT(params.get("precision"), params.get("scale"), unsigned=unsigned), *_MYSQL
            )
        if kind == "double":
            return sa.Double().with_variant(
                mysql.DOUBLE(params.get("precision"), params.get("scale"), unsigned=unsigned), *_MYSQL
            )
        if kind == "json":
            return sa.JSON()
        if kind == "jsonb":
            return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
        if kind == "binary":
            return sa.LargeBinary()
        if kind == "medium_binary":
            return sa.LargeBinary().with_variant(mysql.MEDIUMBLOB(), *_MYSQL)
        if kind == "long_binary":
            return sa.LargeBinary().with_variant(mysql.LONGBLOB(), *_MYSQL)
        if kind == "uuid":
            return sa.Uuid()
        if kind == "enum":
            values = params.get("values") or ()
            if not values:
                # Values could not be read from the catalog
                return sa.String(DEFAULT_STRING_LENGTH)
            return sa.Enum(*values, name=self.enum_type_name()).with_variant(
                self.native_enum(), "postgresql"
            )
        if kind == "set":
            values = params.get("values") or ()
            type_ = sa.String(DEFAULT_STRING_LENGTH)
            return type_.with_variant(mysql.SET(*values), *_MYSQL) if values else type_
        if kind in Blueprint.GEOMETRY_TYPES:
            return Geometry(kind)
        raise SchemaError(f"Unknown column type {kind} for {self.blueprint.table}.{self.name}")

    def to_column(self) -> sa.Column:
        """Build the ``sa.Column`` for a CREATE or ADD COLUMN."""
        kwargs: Dict[str, Any] = {
            "nullable": self.is_nullable and not self.is_primary,
            "primary_key": self.is_primary,
            "comment": self.comment_text,
        }
        if self.is_autoincrement:
            kwargs["autoincrement"] = True
        elif self.is_primary:
            kwargs["autoincrement"] = False
        if self.default_value is not _UNSET:
            kwargs["server_default"] = server_default(self.default_value)
        return sa.Column(self.name, self.column_type(), **kwargs)


@dataclass
class IndexDefinition:
    columns: Tuple[str, ...]
    name: str
    unique: bool = False


class ForeignKeyDefinition:
    """``foreign("user_id").references("id").on("users").on_delete("cascade")``."""

    def __init__(self, columns: Sequence[str], name: str):
        self.columns = tuple(columns)
        self.name = name
        self.referenced_columns: Tuple[str, ...] = ("id",)
        self.referenced_table: Optional[str] = None
        self.delete_action: Optional[str] = None
        self.update_action: Optional[str] = None

    def references(self, columns: Columns) -> "ForeignKeyDefinition":
        """Referenced columns; ``id`` when not called."""
        self.referenced_columns = tuple(_as_list(columns))
        return self

    def on(self, table: str) -> "ForeignKeyDefinition":
        """Referenced table."""
        self.referenced_table = table
        return self

    def on_delete(self, action: str) -> "ForeignKeyDefinition":
        """Referential action on delete, e.g. ``"cascade"``."""
        self.delete_action = action.upper()
        return self

    def on_update(self, action: str) -> "ForeignKeyDefinition":
        """Referential action on update."""
        self.update_action = action.upper()
        return self

    def cascade_on_delete(self) -> "ForeignKeyDefinition":
        return self.on_delete("cascade")

    def null_on_delete(self) -> "ForeignKeyDefinition":
        return self.on_delete("set null")

    def validate(self, table: str) -> None:
        """Raise SchemaError when the key is incomplete."""
        if not self.referenced_table:
            raise SchemaError(f"Foreign key {self.name} on {table} does not name a table")
        if len(self.referenced_columns) != len(self.columns):
            raise SchemaError(
                f"Foreign key {self.name} on {table} references "
                f"{len(self.referenced_columns)} columns for {len(self.columns)}"
            )


class Blueprint:
    """Collects the columns, keys and indexes of one table."""

    GEOMETRY_TYPES = (
        "geometry",
        "point",
        "line_string",
        "polygon",
        "geometry_collection",
        "multi_point",
        "multi_line_string",
        "multi_polygon",
    )

    def __init__(self, table: str):
        self.table = table
        self.columns: List[ColumnDefinition] = []
        self.indexes: List[IndexDefinition] = []
        self.foreign_keys: List[ForeignKeyDefinition] = []
        self.primary_key: Optional[Tuple[str, ...]] = None
        self.dropped_columns: List[str] = []
        self.dropped_indexes: List[str] = []
        self.dropped_foreign_keys: List[str] = []

    def __getattr__(self, name: str):
        """Spatial column methods, one per entry of ``GEOMETRY_TYPES``."""
        # point(), polygon()... share one implementation
        if name in Blueprint.GEOMETRY_TYPES:
            return lambda column: self.add_column(name, column)
        raise AttributeError(name)

    def add_column(self, kind: str, name: str, **params) -> ColumnDefinition:
        """Append a column of Blueprint type ``kind``."""
        column = ColumnDefinition(self, kind, name, **params)
        self.columns.append(column)
        return column

    # Integers

    def integer(self, name: str) -> ColumnDefinition:
        """INTEGER column."""
        return self.add_column("integer", name)

    def tiny_integer(self, name: str) -> ColumnDefinition:
        return self.add_column("tiny_integer", name)

    def small_integer(self, name: str) -> ColumnDefinition:
        return self.add_column("small_integer", name)

    def medium_integer(self, name: str) -> ColumnDefinition:
        return self.add_column("medium_integer", name)

    def big_integer(self, name: str) -> ColumnDefinition:
        """BIGINT column."""
        return self.add_column("big_integer", name)

    def unsigned_big_integer(self, name: str) -> ColumnDefinition:
        """Unsigned BIGINT, the usual foreign key column."""
        return self.big_integer(name).unsigned()

    def increments(self, name: str) -> ColumnDefinition:
        """Auto-incrementing unsigned INTEGER primary key."""
        return self.integer(name).unsigned().primary().auto_increment()

    def tiny_increments(self, name: str) -> ColumnDefinition:
        return self.tiny_integer(name).unsigned().primary().auto_increment()

    def small_increments(self, name: str) -> ColumnDefinition:
        return self.small_integer(name).unsigned().primary().auto_increment()

    def medium_increments(self, name: str) -> ColumnDefinition:
        return self.medium_integer(name).unsigned().primary().auto_increment()

    def big_increments(self, name: str) -> ColumnDefinition:
        """Auto-incrementing unsigned BIGINT primary key."""
        return self.big_integer(name).unsigned().primary().auto_increment()

    def id(self, name: str = "id") -> ColumnDefinition:
        """The conventional ``id`` primary key."""
        return self.big_increments(name)

    # Strings

    def string(self, name: str, length: int = DEFAULT_STRING_LENGTH) -> ColumnDefinition:
        """VARCHAR column, 255 characters unless sized."""
        return self.add_column("string", name, length=length)

    def char(self, name: str, length: int = DEFAULT_STRING_LENGTH) -> ColumnDefinition:
        """Fixed-width CHAR column."""
        return self.add_column("char", name, length=length)

    def text(self, name: str) -> ColumnDefinition:
        """TEXT column."""
        return self.add_column("text", name)

    def medium_text(self, name: str) -> ColumnDefinition:
        return self.add_column("medium_text", name)

    def long_text(self, name: str) -> ColumnDefinition:
        return self.add_column("long_text", name)

    def enum(self, name: str, values: Sequence[str], type_name: Optional[str] = None) -> ColumnDefinition:
        """Enum column. On PostgreSQL the type is named ``type_name``, or
        ``<table>_<column>`` when not given.
        """
        return self.add_column("enum", name, values=tuple(values), type_name=type_name)

    def set(self, name: str, values: Sequence[str]) -> ColumnDefinition:
        """MySQL SET column; a plain string column elsewhere."""
        return self.add_column("set", name, values=tuple(values))

    def uuid(self, name: str = "uuid") -> ColumnDefinition:
        """Native UUID where supported, CHAR(32) otherwise."""
        return self.add_column("uuid", name)

    # Dates and times

    def date_time(self, name: str) -> ColumnDefinition:
        """DATETIME column without time zone."""
        return self.add_column("date_time", name)

    def date_time_tz(self, name: str) -> ColumnDefinition:
        return self.add_column("date_time_tz", name)

    def timestamp(self, name: str) -> ColumnDefinition:
        """TIMESTAMP column without time zone."""
        return self.add_column("timestamp", name)

    def timestamp_tz(self, name: str) -> ColumnDefinition:
        """TIMESTAMP column with time zone."""
        return self.add_column("timestamp_tz", name)

    def date(self, name: str) -> ColumnDefinition:
        return self.add_column("date", name)

    def time(self, name: str) -> ColumnDefinition:
        return self.add_column("time", name)

    def time_tz(self, name: str) -> ColumnDefinition:
        return self.add_column("time_tz", name)

    def year(self, name: str) -> ColumnDefinition:
        """MySQL YEAR column; SMALLINT elsewhere."""
        return self.add_column("year", name)

    # Numbers, flags and documents

    def boolean(self, name: str) -> ColumnDefinition:
        """BOOLEAN column; TINYINT(1) on MySQL."""
        return self.add_column("boolean", name)

    def decimal(self, name: str, precision: int = DEFAULT_PRECISION, scale: int = DEFAULT_SCALE) -> ColumnDefinition:
        """Exact numeric column, ``DECIMAL(8, 2)`` unless sized."""
        return self.add_column("decimal", name, precision=precision, scale=scale)

    def float(self, name: str, precision: Optional[int] = None, scale: Optional[int] = None) -> ColumnDefinition:
        """Single-precision float; precision and scale are honoured on MySQL only."""
        return self.add_column("float", name, precision=precision, scale=scale)

    def double(self, name: str, precision: Optional[int] = None, scale: Optional[int] = None) -> ColumnDefinition:
        """Double-precision float; precision and scale are honoured on MySQL only."""
        return self.add_column("double", name, precision=precision, scale=scale)

    def json(self, name: str) -> ColumnDefinition:
        return self.add_column("json", name)

    def jsonb(self, name: str) -> ColumnDefinition:
        """PostgreSQL JSONB column; JSON elsewhere."""
        return self.add_column("jsonb", name)

    def binary(self, name: str) -> ColumnDefinition:
        """BLOB/BYTEA column."""
        return self.add_column("binary", name)

    def medium_binary(self, name: str) -> ColumnDefinition:
        return self.add_column("medium_binary", name)

    def long_binary(self, name: str) -> ColumnDefinition:
        return self.add_column("long_binary", name)

    # Conventions

    def morphs(self, name: str, index: bool = True, index_name: Optional[str] = None) -> None:
        """Polymorphic relation: ``<name>_type`` and ``<name>_id`` plus their index."""
        self.string(f"{name}_type")
        self.unsigned_big_integer(f"{name}_id")
        if index:
            self.index([f"{name}_type", f"{name}_id"], index_name)

    def nullable_morphs(self, name: str, index: bool = True, index_name: Optional[str] = None) -> None:
        """Polymorphic relation whose two columns allow NULL."""
        self.string(f"{name}_type").nullable()
        self.unsigned_big_integer(f"{name}_id").nullable()
        if index:
            self.index([f"{name}_type", f"{name}_id"], index_name)

    def uuid_morphs(self, name: str, index: bool = True, index_name: Optional[str] = None) -> None:
        """Polymorphic relation with a UUID ``<name>_id``."""
        self.string(f"{name}_type")
        self.uuid(f"{name}_id")
        if index:
            self.index([f"{name}_type", f"{name}_id"], index_name)

    def nullable_uuid_morphs(self, name: str, index: bool = True, index_name: Optional[str] = None) -> None:
        self.string(f"{name}_type").nullable()
        self.uuid(f"{name}_id").nullable()
        if index:
            self.index([f"{name}_type", f"{name}_id"], index_name)

    def timestamps(self) -> None:
        """Nullable ``created_at`` and ``updated_at`` timestamps."""
        self.timestamp("created_at").nullable()
        self.timestamp("updated_at").nullable()

    def timestamps_tz(self) -> None:
        """Time zone aware ``created_at`` and ``updated_at``."""
        self.timestamp_tz("created_at").nullable()
        self.timestamp_tz("updated_at").nullable()

    def soft_deletes(self, column: str = "deleted_at") -> ColumnDefinition:
        """Nullable ``deleted_at`` timestamp marking soft-deleted rows."""
        return self.timestamp(column).nullable()

    def soft_deletes_tz(self, column: str = "deleted_at") -> ColumnDefinition:
        return self.timestamp_tz(column).nullable()

    def remember_token(self) -> ColumnDefinition:
        """Nullable ``remember_token`` VARCHAR(100)."""
        return self.string("remember_token", REMEMBER_TOKEN_LENGTH).nullable()

    # Keys and indexes

    def primary(self, columns: Columns) -> None:
        """Composite primary key over ``columns``."""
        self.primary_key = tuple(_as_list(columns))

    def index(self, columns: Columns, name: Optional[str] = None) -> IndexDefinition:
        """Plain index, named ``<table>_<columns>_index`` by default."""
        cols = tuple(_as_list(columns))
        index = IndexDefinition(cols, name or default_index_name(self.table, cols, "index"))
        self.indexes.append(index)
        return index

    def unique(self, columns: Columns, name: Optional[str] = None) -> IndexDefinition:
        """Unique index, named ``<table>_<columns>_unique`` by default."""
        cols = tuple(_as_list(columns))
        index = IndexDefinition(cols, name or default_index_name(self.table, cols, "unique"), unique=True)
        self.indexes.append(index)
        return index

    def foreign(self, columns: Columns, name: Optional[str] = None) -> ForeignKeyDefinition:
        """Start a foreign key definition on ``columns``."""
        cols = _as_list(columns)
        fk = ForeignKeyDefinition(cols, name or default_index_name(self.table, cols, "foreign"))
        self.foreign_keys.append(fk)
        return fk

    # Removal

    def drop_column(self, *names: str) -> None:
        """Remove columns when the blueprint alters a table."""
        self.dropped_columns.extend(names)

    def drop_index(self, name: str) -> None:
        """Remove an index by name."""
        self.dropped_indexes.append(name)

    def drop_unique(self, name: str) -> None:
        self.dropped_indexes.append(name)

    def drop_foreign(self, name: str) -> None:
        """Remove a foreign key constraint by name."""
        self.dropped_foreign_keys.append(name)

    def is_empty(self) -> bool:
        """Whether the blueprint would change nothing."""
        return not (
            self.columns
            or self.indexes
            or self.foreign_keys
            or self.dropped_columns
            or self.dropped_indexes
            or self.dropped_foreign_keys
        )


# A shared enum type is dropped with the last table that uses it
_ENUM_TYPE_IN_USE = sa.text(
    "SELECT 1 FROM information_schema.columns "
    "WHERE table_schema = current_schema() AND udt_name = :name LIMIT 1"
)


class SchemaBuilder:
    """Executes blueprints against a connection with Alembic operations."""

    def __init__(self, connection: Connection):
        self.connection = connection
        self.operations = Operations(MigrationContext.configure(connection))

    @contextmanager
    def create(self, table: str) -> Iterator[Blueprint]:
        """Create a table from the blueprint filled in the block."""
        blueprint = Blueprint(table)
        yield blueprint
        self._create(blueprint)

    @contextmanager
    def table(self, table: str) -> Iterator[Blueprint]:
        """Alter an existing table from the blueprint filled in the block."""
        blueprint = Blueprint(table)
        yield blueprint
        self._alter(blueprint)

    @property
    def dialect_name(self) -> str:
        """Dialect of the connection the DDL runs on."""
        return self.connection.dialect.name

    def has_table(self, table: str) -> bool:
        """Whether ``table`` exists in the default schema."""
        return sa.inspect(self.connection).has_table(table)

    def enum_types(self, table: str) -> List[str]:
        """Names of the PostgreSQL enum types used by the columns of ``table``."""
        if self.dialect_name != "postgresql":
            return []
        columns = sa.inspect(self.connection).get_columns(table)
        return sorted(
            {c["type"].name for c in columns if isinstance(c["type"], sa.Enum) and c["type"].name}
        )

    def drop(self, table: str) -> None:
        """Drop a table, and on PostgreSQL the enum types nothing else uses."""
        logger.debug(f"Dropping table {table}")
        enum_types = self.enum_types(table)
        self.operations.drop_table(table)
        for name in enum_types:
            if self.connection.execute(_ENUM_TYPE_IN_USE, {"name": name}).first() is None:
                logger.debug(f"Dropping enum type {name}")
                postgresql.ENUM(name=name).drop(self.connection, checkfirst=True)

    def drop_if_exists(self, table: str) -> None:
        """Drop ``table`` when it exists."""
        if self.has_table(table):
            self.drop(table)

    def _create_enum_types(self, columns: Sequence[ColumnDefinition]) -> None:
        if self.dialect_name != "postgresql":
            return
        for column in columns:
            enum = column.native_enum()
            if enum is not None:
                enum.create(self.connection, checkfirst=True)

    def _create(self, blueprint: Blueprint) -> None:
        logger.debug(f"Creating table {blueprint.table}")
        self._create_enum_types(blueprint.columns)
        elements: List[Any] = [column.to_column() for column in blueprint.columns]
        if blueprint.primary_key:
            elements.append(sa.PrimaryKeyConstraint(*blueprint.primary_key))
        for fk in blueprint.foreign_keys:
            fk.validate(blueprint.table)
            elements.append(
                sa.ForeignKeyConstraint(
                    list(fk.columns),
                    [f"{fk.referenced_table}.{c}" for c in fk.referenced_columns],
                    name=fk.name,
                    ondelete=fk.delete_action,
                    onupdate=fk.update_action,
                )
            )
        self.operations.create_table(blueprint.table, *elements)

        for index in blueprint.indexes:
            self.operations.create_index(
                index.name, blueprint.table, list(index.columns), unique=index.unique
            )

    def _alter(self, blueprint: Blueprint) -> None:
        if blueprint.is_empty():
            return
        logger.debug(f"Altering table {blueprint.table}")
        self._create_enum_types(blueprint.columns)
        # Batch mode recreates the table where ALTER cannot, as on SQLite
        with self.operations.batch_alter_table(blueprint.table) as batch:
            for name in blueprint.dropped_foreign_keys:
                batch.drop_constraint(name, type_="foreignkey")
            for name in blueprint.dropped_indexes:
                batch.drop_index(name)
            for name in blueprint.dropped_columns:
                batch.drop_column(name)
            for column in blueprint.columns:
                batch.add_column(column.to_column())
            for index in blueprint.indexes:
                batch.create_index(index.name, list(index.columns), unique=index.unique)
            for fk in blueprint.foreign_keys:
                fk.validate(blueprint.table)
                batch.create_foreign_key(
                    fk.name,
                    fk.referenced_table,
                    list(fk.columns),
                    list(fk.referenced_columns),
                    onupdate=fk.update_action,
                    ondelete=fk.delete_action,
                )


class Migration:
    """Base class for migrations; subclasses implement ``up`` and ``down``."""

    def __init__(self, schema: SchemaBuilder):
        self.schema = schema

    def up(self) -> None:
        """Apply the migration."""
        raise NotImplementedError

    def down(self) -> None:
        """Revert the migration."""
        raise NotImplementedError


def load_migration(path: Union[str, Path], schema: SchemaBuilder) -> Migration:
    """Import a migration file and instantiate the Migration subclass it defines."""
    path = Path(path)
    module_spec = importlib.util.spec_from_file_location(f"squasher_migration_{path.stem}", path)
    if module_spec is None or module_spec.loader is None:
        raise SchemaError(f"Cannot load migration {path}")

    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)

    for value in vars(module).values():
        if (
            isinstance(value, type)
            and issubclass(value, Migration)
            and value is not Migration
            and value.__module__ == module.__name__
        ):
            return value(schema)
    raise SchemaError(f"No Migration subclass found in {path}")
