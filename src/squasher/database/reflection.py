"""
Catalog introspection through SQLAlchemy reflection.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.engine.reflection import Inspector
from sqlalchemy.exc import NoSuchTableError

from .defaults import parse_default
from .introspection import (
    CatalogDialect,
    ColumnDescriptor,
    ForeignKeyDescriptor,
    IndexDescriptor,
    IntrospectionStrategy,
    normalize_action,
)
from .native import NativeStrategy, column_sizing
from ..exceptions import EnumIntrospectionFailure, IntrospectionDegradation
from ..schema.types import ENUM_TYPES, map_type


logger = logging.getLogger(__name__)

_DATETIME_NAMES = {"timestamp", "datetime", "time"}
_UNBOUNDED_NAMES = {"varchar", "nvarchar", "varbinary"}


def reflected_type_name(type_: Any) -> str:
    """Normalised name of a reflected SQLAlchemy type instance."""
    name = getattr(type_, "__visit_name__", "") or type(type_).__name__
    name = name.lower()
    if name == "tinyint" and getattr(type_, "display_width", None) == 1:
        return "tinyint(1)"
    if name in _DATETIME_NAMES and getattr(type_, "timezone", False):
        return {"timestamp": "timestamptz", "datetime": "datetimeoffset", "time": "timetz"}[name]
    if name == "null":
        return "unknown"
    return name


class ReflectionStrategy(IntrospectionStrategy):
    """Reads the catalog with ``sqlalchemy.inspect(engine)``."""

    name = "reflection"

    def __init__(self, engine: Engine, dialect: CatalogDialect):
        super().__init__(engine, dialect)
        self._inspector: Optional[Inspector] = None

    @property
    def inspector(self) -> Inspector:
        """The SQLAlchemy Inspector, created on first use."""
        if self._inspector is None:
            self._inspector = inspect(self.engine)
        return self._inspector

    def is_available(self) -> bool:
        """Capability check: an Inspector can be created and lists tables."""
        try:
            self.inspector.get_table_names()
            return True
        except Exception as e:
            logger.debug(f"Reflection capability check failed: {e}")
            self._inspector = None
            return False

    def list_tables(self) -> List[str]:
        """Table names reported by the Inspector."""
        try:
            return list(self.inspector.get_table_names())
        except Exception as e:
            raise IntrospectionDegradation("list_tables", e) from e

    def list_columns(self, table: str) -> List[ColumnDescriptor]:
        """Reflected columns of ``table``; empty when the table is missing."""
        try:
            raw_columns = self.inspector.get_columns(table)
            pk_columns = self._primary_key_columns(table)
        except NoSuchTableError:
            return []
        except Exception as e:
            raise IntrospectionDegradation(f"list_columns({table})", e) from e

        return [self._to_descriptor(table, col, pk_columns) for col in raw_columns]

    def _to_descriptor(
        self, table: str, col: Dict[str, Any], pk_columns: List[str]
    ) -> ColumnDescriptor:
        """Convert one ``Inspector.get_columns`` entry."""
        type_ = col["type"]
        type_name = reflected_type_name(type_)
        if (
            self.dialect == CatalogDialect.SQLSERVER
            and type_name in _UNBOUNDED_NAMES
            and getattr(type_, "length", None) is None
        ):
            # SQL Server reflects varchar(max) without a length
            type_name = f"{type_name}(max)"
        canonical = map_type(type_name)

        autoincrement = col.get("autoincrement") is True
        if self.dialect == CatalogDialect.SQLITE:
            # A sole INTEGER primary key is SQLite's rowid alias
            autoincrement = pk_columns == [col["name"]] and type_name == "integer"

        enum_values = ()
        if canonical in ENUM_TYPES:
            enum_values = self._enum_values(table, col["name"], type_)

        return ColumnDescriptor(
            name=col["name"],
            type_name=type_name,
            nullable=bool(col.get("nullable", True)),
            default=None if autoincrement else parse_default(col.get("default"), type_name),
            unsigned=bool(getattr(type_, "unsigned", False)),
            autoincrement=autoincrement,
            comment=col.get("comment") or None,
            table=table,
            enum_values=enum_values,
            enum_name=getattr(type_, "name", None) if canonical == "enum" else None,
            **column_sizing(
                type_name,
                getattr(type_, "length", None),
                getattr(type_, "precision", None),
                getattr(type_, "scale", None),
            ),
        )

    def _enum_values(self, table: str, column: str, type_: Any) -> tuple:
        """Values carried by the reflected type, else read from the catalog."""
        values = getattr(type_, "enums", None) or getattr(type_, "values", None)
        if values:
            return tuple(values)
        # Reflection did not carry the values; ask the catalog directly
        try:
            return tuple(NativeStrategy(self.engine, self.dialect).enum_values(table, column))
        except EnumIntrospectionFailure as e:
            logger.warning(str(e))
            return ()

    def _primary_key_columns(self, table: str) -> List[str]:
        """Columns of the primary key constraint, in key order."""
        constraint = self.inspector.get_pk_constraint(table) or {}
        return list(constraint.get("constrained_columns") or [])

    def list_indexes(self, table: str) -> List[IndexDescriptor]:
        """Primary key, indexes and unique constraints of ``table``."""
        try:
            pk = self.inspector.get_pk_constraint(table) or {}
            raw_indexes = self.inspector.get_indexes(table)
            raw_uniques = self._unique_constraints(table)
        except NoSuchTableError:
            return []
        except Exception as e:
            raise IntrospectionDegradation(f"list_indexes({table})", e) from e

        indexes: List[IndexDescriptor] = []
        pk_columns = tuple(pk.get("constrained_columns") or ())
        if pk_columns:
            indexes.append(
                IndexDescriptor(
                    name=pk.get("name") or "primary",
                    columns=pk_columns,
                    unique=True,
                    primary=True,
                )
            )

        seen = {(pk.get("name"), pk_columns)} if pk_columns else set()
        for raw in list(raw_indexes) + raw_uniques:
            columns = tuple(raw.get("column_names") or ())
            if not columns or any(c is None for c in columns):
                logger.debug(f"Skipping expression index {raw.get('name')} on {table}")
                continue
            key = (raw.get("name"), columns)
            if key in seen or (pk_columns and columns == pk_columns and raw.get("unique")
                               and raw.get("name") in (None, pk.get("name"))):
                continue
            seen.add(key)
            indexes.append(
                IndexDescriptor(
                    name=raw.get("name") or "",
                    columns=columns,
                    unique=bool(raw.get("unique")),
                )
            )
        return indexes

    def _unique_constraints(self, table: str) -> List[Dict[str, Any]]:
        """Unique constraints not already reported as indexes."""
        try:
            constraints = self.inspector.get_unique_constraints(table)
        except NotImplementedError:
            return []
        return [
            {"name": c.get("name"), "column_names": c.get("column_names"), "unique": True}
            for c in constraints
            if not c.get("duplicates_index")
        ]

    def list_foreign_keys(self, table: str) -> List[ForeignKeyDescriptor]:
        """Reflected foreign keys of ``table``."""
        try:
            raw_keys = self.inspector.get_foreign_keys(table)
        except NoSuchTableError:
            return []
        except Exception as e:
            raise IntrospectionDegradation(f"list_foreign_keys({table})", e) from e

        keys = []
        for fk in raw_keys:
            options = fk.get("options") or {}
            keys.append(
                ForeignKeyDescriptor(
                    name=fk.get("name"),
                    local_columns=tuple(fk["constrained_columns"]),
                    foreign_table=fk["referred_table"],
                    foreign_columns=tuple(fk["referred_columns"]),
                    on_update=normalize_action(options.get("onupdate")),
                    on_delete=normalize_action(options.get("ondelete")),
                )
            )
        return keys
