"""
Native catalog introspection.

Queries each supported database's own catalog views directly with
``sqlalchemy.text()``. Used when SQLAlchemy reflection is unavailable or
fails part-way through a run.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from .defaults import DefaultValue, parse_default
from .introspection import (
    CatalogDialect,
    ColumnDescriptor,
    ForeignKeyDescriptor,
    IndexDescriptor,
    IntrospectionStrategy,
    normalize_action,
)
from ..exceptions import EnumIntrospectionFailure, SchemaError
from ..schema.types import ENUM_TYPES, STRING_TYPES, DECIMAL_TYPES, map_type, normalize_type_name


logger = logging.getLogger(__name__)

_TYPE_PARAMS = re.compile(r"\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\)")
_ENUM_LITERAL = re.compile(r"'((?:[^']|'')*)'")

# PostgreSQL pg_constraint action codes
_PG_ACTIONS = {
    "a": None,
    "r": "restrict",
    "c": "cascade",
    "n": "set null",
    "d": "set default",
}


def parse_enum_values(column_type: Optional[str]) -> Tuple[str, ...]:
    """Extract the values of a MySQL ``enum('a','b')`` or ``set(...)`` column type."""
    if not column_type:
        return ()
    match = re.match(r"^\s*(enum|set)\s*\((.*)\)\s*$", column_type, re.I | re.S)
    if not match:
        return ()
    return tuple(v.replace("''", "'") for v in _ENUM_LITERAL.findall(match.group(2)))


def _int_or_none(value: Any) -> Optional[int]:
    """Coerce a catalog number; anything unparseable is None."""
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def column_sizing(type_name: str, length: Any, precision: Any, scale: Any) -> Dict[str, Optional[int]]:
    """Keep length only for string types and precision/scale only for numeric ones."""
    canonical = map_type(type_name)
    length = _int_or_none(length)
    return {
        "length": length if canonical in STRING_TYPES and length and length > 0 else None,
        "precision": _int_or_none(precision) if canonical in DECIMAL_TYPES else None,
        "scale": _int_or_none(scale) if canonical in DECIMAL_TYPES else None,
    }


def group_indexes(rows: Iterable[Tuple[str, Optional[str], bool, bool]]) -> List[IndexDescriptor]:
    """Fold (name, column, unique, primary) rows into descriptors.

    Rows must arrive ordered by index, then column position. Indexes with an
    expression member (no column name) cannot be recreated column-wise and are
    skipped.
    """
    grouped: Dict[str, Dict[str, Any]] = {}
    for name, column, unique, primary in rows:
        entry = grouped.setdefault(
            name, {"columns": [], "unique": bool(unique), "primary": bool(primary), "expr": False}
        )
        if column is None:
            entry["expr"] = True
        else:
            entry["columns"].append(column)

    indexes = []
    for name, entry in grouped.items():
        if entry["expr"] or not entry["columns"]:
            logger.debug(f"Skipping expression index {name}")
            continue
        indexes.append(
            IndexDescriptor(
                name=name,
                columns=tuple(entry["columns"]),
                unique=entry["unique"] or entry["primary"],
                primary=entry["primary"],
            )
        )
    return indexes


def group_foreign_keys(
    rows: Iterable[Tuple[Any, str, str, str, Optional[str], Optional[str]]],
    named: bool = True,
) -> List[ForeignKeyDescriptor]:
    """Fold (key, local, foreign_table, foreign, on_update, on_delete) rows."""
    grouped: Dict[Any, Dict[str, Any]] = {}
    for key, local, foreign_table, foreign, on_update, on_delete in rows:
        entry = grouped.setdefault(
            key,
            {
                "local": [],
                "foreign": [],
                "table": foreign_table,
                "on_update": normalize_action(on_update),
                "on_delete": normalize_action(on_delete),
            },
        )
        entry["local"].append(local)
        entry["foreign"].append(foreign)

    return [
        ForeignKeyDescriptor(
            name=key if named else None,
            local_columns=tuple(entry["local"]),
            foreign_table=entry["table"],
            foreign_columns=tuple(entry["foreign"]),
            on_update=entry["on_update"],
            on_delete=entry["on_delete"],
        )
        for key, entry in grouped.items()
    ]


class NativeCatalog:
    """Catalog queries for one database family."""

    dialect: CatalogDialect

    def list_tables(self, conn: Connection) -> List[str]:
        """Base table names in the connection's default schema."""
        raise NotImplementedError

    def list_columns(self, conn: Connection, table: str) -> List[ColumnDescriptor]:
        """Columns of ``table`` in ordinal order."""
        raise NotImplementedError

    def list_indexes(self, conn: Connection, table: str) -> List[IndexDescriptor]:
        """Indexes of ``table``, primary key included."""
        raise NotImplementedError

    def list_foreign_keys(self, conn: Connection, table: str) -> List[ForeignKeyDescriptor]:
        """Foreign keys declared on ``table``."""
        raise NotImplementedError

    def enum_values(self, conn: Connection, table: str, column: str) -> Tuple[str, ...]:
        """Declared values of an enum column; families without enums have none."""
        return ()


class MySQLCatalog(NativeCatalog):
    """MySQL and MariaDB via ``information_schema``."""

    dialect = CatalogDialect.MYSQL

    def list_tables(self, conn: Connection) -> List[str]:
        query = """
            SELECT TABLE_NAME
            FROM information_schema.TABLES
            WHERE TABLE_SCHEMA = DATABASE() AND TABLE_TYPE = 'BASE TABLE'
        """
        return [row[0] for row in conn.execute(text(query))]

    def list_columns(self, conn: Connection, table: str) -> List[ColumnDescriptor]:
        query = """
            SELECT
                COLUMN_NAME, DATA_TYPE, COLUMN_TYPE, IS_NULLABLE, COLUMN_DEFAULT,
                CHARACTER_MAXIMUM_LENGTH, NUMERIC_PRECISION, NUMERIC_SCALE,
                EXTRA, COLUMN_COMMENT
            FROM information_schema.COLUMNS
            WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = :table
            ORDER BY ORDINAL_POSITION
        """
        columns = []
        for row in conn.execute(text(query), {"table": table}).mappings():
            column_type = row["COLUMN_TYPE"] or ""
            type_name = normalize_type_name(column_type) or row["DATA_TYPE"].lower()
            extra = (row["EXTRA"] or "").lower()
            nullable = row["IS_NULLABLE"] == "YES"
            autoincrement = "auto_increment" in extra

            columns.append(
                ColumnDescriptor(
                    name=row["COLUMN_NAME"],
                    type_name=type_name,
                    nullable=nullable,
                    default=None if autoincrement else self._default(row["COLUMN_DEFAULT"], type_name, extra, nullable),
                    unsigned="unsigned" in column_type.lower(),
                    autoincrement=autoincrement,
                    comment=row["COLUMN_COMMENT"] or None,
                    table=table,
                    enum_values=parse_enum_values(column_type)
                    if map_type(type_name) in ENUM_TYPES else (),
                    **column_sizing(
                        type_name,
                        row["CHARACTER_MAXIMUM_LENGTH"],
                        row["NUMERIC_PRECISION"],
                        row["NUMERIC_SCALE"],
                    ),
                )
            )
        return columns

    @staticmethod
    def _default(raw: Any, type_name: str, extra: str, nullable: bool) -> Optional[DefaultValue]:
        if raw is None:
            return None
        # MariaDB reports the implicit default of a nullable column as NULL
        if nullable and str(raw).upper() == "NULL":
            return None
        if "default_generated" in extra:
            return DefaultValue.expression(str(raw))
        return parse_default(raw, type_name)

    def list_indexes(self, conn: Connection, table: str) -> List[IndexDescriptor]:
        query = """
            SELECT INDEX_NAME, COLUMN_NAME, NON_UNIQUE
            FROM information_schema.STATISTICS
            WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = :table
            ORDER BY INDEX_NAME, SEQ_IN_INDEX
        """
        rows = conn.execute(text(query), {"table": table})
        return group_indexes(
            (name, column, not non_unique, name == "PRIMARY")
            for name, column, non_unique in rows
        )

    def list_foreign_keys(self, conn: Connection, table: str) -> List[ForeignKeyDescriptor]:
        query = """
            SELECT
                k.CONSTRAINT_NAME, k.COLUMN_NAME, k.REFERENCED_TABLE_NAME,
                k.REFERENCED_COLUMN_NAME, r.UPDATE_RULE, r.DELETE_RULE
            FROM information_schema.KEY_COLUMN_USAGE k
            JOIN information_schema.REFERENTIAL_CONSTRAINTS r
                ON r.CONSTRAINT_SCHEMA = k.CONSTRAINT_SCHEMA
                AND r.CONSTRAINT_NAME = k.CONSTRAINT_NAME
            WHERE k.TABLE_SCHEMA = DATABASE()
                AND k.TABLE_NAME = :table
                AND k.REFERENCED_TABLE_NAME IS NOT NULL
            ORDER BY k.CONSTRAINT_NAME, k.ORDINAL_POSITION
        """
        return group_foreign_keys(conn.execute(text(query), {"table": table}))

    def enum_values(self, conn: Connection, table: str, column: str) -> Tuple[str, ...]:
        query = """
            SELECT COLUMN_TYPE
            FROM information_schema.COLUMNS
            WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = :table AND COLUMN_NAME = :column
        """
        return parse_enum_values(
            conn.execute(text(query), {"table": table, "column": column}).scalar()
        )


class PostgreSQLCatalog(NativeCatalog):
    """PostgreSQL via ``information_schema`` and ``pg_catalog``."""

    dialect = CatalogDialect.POSTGRESQL

    def list_tables(self, conn: Connection) -> List[str]:
        query = """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = current_schema() AND table_type = 'BASE TABLE'
        """
        return [row[0] for row in conn.execute(text(query))]

    def list_columns(self, conn: Connection, table: str) -> List[ColumnDescriptor]:
        query = """
            SELECT
                c.column_name,
                c.udt_name,
                c.is_nullable,
                c.column_default,
                c.character_maximum_length,
                c.numeric_precision,
                c.numeric_scale,
                c.is_identity,
                col_description(
                    (quote_ident(c.table_schema) || '.' || quote_ident(c.table_name))::regclass,
                    c.ordinal_position
                ) AS comment,
                EXISTS (
                    SELECT 1 FROM pg_type t
                    WHERE t.typname = c.udt_name AND t.typtype = 'e'
                ) AS is_enum
            FROM information_schema.columns c
            WHERE c.table_schema = current_schema() AND c.table_name = :table
            ORDER BY c.ordinal_position
        """
        columns = []
        for row in conn.execute(text(query), {"table": table}).mappings():
            type_name = "enum" if row["is_enum"] else row["udt_name"].lower()
            raw_default = row["column_default"]
            autoincrement = row["is_identity"] == "YES" or (
                raw_default is not None and str(raw_default).startswith("nextval(")
            )

            enum_values: Tuple[str, ...] = ()
            if row["is_enum"]:
                enum_values = self._safe_enum_values(conn, table, row["column_name"])

            columns.append(
                ColumnDescriptor(
                    name=row["column_name"],
                    type_name=type_name,
                    nullable=row["is_nullable"] == "YES",
                    default=None if autoincrement else parse_default(raw_default, type_name),
                    autoincrement=autoincrement,
                    comment=row["comment"],
                    table=table,
                    enum_values=enum_values,
                    enum_name=row["udt_name"] if row["is_enum"] else None,
                    **column_sizing(
                        type_name,
                        row["character_maximum_length"],
                        row["numeric_precision"],
                        row["numeric_scale"],
                    ),
                )
            )
        return columns

    def _safe_enum_values(self, conn: Connection, table: str, column: str) -> Tuple[str, ...]:
        """Enum values, or none with a warning when the lookup fails."""
        try:
            return self.enum_values(conn, table, column)
        except SQLAlchemyError as e:
            logger.warning(str(EnumIntrospectionFailure(table, column, e)))
            return ()

    def list_indexes(self, conn: Connection, table: str) -> List[IndexDescriptor]:
        query = """
            SELECT i.relname, a.attname, ix.indisunique, ix.indisprimary
            FROM pg_index ix
            JOIN pg_class t ON t.oid = ix.indrelid
            JOIN pg_class i ON i.oid = ix.indexrelid
            JOIN pg_namespace n ON n.oid = t.relnamespace
            CROSS JOIN LATERAL unnest(ix.indkey::int2[]) WITH ORDINALITY AS k(attnum, ord)
            LEFT JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
            WHERE n.nspname = current_schema() AND t.relname = :table
            ORDER BY i.relname, k.ord
        """
        return group_indexes(conn.execute(text(query), {"table": table}))

    def list_foreign_keys(self, conn: Connection, table: str) -> List[ForeignKeyDescriptor]:
        query = """
            SELECT
                con.conname, la.attname, ref.relname, fa.attname,
                con.confupdtype, con.confdeltype
            FROM pg_constraint con
            JOIN pg_class cls ON cls.oid = con.conrelid
            JOIN pg_namespace n ON n.oid = cls.relnamespace
            JOIN pg_class ref ON ref.oid = con.confrelid
            CROSS JOIN LATERAL unnest(con.conkey, con.confkey)
                WITH ORDINALITY AS k(local_attnum, foreign_attnum, ord)
            JOIN pg_attribute la ON la.attrelid = con.conrelid AND la.attnum = k.local_attnum
            JOIN pg_attribute fa ON fa.attrelid = con.confrelid AND fa.attnum = k.foreign_attnum
            WHERE con.contype = 'f' AND n.nspname = current_schema() AND cls.relname = :table
            ORDER BY con.conname, k.ord
        """
        rows = conn.execute(text(query), {"table": table})
        return group_foreign_keys(
            (name, local, ref, foreign, _PG_ACTIONS.get(upd), _PG_ACTIONS.get(dele))
            for name, local, ref, foreign, upd, dele in rows
        )

    def enum_values(self, conn: Connection, table: str, column: str) -> Tuple[str, ...]:
        query = """
            SELECT e.enumlabel
            FROM pg_enum e
            JOIN pg_type t ON t.oid = e.enumtypid
            JOIN information_schema.columns c ON c.udt_name = t.typname
            WHERE c.table_schema = current_schema()
                AND c.table_name = :table AND c.column_name = :column
            ORDER BY e.enumsortorder
        """
        rows = conn.execute(text(query), {"table": table, "column": column})
        return tuple(row[0] for row in rows)


class SQLiteCatalog(NativeCatalog):
    """SQLite via ``sqlite_master`` and the table PRAGMAs."""

    dialect = CatalogDialect.SQLITE

    def __init__(self, engine: Engine):
        self.quote = engine.dialect.identifier_preparer.quote_identifier

    def list_tables(self, conn: Connection) -> List[str]:
        query = """
            SELECT name FROM sqlite_master
            WHERE type = 'table' AND name NOT LIKE 'sqlite_%'
        """
        return [row[0] for row in conn.execute(text(query))]

    def _table_info(self, conn: Connection, table: str) -> List[Any]:
        return list(conn.execute(text(f"PRAGMA table_info({self.quote(table)})")).mappings())

    def list_columns(self, conn: Connection, table: str) -> List[ColumnDescriptor]:
        info = self._table_info(conn, table)
        pk_columns = [row["name"] for row in info if row["pk"]]

        columns = []
        for row in info:
            declared = row["type"] or ""
            type_name = normalize_type_name(declared) or "unknown"
            params = _TYPE_PARAMS.search(declared)
            first, second = (params.group(1), params.group(2)) if params else (None, None)
            # A sole INTEGER primary key aliases the rowid and autoincrements
            autoincrement = pk_columns == [row["name"]] and type_name == "integer"

            columns.append(
                ColumnDescriptor(
                    name=row["name"],
                    type_name=type_name,
                    nullable=not row["notnull"] and not row["pk"],
                    default=None if autoincrement else parse_default(row["dflt_value"], type_name),
                    unsigned="unsigned" in declared.lower(),
                    autoincrement=autoincrement,
                    table=table,
                    **column_sizing(type_name, first, first, second),
                )
            )
        return columns

    def list_indexes(self, conn: Connection, table: str) -> List[IndexDescriptor]:
        info = self._table_info(conn, table)
        pk = sorted((row["pk"], row["name"]) for row in info if row["pk"])

        indexes = []
        if pk:
            indexes.append(
                IndexDescriptor(name="primary", columns=tuple(c for _, c in pk), unique=True, primary=True)
            )

        index_list = conn.execute(text(f"PRAGMA index_list({self.quote(table)})")).mappings()
        for entry in list(index_list):
            if entry["origin"] == "pk":
                continue
            members = conn.execute(
                text(f"PRAGMA index_info({self.quote(entry['name'])})")
            ).mappings()
            columns = [m["name"] for m in sorted(members, key=lambda m: m["seqno"])]
            if not columns or any(c is None for c in columns):
                continue
            name = entry["name"]
            # Constraint-backed indexes carry reserved names that cannot be recreated
            if name.startswith("sqlite_autoindex_"):
                name = ""
            indexes.append(IndexDescriptor(name=name, columns=tuple(columns), unique=bool(entry["unique"])))
        return indexes

    def list_foreign_keys(self, conn: Connection, table: str) -> List[ForeignKeyDescriptor]:
        rows = list(conn.execute(text(f"PRAGMA foreign_key_list({self.quote(table)})")).mappings())
        resolved = []
        for row in sorted(rows, key=lambda r: (r["id"], r["seq"])):
            foreign = row["to"]
            if foreign is None:
                # REFERENCES without a column list targets the primary key
                pk = [r["name"] for r in self._table_info(conn, row["table"]) if r["pk"]]
                foreign = pk[row["seq"]] if row["seq"] < len(pk) else "id"
            resolved.append(
                (row["id"], row["from"], row["table"], foreign, row["on_update"], row["on_delete"])
            )
        # SQLite does not expose constraint names through its PRAGMAs
        return group_foreign_keys(resolved, named=False)


class SQLServerCatalog(NativeCatalog):
    """SQL Server via ``INFORMATION_SCHEMA`` and ``sys.*``."""

    dialect = CatalogDialect.SQLSERVER

    def list_tables(self, conn: Connection) -> List[str]:
        query = """
            SELECT TABLE_NAME
            FROM INFORMATION_SCHEMA.TABLES
            WHERE TABLE_TYPE = 'BASE TABLE' AND TABLE_SCHEMA = SCHEMA_NAME()
        """
        return [row[0] for row in conn.execute(text(query))]

    def list_columns(self, conn: Connection, table: str) -> List[ColumnDescriptor]:
        query = """
            SELECT
                c.COLUMN_NAME, c.DATA_TYPE, c.IS_NULLABLE, c.COLUMN_DEFAULT,
                c.CHARACTER_MAXIMUM_LENGTH, c.NUMERIC_PRECISION, c.NUMERIC_SCALE,
                COLUMNPROPERTY(OBJECT_ID(c.TABLE_SCHEMA + '.' + c.TABLE_NAME),
                               c.COLUMN_NAME, 'IsIdentity') AS IS_IDENTITY,
                CAST(ep.value AS NVARCHAR(4000)) AS COLUMN_COMMENT
            FROM INFORMATION_SCHEMA.COLUMNS c
            LEFT JOIN sys.extended_properties ep
                ON ep.major_id = OBJECT_ID(c.TABLE_SCHEMA + '.' + c.TABLE_NAME)
                AND ep.minor_id = COLUMNPROPERTY(OBJECT_ID(c.TABLE_SCHEMA + '.' + c.TABLE_NAME),
                                                 c.COLUMN_NAME, 'ColumnId')
                AND ep.name = 'MS_Description'
            WHERE c.TABLE_SCHEMA = SCHEMA_NAME() AND c.TABLE_NAME = :table
            ORDER BY c.ORDINAL_POSITION
        """
        columns = []
        for row in conn.execute(text(query), {"table": table}).mappings():
            type_name = row["DATA_TYPE"].lower()
            # varchar(max) and friends report a length of -1
            if row["CHARACTER_MAXIMUM_LENGTH"] == -1:
                type_name = normalize_type_name(f"{type_name}(max)")
            autoincrement = row["IS_IDENTITY"] == 1
            columns.append(
                ColumnDescriptor(
                    name=row["COLUMN_NAME"],
                    type_name=type_name,
                    nullable=row["IS_NULLABLE"] == "YES",
                    default=None if autoincrement else parse_default(row["COLUMN_DEFAULT"], type_name),
                    autoincrement=autoincrement,
                    comment=row["COLUMN_COMMENT"],
                    table=table,
                    **column_sizing(
                        type_name,
                        row["CHARACTER_MAXIMUM_LENGTH"],
                        row["NUMERIC_PRECISION"],
                        row["NUMERIC_SCALE"],
                    ),
                )
            )
        return columns

    def list_indexes(self, conn: Connection, table: str) -> List[IndexDescriptor]:
        query = """
            SELECT i.name, c.name, i.is_unique, i.is_primary_key
            FROM sys.indexes i
            JOIN sys.index_columns ic ON ic.object_id = i.object_id AND ic.index_id = i.index_id
            JOIN sys.columns c ON c.object_id = ic.object_id AND c.column_id = ic.column_id
            WHERE i.object_id = OBJECT_ID(:table) AND i.type > 0 AND ic.is_included_column = 0
            ORDER BY i.name, ic.key_ordinal
        """
        return group_indexes(conn.execute(text(query), {"table": table}))

    def list_foreign_keys(self, conn: Connection, table: str) -> List[ForeignKeyDescriptor]:
        query = """
            SELECT
                fk.name, pc.name, rt.name, rc.name,
                fk.update_referential_action_desc, fk.delete_referential_action_desc
            FROM sys.foreign_keys fk
            JOIN sys.foreign_key_columns fkc ON fkc.constraint_object_id = fk.object_id
            JOIN sys.columns pc
                ON pc.object_id = fkc.parent_object_id AND pc.column_id = fkc.parent_column_id
            JOIN sys.tables rt ON rt.object_id = fkc.referenced_object_id
            JOIN sys.columns rc
                ON rc.object_id = fkc.referenced_object_id AND rc.column_id = fkc.referenced_column_id
            WHERE fk.parent_object_id = OBJECT_ID(:table)
            ORDER BY fk.name, fkc.constraint_column_id
        """
        return group_foreign_keys(conn.execute(text(query), {"table": table}))


class NativeStrategy(IntrospectionStrategy):
    """Runs per-dialect catalog queries over a plain connection."""

    name = "native"

    def __init__(self, engine: Engine, dialect: CatalogDialect):
        super().__init__(engine, dialect)
        if dialect == CatalogDialect.MYSQL:
            self.catalog: NativeCatalog = MySQLCatalog()
        elif dialect == CatalogDialect.POSTGRESQL:
            self.catalog = PostgreSQLCatalog()
        elif dialect == CatalogDialect.SQLITE:
            self.catalog = SQLiteCatalog(engine)
        else:
            self.catalog = SQLServerCatalog()

    def _run(self, description: str, reader):
        """Run ``reader`` on a fresh connection, wrapping errors in SchemaError."""
        try:
            with self.engine.connect() as conn:
                return reader(conn)
        except SQLAlchemyError as e:
            logger.error(f"Error reading {description}: {e}")
            raise SchemaError(f"Failed to read {description}", cause=e) from e

    def list_tables(self) -> List[str]:
        """Base table names, in catalog order."""
        return self._run("tables", self.catalog.list_tables)

    def list_columns(self, table: str) -> List[ColumnDescriptor]:
        """Columns of ``table``; raises SchemaError when the query fails."""
        return self._run(f"columns of {table}", lambda conn: self.catalog.list_columns(conn, table))

    def list_indexes(self, table: str) -> List[IndexDescriptor]:
        """Indexes of ``table``, primary key included."""
        return self._run(f"indexes of {table}", lambda conn: self.catalog.list_indexes(conn, table))

    def list_foreign_keys(self, table: str) -> List[ForeignKeyDescriptor]:
        """Foreign keys of ``table``."""
        return self._run(
            f"foreign keys of {table}", lambda conn: self.catalog.list_foreign_keys(conn, table)
        )

    def enum_values(self, table: str, column: str) -> Tuple[str, ...]:
        """Values of an enum/set column; raises EnumIntrospectionFailure."""
        try:
            with self.engine.connect() as conn:
                return tuple(self.catalog.enum_values(conn, table, column))
        except SQLAlchemyError as e:
            raise EnumIntrospectionFailure(table, column, e) from e
