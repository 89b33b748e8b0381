"""
Idiom recognition.

Reduces a table's catalog description to emission tokens in one left-to-right
scan over the columns. Conventional multi-column patterns (polymorphic
relations, audit timestamps...) collapse into a single token in place; every
other column becomes a plain column token. Standalone indexes follow the
columns in catalog enumeration order.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from .tokens import (
    AuditTimestamps,
    ColumnToken,
    ForeignKeyToken,
    IdentityColumn,
    IndexToken,
    PlainColumn,
    PolymorphicRelation,
    PrimaryKey,
    RememberToken,
    SoftDeletes,
    TableTokens,
    Token,
)
from .builder import default_enum_name, default_index_name
from .types import (
    APPROXIMATE_TYPES,
    AUDIT_TIMESTAMP_TYPES,
    DECIMAL_TYPES,
    DEFAULT_PRECISION,
    DEFAULT_SCALE,
    DEFAULT_STRING_LENGTH,
    ENUM_TYPES,
    IDENTITY_METHODS,
    REMEMBER_TOKEN_LENGTH,
    SINGLE_PRECISION_BITS,
    STRING_TYPES,
    UUID_WIDTHS,
    is_timezone_aware,
    map_type,
)
from ..database.defaults import DefaultKind
from ..database.introspection import ColumnDescriptor, IndexDescriptor, TableDescriptor


logger = logging.getLogger(__name__)

IDENTITY_COLUMN = "id"


class IdiomRecognizer:
    """Turns a TableDescriptor into TableTokens."""

    def tokenize(self, table: TableDescriptor) -> TableTokens:
        """Reduce one table to its column, key and index tokens.

        Columns are scanned left to right; an idiom only collapses columns that
        are adjacent and match it exactly, so the scan never reorders them.
        """
        return _TableScan(table).run()


class _TableScan:
    """State for one pass over a single table."""

    def __init__(self, table: TableDescriptor):
        self.table = table
        self.columns = list(table.columns)
        self.primary: Optional[IndexDescriptor] = table.primary_key
        self.primary_consumed = False
        self.consumed: Set[int] = set()

        # Single-column unique indexes, first one per column wins
        self.unique_by_column: Dict[str, int] = {}
        for position, index in enumerate(table.indexes):
            if index.unique and not index.primary and index.is_single_column:
                self.unique_by_column.setdefault(index.columns[0], position)

    def run(self) -> TableTokens:
        """Scan the columns, then emit the remaining keys and indexes."""
        body: List[Token] = []
        i = 0
        while i < len(self.columns):
            token, width = self._match(i)
            body.append(token)
            i += width

        if self.primary is not None and not self.primary_consumed:
            body.append(PrimaryKey(columns=tuple(self.primary.columns)))
            self.primary_consumed = True

        for position, index in enumerate(self.table.indexes):
            if index.primary or position in self.consumed:
                continue
            body.append(self._index_token(index))

        foreign_keys = tuple(self._foreign_key_token(fk) for fk in self.table.foreign_keys)
        return TableTokens(name=self.table.name, body=tuple(body), foreign_keys=foreign_keys)

    def _match(self, i: int) -> Tuple[ColumnToken, int]:
        column = self.columns[i]
        following = self.columns[i + 1] if i + 1 < len(self.columns) else None

        token = self._identity(column)
        if token is not None:
            return token, 1
        if following is not None:
            token = self._polymorphic(column, following) or self._timestamps(column, following)
            if token is not None:
                return token, 2
        token = self._soft_deletes(column) or self._remember_token(column)
        if token is not None:
            return token, 1
        return self._plain(column), 1

    def _in_primary_key(self, column: ColumnDescriptor) -> bool:
        return self.primary is not None and column.name in self.primary.columns

    def _is_bare(self, column: ColumnDescriptor) -> bool:
        """No default, comment, key or unique index that an idiom would drop."""
        default = column.default
        if default is not None and not (default.kind == DefaultKind.NULL and column.nullable):
            return False
        return (
            column.comment is None
            and not column.autoincrement
            and not self._in_primary_key(column)
            and column.name not in self.unique_by_column
        )

    def _identity(self, column: ColumnDescriptor) -> Optional[IdentityColumn]:
        """An autoincrementing ``id`` that is the whole primary key."""
        if column.name != IDENTITY_COLUMN or not column.autoincrement:
            return None
        integer_type = map_type(column.type_name)
        if integer_type not in IDENTITY_METHODS:
            return None
        if self.primary is not None and tuple(self.primary.columns) != (IDENTITY_COLUMN,):
            return None
        if self.primary is not None:
            self.primary_consumed = True
        return IdentityColumn(integer_type=integer_type, comment=column.comment)

    def _polymorphic(
        self, type_column: ColumnDescriptor, id_column: ColumnDescriptor
    ) -> Optional[PolymorphicRelation]:
        if not type_column.name.endswith("_type"):
            return None
        name = type_column.name[: -len("_type")]
        if not name or id_column.name != f"{name}_id":
            return None
        if map_type(type_column.type_name) not in STRING_TYPES:
            return None
        if type_column.length not in (None, DEFAULT_STRING_LENGTH):
            return None
        if type_column.nullable != id_column.nullable:
            return None
        if not (self._is_bare(type_column) and self._is_bare(id_column)):
            return None

        id_type = map_type(id_column.type_name)
        if id_type == "big_integer":
            uuid = False
        elif id_type == "uuid" or (id_type in STRING_TYPES and id_column.length in UUID_WIDTHS):
            uuid = True
        else:
            return None

        indexed, index_name = self._absorb_morph_index(type_column.name, id_column.name)
        logger.debug(f"Collapsed {type_column.name}/{id_column.name} on {self.table.name}")
        return PolymorphicRelation(
            name=name,
            uuid=uuid,
            nullable=type_column.nullable,
            indexed=indexed,
            index_name=index_name,
        )

    def _absorb_morph_index(self, type_name: str, id_name: str) -> Tuple[bool, Optional[str]]:
        """Consume the ``(X_type, X_id)`` index, returning whether it existed and its custom name."""
        for position, index in enumerate(self.table.indexes):
            if position in self.consumed or index.unique or index.primary:
                continue
            if tuple(index.columns) == (type_name, id_name):
                self.consumed.add(position)
                default = default_index_name(self.table.name, index.columns, "index")
                return True, (index.name if index.name and index.name != default else None)
        return False, None

    def _timestamps(
        self, created: ColumnDescriptor, updated: ColumnDescriptor
    ) -> Optional[AuditTimestamps]:
        if created.name != "created_at" or updated.name != "updated_at":
            return None
        if not (self._audit_column(created) and self._audit_column(updated)):
            return None
        return AuditTimestamps(
            timezone=is_timezone_aware(created.type_name) or is_timezone_aware(updated.type_name)
        )

    def _audit_column(self, column: ColumnDescriptor) -> bool:
        """A bare, nullable timestamp with no default."""
        return (
            map_type(column.type_name) in AUDIT_TIMESTAMP_TYPES
            and column.nullable
            and column.default is None
            and self._is_bare(column)
        )

    def _soft_deletes(self, column: ColumnDescriptor) -> Optional[SoftDeletes]:
        if column.name != "deleted_at" or not self._audit_column(column):
            return None
        return SoftDeletes(timezone=is_timezone_aware(column.type_name))

    def _remember_token(self, column: ColumnDescriptor) -> Optional[RememberToken]:
        if column.name != "remember_token" or not column.nullable:
            return None
        if map_type(column.type_name) != "string" or column.length != REMEMBER_TOKEN_LENGTH:
            return None
        if not self._is_bare(column):
            return None
        return RememberToken()

    def _plain(self, column: ColumnDescriptor) -> PlainColumn:
        """A column no idiom claimed, with its sizes, keys and modifiers."""
        canonical = map_type(column.type_name)

        length = None
        if canonical in STRING_TYPES and column.length not in (None, DEFAULT_STRING_LENGTH):
            length = column.length

        precision = scale = None
        if canonical in APPROXIMATE_TYPES:
            # Approximate types only carry a size when the catalog declares a scale
            if column.precision is not None and column.scale is not None:
                precision, scale = column.precision, column.scale
            elif canonical == "float" and (column.precision or 0) > SINGLE_PRECISION_BITS:
                canonical = "double"
        elif canonical in DECIMAL_TYPES:
            if column.precision is None:
                precision, scale = DEFAULT_PRECISION, DEFAULT_SCALE
            else:
                precision, scale = column.precision, column.scale or 0

        values: Tuple[str, ...] = ()
        enum_name = None
        if canonical in ENUM_TYPES:
            values = tuple(column.enum_values)
            if not values:
                logger.warning(
                    f"No values known for {self.table.name}.{column.name}, emitting it as a string"
                )
                canonical = "string"
            elif canonical == "enum" and column.enum_name not in (
                None,
                default_enum_name(self.table.name, column.name),
            ):
                enum_name = column.enum_name

        primary = (
            self.primary is not None
            and tuple(self.primary.columns) == (column.name,)
            and not self.primary_consumed
        )
        if primary:
            self.primary_consumed = True

        unique = False
        unique_name = None
        position = self.unique_by_column.get(column.name)
        if position is not None and position not in self.consumed:
            self.consumed.add(position)
            unique = True
            index_name = self.table.indexes[position].name
            if index_name and index_name != default_index_name(self.table.name, [column.name], "unique"):
                unique_name = index_name

        return PlainColumn(
            name=column.name,
            type=canonical,
            length=length,
            precision=precision,
            scale=scale,
            nullable=column.nullable and not primary,
            unsigned=column.unsigned,
            unique=unique,
            unique_name=unique_name,
            default=column.default,
            autoincrement=column.autoincrement,
            comment=column.comment,
            primary=primary,
            values=values,
            enum_name=enum_name,
        )

    def _index_token(self, index: IndexDescriptor) -> IndexToken:
        suffix = "unique" if index.unique else "index"
        default = default_index_name(self.table.name, index.columns, suffix)
        return IndexToken(
            columns=tuple(index.columns),
            unique=index.unique,
            name=index.name if index.name and index.name != default else None,
        )

    def _foreign_key_token(self, fk) -> ForeignKeyToken:
        default = default_index_name(self.table.name, fk.local_columns, "foreign")
        return ForeignKeyToken(
            columns=tuple(fk.local_columns),
            foreign_table=fk.foreign_table,
            foreign_columns=tuple(fk.foreign_columns),
            name=fk.name if fk.name and fk.name != default else None,
            on_update=fk.on_update,
            on_delete=fk.on_delete,
        )
