"""
Emission tokens.

A table is reduced to an ordered sequence of tokens before any source text is
produced. Each token is one Blueprint call in the generated migration: either
an atomic column or a collapsed multi-column idiom.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from ..database.defaults import DefaultValue


@dataclass(frozen=True)
class IdentityColumn:
    """Auto-incrementing ``id`` primary key."""

    integer_type: str = "big_integer"
    comment: Optional[str] = None


@dataclass(frozen=True)
class PolymorphicRelation:
    """An adjacent ``X_type`` / ``X_id`` pair."""

    name: str
    uuid: bool = False
    nullable: bool = False
    indexed: bool = True
    index_name: Optional[str] = None


@dataclass(frozen=True)
class AuditTimestamps:
    """Adjacent ``created_at`` / ``updated_at`` columns."""

    timezone: bool = False


@dataclass(frozen=True)
class SoftDeletes:
    """Nullable ``deleted_at`` marker."""

    timezone: bool = False


@dataclass(frozen=True)
class RememberToken:
    """Nullable ``remember_token`` string of the conventional width."""


@dataclass(frozen=True)
class PlainColumn:
    """A single column with its full modifier set."""

    name: str
    type: str
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    nullable: bool = False
    unsigned: bool = False
    unique: bool = False
    unique_name: Optional[str] = None
    default: Optional[DefaultValue] = None
    autoincrement: bool = False
    comment: Optional[str] = None
    primary: bool = False
    values: Tuple[str, ...] = ()
    enum_name: Optional[str] = None


@dataclass(frozen=True)
class PrimaryKey:
    """Composite primary key."""

    columns: Tuple[str, ...]


@dataclass(frozen=True)
class IndexToken:
    """Standalone index; ``name`` is None when it matches the default name."""

    columns: Tuple[str, ...]
    unique: bool = False
    name: Optional[str] = None


@dataclass(frozen=True)
class ForeignKeyToken:
    """Foreign key, attached after every table exists."""

    columns: Tuple[str, ...]
    foreign_table: str
    foreign_columns: Tuple[str, ...]
    name: Optional[str] = None
    on_update: Optional[str] = None
    on_delete: Optional[str] = None


ColumnToken = Union[
    IdentityColumn,
    PolymorphicRelation,
    AuditTimestamps,
    SoftDeletes,
    RememberToken,
    PlainColumn,
]
Token = Union[ColumnToken, PrimaryKey, IndexToken]


@dataclass(frozen=True)
class TableTokens:
    """Everything needed to emit one table."""

    name: str
    body: Tuple[Token, ...]
    foreign_keys: Tuple[ForeignKeyToken, ...] = ()

    @property
    def referenced_tables(self) -> Tuple[str, ...]:
        """Other tables this table's foreign keys point at, sorted."""
        return tuple(
            sorted({fk.foreign_table for fk in self.foreign_keys if fk.foreign_table != self.name})
        )
