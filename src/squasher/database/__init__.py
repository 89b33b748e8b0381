"""
Database integration package for squasher.

This package provides:
- SQLAlchemy engine lifecycle
- Catalog introspection through reflection or native catalog queries
- Typed column default normalisation
"""

from .connection import DatabaseManager
from .defaults import DefaultKind, DefaultValue, parse_default
from .introspection import (
    CatalogDialect,
    ColumnDescriptor,
    ForeignKeyDescriptor,
    IndexDescriptor,
    SchemaInspector,
    TableDescriptor,
)
from .native import NativeStrategy
from .reflection import ReflectionStrategy

__all__ = [
    "DatabaseManager",
    "DefaultKind",
    "DefaultValue",
    "parse_default",
    "CatalogDialect",
    "ColumnDescriptor",
    "ForeignKeyDescriptor",
    "IndexDescriptor",
    "SchemaInspector",
    "TableDescriptor",
    "NativeStrategy",
    "ReflectionStrategy",
]
