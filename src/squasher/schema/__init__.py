"""
Schema package for squasher.

This package provides:
- The migration runtime (Migration, SchemaBuilder, Blueprint, raw)
- Catalog type mapping
- Idiom recognition and schema dump synthesis

Only the runtime is exported here, since generated migrations import it with
``from squasher.schema import Migration, raw``.
"""

from .builder import Blueprint, ColumnDefinition, Migration, SchemaBuilder, load_migration, raw

__all__ = [
    "Blueprint",
    "ColumnDefinition",
    "Migration",
    "SchemaBuilder",
    "load_migration",
    "raw",
]
