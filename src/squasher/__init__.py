"""
squasher: Consolidate old migrations into one schema dump.

squasher reads the live database catalog, recognizes common column idioms and
writes a single deterministic migration that recreates the schema, then
retires the migrations it replaces.
"""

__version__ = "0.1.0"
__author__ = "squasher Contributors"

from .config import SquasherConfig, SquashSettings
from .exceptions import (
    ConfigurationError,
    DatabaseError,
    InvalidDateFormatError,
    SquashError,
    SquasherError,
)

__all__ = [
    "__version__",
    "SquasherConfig",
    "SquashSettings",
    "SquasherError",
    "ConfigurationError",
    "DatabaseError",
    "InvalidDateFormatError",
    "SquashError",
]
