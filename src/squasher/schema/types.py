"""
Catalog type names and their canonical emission types.

Every dialect spells its types differently (``int4``, ``INT``, ``integer``).
The catalog strategies normalise a raw type to a lower-case name, and the
table below maps that name to the Blueprint method that recreates it.
"""

import re
from typing import Dict, FrozenSet, Optional


TYPE_MAP: Dict[str, str] = {
    # Integer family
    "int": "integer",
    "integer": "integer",
    "int4": "integer",
    "serial": "integer",
    "tinyint": "tiny_integer",
    "smallint": "small_integer",
    "int2": "small_integer",
    "smallserial": "small_integer",
    "mediumint": "medium_integer",
    "bigint": "big_integer",
    "int8": "big_integer",
    "bigserial": "big_integer",

    # String family
    "varchar": "string",
    "character varying": "string",
    "nvarchar": "string",
    "varchar(max)": "text",
    "nvarchar(max)": "text",
    "string": "string",
    "char": "char",
    "character": "char",
    "bpchar": "char",
    "nchar": "char",

    # Text family
    "text": "text",
    "tinytext": "text",
    "ntext": "text",
    "clob": "text",
    "mediumtext": "medium_text",
    "longtext": "long_text",

    # Temporal family
    "datetime": "date_time",
    "datetime2": "date_time",
    "smalldatetime": "date_time",
    "datetimeoffset": "date_time_tz",
    "timestamp": "timestamp",
    "timestamp without time zone": "timestamp",
    "timestamptz": "timestamp_tz",
    "timestamp with time zone": "timestamp_tz",
    "date": "date",
    "time": "time",
    "time without time zone": "time",
    "timetz": "time_tz",
    "time with time zone": "time_tz",
    "year": "year",

    # Boolean
    "boolean": "boolean",
    "bool": "boolean",
    "bit": "boolean",
    "tinyint(1)": "boolean",

    # Numeric family
    "decimal": "decimal",
    "numeric": "decimal",
    "money": "decimal",
    "smallmoney": "decimal",
    "float": "float",
    "float4": "float",
    "real": "float",
    "double": "double",
    "float8": "double",
    "double precision": "double",
    "double_precision": "double",

    # JSON
    "json": "json",
    "jsonb": "jsonb",

    # Binary family
    "binary": "binary",
    "varbinary": "binary",
    "varbinary(max)": "binary",
    "blob": "binary",
    "tinyblob": "binary",
    "bytea": "binary",
    "image": "binary",
    "largebinary": "binary",
    "mediumblob": "medium_binary",
    "longblob": "long_binary",

    # Other
    "uuid": "uuid",
    "uniqueidentifier": "uuid",
    "enum": "enum",
    "set": "set",

    # Geometric family
    "geometry": "geometry",
    "point": "point",
    "linestring": "line_string",
    "polygon": "polygon",
    "geometrycollection": "geometry_collection",
    "multipoint": "multi_point",
    "multilinestring": "multi_line_string",
    "multipolygon": "multi_polygon",
}

FALLBACK_TYPE = "string"

STRING_TYPES: FrozenSet[str] = frozenset({"string", "char"})
TEXTUAL_TYPES: FrozenSet[str] = STRING_TYPES | {"text", "medium_text", "long_text", "enum", "set"}
DECIMAL_TYPES: FrozenSet[str] = frozenset({"decimal", "float", "double"})
APPROXIMATE_TYPES: FrozenSet[str] = frozenset({"float", "double"})
AUDIT_TIMESTAMP_TYPES: FrozenSet[str] = frozenset({"timestamp", "timestamp_tz"})
TIMEZONE_TYPES: FrozenSet[str] = frozenset({"timestamp_tz", "date_time_tz", "time_tz"})
ENUM_TYPES: FrozenSet[str] = frozenset({"enum", "set"})

DEFAULT_STRING_LENGTH = 255
DEFAULT_PRECISION = 8
DEFAULT_SCALE = 2
# Widest binary precision a single-precision float holds
SINGLE_PRECISION_BITS = 24
REMEMBER_TOKEN_LENGTH = 100
UUID_WIDTHS: FrozenSet[int] = frozenset({32, 36})

# Blueprint method used for an autoincrementing "id" column, per integer width
IDENTITY_METHODS: Dict[str, str] = {
    "big_integer": "id",
    "integer": "increments",
    "medium_integer": "medium_increments",
    "small_integer": "small_increments",
    "tiny_integer": "tiny_increments",
}

_PARAMS = re.compile(r"\(.*\)")
_MAX_WIDTH = re.compile(r"^(n?varchar|varbinary)\s*\(\s*max\s*\)")


def normalize_type_name(raw: Optional[str]) -> str:
    """Lower-case a raw catalog type and strip size parameters and modifiers.

    ``VARCHAR(255)`` becomes ``varchar``, ``int(10) unsigned`` becomes ``int``.
    MySQL's ``tinyint(1)`` is kept whole because it means boolean, and so is
    SQL Server's ``nvarchar(max)`` because it means unbounded text.
    """
    if not raw:
        return ""
    name = raw.strip().lower()
    if name.startswith("tinyint(1)"):
        return "tinyint(1)"
    unbounded = _MAX_WIDTH.match(name)
    if unbounded:
        return f"{unbounded.group(1)}(max)"
    name = _PARAMS.sub("", name)
    for modifier in (" unsigned", " zerofill", " auto_increment"):
        name = name.replace(modifier, "")
    return " ".join(name.split())


def map_type(type_name: Optional[str]) -> str:
    """Map a normalised catalog type to its canonical emission type.

    Unknown types fall back to ``string`` so introspection never blocks on an
    exotic column type.
    """
    return TYPE_MAP.get(normalize_type_name(type_name), FALLBACK_TYPE)


def is_timezone_aware(type_name: Optional[str]) -> bool:
    """Whether the type stores a time zone offset."""
    return map_type(type_name) in TIMEZONE_TYPES


def is_textual(type_name: Optional[str]) -> bool:
    """Whether unquoted defaults on this type are string literals."""
    return map_type(type_name) in TEXTUAL_TYPES
