"""
Typed column defaults.

Catalogs report defaults as SQL text in dialect-specific shapes:
``'active'::character varying`` on PostgreSQL, ``((0))`` on SQL Server,
unquoted ``active`` on MySQL 8. ``parse_default`` turns that text into a
``DefaultValue`` the synthesizer can render without knowing the dialect.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..schema.types import map_type, is_textual


class DefaultKind(str, Enum):
    """Kinds of column default."""

    NULL = "null"
    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    STRING = "string"
    EXPRESSION = "expression"


@dataclass(frozen=True)
class DefaultValue:
    """A column default, typed by what it means rather than how it is spelled."""

    kind: DefaultKind
    value: Any = None

    @classmethod
    def null(cls) -> "DefaultValue":
        """An explicit ``DEFAULT NULL``."""
        return cls(DefaultKind.NULL)

    @classmethod
    def boolean(cls, value: bool) -> "DefaultValue":
        return cls(DefaultKind.BOOLEAN, bool(value))

    @classmethod
    def numeric(cls, literal: str) -> "DefaultValue":
        return cls(DefaultKind.NUMERIC, literal)

    @classmethod
    def string(cls, value: str) -> "DefaultValue":
        return cls(DefaultKind.STRING, value)

    @classmethod
    def expression(cls, sql: str) -> "DefaultValue":
        """A database expression, emitted through ``raw()``."""
        return cls(DefaultKind.EXPRESSION, sql)

    @property
    def is_expression(self) -> bool:
        """Whether the default is SQL rather than a literal."""
        return self.kind == DefaultKind.EXPRESSION


_NUMERIC = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_PG_CAST = re.compile(r"^(?P<body>.*?)::[a-z_][a-z0-9_ ]*(\[\])?(\(\d+(,\s*\d+)?\))?$", re.I | re.S)
_QUOTED = re.compile(r"^[nN]?'(?P<body>(?:[^']|'')*)'$", re.S)
_TRUE = {"true", "'true'", "b'1'"}
_FALSE = {"false", "'false'", "b'0'"}


def _strip_parentheses(text: str) -> str:
    """Remove balanced wrapping parentheses, as SQL Server reports ``((0))``."""
    while text.startswith("(") and text.endswith(")"):
        depth = 0
        balanced = True
        for i, char in enumerate(text):
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
            if depth == 0 and i < len(text) - 1:
                balanced = False
                break
        if not balanced:
            break
        text = text[1:-1].strip()
    return text


def _strip_cast(text: str) -> str:
    """Remove a trailing PostgreSQL ``::type`` cast outside of quotes."""
    match = _PG_CAST.match(text)
    if not match:
        return text
    body = match.group("body").strip()
    # Only strip when the cast applies to the whole literal
    if body.startswith("'") and not _QUOTED.match(body):
        return text
    return body


def parse_default(raw: Any, type_name: Optional[str] = None) -> Optional[DefaultValue]:
    """Convert a catalog default into a typed DefaultValue.

    Returns ``None`` when the column has no default at all.
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        return DefaultValue.boolean(raw)
    if isinstance(raw, (int, float)):
        return DefaultValue.numeric(str(raw))

    text = str(raw).strip()
    if text == "":
        return None

    canonical = map_type(type_name)
    textual = bool(type_name) and is_textual(type_name)
    text = _strip_cast(_strip_parentheses(text))
    text = _strip_parentheses(text)

    quoted = _QUOTED.match(text)
    if quoted:
        value = quoted.group("body").replace("''", "'")
        if canonical == "boolean" and value.lower() in ("0", "1", "true", "false"):
            return DefaultValue.boolean(value.lower() in ("1", "true"))
        if _NUMERIC.match(value) and not textual:
            return DefaultValue.numeric(value)
        return DefaultValue.string(value)

    lowered = text.lower()
    if lowered == "null":
        return DefaultValue.null()
    if lowered in _TRUE:
        return DefaultValue.boolean(True)
    if lowered in _FALSE:
        return DefaultValue.boolean(False)
    if canonical == "boolean" and lowered in ("0", "1"):
        return DefaultValue.boolean(lowered == "1")

    if _NUMERIC.match(text):
        if textual:
            return DefaultValue.string(text)
        return DefaultValue.numeric(text)

    if textual and not _looks_like_expression(text):
        return DefaultValue.string(text)

    return DefaultValue.expression(text)


def _looks_like_expression(text: str) -> bool:
    """Function calls and the CURRENT_* keywords are expressions, never strings."""
    lowered = text.lower()
    return "(" in text or lowered.startswith("current_") or lowered in ("now", "localtimestamp")
