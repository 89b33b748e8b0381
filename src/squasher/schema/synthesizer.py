"""
Source synthesis for the schema dump migration.

``SourceSynthesizer`` is a pure printer: the same tokens always produce the
same bytes. ``SchemaDumper`` wires catalog introspection, idiom recognition
and the printer together and writes the result atomically.
"""

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .idioms import IdiomRecognizer
from .tokens import (
    AuditTimestamps,
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
from .types import DECIMAL_TYPES, ENUM_TYPES, IDENTITY_METHODS, STRING_TYPES
from ..database.defaults import DefaultKind, DefaultValue
from ..database.introspection import SchemaInspector, TableDescriptor
from ..exceptions import ArtifactWriteError, SynthesisError


logger = logging.getLogger(__name__)

ARTIFACT_CLASS = "SchemaDump"
INDENT = "    "

_INT_LITERAL = re.compile(r"^-?(0|[1-9]\d*)$")

_HEADER = '''"""
Schema dump.

Generated by squasher from the live database schema. It replaces every
migration squashed into it and runs before all remaining migrations.
"""
'''


@dataclass(frozen=True)
class SynthesizedArtifact:
    """Generated migration source and the table order it creates."""

    source: str
    tables: Tuple[str, ...]

    @property
    def teardown_order(self) -> Tuple[str, ...]:
        """Drop order: the reverse of creation order."""
        return tuple(reversed(self.tables))

    @property
    def is_empty(self) -> bool:
        """Whether the catalog had no tables to dump."""
        return not self.tables


def py_literal(value: Union[str, Sequence[str]]) -> str:
    """Python source for a string or list of strings, double-quoted."""
    if isinstance(value, str):
        # JSON string escapes are valid Python escapes
        return json.dumps(value, ensure_ascii=False)
    return "[" + ", ".join(py_literal(v) for v in value) + "]"


def _columns_arg(columns: Sequence[str]) -> str:
    return py_literal(columns[0]) if len(columns) == 1 else py_literal(list(columns))


def creation_order(tables: Iterable[TableTokens]) -> List[str]:
    """Name order with referenced tables moved ahead of the tables that use them.

    Reference cycles are broken at the first table reached, so the result is
    stable for any catalog.
    """
    by_name = {table.name: table for table in tables}
    ordered: List[str] = []
    visiting = set()
    done = set()

    def visit(name: str) -> None:
        if name in done or name in visiting:
            return
        visiting.add(name)
        for dependency in by_name[name].referenced_tables:
            if dependency in by_name:
                visit(dependency)
        visiting.discard(name)
        done.add(name)
        ordered.append(name)

    for name in sorted(by_name):
        visit(name)
    return ordered


class SourceSynthesizer:
    """Renders TableTokens into the source of one migration module."""

    def __init__(self):
        self._uses_raw = False

    def synthesize(self, tables: Sequence[TableTokens]) -> SynthesizedArtifact:
        """Print the migration module for the given tables."""
        by_name = {table.name: table for table in tables}
        order = creation_order(tables)
        self._uses_raw = False

        create_blocks = [self._create_block(by_name[name]) for name in order]
        foreign_blocks = [
            self._foreign_block(by_name[name]) for name in order if by_name[name].foreign_keys
        ]
        drops = [f"self.schema.drop_if_exists({py_literal(name)})" for name in reversed(order)]

        lines = [_HEADER]
        imports = "Migration, raw" if self._uses_raw else "Migration"
        lines.append(f"from squasher.schema import {imports}")
        lines.append("")
        lines.append("")
        lines.append(f"class {ARTIFACT_CLASS}(Migration):")
        lines.append(f'{INDENT}"""Recreates the complete database schema."""')
        lines.append("")
        lines.extend(self._method("up", ["self.create_tables()", "self.attach_foreign_keys()"]))
        lines.append("")
        lines.extend(self._method("create_tables", self._join_blocks(create_blocks), "No tables to create"))
        lines.append("")
        lines.extend(
            self._method("attach_foreign_keys", self._join_blocks(foreign_blocks), "No foreign keys to attach")
        )
        lines.append("")
        lines.extend(self._method("down", drops, "No tables to drop"))

        return SynthesizedArtifact(source="\n".join(lines) + "\n", tables=tuple(order))

    @staticmethod
    def _join_blocks(blocks: List[List[str]]) -> List[str]:
        body: List[str] = []
        for i, block in enumerate(blocks):
            if i:
                body.append("")
            body.extend(block)
        return body

    @staticmethod
    def _method(name: str, body: List[str], empty_note: Optional[str] = None) -> List[str]:
        lines = [f"{INDENT}def {name}(self):"]
        if not body:
            lines.append(f"{INDENT * 2}# {empty_note}")
            lines.append(f"{INDENT * 2}pass")
            return lines
        lines.extend(f"{INDENT * 2}{line}" if line else "" for line in body)
        return lines

    def _create_block(self, table: TableTokens) -> List[str]:
        lines = [f"with self.schema.create({py_literal(table.name)}) as table:"]
        lines.extend(f"{INDENT}table.{self.render(token)}" for token in table.body)
        return lines

    def _foreign_block(self, table: TableTokens) -> List[str]:
        lines = [f"with self.schema.table({py_literal(table.name)}) as table:"]
        lines.extend(f"{INDENT}table.{self.render_foreign_key(fk)}" for fk in table.foreign_keys)
        return lines

    def render(self, token: Token) -> str:
        """One Blueprint call, without the receiver."""
        if isinstance(token, IdentityColumn):
            method = IDENTITY_METHODS[token.integer_type]
            call = "id()" if method == "id" else f'{method}("id")'
            if token.comment is not None:
                call += f".comment({py_literal(token.comment)})"
            return call

        if isinstance(token, PolymorphicRelation):
            method = ("nullable_" if token.nullable else "") + ("uuid_" if token.uuid else "") + "morphs"
            args = [py_literal(token.name)]
            if not token.indexed:
                args.append("index=False")
            elif token.index_name:
                args.append(f"index_name={py_literal(token.index_name)}")
            return f"{method}({', '.join(args)})"

        if isinstance(token, AuditTimestamps):
            return "timestamps_tz()" if token.timezone else "timestamps()"

        if isinstance(token, SoftDeletes):
            return "soft_deletes_tz()" if token.timezone else "soft_deletes()"

        if isinstance(token, RememberToken):
            return "remember_token()"

        if isinstance(token, PlainColumn):
            return self._render_plain(token)

        if isinstance(token, PrimaryKey):
            return f"primary({py_literal(list(token.columns))})"

        if isinstance(token, IndexToken):
            method = "unique" if token.unique else "index"
            args = [_columns_arg(token.columns)]
            if token.name:
                args.append(py_literal(token.name))
            return f"{method}({', '.join(args)})"

        raise SynthesisError(f"Cannot render token {token!r}")

    def _render_plain(self, column: PlainColumn) -> str:
        """Type call with its size arguments, then the modifiers."""
        args = [py_literal(column.name)]
        if column.type in STRING_TYPES and column.length is not None:
            args.append(str(column.length))
        elif column.type in DECIMAL_TYPES and column.precision is not None:
            args.append(str(column.precision))
            args.append(str(column.scale))
        elif column.type in ENUM_TYPES:
            args.append(py_literal(list(column.values)))
            if column.enum_name:
                args.append(f"type_name={py_literal(column.enum_name)}")

        call = f"{column.type}({', '.join(args)})"
        # Modifier order is fixed so output diffs cleanly between runs
        if column.primary:
            call += ".primary()"
        if column.unsigned:
            call += ".unsigned()"
        if column.nullable:
            call += ".nullable()"
        if column.unique:
            call += f".unique({py_literal(column.unique_name)})" if column.unique_name else ".unique()"
        if column.default is not None:
            call += f".default({self.render_default(column.default)})"
        if column.autoincrement:
            call += ".auto_increment()"
        if column.comment is not None:
            call += f".comment({py_literal(column.comment)})"
        return call

    def render_default(self, default: DefaultValue) -> str:
        """Python source for a column default.

        Literals the runtime can pass through unchanged are written as Python
        values; anything else (expressions, numbers Python would respell) is
        wrapped in ``raw()`` and the import is added to the module header.
        """
        if default.kind == DefaultKind.NULL:
            return "None"
        if default.kind == DefaultKind.BOOLEAN:
            return "True" if default.value else "False"
        if default.kind == DefaultKind.STRING:
            return py_literal(default.value)
        if default.kind == DefaultKind.NUMERIC:
            literal = _numeric_literal(str(default.value))
            if literal is not None:
                return literal
        self._uses_raw = True
        return f"raw({py_literal(str(default.value))})"

    def render_foreign_key(self, fk: ForeignKeyToken) -> str:
        """The ``foreign(...).references(...).on(...)`` chain for one key."""
        args = [_columns_arg(fk.columns)]
        if fk.name:
            args.append(py_literal(fk.name))
        call = (
            f"foreign({', '.join(args)})"
            f".references({_columns_arg(fk.foreign_columns)})"
            f".on({py_literal(fk.foreign_table)})"
        )
        if fk.on_delete:
            call += f".on_delete({py_literal(fk.on_delete)})"
        if fk.on_update:
            call += f".on_update({py_literal(fk.on_update)})"
        return call


def _numeric_literal(text: str) -> Optional[str]:
    """The literal as Python source, or None when Python would respell it."""
    if _INT_LITERAL.match(text):
        return text
    try:
        if repr(float(text)) == text:
            return text
    except ValueError:
        pass
    return None


class SchemaDumper:
    """Generates the schema dump for a live database."""

    def __init__(
        self,
        inspector: SchemaInspector,
        excluded_tables: Iterable[str] = (),
        recognizer: Optional[IdiomRecognizer] = None,
        synthesizer: Optional[SourceSynthesizer] = None,
    ):
        self.inspector = inspector
        self.excluded_tables = frozenset(excluded_tables)
        self.recognizer = recognizer or IdiomRecognizer()
        self.synthesizer = synthesizer or SourceSynthesizer()

    def table_names(self) -> List[str]:
        """Tables to dump, sorted by name."""
        return [t for t in self.inspector.list_tables() if t not in self.excluded_tables]

    def describe_tables(self) -> List[TableDescriptor]:
        """Snapshots of the tables to dump, skipping tables without columns."""
        tables = []
        for name in self.table_names():
            table = self.inspector.describe_table(name)
            if not table.columns:
                logger.warning(f"Table {name} has no columns, skipping")
                continue
            tables.append(table)
        return tables

    def generate(self) -> SynthesizedArtifact:
        """Introspect, recognize idioms and print the migration source."""
        tables = self.describe_tables()
        logger.info(f"Synthesizing schema dump for {len(tables)} tables")
        tokens = [self.recognizer.tokenize(table) for table in tables]
        return self.synthesizer.synthesize(tokens)

    @staticmethod
    def save(artifact: SynthesizedArtifact, path: Union[str, Path]) -> Path:
        """Write the artifact so the file is either complete or absent."""
        path = Path(path)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                encoding="utf-8",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(artifact.source)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise ArtifactWriteError(f"Could not write schema dump to {path}", cause=e) from e

        logger.info(f"Wrote schema dump to {path}")
        return path
