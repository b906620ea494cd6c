"""Single encode/decode path between records and INSERT text.

``decode`` is the inverse of ``encode`` for every literal form the
formatters emit, so validation reads back exactly what was written.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, List, Optional, Tuple

from ..coercion import coerce_to_column, parse_datetime
from ..errors import CodecError, NoInsertableColumnsError
from ..schemas import Dialect, InsertStatement, Record, SchemaCatalog, TableSchema
from .dialects import DialectFormatter, get_formatter

logger = logging.getLogger(__name__)

_INSERT = re.compile(
    r"^\s*INSERT\s+INTO\s+(?P<table>.+?)\s*\((?P<columns>.*?)\)\s*VALUES\s*\((?P<values>.*)\)\s*;?\s*$",
    re.IGNORECASE | re.DOTALL,
)
_NUMBER = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_WORD = re.compile(r"[A-Za-z_]+")


def _unquote_identifier(raw: str) -> str:
    name = raw.strip()
    if len(name) >= 2 and name[0] == name[-1] and name[0] in "`\"":
        q = name[0]
        return name[1:-1].replace(q * 2, q)
    if name.startswith("[") and name.endswith("]"):
        return name[1:-1]
    return name


def _split_identifiers(text: str) -> List[str]:
    """Split a comma-separated identifier list, respecting quotes."""
    parts, current, quote = [], [], None
    for ch in text:
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
        elif ch in "`\"[":
            quote = "]" if ch == "[" else ch
            current.append(ch)
        elif ch == ",":
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    if current:
        parts.append("".join(current))
    return [_unquote_identifier(p) for p in parts if p.strip()]


def _read_quoted(text: str, pos: int) -> Tuple[str, int]:
    """Read a '...' literal starting at ``pos``; returns (value, next_pos)."""
    out = []
    i = pos + 1
    while i < len(text):
        ch = text[i]
        if ch == "'":
            if i + 1 < len(text) and text[i + 1] == "'":
                out.append("'")
                i += 2
                continue
            return "".join(out), i + 1
        out.append(ch)
        i += 1
    raise CodecError(f"Unterminated string literal at offset {pos}")


def tokenize_values(text: str) -> List[Any]:
    """Tokenize a VALUES tuple body into Python values.

    Recognizes quoted strings (with doubled-quote escapes), NULL, numbers,
    TRUE/FALSE, ``DATE '...'``, ``TIMESTAMP '...'`` and Oracle
    ``TO_DATE(...)``/``TO_TIMESTAMP(...)`` wrappers.
    """
    values: List[Any] = []
    i = 0
    n = len(text)
    expect_value = True

    while i < n:
        ch = text[i]
        if ch.isspace():
            i += 1
            continue
        if ch == ",":
            if expect_value:
                raise CodecError(f"Empty value before ',' at offset {i}")
            expect_value = True
            i += 1
            continue
        if not expect_value:
            raise CodecError(f"Expected ',' at offset {i} in VALUES list")

        if ch == "'":
            value, i = _read_quoted(text, i)
            values.append(value)
        elif ch.isdigit() or ch in "+-.":
            m = _NUMBER.match(text, i)
            if not m:
                raise CodecError(f"Bad numeric literal at offset {i}")
            raw = m.group(0)
            values.append(float(raw) if any(c in raw for c in ".eE") else int(raw))
            i = m.end()
        else:
            m = _WORD.match(text, i)
            if not m:
                raise CodecError(f"Unexpected character {ch!r} at offset {i}")
            word = m.group(0).upper()
            i = m.end()
            if word == "NULL":
                values.append(None)
            elif word in ("TRUE", "FALSE"):
                values.append(word == "TRUE")
            elif word in ("DATE", "TIMESTAMP"):
                while i < n and text[i].isspace():
                    i += 1
                if i >= n or text[i] != "'":
                    raise CodecError(f"Expected quoted literal after {word}")
                raw, i = _read_quoted(text, i)
                parsed = parse_datetime(raw)
                if parsed is None:
                    raise CodecError(f"Bad {word} literal {raw!r}")
                values.append(parsed.date() if word == "DATE" else parsed)
            elif word in ("TO_DATE", "TO_TIMESTAMP"):
                value, i = _read_oracle_call(text, i, word)
                values.append(value)
            else:
                raise CodecError(f"Unsupported literal keyword {word}")
        expect_value = False

    if expect_value and values:
        raise CodecError("Trailing ',' in VALUES list")
    return values


def _read_oracle_call(text: str, i: int, word: str) -> Tuple[Any, int]:
    n = len(text)
    while i < n and text[i].isspace():
        i += 1
    if i >= n or text[i] != "(":
        raise CodecError(f"Expected '(' after {word}")
    i += 1
    while i < n and text[i].isspace():
        i += 1
    raw, i = _read_quoted(text, i)
    depth = 1
    while i < n and depth:
        if text[i] == "'":
            _, i = _read_quoted(text, i)
            continue
        if text[i] == "(":
            depth += 1
        elif text[i] == ")":
            depth -= 1
        i += 1
    parsed = parse_datetime(raw)
    if parsed is None:
        raise CodecError(f"Bad {word} literal {raw!r}")
    return (parsed.date() if word == "TO_DATE" else parsed), i


class LiteralCodec:
    """Encode records to INSERT statements and decode them back.

    Args:
        dialect: Target dialect (enum or name).
        catalog: Optional catalog; when given, decoded values are re-typed
            by column so ``decode(encode(r)) == r``.
        preserve_ids: Allow identity columns in the column list.
    """

    def __init__(
        self,
        dialect=Dialect.MYSQL,
        catalog: Optional[SchemaCatalog] = None,
        preserve_ids: bool = False,
        formatter: Optional[DialectFormatter] = None,
    ):
        self.dialect = Dialect.parse(dialect)
        self.formatter = formatter or get_formatter(self.dialect)
        self.catalog = catalog
        self.preserve_ids = preserve_ids

    def encode(self, table: TableSchema, record: Record, priority: Optional[int] = None) -> InsertStatement:
        allowed = {c.name.lower(): c for c in table.insertable_columns(self.preserve_ids)}
        columns, literals = [], []
        for name, value in record.items():
            column = allowed.get(name.lower())
            if column is None:
                if table.has_column(name):
                    logger.debug("Dropping non-insertable column %s.%s", table.name, name)
                    continue
                raise CodecError(f"Column {name} does not exist in table {table.name}")
            columns.append(self.formatter.escape_identifier(column.name))
            literals.append(self.formatter.format_value(value, column))

        if not columns:
            raise NoInsertableColumnsError(table.name)

        sql = (
            f"INSERT INTO {self.formatter.escape_identifier(table.name)} "
            f"({', '.join(columns)}) VALUES ({', '.join(literals)})"
        )
        return InsertStatement(
            table_name=table.name,
            sql_text=sql,
            priority=table.fk_count if priority is None else priority,
        )

    def decode(self, sql_text: str) -> Tuple[str, Record]:
        """Parse INSERT text back into (table name, record)."""
        m = _INSERT.match(sql_text)
        if not m:
            raise CodecError(f"Not a single-row INSERT statement: {sql_text[:80]!r}")

        table_name = _unquote_identifier(m.group("table").split(".")[-1])
        columns = _split_identifiers(m.group("columns"))
        values = tokenize_values(m.group("values"))
        if len(columns) != len(values):
            raise CodecError(
                f"Column/value count mismatch for {table_name}: {len(columns)} columns, {len(values)} values"
            )

        table = self.catalog.get(table_name) if self.catalog is not None else None
        if table is not None:
            table_name = table.name
        record: Record = {}
        for name, value in zip(columns, values):
            column = table.column(name) if table is not None else None
            if column is not None:
                value = self._retype(value, column)
                name = column.name
            record[name] = value
        return table_name, record

    @staticmethod
    def _retype(value: Any, column) -> Any:
        if value is None:
            return None
        family = column.type_family
        if family == "datetime" and isinstance(value, datetime):
            return value
        if family in ("string", "enum", "json", "uuid") and not isinstance(value, str):
            return value
        return coerce_to_column(value, column)
