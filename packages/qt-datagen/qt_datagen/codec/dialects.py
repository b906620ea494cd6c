"""Dialect-specific literal and identifier rendering."""

from __future__ import annotations

import re
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, Optional, Type

from ..coercion import parse_datetime
from ..schemas import ColumnSchema, Dialect

_SIMPLE_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_COMMON_RESERVED = {
    "select", "from", "where", "order", "group", "by", "table", "user", "key",
    "date", "level", "comment", "size", "index", "check", "column", "default",
    "desc", "limit", "option", "range", "rank", "role", "session", "uid", "value",
}


class DialectFormatter:
    """Render Python values as SQL literals for one dialect.

    Subclasses override the hooks below; the base covers ANSI behaviour.
    """

    dialect: Dialect = Dialect.DUCKDB
    identifier_quote = '"'
    native_booleans = True
    empty_string_is_null = False
    reserved_words = _COMMON_RESERVED

    def escape_identifier(self, name: str) -> str:
        if _SIMPLE_IDENTIFIER.match(name) and name.lower() not in self.reserved_words:
            return name
        q = self.identifier_quote
        return f"{q}{name.replace(q, q * 2)}{q}"

    def format_value(self, value: Any, column: Optional[ColumnSchema] = None) -> str:
        if value is None:
            return "NULL"
        family = column.type_family if column is not None else None

        if isinstance(value, bool):
            return self.format_bool(value)
        if family == "boolean" and isinstance(value, (int, float)):
            return self.format_bool(bool(value))
        if isinstance(value, (int, Decimal)):
            return str(value)
        if isinstance(value, float):
            return repr(value)
        if isinstance(value, datetime):
            if family == "date":
                return self.format_date(value.date())
            return self.format_datetime(value)
        if isinstance(value, date):
            if family == "datetime":
                return self.format_datetime(datetime(value.year, value.month, value.day))
            return self.format_date(value)
        if isinstance(value, time):
            return self.format_string(value.strftime("%H:%M:%S"))

        text = str(value)
        if family in ("date", "datetime"):
            parsed = parse_datetime(text)
            if parsed is not None:
                return self.format_date(parsed.date()) if family == "date" else self.format_datetime(parsed)
        if text == "" and self.empty_string_is_null:
            return "NULL"
        return self.format_string(text)

    def format_string(self, text: str) -> str:
        return "'" + text.replace("'", "''") + "'"

    def format_bool(self, flag: bool) -> str:
        if self.native_booleans:
            return "TRUE" if flag else "FALSE"
        return "1" if flag else "0"

    def format_date(self, value: date) -> str:
        return f"DATE '{value.isoformat()}'"

    def format_datetime(self, value: datetime) -> str:
        return f"TIMESTAMP '{value.strftime('%Y-%m-%d %H:%M:%S')}'"


class MySQLFormatter(DialectFormatter):
    dialect = Dialect.MYSQL
    identifier_quote = "`"
    native_booleans = False

    def escape_identifier(self, name: str) -> str:
        return f"`{name.replace('`', '``')}`"

    def format_date(self, value: date) -> str:
        return f"'{value.isoformat()}'"

    def format_datetime(self, value: datetime) -> str:
        return f"'{value.strftime('%Y-%m-%d %H:%M:%S')}'"


class OracleFormatter(DialectFormatter):
    dialect = Dialect.ORACLE
    native_booleans = False
    empty_string_is_null = True

    def format_date(self, value: date) -> str:
        return f"TO_DATE('{value.isoformat()}', 'YYYY-MM-DD')"

    def format_datetime(self, value: datetime) -> str:
        return f"TO_TIMESTAMP('{value.strftime('%Y-%m-%d %H:%M:%S')}', 'YYYY-MM-DD HH24:MI:SS')"


class PostgresFormatter(DialectFormatter):
    dialect = Dialect.POSTGRES


class DuckDBFormatter(DialectFormatter):
    dialect = Dialect.DUCKDB


_FORMATTERS: Dict[Dialect, Type[DialectFormatter]] = {
    Dialect.MYSQL: MySQLFormatter,
    Dialect.ORACLE: OracleFormatter,
    Dialect.POSTGRES: PostgresFormatter,
    Dialect.DUCKDB: DuckDBFormatter,
}


def get_formatter(dialect) -> DialectFormatter:
    """Formatter instance for a Dialect or dialect name."""
    return _FORMATTERS[Dialect.parse(dialect)]()
