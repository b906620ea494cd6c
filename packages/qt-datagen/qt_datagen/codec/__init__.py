"""Literal rendering and parsing for INSERT statements."""

from .dialects import (
    DialectFormatter,
    DuckDBFormatter,
    MySQLFormatter,
    OracleFormatter,
    PostgresFormatter,
    get_formatter,
)
from .literal_codec import LiteralCodec, tokenize_values

__all__ = [
    "DialectFormatter",
    "DuckDBFormatter",
    "LiteralCodec",
    "MySQLFormatter",
    "OracleFormatter",
    "PostgresFormatter",
    "get_formatter",
    "tokenize_values",
]
