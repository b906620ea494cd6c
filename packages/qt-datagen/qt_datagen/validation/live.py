"""Optional live check: load the generated rows into DuckDB and run the query.

The catalog is rendered as DuckDB DDL, the INSERT statements and the query
are transpiled from the target dialect with sqlglot, and the number of
rows the query returns is reported. Nothing here raises; failures come
back as a LiveCheckResult with ``error`` set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import duckdb
import sqlglot
from sqlglot.errors import SqlglotError

from ..schemas import ColumnSchema, Dialect, InsertStatement, SchemaCatalog, TableSchema

logger = logging.getLogger(__name__)

_DUCKDB_TYPES = {
    "integer": "BIGINT",
    "boolean": "BOOLEAN",
    "date": "DATE",
    "datetime": "TIMESTAMP",
    "time": "TIME",
    "json": "VARCHAR",
    "uuid": "VARCHAR",
    "enum": "VARCHAR",
    "string": "VARCHAR",
}


@dataclass
class LiveCheckResult:
    """Outcome of executing the query against generated data."""

    actual_rows: int = 0
    ok: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"actual_rows": self.actual_rows, "ok": self.ok, "error": self.error}


def _quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _sequence_name(table: TableSchema, column: ColumnSchema) -> str:
    return f"seq_{table.name}_{column.name}".lower()


def _column_type(column: ColumnSchema) -> str:
    family = column.type_family
    if family == "decimal":
        if column.numeric_precision:
            return f"DECIMAL({column.numeric_precision}, {column.numeric_scale or 0})"
        return "DOUBLE"
    return _DUCKDB_TYPES.get(family, "VARCHAR")


def duckdb_ddl(catalog: SchemaCatalog, tables: Optional[Sequence[str]] = None) -> List[str]:
    """CREATE SEQUENCE / CREATE TABLE statements for ``tables`` (default: all).

    Identity columns draw from a per-column sequence. Generated columns
    become plain nullable columns. Foreign keys are declared only when the
    parent column is a primary key, since DuckDB requires a unique target.
    """
    names = list(tables) if tables is not None else catalog.table_names
    created = set()
    statements: List[str] = []
    for name in names:
        table = catalog.lookup(name)
        lines = []
        for column in table.columns:
            parts = [_quote(column.name), _column_type(column)]
            if column.is_identity:
                seq = _sequence_name(table, column)
                statements.append(f"CREATE SEQUENCE IF NOT EXISTS {seq} START 1")
                parts.append(f"DEFAULT nextval('{seq}')")
            if not column.nullable and not column.is_generated:
                parts.append("NOT NULL")
            lines.append(" ".join(parts))

        pks = [c.name for c in table.primary_keys]
        if pks:
            lines.append(f"PRIMARY KEY ({', '.join(_quote(p) for p in pks)})")
        for fk in table.foreign_keys:
            parent = catalog.get(fk.referenced_table)
            parent_col = parent.column(fk.referenced_column) if parent is not None else None
            if (
                parent_col is None
                or parent.name.lower() not in created
                or not parent_col.is_primary_key
                or len(parent.primary_keys) != 1
            ):
                continue
            lines.append(
                f"FOREIGN KEY ({_quote(fk.column)}) "
                f"REFERENCES {_quote(parent.name)} ({_quote(parent_col.name)})"
            )
        statements.append(f"CREATE TABLE {_quote(table.name)} (\n  " + ",\n  ".join(lines) + "\n)")
        created.add(table.name.lower())
    return statements


def to_duckdb(sql: str, dialect: Dialect) -> str:
    """Transpile one statement from ``dialect`` into DuckDB SQL."""
    if dialect == Dialect.DUCKDB:
        return sql
    return sqlglot.transpile(sql, read=dialect.value, write="duckdb")[0]


class LiveQueryValidator:
    """Execute generated INSERTs and the target query in in-memory DuckDB."""

    def __init__(self, catalog: SchemaCatalog, dialect=Dialect.MYSQL, database: str = ":memory:"):
        self.catalog = catalog
        self.dialect = Dialect.parse(dialect)
        self.database = database

    def check(
        self,
        sql: str,
        statements: Sequence[InsertStatement],
        tables: Optional[Sequence[str]] = None,
    ) -> LiveCheckResult:
        """Load ``statements`` into a fresh database and count ``sql``'s rows.

        ``tables`` is the creation order (generation order); it defaults
        to the tables named by ``statements`` in first-seen order.
        """
        if tables is None:
            tables = list(dict.fromkeys(s.table_name for s in statements))

        conn = duckdb.connect(database=self.database)
        try:
            for ddl in duckdb_ddl(self.catalog, tables):
                conn.execute(ddl)
            for stmt in statements:
                conn.execute(to_duckdb(stmt.sql_text, self.dialect))
            rows = conn.execute(to_duckdb(sql, self.dialect)).fetchall()
        except (duckdb.Error, SqlglotError) as e:
            logger.warning("Live validation failed: %s", e)
            return LiveCheckResult(error=str(e))
        finally:
            conn.close()

        logger.info("Live validation: query returned %d rows", len(rows))
        return LiveCheckResult(actual_rows=len(rows), ok=len(rows) > 0)
