"""Data models for schema catalogs and generation artifacts.

The catalog is consumed read-only: generation and validation depend on
key/identity/generated/unique flags, lengths, enum values, numeric
precision and the FK edge list.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

import sqlglot
import yaml
from sqlglot import exp
from sqlglot.errors import ParseError

from .errors import SchemaError, UnknownTableError

logger = logging.getLogger(__name__)

# One row of one table, column -> value in insertion order.
Record = Dict[str, Any]
# One generation unit: table -> Record at the same row index.
RecordSet = Dict[str, Record]


class Dialect(str, Enum):
    """Target database literal/quoting conventions."""

    MYSQL = "mysql"
    ORACLE = "oracle"
    POSTGRES = "postgres"
    DUCKDB = "duckdb"

    @classmethod
    def parse(cls, value: Union[str, "Dialect"]) -> "Dialect":
        if isinstance(value, Dialect):
            return value
        key = (value or "").strip().lower()
        aliases = {"postgresql": "postgres", "pg": "postgres", "mariadb": "mysql"}
        try:
            return cls(aliases.get(key, key))
        except ValueError:
            raise ValueError(
                f"Unsupported dialect '{value}'. "
                f"Choose from: {', '.join(d.value for d in cls)}"
            )


_INTEGER_TYPES = {
    "int", "integer", "bigint", "smallint", "mediumint", "tinyint",
    "serial", "bigserial", "smallserial", "int2", "int4", "int8", "hugeint",
}
_DECIMAL_TYPES = {
    "decimal", "numeric", "float", "double", "real", "money",
    "float4", "float8", "binary_float", "binary_double",
}
_STRING_TYPES = {
    "varchar", "char", "nvarchar", "nchar", "varchar2", "nvarchar2",
    "text", "tinytext", "mediumtext", "longtext", "clob", "nclob", "string",
}
_BOOLEAN_NAME_PREFIXES = ("is_", "has_", "can_", "should_", "allow_", "enable_")
_BOOLEAN_NAMES = {"active", "enabled", "deleted", "verified", "visible", "flag"}

_TYPE_ARGS = re.compile(r"\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\)")
_ENUM_VALUES = re.compile(r"'((?:[^']|'')*)'")


def _base_type(data_type: str) -> str:
    base = data_type.strip().lower().split("(")[0].strip()
    return base.replace(" unsigned", "").split(" ")[0] if base else ""


@dataclass
class ColumnSchema:
    """One column of a catalog table."""

    name: str
    data_type: str = "varchar"
    nullable: bool = True
    is_primary_key: bool = False
    is_identity: bool = False
    is_generated: bool = False
    is_unique: bool = False
    max_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None
    enum_values: List[str] = field(default_factory=list)
    default_value: Optional[str] = None

    def __post_init__(self):
        lowered = self.data_type.strip().lower()
        base = _base_type(self.data_type)

        if not self.enum_values and base in ("enum", "set"):
            self.enum_values = [v.replace("''", "'") for v in _ENUM_VALUES.findall(self.data_type)]

        args = _TYPE_ARGS.search(lowered)
        if args and base not in ("enum", "set"):
            first = int(args.group(1))
            second = int(args.group(2)) if args.group(2) else None
            if base in _STRING_TYPES and self.max_length is None:
                self.max_length = first
            elif base in _DECIMAL_TYPES or base == "number":
                if self.numeric_precision is None:
                    self.numeric_precision = first
                if self.numeric_scale is None and second is not None:
                    self.numeric_scale = second
        if self.is_primary_key:
            self.nullable = False

    @property
    def type_family(self) -> str:
        """Coarse type family used for synthesis and literal rendering."""
        base = _base_type(self.data_type)
        lowered = self.data_type.strip().lower()
        name = self.name.lower()

        if self.enum_values:
            return "enum"
        if base in ("bool", "boolean", "bit"):
            return "boolean"
        if base == "tinyint":
            if lowered.startswith("tinyint(1)"):
                return "boolean"
            if name.startswith(_BOOLEAN_NAME_PREFIXES) or name in _BOOLEAN_NAMES:
                return "boolean"
            return "integer"
        if base in _INTEGER_TYPES:
            return "integer"
        if base == "number":
            # Oracle NUMBER(p) and bare NUMBER are whole numbers; NUMBER(p,s>0) is not
            if self.numeric_scale:
                return "decimal"
            return "integer"
        if base in _DECIMAL_TYPES:
            return "decimal"
        if base == "date":
            return "date"
        if base in ("datetime", "timestamp", "timestamptz", "datetime2", "smalldatetime"):
            return "datetime"
        if base == "time":
            return "time"
        if base in ("json", "jsonb"):
            return "json"
        if base in ("uuid", "uniqueidentifier"):
            return "uuid"
        return "string"

    @property
    def is_insertable(self) -> bool:
        return not (self.is_generated or self.is_identity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.data_type,
            "nullable": self.nullable,
            "primary_key": self.is_primary_key,
            "identity": self.is_identity,
            "generated": self.is_generated,
            "unique": self.is_unique,
            "max_length": self.max_length,
            "precision": self.numeric_precision,
            "scale": self.numeric_scale,
            "enum_values": list(self.enum_values),
        }


@dataclass
class ForeignKeySchema:
    """FK edge: ``column`` references ``referenced_table.referenced_column``."""

    column: str
    referenced_table: str
    referenced_column: str = "id"
    name: Optional[str] = None


@dataclass
class TableSchema:
    """A table with its columns and outgoing FK edges."""

    name: str
    columns: List[ColumnSchema] = field(default_factory=list)
    foreign_keys: List[ForeignKeySchema] = field(default_factory=list)

    def column(self, name: str) -> Optional[ColumnSchema]:
        wanted = name.lower()
        for col in self.columns:
            if col.name.lower() == wanted:
                return col
        return None

    def has_column(self, name: str) -> bool:
        return self.column(name) is not None

    @property
    def primary_keys(self) -> List[ColumnSchema]:
        return [c for c in self.columns if c.is_primary_key]

    @property
    def fk_count(self) -> int:
        return len(self.foreign_keys)

    @property
    def referenced_tables(self) -> List[str]:
        return [fk.referenced_table for fk in self.foreign_keys]

    def foreign_key_for(self, column_name: str) -> Optional[ForeignKeySchema]:
        wanted = column_name.lower()
        for fk in self.foreign_keys:
            if fk.column.lower() == wanted:
                return fk
        return None

    def insertable_columns(self, preserve_ids: bool = False) -> List[ColumnSchema]:
        """Columns allowed in an INSERT column list.

        Generated columns are always excluded. Identity columns are only
        included in ID-preserving mode.
        """
        result = []
        for col in self.columns:
            if col.is_generated:
                continue
            if col.is_identity and not preserve_ids:
                continue
            result.append(col)
        return result


class SchemaCatalog:
    """Case-insensitive table lookup over a set of TableSchema."""

    def __init__(self, tables: Iterable[TableSchema] = ()):
        self._tables: Dict[str, TableSchema] = {}
        for table in tables:
            self.add(table)

    def add(self, table: TableSchema) -> None:
        self._tables[table.name.lower()] = table

    def get(self, name: str) -> Optional[TableSchema]:
        return self._tables.get(name.lower()) if name else None

    def lookup(self, name: str) -> TableSchema:
        table = self.get(name)
        if table is None:
            raise UnknownTableError(name)
        return table

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._tables

    def __iter__(self) -> Iterator[TableSchema]:
        return iter(self._tables.values())

    def __len__(self) -> int:
        return len(self._tables)

    @property
    def table_names(self) -> List[str]:
        return [t.name for t in self._tables.values()]

    # -----------------------------------------------------------------
    # Loaders
    # -----------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchemaCatalog":
        """Build a catalog from a plain mapping.

        Accepts ``{"tables": {name: definition}}`` or ``{name: definition}``; a definition has
        ``columns`` (list of column dicts or mapping name -> column dict)
        and optional ``foreign_keys``. Columns may also carry an inline
        ``references: "table.column"``.
        """
        if not isinstance(data, dict):
            raise SchemaError("Schema document must be a mapping of tables")
        tables_data = data.get("tables", data)
        if isinstance(tables_data, list):
            tables_data = {t["name"]: t for t in tables_data}

        tables = []
        for table_name, definition in tables_data.items():
            definition = definition or {}
            raw_columns = definition.get("columns", {})
            if isinstance(raw_columns, dict):
                raw_columns = [
                    dict(col_def or {}, name=col_name) if isinstance(col_def, dict)
                    else {"name": col_name, "type": str(col_def)}
                    for col_name, col_def in raw_columns.items()
                ]

            columns = []
            foreign_keys = []
            for raw in raw_columns:
                columns.append(_column_from_dict(raw))
                if raw.get("references"):
                    foreign_keys.append(_fk_from_reference(raw["name"], raw["references"]))

            for raw_fk in definition.get("foreign_keys", []) or []:
                if "references" in raw_fk:
                    foreign_keys.append(_fk_from_reference(raw_fk["column"], raw_fk["references"]))
                else:
                    foreign_keys.append(ForeignKeySchema(
                        column=raw_fk["column"],
                        referenced_table=raw_fk.get("referenced_table") or raw_fk["table"],
                        referenced_column=raw_fk.get("referenced_column", "id"),
                        name=raw_fk.get("name"),
                    ))

            tables.append(TableSchema(name=table_name, columns=columns, foreign_keys=foreign_keys))

        logger.debug("Loaded %d tables from mapping", len(tables))
        return cls(tables)

    @classmethod
    def from_json(cls, source: Union[str, Path]) -> "SchemaCatalog":
        text = Path(source).read_text() if _looks_like_path(source) else str(source)
        return cls.from_dict(json.loads(text))

    @classmethod
    def from_yaml(cls, source: Union[str, Path]) -> "SchemaCatalog":
        text = Path(source).read_text() if _looks_like_path(source) else str(source)
        return cls.from_dict(yaml.safe_load(text))

    @classmethod
    def from_file(cls, path: Union[str, Path], dialect: Optional[str] = None) -> "SchemaCatalog":
        """Load a catalog from ``.json``, ``.yaml``/``.yml`` or ``.sql`` DDL."""
        path = Path(path)
        suffix = path.suffix.lower()
        if suffix == ".json":
            return cls.from_json(path)
        if suffix in (".yaml", ".yml"):
            return cls.from_yaml(path)
        if suffix in (".sql", ".ddl"):
            return cls.from_ddl(path.read_text(), dialect=dialect)
        raise SchemaError(f"Unsupported schema file type: {path.name}")

    @classmethod
    def from_ddl(cls, ddl: str, dialect: Optional[str] = None) -> "SchemaCatalog":
        """Parse ``CREATE TABLE`` statements with sqlglot."""
        read = Dialect.parse(dialect).value if dialect else None
        try:
            statements = sqlglot.parse(ddl, read=read)
        except ParseError as e:
            raise SchemaError(f"Could not parse schema DDL: {e}") from e

        tables = []
        for stmt in statements:
            if not isinstance(stmt, exp.Create) or (stmt.args.get("kind") or "").upper() != "TABLE":
                continue
            table = _table_from_create(stmt, read)
            if table is not None:
                tables.append(table)

        if not tables:
            raise SchemaError("No CREATE TABLE statements found in DDL")
        logger.debug("Parsed %d tables from DDL", len(tables))
        return cls(tables)


def _looks_like_path(source: Union[str, Path]) -> bool:
    if isinstance(source, Path):
        return True
    text = str(source)
    return "\n" not in text and not text.lstrip().startswith(("{", "[")) and Path(text).exists()


def _column_from_dict(raw: Dict[str, Any]) -> ColumnSchema:
    enum_values = raw.get("enum_values", raw.get("enum")) or []
    return ColumnSchema(
        name=raw["name"],
        data_type=str(raw.get("type", raw.get("data_type", "varchar"))),
        nullable=bool(raw.get("nullable", True)),
        is_primary_key=bool(raw.get("primary_key", raw.get("is_primary_key", False))),
        is_identity=bool(raw.get("identity", raw.get("auto_increment", raw.get("is_identity", False)))),
        is_generated=bool(raw.get("generated", raw.get("is_generated", False))),
        is_unique=bool(raw.get("unique", raw.get("is_unique", False))),
        max_length=raw.get("max_length"),
        numeric_precision=raw.get("precision", raw.get("numeric_precision")),
        numeric_scale=raw.get("scale", raw.get("numeric_scale")),
        enum_values=[str(v) for v in enum_values],
        default_value=raw.get("default"),
    )


def _fk_from_reference(column: str, reference: str) -> ForeignKeySchema:
    table, _, ref_col = str(reference).partition(".")
    if not table:
        raise SchemaError(f"Invalid reference for column {column}: {reference!r}")
    return ForeignKeySchema(column=column, referenced_table=table, referenced_column=ref_col or "id")


# ---------------------------------------------------------------------
# DDL parsing helpers
# ---------------------------------------------------------------------

def _identifier_names(expressions) -> List[str]:
    names = []
    for e in expressions or []:
        while isinstance(e, exp.Ordered):
            e = e.this
        names.append(e.name)
    return names


def _reference_target(ref: exp.Expression) -> tuple:
    target = ref.this
    if isinstance(target, exp.Schema):
        table = target.this.name
        cols = _identifier_names(target.expressions)
    else:
        table = target.name
        cols = []
    return table, cols


def _table_from_create(create: exp.Create, read: Optional[str]) -> Optional[TableSchema]:
    schema = create.this
    if not isinstance(schema, exp.Schema):
        return None
    table_name = schema.this.name
    columns: List[ColumnSchema] = []
    foreign_keys: List[ForeignKeySchema] = []
    table_pks: List[str] = []
    table_uniques: List[str] = []

    for item in schema.expressions:
        if isinstance(item, exp.ColumnDef):
            columns.append(_column_from_def(item, read, foreign_keys))
            continue

        inner = item.expressions if isinstance(item, exp.Constraint) else [item]
        for node in inner:
            if isinstance(node, exp.PrimaryKey):
                table_pks.extend(_identifier_names(node.expressions))
            elif isinstance(node, exp.ForeignKey):
                local_cols = _identifier_names(node.expressions)
                reference = node.args.get("reference")
                if reference is None:
                    continue
                ref_table, ref_cols = _reference_target(reference)
                for pos, col in enumerate(local_cols):
                    ref_col = ref_cols[pos] if pos < len(ref_cols) else "id"
                    foreign_keys.append(ForeignKeySchema(
                        column=col,
                        referenced_table=ref_table,
                        referenced_column=ref_col,
                        name=item.name if isinstance(item, exp.Constraint) else None,
                    ))
            elif type(node).__name__ in ("UniqueColumnConstraint", "Unique"):
                table_uniques.extend(_identifier_names(getattr(node.this, "expressions", None)))

    for col in columns:
        if col.name.lower() in {p.lower() for p in table_pks}:
            col.is_primary_key = True
            col.nullable = False
        if len(table_uniques) == 1 and col.name.lower() == table_uniques[0].lower():
            col.is_unique = True

    return TableSchema(name=table_name, columns=columns, foreign_keys=foreign_keys)


def _column_from_def(coldef: exp.ColumnDef, read: Optional[str], fks: List[ForeignKeySchema]) -> ColumnSchema:
    kind = coldef.args.get("kind")
    data_type = kind.sql(dialect=read) if kind is not None else "varchar"
    col = ColumnSchema(name=coldef.name, data_type=data_type)

    for constraint in coldef.args.get("constraints") or []:
        ckind = constraint.args.get("kind") if isinstance(constraint, exp.ColumnConstraint) else constraint
        kind_name = type(ckind).__name__
        if kind_name == "PrimaryKeyColumnConstraint":
            col.is_primary_key = True
            col.nullable = False
        elif kind_name == "NotNullColumnConstraint":
            col.nullable = bool(ckind.args.get("allow_null"))
        elif kind_name == "AutoIncrementColumnConstraint":
            col.is_identity = True
        elif kind_name == "GeneratedAsIdentityColumnConstraint":
            # GENERATED ... AS IDENTITY vs GENERATED ALWAYS AS (expr)
            if ckind.args.get("expression") is not None:
                col.is_generated = True
            else:
                col.is_identity = True
        elif kind_name in ("ComputedColumnConstraint", "GeneratedAsRowColumnConstraint"):
            col.is_generated = True
        elif kind_name == "UniqueColumnConstraint":
            col.is_unique = True
        elif kind_name == "DefaultColumnConstraint":
            col.default_value = ckind.this.sql(dialect=read) if ckind.this is not None else None
        elif kind_name == "Reference":
            ref_table, ref_cols = _reference_target(ckind)
            fks.append(ForeignKeySchema(
                column=col.name,
                referenced_table=ref_table,
                referenced_column=ref_cols[0] if ref_cols else "id",
            ))

    if _base_type(data_type) in ("serial", "bigserial", "smallserial"):
        col.is_identity = True
    return col


# ---------------------------------------------------------------------
# Generation artifacts
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class InsertStatement:
    """A rendered INSERT; priority is the table's FK count."""

    table_name: str
    sql_text: str
    priority: int = 0


class Severity(str, Enum):
    """Violation severity."""

    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


@dataclass
class Violation:
    """A single failed check."""

    kind: str
    table: str
    column: str
    expected: str
    actual: str
    severity: Severity = Severity.MAJOR
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "table": self.table,
            "column": self.column,
            "expected": self.expected,
            "actual": self.actual,
            "severity": self.severity.value,
            "message": self.message,
        }


@dataclass
class ValidationReport:
    """Scored result of validating emitted statements."""

    total_checks: int = 0
    passed_checks: int = 0
    violations: List[Violation] = field(default_factory=list)
    schema_violations: List[Violation] = field(default_factory=list)
    below_threshold: bool = False

    @property
    def pass_rate(self) -> float:
        if self.total_checks == 0:
            return 100.0
        return self.passed_checks / self.total_checks * 100.0

    @property
    def all_passed(self) -> bool:
        return self.passed_checks == self.total_checks

    def is_acceptable(self, min_pass_rate: float) -> bool:
        return self.all_passed or self.pass_rate >= min_pass_rate

    def record(self, passed: bool, violation: Optional[Violation] = None) -> None:
        self.total_checks += 1
        if passed:
            self.passed_checks += 1
        elif violation is not None:
            self.violations.append(violation)

    def violations_by_severity(self, severity: Severity) -> List[Violation]:
        return [v for v in self.violations if v.severity == severity]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_checks": self.total_checks,
            "passed_checks": self.passed_checks,
            "pass_rate": round(self.pass_rate, 2),
            "below_threshold": self.below_threshold,
            "violations": [v.to_dict() for v in self.violations],
            "schema_violations": [v.to_dict() for v in self.schema_violations],
        }
