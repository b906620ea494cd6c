"""Score emitted INSERT statements against a ConstraintSet.

Statements are decoded with the same LiteralCodec that produced them.
Constraints are checked on the tables ``bind_constraints`` attaches them
to, the same bindings the generator filled. Each yields one check per
statement of a bound table, and a target column missing from the
statement counts as a failed check. EXISTS and IN-subquery constraints are not
row-checkable and contribute nothing.

Schema rules (NOT NULL, max length, enum membership, generated/identity
columns in the column list) are reported separately in
``schema_violations`` and do not move the pass rate.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..codec import LiteralCodec
from ..coercion import as_comparable, parse_bool, parse_datetime, parse_number
from ..constraints.aliases import resolve_alias
from ..constraints.binding import Bindings, bind_constraints
from ..constraints.models import (
    BetweenConstraint,
    BooleanConstraint,
    Constraint,
    ConstraintSet,
    DateConstraint,
    DateKind,
    ExistsConstraint,
    InClauseConstraint,
    InKind,
    JoinConstraint,
    LikePattern,
    NullConstraint,
    ValueKind,
    WhereConstraint,
    require_exhaustive,
)
from ..errors import CodecError
from ..schemas import InsertStatement, Record, SchemaCatalog, Severity, ValidationReport, Violation

logger = logging.getLogger(__name__)

_INTERVAL_DAYS = {"DAY": 1, "MONTH": 30, "YEAR": 365}

# Per-kind check method and the severity of its violations
_CHECKS = {
    WhereConstraint: ("_check_where", Severity.MAJOR),
    JoinConstraint: ("_check_join", Severity.CRITICAL),
    LikePattern: ("_check_like", Severity.CRITICAL),
    BetweenConstraint: ("_check_between", Severity.MAJOR),
    InClauseConstraint: ("_check_in", Severity.MAJOR),
    NullConstraint: ("_check_null", Severity.CRITICAL),
    ExistsConstraint: ("_check_exists", Severity.MINOR),
    DateConstraint: ("_check_date", Severity.MAJOR),
    BooleanConstraint: ("_check_boolean", Severity.CRITICAL),
}
require_exhaustive(_CHECKS, "ConstraintValidator")


def like_to_regex(pattern: str) -> re.Pattern:
    """Translate a SQL LIKE pattern to an anchored, case-insensitive regex."""
    parts = []
    for ch in pattern:
        if ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE | re.DOTALL)


def values_equal(actual: Any, expected: Any) -> bool:
    """SQL-ish equality between a decoded value and literal text."""
    if actual is None or expected is None:
        return False
    if isinstance(actual, bool):
        return parse_bool(expected) == actual

    if isinstance(actual, (date, datetime)):
        e_dt = parse_datetime(expected)
        if e_dt is None:
            return False
        a_dt = as_comparable(actual)
        if isinstance(actual, datetime) and (e_dt.hour or e_dt.minute or e_dt.second):
            return a_dt == e_dt
        return a_dt.date() == e_dt.date()

    a_num, e_num = parse_number(actual), parse_number(expected)
    if a_num is not None and e_num is not None:
        return abs(float(a_num) - float(e_num)) < 1e-9
    if isinstance(actual, int) and actual in (0, 1):
        flag = parse_bool(expected)
        return flag is not None and flag == bool(actual)
    return str(actual).lower() == str(expected).lower()


def compare_values(actual: Any, operator: str, expected: Any) -> bool:
    if operator == "=":
        return values_equal(actual, expected)
    if actual is None:
        return False
    a, b = as_comparable(actual), as_comparable(expected)
    if type(a) is not type(b) and not (isinstance(a, (int, float)) and isinstance(b, (int, float))):
        a, b = str(actual), str(expected)
    try:
        if operator == ">":
            return a > b
        if operator == ">=":
            return a >= b
        if operator == "<":
            return a < b
        if operator == "<=":
            return a <= b
    except TypeError:
        return False
    return False


def _lookup(record: Record, column: str) -> Tuple[bool, Any]:
    wanted = column.lower()
    for key, value in record.items():
        if key.lower() == wanted:
            return True, value
    return False, None


class ConstraintValidator:
    """Decode statements and check them against a ConstraintSet."""

    def __init__(self, catalog: SchemaCatalog, codec: Optional[LiteralCodec] = None):
        self.catalog = catalog
        self.codec = codec or LiteralCodec(catalog=catalog)
        if self.codec.catalog is None:
            self.codec.catalog = catalog

    def validate(
        self,
        statements: Sequence[InsertStatement],
        constraints: ConstraintSet,
        tables: Optional[Sequence[str]] = None,
        alias_map: Optional[Mapping[str, str]] = None,
        bindings: Optional[Bindings] = None,
    ) -> ValidationReport:
        """Score ``statements``.

        ``tables`` fixes the alias-resolution order (query tables first);
        it defaults to the order tables appear in ``statements``. Pass the
        generator's ``bindings`` to check exactly what was generated;
        otherwise they are computed here, treating tables named in
        ``alias_map`` as the query tables.
        """
        report = ValidationReport()
        decoded: List[Tuple[str, Record]] = []
        for stmt in statements:
            try:
                decoded.append(self.codec.decode(stmt.sql_text))
            except CodecError as e:
                report.record(False, Violation(
                    kind="decode", table=stmt.table_name, column="",
                    expected="decodable INSERT", actual=stmt.sql_text[:80],
                    severity=Severity.CRITICAL, message=str(e),
                ))

        if tables is None:
            tables = list(dict.fromkeys(name for name, _ in decoded))
        alias_map = dict(alias_map if alias_map is not None else constraints.alias_map)

        self._rows_by_table: Dict[str, List[Record]] = defaultdict(list)
        for name, record in decoded:
            self._rows_by_table[name.lower()].append(record)
        self._tables = list(tables)
        self._alias_map = alias_map

        if bindings is None:
            bindings = self._bind(constraints)
        bound: Dict[str, List[Constraint]] = defaultdict(list)
        for (table_key, _), bound_constraints in bindings.items():
            bound[table_key].extend(bound_constraints)

        for table_name, record in decoded:
            for constraint in bound.get(table_name.lower(), ()):
                self._check(constraint, table_name, record, report)
            self._check_schema(table_name, record, report)

        logger.info(
            "Validated %d statements: %d/%d checks passed (%.1f%%)",
            len(statements), report.passed_checks, report.total_checks, report.pass_rate,
        )
        return report

    # -----------------------------------------------------------------
    # Targeting
    # -----------------------------------------------------------------

    def _bind(self, constraints: ConstraintSet) -> Bindings:
        named = {t.lower() for t in self._alias_map.values()}
        query_tables = [t for t in self._tables if t.lower() in named] or self._tables
        return bind_constraints(constraints, self.catalog, query_tables, self._tables, self._alias_map)

    def _check(self, constraint: Constraint, table_name: str, record: Record, report: ValidationReport) -> None:
        method_name, severity = _CHECKS[type(constraint)]
        present, actual = _lookup(record, constraint.column)
        if not present:
            report.record(False, Violation(
                kind=constraint.kind.value, table=table_name, column=constraint.column,
                expected=constraint.source_text or "column present", actual="<missing>",
                severity=Severity.CRITICAL, message="target column not in INSERT",
            ))
            return

        outcome = getattr(self, method_name)(constraint, actual)
        if outcome is None:
            return
        passed, expected = outcome
        report.record(passed, None if passed else Violation(
            kind=constraint.kind.value, table=table_name, column=constraint.column,
            expected=expected, actual=repr(actual), severity=severity,
            message=constraint.source_text,
        ))

    # -----------------------------------------------------------------
    # Kind-specific checks: return (passed, expected) or None if not checkable
    # -----------------------------------------------------------------

    def _check_where(self, c: WhereConstraint, actual: Any):
        return compare_values(actual, c.operator, c.value), f"{c.operator} {c.value}"

    def _check_join(self, c: JoinConstraint, actual: Any):
        if c.is_filter:
            return compare_values(actual, c.operator, c.value), f"{c.operator} {c.value}"

        parent = resolve_alias(c.right_alias, self._tables, self._alias_map) if c.right_alias else c.right_table
        if not parent:
            return None
        parent_rows = self._rows_by_table.get(parent.lower(), [])
        keys = []
        for row in parent_rows:
            present, value = _lookup(row, c.right_column)
            if present:
                keys.append(value)
        if not keys:
            # Parent key is DB-assigned (identity): rows get 1..count in insert order
            keys = list(range(1, len(parent_rows) + 1))
        passed = any(values_equal(actual, k) for k in keys)
        return passed, f"existing {parent}.{c.right_column}"

    def _check_like(self, c: LikePattern, actual: Any):
        if actual is None:
            return False, f"LIKE '{c.pattern}'"
        return bool(like_to_regex(c.pattern).match(str(actual))), f"LIKE '{c.pattern}'"

    def _check_between(self, c: BetweenConstraint, actual: Any):
        expected = f"BETWEEN {c.min_value} AND {c.max_value}"
        if actual is None:
            return False, expected
        if c.value_kind == ValueKind.STRING:
            text = str(actual)
            return c.min_value <= text <= c.max_value, expected
        return compare_values(actual, ">=", c.min_value) and compare_values(actual, "<=", c.max_value), expected

    def _check_in(self, c: InClauseConstraint, actual: Any):
        if c.in_kind == InKind.SUBQUERY:
            return None
        return any(values_equal(actual, v) for v in c.values), f"IN ({', '.join(c.values)})"

    def _check_null(self, c: NullConstraint, actual: Any):
        if c.is_null:
            return actual is None, "IS NULL"
        return actual is not None, "IS NOT NULL"

    def _check_exists(self, c: ExistsConstraint, actual: Any):
        return None

    def _check_date(self, c: DateConstraint, actual: Any):
        moment = parse_datetime(actual)
        if c.date_kind == DateKind.YEAR_EQUALS:
            return moment is not None and moment.year == int(c.value), f"YEAR = {c.value}"

        amount, unit = c.interval
        target = datetime.now() + timedelta(days=amount * _INTERVAL_DAYS.get(unit, 1))
        expected = f"{c.operator} NOW() {'+' if amount >= 0 else '-'} {abs(amount)} {unit}"
        if moment is None:
            return False, expected
        if c.operator == "=":
            return moment.date() == target.date(), expected
        return compare_values(moment, c.operator, target), expected

    def _check_boolean(self, c: BooleanConstraint, actual: Any):
        flag = parse_bool(actual)
        return flag is not None and flag == c.boolean_value, f"= {c.literal_value}"

    # -----------------------------------------------------------------
    # Schema rules
    # -----------------------------------------------------------------

    def _check_schema(self, table_name: str, record: Record, report: ValidationReport) -> None:
        table = self.catalog.get(table_name)
        if table is None:
            return
        for column in table.columns:
            present, value = _lookup(record, column.name)
            if present and (column.is_generated or (column.is_identity and not self.codec.preserve_ids)):
                report.schema_violations.append(Violation(
                    kind="generated_column", table=table.name, column=column.name,
                    expected="absent from INSERT", actual=repr(value), severity=Severity.CRITICAL,
                ))
                continue
            if not present:
                continue
            if value is None:
                if not column.nullable:
                    report.schema_violations.append(Violation(
                        kind="not_null", table=table.name, column=column.name,
                        expected="NOT NULL", actual="NULL", severity=Severity.CRITICAL,
                    ))
                continue
            if column.max_length and isinstance(value, str) and len(value) > column.max_length:
                report.schema_violations.append(Violation(
                    kind="max_length", table=table.name, column=column.name,
                    expected=f"<= {column.max_length} chars", actual=f"{len(value)} chars",
                    severity=Severity.MAJOR,
                ))
            if column.enum_values and str(value) not in column.enum_values:
                report.schema_violations.append(Violation(
                    kind="enum", table=table.name, column=column.name,
                    expected=f"one of {column.enum_values}", actual=repr(value),
                    severity=Severity.CRITICAL,
                ))


def regeneration_hints(report: ValidationReport) -> List[Dict[str, Any]]:
    """Columns to regenerate, critical first, with what they must satisfy."""
    grouped: Dict[Tuple[str, str], List[Violation]] = defaultdict(list)
    for v in list(report.violations) + list(report.schema_violations):
        grouped[(v.table, v.column)].append(v)

    hints = []
    for (table, column), violations in grouped.items():
        critical = any(v.severity == Severity.CRITICAL for v in violations)
        hints.append({
            "table": table,
            "column": column,
            "priority": "high" if critical else "medium",
            "requirements": sorted({v.expected for v in violations}),
        })
    hints.sort(key=lambda h: (h["priority"] != "high", h["table"], h["column"]))
    return hints
