"""Regex constraint passes for SQL that sqlglot cannot parse.

Each constraint family is an independent pass over comment-stripped,
whitespace-collapsed text. For every family an aliased pattern
(``alias.column <op> value``) runs before a bare pattern
(``column <op> value``); a bare match is skipped when the same column was
already captured with an alias.
"""

import re
from typing import Callable, List, Optional, Set, Tuple

from ..coercion import is_number, parse_datetime
from .models import (
    BetweenConstraint,
    BooleanConstraint,
    DateConstraint,
    DateKind,
    ExistsConstraint,
    InClauseConstraint,
    InKind,
    JoinConstraint,
    LikeKind,
    LikePattern,
    NullConstraint,
    ValueKind,
    WhereConstraint,
)

RESERVED_WORDS = {
    "NOW", "NULL", "AND", "OR", "NOT", "IN", "EXISTS", "BETWEEN", "LIKE", "IS",
    "SELECT", "INTERVAL", "CURRENT_DATE", "CURRENT_TIMESTAMP", "CURRENT_TIME",
    "CURDATE", "CURTIME", "SYSDATE", "SYSTIMESTAMP", "GETDATE", "DATE_ADD",
    "DATE_SUB", "LOCALTIMESTAMP",
}

MIRRORED_OPERATORS = {">=": "<=", "<=": ">=", ">": "<", "<": ">", "=": "="}

_FLAGS = re.IGNORECASE


def _value(name: str) -> str:
    """Literal sub-pattern: single-quoted, double-quoted or bare token."""
    return (
        rf"(?:'(?P<{name}_sq>(?:[^']|'')*)'"
        rf"|\"(?P<{name}_dq>[^\"]*)\""
        rf"|(?P<{name}_raw>[^'\";\s\)(,<>=!]+))"
    )


def _read_value(match: re.Match, name: str) -> Optional[str]:
    sq = match.group(f"{name}_sq")
    if sq is not None:
        return sq.replace("''", "'")
    dq = match.group(f"{name}_dq")
    if dq is not None:
        return dq
    return match.group(f"{name}_raw")


def _is_quoted(match: re.Match, name: str) -> bool:
    return match.group(f"{name}_raw") is None


def _pair(body: str) -> Tuple[re.Pattern, re.Pattern]:
    """Compile the aliased and bare variants of a column-led pattern."""
    aliased = re.compile(rf"(?P<alias>\w+)\.(?P<column>\w+){body}", _FLAGS)
    bare = re.compile(rf"\b(?P<column>\w+){body}", _FLAGS)
    return aliased, bare


_OP = r"\s*(?P<op>>=|<=|>|<)\s*"

_EQUALITY = _pair(r"\s*=\s*" + _value("val"))
_COMPARISON = _pair(_OP + _value("val"))
_LIKE = _pair(r"\s+LIKE\s+(?:'(?P<pat_sq>(?:[^']|'')*)'|\"(?P<pat_dq>[^\"]*)\")")
_BETWEEN = _pair(r"\s+BETWEEN\s+" + _value("lo") + r"\s+AND\s+" + _value("hi"))
_IN = _pair(r"\s+IN\s*\(\s*(?P<content>[^)]+?)\s*\)")
_NULL = _pair(r"\s+IS\s+(?P<neg>NOT\s+)?NULL\b")
# 0.5 and 10 are numbers, not boolean literals
_BOOLEAN = _pair(r"\s*=\s*(?P<lit>TRUE|FALSE|0|1)\b(?![.\d])")
_YEAR = (
    re.compile(r"YEAR\s*\(\s*(?P<alias>\w+)\.(?P<column>\w+)\s*\)\s*=\s*(?P<year>\d{4})\b", _FLAGS),
    re.compile(r"YEAR\s*\(\s*(?P<column>\w+)\s*\)\s*=\s*(?P<year>\d{4})\b", _FLAGS),
)
_EXTRACT_YEAR = (
    re.compile(
        r"EXTRACT\s*\(\s*YEAR\s+FROM\s+(?P<alias>\w+)\.(?P<column>\w+)\s*\)\s*=\s*(?P<year>\d{4})\b",
        _FLAGS,
    ),
    re.compile(r"EXTRACT\s*\(\s*YEAR\s+FROM\s+(?P<column>\w+)\s*\)\s*=\s*(?P<year>\d{4})\b", _FLAGS),
)

_NOW = r"(?:NOW\s*\(\s*\)|CURDATE\s*\(\s*\)|SYSDATE(?:\s*\(\s*\))?|CURRENT_DATE(?:\s*\(\s*\))?|CURRENT_TIMESTAMP(?:\s*\(\s*\))?)"
_DATE_SHIFT = (
    rf"DATE_(?P<fn>ADD|SUB)\s*\(\s*{_NOW}\s*,\s*INTERVAL\s+'?(?P<amount>\d+)'?\s+"
    rf"(?P<unit>DAY|MONTH|YEAR)S?\s*\)"
)
_DATE_INTERVAL = _pair(r"\s*(?P<op>>=|<=|>|<|=)\s*" + _DATE_SHIFT)
_DATE_INTERVAL_REVERSED = (
    re.compile(
        _DATE_SHIFT + r"\s*(?P<op>>=|<=|>|<|=)\s*(?P<alias>\w+)\.(?P<column>\w+)\b", _FLAGS
    ),
    re.compile(_DATE_SHIFT + r"\s*(?P<op>>=|<=|>|<|=)\s*(?P<column>\w+)\b(?!\.)", _FLAGS),
)

_WHERE_CLAUSE = re.compile(
    r"\bWHERE\s+(.*?)(?:\s+(?:ORDER\s+BY|GROUP\s+BY|HAVING|LIMIT)\b|$)", _FLAGS | re.DOTALL
)
_JOIN = re.compile(
    r"(?:INNER\s+|LEFT\s+|RIGHT\s+|FULL\s+|OUTER\s+|CROSS\s+)*JOIN\s+(?P<table>\w+)"
    r"(?:\s+(?:AS\s+)?(?!ON\b)(?P<alias>\w+))?\s+ON\s+(?P<on>[^()]+?)"
    r"(?=\s+(?:INNER|LEFT|RIGHT|FULL|OUTER|CROSS|JOIN|WHERE|ORDER|GROUP|HAVING|LIMIT)\b|$)",
    _FLAGS,
)
_JOIN_EQUALITY = re.compile(r"(\w+)\.(\w+)\s*=\s*(\w+)\.(\w+)")
_JOIN_FILTER = re.compile(
    r"\bAND\s+(?P<alias>\w+)\.(?P<column>\w+)\s*(?P<op>>=|<=|=|>|<)\s*" + _value("val"), _FLAGS
)
_IN_VALUE = re.compile(r"'((?:[^']|'')*)'|\"([^\"]*)\"|([^,\s]+)")
_NOT_EXISTS = re.compile(r"\bNOT\s+EXISTS\s*\(\s*([^()]+(?:\([^()]*\)[^()]*)*)\s*\)", _FLAGS)
_EXISTS = re.compile(r"\bEXISTS\s*\(\s*([^()]+(?:\([^()]*\)[^()]*)*)\s*\)", _FLAGS)
_NOT_EXISTS_PLACEHOLDER = "__NOT_EXISTS_PLACEHOLDER_{}__"


def is_reserved(token: str) -> bool:
    return token.upper() in RESERVED_WORDS


def clean_sql(sql: str) -> str:
    """Strip line/block comments and collapse whitespace."""
    text = re.sub(r"--[^\r\n]*", "", sql or "")
    text = re.sub(r"/\*[\s\S]*?\*/", "", text)
    return re.sub(r"\s+", " ", text).strip()


def where_clause(clean: str) -> str:
    match = _WHERE_CLAUSE.search(clean)
    return match.group(1).strip() if match else ""


def value_kind(low: str, high: str) -> ValueKind:
    if is_number(low) and is_number(high):
        return ValueKind.NUMERIC
    if parse_datetime(low) and parse_datetime(high):
        return ValueKind.DATE
    return ValueKind.STRING


def like_pattern(alias: str, column: str, pattern: str, source_text: str) -> Optional[LikePattern]:
    """LikePattern for ``pattern``, or None when it is nothing but wildcards."""
    required = pattern.replace("%", "").replace("_", "").strip()
    if not required:
        return None
    return LikePattern(
        table_alias=alias,
        column=column,
        pattern=pattern,
        required_substring=required,
        like_kind=LikeKind.from_pattern(pattern),
        source_text=source_text,
    )


def _followed_by_call(text: str, match: re.Match) -> bool:
    rest = text[match.end():].lstrip()
    return rest.startswith("(")


def _usable_literal(value: Optional[str], quoted: bool) -> bool:
    if value is None:
        return False
    if quoted:
        return True
    if not value or is_reserved(value):
        return False
    # alias.column on the right-hand side is a column comparison, not a literal
    return "." not in value or is_number(value)


class PatternScanner:
    """Nine regex passes over cleaned SQL text."""

    def __init__(self, clean: str):
        self.clean = clean
        self.where_text = where_clause(clean)

    def passes(self) -> List[Tuple[str, Callable[[], list]]]:
        return [
            ("where", self.where),
            ("joins", self.joins),
            ("likes", self.likes),
            ("betweens", self.betweens),
            ("in_clauses", self.in_clauses),
            ("null_checks", self.null_checks),
            ("exists", self.exists),
            ("dates", self.dates),
            ("booleans", self.booleans),
        ]

    @staticmethod
    def _scan(text: str, patterns: tuple, build: Callable[[str, re.Match], Optional[object]]) -> list:
        """Run the aliased pattern, then the bare one with duplicate suppression."""
        aliased, bare = patterns
        results = []
        captured: Set[str] = set()

        for match in aliased.finditer(text):
            if is_reserved(match.group("column")):
                continue
            item = build(match.group("alias"), match)
            if item is not None:
                results.append(item)
                captured.add(match.group("column").lower())

        for match in bare.finditer(text):
            column = match.group("column")
            start = match.start("column")
            if start > 0 and text[start - 1] == ".":
                continue
            if column.lower() in captured or is_reserved(column) or is_number(column):
                continue
            item = build("", match)
            if item is not None:
                results.append(item)
        return results

    def where(self) -> List[WhereConstraint]:
        where = self.where_text
        if not where:
            return []

        def build(alias: str, m: re.Match) -> Optional[WhereConstraint]:
            value = _read_value(m, "val")
            if not _usable_literal(value, _is_quoted(m, "val")) or _followed_by_call(where, m):
                return None
            operator = m.groupdict().get("op") or "="
            return WhereConstraint(alias, m.group("column"), operator, value, m.group(0))

        return self._scan(where, _EQUALITY, build) + self._scan(where, _COMPARISON, build)

    def joins(self) -> List[JoinConstraint]:
        results = []
        for m in _JOIN.finditer(self.clean):
            table = m.group("table")
            on_clause = m.group("on")

            rel = _JOIN_EQUALITY.search(on_clause)
            if rel:
                results.append(JoinConstraint(
                    table_alias=rel.group(1),
                    column=rel.group(2),
                    right_alias=rel.group(3),
                    right_column=rel.group(4),
                    right_table=table,
                    source_text=rel.group(0),
                ))

            for extra in _JOIN_FILTER.finditer(on_clause):
                value = _read_value(extra, "val")
                if not _usable_literal(value, _is_quoted(extra, "val")):
                    continue
                results.append(JoinConstraint(
                    table_alias=extra.group("alias"),
                    column=extra.group("column"),
                    right_table=table,
                    operator=extra.group("op"),
                    value=value,
                    source_text=extra.group(0),
                ))
        return results

    def likes(self) -> List[LikePattern]:
        def build(alias: str, m: re.Match) -> Optional[LikePattern]:
            sq = m.group("pat_sq")
            pattern = sq.replace("''", "'") if sq is not None else m.group("pat_dq")
            return like_pattern(alias, m.group("column"), pattern, m.group(0))

        return self._scan(self.clean, _LIKE, build)

    def betweens(self) -> List[BetweenConstraint]:
        def build(alias: str, m: re.Match) -> Optional[BetweenConstraint]:
            low = _read_value(m, "lo")
            high = _read_value(m, "hi")
            if not _usable_literal(low, _is_quoted(m, "lo")) or not _usable_literal(high, _is_quoted(m, "hi")):
                return None
            return BetweenConstraint(alias, m.group("column"), low, high, value_kind(low, high), m.group(0))

        return self._scan(self.clean, _BETWEEN, build)

    def in_clauses(self) -> List[InClauseConstraint]:
        def build(alias: str, m: re.Match) -> Optional[InClauseConstraint]:
            content = m.group("content").strip()
            column = m.group("column")
            if content.upper().startswith("SELECT"):
                return InClauseConstraint(alias, column, InKind.SUBQUERY, subquery=content, source_text=m.group(0))

            values = []
            for vm in _IN_VALUE.finditer(content):
                if vm.group(1) is not None:
                    value = vm.group(1).replace("''", "'")
                elif vm.group(2) is not None:
                    value = vm.group(2)
                else:
                    value = vm.group(3)
                if value.strip():
                    values.append(value.strip())
            if not values:
                return None
            kind = InKind.NUMERIC_LIST if all(is_number(v) for v in values) else InKind.STRING_LIST
            return InClauseConstraint(alias, column, kind, values=tuple(values), source_text=m.group(0))

        return self._scan(self.clean, _IN, build)

    def null_checks(self) -> List[NullConstraint]:
        def build(alias: str, m: re.Match) -> NullConstraint:
            return NullConstraint(alias, m.group("column"), m.group("neg") is None, m.group(0))

        return self._scan(self.clean, _NULL, build)

    def exists(self) -> List[ExistsConstraint]:
        results = []
        masked = self.clean
        for counter, m in enumerate(_NOT_EXISTS.finditer(self.clean)):
            results.append(ExistsConstraint(is_exists=False, subquery=m.group(1).strip(), source_text=m.group(0)))
            masked = masked.replace(m.group(0), _NOT_EXISTS_PLACEHOLDER.format(counter), 1)

        for m in _EXISTS.finditer(masked):
            subquery = m.group(1).strip()
            if "__NOT_EXISTS_PLACEHOLDER_" in subquery:
                continue
            results.append(ExistsConstraint(is_exists=True, subquery=subquery, source_text=m.group(0)))
        return results

    def dates(self) -> List[DateConstraint]:
        def build_year(alias: str, m: re.Match) -> DateConstraint:
            return DateConstraint(alias, m.group("column"), DateKind.YEAR_EQUALS, "=", m.group("year"), m.group(0))

        def interval_value(m: re.Match) -> str:
            amount = int(m.group("amount"))
            if m.group("fn").upper() == "SUB":
                amount = -amount
            return f"{amount}_{m.group('unit').upper()}"

        def build_interval(alias: str, m: re.Match) -> DateConstraint:
            return DateConstraint(
                alias, m.group("column"), DateKind.DATE_INTERVAL, m.group("op"), interval_value(m), m.group(0)
            )

        def build_reversed(alias: str, m: re.Match) -> DateConstraint:
            return DateConstraint(
                alias,
                m.group("column"),
                DateKind.DATE_INTERVAL,
                MIRRORED_OPERATORS[m.group("op")],
                interval_value(m),
                m.group(0),
            )

        return (
            self._scan(self.clean, _YEAR, build_year)
            + self._scan(self.clean, _EXTRACT_YEAR, build_year)
            + self._scan(self.clean, _DATE_INTERVAL, build_interval)
            + self._scan_reversed(build_reversed)
        )

    def _scan_reversed(self, build) -> List[DateConstraint]:
        aliased, bare = _DATE_INTERVAL_REVERSED
        results = []
        captured = set()
        for m in aliased.finditer(self.clean):
            results.append(build(m.group("alias"), m))
            captured.add(m.group("column").lower())
        for m in bare.finditer(self.clean):
            column = m.group("column")
            if column.lower() in captured or is_reserved(column):
                continue
            results.append(build("", m))
        return results

    def booleans(self) -> List[BooleanConstraint]:
        def build(alias: str, m: re.Match) -> BooleanConstraint:
            literal = m.group("lit")
            value = literal.upper() == "TRUE" or literal == "1"
            return BooleanConstraint(alias, m.group("column"), literal, value, m.group(0))

        return self._scan(self.clean, _BOOLEAN, build)
