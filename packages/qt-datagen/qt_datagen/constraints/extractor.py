"""Constraint extraction from raw SQL text.

The query is parsed with sqlglot and predicates are read off the AST:
comparisons against literals, LIKE, BETWEEN, IN, IS [NOT] NULL,
[NOT] EXISTS, YEAR()/EXTRACT(YEAR ...), DATE_ADD/DATE_SUB shifts from the
current date, boolean literals, and JOIN ... ON relationships together
with any literal filters in the ON clause. Text sqlglot rejects goes
through the regex passes in ``patterns``.

Within each family an aliased column wins: a bare-column constraint is
dropped when the same column was already captured with an alias.
Extraction never raises.
"""

import logging
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import sqlglot
from sqlglot import exp

from ..coercion import is_number
from .aliases import build_alias_map
from .models import (
    BetweenConstraint,
    BooleanConstraint,
    ConstraintSet,
    DateConstraint,
    DateKind,
    ExistsConstraint,
    InClauseConstraint,
    InKind,
    JoinConstraint,
    LikePattern,
    NullConstraint,
    WhereConstraint,
)
from .patterns import MIRRORED_OPERATORS, PatternScanner, clean_sql, like_pattern, value_kind, where_clause

logger = logging.getLogger(__name__)

# Predicate syntax is read as MySQL unless the caller names a dialect
DEFAULT_READ_DIALECT = "mysql"

_COMPARISONS = (
    (exp.EQ, "="),
    (exp.GTE, ">="),
    (exp.LTE, "<="),
    (exp.GT, ">"),
    (exp.LT, "<"),
)
_COMPARISON_TYPES = tuple(cls for cls, _ in _COMPARISONS)

_NOW_FUNCTIONS = (exp.CurrentDate, exp.CurrentTimestamp, exp.CurrentDatetime, exp.CurrentTime)
_NOW_NAMES = {
    "NOW", "CURDATE", "SYSDATE", "SYSTIMESTAMP", "GETDATE", "LOCALTIMESTAMP",
    "CURRENT_DATE", "CURRENT_TIMESTAMP",
}
_INTERVAL_UNITS = {"DAY", "MONTH", "YEAR"}

__all__ = ["ConstraintExtractor", "clean_sql", "literal_text", "where_clause"]


# ---------------------------------------------------------------------
# Operand helpers
# ---------------------------------------------------------------------

def literal_text(node: Optional[exp.Expression]) -> Optional[str]:
    """Text of a literal operand, or None when ``node`` is not a literal.

    Handles plain literals, TRUE/FALSE, negative numbers, typed literals
    (``DATE '2024-01-01'``, ``CAST('...' AS DATE)``) and Oracle
    ``TO_DATE('...', fmt)``.
    """
    if isinstance(node, exp.Paren):
        return literal_text(node.this)
    if isinstance(node, exp.Literal):
        return node.this
    if isinstance(node, exp.Boolean):
        return "TRUE" if node.this else "FALSE"
    if isinstance(node, exp.Neg) and isinstance(node.this, exp.Literal) and node.this.is_number:
        return f"-{node.this.this}"
    if isinstance(node, (exp.Cast, exp.StrToDate, exp.StrToTime)) and isinstance(node.this, exp.Literal):
        return node.this.this
    return None


def _column(node: Optional[exp.Expression]) -> Optional[exp.Column]:
    if isinstance(node, exp.Paren):
        node = node.this
    if isinstance(node, exp.Column) and node.name and not isinstance(node.this, exp.Star):
        return node
    return None


def _operator(node: exp.Expression) -> str:
    for cls, op in _COMPARISONS:
        if isinstance(node, cls):
            return op
    raise TypeError(f"Not a comparison: {type(node).__name__}")


def _split_comparison(node: exp.Expression) -> Optional[Tuple[exp.Column, exp.Expression, str]]:
    """(column, other operand, operator as seen from the column)."""
    op = _operator(node)
    column = _column(node.left)
    if column is not None:
        return column, node.right, op
    column = _column(node.right)
    if column is not None:
        return column, node.left, MIRRORED_OPERATORS[op]
    return None


def _is_negated(node: exp.Expression) -> bool:
    return isinstance(node.parent, exp.Not)


def _boolean_literal(node: exp.Expression) -> Optional[Tuple[str, bool]]:
    if isinstance(node, exp.Boolean):
        return ("TRUE", True) if node.this else ("FALSE", False)
    if isinstance(node, exp.Literal) and not node.is_string and node.this in ("0", "1"):
        return node.this, node.this == "1"
    return None


def _is_now(node: Optional[exp.Expression]) -> bool:
    if isinstance(node, _NOW_FUNCTIONS):
        return True
    return isinstance(node, (exp.Anonymous, exp.Column)) and node.name.upper() in _NOW_NAMES


def _date_shift(node: Optional[exp.Expression]) -> Optional[Tuple[int, str]]:
    """(signed amount, unit) for ``DATE_ADD(NOW(), INTERVAL n UNIT)`` and friends."""
    if isinstance(node, (exp.DateAdd, exp.DateSub)):
        anchor, amount, unit = node.this, node.expression, node.args.get("unit")
        if isinstance(amount, exp.Interval):
            amount, unit = amount.this, amount.args.get("unit") or unit
        sign = -1 if isinstance(node, exp.DateSub) else 1
    elif isinstance(node, (exp.Add, exp.Sub)) and isinstance(node.expression, exp.Interval):
        anchor, amount, unit = node.this, node.expression.this, node.expression.args.get("unit")
        sign = -1 if isinstance(node, exp.Sub) else 1
    else:
        return None

    if not _is_now(anchor):
        return None
    text = literal_text(amount)
    if text is None or not text.strip().isdigit():
        return None
    unit_name = unit.name.upper() if unit is not None else "DAY"
    if unit_name.endswith("S"):
        unit_name = unit_name[:-1]
    if unit_name not in _INTERVAL_UNITS:
        return None
    return sign * int(text), unit_name


def _year_column(node: Optional[exp.Expression]) -> Optional[exp.Column]:
    """Column inside ``YEAR(col)`` or ``EXTRACT(YEAR FROM col)``."""
    if isinstance(node, exp.Year):
        return _column(node.this)
    if isinstance(node, exp.Extract) and node.this is not None and node.this.name.upper() == "YEAR":
        return _column(node.expression)
    if isinstance(node, exp.Anonymous) and node.name.upper() == "YEAR" and len(node.expressions) == 1:
        return _column(node.expressions[0])
    return None


def _unwrap_query(node: exp.Expression) -> exp.Expression:
    while isinstance(node, (exp.Subquery, exp.Paren)):
        node = node.this
    return node


def _alias_first(items: Sequence) -> list:
    """Aliased constraints first; bare ones whose column was aliased are dropped."""
    aliased = [c for c in items if c.table_alias]
    captured = {c.column.lower() for c in aliased}
    bare = [c for c in items if not c.table_alias and c.column.lower() not in captured]
    return aliased + bare


# ---------------------------------------------------------------------
# AST passes
# ---------------------------------------------------------------------

class QueryWalker:
    """Nine passes over parsed statements, mirroring ``PatternScanner``."""

    def __init__(self, trees: Sequence[exp.Expression], dialect: str):
        self.trees = trees
        self.dialect = dialect

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

    def _nodes(self, *types) -> Iterator[exp.Expression]:
        for tree in self.trees:
            yield from tree.find_all(*types, bfs=False)

    def _sql(self, node: exp.Expression) -> str:
        return node.sql(dialect=self.dialect)

    def where(self) -> List[WhereConstraint]:
        results = []
        for node in self._nodes(*_COMPARISON_TYPES):
            if not isinstance(node.find_ancestor(exp.Where, exp.Join), exp.Where):
                continue
            split = _split_comparison(node)
            if split is None:
                continue
            column, operand, op = split
            value = literal_text(operand)
            if value is None:
                continue
            results.append(WhereConstraint(column.table, column.name, op, value, self._sql(node)))
        return _alias_first(results)

    def joins(self) -> List[JoinConstraint]:
        results = []
        for join in self._nodes(exp.Join):
            on = join.args.get("on")
            table = join.this
            if on is None or not isinstance(table, exp.Table):
                continue

            relationships, filters = [], []
            for node in on.find_all(*_COMPARISON_TYPES, bfs=False):
                if node.find_ancestor(exp.Join) is not join:
                    continue
                left, right = _column(node.left), _column(node.right)
                if left is not None and right is not None:
                    if isinstance(node, exp.EQ) and left.table and right.table:
                        relationships.append(JoinConstraint(
                            table_alias=left.table,
                            column=left.name,
                            right_alias=right.table,
                            right_column=right.name,
                            right_table=table.name,
                            source_text=self._sql(node),
                        ))
                    continue

                split = _split_comparison(node)
                if split is None:
                    continue
                column, operand, op = split
                value = literal_text(operand)
                if value is None or not column.table:
                    continue
                filters.append(JoinConstraint(
                    table_alias=column.table,
                    column=column.name,
                    right_table=table.name,
                    operator=op,
                    value=value,
                    source_text=self._sql(node),
                ))
                logger.debug("JOIN filter on %s: %s", table.name, self._sql(node))
            results.extend(relationships + filters)
        return results

    def likes(self) -> List[LikePattern]:
        results = []
        for node in self._nodes(exp.Like, exp.ILike):
            if _is_negated(node):
                continue
            column = _column(node.this)
            pattern = node.expression
            if column is None or not isinstance(pattern, exp.Literal) or not pattern.is_string:
                continue
            like = like_pattern(column.table, column.name, pattern.this, self._sql(node))
            if like is not None:
                results.append(like)
        return _alias_first(results)

    def betweens(self) -> List[BetweenConstraint]:
        results = []
        for node in self._nodes(exp.Between):
            if _is_negated(node):
                continue
            column = _column(node.this)
            low = literal_text(node.args.get("low"))
            high = literal_text(node.args.get("high"))
            if column is None or low is None or high is None:
                continue
            results.append(BetweenConstraint(
                column.table, column.name, low, high, value_kind(low, high), self._sql(node)
            ))
        return _alias_first(results)

    def in_clauses(self) -> List[InClauseConstraint]:
        results = []
        for node in self._nodes(exp.In):
            if _is_negated(node):
                continue
            column = _column(node.this)
            if column is None:
                continue

            query = node.args.get("query")
            if query is None and len(node.expressions) == 1 and isinstance(
                node.expressions[0], (exp.Subquery, exp.Select, exp.Union)
            ):
                query = node.expressions[0]
            if query is not None:
                results.append(InClauseConstraint(
                    column.table, column.name, InKind.SUBQUERY,
                    subquery=self._sql(_unwrap_query(query)), source_text=self._sql(node),
                ))
                continue

            values = [text for text in (literal_text(v) for v in node.expressions) if text is not None]
            if not values:
                continue
            kind = InKind.NUMERIC_LIST if all(is_number(v) for v in values) else InKind.STRING_LIST
            results.append(InClauseConstraint(
                column.table, column.name, kind, values=tuple(values), source_text=self._sql(node)
            ))
        return _alias_first(results)

    def null_checks(self) -> List[NullConstraint]:
        results = []
        for node in self._nodes(exp.Is):
            column = _column(node.this)
            if column is None or not isinstance(node.expression, exp.Null):
                continue
            negated = _is_negated(node)
            results.append(NullConstraint(
                column.table, column.name, not negated, self._sql(node.parent if negated else node)
            ))
        return _alias_first(results)

    def exists(self) -> List[ExistsConstraint]:
        results = []
        for node in self._nodes(exp.Exists):
            negated = _is_negated(node)
            results.append(ExistsConstraint(
                is_exists=not negated,
                subquery=self._sql(_unwrap_query(node.this)),
                source_text=self._sql(node.parent if negated else node),
            ))
        return results

    def dates(self) -> List[DateConstraint]:
        years, intervals = [], []
        for node in self._nodes(*_COMPARISON_TYPES):
            op = _operator(node)
            sides = ((node.left, node.right, op), (node.right, node.left, MIRRORED_OPERATORS[op]))

            if op == "=":
                for side, other, _ in sides:
                    column = _year_column(side)
                    year = literal_text(other)
                    if column is not None and year and year.isdigit() and len(year) == 4:
                        years.append(DateConstraint(
                            column.table, column.name, DateKind.YEAR_EQUALS, "=", year, self._sql(node)
                        ))
                        break

            for side, other, side_op in sides:
                column = _column(side)
                shift = _date_shift(other)
                if column is not None and shift is not None:
                    amount, unit = shift
                    intervals.append(DateConstraint(
                        column.table, column.name, DateKind.DATE_INTERVAL, side_op,
                        f"{amount}_{unit}", self._sql(node),
                    ))
                    break
        return _alias_first(years) + _alias_first(intervals)

    def booleans(self) -> List[BooleanConstraint]:
        results = []
        for node in self._nodes(exp.EQ):
            split = _split_comparison(node)
            if split is None:
                continue
            column, operand, _ = split
            literal = _boolean_literal(operand)
            if literal is None:
                continue
            results.append(BooleanConstraint(column.table, column.name, literal[0], literal[1], self._sql(node)))
        return _alias_first(results)


# ---------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------

class ConstraintExtractor:
    """Turn raw SQL text into a ConstraintSet.

    Example:
        >>> cs = ConstraintExtractor().extract(
        ...     "SELECT * FROM users u WHERE u.email LIKE '%test%' AND u.age >= 18")
        >>> cs.likes[0].required_substring
        'test'
    """

    def __init__(self, dialect: Optional[str] = None):
        self.dialect = dialect
        self.read = dialect or DEFAULT_READ_DIALECT

    def extract(self, sql: str) -> ConstraintSet:
        clean = clean_sql(sql)
        trees = self._parse(clean)
        if trees:
            passes = QueryWalker(trees, self.read).passes()
            source = "sqlglot"
        else:
            passes = PatternScanner(clean).passes()
            source = "patterns"

        found: Dict[str, list] = {}
        for name, run in passes:
            try:
                found[name] = run()
            except Exception as e:  # extraction never raises
                logger.debug("Constraint pass '%s' failed: %s", name, e, exc_info=True)
                found[name] = []

        try:
            alias_map = build_alias_map(clean, self.read)
        except Exception as e:
            logger.debug("Alias map extraction failed: %s", e, exc_info=True)
            alias_map = {}

        result = ConstraintSet(
            **{name: tuple(items) for name, items in found.items()},
            alias_map=alias_map,
        )
        logger.info(
            "Extracted %d constraints via %s (%s)",
            result.total_count,
            source,
            ", ".join(f"{k}={v}" for k, v in result.summary().items() if v),
        )
        return result

    def _parse(self, clean: str) -> List[exp.Expression]:
        """Parsed statements, or [] when sqlglot cannot read the text."""
        if not clean:
            return []
        try:
            parsed = sqlglot.parse(clean, read=self.read)
        except Exception as e:  # ParseError, TokenError, or a dialect builder rejecting its arguments
            logger.debug("sqlglot could not parse query, using pattern passes: %s", e)
            return []
        return [tree for tree in parsed if tree is not None and not isinstance(tree, exp.Command)]
