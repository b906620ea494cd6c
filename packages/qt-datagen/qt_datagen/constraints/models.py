"""Typed constraint kinds extracted from a SQL query.

``Constraint`` is a closed union of nine frozen dataclasses. Components
that act on constraints register one handler per variant and call
``require_exhaustive`` at import time, so adding a tenth kind fails fast
everywhere it has not been handled.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Iterator, List, Mapping, NoReturn, Optional, Tuple, Type, Union


class ConstraintKind(str, Enum):
    """Tag for each constraint variant."""

    WHERE = "where"
    JOIN = "join"
    LIKE = "like"
    BETWEEN = "between"
    IN_CLAUSE = "in"
    NULL_CHECK = "null"
    EXISTS = "exists"
    DATE = "date"
    BOOLEAN = "boolean"


class LikeKind(str, Enum):
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    EXACT = "exact"

    @classmethod
    def from_pattern(cls, pattern: str) -> "LikeKind":
        if pattern.startswith("%") and pattern.endswith("%") and len(pattern) > 1:
            return cls.CONTAINS
        if pattern.startswith("%"):
            return cls.ENDS_WITH
        if pattern.endswith("%"):
            return cls.STARTS_WITH
        return cls.EXACT


class ValueKind(str, Enum):
    NUMERIC = "numeric"
    DATE = "date"
    STRING = "string"


class InKind(str, Enum):
    NUMERIC_LIST = "numeric_list"
    STRING_LIST = "string_list"
    SUBQUERY = "subquery"


class DateKind(str, Enum):
    YEAR_EQUALS = "year_equals"
    DATE_INTERVAL = "date_interval"


COMPARISON_OPERATORS = ("=", ">", ">=", "<", "<=")


@dataclass(frozen=True)
class WhereConstraint:
    """``alias.column <op> value`` from the WHERE clause."""

    kind: ClassVar[ConstraintKind] = ConstraintKind.WHERE

    table_alias: str
    column: str
    operator: str
    value: str
    source_text: str = ""


@dataclass(frozen=True)
class JoinConstraint:
    """A JOIN relationship, or a filter smuggled into a JOIN's ON clause.

    Relationship shape: ``table_alias.column = right_alias.right_column``.
    Filter shape (``is_filter``): ``table_alias.column <operator> value``.
    """

    kind: ClassVar[ConstraintKind] = ConstraintKind.JOIN

    table_alias: str
    column: str
    right_alias: str = ""
    right_column: str = ""
    right_table: str = ""
    operator: str = "="
    value: Optional[str] = None
    source_text: str = ""

    @property
    def is_filter(self) -> bool:
        return self.value is not None


@dataclass(frozen=True)
class LikePattern:
    kind: ClassVar[ConstraintKind] = ConstraintKind.LIKE

    table_alias: str
    column: str
    pattern: str
    required_substring: str
    like_kind: LikeKind
    source_text: str = ""


@dataclass(frozen=True)
class BetweenConstraint:
    kind: ClassVar[ConstraintKind] = ConstraintKind.BETWEEN

    table_alias: str
    column: str
    min_value: str
    max_value: str
    value_kind: ValueKind
    source_text: str = ""


@dataclass(frozen=True)
class InClauseConstraint:
    kind: ClassVar[ConstraintKind] = ConstraintKind.IN_CLAUSE

    table_alias: str
    column: str
    in_kind: InKind
    values: Tuple[str, ...] = ()
    subquery: str = ""
    source_text: str = ""


@dataclass(frozen=True)
class NullConstraint:
    kind: ClassVar[ConstraintKind] = ConstraintKind.NULL_CHECK

    table_alias: str
    column: str
    is_null: bool
    source_text: str = ""


@dataclass(frozen=True)
class ExistsConstraint:
    """``[NOT] EXISTS (subquery)``; not bound to a single column."""

    kind: ClassVar[ConstraintKind] = ConstraintKind.EXISTS

    is_exists: bool
    subquery: str
    table_alias: str = ""
    column: str = ""
    source_text: str = ""


@dataclass(frozen=True)
class DateConstraint:
    """``YEAR(col) = yyyy`` or ``col <op> DATE_ADD(NOW(), INTERVAL n UNIT)``.

    For DATE_INTERVAL the value is stored as ``"<n>_<UNIT>"``, e.g. ``"30_DAY"``.
    """

    kind: ClassVar[ConstraintKind] = ConstraintKind.DATE

    table_alias: str
    column: str
    date_kind: DateKind
    operator: str
    value: str
    source_text: str = ""

    @property
    def interval(self) -> Tuple[int, str]:
        amount, _, unit = self.value.partition("_")
        return int(amount), unit or "DAY"


@dataclass(frozen=True)
class BooleanConstraint:
    kind: ClassVar[ConstraintKind] = ConstraintKind.BOOLEAN

    table_alias: str
    column: str
    literal_value: str
    boolean_value: bool
    source_text: str = ""


Constraint = Union[
    WhereConstraint,
    JoinConstraint,
    LikePattern,
    BetweenConstraint,
    InClauseConstraint,
    NullConstraint,
    ExistsConstraint,
    DateConstraint,
    BooleanConstraint,
]

CONSTRAINT_TYPES: Tuple[Type, ...] = (
    WhereConstraint,
    JoinConstraint,
    LikePattern,
    BetweenConstraint,
    InClauseConstraint,
    NullConstraint,
    ExistsConstraint,
    DateConstraint,
    BooleanConstraint,
)


def require_exhaustive(handlers: Mapping[Type, Callable], owner: str) -> None:
    """Fail at import time if ``handlers`` does not cover every variant."""
    missing = [t.__name__ for t in CONSTRAINT_TYPES if t not in handlers]
    extra = [t.__name__ for t in handlers if t not in CONSTRAINT_TYPES]
    if missing or extra:
        raise TypeError(
            f"{owner} constraint handlers out of sync: missing={missing} unknown={extra}"
        )


def unhandled(constraint: Any) -> NoReturn:
    raise TypeError(f"Unhandled constraint kind: {type(constraint).__name__}")


def constraint_to_dict(constraint: Constraint) -> Dict[str, Any]:
    data = asdict(constraint)
    data["kind"] = constraint.kind.value
    for key, value in list(data.items()):
        if isinstance(value, Enum):
            data[key] = value.value
        elif isinstance(value, tuple):
            data[key] = list(value)
    return data


@dataclass(frozen=True)
class ConstraintSet:
    """Immutable collection of all constraints extracted from one query.

    ``alias_map`` maps lower-cased aliases (and bare table names) seen in
    FROM/JOIN clauses to the table name as written in the query.
    """

    where: Tuple[WhereConstraint, ...] = ()
    joins: Tuple[JoinConstraint, ...] = ()
    likes: Tuple[LikePattern, ...] = ()
    betweens: Tuple[BetweenConstraint, ...] = ()
    in_clauses: Tuple[InClauseConstraint, ...] = ()
    null_checks: Tuple[NullConstraint, ...] = ()
    exists: Tuple[ExistsConstraint, ...] = ()
    dates: Tuple[DateConstraint, ...] = ()
    booleans: Tuple[BooleanConstraint, ...] = ()
    alias_map: Mapping[str, str] = field(default_factory=dict, compare=False)

    def all(self) -> Iterator[Constraint]:
        yield from self.where
        yield from self.joins
        yield from self.likes
        yield from self.betweens
        yield from self.in_clauses
        yield from self.null_checks
        yield from self.exists
        yield from self.dates
        yield from self.booleans

    def __iter__(self) -> Iterator[Constraint]:
        return self.all()

    def __len__(self) -> int:
        return self.total_count

    @property
    def total_count(self) -> int:
        return sum(1 for _ in self.all())

    @property
    def is_empty(self) -> bool:
        return self.total_count == 0

    def for_column(self, table_alias: str, column: str) -> List[Constraint]:
        alias = table_alias.lower()
        col = column.lower()
        return [
            c for c in self.all()
            if c.column.lower() == col and c.table_alias.lower() == alias
        ]

    def summary(self) -> Dict[str, int]:
        counts = {kind.value: 0 for kind in ConstraintKind}
        for c in self.all():
            counts[c.kind.value] += 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alias_map": dict(self.alias_map),
            "summary": self.summary(),
            "constraints": [constraint_to_dict(c) for c in self.all()],
        }
