"""Per-column value synthesis.

``ValueSynthesizer`` owns no global state: the ``random.Random`` it uses
is passed in per request, and the Faker instance it falls back to for
name-pattern strings is seeded from that same generator.
"""

from __future__ import annotations

import json
import logging
import math
import random
import string
import uuid
from datetime import date, datetime, time, timedelta
from typing import Any, List, Optional, Tuple

from faker import Faker

from ..coercion import as_comparable, coerce_to_column, parse_datetime, parse_number
from ..constraints.models import (
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
    require_exhaustive,
)
from ..schemas import ColumnSchema, Dialect

logger = logging.getLogger(__name__)


class _Unconstrained:
    """Marker: the constraint does not pin a value for this row."""

    def __repr__(self):
        return "UNCONSTRAINED"


UNCONSTRAINED = _Unconstrained()

# A bound is (value, inclusive)
Bound = Tuple[Any, bool]

_STATUS_VALUES = ("active", "inactive", "pending")
_LIKE_WORDS = ("alpha", "beta", "gamma", "delta", "sample", "record", "entry")
_INTERVAL_DAYS = {"DAY": 1, "MONTH": 30, "YEAR": 365}

_SATISFIERS = {
    WhereConstraint: "for_where",
    JoinConstraint: "for_join",
    LikePattern: "for_like",
    BetweenConstraint: "for_between",
    InClauseConstraint: "for_in",
    NullConstraint: "for_null",
    ExistsConstraint: "for_exists",
    DateConstraint: "for_date",
    BooleanConstraint: "for_boolean",
}
require_exhaustive(_SATISFIERS, "ValueSynthesizer")


def seeded_faker(rng: random.Random) -> Faker:
    """Faker instance seeded from the request RNG."""
    faker = Faker("en_US")
    faker.seed_instance(rng.getrandbits(32))
    return faker


class ValueSynthesizer:
    """Synthesize values that satisfy a constraint, or fit a column's type."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        faker: Optional[Faker] = None,
        max_string_length: int = 255,
        dialect=None,
    ):
        self.rng = rng if rng is not None else random.Random()
        self.faker = faker if faker is not None else seeded_faker(self.rng)
        self.max_string_length = max_string_length
        # Oracle stores '' as NULL
        self.non_empty_strings = dialect is not None and Dialect.parse(dialect) is Dialect.ORACLE
        self.today = date.today()

    # -----------------------------------------------------------------
    # Constraint dispatch
    # -----------------------------------------------------------------

    def satisfy(self, constraint, column: ColumnSchema, record_index: int) -> Any:
        """Value for ``column`` satisfying ``constraint``, or UNCONSTRAINED."""
        method = getattr(self, _SATISFIERS[type(constraint)])
        return method(constraint, column, record_index)

    def for_where(self, c: WhereConstraint, column: ColumnSchema, record_index: int) -> Any:
        if c.operator == "=":
            return self.equal(c.value, column)
        return self.compare(c.operator, c.value, column)

    def for_join(self, c: JoinConstraint, column: ColumnSchema, record_index: int) -> Any:
        if not c.is_filter:
            # relationship columns are covered by FK synthesis
            return UNCONSTRAINED
        if c.operator == "=":
            return self.equal(c.value, column)
        return self.compare(c.operator, c.value, column)

    def for_like(self, c: LikePattern, column: ColumnSchema, record_index: int) -> str:
        core = c.required_substring
        literal = c.pattern.replace("%", "")
        if "_" in literal:
            # "_" is a single-character wildcard; keeping it literal still matches
            if c.like_kind == LikeKind.CONTAINS:
                value = f"{literal}_{record_index}_{core}"
            elif c.like_kind == LikeKind.STARTS_WITH:
                value = f"{literal} {core} {record_index}"
            elif c.like_kind == LikeKind.ENDS_WITH:
                value = f"{core} {record_index} {literal}"
            else:
                value = literal
        elif c.like_kind == LikeKind.EXACT:
            value = core
        elif c.like_kind == LikeKind.ENDS_WITH:
            value = f"{record_index:03d}_{self.rng.randrange(1000):03d}_{core}"
        else:
            value = core + self._like_suffix(core, record_index)
        return self._fit_like(value, column, c.like_kind)

    def for_between(self, c: BetweenConstraint, column: ColumnSchema, record_index: int) -> Any:
        return self.within((c.min_value, True), (c.max_value, True), column, c.value_kind)

    def for_in(self, c: InClauseConstraint, column: ColumnSchema, record_index: int) -> Any:
        if c.in_kind == InKind.SUBQUERY or not c.values:
            return UNCONSTRAINED
        return self.equal(self.rng.choice(c.values), column)

    def for_null(self, c: NullConstraint, column: ColumnSchema, record_index: int) -> Any:
        if c.is_null:
            return None
        return UNCONSTRAINED

    def for_exists(self, c: ExistsConstraint, column: ColumnSchema, record_index: int) -> Any:
        return UNCONSTRAINED

    def for_date(self, c: DateConstraint, column: ColumnSchema, record_index: int) -> Any:
        if c.date_kind == DateKind.YEAR_EQUALS:
            year = int(c.value)
            start = date(year, 1, 1)
            day = start + timedelta(days=self.rng.randint(0, (date(year, 12, 31) - start).days))
            return self._as_date_value(day, column)

        amount, unit = c.interval
        now = datetime.now()
        target = now + timedelta(days=amount * _INTERVAL_DAYS.get(unit, 1))
        span = timedelta(days=max(1, abs(amount) * _INTERVAL_DAYS.get(unit, 1)))
        margin = timedelta(days=1)

        if c.operator in (">", ">="):
            low = target + margin
            high = max(low, now) if target < now else low + span
        elif c.operator in ("<", "<="):
            high = target - margin
            low = min(high, now) if target > now else high - span
        else:
            return self._as_date_value(target.date(), column)
        days = max(0, (high.date() - low.date()).days)
        return self._as_date_value(low.date() + timedelta(days=self.rng.randint(0, days)), column)

    def for_boolean(self, c: BooleanConstraint, column: ColumnSchema, record_index: int) -> Any:
        return self.boolean(c.boolean_value, column)

    # -----------------------------------------------------------------
    # Building blocks
    # -----------------------------------------------------------------

    def equal(self, value: Any, column: ColumnSchema) -> Any:
        coerced = coerce_to_column(value, column)
        if isinstance(coerced, str):
            return self.fit_length(coerced, column)
        return coerced

    def boolean(self, flag: bool, column: ColumnSchema) -> Any:
        family = column.type_family
        if family == "boolean":
            return flag
        if family in ("integer", "decimal"):
            return 1 if flag else 0
        return "true" if flag else "false"

    def compare(self, operator: str, bound: Any, column: ColumnSchema) -> Any:
        """Value strictly/loosely above or below ``bound``."""
        if operator in (">", ">="):
            return self.within((bound, operator == ">="), None, column)
        return self.within(None, (bound, operator == "<="), column)

    def within(
        self,
        lower: Optional[Bound],
        upper: Optional[Bound],
        column: ColumnSchema,
        value_kind: Optional[ValueKind] = None,
    ) -> Any:
        """Random value inside the given bounds (either may be open)."""
        sample = (lower or upper)[0]
        family = column.type_family

        if family in ("date", "datetime") or value_kind == ValueKind.DATE or (
            family == "string" and parse_number(sample) is None and parse_datetime(sample) is not None
        ):
            return self._date_within(lower, upper, column)
        if family in ("integer", "boolean") or (family == "string" and value_kind == ValueKind.NUMERIC):
            if family == "integer" or all(
                parse_number(b[0]) is not None and float(parse_number(b[0])).is_integer()
                for b in (lower, upper) if b
            ):
                return self._int_within(lower, upper)
            return self._decimal_within(lower, upper, 2)
        if family == "decimal":
            scale = column.numeric_scale if column.numeric_scale is not None else 2
            if scale == 0:
                return self._int_within(lower, upper)
            return self._decimal_within(lower, upper, scale)
        return self._string_within(lower, upper, column)

    def _int_within(self, lower: Optional[Bound], upper: Optional[Bound]) -> int:
        low = high = None
        if lower is not None:
            n = float(parse_number(lower[0]))
            low = math.ceil(n) if lower[1] else math.floor(n) + 1
        if upper is not None:
            n = float(parse_number(upper[0]))
            high = math.floor(n) if upper[1] else math.ceil(n) - 1

        if low is not None and high is not None:
            if low > high:
                return low
            if high - low >= 2 and lower[1] and upper[1]:
                return self.rng.randint(low + 1, high - 1)
            return self.rng.randint(low, high)
        if low is not None:
            return low + self.rng.randint(0, 99)
        # Upper bound only: stay positive when the bound allows it
        if high >= 1:
            return self.rng.randint(1, high)
        return high - self.rng.randint(0, 99)

    def _decimal_within(self, lower: Optional[Bound], upper: Optional[Bound], scale: int) -> float:
        step = 10 ** -scale
        low = float(parse_number(lower[0])) if lower else None
        high = float(parse_number(upper[0])) if upper else None
        if low is not None and not lower[1]:
            low += step
        if high is not None and not upper[1]:
            high -= step

        if low is not None and high is not None:
            if low > high:
                return round(low, scale)
            value = self.rng.uniform(low, high)
        elif low is not None:
            value = low + self.rng.uniform(step, 1000.0)
        elif high > step:
            value = self.rng.uniform(max(step, high - 1000.0), high)
        else:
            value = high - self.rng.uniform(step, 1000.0)

        factor = 10 ** scale
        value = round(value, scale)
        # Rounding must not push the value back across a bound
        if low is not None and value < low:
            value = math.ceil(low * factor) / factor
        if high is not None and value > high:
            value = math.floor(high * factor) / factor
        return value

    def _date_within(self, lower: Optional[Bound], upper: Optional[Bound], column: ColumnSchema) -> Any:
        low = parse_datetime(lower[0]) if lower else None
        high = parse_datetime(upper[0]) if upper else None
        if low is not None and not lower[1]:
            low += timedelta(days=1)
        if high is not None and not upper[1]:
            high -= timedelta(days=1)

        if low is not None and high is not None:
            span = max(0, (high.date() - low.date()).days)
            if span >= 2 and lower[1] and upper[1]:
                day = low.date() + timedelta(days=self.rng.randint(1, span - 1))
            else:
                day = low.date() + timedelta(days=self.rng.randint(0, span))
        elif low is not None:
            day = low.date() + timedelta(days=self.rng.randint(1, 365))
        else:
            day = high.date() - timedelta(days=self.rng.randint(1, 365))
        return self._as_date_value(day, column)

    def _string_within(self, lower: Optional[Bound], upper: Optional[Bound], column: ColumnSchema) -> str:
        if lower is not None and upper is not None:
            return self.fit_length(str(self.rng.choice([lower[0], upper[0]])), column)
        if lower is not None:
            return self.fit_length(f"{lower[0]}z", column)
        bound = str(upper[0])
        return self.fit_length("A" if bound > "A" else bound, column)

    def _as_date_value(self, day: date, column: ColumnSchema) -> Any:
        family = column.type_family
        if family == "datetime":
            return datetime(day.year, day.month, day.day, self.rng.randint(0, 23), self.rng.randint(0, 59), self.rng.randint(0, 59))
        if family == "date":
            return day
        return day.isoformat()

    def _like_suffix(self, core: str, record_index: int) -> str:
        token = self.rng.randrange(10000)
        if len(core) <= 3 and core.isupper():
            return f"_{token}_{record_index:03d}"
        if any(ch.isdigit() for ch in core):
            return f"_{self.rng.randint(100, 999)}_{record_index}"
        if len(core) > 8:
            return f" {self.rng.choice(_LIKE_WORDS)} {record_index}"
        return f"_{record_index:03d}_{token % 1000:03d}"

    def _fit_like(self, value: str, column: ColumnSchema, kind: LikeKind) -> str:
        limit = column.max_length or self.max_string_length
        if len(value) <= limit:
            return value
        if kind == LikeKind.ENDS_WITH:
            return value[-limit:]
        return value[:limit]

    # -----------------------------------------------------------------
    # Unconstrained values
    # -----------------------------------------------------------------

    def by_type(self, column: ColumnSchema, record_index: int) -> Any:
        """Value by declared type; strings fall through to ``by_name``."""
        family = column.type_family

        if family == "boolean":
            return self.rng.choice([True, False])
        if family == "enum":
            return self.rng.choice(column.enum_values)
        if family == "integer":
            return record_index
        if family == "decimal":
            scale = column.numeric_scale if column.numeric_scale is not None else 2
            ceiling = 1000.0
            if column.numeric_precision:
                ceiling = min(ceiling, 10 ** (column.numeric_precision - scale) - 1)
            return round(self.rng.uniform(1.0, max(1.0, ceiling)), scale)
        if family == "date":
            return self.today - timedelta(days=self.rng.randint(0, 365))
        if family == "datetime":
            moment = datetime.now().replace(microsecond=0)
            return moment - timedelta(seconds=self.rng.randint(0, 365 * 24 * 3600))
        if family == "time":
            return time(self.rng.randint(0, 23), self.rng.randint(0, 59), self.rng.randint(0, 59))
        if family == "uuid":
            return str(uuid.UUID(int=self.rng.getrandbits(128), version=4))
        if family == "json":
            return self._json_value(column, record_index)
        return self.by_name(column, record_index)

    def by_name(self, column: ColumnSchema, record_index: int) -> str:
        """String inferred from the column name (email, phone, url, ...)."""
        name = column.name.lower()
        fk = self.faker

        if "email" in name:
            value = f"{fk.user_name()}{record_index}@{fk.free_email_domain()}"
        elif "phone" in name or "mobile" in name or name.endswith("_tel"):
            value = fk.numerify("0#########")
        elif "first_name" in name or name == "firstname":
            value = fk.first_name()
        elif "last_name" in name or name == "lastname" or name == "surname":
            value = fk.last_name()
        elif "username" in name or "user_name" in name or "login" in name:
            value = f"{fk.user_name()}_{record_index}"
        elif "company" in name or "organization" in name:
            value = fk.company()
        elif "name" in name:
            value = fk.name()
        elif "address" in name or "street" in name:
            value = fk.street_address()
        elif "city" in name:
            value = fk.city()
        elif "country" in name:
            value = fk.country()
        elif "zip" in name or "postal" in name:
            value = fk.postcode()
        elif "url" in name or "website" in name or "link" in name:
            value = fk.url()
        elif "code" in name or "sku" in name:
            value = f"{name[:3].upper()}{record_index:04d}"
        elif any(w in name for w in ("description", "desc", "note", "comment", "bio", "content", "message", "text")):
            value = fk.sentence(nb_words=8)
        elif "title" in name:
            value = fk.sentence(nb_words=3).rstrip(".")
        elif "status" in name:
            value = self.rng.choice(_STATUS_VALUES)
        else:
            token = "".join(self.rng.choice(string.ascii_lowercase + string.digits) for _ in range(6))
            value = f"{token}_{record_index:02d}"

        if column.is_unique and str(record_index) not in value:
            return self.fit_length(value, column, suffix=f"_{record_index}")
        return self.fit_length(value, column)

    def _json_value(self, column: ColumnSchema, record_index: int) -> str:
        limit = column.max_length or self.max_string_length
        payload = json.dumps({"id": record_index, "value": self.faker.word(), "active": True})
        if len(payload) > limit:
            payload = json.dumps({"id": record_index})
        if len(payload) > limit:
            payload = "{}"
        return payload

    def fit_length(self, value: str, column: ColumnSchema, suffix: str = "") -> str:
        """Bound ``value + suffix`` by the column length.

        An empty result stays empty except on Oracle, where it becomes ``"x"``.
        """
        limit = column.max_length or self.max_string_length
        if suffix:
            value = (value[: max(0, limit - len(suffix))] + suffix)[-limit:]
        elif len(value) > limit:
            value = value[:limit]
        if not value and self.non_empty_strings:
            return "x"
        return value

    def pick_tightest(self, bounds: List[Bound], lower: bool) -> Optional[Bound]:
        """Tightest of several lower (or upper) bounds."""
        if not bounds:
            return None
        best = bounds[0]
        for bound in bounds[1:]:
            a, b = as_comparable(bound[0]), as_comparable(best[0])
            try:
                tighter = a > b if lower else a < b
                same = a == b
            except TypeError:
                continue
            if tighter or (same and not bound[1]):
                best = bound
        return best
