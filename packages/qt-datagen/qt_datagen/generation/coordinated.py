"""Cross-table coordinated record generation.

For each row index ``i`` in ``1..N`` one record is produced per required
table. Keys follow a fixed arithmetic so FK values never need a lookup:

* non-junction primary keys are the dense sequence ``i``
* an FK value at row ``i`` is ``((i - 1) mod N) + 1``
* junction tables get distinct FK tuples from a stride/collision scheme
"""

from __future__ import annotations

import logging
import operator
import random
from typing import Any, Dict, List, Optional, Sequence, Tuple

from faker import Faker

from ..coercion import parse_number
from ..constraints.binding import Bindings, bind_constraints
from ..constraints.models import (
    BetweenConstraint,
    BooleanConstraint,
    Constraint,
    ConstraintSet,
    DateConstraint,
    InClauseConstraint,
    InKind,
    JoinConstraint,
    LikePattern,
    NullConstraint,
    WhereConstraint,
)
from ..dependency import DependencyPlan
from ..errors import NoInsertableColumnsError
from ..schemas import ColumnSchema, Record, RecordSet, SchemaCatalog, TableSchema
from .values import UNCONSTRAINED, Bound, ValueSynthesizer

logger = logging.getLogger(__name__)

MAX_JUNCTION_COLLISION_ATTEMPTS = 10

_KEY_COMPARISONS = {
    "=": operator.eq,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}


def is_fk_shaped(column: ColumnSchema) -> bool:
    name = column.name.lower()
    return name.endswith("_id") or name.endswith("_by") or "ref" in name


def is_junction_table(table: TableSchema) -> bool:
    """Structural many-to-many detection.

    At least two FK-shaped columns, making up at least half of all
    columns, in a table of at most six columns.
    """
    total = len(table.columns)
    if total == 0 or total > 6:
        return False
    fk_like = sum(
        1 for c in table.columns
        if is_fk_shaped(c) or table.foreign_key_for(c.name) is not None
    )
    return fk_like >= 2 and fk_like / total >= 0.5


def fk_value(row_index: int, row_count: int) -> int:
    """FK value for 1-based ``row_index``; always a PK of the parent."""
    return ((row_index - 1) % row_count) + 1


class CoordinatedGenerator:
    """Generate FK-consistent RecordSets that satisfy a ConstraintSet."""

    def __init__(
        self,
        catalog: SchemaCatalog,
        rng: Optional[random.Random] = None,
        faker: Optional[Faker] = None,
        preserve_ids: bool = False,
        max_string_length: int = 255,
        dialect=None,
    ):
        self.catalog = catalog
        self.rng = rng if rng is not None else random.Random()
        self.synth = ValueSynthesizer(self.rng, faker, max_string_length, dialect)
        self.preserve_ids = preserve_ids
        self._referenced: set = set()
        self._fk_domains: Dict[Tuple[str, str], Optional[List[int]]] = {}

    def generate(
        self,
        constraints: ConstraintSet,
        plan: DependencyPlan,
        row_count: int,
        bindings: Optional[Bindings] = None,
    ) -> List[RecordSet]:
        """One RecordSet per row index.

        ``bindings`` are computed from ``plan`` unless the caller already
        holds the ones its validator will use.
        """
        if row_count < 1:
            raise ValueError(f"row_count must be >= 1, got {row_count}")

        tables = [self.catalog.lookup(name) for name in plan.generation_order]
        for table in tables:
            if not table.insertable_columns(self.preserve_ids):
                raise NoInsertableColumnsError(table.name)

        if bindings is None:
            bindings = bind_constraints(
                constraints, self.catalog, plan.query_tables, plan.required_tables, plan.alias_map
            )
        self._referenced = {
            (fk.referenced_table.lower(), fk.referenced_column.lower())
            for table in tables
            for fk in table.foreign_keys
        }
        self._fk_domains = {
            (table.name.lower(), fk.column.lower()): self.fk_domain(
                fk.column,
                bindings.get((table.name.lower(), fk.column.lower()), []),
                row_count,
            )
            for table in tables
            for fk in table.foreign_keys
        }
        junction_keys = {
            table.name.lower(): self._junction_keys(table, row_count)
            for table in tables
            if is_junction_table(table) and len(table.foreign_keys) >= 2
        }

        record_sets: List[RecordSet] = []
        for i in range(1, row_count + 1):
            record_set: RecordSet = {}
            for table in tables:
                record_set[table.name] = self._record(table, i, row_count, bindings, junction_keys)
            record_sets.append(record_set)

        logger.info(
            "Generated %d record sets across %d tables (%d junction)",
            row_count, len(tables), len(junction_keys),
        )
        return record_sets

    # -----------------------------------------------------------------
    # Per-table records
    # -----------------------------------------------------------------

    def _record(
        self,
        table: TableSchema,
        i: int,
        n: int,
        bindings: Bindings,
        junction_keys: Dict[str, List[Dict[str, int]]],
    ) -> Record:
        record: Record = {}
        junction_row = junction_keys.get(table.name.lower())
        for column in table.insertable_columns(self.preserve_ids):
            key = (table.name.lower(), column.name.lower())
            if junction_row is not None and column.name.lower() in junction_row[i - 1]:
                record[column.name] = junction_row[i - 1][column.name.lower()]
                continue
            record[column.name] = self._column_value(table, column, i, n, bindings.get(key, []))
        return record

    def _column_value(
        self,
        table: TableSchema,
        column: ColumnSchema,
        i: int,
        n: int,
        constraints: Sequence[Constraint],
    ) -> Any:
        fk = table.foreign_key_for(column.name)
        if fk is not None:
            for c in constraints:
                if isinstance(c, NullConstraint) and c.is_null and column.nullable:
                    return None
            domain = self._fk_domains.get((table.name.lower(), column.name.lower()))
            value = domain[(i - 1) % len(domain)] if domain else fk_value(i, n)
            return self._key_literal(value, column)

        if (
            column.is_primary_key
            or column.is_identity
            or (table.name.lower(), column.name.lower()) in self._referenced
        ):
            return self._key_literal(i, column)

        if constraints:
            value = self._constrained_value(column, constraints, i)
            if value is not UNCONSTRAINED:
                return value
        return self.synth.by_type(column, i)

    def _constrained_value(self, column: ColumnSchema, constraints: Sequence[Constraint], i: int) -> Any:
        """Pick the governing constraint(s) and synthesize a satisfying value.

        Precedence: IS NULL, equality (WHERE/JOIN filter/boolean), IN,
        LIKE, merged range (comparisons + BETWEEN), date functions.
        """
        synth = self.synth

        for c in constraints:
            if isinstance(c, NullConstraint) and c.is_null and column.nullable:
                return None

        for c in constraints:
            if isinstance(c, (WhereConstraint, JoinConstraint)) and c.operator == "=" and getattr(c, "value", None) is not None:
                return synth.satisfy(c, column, i)
        for c in constraints:
            if isinstance(c, BooleanConstraint):
                return synth.satisfy(c, column, i)
        for c in constraints:
            if isinstance(c, InClauseConstraint) and c.in_kind != InKind.SUBQUERY:
                return synth.satisfy(c, column, i)
        for c in constraints:
            if isinstance(c, LikePattern):
                return synth.satisfy(c, column, i)

        lowers: List[Bound] = []
        uppers: List[Bound] = []
        value_kind = None
        for c in constraints:
            if isinstance(c, BetweenConstraint):
                lowers.append((c.min_value, True))
                uppers.append((c.max_value, True))
                value_kind = c.value_kind
            elif isinstance(c, (WhereConstraint, JoinConstraint)) and getattr(c, "value", None) is not None:
                if c.operator in (">", ">="):
                    lowers.append((c.value, c.operator == ">="))
                elif c.operator in ("<", "<="):
                    uppers.append((c.value, c.operator == "<="))
        if lowers or uppers:
            return synth.within(
                synth.pick_tightest(lowers, lower=True),
                synth.pick_tightest(uppers, lower=False),
                column,
                value_kind,
            )

        for c in constraints:
            if isinstance(c, DateConstraint):
                return synth.satisfy(c, column, i)
        return UNCONSTRAINED

    @staticmethod
    def fk_domain(column: str, constraints: Sequence[Constraint], n: int) -> Optional[List[int]]:
        """Parent keys in ``1..N`` that satisfy every value constraint on an FK column.

        Equality, comparisons, BETWEEN and literal IN lists all narrow the
        domain. None means the column is unrestricted, or that the
        restrictions leave no existing parent row and the default spread
        is used instead.
        """
        keys = range(1, n + 1)
        domain: Optional[set] = None

        for c in constraints:
            allowed = None
            if isinstance(c, (WhereConstraint, JoinConstraint)) and c.value is not None:
                bound = parse_number(c.value)
                compare = _KEY_COMPARISONS.get(c.operator)
                if bound is not None and compare is not None:
                    allowed = {k for k in keys if compare(k, bound)}
            elif isinstance(c, BetweenConstraint):
                low, high = parse_number(c.min_value), parse_number(c.max_value)
                if low is not None and high is not None:
                    allowed = {k for k in keys if low <= k <= high}
            elif isinstance(c, InClauseConstraint) and c.in_kind != InKind.SUBQUERY:
                listed = {parse_number(v) for v in c.values}
                allowed = {k for k in keys if k in listed}
            if allowed is not None:
                domain = allowed if domain is None else domain & allowed

        if domain is None:
            return None
        if not domain:
            logger.debug("FK %s: constraints leave no parent key in 1..%d", column, n)
            return None
        return sorted(domain)

    @staticmethod
    def _key_literal(value: int, column: ColumnSchema) -> Any:
        if column.type_family in ("integer", "decimal"):
            return value
        return str(value)

    # -----------------------------------------------------------------
    # Junction tables
    # -----------------------------------------------------------------

    def _junction_keys(self, table: TableSchema, n: int) -> List[Dict[str, int]]:
        """Distinct FK tuples for every row of a junction table.

        Each FK column starts at a stride offset of ``N / #FKs``; a column
        whose constraints narrow its domain walks that domain instead. On a
        collision the last unconstrained FK is bumped
        ``(v + attempt) mod N + 1``, up to ten times.
        """
        fk_columns = [
            c for c in table.insertable_columns(self.preserve_ids)
            if table.foreign_key_for(c.name) is not None
        ]
        k = len(fk_columns)
        domains = [self._fk_domains.get((table.name.lower(), c.name.lower())) for c in fk_columns]
        free = [pos for pos, domain in enumerate(domains) if not domain]

        seen = set()
        rows: List[Dict[str, int]] = []
        for idx in range(n):
            values = []
            for pos, domain in enumerate(domains):
                offset = pos * n // max(1, k)
                if domain:
                    values.append(domain[(idx + offset) % len(domain)])
                else:
                    values.append(((idx + offset) % n) + 1)

            attempts = 0
            while tuple(values) in seen and free and attempts < MAX_JUNCTION_COLLISION_ATTEMPTS:
                attempts += 1
                last = free[-1]
                values[last] = (values[last] + attempts) % n + 1
            if tuple(values) in seen:
                logger.warning("Junction %s: duplicate FK tuple %s at row %d", table.name, values, idx + 1)
            seen.add(tuple(values))

            rows.append({
                column.name.lower(): self._key_literal(value, column)
                for column, value in zip(fk_columns, values)
            })
        return rows


class UnconstrainedGenerator(CoordinatedGenerator):
    """Same key topology as CoordinatedGenerator, ignoring the query's predicates."""

    def generate(
        self,
        constraints: ConstraintSet,
        plan: DependencyPlan,
        row_count: int,
        bindings: Optional[Bindings] = None,
    ) -> List[RecordSet]:
        return super().generate(ConstraintSet(alias_map=plan.alias_map), plan, row_count)
