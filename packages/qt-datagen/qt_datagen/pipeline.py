"""End-to-end pipeline: SQL text + catalog → validated INSERT statements.

Usage:
    pipeline = DataGenPipeline(catalog, dialect="postgres", seed=7)
    result = pipeline.run("SELECT * FROM users u WHERE u.age >= 18", row_count=5)
    print(render_script(result.statements, "postgres"))
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .codec import LiteralCodec, get_formatter
from .config import Settings, get_settings
from .constraints import ConstraintExtractor, ConstraintSet, bind_constraints
from .dependency import DependencyPlan, DependencyResolver
from .generation import CoordinatedGenerator, UnconstrainedGenerator, seeded_faker
from .schemas import Dialect, InsertStatement, RecordSet, SchemaCatalog, ValidationReport
from .validation import (
    ConstraintValidator,
    GenerationStrategy,
    LiveCheckResult,
    LiveQueryValidator,
    RetryOrchestrator,
    run_strategies,
)

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything one generation request produced."""

    statements: List[InsertStatement]
    report: ValidationReport
    plan: DependencyPlan
    constraints: ConstraintSet
    attempts: int
    strategy: str
    live_check: Optional[LiveCheckResult] = None

    @property
    def accepted(self) -> bool:
        return not self.report.below_threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "attempts": self.attempts,
            "accepted": self.accepted,
            "plan": self.plan.to_dict(),
            "constraints": self.constraints.summary(),
            "report": self.report.to_dict(),
            "statements": [s.sql_text for s in self.statements],
            "live_check": self.live_check.to_dict() if self.live_check else None,
        }


def render_script(statements: Sequence[InsertStatement], dialect=Dialect.MYSQL) -> str:
    """Join statements into an executable script, one per line."""
    header = f"-- {len(statements)} INSERT statements ({Dialect.parse(dialect).value})\n"
    if not statements:
        return header
    return header + ";\n".join(s.sql_text for s in statements) + ";\n"


def teardown_statements(plan: DependencyPlan, dialect=Dialect.MYSQL) -> List[str]:
    """``DELETE FROM`` for every required table, children first."""
    formatter = get_formatter(dialect)
    return [f"DELETE FROM {formatter.escape_identifier(t)}" for t in plan.teardown_order]


class DataGenPipeline:
    """Extract → resolve → generate → encode → validate, with retries.

    Args:
        catalog: Schema catalog for every table the query may touch.
        dialect: Target dialect for the emitted statements.
        settings: Defaults for row count, retry policy and live checks.
        seed: Seeds the request RNG (falls back to ``settings.seed``).
    """

    def __init__(
        self,
        catalog: SchemaCatalog,
        dialect=None,
        settings: Optional[Settings] = None,
        seed: Optional[int] = None,
    ):
        self.catalog = catalog
        self.settings = settings or get_settings()
        self.dialect = Dialect.parse(dialect or self.settings.default_dialect)
        self.seed = seed if seed is not None else self.settings.seed

    def run(self, sql: str, row_count: Optional[int] = None, live_check: Optional[bool] = None) -> PipelineResult:
        settings = self.settings
        n = row_count if row_count is not None else settings.default_row_count
        if n < 1:
            raise ValueError(f"row_count must be >= 1, got {n}")

        constraints = ConstraintExtractor(self.dialect.value).extract(sql)
        plan = DependencyResolver(self.catalog, self.dialect.value).resolve(sql, constraints.alias_map or None)

        rng = random.Random(self.seed)
        faker = seeded_faker(rng)
        codec = LiteralCodec(self.dialect, self.catalog, settings.preserve_ids)
        validator = ConstraintValidator(self.catalog, codec)
        resolution_order = list(plan.query_tables) + [
            t for t in plan.required_tables if t not in plan.query_tables
        ]
        bindings = bind_constraints(
            constraints, self.catalog, plan.query_tables, plan.required_tables, plan.alias_map
        )

        generator_args = (
            self.catalog, rng, faker, settings.preserve_ids, settings.max_string_length, self.dialect
        )
        coordinated = CoordinatedGenerator(*generator_args)
        unconstrained = UnconstrainedGenerator(*generator_args)

        strategies = [
            GenerationStrategy(
                "coordinated",
                lambda: self._encode(coordinated.generate(constraints, plan, n, bindings), plan, codec),
            ),
            GenerationStrategy(
                "unconstrained",
                lambda: self._encode(unconstrained.generate(constraints, plan, n), plan, codec),
                retried=False,
            ),
        ]
        orchestrator = RetryOrchestrator(**settings.retry_policy())
        strategy, outcome = run_strategies(
            strategies,
            orchestrator,
            lambda statements: validator.validate(
                statements, constraints, resolution_order, plan.alias_map, bindings
            ),
        )

        if live_check is None:
            live_check = settings.live_validation
        live = None
        if live_check:
            live = LiveQueryValidator(self.catalog, self.dialect).check(
                sql, outcome.statements, plan.generation_order
            )

        logger.info(
            "Generated %d statements via %s in %d attempts (%.1f%% passed)",
            len(outcome.statements), strategy.name, outcome.attempts, outcome.report.pass_rate,
        )
        return PipelineResult(
            statements=outcome.statements,
            report=outcome.report,
            plan=plan,
            constraints=constraints,
            attempts=outcome.attempts,
            strategy=strategy.name,
            live_check=live,
        )

    def _encode(self, record_sets: List[RecordSet], plan: DependencyPlan, codec: LiteralCodec) -> List[InsertStatement]:
        """Encode table by table in generation order so parents precede children."""
        statements: List[InsertStatement] = []
        for table_name in plan.generation_order:
            table = self.catalog.lookup(table_name)
            for record_set in record_sets:
                statements.append(codec.encode(table, record_set[table.name], plan.priority(table.name)))
        return statements
