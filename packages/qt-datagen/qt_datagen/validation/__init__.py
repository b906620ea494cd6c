"""Statement validation, live checking, and the retry loop."""

from .live import LiveCheckResult, LiveQueryValidator, duckdb_ddl
from .orchestrator import GenerationStrategy, RetryOrchestrator, RetryOutcome, run_strategies
from .validator import ConstraintValidator, like_to_regex, regeneration_hints, values_equal

__all__ = [
    "ConstraintValidator",
    "GenerationStrategy",
    "LiveCheckResult",
    "LiveQueryValidator",
    "RetryOrchestrator",
    "RetryOutcome",
    "duckdb_ddl",
    "like_to_regex",
    "regeneration_hints",
    "run_strategies",
    "values_equal",
]
