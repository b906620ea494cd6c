"""Validate-and-retry loop and the ordered generation fallback chain."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from ..errors import GenerationExhaustedError, SchemaError
from ..schemas import InsertStatement, ValidationReport

logger = logging.getLogger(__name__)

GenerateFn = Callable[[], List[InsertStatement]]
ValidateFn = Callable[[List[InsertStatement]], ValidationReport]


@dataclass
class RetryOutcome:
    """Statements and report of the attempt the loop settled on."""

    statements: List[InsertStatement]
    report: ValidationReport
    attempts: int
    accepted: bool
    failures: List[str] = field(default_factory=list)


class RetryOrchestrator:
    """Drive generate → validate until the pass rate clears the threshold.

    The first attempt whose report is acceptable wins. Otherwise the loop
    waits ``attempt × backoff_ms`` and regenerates from scratch; after the
    last attempt the most recent statements are returned with
    ``report.below_threshold`` set.

    Args:
        max_attempts: Upper bound on generate/validate rounds.
        min_pass_rate: Acceptance threshold in percent.
        backoff_ms: Base wait between attempts.
        sleep: Injected for tests; called with seconds.
        deadline_seconds: Optional wall-clock bound for the whole loop.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        min_pass_rate: float = 60.0,
        backoff_ms: int = 100,
        sleep: Callable[[float], None] = time.sleep,
        deadline_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.min_pass_rate = min_pass_rate
        self.backoff_ms = backoff_ms
        self.sleep = sleep
        self.deadline_seconds = deadline_seconds
        self.clock = clock

    def run(self, generate_fn: GenerateFn, validate_fn: ValidateFn) -> RetryOutcome:
        started = self.clock()
        last: Optional[Tuple[List[InsertStatement], ValidationReport]] = None
        failures: List[str] = []
        attempt = 0

        while attempt < self.max_attempts:
            attempt += 1
            try:
                statements = generate_fn()
                report = validate_fn(statements)
            except SchemaError:
                raise
            except Exception as e:
                logger.warning("Attempt %d/%d failed: %s", attempt, self.max_attempts, e, exc_info=True)
                failures.append(f"attempt {attempt}: {e}")
            else:
                last = (statements, report)
                if report.is_acceptable(self.min_pass_rate):
                    logger.info(
                        "Attempt %d accepted: %.1f%% of %d checks passed",
                        attempt, report.pass_rate, report.total_checks,
                    )
                    return RetryOutcome(statements, report, attempt, True, failures)
                logger.warning(
                    "Attempt %d/%d below threshold: %.1f%% < %.1f%% (%d violations)",
                    attempt, self.max_attempts, report.pass_rate,
                    self.min_pass_rate, len(report.violations),
                )

            if attempt >= self.max_attempts:
                break
            if self._deadline_passed(started):
                logger.warning("Retry deadline of %.2fs reached after %d attempts", self.deadline_seconds, attempt)
                break
            self.sleep(attempt * self.backoff_ms / 1000.0)

        if last is None:
            raise GenerationExhaustedError(
                f"All {attempt} generation attempts failed", reasons=failures
            )

        statements, report = last
        report.below_threshold = True
        logger.warning(
            "Returning best-effort result after %d attempts (%.1f%% passed)",
            attempt, report.pass_rate,
        )
        return RetryOutcome(statements, report, attempt, False, failures)

    def _deadline_passed(self, started: float) -> bool:
        if not self.deadline_seconds:
            return False
        return self.clock() - started >= self.deadline_seconds


# =============================================================================
# Strategy chain
# =============================================================================


@dataclass
class GenerationStrategy:
    """A named way of producing statements, tried in chain order.

    ``run`` receives the orchestrator and returns its outcome; a strategy
    fails by raising.
    """

    name: str
    generate_fn: GenerateFn
    retried: bool = True

    def run(self, orchestrator: RetryOrchestrator, validate_fn: ValidateFn) -> RetryOutcome:
        if self.retried:
            return orchestrator.run(self.generate_fn, validate_fn)
        single = RetryOrchestrator(
            max_attempts=1,
            min_pass_rate=orchestrator.min_pass_rate,
            sleep=orchestrator.sleep,
        )
        return single.run(self.generate_fn, validate_fn)


def run_strategies(
    strategies: Sequence[GenerationStrategy],
    orchestrator: RetryOrchestrator,
    validate_fn: ValidateFn,
) -> Tuple[GenerationStrategy, RetryOutcome]:
    """Try each strategy in order; the first that yields statements wins.

    Raises:
        SchemaError: Propagated from any strategy.
        GenerationExhaustedError: Every strategy failed.
    """
    reasons: List[str] = []
    for strategy in strategies:
        try:
            outcome = strategy.run(orchestrator, validate_fn)
        except GenerationExhaustedError as e:
            logger.warning("Strategy %s exhausted; falling back", strategy.name)
            reasons.extend(f"{strategy.name}: {r}" for r in e.reasons or [str(e)])
            continue
        logger.info("Strategy %s produced %d statements", strategy.name, len(outcome.statements))
        return strategy, outcome

    raise GenerationExhaustedError(
        f"All {len(strategies)} generation strategies failed", reasons=reasons
    )
