"""Tests for RetryOrchestrator and the strategy fallback chain."""

import pytest

from qt_datagen.errors import GenerationExhaustedError, SchemaError
from qt_datagen.schemas import InsertStatement, ValidationReport
from qt_datagen.validation import GenerationStrategy, RetryOrchestrator, run_strategies


STATEMENTS = [InsertStatement("roles", "INSERT INTO roles (id) VALUES (1)")]


def _report(passed: int, total: int = 10) -> ValidationReport:
    return ValidationReport(total_checks=total, passed_checks=passed)


class FakeSleep:
    """Records requested waits instead of sleeping."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


class Scripted:
    """validate_fn returning a fixed sequence of reports."""

    def __init__(self, *reports):
        self.reports = list(reports)
        self.calls = 0

    def __call__(self, statements):
        self.calls += 1
        return self.reports.pop(0)


@pytest.fixture
def sleep() -> FakeSleep:
    return FakeSleep()


class TestRetryOrchestrator:
    """Acceptance, backoff and exhaustion."""

    def test_accepts_second_attempt(self, sleep):
        """40% then 80%: accepted on attempt 2 after one 100 ms wait."""
        orchestrator = RetryOrchestrator(max_attempts=5, min_pass_rate=60.0, backoff_ms=100, sleep=sleep)
        outcome = orchestrator.run(lambda: STATEMENTS, Scripted(_report(4), _report(8)))
        assert outcome.accepted
        assert outcome.attempts == 2
        assert sleep.calls == [0.1]
        assert not outcome.report.below_threshold

    def test_all_below_threshold_returns_last(self, sleep):
        """Linear backoff between attempts and no wait after the last one."""
        reports = [_report(1), _report(2), _report(3), _report(4), _report(5)]
        orchestrator = RetryOrchestrator(max_attempts=5, min_pass_rate=60.0, backoff_ms=100, sleep=sleep)
        outcome = orchestrator.run(lambda: STATEMENTS, Scripted(*reports))
        assert not outcome.accepted
        assert outcome.attempts == 5
        assert outcome.report is reports[-1]
        assert outcome.report.below_threshold
        assert sleep.calls == pytest.approx([0.1, 0.2, 0.3, 0.4])

    def test_all_passed_beats_threshold(self, sleep):
        """A report with every check passing is accepted even at a 100% bar."""
        orchestrator = RetryOrchestrator(min_pass_rate=100.0, sleep=sleep)
        outcome = orchestrator.run(lambda: STATEMENTS, Scripted(_report(0, total=0)))
        assert outcome.accepted and outcome.attempts == 1

    def test_generator_exception_is_retried(self, sleep):
        calls = {"n": 0}

        def flaky():
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("boom")
            return STATEMENTS

        orchestrator = RetryOrchestrator(sleep=sleep)
        outcome = orchestrator.run(flaky, Scripted(_report(10)))
        assert outcome.accepted
        assert outcome.attempts == 2
        assert outcome.failures == ["attempt 1: boom"]

    def test_every_attempt_raises(self, sleep):
        def broken():
            raise RuntimeError("nope")

        with pytest.raises(GenerationExhaustedError) as exc:
            RetryOrchestrator(max_attempts=5, sleep=sleep).run(broken, Scripted())
        assert len(exc.value.reasons) == 5

    def test_schema_error_is_not_retried(self, sleep):
        def fatal():
            raise SchemaError("missing table")

        with pytest.raises(SchemaError):
            RetryOrchestrator(sleep=sleep).run(fatal, Scripted())
        assert sleep.calls == []

    def test_deadline_stops_early(self, sleep):
        ticks = iter([0.0, 5.0])
        orchestrator = RetryOrchestrator(
            max_attempts=5, sleep=sleep, deadline_seconds=1.0, clock=lambda: next(ticks)
        )
        outcome = orchestrator.run(lambda: STATEMENTS, Scripted(_report(1)))
        assert outcome.attempts == 1
        assert outcome.report.below_threshold
        assert sleep.calls == []

    def test_invalid_attempt_count(self):
        with pytest.raises(ValueError):
            RetryOrchestrator(max_attempts=0)


class TestStrategies:
    """Ordered fallback across strategies."""

    def test_falls_back_to_next_strategy(self, sleep):
        def broken():
            raise RuntimeError("coordinated failed")

        strategies = [
            GenerationStrategy("coordinated", broken),
            GenerationStrategy("unconstrained", lambda: STATEMENTS, retried=False),
        ]
        orchestrator = RetryOrchestrator(max_attempts=2, sleep=sleep)
        strategy, outcome = run_strategies(strategies, orchestrator, Scripted(_report(10)))
        assert strategy.name == "unconstrained"
        assert outcome.statements == STATEMENTS

    def test_unretried_strategy_runs_once(self, sleep):
        validate = Scripted(_report(1), _report(1))
        strategy = GenerationStrategy("unconstrained", lambda: STATEMENTS, retried=False)
        outcome = strategy.run(RetryOrchestrator(max_attempts=5, sleep=sleep), validate)
        assert outcome.attempts == 1
        assert validate.calls == 1
        assert outcome.report.below_threshold

    def test_all_strategies_fail(self, sleep):
        def broken():
            raise RuntimeError("nope")

        strategies = [GenerationStrategy("a", broken), GenerationStrategy("b", broken, retried=False)]
        with pytest.raises(GenerationExhaustedError) as exc:
            run_strategies(strategies, RetryOrchestrator(max_attempts=2, sleep=sleep), Scripted())
        assert len(exc.value.reasons) == 3
        assert exc.value.reasons[0].startswith("a: ")
