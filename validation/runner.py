"""
Validation Runner.

============================================================
PURPOSE
============================================================
Runs the validation test registry against a live installation.

The runner:
1. Refuses to start while another run is in progress
2. Clears the previous results
3. Selects tests with the run's filter
4. Runs them one after another, timing each
5. Summarizes the results

============================================================
GUARANTEES
============================================================

- A test that raises becomes an ERROR result; the remaining
  tests still run
- A run always returns a report, except when another run is
  already in progress (AlreadyRunningError)
- The single-flight check happens before the first await, so two
  runs started from the same event loop cannot both proceed

============================================================
"""

import logging
from typing import Dict, List, Optional, Sequence

from core.clock import ClockProtocol, SystemClock
from core.config_store import ConfigStore
from core.exceptions import AlreadyRunningError, UnknownTestError
from monitoring.scheduler import MetricsScheduler

from .checks import InstallationChecks
from .interfaces import AutoStartInspector, SettingsVerifier
from .models import (
    BreakdownCounts,
    TestResult,
    TestStatus,
    ValidationFilter,
    ValidationRecommendation,
    ValidationReport,
    ValidationSummary,
    ValidationTest,
)
from .test_cases import build_default_tests


logger = logging.getLogger(__name__)


class ValidationRunner:
    """
    Sequential runner over a registry of validation tests.

    Usage:
        runner = ValidationRunner(scheduler, config_store, verifier=verifier)
        report = await runner.run_full_validation()
        report.summary.score, report.summary.is_healthy
    """

    def __init__(
        self,
        scheduler: MetricsScheduler,
        config_store: ConfigStore,
        verifier: Optional[SettingsVerifier] = None,
        inspector: Optional[AutoStartInspector] = None,
        clock: Optional[ClockProtocol] = None,
        tests: Optional[Sequence[ValidationTest]] = None,
    ):
        self._clock = clock or SystemClock()
        if tests is None:
            checks = InstallationChecks(
                scheduler,
                config_store,
                verifier=verifier,
                inspector=inspector,
                clock=self._clock,
            )
            tests = build_default_tests(checks)

        self._tests: Dict[str, ValidationTest] = {}
        for test in tests:
            self.register_test(test)

        self._results: List[TestResult] = []
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    # ========================================================
    # REGISTRY
    # ========================================================

    def register_test(self, test: ValidationTest) -> None:
        """Add a test; a test with the same id is replaced in place."""
        if test.id in self._tests:
            logger.warning(f"Replacing validation test {test.id}")
        self._tests[test.id] = test

    def get_test(self, test_id: str) -> ValidationTest:
        test = self._tests.get(test_id)
        if test is None:
            raise UnknownTestError(test_id)
        return test

    def get_available_tests(self) -> List[ValidationTest]:
        return list(self._tests.values())

    def select_tests(self, options: Optional[ValidationFilter] = None) -> List[ValidationTest]:
        options = options or ValidationFilter()
        return [test for test in self._tests.values() if options.matches(test)]

    # ========================================================
    # EXECUTION
    # ========================================================

    async def run_full_validation(
        self,
        options: Optional[ValidationFilter] = None,
    ) -> ValidationReport:
        """
        Run every test selected by `options`.

        Args:
            options: Test filter; None runs the whole registry

        Returns:
            ValidationReport for this run

        Raises:
            AlreadyRunningError: another run is in progress
        """
        if self._is_running:
            raise AlreadyRunningError()

        self._is_running = True
        try:
            options = options or ValidationFilter()
            self._results = []
            started_at = self._clock.now()
            selected = self.select_tests(options)

            logger.info(f"Starting validation with {len(selected)} tests")
            await self._execute_sequential(selected, options)

            duration_ms = self._clock.seconds_since(started_at) * 1000
            summary = self.generate_validation_summary()

            logger.info(
                f"Validation completed in {duration_ms:.0f}ms: "
                f"{summary.passed}/{summary.total} passed, score {summary.score}"
            )

            return ValidationReport(
                success=True,
                summary=summary,
                results=tuple(self._results),
                duration_ms=duration_ms,
                timestamp=self._clock.now(),
            )
        finally:
            self._is_running = False

    async def run_test(self, test_id: str) -> TestResult:
        """
        Run a single registered test as its own validation run.

        Raises:
            UnknownTestError: no test has this id
            AlreadyRunningError: another run is in progress
        """
        self.get_test(test_id)
        report = await self.run_full_validation(ValidationFilter(test_ids=(test_id,)))
        return report.results[0]

    async def _execute_sequential(
        self,
        tests: List[ValidationTest],
        options: ValidationFilter,
    ) -> None:
        for i, test in enumerate(tests, 1):
            logger.info(f"Running test {i}/{len(tests)}: {test.name}")
            result = await self.execute_test(test, options)
            if result.status in (TestStatus.FAILED, TestStatus.ERROR):
                logger.warning(f"Test {test.id} {result.status.value}: {result.message}")

    async def execute_test(
        self,
        test: ValidationTest,
        options: ValidationFilter,
    ) -> TestResult:
        """Run one test and append its result."""
        result = TestResult.start(test, self._clock.now())

        try:
            outcome = await test.run(options)
            result.apply(outcome)
        except Exception as e:
            logger.exception(f"Validation test {test.id} raised: {e}")
            result.fail_with_error(e)

        result.completed_at = self._clock.now()
        result.duration_ms = (result.completed_at - result.started_at).total_seconds() * 1000

        self._results.append(result)
        return result

    # ========================================================
    # RESULTS
    # ========================================================

    def generate_validation_summary(self) -> ValidationSummary:
        """Aggregate the current result list."""
        results = self._results
        total = len(results)
        passed = sum(1 for r in results if r.passed)
        failed = sum(1 for r in results if r.status == TestStatus.FAILED)
        warnings = sum(1 for r in results if r.status == TestStatus.WARNING)
        errors = sum(1 for r in results if r.status == TestStatus.ERROR)

        by_category: Dict[str, BreakdownCounts] = {}
        by_priority: Dict[str, BreakdownCounts] = {}
        for result in results:
            for bucket, key in (
                (by_category, result.category.value),
                (by_priority, result.priority.value),
            ):
                counts = bucket.setdefault(key, BreakdownCounts())
                counts.total += 1
                if result.passed:
                    counts.passed += 1
                else:
                    counts.failed += 1

        return ValidationSummary(
            total=total,
            passed=passed,
            failed=failed,
            warnings=warnings,
            errors=errors,
            score=int(passed / total * 100 + 0.5) if total else 0,
            is_healthy=failed == 0 and errors == 0,
            by_category=by_category,
            by_priority=by_priority,
        )

    def get_results(self) -> List[TestResult]:
        return list(self._results)

    def get_test_result(self, test_id: str) -> Optional[TestResult]:
        for result in self._results:
            if result.id == test_id:
                return result
        return None

    def get_recommendations(self) -> List[ValidationRecommendation]:
        """Recommendations of failed and warning results, in result order."""
        recommendations = []
        for result in self._results:
            if result.status not in (TestStatus.FAILED, TestStatus.WARNING):
                continue
            for text in result.recommendations:
                recommendations.append(ValidationRecommendation(
                    test_id=result.id,
                    test_name=result.name,
                    category=result.category,
                    priority=result.priority,
                    recommendation=text,
                ))
        return recommendations
