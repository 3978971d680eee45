"""
Test case executor.

Runs a case's steps in declared order against one page and stops at the first
failing step. Each case moves NOT_STARTED -> RUNNING -> PASSED | FAILED; the
finalized result goes through the aggregator, whose copy is the result of
record.

Suites run sequentially by default. With parallel execution enabled, cases
run on a bounded worker pool, each in its own isolated browser context.
"""

from __future__ import annotations

import asyncio
import time
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from browserqa.config import (
    DEFAULT_EXECUTION_OPTIONS,
    ExecutionOptions,
    ScreenshotPolicy,
)
from browserqa.errors import SessionCrashedError
from browserqa.events import EventDispatcher
from browserqa.models import (
    Artifacts,
    CaseStatus,
    ResultStatus,
    StepResult,
    StepStatus,
    TestCase,
    TestResult,
    TestStep,
)
from browserqa.runner.interpreter import StepInterpreter, merge_test_data
from browserqa.utils import get_utc_now, safe_filename, timestamp_slug

if TYPE_CHECKING:
    from playwright.async_api import Page

    from browserqa.reporting.aggregator import ResultAggregator
    from browserqa.runner.elements import ElementInteractor
    from browserqa.runner.session import BrowserSession

logger = structlog.get_logger(__name__)

TEST_LOGS_JS = "() => window.testLogs || []"


class CaseState(StrEnum):
    """Execution state of a single test case."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class TestExecutor:
    """
    Executes test cases and suites.

    Usage:
        executor = TestExecutor(session, interpreter, aggregator, events, interactor)
        result = await executor.execute_test_case(case)
    """

    __test__ = False

    def __init__(
        self,
        session: BrowserSession,
        interpreter: StepInterpreter,
        aggregator: ResultAggregator,
        events: EventDispatcher,
        interactor: ElementInteractor,
        screenshots: ScreenshotPolicy | None = None,
        artifact_dir: str | Path = "./test-results",
    ) -> None:
        self._session = session
        self._interpreter = interpreter
        self._aggregator = aggregator
        self._events = events
        self._interactor = interactor
        self._screenshots = screenshots or ScreenshotPolicy()
        self._artifact_dir = Path(artifact_dir)
        self._log = logger.bind(component="test_executor")

    @property
    def artifact_dir(self) -> Path:
        return self._artifact_dir

    # ── Single case ───────────────────────────────────────────────────────────

    async def execute_test_case(
        self,
        test_case: TestCase,
        options: ExecutionOptions | None = None,
        page: Page | None = None,
    ) -> TestResult:
        """
        Execute one test case and record its result.

        Args:
            test_case: Case to run
            options: Execution options (capture, performance)
            page: Page to run on; defaults to the session's page

        Returns:
            The aggregator's copy of the finalized result

        Raises:
            SessionNotInitializedError: No page is given and the session has
                not been started
        """
        result = await self._run_case(test_case, options or DEFAULT_EXECUTION_OPTIONS, page)
        return self._aggregator.process_result(result)

    async def _run_case(
        self,
        test_case: TestCase,
        options: ExecutionOptions,
        page: Page | None,
        announce: bool = True,
    ) -> TestResult:
        page = page or self._session.require_page()

        state = CaseState.NOT_STARTED
        step_results: list[StepResult] = []
        error: str | None = None
        executed_at = get_utc_now()
        start = time.monotonic()

        if announce:
            self._events.test_started(test_case.id)
        state = CaseState.RUNNING
        self._log.info("Test case started", test_id=test_case.id, steps=len(test_case.steps))

        try:
            for step in test_case.steps:
                step_result = await self._execute_step(page, test_case, step)
                step_results.append(step_result)
                self._events.step_completed(test_case.id, step_result)

                if step_result.status == StepStatus.FAILED:
                    state = CaseState.FAILED
                    error = step_result.error
                    break
            else:
                state = CaseState.PASSED
        except Exception as e:
            state = CaseState.FAILED
            error = str(e)
            self._log.error("Test case aborted", test_id=test_case.id, error=error)

        duration = _elapsed_ms(start)
        status = ResultStatus.PASSED if state == CaseState.PASSED else ResultStatus.FAILED

        artifacts: Artifacts | None = None
        if status == ResultStatus.FAILED or options.capture_on_success or self._screenshots.on_success:
            artifacts = await self._capture_artifacts(page, test_case.id, failed=status == ResultStatus.FAILED)

        performance_metrics = None
        if options.collect_performance and not page.is_closed():
            try:
                performance_metrics = await self._interactor.get_performance_metrics(page)
            except Exception as e:
                self._log.warning("Performance collection failed", test_id=test_case.id, error=str(e))

        self._log.info(
            "Test case finished",
            test_id=test_case.id,
            status=status,
            duration_ms=duration,
            steps_run=len(step_results),
        )

        return TestResult(
            test_case_id=test_case.id,
            status=status,
            duration=duration,
            step_results=step_results,
            error=error,
            artifacts=artifacts,
            executed_at=executed_at,
            performance_metrics=performance_metrics,
        )

    async def _execute_step(self, page: Page, test_case: TestCase, step: TestStep) -> StepResult:
        """
        Run one step and report its outcome.

        Step errors become a FAILED StepResult. A page that is closed after
        the error means the session died, which aborts the whole case.
        """
        start = time.monotonic()
        merged_data = merge_test_data(test_case.test_data, step.data)

        try:
            await self._interpreter.perform_action(page, step, merged_data)
        except Exception as e:
            if page.is_closed():
                raise SessionCrashedError(
                    f"Browser session closed during step {step.step}: {e}"
                ) from e
            self._log.warning(
                "Step failed",
                test_id=test_case.id,
                step=step.step,
                action=step.action,
                error=str(e),
            )
            return StepResult(
                step=step.step,
                status=StepStatus.FAILED,
                duration=_elapsed_ms(start),
                error=str(e),
                action=step.action,
                element=step.element,
            )

        self._log.debug("Step passed", test_id=test_case.id, step=step.step, action=step.action)
        return StepResult(
            step=step.step,
            status=StepStatus.PASSED,
            duration=_elapsed_ms(start),
            action=step.action,
            element=step.element,
        )

    async def _capture_artifacts(self, page: Page, test_id: str, failed: bool) -> Artifacts | None:
        """Best-effort screenshot, page log and video capture; None once the page is gone."""
        if page.is_closed():
            self._log.warning("Page closed, skipping artifact capture", test_id=test_id)
            return None

        artifacts = Artifacts()

        if not failed or self._screenshots.on_failure:
            path = self._artifact_dir / "screenshots" / f"{safe_filename(test_id)}-{timestamp_slug()}.png"
            try:
                artifacts.screenshot = await self._interactor.take_screenshot(page, filename=str(path))
            except Exception as e:
                self._log.warning("Screenshot capture failed", test_id=test_id, error=str(e))

        try:
            logs = await page.evaluate(TEST_LOGS_JS)
            artifacts.logs = [str(line) for line in logs or []]
        except Exception as e:
            self._log.warning("Log capture failed", test_id=test_id, error=str(e))

        if page.video is not None:
            try:
                artifacts.video = str(await page.video.path())
            except Exception as e:
                self._log.warning("Video path unavailable", test_id=test_id, error=str(e))

        return artifacts

    # ── Suites ────────────────────────────────────────────────────────────────

    async def execute_test_suite(
        self,
        test_cases: list[TestCase],
        options: ExecutionOptions | None = None,
        suite_id: str | None = None,
    ) -> list[TestResult]:
        """
        Execute test cases and return one result per attempted case.

        With ``stop_on_failure`` the cases after the first FAILED result are
        not attempted and are absent from the returned list. A case that
        raises outside the step loop is recorded as FAILED with zero duration.
        ``delay_between_tests`` applies between sequential cases only.
        """
        options = options or DEFAULT_EXECUTION_OPTIONS
        suite_id = suite_id or f"suite-{timestamp_slug()}"

        self._events.suite_started(suite_id)
        self._log.info(
            "Starting test suite",
            suite=suite_id,
            tests=len(test_cases),
            parallel=options.parallel.enabled,
            workers=options.parallel.workers,
        )

        if options.parallel.enabled:
            results = await self._run_parallel(test_cases, options)
        else:
            results = await self._run_sequential(test_cases, options)

        summary = self._aggregator.generate_summary(results)
        self._log.info(
            "Test suite completed",
            suite=suite_id,
            total=summary.total,
            passed=summary.passed,
            failed=summary.failed,
            flaky=summary.flaky,
            skipped=summary.skipped,
        )
        self._events.suite_completed(suite_id, summary)
        return results

    async def _run_sequential(
        self,
        test_cases: list[TestCase],
        options: ExecutionOptions,
    ) -> list[TestResult]:
        results: list[TestResult] = []
        for index, test_case in enumerate(test_cases):
            if index > 0 and options.delay_between_tests > 0:
                await asyncio.sleep(options.delay_between_tests / 1000)

            result = await self._execute_in_suite(test_case, options)
            results.append(result)

            if options.stop_on_failure and result.status == ResultStatus.FAILED:
                self._log.info("Stop-on-failure triggered", test_id=test_case.id)
                break
        return results

    async def _run_parallel(
        self,
        test_cases: list[TestCase],
        options: ExecutionOptions,
    ) -> list[TestResult]:
        """
        Run cases on a worker pool with one isolated context per case.

        Results keep input order. Once a case fails under ``stop_on_failure``,
        cases that have not started yet are abandoned.
        """
        semaphore = asyncio.Semaphore(options.parallel.workers)
        halted = asyncio.Event()

        async def run_single(test_case: TestCase) -> TestResult | None:
            async with semaphore:
                if halted.is_set():
                    return None
                if self._is_skipped(test_case, options):
                    return self._record_skipped(test_case)

                try:
                    async with self._session.isolated_page() as page:
                        result = await self._execute_in_suite(test_case, options, page)
                except Exception as e:
                    self._log.error("Parallel test execution failed", test_id=test_case.id, error=str(e))
                    result = self._aggregator.process_result(
                        TestResult(test_case_id=test_case.id, status=ResultStatus.FAILED, error=str(e))
                    )

                if options.stop_on_failure and result.status == ResultStatus.FAILED:
                    halted.set()
                return result

        outcomes = await asyncio.gather(*(run_single(tc) for tc in test_cases))
        return [r for r in outcomes if r is not None]

    async def _execute_in_suite(
        self,
        test_case: TestCase,
        options: ExecutionOptions,
        page: Page | None = None,
    ) -> TestResult:
        """Run a case with retries and record exactly one final result."""
        if self._is_skipped(test_case, options):
            return self._record_skipped(test_case)

        try:
            result = await self._run_with_retries(test_case, options, page)
        except Exception as e:
            self._log.error("Test case could not be executed", test_id=test_case.id, error=str(e))
            result = TestResult(
                test_case_id=test_case.id,
                status=ResultStatus.FAILED,
                duration=0,
                error=str(e),
            )
        return self._aggregator.process_result(result)

    async def _run_with_retries(
        self,
        test_case: TestCase,
        options: ExecutionOptions,
        page: Page | None,
    ) -> TestResult:
        result = await self._run_case(test_case, options, page)

        for attempt in range(1, options.max_retries + 1):
            if result.status != ResultStatus.FAILED:
                break
            self._log.warning(
                "Retrying failed test case",
                test_id=test_case.id,
                attempt=attempt,
                max_retries=options.max_retries,
                error=result.error,
            )
            result = await self._run_case(test_case, options, page, announce=False)
            if result.status == ResultStatus.PASSED:
                result = result.model_copy(update={"status": ResultStatus.FLAKY})

        return result

    def _is_skipped(self, test_case: TestCase, options: ExecutionOptions) -> bool:
        return options.skip_inactive and test_case.status != CaseStatus.ACTIVE

    def _record_skipped(self, test_case: TestCase) -> TestResult:
        self._log.info("Skipping inactive test case", test_id=test_case.id, status=test_case.status)
        return self._aggregator.process_result(
            TestResult(test_case_id=test_case.id, status=ResultStatus.SKIPPED, duration=0)
        )
