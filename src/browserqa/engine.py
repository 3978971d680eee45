"""
Automation engine for browserqa.

Wires the browser session, element interactor, step interpreter, executor and
result aggregator together and exposes the run lifecycle: initialize, execute
cases or suites, report, clean up.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

import structlog

from browserqa.config import (
    DEFAULT_BROWSER_CONFIG,
    DEFAULT_UTILS_CONFIG,
    BrowserConfig,
    ExecutionOptions,
    UtilsConfig,
)
from browserqa.events import EventDispatcher, ExecutionListener
from browserqa.models import (
    BrowserInfo,
    FailureAnalysis,
    PerformanceSummary,
    TestCase,
    TestResult,
    TestSummary,
)
from browserqa.reporting.aggregator import ResultAggregator
from browserqa.runner.elements import ElementInteractor
from browserqa.runner.executor import TestExecutor
from browserqa.runner.interpreter import StepInterpreter
from browserqa.runner.session import BrowserSession
from browserqa.utils import timestamp_slug

logger = structlog.get_logger(__name__)


class ReportFormat(StrEnum):
    JSON = "json"
    HTML = "html"
    JUNIT = "junit"

    @property
    def extension(self) -> str:
        return "xml" if self is ReportFormat.JUNIT else self.value


class AutomationEngine:
    """
    Facade over one browser session and the results it produces.

    The engine owns its session exclusively; ``cleanup`` is idempotent and
    safe after a failed ``initialize``.

    Usage:
        async with AutomationEngine(BrowserConfig(browser="webkit")) as engine:
            results = await engine.execute_test_suite(cases)
            engine.generate_report("junit", "reports/junit.xml")
    """

    def __init__(
        self,
        browser_config: BrowserConfig | None = None,
        utils_config: UtilsConfig | None = None,
        listeners: list[ExecutionListener] | None = None,
        artifact_dir: str | Path = "./test-results",
    ) -> None:
        self._browser_config = browser_config or DEFAULT_BROWSER_CONFIG
        self._utils_config = utils_config or DEFAULT_UTILS_CONFIG
        self._artifact_dir = Path(artifact_dir)

        self._events = EventDispatcher(listeners)
        self._session = BrowserSession(self._browser_config)
        self._interactor = ElementInteractor(self._utils_config)
        self._interpreter = StepInterpreter(
            self._interactor,
            navigation_timeout=self._browser_config.navigation_timeout,
        )
        self._aggregator = ResultAggregator(self._events)
        self._executor = TestExecutor(
            session=self._session,
            interpreter=self._interpreter,
            aggregator=self._aggregator,
            events=self._events,
            interactor=self._interactor,
            screenshots=self._utils_config.screenshots,
            artifact_dir=self._artifact_dir,
        )
        self._log = logger.bind(component="automation_engine")

    # ── Accessors ─────────────────────────────────────────────────────────────

    @property
    def session(self) -> BrowserSession:
        return self._session

    @property
    def interactor(self) -> ElementInteractor:
        return self._interactor

    @property
    def aggregator(self) -> ResultAggregator:
        return self._aggregator

    @property
    def executor(self) -> TestExecutor:
        return self._executor

    @property
    def events(self) -> EventDispatcher:
        return self._events

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Launch the browser and record its identity on results."""
        await self._session.start()
        self._aggregator.set_browser_info(
            BrowserInfo(
                name=self._browser_config.browser,
                version=self._session.browser_version,
                headless=self._browser_config.headless,
            )
        )
        self._log.info("Engine initialized", browser=self._browser_config.browser)

    async def cleanup(self) -> None:
        await self._session.cleanup()
        self._log.info("Engine cleaned up")

    async def __aenter__(self) -> AutomationEngine:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.cleanup()

    def add_listener(self, listener: ExecutionListener) -> None:
        self._events.add_listener(listener)

    # ── Execution ─────────────────────────────────────────────────────────────

    async def execute_test(
        self,
        test_case: TestCase,
        options: ExecutionOptions | None = None,
    ) -> TestResult:
        """Run one case on the session page."""
        return await self._executor.execute_test_case(test_case, options)

    async def execute_test_suite(
        self,
        test_cases: list[TestCase],
        options: ExecutionOptions | None = None,
        suite_id: str | None = None,
    ) -> list[TestResult]:
        return await self._executor.execute_test_suite(test_cases, options, suite_id)

    # ── Reporting ─────────────────────────────────────────────────────────────

    def generate_report(
        self,
        format: str | ReportFormat = ReportFormat.HTML,
        file_path: str | Path | None = None,
    ) -> Path:
        """
        Export the accumulated results.

        Args:
            format: ``json``, ``html`` or ``junit``
            file_path: Output path; defaults to
                ``<artifact_dir>/report-<timestamp>.<ext>``

        Returns:
            Path of the written report

        Raises:
            ValueError: Unknown format
        """
        try:
            report_format = ReportFormat(format)
        except ValueError:
            raise ValueError(f"Unsupported report format: {format}") from None

        path = Path(file_path) if file_path else (
            self._artifact_dir / f"report-{timestamp_slug()}.{report_format.extension}"
        )

        match report_format:
            case ReportFormat.JSON:
                return self._aggregator.export_to_json(path)
            case ReportFormat.HTML:
                return self._aggregator.export_to_html(path)
            case ReportFormat.JUNIT:
                return self._aggregator.export_to_junit(path)

    def get_summary(self) -> TestSummary:
        return self._aggregator.generate_summary()

    def get_failure_analysis(self) -> FailureAnalysis:
        return self._aggregator.get_failure_analysis()

    def get_performance_summary(self) -> PerformanceSummary:
        return self._aggregator.get_performance_summary()
