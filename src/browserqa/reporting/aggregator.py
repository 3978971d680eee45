"""
Result aggregation for browserqa runs.

Collects finalized case results, notifies listeners, and derives summaries,
failure analysis and performance summaries from any set of results.
"""

from __future__ import annotations

import json
import os
import sys
from collections import Counter
from enum import StrEnum
from pathlib import Path

import structlog

from browserqa.config import ENV_PREFIX
from browserqa.events import EventDispatcher
from browserqa.models import (
    BrowserInfo,
    EnvironmentInfo,
    ErrorPattern,
    FailureAnalysis,
    PerformanceMetrics,
    PerformanceSummary,
    ResourceCounts,
    ResultStatus,
    SlowTest,
    StepFailureCount,
    StepStatus,
    TestResult,
    TestSummary,
)
from browserqa.reporting.exporters import (
    build_json_report,
    render_html_report,
    render_junit_xml,
    write_report,
)
from browserqa.utils import get_utc_now

logger = structlog.get_logger(__name__)

TOP_N_PATTERNS = 10
TOP_N_SLOWEST = 5


class ErrorCategory(StrEnum):
    TIMEOUT = "Timeout"
    ELEMENT_NOT_FOUND = "Element Not Found"
    NAVIGATION = "Navigation Error"
    NETWORK = "Network Error"
    OTHER = "Other"


# Checked in order; first matching substring wins
CATEGORY_MARKERS: tuple[tuple[str, ErrorCategory], ...] = (
    ("timeout", ErrorCategory.TIMEOUT),
    ("element not found", ErrorCategory.ELEMENT_NOT_FOUND),
    ("navigation", ErrorCategory.NAVIGATION),
    ("network", ErrorCategory.NETWORK),
)

CATEGORY_RECOMMENDATIONS: dict[ErrorCategory, str] = {
    ErrorCategory.TIMEOUT: "Consider increasing timeout values for slow-loading elements",
    ErrorCategory.ELEMENT_NOT_FOUND: "Review element selectors for stability and uniqueness",
    ErrorCategory.NAVIGATION: "Check that target URLs are reachable and redirects settle",
    ErrorCategory.NETWORK: "Verify network connectivity and backend availability",
}


def categorize_error(message: str) -> ErrorCategory:
    """Bucket an error message by case-insensitive substring match."""
    lowered = message.lower()
    for marker, category in CATEGORY_MARKERS:
        if marker in lowered:
            return category
    return ErrorCategory.OTHER


def _average(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


class ResultAggregator:
    """
    Accumulates results for one run and derives reports from them.

    Every query method takes an optional ``results`` list; when omitted the
    accumulated results are used.
    """

    def __init__(
        self,
        events: EventDispatcher | None = None,
        browser_info: BrowserInfo | None = None,
    ) -> None:
        self._events = events or EventDispatcher()
        self._browser_info = browser_info
        self._results: list[TestResult] = []
        self._start_time = get_utc_now()
        self._log = logger.bind(component="result_aggregator")

    @property
    def events(self) -> EventDispatcher:
        return self._events

    @property
    def browser_info(self) -> BrowserInfo:
        """Browser the run executes on, from the session or the environment."""
        if self._browser_info is not None:
            return self._browser_info
        headless = os.environ.get(f"{ENV_PREFIX}HEADLESS", "true").lower()
        return BrowserInfo(
            name=os.environ.get(f"{ENV_PREFIX}BROWSER", "chromium"),
            version=os.environ.get(f"{ENV_PREFIX}BROWSER_VERSION", "unknown"),
            headless=headless not in ("0", "false", "no"),
        )

    def set_browser_info(self, info: BrowserInfo) -> None:
        self._browser_info = info

    def process_result(self, result: TestResult) -> TestResult:
        """
        Record a finalized result and notify listeners.

        Returns:
            Copy of ``result`` annotated with browser info; callers keep this
            copy as the result of record
        """
        enriched = result.model_copy(
            update={"browser_info": result.browser_info or self.browser_info},
            deep=True,
        )
        self._results.append(enriched)

        self._log.info(
            "Result recorded",
            test_id=enriched.test_case_id,
            status=enriched.status,
            duration_ms=enriched.duration,
        )

        self._events.test_completed(enriched.test_case_id, enriched)
        if enriched.status == ResultStatus.FAILED:
            self._events.test_failed(enriched.test_case_id, enriched.error or "Test failed")

        return enriched

    def generate_summary(self, results: list[TestResult] | None = None) -> TestSummary:
        """Counts by status and the summed duration of ``results``."""
        results = self._results if results is None else results
        counts = Counter(r.status for r in results)
        info = self.browser_info

        return TestSummary(
            total=len(results),
            passed=counts[ResultStatus.PASSED],
            failed=counts[ResultStatus.FAILED],
            skipped=counts[ResultStatus.SKIPPED],
            flaky=counts[ResultStatus.FLAKY],
            duration=sum(r.duration for r in results),
            start_time=self._start_time,
            end_time=get_utc_now(),
            environment=EnvironmentInfo(
                browser=info.name,
                version=info.version,
                platform=sys.platform,
            ),
        )

    # ── Export ────────────────────────────────────────────────────────────────

    def export_to_json(self, path: str | Path, results: list[TestResult] | None = None) -> Path:
        results = self._results if results is None else results
        report = build_json_report(self.generate_summary(results), results)
        return write_report(path, json.dumps(report, indent=2))

    def export_to_html(self, path: str | Path, results: list[TestResult] | None = None) -> Path:
        results = self._results if results is None else results
        return write_report(path, render_html_report(self.generate_summary(results), results))

    def export_to_junit(self, path: str | Path, results: list[TestResult] | None = None) -> Path:
        results = self._results if results is None else results
        return write_report(path, render_junit_xml(self.generate_summary(results), results))

    # ── Analysis ──────────────────────────────────────────────────────────────

    def get_failure_analysis(self, results: list[TestResult] | None = None) -> FailureAnalysis:
        """
        Break down the FAILED subset of ``results``.

        Error categories and failing step numbers are ranked by frequency
        (top 10 each). Recommendations follow the category ranking, then name
        the most frequently failing step.
        """
        results = self._results if results is None else results
        failed = [r for r in results if r.status == ResultStatus.FAILED]
        if not failed:
            return FailureAnalysis(has_failures=False)

        categories = Counter(categorize_error(r.error) for r in failed if r.error)
        failing_steps: Counter[int] = Counter()
        failing_elements: Counter[str] = Counter()
        for result in failed:
            for step in result.step_results:
                if step.status != StepStatus.FAILED:
                    continue
                failing_steps[step.step] += 1
                if step.element:
                    failing_elements[step.element] += 1

        error_patterns = [
            ErrorPattern(error=category, count=count)
            for category, count in categories.most_common(TOP_N_PATTERNS)
        ]
        failed_steps = [
            StepFailureCount(step=step, count=count)
            for step, count in failing_steps.most_common(TOP_N_PATTERNS)
        ]

        recommendations = [
            CATEGORY_RECOMMENDATIONS[ErrorCategory(p.error)]
            for p in error_patterns
            if p.error in CATEGORY_RECOMMENDATIONS
        ]
        if failed_steps:
            recommendations.append(
                f"Step {failed_steps[0].step} fails frequently - review test logic"
            )

        return FailureAnalysis(
            has_failures=True,
            total_failures=len(failed),
            error_patterns=error_patterns,
            failed_steps=failed_steps,
            common_elements=[e for e, _ in failing_elements.most_common(TOP_N_PATTERNS)],
            recommendations=recommendations,
        )

    def get_performance_summary(
        self, results: list[TestResult] | None = None
    ) -> PerformanceSummary:
        """Average page metrics over the results that carry them."""
        results = self._results if results is None else results
        measured = [r for r in results if r.performance_metrics is not None]
        if not measured:
            return PerformanceSummary(has_metrics=False)

        metrics = [r.performance_metrics for r in measured]
        vitals = [m.core_web_vitals for m in metrics]
        slowest = sorted(measured, key=lambda r: r.performance_metrics.load_time, reverse=True)
        total_resources = sum(len(m.resources) for m in metrics)

        return PerformanceSummary(
            has_metrics=True,
            average_load_time=_average([m.load_time for m in metrics]),
            average_dom_content_loaded=_average([m.navigation.dom_content_loaded for m in metrics]),
            average_lcp=_average([v.lcp for v in vitals if v.lcp is not None]),
            average_fid=_average([v.fid for v in vitals if v.fid is not None]),
            average_cls=_average([v.cls for v in vitals if v.cls is not None]),
            slowest_tests=[
                SlowTest(test_id=r.test_case_id, load_time=r.performance_metrics.load_time)
                for r in slowest[:TOP_N_SLOWEST]
            ],
            resource_counts=ResourceCounts(
                average=round(total_resources / len(metrics)),
                total=total_resources,
            ),
        )

    def track_performance_metrics(
        self, test_id: str, metrics: PerformanceMetrics
    ) -> TestResult | None:
        """
        Attach metrics to the latest recorded result for ``test_id``.

        Returns:
            The updated result, or None if no result has that id
        """
        for index in range(len(self._results) - 1, -1, -1):
            if self._results[index].test_case_id == test_id:
                updated = self._results[index].model_copy(update={"performance_metrics": metrics})
                self._results[index] = updated
                return updated
        self._log.warning("No result to attach metrics to", test_id=test_id)
        return None

    # ── Access ────────────────────────────────────────────────────────────────

    def get_all_results(self) -> list[TestResult]:
        return list(self._results)

    def get_results_by_status(self, status: ResultStatus) -> list[TestResult]:
        return [r for r in self._results if r.status == status]

    def clear_results(self) -> None:
        self._results = []
        self._start_time = get_utc_now()
