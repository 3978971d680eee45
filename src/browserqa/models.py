"""
Pydantic models for browserqa.

Defines test definitions (cases and steps), execution records (step and case
results with their artifacts) and the derived views computed from a run
(summary, failure analysis, performance summary).

Fields are snake_case in Python and camelCase on the wire, so reports keep
the ``testCaseId`` / ``stepResults`` shape and camelCase case files load as-is.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CaseType(StrEnum):
    """Kind of scenario a test case exercises."""

    UI_WORKFLOW = "UI_WORKFLOW"
    API_CONTRACT = "API_CONTRACT"
    PERFORMANCE = "PERFORMANCE"


class Priority(StrEnum):
    """Test case priority."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class CaseStatus(StrEnum):
    """Lifecycle status of a test case definition."""

    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"
    DEPRECATED = "DEPRECATED"


class StepStatus(StrEnum):
    """Outcome of a single executed step."""

    PASSED = "PASSED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class ResultStatus(StrEnum):
    """Outcome of a test case run."""

    PASSED = "PASSED"
    FAILED = "FAILED"
    FLAKY = "FLAKY"
    SKIPPED = "SKIPPED"


class StepAction(StrEnum):
    """Actions understood by the step interpreter."""

    NAVIGATE = "navigate"
    CLICK = "click"
    FILL = "fill"
    TYPE = "type"
    SELECT = "select"
    WAIT = "wait"
    WAIT_FOR_ELEMENT = "waitForElement"
    WAIT_FOR_NAVIGATION = "waitForNavigation"
    ASSERT = "assert"
    SCROLL = "scroll"
    HOVER = "hover"
    KEY_PRESS = "keyPress"


class WireModel(BaseModel):
    """Base model serialising to camelCase and accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Definitions ───────────────────────────────────────────────────────────────

class TestStep(WireModel):
    """One declarative action within a test case."""

    __test__: ClassVar[bool] = False
    model_config = ConfigDict(frozen=True)

    step: int = Field(ge=1, description="1-based sequence number")
    action: str = Field(min_length=1, description="Action name, see StepAction")
    element: str | None = Field(default=None, description="Target selector")
    expected: str = Field(
        default="",
        description="Literal value, {{placeholder}} template or tagged assertion",
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Per-step data merged over the case test data",
    )


class TestCase(WireModel):
    """Immutable definition of an end-to-end scenario."""

    __test__: ClassVar[bool] = False
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Unique test case identifier")
    module_id: str = Field(default="", description="Module the case was generated for")
    title: str = Field(default="", description="Human readable title")
    type: CaseType = Field(default=CaseType.UI_WORKFLOW)
    priority: Priority = Field(default=Priority.MEDIUM)
    steps: list[TestStep] = Field(default_factory=list)
    test_data: dict[str, Any] = Field(default_factory=dict)
    expected_results: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(
        default_factory=list,
        description="Other test case ids (declared, not enforced)",
    )
    status: CaseStatus = Field(default=CaseStatus.ACTIVE)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @model_validator(mode="after")
    def check_step_order(self) -> "TestCase":
        """Step numbers must be unique and strictly increasing."""
        numbers = [s.step for s in self.steps]
        for previous, current in zip(numbers, numbers[1:]):
            if current <= previous:
                raise ValueError(
                    f"Step numbers must be strictly increasing, got {previous} then {current}"
                )
        return self


# ── Execution records ─────────────────────────────────────────────────────────

class StepResult(WireModel):
    """Result of a single executed step."""

    step: int
    status: StepStatus
    duration: int = Field(default=0, ge=0, description="Wall-clock milliseconds")
    error: str | None = None
    action: str | None = None
    element: str | None = None


class Artifacts(WireModel):
    """Side-channel outputs captured for a test case."""

    screenshot: str | None = None
    logs: list[str] = Field(default_factory=list)
    video: str | None = None


class BrowserInfo(WireModel):
    """Browser a result was produced on."""

    name: str = "chromium"
    version: str = "unknown"
    headless: bool = True


class NavigationTiming(WireModel):
    load_start: float = 0.0
    load_end: float = 0.0
    dom_content_loaded: float = 0.0
    dom_complete: float = 0.0


class ResourceTiming(WireModel):
    name: str
    start_time: float = 0.0
    end_time: float = 0.0
    transfer_size: int = 0


class CoreWebVitals(WireModel):
    """Core Web Vitals; a field is None when the browser has no matching observer."""

    lcp: float | None = None
    fid: float | None = None
    cls: float | None = None


class PerformanceMetrics(WireModel):
    """Page performance data gathered from the browser's Performance API."""

    navigation: NavigationTiming = Field(default_factory=NavigationTiming)
    resources: list[ResourceTiming] = Field(default_factory=list)
    core_web_vitals: CoreWebVitals = Field(default_factory=CoreWebVitals)

    @property
    def load_time(self) -> float:
        return self.navigation.load_end - self.navigation.load_start


class TestResult(WireModel):
    """Finalized record of one executed test case."""

    __test__: ClassVar[bool] = False

    test_case_id: str
    status: ResultStatus
    duration: int = Field(default=0, ge=0, description="Wall-clock milliseconds")
    step_results: list[StepResult] = Field(default_factory=list)
    error: str | None = None
    artifacts: Artifacts | None = None
    executed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    browser_info: BrowserInfo | None = None
    performance_metrics: PerformanceMetrics | None = None

    @property
    def failed_step(self) -> StepResult | None:
        """First failing step, if any."""
        for step_result in self.step_results:
            if step_result.status == StepStatus.FAILED:
                return step_result
        return None


# ── Derived views ─────────────────────────────────────────────────────────────

class EnvironmentInfo(WireModel):
    browser: str = "chromium"
    version: str = "unknown"
    platform: str = ""


class TestSummary(WireModel):
    """Counts and timing computed from a set of results."""

    __test__: ClassVar[bool] = False

    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    flaky: int = 0
    duration: int = 0
    start_time: datetime
    end_time: datetime
    environment: EnvironmentInfo = Field(default_factory=EnvironmentInfo)

    @property
    def pass_rate(self) -> float:
        """Percentage of passed results."""
        if not self.total:
            return 0.0
        return self.passed / self.total * 100


class ErrorPattern(WireModel):
    error: str
    count: int


class StepFailureCount(WireModel):
    step: int
    count: int


class FailureAnalysis(WireModel):
    """Failure breakdown; check ``has_failures`` before reading the rest."""

    has_failures: bool
    total_failures: int = 0
    error_patterns: list[ErrorPattern] = Field(default_factory=list)
    failed_steps: list[StepFailureCount] = Field(default_factory=list)
    common_elements: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class SlowTest(WireModel):
    test_id: str
    load_time: float


class ResourceCounts(WireModel):
    average: int = 0
    total: int = 0


class PerformanceSummary(WireModel):
    """Averaged page metrics; check ``has_metrics`` before reading the rest."""

    has_metrics: bool
    average_load_time: float = 0.0
    average_dom_content_loaded: float = 0.0
    average_lcp: float = 0.0
    average_fid: float = 0.0
    average_cls: float = 0.0
    slowest_tests: list[SlowTest] = Field(default_factory=list)
    resource_counts: ResourceCounts | None = None
