"""
browserqa - Declarative browser test execution.

Executes test cases made of declarative steps (navigate, click, fill,
assert, ...) against Chromium, Firefox or WebKit through Playwright, with
fail-fast step execution, retrying element interactions, artifact capture and
JSON, HTML and JUnit reporting.
"""

__version__ = "1.0.0"
__author__ = "Olib AI"

from browserqa.config import (
    BrowserConfig,
    ExecutionOptions,
    ParallelOptions,
    RetryPolicy,
    ScreenshotPolicy,
    UtilsConfig,
)
from browserqa.engine import AutomationEngine, ReportFormat
from browserqa.events import CallbackListener, EventDispatcher, ExecutionListener
from browserqa.loader import load_test_cases
from browserqa.models import (
    ResultStatus,
    StepAction,
    StepResult,
    StepStatus,
    TestCase,
    TestResult,
    TestStep,
    TestSummary,
)
from browserqa.reporting import ResultAggregator

__all__ = [
    "__version__",
    "AutomationEngine",
    "ReportFormat",
    "BrowserConfig",
    "UtilsConfig",
    "ExecutionOptions",
    "ParallelOptions",
    "RetryPolicy",
    "ScreenshotPolicy",
    "CallbackListener",
    "EventDispatcher",
    "ExecutionListener",
    "ResultAggregator",
    "load_test_cases",
    "TestCase",
    "TestStep",
    "TestResult",
    "StepResult",
    "TestSummary",
    "ResultStatus",
    "StepAction",
    "StepStatus",
]
