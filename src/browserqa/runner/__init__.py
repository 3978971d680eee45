"""
Test execution: browser session, element interactions, step interpretation
and the case/suite executor.

- Bounded retry with linear or exponential backoff
- Click, fill and select with fallback strategies
- Placeholder resolution from merged test data
- Fail-fast step loop with artifact capture on failure
- Optional worker pool with one isolated context per case
"""

from browserqa.runner.elements import ElementInteractor, ElementOptions
from browserqa.runner.executor import CaseState, TestExecutor
from browserqa.runner.interpreter import StepInterpreter, merge_test_data, resolve_placeholders
from browserqa.runner.retry import retry_async
from browserqa.runner.session import BrowserSession

__all__ = [
    # Session
    "BrowserSession",
    # Interaction
    "ElementInteractor",
    "ElementOptions",
    "retry_async",
    # Interpretation
    "StepInterpreter",
    "merge_test_data",
    "resolve_placeholders",
    # Execution
    "CaseState",
    "TestExecutor",
]
