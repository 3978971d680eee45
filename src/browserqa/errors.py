"""
Exception types raised by the execution engine.

Every exception carries the literal message that ends up in step results and
reports, so messages are written for the person reading a failed test.
"""

from __future__ import annotations


class AutomationError(Exception):
    """Base exception for browser automation errors."""


class ElementNotFoundError(AutomationError):
    """Raised when a selector is never satisfied within the timeout."""


class ElementNotInteractableError(AutomationError):
    """Raised when an element is found but not enabled for interaction."""


class ValidationError(AutomationError):
    """Raised when a written value does not read back as written."""


class OptionNotFoundError(AutomationError):
    """Raised when no select option carries the requested label."""


class UnsupportedActionError(AutomationError):
    """Raised when a step names an action the interpreter does not know."""

    def __init__(self, action: str) -> None:
        super().__init__(f"Unsupported action: {action}")
        self.action = action


class SelectorRequiredError(AutomationError):
    """Raised when an element-targeted action has no selector."""

    def __init__(self, action: str) -> None:
        super().__init__(f"Element selector required for {action} action")
        self.action = action


class AssertionFailedError(AutomationError):
    """Raised when an expected text, URL or title does not match."""


class InvalidAssertionError(AutomationError):
    """Raised for an assertion that targets neither an element, a URL nor a title."""


class SessionNotInitializedError(AutomationError):
    """Raised when an operation needs a browser page that does not exist yet."""

    def __init__(self, message: str = "Browser not initialized. Call initialize() first.") -> None:
        super().__init__(message)


class SessionCrashedError(AutomationError):
    """Raised when the page or its context dies while a case is running."""
