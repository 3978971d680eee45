"""
Configuration for browser sessions, element interactions and test execution.

Values can be set in code or, for browser settings, from ``BROWSERQA_*``
environment variables (the CLI loads a ``.env`` file first).
"""

from __future__ import annotations

import os
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

VERSION = "1.0.0"

SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")

ENV_PREFIX = "BROWSERQA_"


class Backoff(StrEnum):
    """Growth pattern of delays between retries."""

    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class Viewport(BaseModel):
    width: int = Field(default=1280, ge=1)
    height: int = Field(default=720, ge=1)


class BrowserConfig(BaseModel):
    """Browser launch and context configuration."""

    browser: str = Field(default="chromium", description="Browser engine to launch")
    headless: bool = Field(default=True, description="Run without a visible window")
    args: list[str] = Field(default_factory=list, description="Extra launch arguments")
    timeout: int = Field(default=30000, ge=0, description="Default page timeout in ms")
    navigation_timeout: int = Field(default=30000, ge=0, description="Navigation timeout in ms")
    viewport: Viewport = Field(default_factory=Viewport)
    ignore_https_errors: bool = Field(default=False, description="Tolerate SSL errors")
    record_video_dir: str | None = Field(default=None, description="Directory for videos")
    context_options: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional keyword arguments passed to new_context",
    )

    @field_validator("browser")
    @classmethod
    def validate_browser(cls, v: str) -> str:
        """Only the engines Playwright ships are accepted."""
        v = v.lower()
        if v not in SUPPORTED_BROWSERS:
            raise ValueError(
                f"Unsupported browser type: {v} (expected one of {', '.join(SUPPORTED_BROWSERS)})"
            )
        return v

    @classmethod
    def from_env(cls, **overrides: Any) -> BrowserConfig:
        """Build a config from BROWSERQA_* environment variables."""
        values: dict[str, Any] = {}
        if browser := os.environ.get(f"{ENV_PREFIX}BROWSER"):
            values["browser"] = browser
        if headless := os.environ.get(f"{ENV_PREFIX}HEADLESS"):
            values["headless"] = headless.lower() not in ("0", "false", "no")
        if timeout := os.environ.get(f"{ENV_PREFIX}TIMEOUT"):
            values["timeout"] = int(timeout)
        if nav_timeout := os.environ.get(f"{ENV_PREFIX}NAVIGATION_TIMEOUT"):
            values["navigation_timeout"] = int(nav_timeout)
        if video_dir := os.environ.get(f"{ENV_PREFIX}VIDEO_DIR"):
            values["record_video_dir"] = video_dir
        if os.environ.get(f"{ENV_PREFIX}IGNORE_HTTPS_ERRORS", "").lower() in ("1", "true", "yes"):
            values["ignore_https_errors"] = True
        values.update(overrides)
        return cls(**values)


class RetryPolicy(BaseModel):
    """Bounded retry with linear or exponential backoff."""

    max_retries: int = Field(default=3, ge=0)
    delay: int = Field(default=1000, ge=0, description="Base delay in ms")
    backoff: Backoff = Field(default=Backoff.EXPONENTIAL)

    def delay_for(self, attempt: int) -> int:
        """Delay in ms after failed attempt ``attempt`` (0-indexed)."""
        if self.backoff == Backoff.EXPONENTIAL:
            return self.delay * (2 ** attempt)
        return self.delay


class ScreenshotPolicy(BaseModel):
    on_failure: bool = True
    on_success: bool = False
    full_page: bool = True


class UtilsConfig(BaseModel):
    """Element interaction layer configuration."""

    default_wait_timeout: int = Field(default=30000, ge=0)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    screenshots: ScreenshotPolicy = Field(default_factory=ScreenshotPolicy)


class ParallelOptions(BaseModel):
    enabled: bool = False
    workers: int = Field(default=1, ge=1)


class ExecutionOptions(BaseModel):
    """Options for running a case or a suite."""

    capture_on_success: bool = Field(default=False, description="Capture artifacts for passing cases")
    stop_on_failure: bool = Field(default=False, description="Abandon the suite after a failed case")
    delay_between_tests: int = Field(default=0, ge=0, description="Pause between cases in ms")
    max_retries: int = Field(default=0, ge=0, description="Re-runs of a failed case; a later pass is FLAKY")
    parallel: ParallelOptions = Field(default_factory=ParallelOptions)
    collect_performance: bool = Field(default=False, description="Attach page performance metrics")
    skip_inactive: bool = Field(default=True, description="Record non-ACTIVE cases as SKIPPED")


DEFAULT_BROWSER_CONFIG = BrowserConfig()
DEFAULT_UTILS_CONFIG = UtilsConfig()
DEFAULT_EXECUTION_OPTIONS = ExecutionOptions()
