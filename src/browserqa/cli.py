"""
Command-line interface for browserqa.

Runs test case files against a real browser and writes JSON, HTML or JUnit
reports.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import structlog
from dotenv import load_dotenv

from browserqa.config import SUPPORTED_BROWSERS, VERSION

REPORT_FORMATS = ["json", "html", "junit"]


def configure_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure structlog for CLI output."""
    import logging

    log_level = "DEBUG" if debug else "INFO" if verbose else "WARNING"

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="browserqa",
        description="browserqa - declarative browser test execution",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  browserqa run cases.yaml
  browserqa run cases.json --browser firefox --format junit --format html
  browserqa run cases.yaml --workers 4 --retries 2 --output-dir reports

Environment (also read from .env):
  BROWSERQA_BROWSER, BROWSERQA_HEADLESS, BROWSERQA_TIMEOUT,
  BROWSERQA_NAVIGATION_TIMEOUT, BROWSERQA_VIDEO_DIR, BROWSERQA_IGNORE_HTTPS_ERRORS
""",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"browserqa {VERSION}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Execute test cases from a YAML or JSON file")
    run.add_argument(
        "cases",
        help="Path to a .yaml, .yml or .json file of test cases",
    )
    run.add_argument(
        "-b", "--browser",
        choices=list(SUPPORTED_BROWSERS),
        default=None,
        help="Browser engine (default: BROWSERQA_BROWSER or chromium)",
    )
    run.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window",
    )
    run.add_argument(
        "-t", "--timeout",
        type=int,
        default=None,
        help="Default page and element wait timeout in milliseconds",
    )
    run.add_argument(
        "-f", "--format",
        action="append",
        choices=REPORT_FORMATS,
        default=None,
        dest="formats",
        help="Report format, repeatable (default: html)",
    )
    run.add_argument(
        "-o", "--output-dir",
        default="./test-results",
        help="Directory for reports and artifacts (default: ./test-results)",
    )
    run.add_argument(
        "--stop-on-failure",
        action="store_true",
        help="Abandon remaining cases after the first failure",
    )
    run.add_argument(
        "--retries",
        type=int,
        default=0,
        help="Re-run a failed case up to N times; a later pass is FLAKY",
    )
    run.add_argument(
        "-w", "--workers",
        type=int,
        default=1,
        help="Run cases concurrently on N isolated contexts (default: 1)",
    )
    run.add_argument(
        "--capture-on-success",
        action="store_true",
        help="Capture screenshots and logs for passing cases too",
    )
    run.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    run.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )

    return parser


async def run_tests(args: argparse.Namespace) -> int:
    """
    Execute the test cases named on the command line.

    Returns:
        Exit code (0 when nothing failed, 1 otherwise)
    """
    from browserqa.config import BrowserConfig, ExecutionOptions, ParallelOptions, UtilsConfig
    from browserqa.engine import AutomationEngine
    from browserqa.loader import load_test_cases
    from browserqa.utils import format_duration

    logger = structlog.get_logger(__name__)

    try:
        test_cases = load_test_cases(args.cases)
        overrides: dict[str, object] = {}
        if args.browser:
            overrides["browser"] = args.browser
        if args.headed:
            overrides["headless"] = False
        if args.timeout is not None:
            overrides["timeout"] = args.timeout
        browser_config = BrowserConfig.from_env(**overrides)
        utils_config = (
            UtilsConfig(default_wait_timeout=args.timeout) if args.timeout is not None else None
        )
        options = ExecutionOptions(
            capture_on_success=args.capture_on_success,
            stop_on_failure=args.stop_on_failure,
            max_retries=args.retries,
            parallel=ParallelOptions(enabled=args.workers > 1, workers=args.workers),
        )
    except (OSError, ValueError) as e:
        logger.error("configuration_error", error=str(e))
        return 1

    output_dir = Path(args.output_dir)
    async with AutomationEngine(browser_config, utils_config, artifact_dir=output_dir) as engine:
        await engine.execute_test_suite(test_cases, options)

        for report_format in args.formats or ["html"]:
            path = engine.generate_report(report_format)
            logger.info("report_saved", format=report_format, path=str(path.absolute()))

        summary = engine.get_summary()

    print(
        f"{summary.total} tests: {summary.passed} passed, {summary.failed} failed, "
        f"{summary.flaky} flaky, {summary.skipped} skipped "
        f"({summary.pass_rate:.1f}% pass rate) in {format_duration(summary.duration)}"
    )
    return 1 if summary.failed else 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point for CLI."""
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose, debug=args.debug)

    try:
        exit_code = asyncio.run(run_tests(args))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nRun interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger = structlog.get_logger(__name__)
        logger.error("fatal_error", error=str(e))
        if args.debug:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
