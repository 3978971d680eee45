"""
Report rendering for test runs.

Generates JSON, HTML and JUnit XML documents from a summary and its results.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import structlog
from jinja2 import Environment

from browserqa.config import VERSION
from browserqa.models import ResultStatus, StepStatus, TestResult, TestSummary
from browserqa.utils import format_duration, get_utc_now

logger = structlog.get_logger(__name__)

XML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&apos;",
}

# Code points XML 1.0 forbids outright (ANSI colour codes in driver call logs)
XML_INVALID_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


def escape_xml(value: str) -> str:
    """Escape the five XML special characters and drop characters XML cannot carry."""
    return "".join(XML_ESCAPES.get(ch, ch) for ch in XML_INVALID_CHARS.sub("", value))


def write_report(path: str | Path, content: str) -> Path:
    """Write ``content`` to ``path``, creating parent directories."""
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content, encoding="utf-8")
    logger.info("Report written", path=str(output), bytes=len(content))
    return output


def format_result_for_export(result: TestResult) -> dict[str, Any]:
    """Serialise a result with human readable durations added."""
    data = result.model_dump(mode="json", by_alias=True, exclude_none=True)
    data["formattedDuration"] = format_duration(result.duration)
    for step in data.get("stepResults", []):
        step["formattedDuration"] = format_duration(step.get("duration", 0))
    return data


def build_json_report(summary: TestSummary, results: list[TestResult]) -> dict[str, Any]:
    return {
        "summary": summary.model_dump(mode="json", by_alias=True),
        "results": [format_result_for_export(r) for r in results],
        "generatedAt": get_utc_now().isoformat(),
        "version": VERSION,
    }


def render_html_report(summary: TestSummary, results: list[TestResult]) -> str:
    """Render a self-contained HTML report.

    Jinja2 autoescaping keeps error messages and selectors from breaking
    the markup.
    """
    env = Environment(autoescape=True)
    env.filters["duration"] = format_duration
    template = env.from_string(HTML_TEMPLATE)
    return template.render(
        summary=summary,
        results=results,
        generated_at=get_utc_now().strftime("%Y-%m-%d %H:%M:%S UTC"),
        pass_rate=f"{summary.pass_rate:.1f}",
        StepStatus=StepStatus,
    )


def render_junit_xml(
    summary: TestSummary,
    results: list[TestResult],
    suite_name: str = "browserqa",
) -> str:
    """Render results as a JUnit ``<testsuite>`` document."""
    cases: list[str] = []
    for result in results:
        case = (
            f'  <testcase name="{escape_xml(result.test_case_id)}" '
            f'classname="{escape_xml(suite_name)}" time="{result.duration / 1000:.3f}">'
        )
        if result.status == ResultStatus.FAILED:
            message = result.error or "Test failed"
            case += (
                f'<failure message="{escape_xml(message)}">'
                f"{escape_xml(result.error or '')}</failure>"
            )
        elif result.status == ResultStatus.SKIPPED:
            case += "<skipped/>"
        case += "</testcase>"
        cases.append(case)

    header = (
        f'<testsuite name="{escape_xml(suite_name)}" tests="{summary.total}" '
        f'failures="{summary.failed}" errors="0" skipped="{summary.skipped}" '
        f'time="{summary.duration / 1000:.3f}" timestamp="{summary.start_time.isoformat()}">'
    )
    body = "\n".join(cases)
    return f'<?xml version="1.0" encoding="UTF-8"?>\n{header}\n{body}\n</testsuite>\n'


HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Test Execution Report</title>
    <style>
        :root {
            --primary: #10B981;
            --passed: #16a34a;
            --failed: #dc2626;
            --skipped: #ca8a04;
            --flaky: #ea580c;
            --bg: #f8fafc;
            --card-bg: #ffffff;
            --text: #1e293b;
            --text-muted: #64748b;
            --border: #e2e8f0;
        }
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            background: var(--bg);
            color: var(--text);
            line-height: 1.6;
        }
        .container { max-width: 1200px; margin: 0 auto; padding: 2rem; }
        header {
            background: var(--primary);
            color: white;
            padding: 2rem;
            margin-bottom: 2rem;
            border-radius: 12px;
        }
        header h1 { font-size: 1.75rem; margin-bottom: 0.5rem; font-weight: 600; }
        header .meta { opacity: 0.9; font-size: 0.875rem; }
        .summary {
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(150px, 1fr));
            gap: 1rem;
            margin-bottom: 2rem;
        }
        .card {
            background: var(--card-bg);
            border-radius: 12px;
            padding: 1.25rem;
            text-align: center;
            box-shadow: 0 1px 3px rgba(0,0,0,0.1);
        }
        .card h3 { font-size: 0.75rem; color: var(--text-muted); text-transform: uppercase; letter-spacing: 0.05em; }
        .card .value { font-size: 1.75rem; font-weight: 700; }
        .passed { color: var(--passed); }
        .failed { color: var(--failed); }
        .skipped { color: var(--skipped); }
        .flaky { color: var(--flaky); }
        section {
            background: var(--card-bg);
            border-radius: 12px;
            padding: 1.5rem;
            margin-bottom: 2rem;
            box-shadow: 0 1px 3px rgba(0,0,0,0.1);
        }
        section h2 { font-size: 1.25rem; margin-bottom: 1rem; }
        table { width: 100%; border-collapse: collapse; }
        th, td { padding: 0.75rem; text-align: left; border-bottom: 1px solid var(--border); vertical-align: top; }
        th { font-size: 0.75rem; color: var(--text-muted); text-transform: uppercase; }
        .badge {
            padding: 0.2rem 0.6rem;
            border-radius: 4px;
            color: white;
            font-size: 0.75rem;
            font-weight: 600;
        }
        .status-passed { background: var(--passed); }
        .status-failed { background: var(--failed); }
        .status-skipped { background: var(--skipped); }
        .status-flaky { background: var(--flaky); }
        .error { font-family: monospace; font-size: 0.8rem; color: var(--failed); word-break: break-word; }
        details summary { cursor: pointer; color: var(--text-muted); font-size: 0.85rem; }
        details table { margin-top: 0.5rem; }
        footer { text-align: center; color: var(--text-muted); font-size: 0.8rem; }
    </style>
</head>
<body>
<div class="container">
    <header>
        <h1>Test Execution Report</h1>
        <div class="meta">
            Generated {{ generated_at }}
            | Platform: {{ summary.environment.platform }}
            | Browser: {{ summary.environment.browser }} {{ summary.environment.version }}
        </div>
    </header>

    <div class="summary">
        <div class="card"><h3>Total Tests</h3><div class="value">{{ summary.total }}</div></div>
        <div class="card"><h3>Passed</h3><div class="value passed">{{ summary.passed }}</div></div>
        <div class="card"><h3>Failed</h3><div class="value failed">{{ summary.failed }}</div></div>
        <div class="card"><h3>Skipped</h3><div class="value skipped">{{ summary.skipped }}</div></div>
        <div class="card"><h3>Flaky</h3><div class="value flaky">{{ summary.flaky }}</div></div>
        <div class="card"><h3>Pass Rate</h3><div class="value">{{ pass_rate }}%</div></div>
        <div class="card"><h3>Duration</h3><div class="value">{{ summary.duration | duration }}</div></div>
    </div>

    <section>
        <h2>Status Counts</h2>
        <table class="counts-table">
            <thead><tr><th>Status</th><th>Count</th></tr></thead>
            <tbody>
                <tr><td><span class="badge status-passed">PASSED</span></td><td>{{ summary.passed }}</td></tr>
                <tr><td><span class="badge status-failed">FAILED</span></td><td>{{ summary.failed }}</td></tr>
                <tr><td><span class="badge status-skipped">SKIPPED</span></td><td>{{ summary.skipped }}</td></tr>
                <tr><td><span class="badge status-flaky">FLAKY</span></td><td>{{ summary.flaky }}</td></tr>
            </tbody>
        </table>
    </section>

    <section>
        <h2>Test Results</h2>
        <table class="results-table">
            <thead>
                <tr><th>Test ID</th><th>Status</th><th>Duration</th><th>Steps</th><th>Error</th></tr>
            </thead>
            <tbody>
            {% for result in results %}
                <tr>
                    <td>{{ result.test_case_id }}</td>
                    <td><span class="badge status-{{ result.status | lower }}">{{ result.status }}</span></td>
                    <td>{{ result.duration | duration }}</td>
                    <td>
                        {{ result.step_results | selectattr("status", "equalto", StepStatus.PASSED) | list | length }}/{{ result.step_results | length }}
                        {% if result.step_results %}
                        <details>
                            <summary>Step details</summary>
                            <table>
                                {% for step in result.step_results %}
                                <tr>
                                    <td>#{{ step.step }}</td>
                                    <td>{{ step.action or "" }}</td>
                                    <td><span class="badge status-{{ step.status | lower }}">{{ step.status }}</span></td>
                                    <td>{{ step.duration | duration }}</td>
                                    <td class="error">{{ step.error or "" }}</td>
                                </tr>
                                {% endfor %}
                            </table>
                        </details>
                        {% endif %}
                    </td>
                    <td class="error">{{ result.error or "-" }}</td>
                </tr>
            {% endfor %}
            </tbody>
        </table>
    </section>

    <footer>browserqa {{ summary.start_time.strftime("%Y-%m-%d %H:%M:%S") }} to {{ summary.end_time.strftime("%Y-%m-%d %H:%M:%S") }}</footer>
</div>
</body>
</html>
"""
