"""
Load test case definitions from YAML or JSON files.

A file holds either a list of cases or a mapping with a ``testCases`` (or
``test_cases``) list. Keys may be camelCase or snake_case.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog
import yaml

from browserqa.models import TestCase

logger = structlog.get_logger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")
JSON_SUFFIXES = (".json",)
CASE_LIST_KEYS = ("testCases", "test_cases")


def parse_test_cases(data: Any) -> list[TestCase]:
    """Validate already-decoded case data."""
    if isinstance(data, dict):
        for key in CASE_LIST_KEYS:
            if key in data:
                data = data[key]
                break
        else:
            raise ValueError(
                f"Expected a list of test cases or a mapping with one of: {', '.join(CASE_LIST_KEYS)}"
            )

    if not isinstance(data, list):
        raise ValueError(f"Expected a list of test cases, got {type(data).__name__}")

    return [TestCase.model_validate(item) for item in data]


def load_test_cases(path: str | Path) -> list[TestCase]:
    """
    Read and validate test cases from ``path``.

    Args:
        path: ``.json``, ``.yaml`` or ``.yml`` file

    Returns:
        Validated test cases in file order

    Raises:
        ValueError: Unsupported extension or document shape
        pydantic.ValidationError: A case does not match the model
    """
    path = Path(path)
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")

    if suffix in YAML_SUFFIXES:
        data = yaml.safe_load(text)
    elif suffix in JSON_SUFFIXES:
        data = json.loads(text)
    else:
        raise ValueError(f"Unsupported test case file type: {path.suffix or path.name}")

    cases = parse_test_cases(data)
    logger.info("Loaded test cases", path=str(path), count=len(cases))
    return cases
