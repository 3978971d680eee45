"""
Utility functions for browserqa.

Small helpers shared by the executor and the reporters.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime


def get_utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def format_duration(ms: float) -> str:
    """
    Format a millisecond duration for humans.

    Args:
        ms: Duration in milliseconds

    Returns:
        ``850ms`` below a second, ``1.5s`` below a minute, ``2m 5s`` above
    """
    if ms < 1000:
        return f"{int(ms)}ms"
    if ms < 60000:
        return f"{ms / 1000:.1f}s"
    minutes = int(ms // 60000)
    seconds = int((ms % 60000) // 1000)
    return f"{minutes}m {seconds}s"


def safe_filename(name: str) -> str:
    """Replace anything that is not a word character or dash."""
    return re.sub(r"[^\w\-]", "_", name)


def timestamp_slug(moment: datetime | None = None) -> str:
    """ISO timestamp usable in file names (``2024-05-01T10-20-30-123456``)."""
    moment = moment or get_utc_now()
    return re.sub(r"[:.+]", "-", moment.replace(tzinfo=None).isoformat())
