"""
Timestamp helpers.

All persisted timestamps are integer milliseconds since the epoch.
"""

import re
import time
from datetime import datetime
from typing import Optional

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)


def ms_to_date(ms: int) -> str:
    """Local calendar date (YYYY-MM-DD) for a millisecond timestamp."""
    return datetime.fromtimestamp(ms / 1000).date().isoformat()


def is_iso_date(value: Optional[str]) -> bool:
    """True if value is a bare YYYY-MM-DD date string."""
    return bool(value) and bool(_ISO_DATE.match(value.strip()))
