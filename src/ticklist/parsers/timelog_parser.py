"""
Read-only parser for the time-tracking log (time-tracker/time-log.md).

The log is written by the desktop tracker as day blocks::

    ## 2024-11-30
    ### App usage
    - Editor: 3600 seconds
    ### Websites
    - docs.python.org: 120 seconds
"""

import re
from typing import List, Optional

from ticklist.models.records import DayLog, UsageEntry
from ticklist.utils.dates import is_iso_date

# Section headers; the tracker historically wrote them in Chinese
_APP_MARKERS = ("应用使用时间", "app usage", "apps")
_WEB_MARKERS = ("网站访问时间", "website", "websites")

_ENTRY = re.compile(r"^- (.+?):\s*(\d+)\s*(?:秒|s|secs?|seconds?)?$", re.IGNORECASE)


def _section_for(line: str) -> Optional[str]:
    lowered = line.lstrip("#").strip().lower()
    if any(marker in lowered for marker in _APP_MARKERS):
        return "apps"
    if any(marker in lowered for marker in _WEB_MARKERS):
        return "websites"
    return None


def parse_time_log(content: str) -> List[DayLog]:
    """Parse the time log into days; days without a date or entries are skipped."""
    days: List[DayLog] = []
    blocks = [b for b in re.split(r"(?m)^## ", content) if b.strip()]

    for block in blocks:
        day: Optional[DayLog] = None
        section = None
        entries = {"apps": [], "websites": []}

        for line in block.splitlines():
            stripped = line.strip()
            if not stripped:
                continue

            if is_iso_date(stripped):
                day = DayLog(date=stripped)
                continue

            m = _ENTRY.match(stripped)
            if m:
                if section:
                    entries[section].append(UsageEntry(name=m.group(1).strip(), seconds=int(m.group(2))))
                continue

            new_section = _section_for(stripped)
            if new_section:
                section = new_section

        if day and (entries["apps"] or entries["websites"]):
            day.apps = entries["apps"]
            day.websites = entries["websites"]
            days.append(day)

    return days
