"""
Progress and time-tracking record models.

These live in sibling directories next to the group documents and share the
same line-oriented text style.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional


@dataclass
class ProgressItem:
    """A progress bar or counter tracked on the progress page."""

    id: str
    type: Literal["progress", "counter"]
    title: str
    note: Optional[str] = None
    direction: Optional[Literal["increment", "decrement"]] = None
    total: Optional[int] = None
    step: int = 1
    unit: str = ""
    current: int = 0
    today_count: int = 0
    last_update_date: Optional[str] = None
    frequency: Optional[Literal["daily", "weekly", "monthly"]] = None
    created_at: int = 0


@dataclass
class UsageEntry:
    name: str
    seconds: int


@dataclass
class DayLog:
    """One day of the time-tracking log."""

    date: str
    apps: List[UsageEntry] = field(default_factory=list)
    websites: List[UsageEntry] = field(default_factory=list)
