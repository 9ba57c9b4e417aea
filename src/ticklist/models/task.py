"""
Core group and task data models.

Tasks are stored flat: the tree is expressed through ``parent_id`` and the
position among siblings through ``order``. The group document format in
parsers.group_parser is the canonical on-disk rendering of these objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional

# The sentinel group that always exists and can never be deleted
DEFAULT_GROUP_ID = "default"
DEFAULT_GROUP_NAME = "Inbox"

# Top level is depth 0, so four levels in total
MAX_DEPTH = 3


@dataclass
class Group:
    """A named, independently persisted collection of tasks."""

    id: str
    name: str
    pinned: bool = False
    created_at: int = 0
    updated_at: int = 0

    @property
    def is_default(self) -> bool:
        return self.id == DEFAULT_GROUP_ID

    def copy(self) -> Group:
        return replace(self)


@dataclass
class Task:
    """
    A single checklist item.

    ``completed_at`` is set whenever ``completed`` is True for tasks touched by
    the store, but documents written by older versions may omit it.
    """

    id: str
    content: str
    group_id: str = DEFAULT_GROUP_ID
    completed: bool = False
    created_at: int = 0
    completed_at: Optional[int] = None
    scheduled_time: Optional[str] = None
    order: int = 0
    parent_id: Optional[str] = None
    collapsed: bool = False

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None

    @property
    def level_key(self) -> tuple:
        """The (group_id, parent_id) pair identifying this task's sibling level."""
        return (self.group_id, self.parent_id)

    def copy(self) -> Task:
        return replace(self)


@dataclass
class GroupDocument:
    """A group header plus its flat task list, as read from or written to disk."""

    group: Group
    tasks: List[Task] = field(default_factory=list)


@dataclass
class Notification:
    """A transient, user-facing message (e.g. a failed save)."""

    level: str
    message: str
    created_at: int
