from .task import (
    DEFAULT_GROUP_ID,
    DEFAULT_GROUP_NAME,
    MAX_DEPTH,
    Group,
    GroupDocument,
    Notification,
    Task,
)
from .records import DayLog, ProgressItem, UsageEntry

__all__ = [
    "DEFAULT_GROUP_ID",
    "DEFAULT_GROUP_NAME",
    "MAX_DEPTH",
    "Group",
    "GroupDocument",
    "Notification",
    "Task",
    "DayLog",
    "ProgressItem",
    "UsageEntry",
]
