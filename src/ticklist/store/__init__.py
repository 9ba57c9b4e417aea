from .task_store import TaskStore, clean_text
from .writer import GroupWriter
from .records import load_progress, load_time_log, save_progress

__all__ = [
    "TaskStore",
    "GroupWriter",
    "clean_text",
    "load_progress",
    "load_time_log",
    "save_progress",
]
