from .group_parser import parse_content, render_document, render_task_line
from .progress_parser import parse_progress, render_progress
from .timelog_parser import parse_time_log

__all__ = [
    "parse_content",
    "render_document",
    "render_task_line",
    "parse_progress",
    "render_progress",
    "parse_time_log",
]
