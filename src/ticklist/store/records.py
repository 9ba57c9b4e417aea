"""
Loading and saving of the progress and time-tracking documents.

Both follow the store's degrade-to-empty policy: a missing or unreadable
document loads as an empty list and the failure is only logged.
"""

import logging
from typing import List

from ticklist.models.records import DayLog, ProgressItem
from ticklist.parsers.progress_parser import parse_progress, render_progress
from ticklist.parsers.timelog_parser import parse_time_log
from ticklist.storage.gateway import PROGRESS, TIME_TRACKER, FileGateway, StorageError

log = logging.getLogger(__name__)

PROGRESS_DOCUMENT = "progress"
TIME_LOG_DOCUMENT = "time-log"


def load_progress(gateway: FileGateway) -> List[ProgressItem]:
    try:
        if not gateway.exists(PROGRESS, PROGRESS_DOCUMENT):
            return []
        return parse_progress(gateway.read(PROGRESS, PROGRESS_DOCUMENT))
    except StorageError:
        log.exception("Failed to load progress items")
        return []


def save_progress(gateway: FileGateway, items: List[ProgressItem]) -> bool:
    """Write the progress document. Returns False (after logging) on failure."""
    try:
        gateway.write(PROGRESS, PROGRESS_DOCUMENT, render_progress(items))
    except StorageError:
        log.exception("Failed to save progress items")
        return False
    return True


def load_time_log(gateway: FileGateway) -> List[DayLog]:
    try:
        if not gateway.exists(TIME_TRACKER, TIME_LOG_DOCUMENT):
            return []
        return parse_time_log(gateway.read(TIME_TRACKER, TIME_LOG_DOCUMENT))
    except StorageError:
        log.exception("Failed to load time log")
        return []
