from .gateway import (
    PROGRESS,
    SCOPES,
    TASKS,
    TIME_TRACKER,
    FileGateway,
    StorageError,
)

__all__ = [
    "PROGRESS",
    "SCOPES",
    "TASKS",
    "TIME_TRACKER",
    "FileGateway",
    "StorageError",
]
