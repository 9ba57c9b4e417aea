"""
File-system persistence gateway.

The store treats storage as a scoped key-value blob store: each scope is a
directory under the home directory and each key is a ``<name>.md`` file in it.
Writes replace the whole document atomically (temp file + rename), so
overlapping saves of the same group can waste work but never interleave.

All failures surface as StorageError; callers decide whether to log, notify,
or degrade.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List

log = logging.getLogger(__name__)

TASKS = "tasks"
PROGRESS = "progress"
TIME_TRACKER = "time-tracker"

SCOPES = (TASKS, PROGRESS, TIME_TRACKER)

DOCUMENT_SUFFIX = ".md"


class StorageError(OSError):
    """A read, write, delete or listing failure in the gateway."""


class FileGateway:
    """
    Persistence gateway rooted at a home directory.

    Usage:
        gateway = FileGateway(Path("~/.ticklist").expanduser())
        gateway.ensure_directories()
        gateway.write(TASKS, "default", text)
    """

    def __init__(self, home: Path) -> None:
        self._home = Path(home)

    @property
    def home(self) -> Path:
        return self._home

    def scope_dir(self, scope: str) -> Path:
        if scope not in SCOPES:
            raise ValueError(f"Unknown storage scope '{scope}'")
        return self._home / scope

    def path_for(self, scope: str, name: str) -> Path:
        """Return the document path for ``name`` inside ``scope``."""
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise ValueError(f"Invalid document name '{name}'")
        return self.scope_dir(scope) / f"{name}{DOCUMENT_SUFFIX}"

    # ------------------------------------------------------------------
    # Directory management
    # ------------------------------------------------------------------

    def mkdir(self, scope: str) -> None:
        try:
            self.scope_dir(scope).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create directory for '{scope}': {e}") from e

    def ensure_directories(self) -> None:
        """Create every scope directory that does not exist yet."""
        for scope in SCOPES:
            self.mkdir(scope)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def exists(self, scope: str, name: str) -> bool:
        return self.path_for(scope, name).is_file()

    def list(self, scope: str) -> List[str]:
        """Return document names (without suffix) in a scope, sorted."""
        directory = self.scope_dir(scope)
        if not directory.is_dir():
            return []
        try:
            return sorted(
                p.name[: -len(DOCUMENT_SUFFIX)]
                for p in directory.iterdir()
                if p.is_file() and p.name.endswith(DOCUMENT_SUFFIX) and not p.name.startswith(".")
            )
        except OSError as e:
            raise StorageError(f"Cannot list '{scope}': {e}") from e

    def read(self, scope: str, name: str) -> str:
        path = self.path_for(scope, name)
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    def write(self, scope: str, name: str, content: str) -> None:
        """Replace a document's content in one step."""
        path = self.path_for(scope, name)
        self.mkdir(scope)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{name}.", suffix=".tmp", dir=str(path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
                fh.write(content)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        log.debug("Wrote %s (%d bytes)", path, len(content))

    def delete(self, scope: str, name: str) -> bool:
        """Delete a document. Returns False if it did not exist."""
        path = self.path_for(scope, name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Cannot delete {path}: {e}") from e
        log.debug("Deleted %s", path)
        return True

    def read_all(self, scope: str) -> Dict[str, str]:
        """
        Read every document in a scope.

        Unreadable documents are logged and skipped; a listing failure
        propagates as StorageError.
        """
        result: Dict[str, str] = {}
        for name in self.list(scope):
            try:
                result[name] = self.read(scope, name)
            except StorageError:
                log.exception("Skipping unreadable document %s/%s", scope, name)
        return result
