"""
Background document writer.

Design:
    Pending actions : Dict[str, (kind, text)]   (one per group id, latest wins)
    Work queue      : queue.Queue[Optional[str]] (group ids, None = stop)

A submit for a group that already has an unprocessed action replaces that
action instead of queueing a second one, so rapid mutations collapse into a
single write of the newest snapshot. One worker thread performs every write,
so a document never has two concurrent writers.
"""

import logging
import queue
import threading
from typing import Callable, Dict, Optional, Tuple

from ticklist.storage.gateway import TASKS, FileGateway, StorageError

log = logging.getLogger(__name__)

WRITE = "write"
DELETE = "delete"

# Called with (group_id, kind, exception) when a write or delete fails
ErrorCallback = Callable[[str, str, Exception], None]


class GroupWriter:
    """
    Latest-wins write queue for group documents.

    Without start(), nothing runs in the background and flush() performs the
    pending actions on the calling thread.
    """

    def __init__(self, gateway: FileGateway, on_error: Optional[ErrorCallback] = None) -> None:
        self._gateway = gateway
        self._on_error = on_error
        self._lock = threading.Lock()
        self._pending: Dict[str, Tuple[str, Optional[str]]] = {}
        self._queue: "queue.Queue[Optional[str]]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._flush_done: Optional[threading.Event] = None
        self._writes = 0
        self._failures = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the worker thread (daemon)."""
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(
            target=self._worker_loop, daemon=True, name="ticklist-writer"
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Finish pending work, then stop the worker thread."""
        if not self._thread:
            self.flush()
            return
        self._queue.put(None)  # sentinel
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            log.warning("Writer still busy after %.1fs; leaving remaining work to it", timeout)
            return
        self._thread = None
        # Anything submitted after the sentinel
        self._drain()

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit_write(self, group_id: str, text: str) -> None:
        self._submit(group_id, WRITE, text)

    def submit_delete(self, group_id: str) -> None:
        self._submit(group_id, DELETE, None)

    def _submit(self, group_id: str, kind: str, text: Optional[str]) -> None:
        with self._lock:
            already_queued = group_id in self._pending
            self._pending[group_id] = (kind, text)
        if not already_queued:
            self._queue.put(group_id)

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def stats(self) -> dict:
        with self._lock:
            return {
                "pending": len(self._pending),
                "writes": self._writes,
                "failures": self._failures,
                "running": self.running,
            }

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until every submitted action has been processed.

        Returns False if the timeout expired with work still pending.
        """
        if not self.running:
            self._drain()
            return True

        # One waiter at a time; queue.join also covers work submitted later
        with self._lock:
            done = self._flush_done
            if done is None or done.is_set():
                done = threading.Event()
                self._flush_done = done
                threading.Thread(
                    target=self._wait_idle, args=(done,), daemon=True, name="ticklist-flush"
                ).start()
        return done.wait(timeout)

    def _wait_idle(self, done: threading.Event) -> None:
        self._queue.join()
        done.set()

    def _drain(self) -> None:
        """Process queued group ids on the calling thread."""
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            try:
                if item is not None:
                    self._process(item)
            finally:
                self._queue.task_done()

    def _worker_loop(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is None:  # sentinel → stop
                    return
                self._process(item)
            finally:
                self._queue.task_done()

    def _process(self, group_id: str) -> None:
        with self._lock:
            action = self._pending.pop(group_id, None)
        if action is None:
            return

        kind, text = action
        try:
            if kind == WRITE:
                self._gateway.write(TASKS, group_id, text)
            else:
                self._gateway.delete(TASKS, group_id)
        except (StorageError, ValueError) as e:
            with self._lock:
                self._failures += 1
            log.error("Failed to %s group '%s': %s", kind, group_id, e)
            if self._on_error:
                try:
                    self._on_error(group_id, kind, e)
                except Exception:
                    log.exception("Error callback failed for group '%s'", group_id)
            return

        with self._lock:
            self._writes += 1
