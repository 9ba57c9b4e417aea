"""
In-memory group/task store with background write-back.

Design:
    Groups       : List[Group]            (display order: pinned first)
    Tasks        : Dict[str, Task]        (flat; tree via parent_id, position via order)
    Writer       : GroupWriter            (latest-wins document writes per group)
    Notifications: deque[Notification]    (failed saves, drained by the caller)

Every mutation runs under _lock, restores the invariants before returning
(dense 0..n-1 order within each (group_id, parent_id) level, no cycles,
depth <= MAX_DEPTH, parents in the same group), then renders the affected
group document and hands it to the writer. Persistence failures never undo
a mutation; they only produce a notification.

Unknown ids and requests that would break an invariant are logged and
ignored. Nothing here raises to the caller.
"""

import logging
import sys
import threading
from collections import deque
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from ticklist.models.task import (
    DEFAULT_GROUP_ID,
    DEFAULT_GROUP_NAME,
    MAX_DEPTH,
    Group,
    Notification,
    Task,
)
from ticklist.parsers.group_parser import parse_content, render_document
from ticklist.storage.gateway import TASKS, FileGateway, StorageError
from ticklist.store.writer import GroupWriter
from ticklist.utils.dates import now_ms
from ticklist.utils.ids import generate_unique_id
from ticklist.utils.text import clean_text

log = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 50


def _renumber(tasks: Iterable[Task]) -> None:
    for index, task in enumerate(tasks):
        task.order = index


class TaskStore:
    """
    The authoritative model of groups and tasks.

    Construct once at application start, call load_all(), then start() to run
    the background writer. close() (or leaving a ``with`` block) flushes
    pending writes and stops the writer.
    """

    def __init__(
        self,
        gateway: FileGateway,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._gateway = gateway
        self._clock = clock
        self._lock = threading.RLock()
        self._groups: List[Group] = []
        self._tasks: Dict[str, Task] = {}
        self._active_group_id = DEFAULT_GROUP_ID
        self._notifications: "deque[Notification]" = deque(maxlen=MAX_NOTIFICATIONS)
        self._writer = GroupWriter(gateway, on_error=self._on_write_error)
        self._loaded = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background writer thread."""
        self._writer.start()

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for (or, without a writer thread, perform) all pending writes."""
        return self._writer.flush(timeout)

    def close(self) -> None:
        """Flush pending writes and stop the writer."""
        self._writer.stop()

    def __enter__(self) -> "TaskStore":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def gateway(self) -> FileGateway:
        return self._gateway

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _default_group(self) -> Group:
        now = self._clock()
        return Group(id=DEFAULT_GROUP_ID, name=DEFAULT_GROUP_NAME, created_at=now, updated_at=now)

    def load_all(self) -> None:
        """
        Replace memory with the contents of every group document.

        A document that fails to read or parse is skipped. If no group could be
        loaded, the default group is synthesized and written. If the tasks
        directory itself is unusable, memory degrades to an empty default group.
        """
        try:
            self._gateway.ensure_directories()
            documents = self._gateway.read_all(TASKS)
        except StorageError:
            log.exception("Failed to load groups; starting with an empty default group")
            with self._lock:
                self._groups = [self._default_group()]
                self._tasks = {}
                self._active_group_id = DEFAULT_GROUP_ID
                self._loaded = True
            return

        groups: List[Group] = []
        tasks: Dict[str, Task] = {}
        duplicates = 0

        for name, text in documents.items():
            try:
                doc = parse_content(text, name)
            except Exception:
                log.exception("Failed to parse group document %s", name)
                continue

            groups.append(doc.group)
            for task in doc.tasks:
                if task.id in tasks:
                    duplicates += 1
                    continue
                tasks[task.id] = task

        if duplicates:
            log.warning("Dropped %d duplicate task id(s) while loading", duplicates)

        synthesized = not groups
        if synthesized:
            groups.append(self._default_group())

        # Stable: pinned first, otherwise as loaded
        groups.sort(key=lambda g: not g.pinned)

        with self._lock:
            self._groups = groups
            self._tasks = tasks
            if self._find_group(self._active_group_id) is None:
                self._active_group_id = self._fallback_group_id()
            for group in groups:
                self._repair_group(group.id)
            self._loaded = True
            if synthesized:
                self._persist(DEFAULT_GROUP_ID)

        log.info("Loaded %d groups, %d tasks from %s", len(groups), len(tasks), self._gateway.home)

    def _repair_group(self, group_id: str) -> None:
        """
        Make a freshly loaded group satisfy the tree and order invariants.

        Dangling parents and cycles become top-level, over-deep tasks are
        re-attached to their depth-(MAX_DEPTH - 1) ancestor, and every level
        is renumbered by stored order (ties keep document order).
        """
        members = [t for t in self._tasks.values() if t.group_id == group_id]
        ids = {t.id for t in members}

        for task in members:
            if task.parent_id is not None and (task.parent_id not in ids or task.parent_id == task.id):
                log.warning("Task %s has unknown parent %s; moving to top level", task.id, task.parent_id)
                task.parent_id = None

        for task in members:
            if self._in_cycle(task):
                log.warning("Task %s is part of a parent cycle; moving to top level", task.id)
                task.parent_id = None

        for task in sorted(members, key=self._depth):
            depth = self._depth(task)
            if depth <= MAX_DEPTH:
                continue
            anchor = task
            while self._depth(anchor) > MAX_DEPTH - 1:
                anchor = self._tasks[anchor.parent_id]
            log.warning("Task %s is nested too deep; re-attaching under %s", task.id, anchor.id)
            task.parent_id = anchor.id
            task.order = sys.maxsize

        self._renumber_group(group_id)

    def _in_cycle(self, task: Task) -> bool:
        seen: Set[str] = set()
        current = task.parent_id
        while current is not None:
            if current == task.id:
                return True
            if current in seen or current not in self._tasks:
                return False
            seen.add(current)
            current = self._tasks[current].parent_id
        return False

    # ------------------------------------------------------------------
    # Internal helpers (caller holds _lock)
    # ------------------------------------------------------------------

    def _find_group(self, group_id: Optional[str]) -> Optional[Group]:
        for group in self._groups:
            if group.id == group_id:
                return group
        return None

    def _fallback_group_id(self) -> str:
        """The default group, or the first group when documents lack one."""
        if self._find_group(DEFAULT_GROUP_ID) is None and self._groups:
            return self._groups[0].id
        return DEFAULT_GROUP_ID

    def _siblings(self, group_id: str, parent_id: Optional[str], exclude: Optional[str] = None) -> List[Task]:
        """Tasks of one level sorted by order; ties keep insertion order."""
        level = [
            t for t in self._tasks.values()
            if t.group_id == group_id and t.parent_id == parent_id and t.id != exclude
        ]
        level.sort(key=lambda t: t.order)
        return level

    def _renumber_level(self, group_id: str, parent_id: Optional[str]) -> None:
        _renumber(self._siblings(group_id, parent_id))

    def _renumber_group(self, group_id: str) -> None:
        parents = {t.parent_id for t in self._tasks.values() if t.group_id == group_id}
        for parent_id in parents:
            self._renumber_level(group_id, parent_id)

    def _children(self, task_id: str) -> List[Task]:
        task = self._tasks.get(task_id)
        if task is None:
            return []
        return self._siblings(task.group_id, task_id)

    def _descendants(self, task_id: str) -> List[Task]:
        """All transitive descendants in depth-first display order."""
        result: List[Task] = []
        for child in self._children(task_id):
            result.append(child)
            result.extend(self._descendants(child.id))
        return result

    def _depth(self, task: Task) -> int:
        depth = 0
        seen = {task.id}
        current = task.parent_id
        while current is not None and current in self._tasks and current not in seen:
            seen.add(current)
            depth += 1
            current = self._tasks[current].parent_id
        return depth

    def _subtree_height(self, task_id: str) -> int:
        """Levels below task_id (0 for a leaf)."""
        children = self._children(task_id)
        if not children:
            return 0
        return 1 + max(self._subtree_height(c.id) for c in children)

    def _persist(self, group_id: str) -> None:
        """Snapshot a group document and queue it for writing."""
        group = self._find_group(group_id)
        if group is None:
            return
        group.updated_at = self._clock()
        tasks = [t for t in self._tasks.values() if t.group_id == group_id]
        self._writer.submit_write(group_id, render_document(group, tasks))

    def _set_completed(self, task: Task, completed: bool) -> None:
        if task.completed == completed:
            return
        task.completed = completed
        task.completed_at = self._clock() if completed else None

    def _notify(self, level: str, message: str) -> None:
        with self._lock:
            self._notifications.append(
                Notification(level=level, message=message, created_at=self._clock())
            )

    def _on_write_error(self, group_id: str, kind: str, error: Exception) -> None:
        with self._lock:
            group = self._find_group(group_id)
        label = group.name if group else group_id
        if kind == "delete":
            self._notify("error", f"Could not remove '{label}' from disk: {error}")
        else:
            self._notify("error", f"Changes to '{label}' may not be saved: {error}")

    # ------------------------------------------------------------------
    # Group mutations
    # ------------------------------------------------------------------

    def create_group(self, name: str) -> Optional[Group]:
        """Append a new, unpinned group. Returns a copy, or None for an empty name."""
        name = clean_text(name)
        if not name:
            log.warning("Refusing to create a group with an empty name")
            return None

        with self._lock:
            now = self._clock()
            group = Group(
                id=generate_unique_id({g.id for g in self._groups}),
                name=name,
                created_at=now,
                updated_at=now,
            )
            self._groups.append(group)
            self._persist(group.id)
            return group.copy()

    def rename_group(self, group_id: str, name: str) -> bool:
        name = clean_text(name)
        with self._lock:
            group = self._find_group(group_id)
            if group is None or not name:
                log.warning("Cannot rename group %s", group_id)
                return False
            group.name = name
            self._persist(group_id)
            return True

    def toggle_pin(self, group_id: str) -> bool:
        """
        Flip a group's pinned flag and move it to keep pinned groups first.

        A newly pinned group goes to the very front; a newly unpinned group
        goes right after the remaining pinned groups.
        """
        with self._lock:
            group = self._find_group(group_id)
            if group is None:
                return False

            group.pinned = not group.pinned
            others = [g for g in self._groups if g.id != group_id]
            if group.pinned:
                self._groups = [group] + others
            else:
                pinned = [g for g in others if g.pinned]
                unpinned = [g for g in others if not g.pinned]
                self._groups = pinned + [group] + unpinned

            self._persist(group_id)
            return True

    def delete_group(self, group_id: str) -> bool:
        """Remove a group, its tasks and its document. The default group is kept."""
        with self._lock:
            if group_id == DEFAULT_GROUP_ID:
                log.info("The default group cannot be deleted")
                return False
            group = self._find_group(group_id)
            if group is None:
                return False

            self._groups = [g for g in self._groups if g.id != group_id]
            self._tasks = {tid: t for tid, t in self._tasks.items() if t.group_id != group_id}
            if self._active_group_id == group_id:
                self._active_group_id = self._fallback_group_id()
            self._writer.submit_delete(group_id)
            return True

    def reorder_groups(self, active_id: str, over_id: str) -> bool:
        """Move a group to another group's position (display order only, not persisted)."""
        with self._lock:
            ids = [g.id for g in self._groups]
            if active_id not in ids or over_id not in ids:
                return False
            old_index = ids.index(active_id)
            new_index = ids.index(over_id)
            moved = self._groups.pop(old_index)
            self._groups.insert(new_index, moved)
            return True

    def set_active_group(self, group_id: str) -> bool:
        with self._lock:
            if self._find_group(group_id) is None:
                return False
            self._active_group_id = group_id
            return True

    # ------------------------------------------------------------------
    # Task mutations
    # ------------------------------------------------------------------

    def create_task(self, content: str, group_id: str) -> Optional[Task]:
        """Append a new top-level task to a group."""
        content = clean_text(content)
        with self._lock:
            if self._find_group(group_id) is None:
                log.warning("Cannot add task: unknown group %s", group_id)
                return None
            if not content:
                log.warning("Refusing to add a task with empty content")
                return None

            task = Task(
                id=generate_unique_id(self._tasks),
                content=content,
                group_id=group_id,
                created_at=self._clock(),
                order=len(self._siblings(group_id, None)),
            )
            self._tasks[task.id] = task
            self._persist(group_id)
            return task.copy()

    def create_subtask(self, parent_id: str, content: str) -> Optional[Task]:
        """Append a new task as the last child of parent_id."""
        content = clean_text(content)
        with self._lock:
            parent = self._tasks.get(parent_id)
            if parent is None:
                log.warning("Cannot add subtask: unknown parent %s", parent_id)
                return None
            if not content:
                log.warning("Refusing to add a subtask with empty content")
                return None
            if self._depth(parent) >= MAX_DEPTH:
                log.warning("Cannot add subtask under %s: maximum depth %d reached", parent_id, MAX_DEPTH)
                return None

            task = Task(
                id=generate_unique_id(self._tasks),
                content=content,
                group_id=parent.group_id,
                created_at=self._clock(),
                order=len(self._children(parent_id)),
                parent_id=parent_id,
            )
            self._tasks[task.id] = task
            self._persist(parent.group_id)
            return task.copy()

    def update_content(self, task_id: str, content: str) -> bool:
        content = clean_text(content)
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or not content:
                return False
            task.content = content
            self._persist(task.group_id)
            return True

    def set_scheduled_time(self, task_id: str, value: Optional[str]) -> bool:
        """Set or clear (None/empty) a task's free-form scheduled time."""
        # Commas would split the metadata field
        value = clean_text(value).replace(",", " ").strip() or None
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return False
            task.scheduled_time = value
            self._persist(task.group_id)
            return True

    def toggle_collapse(self, task_id: str) -> bool:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return False
            task.collapsed = not task.collapsed
            self._persist(task.group_id)
            return True

    def toggle_complete(self, task_id: str, skip_reorder: bool = False) -> Optional[Task]:
        """
        Flip a task's completion.

        Unless skip_reorder is set, the group's top-level tasks are then
        regrouped as all incomplete followed by all completed, each keeping its
        relative order. Nested levels are left alone.
        """
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None

            self._set_completed(task, not task.completed)

            if not skip_reorder:
                top_level = self._siblings(task.group_id, None)
                incomplete = [t for t in top_level if not t.completed]
                completed = [t for t in top_level if t.completed]
                _renumber(incomplete + completed)

            self._persist(task.group_id)
            return task.copy()

    def delete_task(self, task_id: str) -> int:
        """Delete a task and all its descendants. Returns the number removed."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return 0

            doomed = [task] + self._descendants(task_id)
            for t in doomed:
                del self._tasks[t.id]

            self._renumber_group(task.group_id)
            self._persist(task.group_id)
            return len(doomed)

    def reorder_within_level(self, active_id: str, over_id: str) -> bool:
        """Move active to over's position among their shared siblings."""
        with self._lock:
            active = self._tasks.get(active_id)
            over = self._tasks.get(over_id)
            if active is None or over is None or active_id == over_id:
                return False
            if active.level_key != over.level_key:
                log.warning(
                    "Refusing same-level reorder of %s onto %s: different parents (use reparent)",
                    active_id,
                    over_id,
                )
                return False

            level = self._siblings(active.group_id, active.parent_id)
            old_index = level.index(active)
            new_index = level.index(over)
            level.insert(new_index, level.pop(old_index))
            _renumber(level)

            self._persist(active.group_id)
            return True

    def reparent_and_reorder(self, active_id: str, over_id: str) -> bool:
        """
        Move active into over's level, just before over.

        Active's descendants keep pointing at it and so move with it. Both
        the new and the vacated level are renumbered.
        """
        with self._lock:
            active = self._tasks.get(active_id)
            over = self._tasks.get(over_id)
            if active is None or over is None or active_id == over_id:
                return False
            if active.level_key == over.level_key:
                return self.reorder_within_level(active_id, over_id)
            if active.group_id != over.group_id:
                log.warning("Refusing reparent of %s across groups (use move_to_group)", active_id)
                return False

            new_parent_id = over.parent_id
            if new_parent_id is not None:
                if new_parent_id == active_id or new_parent_id in {d.id for d in self._descendants(active_id)}:
                    log.warning("Refusing reparent of %s under its own subtree", active_id)
                    return False
                new_depth = self._depth(self._tasks[new_parent_id]) + 1
            else:
                new_depth = 0
            if new_depth + self._subtree_height(active_id) > MAX_DEPTH:
                log.warning("Refusing reparent of %s: maximum depth %d exceeded", active_id, MAX_DEPTH)
                return False

            old_parent_id = active.parent_id
            active.parent_id = new_parent_id

            level = self._siblings(active.group_id, new_parent_id, exclude=active_id)
            level.insert(level.index(over), active)
            _renumber(level)
            self._renumber_level(active.group_id, old_parent_id)

            self._persist(active.group_id)
            return True

    def cross_status_reorder(self, active_id: str, over_id: str) -> bool:
        """
        Give active over's completion status and place it just before over.

        Only active changes position; every other sibling keeps its place
        relative to the rest, so nested levels are never regrouped by
        completion. Status and position change together.
        """
        with self._lock:
            active = self._tasks.get(active_id)
            over = self._tasks.get(over_id)
            if active is None or over is None or active_id == over_id:
                return False
            if active.level_key != over.level_key:
                log.warning("Refusing cross-status reorder of %s onto %s: different parents", active_id, over_id)
                return False

            level = self._siblings(active.group_id, active.parent_id, exclude=active_id)
            level.insert(level.index(over), active)
            self._set_completed(active, over.completed)
            _renumber(level)

            self._persist(active.group_id)
            return True

    def move_to_group(self, task_id: str, target_group_id: str, before_task_id: Optional[str] = None) -> bool:
        """
        Move a task and its whole subtree into another group.

        The moved task becomes top-level in the target group, inserted before
        before_task_id when that is a top-level task there, else appended.
        Descendants keep their parent links and relative order. Selection
        follows the task to the target group.
        """
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or task.group_id == target_group_id:
                return False
            if self._find_group(target_group_id) is None:
                log.warning("Cannot move %s: unknown group %s", task_id, target_group_id)
                return False

            source_group_id = task.group_id
            old_parent_id = task.parent_id

            subtree = [task] + self._descendants(task_id)
            for t in subtree:
                t.group_id = target_group_id
            task.parent_id = None

            level = self._siblings(target_group_id, None, exclude=task_id)
            before = self._tasks.get(before_task_id) if before_task_id else None
            if before is not None and before in level:
                level.insert(level.index(before), task)
            else:
                level.append(task)
            _renumber(level)

            self._renumber_level(source_group_id, old_parent_id)
            self._active_group_id = target_group_id

            self._persist(source_group_id)
            self._persist(target_group_id)
            return True

    # ------------------------------------------------------------------
    # Read views (copies only)
    # ------------------------------------------------------------------

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def active_group_id(self) -> str:
        with self._lock:
            return self._active_group_id

    def groups(self) -> List[Group]:
        with self._lock:
            return [g.copy() for g in self._groups]

    def get_group(self, group_id: str) -> Optional[Group]:
        with self._lock:
            group = self._find_group(group_id)
            return group.copy() if group else None

    def get_task(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.copy() if task else None

    def children(self, task_id: str) -> List[Task]:
        with self._lock:
            return [t.copy() for t in self._children(task_id)]

    def depth(self, task_id: str) -> Optional[int]:
        with self._lock:
            task = self._tasks.get(task_id)
            return self._depth(task) if task else None

    def all_tasks(self) -> List[Task]:
        with self._lock:
            return [t.copy() for t in self._tasks.values()]

    def visible_tasks(
        self,
        group_id: str,
        *,
        hide_completed: bool = False,
        query: Optional[str] = None,
    ) -> List[Tuple[Task, int]]:
        """
        A group's tasks in display order as (task, depth) pairs.

        Args:
            group_id: Group to list
            hide_completed: Drop completed tasks together with their subtrees
            query: Case-insensitive content filter; ancestors of matches are
                kept so the result is still a connected tree

        Returns:
            Depth-first list of task copies with their depth
        """
        with self._lock:
            rows: List[Tuple[Task, int]] = []

            def walk(task: Task, depth: int) -> None:
                if hide_completed and task.completed:
                    return
                rows.append((task, depth))
                for child in self._children(task.id):
                    walk(child, depth + 1)

            for root in self._siblings(group_id, None):
                walk(root, 0)

            if query:
                needle = query.casefold()
                keep: Set[str] = set()
                for task, _ in rows:
                    if needle in task.content.casefold():
                        current: Optional[Task] = task
                        while current is not None and current.id not in keep:
                            keep.add(current.id)
                            current = self._tasks.get(current.parent_id) if current.parent_id else None
                rows = [(t, d) for t, d in rows if t.id in keep]

            return [(t.copy(), d) for t, d in rows]

    def drain_notifications(self) -> List[Notification]:
        """Return and clear pending notifications."""
        with self._lock:
            items = list(self._notifications)
            self._notifications.clear()
            return items

    def status(self) -> dict:
        with self._lock:
            return {
                "home": str(self._gateway.home),
                "loaded": self._loaded,
                "groups": len(self._groups),
                "tasks": len(self._tasks),
                "active_group_id": self._active_group_id,
                "notifications": len(self._notifications),
                "writer": self._writer.stats(),
            }
