"""
Parser and renderer for group documents (tasks/<group-id>.md).

Main API:
    parse_content(text, group_id)  -> GroupDocument
    render_document(group, tasks)  -> str

Document shape::

    # Groceries

    pinned: false
    created: 1717000000000
    updated: 1717000000000

    - [ ] Buy milk <!--id:a1b2c3,created:1717000000000,order:0-->
      - [x] Check fridge <!--id:d4e5f6,created:1717000000000,order:0,completedAt:1717000500000,parent:a1b2c3-->

The parser is line oriented and tolerant: unknown lines are skipped and
missing metadata is defaulted. Hierarchy is taken only from the ``parent:``
field; indentation is written for readability and ignored on read, so a
document whose children lack ``parent:`` loads as a flat list.
"""

import re
from typing import Dict, List, Optional, Set

from ticklist.models.task import Group, GroupDocument, Task
from ticklist.utils.dates import now_ms
from ticklist.utils.ids import generate_id
from ticklist.utils.scanner import format_metadata, parse_int, parse_metadata

DEFAULT_NAME = "Untitled"

INDENT = "  "

_TASK_LINE = re.compile(r"^- \[([ xX])\] (.+)$")
_META_SUFFIX = re.compile(r"^(.+?)\s*<!--(.*)-->$")


# ---------------------------------------------------------------------------
# Parse
# ---------------------------------------------------------------------------

def _parse_task(text: str, completed: bool, position: int, now: int) -> Task:
    """Build a Task from the text after the checkbox, defaulting missing metadata."""
    content = text
    fields: Dict[str, str] = {}

    m = _META_SUFFIX.match(text)
    if m:
        content = m.group(1).strip()
        fields = parse_metadata(m.group(2))

    completed_at = parse_int(fields.get("completedAt"), None)
    order = parse_int(fields.get("order"), position)

    return Task(
        id=fields.get("id") or f"task-{generate_id(8)}",
        content=content,
        completed=completed,
        created_at=parse_int(fields.get("created"), now),
        completed_at=completed_at,
        scheduled_time=fields.get("time") or None,
        order=order if order >= 0 else position,
        parent_id=fields.get("parent") or None,
        collapsed=fields.get("collapsed") == "true",
    )


def parse_content(content: str, group_id: str) -> GroupDocument:
    """
    Parse a group document.

    Never raises: malformed lines are ignored and every missing field is
    defaulted (name "Untitled", timestamps now, sequential order).

    Args:
        content: Full document text
        group_id: Group ID (derived from the file name by the caller)

    Returns:
        GroupDocument with the header and a flat, unsorted task list
    """
    now = now_ms()
    group = Group(id=group_id, name=DEFAULT_NAME, created_at=now, updated_at=now)
    tasks: List[Task] = []
    seen_title = False

    for raw in content.splitlines():
        line = raw.strip()
        if not line:
            continue

        if line.startswith("# ") and not seen_title:
            group.name = line[2:].strip() or DEFAULT_NAME
            seen_title = True
            continue

        if line.startswith("pinned:"):
            group.pinned = "true" in line[len("pinned:"):]
            continue
        if line.startswith("created:"):
            group.created_at = parse_int(line[len("created:"):], now)
            continue
        if line.startswith("updated:"):
            group.updated_at = parse_int(line[len("updated:"):], now)
            continue

        m = _TASK_LINE.match(line)
        if m:
            task = _parse_task(m.group(2), m.group(1) in "xX", len(tasks), now)
            task.group_id = group_id
            tasks.append(task)

    return GroupDocument(group=group, tasks=tasks)


# ---------------------------------------------------------------------------
# Render
# ---------------------------------------------------------------------------

def render_task_line(task: Task, depth: int = 0) -> str:
    """Render a single task as a checklist line with its metadata comment."""
    checkbox = "[x]" if task.completed else "[ ]"

    fields = [("id", task.id), ("created", task.created_at), ("order", task.order)]
    if task.scheduled_time:
        fields.append(("time", task.scheduled_time))
    if task.completed_at is not None:
        fields.append(("completedAt", task.completed_at))
    if task.parent_id:
        fields.append(("parent", task.parent_id))
    if task.collapsed:
        fields.append(("collapsed", "true"))

    return f"{INDENT * depth}- {checkbox} {task.content} <!--{format_metadata(fields)}-->"


def _sort_key(task: Task):
    return (task.order, task.id)


def render_tasks(tasks: List[Task]) -> List[str]:
    """
    Render tasks depth-first: roots by order, each followed by its children.

    Tasks that cannot be reached from a root (dangling parent or a cycle) are
    emitted afterwards at depth 0 with their parent field intact.
    """
    by_id = {t.id: t for t in tasks}
    children: Dict[Optional[str], List[Task]] = {}
    for task in tasks:
        parent = task.parent_id if task.parent_id in by_id else None
        if task.parent_id and parent is None:
            continue  # dangling: rendered with the leftovers
        children.setdefault(parent, []).append(task)
    for siblings in children.values():
        siblings.sort(key=_sort_key)

    lines: List[str] = []
    visited: Set[str] = set()

    def walk(task: Task, depth: int) -> None:
        if task.id in visited:
            return
        visited.add(task.id)
        lines.append(render_task_line(task, depth))
        for child in children.get(task.id, []):
            walk(child, depth + 1)

    for root in children.get(None, []):
        walk(root, 0)

    for task in sorted(tasks, key=_sort_key):
        if task.id not in visited:
            walk(task, 0)

    return lines


def render_document(group: Group, tasks: List[Task]) -> str:
    """
    Render a group and its tasks as a document.

    Deterministic for identical input: the same group fields and the same
    task set always produce the same text.
    """
    lines = [
        f"# {group.name}",
        "",
        f"pinned: {'true' if group.pinned else 'false'}",
        f"created: {group.created_at}",
        f"updated: {group.updated_at}",
        "",
    ]
    lines.extend(render_tasks(tasks))
    return "\n".join(lines) + "\n"
