"""Task handler functions shared by MCP tools, the REST API and the CLI."""

import logging
from typing import Optional

log = logging.getLogger(__name__)


def _task_to_dict(task, depth: Optional[int] = None) -> dict:
    """Serialize a Task to a JSON-serializable dict."""
    d = {
        "id": task.id,
        "content": task.content,
        "completed": task.completed,
        "created_at": task.created_at,
        "completed_at": task.completed_at,
        "scheduled_time": task.scheduled_time,
        "order": task.order,
        "group_id": task.group_id,
        "parent_id": task.parent_id,
        "collapsed": task.collapsed,
    }
    if depth is not None:
        d["depth"] = depth
    return d


def _not_found(task_id: str) -> dict:
    return {"error": f"Task '{task_id}' not found"}


def handle_task_list(
    store,
    *,
    group_id: Optional[str] = None,
    hide_completed: bool = False,
    query: Optional[str] = None,
) -> dict:
    group_id = group_id or store.active_group_id
    if store.get_group(group_id) is None:
        return {"error": f"Group '{group_id}' not found"}
    rows = store.visible_tasks(group_id, hide_completed=hide_completed, query=query)
    return {
        "group_id": group_id,
        "tasks": [_task_to_dict(task, depth) for task, depth in rows],
    }


def handle_task_get(store, *, task_id: str) -> dict:
    task = store.get_task(task_id)
    if not task:
        return _not_found(task_id)
    result = _task_to_dict(task, store.depth(task_id))
    result["children"] = [_task_to_dict(c) for c in store.children(task_id)]
    return result


def handle_task_add(
    store,
    *,
    content: str,
    group_id: Optional[str] = None,
    parent_id: Optional[str] = None,
) -> dict:
    if parent_id:
        if store.get_task(parent_id) is None:
            return _not_found(parent_id)
        task = store.create_subtask(parent_id, content)
        if task is None:
            return {"error": "Cannot add subtask (empty content or maximum depth reached)"}
    else:
        group_id = group_id or store.active_group_id
        if store.get_group(group_id) is None:
            return {"error": f"Group '{group_id}' not found"}
        task = store.create_task(content, group_id)
        if task is None:
            return {"error": "Task content must not be empty"}
    return _task_to_dict(task, store.depth(task.id))


def handle_task_update(
    store,
    *,
    task_id: str,
    content: Optional[str] = None,
    scheduled_time: Optional[str] = None,
) -> dict:
    if store.get_task(task_id) is None:
        return _not_found(task_id)
    if content is not None and not store.update_content(task_id, content):
        return {"error": "Task content must not be empty"}
    if scheduled_time is not None:
        store.set_scheduled_time(task_id, scheduled_time)
    return _task_to_dict(store.get_task(task_id))


def handle_task_toggle(store, *, task_id: str, skip_reorder: bool = False) -> dict:
    task = store.toggle_complete(task_id, skip_reorder=skip_reorder)
    if task is None:
        return _not_found(task_id)
    return _task_to_dict(task)


def handle_task_collapse(store, *, task_id: str) -> dict:
    if not store.toggle_collapse(task_id):
        return _not_found(task_id)
    return _task_to_dict(store.get_task(task_id))


def handle_task_delete(store, *, task_id: str) -> dict:
    removed = store.delete_task(task_id)
    if not removed:
        return _not_found(task_id)
    return {"deleted": task_id, "removed": removed}


def handle_task_reorder(store, *, active_id: str, over_id: str) -> dict:
    """Same-level reorder, or reparent when the two tasks have different parents."""
    for task_id in (active_id, over_id):
        if store.get_task(task_id) is None:
            return _not_found(task_id)
    moved = store.reparent_and_reorder(active_id, over_id)
    return {"moved": moved, "task": _task_to_dict(store.get_task(active_id))}


def handle_task_cross_status(store, *, active_id: str, over_id: str) -> dict:
    for task_id in (active_id, over_id):
        if store.get_task(task_id) is None:
            return _not_found(task_id)
    moved = store.cross_status_reorder(active_id, over_id)
    return {"moved": moved, "task": _task_to_dict(store.get_task(active_id))}


def handle_task_move(
    store,
    *,
    task_id: str,
    group_id: str,
    before_task_id: Optional[str] = None,
) -> dict:
    if store.get_task(task_id) is None:
        return _not_found(task_id)
    if store.get_group(group_id) is None:
        return {"error": f"Group '{group_id}' not found"}
    moved = store.move_to_group(task_id, group_id, before_task_id)
    if moved:
        log.info("Moved task %s to group %s", task_id, group_id)
    return {"moved": moved, "task": _task_to_dict(store.get_task(task_id))}


def handle_store_status(store) -> dict:
    return store.status()


def handle_notifications(store) -> list[dict]:
    return [
        {"level": n.level, "message": n.message, "created_at": n.created_at}
        for n in store.drain_notifications()
    ]
