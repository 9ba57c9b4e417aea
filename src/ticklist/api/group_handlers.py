"""Group handler functions shared by MCP tools, the REST API and the CLI."""

import logging
from dataclasses import asdict

from ticklist.models.records import ProgressItem
from ticklist.store.records import load_progress, load_time_log, save_progress

log = logging.getLogger(__name__)


def _group_to_dict(group, active_id=None, task_count=None) -> dict:
    d = {
        "id": group.id,
        "name": group.name,
        "pinned": group.pinned,
        "created_at": group.created_at,
        "updated_at": group.updated_at,
        "is_default": group.is_default,
    }
    if active_id is not None:
        d["active"] = group.id == active_id
    if task_count is not None:
        d["task_count"] = task_count
    return d


def _not_found(group_id: str) -> dict:
    return {"error": f"Group '{group_id}' not found"}


def handle_group_list(store, include_task_counts: bool = False) -> list[dict]:
    active = store.active_group_id
    counts = {}
    if include_task_counts:
        for task in store.all_tasks():
            if not task.completed:
                counts[task.group_id] = counts.get(task.group_id, 0) + 1
    return [
        _group_to_dict(g, active, counts.get(g.id, 0) if include_task_counts else None)
        for g in store.groups()
    ]


def handle_group_create(store, *, name: str) -> dict:
    group = store.create_group(name)
    if group is None:
        return {"error": "Group name must not be empty"}
    return _group_to_dict(group)


def handle_group_rename(store, *, group_id: str, name: str) -> dict:
    if store.get_group(group_id) is None:
        return _not_found(group_id)
    if not store.rename_group(group_id, name):
        return {"error": "Group name must not be empty"}
    return _group_to_dict(store.get_group(group_id))


def handle_group_pin(store, *, group_id: str) -> dict:
    if not store.toggle_pin(group_id):
        return _not_found(group_id)
    return _group_to_dict(store.get_group(group_id))


def handle_group_delete(store, *, group_id: str) -> dict:
    if store.get_group(group_id) is None:
        return _not_found(group_id)
    if not store.delete_group(group_id):
        return {"error": "The default group cannot be deleted"}
    return {"deleted": group_id, "active_group_id": store.active_group_id}


def handle_group_reorder(store, *, active_id: str, over_id: str) -> dict:
    if not store.reorder_groups(active_id, over_id):
        return {"error": "Unknown group id"}
    return {"order": [g.id for g in store.groups()]}


def handle_group_select(store, *, group_id: str) -> dict:
    if not store.set_active_group(group_id):
        return _not_found(group_id)
    return {"active_group_id": group_id}


# ---------------------------------------------------------------------------
# Progress and time log documents
# ---------------------------------------------------------------------------


def handle_progress_get(store) -> list[dict]:
    return [asdict(item) for item in load_progress(store.gateway)]


def handle_progress_put(store, *, items: list[dict]) -> dict:
    parsed = [ProgressItem(**item) for item in items]
    if not save_progress(store.gateway, parsed):
        return {"error": "Failed to save progress items"}
    log.info("Saved %d progress item(s)", len(parsed))
    return {"saved": len(parsed)}


def handle_time_log(store) -> list[dict]:
    return [asdict(day) for day in load_time_log(store.gateway)]
