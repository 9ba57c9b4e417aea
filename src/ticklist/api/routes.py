"""REST API routes for ticklist."""

from typing import List, Literal, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from ticklist.api.group_handlers import (
    handle_group_create,
    handle_group_delete,
    handle_group_list,
    handle_group_pin,
    handle_group_rename,
    handle_group_reorder,
    handle_group_select,
    handle_progress_get,
    handle_progress_put,
    handle_time_log,
)
from ticklist.api.task_handlers import (
    handle_notifications,
    handle_store_status,
    handle_task_add,
    handle_task_collapse,
    handle_task_cross_status,
    handle_task_delete,
    handle_task_get,
    handle_task_list,
    handle_task_move,
    handle_task_reorder,
    handle_task_toggle,
    handle_task_update,
)


# ---------------------------------------------------------------------------
# Request body models
# ---------------------------------------------------------------------------


class GroupCreateBody(BaseModel):
    name: str


class GroupRenameBody(BaseModel):
    name: str


class ReorderBody(BaseModel):
    active_id: str
    over_id: str


class TaskAddBody(BaseModel):
    content: str
    group_id: Optional[str] = None
    parent_id: Optional[str] = None


class TaskUpdateBody(BaseModel):
    content: Optional[str] = None
    scheduled_time: Optional[str] = None


class TaskMoveBody(BaseModel):
    group_id: str
    before_task_id: Optional[str] = None


class ProgressItemBody(BaseModel):
    id: str
    type: Literal["progress", "counter"]
    title: str
    note: Optional[str] = None
    direction: Optional[Literal["increment", "decrement"]] = None
    total: Optional[int] = None
    step: int = 1
    unit: str = ""
    current: int = 0
    today_count: int = 0
    last_update_date: Optional[str] = None
    frequency: Optional[Literal["daily", "weekly", "monthly"]] = None
    created_at: int = 0


def _checked(result):
    """Raise 404 for handler results carrying a not-found error, 400 for others."""
    if isinstance(result, dict) and "error" in result:
        status_code = 404 if "not found" in result["error"] else 400
        raise HTTPException(status_code=status_code, detail=result["error"])
    return result


# ---------------------------------------------------------------------------
# Route registration
# ---------------------------------------------------------------------------


def register_routes(app_router: APIRouter, store) -> None:
    """Attach all REST routes that use the shared store."""

    # --- Group routes ---

    @app_router.get("/groups")
    def list_groups(include_task_counts: bool = Query(False)):
        return handle_group_list(store, include_task_counts=include_task_counts)

    @app_router.post("/groups", status_code=201)
    def create_group(body: GroupCreateBody):
        return _checked(handle_group_create(store, name=body.name))

    @app_router.post("/groups/reorder")
    def reorder_groups(body: ReorderBody):
        return _checked(handle_group_reorder(store, active_id=body.active_id, over_id=body.over_id))

    @app_router.patch("/groups/{group_id}")
    def rename_group(group_id: str, body: GroupRenameBody):
        return _checked(handle_group_rename(store, group_id=group_id, name=body.name))

    @app_router.post("/groups/{group_id}/pin")
    def pin_group(group_id: str):
        return _checked(handle_group_pin(store, group_id=group_id))

    @app_router.post("/groups/{group_id}/select")
    def select_group(group_id: str):
        return _checked(handle_group_select(store, group_id=group_id))

    @app_router.delete("/groups/{group_id}")
    def delete_group(group_id: str):
        return _checked(handle_group_delete(store, group_id=group_id))

    @app_router.get("/groups/{group_id}/tasks")
    def list_group_tasks(
        group_id: str,
        hide_completed: bool = Query(False),
        q: Optional[str] = Query(None),
    ):
        return _checked(
            handle_task_list(store, group_id=group_id, hide_completed=hide_completed, query=q)
        )

    # --- Task routes ---

    @app_router.post("/tasks", status_code=201)
    def add_task(body: TaskAddBody):
        return _checked(handle_task_add(store, **body.model_dump()))

    @app_router.post("/tasks/reorder")
    def reorder_tasks(body: ReorderBody):
        return _checked(handle_task_reorder(store, active_id=body.active_id, over_id=body.over_id))

    @app_router.post("/tasks/cross-status")
    def cross_status(body: ReorderBody):
        return _checked(
            handle_task_cross_status(store, active_id=body.active_id, over_id=body.over_id)
        )

    @app_router.get("/tasks/{task_id}")
    def get_task(task_id: str):
        return _checked(handle_task_get(store, task_id=task_id))

    @app_router.patch("/tasks/{task_id}")
    def update_task(task_id: str, body: TaskUpdateBody):
        return _checked(handle_task_update(store, task_id=task_id, **body.model_dump()))

    @app_router.post("/tasks/{task_id}/toggle")
    def toggle_task(task_id: str, skip_reorder: bool = Query(False)):
        return _checked(handle_task_toggle(store, task_id=task_id, skip_reorder=skip_reorder))

    @app_router.post("/tasks/{task_id}/collapse")
    def collapse_task(task_id: str):
        return _checked(handle_task_collapse(store, task_id=task_id))

    @app_router.delete("/tasks/{task_id}")
    def delete_task(task_id: str):
        return _checked(handle_task_delete(store, task_id=task_id))

    @app_router.post("/tasks/{task_id}/move")
    def move_task(task_id: str, body: TaskMoveBody):
        return _checked(
            handle_task_move(
                store, task_id=task_id, group_id=body.group_id, before_task_id=body.before_task_id
            )
        )

    # --- Records, notifications, status ---

    @app_router.get("/progress")
    def get_progress():
        return handle_progress_get(store)

    @app_router.put("/progress")
    def put_progress(items: List[ProgressItemBody]):
        try:
            result = handle_progress_put(store, items=[item.model_dump() for item in items])
        except Exception as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _checked(result)

    @app_router.get("/time-log")
    def get_time_log():
        return handle_time_log(store)

    @app_router.get("/notifications")
    def get_notifications():
        return handle_notifications(store)

    @app_router.get("/status")
    def get_status():
        return handle_store_status(store)
