"""MCP tool registration for ticklist."""

import json
import logging
from typing import Optional

from mcp.server.fastmcp import FastMCP

from ticklist.api.group_handlers import (
    handle_group_create,
    handle_group_delete,
    handle_group_list,
    handle_group_pin,
    handle_group_rename,
)
from ticklist.api.task_handlers import (
    handle_store_status,
    handle_task_add,
    handle_task_delete,
    handle_task_get,
    handle_task_list,
    handle_task_move,
    handle_task_reorder,
    handle_task_toggle,
    handle_task_update,
)

log = logging.getLogger(__name__)


def _dump(result) -> str:
    return json.dumps(result, indent=2, ensure_ascii=False)


def register_tools(mcp: FastMCP, store) -> None:
    """Register all MCP tools onto the FastMCP instance."""

    # ------------------------------------------------------------------
    # Group tools
    # ------------------------------------------------------------------

    @mcp.tool()
    def group_list(include_task_counts: bool = False) -> str:
        """
        List groups in display order (pinned first).

        Args:
            include_task_counts: Also report the number of open tasks per group

        Returns:
            JSON array of group objects; the selected group has "active": true
        """
        return _dump(handle_group_list(store, include_task_counts=include_task_counts))

    @mcp.tool()
    def group_create(name: str) -> str:
        """
        Create a new, empty group.

        Args:
            name: Display name

        Returns:
            JSON group object with its generated ID
        """
        return _dump(handle_group_create(store, name=name))

    @mcp.tool()
    def group_rename(group_id: str, name: str) -> str:
        """Rename a group. Returns the updated group or an error."""
        return _dump(handle_group_rename(store, group_id=group_id, name=name))

    @mcp.tool()
    def group_pin(group_id: str) -> str:
        """Toggle whether a group is pinned to the top of the list."""
        return _dump(handle_group_pin(store, group_id=group_id))

    @mcp.tool()
    def group_delete(group_id: str) -> str:
        """
        Delete a group together with all of its tasks.

        The default group cannot be deleted.
        """
        return _dump(handle_group_delete(store, group_id=group_id))

    # ------------------------------------------------------------------
    # Task tools
    # ------------------------------------------------------------------

    @mcp.tool()
    def task_list(
        group_id: Optional[str] = None,
        hide_completed: bool = False,
        query: Optional[str] = None,
    ) -> str:
        """
        List a group's tasks in display order.

        Args:
            group_id: Group to list (default: the selected group)
            hide_completed: Omit completed tasks and their subtasks
            query: Case-insensitive text filter; parents of matching tasks
                are included so the tree stays readable

        Returns:
            JSON object with "group_id" and a flat "tasks" array, each task
            carrying its "depth"
        """
        return _dump(
            handle_task_list(store, group_id=group_id, hide_completed=hide_completed, query=query)
        )

    @mcp.tool()
    def task_get(task_id: str) -> str:
        """Get a single task with its direct children."""
        return _dump(handle_task_get(store, task_id=task_id))

    @mcp.tool()
    def task_add(
        content: str,
        group_id: Optional[str] = None,
        parent_id: Optional[str] = None,
    ) -> str:
        """
        Add a task.

        With parent_id the task becomes the last subtask of that task (at most
        four levels deep); otherwise it is appended to the group's top level.

        Args:
            content: Task text (single line)
            group_id: Target group (default: the selected group)
            parent_id: Parent task ID for a subtask

        Returns:
            JSON object with the new task
        """
        return _dump(handle_task_add(store, content=content, group_id=group_id, parent_id=parent_id))

    @mcp.tool()
    def task_update(
        task_id: str,
        content: Optional[str] = None,
        scheduled_time: Optional[str] = None,
    ) -> str:
        """
        Update task text or scheduled time.

        Only fields you pass are changed. Pass scheduled_time="" to clear it.
        """
        return _dump(
            handle_task_update(store, task_id=task_id, content=content, scheduled_time=scheduled_time)
        )

    @mcp.tool()
    def task_toggle(task_id: str) -> str:
        """
        Toggle a task between open and completed.

        Completed top-level tasks are moved below the open ones.
        """
        return _dump(handle_task_toggle(store, task_id=task_id))

    @mcp.tool()
    def task_delete(task_id: str) -> str:
        """Delete a task and all of its subtasks."""
        return _dump(handle_task_delete(store, task_id=task_id))

    @mcp.tool()
    def task_reorder(active_id: str, over_id: str) -> str:
        """
        Move a task onto another task's position.

        If both share a parent this is a plain reorder; otherwise the task
        (with its subtasks) is moved under over_id's parent, just before it.
        """
        return _dump(handle_task_reorder(store, active_id=active_id, over_id=over_id))

    @mcp.tool()
    def task_move(task_id: str, group_id: str, before_task_id: Optional[str] = None) -> str:
        """
        Move a task and its subtasks to another group.

        Args:
            task_id: Task to move
            group_id: Destination group
            before_task_id: Top-level task in the destination to insert before
                (default: append at the end)
        """
        return _dump(
            handle_task_move(store, task_id=task_id, group_id=group_id, before_task_id=before_task_id)
        )

    @mcp.tool()
    def store_status() -> str:
        """Show store statistics: group and task counts, pending writes, failures."""
        return _dump(handle_store_status(store))
