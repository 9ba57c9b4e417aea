#!/usr/bin/env python3
"""
Command-line interface for ticklist.

Usage:
    ticklist groups
    ticklist group-add "Errands"
    ticklist list [--group ID] [--hide-completed] [--search TEXT]
    ticklist add "Buy milk" [--group ID | --parent ID]
    ticklist done ID
    ticklist rm ID
    ticklist move ID GROUP [--before ID]
    ticklist serve

Every command loads the data directory, applies one change and flushes the
affected documents before exiting.
"""

import argparse
import logging
import sys
from pathlib import Path

from ticklist.api.group_handlers import handle_group_create, handle_group_list
from ticklist.api.task_handlers import (
    handle_task_add,
    handle_task_delete,
    handle_task_list,
    handle_task_move,
    handle_task_toggle,
)
from ticklist.config import Settings, configure_logging
from ticklist.storage.gateway import FileGateway
from ticklist.store.task_store import TaskStore
from ticklist.utils.dates import ms_to_date

log = logging.getLogger(__name__)


def _fail(result: dict) -> None:
    print(f"Error: {result['error']}")
    sys.exit(1)


def format_task(task: dict) -> str:
    checkbox = "[x]" if task["completed"] else "[ ]"
    indent = "  " * task.get("depth", 0)
    line = f"{indent}- {checkbox} {task['content']} ({task['id']})"
    if task.get("scheduled_time"):
        line += f" @ {task['scheduled_time']}"
    if task["completed"] and task.get("completed_at"):
        line += f" done {ms_to_date(task['completed_at'])}"
    return line


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def groups_cmd(args):
    for group in handle_group_list(args.store, include_task_counts=True):
        marker = "*" if group["active"] else " "
        pin = " (pinned)" if group["pinned"] else ""
        print(f"{marker} {group['id']}  {group['name']}{pin}  [{group['task_count']} open]")


def group_add_cmd(args):
    result = handle_group_create(args.store, name=args.name)
    if "error" in result:
        _fail(result)
    print(f"Created group: {result['name']}")
    print(f"  ID: {result['id']}")


def list_cmd(args):
    result = handle_task_list(
        args.store,
        group_id=args.group,
        hide_completed=args.hide_completed,
        query=args.search,
    )
    if "error" in result:
        _fail(result)
    tasks = result["tasks"]
    if not tasks:
        print("No tasks found.")
        return
    for task in tasks:
        print(format_task(task))
    print()
    print(f"{len(tasks)} task(s) found.")


def add_cmd(args):
    result = handle_task_add(
        args.store, content=args.content, group_id=args.group, parent_id=args.parent
    )
    if "error" in result:
        _fail(result)
    print(f"Added: {result['content']}")
    print(f"  ID: {result['id']}")
    print(f"  Group: {result['group_id']}")
    if result["parent_id"]:
        print(f"  Parent: {result['parent_id']}")


def done_cmd(args):
    result = handle_task_toggle(args.store, task_id=args.id)
    if "error" in result:
        _fail(result)
    state = "Completed" if result["completed"] else "Reopened"
    print(f"{state}: {result['content']} ({result['id']})")


def rm_cmd(args):
    result = handle_task_delete(args.store, task_id=args.id)
    if "error" in result:
        _fail(result)
    print(f"Deleted {result['removed']} task(s).")


def move_cmd(args):
    result = handle_task_move(
        args.store, task_id=args.id, group_id=args.group, before_task_id=args.before
    )
    if "error" in result:
        _fail(result)
    if not result["moved"]:
        print(f"Task '{args.id}' was not moved.")
        sys.exit(1)
    print(f"Moved: {result['task']['content']} -> {args.group}")


def serve_cmd(args):
    # The server owns its own store lifecycle.
    from ticklist.server import run_server

    run_server(args.settings)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ticklist",
        description="Grouped, nested task lists stored as Markdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--home", help="Data directory (default: $TICKLIST_HOME or ~/.ticklist)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output to stderr")
    subparsers = parser.add_subparsers(dest="command")

    groups_p = subparsers.add_parser("groups", help="List groups")
    groups_p.set_defaults(func=groups_cmd)

    group_add_p = subparsers.add_parser("group-add", help="Create a group")
    group_add_p.add_argument("name", help="Group name")
    group_add_p.set_defaults(func=group_add_cmd)

    list_p = subparsers.add_parser("list", help="List tasks of a group")
    list_p.add_argument("--group", help="Group ID (default: the selected group)")
    list_p.add_argument("--hide-completed", action="store_true", help="Omit completed tasks")
    list_p.add_argument("--search", help="Only tasks containing this text (and their parents)")
    list_p.set_defaults(func=list_cmd)

    add_p = subparsers.add_parser("add", help="Add a task")
    add_p.add_argument("content", help="Task text")
    target = add_p.add_mutually_exclusive_group()
    target.add_argument("--group", help="Group ID (default: the selected group)")
    target.add_argument("--parent", help="ID of parent task (add as subtask)")
    add_p.set_defaults(func=add_cmd)

    done_p = subparsers.add_parser("done", help="Toggle a task complete/incomplete")
    done_p.add_argument("id", help="Task ID")
    done_p.set_defaults(func=done_cmd)

    rm_p = subparsers.add_parser("rm", help="Delete a task and its subtasks")
    rm_p.add_argument("id", help="Task ID")
    rm_p.set_defaults(func=rm_cmd)

    move_p = subparsers.add_parser("move", help="Move a task to another group")
    move_p.add_argument("id", help="Task ID")
    move_p.add_argument("group", help="Destination group ID")
    move_p.add_argument("--before", help="Insert before this top-level task")
    move_p.set_defaults(func=move_cmd)

    serve_p = subparsers.add_parser("serve", help="Run the MCP server (and REST API)")
    serve_p.set_defaults(func=serve_cmd)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    settings = Settings.from_env()
    if args.home:
        settings.home = Path(args.home).expanduser()
    configure_logging("DEBUG" if args.verbose else settings.log_level)
    args.settings = settings

    if args.func is serve_cmd:
        args.func(args)
        return

    log.debug("Using data directory %s", settings.home)
    args.store = TaskStore(FileGateway(settings.home))
    args.store.load_all()
    try:
        args.func(args)
    finally:
        args.store.close()
        for note in args.store.drain_notifications():
            print(f"Warning: {note.message}", file=sys.stderr)


if __name__ == "__main__":
    main()
