"""
Parser and renderer for the progress document (progress/progress.md).

Each item is a ``## <title>`` heading followed by ``- key: value`` lines.
Items missing an id, type or title are dropped on read.
"""

from typing import Dict, List

from ticklist.models.records import ProgressItem
from ticklist.utils.dates import now_ms
from ticklist.utils.scanner import parse_int, scan_key_values
from ticklist.utils.text import single_line

DOCUMENT_TITLE = "Progress"

_TYPES = {"progress", "counter"}
_DIRECTIONS = {"increment", "decrement"}
_FREQUENCIES = {"daily", "weekly", "monthly"}


def _item_from_fields(title: str, fields: Dict[str, str]):
    """Build a ProgressItem from scanned fields, or None if required ones are missing."""
    item_id = fields.get("id")
    item_type = fields.get("type")
    if not (title and item_id and item_type in _TYPES):
        return None

    total = fields.get("total")
    return ProgressItem(
        id=item_id,
        type=item_type,
        title=title,
        note=fields.get("note") or None,
        direction=fields.get("direction") if fields.get("direction") in _DIRECTIONS else None,
        total=parse_int(total, 0) if total is not None else None,
        step=parse_int(fields.get("step"), 1) or 1,
        unit=fields.get("unit", ""),
        current=parse_int(fields.get("current"), 0),
        today_count=parse_int(fields.get("todayCount"), 0),
        last_update_date=fields.get("lastUpdateDate") or None,
        frequency=fields.get("frequency") if fields.get("frequency") in _FREQUENCIES else None,
        created_at=parse_int(fields.get("createdAt"), now_ms()),
    )


def parse_progress(content: str) -> List[ProgressItem]:
    """Parse the progress document into items; never raises."""
    items: List[ProgressItem] = []
    title = None
    block: List[str] = []

    def flush() -> None:
        if title is None:
            return
        item = _item_from_fields(title, dict(scan_key_values(block)))
        if item:
            items.append(item)

    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith("## "):
            flush()
            title = stripped[3:].strip()
            block = []
        elif title is not None:
            block.append(stripped)
    flush()

    return items


def render_progress(items: List[ProgressItem]) -> str:
    """Render progress items back to the document format.

    Free-text fields are written on one line so an item cannot spill into
    a second heading.
    """
    lines = [f"# {DOCUMENT_TITLE}", ""]

    for item in items:
        lines.append(f"## {single_line(item.title)}")
        lines.append(f"- id: {item.id}")
        lines.append(f"- type: {item.type}")
        note = single_line(item.note)
        if note:
            lines.append(f"- note: {note}")
        if item.direction:
            lines.append(f"- direction: {item.direction}")
        if item.total is not None:
            lines.append(f"- total: {item.total}")
        lines.append(f"- step: {item.step}")
        lines.append(f"- unit: {single_line(item.unit)}")
        lines.append(f"- current: {item.current}")
        lines.append(f"- todayCount: {item.today_count}")
        if item.last_update_date:
            lines.append(f"- lastUpdateDate: {item.last_update_date}")
        if item.frequency:
            lines.append(f"- frequency: {item.frequency}")
        lines.append(f"- createdAt: {item.created_at}")
        lines.append("")

    return "\n".join(lines)
