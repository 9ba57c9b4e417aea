"""
Tests for the progress and time-log codecs and their store helpers.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from ticklist.models.records import ProgressItem
from ticklist.parsers.progress_parser import parse_progress, render_progress
from ticklist.parsers.timelog_parser import parse_time_log
from ticklist.storage.gateway import PROGRESS, TIME_TRACKER, FileGateway
from ticklist.store.records import load_progress, load_time_log, save_progress


PROGRESS_DOC = """# Progress

## Read books
- id: p1
- type: progress
- direction: increment
- total: 12
- step: 1
- unit: books
- current: 3
- todayCount: 1
- lastUpdateDate: 2024-11-30
- createdAt: 1700000000000

## Water
- id: c1
- type: counter
- note: glasses per day
- frequency: daily
- current: 5
- createdAt: 1700000000001

## Broken
- type: counter
"""

TIME_LOG_DOC = """# Time log

## 2024-11-30
### 应用使用时间
- Editor: 3600 秒
- Terminal: 120
### 网站访问时间
- docs.python.org: 300 秒

## 2024-12-01
### App usage
- Browser: 60 seconds

## not-a-date
### Apps
- Ghost: 10
"""


class TestProgressParser:
    def test_parses_items(self):
        items = parse_progress(PROGRESS_DOC)
        assert [i.id for i in items] == ["p1", "c1"]

        books = items[0]
        assert books.type == "progress"
        assert books.title == "Read books"
        assert books.direction == "increment"
        assert books.total == 12
        assert books.unit == "books"
        assert books.current == 3
        assert books.today_count == 1
        assert books.last_update_date == "2024-11-30"

        water = items[1]
        assert water.type == "counter"
        assert water.note == "glasses per day"
        assert water.frequency == "daily"
        assert water.total is None

    def test_drops_items_without_id(self):
        assert all(i.title != "Broken" for i in parse_progress(PROGRESS_DOC))

    def test_unknown_enum_values_ignored(self):
        items = parse_progress("## X\n- id: x\n- type: counter\n- frequency: hourly\n")
        assert items[0].frequency is None

    def test_render_then_parse(self):
        items = parse_progress(PROGRESS_DOC)
        assert parse_progress(render_progress(items)) == items

    def test_render_title(self):
        assert render_progress([]).startswith("# Progress")

    def test_render_keeps_free_text_on_one_line(self):
        item = ProgressItem(
            id="p", type="progress", title="a\n## b", note="x\ny", unit="u\r\nv", total=4
        )
        items = parse_progress(render_progress([item]))
        assert len(items) == 1
        assert items[0].title == "a ## b"
        assert items[0].note == "x y"
        assert items[0].unit == "u v"
        assert items[0].total == 4


class TestTimeLogParser:
    def test_parses_days(self):
        days = parse_time_log(TIME_LOG_DOC)
        assert [d.date for d in days] == ["2024-11-30", "2024-12-01"]

        first = days[0]
        assert [(e.name, e.seconds) for e in first.apps] == [("Editor", 3600), ("Terminal", 120)]
        assert [(e.name, e.seconds) for e in first.websites] == [("docs.python.org", 300)]

        assert [e.name for e in days[1].apps] == ["Browser"]
        assert days[1].websites == []

    def test_empty(self):
        assert parse_time_log("") == []


class TestRecordStorage:
    def test_missing_documents_load_empty(self, tmp_path):
        gateway = FileGateway(tmp_path)
        assert load_progress(gateway) == []
        assert load_time_log(gateway) == []

    def test_save_and_load_progress(self, tmp_path):
        gateway = FileGateway(tmp_path)
        item = ProgressItem(id="p", type="counter", title="Pushups", current=20, created_at=5)
        assert save_progress(gateway, [item]) is True
        assert (tmp_path / PROGRESS / "progress.md").is_file()
        assert load_progress(gateway) == [item]

    def test_load_time_log(self, tmp_path):
        (tmp_path / TIME_TRACKER).mkdir()
        (tmp_path / TIME_TRACKER / "time-log.md").write_text(TIME_LOG_DOC, encoding="utf-8")
        days = load_time_log(FileGateway(tmp_path))
        assert len(days) == 2

    def test_save_failure_returns_false(self, tmp_path):
        blocker = tmp_path / "home"
        blocker.write_text("not a directory")
        assert save_progress(FileGateway(blocker), []) is False
