"""
Tests for store/task_store.py.

Uses a real TaskStore backed by a temporary home directory. The writer is
not started, so flush() performs pending writes on the test thread.
"""

import itertools
import sys
from collections import defaultdict
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from ticklist.models.task import DEFAULT_GROUP_ID, MAX_DEPTH
from ticklist.parsers.group_parser import parse_content
from ticklist.storage.gateway import TASKS, FileGateway, StorageError
from ticklist.store.task_store import TaskStore, clean_text


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _clock():
    counter = itertools.count(1_700_000_000_000, 1000)
    return lambda: next(counter)


def _write_group(home: Path, group_id: str, body: str, name: str = None, pinned: bool = False):
    tasks_dir = home / "tasks"
    tasks_dir.mkdir(parents=True, exist_ok=True)
    header = (
        f"# {name or group_id}\n\n"
        f"pinned: {'true' if pinned else 'false'}\n"
        "created: 1\nupdated: 1\n\n"
    )
    (tasks_dir / f"{group_id}.md").write_text(header + body, encoding="utf-8")


def _make_store(home: Path) -> TaskStore:
    store = TaskStore(FileGateway(home), clock=_clock())
    store.load_all()
    return store


def _assert_dense(store: TaskStore):
    levels = defaultdict(list)
    for task in store.all_tasks():
        levels[task.level_key].append(task.order)
    for key, orders in levels.items():
        assert sorted(orders) == list(range(len(orders))), key


def _orders(store: TaskStore, *ids):
    return [store.get_task(i).order for i in ids]


def _saved(home: Path, group_id: str):
    text = (home / "tasks" / f"{group_id}.md").read_text(encoding="utf-8")
    return parse_content(text, group_id)


class _FailingGateway(FileGateway):
    def write(self, scope, name, content):
        raise StorageError("disk full")


@pytest.fixture
def home(tmp_path):
    return tmp_path / "home"


@pytest.fixture
def store(home):
    return _make_store(home)


@pytest.fixture
def abc(store):
    """Default group with top-level A, B, C in that order."""
    a = store.create_task("A", DEFAULT_GROUP_ID)
    b = store.create_task("B", DEFAULT_GROUP_ID)
    c = store.create_task("C", DEFAULT_GROUP_ID)
    return store, a.id, b.id, c.id


# ---------------------------------------------------------------------------
# Text normalization
# ---------------------------------------------------------------------------

class TestCleanText:
    def test_line_breaks_collapse(self):
        assert clean_text("one\n two\r\nthree ") == "one two three"

    def test_comment_markers_broken(self):
        assert "<!--" not in clean_text("a <!-- b --> c")
        assert "-->" not in clean_text("a <!-- b --> c")

    def test_empty(self):
        assert clean_text(None) == ""
        assert clean_text("  \n ") == ""


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

class TestLoadAll:
    def test_first_run_synthesizes_default(self, home, store):
        groups = store.groups()
        assert [g.id for g in groups] == [DEFAULT_GROUP_ID]
        assert store.active_group_id == DEFAULT_GROUP_ID
        store.flush()
        assert (home / "tasks" / "default.md").is_file()

    def test_loads_documents(self, home):
        _write_group(home, "default", "- [ ] Inbox item <!--id:i1,order:0-->\n", name="Inbox")
        _write_group(home, "work", "- [ ] Report <!--id:w1,order:0-->\n", name="Work")
        store = _make_store(home)
        assert {g.id for g in store.groups()} == {"default", "work"}
        assert store.get_task("w1").group_id == "work"
        assert store.loaded

    def test_pinned_first(self, home):
        _write_group(home, "a", "")
        _write_group(home, "b", "", pinned=True)
        _write_group(home, "c", "")
        store = _make_store(home)
        assert [g.id for g in store.groups()] == ["b", "a", "c"]

    def test_duplicate_ids_first_wins(self, home):
        _write_group(
            home,
            "default",
            "- [ ] First <!--id:dup,order:0-->\n- [ ] Second <!--id:dup,order:1-->\n",
        )
        store = _make_store(home)
        tasks = store.all_tasks()
        assert len(tasks) == 1
        assert tasks[0].content == "First"

    def test_duplicate_ids_across_groups(self, home):
        _write_group(home, "a", "- [ ] In A <!--id:dup-->\n")
        _write_group(home, "b", "- [ ] In B <!--id:dup-->\n")
        store = _make_store(home)
        assert len(store.all_tasks()) == 1
        assert store.get_task("dup").group_id == "a"

    def test_orders_renumbered(self, home):
        _write_group(
            home,
            "default",
            "- [ ] A <!--id:a,order:5-->\n- [ ] B <!--id:b,order:2-->\n- [ ] C <!--id:c,order:9-->\n",
        )
        store = _make_store(home)
        assert _orders(store, "b", "a", "c") == [0, 1, 2]

    def test_dangling_parent_becomes_top_level(self, home):
        _write_group(home, "default", "- [ ] Orphan <!--id:o,parent:missing-->\n")
        store = _make_store(home)
        assert store.get_task("o").parent_id is None

    def test_cycle_broken(self, home):
        _write_group(
            home,
            "default",
            "- [ ] A <!--id:a,parent:b-->\n- [ ] B <!--id:b,parent:a-->\n",
        )
        store = _make_store(home)
        assert store.get_task("a").parent_id is None
        assert store.get_task("b").parent_id == "a"
        _assert_dense(store)

    def test_parent_in_other_group_dropped(self, home):
        _write_group(home, "a", "- [ ] Parent <!--id:p-->\n")
        _write_group(home, "b", "- [ ] Child <!--id:c,parent:p-->\n")
        store = _make_store(home)
        assert store.get_task("c").parent_id is None

    def test_too_deep_reattached(self, home):
        lines = ["- [ ] L0 <!--id:l0-->"]
        for depth in range(1, 6):
            lines.append(f"- [ ] L{depth} <!--id:l{depth},parent:l{depth - 1}-->")
        _write_group(home, "default", "\n".join(lines) + "\n")
        store = _make_store(home)
        assert max(store.depth(t.id) for t in store.all_tasks()) == MAX_DEPTH
        assert store.get_task("l4").parent_id == "l2"
        _assert_dense(store)

    def test_unparseable_directory_degrades(self, home):
        home.mkdir()
        (home / "tasks").write_text("not a directory")
        store = _make_store(home)
        assert [g.id for g in store.groups()] == [DEFAULT_GROUP_ID]
        assert store.all_tasks() == []

    def test_active_falls_back_without_default(self, home):
        _write_group(home, "work", "")
        store = _make_store(home)
        assert store.active_group_id == "work"


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------

class TestGroups:
    def test_create(self, home, store):
        group = store.create_group("Errands")
        assert group.name == "Errands"
        assert not group.pinned
        assert group.created_at > 0
        assert store.groups()[-1].id == group.id
        store.flush()
        assert _saved(home, group.id).group.name == "Errands"

    def test_create_empty_name(self, store):
        assert store.create_group("   ") is None

    def test_rename(self, store):
        group = store.create_group("Old")
        assert store.rename_group(group.id, "New")
        assert store.get_group(group.id).name == "New"
        assert not store.rename_group("missing", "x")

    def test_toggle_pin_moves_group(self, store):
        a = store.create_group("A")
        b = store.create_group("B")
        assert store.toggle_pin(b.id)
        assert [g.id for g in store.groups()][0] == b.id
        assert store.toggle_pin(a.id)
        assert [g.id for g in store.groups()][:2] == [a.id, b.id]

        # Unpinning lands right after the remaining pinned groups
        store.toggle_pin(a.id)
        ids = [g.id for g in store.groups()]
        assert ids[0] == b.id
        assert ids[1] == a.id

    def test_pin_persisted(self, home, store):
        group = store.create_group("Pinned")
        store.toggle_pin(group.id)
        store.flush()
        assert _saved(home, group.id).group.pinned is True

    def test_delete(self, home, store):
        group = store.create_group("Temp")
        store.create_task("x", group.id)
        store.set_active_group(group.id)
        store.flush()
        assert store.delete_group(group.id)
        store.flush()
        assert store.get_group(group.id) is None
        assert store.all_tasks() == []
        assert store.active_group_id == DEFAULT_GROUP_ID
        assert not (home / "tasks" / f"{group.id}.md").exists()

    def test_default_group_cannot_be_deleted(self, store):
        assert not store.delete_group(DEFAULT_GROUP_ID)
        assert store.get_group(DEFAULT_GROUP_ID) is not None

    def test_reorder_groups(self, store):
        a = store.create_group("A")
        b = store.create_group("B")
        assert store.reorder_groups(b.id, DEFAULT_GROUP_ID)
        assert [g.id for g in store.groups()] == [b.id, DEFAULT_GROUP_ID, a.id]
        assert not store.reorder_groups("missing", a.id)

    def test_set_active_group(self, store):
        group = store.create_group("G")
        assert store.set_active_group(group.id)
        assert store.active_group_id == group.id
        assert not store.set_active_group("missing")


# ---------------------------------------------------------------------------
# Task creation and edits
# ---------------------------------------------------------------------------

class TestTaskEdits:
    def test_create_appends(self, abc):
        store, a, b, c = abc
        assert _orders(store, a, b, c) == [0, 1, 2]
        assert store.get_task(a).created_at > 0

    def test_create_unknown_group(self, store):
        assert store.create_task("x", "missing") is None

    def test_create_empty_content(self, store):
        assert store.create_task(" \n ", DEFAULT_GROUP_ID) is None

    def test_subtask(self, abc):
        store, a, _, _ = abc
        first = store.create_subtask(a, "one")
        second = store.create_subtask(a, "two")
        assert first.parent_id == a
        assert first.group_id == DEFAULT_GROUP_ID
        assert [first.order, second.order] == [0, 1]
        assert [t.id for t in store.children(a)] == [first.id, second.id]

    def test_subtask_depth_limit(self, store):
        parent = store.create_task("root", DEFAULT_GROUP_ID)
        for _ in range(MAX_DEPTH):
            parent = store.create_subtask(parent.id, "child")
        assert store.depth(parent.id) == MAX_DEPTH
        assert store.create_subtask(parent.id, "too deep") is None

    def test_update_content(self, home, abc):
        store, a, _, _ = abc
        assert store.update_content(a, "Renamed\nacross lines")
        assert store.get_task(a).content == "Renamed across lines"
        assert not store.update_content(a, "")
        store.flush()
        contents = {t.id: t.content for t in _saved(home, DEFAULT_GROUP_ID).tasks}
        assert contents[a] == "Renamed across lines"

    def test_scheduled_time(self, abc):
        store, a, _, _ = abc
        assert store.set_scheduled_time(a, "Mon, 9am")
        assert store.get_task(a).scheduled_time == "Mon  9am"
        store.set_scheduled_time(a, "")
        assert store.get_task(a).scheduled_time is None

    def test_toggle_collapse(self, abc):
        store, a, _, _ = abc
        assert store.toggle_collapse(a)
        assert store.get_task(a).collapsed is True
        assert not store.toggle_collapse("missing")

    def test_returned_tasks_are_copies(self, abc):
        store, a, _, _ = abc
        task = store.get_task(a)
        task.content = "mutated"
        assert store.get_task(a).content == "A"


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------

class TestToggleComplete:
    def test_completed_sinks(self, abc):
        store, a, b, c = abc
        task = store.toggle_complete(a)
        assert task.completed is True
        assert task.completed_at is not None
        assert _orders(store, b, c, a) == [0, 1, 2]

    def test_idempotent_pair(self, abc):
        store, a, _, _ = abc
        store.toggle_complete(a)
        task = store.toggle_complete(a)
        assert task.completed is False
        assert task.completed_at is None
        _assert_dense(store)

    def test_skip_reorder(self, abc):
        store, a, b, c = abc
        store.toggle_complete(a, skip_reorder=True)
        assert _orders(store, a, b, c) == [0, 1, 2]

    def test_nested_levels_untouched(self, abc):
        store, a, _, _ = abc
        x = store.create_subtask(a, "x")
        y = store.create_subtask(a, "y")
        store.toggle_complete(x.id)
        assert _orders(store, x.id, y.id) == [0, 1]

    def test_unknown(self, store):
        assert store.toggle_complete("missing") is None


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------

class TestDeleteTask:
    def test_cascade(self, home, abc):
        store, a, b, c = abc
        x = store.create_subtask(a, "x")
        store.create_subtask(x.id, "x1")
        store.create_subtask(a, "y")

        assert store.delete_task(a) == 4
        ids = {t.id for t in store.all_tasks()}
        assert ids == {b, c}
        assert all(t.parent_id is None or t.parent_id in ids for t in store.all_tasks())
        assert _orders(store, b, c) == [0, 1]

        store.flush()
        assert {t.id for t in _saved(home, DEFAULT_GROUP_ID).tasks} == {b, c}

    def test_middle_child_renumbers(self, abc):
        store, a, _, _ = abc
        kids = [store.create_subtask(a, str(i)).id for i in range(3)]
        store.delete_task(kids[1])
        assert _orders(store, kids[0], kids[2]) == [0, 1]

    def test_unknown(self, store):
        assert store.delete_task("missing") == 0


# ---------------------------------------------------------------------------
# Reordering
# ---------------------------------------------------------------------------

class TestReorder:
    def test_same_level(self, abc):
        store, a, b, c = abc
        assert store.reorder_within_level(a, c)
        assert _orders(store, b, c, a) == [0, 1, 2]

    def test_same_level_move_up(self, abc):
        store, a, b, c = abc
        store.reorder_within_level(c, a)
        assert _orders(store, c, a, b) == [0, 1, 2]

    def test_same_level_rejects_different_parents(self, abc):
        store, a, b, _ = abc
        child = store.create_subtask(a, "child")
        assert not store.reorder_within_level(child.id, b)
        assert store.get_task(child.id).parent_id == a

    def test_reparent(self, abc):
        store, a, b, c = abc
        x = store.create_subtask(a, "x")
        y = store.create_subtask(a, "y")

        # Pull y out to the top level, just before c
        assert store.reparent_and_reorder(y.id, c)
        assert store.get_task(y.id).parent_id is None
        assert _orders(store, a, b, y.id, c) == [0, 1, 2, 3]
        assert _orders(store, x.id) == [0]
        _assert_dense(store)

    def test_reparent_moves_subtree(self, abc):
        store, a, b, _ = abc
        anchor = store.create_subtask(b, "anchor")
        x = store.create_subtask(a, "x")
        x1 = store.create_subtask(x.id, "x1")

        assert store.reparent_and_reorder(x.id, anchor.id)
        assert store.get_task(x.id).parent_id == b
        assert store.get_task(x1.id).parent_id == x.id
        assert [t.id for t in store.children(b)] == [x.id, anchor.id]

    def test_reparent_same_parent_delegates(self, abc):
        store, a, _, c = abc
        assert store.reparent_and_reorder(a, c)
        assert store.get_task(a).order == 2

    def test_reparent_rejects_cycle(self, abc):
        store, a, _, _ = abc
        x = store.create_subtask(a, "x")
        x1 = store.create_subtask(x.id, "x1")
        x2 = store.create_subtask(x.id, "x2")
        # a would land under x, its own descendant
        assert not store.reparent_and_reorder(a, x1.id)
        assert store.get_task(a).parent_id is None
        assert store.get_task(x2.id).parent_id == x.id

    def test_reparent_rejects_depth_overflow(self, store):
        deep = store.create_task("d0", DEFAULT_GROUP_ID)
        for i in range(1, MAX_DEPTH + 1):
            deep = store.create_subtask(deep.id, f"d{i}")
        tall = store.create_task("t0", DEFAULT_GROUP_ID)
        store.create_subtask(tall.id, "t1")
        assert not store.reparent_and_reorder(tall.id, deep.id)
        assert store.get_task(tall.id).parent_id is None

    def test_reparent_rejects_other_group(self, abc):
        store, a, _, _ = abc
        other = store.create_group("Other")
        z = store.create_task("z", other.id)
        child = store.create_subtask(z.id, "zz")
        assert not store.reparent_and_reorder(a, child.id)

    def test_no_cycles_after_many_moves(self, abc):
        store, a, b, c = abc
        x = store.create_subtask(a, "x")
        y = store.create_subtask(x.id, "y")
        for active, over in [(a, y.id), (b, y.id), (y.id, c), (x.id, b), (c, x.id)]:
            store.reparent_and_reorder(active, over)
        for task in store.all_tasks():
            seen = {task.id}
            parent = task.parent_id
            while parent:
                assert parent not in seen
                seen.add(parent)
                parent = store.get_task(parent).parent_id
        _assert_dense(store)


class TestCrossStatus:
    def test_example(self, abc):
        store, a, b, c = abc
        store.toggle_complete(c)

        assert store.cross_status_reorder(a, c)
        task = store.get_task(a)
        assert task.completed is True
        assert task.completed_at is not None
        assert store.get_task(b).order == 0
        # a heads the completed partition
        assert _orders(store, a, c) == [1, 2]
        _assert_dense(store)

    def test_back_to_incomplete(self, abc):
        store, a, b, c = abc
        store.toggle_complete(a)
        store.toggle_complete(b)
        # Level is now c(open) a(done) b(done)
        assert store.cross_status_reorder(b, c)
        assert store.get_task(b).completed is False
        assert store.get_task(b).completed_at is None
        assert _orders(store, b, c, a) == [0, 1, 2]

    def test_requires_same_parent(self, abc):
        store, a, _, c = abc
        child = store.create_subtask(a, "x")
        store.toggle_complete(c)
        assert not store.cross_status_reorder(child.id, c)
        assert store.get_task(child.id).completed is False

    def test_nested_level_keeps_sibling_positions(self, abc):
        store, a, _, _ = abc
        x = store.create_subtask(a, "x").id
        y = store.create_subtask(a, "y").id
        z = store.create_subtask(a, "z").id
        store.toggle_complete(x)
        # Nested levels are not regrouped, so x stays first while done
        assert _orders(store, x, y, z) == [0, 1, 2]

        assert store.cross_status_reorder(z, y)
        assert store.get_task(z).completed is False
        assert _orders(store, x, z, y) == [0, 1, 2]
        _assert_dense(store)


class TestMoveToGroup:
    def test_example(self, home, abc):
        store, a, b, c = abc
        y = store.create_group("Y")
        kid1 = store.create_subtask(b, "k1")
        kid2 = store.create_subtask(b, "k2")

        assert store.move_to_group(b, y.id)
        for task_id in (b, kid1.id, kid2.id):
            assert store.get_task(task_id).group_id == y.id
        assert _orders(store, a, c) == [0, 1]
        assert store.get_task(kid1.id).parent_id == b
        assert store.active_group_id == y.id

        store.flush()
        assert {t.id for t in _saved(home, y.id).tasks} == {b, kid1.id, kid2.id}
        assert {t.id for t in _saved(home, DEFAULT_GROUP_ID).tasks} == {a, c}

    def test_before_task(self, abc):
        store, a, b, _ = abc
        y = store.create_group("Y")
        p = store.create_task("p", y.id)
        q = store.create_task("q", y.id)
        assert store.move_to_group(a, y.id, before_task_id=q.id)
        assert _orders(store, p.id, a, q.id) == [0, 1, 2]

    def test_nested_task_becomes_top_level(self, abc):
        store, a, _, _ = abc
        x = store.create_subtask(a, "x")
        y = store.create_subtask(a, "y")
        other = store.create_group("Other")
        assert store.move_to_group(x.id, other.id)
        assert store.get_task(x.id).parent_id is None
        assert store.get_task(y.id).order == 0
        _assert_dense(store)

    def test_same_group_noop(self, abc):
        store, a, _, _ = abc
        assert not store.move_to_group(a, DEFAULT_GROUP_ID)

    def test_unknown_group(self, abc):
        store, a, _, _ = abc
        assert not store.move_to_group(a, "missing")
        assert store.get_task(a).group_id == DEFAULT_GROUP_ID


# ---------------------------------------------------------------------------
# Views, persistence and failures
# ---------------------------------------------------------------------------

class TestViews:
    def test_visible_tasks_order_and_depth(self, abc):
        store, a, b, _ = abc
        x = store.create_subtask(a, "x")
        rows = store.visible_tasks(DEFAULT_GROUP_ID)
        assert [(t.content, d) for t, d in rows] == [("A", 0), ("x", 1), ("B", 0), ("C", 0)]

    def test_hide_completed(self, abc):
        store, a, b, c = abc
        store.create_subtask(a, "x")
        store.toggle_complete(a)
        rows = store.visible_tasks(DEFAULT_GROUP_ID, hide_completed=True)
        assert [t.id for t, _ in rows] == [b, c]

    def test_query_keeps_ancestors(self, abc):
        store, a, _, _ = abc
        x = store.create_subtask(a, "needle in here")
        rows = store.visible_tasks(DEFAULT_GROUP_ID, query="NEEDLE")
        assert [t.id for t, _ in rows] == [a, x.id]

    def test_status(self, abc):
        store = abc[0]
        status = store.status()
        assert status["tasks"] == 3
        assert status["groups"] == 1
        assert status["writer"]["pending"] == 1


class TestPersistence:
    def test_reload_preserves_structure(self, home, abc):
        store, a, b, c = abc
        x = store.create_subtask(a, "x")
        store.toggle_complete(b)
        store.close()

        reloaded = _make_store(home)

        def key(s):
            return {t.id: (t.content, t.completed, t.parent_id, t.order) for t in s.all_tasks()}

        assert key(reloaded) == key(store)
        assert x.id in {t.id for t in reloaded.all_tasks()}

    def test_background_writer(self, home):
        with TaskStore(FileGateway(home), clock=_clock()) as store:
            store.load_all()
            task = store.create_task("async", DEFAULT_GROUP_ID)
            assert store.flush(timeout=5)
        assert task.id in {t.id for t in _saved(home, DEFAULT_GROUP_ID).tasks}

    def test_write_failure_becomes_notification(self, home):
        store = TaskStore(_FailingGateway(home), clock=_clock())
        store.load_all()
        store.create_task("never saved", DEFAULT_GROUP_ID)
        store.flush()

        # The mutation itself is kept
        assert len(store.all_tasks()) == 1
        notes = store.drain_notifications()
        assert notes
        assert all(n.level == "error" for n in notes)
        assert store.drain_notifications() == []
