"""Aggregator — status counts, workload ranking, tabs and search over snapshots."""

from __future__ import annotations

import uuid
from types import SimpleNamespace

from workdesk.common.constants import TaskStatus
from workdesk.sync import aggregator


def _item(**fields):
    return SimpleNamespace(**fields)


def test_count_by_status_capitalizes_in_first_occurrence_order():
    items = [_item(status="completed"), _item(status="completed"), _item(status="pending")]

    counts = aggregator.count_by_status(items)

    assert counts == {"Completed": 2, "Pending": 1}
    assert list(counts) == ["Completed", "Pending"]


def test_count_by_status_reads_enum_values():
    items = [_item(status=TaskStatus.in_progress), _item(status=TaskStatus.in_progress)]
    assert aggregator.count_by_status(items) == {"In_progress": 2}


def test_top_by_assignee_keeps_five_busiest_first():
    ids = [uuid.uuid4() for _ in range(7)]
    names = {pid: f"Person {i}" for i, pid in enumerate(ids)}
    tasks = [_item(assignee_id=pid) for pid in ids[:6]]
    tasks += [_item(assignee_id=ids[6])] * 3

    top = aggregator.top_by_assignee(tasks, names)

    assert len(top) == 5
    assert list(top.items())[0] == ("Person 6", 3)
    assert list(top)[1:] == ["Person 0", "Person 1", "Person 2", "Person 3"]


def test_top_by_assignee_groups_missing_assignees_as_unassigned():
    known = uuid.uuid4()
    tasks = [_item(assignee_id=None), _item(assignee_id=uuid.uuid4()), _item(assignee_id=known)]

    top = aggregator.top_by_assignee(tasks, {known: "Kim"})

    assert top == {"Unassigned": 2, "Kim": 1}


def test_partition_by_adds_all_tab_and_empty_buckets():
    items = [_item(status="pending"), _item(status="completed")]

    tabs = aggregator.partition_by(items, "status", list(TaskStatus)[:3])

    assert list(tabs) == ["all", "pending", "in_progress", "completed"]
    assert len(tabs["all"]) == 2
    assert tabs["in_progress"] == []


def test_search_is_case_insensitive_across_fields():
    items = [
        _item(title="Quarterly Report", description=""),
        _item(title="Standup", description="report blockers"),
        _item(title="Lunch", description=None),
    ]

    assert len(aggregator.search(items, "REPORT", ("title", "description"))) == 2
    assert aggregator.search(items, "", ("title",)) == items


def test_count_where():
    assert aggregator.count_where(range(10), lambda n: n % 2 == 0) == 5
