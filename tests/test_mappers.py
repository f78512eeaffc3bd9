from datetime import date

from redmine_app.core.config import FieldTag
from redmine_app.core.field_config import field_name
from redmine_app.core.mappers import issues_to_dataframe, map_issue, map_user


def _sample_raw():
    return {
        "id": "42",
        "subject": "Build regional office",
        "parent": {"id": 7},
        "done_ratio": 130,
        "assigned_to": {"id": 5, "name": "Planning Team (Group)"},
        "watchers": [{"id": 3, "name": "Abebe"}, {"id": 4, "name": "Sara"}],
        "project": {"id": 11, "name": "Goal A", "parent": {"id": 1}},
        "status": {"id": 2, "name": "In Progress", "is_closed": False},
        "tracker": {"id": 3, "name": "Activity"},
        "start_date": "2025-05-09",
        "due_date": "not a date",
        "custom_fields": [
            {"id": 1, "name": field_name(FieldTag.WEIGHT), "value": "4"},
            {"id": 2, "name": "Region", "value": ["Amhara"]},
            {"id": 3, "name": field_name(FieldTag.WEIGHT), "value": "8"},
        ],
        "allowed_statuses": [{"id": 1, "name": "New"}, {"id": 5, "name": "Closed", "is_closed": True}],
        "children": [{"id": 43}, {"id": 44}],
    }


def test_map_issue():
    item = map_issue(_sample_raw())
    assert item.id == 42
    assert item.parent_id == 7
    assert item.done_ratio == 100
    assert item.assigned_to.is_group
    assert item.watcher_ids == frozenset({3, 4})
    assert item.project.parent_id == 1
    assert item.tracker == "Activity"
    assert item.tracker_id == 3
    assert item.start_date == date(2025, 5, 9)
    assert item.due_date is None
    assert item.custom_fields.tagged[FieldTag.WEIGHT] == "4"
    assert item.custom_fields.unknown["Region"] == ["Amhara"]
    assert len(item.custom_fields) == 3
    assert [s.id for s in item.allowed_statuses] == [1, 5]
    assert item.allowed_statuses[1].is_closed
    assert item.child_ids == [43, 44]


def test_map_issue_minimal():
    item = map_issue({"id": 1})
    assert item.parent_id is None
    assert item.done_ratio == 0
    assert item.assigned_to is None
    assert len(item.custom_fields) == 0


def test_map_user_group_type():
    assert map_user({"id": 9, "name": "Finance", "type": "Group"}).is_group
    assert not map_user({"id": 9, "name": "Sara"}).is_group
    assert map_user({"name": "no id"}) is None


def test_issues_to_dataframe():
    items = [map_issue({"id": 3, "parent": {"id": 1}}), map_issue(_sample_raw())]
    df = issues_to_dataframe(reversed(items))
    assert list(df["item_id"]) == [3, 42]
    assert df.loc[0, "assignee"] == "Unassigned"
    assert str(df["parent_id"].dtype) == "Int64"
