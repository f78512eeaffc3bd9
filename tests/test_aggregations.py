import pandas as pd

from redmine_app.analytics.aggregations.groups import (
    GROUP_COLUMNS,
    aggregate_by_assignee,
    aggregate_by_project,
    records_frame,
)
from redmine_app.core.config import PERFORMANCE_COLUMNS
from redmine_app.core.models import PerformanceRecord


def _sample_records():
    rows = [
        # item, project, assignee, weight, ratio, mapped, status
        (1, "Planning", "Abebe", 2.0, 80, 80, "In Progress"),
        (2, "Planning", "Sara", 2.0, 100, 100, "Done"),
        (3, "Finance", "Abebe", 1.0, 0, 0, "Not Started"),
        (4, "Finance", None, 0.0, 100, 100, "Done"),
        (5, None, "Sara", 1.0, 50, 50, "In Progress"),
    ]
    return [
        PerformanceRecord(
            item_id=i,
            subject=f"Item {i}",
            weight=w,
            raw_done_ratio=r,
            period="YEARLY",
            mapped_progress=m,
            status=s,
            project=p,
            assignee=a,
        )
        for i, p, a, w, r, m, s in rows
    ]


def test_records_frame_column_order():
    df = records_frame(_sample_records())
    assert list(df.columns[: len(PERFORMANCE_COLUMNS)]) == list(PERFORMANCE_COLUMNS)
    assert len(df) == 5


def test_records_frame_empty():
    df = records_frame([])
    assert df.empty
    assert list(df.columns) == list(PERFORMANCE_COLUMNS)


def test_aggregate_by_project():
    out = aggregate_by_project(records_frame(_sample_records()))
    assert list(out.columns) == ["project", *GROUP_COLUMNS]
    assert list(out["project"]) == ["Planning", "(No project)", "Finance"]
    planning = out.iloc[0]
    assert planning["performance"] == 90
    assert planning["issues"] == 2
    assert planning["done"] == 1
    finance = out[out["project"] == "Finance"].iloc[0]
    # zero-weight Done item adds nothing to performance
    assert finance["performance"] == 0
    assert finance["not_started"] == 1


def test_aggregate_by_assignee():
    out = aggregate_by_assignee(records_frame(_sample_records()))
    assert set(out["assignee"]) == {"Abebe", "Sara", "(Unassigned)"}
    sara = out[out["assignee"] == "Sara"].iloc[0]
    assert sara["performance"] == 83
    assert sara["total_weight"] == 3.0


def test_aggregate_empty_frame():
    out = aggregate_by_assignee(pd.DataFrame())
    assert out.empty
    assert "performance" in out.columns
