"""Project / assignee performance tables built from PerformanceRecord rows."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict

import numpy as np
import pandas as pd

from redmine_app.core.config import PERFORMANCE_COLUMNS
from redmine_app.core.models import PerformanceRecord
from redmine_app.core.status import DONE, IN_PROGRESS, NOT_STARTED

GROUP_COLUMNS = (
    "issues",
    "total_weight",
    "performance",
    "not_started",
    "in_progress",
    "done",
)


def records_frame(records: Iterable[PerformanceRecord]) -> pd.DataFrame:
    rows = [asdict(r) for r in records]
    if not rows:
        return pd.DataFrame(columns=list(PERFORMANCE_COLUMNS))
    df = pd.DataFrame(rows)
    ordered = [c for c in PERFORMANCE_COLUMNS if c in df.columns]
    extra = [c for c in df.columns if c not in PERFORMANCE_COLUMNS]
    return df[ordered + extra]


def _aggregate(df: pd.DataFrame, column: str, placeholder: str) -> pd.DataFrame:
    if df.empty:
        return pd.DataFrame(columns=[column, *GROUP_COLUMNS])
    out = df.copy()
    out[column] = out[column].fillna(placeholder).replace("", placeholder).astype(str)
    out["weight"] = pd.to_numeric(out["weight"], errors="coerce").fillna(0)
    out["mapped_progress"] = pd.to_numeric(out["mapped_progress"], errors="coerce").fillna(0)
    out["weighted_progress"] = out["weight"] * out["mapped_progress"]
    out["is_not_started"] = out["status"] == NOT_STARTED
    out["is_in_progress"] = out["status"] == IN_PROGRESS
    out["is_done"] = out["status"] == DONE
    agg = out.groupby(column, dropna=False).agg(
        issues=("item_id", "count"),
        total_weight=("weight", "sum"),
        weighted_sum=("weighted_progress", "sum"),
        not_started=("is_not_started", "sum"),
        in_progress=("is_in_progress", "sum"),
        done=("is_done", "sum"),
    )
    # Zero total weight means 0% rather than NaN
    ratio = agg["weighted_sum"] / agg["total_weight"].replace(0, np.nan)
    agg["performance"] = np.floor(ratio.fillna(0) + 0.5).astype(int)
    agg = agg.drop(columns=["weighted_sum"]).reset_index()
    agg = agg.sort_values(by=["performance", column], ascending=[False, True]).reset_index(drop=True)
    for col in ("issues", "not_started", "in_progress", "done"):
        agg[col] = agg[col].astype(int)
    return agg[[column, *GROUP_COLUMNS]]


def aggregate_by_project(df: pd.DataFrame) -> pd.DataFrame:
    return _aggregate(df, "project", "(No project)")


def aggregate_by_assignee(df: pd.DataFrame) -> pd.DataFrame:
    return _aggregate(df, "assignee", "(Unassigned)")
