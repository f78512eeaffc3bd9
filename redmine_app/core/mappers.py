"""Mapping raw Redmine issue JSON into IssueModel instances."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import pandas as pd

from .field_config import tag_for_name
from .models import CustomField, CustomFieldSet, IssueModel, ProjectRef, StatusRef, UserRef

GROUP_MARKERS = ("[group]", "(group)")


def _to_int(value: Any, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


def _parse_date(val):
    if not val:
        return None
    ts = pd.to_datetime(val, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    return ts.date()


def map_user(raw: Any) -> UserRef | None:
    if not isinstance(raw, dict):
        return None
    user_id = _to_int(raw.get("id"))
    if user_id is None:
        return None
    name = str(raw.get("name") or "").strip()
    kind = str(raw.get("type") or "").lower()
    lowered = name.lower()
    is_group = kind == "group" or any(marker in lowered for marker in GROUP_MARKERS)
    return UserRef(id=user_id, name=name, is_group=is_group)


def map_project(raw: Any) -> ProjectRef | None:
    if not isinstance(raw, dict):
        return None
    project_id = _to_int(raw.get("id"))
    if project_id is None:
        return None
    parent = raw.get("parent") or {}
    return ProjectRef(
        id=project_id,
        name=str(raw.get("name") or ""),
        parent_id=_to_int(parent.get("id")) if isinstance(parent, dict) else None,
    )


def map_status(raw: Any) -> StatusRef | None:
    if not isinstance(raw, dict):
        return None
    status_id = _to_int(raw.get("id"))
    if status_id is None:
        return None
    return StatusRef(id=status_id, name=str(raw.get("name") or ""), is_closed=bool(raw.get("is_closed")))


def _normalize_field_value(value: Any):
    if value is None:
        return None
    if isinstance(value, list):
        return [str(v) for v in value if v is not None]
    return str(value)


def map_custom_fields(raw_fields: Any) -> CustomFieldSet:
    out = CustomFieldSet()
    if not isinstance(raw_fields, list):
        return out
    for raw in raw_fields:
        if not isinstance(raw, dict):
            continue
        name = str(raw.get("name") or "")
        value = _normalize_field_value(raw.get("value"))
        out.fields.append(CustomField(id=_to_int(raw.get("id")), name=name, value=value))
        tag = tag_for_name(name)
        if tag is None:
            out.unknown.setdefault(name, value)
        else:
            # First occurrence wins, matching exact-name lookups
            out.tagged.setdefault(tag, value)
    return out


def map_issue(raw: dict[str, Any]) -> IssueModel:
    parent = raw.get("parent") or {}
    watchers = raw.get("watchers") or []
    watcher_ids = frozenset(
        wid for wid in (_to_int(w.get("id")) for w in watchers if isinstance(w, dict)) if wid is not None
    )
    children = raw.get("children") or []
    tracker = raw.get("tracker") or {}
    issue = IssueModel(
        id=_to_int(raw.get("id"), 0),
        subject=str(raw.get("subject") or ""),
        parent_id=_to_int(parent.get("id")) if isinstance(parent, dict) else None,
        done_ratio=max(0, min(100, _to_int(raw.get("done_ratio"), 0))),
        assigned_to=map_user(raw.get("assigned_to")),
        watcher_ids=watcher_ids,
        project=map_project(raw.get("project")),
        status=map_status(raw.get("status")),
        tracker=tracker.get("name") if isinstance(tracker, dict) else None,
        tracker_id=_to_int(tracker.get("id")) if isinstance(tracker, dict) else None,
        start_date=_parse_date(raw.get("start_date")),
        due_date=_parse_date(raw.get("due_date")),
        custom_fields=map_custom_fields(raw.get("custom_fields")),
        allowed_statuses=[s for s in (map_status(x) for x in raw.get("allowed_statuses") or []) if s],
        child_ids=[c for c in (_to_int(x.get("id")) for x in children if isinstance(x, dict)) if c is not None],
    )
    return issue


def issues_to_dataframe(issues: Iterable[IssueModel]) -> pd.DataFrame:
    rows = []
    for i in issues:
        rows.append(
            {
                "item_id": i.id,
                "subject": i.subject,
                "parent_id": i.parent_id,
                "done_ratio": i.done_ratio,
                "project": i.project.name if i.project else None,
                "project_id": i.project.id if i.project else None,
                "assignee": i.assigned_to.name if i.assigned_to else "Unassigned",
                "status": i.status.name if i.status else None,
                "tracker": i.tracker,
                "start_date": i.start_date,
                "due_date": i.due_date,
            }
        )
    df = pd.DataFrame(rows)
    if not df.empty:
        df["parent_id"] = df["parent_id"].astype("Int64")
        df = df.sort_values(by="item_id").reset_index(drop=True)
    return df
