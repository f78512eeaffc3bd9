"""Team membership resolution: direct or group assignment of issues to users."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from redmine_app.core.models import IssueModel, UserRef

_GROUP_MARKER = re.compile(r"\[group\]", re.IGNORECASE)
_PARENTHESISED = re.compile(r"\s*\(.*?\)\s*")
_WHITESPACE = re.compile(r"\s+")


def normalize_group_name(name: str | None) -> str:
    """Strip ``[Group]`` markers and parenthesised suffixes; collapse whitespace.

    >>> normalize_group_name("[Group]  Planning  (Directorate)")
    'Planning'
    """
    if not name:
        return ""
    text = _GROUP_MARKER.sub("", str(name))
    text = _WHITESPACE.sub(" ", text).strip()
    return _PARENTHESISED.sub(" ", text).strip()


def is_group_assignment(ref: UserRef | None) -> bool:
    if ref is None:
        return False
    if ref.is_group:
        return True
    lowered = ref.name.lower()
    return "[group]" in lowered or "(group)" in lowered or lowered.endswith(" group")


@dataclass(slots=True)
class GroupInfo:
    id: int
    name: str
    user_ids: set[int] = field(default_factory=set)

    @property
    def key(self) -> str:
        return normalize_group_name(self.name).lower()


@dataclass(slots=True)
class MembershipIndex:
    groups: dict[int, GroupInfo] = field(default_factory=dict)

    def add_group(self, raw: dict[str, Any]) -> GroupInfo | None:
        try:
            group_id = int(raw.get("id"))
        except (TypeError, ValueError):
            return None
        users = raw.get("users") or []
        user_ids = set()
        for user in users:
            if isinstance(user, dict) and user.get("id") is not None:
                try:
                    user_ids.add(int(user["id"]))
                except (TypeError, ValueError):
                    continue
        info = GroupInfo(id=group_id, name=str(raw.get("name") or f"Group {group_id}"), user_ids=user_ids)
        existing = self.groups.get(group_id)
        if existing is not None:
            existing.user_ids |= info.user_ids
            return existing
        self.groups[group_id] = info
        return info

    @classmethod
    def from_groups(cls, groups: Iterable[dict[str, Any]]) -> MembershipIndex:
        index = cls()
        for raw in groups:
            if isinstance(raw, dict):
                index.add_group(raw)
        return index

    def members_of(self, group_name: str) -> set[int]:
        search = normalize_group_name(group_name).lower()
        out: set[int] = set()
        if not search:
            return out
        for info in self.groups.values():
            key = info.key
            if key and (search in key or key in search):
                out |= info.user_ids
        return out

    def is_assigned(self, item: IssueModel, user_id: int) -> bool:
        ref = item.assigned_to
        if ref is None:
            return False
        if ref.id == user_id:
            return True
        group = self.groups.get(ref.id)
        if group is not None:
            return user_id in group.user_ids
        if not is_group_assignment(ref):
            return False
        return user_id in self.members_of(ref.name)


def group_ids_from_memberships(memberships: Iterable[dict[str, Any]]) -> list[int]:
    """Group ids among a project's memberships (user members are skipped)."""
    out: list[int] = []
    for m in memberships:
        group = m.get("group") if isinstance(m, dict) else None
        if isinstance(group, dict) and group.get("id") is not None:
            try:
                out.append(int(group["id"]))
            except (TypeError, ValueError):
                continue
    return sorted(set(out))
