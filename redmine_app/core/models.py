"""Domain data models for Redmine issues, hierarchy nodes and performance rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from .config import FieldTag

FieldValue = str | list[str] | None


@dataclass(slots=True, frozen=True)
class UserRef:
    id: int
    name: str = ""
    is_group: bool = False


@dataclass(slots=True, frozen=True)
class ProjectRef:
    id: int
    name: str = ""
    parent_id: int | None = None


@dataclass(slots=True, frozen=True)
class StatusRef:
    id: int
    name: str = ""
    is_closed: bool = False


@dataclass(slots=True)
class CustomField:
    id: int | None
    name: str
    value: FieldValue = None


@dataclass(slots=True)
class CustomFieldSet:
    """Custom fields in tracker order plus a typed view of the recognized ones.

    ``tagged`` maps recognized field tags to their raw value; ``unknown`` keeps
    every other field by name so nothing the tracker sends is lost.
    """

    fields: list[CustomField] = field(default_factory=list)
    tagged: dict[FieldTag, FieldValue] = field(default_factory=dict)
    unknown: dict[str, FieldValue] = field(default_factory=dict)

    def __iter__(self):
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)


@dataclass(slots=True)
class IssueModel:
    id: int
    subject: str = ""
    parent_id: int | None = None
    done_ratio: int = 0
    assigned_to: UserRef | None = None
    watcher_ids: frozenset[int] = frozenset()
    project: ProjectRef | None = None
    status: StatusRef | None = None
    tracker: str | None = None
    tracker_id: int | None = None
    start_date: date | None = None
    due_date: date | None = None
    custom_fields: CustomFieldSet = field(default_factory=CustomFieldSet)
    allowed_statuses: list[StatusRef] = field(default_factory=list)
    child_ids: list[int] = field(default_factory=list)


class Tier(str, Enum):
    MAIN = "main"
    CHILD = "child"
    SUB = "sub"
    EXCLUDED = "excluded"


@dataclass(slots=True)
class ChildNode:
    child: IssueModel
    subs: list[IssueModel] = field(default_factory=list)


@dataclass(slots=True)
class MainNode:
    main: IssueModel
    children: list[ChildNode] = field(default_factory=list)


@dataclass(slots=True)
class HierarchyResult:
    mains: list[MainNode] = field(default_factory=list)
    tiers: dict[int, Tier] = field(default_factory=dict)
    # Items whose declared parent could not be fetched
    dropped: list[int] = field(default_factory=list)


@dataclass(slots=True)
class StatusBuckets:
    not_started: int = 0
    in_progress: int = 0
    done: int = 0

    @property
    def total(self) -> int:
        return self.not_started + self.in_progress + self.done


@dataclass(slots=True)
class PerformanceRecord:
    item_id: int
    subject: str
    weight: float
    raw_done_ratio: int
    period: str
    mapped_progress: int
    target_value: float = 0.0
    actual_value: float = 0.0
    status: str = ""
    project: str | None = None
    assignee: str | None = None


# ------------------ Loaded dashboard data ------------------
@dataclass(slots=True)
class GoalData:
    project: ProjectRef
    items: list[IssueModel] = field(default_factory=list)


@dataclass(slots=True)
class DepartmentData:
    project: ProjectRef
    goals: list[GoalData] = field(default_factory=list)
    direct_items: list[IssueModel] = field(default_factory=list)

    def all_items(self) -> list[IssueModel]:
        out = list(self.direct_items)
        for goal in self.goals:
            out.extend(goal.items)
        return out


@dataclass(slots=True)
class MemberData:
    user: UserRef
    items: list[IssueModel] = field(default_factory=list)


@dataclass(slots=True)
class TeamData:
    name: str
    members: list[MemberData] = field(default_factory=list)
