"""Weighted, period-scoped performance (pure functions of items and period).

Nothing here caches: callers recompute whenever the selected period changes.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from redmine_app.core.fields import get_weight
from redmine_app.core.models import (
    ChildNode,
    DepartmentData,
    GoalData,
    IssueModel,
    PerformanceRecord,
    StatusBuckets,
    TeamData,
    UserRef,
)
from redmine_app.core.status import progress_status, status_bucket

from .periods import (
    PeriodTag,
    actual_value,
    filter_by_period,
    has_period_target,
    in_period,
    map_to_period,
    map_to_period_for,
    round_half_up,
    target_value,
)


def _period_items(items: Iterable[IssueModel], tag: PeriodTag) -> list[IssueModel]:
    items = list(items)
    if tag is PeriodTag.YEARLY:
        return items
    return filter_by_period(items, tag)


def weighted_performance(items: Iterable[IssueModel], period: PeriodTag | str) -> int:
    """Weight-averaged period progress; 0 for an empty or zero-weight set."""
    tag = PeriodTag.parse(period)
    total_weight = 0.0
    weighted_sum = 0.0
    for item in _period_items(items, tag):
        weight = get_weight(item)
        progress = map_to_period(tag, item.done_ratio or 0)
        total_weight += weight
        weighted_sum += weight * progress
    if total_weight == 0:
        return 0
    return round_half_up(weighted_sum / total_weight)


def status_buckets(items: Iterable[IssueModel], period: PeriodTag | str) -> StatusBuckets:
    """Not started / in progress / done counts on the unmapped yearly ratio."""
    tag = PeriodTag.parse(period)
    out = StatusBuckets()
    for item in _period_items(items, tag):
        ratio = item.done_ratio or 0
        if ratio == 0:
            out.not_started += 1
        elif ratio < 100:
            out.in_progress += 1
        else:
            out.done += 1
    return out


def performance_record(item: IssueModel, period: PeriodTag | str) -> PerformanceRecord:
    tag = PeriodTag.parse(period)
    mapped = map_to_period(tag, item.done_ratio or 0)
    target = target_value(item, tag)
    return PerformanceRecord(
        item_id=item.id,
        subject=item.subject,
        weight=get_weight(item),
        raw_done_ratio=item.done_ratio or 0,
        period=tag.value,
        mapped_progress=mapped,
        target_value=target,
        actual_value=actual_value(mapped, target),
        status=status_bucket(item.done_ratio),
        project=item.project.name if item.project else None,
        assignee=item.assigned_to.name if item.assigned_to else None,
    )


def performance_records(items: Iterable[IssueModel], period: PeriodTag | str) -> list[PerformanceRecord]:
    tag = PeriodTag.parse(period)
    return [performance_record(item, tag) for item in _period_items(items, tag)]


def average_progress(items: Iterable[IssueModel], period: PeriodTag | str) -> int:
    """Unweighted mean of mapped progress over top-level (parentless) items."""
    tag = PeriodTag.parse(period)
    top = [i for i in items if i.parent_id is None]
    if not top:
        return 0
    return round_half_up(sum(map_to_period(tag, i.done_ratio or 0) for i in top) / len(top))


@dataclass(slots=True)
class MemberPerformance:
    user_id: int
    name: str
    performance: int = 0
    earned_weight: float = 0.0
    max_weight: float = 0.0
    completed: int = 0
    total: int = 0
    issues: list[IssueModel] = field(default_factory=list)


def _assigned_directly(item: IssueModel, user_id: int) -> bool:
    return bool(item.assigned_to and item.assigned_to.id == user_id)


def member_performance(
    member: UserRef,
    nodes: Iterable[ChildNode],
    period: PeriodTag | str,
    is_assigned: Callable[[IssueModel, int], bool] | None = None,
) -> MemberPerformance:
    """Team-leader score of one member over one-level issues and their subs.

    Parameters
    ----------
    member : UserRef
        The member being scored.
    nodes : Iterable[ChildNode]
        One-level issues (``node.child``) with their sub-issues.
    period : PeriodTag | str
        Selected period.
    is_assigned : callable, optional
        ``is_assigned(item, user_id)``; direct assignment when omitted. Pass
        ``MembershipIndex.is_assigned`` to honour group assignments.

    Returns
    -------
    MemberPerformance
        Every one-level issue assigned to the member that plans a quantity for
        the period adds its weight to ``max_weight``. It earns that weight
        times the average issue-aware progress of the member's subs planned
        for the period; with no such subs it earns nothing.
    """
    tag = PeriodTag.parse(period)
    check = is_assigned or _assigned_directly
    out = MemberPerformance(user_id=member.id, name=member.name)
    for node in nodes:
        main = node.child
        if not check(main, member.id) or not has_period_target(main, tag):
            continue
        weight = get_weight(main)
        out.total += 1
        out.max_weight += weight
        out.issues.append(main)
        subs = [s for s in node.subs if check(s, member.id)]
        if tag is not PeriodTag.YEARLY:
            subs = [s for s in subs if in_period(s, tag)]
        if not subs:
            continue
        avg = sum(map_to_period_for(s, tag) for s in subs) / len(subs)
        out.earned_weight += weight * avg / 100
        if avg >= 100:
            out.completed += 1
    if out.max_weight > 0:
        out.performance = round_half_up(out.earned_weight / out.max_weight * 100)
    return out


def watched_performance(member: UserRef, items: Iterable[IssueModel], period: PeriodTag | str) -> MemberPerformance:
    """Weighted performance of the items a member watches, for executive team cards."""
    tag = PeriodTag.parse(period)
    scoped = _period_items(items, tag)
    out = MemberPerformance(user_id=member.id, name=member.name, issues=scoped, total=len(scoped))
    for item in scoped:
        weight = get_weight(item)
        progress = map_to_period(tag, item.done_ratio or 0)
        out.max_weight += weight
        out.earned_weight += weight * progress / 100
        if progress == 100:
            out.completed += 1
    out.performance = weighted_performance(scoped, tag)
    return out


# ------------------ Department / goal / team summaries ------------------
@dataclass(slots=True)
class GoalSummary:
    project_id: int
    name: str
    performance: int
    average_progress: int
    status: str
    issues: int
    buckets: StatusBuckets


@dataclass(slots=True)
class DepartmentSummary:
    project_id: int
    name: str
    performance: int
    average_progress: int
    status: str
    issues: int
    buckets: StatusBuckets
    goals: list[GoalSummary] = field(default_factory=list)


@dataclass(slots=True)
class TeamSummary:
    name: str
    performance: int
    members: list[MemberPerformance] = field(default_factory=list)

    @property
    def issue_count(self) -> int:
        return sum(m.total for m in self.members)


def summarize_goal(goal: GoalData, period: PeriodTag | str) -> GoalSummary:
    tag = PeriodTag.parse(period)
    performance = weighted_performance(goal.items, tag)
    return GoalSummary(
        project_id=goal.project.id,
        name=goal.project.name,
        performance=performance,
        average_progress=average_progress(goal.items, tag),
        status=progress_status(performance),
        issues=len(_period_items(goal.items, tag)),
        buckets=status_buckets(goal.items, tag),
    )


def summarize_department(department: DepartmentData, period: PeriodTag | str) -> DepartmentSummary:
    """Department figures over its own issues plus every goal's issues."""
    tag = PeriodTag.parse(period)
    items = department.all_items()
    performance = weighted_performance(items, tag)
    return DepartmentSummary(
        project_id=department.project.id,
        name=department.project.name,
        performance=performance,
        average_progress=average_progress(items, tag),
        status=progress_status(performance),
        issues=len(_period_items(items, tag)),
        buckets=status_buckets(items, tag),
        goals=[summarize_goal(g, tag) for g in department.goals],
    )


def summarize_team(team: TeamData, period: PeriodTag | str) -> TeamSummary:
    """Per-member performance over watched items; the team figure pools weights."""
    tag = PeriodTag.parse(period)
    members = [watched_performance(m.user, m.items, tag) for m in team.members]
    members.sort(key=lambda m: (-m.performance, m.name))
    max_weight = sum(m.max_weight for m in members)
    earned = sum(m.earned_weight for m in members)
    performance = round_half_up(earned / max_weight * 100) if max_weight > 0 else 0
    return TeamSummary(name=team.name, performance=performance, members=members)
