"""Pure helpers to build dashboard view models for testing (no rendering).

Every builder takes a period tag and recomputes from loaded data, so switching
the selected period never needs a refetch.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

import pandas as pd

from redmine_app.analytics.aggregations.groups import aggregate_by_assignee, records_frame
from redmine_app.analytics.hierarchy import flatten
from redmine_app.analytics.performance import (
    DepartmentSummary,
    MemberPerformance,
    TeamSummary,
    member_performance,
    performance_records,
    summarize_department,
    summarize_team,
    weighted_performance,
)
from redmine_app.analytics.periods import PeriodTag, in_period, map_to_period, round_half_up, target_value
from redmine_app.core.config import PROGRESS_STATUS_THRESHOLDS, FieldTag
from redmine_app.core.fields import get_weight, tag_value
from redmine_app.core.models import DepartmentData, HierarchyResult, IssueModel, TeamData, Tier, UserRef
from redmine_app.core.status import is_achieved, progress_status

PLAN_COLUMNS = (
    "main_id",
    "item_id",
    "tier",
    "subject",
    "weight",
    "measurement",
    "raw_done_ratio",
    "mapped_progress",
    "target_value",
    "in_period",
)


@dataclass(slots=True)
class ExecutiveContext:
    period: str
    goal_count: int
    average_goal_performance: int
    watched_issue_count: int
    member_count: int
    departments: list[DepartmentSummary] = field(default_factory=list)
    teams: list[TeamSummary] = field(default_factory=list)


@dataclass(slots=True)
class MinisterContext:
    period: str
    ranking: pd.DataFrame
    goal_status_counts: dict[str, int]
    achieved_goals: int
    overall_performance: int


@dataclass(slots=True)
class PlanContext:
    period: str
    rows: pd.DataFrame
    performance: int
    assignee_table: pd.DataFrame
    members: list[MemberPerformance] = field(default_factory=list)


def build_executive_context(
    departments: Iterable[DepartmentData],
    teams: Iterable[TeamData],
    period: PeriodTag | str,
) -> ExecutiveContext:
    tag = PeriodTag.parse(period)
    dept_summaries = [summarize_department(d, tag) for d in departments]
    team_summaries = [summarize_team(t, tag) for t in teams]
    goals = [g for d in dept_summaries for g in d.goals]
    avg = round_half_up(sum(g.performance for g in goals) / len(goals)) if goals else 0
    watched = {i.id for t in teams for m in t.members for i in m.items}
    members = {m.user.id for t in teams for m in t.members}
    return ExecutiveContext(
        period=tag.value,
        goal_count=len(goals),
        average_goal_performance=avg,
        watched_issue_count=len(watched),
        member_count=len(members),
        departments=dept_summaries,
        teams=team_summaries,
    )


def build_minister_context(departments: Iterable[DepartmentData], period: PeriodTag | str) -> MinisterContext:
    tag = PeriodTag.parse(period)
    departments = list(departments)
    summaries = [summarize_department(d, tag) for d in departments]
    ranking = pd.DataFrame(
        [
            {
                "department": s.name,
                "performance": s.performance,
                "status": s.status,
                "goals": len(s.goals),
                "issues": s.issues,
            }
            for s in summaries
        ],
        columns=["department", "performance", "status", "goals", "issues"],
    )
    if not ranking.empty:
        ranking = ranking.sort_values(by=["performance", "department"], ascending=[False, True])
        ranking = ranking.reset_index(drop=True)
    # Every label present, in threshold order, so charts keep a stable legend
    counts = {label: 0 for _, label in PROGRESS_STATUS_THRESHOLDS}
    for s in summaries:
        for g in s.goals:
            counts[progress_status(g.performance)] += 1
    all_items = [i for d in departments for i in d.all_items()]
    return MinisterContext(
        period=tag.value,
        ranking=ranking,
        goal_status_counts=counts,
        achieved_goals=sum(1 for s in summaries for g in s.goals if is_achieved(g.performance)),
        overall_performance=weighted_performance(all_items, tag),
    )


def _plan_row(main_id: int, item: IssueModel, tier: Tier, tag: PeriodTag) -> dict:
    return {
        "main_id": main_id,
        "item_id": item.id,
        "tier": tier.value,
        "subject": item.subject,
        "weight": get_weight(item),
        "measurement": tag_value(item, FieldTag.MEASUREMENT),
        "raw_done_ratio": item.done_ratio,
        "mapped_progress": map_to_period(tag, item.done_ratio),
        "target_value": target_value(item, tag),
        "in_period": in_period(item, tag),
    }


def build_plan_context(
    result: HierarchyResult,
    period: PeriodTag | str,
    is_assigned: Callable[[IssueModel, int], bool] | None = None,
) -> PlanContext:
    """Rows in tree order (main, then each child followed by its subs).

    Child rows outside the period are dropped along with their subs; main rows
    are always kept as section headers. ``members`` scores every assignee of a
    one-level issue with the team-leader model, best first.
    """
    tag = PeriodTag.parse(period)
    rows = []
    for node in result.mains:
        rows.append(_plan_row(node.main.id, node.main, Tier.MAIN, tag))
        for child in node.children:
            if not in_period(child.child, tag):
                continue
            rows.append(_plan_row(node.main.id, child.child, Tier.CHILD, tag))
            for sub in child.subs:
                rows.append(_plan_row(node.main.id, sub, Tier.SUB, tag))
    children = flatten(result, Tier.CHILD)
    nodes = [c for node in result.mains for c in node.children]
    assignees: dict[int, UserRef] = {}
    for child in children:
        if child.assigned_to is not None:
            assignees.setdefault(child.assigned_to.id, child.assigned_to)
    members = [member_performance(u, nodes, tag, is_assigned) for _, u in sorted(assignees.items())]
    members.sort(key=lambda m: (-m.performance, m.name))
    return PlanContext(
        period=tag.value,
        rows=pd.DataFrame(rows, columns=list(PLAN_COLUMNS)),
        performance=weighted_performance(children, tag),
        assignee_table=aggregate_by_assignee(records_frame(performance_records(children, tag))),
        members=members,
    )
