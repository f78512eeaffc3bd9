"""IssueService: orchestrates fetching, caching, and hierarchy reconstruction.

Every dashboard load starts with ``begin_load()``, which hands out a
``LoadContext`` holding a fresh issue cache and a generation number. Results
computed under a context that is no longer current are discarded by
``commit()``.

Failures at the fetch boundary never propagate: they are logged and the
caller receives an empty list, ``None``, or ``UpdateResult(success=False)``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date
from typing import Any, TypeVar

from redmine_app.analytics.hierarchy import build_hierarchy
from redmine_app.analytics.membership import MembershipIndex, group_ids_from_memberships, normalize_group_name
from redmine_app.analytics.performance import (
    DepartmentSummary,
    TeamSummary,
    summarize_department,
    summarize_team,
)
from redmine_app.analytics.periods import PeriodTag, is_period_active, quarter_done_ratio

from .cache import IssueCache
from .config import FETCH_MIN_PARALLEL, SETTINGS, AppSettings, FieldTag, RedmineSettings
from .field_config import field_name
from .fields import DIGIT_STRIPPED, field_has_value, get_field_number
from .mappers import map_issue, map_project, map_user
from .models import (
    DepartmentData,
    GoalData,
    HierarchyResult,
    IssueModel,
    MemberData,
    ProjectRef,
    TeamData,
    UserRef,
)
from .redmine_client import RedmineAPI, RedmineError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int | None, int | None], None]
T = TypeVar("T")


@dataclass(slots=True)
class LoadContext:
    generation: int
    cache: IssueCache = field(default_factory=IssueCache)
    groups: dict[int, dict[str, Any]] = field(default_factory=dict)


@dataclass(slots=True)
class UpdateResult:
    success: bool
    done_ratio: int | None = None
    message: str = ""


def _dedupe(items: Iterable[IssueModel]) -> list[IssueModel]:
    seen: set[int] = set()
    out: list[IssueModel] = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        out.append(item)
    return out


class IssueService:
    def __init__(self, api: RedmineAPI, *, settings: AppSettings = SETTINGS, max_workers: int | None = None):
        self.api = api
        self.settings = settings
        self.max_workers = max_workers or settings.max_workers
        self._generation = 0
        self._lock = threading.Lock()

    @classmethod
    def from_env(cls, settings: AppSettings = SETTINGS) -> IssueService:
        """Service backed by a client configured from ``REDMINE_*`` environment variables."""
        return cls(RedmineAPI.from_settings(RedmineSettings.from_env()), settings=settings)

    # ------------------ Load lifecycle ------------------
    def begin_load(self) -> LoadContext:
        with self._lock:
            self._generation += 1
            return LoadContext(generation=self._generation)

    def is_current(self, ctx: LoadContext) -> bool:
        return ctx.generation == self._generation

    def commit(self, ctx: LoadContext, result: T) -> T | None:
        """Return ``result`` if ``ctx`` is still the latest load, else ``None``."""
        if not self.is_current(ctx):
            logger.debug("Discarding result of superseded load %s (current %s)", ctx.generation, self._generation)
            return None
        return result

    # ------------------ Fetch Methods ------------------
    def fetch_issues(
        self,
        ctx: LoadContext,
        *,
        progress: ProgressCallback | None = None,
        **filters: Any,
    ) -> list[IssueModel]:
        if progress:
            progress("Querying issues", None, None)
        try:
            raw = self.api.fetch_all_issues(
                limit=self.settings.page_limit, max_pages=self.settings.max_pages, **filters
            )
        except RedmineError as exc:
            logger.warning("Issue list fetch failed for %s: %s", filters, exc)
            return []
        items = _dedupe(map_issue(r) for r in raw)
        logger.debug("Load %s fetched %s issues for %s", ctx.generation, len(items), filters)
        return items

    def _fetch_detail(self, issue_id: int) -> IssueModel:
        return map_issue(self.api.fetch_issue_raw(issue_id))

    def fetch_issue(self, ctx: LoadContext, issue_id: int) -> IssueModel | None:
        try:
            return ctx.cache.get_or_fetch(issue_id, self._fetch_detail)
        except RedmineError as exc:
            logger.warning("Issue %s fetch failed: %s", issue_id, exc)
            return None

    def fetch_projects(self, ctx: LoadContext) -> list[ProjectRef]:
        try:
            raw = self.api.fetch_all_projects()
        except RedmineError as exc:
            logger.warning("Project list fetch failed: %s", exc)
            return []
        projects = [p for p in (map_project(r) for r in raw) if p is not None]
        return sorted(projects, key=lambda p: p.id)

    def fetch_current_user(self) -> dict[str, Any]:
        try:
            return self.api.fetch_current_user()
        except RedmineError as exc:
            logger.warning("Current user lookup failed: %s", exc)
            return {}

    # ------------------ Hierarchy ------------------
    def build_hierarchy(self, ctx: LoadContext, items: Iterable[IssueModel]) -> HierarchyResult:
        return build_hierarchy(items, self._fetch_detail, ctx.cache)

    def load_plan(
        self,
        ctx: LoadContext,
        *,
        assigned_to_id: int | str = "me",
        progress: ProgressCallback | None = None,
    ) -> HierarchyResult:
        """Main -> child -> sub tree of the issues assigned to one user."""
        items = self.fetch_issues(ctx, assigned_to_id=assigned_to_id, progress=progress)
        if progress:
            progress("Rebuilding plan hierarchy", None, None)
        return self.build_hierarchy(ctx, items)

    # ------------------ Fan-out ------------------
    def _fan_out(
        self,
        tasks: list[tuple[Hashable, Callable[[], T]]],
        *,
        label: str,
        progress: ProgressCallback | None = None,
    ) -> dict[Hashable, T]:
        """Run independent fetch tasks, returning results keyed by task key.

        Failed tasks are logged and left out of the result.
        """
        results: dict[Hashable, T] = {}
        if not tasks:
            return results
        total = len(tasks)
        if progress:
            progress(label, 0, total)

        # Sequential short-circuit
        if total < FETCH_MIN_PARALLEL or self.max_workers <= 1:
            for idx, (key, task) in enumerate(tasks, start=1):
                try:
                    results[key] = task()
                except Exception as exc:
                    logger.warning("%s task %s failed: %s", label, key, exc)
                if progress:
                    progress(label, idx, total)
            return results

        completed = 0
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {pool.submit(task): key for key, task in tasks}
            for fut in as_completed(futures):
                key = futures[fut]
                try:
                    results[key] = fut.result()
                except Exception as exc:
                    logger.warning("%s task %s failed: %s", label, key, exc)
                finally:
                    completed += 1
                    if progress:
                        progress(label, completed, total)
        return results

    # ------------------ Departments / Goals ------------------
    def load_departments(
        self,
        ctx: LoadContext,
        *,
        department_ids: Iterable[int] | None = None,
        progress: ProgressCallback | None = None,
    ) -> list[DepartmentData]:
        """Top-level projects (departments) with their subprojects (goals) and issues.

        Issue lists for every department and goal are fetched concurrently;
        the merge is ordered by project id.
        """
        projects = self.fetch_projects(ctx)
        wanted = set(department_ids) if department_ids is not None else None
        departments = [
            p for p in projects if p.parent_id is None and (wanted is None or p.id in wanted)
        ]
        goals_by_parent: dict[int, list[ProjectRef]] = {}
        for p in projects:
            if p.parent_id is not None:
                goals_by_parent.setdefault(p.parent_id, []).append(p)

        project_ids = [d.id for d in departments]
        for d in departments:
            project_ids.extend(g.id for g in goals_by_parent.get(d.id, []))
        tasks = [
            (pid, lambda pid=pid: self.fetch_issues(ctx, project_id=pid))
            for pid in project_ids
        ]
        issues_by_project = self._fan_out(tasks, label="Loading project issues", progress=progress)

        out: list[DepartmentData] = []
        for dep in departments:
            goals = [
                GoalData(project=g, items=issues_by_project.get(g.id, []))
                for g in sorted(goals_by_parent.get(dep.id, []), key=lambda g: g.id)
            ]
            out.append(
                DepartmentData(project=dep, goals=goals, direct_items=issues_by_project.get(dep.id, []))
            )
        return out

    def load_department_goals(
        self,
        ctx: LoadContext,
        period: PeriodTag | str,
        *,
        department_ids: Iterable[int] | None = None,
        progress: ProgressCallback | None = None,
    ) -> list[DepartmentSummary]:
        tag = PeriodTag.parse(period)
        departments = self.load_departments(ctx, department_ids=department_ids, progress=progress)
        return [summarize_department(d, tag) for d in departments]

    # ------------------ Teams / Members ------------------
    def _group_detail(self, ctx: LoadContext, group_id: int) -> dict[str, Any]:
        cached = ctx.groups.get(group_id)
        if cached is not None:
            return cached
        try:
            detail = self.api.fetch_group(group_id)
        except RedmineError as exc:
            logger.warning("Group %s lookup failed: %s", group_id, exc)
            detail = {"id": group_id, "name": f"Group {group_id}", "users": []}
        ctx.groups[group_id] = detail
        return detail

    def find_group_members(self, ctx: LoadContext, group_name: str) -> list[UserRef]:
        """Members of the group whose normalized name matches ``group_name``."""
        try:
            groups = self.api.fetch_groups()
        except RedmineError as exc:
            logger.warning("Group list fetch failed: %s", exc)
            return []
        search = normalize_group_name(group_name).lower()
        members: dict[int, UserRef] = {}
        for raw in groups:
            if raw.get("id") is None or normalize_group_name(raw.get("name")).lower() != search:
                continue
            detail = self._group_detail(ctx, int(raw["id"]))
            for user in detail.get("users") or []:
                ref = map_user(user)
                if ref is not None:
                    members.setdefault(ref.id, ref)
        return sorted(members.values(), key=lambda u: u.id)

    def load_teams(
        self,
        ctx: LoadContext,
        team_names: Iterable[str],
        *,
        progress: ProgressCallback | None = None,
    ) -> list[TeamData]:
        """Team members and the non-root issues each member watches."""
        teams = [TeamData(name=name) for name in team_names]
        for team in teams:
            team.members = [MemberData(user=u) for u in self.find_group_members(ctx, team.name)]

        user_ids = sorted({m.user.id for t in teams for m in t.members})
        tasks = [(uid, lambda uid=uid: self.fetch_issues(ctx, watcher_id=uid)) for uid in user_ids]
        watched = self._fan_out(tasks, label="Loading watched issues", progress=progress)
        for team in teams:
            for member in team.members:
                member.items = [i for i in watched.get(member.user.id, []) if i.parent_id is not None]
        return teams

    def load_team_performance(
        self,
        ctx: LoadContext,
        team_names: Iterable[str],
        period: PeriodTag | str,
        *,
        progress: ProgressCallback | None = None,
    ) -> list[TeamSummary]:
        tag = PeriodTag.parse(period)
        return [summarize_team(t, tag) for t in self.load_teams(ctx, team_names, progress=progress)]

    def load_membership(self, ctx: LoadContext, project_ids: Iterable[int]) -> MembershipIndex:
        """Group membership across the given projects, for group-assignment checks."""
        group_ids: set[int] = set()
        for pid in sorted(set(project_ids)):
            try:
                memberships = self.api.fetch_project_memberships(pid)
            except RedmineError as exc:
                logger.warning("Memberships for project %s failed: %s", pid, exc)
                continue
            group_ids.update(group_ids_from_memberships(memberships))
        return MembershipIndex.from_groups(self._group_detail(ctx, gid) for gid in sorted(group_ids))

    # ------------------ Writes ------------------
    def update_issue(self, issue_id: int, changes: dict[str, Any]) -> UpdateResult:
        try:
            self.api.update_issue(issue_id, changes)
        except RedmineError as exc:
            logger.warning("Update of issue %s failed: %s", issue_id, exc)
            return UpdateResult(success=False, message=str(exc))
        return UpdateResult(success=True, done_ratio=changes.get("done_ratio"))

    def create_sub_issue(
        self,
        ctx: LoadContext,
        parent_id: int,
        subject: str,
        *,
        field_values: dict[FieldTag | str, Any] | None = None,
        assigned_to_id: int | None = None,
        **extra: Any,
    ) -> IssueModel | None:
        """Create an issue under ``parent_id`` inheriting its project and tracker.

        ``field_values`` keys are field tags or literal field names; ids are
        resolved from the parent's custom fields.
        """
        parent = self.fetch_issue(ctx, parent_id)
        if parent is None or parent.project is None:
            logger.warning("Cannot create sub-issue: parent %s unavailable", parent_id)
            return None
        ids_by_name = {f.name: f.id for f in parent.custom_fields if f.id is not None}
        custom_fields = []
        for key, value in (field_values or {}).items():
            name = field_name(key) if isinstance(key, FieldTag) else str(key)
            fid = ids_by_name.get(name)
            if fid is None:
                logger.warning("Parent %s has no custom field %r; value skipped", parent_id, name)
                continue
            custom_fields.append({"id": fid, "value": value})
        payload: dict[str, Any] = {
            "project_id": parent.project.id,
            "parent_issue_id": parent_id,
            "subject": subject,
            **extra,
        }
        if parent.tracker_id is not None:
            payload.setdefault("tracker_id", parent.tracker_id)
        if assigned_to_id is not None:
            payload["assigned_to_id"] = assigned_to_id
        if custom_fields:
            payload["custom_fields"] = custom_fields
        try:
            created = self.api.create_issue(payload)
        except RedmineError as exc:
            logger.warning("Create under parent %s failed: %s", parent_id, exc)
            return None
        item = map_issue(created)
        ctx.cache.put(item)
        return item

    def record_quarter_progress(
        self,
        ctx: LoadContext,
        issue_id: int,
        period: PeriodTag | str,
        quarter_value: float,
        *,
        today: date | None = None,
    ) -> UpdateResult:
        """Set an issue's done ratio from a quarter's achieved quantity.

        Only allowed while the quarter's calendar window is open and the issue
        plans something for that quarter.
        """
        tag = PeriodTag.parse(period)
        if not tag.is_quarter:
            return UpdateResult(success=False, message=f"{tag.value} is not a quarter")
        if not is_period_active(tag, today):
            return UpdateResult(success=False, message=f"{tag.value} is not active")
        issue = self.fetch_issue(ctx, issue_id)
        if issue is None:
            return UpdateResult(success=False, message=f"Issue {issue_id} unavailable")
        quarter_field = field_name(FieldTag(tag.value.lower()))
        if not field_has_value(issue, quarter_field):
            return UpdateResult(success=False, message=f"Issue {issue_id} plans nothing for {tag.value}")
        annual = get_field_number(issue, field_name(FieldTag.YEARLY_PLAN), DIGIT_STRIPPED)
        done = quarter_done_ratio(quarter_value, annual)
        result = self.update_issue(issue_id, {"done_ratio": done})
        if result.success:
            issue.done_ratio = done
        return result
