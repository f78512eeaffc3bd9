"""Redmine REST API client wrapper (JSON endpoints + offset pagination)."""

from __future__ import annotations

import logging
from typing import Any

import requests

from .config import INCLUDE_DETAIL, INCLUDE_LIST, MAX_PAGES, PAGE_LIMIT, REQUEST_TIMEOUT, RedmineSettings

logger = logging.getLogger(__name__)


class RedmineError(RuntimeError):
    """Transport, authentication or HTTP failure talking to Redmine."""


class PaginationInvariantViolation(RedmineError):
    """Server-reported total is inconsistent with the pages actually returned."""

    def __init__(self, endpoint: str, fetched: int, total: int, pages: int):
        self.endpoint = endpoint
        self.fetched = fetched
        self.total = total
        self.pages = pages
        super().__init__(
            f"Pagination for {endpoint} stopped after {pages} pages: "
            f"fetched {fetched} of reported total {total}"
        )


class RedmineAPI:
    def __init__(self, server: str, api_key: str, *, timeout: float = REQUEST_TIMEOUT):
        self.server = server.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {
                "X-Redmine-API-Key": api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

    @classmethod
    def from_settings(cls, settings: RedmineSettings | None = None) -> RedmineAPI:
        settings = settings or RedmineSettings.from_env()
        return cls(settings.server, settings.api_key, timeout=settings.timeout)

    # ------------------ Transport ------------------
    def _request(self, method: str, path: str, *, params=None, payload=None) -> dict[str, Any]:
        url = f"{self.server}{path}"
        try:
            resp = self.session.request(method, url, params=params, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise RedmineError(f"{method} {path} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise RedmineError(f"{method} {path} failed {resp.status_code}: {resp.text[:200]}")
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            raise RedmineError(f"{method} {path} returned non-JSON body") from exc

    def _get(self, path: str, params=None) -> dict[str, Any]:
        return self._request("GET", path, params=params)

    # ------------------ Pagination ------------------
    def fetch_paginated(
        self,
        path: str,
        collection: str,
        params: dict[str, Any] | None = None,
        *,
        limit: int = PAGE_LIMIT,
        max_pages: int = MAX_PAGES,
    ) -> list[dict[str, Any]]:
        """Concatenate every page of ``collection`` until ``total_count`` is reached.

        Raises ``PaginationInvariantViolation`` when the page budget runs out or
        the server returns an empty page before the reported total.
        """
        out: list[dict[str, Any]] = []
        offset = 0
        pages = 0
        total = 0
        while True:
            if pages >= max_pages:
                raise PaginationInvariantViolation(path, len(out), total, pages)
            qp = dict(params or {})
            qp.update({"limit": limit, "offset": offset})
            data = self._get(path, qp)
            pages += 1
            batch = data.get(collection) or []
            total = int(data.get("total_count") or 0)
            out.extend(batch)
            if len(out) >= total:
                break
            if not batch:
                raise PaginationInvariantViolation(path, len(out), total, pages)
            offset += limit
        logger.debug("Fetched %s %s in %s pages", len(out), collection, pages)
        return out

    # ------------------ Issues ------------------
    def fetch_all_issues(
        self,
        *,
        project_id: int | None = None,
        parent_id: int | None = None,
        assigned_to_id: int | str | None = None,
        watcher_id: int | str | None = None,
        author_id: int | str | None = None,
        limit: int = PAGE_LIMIT,
        max_pages: int = MAX_PAGES,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"status_id": "*", "include": INCLUDE_LIST}
        for key, value in (
            ("project_id", project_id),
            ("parent_id", parent_id),
            ("assigned_to_id", assigned_to_id),
            ("watcher_id", watcher_id),
            ("author_id", author_id),
        ):
            if value is not None:
                params[key] = value
        return self.fetch_paginated("/issues.json", "issues", params, limit=limit, max_pages=max_pages)

    def fetch_issue_raw(self, issue_id: int) -> dict[str, Any]:
        data = self._get(f"/issues/{issue_id}.json", {"include": INCLUDE_DETAIL})
        issue = data.get("issue")
        if not isinstance(issue, dict):
            raise RedmineError(f"Unexpected issue payload for {issue_id}: {type(issue)!r}")
        return issue

    def update_issue(self, issue_id: int, changes: dict[str, Any]) -> None:
        self._request("PUT", f"/issues/{issue_id}.json", payload={"issue": changes})

    def create_issue(self, fields: dict[str, Any]) -> dict[str, Any]:
        data = self._request("POST", "/issues.json", payload={"issue": fields})
        issue = data.get("issue")
        if not isinstance(issue, dict):
            raise RedmineError("Create issue returned no issue payload")
        return issue

    # ------------------ Projects / Users / Groups ------------------
    def fetch_all_projects(self, *, max_pages: int = MAX_PAGES) -> list[dict[str, Any]]:
        return self.fetch_paginated("/projects.json", "projects", max_pages=max_pages)

    def fetch_current_user(self) -> dict[str, Any]:
        return self._get("/users/current.json").get("user") or {}

    def fetch_groups(self) -> list[dict[str, Any]]:
        return self._get("/groups.json").get("groups") or []

    def fetch_group(self, group_id: int) -> dict[str, Any]:
        return self._get(f"/groups/{group_id}.json", {"include": "users"}).get("group") or {}

    def fetch_project_memberships(self, project_id: int) -> list[dict[str, Any]]:
        return self.fetch_paginated(f"/projects/{project_id}/memberships.json", "memberships")
