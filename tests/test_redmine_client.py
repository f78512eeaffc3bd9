import pytest
import requests

from redmine_app.core.redmine_client import PaginationInvariantViolation, RedmineAPI, RedmineError


class DummyAPI(RedmineAPI):
    def __init__(self, pages, total):
        self.server = "https://redmine.example.org"
        self.pages = pages
        self.total = total
        self.calls = []

    def _get(self, path, params=None):
        self.calls.append(dict(params or {}))
        idx = len(self.calls) - 1
        batch = self.pages[idx] if idx < len(self.pages) else self.pages[-1]
        return {"issues": batch, "total_count": self.total}


def _batch(start, n):
    return [{"id": i} for i in range(start, start + n)]


def test_pagination_stops_at_total():
    api = DummyAPI([_batch(1, 100), _batch(101, 100), _batch(201, 50)], total=250)
    out = api.fetch_all_issues(project_id=3)
    assert len(out) == 250
    assert [c["offset"] for c in api.calls] == [0, 100, 200]
    assert api.calls[0]["status_id"] == "*"
    assert api.calls[0]["project_id"] == 3
    assert "watcher_id" not in api.calls[0]


def test_single_empty_page():
    api = DummyAPI([[]], total=0)
    assert api.fetch_all_issues() == []
    assert len(api.calls) == 1


def test_lying_total_hits_page_budget():
    api = DummyAPI([_batch(1, 2)], total=1000)
    with pytest.raises(PaginationInvariantViolation) as exc:
        api.fetch_all_issues(limit=2, max_pages=3)
    assert exc.value.pages == 3
    assert exc.value.fetched == 6
    assert exc.value.total == 1000


def test_empty_page_before_total():
    api = DummyAPI([_batch(1, 2), []], total=10)
    with pytest.raises(PaginationInvariantViolation):
        api.fetch_all_issues(limit=2)


class _Resp:
    def __init__(self, status_code, body=b"{}", payload=None):
        self.status_code = status_code
        self.content = body
        self.text = body.decode()
        self._payload = payload if payload is not None else {}

    def json(self):
        return self._payload


def test_transport_errors_wrapped(monkeypatch):
    api = RedmineAPI("https://redmine.example.org/", "key")

    def boom(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(api.session, "request", boom)
    with pytest.raises(RedmineError):
        api.fetch_issue_raw(5)


def test_http_errors_wrapped(monkeypatch):
    api = RedmineAPI("https://redmine.example.org", "key")
    monkeypatch.setattr(api.session, "request", lambda *a, **k: _Resp(404, b"not found"))
    with pytest.raises(RedmineError):
        api.update_issue(5, {"done_ratio": 10})


def test_single_issue_fetch(monkeypatch):
    api = RedmineAPI("https://redmine.example.org", "secret")
    seen = {}

    def fake(method, url, params=None, json=None, timeout=None):
        seen.update(method=method, url=url, params=params)
        return _Resp(200, payload={"issue": {"id": 5, "subject": "x"}})

    monkeypatch.setattr(api.session, "request", fake)
    assert api.fetch_issue_raw(5)["id"] == 5
    assert seen["url"] == "https://redmine.example.org/issues/5.json"
    assert "allowed_statuses" in seen["params"]["include"]
    assert api.session.headers["X-Redmine-API-Key"] == "secret"
