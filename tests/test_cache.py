import pytest

from redmine_app.core.cache import IssueCache
from redmine_app.core.models import IssueModel
from redmine_app.core.redmine_client import RedmineError


def test_same_id_fetched_once():
    calls = []

    def fetch(issue_id):
        calls.append(issue_id)
        return IssueModel(id=issue_id)

    cache = IssueCache()
    first = cache.get_or_fetch(4, fetch)
    second = cache.get_or_fetch(4, fetch)
    assert first is second
    assert calls == [4]
    assert cache.fetch_count == 1
    assert 4 in cache
    assert len(cache) == 1


def test_failed_fetch_not_stored():
    def fetch(issue_id):
        raise RedmineError("down")

    cache = IssueCache()
    with pytest.raises(RedmineError):
        cache.get_or_fetch(9, fetch)
    assert cache.peek(9) is None
    assert 9 not in cache


def test_put_and_clear():
    cache = IssueCache()
    cache.put(IssueModel(id=3))
    assert cache.get_or_fetch(3, lambda i: IssueModel(id=-1)).id == 3
    assert cache.fetch_count == 0
    cache.clear()
    assert len(cache) == 0
