"""Per-load issue cache keyed by issue id."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .models import IssueModel

logger = logging.getLogger(__name__)

FetchFn = Callable[[int], IssueModel]


class IssueCache:
    """Dedup store for fully-fetched issues within one load.

    Concurrent ``get_or_fetch`` calls for the same uncached id are not
    coalesced; both fetch and the later result overwrites the earlier one.
    Create one per load and drop it when the load finishes.
    """

    def __init__(self):
        self._items: dict[int, IssueModel] = {}
        self.fetch_count = 0

    def get_or_fetch(self, issue_id: int, fetch_fn: FetchFn) -> IssueModel:
        cached = self._items.get(issue_id)
        if cached is not None:
            return cached
        self.fetch_count += 1
        item = fetch_fn(issue_id)
        self._items[issue_id] = item
        logger.debug("Cached issue %s (%s fetches this load)", issue_id, self.fetch_count)
        return item

    def peek(self, issue_id: int) -> IssueModel | None:
        return self._items.get(issue_id)

    def put(self, item: IssueModel) -> None:
        self._items[item.id] = item

    def clear(self) -> None:
        self._items.clear()
        self.fetch_count = 0

    def __contains__(self, issue_id: object) -> bool:
        return issue_id in self._items

    def __len__(self) -> int:
        return len(self._items)
