"""Three-tier hierarchy reconstruction (main -> child -> sub) from parent pointers.

Only ``id`` and ``parent_id`` are used. The input is a flat, possibly partial
and unordered item list; the tree is rebuilt from an id index in one pass so
the same input set always yields the same tree.

Tier rules:

- CHILD: an item with a parent that another fetched item points to, or whose
  parent lies outside the fetched set (its parent becomes the MAIN node).
- SUB: an item whose parent is a CHILD attached to a MAIN node.
- MAIN: the parent of a CHILD, always fetched in full through the per-load
  cache; an in-set list item stands in only when that fetch fails.
- EXCLUDED: everything else (unreferenced roots, pointer cycles, levels below
  SUB, items whose parent could not be fetched).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from redmine_app.core.cache import IssueCache
from redmine_app.core.models import ChildNode, HierarchyResult, IssueModel, MainNode, Tier

logger = logging.getLogger(__name__)

FetchFn = Callable[[int], IssueModel]


@dataclass(slots=True)
class _Plan:
    index: dict[int, IssueModel]
    children_by_parent: dict[int, list[IssueModel]] = field(default_factory=dict)
    subs_by_parent: dict[int, list[IssueModel]] = field(default_factory=dict)
    # CHILD items whose parent is outside the fetched set
    reconciled: set[int] = field(default_factory=set)
    main_ids: list[int] = field(default_factory=list)


def _dedupe(items: Iterable[IssueModel]) -> dict[int, IssueModel]:
    index: dict[int, IssueModel] = {}
    for item in items:
        index.setdefault(item.id, item)
    return index


def _plan(items: Iterable[IssueModel]) -> _Plan:
    index = _dedupe(items)
    with_parent = [i for i in index.values() if i.parent_id is not None]
    with_parent_ids = {i.id for i in with_parent}
    referenced = {i.parent_id for i in with_parent if i.parent_id != i.id}
    child_ids = {i.id for i in with_parent if i.id in referenced}

    children: defaultdict[int, list[IssueModel]] = defaultdict(list)
    subs: defaultdict[int, list[IssueModel]] = defaultdict(list)
    reconciled: set[int] = set()
    for item in with_parent:
        if item.parent_id == item.id:
            continue
        if item.id in child_ids:
            children[item.parent_id].append(item)
        elif item.parent_id in with_parent_ids:
            subs[item.parent_id].append(item)
        else:
            children[item.parent_id].append(item)
            reconciled.add(item.id)
        # A CHILD pointing at another CHILD is that child's SUB
        if item.id in child_ids and item.parent_id in with_parent_ids:
            subs[item.parent_id].append(item)

    main_ids = sorted(pid for pid in children if pid not in with_parent_ids)
    for bucket in (children, subs):
        for lst in bucket.values():
            lst.sort(key=lambda i: i.id)
    return _Plan(
        index=index,
        children_by_parent=dict(children),
        subs_by_parent=dict(subs),
        reconciled=reconciled,
        main_ids=main_ids,
    )


def classify_tiers(items: Iterable[IssueModel]) -> dict[int, Tier]:
    """Pointer-only tier of every input item, assuming every MAIN parent is reachable."""
    plan = _plan(items)
    tiers = {item_id: Tier.EXCLUDED for item_id in plan.index}
    for main_id in plan.main_ids:
        if main_id in tiers:
            tiers[main_id] = Tier.MAIN
        for child in plan.children_by_parent.get(main_id, []):
            tiers[child.id] = Tier.CHILD
            for sub in plan.subs_by_parent.get(child.id, []):
                tiers[sub.id] = Tier.SUB
    return tiers


def _unfetchable(issue_id: int) -> IssueModel:
    raise LookupError(f"issue {issue_id} is not in the fetched set")


def build_hierarchy(
    items: Iterable[IssueModel],
    fetch_fn: FetchFn | None = None,
    cache: IssueCache | None = None,
) -> HierarchyResult:
    """Classify ``items`` into MAIN/CHILD/SUB nodes.

    Parameters
    ----------
    items : Iterable[IssueModel]
        Flat item set, in any order.
    fetch_fn : callable, optional
        ``fetch_fn(id) -> IssueModel`` for the full detail of every MAIN
        parent and of reconciled children. Must raise on failure. Without it,
        in-set parents are used as listed and out-of-set parents are
        treated as unreachable.
    cache : IssueCache, optional
        Per-load dedup cache; a private one is used when omitted.

    Returns
    -------
    HierarchyResult
        MAIN nodes sorted by id, the tier of every input item, and the ids
        dropped because their parent could not be fetched.
    """
    plan = _plan(items)
    cache = cache if cache is not None else IssueCache()
    fetch = fetch_fn or _unfetchable
    result = HierarchyResult(tiers={item_id: Tier.EXCLUDED for item_id in plan.index})

    for main_id in plan.main_ids:
        child_items = plan.children_by_parent.get(main_id, [])
        main = plan.index.get(main_id)
        if main is None or fetch_fn is not None:
            try:
                main = cache.get_or_fetch(main_id, fetch)
            except Exception as exc:
                if main is not None:
                    logger.warning("Using list payload for main issue %s, detail fetch failed: %s", main_id, exc)
                else:
                    dropped = [c.id for c in child_items]
                    for child in child_items:
                        dropped.extend(s.id for s in plan.subs_by_parent.get(child.id, []))
                    result.dropped.extend(dropped)
                    logger.warning(
                        "Dropping %s items under unreachable parent %s: %s", len(dropped), main_id, exc
                    )
                    continue

        if main_id in result.tiers:
            result.tiers[main_id] = Tier.MAIN
        node = MainNode(main=main)
        for child in child_items:
            if child.id in plan.reconciled and fetch_fn is not None:
                try:
                    child = cache.get_or_fetch(child.id, fetch)
                except Exception as exc:
                    logger.warning("Using list payload for issue %s, detail fetch failed: %s", child.id, exc)
            result.tiers[child.id] = Tier.CHILD
            subs = plan.subs_by_parent.get(child.id, [])
            for sub in subs:
                result.tiers[sub.id] = Tier.SUB
            node.children.append(ChildNode(child=child, subs=list(subs)))
        result.mains.append(node)

    excluded = sum(1 for tier in result.tiers.values() if tier is Tier.EXCLUDED)
    logger.debug(
        "Classified %s items into %s main nodes (%s excluded, %s dropped)",
        len(plan.index),
        len(result.mains),
        excluded,
        len(result.dropped),
    )
    return result


def flatten(result: HierarchyResult, tier: Tier) -> list[IssueModel]:
    """Items of one tier from a built hierarchy, in tree order."""
    out: list[IssueModel] = []
    for node in result.mains:
        if tier is Tier.MAIN:
            out.append(node.main)
            continue
        for child in node.children:
            if tier is Tier.CHILD:
                out.append(child.child)
            elif tier is Tier.SUB:
                out.extend(child.subs)
    return out
