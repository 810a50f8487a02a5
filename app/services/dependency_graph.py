"""
Dependency graph engine for checklist items.

Pure functions over "nodes": anything exposing an id and a
``dependencies_requires`` list of ids (edges point from a dependency to its
dependent). No database or Flask imports, so callers rebuild the graph from
the rows they just read on every call.

    - topological_order:          stable Kahn sort, tolerant of unknown ids, reports cycles
    - is_available:               are all present dependencies complete?
    - grouped_order:              sort per (group, status bucket) partition for display
    - compare_workflows_by_items: workflow ordering by checklist progress
    - find_cycle_dependency:      would new edges close a cycle?
"""

from collections import deque
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Callable, Iterable

# Status buckets for grouped display, in output order
BUCKET_DONE = "done"
BUCKET_AVAILABLE = "available"
BUCKET_BLOCKED = "blocked"
BUCKET_ORDER = (BUCKET_DONE, BUCKET_AVAILABLE, BUCKET_BLOCKED)

_DONE_STATUSES = frozenset({"complete", "not_required"})


def _attr(item, name):
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def node_id(item) -> str:
    return str(_attr(item, "id"))


def node_dependencies(item) -> list[str]:
    return [str(d) for d in (_attr(item, "dependencies_requires") or [])]


def node_status(item) -> str | None:
    return _attr(item, "status")


@dataclass
class TopologicalResult:
    """Sorted nodes plus the ids that could not be placed (cycle members)."""

    ordered: list = field(default_factory=list)
    excluded_ids: list[str] = field(default_factory=list)

    @property
    def has_cycles(self) -> bool:
        return bool(self.excluded_ids)


def topological_order(
    items: Iterable,
    *,
    key: Callable = node_id,
    deps: Callable = node_dependencies,
) -> TopologicalResult:
    """
    Order *items* so every node comes after the dependencies present in the set.

    - A dependency id that is not in *items* is ignored (the node is treated
      as not having that dependency).
    - Ties keep input order: the FIFO queue is seeded in input order and
      dependents are released in the order their edges were recorded.
    - Nodes on a cycle (and anything downstream of one) never reach zero
      in-degree; they are left out of ``ordered`` and listed in
      ``excluded_ids`` in input order.
    """
    items = list(items)
    if not items:
        return TopologicalResult()

    by_id: dict = {}
    for item in items:
        by_id.setdefault(key(item), item)

    dependents: dict[str, list[str]] = {nid: [] for nid in by_id}
    in_degree: dict[str, int] = {nid: 0 for nid in by_id}

    for nid, item in by_id.items():
        seen = set()
        for dep_id in deps(item):
            if dep_id in seen or dep_id not in dependents:
                continue
            seen.add(dep_id)
            dependents[dep_id].append(nid)
            in_degree[nid] += 1

    queue = deque(nid for nid, count in in_degree.items() if count == 0)
    ordered_ids = []
    while queue:
        nid = queue.popleft()
        ordered_ids.append(nid)
        for dependent in dependents[nid]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    placed = set(ordered_ids)
    return TopologicalResult(
        ordered=[by_id[nid] for nid in ordered_ids],
        excluded_ids=[nid for nid in by_id if nid not in placed],
    )


def is_available(
    item,
    status_by_id: dict[str, str],
    *,
    deps: Callable = node_dependencies,
) -> bool:
    """True when every dependency found in *status_by_id* is ``complete``."""
    return all(
        status_by_id[dep_id] == "complete"
        for dep_id in deps(item)
        if dep_id in status_by_id
    )


def status_bucket(item, status_by_id: dict[str, str], *, deps: Callable = node_dependencies) -> str:
    if node_status(item) in _DONE_STATUSES:
        return BUCKET_DONE
    if is_available(item, status_by_id, deps=deps):
        return BUCKET_AVAILABLE
    return BUCKET_BLOCKED


def grouped_order(
    items: Iterable,
    group_key: Callable,
    *,
    key: Callable = node_id,
    deps: Callable = node_dependencies,
) -> TopologicalResult:
    """
    Display ordering: partition by ``group_key(item)`` and by status bucket,
    sort each partition topologically, then concatenate.

    Groups are emitted alphabetically by key; inside a group the buckets run
    done → available → blocked. Dependency edges that cross partitions are
    ignored inside a partition, which is safe because an item is only
    "available" once its dependencies are complete.
    """
    items = list(items)
    status_by_id = {key(item): node_status(item) for item in items}

    partitions: dict[tuple[str, str], list] = {}
    for item in items:
        group = group_key(item)
        group = "" if group is None else str(group)
        bucket = status_bucket(item, status_by_id, deps=deps)
        partitions.setdefault((group, bucket), []).append(item)

    result = TopologicalResult()
    for group in sorted({g for g, _ in partitions}):
        for bucket in BUCKET_ORDER:
            members = partitions.get((group, bucket))
            if not members:
                continue
            part = topological_order(members, key=key, deps=deps)
            result.ordered.extend(part.ordered)
            result.excluded_ids.extend(part.excluded_ids)
    return result


def compare_workflows_by_items(items_a: list, items_b: list) -> int:
    """
    cmp-style comparison of two workflows by their checklist items.

    Workflows without items sort last; otherwise more completed items first,
    then more items in total first.
    """
    if not items_a and not items_b:
        return 0
    if not items_a:
        return 1
    if not items_b:
        return -1

    completed_a = sum(1 for i in items_a if node_status(i) == "complete")
    completed_b = sum(1 for i in items_b if node_status(i) == "complete")
    if completed_a != completed_b:
        return completed_b - completed_a
    return len(items_b) - len(items_a)


def sort_workflows_by_progress(workflows: list, items_by_workflow: dict[str, list]) -> list:
    """Stable sort of workflows using ``compare_workflows_by_items``."""
    return sorted(
        workflows,
        key=cmp_to_key(
            lambda a, b: compare_workflows_by_items(
                items_by_workflow.get(node_id(a), []),
                items_by_workflow.get(node_id(b), []),
            )
        ),
    )


def find_cycle_dependency(
    target_id: str,
    new_dependencies: Iterable[str],
    edges_by_id: dict[str, list[str]],
) -> str | None:
    """
    Check that giving *target_id* the dependencies *new_dependencies* does
    not create a cycle.

    Uses iterative DFS from each new dependency, walking its existing
    ``dependencies_requires`` chains. Returns the first dependency id from
    which *target_id* is reachable, or None when the edge set is acyclic.
    """
    for start in new_dependencies:
        if start == target_id:
            return start
        visited = set()
        stack = [start]
        while stack:
            current = stack.pop()
            if current == target_id:
                return start
            if current in visited:
                continue
            visited.add(current)
            stack.extend(edges_by_id.get(current, ()))
    return None
