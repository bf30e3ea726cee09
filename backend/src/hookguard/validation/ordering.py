"""Dependency ordering for rules and calculations.

Kahn's algorithm with a priority heap: among nodes whose dependencies have
all been emitted, the one with the lowest priority runs first, ties broken
by registration order. Shared by the rule registry and the calculation
service.
"""

import heapq
from collections.abc import Callable, Collection, Sequence
from typing import TypeVar

from hookguard.exceptions import RuleDependencyError

T = TypeVar("T")


def check_references(
    nodes: Sequence[T],
    id_of: Callable[[T], str],
    deps_of: Callable[[T], Collection[str]],
    content_category: str | None = None,
) -> None:
    """Raise RuleDependencyError if any node depends on an unknown id."""
    known = {id_of(n) for n in nodes}
    for node in nodes:
        missing = sorted(set(deps_of(node)) - known)
        if missing:
            raise RuleDependencyError(
                f"'{id_of(node)}' depends on unknown id(s): {', '.join(missing)}",
                content_category=content_category,
            )


def find_cycle(
    nodes: Sequence[T],
    id_of: Callable[[T], str],
    deps_of: Callable[[T], Collection[str]],
) -> list[str] | None:
    """Return one dependency cycle as a list of ids, or None if acyclic."""
    graph = {id_of(n): sorted(deps_of(n)) for n in nodes}
    visiting: set[str] = set()
    done: set[str] = set()
    path: list[str] = []

    def visit(node_id: str) -> list[str] | None:
        if node_id in done or node_id not in graph:
            return None
        if node_id in visiting:
            return path[path.index(node_id):] + [node_id]
        visiting.add(node_id)
        path.append(node_id)
        for dep in graph[node_id]:
            cycle = visit(dep)
            if cycle:
                return cycle
        path.pop()
        visiting.discard(node_id)
        done.add(node_id)
        return None

    for node_id in graph:
        cycle = visit(node_id)
        if cycle:
            return cycle
    return None


def check_graph(
    nodes: Sequence[T],
    id_of: Callable[[T], str],
    deps_of: Callable[[T], Collection[str]],
    content_category: str | None = None,
) -> None:
    """Validate a dependency graph: every reference known, no cycles.

    Raises:
        RuleDependencyError: On an unknown id or a cycle
    """
    check_references(nodes, id_of, deps_of, content_category)
    cycle = find_cycle(nodes, id_of, deps_of)
    if cycle:
        raise RuleDependencyError(
            f"Circular dependency detected: {' -> '.join(cycle)}",
            content_category=content_category,
            cycle=cycle,
        )


def dependency_order(
    nodes: Sequence[T],
    id_of: Callable[[T], str],
    deps_of: Callable[[T], Collection[str]],
    priority_of: Callable[[T], int],
    content_category: str | None = None,
) -> list[T]:
    """Order nodes so every node follows its dependencies.

    Dependencies on ids not present in `nodes` are ignored (e.g., disabled
    rules); reference checking is the job of check_graph.

    Args:
        nodes: Nodes in registration order
        id_of: Node id accessor
        deps_of: Dependency ids accessor
        priority_of: Lower priority runs first among ready nodes

    Raises:
        RuleDependencyError: If the graph is cyclic
    """
    index = {id_of(n): i for i, n in enumerate(nodes)}
    pending: dict[str, int] = {}
    dependents: dict[str, list[str]] = {node_id: [] for node_id in index}

    for node in nodes:
        node_id = id_of(node)
        deps = [d for d in deps_of(node) if d in index]
        pending[node_id] = len(deps)
        for dep in deps:
            dependents[dep].append(node_id)

    ready = [(priority_of(nodes[i]), i) for node_id, i in index.items() if pending[node_id] == 0]
    heapq.heapify(ready)

    ordered: list[T] = []
    while ready:
        _, i = heapq.heappop(ready)
        node = nodes[i]
        ordered.append(node)
        for dependent in dependents[id_of(node)]:
            pending[dependent] -= 1
            if pending[dependent] == 0:
                j = index[dependent]
                heapq.heappush(ready, (priority_of(nodes[j]), j))

    if len(ordered) != len(nodes):
        remaining = [n for n in nodes if pending[id_of(n)] > 0]
        cycle = find_cycle(remaining, id_of, lambda n: [d for d in deps_of(n) if d in index])
        raise RuleDependencyError(
            f"Circular dependency detected: {' -> '.join(cycle or [id_of(n) for n in remaining])}",
            content_category=content_category,
            cycle=cycle or [],
        )
    return ordered
