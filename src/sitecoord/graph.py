"""Dependency graph construction over a flat task collection.

Tasks refer to each other by id only; everything here returns plain
id -> id mappings or a networkx graph keyed by id, never object links.
Cycles are tolerated and not reported.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Mapping, Sequence

import networkx as nx

from sitecoord.exceptions import InvalidInputError
from sitecoord.models import Task


def build_dependents(tasks: Sequence[Task] | None) -> dict[str, list[str]]:
    """Map each task id to the ids of the tasks that declare it as a dependency.

    Dependency ids that are not in the collection are ignored.
    """
    if tasks is None:
        raise InvalidInputError("a task collection is required")

    dependents: dict[str, list[str]] = {t.id: [] for t in tasks}
    for task in tasks:
        for dep in task.depends_on:
            if dep in dependents and dep != task.id:
                dependents[dep].append(task.id)
    return dependents


def build_dependency_graph(tasks: Sequence[Task] | None) -> nx.DiGraph:
    """Construct the graph with an edge dependency -> dependent."""
    if tasks is None:
        raise InvalidInputError("a task collection is required")

    G = nx.DiGraph()
    for task in tasks:
        G.add_node(task.id, task=task)
    for task in tasks:
        for dep in task.depends_on:
            if dep in G and dep != task.id:
                G.add_edge(dep, task.id)
    return G


def impacted_by(dependents: Mapping[str, Sequence[str]], task_id: str) -> list[str]:
    """Every task that transitively waits on *task_id* ("what breaks if it slips").

    Breadth-first, so nearer tasks come first. Safe on cyclic input.
    """
    seen = {task_id}
    order: list[str] = []
    queue = deque(dependents.get(task_id, ()))
    while queue:
        tid = queue.popleft()
        if tid in seen:
            continue
        seen.add(tid)
        order.append(tid)
        queue.extend(dependents.get(tid, ()))
    return order
