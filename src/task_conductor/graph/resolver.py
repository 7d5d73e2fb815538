"""Dependency resolution over a :class:`TaskGraph`.

Readiness, critical path and execution waves. All functions are pure reads of
the graph; ties are broken by task id so results are reproducible.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from rich.console import Console

from ..errors import CycleError
from .model import EdgeKind, TaskStatus
from .task_graph import TaskGraph

logger = logging.getLogger(__name__)


@dataclass
class CriticalPath:
    """Longest chain of hard dependencies by cumulative effort."""

    task_ids: list[str] = field(default_factory=list)
    total_effort: int = 0


def _coerce_statuses(
    graph: TaskGraph,
    statuses: Optional[Mapping[str, TaskStatus | str]],
) -> dict[str, TaskStatus]:
    if statuses is None:
        return graph.statuses()
    return {tid: TaskStatus(value) for tid, value in statuses.items()}


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------

def ready_set(
    graph: TaskGraph,
    statuses: Optional[Mapping[str, TaskStatus | str]] = None,
) -> list[str]:
    """Return ids of Pending tasks whose every hard dependency is Completed.

    Soft dependencies never gate readiness. *statuses* overrides the statuses
    stored on the tasks; ids missing from it count as not Completed.
    """
    current = _coerce_statuses(graph, statuses)
    ready: list[str] = []
    for task in graph:
        if current.get(task.id) != TaskStatus.PENDING:
            continue
        if all(
            current.get(dep_id) == TaskStatus.COMPLETED
            for dep_id, kind in task.depends_on.items()
            if kind == EdgeKind.HARD
        ):
            ready.append(task.id)
    ready.sort()
    return ready


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

def topological_order(graph: TaskGraph) -> list[str]:
    """Kahn's algorithm over every edge, smallest id first among peers."""
    in_degree = {t.id: len(t.depends_on) for t in graph}
    heap = [tid for tid, deg in in_degree.items() if deg == 0]
    heapq.heapify(heap)
    order: list[str] = []
    while heap:
        tid = heapq.heappop(heap)
        order.append(tid)
        for dependent in graph[tid].blocks:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(heap, dependent)
    if len(order) != len(graph):
        remaining = sorted(tid for tid, deg in in_degree.items() if deg > 0)
        raise CycleError(f"Dependency cycle among tasks: {remaining}", cycle=remaining)
    return order


def waves(graph: TaskGraph) -> list[list[str]]:
    """Partition tasks into ordered groups of mutually independent tasks.

    Repeatedly peels every task whose hard dependencies were peeled in an
    earlier wave. Soft edges do not constrain placement, so a soft dependent
    may share a wave with, or precede, its soft dependency.
    """
    in_degree: dict[str, int] = {}
    for task in graph:
        in_degree[task.id] = sum(1 for kind in task.depends_on.values() if kind == EdgeKind.HARD)

    current = sorted(tid for tid, deg in in_degree.items() if deg == 0)
    result: list[list[str]] = []
    placed = 0
    while current:
        result.append(current)
        placed += len(current)
        nxt: list[str] = []
        for tid in current:
            for dependent in graph.dependents(tid, EdgeKind.HARD):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    nxt.append(dependent)
        current = sorted(nxt)

    if placed != len(graph):
        remaining = sorted(tid for tid, deg in in_degree.items() if deg > 0)
        raise CycleError(f"Dependency cycle among tasks: {remaining}", cycle=remaining)
    logger.debug("Resolved %d wave(s) for %d task(s)", len(result), placed)
    return result


# ---------------------------------------------------------------------------
# Critical path
# ---------------------------------------------------------------------------

def _longest_chain(graph: TaskGraph, include: Callable[[str], bool]) -> CriticalPath:
    dist: dict[str, int] = {}
    pred: dict[str, Optional[str]] = {}
    for tid in topological_order(graph):
        if not include(tid):
            continue
        task = graph[tid]
        best_pred: Optional[str] = None
        best = 0
        for dep_id in sorted(task.depends_on):
            if task.depends_on[dep_id] != EdgeKind.HARD or dep_id not in dist:
                continue
            if dist[dep_id] > best:
                best = dist[dep_id]
                best_pred = dep_id
        dist[tid] = best + task.effort.weight
        pred[tid] = best_pred

    if not dist:
        return CriticalPath()

    end: Optional[str] = None
    for tid in sorted(dist):
        if end is None or dist[tid] > dist[end]:
            end = tid

    chain: list[str] = []
    node: Optional[str] = end
    while node is not None:
        chain.append(node)
        node = pred[node]
    chain.reverse()
    return CriticalPath(task_ids=chain, total_effort=dist[end])


def critical_path(graph: TaskGraph) -> CriticalPath:
    """Longest hard-dependency chain by cumulative effort weight.

    Single topological pass (O(V+E)). Ties go to the smaller task id, both
    when choosing a predecessor and when choosing where the chain ends.
    """
    return _longest_chain(graph, lambda _tid: True)


def remaining_critical_effort(graph: TaskGraph) -> int:
    """Effort of the longest hard chain made only of tasks not yet Completed."""
    return _longest_chain(graph, lambda tid: graph[tid].status != TaskStatus.COMPLETED).total_effort


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def render_waves(graph: TaskGraph, plan: Optional[list[list[str]]] = None) -> str:
    """Render an execution plan as text.

    Args:
        graph: Graph the plan was computed from.
        plan: Waves to render; computed from *graph* when omitted.

    Returns:
        Plain-text rendering of each wave and its tasks.
    """
    plan = plan if plan is not None else waves(graph)
    path = critical_path(graph)
    console = Console(record=True, width=100)

    console.print("\n[bold]Execution Plan[/bold]")
    console.print(f"Total tasks: {len(graph)}")
    console.print(f"Waves: {len(plan)}")
    console.print(f"Max parallelism: {max((len(w) for w in plan), default=0)}")
    console.print(f"Critical path: {' -> '.join(path.task_ids) or '-'} (effort {path.total_effort})")
    console.print()

    for idx, wave in enumerate(plan, 1):
        console.print(f"[bold cyan]Wave {idx}:[/bold cyan] ({len(wave)} task(s) in parallel)")
        for tid in wave:
            task = graph[tid]
            deps = [f"{d} ({k.value})" for d, k in sorted(task.depends_on.items())]
            if deps:
                console.print(f"  • {tid} [dim](depends on: {', '.join(deps)})[/dim]")
            else:
                console.print(f"  • {tid}")
            if task.title:
                console.print(f"    {task.title[:80]}")
        console.print()

    return console.export_text()
