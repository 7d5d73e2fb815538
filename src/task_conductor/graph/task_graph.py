"""Task graph: tasks plus dependency edges, kept acyclic at all times.

The graph is the single source of truth for structure. Edges live on the
dependent's ``depends_on`` mapping; the inverse ``blocks`` lists are derived
here and never authored directly.
"""

from __future__ import annotations

import copy
import logging
from collections import deque
from typing import Any, Iterator, Optional

from ..errors import CycleError, DuplicateTaskError, UnknownTaskError
from .model import EdgeKind, Task, TaskStatus

logger = logging.getLogger(__name__)


class TaskGraph:
    """Directed acyclic graph of :class:`Task` objects.

    An edge ``from_id -> to_id`` means *to_id depends on from_id*.
    """

    def __init__(self, tasks: Optional[list[Task]] = None) -> None:
        self._tasks: dict[str, Task] = {}
        for task in tasks or []:
            self.add_task(task)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self._tasks.values()))

    def __getitem__(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise UnknownTaskError(f"Unknown task '{task_id}'")
        return task

    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def tasks(self) -> list[Task]:
        return list(self._tasks.values())

    def task_ids(self) -> list[str]:
        return sorted(self._tasks)

    def statuses(self) -> dict[str, TaskStatus]:
        return {tid: t.status for tid, t in self._tasks.items()}

    def dependencies(self, task_id: str, kind: Optional[EdgeKind] = None) -> list[str]:
        """Ids *task_id* depends on, optionally filtered by edge kind."""
        task = self[task_id]
        return sorted(d for d, k in task.depends_on.items() if kind is None or k == kind)

    def dependents(self, task_id: str, kind: Optional[EdgeKind] = None) -> list[str]:
        """Ids that depend on *task_id*, optionally filtered by edge kind."""
        task = self[task_id]
        if kind is None:
            return sorted(task.blocks)
        return sorted(b for b in task.blocks if self._tasks[b].depends_on.get(task_id) == kind)

    def edge_kind(self, from_id: str, to_id: str) -> Optional[EdgeKind]:
        return self[to_id].depends_on.get(from_id)

    def neighbors(self, task_id: str) -> list[str]:
        """Every task directly connected to *task_id*, in either direction."""
        task = self[task_id]
        return sorted(set(task.depends_on) | set(task.blocks))

    def edges(self) -> list[tuple[str, str, EdgeKind]]:
        out: list[tuple[str, str, EdgeKind]] = []
        for task in self._tasks.values():
            for dep_id, kind in sorted(task.depends_on.items()):
                out.append((dep_id, task.id, kind))
        return out

    def is_acyclic(self) -> bool:
        """Full Kahn check. ``add_edge`` keeps this true; used to validate loads."""
        in_degree = {tid: len(t.depends_on) for tid, t in self._tasks.items()}
        queue: deque[str] = deque(tid for tid, deg in in_degree.items() if deg == 0)
        seen = 0
        while queue:
            tid = queue.popleft()
            seen += 1
            for dependent in self._tasks[tid].blocks:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)
        return seen == len(self._tasks)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_task(self, task: Task) -> Task:
        """Insert *task* and any ``depends_on`` edges it carries.

        Dependencies must already be in the graph. If one of them is missing
        the task is not added.
        """
        if task.id in self._tasks:
            raise DuplicateTaskError(f"Task {task.id} already exists")

        authored = dict(task.depends_on)
        missing = [dep for dep in authored if dep not in self._tasks]
        if missing:
            raise UnknownTaskError(f"Task {task.id} depends on unknown task(s): {sorted(missing)}")

        task.depends_on = {}
        task.blocks = []
        self._tasks[task.id] = task
        # A brand-new node has no dependents, so none of these edges can cycle.
        for dep_id, kind in authored.items():
            self._link(dep_id, task.id, kind)
        return task

    def add_edge(self, from_id: str, to_id: str, kind: EdgeKind | str = EdgeKind.HARD) -> None:
        """Make *to_id* depend on *from_id*.

        Raises :class:`CycleError` (graph unchanged) if *from_id* is already
        reachable from *to_id*.
        """
        kind = EdgeKind(kind)
        if from_id not in self._tasks:
            raise UnknownTaskError(f"Unknown task '{from_id}'")
        if to_id not in self._tasks:
            raise UnknownTaskError(f"Unknown task '{to_id}'")

        cycle = self._path(to_id, from_id)
        if cycle is not None:
            raise CycleError(
                f"Adding dependency {to_id} -> {from_id} would create a cycle: {' -> '.join(cycle + [to_id])}",
                cycle=cycle + [to_id],
            )
        self._link(from_id, to_id, kind)

    def remove_edge(self, from_id: str, to_id: str) -> bool:
        to_task = self[to_id]
        from_task = self[from_id]
        if from_id not in to_task.depends_on:
            return False
        del to_task.depends_on[from_id]
        from_task.blocks.remove(to_id)
        to_task.touch()
        return True

    def remove_task(self, task_id: str) -> Task:
        """Remove a task and every edge touching it."""
        task = self[task_id]
        for dep_id in list(task.depends_on):
            self._tasks[dep_id].blocks.remove(task_id)
        for dependent_id in list(task.blocks):
            dependent = self._tasks[dependent_id]
            dependent.depends_on.pop(task_id, None)
            dependent.touch()
        del self._tasks[task_id]
        task.depends_on = {}
        task.blocks = []
        logger.debug("Removed task %s from graph", task_id)
        return task

    # ------------------------------------------------------------------
    # Snapshots & serialization
    # ------------------------------------------------------------------

    def copy(self) -> "TaskGraph":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {"tasks": [t.to_dict() for t in self._tasks.values()]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskGraph":
        """Rebuild a graph, re-validating every edge.

        Tasks are inserted first and edges afterwards so records may reference
        tasks that appear later in the list.
        """
        graph = cls()
        pending_edges: list[tuple[str, str, EdgeKind]] = []
        for raw in list(data.get("tasks") or []):
            if not isinstance(raw, dict):
                continue
            task = Task.from_dict(raw)
            for dep_id, kind in task.depends_on.items():
                pending_edges.append((dep_id, task.id, kind))
            task.depends_on = {}
            graph.add_task(task)
        for from_id, to_id, kind in pending_edges:
            graph.add_edge(from_id, to_id, kind)
        return graph

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _link(self, from_id: str, to_id: str, kind: EdgeKind) -> None:
        to_task = self._tasks[to_id]
        from_task = self._tasks[from_id]
        to_task.depends_on[from_id] = kind
        if to_id not in from_task.blocks:
            from_task.blocks.append(to_id)
            from_task.blocks.sort()
        to_task.touch()

    def _path(self, start: str, target: str) -> Optional[list[str]]:
        """Return a dependent-edge path ``start -> ... -> target`` or None.

        Only the subgraph downstream of *start* is visited.
        """
        if start == target:
            return [start]
        parent: dict[str, Optional[str]] = {start: None}
        queue: deque[str] = deque([start])
        while queue:
            current = queue.popleft()
            for nxt in self._tasks[current].blocks:
                if nxt in parent:
                    continue
                parent[nxt] = current
                if nxt == target:
                    path = [nxt]
                    node = current
                    while node is not None:
                        path.append(node)
                        node = parent[node]
                    return list(reversed(path))
                queue.append(nxt)
        return None
