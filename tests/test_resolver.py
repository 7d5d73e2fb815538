"""Tests for readiness, waves and the critical path (graph/resolver.py)."""

from __future__ import annotations

from task_conductor.graph.model import EdgeKind, EffortEstimate, Task, TaskStatus
from task_conductor.graph.resolver import (
    critical_path,
    ready_set,
    remaining_critical_effort,
    render_waves,
    topological_order,
    waves,
)
from task_conductor.graph.task_graph import TaskGraph


def _diamond() -> TaskGraph:
    r"""
        a
       / \
      b   c
       \ /
        d      e (independent)   f soft-depends on d
    """
    graph = TaskGraph()
    graph.add_task(Task(id="a", effort=EffortEstimate.S))
    graph.add_task(Task(id="b", effort=EffortEstimate.XL, depends_on={"a": EdgeKind.HARD}))
    graph.add_task(Task(id="c", effort=EffortEstimate.XS, depends_on={"a": EdgeKind.HARD}))
    graph.add_task(
        Task(id="d", effort=EffortEstimate.M, depends_on={"b": EdgeKind.HARD, "c": EdgeKind.HARD})
    )
    graph.add_task(Task(id="e", effort=EffortEstimate.L))
    graph.add_task(Task(id="f", effort=EffortEstimate.XS, depends_on={"d": EdgeKind.SOFT}))
    return graph


class TestReadySet:
    def test_initial_ready_set(self) -> None:
        # f only has a soft dependency, so it does not wait for d.
        assert ready_set(_diamond()) == ["a", "e", "f"]

    def test_ready_after_completion(self) -> None:
        graph = _diamond()
        graph["a"].status = TaskStatus.COMPLETED
        assert ready_set(graph) == ["b", "c", "e", "f"]

    def test_requires_every_hard_dependency(self) -> None:
        graph = _diamond()
        statuses = {tid: TaskStatus.COMPLETED for tid in ("a", "b")}
        statuses.update({"c": TaskStatus.IN_PROGRESS, "d": TaskStatus.PENDING})
        assert "d" not in ready_set(graph, statuses)

    def test_only_pending_tasks_are_ready(self) -> None:
        graph = _diamond()
        graph["a"].status = TaskStatus.IN_PROGRESS
        graph["e"].status = TaskStatus.BLOCKED
        assert ready_set(graph) == ["f"]

    def test_statuses_override_accepts_strings(self) -> None:
        graph = _diamond()
        statuses = {t.id: "pending" for t in graph}
        statuses["a"] = "completed"
        assert ready_set(graph, statuses) == ["b", "c", "e", "f"]


class TestWaves:
    def test_wave_partition(self) -> None:
        assert waves(_diamond()) == [["a", "e", "f"], ["b", "c"], ["d"]]

    def test_every_hard_dependency_is_in_an_earlier_wave(self) -> None:
        graph = _diamond()
        plan = waves(graph)
        position = {tid: idx for idx, wave in enumerate(plan) for tid in wave}
        assert sorted(position) == graph.task_ids()
        for from_id, to_id, kind in graph.edges():
            if kind == EdgeKind.HARD:
                assert position[from_id] < position[to_id]

    def test_empty_graph(self) -> None:
        assert waves(TaskGraph()) == []

    def test_topological_order_respects_all_edges(self) -> None:
        graph = _diamond()
        order = topological_order(graph)
        assert order.index("d") < order.index("f")
        assert order[0] == "a"

    def test_render(self) -> None:
        text = render_waves(_diamond())
        assert "Wave 1" in text
        assert "Critical path: a -> b -> d" in text


class TestCriticalPath:
    def test_longest_effort_chain(self) -> None:
        path = critical_path(_diamond())
        assert path.task_ids == ["a", "b", "d"]
        assert path.total_effort == 2 + 8 + 3

    def test_soft_edges_do_not_extend_the_path(self) -> None:
        path = critical_path(_diamond())
        assert "f" not in path.task_ids

    def test_ties_go_to_smaller_id(self) -> None:
        graph = TaskGraph()
        graph.add_task(Task(id="x"))
        graph.add_task(Task(id="y"))
        graph.add_task(Task(id="z", depends_on={"x": EdgeKind.HARD, "y": EdgeKind.HARD}))
        assert critical_path(graph).task_ids == ["x", "z"]

        lone = TaskGraph([Task(id="q"), Task(id="p")])
        assert critical_path(lone).task_ids == ["p"]

    def test_empty(self) -> None:
        path = critical_path(TaskGraph())
        assert path.task_ids == []
        assert path.total_effort == 0

    def test_remaining_effort_skips_completed(self) -> None:
        graph = _diamond()
        assert remaining_critical_effort(graph) == 13
        graph["a"].status = TaskStatus.COMPLETED
        graph["b"].status = TaskStatus.COMPLETED
        # c -> d is down to 4, so the independent e (5) is now the longest.
        assert remaining_critical_effort(graph) == 5
