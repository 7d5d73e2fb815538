"""Tests for progress summaries, health and the status feed (progress/)."""

from __future__ import annotations

import json
from pathlib import Path

from task_conductor.config import HealthThresholds
from task_conductor.context.synthesizer import ContextSynthesizer
from task_conductor.graph.model import Decision, EdgeKind, EffortEstimate, ResolutionState, Task, TaskResult, TaskStatus
from task_conductor.graph.task_graph import TaskGraph
from task_conductor.progress.feed import StatusFeed
from task_conductor.progress.tracker import ProgressSummary, ProgressTracker, render_summary


def _graph() -> TaskGraph:
    graph = TaskGraph()
    graph.add_task(Task(id="a", effort=EffortEstimate.S))
    graph.add_task(Task(id="b", effort=EffortEstimate.S, depends_on={"a": EdgeKind.HARD}))
    graph.add_task(Task(id="c", effort=EffortEstimate.S))
    graph.add_task(Task(id="d", effort=EffortEstimate.S))
    return graph


def _fail(task: Task) -> None:
    task.status = TaskStatus.FAILED
    task.terminal = True


class TestProgressTracker:
    def setup_method(self) -> None:
        self.graph = _graph()
        self.tracker = ProgressTracker(phases={"build": ["a", "b"], "ship": ["c", "d", "ghost"]})

    def test_counts_and_percentages(self) -> None:
        self.graph["a"].status = TaskStatus.COMPLETED
        self.graph["c"].status = TaskStatus.IN_PROGRESS
        summary = self.tracker.summary(self.graph)
        assert summary.total == 4
        assert summary.counts["completed"] == 1
        assert summary.counts["in_progress"] == 1
        assert summary.counts["pending"] == 2
        assert summary.percent_complete == 25.0
        assert summary.phases == {"build": 50.0, "ship": 0.0}

    def test_statuses_override(self) -> None:
        summary = self.tracker.summary(self.graph, {t: "completed" for t in ("a", "b", "c", "d")})
        assert summary.percent_complete == 100.0
        assert summary.health == "healthy"

    def test_healthy(self) -> None:
        summary = self.tracker.summary(self.graph)
        assert summary.health == "healthy"
        assert summary.health_items == []

    def test_one_failure_is_warning(self) -> None:
        _fail(self.graph["a"])
        summary = self.tracker.summary(self.graph)
        assert summary.failed_tasks == ["a"]
        assert summary.health == "warning"

    def test_retryable_failure_is_not_counted(self) -> None:
        self.graph["a"].status = TaskStatus.FAILED
        summary = self.tracker.summary(self.graph)
        assert summary.failed_tasks == []
        assert summary.health == "healthy"

    def test_failure_threshold_goes_critical(self) -> None:
        for tid in ("a", "c", "d"):
            _fail(self.graph[tid])
        assert self.tracker.summary(self.graph).health == "critical"

    def test_critical_task_failure_is_critical(self) -> None:
        tracker = ProgressTracker(critical_task_ids={"a"})
        _fail(self.graph["a"])
        summary = tracker.summary(self.graph)
        assert summary.health == "critical"
        assert any("a" in item for item in summary.health_items)

    def test_blocker_thresholds(self) -> None:
        tracker = ProgressTracker(HealthThresholds(warning_blockers=1, critical_blockers=2))
        self.graph["c"].status = TaskStatus.BLOCKED
        self.graph["c"].record_blocker("timeout")
        assert tracker.summary(self.graph).health == "warning"
        self.graph["d"].status = TaskStatus.BLOCKED
        self.graph["d"].record_blocker("worker_blocked")
        summary = tracker.summary(self.graph)
        assert summary.open_blockers == 2
        assert summary.health == "critical"

    def test_resolved_and_passive_blockers_do_not_count(self) -> None:
        event = self.graph["c"].record_blocker("timeout")
        event.resolution_state = ResolutionState.REASSIGNED
        self.graph["d"].status = TaskStatus.BLOCKED
        self.graph["d"].record_blocker("awaiting_soft_dependency")
        summary = self.tracker.summary(self.graph)
        assert summary.open_blockers == 0
        assert summary.health == "healthy"

    def test_dependency_failures_are_not_counted_as_blockers(self) -> None:
        graph = TaskGraph()
        graph.add_task(Task(id="a"))
        for tid in ("b1", "b2", "b3"):
            graph.add_task(Task(id=tid, depends_on={"a": EdgeKind.HARD}))
            graph[tid].status = TaskStatus.BLOCKED
            graph[tid].record_blocker("dependency_failed", "upstream task a failed")
        _fail(graph["a"])
        graph["a"].record_blocker("invocation_failed", "boom").resolution_state = ResolutionState.ESCALATED

        summary = self.tracker.summary(graph)

        assert summary.open_blockers == 0
        assert summary.failed_tasks == ["a"]
        assert summary.health == "warning"

    def test_unresolved_conflicts_warn(self) -> None:
        synth = ContextSynthesizer()
        synth.absorb("a", TaskResult(decisions=[Decision("auth", "jwt")]), "backend")
        synth.absorb("c", TaskResult(decisions=[Decision("auth", "sessions")]), "backend")
        summary = self.tracker.summary(self.graph, context=synth.context)
        assert summary.unresolved_conflicts == 1
        assert summary.health == "warning"

    def test_halted_is_critical(self) -> None:
        assert self.tracker.summary(self.graph, halted=True).health == "critical"

    def test_behind_schedule(self) -> None:
        tracker = ProgressTracker(effort_unit_seconds=10.0, schedule_tolerance=0.5)
        # critical path a -> b = 4 effort points = 40s, tolerance allows 60s
        assert tracker.summary(self.graph, elapsed_seconds=10.0).behind_schedule is False
        summary = tracker.summary(self.graph, elapsed_seconds=25.0)
        assert summary.behind_schedule is True
        assert summary.health == "warning"

    def test_schedule_check_disabled_without_unit(self) -> None:
        assert self.tracker.summary(self.graph, elapsed_seconds=1e9).behind_schedule is False

    def test_render_summary(self) -> None:
        _fail(self.graph["a"])
        text = render_summary(self.tracker.summary(self.graph))
        assert "Orchestration Progress" in text
        assert "Health: warning" in text
        assert "build: 0.0%" in text


class TestStatusFeed:
    def _summary(self, health: str = "healthy") -> ProgressSummary:
        return ProgressSummary(timestamp="t", counts={"pending": 1}, total=1, percent_complete=0.0, health=health)

    def test_publish_and_latest(self) -> None:
        feed = StatusFeed()
        assert feed.latest is None
        feed.publish(self._summary())
        feed.publish(self._summary("warning"))
        assert len(feed) == 2
        assert feed.latest is not None and feed.latest.health == "warning"
        assert [s.health for s in feed] == ["healthy", "warning"]

    def test_subscriber_errors_do_not_propagate(self) -> None:
        feed = StatusFeed()
        seen: list[str] = []

        def broken(_summary: ProgressSummary) -> None:
            raise RuntimeError("boom")

        feed.subscribe(broken)
        feed.subscribe(lambda s: seen.append(s.health))
        feed.publish(self._summary())
        assert seen == ["healthy"]

    def test_unsubscribe(self) -> None:
        feed = StatusFeed()
        seen: list[ProgressSummary] = []
        unsubscribe = feed.subscribe(seen.append)
        feed.publish(self._summary())
        unsubscribe()
        feed.publish(self._summary())
        assert len(seen) == 1

    def test_jsonl_sink(self, tmp_path: Path) -> None:
        sink = tmp_path / ".conductor" / "status_feed.jsonl"
        feed = StatusFeed(sink_path=sink)
        feed.publish(self._summary())
        feed.publish(self._summary("critical"))
        lines = [json.loads(line) for line in sink.read_text().splitlines()]
        assert [line["health"] for line in lines] == ["healthy", "critical"]
        assert lines[0]["type"] == "progress"
