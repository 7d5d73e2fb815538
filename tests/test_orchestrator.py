"""Tests for run_orchestration against a project directory (orchestrator.py)."""

from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from task_conductor.agents.registry import WorkerRegistry, WorkerSpec
from task_conductor.config import RunConfig
from task_conductor.context.synthesizer import ContextSynthesizer
from task_conductor.errors import StateError
from task_conductor.graph.model import EdgeKind, Task, TaskResult, TaskStatus
from task_conductor.graph.task_graph import TaskGraph
from task_conductor.orchestrator import run_orchestration
from task_conductor.storage.store import RunStateStore

from scripted_worker import ScriptedWorker


def _graph() -> TaskGraph:
    graph = TaskGraph()
    graph.add_task(Task(id="A", category="backend"))
    graph.add_task(Task(id="B", category="backend", depends_on={"A": EdgeKind.HARD}))
    return graph


def _registry(worker: ScriptedWorker) -> WorkerRegistry:
    registry = WorkerRegistry()
    registry.register(WorkerSpec(id="api", capabilities={"backend": 0}), worker)
    return registry


def test_persists_state_and_feed(tmp_path: Path) -> None:
    report = run_orchestration(
        _graph(), _registry(ScriptedWorker()), project_dir=tmp_path, config=RunConfig(retry_backoff_seconds=0)
    )

    assert report.outcome == "completed"
    state_dir = tmp_path / ".conductor"
    loaded, context = RunStateStore(state_dir).load()
    assert set(loaded.statuses().values()) == {TaskStatus.COMPLETED}
    assert context.artifact_registry == {"A": "artifact://A", "B": "artifact://B"}

    events = [json.loads(line) for line in (state_dir / "status_feed.jsonl").read_text().splitlines()]
    assert events[-1]["trigger"] == {"event": "run_finished", "outcome": "completed"}
    assert all(e["type"] == "progress" for e in events)


def test_reads_project_config(tmp_path: Path) -> None:
    state_dir = tmp_path / ".conductor"
    state_dir.mkdir()
    (state_dir / "config.yaml").write_text("run:\n  max_retries: 1\n  retry_backoff_seconds: 0\n")
    worker = ScriptedWorker({"A": [RuntimeError("boom")]})

    report = run_orchestration(_graph(), _registry(worker), project_dir=tmp_path)

    assert len(worker.calls_for("A")) == 1
    assert report.statuses == {"A": TaskStatus.FAILED, "B": TaskStatus.BLOCKED}
    assert report.outcome == "blocked"


def test_resume_continues_from_saved_state(tmp_path: Path) -> None:
    graph = _graph()
    graph["A"].status = TaskStatus.COMPLETED
    graph["A"].result = TaskResult(artifact="artifact://A")
    graph["B"].status = TaskStatus.IN_PROGRESS
    graph["B"].attempts = 1
    synth = ContextSynthesizer()
    synth.absorb("A", graph["A"].result, "backend")
    RunStateStore(tmp_path / ".conductor").save(graph, synth.context)

    worker = ScriptedWorker()
    report = run_orchestration(None, _registry(worker), project_dir=tmp_path, resume=True)

    assert report.outcome == "completed"
    assert [c.task_id for c in worker.calls] == ["B"]
    assert worker.calls[0].inputs == {"A": "artifact://A"}
    assert worker.calls[0].attempt == 2


def test_resume_without_state_raises(tmp_path: Path) -> None:
    with pytest.raises(StateError):
        run_orchestration(None, _registry(ScriptedWorker()), project_dir=tmp_path, resume=True)


def test_graph_required_unless_resuming() -> None:
    with pytest.raises(ValueError):
        run_orchestration(None, _registry(ScriptedWorker()))


def test_runs_without_project_dir() -> None:
    report = run_orchestration(_graph(), _registry(ScriptedWorker()), config=RunConfig(retry_backoff_seconds=0))
    assert report.outcome == "completed"
    assert report.to_dict()["statuses"] == {"A": "completed", "B": "completed"}


def test_cancel_event_stops_the_run() -> None:
    cancel = threading.Event()
    timer = threading.Timer(0.05, cancel.set)
    worker = ScriptedWorker(delays={"A": 5.0})
    timer.start()
    try:
        report = run_orchestration(
            _graph(), _registry(worker), config=RunConfig(cancel_grace_seconds=0.05), cancel_event=cancel
        )
    finally:
        timer.cancel()

    assert report.outcome == "cancelled"
    assert report.statuses == {"A": TaskStatus.IN_PROGRESS, "B": TaskStatus.PENDING}
    assert worker.active == 0


def test_cancel_event_set_before_start() -> None:
    cancel = threading.Event()
    cancel.set()
    worker = ScriptedWorker()

    report = run_orchestration(_graph(), _registry(worker), cancel_event=cancel)

    assert report.outcome == "cancelled"
    assert worker.calls == []
    assert set(report.statuses.values()) == {TaskStatus.PENDING}
