"""Tests for the worker registry and delegation router."""

from __future__ import annotations

from pathlib import Path

import pytest

from task_conductor.agents.registry import WorkerRegistry, WorkerSpec
from task_conductor.agents.router import DelegationRouter
from task_conductor.errors import NoCapableWorkerError
from task_conductor.graph.model import Task

from scripted_worker import ScriptedWorker


class TestWorkerSpec:
    def test_list_capabilities_rank_by_position(self) -> None:
        spec = WorkerSpec.from_dict({"id": "w1", "capabilities": ["backend", "database"]})
        assert spec.capabilities == {"backend": 0, "database": 1}

    def test_extra_keys_land_in_metadata(self) -> None:
        spec = WorkerSpec.from_dict({"id": "w1", "capabilities": {"backend": 2}, "model": "large"})
        assert spec.metadata == {"model": "large"}
        assert spec.primary_rank("backend") == 2
        assert spec.backup_rank("backend") is None

    def test_round_trip(self) -> None:
        spec = WorkerSpec(id="w1", capabilities={"backend": 0}, backup_capabilities={"docs": 1})
        assert WorkerSpec.from_dict(spec.to_dict()) == spec


class TestWorkerRegistry:
    def setup_method(self) -> None:
        self.registry = WorkerRegistry(
            [
                WorkerSpec(id="db", capabilities={"database": 0}),
                WorkerSpec(id="api", capabilities={"backend": 0}, backup_capabilities={"database": 0}),
            ]
        )

    def test_list_is_sorted(self) -> None:
        assert [w.id for w in self.registry.list_workers()] == ["api", "db"]

    def test_unknown_worker(self) -> None:
        with pytest.raises(KeyError, match="available: api, db"):
            self.registry.get("nope")

    def test_capabilities(self) -> None:
        assert self.registry.capabilities() == {"database", "backend"}

    def test_bind_and_unregister(self) -> None:
        worker = ScriptedWorker()
        self.registry.bind("db", worker)
        assert self.registry.worker_for("db") is worker
        self.registry.unregister("db")
        assert not self.registry.has("db")
        assert self.registry.worker_for("db") is None

    def test_bind_unknown_raises(self) -> None:
        with pytest.raises(KeyError):
            self.registry.bind("ghost", ScriptedWorker())

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "workers.yaml"
        path.write_text(
            "workers:\n"
            "  - id: ui\n"
            "    capabilities: [frontend]\n"
            "  - capabilities: [orphan]\n"
            "  - id: docs\n"
            "    capabilities:\n"
            "      docs: 1\n"
            "    backup_capabilities: [frontend]\n"
        )
        self.registry.load_from_yaml(path)
        assert self.registry.has("ui")
        assert self.registry.get("docs").backup_rank("frontend") == 0
        assert len(self.registry) == 4

    def test_load_missing_yaml_is_noop(self, tmp_path: Path) -> None:
        self.registry.load_from_yaml(tmp_path / "absent.yaml")
        assert len(self.registry) == 2


class TestDelegationRouter:
    def setup_method(self) -> None:
        self.registry = WorkerRegistry.from_dicts(
            [
                {"id": "be-senior", "capabilities": {"backend": 0}},
                {"id": "be-junior", "capabilities": {"backend": 1}},
                {"id": "be-alt", "capabilities": {"backend": 1}},
                {"id": "fullstack", "capabilities": {"frontend": 0}, "backup_capabilities": {"backend": 0}},
            ]
        )
        self.router = DelegationRouter(self.registry)

    def test_primary_by_rank_then_id_then_backups(self) -> None:
        selection = self.router.route(Task(id="t1", category="backend"))
        assert selection.candidates == ("be-senior", "be-alt", "be-junior", "fullstack")
        assert selection.primary == "be-senior"
        assert selection.fallbacks == ("be-alt", "be-junior", "fullstack")
        assert selection.backup_from == 3
        assert selection.is_backup(3)
        assert not selection.is_backup(2)
        assert selection.candidate(4) is None

    def test_backup_only(self) -> None:
        self.registry.unregister("be-senior")
        self.registry.unregister("be-junior")
        self.registry.unregister("be-alt")
        selection = self.router.route(Task(id="t1", category="backend"))
        assert selection.candidates == ("fullstack",)
        assert selection.is_backup(0)

    def test_no_capable_worker(self) -> None:
        with pytest.raises(NoCapableWorkerError) as excinfo:
            self.router.route(Task(id="t9", category="mobile"))
        assert excinfo.value.task_id == "t9"
        assert excinfo.value.category == "mobile"

    def test_routing_is_pure(self) -> None:
        task = Task(id="t1", category="backend")
        assert self.router.route(task) == self.router.route(task)
