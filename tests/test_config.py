"""Tests for run configuration parsing and loading (config.py)."""

from __future__ import annotations

from pathlib import Path

import pytest

from task_conductor.config import HealthThresholds, RunConfig, get_run_config, load_run_config
from task_conductor.errors import ConfigError


def test_defaults() -> None:
    config = get_run_config({})
    assert config == RunConfig()
    assert config.max_retries == 3
    assert config.capacity_for("anything") == 1
    assert config.health_thresholds == HealthThresholds(1, 3, 1, 3)
    assert config.soft_dependency_policy == "rerun"


def test_camel_case_keys() -> None:
    config = get_run_config(
        {
            "capacityPerCategory": {"backend": 2},
            "maxRetries": 5,
            "invocationTimeout": 12,
            "criticalTaskIds": ["a", "b"],
            "healthThresholds": {"warningBlockers": 2, "criticalBlockers": 4},
        }
    )
    assert config.capacity_for("backend") == 2
    assert config.capacity_for("frontend") == 1
    assert config.max_retries == 5
    assert config.invocation_timeout == 12.0
    assert config.critical_task_ids == frozenset({"a", "b"})
    assert config.health_thresholds.warning_blockers == 2
    assert config.health_thresholds.critical_blockers == 4
    assert config.health_thresholds.critical_failures == 3


def test_nested_under_run() -> None:
    config = get_run_config({"run": {"default_capacity": 4, "authority_ranking": ["architecture", "backend"]}})
    assert config.capacity_for("x") == 4
    assert config.authority_ranking == ("architecture", "backend")


def test_backoff_doubles_and_caps() -> None:
    config = RunConfig(retry_backoff_seconds=1.0, max_backoff_seconds=3.0)
    assert [config.backoff_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, 3.0]


@pytest.mark.parametrize(
    "raw",
    [
        {"capacity_per_category": {"backend": 0}},
        {"max_retries": True},
        {"max_retries": 1.5},
        {"max_retries": "many"},
        {"invocation_timeout": 0},
        {"invocation_timeout": -1},
        {"critical_task_ids": "a"},
        {"soft_dependency_policy": "sometimes"},
        {"authority_ranking": "backend"},
        {"health_thresholds": {"warning_blockers": 5, "critical_blockers": 2}},
    ],
)
def test_invalid_values(raw: dict) -> None:
    with pytest.raises(ConfigError):
        get_run_config(raw)


def test_load_missing_file_returns_defaults(tmp_path: Path) -> None:
    config, err = load_run_config(tmp_path)
    assert err is None
    assert config == RunConfig()


def test_load_from_project(tmp_path: Path) -> None:
    state_dir = tmp_path / ".conductor"
    state_dir.mkdir()
    (state_dir / "config.yaml").write_text(
        "run:\n"
        "  max_retries: 2\n"
        "  soft_dependency_policy: accept\n"
        "  capacity_per_category:\n"
        "    backend: 3\n"
    )
    config, err = load_run_config(tmp_path)
    assert err is None
    assert config.max_retries == 2
    assert config.soft_dependency_policy == "accept"
    assert config.capacity_for("backend") == 3


def test_load_invalid_file_reports_error(tmp_path: Path) -> None:
    state_dir = tmp_path / ".conductor"
    state_dir.mkdir()
    (state_dir / "config.yaml").write_text("run:\n  max_retries: 0\n")
    config, err = load_run_config(tmp_path)
    assert config == RunConfig()
    assert err is not None and "max_retries" in err
