"""Provide the public `task_conductor` package exports."""

from __future__ import annotations

from .agents import DelegationRouter, WorkerRegistry, WorkerSelection, WorkerSpec
from .config import HealthThresholds, RunConfig, get_run_config, load_run_config
from .context import ContextSynthesizer, ProjectContext
from .engine import CallableWorker, ExecutionCoordinator, RunReport, TaskDescriptor, Worker
from .graph import EdgeKind, EffortEstimate, Task, TaskGraph, TaskResult, TaskStatus
from .orchestrator import run_orchestration
from .progress import ProgressTracker, StatusFeed

__all__ = [
    "CallableWorker",
    "ContextSynthesizer",
    "DelegationRouter",
    "EdgeKind",
    "EffortEstimate",
    "ExecutionCoordinator",
    "HealthThresholds",
    "ProgressTracker",
    "ProjectContext",
    "RunConfig",
    "RunReport",
    "StatusFeed",
    "Task",
    "TaskDescriptor",
    "TaskGraph",
    "TaskResult",
    "TaskStatus",
    "Worker",
    "WorkerRegistry",
    "WorkerSelection",
    "WorkerSpec",
    "get_run_config",
    "load_run_config",
    "run_orchestration",
]
