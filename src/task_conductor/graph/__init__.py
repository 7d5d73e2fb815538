"""Task graph model and dependency resolver."""

from .model import (
    BlockerEvent,
    Decision,
    EdgeKind,
    EffortEstimate,
    ResolutionState,
    Task,
    TaskResult,
    TaskStatus,
)
from .resolver import CriticalPath, critical_path, ready_set, render_waves, waves
from .task_graph import TaskGraph

__all__ = [
    "BlockerEvent",
    "CriticalPath",
    "Decision",
    "EdgeKind",
    "EffortEstimate",
    "ResolutionState",
    "Task",
    "TaskGraph",
    "TaskResult",
    "TaskStatus",
    "critical_path",
    "ready_set",
    "render_waves",
    "waves",
]
