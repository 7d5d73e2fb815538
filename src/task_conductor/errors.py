"""Exception taxonomy for the orchestration engine.

Only graph construction, routing, configuration and state I/O raise. Task-level
trouble during a run (blockers, retryable failures, decision conflicts) is
recorded on the task or in the project context instead of being raised.
"""

from __future__ import annotations

from typing import Optional, Sequence


class ConductorError(Exception):
    """Base class for every error raised by ``task_conductor``."""


class CycleError(ConductorError):
    """Adding an edge would make the task graph cyclic."""

    def __init__(self, message: str, cycle: Optional[Sequence[str]] = None) -> None:
        super().__init__(message)
        self.cycle = list(cycle or [])


class UnknownTaskError(ConductorError, KeyError):
    """A task id is not present in the graph."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "unknown task"


class DuplicateTaskError(ConductorError, ValueError):
    """A task with the same id is already in the graph."""


class NoCapableWorkerError(ConductorError):
    """No registered worker lists the task's category, primary or backup.

    Fatal and non-retryable for the task it was raised for.
    """

    def __init__(self, task_id: str, category: str) -> None:
        super().__init__(f"No worker can handle task {task_id} (category '{category}')")
        self.task_id = task_id
        self.category = category


class InvalidTransitionError(ConductorError, ValueError):
    """A lifecycle transition is not allowed by the state machine."""


class ImmutableFieldError(ConductorError, ValueError):
    """Attempt to change a field that is fixed once assigned."""


class ContextError(ConductorError):
    """Invalid operation on the project context."""


class ConfigError(ConductorError, ValueError):
    """Run configuration is malformed."""


class StateError(ConductorError):
    """Persisted run state could not be read or written."""
