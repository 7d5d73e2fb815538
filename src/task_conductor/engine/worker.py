from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

from ..graph.model import BlockerEvent, Decision, TaskResult

WorkerOutcome = Union[TaskResult, BlockerEvent]


@dataclass(frozen=True)
class TaskDescriptor:
    """Everything a worker gets to see about a task.

    ``inputs`` maps completed dependency ids to their artifact references.
    ``stub_inputs`` maps soft dependencies that have not completed yet to a
    placeholder record.
    """
    task_id: str
    title: str
    category: str
    description: str
    acceptance_criteria: tuple[str, ...] = ()
    inputs: dict[str, Optional[str]] = field(default_factory=dict)
    stub_inputs: dict[str, dict[str, Any]] = field(default_factory=dict)
    attempt: int = 1
    worker_id: str = ""

    @property
    def uses_stubs(self) -> bool:
        return bool(self.stub_inputs)


class Worker(Protocol):
    async def invoke(self, descriptor: TaskDescriptor) -> WorkerOutcome:
        ...


def complete(
    descriptor: TaskDescriptor,
    artifact: Optional[str] = None,
    decisions: Optional[list[Decision]] = None,
    notes: Optional[str] = None,
) -> TaskResult:
    """Build a result that satisfies every acceptance criterion of *descriptor*."""
    return TaskResult(
        artifact=artifact,
        decisions=list(decisions or []),
        criteria_met=list(descriptor.acceptance_criteria),
        notes=notes,
    )


class CallableWorker:
    """Adapt a coroutine function ``fn(descriptor)`` to the :class:`Worker` protocol."""

    def __init__(self, fn: Callable[[TaskDescriptor], Awaitable[WorkerOutcome]]) -> None:
        self._fn = fn

    async def invoke(self, descriptor: TaskDescriptor) -> WorkerOutcome:
        return await self._fn(descriptor)

