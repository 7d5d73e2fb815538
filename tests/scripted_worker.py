"""Deterministic worker shared by the engine tests."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, Optional

from task_conductor.engine.worker import TaskDescriptor, WorkerOutcome, complete
from task_conductor.graph.model import BlockerEvent, Decision, TaskResult


class ScriptedWorker:
    """Deterministic worker driven by a per-task script.

    ``script[task_id]`` is a list of outcomes consumed one per invocation (the
    last entry repeats). An outcome may be a :class:`TaskResult`, a
    :class:`BlockerEvent`, an exception instance (raised), or the string
    ``"ok"``. Tasks without a script complete with all criteria met and an
    artifact named after the task.
    """

    def __init__(
        self,
        script: Optional[dict[str, list[Any]]] = None,
        *,
        delays: Optional[dict[str, float]] = None,
        default_delay: float = 0.0,
        decisions: Optional[dict[str, list[Decision]]] = None,
    ) -> None:
        self.script = dict(script or {})
        self.delays = dict(delays or {})
        self.default_delay = default_delay
        self.decisions = dict(decisions or {})
        self.calls: list[TaskDescriptor] = []
        self.active = 0
        self.max_active = 0
        self._counts: dict[str, int] = defaultdict(int)

    def calls_for(self, task_id: str) -> list[TaskDescriptor]:
        return [c for c in self.calls if c.task_id == task_id]

    async def invoke(self, descriptor: TaskDescriptor) -> WorkerOutcome:
        self.calls.append(descriptor)
        index = self._counts[descriptor.task_id]
        self._counts[descriptor.task_id] += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            delay = self.delays.get(descriptor.task_id, self.default_delay)
            if delay:
                await asyncio.sleep(delay)
            steps = self.script.get(descriptor.task_id)
            outcome: Any = "ok"
            if steps:
                outcome = steps[min(index, len(steps) - 1)]
            if isinstance(outcome, BaseException):
                raise outcome
            if isinstance(outcome, (TaskResult, BlockerEvent)):
                return outcome
            return complete(
                descriptor,
                artifact=f"artifact://{descriptor.task_id}",
                decisions=self.decisions.get(descriptor.task_id),
            )
        finally:
            self.active -= 1
