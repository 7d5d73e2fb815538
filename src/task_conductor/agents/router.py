"""Delegation router: matches a task's category to eligible workers.

Selection order:
1. Workers listing the category as a primary capability, by rank then id
2. Workers listing it as a backup capability, by rank then id
3. Otherwise :class:`NoCapableWorkerError`

Routing is a pure function of the task's category and the registry's specs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import NoCapableWorkerError
from ..graph.model import Task
from .registry import WorkerRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkerSelection:
    """A routing decision: ordered candidate workers for one task."""
    task_id: str
    capability: str
    candidates: tuple[str, ...]
    backup_from: int  # index of the first backup-capability candidate

    @property
    def primary(self) -> str:
        return self.candidates[0]

    @property
    def fallbacks(self) -> tuple[str, ...]:
        return self.candidates[1:]

    def candidate(self, index: int) -> Optional[str]:
        if 0 <= index < len(self.candidates):
            return self.candidates[index]
        return None

    def is_backup(self, index: int) -> bool:
        return index >= self.backup_from


class DelegationRouter:
    """Resolve the ranked worker candidates for a task."""

    def __init__(self, registry: WorkerRegistry) -> None:
        self.registry = registry

    def route(self, task: Task) -> WorkerSelection:
        capability = task.category
        primary: list[tuple[int, str]] = []
        backup: list[tuple[int, str]] = []
        for spec in self.registry.list_workers():
            rank = spec.primary_rank(capability)
            if rank is not None:
                primary.append((rank, spec.id))
                continue
            rank = spec.backup_rank(capability)
            if rank is not None:
                backup.append((rank, spec.id))

        if not primary and not backup:
            raise NoCapableWorkerError(task.id, capability)

        candidates = tuple(wid for _, wid in sorted(primary)) + tuple(wid for _, wid in sorted(backup))
        selection = WorkerSelection(
            task_id=task.id,
            capability=capability,
            candidates=candidates,
            backup_from=len(primary),
        )
        logger.debug(
            "Routed task %s (%s) -> %s",
            task.id, capability, ", ".join(candidates),
        )
        return selection
