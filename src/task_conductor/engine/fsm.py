from __future__ import annotations

from ..errors import InvalidTransitionError
from ..graph.model import Task, TaskStatus
from ..utils import _now_iso

_VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    # Pending tasks may be derived-blocked by a failed dependency, or fail
    # outright when no worker can take them.
    TaskStatus.PENDING: {TaskStatus.READY, TaskStatus.BLOCKED, TaskStatus.FAILED},
    TaskStatus.READY: {TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED, TaskStatus.FAILED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.BLOCKED, TaskStatus.FAILED},
    TaskStatus.BLOCKED: {TaskStatus.READY},
    TaskStatus.FAILED: {TaskStatus.READY},  # retry
    TaskStatus.COMPLETED: set(),
}


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    return target in _VALID_TRANSITIONS.get(current, set())


def valid_targets(current: TaskStatus) -> set[TaskStatus]:
    return set(_VALID_TRANSITIONS.get(current, set()))


def transition(task: Task, target: TaskStatus) -> TaskStatus:
    """Move *task* to *target*, returning the previous status.

    Raises :class:`InvalidTransitionError` if the lifecycle forbids the move.
    """
    target = TaskStatus(target)
    previous = task.status
    if not can_transition(previous, target):
        raise InvalidTransitionError(
            f"Cannot transition {task.id} from {previous.value} to {target.value}. "
            f"Valid targets: {sorted(s.value for s in valid_targets(previous))}"
        )
    task.status = target
    if target == TaskStatus.COMPLETED:
        task.completed_at = _now_iso()
    task.touch()
    return previous
