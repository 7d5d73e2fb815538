"""Task lifecycle, worker invocation and the execution coordinator."""

from .coordinator import EscalationHandler, ExecutionCoordinator, RunReport
from .fsm import can_transition, transition, valid_targets
from .worker import CallableWorker, TaskDescriptor, Worker, WorkerOutcome, complete

__all__ = [
    "CallableWorker",
    "EscalationHandler",
    "ExecutionCoordinator",
    "RunReport",
    "TaskDescriptor",
    "Worker",
    "WorkerOutcome",
    "can_transition",
    "complete",
    "transition",
    "valid_targets",
]
