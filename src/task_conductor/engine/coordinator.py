"""Execution coordinator: drives every task through its lifecycle.

One asyncio scheduling loop owns the graph and the project context. Each tick
it promotes newly ready tasks, dispatches Ready tasks to workers within their
capability budget, then waits for the first in-flight invocation to finish (or
a retry to fall due, or an external wake-up) and processes completions one at a
time. Workers only ever see an immutable :class:`TaskDescriptor` and hand their
outcome back to the loop.
"""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from loguru import logger

from ..agents.registry import WorkerRegistry
from ..agents.router import DelegationRouter, WorkerSelection
from ..config import RunConfig
from ..constants import (
    BLOCKER_AWAITING_SOFT,
    BLOCKER_DEPENDENCY_FAILED,
    BLOCKER_INTERRUPTED,
    BLOCKER_INVOCATION_FAILED,
    BLOCKER_NO_CAPABLE_WORKER,
    BLOCKER_TIMEOUT,
    BLOCKER_WORKER,
    BLOCKER_WORKER_UNAVAILABLE,
    OUTCOME_BLOCKED,
    OUTCOME_CANCELLED,
    OUTCOME_COMPLETED,
    OUTCOME_FAILED,
    PASSIVE_BLOCKER_REASONS,
    SOFT_POLICY_ACCEPT,
)
from ..context.synthesizer import ContextSynthesizer, ProjectContext
from ..errors import InvalidTransitionError, NoCapableWorkerError
from ..graph.model import BlockerEvent, EdgeKind, ResolutionState, Task, TaskResult, TaskStatus
from ..graph.resolver import ready_set
from ..graph.task_graph import TaskGraph
from ..progress.feed import StatusFeed
from ..progress.tracker import ProgressSummary, ProgressTracker
from ..storage.store import RunStateStore
from . import fsm
from .worker import TaskDescriptor, Worker, WorkerOutcome

# Returns "retry", "resolved", or None to leave the blocker escalated.
EscalationHandler = Callable[[Task, BlockerEvent], Optional[str]]


@dataclass
class RunReport:
    """Final state of one :meth:`ExecutionCoordinator.run`."""

    outcome: str
    statuses: dict[str, TaskStatus]
    context: ProjectContext
    summary: ProgressSummary
    halted_by: Optional[str] = None
    elapsed_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome,
            "statuses": {tid: s.value for tid, s in sorted(self.statuses.items())},
            "summary": self.summary.to_dict(),
            "halted_by": self.halted_by,
            "elapsed_seconds": self.elapsed_seconds,
        }


class ExecutionCoordinator:
    """Run a :class:`TaskGraph` to completion against a worker registry.

    Args:
        graph: Graph to execute. Mutated in place.
        registry: Worker specs used for routing; implementations are looked up
            with :meth:`WorkerRegistry.worker_for`.
        config: Run configuration; defaults when omitted.
        workers: Extra implementations to bind into *registry* by worker id.
        synthesizer: Context writer; a fresh one using the configured
            authority ranking is created when omitted.
        tracker: Progress tracker; built from *config* when omitted.
        feed: Status feed receiving one summary per status transition.
        store: When given, run state is saved after every processed
            completion and when the run ends.
        escalation_handler: Called for blockers no other worker can take.
        phases: Phase partition forwarded to the default tracker.
    """

    def __init__(
        self,
        graph: TaskGraph,
        registry: WorkerRegistry,
        config: Optional[RunConfig] = None,
        *,
        workers: Optional[Mapping[str, Worker]] = None,
        synthesizer: Optional[ContextSynthesizer] = None,
        tracker: Optional[ProgressTracker] = None,
        feed: Optional[StatusFeed] = None,
        store: Optional[RunStateStore] = None,
        escalation_handler: Optional[EscalationHandler] = None,
        phases: Optional[Mapping[str, list[str]]] = None,
    ) -> None:
        self.graph = graph
        self.registry = registry
        self.config = config or RunConfig()
        for worker_id, worker in (workers or {}).items():
            registry.bind(worker_id, worker)
        self.router = DelegationRouter(registry)
        self.synthesizer = synthesizer or ContextSynthesizer(authority_ranking=self.config.authority_ranking)
        self.tracker = tracker or ProgressTracker(
            self.config.health_thresholds,
            phases,
            critical_task_ids=self.config.critical_task_ids,
            effort_unit_seconds=self.config.effort_unit_seconds,
            schedule_tolerance=self.config.schedule_tolerance,
        )
        self.feed = feed if feed is not None else StatusFeed()
        self.store = store
        self.escalation_handler = escalation_handler

        self._selections: dict[str, WorkerSelection] = {}
        self._in_flight: dict[asyncio.Future[WorkerOutcome], str] = {}
        self._active: dict[str, int] = defaultdict(int)
        self._retry_due: dict[str, float] = {}
        self._halted_by: Optional[str] = None
        self._cancel_requested = False
        self._wakeup: Optional[asyncio.Event] = None
        self._started: Optional[float] = None

    @property
    def context(self) -> ProjectContext:
        return self.synthesizer.context

    @property
    def halted_by(self) -> Optional[str]:
        return self._halted_by

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested

    # ------------------------------------------------------------------
    # External controls
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop dispatching; in-flight work gets the configured grace period."""
        if not self._cancel_requested:
            logger.warning("Cancellation requested; no further tasks will be dispatched")
        self._cancel_requested = True
        self._wake()

    def resolve_blocker(
        self, task_id: str, state: ResolutionState | str = ResolutionState.RESOLVED
    ) -> Optional[BlockerEvent]:
        """Close the open blockers of a Blocked task and make it Ready again.

        Args:
            task_id: Blocked task to release.
            state: ``resolved`` or ``retried``.

        Returns:
            The task's most recent blocker event.

        Raises:
            InvalidTransitionError: If the task is not Blocked, or is blocked by a
                failed dependency or waiting on a soft dependency, which only
                the engine itself can clear.
        """
        state = ResolutionState(state)
        if state not in (ResolutionState.RESOLVED, ResolutionState.RETRIED):
            raise InvalidTransitionError(f"Blockers can only be closed as resolved or retried, not {state.value}")

        task = self.graph[task_id]
        if task.status != TaskStatus.BLOCKED:
            raise InvalidTransitionError(f"Task {task_id} is {task.status.value}, not blocked")
        open_events = task.open_blockers
        engine_held = [e for e in open_events if e.reason == BLOCKER_DEPENDENCY_FAILED or e.reason in PASSIVE_BLOCKER_REASONS]
        if engine_held:
            raise InvalidTransitionError(
                f"Task {task_id} is blocked by '{engine_held[-1].reason}' and cannot be released externally"
            )

        for event in open_events:
            event.resolution_state = state
        logger.info("Blocker on {} {} externally", task_id, state.value)
        self._transition(task, TaskStatus.READY, event="blocker_resolved")
        self._wake()
        return task.latest_blocker

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def run(self) -> RunReport:
        """Execute until the graph is resolved, stuck, halted or cancelled."""
        self._wakeup = asyncio.Event()
        if self._cancel_requested:
            self._wakeup.set()
        self._started = time.monotonic()
        logger.info("Starting orchestration run ({} tasks)", len(self.graph))

        self._recover()

        while not self._stopping:
            self._promote_due_retries()
            self._promote_ready()
            self._settle_parked()
            self._dispatch()
            if self._stopping:
                break
            if not self._in_flight and not self._retry_due:
                if self._has_ready():
                    # reassigned during dispatch; pick it up on the next tick
                    continue
                break
            await self._wait_for_progress()

        if self._in_flight:
            await self._drain()

        return self._finish()

    @property
    def _stopping(self) -> bool:
        return self._cancel_requested or self._halted_by is not None

    def _recover(self) -> None:
        """Bring persisted state back to something the loop can schedule."""
        for task in sorted(self.graph, key=lambda t: t.id):
            if task.status == TaskStatus.IN_PROGRESS:
                event = task.record_blocker(BLOCKER_INTERRUPTED, "in progress when the previous run stopped")
                self._transition(task, TaskStatus.BLOCKED, event="interrupted")
                event.resolution_state = ResolutionState.RETRIED
                self._transition(task, TaskStatus.READY, event="resumed")
            elif task.status == TaskStatus.FAILED and not task.terminal:
                self._retry_due[task.id] = time.monotonic()

        for task in sorted(self.graph, key=lambda t: t.id):
            if task.status == TaskStatus.FAILED and task.terminal:
                self._propagate_failure(task)
                if task.id in self.config.critical_task_ids:
                    self._halt(task)

    async def _wait_for_progress(self) -> None:
        assert self._wakeup is not None
        wake = asyncio.ensure_future(self._wakeup.wait())
        waiters: set[asyncio.Future[Any]] = set(self._in_flight)
        waiters.add(wake)
        done, _ = await asyncio.wait(waiters, timeout=self._next_retry_delay(), return_when=asyncio.FIRST_COMPLETED)
        if not wake.done():
            wake.cancel()
        self._wakeup.clear()
        for future in self._ordered(done):
            self._process(future)

    async def _drain(self) -> None:
        grace = self.config.cancel_grace_seconds
        logger.info("Waiting up to {}s for {} in-flight task(s)", grace, len(self._in_flight))
        deadline = time.monotonic() + grace
        while self._in_flight:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            done, _ = await asyncio.wait(set(self._in_flight), timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
            for future in self._ordered(done):
                self._process(future)

        if not self._in_flight:
            return
        for future, task_id in list(self._in_flight.items()):
            logger.warning("Cutting off task {} after {}s grace period", task_id, grace)
            future.cancel()
        await asyncio.gather(*self._in_flight, return_exceptions=True)
        for future, task_id in list(self._in_flight.items()):
            del self._in_flight[future]
            self._active[self.graph[task_id].category] -= 1

    def _finish(self) -> RunReport:
        statuses = self.graph.statuses()
        if self._halted_by is not None:
            outcome = OUTCOME_FAILED
        elif self._cancel_requested:
            outcome = OUTCOME_CANCELLED
        elif all(s == TaskStatus.COMPLETED for s in statuses.values()):
            outcome = OUTCOME_COMPLETED
        else:
            outcome = OUTCOME_BLOCKED

        summary = self._publish({"event": "run_finished", "outcome": outcome})
        self._checkpoint()
        elapsed = self._elapsed()
        logger.info(
            "Run finished: outcome={}, health={}, {}/{} completed in {:.2f}s",
            outcome, summary.health, summary.counts[TaskStatus.COMPLETED.value], summary.total, elapsed,
        )
        return RunReport(
            outcome=outcome,
            statuses=statuses,
            context=self.context,
            summary=summary,
            halted_by=self._halted_by,
            elapsed_seconds=elapsed,
        )

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _promote_ready(self) -> None:
        for task_id in ready_set(self.graph):
            self._transition(self.graph[task_id], TaskStatus.READY)

    def _promote_due_retries(self) -> None:
        now = time.monotonic()
        for task_id, due in sorted(self._retry_due.items()):
            if due > now:
                continue
            del self._retry_due[task_id]
            task = self.graph[task_id]
            if task.status == TaskStatus.FAILED and not task.terminal:
                logger.info("Retrying task {} (attempt {}/{})", task_id, task.attempts + 1, self.config.max_retries)
                self._transition(task, TaskStatus.READY, event="retry")

    def _has_ready(self) -> bool:
        return any(t.status == TaskStatus.READY for t in self.graph)

    def _next_retry_delay(self) -> Optional[float]:
        if not self._retry_due:
            return None
        return max(0.0, min(self._retry_due.values()) - time.monotonic())

    def _dispatch(self) -> None:
        ready = sorted(t.id for t in self.graph if t.status == TaskStatus.READY)
        for task_id in ready:
            if self._stopping:
                return
            task = self.graph[task_id]
            if task.status != TaskStatus.READY:
                continue

            try:
                selection = self._selection_for(task)
            except NoCapableWorkerError as exc:
                self._fail_unroutable(task, exc)
                continue

            capability = task.category
            if self._active[capability] >= self.config.capacity_for(capability):
                continue

            worker_id = selection.candidate(task.worker_index) or selection.primary
            worker = self.registry.worker_for(worker_id)
            if worker is None:
                event = task.record_blocker(BLOCKER_WORKER_UNAVAILABLE, f"worker '{worker_id}' has no implementation")
                self._transition(task, TaskStatus.BLOCKED, event="blocked", reason=event.reason)
                self._resolve(task, event)
                continue

            task.assign_capability(capability)
            task.attempts += 1
            descriptor = self._descriptor(task, worker_id)
            self._transition(task, TaskStatus.IN_PROGRESS, event="dispatched", worker=worker_id)
            self._active[capability] += 1
            future = asyncio.ensure_future(self._invoke(worker, descriptor))
            self._in_flight[future] = task_id
            logger.debug(
                "Dispatched {} to {} ({} {}/{})",
                task_id, worker_id, capability, self._active[capability], self.config.capacity_for(capability),
            )

    def _selection_for(self, task: Task) -> WorkerSelection:
        selection = self._selections.get(task.id)
        if selection is None:
            selection = self.router.route(task)
            self._selections[task.id] = selection
        return selection

    def _descriptor(self, task: Task, worker_id: str) -> TaskDescriptor:
        inputs: dict[str, Optional[str]] = {}
        stubs: dict[str, dict[str, Any]] = {}
        for dep_id, kind in sorted(task.depends_on.items()):
            dep = self.graph[dep_id]
            if dep.status == TaskStatus.COMPLETED:
                inputs[dep_id] = self.context.artifact_registry.get(
                    dep_id, dep.result.artifact if dep.result else None
                )
            elif kind == EdgeKind.SOFT:
                stubs[dep_id] = {"placeholder": True, "task_id": dep_id, "title": dep.title}
        return TaskDescriptor(
            task_id=task.id,
            title=task.title,
            category=task.category,
            description=task.description,
            acceptance_criteria=tuple(task.acceptance_criteria),
            inputs=inputs,
            stub_inputs=stubs,
            attempt=task.attempts,
            worker_id=worker_id,
        )

    async def _invoke(self, worker: Worker, descriptor: TaskDescriptor) -> WorkerOutcome:
        return await asyncio.wait_for(worker.invoke(descriptor), timeout=self.config.invocation_timeout)

    def _ordered(self, done: set[asyncio.Future[Any]]) -> list[asyncio.Future[WorkerOutcome]]:
        return sorted((f for f in done if f in self._in_flight), key=lambda f: self._in_flight[f])

    # ------------------------------------------------------------------
    # Completion handling
    # ------------------------------------------------------------------

    def _process(self, future: asyncio.Future[WorkerOutcome]) -> None:
        task_id = self._in_flight.pop(future)
        task = self.graph[task_id]
        self._active[task.category] -= 1

        try:
            outcome = future.result()
        except asyncio.TimeoutError:
            event = task.record_blocker(
                BLOCKER_TIMEOUT, f"no response within {self.config.invocation_timeout}s"
            )
            logger.warning("Task {} timed out after {}s", task_id, self.config.invocation_timeout)
            self._transition(task, TaskStatus.BLOCKED, event="blocked", reason=event.reason)
            self._resolve(task, event)
        except Exception as exc:
            logger.opt(exception=exc).warning("Worker raised on task {}", task_id)
            self._fail(task, f"{exc.__class__.__name__}: {exc}")
        else:
            if isinstance(outcome, BlockerEvent):
                event = task.record_blocker(outcome.reason or BLOCKER_WORKER, outcome.detail)
                logger.warning("Task {} blocked by worker: {}", task_id, event.reason)
                self._transition(task, TaskStatus.BLOCKED, event="blocked", reason=event.reason)
                self._resolve(task, event)
            elif isinstance(outcome, TaskResult):
                self._accept_result(task, outcome)
            else:
                self._fail(task, f"worker returned unsupported outcome {type(outcome).__name__}")

        self._checkpoint()

    def _accept_result(self, task: Task, result: TaskResult) -> None:
        unmet = result.unmet_criteria(task.acceptance_criteria)
        if unmet:
            self._fail(task, f"unmet acceptance criteria: {', '.join(unmet)}")
            return

        waiting = self._incomplete_soft_dependencies(task)
        if waiting:
            task.provisional_result = result
            task.record_blocker(BLOCKER_AWAITING_SOFT, f"waiting on {', '.join(waiting)}")
            logger.info("Task {} finished on stubs; parked until {} complete", task.id, ", ".join(waiting))
            self._transition(task, TaskStatus.BLOCKED, event="parked", reason=BLOCKER_AWAITING_SOFT)
            dead = [dep_id for dep_id in waiting if self._is_dead(self.graph[dep_id])]
            if dead:
                self._mark_dependency_failed(task, dead[0])
                self._propagate_failure(task, origin=dead[0])
            return

        self._complete(task, result)

    def _complete(self, task: Task, result: TaskResult) -> None:
        task.result = result
        task.provisional_result = None
        task.last_error = None
        self.synthesizer.absorb(task.id, result, task.category)
        self._transition(task, TaskStatus.COMPLETED, event="completed")

    def _fail(self, task: Task, error: str) -> None:
        task.last_error = error
        event = task.record_blocker(BLOCKER_INVOCATION_FAILED, error)
        if task.attempts >= self.config.max_retries:
            task.terminal = True
            event.resolution_state = ResolutionState.ESCALATED
            logger.error("Task {} failed permanently after {} attempt(s): {}", task.id, task.attempts, error)
            self._transition(task, TaskStatus.FAILED, event="failed", error=error)
            self._on_terminal_failure(task)
            return

        event.resolution_state = ResolutionState.RETRIED
        delay = self.config.backoff_for(task.attempts)
        self._retry_due[task.id] = time.monotonic() + delay
        logger.warning(
            "Task {} failed (attempt {}/{}), retrying in {:.2f}s: {}",
            task.id, task.attempts, self.config.max_retries, delay, error,
        )
        self._transition(task, TaskStatus.FAILED, event="failed", error=error)

    def _fail_unroutable(self, task: Task, exc: NoCapableWorkerError) -> None:
        task.last_error = str(exc)
        task.terminal = True
        event = task.record_blocker(BLOCKER_NO_CAPABLE_WORKER, str(exc))
        event.resolution_state = ResolutionState.ESCALATED
        logger.error("{}", exc)
        self._transition(task, TaskStatus.FAILED, event="failed", error=str(exc))
        self._on_terminal_failure(task)

    def _on_terminal_failure(self, task: Task) -> None:
        self._propagate_failure(task)
        if task.id in self.config.critical_task_ids:
            self._halt(task)

    def _halt(self, task: Task) -> None:
        if self._halted_by is None:
            self._halted_by = task.id
            logger.error("Critical task {} failed; halting orchestration", task.id)
            self._wake()

    def _propagate_failure(self, source: Task, origin: Optional[str] = None) -> None:
        """Derive Blocked for everything downstream of *source*.

        *origin* names the terminally failed task in blocker details and
        defaults to *source* itself.
        """
        origin = origin or source.id
        queue: deque[str] = deque(self.graph.dependents(source.id))
        seen: set[str] = set()
        while queue:
            task_id = queue.popleft()
            if task_id in seen:
                continue
            seen.add(task_id)
            task = self.graph[task_id]
            if task.status in (TaskStatus.PENDING, TaskStatus.READY):
                task.record_blocker(BLOCKER_DEPENDENCY_FAILED, f"upstream task {origin} failed")
                self._transition(task, TaskStatus.BLOCKED, event="blocked", reason=BLOCKER_DEPENDENCY_FAILED)
            elif task.status == TaskStatus.BLOCKED and not self._held_by_failure(task):
                self._mark_dependency_failed(task, origin)
            else:
                continue
            queue.extend(self.graph.dependents(task_id))

    def _mark_dependency_failed(self, task: Task, origin: str) -> None:
        """Record that an already Blocked task can no longer complete."""
        for event in task.open_blockers:
            if event.reason in PASSIVE_BLOCKER_REASONS:
                event.resolution_state = ResolutionState.RESOLVED
        task.record_blocker(BLOCKER_DEPENDENCY_FAILED, f"upstream task {origin} failed")
        logger.warning("Task {} can no longer complete: upstream task {} failed", task.id, origin)

    def _held_by_failure(self, task: Task) -> bool:
        return any(e.reason == BLOCKER_DEPENDENCY_FAILED for e in task.open_blockers)

    def _is_dead(self, task: Task) -> bool:
        if task.status == TaskStatus.FAILED:
            return task.terminal
        return task.status == TaskStatus.BLOCKED and self._held_by_failure(task)

    # ------------------------------------------------------------------
    # Blockers and soft dependencies
    # ------------------------------------------------------------------

    def _resolve(self, task: Task, event: BlockerEvent) -> None:
        """Try reassignment, then escalation. Leaves the task Blocked on failure."""
        selection = self._selections.get(task.id)
        next_index = task.worker_index + 1
        next_worker = selection.candidate(next_index) if selection else None
        if next_worker is not None and not self._stopping:
            task.worker_index = next_index
            event.resolution_state = ResolutionState.REASSIGNED
            label = "backup" if selection is not None and selection.is_backup(next_index) else "fallback"
            logger.info("Reassigning task {} to {} worker {} after '{}'", task.id, label, next_worker, event.reason)
            self._transition(task, TaskStatus.READY, event="reassigned", worker=next_worker)
            return

        event.resolution_state = ResolutionState.ESCALATED
        if event.reason == BLOCKER_WORKER_UNAVAILABLE:
            # stays open until an implementation is bound and the blocker resolved
            logger.warning("Task {} has no invokable worker left; blocker left open", task.id)
            return
        if self.escalation_handler is None:
            logger.warning("Blocker '{}' on task {} escalated; no worker left to take it", event.reason, task.id)
            return

        try:
            decision = self.escalation_handler(task, event)
        except Exception:
            logger.exception("Escalation handler failed for task {}", task.id)
            return

        if decision == "retry":
            if task.attempts >= self.config.max_retries:
                logger.warning("Escalation asked to retry {} but it already used {} attempt(s)", task.id, task.attempts)
                return
            event.resolution_state = ResolutionState.RETRIED
        elif decision == "resolved":
            event.resolution_state = ResolutionState.RESOLVED
        else:
            logger.warning("Blocker '{}' on task {} left open for outside resolution", event.reason, task.id)
            return
        self._transition(task, TaskStatus.READY, event="escalation_" + decision)

    def _incomplete_soft_dependencies(self, task: Task) -> list[str]:
        return [
            dep_id
            for dep_id in self.graph.dependencies(task.id, EdgeKind.SOFT)
            if self.graph[dep_id].status != TaskStatus.COMPLETED
        ]

    def _settle_parked(self) -> None:
        """Release tasks that were parked on soft dependencies which have now completed."""
        for task in sorted(self.graph, key=lambda t: t.id):
            if task.status != TaskStatus.BLOCKED:
                continue
            open_events = task.open_blockers
            if not open_events or any(e.reason not in PASSIVE_BLOCKER_REASONS for e in open_events):
                continue
            if self._incomplete_soft_dependencies(task):
                continue

            provisional = task.provisional_result
            if self.config.soft_dependency_policy == SOFT_POLICY_ACCEPT and provisional is not None:
                for event in open_events:
                    event.resolution_state = ResolutionState.RESOLVED
                logger.info("Soft dependencies of {} completed; accepting provisional result", task.id)
                self._transition(task, TaskStatus.READY, event="soft_dependencies_met")
                self._transition(task, TaskStatus.IN_PROGRESS, event="accepting_provisional")
                self._complete(task, provisional)
            else:
                for event in open_events:
                    event.resolution_state = ResolutionState.RETRIED
                task.provisional_result = None
                logger.info("Soft dependencies of {} completed; re-running with real inputs", task.id)
                self._transition(task, TaskStatus.READY, event="soft_dependencies_met")

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _transition(self, task: Task, target: TaskStatus, **trigger: Any) -> None:
        previous = fsm.transition(task, target)
        logger.debug("Task {}: {} -> {}", task.id, previous.value, target.value)
        self._publish({"task_id": task.id, "from": previous.value, "to": target.value, **trigger})

    def _publish(self, trigger: dict[str, Any]) -> ProgressSummary:
        summary = self.tracker.summary(
            self.graph,
            context=self.context,
            elapsed_seconds=self._elapsed(),
            halted=self._halted_by is not None,
            trigger=trigger,
        )
        self.feed.publish(summary)
        return summary

    def _checkpoint(self) -> None:
        if self.store is not None:
            self.store.save(self.graph, self.context)

    def _elapsed(self) -> float:
        return time.monotonic() - self._started if self._started is not None else 0.0

    def _wake(self) -> None:
        if self._wakeup is not None:
            self._wakeup.set()
