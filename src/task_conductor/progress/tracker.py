"""Progress tracker: status summaries and run health.

Health is the single channel through which failure severity leaves the engine.
It is derived from open blockers, terminally failed tasks, unresolved decision
conflicts and whether the run is behind its critical-path estimate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from loguru import logger
from rich.console import Console
from rich.table import Table

from ..config import HealthThresholds
from ..constants import HEALTH_CRITICAL, HEALTH_HEALTHY, HEALTH_WARNING, UNCOUNTED_BLOCKER_REASONS
from ..context.synthesizer import ProjectContext
from ..graph.model import TaskStatus
from ..graph.resolver import critical_path, remaining_critical_effort
from ..graph.task_graph import TaskGraph
from ..utils import _now_iso


@dataclass
class ProgressSummary:
    """Snapshot of run progress at one status transition."""

    timestamp: str
    counts: dict[str, int]
    total: int
    percent_complete: float
    phases: dict[str, float] = field(default_factory=dict)
    open_blockers: int = 0
    failed_tasks: list[str] = field(default_factory=list)
    unresolved_conflicts: int = 0
    behind_schedule: bool = False
    health: str = HEALTH_HEALTHY
    health_items: list[str] = field(default_factory=list)
    trigger: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "counts": dict(self.counts),
            "total": self.total,
            "percent_complete": self.percent_complete,
            "phases": dict(self.phases),
            "open_blockers": self.open_blockers,
            "failed_tasks": list(self.failed_tasks),
            "unresolved_conflicts": self.unresolved_conflicts,
            "behind_schedule": self.behind_schedule,
            "health": self.health,
            "health_items": list(self.health_items),
            "trigger": dict(self.trigger) if self.trigger else None,
        }


class ProgressTracker:
    """Derive :class:`ProgressSummary` objects from the graph.

    Args:
        thresholds: Blocker/failure counts that raise health to warning or
            critical.
        phases: Caller-supplied partition of task ids, keyed by phase name.
        critical_task_ids: Tasks whose terminal failure makes health critical.
        effort_unit_seconds: Wall-clock seconds per effort point. Enables the
            behind-schedule check when set.
        schedule_tolerance: Fraction of the critical-path estimate the run may
            overrun before it counts as behind.
    """

    def __init__(
        self,
        thresholds: Optional[HealthThresholds] = None,
        phases: Optional[Mapping[str, Iterable[str]]] = None,
        *,
        critical_task_ids: Iterable[str] = (),
        effort_unit_seconds: Optional[float] = None,
        schedule_tolerance: float = 0.0,
    ) -> None:
        self.thresholds = thresholds or HealthThresholds()
        self.phases = {name: list(ids) for name, ids in (phases or {}).items()}
        self.critical_task_ids = frozenset(critical_task_ids)
        self.effort_unit_seconds = effort_unit_seconds
        self.schedule_tolerance = schedule_tolerance

    def summary(
        self,
        graph: TaskGraph,
        statuses: Optional[Mapping[str, TaskStatus | str]] = None,
        *,
        context: Optional[ProjectContext] = None,
        elapsed_seconds: Optional[float] = None,
        halted: bool = False,
        trigger: Optional[dict[str, Any]] = None,
    ) -> ProgressSummary:
        current = (
            {tid: TaskStatus(s) for tid, s in statuses.items()}
            if statuses is not None
            else graph.statuses()
        )

        counts = {status.value: 0 for status in TaskStatus}
        for tid in graph.task_ids():
            status = current.get(tid, TaskStatus.PENDING)
            counts[status.value] += 1
        total = len(graph)
        completed = counts[TaskStatus.COMPLETED.value]
        percent = round(100.0 * completed / total, 2) if total else 0.0

        phases: dict[str, float] = {}
        for name, ids in self.phases.items():
            known = [tid for tid in ids if tid in graph]
            done = sum(1 for tid in known if current.get(tid) == TaskStatus.COMPLETED)
            phases[name] = round(100.0 * done / len(known), 2) if known else 0.0

        open_blockers = 0
        failed: list[str] = []
        for task in graph:
            if current.get(task.id) == TaskStatus.BLOCKED:
                open_blockers += sum(1 for b in task.open_blockers if b.reason not in UNCOUNTED_BLOCKER_REASONS)
            if current.get(task.id) == TaskStatus.FAILED and task.terminal:
                failed.append(task.id)
        failed.sort()

        conflicts = len(context.unresolved_conflicts()) if context is not None else 0
        behind = self._behind_schedule(graph, elapsed_seconds)

        health, items = self._classify(
            open_blockers=open_blockers,
            failed=failed,
            conflicts=conflicts,
            behind=behind,
            halted=halted,
        )

        return ProgressSummary(
            timestamp=_now_iso(),
            counts=counts,
            total=total,
            percent_complete=percent,
            phases=phases,
            open_blockers=open_blockers,
            failed_tasks=failed,
            unresolved_conflicts=conflicts,
            behind_schedule=behind,
            health=health,
            health_items=items,
            trigger=trigger,
        )

    # -- internals -------------------------------------------------------------

    def _behind_schedule(self, graph: TaskGraph, elapsed_seconds: Optional[float]) -> bool:
        if not self.effort_unit_seconds or elapsed_seconds is None or not len(graph):
            return False
        estimate = critical_path(graph).total_effort * self.effort_unit_seconds
        projected = elapsed_seconds + remaining_critical_effort(graph) * self.effort_unit_seconds
        return projected > estimate * (1.0 + self.schedule_tolerance)

    def _classify(
        self,
        *,
        open_blockers: int,
        failed: list[str],
        conflicts: int,
        behind: bool,
        halted: bool,
    ) -> tuple[str, list[str]]:
        t = self.thresholds
        critical: list[str] = []
        warning: list[str] = []

        failed_critical = sorted(set(failed) & self.critical_task_ids)
        if failed_critical:
            critical.append(f"critical task(s) failed: {', '.join(failed_critical)}")
        elif halted:
            critical.append("run halted by a critical task")

        if open_blockers >= t.critical_blockers:
            critical.append(f"{open_blockers} open blocker(s) (critical at {t.critical_blockers})")
        elif open_blockers >= t.warning_blockers:
            warning.append(f"{open_blockers} open blocker(s) (warning at {t.warning_blockers})")

        if len(failed) >= t.critical_failures:
            critical.append(f"{len(failed)} failed task(s) (critical at {t.critical_failures})")
        elif len(failed) >= t.warning_failures:
            warning.append(f"{len(failed)} failed task(s): {', '.join(failed)}")

        if conflicts:
            warning.append(f"{conflicts} unresolved decision conflict(s) awaiting adjudication")
        if behind:
            warning.append("behind critical-path estimate")

        if critical:
            return HEALTH_CRITICAL, critical + warning
        if warning:
            return HEALTH_WARNING, warning
        return HEALTH_HEALTHY, []


def render_summary(summary: ProgressSummary) -> str:
    """Render a summary as a table.

    Args:
        summary: Summary to render.

    Returns:
        Plain-text table plus health lines.
    """
    console = Console(record=True, width=100)

    table = Table(title="Orchestration Progress", show_header=True)
    table.add_column("Status", style="cyan")
    table.add_column("Tasks", justify="right")
    for status, count in summary.counts.items():
        table.add_row(status, str(count))
    table.add_row("[bold]total[/bold]", str(summary.total))
    console.print(table)

    console.print(f"Complete: {summary.percent_complete:.1f}%")
    for name, pct in summary.phases.items():
        console.print(f"  {name}: {pct:.1f}%")

    style = {HEALTH_HEALTHY: "green", HEALTH_WARNING: "yellow", HEALTH_CRITICAL: "red"}.get(summary.health, "white")
    console.print(f"Health: [{style}]{summary.health}[/{style}]")
    for item in summary.health_items:
        console.print(f"  - {item}")

    logger.debug("Rendered progress summary ({} tasks, health={})", summary.total, summary.health)
    return console.export_text()
