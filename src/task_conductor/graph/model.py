"""Task model for the orchestration graph.

Defines the task record, its lifecycle and effort enums, dependency edge kinds,
blocker events, and the result a worker hands back on completion. Everything
here is a plain dataclass that round-trips through ``to_dict``/``from_dict`` so
run state can be persisted as YAML.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..errors import ImmutableFieldError
from ..utils import _now_iso


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Lifecycle state of a task."""

    PENDING = "pending"
    READY = "ready"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    FAILED = "failed"


class EffortEstimate(str, Enum):
    """T-shirt size effort estimate."""

    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"

    @property
    def weight(self) -> int:
        return {"XS": 1, "S": 2, "M": 3, "L": 5, "XL": 8}[self.value]


class EdgeKind(str, Enum):
    """How strongly a dependent is tied to its dependency."""

    HARD = "hard"  # cannot start until the dependency completes
    SOFT = "soft"  # may start on stubs, cannot complete before the dependency


class ResolutionState(str, Enum):
    OPEN = "open"
    REASSIGNED = "reassigned"
    RETRIED = "retried"
    ESCALATED = "escalated"
    RESOLVED = "resolved"


def _enum(enum_cls: type[Enum], raw: Any, default: Enum) -> Any:
    if raw is None:
        return default
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except (ValueError, KeyError):
        return default


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class BlockerEvent:
    """An obstruction that local retry alone cannot clear."""

    task_id: str
    reason: str
    timestamp: str = field(default_factory=_now_iso)
    resolution_state: ResolutionState = ResolutionState.OPEN
    detail: Optional[str] = None

    @property
    def is_open(self) -> bool:
        """Escalated blockers stay open until someone outside the engine resolves them."""
        return self.resolution_state in (ResolutionState.OPEN, ResolutionState.ESCALATED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "reason": self.reason,
            "timestamp": self.timestamp,
            "resolution_state": self.resolution_state.value,
            "detail": self.detail,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BlockerEvent":
        return cls(
            task_id=str(data.get("task_id") or ""),
            reason=str(data.get("reason") or "unknown"),
            timestamp=str(data.get("timestamp") or _now_iso()),
            resolution_state=_enum(ResolutionState, data.get("resolution_state"), ResolutionState.OPEN),
            detail=data.get("detail"),
        )


@dataclass(frozen=True)
class Decision:
    """A decision a worker made while completing a task."""

    subject: str
    decision: str
    rationale: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"subject": self.subject, "decision": self.decision, "rationale": self.rationale}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Decision":
        return cls(
            subject=str(data.get("subject") or ""),
            decision=str(data.get("decision") or ""),
            rationale=str(data.get("rationale") or ""),
        )


@dataclass
class TaskResult:
    """What a worker returns when it finishes a task.

    ``criteria_met`` lists the acceptance criteria the worker claims to have
    satisfied; any criterion of the task missing from it counts as unmet.
    """

    artifact: Optional[str] = None
    decisions: list[Decision] = field(default_factory=list)
    criteria_met: list[str] = field(default_factory=list)
    produced_at: str = field(default_factory=_now_iso)
    notes: Optional[str] = None

    def unmet_criteria(self, criteria: list[str]) -> list[str]:
        met = set(self.criteria_met)
        return [c for c in criteria if c not in met]

    def to_dict(self) -> dict[str, Any]:
        return {
            "artifact": self.artifact,
            "decisions": [d.to_dict() for d in self.decisions],
            "criteria_met": list(self.criteria_met),
            "produced_at": self.produced_at,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TaskResult":
        return cls(
            artifact=data.get("artifact"),
            decisions=[Decision.from_dict(d) for d in list(data.get("decisions") or []) if isinstance(d, dict)],
            criteria_met=[str(c) for c in list(data.get("criteria_met") or [])],
            produced_at=str(data.get("produced_at") or _now_iso()),
            notes=data.get("notes"),
        )


# ---------------------------------------------------------------------------
# Task dataclass
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A unit of schedulable work.

    ``depends_on`` is the only authored edge data. ``blocks`` is its inverse and
    is maintained by :class:`~task_conductor.graph.task_graph.TaskGraph`;
    values supplied by callers are discarded when the task enters a graph.
    """

    # Identity
    id: str
    title: str = ""
    description: str = ""

    # Classification
    category: str = ""
    effort: EffortEstimate = EffortEstimate.M
    acceptance_criteria: list[str] = field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING

    # Dependencies
    depends_on: dict[str, EdgeKind] = field(default_factory=dict)
    blocks: list[str] = field(default_factory=list)

    # Execution tracking
    assigned_capability: Optional[str] = None
    result: Optional[TaskResult] = None
    provisional_result: Optional[TaskResult] = None
    blocker_history: list[BlockerEvent] = field(default_factory=list)
    attempts: int = 0
    worker_index: int = 0
    last_error: Optional[str] = None
    terminal: bool = False  # failed with no retries left

    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)
    completed_at: Optional[str] = None

    metadata: dict[str, Any] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for YAML/JSON persistence."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "effort": self.effort.value,
            "acceptance_criteria": list(self.acceptance_criteria),
            "status": self.status.value,
            "depends_on": {dep: kind.value for dep, kind in self.depends_on.items()},
            "blocks": list(self.blocks),
            "assigned_capability": self.assigned_capability,
            "result": self.result.to_dict() if self.result else None,
            "provisional_result": self.provisional_result.to_dict() if self.provisional_result else None,
            "blocker_history": [b.to_dict() for b in self.blocker_history],
            "attempts": self.attempts,
            "worker_index": self.worker_index,
            "last_error": self.last_error,
            "terminal": self.terminal,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "completed_at": self.completed_at,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Deserialize from a plain dict, coercing enums gracefully.

        ``depends_on`` may be a mapping of id to kind or a plain list of ids
        (all hard).
        """
        raw_deps = data.get("depends_on") or {}
        if isinstance(raw_deps, dict):
            depends_on = {str(k): _enum(EdgeKind, v, EdgeKind.HARD) for k, v in raw_deps.items()}
        else:
            depends_on = {str(k): EdgeKind.HARD for k in raw_deps}

        result = data.get("result")
        provisional = data.get("provisional_result")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            category=str(data.get("category") or ""),
            effort=_enum(EffortEstimate, data.get("effort"), EffortEstimate.M),
            acceptance_criteria=[str(c) for c in list(data.get("acceptance_criteria") or [])],
            status=_enum(TaskStatus, data.get("status"), TaskStatus.PENDING),
            depends_on=depends_on,
            blocks=[str(b) for b in list(data.get("blocks") or [])],
            assigned_capability=data.get("assigned_capability"),
            result=TaskResult.from_dict(result) if isinstance(result, dict) else None,
            provisional_result=TaskResult.from_dict(provisional) if isinstance(provisional, dict) else None,
            blocker_history=[
                BlockerEvent.from_dict(b) for b in list(data.get("blocker_history") or []) if isinstance(b, dict)
            ],
            attempts=int(data.get("attempts") or 0),
            worker_index=int(data.get("worker_index") or 0),
            last_error=data.get("last_error"),
            terminal=bool(data.get("terminal", False)),
            created_at=str(data.get("created_at") or _now_iso()),
            updated_at=str(data.get("updated_at") or _now_iso()),
            completed_at=data.get("completed_at"),
            metadata=dict(data.get("metadata") or {}),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def touch(self) -> None:
        """Bump ``updated_at`` to now."""
        self.updated_at = _now_iso()

    def assign_capability(self, capability: str) -> None:
        if self.assigned_capability is not None and self.assigned_capability != capability:
            raise ImmutableFieldError(
                f"Task {self.id} is already assigned to capability "
                f"'{self.assigned_capability}', cannot reassign to '{capability}'"
            )
        self.assigned_capability = capability
        self.touch()

    def record_blocker(self, reason: str, detail: Optional[str] = None) -> BlockerEvent:
        event = BlockerEvent(task_id=self.id, reason=reason, detail=detail)
        self.blocker_history.append(event)
        self.touch()
        return event

    @property
    def open_blockers(self) -> list[BlockerEvent]:
        return [b for b in self.blocker_history if b.is_open]

    @property
    def latest_blocker(self) -> Optional[BlockerEvent]:
        return self.blocker_history[-1] if self.blocker_history else None
