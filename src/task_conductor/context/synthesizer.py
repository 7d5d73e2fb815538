"""Context synthesizer: folds worker results into one project context.

The :class:`ProjectContext` is append-only. Conflicting decisions on the same
subject are settled by the authority rank of the capability that produced
them; equal-rank conflicts are kept side by side and flagged for outside
adjudication instead of overwriting each other.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from loguru import logger

from ..errors import ContextError
from ..graph.model import Decision, TaskResult
from ..utils import _now_iso


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class DecisionRecord:
    """One entry of the decision log.

    ``supersedes`` points at the record this one overrides. ``overruled_by``
    is set when a higher-authority record already held the subject at the time
    this one arrived. ``conflict`` marks an unsettled equal-rank disagreement.
    """
    id: str
    subject: str
    decision: str
    rationale: str
    author_context: dict[str, Any]
    timestamp: str
    supersedes: Optional[str] = None
    overruled_by: Optional[str] = None
    conflict: bool = False
    adjudicates: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "decision": self.decision,
            "rationale": self.rationale,
            "author_context": dict(self.author_context),
            "timestamp": self.timestamp,
            "supersedes": self.supersedes,
            "overruled_by": self.overruled_by,
            "conflict": self.conflict,
            "adjudicates": self.adjudicates,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DecisionRecord":
        return cls(
            id=str(data["id"]),
            subject=str(data.get("subject") or ""),
            decision=str(data.get("decision") or ""),
            rationale=str(data.get("rationale") or ""),
            author_context=dict(data.get("author_context") or {}),
            timestamp=str(data.get("timestamp") or ""),
            supersedes=data.get("supersedes"),
            overruled_by=data.get("overruled_by"),
            conflict=bool(data.get("conflict", False)),
            adjudicates=data.get("adjudicates"),
        )


@dataclass
class ConflictFlag:
    """Equal-authority disagreement awaiting external adjudication."""
    id: str
    subject: str
    record_ids: list[str]
    timestamp: str
    resolved_by: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.resolved_by is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "subject": self.subject,
            "record_ids": list(self.record_ids),
            "timestamp": self.timestamp,
            "resolved_by": self.resolved_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConflictFlag":
        return cls(
            id=str(data["id"]),
            subject=str(data.get("subject") or ""),
            record_ids=[str(r) for r in list(data.get("record_ids") or [])],
            timestamp=str(data.get("timestamp") or ""),
            resolved_by=data.get("resolved_by"),
        )


@dataclass
class JournalEntry:
    """One absorbed result, kept so the context can be rebuilt by replay."""
    task_id: str
    capability: str
    result: TaskResult

    def to_dict(self) -> dict[str, Any]:
        return {"task_id": self.task_id, "capability": self.capability, "result": self.result.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JournalEntry":
        return cls(
            task_id=str(data["task_id"]),
            capability=str(data.get("capability") or ""),
            result=TaskResult.from_dict(dict(data.get("result") or {})),
        )


@dataclass
class ProjectContext:
    """Shared, append-only record of decisions and produced artifacts."""
    decision_log: list[DecisionRecord] = field(default_factory=list)
    artifact_registry: dict[str, Optional[str]] = field(default_factory=dict)
    conflict_flags: list[ConflictFlag] = field(default_factory=list)
    journal: list[JournalEntry] = field(default_factory=list)

    def unresolved_conflicts(self) -> list[ConflictFlag]:
        return [f for f in self.conflict_flags if not f.resolved]

    def records_for(self, subject: str) -> list[DecisionRecord]:
        return [r for r in self.decision_log if r.subject == subject]

    def to_dict(self) -> dict[str, Any]:
        return {
            "decision_log": [r.to_dict() for r in self.decision_log],
            "artifact_registry": dict(self.artifact_registry),
            "conflict_flags": [f.to_dict() for f in self.conflict_flags],
            "journal": [e.to_dict() for e in self.journal],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectContext":
        return cls(
            decision_log=[
                DecisionRecord.from_dict(r) for r in list(data.get("decision_log") or []) if isinstance(r, dict)
            ],
            artifact_registry=dict(data.get("artifact_registry") or {}),
            conflict_flags=[
                ConflictFlag.from_dict(f) for f in list(data.get("conflict_flags") or []) if isinstance(f, dict)
            ],
            journal=[JournalEntry.from_dict(e) for e in list(data.get("journal") or []) if isinstance(e, dict)],
        )


# ---------------------------------------------------------------------------
# Synthesizer
# ---------------------------------------------------------------------------

class ContextSynthesizer:
    """Single writer of a :class:`ProjectContext`.

    Args:
        context: Context to append to; a fresh one is created when omitted.
        authority_ranking: Capabilities ordered from highest to lowest
            authority. Capabilities not listed rank below all listed ones.
        clock: Timestamp source for records that do not come from a worker
            result (adjudications).
    """

    def __init__(
        self,
        context: Optional[ProjectContext] = None,
        authority_ranking: Iterable[str] = (),
        clock: Optional[Callable[[], str]] = None,
    ) -> None:
        self.context = context if context is not None else ProjectContext()
        self.authority_ranking = tuple(authority_ranking)
        self._clock = clock or _now_iso

    # -- authority -----------------------------------------------------------

    def rank(self, capability: Optional[str]) -> int:
        """Lower is more authoritative."""
        try:
            return self.authority_ranking.index(capability or "")
        except ValueError:
            return len(self.authority_ranking)

    # -- absorb --------------------------------------------------------------

    def absorb(self, task_id: str, result: TaskResult, capability: str) -> list[DecisionRecord]:
        """Register a completed task's artifact and decisions.

        Returns the decision records appended for this result.
        """
        if task_id in self.context.artifact_registry:
            raise ContextError(f"Result for task {task_id} was already absorbed")

        self.context.artifact_registry[task_id] = result.artifact
        self.context.journal.append(JournalEntry(task_id=task_id, capability=capability, result=result))

        appended = [
            self._record(decision, task_id, capability, result.produced_at)
            for decision in result.decisions
        ]
        logger.debug(
            "Absorbed task {} ({} decision(s), artifact={})",
            task_id, len(appended), result.artifact,
        )
        return appended

    def _record(self, decision: Decision, task_id: str, capability: str, timestamp: str) -> DecisionRecord:
        current = self.active_decisions().get(decision.subject)
        record = DecisionRecord(
            id=f"dec-{len(self.context.decision_log) + 1:04d}",
            subject=decision.subject,
            decision=decision.decision,
            rationale=decision.rationale,
            author_context={"task_id": task_id, "capability": capability},
            timestamp=timestamp,
        )

        if current is not None and current.decision != decision.decision:
            incoming = self.rank(capability)
            holding = self.rank(current.author_context.get("capability"))
            if incoming < holding:
                record.supersedes = current.id
                logger.info(
                    "Decision on '{}' from {} ({}) supersedes {}",
                    decision.subject, task_id, capability, current.id,
                )
            elif incoming > holding:
                record.overruled_by = current.id
                logger.info(
                    "Decision on '{}' from {} ({}) overruled by {}",
                    decision.subject, task_id, capability, current.id,
                )
            else:
                record.conflict = True
                flag = ConflictFlag(
                    id=f"conflict-{len(self.context.conflict_flags) + 1:04d}",
                    subject=decision.subject,
                    record_ids=[current.id, record.id],
                    timestamp=timestamp,
                )
                self.context.conflict_flags.append(flag)
                logger.warning(
                    "Unresolved conflict {} on '{}' between {} and {} (equal authority)",
                    flag.id, decision.subject, current.id, record.id,
                )

        self.context.decision_log.append(record)
        return record

    # -- views ---------------------------------------------------------------

    def active_decisions(self) -> dict[str, DecisionRecord]:
        """The record currently holding each subject."""
        active: dict[str, DecisionRecord] = {}
        for record in self.context.decision_log:
            if record.overruled_by is not None:
                continue
            active[record.subject] = record
        return active

    def unresolved_conflicts(self) -> list[ConflictFlag]:
        return self.context.unresolved_conflicts()

    # -- adjudication --------------------------------------------------------

    def adjudicate(self, flag_id: str, record_id: str, rationale: str = "") -> DecisionRecord:
        """Settle a conflict flag in favour of one of its records.

        Appends a new record restating the chosen decision; nothing already in
        the log is changed.
        """
        flag = next((f for f in self.context.conflict_flags if f.id == flag_id), None)
        if flag is None:
            raise ContextError(f"Unknown conflict flag '{flag_id}'")
        if flag.resolved:
            raise ContextError(f"Conflict {flag_id} was already resolved by {flag.resolved_by}")
        if record_id not in flag.record_ids:
            raise ContextError(f"Record {record_id} is not part of conflict {flag_id}")

        chosen = next(r for r in self.context.decision_log if r.id == record_id)
        record = DecisionRecord(
            id=f"dec-{len(self.context.decision_log) + 1:04d}",
            subject=chosen.subject,
            decision=chosen.decision,
            rationale=rationale or chosen.rationale,
            author_context={"adjudication": flag_id, **chosen.author_context},
            timestamp=self._clock(),
            supersedes=record_id,
            adjudicates=flag_id,
        )
        self.context.decision_log.append(record)
        flag.resolved_by = record.id
        logger.info("Conflict {} on '{}' adjudicated in favour of {}", flag_id, flag.subject, record_id)
        return record

    # -- replay --------------------------------------------------------------

    @classmethod
    def replay(
        cls,
        entries: Iterable[JournalEntry],
        authority_ranking: Iterable[str] = (),
    ) -> ProjectContext:
        """Rebuild a context from a journal of absorbed results."""
        synthesizer = cls(authority_ranking=authority_ranking)
        for entry in entries:
            synthesizer.absorb(entry.task_id, entry.result, entry.capability)
        return synthesizer.context
