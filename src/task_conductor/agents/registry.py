"""Worker registry: which workers exist and which capabilities they serve.

A *WorkerSpec* is the routing description of a worker: primary capability tags
with a priority rank, plus backup capability tags. The registry may also hold
the invokable implementation for each spec; routing only ever looks at specs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Optional

import yaml

if TYPE_CHECKING:
    from ..engine.worker import Worker

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Worker spec
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WorkerSpec:
    """Immutable routing description of a worker.

    Ranks order workers within a capability; lower rank is preferred.
    """
    id: str
    capabilities: dict[str, int] = field(default_factory=dict)
    backup_capabilities: dict[str, int] = field(default_factory=dict)
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def primary_rank(self, capability: str) -> Optional[int]:
        return self.capabilities.get(capability)

    def backup_rank(self, capability: str) -> Optional[int]:
        return self.backup_capabilities.get(capability)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "capabilities": dict(self.capabilities),
            "backup_capabilities": dict(self.backup_capabilities),
            "description": self.description,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkerSpec":
        """Build a spec from a mapping.

        Capability fields accept either ``{tag: rank}`` or a list of tags, in
        which case list position is the rank.
        """
        known = {"id", "capabilities", "backup_capabilities", "description", "metadata"}
        extra = {k: v for k, v in data.items() if k not in known}
        return cls(
            id=str(data["id"]),
            capabilities=_parse_ranks(data.get("capabilities")),
            backup_capabilities=_parse_ranks(data.get("backup_capabilities")),
            description=str(data.get("description") or ""),
            metadata={**dict(data.get("metadata") or {}), **extra},
        )


def _parse_ranks(raw: Any) -> dict[str, int]:
    if isinstance(raw, dict):
        return {str(tag): int(rank) for tag, rank in raw.items()}
    if isinstance(raw, (list, tuple)):
        return {str(tag): idx for idx, tag in enumerate(raw)}
    if isinstance(raw, str) and raw:
        return {raw: 0}
    return {}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class WorkerRegistry:
    """Registry of known workers and, optionally, their implementations."""

    def __init__(self, specs: Optional[Iterable[WorkerSpec]] = None) -> None:
        self._specs: dict[str, WorkerSpec] = {}
        self._impls: dict[str, "Worker"] = {}
        for spec in specs or []:
            self.register(spec)

    # -- query ---------------------------------------------------------------

    def get(self, worker_id: str) -> WorkerSpec:
        if worker_id not in self._specs:
            available = ", ".join(sorted(self._specs.keys()))
            raise KeyError(f"Unknown worker '{worker_id}' (available: {available})")
        return self._specs[worker_id]

    def has(self, worker_id: str) -> bool:
        return worker_id in self._specs

    def list_workers(self) -> list[WorkerSpec]:
        return [self._specs[wid] for wid in sorted(self._specs)]

    def capabilities(self) -> set[str]:
        tags: set[str] = set()
        for spec in self._specs.values():
            tags.update(spec.capabilities)
            tags.update(spec.backup_capabilities)
        return tags

    def worker_for(self, worker_id: str) -> Optional["Worker"]:
        return self._impls.get(worker_id)

    def __len__(self) -> int:
        return len(self._specs)

    # -- mutation ------------------------------------------------------------

    def register(self, spec: WorkerSpec, worker: Optional["Worker"] = None) -> None:
        self._specs[spec.id] = spec
        if worker is not None:
            self._impls[spec.id] = worker

    def bind(self, worker_id: str, worker: "Worker") -> None:
        """Attach an implementation to an already registered spec."""
        self.get(worker_id)
        self._impls[worker_id] = worker

    def unregister(self, worker_id: str) -> None:
        self._specs.pop(worker_id, None)
        self._impls.pop(worker_id, None)

    # -- loading -------------------------------------------------------------

    @classmethod
    def from_dicts(cls, entries: Iterable[dict[str, Any]]) -> "WorkerRegistry":
        registry = cls()
        for entry in entries:
            registry._load_entry(entry)
        return registry

    def load_from_yaml(self, path: Path) -> None:
        """Load worker definitions from a YAML file.

        The file should contain a ``workers`` key with a list of entries, each
        with at least an ``id``. Entries for an existing id replace it but keep
        any bound implementation.
        """
        if not path.exists():
            logger.debug("Worker YAML file does not exist: %s", path)
            return

        with open(path, "r") as fh:
            data = yaml.safe_load(fh)

        if not isinstance(data, dict):
            logger.warning("Worker YAML root is not a mapping: %s", path)
            return

        workers_list = data.get("workers")
        if not isinstance(workers_list, list):
            logger.warning("Worker YAML missing 'workers' list: %s", path)
            return

        for entry in workers_list:
            self._load_entry(entry)

    def _load_entry(self, entry: Any) -> None:
        if not isinstance(entry, dict) or "id" not in entry:
            logger.warning("Skipping worker entry without 'id': %s", entry)
            return
        try:
            spec = WorkerSpec.from_dict(entry)
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping malformed worker entry %s: %s", entry.get("id"), exc)
            return
        if not spec.capabilities and not spec.backup_capabilities:
            logger.warning("Worker %s declares no capabilities; it will never be routed to", spec.id)
        self.register(spec)
