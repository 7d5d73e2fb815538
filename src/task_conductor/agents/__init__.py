"""Worker registry and delegation routing."""

from .registry import WorkerRegistry, WorkerSpec
from .router import DelegationRouter, WorkerSelection

__all__ = ["DelegationRouter", "WorkerRegistry", "WorkerSelection", "WorkerSpec"]
