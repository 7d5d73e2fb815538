from .store import RunStateStore

__all__ = ["RunStateStore"]
