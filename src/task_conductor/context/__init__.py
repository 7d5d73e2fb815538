"""Shared project context and the synthesizer that writes it."""

from .synthesizer import (
    ConflictFlag,
    ContextSynthesizer,
    DecisionRecord,
    JournalEntry,
    ProjectContext,
)

__all__ = [
    "ConflictFlag",
    "ContextSynthesizer",
    "DecisionRecord",
    "JournalEntry",
    "ProjectContext",
]
