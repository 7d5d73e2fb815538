"""Append-only status feed of progress summaries.

Subscribers are called synchronously on every publish; a failing subscriber is
logged and never interrupts the run. An optional JSONL sink mirrors every
summary to disk.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterator, Optional

from loguru import logger

from ..io_utils import _append_event
from .tracker import ProgressSummary

Subscriber = Callable[[ProgressSummary], None]


class StatusFeed:
    def __init__(self, sink_path: Optional[Path] = None) -> None:
        self._entries: list[ProgressSummary] = []
        self._subscribers: list[Subscriber] = []
        self._sink_path = sink_path

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ProgressSummary]:
        return iter(list(self._entries))

    @property
    def entries(self) -> list[ProgressSummary]:
        return list(self._entries)

    @property
    def latest(self) -> Optional[ProgressSummary]:
        return self._entries[-1] if self._entries else None

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback*; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, summary: ProgressSummary) -> None:
        self._entries.append(summary)
        if self._sink_path is not None:
            try:
                _append_event(self._sink_path, {"type": "progress", **summary.to_dict()})
            except OSError:
                logger.exception("Failed to append status summary to {}", self._sink_path)
        for callback in list(self._subscribers):
            try:
                callback(summary)
            except Exception:
                logger.exception("Error in status feed subscriber")
