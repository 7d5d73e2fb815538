"""Progress summaries, health classification and the status feed."""

from .feed import StatusFeed
from .tracker import ProgressSummary, ProgressTracker, render_summary

__all__ = ["ProgressSummary", "ProgressTracker", "StatusFeed", "render_summary"]
