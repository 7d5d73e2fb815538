"""Run an orchestration against a project's ``.conductor/`` state directory."""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import Any, Optional, Protocol

from loguru import logger

from .agents.registry import WorkerRegistry
from .config import RunConfig, load_run_config
from .constants import CANCEL_POLL_SECONDS, STATE_DIR_NAME, STATUS_FEED_FILE
from .context.synthesizer import ContextSynthesizer
from .engine.coordinator import ExecutionCoordinator, RunReport
from .errors import StateError
from .graph.task_graph import TaskGraph
from .progress.feed import StatusFeed
from .storage.store import RunStateStore


class CancelSignal(Protocol):
    """Anything with a thread-safe ``is_set``, such as :class:`threading.Event`."""

    def is_set(self) -> bool:
        ...


def run_orchestration(
    graph: Optional[TaskGraph],
    registry: WorkerRegistry,
    *,
    project_dir: Optional[Path] = None,
    config: Optional[RunConfig] = None,
    resume: bool = False,
    cancel_event: Optional[CancelSignal] = None,
    **kwargs: Any,
) -> RunReport:
    """Execute *graph* to completion and return the run report.

    Args:
        graph: Tasks to run. May be None when resuming.
        registry: Worker specs and implementations.
        project_dir: When given, configuration is read from
            ``.conductor/config.yaml``, state is checkpointed to
            ``.conductor/run_state.yaml`` and every summary is appended to
            ``.conductor/status_feed.jsonl``.
        config: Explicit configuration; overrides the project file.
        resume: Continue from the persisted state in *project_dir* instead of
            *graph*.
        cancel_event: Setting it from any thread cancels the run. Ctrl+C does
            the same while the run is in progress.
        **kwargs: Forwarded to :class:`ExecutionCoordinator`.

    Raises:
        StateError: If resuming without a project directory or saved state.
    """
    store: Optional[RunStateStore] = None
    synthesizer: Optional[ContextSynthesizer] = kwargs.pop("synthesizer", None)
    feed: Optional[StatusFeed] = kwargs.pop("feed", None)

    if project_dir is not None:
        state_dir = project_dir.resolve() / STATE_DIR_NAME
        if config is None:
            config, err = load_run_config(project_dir)
            if err:
                logger.warning("Ignoring invalid run config, using defaults: {}", err)
        store = RunStateStore(state_dir)
        if feed is None:
            feed = StatusFeed(sink_path=state_dir / STATUS_FEED_FILE)

    config = config or RunConfig()

    if resume:
        if store is None or not store.exists():
            raise StateError("Nothing to resume: no saved run state")
        graph, context = store.load()
        synthesizer = ContextSynthesizer(context, authority_ranking=config.authority_ranking)
        logger.info("Resuming run with {} task(s) from {}", len(graph), store.state_path)
    elif graph is None:
        raise ValueError("A task graph is required unless resuming")

    coordinator = ExecutionCoordinator(
        graph,
        registry,
        config,
        synthesizer=synthesizer,
        feed=feed,
        store=store,
        **kwargs,
    )
    return asyncio.run(_run(coordinator, cancel_event))


async def _run(coordinator: ExecutionCoordinator, cancel_event: Optional[CancelSignal]) -> RunReport:
    if cancel_event is not None and cancel_event.is_set():
        coordinator.cancel()
    loop = asyncio.get_running_loop()
    interrupts = _install_interrupt_handler(loop, coordinator)
    watcher = asyncio.ensure_future(_watch(cancel_event, coordinator)) if cancel_event is not None else None
    try:
        return await coordinator.run()
    finally:
        if watcher is not None:
            watcher.cancel()
        if interrupts:
            loop.remove_signal_handler(signal.SIGINT)


async def _watch(cancel_event: CancelSignal, coordinator: ExecutionCoordinator) -> None:
    while not cancel_event.is_set():
        await asyncio.sleep(CANCEL_POLL_SECONDS)
    logger.info("Cancel signal received")
    coordinator.cancel()


def _install_interrupt_handler(loop: asyncio.AbstractEventLoop, coordinator: ExecutionCoordinator) -> bool:
    """Route Ctrl+C to a graceful cancel. Only possible from the main thread."""
    try:
        loop.add_signal_handler(signal.SIGINT, coordinator.cancel)
    except (NotImplementedError, RuntimeError, ValueError):
        return False
    return True
