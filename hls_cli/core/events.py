"""
Typed events published while workflows run, and the channel that delivers them.

Events are informational: presentation layers subscribe to them, but nothing in
the download pipeline depends on a handler being present.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from hls_cli.exceptions import HlsCliError
from hls_cli.models.progress import DownloadProgress

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowEvent:
    url: str


@dataclass(frozen=True)
class ProgressChanged(WorkflowEvent):
    progress: DownloadProgress


@dataclass(frozen=True)
class SizeProbeProgress(WorkflowEvent):
    completed: int
    total: int


@dataclass(frozen=True)
class SizeProbeCompleted(WorkflowEvent):
    total_size: int


@dataclass(frozen=True)
class PhaseCompleted(WorkflowEvent):
    phase: str
    value: Any = None


@dataclass(frozen=True)
class TaskErrored(WorkflowEvent):
    error: HlsCliError
    phase: str | None = None


EventHandler = Callable[[WorkflowEvent], None]


class EventChannel:
    """A synchronous fan-out of workflow events to explicit subscribers."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Registers a handler and returns a callable that unsubscribes it."""
        self._handlers.append(handler)
        return lambda: self.unsubscribe(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def publish(self, event: WorkflowEvent) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                log.warning(
                    f"Event handler failed for {type(event).__name__}: {e}",
                    exc_info=log.getEffectiveLevel() == logging.DEBUG,
                )
