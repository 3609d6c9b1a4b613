"""
Progress event bus and observer utilities.

Resamplers report progress through plain ``callback(percent, message)``
functions; the bus turns those into events for whatever host subscribes
(terminal renderer, logger, tests). Reslicing has no cancellation, so
observers only watch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol
import logging
import sys
import time

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """Immutable progress payload."""

    percent: int
    message: str
    stage: Optional[str] = None
    channel: str = "stage"  # "stage" | "dag"
    timestamp: float = field(default_factory=time.time)


class ProgressObserver(Protocol):
    """Observer protocol for progress events."""

    def on_progress(self, event: ProgressEvent) -> None:
        ...


class ProgressBus:
    """
    Observer-style event bus for progress propagation.
    """

    def __init__(self) -> None:
        self._observers: list[Callable[[ProgressEvent], None] | ProgressObserver] = []

    def subscribe(self, observer: Callable[[ProgressEvent], None] | ProgressObserver) -> "ProgressBus":
        self._observers.append(observer)
        return self

    def unsubscribe(self, observer: Callable[[ProgressEvent], None] | ProgressObserver) -> "ProgressBus":
        if observer in self._observers:
            self._observers.remove(observer)
        return self

    def emit(self, event: ProgressEvent) -> None:
        for observer in tuple(self._observers):
            if hasattr(observer, "on_progress"):
                observer.on_progress(event)  # type: ignore[attr-defined]
            else:
                observer(event)  # type: ignore[misc]

    def _callback(self, stage: Optional[str], channel: str) -> Callable[[int, str], None]:
        def callback(percent: int, message: str) -> None:
            p = max(0, min(100, int(percent)))
            self.emit(ProgressEvent(percent=p, message=message, stage=stage, channel=channel))

        return callback

    def stage_callback(self, stage: str) -> Callable[[int, str], None]:
        return self._callback(stage, "stage")

    def dag_callback(self) -> Callable[[int, str], None]:
        return self._callback(None, "dag")


class LoggingProgressObserver:
    """Forwards progress events to a logger at DEBUG level."""

    def __init__(self, target: Optional[logging.Logger] = None) -> None:
        self._logger = target or logger

    def on_progress(self, event: ProgressEvent) -> None:
        self._logger.debug("[%s %3d%%] %s", event.stage or event.channel, event.percent, event.message)


class TerminalProgressObserver:
    """
    Text renderer for CLI usage.
    """

    def __init__(self, bar_width: int = 30, stream=None) -> None:
        self.bar_width = bar_width
        self.stream = stream or sys.stdout

    def on_progress(self, event: ProgressEvent) -> None:
        if event.channel == "dag":
            self.stream.write(f"  [DAG {event.percent:3d}%] {event.message}\n")
            self.stream.flush()
            return

        stage = event.stage or "task"
        filled = int(self.bar_width * event.percent / 100)
        bar = "#" * filled + "." * (self.bar_width - filled)
        self.stream.write(f"\r  [{stage}] [{bar}] {event.percent:3d}%  {event.message:<48}")
        if event.percent >= 100:
            self.stream.write("\n")
        self.stream.flush()


__all__ = [
    "ProgressEvent",
    "ProgressObserver",
    "ProgressBus",
    "LoggingProgressObserver",
    "TerminalProgressObserver",
]
