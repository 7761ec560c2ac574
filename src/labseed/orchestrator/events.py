"""
Progress events emitted by the resource orchestrator.

The orchestrator never prints or logs directly. It reports every step to
an Observer, so the CLI can render progress on the console while tests
record events in memory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Protocol

import structlog


class EventLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class StepEvent:
    """A single orchestration step, e.g. ``group_created`` or ``verify_groups``."""

    action: str
    message: str
    level: EventLevel = EventLevel.INFO
    fields: dict[str, Any] = field(default_factory=dict)


class Observer(Protocol):
    def on_step(self, event: StepEvent) -> None:
        ...


class NullObserver:
    """Discards every event."""

    def on_step(self, event: StepEvent) -> None:
        return None


class LoggingObserver:
    """Forwards events to structlog, one record per step."""

    _METHODS = {
        EventLevel.INFO: "info",
        EventLevel.SUCCESS: "info",
        EventLevel.WARNING: "warning",
        EventLevel.ERROR: "error",
    }

    def __init__(self, logger: Any | None = None) -> None:
        self._logger = logger or structlog.get_logger("labseed.orchestrator")

    def on_step(self, event: StepEvent) -> None:
        log = getattr(self._logger, self._METHODS[event.level])
        log(event.action, message=event.message, **event.fields)


class CompositeObserver:
    """Fans events out to several observers in order."""

    def __init__(self, observers: Iterable[Observer]) -> None:
        self._observers = list(observers)

    def on_step(self, event: StepEvent) -> None:
        for observer in self._observers:
            observer.on_step(event)
