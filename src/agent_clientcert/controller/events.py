"""Event recorders for human-observable milestones."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

_LOGGER = logging.getLogger(__name__)

NORMAL = "Normal"
WARNING = "Warning"


@dataclass(frozen=True)
class Event:
    """A recorded event."""

    type: str
    reason: str
    message: str
    timestamp: datetime


class EventRecorder(ABC):
    """Sink for events such as a request being submitted or a rotation."""

    @abstractmethod
    def event(self, reason: str, message: str) -> None:
        """Record a normal event."""

    @abstractmethod
    def warning(self, reason: str, message: str) -> None:
        """Record a warning event."""


class LoggingRecorder(EventRecorder):
    """Writes events to the log."""

    def __init__(self, source: str = "agent-clientcert"):
        self.source = source

    def event(self, reason: str, message: str) -> None:
        _LOGGER.info("[%s] %s: %s", self.source, reason, message)

    def warning(self, reason: str, message: str) -> None:
        _LOGGER.warning("[%s] %s: %s", self.source, reason, message)


class InMemoryRecorder(EventRecorder):
    """Keeps events in a list."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def event(self, reason: str, message: str) -> None:
        self.events.append(Event(NORMAL, reason, message, datetime.now()))

    def warning(self, reason: str, message: str) -> None:
        self.events.append(Event(WARNING, reason, message, datetime.now()))

    def reasons(self) -> list[str]:
        """Reasons of all recorded events, oldest first."""
        return [event.reason for event in self.events]
