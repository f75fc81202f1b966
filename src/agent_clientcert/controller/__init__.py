"""Client certificate controller and its scheduling."""

from .controller import ClientCertificateController
from .events import Event, EventRecorder, InMemoryRecorder, LoggingRecorder
from .runner import ControllerRunner

__all__ = [
    "ClientCertificateController",
    "ControllerRunner",
    "Event",
    "EventRecorder",
    "InMemoryRecorder",
    "LoggingRecorder",
]
