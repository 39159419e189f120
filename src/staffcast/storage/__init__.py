"""Storage and notification collaborators."""

from staffcast.storage.interfaces import ForecastStore, NotificationSink
from staffcast.storage.memory import InMemoryStore, LoggingNotifier, RecordingNotifier

__all__ = [
    "ForecastStore",
    "NotificationSink",
    "InMemoryStore",
    "LoggingNotifier",
    "RecordingNotifier",
]
