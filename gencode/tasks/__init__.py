"""Task lifecycle and notification engine."""

from .hub import NotificationHub, Subscriber
from .models import JobSpec, Task, TaskStatus
from .session import EventKind, SessionState, StreamEvent, StreamingSession
from .store import TaskStore

__all__ = [
    "EventKind",
    "JobSpec",
    "NotificationHub",
    "SessionState",
    "StreamEvent",
    "StreamingSession",
    "Subscriber",
    "Task",
    "TaskStatus",
    "TaskStore",
]
