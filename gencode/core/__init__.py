"""Core building blocks shared across the service."""

from .exceptions import (
    ConfigurationError,
    GenCodeError,
    ProducerError,
    PublisherError,
    RepoURLAlreadySetError,
    TaskFinalizedError,
    TaskIdCollisionError,
    TaskNotFoundError,
)
from .locks import ReadWriteLock

__all__ = [
    "ConfigurationError",
    "GenCodeError",
    "ProducerError",
    "PublisherError",
    "ReadWriteLock",
    "RepoURLAlreadySetError",
    "TaskFinalizedError",
    "TaskIdCollisionError",
    "TaskNotFoundError",
]
