"""Exception hierarchy for gen-code."""


class GenCodeError(Exception):
    """Base exception for the service."""


class TaskNotFoundError(GenCodeError):
    """Raised when a task identifier is unknown to the store."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"task not found: {task_id}")


class TaskFinalizedError(GenCodeError):
    """Raised when mutating a task that already reached a terminal status."""

    def __init__(self, task_id: str, status: str):
        self.task_id = task_id
        self.status = status
        super().__init__(f"task {task_id} is already {status}")


class TaskIdCollisionError(GenCodeError):
    """Raised when a freshly allocated task id is already taken."""


class RepoURLAlreadySetError(GenCodeError):
    """Raised when a task's repository URL would be replaced by another one."""

    def __init__(self, task_id: str, current: str, requested: str):
        self.task_id = task_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"task {task_id} already has repository URL {current}, refusing {requested}"
        )


class ProducerError(GenCodeError):
    """Raised when a content producer cannot generate a project."""


class PublisherError(GenCodeError):
    """Raised when a repository cannot be created or pushed."""


class ConfigurationError(GenCodeError):
    """Raised when required settings are missing or invalid."""
