"""
In-memory task store.

Single source of truth for task state. Readers share the lock, writers hold
it exclusively, and the lock is only held for the dictionary operation
itself; callers forward the returned snapshot to the notification hub.
"""

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any
import uuid

import structlog

from gencode.core.exceptions import (
    RepoURLAlreadySetError,
    TaskFinalizedError,
    TaskIdCollisionError,
    TaskNotFoundError,
)
from gencode.core.locks import ReadWriteLock
from gencode.tasks.models import (
    TASK_CREATED_MESSAGE,
    TASK_FAILED_MESSAGE,
    JobSpec,
    Task,
    TaskStatus,
)

logger = structlog.get_logger(__name__)

DEFAULT_IDEMPOTENCY_TTL = timedelta(days=1)
UNKNOWN_ERROR = "unknown error"


class TaskStore:
    """
    Concurrency-safe keyed collection of tasks.

    Every mutation returns the post-mutation snapshot. Ordering between
    non-terminal stages is left to the caller; a task that reached a terminal
    status can no longer be mutated. Mutations look the task up before
    validating their arguments, so an unknown identifier always fails with
    TaskNotFoundError.

    Example:
        >>> store = TaskStore()
        >>> task = await store.create(JobSpec(prompt="x", repo_name="y", model="openai"))
        >>> task = await store.update_status(
        ...     task.task_id, TaskStatus.GENERATING, "Generating code..."
        ... )
        >>> await hub.broadcast(task)
    """

    def __init__(self, id_factory=None, idempotency_ttl: timedelta = DEFAULT_IDEMPOTENCY_TTL):
        """
        Initialize the store.

        Args:
            id_factory: Callable returning a new identifier, uuid4 by default
            idempotency_ttl: How long an idempotency key stays bound to its task
        """
        self._tasks: dict[str, Task] = {}
        self._idempotency_keys: dict[str, tuple[str, datetime]] = {}  # key -> (task_id, expires_at)
        self._lock = ReadWriteLock()
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self.idempotency_ttl = idempotency_ttl

    async def create(self, spec: JobSpec) -> Task:
        """
        Create a pending task for a job.

        Raises:
            TaskIdCollisionError: If the allocated identifier already exists
        """
        async with self._lock.write():
            task = self._insert(spec)

        logger.debug("Task created", task_id=task.task_id, model=task.model)
        return task

    async def create_idempotent(self, spec: JobSpec, key: str) -> tuple[Task, bool]:
        """
        Create a task bound to an idempotency key, unless the key is taken.

        The lookup and the creation happen under one write lock, so two
        submissions with the same key never both create a task.

        Returns:
            (task, created): the new task and True, or the task the key is
            already bound to and False

        Raises:
            TaskIdCollisionError: If the allocated identifier already exists
        """
        async with self._lock.write():
            existing_id = self._bound_task_id(key, datetime.now())
            if existing_id is not None and existing_id in self._tasks:
                return self._tasks[existing_id], False

            task = self._insert(spec)
            self._idempotency_keys[key] = (
                task.task_id,
                task.created_at + self.idempotency_ttl,
            )

        logger.debug(
            "Task created", task_id=task.task_id, model=task.model, idempotency_key=key
        )
        return task, True

    async def get(self, task_id: str) -> Task:
        """
        Return the current snapshot of a task.

        Raises:
            TaskNotFoundError: If the identifier is unknown
        """
        async with self._lock.read():
            task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def update_status(
        self, task_id: str, status: TaskStatus, message: str
    ) -> Task:
        """
        Move a task to a new status.

        Raises:
            TaskNotFoundError: If the identifier is unknown
            TaskFinalizedError: If the task already reached a terminal status
            ValueError: If status is FAILED; failures go through set_error
        """
        async with self._lock.write():
            current = self._require(task_id)
            if status == TaskStatus.FAILED:
                raise ValueError("use set_error to fail a task")
            task = self._replace(current, status=status, message=message)

        logger.debug("Task status updated", task_id=task_id, status=status.value)
        return task

    async def set_error(self, task_id: str, error: BaseException | str) -> Task:
        """
        Fail a task, recording the error's description.

        An exception without a message is described by its type name; an
        empty string becomes "unknown error".

        Raises:
            TaskNotFoundError: If the identifier is unknown
            TaskFinalizedError: If the task already reached a terminal status
        """
        if isinstance(error, BaseException):
            description = str(error) or type(error).__name__
        else:
            description = error or UNKNOWN_ERROR

        async with self._lock.write():
            current = self._require(task_id)
            task = self._replace(
                current,
                status=TaskStatus.FAILED,
                message=TASK_FAILED_MESSAGE,
                error=description,
            )

        logger.debug("Task failed", task_id=task_id, error=description)
        return task

    async def set_repo_url(self, task_id: str, url: str) -> Task:
        """
        Record the repository URL of a task.

        Setting the same URL again is a no-op.

        Raises:
            TaskNotFoundError: If the identifier is unknown
            TaskFinalizedError: If the task already reached a terminal status
            ValueError: If url is empty
            RepoURLAlreadySetError: If a different URL is already recorded
        """
        async with self._lock.write():
            current = self._require(task_id)
            if not url:
                raise ValueError("repository URL must not be empty")
            if current.repo_url == url:
                return current
            if current.repo_url:
                raise RepoURLAlreadySetError(task_id, current.repo_url, url)
            task = self._replace(current, repo_url=url)

        logger.debug("Task repository URL set", task_id=task_id, repo_url=url)
        return task

    async def count(self) -> int:
        async with self._lock.read():
            return len(self._tasks)

    async def stats(self) -> dict[str, Any]:
        """Task totals and per-status breakdown."""
        async with self._lock.read():
            tasks = list(self._tasks.values())

        breakdown: dict[str, int] = {}
        for task in tasks:
            breakdown[task.status.value] = breakdown.get(task.status.value, 0) + 1

        return {
            "total_tasks": len(tasks),
            "active_tasks": sum(1 for task in tasks if not task.is_terminal),
            "status_breakdown": breakdown,
        }

    async def task_for_idempotency_key(self, key: str) -> str | None:
        """Task ID bound to a key, or None if unbound or expired."""
        async with self._lock.read():
            entry = self._idempotency_keys.get(key)
        if entry is None or entry[1] <= datetime.now():
            return None
        return entry[0]

    def _bound_task_id(self, key: str, now: datetime) -> str | None:
        """Live binding for a key, dropping it if expired. Caller must hold the write lock."""
        entry = self._idempotency_keys.get(key)
        if entry is None:
            return None
        task_id, expires_at = entry
        if expires_at <= now:
            del self._idempotency_keys[key]
            logger.debug("Idempotency key expired", idempotency_key=key, task_id=task_id)
            return None
        return task_id

    def _insert(self, spec: JobSpec) -> Task:
        """Add a new pending task. Caller must hold the write lock."""
        now = datetime.now()
        task = Task(
            task_id=self._id_factory(),
            prompt=spec.prompt,
            repo_name=spec.repo_name,
            model=spec.model,
            github_org=spec.github_org,
            status=TaskStatus.PENDING,
            message=TASK_CREATED_MESSAGE,
            created_at=now,
            updated_at=now,
        )
        if task.task_id in self._tasks:
            raise TaskIdCollisionError(f"task id {task.task_id} already exists")
        self._tasks[task.task_id] = task
        return task

    def _require(self, task_id: str) -> Task:
        """Look up a mutable task. Caller must hold the write lock."""
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if task.is_terminal:
            raise TaskFinalizedError(task_id, task.status.value)
        return task

    def _replace(self, current: Task, **changes: Any) -> Task:
        task = replace(
            current,
            updated_at=datetime.now(),
            revision=current.revision + 1,
            **changes,
        )
        self._tasks[task.task_id] = task
        return task
