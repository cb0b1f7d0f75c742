"""Task domain models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class TaskStatus(str, Enum):
    """Generation job status, in pipeline order."""

    PENDING = "pending"
    GENERATING = "generating"
    MERGING_FILES = "merging_files"
    CREATING_REPO = "creating_repo"
    PUSHING = "pushing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})

TASK_CREATED_MESSAGE = "Task created"
TASK_FAILED_MESSAGE = "Task failed"


@dataclass(frozen=True)
class JobSpec:
    """Job-defining fields supplied on submission."""

    prompt: str
    repo_name: str
    model: str
    github_org: str = ""


@dataclass(frozen=True)
class Task:
    """
    Immutable snapshot of one generation job.

    The store replaces its stored instance on every mutation, so any Task
    handed out is a consistent point-in-time copy.

    Attributes:
        task_id: Unique identifier, assigned at creation
        prompt: Natural-language description of the project
        repo_name: Name of the repository to create
        model: Content producer selected for this job
        github_org: Optional owner/org for the repository
        status: Current status
        message: Human-readable description of the current step
        repo_url: Repository URL, empty until known
        error: Failure description, empty unless status is failed
        created_at: Creation time
        updated_at: Time of the last mutation
        revision: Mutation counter, 0 at creation
    """

    task_id: str
    prompt: str
    repo_name: str
    model: str
    status: TaskStatus
    message: str
    created_at: datetime
    updated_at: datetime
    github_org: str = ""
    repo_url: str = ""
    error: str = ""
    revision: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary, omitting empty optional fields."""
        data: dict[str, Any] = {
            "task_id": self.task_id,
            "prompt": self.prompt,
            "repo_name": self.repo_name,
            "model": self.model,
            "status": self.status.value,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.github_org:
            data["github_org"] = self.github_org
        if self.repo_url:
            data["repo_url"] = self.repo_url
        if self.error:
            data["error"] = self.error
        return data
