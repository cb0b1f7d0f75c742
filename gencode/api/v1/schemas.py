"""Pydantic schemas for API v1 - simple DTOs only."""

from datetime import datetime

from pydantic import BaseModel, Field

from gencode.tasks.models import Task, TaskStatus


class GenerateRequest(BaseModel):
    """Project generation request."""

    prompt: str = Field(min_length=1)
    repo_name: str = Field(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9._-]+$")
    model: str = ""
    github_org: str = ""


class GenerateResponse(BaseModel):
    """Task creation response."""

    task_id: str
    status: TaskStatus
    message: str


class TaskResponse(BaseModel):
    """Current state of a task."""

    task_id: str
    prompt: str
    repo_name: str
    model: str
    github_org: str | None = None
    status: TaskStatus
    message: str
    repo_url: str | None = None
    error: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            task_id=task.task_id,
            prompt=task.prompt,
            repo_name=task.repo_name,
            model=task.model,
            github_org=task.github_org or None,
            status=task.status,
            message=task.message,
            repo_url=task.repo_url or None,
            error=task.error or None,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class ErrorResponse(BaseModel):
    error: str


class HealthStatus(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str
    timestamp: datetime = Field(default_factory=datetime.now)
    uptime_seconds: float
    tasks_in_memory: int
    active_tasks: int
    streaming_subscribers: int
    models: list[str] = []
