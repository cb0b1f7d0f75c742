"""FastAPI dependencies."""

from fastapi import HTTPException, Request, status

from gencode.core.exceptions import TaskNotFoundError
from gencode.services import Services
from gencode.tasks.models import Task


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_task_or_404(task_id: str, services: Services) -> Task:
    """Get task by ID or raise 404."""
    try:
        return await services.store.get(task_id)
    except TaskNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Task not found"
        ) from None
