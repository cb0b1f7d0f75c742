"""Task lookup endpoint."""

from fastapi import APIRouter, Depends, status

from gencode.api.v1.dependencies import get_services, get_task_or_404
from gencode.api.v1.schemas import ErrorResponse, TaskResponse
from gencode.services import Services

router = APIRouter(prefix="/api/v1/task", tags=["tasks"])


@router.get(
    "/{task_id}",
    response_model=TaskResponse,
    response_model_exclude_none=True,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
async def get_task(task_id: str, services: Services = Depends(get_services)) -> TaskResponse:
    """Current task snapshot; 404 if the task is unknown."""
    task = await get_task_or_404(task_id, services)
    return TaskResponse.from_task(task)
