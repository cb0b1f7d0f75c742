"""Live task progress over Server-Sent Events."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from gencode.api.v1.dependencies import get_services
from gencode.api.v1.schemas import ErrorResponse
from gencode.api.v1.streaming import SSE_HEADERS, sse_stream
from gencode.core.exceptions import TaskNotFoundError
from gencode.services import Services
from gencode.tasks.session import StreamingSession

router = APIRouter(prefix="/api/v1/status", tags=["status"])


@router.get(
    "/{task_id}",
    response_class=StreamingResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
async def stream_status(
    task_id: str, request: Request, services: Services = Depends(get_services)
) -> StreamingResponse:
    """
    Stream status events for a task until it completes or fails.

    Each event is `event: status` with a JSON payload of `status`, `message`
    and, when present, `repo_url` and `error`. Idle streams get a
    `: heartbeat` comment line.
    """
    session = StreamingSession(
        services.store,
        services.hub,
        task_id,
        heartbeat_interval=services.settings.heartbeat_interval_seconds,
        is_disconnected=request.is_disconnected,
    )
    try:
        await session.open()
    except TaskNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Task not found"
        ) from None

    return StreamingResponse(
        sse_stream(session),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=BackgroundTask(session.close),
    )
