"""Project generation endpoint."""

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status
import structlog

from gencode.api.v1.dependencies import get_services, get_task_or_404
from gencode.api.v1.schemas import ErrorResponse, GenerateRequest, GenerateResponse
from gencode.config import SUPPORTED_MODELS
from gencode.services import Services
from gencode.tasks.models import JobSpec, Task

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/v1", tags=["generate"])


def resolve_model(requested: str, services: Services) -> str:
    """Pick the request's model or the default, and check it can run."""
    model = requested or services.settings.default_model
    if model not in SUPPORTED_MODELS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="invalid model, must be 'deepseek' or 'openai'",
        )
    if model not in services.pipeline.producers:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"model '{model}' is not configured on this server",
        )
    return model


@router.post(
    "/generate",
    response_model=GenerateResponse,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}},
)
async def generate(
    request: GenerateRequest,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
    idempotency_key: str | None = Header(
        None, description="Idempotency key to prevent duplicate repositories"
    ),
) -> GenerateResponse:
    """
    Start generating a project and pushing it to a new repository.

    Returns immediately with the task ID; follow progress on
    `/api/v1/status/{task_id}` (SSE) or poll `/api/v1/task/{task_id}`.
    A repeated Idempotency-Key returns the task it is bound to instead of
    starting a new one.
    """
    if idempotency_key:
        existing_id = await services.store.task_for_idempotency_key(idempotency_key)
        if existing_id:
            existing = await get_task_or_404(existing_id, services)
            return _idempotent_response(existing, idempotency_key)

    model = resolve_model(request.model, services)
    spec = JobSpec(
        prompt=request.prompt,
        repo_name=request.repo_name,
        model=model,
        github_org=request.github_org,
    )
    if idempotency_key:
        task, created = await services.store.create_idempotent(spec, idempotency_key)
        if not created:
            return _idempotent_response(task, idempotency_key)
    else:
        task = await services.store.create(spec)

    background_tasks.add_task(services.pipeline.process_task, task.task_id)
    logger.info(
        "Generation task created",
        task_id=task.task_id,
        repo_name=task.repo_name,
        model=model,
        idempotent=bool(idempotency_key),
    )

    return GenerateResponse(task_id=task.task_id, status=task.status, message=task.message)


def _idempotent_response(task: Task, idempotency_key: str) -> GenerateResponse:
    logger.info(
        "Idempotent request detected",
        idempotency_key=idempotency_key,
        existing_task_id=task.task_id,
    )
    return GenerateResponse(task_id=task.task_id, status=task.status, message=task.message)
