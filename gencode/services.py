"""Process-wide service wiring: one store, one hub, one pipeline."""

from dataclasses import dataclass, field
from datetime import timedelta
import time

import structlog

from gencode.config import Settings
from gencode.generation.pipeline import GenerationPipeline
from gencode.github.client import GitHubPublisher
from gencode.llm.producers import build_producers
from gencode.tasks.hub import NotificationHub
from gencode.tasks.store import TaskStore

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    """Collaborators shared by the request handlers."""

    settings: Settings
    store: TaskStore
    hub: NotificationHub
    pipeline: GenerationPipeline
    started_at: float = field(default_factory=time.time)

    @property
    def models(self) -> list[str]:
        return sorted(self.pipeline.producers)

    async def start(self) -> None:
        self.hub.start()

    async def stop(self) -> None:
        await self.hub.stop()


def build_services(settings: Settings) -> Services:
    """
    Build the production services.

    Raises:
        ConfigurationError: If required settings are missing
    """
    settings.validate_required()
    settings.temp_dir.mkdir(parents=True, exist_ok=True)

    store = TaskStore(idempotency_ttl=timedelta(hours=settings.idempotency_ttl_hours))
    hub = NotificationHub(queue_size=settings.subscriber_queue_size)
    publisher = GitHubPublisher(
        token=settings.github_token,
        owner=settings.github_owner,
        api_url=settings.github_api_url,
    )
    pipeline = GenerationPipeline(
        store=store,
        hub=hub,
        producers=build_producers(settings),
        publisher=publisher,
        temp_dir=settings.temp_dir,
        max_concurrent_tasks=settings.max_concurrent_tasks,
        task_timeout=settings.task_timeout,
    )
    logger.info(
        "Services initialized",
        max_concurrent_tasks=settings.max_concurrent_tasks,
        default_model=settings.default_model,
        github_owner=settings.github_owner or "<authenticated user>",
    )
    return Services(settings=settings, store=store, hub=hub, pipeline=pipeline)
