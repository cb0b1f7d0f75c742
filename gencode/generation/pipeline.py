"""
Generation pipeline: drives one task from prompt to pushed repository.

Each stage is recorded in the task store and the resulting snapshot is
broadcast through the notification hub. A collaborator failure fails the
task; nothing is retried here.
"""

import asyncio
from pathlib import Path
import shutil
import time

import structlog

from gencode.core.exceptions import (
    GenCodeError,
    TaskFinalizedError,
    TaskNotFoundError,
)
from gencode.generation.files import write_files
from gencode.github.client import GitHubPublisher
from gencode.llm.producers import ContentProducer
from gencode.tasks.hub import NotificationHub
from gencode.tasks.models import Task, TaskStatus
from gencode.tasks.store import TaskStore

logger = structlog.get_logger(__name__)


class StageError(GenCodeError):
    """A pipeline stage failed; the message is what the task records."""


class GenerationPipeline:
    """Run generation jobs with bounded concurrency and a per-job timeout."""

    def __init__(
        self,
        store: TaskStore,
        hub: NotificationHub,
        producers: dict[str, ContentProducer],
        publisher: GitHubPublisher,
        temp_dir: Path,
        max_concurrent_tasks: int = 5,
        task_timeout: float = 600,
    ):
        self.store = store
        self.hub = hub
        self.producers = producers
        self.publisher = publisher
        self.temp_dir = Path(temp_dir)
        self.task_timeout = task_timeout
        self.semaphore = asyncio.Semaphore(max_concurrent_tasks)

    async def process_task(self, task_id: str) -> Task:
        """
        Run a task to completion or failure and return its final snapshot.

        Failures are recorded on the task rather than raised.
        """
        log = logger.bind(task_id=task_id)
        start_time = time.time()

        async with self.semaphore:
            try:
                deadline = asyncio.get_running_loop().time() + self.task_timeout
                await asyncio.wait_for(
                    self.generate_and_push(task_id, deadline), self.task_timeout
                )
            except StageError as e:
                log.error("Generation failed", error=str(e))
                await self._fail(task_id, e)
            except asyncio.TimeoutError:
                log.error("Generation timed out", timeout_seconds=self.task_timeout)
                await self._fail(task_id, f"task timed out after {self.task_timeout:g}s")
            except TaskNotFoundError:
                raise
            except Exception as e:
                log.exception("Generation crashed")
                await self._fail(task_id, f"unexpected error: {e}")

        task = await self.store.get(task_id)
        log.info(
            "Generation finished",
            status=task.status.value,
            processing_time_ms=int((time.time() - start_time) * 1000),
        )
        return task

    async def generate_and_push(self, task_id: str, deadline: float | None = None) -> Task:
        """
        Run every stage for a task.

        deadline is an event-loop time; the repository request is given only
        what is left of it.

        Raises:
            TaskNotFoundError: If the task does not exist
            StageError: If a collaborator fails
        """
        task = await self.store.get(task_id)
        producer = self.producers.get(task.model)
        if producer is None:
            raise StageError(f"failed to generate code: model {task.model} is not configured")

        await self._advance(task_id, TaskStatus.GENERATING, "Generating code with LLM...")
        try:
            project = await producer.generate_project(task.prompt)
        except Exception as e:
            raise StageError(f"failed to generate code: {e}") from e

        project_dir = self.temp_dir / task_id
        await self._advance(task_id, TaskStatus.MERGING_FILES, "Writing files to disk...")
        try:
            await asyncio.to_thread(write_files, project_dir, project.file_map())
        except (OSError, ValueError) as e:
            raise StageError(f"failed to write files: {e}") from e

        await self._advance(task_id, TaskStatus.CREATING_REPO, "Creating GitHub repository...")
        try:
            repository = await self.publisher.create_repository(
                task.repo_name,
                project.description,
                org=task.github_org or None,
                timeout=self._remaining(deadline),
            )
        except Exception as e:
            raise StageError(f"failed to create repository: {e}") from e

        self.hub.broadcast(await self.store.set_repo_url(task_id, repository.html_url))

        await self._advance(task_id, TaskStatus.PUSHING, "Pushing code to GitHub...")
        try:
            await self.publisher.push_directory(
                repository.clone_url,
                project_dir,
                f"Initial commit: {project.description or project.name}",
            )
        except Exception as e:
            raise StageError(f"failed to push files: {e}") from e

        task = await self._advance(
            task_id, TaskStatus.COMPLETED, "Successfully generated and pushed code!"
        )

        # temp files are kept on failure for debugging
        await asyncio.to_thread(shutil.rmtree, project_dir, True)
        return task

    def _remaining(self, deadline: float | None) -> float | None:
        if deadline is None:
            return None
        return max(deadline - asyncio.get_running_loop().time(), 0.0)

    async def _advance(self, task_id: str, status: TaskStatus, message: str) -> Task:
        task = await self.store.update_status(task_id, status, message)
        self.hub.broadcast(task)
        logger.info("Task status updated", task_id=task_id, status=status.value)
        return task

    async def _fail(self, task_id: str, error: BaseException | str) -> None:
        try:
            task = await self.store.set_error(task_id, error)
        except TaskFinalizedError:
            logger.warning("Task already finished, failure not recorded", task_id=task_id)
            return
        self.hub.broadcast(task)
