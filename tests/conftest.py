"""Shared test configuration and fixtures for all tests."""

import asyncio
from pathlib import Path

import pytest
import pytest_asyncio

from gencode.config import Settings
from gencode.core.exceptions import ProducerError, PublisherError
from gencode.github.client import Repository
from gencode.llm.models import GeneratedProject, ProjectFile
from gencode.tasks.hub import NotificationHub
from gencode.tasks.models import JobSpec
from gencode.tasks.store import TaskStore

SETTINGS_ENV_VARS = (
    "SERVER_HOST",
    "SERVER_PORT",
    "CORS_ORIGINS",
    "GITHUB_TOKEN",
    "GITHUB_OWNER",
    "DEEPSEEK_API_KEY",
    "OPENAI_API_KEY",
    "DEFAULT_MODEL",
    "MAX_CONCURRENT_TASKS",
    "TASK_TIMEOUT",
    "TEMP_DIR",
    "HEARTBEAT_INTERVAL_SECONDS",
    "SUBSCRIBER_QUEUE_SIZE",
    "LOG_LEVEL",
    "LOG_JSON",
    "IDEMPOTENCY_TTL_HOURS",
)


class FakeProducer:
    """Content producer returning a canned project."""

    def __init__(self, name: str = "deepseek", project=None, error=None, delay=0.0):
        self.name = name
        self.project = project or GeneratedProject(
            name="demo",
            description="A demo project",
            files=[
                ProjectFile(path="main.py", content="print('hello')\n", type="py"),
                ProjectFile(path="README.md", content="# demo\n", type="md"),
            ],
        )
        self.error = error
        self.delay = delay
        self.prompts: list[str] = []
        self.active = 0
        self.max_active = 0

    async def generate_project(self, prompt: str) -> GeneratedProject:
        self.prompts.append(prompt)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error:
                raise ProducerError(self.error)
            return self.project
        finally:
            self.active -= 1


class FakePublisher:
    """Publisher recording calls instead of talking to GitHub."""

    def __init__(self, create_error=None, push_error=None):
        self.create_error = create_error
        self.push_error = push_error
        self.created: list[dict] = []
        self.pushed: list[dict] = []
        self.timeouts: list[float | None] = []

    async def create_repository(
        self, name, description="", org=None, private=False, timeout=None
    ):
        self.timeouts.append(timeout)
        if self.create_error:
            raise PublisherError(self.create_error)
        self.created.append({"name": name, "description": description, "org": org})
        owner = org or "octocat"
        return Repository(
            name=name,
            html_url=f"https://github.com/{owner}/{name}",
            clone_url=f"https://github.com/{owner}/{name}.git",
        )

    async def push_directory(self, clone_url, path, commit_message):
        if self.push_error:
            raise PublisherError(self.push_error)
        files = sorted(
            str(p.relative_to(path)) for p in Path(path).rglob("*") if p.is_file()
        )
        self.pushed.append(
            {"clone_url": clone_url, "files": files, "commit_message": commit_message}
        )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove settings-related environment variables."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def make_settings(clean_env, tmp_path):
    """Build Settings isolated from the environment and any .env file."""

    def factory(**overrides) -> Settings:
        values = {
            "github_token": "ghp_test",
            "deepseek_api_key": "sk-test",
            "temp_dir": tmp_path / "work",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return factory


@pytest.fixture
def job_spec() -> JobSpec:
    return JobSpec(prompt="A hello world CLI", repo_name="hello-cli", model="deepseek")


@pytest.fixture
def store() -> TaskStore:
    """Create a fresh store for each test."""
    return TaskStore()


@pytest_asyncio.fixture
async def hub():
    """Running notification hub, stopped after the test."""
    hub = NotificationHub()
    hub.start()
    yield hub
    await hub.stop()


@pytest.fixture
def producer() -> FakeProducer:
    return FakeProducer()


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()
