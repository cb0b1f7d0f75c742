"""Content producers: turn a prompt into a generated project via an LLM."""

import time
from typing import Any, Protocol

from pydantic_ai import Agent
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
import structlog

from gencode.config import Settings
from gencode.core.exceptions import ConfigurationError, ProducerError
from gencode.llm.models import GeneratedProject
from gencode.llm.prompts import PROJECT_SYSTEM_PROMPT, PROJECT_USER_PROMPT

logger = structlog.get_logger(__name__)


class ContentProducer(Protocol):
    """Anything that can generate a project from a prompt."""

    name: str

    async def generate_project(self, prompt: str) -> GeneratedProject: ...


class AgentContentProducer:
    """Generates projects with a Pydantic AI agent over an OpenAI-compatible model."""

    def __init__(
        self,
        name: str,
        model: Model | str,
        temperature: float = 0.7,
        max_tokens: int = 8000,
        retries: int = 2,
    ):
        self.name = name
        self.agent = Agent(
            model,
            output_type=GeneratedProject,
            system_prompt=PROJECT_SYSTEM_PROMPT,
            retries=retries,
            model_settings={"temperature": temperature, "max_tokens": max_tokens},
        )

    async def generate_project(self, prompt: str) -> GeneratedProject:
        """
        Generate a project.

        Raises:
            ProducerError: If the model call fails or returns no files
        """
        start_time = time.time()
        try:
            result = await self.agent.run(PROJECT_USER_PROMPT.format(prompt=prompt))
        except Exception as e:
            raise ProducerError(f"failed to call {self.name} API: {e}") from e

        project = result.output
        if not project.files:
            raise ProducerError(f"{self.name} returned a project without files")

        logger.info(
            "Project generated",
            producer=self.name,
            project=project.name,
            files=len(project.files),
            processing_time_ms=int((time.time() - start_time) * 1000),
        )
        return project


def _openai_compatible(model_name: str, api_key: str, base_url: str) -> OpenAIChatModel:
    return OpenAIChatModel(
        model_name,
        provider=OpenAIProvider(base_url=base_url, api_key=api_key),
    )


def create_deepseek_producer(settings: Settings, **kwargs: Any) -> AgentContentProducer:
    if not settings.deepseek_api_key:
        raise ConfigurationError("DEEPSEEK_API_KEY is required when using deepseek model")
    model = _openai_compatible(
        settings.deepseek_model, settings.deepseek_api_key, settings.deepseek_base_url
    )
    return AgentContentProducer("deepseek", model, **kwargs)


def create_openai_producer(settings: Settings, **kwargs: Any) -> AgentContentProducer:
    if not settings.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY is required when using openai model")
    model = _openai_compatible(
        settings.openai_model, settings.openai_api_key, settings.openai_base_url
    )
    return AgentContentProducer("openai", model, **kwargs)


PRODUCER_FACTORIES = {
    "deepseek": create_deepseek_producer,
    "openai": create_openai_producer,
}


def build_producers(settings: Settings) -> dict[str, ContentProducer]:
    """Create a producer for every model that has an API key configured."""
    producers: dict[str, ContentProducer] = {}
    for name in settings.configured_models():
        producers[name] = PRODUCER_FACTORIES[name](settings)
        logger.info("Content producer configured", producer=name)
    return producers
