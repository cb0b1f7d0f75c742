"""LLM content producers."""

from .models import GeneratedProject, ProjectFile
from .producers import (
    AgentContentProducer,
    ContentProducer,
    build_producers,
    create_deepseek_producer,
    create_openai_producer,
)

__all__ = [
    "AgentContentProducer",
    "ContentProducer",
    "GeneratedProject",
    "ProjectFile",
    "build_producers",
    "create_deepseek_producer",
    "create_openai_producer",
]
