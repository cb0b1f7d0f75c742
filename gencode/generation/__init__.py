"""Generation pipeline driving tasks through their stages."""

from .files import write_files
from .pipeline import GenerationPipeline, StageError

__all__ = ["GenerationPipeline", "StageError", "write_files"]
