"""gen-code: generate projects from prompts and stream their progress."""

__version__ = "1.0.0"
