"""GitHub publishing."""

from .client import GitHubPublisher, Repository

__all__ = ["GitHubPublisher", "Repository"]
