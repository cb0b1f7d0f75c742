"""Structured output of content producers."""

from pydantic import BaseModel, Field


class ProjectFile(BaseModel):
    """A single generated file."""

    path: str = Field(min_length=1, description="Relative path inside the project")
    content: str = Field(description="File content")
    type: str = Field(default="", description="File type: go, py, js, md, ...")


class GeneratedProject(BaseModel):
    """A complete generated project."""

    name: str
    description: str = ""
    files: list[ProjectFile] = Field(default_factory=list)

    def file_map(self) -> dict[str, str]:
        """Map of relative path to content; later duplicates win."""
        return {file.path: file.content for file in self.files}
