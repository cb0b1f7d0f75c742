"""Writing generated files to disk."""

from pathlib import Path


def write_files(base_dir: Path, files: dict[str, str]) -> list[Path]:
    """
    Write files below base_dir, creating parent directories.

    Args:
        base_dir: Project directory
        files: Mapping of relative path to content

    Returns:
        Paths written, in input order

    Raises:
        ValueError: If a path is absolute or escapes base_dir
        OSError: If a directory or file cannot be written
    """
    root = Path(base_dir).resolve()
    written: list[Path] = []

    for relative, content in files.items():
        if Path(relative).is_absolute():
            raise ValueError(f"absolute path not allowed: {relative}")
        target = (root / relative).resolve()
        if not target.is_relative_to(root) or target == root:
            raise ValueError(f"path escapes project directory: {relative}")

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        written.append(target)

    return written
