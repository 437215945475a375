"""Filesystem utilities for forgepm."""

from pathlib import Path


def read_text_file(path: Path) -> str:
    """Read a text file exactly as stored.

    Line endings are not translated, so CRLF files survive a
    read-edit-write cycle unchanged.

    Args:
        path: Path to the file

    Returns:
        File contents as a string
    """
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def write_text_file(path: Path, content: str) -> None:
    """Write content to a text file without translating line endings.

    Args:
        path: Path to the file
        content: Content to write
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def relative_path(path: Path, root: Path) -> str:
    """Render a path relative to a root, with forward slashes.

    Falls back to the path itself when it lies outside the root.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()
