"""Directory listing and recursive expansion."""

import logging
from pathlib import Path
from typing import Callable, List, Optional

from .errors import NotFoundError, RepositoryIOError

logger = logging.getLogger(__name__)


def _list_dir(path: Path) -> List[Path]:
    if not path.is_dir():
        raise NotFoundError(f"Directory not found: {path}")
    try:
        return sorted(path.iterdir(), key=lambda p: p.name)
    except OSError as e:
        raise RepositoryIOError(f"Cannot read directory {path}: {e}") from e


def grab_directories(path: Path) -> List[Path]:
    """Immediate subdirectories of ``path``, sorted by name.

    Symlinked directories are not returned, so expansion never loops.
    """
    return [p for p in _list_dir(path) if p.is_dir() and not p.is_symlink()]


def grab_files(path: Path) -> List[Path]:
    """Immediate regular files of ``path``, sorted by name."""
    return [p for p in _list_dir(path) if p.is_file()]


def expand_directory(
    path: Path,
    skip_dir: Optional[Callable[[Path], bool]] = None,
) -> List[Path]:
    """Recursively collect every file under ``path``.

    Walks pre-order: a directory's own files come before the files of its
    subdirectories, and siblings are visited in name order.

    Args:
        path: Directory to expand
        skip_dir: Predicate; directories for which it returns True are not
            entered (``path`` itself included)

    Returns:
        Paths of all collected files (rooted like ``path``)
    """
    files: List[Path] = []
    pending = [path]
    while pending:
        current = pending.pop()
        if skip_dir is not None and skip_dir(current):
            logger.debug("Directory %s is on ignore list, skipping", current)
            continue

        files.extend(grab_files(current))
        # Reversed so pop() yields subdirectories in name order
        pending.extend(reversed(grab_directories(current)))
    return files
