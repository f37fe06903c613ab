"""Scoped repository operations.

``open_repository`` is the supported way to work on an existing repository:
it takes the advisory lock, loads the descriptor fresh, and finalizes it on
every exit path, including when the block raises.
"""

import contextlib
from pathlib import Path
from typing import Iterator, Optional, Union

from .config import load_config
from .constants import DESCRIPTOR_FILE
from .errors import NotFoundError
from .locking import repository_lock
from .repository import Repository, resolve_root


def init_repository(name: str, path: Optional[Union[str, Path]] = None) -> Repository:
    """Create and persist a new repository.

    Args:
        name: Repository name
        path: Repository root (defaults to the current working directory)

    Returns:
        The finalized repository

    Raises:
        AlreadyExistsError: If a repository already exists there
    """
    with Repository.create(name, path if path is not None else Path.cwd()) as repo:
        pass
    return repo


@contextlib.contextmanager
def open_repository(directory: Optional[Union[str, Path]] = None) -> Iterator[Repository]:
    """Load a repository under its lock and finalize it when the block exits.

    Raises:
        NotFoundError: If ``directory`` holds no repository
        LockError: If another process holds the lock past the configured timeout
        VersionError, LoadError: If the descriptor cannot be loaded
    """
    root = resolve_root(directory)
    if not (root / DESCRIPTOR_FILE).is_file():
        raise NotFoundError(f"No repository found in {root} ({DESCRIPTOR_FILE} missing)")

    config = load_config(root)
    with repository_lock(root, config.lock_timeout):
        with Repository.load(root) as repo:
            yield repo
