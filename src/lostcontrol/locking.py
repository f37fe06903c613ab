"""Advisory inter-process locking for a repository.

Two processes working on the same repository would otherwise interleave
writes to the descriptor and ledger files (last writer wins). The lock file
lives in the branch data root and persists between runs; the OS releases the
lock itself when the holder exits.
"""

import contextlib
import logging
from pathlib import Path
from typing import Iterator

import portalocker

from .constants import BRANCH_DATA_DIR, LOCK_FILE
from .errors import LockError

logger = logging.getLogger(__name__)


def lock_path(root: Path) -> Path:
    return root / BRANCH_DATA_DIR / LOCK_FILE


@contextlib.contextmanager
def repository_lock(root: Path, timeout: float = 10.0) -> Iterator[Path]:
    """Hold the repository lock for the duration of the block.

    Raises:
        LockError: If another process holds the lock past ``timeout`` seconds
    """
    path = lock_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)

    lock = portalocker.Lock(str(path), "a", timeout=timeout, fail_when_locked=False)
    try:
        lock.acquire()
    except portalocker.LockException as e:
        raise LockError(path, timeout) from e

    logger.debug("Acquired repository lock %s", path)
    try:
        yield path
    finally:
        lock.release()
        logger.debug("Released repository lock %s", path)
