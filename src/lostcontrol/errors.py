"""Custom exceptions for lostcontrol.

This module defines typed exceptions for better error handling and clearer
error messages throughout the application. Every persistence and filesystem
failure is surfaced as one of these; nothing aborts the process.
"""

from pathlib import Path
from typing import Union


class LostControlError(RuntimeError):
    """Base class for all lostcontrol errors."""
    pass


class AlreadyExistsError(LostControlError):
    """A repository already exists at the target location."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        super().__init__(f"A repository already exists in {self.root}")


class NotFoundError(LostControlError):
    """Repository, branch, commit or snapshot not found."""
    pass


class NoStagedFilesError(LostControlError):
    """Commit requested with an empty staged set."""

    def __init__(self):
        super().__init__("No staged files, nothing to commit")


class StateError(LostControlError):
    """Mutation attempted on a finalized entity."""

    def __init__(self, entity: str, operation: str):
        self.entity = entity
        self.operation = operation
        super().__init__(f"Cannot {operation}: {entity} is already finalized")


class PathOutsideRepositoryError(LostControlError):
    """Path does not live under the repository root."""

    def __init__(self, path: Union[str, Path], root: Path):
        self.path = Path(path)
        self.root = root
        super().__init__(f"Path {self.path} is outside repository {root}")


class LockError(LostControlError):
    """Advisory repository lock could not be acquired."""

    def __init__(self, lock_path: Path, timeout: float):
        self.lock_path = lock_path
        self.timeout = timeout
        super().__init__(
            f"Repository is locked by another process ({lock_path}); "
            f"gave up after {timeout:g}s"
        )


# Persistence Errors
class PersistenceError(LostControlError):
    """Base class for errors reading persisted files."""
    pass


class VersionError(PersistenceError):
    """Persisted file was written with an unsupported format version."""

    def __init__(self, path: Path, found: str, expected: str):
        self.path = path
        self.found = found
        self.expected = expected
        super().__init__(
            f"{path}: format version {found!r} is not supported "
            f"(expected {expected!r})"
        )


class LoadError(PersistenceError):
    """Persisted file is unreadable or malformed."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot load {path}: {reason}")


# Filesystem Errors
class RepositoryIOError(LostControlError):
    """Copy, create, remove or write failure on repository data."""
    pass


class CommitAbortedError(RepositoryIOError):
    """Commit failed while populating its snapshot directory.

    Files copied before the failure stay on disk; there is no rollback.
    """

    def __init__(self, snapshot_dir: Path, reason: str):
        self.snapshot_dir = snapshot_dir
        self.reason = reason
        super().__init__(f"Commit aborted ({snapshot_dir}): {reason}")


class RestoreAbortedError(RepositoryIOError):
    """Restore failed while copying snapshot files; no rollback."""

    def __init__(self, snapshot_dir: Path, reason: str):
        self.snapshot_dir = snapshot_dir
        self.reason = reason
        super().__init__(f"Restore aborted ({snapshot_dir}): {reason}")
