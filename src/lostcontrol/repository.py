"""Repository descriptor and the stage/commit/remove/restore engine.

The descriptor lives in ``<root>/.lostcontrol.conf``. Branch data lives under
``<root>/.lostcontrol/<branch>/``: the branch ledger ``<branch>.conf`` and one
full-copy snapshot directory ``<branch>-commit-<id>/`` per commit.

Multi-file operations are not transactional. A failed commit or restore
leaves whatever was already copied on disk, and a crash between the snapshot
copy and the ledger write leaves a snapshot directory without a ledger entry.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import Field, PrivateAttr, ValidationError, model_validator

from .collector import expand_directory
from .commit import Commit
from .config import LostControlConfig, load_config
from .constants import BRANCH_DATA_DIR, DEFAULT_BRANCH, DESCRIPTOR_FILE
from .errors import (
    AlreadyExistsError,
    CommitAbortedError,
    LoadError,
    NoStagedFilesError,
    NotFoundError,
    PathOutsideRepositoryError,
    RepositoryIOError,
    RestoreAbortedError,
)
from .ignore import IgnoreMatcher
from .ledger import BranchLedger, ledger_path
from .persistence import PersistedEntity, read_versioned

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def resolve_root(directory: Optional[PathLike] = None) -> Path:
    """Absolute repository root: ``directory`` or the current working directory."""
    if directory is None:
        return Path.cwd().resolve()
    return Path(directory).resolve()


def snapshot_dir_name(branch: str, commit_id: int) -> str:
    return f"{branch}-commit-{commit_id}"


class Repository(PersistedEntity):
    """Top-level repository metadata and operations.

    All stored paths are repository-relative POSIX strings. ``staged_files``
    behaves as an ordered set: unique entries in first-insertion order.
    """

    name: str
    current_branch: str
    branches: List[str]
    ignored_files: List[str] = Field(default_factory=list)
    ignored_dirs: List[str] = Field(default_factory=list)
    staged_files: List[str] = Field(default_factory=list)

    _root: Optional[Path] = PrivateAttr(default=None)
    _config: LostControlConfig = PrivateAttr(default_factory=LostControlConfig)
    _matcher: Optional[IgnoreMatcher] = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _check_current_branch(self) -> "Repository":
        if self.current_branch not in self.branches:
            raise ValueError(
                f"current_branch {self.current_branch} is not one of {self.branches}"
            )
        return self

    # ============= Construction =============

    @classmethod
    def create(cls, name: str, root: PathLike) -> "Repository":
        """Create a new, not yet persisted repository at ``root``.

        Raises:
            AlreadyExistsError: If the descriptor or the branch data root exists
        """
        root = resolve_root(root)
        if (root / DESCRIPTOR_FILE).exists() or (root / BRANCH_DATA_DIR).exists():
            raise AlreadyExistsError(root)

        repo = cls(
            name=name,
            current_branch=DEFAULT_BRANCH,
            branches=[DEFAULT_BRANCH],
            ignored_files=[DESCRIPTOR_FILE],
            ignored_dirs=[BRANCH_DATA_DIR],
            staged_files=[],
        )
        repo._bind(root)
        repo._modified = True
        logger.info("Repository %s created at %s", name, root)
        return repo

    @classmethod
    def load(cls, directory: Optional[PathLike] = None) -> "Repository":
        """Load the repository whose descriptor is in ``directory``.

        Args:
            directory: Repository root (defaults to the current working directory)

        Raises:
            NotFoundError: If there is no descriptor in the directory
            VersionError: If the descriptor has an unsupported format version
            LoadError: If the descriptor is unreadable or malformed
        """
        root = resolve_root(directory)
        descriptor = root / DESCRIPTOR_FILE
        if not descriptor.is_file():
            raise NotFoundError(f"No repository found in {root} ({DESCRIPTOR_FILE} missing)")

        data = read_versioned(descriptor)
        try:
            repo = cls.model_validate(data)
        except ValidationError as e:
            raise LoadError(descriptor, f"invalid repository descriptor: {e}") from e
        repo._bind(root)
        logger.debug("Descriptor for repository %s loaded", repo.name)
        return repo

    def _bind(self, root: Path) -> None:
        self._root = root
        self._path = root / DESCRIPTOR_FILE
        self._config = load_config(root)
        self._matcher = None

    def _label(self) -> str:
        return f"repository {self.name}"

    def _body(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        for key in ("ignored_files", "ignored_dirs", "staged_files"):
            if not data[key]:
                del data[key]
        return data

    # ============= Paths =============

    @property
    def root(self) -> Path:
        return self._root

    @property
    def data_root(self) -> Path:
        """Directory holding one subdirectory per branch."""
        return self._root / BRANCH_DATA_DIR

    @property
    def config(self) -> LostControlConfig:
        return self._config

    @property
    def matcher(self) -> IgnoreMatcher:
        """Ignore matcher for this repository (memoized)."""
        if self._matcher is None:
            self._matcher = IgnoreMatcher.for_repository(
                self._root, self.ignored_files, self.ignored_dirs, self._config.ignore
            )
        return self._matcher

    def branch_path(self, branch: str) -> Path:
        return self.data_root / branch

    def snapshot_path(self, branch: str, commit_id: int) -> Path:
        """Snapshot directory of commit ``commit_id`` on ``branch``."""
        return self.branch_path(branch) / snapshot_dir_name(branch, commit_id)

    def _absolute(self, path: PathLike) -> Path:
        # Symlinks are not followed: a link is staged under its own name
        return Path(os.path.abspath(path))

    def to_relative(self, path: PathLike) -> str:
        """Repository-relative POSIX form of ``path`` (relative to the CWD or absolute).

        Raises:
            PathOutsideRepositoryError: If the path is not under the root
        """
        try:
            return self._absolute(path).relative_to(self._root).as_posix()
        except ValueError:
            raise PathOutsideRepositoryError(path, self._root) from None

    def _expand(self, paths: Iterable[PathLike]) -> List[str]:
        """Resolve input paths to the repository-relative files they denote.

        Files map to themselves; directories expand recursively, skipping
        ignored directories. Anything else is skipped with a warning.
        """
        matcher = self.matcher
        files: List[str] = []
        for entry in paths:
            abs_path = self._absolute(entry)
            rel = self.to_relative(abs_path)
            if abs_path.is_file():
                files.append(rel)
            elif abs_path.is_dir():
                expanded = expand_directory(
                    abs_path,
                    skip_dir=lambda d: matcher.is_ignored_dir(self.to_relative(d)),
                )
                files.extend(self.to_relative(f) for f in expanded)
            else:
                logger.warning("%s is not a file or directory, ignoring it", entry)
        return files

    # ============= Staging =============

    def stage(self, paths: Iterable[PathLike]) -> List[str]:
        """Add files (directories expand recursively) to the staged set.

        Already staged and ignored paths are skipped.

        Returns:
            Newly staged paths, in staging order
        """
        self._begin_mutation("stage files")
        matcher = self.matcher
        staged = set(self.staged_files)
        added = []

        for rel in self._expand(paths):
            if rel in staged:
                logger.debug("File %s is already staged, skipping", rel)
                continue
            if matcher.is_ignored(rel):
                logger.debug("File %s is on ignore list, skipping", rel)
                continue
            self.staged_files.append(rel)
            staged.add(rel)
            added.append(rel)
            logger.debug("File %s staged", rel)

        self._mark_modified()
        return added

    def unstage(self, paths: Iterable[PathLike]) -> List[str]:
        """Remove files (directories expand recursively) from the staged set.

        A path that no longer exists on disk unstages the entry equal to it
        and everything staged beneath it.

        Returns:
            Paths removed from the staged set
        """
        self._begin_mutation("unstage files")
        paths = list(paths)
        present = [p for p in paths if self._absolute(p).exists()]
        targets = set(self._expand(present))

        prefixes = []
        for p in paths:
            if not self._absolute(p).exists():
                prefixes.append(self.to_relative(p))

        def selected(rel: str) -> bool:
            if rel in targets:
                return True
            return any(rel == pre or rel.startswith(pre + "/") for pre in prefixes)

        removed = [rel for rel in self.staged_files if selected(rel)]
        self.staged_files = [rel for rel in self.staged_files if not selected(rel)]
        for rel in removed:
            logger.debug("File %s unstaged", rel)

        self._mark_modified()
        return removed

    def unstage_all(self) -> None:
        self._begin_mutation("clear staged files")
        self.staged_files.clear()
        self._mark_modified()

    # ============= Commits =============

    def commit(self, message: str) -> int:
        """Snapshot every staged file into a new commit on the current branch.

        The new commit id is the branch's commit count plus one. Staged files
        are copied to ``<branch>-commit-<id>/`` at their relative paths, then
        the record is appended and the ledger written immediately.

        Returns:
            Number of files committed

        Raises:
            StateError: If the repository is finalized
            NoStagedFilesError: If nothing is staged
            CommitAbortedError: If the snapshot directory cannot be populated;
                files copied so far are left in place
        """
        self._begin_mutation("commit")
        if not self.staged_files:
            raise NoStagedFilesError()

        ledger = self.get_branch(self.current_branch)
        commit = Commit.create(ledger.commit_count() + 1, message, self.staged_files)
        snapshot_dir = self.snapshot_path(ledger.name, commit.id)

        logger.info("Writing %d staged files to %s", len(commit.modified_files), snapshot_dir)
        try:
            snapshot_dir.mkdir()
        except OSError as e:
            logger.error("Cannot create commit directory %s: %s", snapshot_dir, e)
            raise CommitAbortedError(snapshot_dir, f"cannot create snapshot directory: {e}") from e

        for rel in commit.modified_files:
            source = self._root / rel
            target = snapshot_dir / rel
            logger.debug("Copying %s to %s", source, target)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, target)
            except OSError as e:
                logger.error("Failed to copy %s into %s: %s", rel, snapshot_dir, e)
                raise CommitAbortedError(snapshot_dir, f"cannot copy {rel}: {e}") from e

        with ledger:
            ledger.push_commit(commit)

        self.staged_files.clear()
        self._mark_modified()
        logger.info("Commit %d created on branch %s", commit.id, ledger.name)
        return len(commit.modified_files)

    def remove_commit(self, commit_id: int) -> None:
        """Delete a commit's snapshot directory, then its ledger entry.

        If the directory is deleted but the ledger has no such entry, the
        NotFoundError propagates and nothing is put back.

        Raises:
            RepositoryIOError: If the snapshot directory cannot be removed
            NotFoundError: If the ledger has no such commit
        """
        self._begin_mutation("remove commit")
        ledger = self.get_branch(self.current_branch)
        snapshot_dir = self.snapshot_path(ledger.name, commit_id)

        logger.info("Removing commit directory %s", snapshot_dir)
        try:
            shutil.rmtree(snapshot_dir)
        except OSError as e:
            raise RepositoryIOError(f"Cannot remove commit directory {snapshot_dir}: {e}") from e

        with ledger:
            ledger.remove_commit(commit_id)
        self._mark_modified()

    def restore_commit(self, commit_id: int, destination: Optional[PathLike] = None) -> int:
        """Copy every file of a commit's snapshot back into the working directory.

        Restore is additive: files in the destination that are not part of
        the snapshot are left untouched.

        Args:
            commit_id: Commit to restore from the current branch
            destination: Directory to restore into (defaults to the CWD)

        Returns:
            Number of files restored

        Raises:
            NotFoundError: If the commit or its snapshot directory is missing
            RestoreAbortedError: If a file cannot be copied; no rollback
        """
        self._begin_mutation("restore commit")
        ledger = self.get_branch(self.current_branch)
        if ledger.get_commit(commit_id) is None:
            raise NotFoundError(f"Commit {commit_id} not found on branch {ledger.name}")

        snapshot_dir = self.snapshot_path(ledger.name, commit_id)
        if not snapshot_dir.is_dir():
            raise NotFoundError(f"Snapshot directory {snapshot_dir} is missing")

        target_root = Path(destination) if destination is not None else Path.cwd()
        logger.info("Restoring commit directory %s into %s", snapshot_dir, target_root)

        files = expand_directory(snapshot_dir)
        for source in files:
            target = target_root / source.relative_to(snapshot_dir)
            logger.debug("Copying %s to %s", source, target)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, target)
            except OSError as e:
                logger.error("Failed to restore %s: %s", source, e)
                raise RestoreAbortedError(snapshot_dir, f"cannot copy {source.name}: {e}") from e
        return len(files)

    # ============= Branches =============

    def get_branch(self, name: str) -> BranchLedger:
        """Load a branch ledger from disk (never cached).

        Raises:
            NotFoundError: If ``name`` is not a branch of this repository
            VersionError, LoadError: If the ledger cannot be loaded
        """
        if name not in self.branches:
            raise NotFoundError(f"Branch {name} not found in repository {self.name}")
        return BranchLedger.load(ledger_path(self.data_root, name))

    def get_branches(self) -> List[BranchLedger]:
        return [self.get_branch(name) for name in self.branches]

    # ============= Persistence =============

    def _after_write(self) -> None:
        """Create the data root and any missing branch directory with an empty ledger."""
        try:
            if not self.data_root.exists():
                self.data_root.mkdir()
                logger.info("Repository directory %s created", self.data_root)

            for branch in self.branches:
                branch_dir = self.branch_path(branch)
                if branch_dir.exists():
                    continue
                branch_dir.mkdir()
                BranchLedger.create(branch, self.data_root).finalize()
                logger.info("Branch directory %s created", branch_dir)
        except OSError as e:
            raise RepositoryIOError(f"Cannot create repository directories: {e}") from e
