"""Per-branch commit history."""

import logging
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError, model_validator

from .commit import Commit
from .constants import LEDGER_SUFFIX
from .errors import LoadError, NotFoundError
from .persistence import PersistedEntity, read_versioned

logger = logging.getLogger(__name__)


def ledger_path(data_root: Path, name: str) -> Path:
    """Conventional ledger location: ``<data_root>/<name>/<name>.conf``."""
    return data_root / name / f"{name}{LEDGER_SUFFIX}"


class BranchLedger(PersistedEntity):
    """Ordered commit history of one branch, stored in ``<branch>.conf``.

    Insertion order is history order. ``current_commit`` always mirrors the
    id of the last record (0 when empty).
    """

    name: str
    current_commit: int
    commits: List[Commit]

    @model_validator(mode="after")
    def _check_current_commit(self) -> "BranchLedger":
        expected = self.commits[-1].id if self.commits else 0
        if self.current_commit != expected:
            raise ValueError(
                f"current_commit is {self.current_commit} but the last commit is {expected}"
            )
        return self

    @classmethod
    def create(cls, name: str, data_root: Path) -> "BranchLedger":
        """Build an empty, not yet persisted ledger for a new branch."""
        ledger = cls(name=name, current_commit=0, commits=[])
        ledger._path = ledger_path(data_root, name)
        ledger._modified = True
        return ledger

    @classmethod
    def load(cls, path: Path) -> "BranchLedger":
        """Load a ledger from disk.

        Raises:
            VersionError: Unsupported format version
            LoadError: Unreadable file or invalid content
        """
        data = read_versioned(path)
        try:
            ledger = cls.model_validate(data)
        except ValidationError as e:
            raise LoadError(path, f"invalid branch ledger: {e}") from e
        ledger._path = path
        return ledger

    def _label(self) -> str:
        return f"branch {self.name}"

    def push_commit(self, commit: Commit) -> None:
        """Append a commit to the end of the history."""
        self._begin_mutation("push commit")
        self.commits.append(commit)
        self.current_commit = commit.id
        self._mark_modified()

    def remove_commit(self, commit_id: int) -> Commit:
        """Remove the first commit with ``commit_id`` and return it.

        Raises:
            NotFoundError: If the branch is empty or has no such commit
        """
        self._begin_mutation("remove commit")
        if not self.commits:
            raise NotFoundError(
                f"Cannot remove commit {commit_id} from branch {self.name}: branch is empty"
            )

        for index, commit in enumerate(self.commits):
            if commit.id == commit_id:
                del self.commits[index]
                self.current_commit = self.commits[-1].id if self.commits else 0
                self._mark_modified()
                logger.debug("Commit %d removed from branch %s", commit_id, self.name)
                return commit

        raise NotFoundError(
            f"Cannot remove commit {commit_id} from branch {self.name}: commit not found"
        )

    def get_commit(self, commit_id: int) -> Optional[Commit]:
        for commit in self.commits:
            if commit.id == commit_id:
                return commit
        return None

    def get_commits(self) -> List[Commit]:
        return list(self.commits)

    def commit_count(self) -> int:
        return len(self.commits)

    @property
    def last_commit(self) -> Optional[Commit]:
        return self.commits[-1] if self.commits else None
