"""Minimal local version control with full-copy snapshots."""

from .commit import Commit
from .ledger import BranchLedger
from .ops import init_repository, open_repository
from .repository import Repository

__version__ = "0.1.0"

__all__ = [
    "BranchLedger",
    "Commit",
    "Repository",
    "init_repository",
    "open_repository",
]
