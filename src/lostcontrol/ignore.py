"""Ignore matching for staging and directory expansion.

A repository ignores an exact set of file paths and a set of directories
(everything beneath them included). Projects can add gitignore-style patterns
in a ``.lostcontrolignore`` file at the repository root.
"""

from pathlib import Path
from typing import Iterable, List, Optional

from pathspec import PathSpec

from .constants import IGNORE_FILE
from .errors import LoadError


def normalize_relpath(path: str) -> str:
    """Normalize a repository-relative path to bare POSIX form.

    ``./a/b/`` and ``a\\b`` both become ``a/b``; the repository root is ``.``.
    """
    p = path.replace("\\", "/")
    while p.startswith("./"):
        p = p[2:]
    p = p.rstrip("/")
    return p or "."


def read_ignore_file(root: Path) -> List[str]:
    """Read patterns from ``.lostcontrolignore``, skipping blanks and comments.

    Raises:
        LoadError: If the file exists but cannot be read as UTF-8 text
    """
    ignore_file = root / IGNORE_FILE
    if not ignore_file.is_file():
        return []

    try:
        text = ignore_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(ignore_file, str(e)) from e

    patterns = []
    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            patterns.append(line)
    return patterns


class IgnoreMatcher:
    """Decides which repository-relative paths are excluded from staging."""

    def __init__(
        self,
        files: Iterable[str] = (),
        dirs: Iterable[str] = (),
        patterns: Iterable[str] = (),
    ):
        """Initialize the matcher.

        Args:
            files: Exact file paths to ignore
            dirs: Directories to ignore, including everything beneath them
            patterns: Additional gitignore-style patterns
        """
        self.files = {normalize_relpath(f) for f in files}
        self.dirs = {normalize_relpath(d) for d in dirs}
        patterns = list(patterns)
        self.spec: Optional[PathSpec] = (
            PathSpec.from_lines("gitwildmatch", patterns) if patterns else None
        )

    @classmethod
    def for_repository(
        cls,
        root: Path,
        files: Iterable[str],
        dirs: Iterable[str],
        extra: Iterable[str] = (),
    ) -> "IgnoreMatcher":
        """Build the matcher for a repository, including its ignore file."""
        return cls(files, dirs, read_ignore_file(root) + list(extra))

    def _under_ignored_dir(self, relpath: str) -> bool:
        return any(
            relpath == d or relpath.startswith(d + "/")
            for d in self.dirs
        )

    def is_ignored(self, relpath: str) -> bool:
        """Check if a repository-relative file path should be ignored."""
        relpath = normalize_relpath(relpath)
        if relpath in self.files or self._under_ignored_dir(relpath):
            return True
        return self.spec is not None and self.spec.match_file(relpath)

    def is_ignored_dir(self, reldir: str) -> bool:
        """Check if a repository-relative directory should not be entered."""
        reldir = normalize_relpath(reldir)
        if reldir == ".":
            return False
        if self._under_ignored_dir(reldir):
            return True
        # Trailing slash so directory-only patterns ("build/") match
        return self.spec is not None and self.spec.match_file(reldir + "/")
