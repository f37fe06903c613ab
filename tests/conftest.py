"""Shared test fixtures and utilities."""

import pytest

from lostcontrol.ops import init_repository
from lostcontrol.repository import Repository


@pytest.fixture
def repo_root(tmp_path, monkeypatch):
    """Empty working directory that is also the CWD."""
    root = tmp_path / "work"
    root.mkdir()
    monkeypatch.chdir(root)
    return root.resolve()


@pytest.fixture
def initialized_repo(repo_root):
    """Initialize a repository named 'demo' and return a freshly loaded handle."""
    init_repository("demo", repo_root)
    return Repository.load(repo_root)


@pytest.fixture
def write_file(repo_root):
    """Factory fixture to write files relative to the repository root."""
    def _write(path: str, content: str = "test content"):
        file_path = repo_root / path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content)
        return file_path
    return _write


@pytest.fixture
def test_files(write_file):
    """Create common test files in the repository root."""
    def make_files():
        return {
            "file1.txt": write_file("file1.txt", "content1"),
            "file2.txt": write_file("file2.txt", "content2"),
            "src/main.py": write_file("src/main.py", "print('hello')"),
            "src/pkg/util.py": write_file("src/pkg/util.py", "X = 1"),
            "data/data.csv": write_file("data/data.csv", "a,b,c\n1,2,3"),
        }
    return make_files


@pytest.fixture
def commit_files(repo_root):
    """Factory fixture: stage paths and commit them in one load/finalize cycle."""
    def _commit(message: str, *paths: str) -> int:
        with Repository.load(repo_root) as repo:
            repo.stage(paths)
            return repo.commit(message)
    return _commit
