"""Tests for the repository descriptor and its stage/commit/restore engine."""

import shutil

import pytest

from lostcontrol.constants import CURRENT_CONFIG_VERSION, DESCRIPTOR_FILE
from lostcontrol.errors import (
    AlreadyExistsError,
    CommitAbortedError,
    LoadError,
    NoStagedFilesError,
    NotFoundError,
    PathOutsideRepositoryError,
    RepositoryIOError,
    StateError,
    VersionError,
)
from lostcontrol.ledger import BranchLedger
from lostcontrol.repository import Repository, snapshot_dir_name


class TestCreateAndLoad:
    """Test repository creation and descriptor loading."""

    def test_create_defaults(self, repo_root):
        """Test that a new repository has one branch and ignores its own files."""
        repo = Repository.create("demo", repo_root)

        assert repo.name == "demo"
        assert repo.current_branch == "master"
        assert repo.branches == ["master"]
        assert repo.ignored_files == [".lostcontrol.conf"]
        assert repo.ignored_dirs == [".lostcontrol"]
        assert repo.staged_files == []
        assert repo.is_modified
        # Nothing on disk until finalize
        assert not (repo_root / DESCRIPTOR_FILE).exists()

    def test_finalize_creates_layout(self, repo_root):
        """Test that the first finalize writes the descriptor and an empty ledger."""
        repo = Repository.create("demo", repo_root)
        assert repo.finalize()

        assert (repo_root / DESCRIPTOR_FILE).is_file()
        ledger = BranchLedger.load(repo_root / ".lostcontrol" / "master" / "master.conf")
        assert ledger.name == "master"
        assert ledger.commit_count() == 0
        assert ledger.current_commit == 0

    def test_create_refuses_existing(self, initialized_repo, repo_root):
        with pytest.raises(AlreadyExistsError):
            Repository.create("again", repo_root)

    def test_create_refuses_existing_data_dir(self, repo_root):
        """Test that a leftover data directory also blocks creation."""
        (repo_root / ".lostcontrol").mkdir()
        with pytest.raises(AlreadyExistsError):
            Repository.create("demo", repo_root)

    def test_load(self, initialized_repo, repo_root):
        assert initialized_repo.name == "demo"
        assert initialized_repo.root == repo_root
        assert not initialized_repo.is_modified

    def test_load_defaults_to_cwd(self, initialized_repo):
        assert Repository.load().name == "demo"

    def test_load_missing(self, repo_root):
        with pytest.raises(NotFoundError):
            Repository.load(repo_root)

    def test_load_wrong_version(self, initialized_repo, repo_root):
        descriptor = repo_root / DESCRIPTOR_FILE
        body = descriptor.read_text().split("\n", 1)[1]
        descriptor.write_text("0.0.4\n" + body)

        with pytest.raises(VersionError):
            Repository.load(repo_root)

    def test_load_invalid_descriptor(self, initialized_repo, repo_root):
        (repo_root / DESCRIPTOR_FILE).write_text(f"{CURRENT_CONFIG_VERSION}\nname: demo\n")

        with pytest.raises(LoadError):
            Repository.load(repo_root)

    def test_load_undecodable_descriptor(self, initialized_repo, repo_root):
        (repo_root / DESCRIPTOR_FILE).write_bytes(b"0.0.5\nname: \xff\xfe\n")

        with pytest.raises(LoadError):
            Repository.load(repo_root)

    def test_load_unknown_current_branch(self, initialized_repo, repo_root):
        """Test that a current_branch missing from branches is rejected at load."""
        (repo_root / DESCRIPTOR_FILE).write_text(
            f"{CURRENT_CONFIG_VERSION}\nname: demo\ncurrent_branch: dev\nbranches:\n- master\n"
        )

        with pytest.raises(LoadError, match="current_branch"):
            Repository.load(repo_root)

    def test_descriptor_round_trip(self, initialized_repo, repo_root, test_files):
        """Test that staged files survive finalize and load, in order."""
        test_files()
        initialized_repo.stage(["file2.txt", "file1.txt"])
        initialized_repo.finalize()

        loaded = Repository.load(repo_root)
        assert loaded.name == "demo"
        assert loaded.branches == ["master"]
        assert loaded.staged_files == ["file2.txt", "file1.txt"]

    def test_empty_lists_omitted(self, initialized_repo, repo_root):
        """Test that an empty staged set is left out of the descriptor."""
        text = (repo_root / DESCRIPTOR_FILE).read_text()

        assert text.startswith(f"{CURRENT_CONFIG_VERSION}\n")
        assert "staged_files" not in text
        assert "ignored_dirs" in text

    def test_get_unknown_branch(self, initialized_repo):
        with pytest.raises(NotFoundError):
            initialized_repo.get_branch("dev")

    def test_get_branches(self, initialized_repo):
        assert [b.name for b in initialized_repo.get_branches()] == ["master"]


class TestStaging:
    """Test staging and unstaging."""

    def test_stage_preserves_order_and_dedupes(self, initialized_repo, test_files):
        test_files()
        added = initialized_repo.stage(["file2.txt", "file1.txt", "file2.txt"])

        assert added == ["file2.txt", "file1.txt"]
        assert initialized_repo.staged_files == ["file2.txt", "file1.txt"]
        assert initialized_repo.stage(["file1.txt"]) == []
        assert initialized_repo.is_modified

    def test_stage_directory_skips_ignored(self, initialized_repo, test_files):
        """Test that staging the root never picks up repository metadata."""
        test_files()
        added = initialized_repo.stage(["."])

        assert added == [
            "file1.txt",
            "file2.txt",
            "data/data.csv",
            "src/main.py",
            "src/pkg/util.py",
        ]
        assert not any(p.startswith(".lostcontrol") for p in added)

    def test_stage_ignored_file_directly(self, initialized_repo):
        assert initialized_repo.stage([DESCRIPTOR_FILE]) == []
        assert initialized_repo.stage([".lostcontrol/master/master.conf"]) == []
        assert initialized_repo.staged_files == []

    def test_stage_relative_to_cwd(self, initialized_repo, test_files, repo_root, monkeypatch):
        """Test that paths are taken relative to the CWD and stored root-relative."""
        test_files()
        monkeypatch.chdir(repo_root / "src")

        assert initialized_repo.stage(["main.py", "pkg"]) == ["src/main.py", "src/pkg/util.py"]

    def test_stage_absolute_path(self, initialized_repo, test_files, repo_root):
        test_files()
        assert initialized_repo.stage([repo_root / "data" / "data.csv"]) == ["data/data.csv"]

    def test_stage_outside_repository(self, initialized_repo, tmp_path):
        outside = tmp_path / "outside.txt"
        outside.write_text("x")

        with pytest.raises(PathOutsideRepositoryError):
            initialized_repo.stage([outside])

    def test_stage_missing_path_skipped(self, initialized_repo, write_file):
        write_file("a.txt")
        assert initialized_repo.stage(["missing.txt", "a.txt"]) == ["a.txt"]

    def test_stage_symlink_keeps_its_own_name(self, initialized_repo, write_file, repo_root):
        """Test that a link is staged under its name, not its target's."""
        write_file("a.txt", "target")
        try:
            (repo_root / "alias.txt").symlink_to(repo_root / "a.txt")
        except OSError:
            pytest.skip("symlinks not supported")

        assert initialized_repo.stage(["alias.txt"]) == ["alias.txt"]
        initialized_repo.commit("alias")

        copied = initialized_repo.snapshot_path("master", 1) / "alias.txt"
        assert copied.read_text() == "target"

    def test_stage_directory_with_link_outside(self, initialized_repo, write_file, repo_root, tmp_path):
        """Test that a link to a file outside the root does not abort staging."""
        write_file("src/main.py")
        outside = tmp_path / "outside.txt"
        outside.write_text("external")
        try:
            (repo_root / "src" / "link.txt").symlink_to(outside)
        except OSError:
            pytest.skip("symlinks not supported")

        assert initialized_repo.stage(["src"]) == ["src/link.txt", "src/main.py"]
        initialized_repo.commit("with link")

        copied = initialized_repo.snapshot_path("master", 1) / "src" / "link.txt"
        assert copied.read_text() == "external"
        assert not copied.is_symlink()

    def test_stage_undecodable_ignore_file(self, initialized_repo, repo_root, write_file):
        (repo_root / ".lostcontrolignore").write_bytes(b"\xff\xfe\n")
        write_file("a.txt")

        with pytest.raises(LoadError):
            initialized_repo.stage(["a.txt"])

    def test_ignore_file_patterns(self, initialized_repo, write_file):
        write_file(".lostcontrolignore", "*.log\nbuild/\n")
        write_file("debug.log")
        write_file("build/out.bin")
        write_file("keep.txt")

        added = initialized_repo.stage(["."])
        assert added == [".lostcontrolignore", "keep.txt"]

    def test_config_ignore_patterns(self, initialized_repo, repo_root, write_file):
        write_file(".lostcontrol/config.yaml", "ignore:\n  - '*.tmp'\n")
        write_file("scratch.tmp")
        write_file("keep.txt")

        repo = Repository.load(repo_root)
        assert repo.stage(["."]) == ["keep.txt"]

    def test_unstage(self, initialized_repo, test_files):
        test_files()
        initialized_repo.stage(["."])
        removed = initialized_repo.unstage(["src", "file1.txt"])

        assert removed == ["file1.txt", "src/main.py", "src/pkg/util.py"]
        assert initialized_repo.staged_files == ["file2.txt", "data/data.csv"]

    def test_unstage_deleted_directory(self, initialized_repo, test_files, repo_root):
        """Test that a path gone from disk still unstages everything beneath it."""
        test_files()
        initialized_repo.stage(["."])
        shutil.rmtree(repo_root / "src")

        removed = initialized_repo.unstage(["src"])
        assert removed == ["src/main.py", "src/pkg/util.py"]
        assert "src/main.py" not in initialized_repo.staged_files

    def test_unstage_deleted_file(self, initialized_repo, write_file, repo_root):
        write_file("a.txt")
        write_file("ab.txt")
        initialized_repo.stage(["a.txt", "ab.txt"])
        (repo_root / "a.txt").unlink()

        assert initialized_repo.unstage(["a.txt"]) == ["a.txt"]
        assert initialized_repo.staged_files == ["ab.txt"]

    def test_unstage_all(self, initialized_repo, test_files):
        test_files()
        initialized_repo.stage(["."])
        initialized_repo.unstage_all()

        assert initialized_repo.staged_files == []
        assert initialized_repo.is_modified

    def test_mutation_after_finalize(self, initialized_repo, write_file):
        write_file("a.txt")
        initialized_repo.finalize()

        with pytest.raises(StateError):
            initialized_repo.stage(["a.txt"])
        with pytest.raises(StateError):
            initialized_repo.unstage(["a.txt"])
        with pytest.raises(StateError):
            initialized_repo.unstage_all()
        with pytest.raises(StateError):
            initialized_repo.commit("late")


class TestCommit:
    """Test creating snapshot commits."""

    def test_commit(self, initialized_repo, write_file, repo_root):
        """Test the basic flow: stage one file, commit, snapshot and ledger updated."""
        write_file("a.txt", "hello")
        initialized_repo.stage(["a.txt"])

        assert initialized_repo.commit("first") == 1

        snapshot = repo_root / ".lostcontrol" / "master" / "master-commit-1"
        assert (snapshot / "a.txt").read_text() == "hello"
        assert initialized_repo.staged_files == []

        ledger = initialized_repo.get_branch("master")
        assert ledger.current_commit == 1
        commit = ledger.get_commit(1)
        assert commit.message == "first"
        assert commit.modified_files == ["a.txt"]

    def test_commit_copies_bytes_at_relative_paths(self, initialized_repo, repo_root):
        payload = bytes(range(256))
        (repo_root / "bin").mkdir()
        (repo_root / "bin" / "blob.dat").write_bytes(payload)
        initialized_repo.stage(["bin"])
        initialized_repo.commit("binary")

        copied = initialized_repo.snapshot_path("master", 1) / "bin" / "blob.dat"
        assert copied.read_bytes() == payload

    def test_commit_persists_cleared_stage(self, initialized_repo, commit_files, write_file, repo_root):
        write_file("a.txt")
        write_file("b.txt")

        assert commit_files("two files", "a.txt", "b.txt") == 2
        loaded = Repository.load(repo_root)
        assert loaded.staged_files == []
        assert loaded.get_branch("master").get_commit(1).modified_files == ["a.txt", "b.txt"]

    def test_commit_nothing_staged(self, initialized_repo):
        with pytest.raises(NoStagedFilesError):
            initialized_repo.commit("empty")
        assert initialized_repo.get_branch("master").commit_count() == 0

    def test_commit_aborts_on_missing_source(self, initialized_repo, write_file, repo_root):
        """Test that a failed copy leaves the staged set and the ledger untouched."""
        write_file("a.txt")
        write_file("b.txt")
        initialized_repo.stage(["a.txt", "b.txt"])
        (repo_root / "b.txt").unlink()

        with pytest.raises(CommitAbortedError) as exc_info:
            initialized_repo.commit("broken")

        assert exc_info.value.snapshot_dir == initialized_repo.snapshot_path("master", 1)
        assert initialized_repo.staged_files == ["a.txt", "b.txt"]
        assert initialized_repo.get_branch("master").commit_count() == 0
        # No rollback of what was already copied
        assert (initialized_repo.snapshot_path("master", 1) / "a.txt").exists()

    def test_sequential_ids(self, initialized_repo, write_file):
        for n in range(1, 4):
            write_file(f"f{n}.txt", str(n))
            initialized_repo.stage([f"f{n}.txt"])
            initialized_repo.commit(f"commit {n}")

        ledger = initialized_repo.get_branch("master")
        assert [c.id for c in ledger.get_commits()] == [1, 2, 3]
        assert ledger.current_commit == 3


def _three_commits(repo, write_file):
    for n in range(1, 4):
        write_file(f"f{n}.txt", f"v{n}")
        repo.stage([f"f{n}.txt"])
        repo.commit(f"commit {n}")


class TestRemoveCommit:
    """Test commit removal and the id reuse it causes."""

    def test_remove_only_commit(self, initialized_repo, write_file, repo_root):
        """Test that removing the single commit empties the branch."""
        write_file("a.txt")
        initialized_repo.stage(["a.txt"])
        initialized_repo.commit("first")

        initialized_repo.remove_commit(1)

        assert not (repo_root / ".lostcontrol" / "master" / "master-commit-1").exists()
        ledger = initialized_repo.get_branch("master")
        assert ledger.commit_count() == 0
        assert ledger.current_commit == 0
        assert ledger.get_commit(1) is None

    def test_remove_commit(self, initialized_repo, write_file):
        _three_commits(initialized_repo, write_file)
        initialized_repo.remove_commit(1)

        assert not initialized_repo.snapshot_path("master", 1).exists()
        ledger = initialized_repo.get_branch("master")
        assert ledger.get_commit(1) is None
        assert ledger.commit_count() == 2
        assert ledger.current_commit == 3

    def test_remove_tail_commit(self, initialized_repo, write_file):
        _three_commits(initialized_repo, write_file)
        initialized_repo.remove_commit(3)

        assert initialized_repo.get_branch("master").current_commit == 2

    def test_remove_unknown_commit(self, initialized_repo, write_file):
        """Test that a commit without a snapshot directory cannot be removed."""
        _three_commits(initialized_repo, write_file)

        with pytest.raises(RepositoryIOError):
            initialized_repo.remove_commit(9)
        assert initialized_repo.get_branch("master").commit_count() == 3

    def test_remove_with_missing_ledger_entry(self, initialized_repo, write_file):
        """Test that a stray snapshot directory is deleted before the ledger lookup fails."""
        _three_commits(initialized_repo, write_file)
        stray = initialized_repo.snapshot_path("master", 7)
        stray.mkdir()

        with pytest.raises(NotFoundError):
            initialized_repo.remove_commit(7)
        assert not stray.exists()

    def test_id_reused_after_removal(self, initialized_repo, write_file):
        """Test that ids follow the commit count, not a monotonic counter."""
        _three_commits(initialized_repo, write_file)
        initialized_repo.remove_commit(1)
        initialized_repo.remove_commit(2)

        write_file("f4.txt", "v4")
        initialized_repo.stage(["f4.txt"])
        initialized_repo.commit("after removal")

        ledger = initialized_repo.get_branch("master")
        assert [c.id for c in ledger.get_commits()] == [3, 2]
        assert ledger.current_commit == 2

    def test_id_collision_aborts_commit(self, initialized_repo, write_file):
        """Test that a reused id whose snapshot directory exists is refused."""
        _three_commits(initialized_repo, write_file)
        initialized_repo.remove_commit(2)

        write_file("f4.txt", "v4")
        initialized_repo.stage(["f4.txt"])
        with pytest.raises(CommitAbortedError):
            initialized_repo.commit("collides with 3")

        assert initialized_repo.staged_files == ["f4.txt"]
        assert (initialized_repo.snapshot_path("master", 3) / "f3.txt").read_text() == "v3"
        assert [c.id for c in initialized_repo.get_branch("master").get_commits()] == [1, 3]


class TestRestoreCommit:
    """Test restoring snapshots into the working directory."""

    def test_restore_overwrites_and_keeps_unrelated(self, initialized_repo, write_file, repo_root):
        write_file("a.txt", "v1")
        write_file("src/b.py", "b1")
        initialized_repo.stage(["a.txt", "src"])
        initialized_repo.commit("first")

        write_file("a.txt", "v2")
        (repo_root / "src" / "b.py").unlink()
        write_file("extra.txt", "untouched")

        assert initialized_repo.restore_commit(1) == 2
        assert (repo_root / "a.txt").read_text() == "v1"
        assert (repo_root / "src" / "b.py").read_text() == "b1"
        assert (repo_root / "extra.txt").read_text() == "untouched"

    def test_restore_into_destination(self, initialized_repo, write_file, tmp_path):
        write_file("src/b.py", "b1")
        initialized_repo.stage(["src/b.py"])
        initialized_repo.commit("first")

        destination = tmp_path / "out"
        assert initialized_repo.restore_commit(1, destination) == 1
        assert (destination / "src" / "b.py").read_text() == "b1"

    def test_restore_unknown_commit(self, initialized_repo):
        with pytest.raises(NotFoundError):
            initialized_repo.restore_commit(1)

    def test_restore_missing_snapshot(self, initialized_repo, write_file):
        write_file("a.txt")
        initialized_repo.stage(["a.txt"])
        initialized_repo.commit("first")
        shutil.rmtree(initialized_repo.snapshot_path("master", 1))

        with pytest.raises(NotFoundError, match="Snapshot directory"):
            initialized_repo.restore_commit(1)

    def test_snapshot_dir_name(self):
        assert snapshot_dir_name("master", 4) == "master-commit-4"
