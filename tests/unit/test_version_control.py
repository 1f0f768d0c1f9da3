"""
Unit tests for the repository handle.

Tests staging, commits, branches, checkout, merge, reset, stash, and the
working-tree views built on them.
"""

import hashlib
import itertools

import pytest

from dep.version_control import (
    AlreadyExistsError,
    BranchNotFoundError,
    CommitNotFoundError,
    CreateFile,
    DeleteFile,
    EditScript,
    EmptyStageError,
    InUseError,
    InvalidNameError,
    PathNotFoundError,
    Repository,
    RepositoryNotFoundError,
    StashNotFoundError,
    UncommittedChangesError,
    VersionControlError,
    materialize,
    serialize_changes,
    validate_branch_name,
)

START = 1_700_000_000_000


def _clock():
    ticks = itertools.count(START)
    return lambda: next(ticks)


@pytest.fixture
def repo(tmp_path):
    """Repository initialized over an empty directory."""
    return Repository.init(tmp_path, clock=_clock())


def commit_file(repository, path, content, message):
    """Write, stage, and commit a single file."""
    repository.workdir.write(path, content)
    repository.add(path)
    return repository.commit(message)


class TestInitAndOpen:
    """Tests for creating and opening repositories."""

    def test_init_snapshots_existing_files(self, tmp_path) -> None:
        """Test files present at init become the root snapshot."""
        (tmp_path / "readme.md").write_text("hello")
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "main.py").write_text("print()")

        repository = Repository.init(tmp_path)

        assert repository.storage.load_root().as_state() == {
            "readme.md": "hello",
            "src/main.py": "print()",
        }
        assert repository.active_branch == "main"
        assert repository.pointer.parent is None
        assert repository.status().is_clean

    def test_reinit_leaves_repository_untouched(self, repo, tmp_path) -> None:
        """Test a second init does not reset history."""
        first = commit_file(repo, "a.txt", "1", "first")

        again = Repository.init(tmp_path)

        assert again.pointer.parent == first.hash
        assert again.storage.load_manifest("main").commits == [first.hash]

    def test_open_missing_repository(self, tmp_path) -> None:
        """Test opening a plain directory fails."""
        with pytest.raises(RepositoryNotFoundError):
            Repository.open(tmp_path)

    def test_init_with_undecodable_file(self, tmp_path) -> None:
        """Test non-UTF-8 files are read lossily instead of failing."""
        (tmp_path / "img.png").write_bytes(b"\x89PNG\r\n\x1a\n")

        repository = Repository.init(tmp_path)

        content = repository.storage.load_root().as_state()["img.png"]
        assert content.startswith("\ufffdPNG")
        assert repository.status().is_clean
        assert repository.diff() == "No changes detected."

    def test_is_repository(self, repo, tmp_path) -> None:
        assert Repository.is_repository(tmp_path)
        assert not Repository.is_repository(tmp_path / "elsewhere")


class TestStaging:
    """Tests for add and rm."""

    def test_add_new_file_stages_whole_content(self, repo) -> None:
        repo.workdir.write("a.txt", "abc")

        assert repo.add("a.txt") == ["a.txt"]
        assert repo.storage.load_stage() == {"a.txt": CreateFile("abc")}

    def test_add_tracked_file_stages_edit_script(self, repo) -> None:
        """Test modified tracked files are staged as edit scripts."""
        commit_file(repo, "a.txt", "abc", "first")
        repo.workdir.write("a.txt", "abcd")

        repo.add("a.txt")

        assert isinstance(repo.storage.load_stage()["a.txt"], EditScript)

    def test_add_unchanged_file_is_not_staged(self, repo) -> None:
        """Test a file matching the last commit is dropped from the stage."""
        commit_file(repo, "a.txt", "abc", "first")

        assert repo.add("a.txt") == []
        assert repo.storage.load_stage() == {}

    def test_add_directory(self, repo) -> None:
        """Test adding a directory stages every file below it."""
        repo.workdir.write("src/a.py", "a")
        repo.workdir.write("src/pkg/b.py", "b")
        repo.workdir.write("other.txt", "o")

        assert repo.add("src") == ["src/a.py", "src/pkg/b.py"]

    def test_add_missing_path(self, repo) -> None:
        with pytest.raises(PathNotFoundError):
            repo.add("missing.txt")

    def test_rm_stages_deletion_and_removes_file(self, repo) -> None:
        commit_file(repo, "a.txt", "abc", "first")

        assert repo.rm("a.txt") == ["a.txt"]
        assert not repo.workdir.exists("a.txt")
        assert repo.storage.load_stage() == {"a.txt": DeleteFile()}

        repo.commit("remove a")
        assert "a.txt" not in repo.tracked_state()

    def test_rm_missing_path(self, repo) -> None:
        with pytest.raises(PathNotFoundError):
            repo.rm("missing.txt")

    def test_paths_outside_working_tree_rejected(self, tmp_path) -> None:
        """Test add and rm refuse paths that escape the repository root."""
        work = tmp_path / "work"
        work.mkdir()
        outside = tmp_path / "outside.txt"
        outside.write_text("keep")
        repository = Repository.init(work)

        with pytest.raises(PathNotFoundError):
            repository.add("../outside.txt")
        with pytest.raises(PathNotFoundError):
            repository.rm("../outside.txt")
        with pytest.raises(PathNotFoundError):
            repository.add(outside)

        assert outside.read_text() == "keep"
        assert repository.storage.load_stage() is None

    def test_add_absolute_path_inside_tree(self, repo, tmp_path) -> None:
        repo.workdir.write("docs/a.txt", "a")

        assert repo.add(tmp_path / "docs" / "a.txt") == ["docs/a.txt"]


class TestCommit:
    """Tests for commit creation."""

    def test_commit_identity(self, repo) -> None:
        """Test the hash digests the changes, timestamp, and message."""
        repo.workdir.write("a.txt", "x")
        repo.add("a.txt")
        stage = repo.storage.load_stage()

        commit = repo.commit("first")

        payload = serialize_changes(stage) + str(START) + "first"
        assert commit.hash == hashlib.sha1(payload.encode("utf-8")).hexdigest()
        assert commit.timestamp == START
        assert commit.parent is None

    def test_commit_advances_branch(self, repo) -> None:
        """Test the manifest, pointer, and stage after a commit."""
        first = commit_file(repo, "a.txt", "1", "first")
        second = commit_file(repo, "a.txt", "12", "second")

        assert second.parent == first.hash
        assert repo.storage.load_manifest("main").commits == [first.hash, second.hash]
        assert repo.pointer.parent == second.hash
        assert repo.storage.load_stage() is None

    def test_empty_stage(self, repo) -> None:
        with pytest.raises(EmptyStageError):
            repo.commit("nothing")

    def test_empty_message(self, repo) -> None:
        repo.workdir.write("a.txt", "x")
        repo.add("a.txt")

        with pytest.raises(VersionControlError):
            repo.commit("")

    def test_pluggable_hasher(self, tmp_path) -> None:
        """Test commits use an injected hash function."""
        repository = Repository.init(tmp_path, hasher=lambda data: f"h{len(data)}")

        commit = commit_file(repository, "a.txt", "x", "msg")

        assert commit.hash.startswith("h")

    def test_log_newest_first(self, repo) -> None:
        first = commit_file(repo, "a.txt", "1", "first")
        second = commit_file(repo, "b.txt", "2", "second")

        assert [c.hash for c in repo.log()] == [second.hash, first.hash]

    def test_replay_reproduces_history(self, repo) -> None:
        """Test materializing each commit reproduces the tree at that time."""
        first = commit_file(repo, "a.txt", "hello", "first")
        second = commit_file(repo, "a.txt", "hello world", "second")
        repo.rm("a.txt")
        third = repo.commit("third")

        assert materialize(repo.storage, "main", first.hash) == {"a.txt": "hello"}
        assert materialize(repo.storage, "main", second.hash) == {"a.txt": "hello world"}
        assert materialize(repo.storage, "main", third.hash) == {}


class TestStatusAndDiff:
    """Tests for working-tree classification."""

    def test_status_classification(self, tmp_path) -> None:
        (tmp_path / "tracked.txt").write_text("t")
        (tmp_path / "gone.txt").write_text("g")
        repository = Repository.init(tmp_path)

        (tmp_path / "tracked.txt").write_text("changed")
        (tmp_path / "gone.txt").unlink()
        (tmp_path / "new.txt").write_text("n")
        (tmp_path / "staged.txt").write_text("s")
        repository.add("staged.txt")

        result = repository.status()

        assert result.staged == ["staged.txt"]
        assert result.modified == ["tracked.txt"]
        assert result.untracked == ["new.txt"]
        assert result.deleted == ["gone.txt"]
        assert not result.is_clean

    def test_diff_clean(self, repo) -> None:
        assert repo.diff() == "No changes detected."

    def test_diff_shows_changes(self, repo) -> None:
        commit_file(repo, "a.txt", "one\n", "first")
        repo.workdir.write("a.txt", "two\n")

        output = repo.diff()

        assert "-one" in output
        assert "+two" in output


class TestBranches:
    """Tests for creating, deleting, and switching branches."""

    def test_create_copies_history(self, repo) -> None:
        """Test a new branch gets its own manifest and objects."""
        first = commit_file(repo, "a.txt", "1", "first")

        repo.create_branch("dev")

        assert repo.storage.load_manifest("dev").commits == [first.hash]
        assert repo.storage.has_commit("dev", first.hash)
        assert repo.storage.load_manifest("dev", "remote").commits == [first.hash]
        assert repo.list_branches() == ["dev", "main"]

    def test_branches_diverge_independently(self, repo) -> None:
        first = commit_file(repo, "a.txt", "1", "first")
        repo.checkout("dev")
        commit_file(repo, "a.txt", "2", "on dev")

        assert repo.storage.load_manifest("main").commits == [first.hash]
        assert len(repo.storage.load_manifest("dev").commits) == 2

    def test_commit_on_source_not_visible_on_branch(self, repo) -> None:
        """Test commits on the original branch stay off the copy."""
        first = commit_file(repo, "a.txt", "1", "first")
        repo.create_branch("dev")

        second = commit_file(repo, "a.txt", "2", "on main")

        assert repo.storage.load_manifest("dev").commits == [first.hash]
        assert not repo.storage.has_commit("dev", second.hash)

    def test_create_existing(self, repo) -> None:
        with pytest.raises(AlreadyExistsError):
            repo.create_branch("main")

    @pytest.mark.parametrize("name", ["", "a/b", "a\\b", "..", "bad\tname"])
    def test_invalid_names(self, name) -> None:
        with pytest.raises(InvalidNameError):
            validate_branch_name(name)

    @pytest.mark.parametrize("name", ["..", ".", "a/.."])
    def test_unusable_names_rejected_before_touching_history(self, repo, name) -> None:
        """Test delete, checkout, and merge validate the branch name first."""
        first = commit_file(repo, "a.txt", "1", "first")

        with pytest.raises(InvalidNameError):
            repo.delete_branch(name)
        with pytest.raises(InvalidNameError):
            repo.checkout(name)
        with pytest.raises(InvalidNameError):
            repo.merge(name)

        assert repo.list_branches() == ["main"]
        assert repo.storage.load_manifest("main").commits == [first.hash]
        assert repo.storage.load_manifest("main", "remote").commits == []
        assert repo.storage.branch_exists("main", "remote")
        assert repo.active_branch == "main"
        assert repo.workdir.read("a.txt") == "1"

    def test_delete_branch(self, repo) -> None:
        repo.create_branch("dev")

        repo.delete_branch("dev")

        assert repo.list_branches() == ["main"]
        assert not repo.storage.branch_exists("dev", "remote")

    def test_delete_active_branch(self, repo) -> None:
        with pytest.raises(InUseError):
            repo.delete_branch("main")

    def test_delete_missing_branch(self, repo) -> None:
        with pytest.raises(BranchNotFoundError):
            repo.delete_branch("ghost")

    def test_checkout_switches_files(self, repo) -> None:
        commit_file(repo, "a.txt", "1", "first")
        repo.checkout("dev")
        commit_file(repo, "a.txt", "2", "second")
        commit_file(repo, "dev.txt", "d", "dev only")

        repo.checkout("main")
        assert repo.workdir.read("a.txt") == "1"
        assert not repo.workdir.exists("dev.txt")

        head = repo.checkout("dev")
        assert repo.workdir.read("a.txt") == "2"
        assert repo.pointer.parent == head

    def test_checkout_refuses_dirty_tree(self, repo) -> None:
        commit_file(repo, "a.txt", "1", "first")
        repo.create_branch("dev")
        repo.workdir.write("a.txt", "local edit")

        with pytest.raises(UncommittedChangesError):
            repo.checkout("dev")

        repo.checkout("dev", force=True)
        assert repo.workdir.read("a.txt") == "1"
        assert repo.active_branch == "dev"

    def test_checkout_refuses_missing_tracked_file(self, repo) -> None:
        """Test a tracked file deleted from disk counts as a local change."""
        commit_file(repo, "a.txt", "1", "first")
        repo.create_branch("dev")
        (repo.workdir.root / "a.txt").unlink()

        with pytest.raises(UncommittedChangesError):
            repo.checkout("dev")
        assert repo.active_branch == "main"

    def test_refused_checkout_creates_no_branch(self, repo) -> None:
        """Test a dirty checkout of a new branch leaves no trace on disk."""
        commit_file(repo, "a.txt", "1", "first")
        repo.workdir.write("a.txt", "local edit")

        with pytest.raises(UncommittedChangesError):
            repo.checkout("feature")

        assert repo.list_branches() == ["main"]
        assert not repo.storage.branch_exists("feature", "remote")
        assert repo.workdir.read("a.txt") == "local edit"

    def test_untracked_files_survive_checkout(self, repo) -> None:
        commit_file(repo, "a.txt", "1", "first")
        repo.workdir.write("notes.txt", "mine")

        repo.checkout("dev")

        assert repo.workdir.read("notes.txt") == "mine"


class TestMerge:
    """Tests for merging branches."""

    def test_clean_merge(self, repo) -> None:
        commit_file(repo, "a.txt", "base", "base")
        repo.checkout("feature")
        commit_file(repo, "b.txt", "feature", "add b")
        repo.checkout("main")

        result = repo.merge("feature")

        assert result.resolved == ["b.txt"]
        assert not result.has_conflicts
        assert repo.workdir.read("b.txt") == "feature"
        assert repo.storage.load_stage() == {"b.txt": CreateFile("feature")}

    def test_conflicting_merge(self, repo) -> None:
        commit_file(repo, "a.txt", "base", "base")
        repo.checkout("feature")
        commit_file(repo, "a.txt", "feature", "feature edit")
        repo.checkout("main")
        commit_file(repo, "a.txt", "main", "main edit")

        result = repo.merge("feature")

        assert result.conflicts == ["a.txt"]
        assert repo.workdir.read("a.txt") == (
            "<<<<<<< active\nmain\n=======\nfeature\n>>>>>>> feature"
        )

    def test_merge_up_to_date(self, repo) -> None:
        commit_file(repo, "a.txt", "base", "base")
        repo.create_branch("feature")

        result = repo.merge("feature")

        assert result.changes == {}
        assert repo.storage.load_stage() is None

    def test_merge_missing_branch(self, repo) -> None:
        with pytest.raises(BranchNotFoundError):
            repo.merge("ghost")


class TestReset:
    """Tests for reset."""

    def test_reset_clears_stage(self, repo) -> None:
        repo.workdir.write("a.txt", "x")
        repo.add("a.txt")

        assert repo.reset() is None
        assert repo.storage.load_stage() is None

    def test_reset_truncates_and_restores(self, repo) -> None:
        first = commit_file(repo, "a.txt", "1", "first")
        commit_file(repo, "a.txt", "2", "second")
        commit_file(repo, "b.txt", "b", "third")

        repo.reset(first.hash)

        assert repo.storage.load_manifest("main").commits == [first.hash]
        assert repo.pointer.parent == first.hash
        assert repo.workdir.read("a.txt") == "1"
        assert not repo.workdir.exists("b.txt")

    def test_reset_unknown_commit_still_clears_stage(self, repo) -> None:
        repo.workdir.write("a.txt", "x")
        repo.add("a.txt")

        with pytest.raises(CommitNotFoundError):
            repo.reset("0" * 40)
        assert repo.storage.load_stage() is None


class TestStash:
    """Tests for stash through the repository."""

    def test_push_and_pop(self, tmp_path) -> None:
        (tmp_path / "a.txt").write_text("1")
        repository = Repository.init(tmp_path, clock=_clock())
        repository.workdir.write("a.txt", "2")
        repository.workdir.write("u.txt", "u")

        name = repository.stash_push()

        assert name == f"stash_{START}"
        assert repository.workdir.read("a.txt") == "1"
        assert not repository.workdir.exists("u.txt")
        assert [e.id for e in repository.stash_list()] == ["stash@{0}"]

        popped, _ = repository.stash_pop()

        assert popped == name
        assert repository.workdir.read("a.txt") == "2"
        assert repository.workdir.read("u.txt") == "u"
        assert repository.stash_list() == []

    def test_push_clean_tree(self, repo) -> None:
        assert repo.stash_push() is None

    def test_pop_without_entries(self, repo) -> None:
        with pytest.raises(StashNotFoundError):
            repo.stash_pop()


class TestSettings:
    """Tests for config and remote."""

    def test_config_set_and_read(self, repo) -> None:
        assert repo.config() == {"handle": "", "personalAccessToken": ""}

        repo.config("handle", "alice")

        assert repo.config()["handle"] == "alice"

    def test_remote_slug_expanded(self, repo) -> None:
        assert repo.remote() == ""
        assert repo.remote("alice/project", host="http://example.com/") == (
            "http://example.com/alice/project"
        )
        assert repo.remote("https://other.host/bob/x") == "https://other.host/bob/x"
