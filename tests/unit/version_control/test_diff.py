"""
Unit tests for diff computation.

Tests the prefix/suffix edit script, applying scripts back, and the
working-tree diff renderer.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from dep.version_control.diff import (
    apply_diff,
    apply_operations,
    compute_diff,
    render_file_diff,
)
from dep.version_control.objects import (
    CreateFile,
    Delete,
    DeleteFile,
    EditScript,
    Insert,
)


class TestComputeDiff:
    """Test compute_diff edit scripts."""

    def test_untracked_file_is_created(self):
        """Test that a file with no prior version becomes createFile."""
        assert compute_diff(None, "abc") == CreateFile(content="abc")

    def test_identical_content_gives_empty_script(self):
        """Test that equal content yields no operations."""
        assert compute_diff("abc", "abc") == EditScript(())

    def test_insertion_in_middle(self):
        """Test a pure insertion between common prefix and suffix."""
        assert compute_diff("abc", "abXc") == EditScript((Insert(position=2, content="X"),))

    def test_truncation_is_single_delete(self):
        """Test removing a tail produces only a delete."""
        assert compute_diff("hello world", "hello") == EditScript(
            (Delete(position=5, length=6),)
        )

    def test_replacement_is_delete_then_insert(self):
        """Test that a replaced span yields delete before insert."""
        result = compute_diff("the cat sat", "the dog sat")

        assert result == EditScript(
            (Delete(position=4, length=3), Insert(position=4, content="dog"))
        )

    def test_disjoint_edits_collapse_into_one_hunk(self):
        """Test two separate edits are covered by one delete and one insert."""
        result = compute_diff("a1b2c", "aXbYc")

        assert result == EditScript(
            (Delete(position=1, length=3), Insert(position=1, content="XbY"))
        )

    def test_suffix_does_not_overlap_prefix(self):
        """Test repeated characters do not let the suffix eat the prefix."""
        assert compute_diff("aa", "aaa") == EditScript((Insert(position=2, content="a"),))
        assert compute_diff("aaa", "aa") == EditScript((Delete(position=2, length=1),))

    def test_empty_to_content(self):
        """Test growing an empty tracked file."""
        assert compute_diff("", "new") == EditScript((Insert(position=0, content="new"),))


class TestApplyDiff:
    """Test applying change entries."""

    def test_create_file_overwrites(self):
        """Test createFile ignores prior content."""
        assert apply_diff("old", CreateFile(content="new")) == "new"

    def test_delete_file_returns_none(self):
        """Test deleteFile removes the file."""
        assert apply_diff("old", DeleteFile()) is None

    def test_edit_script_on_missing_file_starts_empty(self):
        """Test edit scripts default to empty content."""
        script = EditScript((Insert(position=0, content="hi"),))
        assert apply_diff(None, script) == "hi"

    def test_operations_applied_in_order(self):
        """Test each operation sees the result of the previous one."""
        operations = [
            Insert(position=0, content="abc"),
            Delete(position=1, length=1),
            Insert(position=2, content="Z"),
        ]
        assert apply_operations("", operations) == "acZ"

    def test_single_hunk_round_trip(self):
        """Test applying a computed diff reproduces the target."""
        previous = "line one\nline two\nline three\n"
        current = "line one\nline 2\nline three\nline four\n"

        assert apply_diff(previous, compute_diff(previous, current)) == current

    @settings(max_examples=200)
    @given(st.text(), st.text())
    def test_apply_inverts_compute(self, previous, current):
        """Test applyDiff(a, computeDiff(a, b)) == b for arbitrary text."""
        assert apply_diff(previous, compute_diff(previous, current)) == current

    @given(st.text())
    def test_apply_inverts_compute_for_new_files(self, current):
        """Test untracked content round-trips through createFile."""
        assert apply_diff(None, compute_diff(None, current)) == current


class TestRenderFileDiff:
    """Test the human-readable line diff."""

    def test_render_includes_header_and_changed_lines(self):
        """Test rendered diff shows removed and added lines."""
        output = render_file_diff("notes.txt", "a\nb\n", "a\nc\n")

        assert output.startswith("diff --dep a/notes.txt b/notes.txt")
        assert "-b" in output
        assert "+c" in output

    def test_render_new_file(self):
        """Test a new file renders as all additions."""
        output = render_file_diff("new.txt", "", "hello\n")

        assert "+hello" in output
