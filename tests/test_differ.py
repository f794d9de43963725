"""
Tests for the structural differ.
"""

import os
import tempfile

import pytest

from confmigrate.core.differ import ChangeKind, DiffReport, diff, diff_files, format_value
from confmigrate.core.parser import YAMLParser


def _entries(report: DiffReport):
    return [(entry.path_text, entry.kind, entry.old_value, entry.new_value) for entry in report]


SAMPLE_TREES = [
    {},
    {"a": 1},
    {"a": 1, "b": 2},
    {"b": 2, "a": 1},
    {"a": {"x": 1, "y": [1, 2, {"z": None}]}, "b": "text"},
    {"a": {"y": [1, 3], "w": True}, "c": 1.0},
    {"a": [], "b": {"c": {"d": "e"}}},
]


class TestTreeDiffer:
    """Test cases for diff()."""

    def test_added_key(self):
        """Test a key present only in the new document."""
        report = diff({"a": 1}, {"a": 1, "b": 2})

        assert _entries(report) == [("b", ChangeKind.ADDED, None, 2)]

    def test_removed_key(self):
        """Test a key present only in the old document."""
        report = diff({"a": 1, "b": 2}, {"a": 1})

        assert _entries(report) == [("b", ChangeKind.REMOVED, 2, None)]

    def test_changed_nested_value(self):
        """Test a changed value deep inside the tree."""
        report = diff({"server": {"port": 20160}}, {"server": {"port": 20161}})

        assert _entries(report) == [("server.port", ChangeKind.CHANGED, 20160, 20161)]

    def test_node_kind_change_reported_once(self):
        """Test that a mapping replaced by a scalar is a single change."""
        report = diff({"a": {"x": 1, "y": 2}}, {"a": "flat"})

        assert _entries(report) == [("a", ChangeKind.CHANGED, {"x": 1, "y": 2}, "flat")]

    def test_sequences_compared_by_index(self):
        """Test index drift: one change per shifted element plus the tail."""
        report = diff({"items": ["a", "b", "c"]}, {"items": ["x", "a", "b", "c"]})

        assert _entries(report) == [
            ("items[0]", ChangeKind.CHANGED, "a", "x"),
            ("items[1]", ChangeKind.CHANGED, "b", "a"),
            ("items[2]", ChangeKind.CHANGED, "c", "b"),
            ("items[3]", ChangeKind.ADDED, None, "c"),
        ]

    def test_shorter_sequence_reports_removed(self):
        """Test that missing tail elements are reported as removed."""
        report = diff({"items": [1, 2, 3]}, {"items": [1]})

        assert report.paths(ChangeKind.REMOVED) == ["items[1]", "items[2]"]

    def test_int_and_float_differ(self):
        """Test that 1 and 1.0 are different scalar kinds."""
        report = diff({"a": 1}, {"a": 1.0})

        assert _entries(report) == [("a", ChangeKind.CHANGED, 1, 1.0)]

    def test_bool_and_int_differ(self):
        """Test that true and 1 are different scalar kinds."""
        assert len(diff({"a": True}, {"a": 1})) == 1

    def test_string_quoting_ignored(self):
        """Test that quoting style does not make strings differ."""
        parser = YAMLParser()
        old = parser.load_yaml_string("a: 'lz4'\nb: \"no\"\n")
        new = parser.load_yaml_string("a: lz4\nb: 'no'\n")

        assert not diff(old, new)

    def test_key_order_reported_unless_ignored(self):
        """Test reordering is a change only when ignore_order is false."""
        old = {"a": 1, "b": 2}
        new = {"b": 2, "a": 1}

        strict = diff(old, new, ignore_order=False)
        relaxed = diff(old, new, ignore_order=True)

        assert _entries(strict) == [(".", ChangeKind.CHANGED, ["a", "b"], ["b", "a"])]
        assert not relaxed

    def test_added_keys_do_not_count_as_reordering(self):
        """Test that only the order of shared keys matters."""
        report = diff({"a": 1, "c": 3}, {"a": 1, "b": 2, "c": 3}, ignore_order=False)

        assert _entries(report) == [("b", ChangeKind.ADDED, None, 2)]

    def test_nan_equals_nan(self):
        """Test that NaN values compare equal."""
        assert not diff({"a": float("nan")}, {"a": float("nan")})

    @pytest.mark.parametrize("tree", SAMPLE_TREES)
    def test_reflexive(self, tree):
        """Test that a tree never differs from itself."""
        assert not diff(tree, tree, ignore_order=True)
        assert not diff(tree, tree, ignore_order=False)

    @pytest.mark.parametrize("old", SAMPLE_TREES)
    @pytest.mark.parametrize("new", SAMPLE_TREES)
    def test_symmetric(self, old, new):
        """Test that swapping the inputs swaps added/removed and old/new."""
        forward = diff(old, new, ignore_order=False)
        backward = diff(new, old, ignore_order=False)

        assert sorted(forward.paths(ChangeKind.ADDED)) == sorted(backward.paths(ChangeKind.REMOVED))
        assert sorted(forward.paths(ChangeKind.REMOVED)) == sorted(backward.paths(ChangeKind.ADDED))

        changed_forward = {e.path_text: (e.old_value, e.new_value) for e in forward.of_kind(ChangeKind.CHANGED)}
        changed_backward = {e.path_text: (e.new_value, e.old_value) for e in backward.of_kind(ChangeKind.CHANGED)}
        assert changed_forward == changed_backward


class TestDiffReport:
    """Test cases for DiffReport rendering and helpers."""

    def test_render_lines(self):
        """Test the text rendering of each change kind."""
        report = diff(
            {"keep": 1, "gone": "x", "moved": {"a": 1}},
            {"keep": 2, "moved": {"a": 1}, "new": [1, 2]},
        )

        assert report.render().splitlines() == [
            "~ keep: 1 -> 2",
            "- gone: x",
            "+ new: [1, 2]",
        ]

    def test_summary(self):
        """Test counting entries per kind."""
        report = diff({"a": 1, "b": 2}, {"a": 3, "c": 4})

        assert report.summary() == {"added": 1, "removed": 1, "changed": 1}

    def test_empty_report(self):
        """Test the empty report."""
        report = diff({"a": 1}, {"a": 1})

        assert len(report) == 0
        assert not report
        assert report.render() == ""
        assert report == DiffReport()

    def test_format_value(self):
        """Test compact value formatting."""
        assert format_value(None) == "null"
        assert format_value(True) == "true"
        assert format_value("text") == "text"
        assert format_value({"a": [1, "b"]}) == '{"a": [1, "b"]}'


class TestDiffFiles:
    """Test cases for diff_files()."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.old_file = os.path.join(self.temp_dir, "v3.0-tikv.yml")
        self.new_file = os.path.join(self.temp_dir, "v3.1-tikv.yml")
        with open(self.old_file, "w", encoding="utf-8") as f:
            f.write("server:\n  grpc-concurrency: 4\nraftstore:\n  sync-log: true\n")
        with open(self.new_file, "w", encoding="utf-8") as f:
            f.write("raftstore:\n  sync-log: true\nserver:\n  grpc-concurrency: 8\n  labels: {}\n")

    def teardown_method(self):
        """Clean up test fixtures."""
        import shutil

        shutil.rmtree(self.temp_dir)

    def test_diff_files_ignore_order(self):
        """Test comparing two default configurations on disk."""
        report = diff_files(self.old_file, self.new_file, ignore_order=True)

        assert report.render().splitlines() == [
            "~ server.grpc-concurrency: 4 -> 8",
            "+ server.labels: {}",
        ]

    def test_diff_files_strict_order(self):
        """Test that the top-level reordering is reported in strict mode."""
        report = diff_files(self.old_file, self.new_file, ignore_order=False)

        assert report.entries[0].path_text == "."
        assert report.entries[0].kind is ChangeKind.CHANGED

    def test_diff_files_missing(self):
        """Test comparing against a missing file."""
        with pytest.raises(FileNotFoundError):
            diff_files(self.old_file, os.path.join(self.temp_dir, "missing.yml"))
