"""
Tests for key path parsing and rendering.
"""

import pytest

from confmigrate.core.errors import MalformedPathError
from confmigrate.core.keypath import KeyPath, PathSegment, SegmentKind, parse_key_paths


class TestKeyPathParse:
    """Test cases for KeyPath.parse."""

    def test_parse_dotted_keys(self):
        """Test parsing plain dotted keys."""
        path = KeyPath.parse("server.grpc-concurrency")

        assert path.segments == (
            PathSegment(SegmentKind.KEY, "server"),
            PathSegment(SegmentKind.KEY, "grpc-concurrency"),
        )

    def test_parse_index_and_wildcards(self):
        """Test parsing indices, sequence wildcards and mapping wildcards."""
        path = KeyPath.parse("rocksdb.*.levels[2].items[*]")

        kinds = [segment.kind for segment in path.segments]
        assert kinds == [
            SegmentKind.KEY,
            SegmentKind.WILDCARD,
            SegmentKind.KEY,
            SegmentKind.INDEX,
            SegmentKind.KEY,
            SegmentKind.INDEX_WILDCARD,
        ]
        assert path.segments[3].value == 2
        assert path.has_wildcard

    def test_parse_quoted_key(self):
        """Test that quoted keys may contain dots and brackets."""
        path = KeyPath.parse('labels."app.kubernetes.io/name"')

        assert path.segments[1] == PathSegment(SegmentKind.KEY, "app.kubernetes.io/name")

    def test_parse_strips_whitespace(self):
        """Test that surrounding whitespace is ignored."""
        assert KeyPath.parse("  a.b  ") == KeyPath.parse("a.b")

    @pytest.mark.parametrize(
        "text",
        ["", "   ", "a..b", ".a", "a.", "a[x]", "a]", "a[0]b", "a.[0]", 'a."b', 42],
    )
    def test_parse_malformed(self, text):
        """Test that malformed expressions raise MalformedPathError."""
        with pytest.raises(MalformedPathError):
            KeyPath.parse(text)

    def test_malformed_path_is_value_error(self):
        """Test that MalformedPathError can be caught as ValueError."""
        with pytest.raises(ValueError):
            KeyPath.parse("a..b")


class TestKeyPathRender:
    """Test cases for rendering key paths back to text."""

    @pytest.mark.parametrize(
        "text",
        ["a", "a.b.c", "items[0]", "items[*]", "a.*.b", "a[0][1].b", 'labels."app.io/name"'],
    )
    def test_render_round_trip(self, text):
        """Test that parsed paths render to the same text."""
        assert str(KeyPath.parse(text)) == text

    def test_builders(self):
        """Test child and index builders."""
        path = KeyPath.root().child("server").child("labels").index(3)

        assert str(path) == "server.labels[3]"
        assert not path.is_root
        assert KeyPath.root().is_root
        assert str(KeyPath.root()) == ""

    def test_render_non_string_key(self):
        """Test rendering of integer mapping keys."""
        assert str(KeyPath.root().child("ports").child(8080)) == "ports.8080"

    def test_render_quotes_special_keys(self):
        """Test that keys needing quotes are quoted."""
        assert str(KeyPath.root().child("a.b")) == '"a.b"'
        assert str(KeyPath.root().child("*")) == '"*"'


class TestParseKeyPaths:
    """Test cases for parse_key_paths."""

    def test_duplicates_removed_in_order(self):
        """Test that duplicate expressions collapse while keeping first-seen order."""
        paths = parse_key_paths(["b", "a", "b", " a ", "c"])

        assert [str(p) for p in paths] == ["b", "a", "c"]
