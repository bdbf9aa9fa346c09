"""Tests for correlate utilities."""

import os

from correlate.utils import (
    iter_batches,
    normalize_text,
    safe_relpath,
    sha1_text,
    strip_extension,
    strip_markdown,
    stringify_value,
    truncate_text,
)


def test_normalize_text():
    """Test text normalization."""
    assert normalize_text("  hello   world  ") == "hello world"
    assert normalize_text("hello\u00a0world") == "hello world"
    assert normalize_text("line1\nline2") == "line1 line2"


def test_strip_markdown():
    """Test markdown reduction to plain text."""
    text = "# Title\n\nSome *bold* text with a [link](https://example.com).\n```python\nprint(1)\n```\nEnd"
    assert strip_markdown(text) == "Title Some bold text with a link. End"


def test_truncate_text():
    """Test truncation with ellipsis."""
    assert truncate_text("short", 10) == "short"
    assert truncate_text("abcdefghij", 10) == "abcdefghij"
    assert truncate_text("abcdefghijk", 4) == "abcd..."


def test_strip_extension():
    """Test file names lose directories and the last extension."""
    assert strip_extension("notes/post.md") == "post"
    assert strip_extension("schema.v2.yaml") == "schema.v2"
    assert strip_extension("C:\\docs\\readme.md") == "readme"
    assert strip_extension("noext") == "noext"


def test_stringify_value():
    """Test metadata values render as compact text."""
    assert stringify_value("plain") == "plain"
    assert stringify_value(["a", "b", 3]) == "a,b,3"
    assert stringify_value({"k": "v", "n": 1}) == '{"k":"v","n":1}'
    assert stringify_value(True) == "true"
    assert stringify_value(False) == "false"
    assert stringify_value(None) == "null"
    assert stringify_value(4.5) == "4.5"


def test_iter_batches():
    """Test batching keeps order and the short tail."""
    batches = list(iter_batches(list(range(7)), 3))
    assert batches == [[0, 1, 2], [3, 4, 5], [6]]
    assert list(iter_batches([], 3)) == []


def test_sha1_text():
    """Test SHA1 hash generation."""
    text = "hello world"
    hash1 = sha1_text(text)
    hash2 = sha1_text(text)
    assert hash1 == hash2
    assert len(hash1) == 40  # SHA1 hex length

    # Different text should produce different hash
    hash3 = sha1_text("different text")
    assert hash1 != hash3


def test_safe_relpath(tmp_path):
    """Test paths are made relative to a base directory."""
    nested = tmp_path / "one" / "note.md"
    assert safe_relpath(str(nested), str(tmp_path)) == os.path.join("one", "note.md")
