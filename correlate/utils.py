"""Utility functions shared across correlate."""

from __future__ import annotations

import hashlib
import json
import os
import re
from typing import Any, Iterable, List


def sha1_text(text: str) -> str:
    """Calculate SHA1 hash of a text string."""
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def safe_relpath(path: str, base: str) -> str:
    """Get relative path, falling back to absolute on error."""
    try:
        return os.path.relpath(path, base)
    except ValueError:
        return path


def normalize_text(text: str) -> str:
    """Normalize whitespace in text."""
    return " ".join(text.replace("\u00a0", " ").split())


_CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_MARKDOWN_PUNCT_RE = re.compile(r"[#*_`]")


def strip_markdown(text: str) -> str:
    """Reduce markdown to plain prose: drop code blocks, keep link text."""
    text = _CODE_BLOCK_RE.sub("", text)
    text = _LINK_RE.sub(r"\1", text)
    text = _MARKDOWN_PUNCT_RE.sub("", text)
    return normalize_text(text)


def truncate_text(text: str, limit: int) -> str:
    """Truncate text to limit with ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def strip_extension(path: str) -> str:
    """Return the file name of ``path`` without directories or extension."""
    filename = re.split(r"[\\/]", path)[-1] or path
    return re.sub(r"\.[^/.]+$", "", filename)


def stringify_value(value: Any) -> str:
    """Render a metadata value as compact text.

    Lists are comma-joined, mappings become compact JSON, booleans and
    ``None`` use their JSON spelling.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (list, tuple)):
        return ",".join("" if item is None else stringify_value(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    return str(value)


def iter_batches(items: List, batch_size: int) -> Iterable[List]:
    """Yield batches of items."""
    for start in range(0, len(items), batch_size):
        yield items[start : start + batch_size]
