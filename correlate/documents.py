"""Markdown documents with YAML frontmatter, and schema discovery in directories."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .errors import CorrelateError, ParseError
from .parser import SchemaParser
from .schemas import Document, Schema

logger = logging.getLogger(__name__)

SCHEMA_EXTENSIONS = (".yml", ".yaml", ".json")

# Preferred schema file names, most specific first
SCHEMA_PATTERNS = (
    "schema",
    "Schema",
    "*-schema",
    "*_schema",
    "*Schema",
    "config",
    ".schema",
    "schema/*",
)

_EXTENSION_ORDER = {".json": 1, ".yml": 2, ".yaml": 3}

FRONTMATTER_FENCE = "---"

PathLike = Union[str, Path]


def split_frontmatter(text: str) -> Tuple[Optional[str], str]:
    """Split raw markdown into (frontmatter yaml, body). Frontmatter is None if absent."""
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != FRONTMATTER_FENCE:
        return None, text
    for index in range(1, len(lines)):
        if lines[index].rstrip() == FRONTMATTER_FENCE:
            return "".join(lines[1:index]), "".join(lines[index + 1 :])
    return None, text


def parse_markdown(text: str, file_path: str) -> Document:
    raw_frontmatter, body = split_frontmatter(text)
    frontmatter: Dict[str, Any] = {}
    if raw_frontmatter is not None:
        try:
            data = yaml.safe_load(raw_frontmatter)
        except yaml.YAMLError as exc:
            raise ParseError(f"Invalid frontmatter in {file_path}: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ParseError(f"Frontmatter in {file_path} is not a mapping")
        frontmatter = {str(key): value for key, value in data.items()}
    return Document(file_path=file_path, frontmatter=frontmatter, content=body)


def render_markdown(document: Document) -> str:
    if not document.frontmatter:
        return document.content
    header = yaml.safe_dump(
        document.frontmatter,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    return f"{FRONTMATTER_FENCE}\n{header}{FRONTMATTER_FENCE}\n{document.content}"


def _schema_sort_key(path: Path) -> Tuple[int, int, int, str]:
    name = path.name.lower()
    return (
        0 if "schema" in name else 1,
        _EXTENSION_ORDER.get(path.suffix.lower(), 999),
        len(name),
        str(path),
    )


class FileSystemManager:
    """Reads and writes markdown documents and locates schema files."""

    def __init__(self, parser: Optional[SchemaParser] = None):
        self.parser = parser or SchemaParser()

    def read_markdown_file(self, file_path: PathLike) -> Document:
        path = Path(file_path)
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        return parse_markdown(text, str(path))

    def read_markdown_files(self, directory: PathLike) -> List[Document]:
        """Parse every ``*.md`` file below ``directory``, in path order."""
        root = Path(directory)
        if not root.is_dir():
            raise FileNotFoundError(f"Directory not found: {root}")
        paths = sorted(path for path in root.rglob("*.md") if path.is_file())
        logger.info("Found %d markdown file(s) in %s", len(paths), root)
        return [self.read_markdown_file(path) for path in paths]

    def write_markdown_file(self, file_path: PathLike, document: Document) -> Path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(render_markdown(document))
        return path

    def _candidates(self, root: Path) -> List[Path]:
        found: List[Path] = []
        for pattern in SCHEMA_PATTERNS:
            matches = []
            for extension in SCHEMA_EXTENSIONS:
                matches.extend(root.glob(f"{pattern}{extension}"))
            found.extend(sorted(path for path in matches if path.is_file()))

        fallback: List[Path] = []
        for extension in SCHEMA_EXTENSIONS:
            fallback.extend(path for path in root.glob(f"*{extension}") if path.is_file())
        found.extend(sorted(fallback, key=lambda path: (len(path.name), path.name)))

        unique: List[Path] = []
        for path in found:
            if path not in unique:
                unique.append(path)
        return unique

    def detect_and_parse_schema(self, directory: PathLike) -> Optional[Schema]:
        """Parse the first schema-like file in ``directory`` that parses, or return None."""
        root = Path(directory)
        for path in self._candidates(root):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    content = f.read()
                schema = self.parser.parse_schema(content, path.name)
            except (OSError, UnicodeDecodeError, CorrelateError) as exc:
                logger.warning("Failed to parse %s: %s", path, exc)
                continue
            logger.info(
                "Using schema %s from %s (%d field(s))", schema.key, path, len(schema.fields)
            )
            return schema
        return None

    def list_potential_schema_files(self, directory: PathLike) -> List[str]:
        root = Path(directory)
        patterns = list(SCHEMA_PATTERNS) + ["config/*", "*"]
        found = set()
        for pattern in patterns:
            for extension in SCHEMA_EXTENSIONS:
                found.update(path for path in root.glob(f"{pattern}{extension}") if path.is_file())
        return [str(path) for path in sorted(found, key=_schema_sort_key)]

    def get_schemas_from_directories(self, source_dir: PathLike, target_dir: PathLike) -> Tuple[Schema, Schema]:
        schemas = []
        for label, directory in (("source", source_dir), ("target", target_dir)):
            schema = self.detect_and_parse_schema(directory)
            if schema is None:
                candidates = ", ".join(self.list_potential_schema_files(directory)) or "none"
                raise FileNotFoundError(
                    f"Schema file not found in {label} directory: {directory}. Found files: {candidates}"
                )
            schemas.append(schema)
        return schemas[0], schemas[1]
