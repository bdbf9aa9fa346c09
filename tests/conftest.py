"""Shared fixtures for correlate tests."""

from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from correlate.config import Settings
from correlate.schemas import (
    CorrelationMapping,
    CorrelationResult,
    FieldType,
    Schema,
    SchemaField,
)


def make_field(name: str, field_type: FieldType = FieldType.STRING, required: bool = False) -> SchemaField:
    return SchemaField(name=name, type=field_type, required=required)


def make_mapping(
    source: str,
    target: str,
    confidence: float,
    source_type: FieldType = FieldType.STRING,
    target_type: Optional[FieldType] = None,
    transform=None,
) -> CorrelationMapping:
    return CorrelationMapping(
        source_field=make_field(source, source_type),
        target_field=make_field(target, target_type or source_type),
        confidence=confidence,
        transform=transform,
    )


def mock_client(result: Optional[CorrelationResult] = None, error: Optional[Exception] = None) -> MagicMock:
    """A correlation client whose correlate_schemata is an AsyncMock."""
    client = MagicMock()
    client.correlate_schemata = AsyncMock(return_value=result, side_effect=error)
    return client


@pytest.fixture
def settings(tmp_path):
    return Settings(gemini_api_key=None, cache_dir=tmp_path / "embeddings")


@pytest.fixture
def blog_schema():
    return Schema(
        name="blog",
        version="1.0.0",
        fields=[
            make_field("title"),
            make_field("author"),
            make_field("status"),
            make_field("tags", FieldType.ARRAY),
            make_field("date", FieldType.DATE),
        ],
    )


@pytest.fixture
def article_schema():
    return Schema(
        name="article",
        version="2.0.0",
        fields=[
            make_field("heading", required=True),
            make_field("writer"),
            make_field("state"),
            make_field("tags", FieldType.ARRAY),
            make_field("publishedAt", FieldType.DATE),
        ],
    )


@pytest.fixture
def sample_result(blog_schema, article_schema):
    return CorrelationResult(
        mappings=[
            make_mapping("title", "heading", 0.9),
            make_mapping("author", "writer", 0.5),
        ],
        unmapped_source_fields=[f for f in blog_schema.fields if f.name not in ("title", "author")],
        unmapped_target_fields=[f for f in article_schema.fields if f.name not in ("heading", "writer")],
    )
