"""Tests for the LLM correlation clients (backends mocked)."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from correlate.errors import CorrelationError
from correlate.llm import (
    GeminiCorrelationClient,
    OllamaCorrelationClient,
    build_user_message,
    parse_payload,
    reconcile_payload,
)
from correlate.schemas import CorrelationPrompt


def _reply(mappings, **extra):
    return json.dumps({"mappings": mappings, **extra})


def _ollama(reply_text: str) -> OllamaCorrelationClient:
    llm = MagicMock()
    llm.ainvoke = AsyncMock(return_value=MagicMock(content=reply_text))
    return OllamaCorrelationClient(model="test-model", base_url="http://ollama:11434", llm=llm)


def test_user_message_contains_both_schemas(blog_schema, article_schema):
    """Test the user message embeds both schemas as JSON."""
    message = build_user_message(CorrelationPrompt(source_schema=blog_schema, target_schema=article_schema))

    assert message.startswith("Source Schema:\n")
    assert "\n\nTarget Schema:\n" in message
    assert '"name": "blog"' in message
    assert '"name": "article"' in message


def test_parse_payload_accepts_fences_and_camel_case():
    """Test fenced replies and camelCase keys are understood."""
    text = "```json\n" + json.dumps(
        {
            "mappings": [
                {"sourceField": {"name": "title"}, "targetField": {"name": "heading"}, "confidence": 1.4}
            ],
            "unmappedSourceFields": [{"name": "date"}],
        }
    ) + "\n```"

    payload = parse_payload(text)

    assert payload.mappings[0].source_field.name == "title"
    assert payload.mappings[0].confidence == 1.0
    assert payload.unmapped_source_fields[0].name == "date"


def test_reconcile_drops_unknown_and_duplicate_fields(blog_schema, article_schema):
    """Test invalid mappings are dropped and unmapped lists recomputed."""
    payload = parse_payload(
        _reply(
            [
                {"source_field": {"name": "title"}, "target_field": {"name": "heading"}, "confidence": 0.9},
                {"source_field": {"name": "title"}, "target_field": {"name": "writer"}, "confidence": 0.8},
                {"source_field": {"name": "ghost"}, "target_field": {"name": "state"}, "confidence": 0.8},
                {
                    "source_field": {"name": "author"},
                    "target_field": {"name": "writer"},
                    "confidence": 0.7,
                    "suggestions": [
                        {"target_field": {"name": "heading"}, "confidence": 0.2},
                        {"target_field": {"name": "nope"}, "confidence": 0.2},
                    ],
                },
            ]
        )
    )

    result = reconcile_payload(payload, blog_schema, article_schema)

    assert [(m.source_field.name, m.target_field.name) for m in result.mappings] == [
        ("title", "heading"),
        ("author", "writer"),
    ]
    assert [s.target_field.name for s in result.mappings[1].suggestions] == ["heading"]
    mapped_sources = {m.source_field.name for m in result.mappings}
    mapped_targets = {m.target_field.name for m in result.mappings}
    assert {f.name for f in result.unmapped_source_fields} == {f.name for f in blog_schema.fields} - mapped_sources
    assert {f.name for f in result.unmapped_target_fields} == {f.name for f in article_schema.fields} - mapped_targets


@pytest.mark.asyncio
async def test_ollama_client_returns_typed_result(blog_schema, article_schema):
    """Test the Ollama client turns a JSON reply into a CorrelationResult."""
    client = _ollama(
        _reply([{"source_field": {"name": "title"}, "target_field": {"name": "heading"}, "confidence": 0.95}])
    )

    result = await client.correlate_schemata(CorrelationPrompt(source_schema=blog_schema, target_schema=article_schema))

    assert result.mappings[0].target_field.name == "heading"
    assert result.mappings[0].confidence == 0.95
    messages = client.llm.ainvoke.await_args.args[0]
    assert len(messages) == 2
    assert "correlation mapping" in messages[0].content


@pytest.mark.asyncio
async def test_ollama_client_wraps_bad_json(blog_schema, article_schema):
    """Test unparseable replies raise a generic CorrelationError."""
    client = _ollama("this is not json")

    with pytest.raises(CorrelationError) as exc_info:
        await client.correlate_schemata(CorrelationPrompt(source_schema=blog_schema, target_schema=article_schema))

    assert str(exc_info.value) == "Failed to correlate schemas using Ollama."
    assert exc_info.value.__cause__ is not None


@pytest.mark.asyncio
async def test_ollama_client_wraps_backend_errors(blog_schema, article_schema):
    """Test backend failures are not surfaced verbatim."""
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=ConnectionError("connection refused at 127.0.0.1"))
    client = OllamaCorrelationClient(model="m", base_url="http://x", llm=llm)

    with pytest.raises(CorrelationError) as exc_info:
        await client.correlate_schemata(CorrelationPrompt(source_schema=blog_schema, target_schema=article_schema))

    assert "127.0.0.1" not in str(exc_info.value)


def test_gemini_requires_api_key():
    """Test Gemini client fails at construction without a key."""
    with pytest.raises(ValueError, match="Gemini API key was not provided"):
        GeminiCorrelationClient(api_key="")
    with pytest.raises(ValueError):
        GeminiCorrelationClient(api_key=None)


@pytest.mark.asyncio
async def test_gemini_client_returns_typed_result(blog_schema, article_schema):
    """Test the Gemini client sends one prompt and parses the reply."""
    reply = _reply([{"source_field": {"name": "author"}, "target_field": {"name": "writer"}, "confidence": 0.8}])

    with patch("correlate.llm.genai") as genai:
        model = genai.GenerativeModel.return_value
        model.generate_content_async = AsyncMock(return_value=MagicMock(text=reply))
        client = GeminiCorrelationClient(api_key="secret", model="gemini-test")

        result = await client.correlate_schemata(
            CorrelationPrompt(source_schema=blog_schema, target_schema=article_schema)
        )

    genai.configure.assert_called_once_with(api_key="secret")
    assert result.mappings[0].source_field.name == "author"
    prompt = model.generate_content_async.await_args.args[0]
    assert "Source Schema:" in prompt
